from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    app_name: str = "jellytrigger"
    app_env: str = "development"

    log_level: str = "INFO"
    cors_allow_origins: str = "*"
    shutdown_grace_seconds: float = 10.0
    max_timestamp_skew_seconds: int = 300

    git_pull_host: str = "0.0.0.0"
    git_pull_port: int = 3002
    update_secret: str | None = None
    app_dir: str = "."
    git_pull_remote: str = "origin"
    git_pull_branch: str = "main"
    git_pull_install_command: str = "npm install --production"
    git_pull_build_command: str = "npm run build"

    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    status_report_timeout_seconds: float = 10.0

    webhook_host: str = "0.0.0.0"
    webhook_port: int = 3001
    webhook_secret: str | None = None
    project_path: str = "/var/www/jelly-stream-viewer"
    webhook_update_command: str = "node update-server.js"

    nas_delete_host: str = "0.0.0.0"
    nas_delete_port: int = 3003
    nas_delete_secret: str | None = None
    nas_movies_path: str | None = None
    nas_shows_path: str | None = None
    nas_downloads_path: str | None = None
    nas_extra_paths: str = ""
    nas_resolve_symlinks: bool = False

    transcode_host: str = "0.0.0.0"
    transcode_port: int = 3004
    transcode_secret: str | None = None
    transcode_auth_mode: Literal["hmac", "token"] = "hmac"
    transcode_status_url: str | None = None
    transcode_status_secret: str | None = None
    transcode_status_api_key: str | None = None
    handbrake_command: str = "HandBrakeCLI"
    transcode_native_language: str = "nor"
    transcode_min_output_bytes: int = 1000
    transcode_max_concurrent: int = 1
    transcode_max_pending: int = 16
    transcode_allowed_paths: str = ""

    model_config = SettingsConfigDict(
        env_file=(str(BASE_DIR / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        return _split_csv(self.cors_allow_origins)

    @property
    def nas_allowed_paths(self) -> list[str]:
        configured = [self.nas_movies_path, self.nas_shows_path, self.nas_downloads_path]
        return [path for path in configured if path] + _split_csv(self.nas_extra_paths)

    @property
    def transcode_allowed_roots(self) -> list[str]:
        return _split_csv(self.transcode_allowed_paths)

    @property
    def backend_reporting_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


settings = Settings()
