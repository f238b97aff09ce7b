import logging
import shlex
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from jellytrigger.api.routes.git_pull import router as git_pull_router
from jellytrigger.api.routes.health import router as health_router
from jellytrigger.api.routes.nas_delete import router as nas_delete_router
from jellytrigger.api.routes.transcode import router as transcode_router
from jellytrigger.api.routes.update_webhook import router as update_webhook_router
from jellytrigger.core.config import Settings
from jellytrigger.core.config import settings as default_settings
from jellytrigger.core.errors import install_error_handlers
from jellytrigger.core.openapi import API_DESCRIPTION, install_custom_openapi
from jellytrigger.core.signature import AuthPolicy
from jellytrigger.modules.path_policy.service import AllowListPolicy
from jellytrigger.modules.task_queue.service import TaskQueue
from jellytrigger.modules.transcode.service import TranscodeExecutor
from jellytrigger.modules.transcode.status_sink import TranscodeStatusSink
from jellytrigger.modules.update_runner.reporter import UpdateStatusReporter
from jellytrigger.modules.update_runner.service import (
    CommandUpdater,
    GitPullUpdater,
    build_git_pull_command,
)
from jellytrigger.observability.logging import configure_logging
from jellytrigger.observability.request_logging import request_logging_middleware

logger = logging.getLogger("jellytrigger.app")

UPDATE_QUEUE_MAX_PENDING = 4


class ServiceKind(str, Enum):
    GIT_PULL = "git-pull"
    UPDATE_WEBHOOK = "update-webhook"
    NAS_DELETE = "nas-delete"
    TRANSCODE = "transcode"


SERVICE_ROUTERS: dict[ServiceKind, list[APIRouter]] = {
    ServiceKind.GIT_PULL: [git_pull_router],
    ServiceKind.UPDATE_WEBHOOK: [update_webhook_router],
    ServiceKind.NAS_DELETE: [nas_delete_router],
    ServiceKind.TRANSCODE: [transcode_router],
}


@dataclass
class ServiceComponents:
    auth_policy: AuthPolicy
    health_details: Callable[[], dict[str, Any]]
    queue: TaskQueue | None = None
    updater: GitPullUpdater | CommandUpdater | None = None
    path_policy: AllowListPolicy | None = None
    executor: TranscodeExecutor | None = None


def service_address(kind: ServiceKind, settings: Settings) -> tuple[str, int]:
    addresses = {
        ServiceKind.GIT_PULL: (settings.git_pull_host, settings.git_pull_port),
        ServiceKind.UPDATE_WEBHOOK: (settings.webhook_host, settings.webhook_port),
        ServiceKind.NAS_DELETE: (settings.nas_delete_host, settings.nas_delete_port),
        ServiceKind.TRANSCODE: (settings.transcode_host, settings.transcode_port),
    }
    return addresses[kind]


def _build_git_pull(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> ServiceComponents:
    reporter = UpdateStatusReporter(
        base_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
        timeout=settings.status_report_timeout_seconds,
        transport=transport,
    )
    updater = GitPullUpdater(
        app_dir=settings.app_dir,
        command=build_git_pull_command(
            remote=settings.git_pull_remote,
            branch=settings.git_pull_branch,
            install_command=settings.git_pull_install_command,
            build_command=settings.git_pull_build_command,
        ),
        reporter=reporter,
    )
    return ServiceComponents(
        auth_policy=AuthPolicy.body_hmac(settings.update_secret, signature_header="X-Update-Signature"),
        health_details=lambda: {
            "directory": settings.app_dir,
            "host": settings.git_pull_host,
            "port": settings.git_pull_port,
            "backendReporting": reporter.enabled,
        },
        queue=TaskQueue("git-pull", concurrency=1, max_pending=UPDATE_QUEUE_MAX_PENDING),
        updater=updater,
    )


def _build_update_webhook(settings: Settings) -> ServiceComponents:
    return ServiceComponents(
        auth_policy=AuthPolicy.body_hmac(
            settings.webhook_secret,
            signature_header="X-Webhook-Signature",
            timestamp_header="X-Webhook-Timestamp",
            require_timestamp=True,
        ),
        health_details=lambda: {"projectPath": settings.project_path},
        queue=TaskQueue("update-webhook", concurrency=1, max_pending=UPDATE_QUEUE_MAX_PENDING),
        updater=CommandUpdater(project_path=settings.project_path, command=settings.webhook_update_command),
    )


def _build_nas_delete(settings: Settings) -> ServiceComponents:
    if not settings.nas_delete_secret:
        raise ValueError("NAS_DELETE_SECRET must be configured")
    path_policy = AllowListPolicy.from_paths(
        settings.nas_allowed_paths,
        resolve_symlinks=settings.nas_resolve_symlinks,
    )
    return ServiceComponents(
        auth_policy=AuthPolicy.timestamped_hmac(
            settings.nas_delete_secret,
            max_skew_seconds=settings.max_timestamp_skew_seconds,
        ),
        health_details=lambda: {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "allowedPaths": path_policy.to_list(),
        },
        path_policy=path_policy,
    )


def _transcode_auth_policy(settings: Settings) -> AuthPolicy:
    if settings.transcode_auth_mode == "token":
        return AuthPolicy.shared_token(settings.transcode_secret, signature_header="X-Transcode-Secret")
    if not settings.transcode_secret:
        return AuthPolicy.disabled(signature_header="X-Signature")
    return AuthPolicy.timestamped_hmac(
        settings.transcode_secret,
        max_skew_seconds=settings.max_timestamp_skew_seconds,
    )


def _build_transcode(settings: Settings, transport: httpx.AsyncBaseTransport | None) -> ServiceComponents:
    allowed_roots = settings.transcode_allowed_roots
    executor = TranscodeExecutor(
        handbrake_command=shlex.split(settings.handbrake_command),
        status_sink=TranscodeStatusSink(
            url=settings.transcode_status_url,
            secret=settings.transcode_status_secret or settings.transcode_secret,
            api_key=settings.transcode_status_api_key,
            timeout=settings.status_report_timeout_seconds,
            transport=transport,
        ),
        queue=TaskQueue(
            "transcode",
            concurrency=settings.transcode_max_concurrent,
            max_pending=settings.transcode_max_pending,
        ),
        native_language=settings.transcode_native_language,
        min_output_bytes=settings.transcode_min_output_bytes,
        allowed_paths=AllowListPolicy.from_paths(allowed_roots) if allowed_roots else None,
    )
    return ServiceComponents(
        auth_policy=_transcode_auth_policy(settings),
        health_details=lambda: {
            "handbrakeAvailable": executor.handbrake_available(),
            "activeJobs": len(executor.registry),
            "queuedJobs": executor.queue.pending_count,
        },
        queue=executor.queue,
        executor=executor,
    )


def build_components(
    kind: ServiceKind,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ServiceComponents:
    """Validate configuration for ``kind`` and build its collaborators.

    Raises ``ValueError`` when the service cannot run safely, which aborts
    startup.
    """
    if kind is ServiceKind.GIT_PULL:
        return _build_git_pull(settings, transport)
    if kind is ServiceKind.UPDATE_WEBHOOK:
        return _build_update_webhook(settings)
    if kind is ServiceKind.NAS_DELETE:
        return _build_nas_delete(settings)
    return _build_transcode(settings, transport)


def _log_auth_posture(kind: ServiceKind, policy: AuthPolicy) -> None:
    if policy.enabled:
        logger.info(
            "auth_enabled",
            extra={"event_name": "auth_enabled", "service": kind.value, "auth_mode": policy.mode.value},
        )
        return
    logger.warning(
        "auth_disabled",
        extra={
            "event_name": "auth_disabled",
            "service": kind.value,
            "auth_mode": policy.mode.value,
            "reason": "no secret configured; every request is accepted",
        },
    )


def create_app(
    kind: ServiceKind | str,
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    kind = ServiceKind(kind)
    app_settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(app_settings.log_level)
        components = build_components(kind, app_settings, transport=transport)
        app.state.auth_policy = components.auth_policy
        app.state.health_details = components.health_details
        app.state.queue = components.queue
        app.state.updater = components.updater
        app.state.path_policy = components.path_policy
        app.state.executor = components.executor

        _log_auth_posture(kind, components.auth_policy)
        if components.path_policy is not None:
            logger.info(
                "allowed_paths_configured",
                extra={
                    "event_name": "allowed_paths_configured",
                    "service": kind.value,
                    "allowed_paths": components.path_policy.to_list(),
                },
            )
        if components.queue is not None:
            await components.queue.start()
        logger.info("service_started", extra={"event_name": "service_started", "service": kind.value})
        try:
            yield
        finally:
            grace = app_settings.shutdown_grace_seconds
            if components.executor is not None:
                await components.executor.shutdown(grace)
            elif components.queue is not None:
                await components.queue.stop(grace)
            logger.info("service_stopped", extra={"event_name": "service_stopped", "service": kind.value})

    app = FastAPI(
        title=f"jellytrigger {kind.value}",
        summary="Signed remote-command triggers for a Jellyfin media server",
        description=API_DESCRIPTION,
        version="0.3.0",
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.service_name = kind.value
    app.state.settings = app_settings
    app.openapi = install_custom_openapi(app)  # type: ignore[method-assign]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)
    install_error_handlers(app)

    app.include_router(health_router)
    for router in SERVICE_ROUTERS[kind]:
        app.include_router(router)

    @app.options("/{path:path}", include_in_schema=False)
    def preflight(request: Request, path: str) -> Response:
        origins = app_settings.cors_origins
        origin = request.headers.get("origin")
        if "*" in origins:
            allow_origin = "*"
        elif origin in origins:
            allow_origin = origin
        else:
            allow_origin = origins[0] if origins else ""
        policy: AuthPolicy = request.app.state.auth_policy
        return Response(
            status_code=204,
            headers={
                "Access-Control-Allow-Origin": allow_origin,
                "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
                "Access-Control-Allow-Headers": ", ".join(["Content-Type", *policy.header_names]),
            },
        )

    return app
