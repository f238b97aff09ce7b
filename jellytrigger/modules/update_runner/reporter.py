import json
import logging
from datetime import UTC, datetime
from typing import Any, Literal

import httpx

logger = logging.getLogger("jellytrigger.update_reporter")

LogLevel = Literal["info", "success", "warning", "error"]


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def log_entry(message: str, level: LogLevel = "info") -> dict[str, str]:
    return {"timestamp": utc_now_iso(), "message": message, "level": level}


class UpdateStatusReporter:
    """Best-effort writer for the backend ``update_status`` and ``server_settings`` tables.

    Talks to the Supabase REST interface with the service-role key. Every
    failure is logged and swallowed, so an unreachable backend never changes
    the outcome of an update.
    """

    def __init__(
        self,
        *,
        base_url: str | None,
        service_role_key: str | None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") if base_url else None
        self._service_role_key = service_role_key
        self._timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._base_url and self._service_role_key)

    def _headers(self) -> dict[str, str]:
        key = self._service_role_key or ""
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self._base_url}/rest/v1",
            headers=self._headers(),
            timeout=self._timeout,
            transport=self._transport,
        )

    async def append_logs(
        self,
        update_id: str | None,
        entries: list[dict[str, str]],
        patch: dict[str, Any] | None = None,
    ) -> None:
        if not self.enabled or not update_id:
            return

        try:
            async with self._client() as client:
                current = await client.get(
                    "/update_status",
                    params={"id": f"eq.{update_id}", "select": "logs"},
                )
                current.raise_for_status()
                rows = current.json()
                existing = _decode_logs(rows[0].get("logs") if rows else None)

                body = {
                    **(patch or {}),
                    "logs": json.dumps([*existing, *entries]),
                    "updated_at": utc_now_iso(),
                }
                response = await client.patch(
                    "/update_status",
                    params={"id": f"eq.{update_id}"},
                    headers={"Prefer": "return=minimal"},
                    json=body,
                )
                response.raise_for_status()
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "update_status_write_failed",
                extra={"event_name": "update_status_write_failed", "update_id": update_id},
                exc_info=True,
            )

    async def set_installed_commit_sha(self, commit_sha: str) -> None:
        if not self.enabled or not commit_sha:
            return

        try:
            async with self._client() as client:
                response = await client.post(
                    "/server_settings",
                    params={"on_conflict": "setting_key"},
                    headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
                    json={
                        "setting_key": "installed_commit_sha",
                        "setting_value": commit_sha,
                        "updated_at": utc_now_iso(),
                        "updated_by": None,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.warning(
                "installed_commit_sha_write_failed",
                extra={"event_name": "installed_commit_sha_write_failed"},
                exc_info=True,
            )


def _decode_logs(raw: object) -> list[Any]:
    if isinstance(raw, list):
        return raw
    if isinstance(raw, str):
        try:
            decoded = json.loads(raw)
        except ValueError:
            return []
        return decoded if isinstance(decoded, list) else []
    return []
