from collections.abc import Mapping
from typing import Any

import httpx

from jellytrigger_sdk.canonical import encode_body
from jellytrigger_sdk.crypto import now_ms, sign_body, sign_timestamped
from jellytrigger_sdk.types import (
    CancelResponse,
    DeleteResponse,
    GitPullResponse,
    HealthResponse,
    ServiceName,
    SignedRequest,
    TranscodeAcceptedResponse,
    TranscodeAuthMode,
    TranscodeRequestBody,
    UpdateResponse,
)


def build_signed_request(
    service: ServiceName,
    payload: Mapping[str, Any],
    *,
    secret: str | None,
    timestamp_ms: int | None = None,
    transcode_auth_mode: TranscodeAuthMode = "hmac",
) -> SignedRequest:
    """Serialize ``payload`` once and sign those bytes for ``service``.

    Without a secret the request carries no auth headers, which only a
    service running with auth disabled accepts.
    """
    body = encode_body(payload)
    headers = {"Content-Type": "application/json"}
    if not secret:
        return {"headers": headers, "body": body}

    timestamp = timestamp_ms if timestamp_ms is not None else now_ms()
    if service == "git-pull":
        headers["X-Update-Signature"] = sign_body(secret, body)
    elif service == "update-webhook":
        headers["X-Webhook-Signature"] = sign_body(secret, body)
        headers["X-Webhook-Timestamp"] = str(timestamp)
    elif service == "transcode" and transcode_auth_mode == "token":
        headers["X-Transcode-Secret"] = secret
    else:
        headers["X-Signature"] = sign_timestamped(secret, timestamp, body)
        headers["X-Timestamp"] = str(timestamp)
    return {"headers": headers, "body": body}


def _transcode_body(
    job_id: str, file_path: str, output_format: str, replace_original: bool
) -> TranscodeRequestBody:
    return {
        "jobId": job_id,
        "filePath": file_path,
        "outputFormat": output_format,
        "replaceOriginal": replace_original,
    }


class TriggerClient:
    def __init__(
        self,
        *,
        base_url: str,
        secret: str | None = None,
        transcode_auth_mode: TranscodeAuthMode = "hmac",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret = secret
        self._transcode_auth_mode = transcode_auth_mode
        self._timeout = timeout
        self._transport = transport

    def _post(self, path: str, service: ServiceName, payload: Mapping[str, Any]) -> Any:
        signed = build_signed_request(
            service,
            payload,
            secret=self._secret,
            transcode_auth_mode=self._transcode_auth_mode,
        )
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            response = client.post(f"{self._base_url}{path}", headers=signed["headers"], content=signed["body"])
            response.raise_for_status()
            return response.json()

    def health(self) -> HealthResponse:
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            response = client.get(f"{self._base_url}/health")
            response.raise_for_status()
            return response.json()

    def trigger_git_pull(self, update_id: str | None = None) -> GitPullResponse:
        payload = {"updateId": update_id} if update_id else {}
        return self._post("/git-pull", "git-pull", payload)

    def trigger_update(self) -> UpdateResponse:
        return self._post("/update", "update-webhook", {})

    def delete_path(self, file_path: str) -> DeleteResponse:
        return self._post("/delete", "nas-delete", {"filePath": file_path})

    def start_transcode(
        self,
        *,
        job_id: str,
        file_path: str,
        output_format: str = "hevc",
        replace_original: bool = True,
    ) -> TranscodeAcceptedResponse:
        body = _transcode_body(job_id, file_path, output_format, replace_original)
        return self._post("/transcode", "transcode", body)

    def cancel_transcode(self, job_id: str) -> CancelResponse:
        return self._post("/cancel", "transcode", {"jobId": job_id})


class AsyncTriggerClient:
    def __init__(
        self,
        *,
        base_url: str,
        secret: str | None = None,
        transcode_auth_mode: TranscodeAuthMode = "hmac",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._secret = secret
        self._transcode_auth_mode = transcode_auth_mode
        self._timeout = timeout
        self._transport = transport

    async def _post(self, path: str, service: ServiceName, payload: Mapping[str, Any]) -> Any:
        signed = build_signed_request(
            service,
            payload,
            secret=self._secret,
            transcode_auth_mode=self._transcode_auth_mode,
        )
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self._base_url}{path}", headers=signed["headers"], content=signed["body"]
            )
            response.raise_for_status()
            return response.json()

    async def health(self) -> HealthResponse:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.get(f"{self._base_url}/health")
            response.raise_for_status()
            return response.json()

    async def trigger_git_pull(self, update_id: str | None = None) -> GitPullResponse:
        payload = {"updateId": update_id} if update_id else {}
        return await self._post("/git-pull", "git-pull", payload)

    async def trigger_update(self) -> UpdateResponse:
        return await self._post("/update", "update-webhook", {})

    async def delete_path(self, file_path: str) -> DeleteResponse:
        return await self._post("/delete", "nas-delete", {"filePath": file_path})

    async def start_transcode(
        self,
        *,
        job_id: str,
        file_path: str,
        output_format: str = "hevc",
        replace_original: bool = True,
    ) -> TranscodeAcceptedResponse:
        body = _transcode_body(job_id, file_path, output_format, replace_original)
        return await self._post("/transcode", "transcode", body)

    async def cancel_transcode(self, job_id: str) -> CancelResponse:
        return await self._post("/cancel", "transcode", {"jobId": job_id})
