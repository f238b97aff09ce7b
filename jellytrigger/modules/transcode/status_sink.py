import logging

import httpx

from jellytrigger.modules.transcode.schema import TranscodeJob

logger = logging.getLogger("jellytrigger.transcode.status_sink")


class TranscodeStatusSink:
    """Relays job state to the external status endpoint.

    The job record lives in the backend; this process only forwards
    snapshots. Delivery failures are logged and never fail the job.
    """

    def __init__(
        self,
        *,
        url: str | None,
        secret: str | None = None,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._secret = secret
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._secret:
            headers["x-transcode-secret"] = self._secret
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def push(self, job: TranscodeJob) -> bool:
        if not self._url:
            return False

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, headers=self._headers(), json=job.status_payload())
                response.raise_for_status()
        except httpx.HTTPError:
            logger.warning(
                "status_push_failed",
                extra={
                    "event_name": "status_push_failed",
                    "job_id": job.id,
                    "status": job.status,
                    "progress": job.progress,
                },
                exc_info=True,
            )
            return False
        return True
