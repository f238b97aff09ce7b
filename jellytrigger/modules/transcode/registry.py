import asyncio
import logging
import signal

from jellytrigger.core.errors import Conflict

logger = logging.getLogger("jellytrigger.transcode.registry")


class JobHandle:
    """Cancellation capability for one job, queued or running."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.cancelled = False
        self.spawned = False
        self._process: asyncio.subprocess.Process | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    def attach(self, process: asyncio.subprocess.Process) -> None:
        self._process = process
        self.spawned = True
        if self.cancelled:
            self._terminate()

    def detach(self) -> None:
        self._process = None

    def cancel(self) -> None:
        self.cancelled = True
        self._terminate()

    def _terminate(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.send_signal(signal.SIGTERM)
        except ProcessLookupError:
            logger.debug("process_already_exited", extra={"job_id": self.job_id})


class JobRegistry:
    """In-memory map of job id to handle, owned by the transcode executor."""

    def __init__(self) -> None:
        self._handles: dict[str, JobHandle] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def register(self, job_id: str) -> JobHandle:
        if job_id in self._handles:
            raise Conflict("Job already active", jobId=job_id)
        handle = JobHandle(job_id)
        self._handles[job_id] = handle
        return handle

    def lookup(self, job_id: str) -> JobHandle | None:
        return self._handles.get(job_id)

    def cancel(self, job_id: str) -> bool:
        handle = self._handles.get(job_id)
        if handle is None:
            return False
        handle.cancel()
        logger.info("job_cancel_requested", extra={"event_name": "job_cancel_requested", "job_id": job_id})
        return True

    def deregister(self, job_id: str) -> None:
        self._handles.pop(job_id, None)

    def active_ids(self) -> list[str]:
        return list(self._handles)

    def running_count(self) -> int:
        return sum(1 for handle in self._handles.values() if handle.running)

    def cancel_all(self) -> int:
        handles = list(self._handles.values())
        for handle in handles:
            handle.cancel()
        return len(handles)
