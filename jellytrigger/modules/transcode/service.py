import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import cast

from jellytrigger.core.errors import Forbidden
from jellytrigger.modules.path_policy.service import AllowListPolicy
from jellytrigger.modules.task_queue.service import TaskQueue
from jellytrigger.modules.transcode.presets import build_handbrake_args, get_preset
from jellytrigger.modules.transcode.progress import (
    HandBrakeProgressSource,
    LineSplitter,
    ProgressSource,
    scale_encode_progress,
)
from jellytrigger.modules.transcode.registry import JobHandle, JobRegistry
from jellytrigger.modules.transcode.schema import JobLogLevel, TranscodeJob, TranscodeRequest
from jellytrigger.modules.transcode.status_sink import TranscodeStatusSink

logger = logging.getLogger("jellytrigger.transcode")

_READ_CHUNK_BYTES = 4096
_GIB = 1024**3


class TranscodeFailure(Exception):
    pass


def _format_gib(size: int) -> str:
    return f"{size / _GIB:.2f} GB"


def swap_into_place(original: str, replacement: str, final_path: str) -> str:
    """Replace ``original`` with ``replacement`` at ``final_path`` using renames only.

    The original is parked as ``<original>.original`` and removed only once the
    replacement is in place. A failed promotion restores the original. A backup
    that cannot be removed is left behind with a warning.
    """
    backup = f"{original}.original"
    os.replace(original, backup)
    try:
        os.replace(replacement, final_path)
    except OSError:
        os.replace(backup, original)
        raise
    try:
        os.unlink(backup)
    except OSError:
        logger.warning("swap_backup_not_removed", extra={"path": backup}, exc_info=True)
    return final_path


class TranscodeExecutor:
    """Owns the transcode job lifecycle: queue, encode, verify, swap, report."""

    def __init__(
        self,
        *,
        handbrake_command: list[str],
        status_sink: TranscodeStatusSink,
        queue: TaskQueue,
        registry: JobRegistry | None = None,
        progress_source: ProgressSource | None = None,
        native_language: str = "nor",
        min_output_bytes: int = 1000,
        allowed_paths: AllowListPolicy | None = None,
    ) -> None:
        if not handbrake_command:
            raise ValueError("handbrake_command must not be empty")
        self._handbrake_command = handbrake_command
        self._status_sink = status_sink
        self._queue = queue
        self._registry = registry or JobRegistry()
        self._progress_source = progress_source or HandBrakeProgressSource()
        self._native_language = native_language
        self._min_output_bytes = min_output_bytes
        self._allowed_paths = allowed_paths

    @property
    def registry(self) -> JobRegistry:
        return self._registry

    @property
    def queue(self) -> TaskQueue:
        return self._queue

    def handbrake_available(self) -> bool:
        return shutil.which(self._handbrake_command[0]) is not None

    def submit(self, request: TranscodeRequest) -> TranscodeJob:
        if self._allowed_paths is not None and not self._allowed_paths.is_allowed(request.file_path):
            raise Forbidden(
                "Path not in allowed directories",
                path=request.file_path,
                allowedPaths=self._allowed_paths.to_list(),
            )

        job = TranscodeJob.from_request(request)
        handle = self._registry.register(job.id)
        try:
            self._queue.submit(job.id, lambda: self.run(job, handle))
        except Exception:
            self._registry.deregister(job.id)
            raise

        logger.info(
            "transcode_job_queued",
            extra={"event_name": "transcode_job_queued", "job_id": job.id, "path": job.input_path},
        )
        return job

    def cancel(self, job_id: str) -> bool:
        return self._registry.cancel(job_id)

    async def shutdown(self, grace_seconds: float) -> None:
        cancelled = self._registry.cancel_all()
        if cancelled:
            logger.info(
                "transcode_jobs_terminated: %d",
                cancelled,
                extra={"event_name": "transcode_jobs_terminated"},
            )
        await self._queue.stop(grace_seconds)

    async def _report(self, job: TranscodeJob) -> None:
        await self._status_sink.push(job)

    def _log(self, job: TranscodeJob, message: str, level: JobLogLevel = "info") -> None:
        job.log(message, level)
        log_fn = {"error": logger.error, "warning": logger.warning}.get(level, logger.info)
        log_fn(message, extra={"job_id": job.id})

    async def run(self, job: TranscodeJob, handle: JobHandle) -> TranscodeJob:
        preset = get_preset(job.output_format)
        input_path = Path(job.input_path)
        temp_output = str(input_path.with_name(f"{input_path.stem}_transcoded.{preset.extension}"))
        final_path = str(input_path.with_name(f"{input_path.stem}.{preset.extension}"))

        try:
            if handle.cancelled:
                raise TranscodeFailure("Job cancelled")

            job.advance("running", 1)
            self._log(job, f"Starting transcode job: {job.id}")
            self._log(job, f"Input file: {job.input_path}")
            await self._report(job)

            if not input_path.is_file():
                raise TranscodeFailure(f"File not found: {job.input_path}")
            self._log(job, f"File size: {_format_gib(input_path.stat().st_size)}")
            self._log(job, f"Output format: {job.output_format} ({preset.encoder})")
            self._log(job, f"Temp output: {temp_output}")
            job.advance("running", 5)
            await self._report(job)

            args = build_handbrake_args(
                input_path=job.input_path,
                output_path=temp_output,
                preset=preset,
                native_language=self._native_language,
            )
            command = [*self._handbrake_command, *args]
            self._log(job, f"Running: {' '.join(command)}")
            job.advance("running", 10)
            await self._report(job)

            exit_code = await self._encode(job, handle, command)
            if handle.cancelled:
                raise TranscodeFailure("Job cancelled")
            if exit_code != 0:
                raise TranscodeFailure(f"HandBrakeCLI exited with code {exit_code}")

            self._log(job, "Transcoding complete, verifying output...", "success")
            job.advance("running", 92)
            await self._report(job)

            if not os.path.exists(temp_output):
                raise TranscodeFailure("Output file was not created")
            output_size = os.path.getsize(temp_output)
            if output_size < self._min_output_bytes:
                raise TranscodeFailure("Output file is too small, transcoding may have failed")
            self._log(job, f"Output file size: {_format_gib(output_size)}", "success")

            if job.replace_original:
                self._log(job, "Replacing original file...")
                job.advance("running", 95)
                await self._report(job)
                swap_into_place(job.input_path, temp_output, final_path)
                self._log(job, f"Transcoded file moved to: {final_path}", "success")
                backup = f"{job.input_path}.original"
                if os.path.lexists(backup):
                    self._log(job, f"Could not remove backup: {backup}", "warning")

            self._log(job, "Transcode job completed successfully", "success")
            job.advance("completed", 100)
            await self._report(job)
        except (TranscodeFailure, OSError) as exc:
            await self._fail(job, handle, str(exc), temp_output)
        except asyncio.CancelledError:
            handle.cancel()
            await self._fail(job, handle, "Transcode interrupted by shutdown", temp_output)
            raise
        finally:
            self._registry.deregister(job.id)
        return job

    async def _fail(self, job: TranscodeJob, handle: JobHandle, message: str, temp_output: str) -> None:
        """Mark ``job`` failed. ``temp_output`` is removed only if this job spawned the encoder."""
        job.error = message
        job.advance("failed")
        self._log(job, f"Transcode failed: {message}", "error")
        if handle.spawned and os.path.exists(temp_output):
            try:
                os.unlink(temp_output)
            except OSError:
                logger.warning("temp_output_cleanup_failed", extra={"job_id": job.id}, exc_info=True)
        await self._report(job)

    async def _encode(self, job: TranscodeJob, handle: JobHandle, command: list[str]) -> int:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        handle.attach(process)
        splitter = LineSplitter()
        try:
            stdout = cast(asyncio.StreamReader, process.stdout)
            while chunk := await stdout.read(_READ_CHUNK_BYTES):
                for line in splitter.feed(chunk.decode("utf-8", errors="replace")):
                    await self._handle_output_line(job, line)
            for line in splitter.flush():
                await self._handle_output_line(job, line)
            return await process.wait()
        finally:
            handle.detach()

    async def _handle_output_line(self, job: TranscodeJob, line: str) -> None:
        percent = self._progress_source.parse(line)
        if percent is not None:
            if job.advance("running", scale_encode_progress(percent)):
                await self._report(job)
            return
        if "error" in line.lower():
            self._log(job, line, "error")
