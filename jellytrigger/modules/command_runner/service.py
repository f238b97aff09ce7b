import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger("jellytrigger.command_runner")


@dataclass(frozen=True)
class CommandResult:
    command: str
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


async def run_shell(command: str, *, cwd: str) -> CommandResult:
    """Run a fixed shell command in ``cwd`` and capture its output.

    ``command`` must never contain request data. If the awaiting task is
    cancelled, the child is terminated before the cancellation propagates.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.terminate()
            await process.wait()
        raise

    exit_code = process.returncode if process.returncode is not None else -1
    return CommandResult(
        command=command,
        exit_code=exit_code,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


async def read_command_output(command: str, *, cwd: str) -> str:
    try:
        result = await run_shell(command, cwd=cwd)
    except OSError:
        logger.debug("command_output_unavailable", exc_info=True)
        return ""
    return result.stdout.strip() if result.ok else ""
