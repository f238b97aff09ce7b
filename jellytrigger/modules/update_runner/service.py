import logging
from dataclasses import dataclass

from jellytrigger.modules.command_runner.service import CommandResult, read_command_output, run_shell
from jellytrigger.modules.update_runner.reporter import (
    UpdateStatusReporter,
    log_entry,
    utc_now_iso,
)

logger = logging.getLogger("jellytrigger.update_runner")

RESTORE_ENV_COMMAND = "if [ -f .env.backup ]; then cp .env.backup .env; fi"
_STDERR_TAIL_CHARS = 2000


async def _run_capturing_os_errors(command: str, *, cwd: str) -> CommandResult:
    try:
        return await run_shell(command, cwd=cwd)
    except OSError as exc:
        return CommandResult(command=command, exit_code=127, stdout="", stderr=str(exc))


def build_git_pull_command(
    *,
    remote: str = "origin",
    branch: str = "main",
    install_command: str = "npm install --production",
    build_command: str = "npm run build",
) -> str:
    steps = [
        "if [ -f .env ]; then cp .env .env.backup; fi",
        "git stash",
        f"git pull {remote} {branch}",
        RESTORE_ENV_COMMAND,
        install_command,
        build_command,
        "rm -f .env.backup",
    ]
    return " && ".join(step for step in steps if step)


@dataclass
class GitPullUpdater:
    """Runs the fixed stash/pull/install/build sequence in ``app_dir``.

    ``.env`` is preserved across the pull. Progress is mirrored to the backend
    when a reporter is configured and the trigger carried an ``updateId``.
    """

    app_dir: str
    command: str
    reporter: UpdateStatusReporter

    async def run(self, update_id: str | None = None) -> CommandResult:
        await self.reporter.append_logs(
            update_id,
            [log_entry("Update running on the server...")],
            {
                "status": "in_progress",
                "progress": 20,
                "current_step": "Update running on the server...",
                "started_at": utc_now_iso(),
            },
        )
        logger.info(
            "update_started",
            extra={"event_name": "update_started", "update_id": update_id, "path": self.app_dir},
        )

        result = await _run_capturing_os_errors(self.command, cwd=self.app_dir)
        if not result.ok:
            await _run_capturing_os_errors(RESTORE_ENV_COMMAND, cwd=self.app_dir)
            logger.error(
                "update_failed",
                extra={
                    "event_name": "update_failed",
                    "update_id": update_id,
                    "exit_code": result.exit_code,
                },
            )
            logger.error("update_stderr: %s", result.stderr[-_STDERR_TAIL_CHARS:])

            entries = [log_entry(f"Update failed with exit code {result.exit_code}", "error")]
            if result.stderr:
                entries.append(log_entry(result.stderr[-_STDERR_TAIL_CHARS:], "error"))
            await self.reporter.append_logs(
                update_id,
                entries,
                {
                    "status": "failed",
                    "progress": 0,
                    "current_step": "Update failed",
                    "error": f"exit code {result.exit_code}",
                    "completed_at": utc_now_iso(),
                },
            )
            return result

        logger.info(
            "update_completed",
            extra={"event_name": "update_completed", "update_id": update_id, "exit_code": 0},
        )
        logger.debug("update_stdout: %s", result.stdout)

        commit_sha = await read_command_output("git rev-parse HEAD", cwd=self.app_dir)
        if commit_sha:
            await self.reporter.set_installed_commit_sha(commit_sha)

        entries = [log_entry("Update completed on the server", "success")]
        if commit_sha:
            entries.append(log_entry(f"Installed commit: {commit_sha[:7]}"))
        await self.reporter.append_logs(
            update_id,
            entries,
            {
                "status": "completed",
                "progress": 100,
                "current_step": "Update completed",
                "completed_at": utc_now_iso(),
            },
        )
        return result


@dataclass
class CommandUpdater:
    """Runs a single configured update command in ``project_path``."""

    project_path: str
    command: str

    async def run(self, update_id: str | None = None) -> CommandResult:
        logger.info(
            "update_started",
            extra={"event_name": "update_started", "update_id": update_id, "path": self.project_path},
        )
        result = await _run_capturing_os_errors(self.command, cwd=self.project_path)
        if result.ok:
            logger.info(
                "update_completed",
                extra={"event_name": "update_completed", "update_id": update_id, "exit_code": 0},
            )
            logger.debug("update_stdout: %s", result.stdout)
        else:
            logger.error(
                "update_failed",
                extra={
                    "event_name": "update_failed",
                    "update_id": update_id,
                    "exit_code": result.exit_code,
                },
            )
            logger.error("update_stderr: %s", result.stderr[-_STDERR_TAIL_CHARS:])
        return result
