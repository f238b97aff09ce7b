import logging
import os
import shutil
from dataclasses import dataclass
from typing import Literal

from jellytrigger.core.errors import ExecutionFailed, NotFound

logger = logging.getLogger("jellytrigger.file_delete")


@dataclass(frozen=True)
class DeletionResult:
    path: str
    kind: Literal["file", "directory"]


def delete_path(path: str) -> DeletionResult:
    """Irreversibly delete ``path``, which must already have passed the allow-list.

    Missing targets raise ``NotFound`` without touching the filesystem so callers
    can tell "already gone" apart from a failed deletion.
    """
    if not os.path.lexists(path):
        raise NotFound("File not found", path=path)

    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
            kind: Literal["file", "directory"] = "directory"
        else:
            os.unlink(path)
            kind = "file"
    except OSError as exc:
        logger.error(
            "delete_failed",
            extra={"event_name": "delete_failed", "path": path},
            exc_info=True,
        )
        raise ExecutionFailed("Failed to delete file", details=str(exc), path=path) from exc

    logger.info("path_deleted", extra={"event_name": "path_deleted", "path": path})
    return DeletionResult(path=path, kind=kind)
