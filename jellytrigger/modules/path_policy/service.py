import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger("jellytrigger.path_policy")


def _normalize(path: str, *, resolve_symlinks: bool) -> str:
    if not path or "\x00" in path:
        raise ValueError("empty or NUL-containing path")
    if not os.path.isabs(path):
        raise ValueError(f"path is not absolute: {path!r}")
    if resolve_symlinks:
        return os.path.realpath(path)
    return os.path.normpath(path)


def _contains(root: str, candidate: str) -> bool:
    if candidate == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


@dataclass(frozen=True)
class AllowListPolicy:
    """Ordered set of absolute directory roots for destructive operations.

    Containment is tested on the normalized candidate, so ``..`` segments can
    never climb out of a root. Symlinks are followed only when
    ``resolve_symlinks`` is set.
    """

    roots: tuple[str, ...]
    resolve_symlinks: bool = False

    @classmethod
    def from_paths(cls, paths: Iterable[str], *, resolve_symlinks: bool = False) -> "AllowListPolicy":
        roots = tuple(paths)
        if not roots:
            raise ValueError("at least one allowed path must be configured")
        for root in roots:
            if not os.path.isabs(root):
                raise ValueError(f"allowed path must be absolute: {root!r}")
        return cls(roots=roots, resolve_symlinks=resolve_symlinks)

    def is_allowed(self, candidate: str) -> bool:
        try:
            normalized = _normalize(candidate, resolve_symlinks=self.resolve_symlinks)
        except (ValueError, OSError):
            logger.debug("path_normalization_failed", extra={"path": candidate}, exc_info=True)
            return False

        for root in self.roots:
            normalized_root = _normalize(root, resolve_symlinks=self.resolve_symlinks)
            if _contains(normalized_root, normalized):
                return True
        return False

    def to_list(self) -> list[str]:
        return list(self.roots)


def is_path_allowed(candidate: str, roots: Iterable[str], *, resolve_symlinks: bool = False) -> bool:
    return AllowListPolicy.from_paths(roots, resolve_symlinks=resolve_symlinks).is_allowed(candidate)
