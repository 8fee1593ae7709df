"""Collapse git's two-sided file status into one code per path.

git tracks every path twice: *staging* compares ``HEAD`` with the index,
*worktree* compares the index with the files on disk.  Callers of gitfs
only care whether a file is new, changed, or gone, so :func:`status`
folds each pair into a single :class:`StatusCode`, and flags pairs that
disagree as :attr:`StatusCode.INCONSISTENT`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import StorageError
from .repo import METADATA_DIRS
from .store import SEPARATOR, FileInfo, walk_files

if TYPE_CHECKING:
    from .git import Git

logger = logging.getLogger(__name__)

__all__ = ["FileStatus", "StatusCode", "reconcile", "status"]


class StatusCode(str, Enum):
    """One-letter status codes, as printed by ``git status --short``."""
    UNMODIFIED = " "
    INCONSISTENT = "!"
    UNTRACKED = "?"
    MODIFIED = "M"
    ADDED = "A"
    DELETED = "D"
    RENAMED = "R"
    COPIED = "C"
    UPDATED_BUT_UNMERGED = "U"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True, slots=True)
class FileStatus:
    """Raw status of one path.

    Attributes:
        staging: ``HEAD`` versus index.
        worktree: Index versus working file.
    """

    staging: StatusCode
    worktree: StatusCode


def reconcile(staging: StatusCode, worktree: StatusCode) -> StatusCode | None:
    """Fold a raw pair into one code; ``None`` means "leave it out".

    ``(UNMODIFIED, UNMODIFIED)`` is omitted.  When exactly one side is
    unmodified the other side wins.  Equal sides return that code, and
    two different changes are :attr:`StatusCode.INCONSISTENT`.
    """
    if staging is StatusCode.UNMODIFIED:
        return None if worktree is StatusCode.UNMODIFIED else worktree
    if worktree is StatusCode.UNMODIFIED or worktree is staging:
        return staging
    return StatusCode.INCONSISTENT


def _skip_metadata(path: str, info: FileInfo) -> bool:
    return info.name in METADATA_DIRS


def status(git: Git) -> dict[str, StatusCode]:
    """Return the effective status of every changed file in *git*'s store.

    Only files that exist in the store are reported, so deleted files
    never appear.  Raises :class:`~gitfs.exceptions.StorageError` if the
    store cannot be walked.
    """
    try:
        raw = git.worktree.raw_status()
        paths = list(walk_files(git.store, skip=_skip_metadata))
    except OSError as exc:
        raise StorageError(f"error computing status of {git.store.root()!r}: {exc}") from exc

    result: dict[str, StatusCode] = {}
    for path in paths:
        rel = path.lstrip(SEPARATOR)
        fs = raw.get(rel)
        if fs is None:
            continue
        code = reconcile(fs.staging, fs.worktree)
        if code is not None:
            result[rel] = code
    logger.debug("status: %d of %d files changed", len(result), len(paths))
    return result
