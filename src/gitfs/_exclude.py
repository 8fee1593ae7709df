"""``.gitignore`` support for the working tree.

Ignore files are read from the store lazily, one per directory, and
evaluated the way git does: deeper files win, and a path is ignored if
any of its parent directories is.  Pattern syntax is implemented by
``dulwich.ignore.IgnoreFilter``.
"""

from __future__ import annotations

import io
import posixpath

from dulwich.ignore import IgnoreFilter, read_ignore_patterns

from .store import Store

GITIGNORE = ".gitignore"


class GitIgnore:
    """Answer "is this untracked path ignored?" for one working tree."""

    def __init__(self, store: Store) -> None:
        self._store = store
        # {rel_dir: IgnoreFilter | None}, loaded on first use
        self._dir_filters: dict[str, IgnoreFilter | None] = {}

    def _filter(self, rel_dir: str) -> IgnoreFilter | None:
        if rel_dir not in self._dir_filters:
            try:
                raw = self._store.read_bytes(posixpath.join(rel_dir, GITIGNORE))
            except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
                self._dir_filters[rel_dir] = None
            else:
                patterns = list(read_ignore_patterns(io.BytesIO(raw)))
                self._dir_filters[rel_dir] = IgnoreFilter(patterns) if patterns else None
        return self._dir_filters[rel_dir]

    def _check(self, parts: list[str], *, is_dir: bool) -> bool | None:
        # Walk filters from the deepest directory up; the first verdict wins.
        for depth in range(len(parts) - 1, -1, -1):
            filt = self._filter("/".join(parts[:depth]))
            if filt is None:
                continue
            sub = "/".join(parts[depth:])
            result = filt.is_ignored(sub + "/" if is_dir else sub)
            if result is not None:
                return result
        return None

    def is_ignored(self, rel_path: str) -> bool:
        """True if file *rel_path* (no leading ``/``) is ignored."""
        parts = [p for p in rel_path.split("/") if p]
        for depth in range(1, len(parts)):
            if self._check(parts[:depth], is_dir=True) is True:
                return True
        return self._check(parts, is_dir=False) is True
