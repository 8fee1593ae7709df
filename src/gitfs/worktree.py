"""The working tree: files in the store outside ``.git``.

:class:`Worktree` compares three snapshots of the same paths:

* the tree of ``HEAD`` (what was last committed),
* the index (what is staged),
* the files currently in the store,

and produces one raw :class:`~gitfs.status.FileStatus` pair per path that
differs somewhere.  It also stages, commits, and checks out trees, all
without touching the local file system directly.
"""

from __future__ import annotations

import logging
import posixpath
import stat as _stat
import threading
import time
from datetime import datetime

from dulwich.index import IndexEntry, commit_tree
from dulwich.objects import Blob, Commit

from ._exclude import GitIgnore
from .exceptions import CanceledError
from .repo import BRANCH, METADATA_DIRS, StoreRepo
from .status import FileStatus, StatusCode
from .store import SEPARATOR, FileInfo, Store, walk_files

logger = logging.getLogger(__name__)

__all__ = ["Worktree", "sync_message", "tree_entries"]

MODE_FILE = 0o100644
MODE_EXEC = 0o100755
MODE_LINK = 0o120000
MODE_GITLINK = 0o160000

AUTHOR = b"gitfs <gitfs@github.com>"

# (git mode, blob sha)
_Entry = tuple[int, bytes]


def sync_message(when: datetime) -> str:
    """Commit message for a sync made at *when* (an aware datetime)."""
    return "gitfs sync - " + when.isoformat(timespec="seconds").replace("+00:00", "Z")


def tree_entries(object_store, tree_id: bytes, prefix: bytes = b""):
    """Yield ``(path, mode, sha)`` for every blob below *tree_id*."""
    tree = object_store[tree_id]
    for entry in tree.iteritems():
        path = posixpath.join(prefix, entry.path) if prefix else entry.path
        if _stat.S_ISDIR(entry.mode):
            yield from tree_entries(object_store, entry.sha, path)
        elif entry.mode == MODE_GITLINK:
            continue
        else:
            yield path, entry.mode, entry.sha


def _git_mode(info: FileInfo) -> int:
    if info.is_symlink():
        return MODE_LINK
    if info.perm & 0o100:
        return MODE_EXEC
    return MODE_FILE


def _index_entry(sha: bytes, mode: int, info: FileInfo | None, size: int) -> IndexEntry:
    mtime = int(info.mtime) if info is not None else int(time.time())
    return IndexEntry(
        ctime=(mtime, 0),
        mtime=(mtime, 0),
        dev=0,
        ino=0,
        mode=mode,
        uid=0,
        gid=0,
        size=size,
        sha=sha,
        flags=0,
    )


def _staging_code(head: _Entry | None, staged: _Entry | None) -> StatusCode:
    if staged is None:
        return StatusCode.DELETED if head is not None else StatusCode.UNTRACKED
    if head is None:
        return StatusCode.ADDED
    return StatusCode.UNMODIFIED if head == staged else StatusCode.MODIFIED


def _worktree_code(staged: _Entry | None, current: _Entry | None) -> StatusCode:
    if staged is None:
        return StatusCode.UNTRACKED if current is not None else StatusCode.UNMODIFIED
    if current is None:
        return StatusCode.DELETED
    return StatusCode.UNMODIFIED if staged == current else StatusCode.MODIFIED


class Worktree:
    """Working-tree operations over *store* backed by *repo*."""

    def __init__(self, store: Store, repo: StoreRepo):
        self._store = store
        self._repo = repo

    def __repr__(self) -> str:
        return f"Worktree({self._store!r})"

    @property
    def repo(self) -> StoreRepo:
        return self._repo

    # -- snapshots --------------------------------------------------------------

    def head_entries(self) -> dict[bytes, _Entry]:
        commit_id = self._repo.head_commit()
        if commit_id is None:
            return {}
        tree_id = self._repo.object_store[commit_id].tree
        return {p: (m, s) for p, m, s in tree_entries(self._repo.object_store, tree_id)}

    def _blob(self, path: str, info: FileInfo) -> Blob:
        if info.is_symlink():
            return Blob.from_string(self._store.readlink(path).encode())
        return Blob.from_string(self._store.read_bytes(path))

    def scan(self) -> dict[bytes, tuple[int, Blob, FileInfo]]:
        """Read every file in the store, keyed by repo-relative path."""
        def skip(path: str, info: FileInfo) -> bool:
            return info.name in METADATA_DIRS

        files: dict[bytes, tuple[int, Blob, FileInfo]] = {}
        for path in walk_files(self._store, skip=skip):
            info = self._store.lstat(path)
            key = path.lstrip(SEPARATOR).encode()
            files[key] = (_git_mode(info), self._blob(path, info), info)
        return files

    # -- status -----------------------------------------------------------------

    def raw_status(self) -> dict[str, FileStatus]:
        """Return the (staging, worktree) pair for every path that differs.

        Untracked paths matched by ``.gitignore`` are left out.
        """
        head = self.head_entries()
        index = {p: (e.mode, e.sha) for p, e in self._repo.read_index().items()}
        files = {p: (mode, blob.id) for p, (mode, blob, _) in self.scan().items()}
        ignore = GitIgnore(self._store)

        result: dict[str, FileStatus] = {}
        for path in sorted(set(head) | set(index) | set(files)):
            name = path.decode("utf-8", "surrogateescape")
            if path not in head and path not in index and ignore.is_ignored(name):
                continue
            staging = _staging_code(head.get(path), index.get(path))
            worktree = _worktree_code(index.get(path), files.get(path))
            if staging is worktree is StatusCode.UNMODIFIED:
                continue
            result[name] = FileStatus(staging=staging, worktree=worktree)
        return result

    # -- staging ----------------------------------------------------------------

    def _stage(self, path: bytes, mode: int, blob: Blob, info: FileInfo) -> IndexEntry:
        if blob.id not in self._repo.object_store:
            self._repo.object_store.add_object(blob)
        return _index_entry(blob.id, mode, info, len(blob.data))

    def add_all(self) -> int:
        """Stage every change in the working tree, deletions included.

        Returns the number of entries in the resulting index.
        """
        index = self._repo.read_index()
        ignore = GitIgnore(self._store)
        staged: dict[bytes, IndexEntry] = {}
        for path, (mode, blob, info) in self.scan().items():
            if path not in index and ignore.is_ignored(path.decode("utf-8", "surrogateescape")):
                continue
            old = index.get(path)
            if old is not None and (old.mode, old.sha) == (mode, blob.id):
                staged[path] = old
            else:
                staged[path] = self._stage(path, mode, blob, info)
        self._repo.write_index(staged)
        logger.debug("staged %d entries", len(staged))
        return len(staged)

    def _stage_tracked(self, index: dict[bytes, IndexEntry]) -> dict[bytes, IndexEntry]:
        files = self.scan()
        staged: dict[bytes, IndexEntry] = {}
        for path, old in index.items():
            if path not in files:
                continue
            mode, blob, info = files[path]
            if (old.mode, old.sha) == (mode, blob.id):
                staged[path] = old
            else:
                staged[path] = self._stage(path, mode, blob, info)
        return staged

    # -- commit -----------------------------------------------------------------

    def commit(self, message: str | None = None, *, all: bool = True,
               when: datetime | None = None) -> bytes:
        """Record the index as a new commit on ``master``.

        With *all*, tracked files are re-staged first (modifications and
        deletions, not new files).  Empty commits are allowed.
        """
        index = self._repo.read_index()
        if all:
            index = self._stage_tracked(index)
            self._repo.write_index(index)

        store = self._repo.object_store
        tree_id = commit_tree(store, [(p, e.sha, e.mode) for p, e in sorted(index.items())])

        if when is None:
            when = datetime.now().astimezone()
        parent = self._repo.head_commit()

        c = Commit()
        c.tree = tree_id
        c.parents = [parent] if parent is not None else []
        c.author = c.committer = AUTHOR
        c.author_time = c.commit_time = int(when.timestamp())
        offset = when.utcoffset()
        c.author_timezone = c.commit_timezone = int(offset.total_seconds()) if offset else 0
        msg = (message if message is not None else sync_message(when)).encode()
        if not msg.endswith(b"\n"):
            msg += b"\n"
        c.message = msg
        c.encoding = b"UTF-8"
        store.add_object(c)
        self._repo.refs[BRANCH] = c.id
        logger.debug("committed %s (%d files)", c.id.decode()[:7], len(index))
        return c.id

    # -- checkout ---------------------------------------------------------------

    def _write_file(self, path: str, mode: int, sha: bytes) -> FileInfo:
        data = self._repo.object_store[sha].data
        try:
            existing = self._store.lstat(path)
        except FileNotFoundError:
            existing = None
        if existing is not None and (existing.is_dir() or existing.is_symlink() or mode == MODE_LINK):
            self._store.remove_all(path)
        if mode == MODE_LINK:
            self._store.symlink(data.decode("utf-8", "surrogateescape"), path)
        else:
            perm = 0o755 if mode == MODE_EXEC else 0o644
            self._store.write_bytes(path, data, perm)
        return self._store.lstat(path)

    def _remove_file(self, path: str) -> None:
        self._store.remove_all(path)
        parent = posixpath.dirname(path)
        while parent not in ("", SEPARATOR):
            try:
                if self._store.listdir(parent):
                    break
                self._store.remove(parent)
            except FileNotFoundError:
                pass
            parent = posixpath.dirname(parent)

    def checkout(
        self,
        commit_id: bytes,
        previous: bytes | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        """Make the working tree and index match *commit_id*.

        When *previous* is given, only paths that differ between the two
        commits are touched; otherwise every file is written.
        """
        store = self._repo.object_store
        new = {p: (m, s) for p, m, s in tree_entries(store, store[commit_id].tree)}
        old: dict[bytes, _Entry] = {}
        if previous is not None:
            old = {p: (m, s) for p, m, s in tree_entries(store, store[previous].tree)}

        index = self._repo.read_index()
        for path in sorted(set(old) - set(new)):
            self._remove_file(path.decode("utf-8", "surrogateescape"))
            index.pop(path, None)

        written = 0
        for path, (mode, sha) in sorted(new.items()):
            if cancel is not None and cancel.is_set():
                raise CanceledError("checkout canceled")
            if old.get(path) == (mode, sha) and path in index:
                continue
            info = self._write_file(path.decode("utf-8", "surrogateescape"), mode, sha)
            index[path] = _index_entry(sha, mode, info, len(store[sha].data))
            written += 1
        self._repo.write_index(index)
        logger.debug("checked out %s (%d files written)", commit_id.decode()[:7], written)
