"""Path-addressable byte storage shared by the working tree and ``.git``.

Paths always use ``/`` separators and are interpreted relative to the
store root; a leading ``/`` is allowed and ignored, ``..`` cannot climb
above the root.  Errors are the standard :class:`OSError` subclasses.
"""

from __future__ import annotations

import errno
import os
import posixpath
import stat as _stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Callable, Iterator

if TYPE_CHECKING:
    from .config import Config

__all__ = [
    "ChrootStore",
    "FileInfo",
    "Store",
    "normalize_path",
    "select_store",
    "walk_files",
]

SEPARATOR = "/"


def normalize_path(path: str) -> str:
    """Return *path* as an absolute, clean store path (``/a/b``)."""
    path = path.replace("\\", "/")
    return posixpath.normpath(SEPARATOR + path.lstrip(SEPARATOR))


def mode_from_flags(flags: int) -> str:
    """Translate ``os.O_*`` access flags into a binary ``open()`` mode."""
    acc = flags & (os.O_RDONLY | os.O_WRONLY | os.O_RDWR)
    append = bool(flags & os.O_APPEND)
    if acc == os.O_RDWR:
        return "a+b" if append else "r+b"
    if acc == os.O_WRONLY:
        return "ab" if append else "wb"
    return "rb"


@dataclass(frozen=True, slots=True)
class FileInfo:
    """What ``stat``/``lstat``/``listdir`` report for one entry.

    Attributes:
        name: Base name of the entry.
        size: Size in bytes (link target length for symlinks, 0 for dirs).
        mode: ``st_mode``-style integer including the file-type bits.
        mtime: Modification time as POSIX epoch seconds.
    """

    name: str
    size: int
    mode: int
    mtime: float

    def is_dir(self) -> bool:
        return _stat.S_ISDIR(self.mode)

    def is_file(self) -> bool:
        return _stat.S_ISREG(self.mode)

    def is_symlink(self) -> bool:
        return _stat.S_ISLNK(self.mode)

    @property
    def perm(self) -> int:
        """Permission bits only."""
        return _stat.S_IMODE(self.mode)


class Store(ABC):
    """Abstract path-addressable storage.

    Two implementations ship with gitfs: :class:`~gitfs.memfs.MemoryStore`
    and :class:`~gitfs.osfs.OSStore`.  Use :func:`select_store` to pick
    one from a :class:`~gitfs.Config`.
    """

    separator = SEPARATOR

    @abstractmethod
    def open_file(self, path: str, flags: int, perm: int = 0o666) -> IO[bytes]:
        """Open *path* with ``os.O_*`` *flags*.

        ``O_CREAT`` creates missing parent directories.
        """

    def create(self, path: str) -> IO[bytes]:
        """Create or truncate *path* and open it read/write."""
        return self.open_file(path, os.O_RDWR | os.O_CREAT | os.O_TRUNC, 0o666)

    def open(self, path: str) -> IO[bytes]:
        """Open *path* read-only."""
        return self.open_file(path, os.O_RDONLY)

    @abstractmethod
    def stat(self, path: str) -> FileInfo:
        """Describe *path*, following symlinks."""

    @abstractmethod
    def lstat(self, path: str) -> FileInfo:
        """Describe *path* without following a final symlink."""

    @abstractmethod
    def rename(self, old: str, new: str) -> None:
        """Move *old* to *new*, replacing a non-directory at *new*."""

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a file, symlink, or empty directory."""

    def remove_all(self, path: str) -> None:
        """Remove *path* and everything below it.  Missing paths are fine."""
        try:
            info = self.lstat(path)
        except FileNotFoundError:
            return
        if info.is_dir():
            for child in self.listdir(path):
                self.remove_all(self.join(path, child.name))
        self.remove(path)

    @abstractmethod
    def listdir(self, path: str) -> list[FileInfo]:
        """List the entries of directory *path*, sorted by name."""

    @abstractmethod
    def makedirs(self, path: str, perm: int = 0o777) -> None:
        """Create *path* and any missing parents; existing dirs are fine."""

    @abstractmethod
    def symlink(self, target: str, link: str) -> None:
        """Create *link* pointing at *target*; parents are created."""

    @abstractmethod
    def readlink(self, link: str) -> str:
        """Return the target of symlink *link*."""

    def tempfile(self, dir: str = "", prefix: str = "") -> IO[bytes]:
        """Create a uniquely named file in *dir* and open it read/write."""
        flags = os.O_RDWR | os.O_CREAT | os.O_EXCL
        for _ in range(100):
            name = self.join(dir, f"{prefix}{os.urandom(6).hex()}")
            try:
                return self.open_file(name, flags, 0o600)
            except FileExistsError:
                continue
        raise FileExistsError(errno.EEXIST, "no usable temporary file name", dir)

    def join(self, *elem: str) -> str:
        parts = [e for e in elem if e]
        if not parts:
            return ""
        return posixpath.normpath(posixpath.join(*parts))

    def chroot(self, path: str) -> Store:
        """Return a view of this store rooted at *path*."""
        return ChrootStore(self, path)

    @abstractmethod
    def root(self) -> str:
        """Describe where this store is rooted."""

    def exists(self, path: str) -> bool:
        try:
            self.stat(path)
        except FileNotFoundError:
            return False
        return True

    def read_bytes(self, path: str) -> bytes:
        with self.open(path) as f:
            return f.read()

    def write_bytes(self, path: str, data: bytes, perm: int = 0o666) -> None:
        with self.open_file(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, perm) as f:
            f.write(data)


class ChrootStore(Store):
    """A :class:`Store` view confined to a subdirectory of another store."""

    def __init__(self, underlying: Store, base: str):
        self._underlying = underlying
        self._base = normalize_path(base)

    def __repr__(self) -> str:
        return f"ChrootStore({self._underlying!r}, {self._base!r})"

    def _full(self, path: str) -> str:
        return normalize_path(self._base + normalize_path(path))

    def open_file(self, path, flags, perm=0o666):
        return self._underlying.open_file(self._full(path), flags, perm)

    def stat(self, path):
        return self._underlying.stat(self._full(path))

    def lstat(self, path):
        return self._underlying.lstat(self._full(path))

    def rename(self, old, new):
        self._underlying.rename(self._full(old), self._full(new))

    def remove(self, path):
        self._underlying.remove(self._full(path))

    def listdir(self, path):
        return self._underlying.listdir(self._full(path))

    def makedirs(self, path, perm=0o777):
        self._underlying.makedirs(self._full(path), perm)

    def symlink(self, target, link):
        self._underlying.symlink(target, self._full(link))

    def readlink(self, link):
        return self._underlying.readlink(self._full(link))

    def chroot(self, path):
        return ChrootStore(self._underlying, self._full(path))

    def root(self):
        return posixpath.join(self._underlying.root(), self._base.lstrip(SEPARATOR))


def walk_files(
    store: Store,
    path: str = SEPARATOR,
    *,
    skip: Callable[[str, FileInfo], bool] | None = None,
) -> Iterator[str]:
    """Yield store paths of every non-directory entry below *path*.

    Depth-first, pre-order, entries in name order.  Directories recurse and
    are never yielded themselves; symlinks are yielded, not followed.
    *skip* is called as ``skip(path, info)`` and prunes the entry (and its
    subtree) when it returns true.  Paths keep the store's leading
    separator.
    """
    for info in store.listdir(path):
        child = posixpath.join(path, info.name)
        if skip is not None and skip(child, info):
            continue
        if info.is_dir():
            yield from walk_files(store, child, skip=skip)
        else:
            yield child


def select_store(config: Config) -> Store:
    """Return the backing store described by a validated *config*."""
    from .config import StorageKind

    if config.storage is StorageKind.MEMORY:
        from .memfs import MemoryStore
        return MemoryStore()

    from .osfs import OSStore
    return OSStore(config.base_dir)
