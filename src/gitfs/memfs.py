"""Volatile in-memory :class:`~gitfs.store.Store`."""

from __future__ import annotations

import errno
import os
import posixpath
import stat as _stat
import time

from ._fileobj import MemoryFile
from .store import SEPARATOR, FileInfo, Store, normalize_path

__all__ = ["MemoryStore"]

_MAX_LINK_DEPTH = 40


class _Node:
    """A directory, regular file, or symlink."""

    __slots__ = ("mode", "data", "children", "target", "mtime")

    def __init__(self, mode: int, *, target: str | None = None):
        self.mode = mode
        self.data = bytearray()
        self.children: dict[str, _Node] = {}
        self.target = target
        self.mtime = time.time()

    @property
    def is_dir(self) -> bool:
        return _stat.S_ISDIR(self.mode)

    @property
    def is_link(self) -> bool:
        return _stat.S_ISLNK(self.mode)

    def info(self, name: str) -> FileInfo:
        if self.is_dir:
            size = 0
        elif self.is_link:
            size = len(self.target.encode())
        else:
            size = len(self.data)
        return FileInfo(name=name, size=size, mode=self.mode, mtime=self.mtime)


def _split(path: str) -> list[str]:
    return [p for p in normalize_path(path).split(SEPARATOR) if p]


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


class MemoryStore(Store):
    """Node tree held in process memory.

    Nothing survives the process.  Permission bits are recorded but not
    enforced.
    """

    def __init__(self):
        self._root = _Node(_stat.S_IFDIR | 0o777)

    def __repr__(self) -> str:
        return f"MemoryStore(at 0x{id(self):x})"

    def root(self) -> str:
        return SEPARATOR

    # -- path resolution ----------------------------------------------------

    def _lookup(self, path: str, *, follow: bool = True, depth: int = 0) -> _Node:
        parts = _split(path)
        node = self._root
        for i, name in enumerate(parts):
            if not node.is_dir:
                raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
            child = node.children.get(name)
            if child is None:
                raise _not_found(path)
            last = i == len(parts) - 1
            if child.is_link and (follow or not last):
                if depth >= _MAX_LINK_DEPTH:
                    raise OSError(errno.ELOOP, os.strerror(errno.ELOOP), path)
                here = SEPARATOR + SEPARATOR.join(parts[:i])
                resolved = posixpath.join(here, child.target, *parts[i + 1:])
                return self._lookup(resolved, follow=follow, depth=depth + 1)
            node = child
        return node

    def _parent(self, path: str, *, create: bool = False) -> tuple[_Node, str]:
        parts = _split(path)
        if not parts:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        dirname = SEPARATOR + SEPARATOR.join(parts[:-1])
        if create:
            self.makedirs(dirname)
        parent = self._lookup(dirname)
        if not parent.is_dir:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
        return parent, parts[-1]

    # -- Store API -------------------------------------------------------------

    def open_file(self, path, flags, perm=0o666):
        creating = bool(flags & os.O_CREAT)
        try:
            node = self._lookup(path)
        except FileNotFoundError:
            if not creating:
                raise
            parent, name = self._parent(path, create=True)
            existing = parent.children.get(name)
            if existing is not None and existing.is_link:
                # dangling link: create the file it points at
                target = posixpath.join(posixpath.dirname(normalize_path(path)), existing.target)
                return self.open_file(target, flags, perm)
            node = _Node(_stat.S_IFREG | (perm & 0o777))
            parent.children[name] = node
        else:
            if creating and flags & os.O_EXCL:
                raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), path)
            if node.is_dir:
                raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
            if flags & os.O_TRUNC:
                del node.data[:]
                node.mtime = time.time()
        return MemoryFile(node, normalize_path(path), flags)

    def stat(self, path):
        node = self._lookup(path)
        return node.info(posixpath.basename(normalize_path(path)) or SEPARATOR)

    def lstat(self, path):
        node = self._lookup(path, follow=False)
        return node.info(posixpath.basename(normalize_path(path)) or SEPARATOR)

    def rename(self, old, new):
        old_parent, old_name = self._parent(old)
        node = old_parent.children.get(old_name)
        if node is None:
            raise _not_found(old)
        new_parent, new_name = self._parent(new, create=True)
        existing = new_parent.children.get(new_name)
        if existing is not None and existing is not node:
            if existing.is_dir and not node.is_dir:
                raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), new)
            if existing.is_dir and existing.children:
                raise OSError(errno.ENOTEMPTY, os.strerror(errno.ENOTEMPTY), new)
        if node.is_dir:
            probe = new_parent
            if probe is node or self._contains(node, probe):
                raise OSError(errno.EINVAL, os.strerror(errno.EINVAL), new)
        del old_parent.children[old_name]
        new_parent.children[new_name] = node

    def _contains(self, ancestor: _Node, node: _Node) -> bool:
        for child in ancestor.children.values():
            if child is node or (child.is_dir and self._contains(child, node)):
                return True
        return False

    def remove(self, path):
        parent, name = self._parent(path)
        node = parent.children.get(name)
        if node is None:
            raise _not_found(path)
        if node.is_dir and node.children:
            raise OSError(errno.ENOTEMPTY, os.strerror(errno.ENOTEMPTY), path)
        del parent.children[name]

    def listdir(self, path):
        node = self._lookup(path)
        if not node.is_dir:
            raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), path)
        return [child.info(name) for name, child in sorted(node.children.items())]

    def makedirs(self, path, perm=0o777):
        node = self._root
        walked: list[str] = []
        parts = _split(path)
        for i, name in enumerate(parts):
            walked.append(name)
            child = node.children.get(name)
            if child is None:
                child = _Node(_stat.S_IFDIR | (perm & 0o777))
                node.children[name] = child
            elif child.is_link:
                child = self._lookup(SEPARATOR + SEPARATOR.join(walked))
            if not child.is_dir:
                where = SEPARATOR + SEPARATOR.join(walked)
                if i == len(parts) - 1:
                    raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), where)
                raise NotADirectoryError(errno.ENOTDIR, os.strerror(errno.ENOTDIR), where)
            node = child

    def symlink(self, target, link):
        parent, name = self._parent(link, create=True)
        if name in parent.children:
            raise FileExistsError(errno.EEXIST, os.strerror(errno.EEXIST), link)
        parent.children[name] = _Node(_stat.S_IFLNK | 0o777, target=target)

    def readlink(self, link):
        node = self._lookup(link, follow=False)
        if not node.is_link:
            raise OSError(errno.EINVAL, os.strerror(errno.EINVAL), link)
        return node.target
