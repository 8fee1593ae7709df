"""Durable :class:`~gitfs.store.Store` rooted at a local directory."""

from __future__ import annotations

import os
import shutil

from .store import SEPARATOR, FileInfo, Store, mode_from_flags, normalize_path

__all__ = ["OSStore"]


def _info(name: str, st: os.stat_result) -> FileInfo:
    return FileInfo(name=name, size=st.st_size, mode=st.st_mode, mtime=st.st_mtime)


class OSStore(Store):
    """Files under *base_dir* on the local file system.

    Store paths are confined to *base_dir*: ``..`` components are resolved
    lexically before the base is prepended.  Symlink targets are stored
    verbatim and resolved by the operating system.
    """

    def __init__(self, base_dir: str | os.PathLike):
        self._base = os.path.abspath(os.fspath(base_dir))

    def __repr__(self) -> str:
        return f"OSStore({self._base!r})"

    def root(self) -> str:
        return self._base

    def _abs(self, path: str) -> str:
        rel = normalize_path(path).lstrip(SEPARATOR)
        if not rel:
            return self._base
        return os.path.join(self._base, *rel.split(SEPARATOR))

    def open_file(self, path, flags, perm=0o666):
        full = self._abs(path)
        if flags & os.O_CREAT:
            os.makedirs(os.path.dirname(full), exist_ok=True)

        def opener(p, _flags):
            return os.open(p, flags | getattr(os, "O_BINARY", 0), perm)

        return open(full, mode_from_flags(flags), opener=opener)

    def stat(self, path):
        full = self._abs(path)
        return _info(os.path.basename(full), os.stat(full))

    def lstat(self, path):
        full = self._abs(path)
        return _info(os.path.basename(full), os.lstat(full))

    def rename(self, old, new):
        dst = self._abs(new)
        os.makedirs(os.path.dirname(dst), exist_ok=True)
        os.replace(self._abs(old), dst)

    def remove(self, path):
        full = self._abs(path)
        if os.path.isdir(full) and not os.path.islink(full):
            os.rmdir(full)
        else:
            os.remove(full)

    def remove_all(self, path):
        full = self._abs(path)
        if os.path.isdir(full) and not os.path.islink(full):
            shutil.rmtree(full)
        elif os.path.lexists(full):
            os.remove(full)

    def listdir(self, path):
        full = self._abs(path)
        with os.scandir(full) as it:
            entries = [_info(e.name, e.stat(follow_symlinks=False)) for e in it]
        entries.sort(key=lambda e: e.name)
        return entries

    def makedirs(self, path, perm=0o777):
        os.makedirs(self._abs(path), mode=perm, exist_ok=True)

    def symlink(self, target, link):
        full = self._abs(link)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        os.symlink(target, full)

    def readlink(self, link):
        return os.readlink(self._abs(link))

    def chroot(self, path):
        return OSStore(self._abs(path))
