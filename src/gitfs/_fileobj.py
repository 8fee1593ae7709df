"""File-like objects for the in-memory store."""

from __future__ import annotations

import io
import os
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .memfs import _Node


class MemoryFile(io.RawIOBase):
    """Binary file handle over a :class:`~gitfs.memfs.MemoryStore` node.

    Writes land directly in the node's buffer, so other handles on the
    same path observe them immediately.
    """

    def __init__(self, node: _Node, name: str, flags: int):
        super().__init__()
        self._node = node
        self._name = name
        acc = flags & (os.O_RDONLY | os.O_WRONLY | os.O_RDWR)
        self._readable = acc in (os.O_RDONLY, os.O_RDWR)
        self._writable = acc in (os.O_WRONLY, os.O_RDWR)
        self._append = bool(flags & os.O_APPEND)
        self._pos = 0

    def __repr__(self) -> str:
        return f"MemoryFile({self._name!r})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def mode(self) -> str:
        if self._readable and self._writable:
            return "a+b" if self._append else "r+b"
        if self._writable:
            return "ab" if self._append else "wb"
        return "rb"

    def readable(self) -> bool:
        return self._readable

    def writable(self) -> bool:
        return self._writable

    def seekable(self) -> bool:
        return True

    def _check(self, ok: bool, what: str) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        if not ok:
            raise io.UnsupportedOperation(f"File not open for {what}")

    def readinto(self, buffer) -> int:
        self._check(self._readable, "reading")
        data = self._node.data
        chunk = data[self._pos:self._pos + len(buffer)]
        n = len(chunk)
        buffer[:n] = chunk
        self._pos += n
        return n

    def readall(self) -> bytes:
        self._check(self._readable, "reading")
        chunk = bytes(self._node.data[self._pos:])
        self._pos += len(chunk)
        return chunk

    def write(self, b) -> int:
        self._check(self._writable, "writing")
        data = self._node.data
        if self._append:
            self._pos = len(data)
        if self._pos > len(data):
            data.extend(b"\0" * (self._pos - len(data)))
        raw = bytes(b)
        data[self._pos:self._pos + len(raw)] = raw
        self._pos += len(raw)
        self._node.mtime = time.time()
        return len(raw)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = len(self._node.data) + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        if pos < 0:
            raise OSError(22, "Invalid argument")
        self._pos = pos
        return pos

    def tell(self) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        return self._pos

    def truncate(self, size: int | None = None) -> int:
        self._check(self._writable, "writing")
        if size is None:
            size = self._pos
        data = self._node.data
        if size < len(data):
            del data[size:]
        else:
            data.extend(b"\0" * (size - len(data)))
        self._node.mtime = time.time()
        return size
