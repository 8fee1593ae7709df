"""Session configuration: remote URL and backing-store selection."""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from enum import Enum

from .exceptions import ConfigValidationError

__all__ = ["Config", "StorageKind"]

_UNSUPPORTED_SCHEMES = ("http://", "https://", "git://")


class StorageKind(str, Enum):
    """Where the working files live: ``MEMORY`` or ``PATH``."""
    MEMORY = "memory"
    PATH = "path"

    def __str__(self) -> str:          # noqa: D105
        return self.value


@dataclass(frozen=True)
class Config:
    """Immutable session configuration.

    Build one with :meth:`memory` or :meth:`path`, then call
    :meth:`validate` (``GitFS.open`` does this for you).

    Attributes:
        url: Remote repository URL.  SSH form (``git@host:repo.git`` or
            ``ssh://...``) or a local repository path.
        storage: :class:`StorageKind` of the backing store.
        base_dir: Root directory for ``PATH`` storage; must be empty for
            ``MEMORY``.
        open_existing: Reuse a repository already present under
            *base_dir* instead of refusing to clone over it.
        require_pull: Make :meth:`~gitfs.GitFS.sync` fail until the
            session has pulled (or cloned) from the remote.
    """

    url: str = ""
    storage: StorageKind = StorageKind.MEMORY
    base_dir: str = ""
    open_existing: bool = False
    require_pull: bool = False

    @classmethod
    def memory(cls, url: str, *, require_pull: bool = False) -> Config:
        """Volatile in-memory store; every session starts with a fresh clone."""
        return cls(url=url, storage=StorageKind.MEMORY, base_dir="",
                   open_existing=False, require_pull=require_pull)

    @classmethod
    def path(
        cls,
        url: str,
        base_dir: str,
        open_existing: bool = False,
        *,
        require_pull: bool = False,
    ) -> Config:
        """Durable store rooted at *base_dir*."""
        return cls(url=url, storage=StorageKind.PATH, base_dir=str(base_dir),
                   open_existing=open_existing, require_pull=require_pull)

    @property
    def error_if_exists(self) -> bool:
        """Whether bootstrap must refuse a store that already has ``.git``."""
        return not self.open_existing

    def validate(self) -> Config:
        """Return a trimmed copy, or raise :class:`ConfigValidationError`."""
        url = (self.url or "").strip()
        if not url:
            raise ConfigValidationError("empty repo url")
        if url.startswith(_UNSUPPORTED_SCHEMES):
            raise ConfigValidationError(
                f"unsupported repo url {url!r}: only ssh remotes are supported"
            )

        try:
            storage = StorageKind(self.storage)
        except ValueError:
            raise ConfigValidationError(f"unknown storage kind {self.storage!r}")

        base_dir = os.fspath(self.base_dir or "").strip()
        if storage is StorageKind.MEMORY and base_dir:
            raise ConfigValidationError(
                "memory storage and a base dir are mutually exclusive"
            )
        if storage is StorageKind.PATH and not base_dir:
            raise ConfigValidationError("base dir is not provided for path storage")

        return dataclasses.replace(self, url=url, storage=storage, base_dir=base_dir)
