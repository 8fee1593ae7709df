"""The file-system facade callers actually use.

:class:`GitFS` pairs a backing :class:`~gitfs.store.Store` with the
repository stored inside it.  File operations go straight to the store
and raise its :class:`OSError`\\ s unchanged; :meth:`GitFS.sync` turns
whatever the caller wrote into a commit on the remote.

Usage::

    from gitfs import Config, GitFS

    fs = GitFS.open(Config.memory("git@example.com:team/notes.git"))
    fs.write_bytes("todo.txt", b"ship it\\n")
    fs.sync()
"""

from __future__ import annotations

import logging
import threading
from typing import IO

from .config import Config
from .credentials import CredentialProvider, SSHKeyCredentials
from .exceptions import NotPulledError
from .git import Git
from .status import StatusCode
from .store import FileInfo, Store, select_store

logger = logging.getLogger(__name__)

__all__ = ["GitFS"]


class _SessionOrFileOpen:
    """``GitFS.open(config)`` on the class, ``fs.open(path)`` on an instance."""

    def __init__(self, session, file):
        self._session = session
        self._file = file
        self.__doc__ = session.__doc__

    def __get__(self, obj, objtype=None):
        if obj is None:
            return self._session.__get__(objtype, objtype)
        return self._file.__get__(obj, objtype)


class GitFS:
    """Files in a store, versioned in a remote git repository.

    Create instances with :meth:`open`.  Not thread-safe; see
    :class:`~gitfs.git.Git` for the ownership rules.
    """

    def __init__(self, config: Config, store: Store, git: Git):
        self._config = config
        self._store = store
        self._git = git

    def __repr__(self) -> str:
        return f"GitFS({self._config.url!r}, {self._store!r})"

    def _open_session(
        cls,
        config: Config,
        *,
        credentials: CredentialProvider | None = None,
        cancel: threading.Event | None = None,
    ) -> GitFS:
        """Validate *config*, select its store, and bootstrap the repository.

        Args:
            config: Session configuration.
            credentials: Where the SSH key comes from; defaults to
                :class:`~gitfs.credentials.SSHKeyCredentials` reading
                ``~/.ssh/id_rsa``.
            cancel: Set this event to abort a clone in progress.
        """
        config = config.validate()
        store = select_store(config)
        if credentials is None:
            credentials = SSHKeyCredentials()
        credential = credentials.resolve()
        git = Git.bootstrap(store, config.url, credential, config.error_if_exists, cancel=cancel)
        return cls(config, store, git)

    def _open_read_only(self, path: str) -> IO[bytes]:
        """Open *path* read-only."""
        return self._store.open(path)

    open = _SessionOrFileOpen(_open_session, _open_read_only)

    # -- properties -------------------------------------------------------------

    @property
    def config(self) -> Config:
        return self._config

    @property
    def store(self) -> Store:
        return self._store

    @property
    def git(self) -> Git:
        return self._git

    # -- repository operations --------------------------------------------------

    def pull(self) -> bool:
        """Fast-forward from the remote; ``False`` if already up to date."""
        return self._git.pull()

    def sync(self, purge: bool = False) -> str:
        """Commit everything in the store and push it.

        With *purge*, local history is discarded first and the remote
        branch is overwritten by a single commit holding the current
        files.

        Returns:
            The hex id of the new commit.
        """
        if self._config.require_pull and not self._git.pulled:
            raise NotPulledError(f"sync of {self._config.url!r} requires a pull first")
        if purge:
            self._git.reset()
        self._git.add_all()
        self._git.commit()
        sha = self._git.push(force=purge)
        logger.info("synced %s%s", sha[:7], " (purged)" if purge else "")
        return sha

    def status(self) -> dict[str, StatusCode]:
        """Effective status of every changed file; see :func:`gitfs.status.status`."""
        return self._git.status()

    # -- file operations --------------------------------------------------------

    def create(self, path: str) -> IO[bytes]:
        return self._store.create(path)

    def open_file(self, path: str, flags: int, perm: int = 0o666) -> IO[bytes]:
        return self._store.open_file(path, flags, perm)

    def stat(self, path: str) -> FileInfo:
        return self._store.stat(path)

    def lstat(self, path: str) -> FileInfo:
        return self._store.lstat(path)

    def rename(self, old: str, new: str) -> None:
        self._store.rename(old, new)

    def remove(self, path: str) -> None:
        self._store.remove(path)

    def remove_all(self, path: str) -> None:
        self._store.remove_all(path)

    def listdir(self, path: str = "/") -> list[FileInfo]:
        return self._store.listdir(path)

    def makedirs(self, path: str, perm: int = 0o777) -> None:
        self._store.makedirs(path, perm)

    def symlink(self, target: str, link: str) -> None:
        self._store.symlink(target, link)

    def readlink(self, link: str) -> str:
        return self._store.readlink(link)

    def tempfile(self, dir: str = "", prefix: str = "") -> IO[bytes]:
        return self._store.tempfile(dir, prefix)

    def join(self, *elem: str) -> str:
        return self._store.join(*elem)

    def chroot(self, path: str) -> Store:
        return self._store.chroot(path)

    def root(self) -> str:
        return self._store.root()

    def exists(self, path: str) -> bool:
        return self._store.exists(path)

    def read_bytes(self, path: str) -> bytes:
        return self._store.read_bytes(path)

    def write_bytes(self, path: str, data: bytes) -> None:
        with self._store.create(path) as f:
            f.write(data)

