"""The repository handle: one store, one repository, one remote.

:meth:`Git.bootstrap` decides between cloning into a fresh store and
opening a repository a previous session left behind.  Everything after
that (staging, committing, pushing, pulling, purging history) goes
through the returned :class:`Git`.
"""

from __future__ import annotations

import logging
import threading

from . import transport
from .credentials import Credential
from .exceptions import (
    AlreadyExistsError,
    CanceledError,
    ConcurrentAccessError,
    CorruptRepositoryError,
    DivergedHistoryError,
    ResetError,
    StorageError,
)
from .repo import BRANCH, GIT_DIR, OLD_DIR, REMOTE_NAME, RESET_DIR, StoreRepo
from .status import StatusCode, status as _status
from .store import Store
from .worktree import Worktree

logger = logging.getLogger(__name__)

__all__ = ["Git", "OLD_DIR", "RESET_DIR"]


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise CanceledError("clone canceled")


def _discard_partial_clone(store: Store) -> None:
    try:
        store.remove_all(GIT_DIR)
    except OSError as exc:
        logger.warning("could not remove partial clone in %s: %s", store.root(), exc)


def _recover_interrupted_reset(store: Store) -> None:
    """Clean up after a reset that stopped between its two renames."""
    if not store.exists(GIT_DIR) and store.exists(OLD_DIR):
        logger.warning("restoring %s from %s in %s", GIT_DIR, OLD_DIR, store.root())
        store.rename(OLD_DIR, GIT_DIR)
    for leftover in (RESET_DIR, OLD_DIR):
        if store.exists(leftover):
            logger.warning("removing leftover %s in %s", leftover, store.root())
            store.remove_all(leftover)


class Git:
    """A repository stored in ``.git`` under *store*'s root.

    A handle belongs to the thread that created it.  Use
    :meth:`claim_thread` / :meth:`release_thread` to hand it to another
    thread; repository operations from any other thread raise
    :class:`~gitfs.exceptions.ConcurrentAccessError`.
    """

    def __init__(
        self,
        store: Store,
        repo: StoreRepo,
        url: str,
        credential: Credential,
        *,
        pulled: bool = False,
    ):
        self._store = store
        self._repo = repo
        self._worktree = Worktree(store, repo)
        self._url = url
        self._credential = credential
        self._pulled = pulled
        self._owner_thread_id: int | None = threading.get_ident()

    def __repr__(self) -> str:
        return f"Git({self._url!r}, {self._store!r})"

    # -- bootstrap --------------------------------------------------------------

    @classmethod
    def bootstrap(
        cls,
        store: Store,
        url: str,
        credential: Credential,
        error_if_exists: bool,
        *,
        cancel: threading.Event | None = None,
    ) -> Git:
        """Open the repository in *store*, cloning *url* if there is none.

        Raises:
            AlreadyExistsError: ``.git`` exists and *error_if_exists* is set.
            CorruptRepositoryError: ``.git`` exists but is not a repository
                directory.
            CanceledError: *cancel* was set during a clone.
            TransportError: The clone could not fetch from *url*.
            StorageError: The store failed.
        """
        try:
            _recover_interrupted_reset(store)
        except OSError as exc:
            raise StorageError(f"error recovering interrupted reset in {store.root()!r}") from exc
        try:
            info = store.stat(GIT_DIR)
        except FileNotFoundError:
            info = None
        except OSError as exc:
            raise StorageError(f"error probing {GIT_DIR!r} in {store.root()!r}") from exc

        if info is None:
            return cls._clone(store, url, credential, cancel)
        if error_if_exists:
            raise AlreadyExistsError(f"repository already exists in {store.root()!r}")
        if not info.is_dir():
            raise CorruptRepositoryError(f"{GIT_DIR!r} in {store.root()!r} is not a directory")
        return cls._open(store, url, credential)

    @classmethod
    def _open(cls, store: Store, url: str, credential: Credential) -> Git:
        try:
            repo = StoreRepo.load(store.chroot(GIT_DIR))
        except FileNotFoundError as exc:
            raise CorruptRepositoryError(
                f"{GIT_DIR!r} in {store.root()!r} is not a git repository"
            ) from exc
        except OSError as exc:
            raise StorageError(f"error opening repository in {store.root()!r}") from exc

        try:
            configured = repo.remote_url(REMOTE_NAME)
        except KeyError:
            configured = None
        if configured != url:
            logger.warning("remote %s of %s is %r, using %r",
                           REMOTE_NAME, store.root(), configured, url)
        logger.info("opened repository in %s", store.root())
        return cls(store, repo, url, credential, pulled=False)

    @classmethod
    def _clone(
        cls,
        store: Store,
        url: str,
        credential: Credential,
        cancel: threading.Event | None,
    ) -> Git:
        logger.info("cloning %s into %s", url, store.root())
        try:
            _check_cancel(cancel)
            repo = StoreRepo.init(store.chroot(GIT_DIR))
            repo.set_remote(REMOTE_NAME, url)
            result = transport.fetch(
                repo, url, credential,
                progress=transport.progress_reporter(cancel, what="clone"),
            )
            _check_cancel(cancel)
            git = cls(store, repo, url, credential, pulled=True)
            head = transport.remote_head(result)
            if head is None:
                logger.info("cloned empty repository %s", url)
                return git
            repo.refs[BRANCH] = head
            git._worktree.checkout(head, cancel=cancel)
        except OSError as exc:
            _discard_partial_clone(store)
            raise StorageError(f"error cloning {url!r} into {store.root()!r}: {exc}") from exc
        except BaseException:
            _discard_partial_clone(store)
            raise
        logger.info("cloned %s at %s", url, head.decode()[:7])
        return git

    # -- ownership --------------------------------------------------------------

    def claim_thread(self) -> None:
        """Make the calling thread the owner of this handle.

        Fails if another thread still owns it.
        """
        current = threading.get_ident()
        if self._owner_thread_id is not None and self._owner_thread_id != current:
            raise ConcurrentAccessError(
                f"repository handle owned by thread {self._owner_thread_id}, "
                f"cannot claim from thread {current}"
            )
        self._owner_thread_id = current

    def release_thread(self) -> None:
        """Give up ownership so another thread can claim the handle."""
        self._assert_owner()
        self._owner_thread_id = None

    def _assert_owner(self) -> None:
        current = threading.get_ident()
        if self._owner_thread_id is not None and self._owner_thread_id != current:
            raise ConcurrentAccessError(
                f"repository handle owned by thread {self._owner_thread_id}, "
                f"accessed from thread {current}"
            )

    # -- accessors --------------------------------------------------------------

    @property
    def store(self) -> Store:
        return self._store

    @property
    def repo(self) -> StoreRepo:
        return self._repo

    @property
    def worktree(self) -> Worktree:
        return self._worktree

    @property
    def url(self) -> str:
        return self._url

    @property
    def pulled(self) -> bool:
        """True once this handle has cloned or pulled from the remote."""
        return self._pulled

    def head(self) -> str | None:
        """Hex id of the commit ``master`` points at, ``None`` if unborn."""
        sha = self._repo.head_commit()
        return sha.decode() if sha is not None else None

    # -- operations -------------------------------------------------------------

    def status(self) -> dict[str, StatusCode]:
        self._assert_owner()
        return _status(self)

    def add_all(self) -> int:
        """Stage every change under the store root, deletions included."""
        self._assert_owner()
        try:
            return self._worktree.add_all()
        except OSError as exc:
            raise StorageError(f"error staging files in {self._store.root()!r}: {exc}") from exc

    def commit(self, message: str | None = None, *, all: bool = True) -> str:
        """Commit the index to ``master`` and return the new commit id."""
        self._assert_owner()
        try:
            sha = self._worktree.commit(message, all=all)
        except OSError as exc:
            raise StorageError(f"error committing in {self._store.root()!r}: {exc}") from exc
        logger.info("committed %s", sha.decode()[:7])
        return sha.decode()

    def push(self, force: bool = False) -> str:
        """Push ``master`` to the remote; fast-forward only unless *force*."""
        self._assert_owner()
        sha = transport.push(
            self._repo, self._url, self._credential, force=force,
            progress=transport.progress_reporter(what="push"),
        )
        logger.info("pushed %s to %s%s", sha.decode()[:7], self._url, " (forced)" if force else "")
        return sha.decode()

    def pull(self) -> bool:
        """Fast-forward ``master`` from the remote.

        Returns ``False`` when there was nothing new.

        Raises:
            DivergedHistoryError: If local ``master`` is not an ancestor
                of the remote one.
        """
        self._assert_owner()
        result = transport.fetch(
            self._repo, self._url, self._credential,
            progress=transport.progress_reporter(what="pull"),
        )
        self._pulled = True
        remote = transport.remote_head(result)
        local = self._repo.head_commit()
        if remote is None or remote == local:
            logger.info("already up to date")
            return False
        if local is not None and not transport.is_ancestor(self._repo.object_store, local, remote):
            raise DivergedHistoryError(
                f"local master {local.decode()[:7]} is not an ancestor "
                f"of remote master {remote.decode()[:7]}"
            )
        try:
            self._worktree.checkout(remote, previous=local)
        except OSError as exc:
            raise StorageError(f"error updating {self._store.root()!r}: {exc}") from exc
        self._repo.refs[BRANCH] = remote
        logger.info("fast-forwarded master to %s", remote.decode()[:7])
        return True

    def reset(self) -> None:
        """Throw away all history and start over with an empty repository.

        The replacement is built in ``.git.reset`` first and swapped in by
        rename, so a failure before the swap leaves the old repository
        untouched.
        """
        self._assert_owner()
        root = self._store.root()
        logger.info("resetting repository in %s", root)
        try:
            self._store.remove_all(RESET_DIR)
            staged = StoreRepo.init(self._store.chroot(RESET_DIR))
            staged.set_remote(REMOTE_NAME, self._url)
        except OSError as exc:
            self._discard(RESET_DIR)
            raise ResetError(f"error preparing new repository in {root!r}: {exc}") from exc

        try:
            self._store.remove_all(OLD_DIR)
            self._store.rename(GIT_DIR, OLD_DIR)
        except OSError as exc:
            self._discard(RESET_DIR)
            raise ResetError(f"error moving old repository aside in {root!r}: {exc}") from exc

        try:
            self._store.rename(RESET_DIR, GIT_DIR)
        except OSError as exc:
            try:
                self._store.rename(OLD_DIR, GIT_DIR)
            except OSError as restore_exc:
                raise ResetError(
                    f"fatal: repository in {root!r} lost and could not be restored: {restore_exc}"
                ) from exc
            self._discard(RESET_DIR)
            raise ResetError(f"error installing new repository in {root!r}: {exc}") from exc

        self._discard(OLD_DIR)
        try:
            self._repo = StoreRepo.load(self._store.chroot(GIT_DIR))
        except OSError as exc:
            raise ResetError(f"error reopening repository in {root!r}: {exc}") from exc
        self._worktree = Worktree(self._store, self._repo)

    def _discard(self, path: str) -> None:
        try:
            self._store.remove_all(path)
        except OSError as exc:
            logger.warning("could not remove %s in %s: %s", path, self._store.root(), exc)
