"""Exceptions for gitfs."""


class GitFSError(Exception):
    """Base class for all gitfs errors."""


class ConfigValidationError(GitFSError, ValueError):
    """Raised when a :class:`~gitfs.Config` is incomplete or contradictory."""


class CredentialError(GitFSError):
    """Raised when the SSH private key cannot be read or parsed."""


class CorruptRepositoryError(GitFSError):
    """Raised when ``.git`` exists in the store but is not a directory."""


class AlreadyExistsError(GitFSError):
    """Raised when bootstrapping over a store that already holds a repository.

    Open the store with ``open_existing=True`` to reuse the repository
    instead of cloning over it.
    """


class TransportError(GitFSError):
    """Raised when clone, fetch, or push fails on the wire or at the remote."""


class DivergedHistoryError(TransportError):
    """Raised when local and remote ``master`` no longer share a lineage.

    gitfs does not merge.  Resolve by pulling into a fresh store, or by
    syncing with ``purge=True`` to overwrite the remote history.
    """


class CanceledError(GitFSError):
    """Raised when the caller cancels a clone in progress."""


class StorageError(GitFSError):
    """Raised when the backing store fails during a repository operation."""


class ResetError(GitFSError):
    """Raised when a history purge cannot complete."""


class NotPulledError(GitFSError):
    """Raised by sync when ``require_pull`` is set and no pull has happened."""


class ConcurrentAccessError(GitFSError):
    """Raised when a handle is used from a thread that does not own it."""
