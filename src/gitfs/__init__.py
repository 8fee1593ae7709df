from .config import Config, StorageKind
from .credentials import AnonymousCredentials, Credential, CredentialProvider, SSHKeyCredentials
from .exceptions import (
    AlreadyExistsError, CanceledError, ConcurrentAccessError, ConfigValidationError,
    CorruptRepositoryError, CredentialError, DivergedHistoryError, GitFSError,
    NotPulledError, ResetError, StorageError, TransportError,
)
from .fs import GitFS
from .git import Git
from .memfs import MemoryStore
from .osfs import OSStore
from .status import FileStatus, StatusCode, reconcile
from .store import FileInfo, Store, select_store

__all__ = [
    "Config", "StorageKind",
    "AnonymousCredentials", "Credential", "CredentialProvider", "SSHKeyCredentials",
    "GitFS", "Git", "Store", "FileInfo", "MemoryStore", "OSStore", "select_store",
    "FileStatus", "StatusCode", "reconcile",
    "GitFSError", "ConfigValidationError", "CredentialError", "CorruptRepositoryError",
    "AlreadyExistsError", "TransportError", "DivergedHistoryError", "CanceledError",
    "StorageError", "ResetError", "NotPulledError", "ConcurrentAccessError",
]
