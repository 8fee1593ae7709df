"""A dulwich repository whose ``.git`` directory lives inside a Store.

dulwich's disk-backed ``Repo`` insists on real OS paths, which rules out
the in-memory store.  :class:`StoreRepo` keeps dulwich's in-memory
containers for speed and mirrors every change into the store using
git's own on-disk formats:

* loose zlib objects under ``objects/xx/yyyy...``
* loose refs under ``refs/...`` plus ``HEAD``
* ``config`` in git config syntax
* ``index`` in git index format

so a path-rooted store is an ordinary git checkout.
"""

from __future__ import annotations

import io
import logging
import posixpath

from dulwich.config import ConfigFile
from dulwich.index import IndexEntry, read_index_dict, write_index_dict
from dulwich.object_store import MemoryObjectStore
from dulwich.objects import ShaFile
from dulwich.refs import DictRefsContainer
from dulwich.repo import MemoryRepo

from .store import Store

logger = logging.getLogger(__name__)

__all__ = [
    "BRANCH",
    "GIT_DIR",
    "METADATA_DIRS",
    "OLD_DIR",
    "REMOTE_NAME",
    "RESET_DIR",
    "StoreObjectStore",
    "StoreRefsContainer",
    "StoreRepo",
]

GIT_DIR = ".git"
# Siblings of GIT_DIR used while a reset swaps repositories.
RESET_DIR = GIT_DIR + ".reset"
OLD_DIR = GIT_DIR + ".old"
METADATA_DIRS = frozenset({GIT_DIR, RESET_DIR, OLD_DIR})
REMOTE_NAME = "origin"
BRANCH = b"refs/heads/master"
HEAD = b"HEAD"
SYMREF = b"ref: "

_OBJECTS = "objects"
_REFS = "refs"
_PACKED_REFS = "packed-refs"
_CONFIG = "config"
_INDEX = "index"


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------

class StoreObjectStore(MemoryObjectStore):
    """Object store that persists every object as a loose file.

    All objects are loaded eagerly when the repository is opened.
    """

    def __init__(self, store: Store):
        super().__init__()
        self._store = store
        self._persisted: set[bytes] = set()
        self._load()

    @staticmethod
    def _object_path(sha: bytes) -> str:
        hexsha = sha.decode("ascii")
        return posixpath.join(_OBJECTS, hexsha[:2], hexsha[2:])

    def _load(self) -> None:
        try:
            fanout = self._store.listdir(_OBJECTS)
        except FileNotFoundError:
            return
        for d in fanout:
            if not d.is_dir() or len(d.name) != 2:
                continue
            for f in self._store.listdir(posixpath.join(_OBJECTS, d.name)):
                raw = self._store.read_bytes(posixpath.join(_OBJECTS, d.name, f.name))
                obj = ShaFile.from_file(io.BytesIO(raw))
                MemoryObjectStore.add_object(self, obj)
                self._persisted.add(obj.id)

    def _write(self, obj: ShaFile) -> None:
        if obj.id in self._persisted:
            return
        self._store.write_bytes(self._object_path(obj.id), obj.as_legacy_object(), 0o444)
        self._persisted.add(obj.id)

    def add_object(self, obj: ShaFile) -> None:
        super().add_object(obj)
        self._write(obj)

    def flush(self) -> None:
        """Write out objects that arrived without going through add_object."""
        for sha in list(self):
            if sha not in self._persisted:
                self._write(self[sha])


# ---------------------------------------------------------------------------
# Refs
# ---------------------------------------------------------------------------

def _read_refs(store: Store) -> dict[bytes, bytes]:
    refs: dict[bytes, bytes] = {}
    try:
        packed = store.read_bytes(_PACKED_REFS)
    except FileNotFoundError:
        packed = b""
    for line in packed.splitlines():
        if not line or line.startswith((b"#", b"^")):
            continue
        sha, _, name = line.partition(b" ")
        refs[name] = sha

    def walk(path: str) -> None:
        for info in store.listdir(path):
            child = posixpath.join(path, info.name)
            if info.is_dir():
                walk(child)
            else:
                refs[child.encode()] = store.read_bytes(child).strip()

    try:
        walk(_REFS)
    except FileNotFoundError:
        pass
    try:
        refs[HEAD] = store.read_bytes("HEAD").strip()
    except FileNotFoundError:
        pass
    return refs


class StoreRefsContainer(DictRefsContainer):
    """Refs kept in a dict and written back as loose ref files."""

    def __init__(self, store: Store):
        super().__init__(_read_refs(store))
        self._store = store
        self._on_disk: set[bytes] = set(self.allkeys())

    def _save(self) -> None:
        current = set(self.allkeys())
        for name in current:
            value = self.read_loose_ref(name)
            if value is not None:
                self._store.write_bytes(name.decode(), value + b"\n")
        for name in self._on_disk - current:
            try:
                self._store.remove(name.decode())
            except FileNotFoundError:
                pass
        if self._store.exists(_PACKED_REFS):
            self._store.remove(_PACKED_REFS)
        self._on_disk = current

    def set_symbolic_ref(self, *args, **kwargs):
        result = super().set_symbolic_ref(*args, **kwargs)
        self._save()
        return result

    def set_if_equals(self, *args, **kwargs):
        result = super().set_if_equals(*args, **kwargs)
        self._save()
        return result

    def add_if_new(self, *args, **kwargs):
        result = super().add_if_new(*args, **kwargs)
        self._save()
        return result

    def remove_if_equals(self, *args, **kwargs):
        result = super().remove_if_equals(*args, **kwargs)
        self._save()
        return result


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class StoreRepo(MemoryRepo):
    """Non-bare repository whose control files live in *store*.

    *store* is the ``.git`` view (usually ``worktree_store.chroot(".git")``).
    Use :meth:`init` to create a new repository and :meth:`load` to open
    an existing one.
    """

    def __init__(self, store: Store):
        super().__init__()
        self._store = store
        self.object_store = StoreObjectStore(store)
        self.refs = StoreRefsContainer(store)
        self._config = self._read_config()
        self.bare = False

    def __repr__(self) -> str:
        return f"StoreRepo({self._store!r})"

    @property
    def control_store(self) -> Store:
        return self._store

    @classmethod
    def init(cls, store: Store) -> StoreRepo:
        """Create an empty repository with an unborn ``master``."""
        for d in (_OBJECTS, "refs/heads", "refs/tags"):
            store.makedirs(d)
        repo = cls(store)
        repo.refs.set_symbolic_ref(HEAD, BRANCH)
        config = repo.get_config()
        config.set((b"core",), b"repositoryformatversion", b"0")
        config.set((b"core",), b"filemode", b"true")
        config.set((b"core",), b"bare", b"false")
        repo.save_config()
        logger.debug("initialized repository in %r", store)
        return repo

    @classmethod
    def load(cls, store: Store) -> StoreRepo:
        """Open an existing repository.

        Raises:
            FileNotFoundError: If *store* has no ``HEAD``.
        """
        store.stat("HEAD")
        return cls(store)

    # -- config ---------------------------------------------------------------

    def _read_config(self) -> ConfigFile:
        try:
            raw = self._store.read_bytes(_CONFIG)
        except FileNotFoundError:
            return ConfigFile()
        return ConfigFile.from_file(io.BytesIO(raw))

    def save_config(self) -> None:
        buf = io.BytesIO()
        self._config.write_to_file(buf)
        self._store.write_bytes(_CONFIG, buf.getvalue())

    def set_remote(self, name: str, url: str) -> None:
        """Register remote *name* with the conventional fetch refspec."""
        section = (b"remote", name.encode())
        self._config.set(section, b"url", url.encode())
        self._config.set(section, b"fetch", f"+refs/heads/*:refs/remotes/{name}/*".encode())
        self.save_config()

    def remote_url(self, name: str = REMOTE_NAME) -> str:
        """Return the URL of remote *name*.

        Raises:
            KeyError: If the remote is not configured.
        """
        return self._config.get((b"remote", name.encode()), b"url").decode()

    # -- index ----------------------------------------------------------------

    def read_index(self) -> dict[bytes, IndexEntry]:
        try:
            raw = self._store.read_bytes(_INDEX)
        except FileNotFoundError:
            return {}
        return dict(read_index_dict(io.BytesIO(raw)))

    def write_index(self, entries: dict[bytes, IndexEntry]) -> None:
        buf = io.BytesIO()
        write_index_dict(buf, entries)
        self._store.write_bytes(_INDEX, buf.getvalue())

    # -- refs -----------------------------------------------------------------

    def head_commit(self) -> bytes | None:
        """Return the commit ``master`` points at, or ``None`` if unborn."""
        try:
            return self.refs[BRANCH]
        except KeyError:
            return None
