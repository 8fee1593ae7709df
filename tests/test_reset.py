"""Tests for Git.reset: history purge with an atomic directory swap."""

import errno

import pytest

from gitfs import MemoryStore, ResetError
from gitfs.git import Git, OLD_DIR, RESET_DIR
from gitfs.store import normalize_path

from conftest import remote_files


class FailingStore(MemoryStore):
    """MemoryStore that fails selected operations on demand."""

    def __init__(self):
        super().__init__()
        self.fail_makedirs_under = None
        self.fail_rename_from = None
        self.fail_remove_all = None

    def makedirs(self, path, perm=0o777):
        if self.fail_makedirs_under and normalize_path(path).startswith(self.fail_makedirs_under):
            raise OSError(errno.ENOSPC, "No space left on device", path)
        super().makedirs(path, perm)

    def rename(self, old, new):
        if self.fail_rename_from and normalize_path(old) == self.fail_rename_from:
            raise OSError(errno.EIO, "Input/output error", old)
        super().rename(old, new)

    def remove_all(self, path):
        if (
            self.fail_remove_all
            and normalize_path(path) == self.fail_remove_all
            and self.exists(path)
        ):
            raise OSError(errno.EACCES, "Permission denied", path)
        super().remove_all(path)


@pytest.fixture
def failing(remote, credential):
    store = FailingStore()
    git = Git.bootstrap(store, remote, credential, True)
    return store, git


class TestReset:
    def test_reset_empties_history(self, memfs, remote):
        git = memfs.git
        git.reset()
        assert git.head() is None
        assert git.repo.read_index() == {}
        assert git.repo.remote_url() == remote
        assert memfs.read_bytes("hello.txt") == b"hello world\n"

    def test_no_leftover_directories(self, memfs):
        memfs.git.reset()
        names = [i.name for i in memfs.listdir("/")]
        assert ".git" in names
        assert RESET_DIR not in names
        assert OLD_DIR not in names

    def test_reset_on_disk(self, pathfs, workdir):
        import os

        pathfs.git.reset()
        assert os.path.isdir(os.path.join(workdir, ".git"))
        assert not os.path.exists(os.path.join(workdir, RESET_DIR))
        assert not os.path.exists(os.path.join(workdir, OLD_DIR))
        assert os.listdir(os.path.join(workdir, ".git", "refs", "heads")) == []

    def test_status_after_reset(self, memfs):
        memfs.git.reset()
        status = memfs.status()
        assert status == {"hello.txt": "?", "docs/readme.md": "?"}

    def test_staging_failure_keeps_old_repository(self, failing):
        store, git = failing
        head = git.head()
        store.fail_makedirs_under = "/" + RESET_DIR
        with pytest.raises(ResetError, match="preparing"):
            git.reset()
        assert git.head() == head
        assert not store.exists(RESET_DIR)
        assert Git.bootstrap(store, git.url, None, False).head() == head

    def test_swap_failure_restores_old_repository(self, failing):
        store, git = failing
        head = git.head()
        store.fail_rename_from = "/" + RESET_DIR
        with pytest.raises(ResetError, match="installing"):
            git.reset()
        assert store.stat(".git").is_dir()
        assert not store.exists(OLD_DIR)
        assert Git.bootstrap(store, git.url, None, False).head() == head

    def test_move_aside_failure(self, failing):
        store, git = failing
        head = git.head()
        store.fail_rename_from = "/.git"
        with pytest.raises(ResetError, match="moving old repository"):
            git.reset()
        assert not store.exists(RESET_DIR)
        assert Git.bootstrap(store, git.url, None, False).head() == head


# ---------------------------------------------------------------------------
# Leftover reset directories
# ---------------------------------------------------------------------------

class TestLeftovers:
    def test_undeletable_old_repository_is_not_synced(self, failing, remote):
        store, git = failing
        store.fail_remove_all = "/" + OLD_DIR
        git.reset()
        assert store.exists(OLD_DIR)
        assert git.status() == {"hello.txt": "?", "docs/readme.md": "?"}
        git.add_all()
        git.commit()
        git.push(force=True)
        assert sorted(remote_files(remote)) == ["docs/readme.md", "hello.txt"]

    def test_bootstrap_removes_old_repository(self, failing):
        store, git = failing
        store.fail_remove_all = "/" + OLD_DIR
        git.reset()
        store.fail_remove_all = None
        reopened = Git.bootstrap(store, git.url, None, False)
        assert not store.exists(OLD_DIR)
        assert reopened.head() is None

    def test_bootstrap_restores_interrupted_swap(self, failing):
        store, git = failing
        head = git.head()
        store.rename(".git", OLD_DIR)
        store.makedirs(RESET_DIR + "/objects")
        reopened = Git.bootstrap(store, git.url, None, False)
        assert reopened.head() == head
        assert not store.exists(OLD_DIR)
        assert not store.exists(RESET_DIR)
