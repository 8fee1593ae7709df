"""Shared fixtures for gitfs tests."""

import pytest
from click.testing import CliRunner
from dulwich.index import commit_tree
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo as DulwichRepo

from gitfs import AnonymousCredentials, Config, GitFS

MASTER = b"refs/heads/master"

SEED_FILES = {
    "hello.txt": b"hello world\n",
    "docs/readme.md": b"# docs\n",
}


def make_commit(repo, files, parents=(), message=b"seed\n"):
    """Commit *files* ({path: bytes}) to master of a dulwich *repo*."""
    blobs = []
    for path, data in files.items():
        blob = Blob.from_string(data)
        repo.object_store.add_object(blob)
        blobs.append((path.encode(), blob.id, 0o100644))
    c = Commit()
    c.tree = commit_tree(repo.object_store, blobs)
    c.parents = list(parents)
    c.author = c.committer = b"Seed <seed@example.com>"
    c.author_time = c.commit_time = 1700000000
    c.author_timezone = c.commit_timezone = 0
    c.message = message
    repo.object_store.add_object(c)
    repo.refs[MASTER] = c.id
    return c.id


def remote_master(path):
    """Return the remote's master commit id as hex, or None."""
    repo = DulwichRepo(path)
    try:
        return repo.refs[MASTER].decode()
    except KeyError:
        return None
    finally:
        repo.close()


def remote_commit(path, sha=None):
    """Return a master commit object of the remote at *path*."""
    repo = DulwichRepo(path)
    try:
        sha = sha.encode() if sha else repo.refs[MASTER]
        return repo[sha]
    finally:
        repo.close()


def remote_files(path):
    """Return {path: bytes} for the tree at the remote's master."""
    from gitfs.worktree import tree_entries

    repo = DulwichRepo(path)
    try:
        tree = repo[repo.refs[MASTER]].tree
        return {
            p.decode(): repo.object_store[sha].data
            for p, _mode, sha in tree_entries(repo.object_store, tree)
        }
    finally:
        repo.close()


@pytest.fixture
def remote(tmp_path):
    """A bare repository whose master holds SEED_FILES."""
    p = str(tmp_path / "remote.git")
    repo = DulwichRepo.init_bare(p, mkdir=True)
    make_commit(repo, SEED_FILES)
    repo.close()
    return p


@pytest.fixture
def empty_remote(tmp_path):
    """A bare repository with no commits."""
    p = str(tmp_path / "empty.git")
    DulwichRepo.init_bare(p, mkdir=True).close()
    return p


@pytest.fixture
def anon():
    return AnonymousCredentials()


@pytest.fixture
def credential(anon):
    return anon.resolve()


@pytest.fixture
def memfs(remote, anon):
    """A fresh in-memory session cloned from ``remote``."""
    return GitFS.open(Config.memory(remote), credentials=anon)


@pytest.fixture
def workdir(tmp_path):
    return str(tmp_path / "work")


@pytest.fixture
def pathfs(remote, workdir, anon):
    """A path-rooted session cloned from ``remote`` into ``workdir``."""
    return GitFS.open(Config.path(remote, workdir), credentials=anon)


@pytest.fixture
def runner():
    return CliRunner()
