"""Behaviour shared by every Store implementation."""

import errno
import os

import pytest

from gitfs.memfs import MemoryStore
from gitfs.osfs import OSStore
from gitfs.store import ChrootStore, normalize_path, walk_files


@pytest.fixture(params=["memory", "os"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return OSStore(tmp_path / "root")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

class TestNormalize:
    @pytest.mark.parametrize("raw, expected", [
        ("a/b", "/a/b"),
        ("/a/b/", "/a/b"),
        ("a//b/./c", "/a/b/c"),
        ("../../etc/passwd", "/etc/passwd"),
        ("a\\b", "/a/b"),
        ("", "/"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

class TestFiles:
    def test_create_and_read(self, store):
        with store.create("a/b/c.txt") as f:
            f.write(b"hello")
        assert store.read_bytes("a/b/c.txt") == b"hello"
        assert store.stat("a/b").is_dir()

    def test_create_truncates(self, store):
        store.write_bytes("f", b"long content")
        with store.create("f") as f:
            f.write(b"x")
        assert store.read_bytes("f") == b"x"

    def test_open_read_only(self, store):
        store.write_bytes("f", b"data")
        with store.open("f") as f:
            assert f.read() == b"data"
            with pytest.raises(OSError):
                f.write(b"nope")

    def test_open_missing(self, store):
        with pytest.raises(FileNotFoundError):
            store.open("missing")

    def test_append(self, store):
        store.write_bytes("log", b"one\n")
        with store.open_file("log", os.O_WRONLY | os.O_APPEND) as f:
            f.write(b"two\n")
        assert store.read_bytes("log") == b"one\ntwo\n"

    def test_exclusive_create(self, store):
        store.write_bytes("f", b"")
        with pytest.raises(FileExistsError):
            store.open_file("f", os.O_WRONLY | os.O_CREAT | os.O_EXCL)

    def test_open_directory_for_write(self, store):
        store.makedirs("d")
        with pytest.raises(IsADirectoryError):
            store.open_file("d", os.O_WRONLY | os.O_CREAT)

    def test_seek_and_overwrite(self, store):
        store.write_bytes("f", b"abcdef")
        with store.open_file("f", os.O_RDWR) as f:
            f.seek(2)
            f.write(b"XY")
            f.seek(0)
            assert f.read() == b"abXYef"

    def test_stat(self, store):
        store.write_bytes("f", b"12345", 0o644)
        info = store.stat("f")
        assert info.name == "f"
        assert info.size == 5
        assert info.is_file()
        assert not info.is_dir()

    def test_exists(self, store):
        assert not store.exists("f")
        store.write_bytes("f", b"")
        assert store.exists("f")


# ---------------------------------------------------------------------------
# Directories
# ---------------------------------------------------------------------------

class TestDirectories:
    def test_listdir_sorted(self, store):
        for name in ["b", "a", "c"]:
            store.write_bytes(name, b"")
        store.makedirs("d")
        assert [i.name for i in store.listdir("/")] == ["a", "b", "c", "d"]

    def test_listdir_file(self, store):
        store.write_bytes("f", b"")
        with pytest.raises(NotADirectoryError):
            store.listdir("f")

    def test_makedirs_existing_ok(self, store):
        store.makedirs("x/y")
        store.makedirs("x/y")
        assert store.stat("x/y").is_dir()

    def test_makedirs_below_file(self, store):
        store.write_bytes("f", b"")
        with pytest.raises(NotADirectoryError):
            store.makedirs("f/g")

    def test_makedirs_over_file(self, store):
        store.write_bytes("f", b"")
        with pytest.raises(FileExistsError):
            store.makedirs("f")

    def test_remove_file(self, store):
        store.write_bytes("f", b"")
        store.remove("f")
        assert not store.exists("f")

    def test_remove_non_empty_dir(self, store):
        store.write_bytes("d/f", b"")
        with pytest.raises(OSError) as exc:
            store.remove("d")
        assert exc.value.errno in (errno.ENOTEMPTY, errno.EEXIST)

    def test_remove_missing(self, store):
        with pytest.raises(FileNotFoundError):
            store.remove("missing")

    def test_remove_all(self, store):
        store.write_bytes("d/e/f", b"")
        store.write_bytes("d/g", b"")
        store.remove_all("d")
        assert not store.exists("d")

    def test_remove_all_missing_is_fine(self, store):
        store.remove_all("missing")


# ---------------------------------------------------------------------------
# Rename
# ---------------------------------------------------------------------------

class TestRename:
    def test_rename_file(self, store):
        store.write_bytes("a", b"data")
        store.rename("a", "sub/b")
        assert store.read_bytes("sub/b") == b"data"
        assert not store.exists("a")

    def test_rename_replaces_file(self, store):
        store.write_bytes("a", b"new")
        store.write_bytes("b", b"old")
        store.rename("a", "b")
        assert store.read_bytes("b") == b"new"

    def test_rename_directory(self, store):
        store.write_bytes("d/f", b"x")
        store.rename("d", "e")
        assert store.read_bytes("e/f") == b"x"

    def test_rename_missing(self, store):
        with pytest.raises(FileNotFoundError):
            store.rename("missing", "x")


# ---------------------------------------------------------------------------
# Symlinks
# ---------------------------------------------------------------------------

class TestSymlinks:
    def test_symlink_and_readlink(self, store):
        store.write_bytes("target.txt", b"pointed at")
        store.symlink("target.txt", "link")
        assert store.readlink("link") == "target.txt"
        assert store.read_bytes("link") == b"pointed at"
        assert store.lstat("link").is_symlink()
        assert store.stat("link").is_file()

    def test_symlink_existing(self, store):
        store.write_bytes("f", b"")
        with pytest.raises(FileExistsError):
            store.symlink("x", "f")

    def test_readlink_not_a_link(self, store):
        store.write_bytes("f", b"")
        with pytest.raises(OSError) as exc:
            store.readlink("f")
        assert exc.value.errno == errno.EINVAL

    def test_dangling_link(self, store):
        store.symlink("nowhere", "link")
        assert not store.exists("link")
        assert store.lstat("link").is_symlink()

    def test_symlinked_directory(self, store):
        store.write_bytes("real/f", b"x")
        store.symlink("real", "alias")
        assert store.read_bytes("alias/f") == b"x"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_tempfile(self, store):
        store.makedirs("tmp")
        with store.tempfile("tmp", "pre-") as f:
            f.write(b"scratch")
            name = f.name
        entries = store.listdir("tmp")
        assert len(entries) == 1
        assert entries[0].name.startswith("pre-")
        assert os.path.basename(name) == entries[0].name

    def test_tempfile_unique(self, store):
        a = store.tempfile()
        b = store.tempfile()
        assert a.name != b.name
        a.close()
        b.close()

    def test_join(self, store):
        assert store.join("a", "b", "c.txt") == "a/b/c.txt"
        assert store.join("a", "", "b") == "a/b"
        assert store.join() == ""

    def test_chroot(self, store):
        sub = store.chroot("sub")
        sub.write_bytes("f", b"inside")
        assert store.read_bytes("sub/f") == b"inside"
        assert [i.name for i in sub.listdir("/")] == ["f"]

    def test_chroot_confined(self, store):
        sub = store.chroot("sub")
        sub.write_bytes("../../escape", b"x")
        assert store.exists("sub/escape")

    def test_walk_files_pre_order(self, store):
        for p in ["b.txt", "a/z.txt", "a/b/c.txt", ".git/HEAD"]:
            store.write_bytes(p, b"")
        store.symlink("b.txt", "link")
        paths = list(walk_files(store, skip=lambda p, i: i.name == ".git"))
        assert paths == ["/a/b/c.txt", "/a/z.txt", "/b.txt", "/link"]


class TestMemoryStoreSpecifics:
    def test_symlink_loop(self):
        store = MemoryStore()
        store.symlink("b", "a")
        store.symlink("a", "b")
        with pytest.raises(OSError) as exc:
            store.stat("a")
        assert exc.value.errno == errno.ELOOP

    def test_rename_dir_into_itself(self):
        store = MemoryStore()
        store.write_bytes("d/f", b"")
        with pytest.raises(OSError) as exc:
            store.rename("d", "d/sub/d")
        assert exc.value.errno == errno.EINVAL

    def test_handles_share_content(self):
        store = MemoryStore()
        store.write_bytes("f", b"")
        with store.open_file("f", os.O_RDWR) as w, store.open("f") as r:
            w.write(b"live")
            assert r.read() == b"live"

    def test_closed_file(self):
        store = MemoryStore()
        f = store.create("f")
        f.close()
        with pytest.raises(ValueError):
            f.write(b"x")

    def test_root(self):
        assert MemoryStore().root() == "/"
        assert isinstance(MemoryStore().chroot("x"), ChrootStore)


class TestOSStoreSpecifics:
    def test_files_on_disk(self, tmp_path):
        store = OSStore(tmp_path)
        store.write_bytes("a/b.txt", b"disk")
        assert (tmp_path / "a" / "b.txt").read_bytes() == b"disk"

    def test_cannot_escape_root(self, tmp_path):
        root = tmp_path / "root"
        store = OSStore(root)
        store.write_bytes("../outside.txt", b"x")
        assert (root / "outside.txt").exists()
        assert not (tmp_path / "outside.txt").exists()

    def test_chroot_is_os_store(self, tmp_path):
        sub = OSStore(tmp_path).chroot("sub")
        assert isinstance(sub, OSStore)
        assert sub.root() == str(tmp_path / "sub")
