"""Tests for the gitfs CLI."""

import os

import pytest

from gitfs.cli import main

from conftest import remote_files, remote_master


@pytest.fixture
def base(remote, workdir):
    """Global options for a path-rooted session."""
    return ["--url", remote, "--dir", workdir]


class TestGlobal:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        for cmd in ["status", "sync", "pull", "ls", "cat", "write", "rm"]:
            assert cmd in result.output

    def test_missing_url(self, runner):
        result = runner.invoke(main, ["ls"], env={"GITFS_URL": None})
        assert result.exit_code != 0
        assert "No repository specified" in result.output

    def test_url_from_env(self, runner, remote):
        result = runner.invoke(main, ["cat", "hello.txt"], env={"GITFS_URL": remote})
        assert result.exit_code == 0, result.output
        assert result.output == "hello world\n"

    def test_transport_error_is_clean(self, runner, tmp_path):
        result = runner.invoke(main, ["--url", str(tmp_path / "nope.git"), "ls"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Traceback" not in result.output

    def test_bad_key(self, runner, remote, tmp_path):
        key = tmp_path / "bad_key"
        key.write_text("not a key")
        result = runner.invoke(main, ["--url", remote, "--key", str(key), "ls"])
        assert result.exit_code == 1
        assert "error parsing private key" in result.output


class TestReadCommands:
    def test_ls_root(self, runner, base):
        result = runner.invoke(main, base + ["ls"])
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == ["docs/", "hello.txt"]

    def test_ls_subdir(self, runner, base):
        result = runner.invoke(main, base + ["ls", "docs"])
        assert result.output.splitlines() == ["readme.md"]

    def test_ls_missing(self, runner, base):
        result = runner.invoke(main, base + ["ls", "missing"])
        assert result.exit_code == 1
        assert "No such directory" in result.output

    def test_cat(self, runner, base):
        result = runner.invoke(main, base + ["cat", "docs/readme.md"])
        assert result.exit_code == 0, result.output
        assert result.output == "# docs\n"

    def test_cat_missing(self, runner, base):
        result = runner.invoke(main, base + ["cat", "nope.txt"])
        assert result.exit_code == 1
        assert "File not found" in result.output


class TestWriteCommands:
    def test_write_then_status(self, runner, base, workdir):
        result = runner.invoke(main, base + ["write", "new.txt", "fresh"])
        assert result.exit_code == 0, result.output
        with open(os.path.join(workdir, "new.txt"), "rb") as f:
            assert f.read() == b"fresh"
        result = runner.invoke(main, base + ["status"])
        assert result.output.splitlines() == ["? new.txt"]

    def test_write_from_stdin(self, runner, base, workdir):
        result = runner.invoke(main, base + ["write", "in.txt"], input=b"piped\n")
        assert result.exit_code == 0, result.output
        with open(os.path.join(workdir, "in.txt"), "rb") as f:
            assert f.read() == b"piped\n"

    def test_rm(self, runner, base, workdir):
        runner.invoke(main, base + ["ls"])
        result = runner.invoke(main, base + ["rm", "hello.txt"])
        assert result.exit_code == 0, result.output
        assert not os.path.exists(os.path.join(workdir, "hello.txt"))

    def test_rm_dir_needs_recursive(self, runner, base, workdir):
        result = runner.invoke(main, base + ["rm", "docs"])
        assert result.exit_code == 1
        assert "use -r" in result.output
        result = runner.invoke(main, base + ["rm", "-r", "docs"])
        assert result.exit_code == 0, result.output
        assert not os.path.exists(os.path.join(workdir, "docs"))

    def test_memory_write_with_sync(self, runner, remote):
        result = runner.invoke(main, ["--url", remote, "write", "--sync", "mem.txt", "in memory"])
        assert result.exit_code == 0, result.output
        assert remote_files(remote)["mem.txt"] == b"in memory"

    def test_memory_rm_with_sync(self, runner, remote):
        result = runner.invoke(main, ["--url", remote, "rm", "--sync", "hello.txt"])
        assert result.exit_code == 0, result.output
        assert "hello.txt" not in remote_files(remote)


class TestRepoCommands:
    def test_sync(self, runner, base, remote):
        runner.invoke(main, base + ["write", "new.txt", "fresh"])
        result = runner.invoke(main, base + ["sync"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == remote_master(remote)
        assert remote_files(remote)["new.txt"] == b"fresh"
        result = runner.invoke(main, base + ["status"])
        assert result.output == ""

    def test_sync_purge(self, runner, base, remote):
        from conftest import remote_commit

        result = runner.invoke(main, base + ["sync", "--purge"])
        assert result.exit_code == 0, result.output
        assert remote_commit(remote).parents == []

    def test_pull(self, runner, base, remote):
        runner.invoke(main, base + ["ls"])
        result = runner.invoke(main, ["--url", remote, "write", "--sync", "other.txt", "x"])
        assert result.exit_code == 0, result.output
        result = runner.invoke(main, base + ["pull"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith("Updated to ")
        result = runner.invoke(main, base + ["pull"])
        assert result.output.strip() == "Already up to date."

    def test_verbose(self, runner, base):
        result = runner.invoke(main, base + ["-v", "ls"])
        assert result.exit_code == 0, result.output
