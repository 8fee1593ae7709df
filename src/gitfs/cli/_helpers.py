"""Shared helpers and the main CLI group."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager

import click

from ..config import Config
from ..credentials import AnonymousCredentials, SSHKeyCredentials
from ..exceptions import GitFSError
from ..fs import GitFS


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _is_local_url(url: str) -> bool:
    return url.startswith("file://") or os.path.exists(url)


def _credentials(url: str, key: str | None):
    if key:
        return SSHKeyCredentials(key)
    if _is_local_url(url):
        return AnonymousCredentials()
    return SSHKeyCredentials()


@contextmanager
def _gitfs_errors():
    """Turn library errors into clean CLI errors."""
    try:
        yield
    except GitFSError as exc:
        raise click.ClickException(str(exc))


def _open_fs(ctx) -> GitFS:
    """Open the session described by the global options."""
    url = ctx.obj.get("url")
    if not url:
        raise click.ClickException(
            "No repository specified. Use --url or set GITFS_URL."
        )
    base_dir = ctx.obj.get("dir")
    if base_dir:
        config = Config.path(url, base_dir, open_existing=True)
    else:
        config = Config.memory(url)
    with _gitfs_errors():
        fs = GitFS.open(config, credentials=_credentials(url, ctx.obj.get("key")))
    _status(ctx, f"Opened {url} in {fs.root()}")
    return fs


def _store_path(path: str) -> str:
    if not path or path.strip("/") == "":
        return "/"
    return path


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--url", "-u", envvar="GITFS_URL",
              help="Remote repository URL (or set GITFS_URL).")
@click.option("--dir", "-d", "base_dir", type=click.Path(file_okay=False), envvar="GITFS_DIR",
              help="Keep files under this directory (or set GITFS_DIR). "
                   "Omit to work in memory.")
@click.option("--key", "-k", type=click.Path(dir_okay=False), envvar="GITFS_SSH_KEY",
              help="SSH private key (default ~/.ssh/id_rsa, or set GITFS_SSH_KEY).")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, url, base_dir, key, verbose):
    """gitfs: files backed by a remote git repository.

    Every session clones the remote (or reopens a previous clone under
    --dir), lets you read and change files, and pushes the changes back
    with ``sync``.

    \b
    Quick start:
      gitfs -u git@example.com:team/notes.git ls
      gitfs -u ... -d ./notes write todo.txt "ship it"
      gitfs -u ... -d ./notes status
      gitfs -u ... -d ./notes sync
    """
    ctx.ensure_object(dict)
    ctx.obj["url"] = url
    ctx.obj["dir"] = base_dir
    ctx.obj["key"] = key
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
