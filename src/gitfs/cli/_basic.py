"""Basic commands: status, ls, cat, write, rm."""

from __future__ import annotations

import click

from ..repo import METADATA_DIRS
from ._helpers import _gitfs_errors, _open_fs, _status, _store_path, main


def _sync_option(f):
    """Shared --sync flag for commands that change files."""
    return click.option(
        "--sync", "sync_after", is_flag=True, default=False,
        help="Sync to the remote before exiting.",
    )(f)


def _maybe_sync(ctx, fs, sync_after):
    if not sync_after:
        return
    with _gitfs_errors():
        sha = fs.sync()
    _status(ctx, f"Synced {sha[:7]}")


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------

@main.command()
@click.pass_context
def status(ctx):
    """Show changed files, one per line, with a status letter."""
    fs = _open_fs(ctx)
    with _gitfs_errors():
        changes = fs.status()
    for path, code in sorted(changes.items()):
        click.echo(f"{code} {path}")


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path", required=False, default="/")
@click.pass_context
def ls(ctx, path):
    """List a directory; directories end with '/'."""
    fs = _open_fs(ctx)
    path = _store_path(path)
    try:
        entries = fs.listdir(path)
    except FileNotFoundError:
        raise click.ClickException(f"No such directory: {path}")
    except NotADirectoryError:
        raise click.ClickException(f"{path} is not a directory")
    for info in entries:
        if info.name in METADATA_DIRS and path == "/":
            continue
        click.echo(info.name + "/" if info.is_dir() else info.name)


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@click.pass_context
def cat(ctx, path):
    """Write a file's contents to stdout."""
    fs = _open_fs(ctx)
    try:
        data = fs.read_bytes(path)
    except FileNotFoundError:
        raise click.ClickException(f"File not found: {path}")
    except IsADirectoryError:
        raise click.ClickException(f"{path} is a directory, not a file")
    click.get_binary_stream("stdout").write(data)


# ---------------------------------------------------------------------------
# write
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@click.argument("data", required=False)
@_sync_option
@click.pass_context
def write(ctx, path, data, sync_after):
    """Write DATA (or stdin) to PATH, replacing its contents."""
    fs = _open_fs(ctx)
    if data is None:
        raw = click.get_binary_stream("stdin").read()
    else:
        raw = data.encode()
    try:
        fs.write_bytes(path, raw)
    except IsADirectoryError:
        raise click.ClickException(f"{path} is a directory, not a file")
    _status(ctx, f"Wrote {len(raw)} bytes to {path}")
    _maybe_sync(ctx, fs, sync_after)


# ---------------------------------------------------------------------------
# rm
# ---------------------------------------------------------------------------

@main.command()
@click.argument("path")
@click.option("-r", "--recursive", is_flag=True, default=False,
              help="Remove directories and their contents.")
@_sync_option
@click.pass_context
def rm(ctx, path, recursive, sync_after):
    """Remove a file (or a directory with -r)."""
    fs = _open_fs(ctx)
    try:
        info = fs.lstat(path)
    except FileNotFoundError:
        raise click.ClickException(f"File not found: {path}")
    if info.is_dir() and not recursive:
        raise click.ClickException(f"{path} is a directory (use -r)")
    fs.remove_all(path)
    _status(ctx, f"Removed {path}")
    _maybe_sync(ctx, fs, sync_after)
