"""Repository commands: sync, pull."""

from __future__ import annotations

import click

from ._helpers import _gitfs_errors, _open_fs, _status, main


@main.command()
@click.option("--purge", is_flag=True, default=False,
              help="Discard history: push a single commit holding the current files.")
@click.pass_context
def sync(ctx, purge):
    """Commit every change and push it to the remote."""
    fs = _open_fs(ctx)
    with _gitfs_errors():
        sha = fs.sync(purge=purge)
    _status(ctx, "Purged history" if purge else "Pushed")
    click.echo(sha)


@main.command()
@click.pass_context
def pull(ctx):
    """Fast-forward from the remote."""
    fs = _open_fs(ctx)
    with _gitfs_errors():
        updated = fs.pull()
    if updated:
        click.echo(f"Updated to {fs.git.head()[:7]}")
    else:
        click.echo("Already up to date.")
