"""Fetch and push between a :class:`~gitfs.repo.StoreRepo` and its remote.

Only ``master`` is pushed; the remote's ``HEAD`` is never written.
Fast-forward checking happens locally before any pack is sent, so the
same rule applies to SSH remotes and to local paths.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from dulwich.client import SSHGitClient, get_transport_and_path
from dulwich.contrib.paramiko_vendor import ParamikoSSHVendor
from dulwich.errors import GitProtocolError, NotGitRepository
from dulwich.protocol import ZERO_SHA

from .credentials import Credential
from .exceptions import CanceledError, DivergedHistoryError, TransportError
from .repo import BRANCH, HEAD, REMOTE_NAME, StoreRepo

logger = logging.getLogger(__name__)

__all__ = ["fetch", "get_client", "is_ancestor", "push", "remote_head"]

_TRANSPORT_ERRORS = (GitProtocolError, NotGitRepository, OSError)


def get_client(url: str, credential: Credential):
    """Return ``(client, path)`` for *url* with *credential* applied."""
    try:
        client, path = get_transport_and_path(url)
    except ValueError as exc:
        raise TransportError(f"unsupported repo url {url!r}: {exc}") from exc
    if isinstance(client, SSHGitClient):
        if client.username is None:
            client.username = credential.username
        if credential.pkey is not None:
            client.ssh_vendor = ParamikoSSHVendor(pkey=credential.pkey)
        elif credential.key_filename:
            client.ssh_vendor = ParamikoSSHVendor(key_filename=credential.key_filename)
    return client, path


def progress_reporter(
    cancel: threading.Event | None = None, *, what: str = "transfer",
) -> Callable[[bytes], None]:
    """Build a dulwich progress callback that logs and honours *cancel*."""

    def on_progress(msg: bytes) -> None:
        if cancel is not None and cancel.is_set():
            raise CanceledError(f"{what} canceled")
        text = msg.decode("utf-8", "replace").strip()
        if text:
            logger.debug("remote: %s", text)

    return on_progress


def is_ancestor(object_store, ancestor: bytes, head: bytes) -> bool:
    """True if commit *ancestor* is reachable from *head*."""
    if ancestor == head:
        return True
    if ancestor not in object_store:
        return False
    pending = [head]
    seen: set[bytes] = set()
    while pending:
        sha = pending.pop()
        if sha == ancestor:
            return True
        if sha in seen or sha not in object_store:
            continue
        seen.add(sha)
        pending.extend(object_store[sha].parents)
    return False


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def fetch(repo: StoreRepo, url: str, credential: Credential, *, progress=None):
    """Fetch every branch of *url* into *repo*.

    Remote branches are recorded as ``refs/remotes/origin/<name>``.
    Returns dulwich's ``FetchPackResult``.
    """
    client, path = get_client(url, credential)
    logger.debug("fetching %s", url)
    try:
        result = client.fetch(path, repo, progress=progress)
    except _TRANSPORT_ERRORS as exc:
        raise TransportError(f"error fetching from {url!r}: {exc}") from exc
    repo.object_store.flush()

    prefix = b"refs/heads/"
    tracking = f"refs/remotes/{REMOTE_NAME}/".encode()
    for ref, sha in result.refs.items():
        if ref.startswith(prefix) and sha and sha != ZERO_SHA:
            repo.refs[tracking + ref[len(prefix):]] = sha
    return result


def remote_head(result) -> bytes | None:
    """Pick the commit to check out from a fetch result.

    ``master`` wins; otherwise whatever the remote ``HEAD`` resolves to.
    """
    refs = result.refs
    sha = refs.get(BRANCH) or refs.get(HEAD)
    if not sha or sha == ZERO_SHA:
        return None
    return sha


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------

def push(
    repo: StoreRepo,
    url: str,
    credential: Credential,
    *,
    force: bool = False,
    progress=None,
) -> bytes:
    """Push local ``master`` to *url* and return the pushed commit.

    Raises:
        DivergedHistoryError: If the remote ``master`` is not an ancestor
            of the local one and *force* is false.
        TransportError: For connection, protocol, or remote-side failures.
    """
    local = repo.head_commit()
    if local is None:
        raise TransportError("nothing to push: master has no commits")
    client, path = get_client(url, credential)

    def update_refs(remote_refs):
        remote = remote_refs.get(BRANCH)
        if (
            not force
            and remote not in (None, ZERO_SHA, local)
            and not is_ancestor(repo.object_store, remote, local)
        ):
            raise DivergedHistoryError(
                f"remote master {remote.decode()[:7]} is not an ancestor "
                f"of local master {local.decode()[:7]}"
            )
        if remote not in (None, ZERO_SHA, local):
            logger.debug("updating remote master %s -> %s%s",
                         remote.decode()[:7], local.decode()[:7],
                         " (forced)" if force else "")
        return {BRANCH: local}

    def gen_pack(have, want, *, ofs_delta=False, progress=progress):
        return repo.object_store.generate_pack_data(
            have, want, ofs_delta=ofs_delta, progress=progress,
        )

    logger.debug("pushing master %s to %s", local.decode()[:7], url)
    try:
        result = client.send_pack(path, update_refs, gen_pack, progress=progress)
    except _TRANSPORT_ERRORS as exc:
        raise TransportError(f"error pushing to {url!r}: {exc}") from exc

    status = getattr(result, "ref_status", None) or {}
    failures = {ref: msg for ref, msg in status.items() if msg}
    if failures:
        msg = failures.get(BRANCH) or next(iter(failures.values()))
        if "non-fast-forward" in msg or "fetch first" in msg:
            raise DivergedHistoryError(f"remote rejected push: {msg}")
        raise TransportError(f"remote rejected push: {msg}")

    repo.refs[f"refs/remotes/{REMOTE_NAME}/master".encode()] = local
    return local
