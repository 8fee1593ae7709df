"""SSH identities for talking to the remote.

A :class:`CredentialProvider` turns some source of key material into a
:class:`Credential` once per session.  Providers are injected into
:meth:`gitfs.GitFS.open`; the default reads ``~/.ssh/id_rsa``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

import paramiko
from paramiko.pkey import UnknownKeyType

from .exceptions import CredentialError

__all__ = [
    "AnonymousCredentials",
    "Credential",
    "CredentialProvider",
    "DEFAULT_KEY_PATH",
    "SSHKeyCredentials",
    "SSH_USER",
]

SSH_USER = "git"
DEFAULT_KEY_PATH = os.path.join("~", ".ssh", "id_rsa")


@dataclass(frozen=True)
class Credential:
    """Resolved SSH identity.

    Attributes:
        username: Remote user used when the URL does not name one.
        pkey: Parsed private key, or ``None`` to let the transport fall
            back to its own defaults (agent, ssh config, local paths).
        key_filename: Where *pkey* was read from, for diagnostics.
    """

    username: str = SSH_USER
    pkey: paramiko.PKey | None = None
    key_filename: str | None = None

    def __repr__(self) -> str:
        if self.pkey is None:
            return f"Credential(username={self.username!r})"
        return (f"Credential(username={self.username!r}, "
                f"key={self.pkey.get_name()} {self.pkey.fingerprint})")


class CredentialProvider(Protocol):
    """Anything that can produce a :class:`Credential`."""

    def resolve(self) -> Credential: ...


class SSHKeyCredentials:
    """Load a private key file and bind it to the conventional ``git`` user."""

    def __init__(
        self,
        path: str | os.PathLike | None = None,
        *,
        username: str = SSH_USER,
        passphrase: str | None = None,
    ):
        self.path = os.path.expanduser(os.fspath(path if path is not None else DEFAULT_KEY_PATH))
        self.username = username
        self._passphrase = passphrase

    def __repr__(self) -> str:
        return f"SSHKeyCredentials({self.path!r})"

    def _password(self) -> bytes | None:
        if self._passphrase is None:
            return None
        return self._passphrase.encode()

    def resolve(self) -> Credential:
        try:
            pkey = paramiko.PKey.from_path(self.path, self._password())
        except OSError as exc:
            raise CredentialError(f"error reading private key {self.path!r}") from exc
        except (paramiko.SSHException, UnknownKeyType, ValueError) as exc:
            raise CredentialError(f"error parsing private key {self.path!r}") from exc
        except TypeError as exc:
            # cryptography signals an encrypted key loaded without a password
            if self._passphrase is not None:
                raise
            raise CredentialError(
                f"private key {self.path!r} is encrypted and no passphrase was given"
            ) from exc
        return Credential(username=self.username, pkey=pkey, key_filename=self.path)


class AnonymousCredentials:
    """Provide no key material.

    Suitable for local repository paths and for hosts reachable through
    an ssh-agent.
    """

    def __init__(self, *, username: str = SSH_USER):
        self.username = username

    def __repr__(self) -> str:
        return "AnonymousCredentials()"

    def resolve(self) -> Credential:
        return Credential(username=self.username)
