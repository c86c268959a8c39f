"""Endpoint identity and credential material."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class EndpointKey:
    """Identity of one reusable SSH session.

    Key material is deliberately not part of the identity: two requests for
    the same host, user and port share a session even if they present
    different keys.
    """
    host: str
    user: str
    port: int = 22

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}"


@dataclass(frozen=True)
class Credentials:
    """Private key material used to authenticate a new session."""
    private_key: bytes = field(repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)


def join_path(base: str, name: str) -> str:
    """Join a remote directory path and a leaf name.

    This is the only way remote destination paths are built.
    """
    if not base.endswith("/"):
        base += "/"
    return base + name
