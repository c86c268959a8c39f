"""Authenticated SSH transport provider built on asyncssh."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import asyncssh

from .endpoint import Credentials, EndpointKey
from .exceptions import ConnectError

logger = logging.getLogger(__name__)

# Opens a live connection for (endpoint, credentials, timeout) or raises ConnectError
Connector = Callable[[EndpointKey, Credentials, float], Awaitable[Any]]


def load_client_key(endpoint: EndpointKey, credentials: Credentials) -> asyncssh.SSHKey:
    """Import the PEM/OpenSSH private key bytes supplied with a request."""
    try:
        return asyncssh.import_private_key(credentials.private_key, credentials.passphrase)
    except (asyncssh.KeyImportError, ValueError) as e:
        raise ConnectError(
            f"Invalid private key for {endpoint}: {e}",
            host=endpoint.host,
            user=endpoint.user,
            port=endpoint.port
        )


def make_connector(known_hosts_path: Optional[Path] = None) -> Connector:
    """Build the default connector.

    Args:
        known_hosts_path: known_hosts file to verify host keys against.
            None disables host key verification.

    Returns:
        Coroutine function opening an asyncssh client connection
    """
    known_hosts = str(known_hosts_path) if known_hosts_path else None

    async def connect(endpoint: EndpointKey, credentials: Credentials, timeout: float) -> Any:
        client_key = load_client_key(endpoint, credentials)
        try:
            connection = await asyncio.wait_for(
                asyncssh.connect(
                    endpoint.host,
                    port=endpoint.port,
                    username=endpoint.user,
                    client_keys=[client_key],
                    known_hosts=known_hosts,
                ),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            raise ConnectError(
                f"Connection to {endpoint} timed out after {timeout}s",
                host=endpoint.host,
                user=endpoint.user,
                port=endpoint.port
            )
        except (asyncssh.Error, OSError) as e:
            raise ConnectError(
                f"Could not connect to {endpoint}: {e}",
                host=endpoint.host,
                user=endpoint.user,
                port=endpoint.port
            )

        logger.info(f"SSH connection established to {endpoint}")
        return connection

    return connect
