"""Live SSH session wrapper."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from .endpoint import EndpointKey

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """An authenticated connection to one endpoint.

    Owned by the SessionRegistry. Operations borrow it for their duration
    and hold ``lock`` while they use its channels, so SFTP requests and
    shell commands on one connection never interleave.
    """
    endpoint: EndpointKey
    connection: Any
    created_at: float = field(default_factory=time.time)
    alive: bool = True
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    _sftp: Optional[Any] = field(default=None, repr=False)

    @property
    def uptime_seconds(self) -> float:
        return time.time() - self.created_at

    async def sftp(self) -> Any:
        """Return the session's SFTP channel, opening it on first use."""
        if self._sftp is None:
            self._sftp = await self.connection.start_sftp_client()
        return self._sftp

    async def run(self, command: str) -> Any:
        """Run a command line on the remote shell without raising on exit status."""
        return await self.connection.run(command, check=False)

    def mark_dead(self) -> None:
        self.alive = False

    async def close(self) -> None:
        """Close the SFTP channel and the connection."""
        self.alive = False
        sftp, self._sftp = self._sftp, None
        if sftp is not None:
            try:
                sftp.exit()
            except Exception as e:
                logger.debug(f"Error closing SFTP channel for {self.endpoint}: {e}")
        self.connection.close()
        await self.connection.wait_closed()
