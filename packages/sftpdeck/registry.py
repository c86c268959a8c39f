"""Registry of live SSH sessions keyed by (host, user, port).

The registry is the only shared mutable state of the core. One
``asyncio.Lock`` guards the session map; a second lock per endpoint, kept
only while a handshake for it is running or queued, makes
session creation single-flight, so concurrent requests for a new endpoint
wait for the first handshake instead of opening duplicate connections.
Handshakes for different endpoints proceed in parallel.
"""

import asyncio
import logging
from typing import Optional

from .endpoint import Credentials, EndpointKey
from .exceptions import ConnectError
from .session import Session
from .transport import Connector, make_connector

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Lookup-or-create store of authenticated sessions."""

    def __init__(self, connector: Optional[Connector] = None, connect_timeout: float = 10.0):
        """Initialize the registry.

        Args:
            connector: Coroutine opening a connection for an endpoint.
                Defaults to an asyncssh connector without host key checking.
            connect_timeout: Handshake/authentication timeout in seconds
        """
        self._connector = connector or make_connector()
        self._connect_timeout = connect_timeout
        self._sessions: dict[EndpointKey, Session] = {}
        self._creation_locks: dict[EndpointKey, asyncio.Lock] = {}
        self._creation_waiters: dict[EndpointKey, int] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, endpoint: EndpointKey) -> bool:
        return endpoint in self._sessions

    async def _lookup(self, endpoint: EndpointKey) -> Optional[Session]:
        async with self._lock:
            session = self._sessions.get(endpoint)
            if session is not None and session.alive:
                return session
            return None

    # The two helpers below never await, so the lock and its waiter count
    # change together within one step of the event loop.

    def _join_creation(self, endpoint: EndpointKey) -> asyncio.Lock:
        lock = self._creation_locks.get(endpoint)
        if lock is None:
            lock = self._creation_locks[endpoint] = asyncio.Lock()
        self._creation_waiters[endpoint] = self._creation_waiters.get(endpoint, 0) + 1
        return lock

    def _leave_creation(self, endpoint: EndpointKey) -> None:
        remaining = self._creation_waiters.pop(endpoint) - 1
        if remaining:
            self._creation_waiters[endpoint] = remaining
        else:
            del self._creation_locks[endpoint]

    @property
    def pending_creations(self) -> int:
        """Number of endpoints with a handshake in progress or queued."""
        return len(self._creation_locks)

    async def acquire(self, endpoint: EndpointKey, credentials: Credentials) -> Session:
        """Return the live session for an endpoint, connecting if there is none.

        A registered session is returned as-is: it is not health-checked and
        a broken one is only discovered when an operation on it fails.

        Raises:
            ConnectError: If the handshake or authentication fails or times out.
                Nothing is registered in that case.
        """
        session = await self._lookup(endpoint)
        if session is not None:
            return session

        creation_lock = self._join_creation(endpoint)
        try:
            async with creation_lock:
                # Another caller may have finished connecting while we waited
                session = await self._lookup(endpoint)
                if session is not None:
                    return session

                try:
                    connection = await asyncio.wait_for(
                        self._connector(endpoint, credentials, self._connect_timeout),
                        timeout=self._connect_timeout
                    )
                except asyncio.TimeoutError:
                    raise ConnectError(
                        f"Connection to {endpoint} timed out after {self._connect_timeout}s",
                        host=endpoint.host,
                        user=endpoint.user,
                        port=endpoint.port
                    )
                except ConnectError:
                    logger.warning(f"SSH connection to {endpoint} failed")
                    raise

                session = Session(endpoint=endpoint, connection=connection)
                async with self._lock:
                    stale = self._sessions.get(endpoint)
                    self._sessions[endpoint] = session
        finally:
            self._leave_creation(endpoint)

        if stale is not None:
            await self._close_quietly(stale)
        logger.info(f"Registered session for {endpoint}")
        return session

    async def release(self, endpoint: EndpointKey) -> bool:
        """Close and forget the session for an endpoint.

        Returns:
            True if a session was closed, False if none was registered
        """
        async with self._lock:
            session = self._sessions.pop(endpoint, None)

        if session is None:
            return False

        await self._close_quietly(session)
        logger.info(f"SSH connection closed for {endpoint} after {session.uptime_seconds:.0f}s")
        return True

    async def evict(self, session: Session) -> bool:
        """Forget a failed session if it is still the registered one.

        Returns:
            True if the session was removed from the registry
        """
        async with self._lock:
            if self._sessions.get(session.endpoint) is not session:
                return False
            del self._sessions[session.endpoint]

        await self._close_quietly(session)
        logger.warning(f"Evicted failed session for {session.endpoint}")
        return True

    async def sweep(self) -> None:
        """Close every registered session; individual failures are only logged."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.warning(f"Error closing connection to {session.endpoint}: {e}")

        if sessions:
            logger.info(f"Closed {len(sessions)} SSH session(s)")

    async def _close_quietly(self, session: Session) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing connection to {session.endpoint}: {e}")
