"""Caller-facing file manager.

``FileManager`` owns the SessionRegistry and exposes one coroutine per file
operation. Each call acquires (or reuses) the endpoint's session, executes
one RemoteOperation on it and returns an OperationResult. No exception
crosses this boundary, and nothing is retried here.
"""

import logging
from typing import AsyncIterable, Optional

from .config import SftpDeckConfig
from .endpoint import Credentials, EndpointKey
from .exceptions import ConnectError
from .models import OperationResult, PermissionChange
from .operations import (
    ChangePermissions,
    Copy,
    CreateDirectory,
    DeleteDirectory,
    DeleteFile,
    ListDirectory,
    Move,
    ReadFile,
    RemoteOperation,
    Rename,
    UploadFile,
    WriteFile,
)
from .registry import SessionRegistry
from .transport import Connector, make_connector

logger = logging.getLogger(__name__)


class FileManager:
    """Runs file operations for many endpoints over shared sessions."""

    def __init__(
        self,
        config: Optional[SftpDeckConfig] = None,
        connector: Optional[Connector] = None,
        registry: Optional[SessionRegistry] = None,
    ):
        """Initialize the file manager.

        Args:
            config: Configuration object. Defaults to built-in defaults.
            connector: Transport provider used by a newly created registry
            registry: Existing registry to share (connector is then ignored)
        """
        self._config = config or SftpDeckConfig()
        self.registry = registry or SessionRegistry(
            connector=connector or make_connector(self._config.known_hosts_path),
            connect_timeout=self._config.connect_timeout,
        )

    async def execute(
        self,
        endpoint: EndpointKey,
        credentials: Credentials,
        operation: RemoteOperation,
    ) -> OperationResult:
        """Run one operation against an endpoint.

        Connection failures come back with code CONNECT_ERROR; failures of the
        operation itself on a healthy connection carry the operation's code.
        """
        try:
            session = await self.registry.acquire(endpoint, credentials)
        except ConnectError as e:
            return OperationResult.from_error(e)
        except Exception as e:
            logger.exception(f"Unexpected error connecting to {endpoint}")
            return OperationResult.fail(f"Unexpected error: {e}", "INTERNAL_ERROR")

        result = await operation.execute(session, timeout=self._config.operation_timeout)

        if not session.alive and self._config.evict_on_failure:
            await self.registry.evict(session)

        return result

    async def list_directory(self, endpoint: EndpointKey, credentials: Credentials, path: str) -> OperationResult:
        return await self.execute(endpoint, credentials, ListDirectory(path))

    async def create_directory(
        self, endpoint: EndpointKey, credentials: Credentials, parent: str, folder_name: str
    ) -> OperationResult:
        return await self.execute(endpoint, credentials, CreateDirectory(parent, folder_name))

    async def read_file(self, endpoint: EndpointKey, credentials: Credentials, path: str) -> OperationResult:
        return await self.execute(
            endpoint, credentials, ReadFile(path, staging_dir=self._config.staging_dir)
        )

    async def write_file(
        self, endpoint: EndpointKey, credentials: Credentials, path: str, content: str
    ) -> OperationResult:
        return await self.execute(
            endpoint, credentials, WriteFile(path, content, staging_dir=self._config.staging_dir)
        )

    async def upload_file(
        self,
        endpoint: EndpointKey,
        credentials: Credentials,
        directory: str,
        filename: str,
        source: AsyncIterable[bytes],
    ) -> OperationResult:
        return await self.execute(endpoint, credentials, UploadFile(directory, filename, source))

    async def rename_item(
        self, endpoint: EndpointKey, credentials: Credentials, directory: str, old_name: str, new_name: str
    ) -> OperationResult:
        return await self.execute(endpoint, credentials, Rename.within(directory, old_name, new_name))

    async def delete_file(self, endpoint: EndpointKey, credentials: Credentials, path: str) -> OperationResult:
        return await self.execute(endpoint, credentials, DeleteFile(path))

    async def delete_directory(self, endpoint: EndpointKey, credentials: Credentials, path: str) -> OperationResult:
        return await self.execute(endpoint, credentials, DeleteDirectory(path))

    async def delete_item(
        self, endpoint: EndpointKey, credentials: Credentials, path: str, is_directory: bool
    ) -> OperationResult:
        if is_directory:
            return await self.delete_directory(endpoint, credentials, path)
        return await self.delete_file(endpoint, credentials, path)

    async def change_permissions(
        self, endpoint: EndpointKey, credentials: Credentials, path: str, change: PermissionChange
    ) -> OperationResult:
        return await self.execute(endpoint, credentials, ChangePermissions(path, change))

    async def copy_item(
        self, endpoint: EndpointKey, credentials: Credentials, source_path: str, destination_path: str
    ) -> OperationResult:
        return await self.execute(endpoint, credentials, Copy(source_path, destination_path))

    async def move_item(
        self, endpoint: EndpointKey, credentials: Credentials, source_path: str, destination_path: str
    ) -> OperationResult:
        return await self.execute(endpoint, credentials, Move(source_path, destination_path))

    async def disconnect(self, endpoint: EndpointKey) -> OperationResult:
        """Close the endpoint's session; NOT_FOUND if none was open."""
        if await self.registry.release(endpoint):
            return OperationResult.ok({"message": "Disconnected successfully"})
        return OperationResult.fail("No active connection found", "NOT_FOUND")

    async def shutdown(self) -> None:
        """Close every session (process shutdown)."""
        await self.registry.sweep()
