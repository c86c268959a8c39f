"""Remote file operations.

Each operation is a small object whose ``run`` talks to one Session through
either the SFTP channel or the remote shell, and whose ``execute`` turns the
outcome into an OperationResult.

SFTP has no recursive delete, copy or cross-directory move primitive, so
directory deletion, copy and move run ``rm``/``cp``/``mv`` on the remote
shell instead. Every shell argument goes through ``shlex`` quoting and path
operands follow ``--``.
"""

import asyncio
import logging
import posixpath
import shlex
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, AsyncIterable, Optional, Sequence, Union

import asyncssh

from .endpoint import join_path
from .exceptions import (
    CommandError,
    LocalResourceError,
    NonAtomicMoveError,
    OperationTimeoutError,
    SessionLostError,
    SftpDeckError,
    SubprotocolError,
)
from .listing import normalize_listing
from .models import OperationResult, PermissionChange
from .session import Session
from .staging import staged_file

logger = logging.getLogger(__name__)

# SFTP status codes meaning the channel itself is gone
_SFTP_LOST_ERRORS = (asyncssh.SFTPConnectionLost, asyncssh.SFTPNoConnection)

# Failures of the SSH transport rather than of one request
_TRANSPORT_ERRORS = (asyncssh.DisconnectError, asyncssh.ChannelOpenError, ConnectionError)

StagingDir = Optional[Union[str, Path]]


def _decode(value: Union[str, bytes, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _sftp_error(message: str, operation: str, path: str, exc: asyncssh.SFTPError) -> SftpDeckError:
    if isinstance(exc, _SFTP_LOST_ERRORS):
        return SessionLostError(f"Connection lost during {operation}: {exc.reason}")
    return SubprotocolError(f"{message}: {exc.reason}", operation=operation, path=path)


async def open_sftp(session: Session) -> Any:
    """Return the session's SFTP channel, mapping open failures to sftpdeck errors."""
    try:
        return await session.sftp()
    except asyncssh.SFTPError as e:
        raise _sftp_error("SFTP error", "sftp", "", e)
    except asyncssh.ChannelOpenError as e:
        raise SubprotocolError(f"SFTP error: {e.reason}", operation="sftp")


async def run_shell(session: Session, *commands: Sequence[str]) -> str:
    """Run one or more argument vectors on the remote shell, chained with ``&&``.

    Returns:
        The captured standard output

    Raises:
        CommandError: If the command line exits with a nonzero status,
            even when standard output was produced
    """
    command = " && ".join(shlex.join(argv) for argv in commands)
    result = await session.run(command)

    returncode = result.returncode
    if returncode is None:
        returncode = -1
    if returncode != 0:
        raise CommandError(returncode, _decode(result.stderr).rstrip(), command=command)

    return _decode(result.stdout)


class RemoteOperation(ABC):
    """Base class for one logical file operation against a Session."""

    name = "operation"

    @abstractmethod
    async def run(self, session: Session) -> Any:
        """Perform the operation and return its payload.

        Raises:
            SftpDeckError: On any remote or local failure
        """
        pass

    async def execute(self, session: Session, timeout: Optional[float] = None) -> OperationResult:
        """Run the operation under the session lock and wrap the outcome.

        Never raises: every failure becomes an unsuccessful OperationResult.
        A timeout or a lost transport marks the session dead so the caller
        can evict it.
        """
        async with session.lock:
            try:
                if timeout:
                    data = await asyncio.wait_for(self.run(session), timeout=timeout)
                else:
                    data = await self.run(session)
            except asyncio.TimeoutError:
                session.mark_dead()
                error = OperationTimeoutError(
                    f"{self.name} timed out after {timeout}s on {session.endpoint}",
                    timeout=timeout or 0.0
                )
                logger.warning(str(error))
                return OperationResult.from_error(error)
            except SessionLostError as e:
                session.mark_dead()
                logger.warning(f"{self.name} lost connection to {session.endpoint}: {e}")
                return OperationResult.from_error(e)
            except _TRANSPORT_ERRORS as e:
                session.mark_dead()
                error = SessionLostError(
                    f"Connection to {session.endpoint} lost: {e}",
                    host=session.endpoint.host,
                    user=session.endpoint.user,
                    port=session.endpoint.port
                )
                logger.warning(f"{self.name} failed: {error}")
                return OperationResult.from_error(error)
            except SftpDeckError as e:
                logger.warning(f"{self.name} failed on {session.endpoint}: {e}")
                return OperationResult.from_error(e)
            except Exception as e:
                logger.exception(f"Unexpected error in {self.name} on {session.endpoint}")
                return OperationResult.fail(f"Unexpected error: {e}", "INTERNAL_ERROR")

        return OperationResult.ok(data)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


# ============================================================================
# SFTP operations
# ============================================================================

class ListDirectory(RemoteOperation):
    """List a directory; entries keep the order the server returned."""

    name = "list"

    def __init__(self, path: str):
        self.path = path

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        try:
            records = await sftp.readdir(self.path)
        except asyncssh.SFTPError as e:
            raise _sftp_error("Failed to list directory", self.name, self.path, e)
        return normalize_listing(records, self.path)


class CreateDirectory(RemoteOperation):
    name = "mkdir"

    def __init__(self, parent: str, folder_name: str):
        self.parent = parent
        self.folder_name = folder_name
        self.path = join_path(parent, folder_name)

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        try:
            await sftp.mkdir(self.path)
        except asyncssh.SFTPError as e:
            raise _sftp_error("Failed to create folder", self.name, self.path, e)
        return {"name": self.folder_name, "path": self.path, "type": "directory"}


class ReadFile(RemoteOperation):
    """Fetch a remote file through a local staging file and decode it as text."""

    name = "read"

    def __init__(self, path: str, staging_dir: StagingDir = None, encoding: str = "utf-8"):
        self.path = path
        self.staging_dir = staging_dir
        self.encoding = encoding

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        async with staged_file(self.staging_dir) as local_path:
            try:
                await sftp.get(self.path, str(local_path))
            except asyncssh.SFTPError as e:
                raise _sftp_error("Failed to read file", self.name, self.path, e)

            try:
                data = await asyncio.to_thread(local_path.read_bytes)
            except OSError as e:
                raise LocalResourceError(f"Failed to read file content: {e}", path=str(local_path))

        return data.decode(self.encoding, errors="replace")


class WriteFile(RemoteOperation):
    """Store text content at a remote path through a local staging file."""

    name = "write"

    def __init__(self, path: str, content: str, staging_dir: StagingDir = None, encoding: str = "utf-8"):
        self.path = path
        self.content = content
        self.staging_dir = staging_dir
        self.encoding = encoding

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        async with staged_file(self.staging_dir) as local_path:
            try:
                await asyncio.to_thread(local_path.write_bytes, self.content.encode(self.encoding))
            except OSError as e:
                raise LocalResourceError(f"Failed to stage file content: {e}", path=str(local_path))

            try:
                await sftp.put(str(local_path), self.path)
            except asyncssh.SFTPError as e:
                raise _sftp_error("Failed to save file", self.name, self.path, e)

        return {"path": self.path}


class UploadFile(RemoteOperation):
    """Stream binary chunks into a new file inside a remote directory."""

    name = "upload"

    def __init__(self, directory: str, filename: str, source: AsyncIterable[bytes]):
        self.directory = directory
        self.filename = filename
        self.path = join_path(directory, filename)
        self.source = source

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        size = 0
        try:
            async with sftp.open(self.path, "wb") as remote_file:
                async for chunk in self.source:
                    await remote_file.write(chunk)
                    size += len(chunk)
        except asyncssh.SFTPError as e:
            raise _sftp_error("Failed to upload file", self.name, self.path, e)

        return {"name": self.filename, "path": self.path, "size": size, "type": "file"}


class Rename(RemoteOperation):
    name = "rename"

    def __init__(self, old_path: str, new_path: str):
        self.old_path = old_path
        self.new_path = new_path

    @classmethod
    def within(cls, directory: str, old_name: str, new_name: str) -> "Rename":
        """Rename an entry without moving it out of ``directory``."""
        return cls(join_path(directory, old_name), join_path(directory, new_name))

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        try:
            await sftp.rename(self.old_path, self.new_path)
        except asyncssh.SFTPError as e:
            raise _sftp_error("Failed to rename", self.name, self.old_path, e)
        return {"oldPath": self.old_path, "newPath": self.new_path}


class DeleteFile(RemoteOperation):
    name = "unlink"

    def __init__(self, path: str):
        self.path = path

    async def run(self, session: Session) -> Any:
        sftp = await open_sftp(session)
        try:
            await sftp.remove(self.path)
        except asyncssh.SFTPError as e:
            raise _sftp_error("Failed to delete file", self.name, self.path, e)
        return {"path": self.path}


# ============================================================================
# Shell operations
# ============================================================================

class DeleteDirectory(RemoteOperation):
    name = "rmdir"

    def __init__(self, path: str):
        self.path = path

    async def run(self, session: Session) -> Any:
        await run_shell(session, ["rm", "-rf", "--", self.path])
        return {"path": self.path}


class ChangePermissions(RemoteOperation):
    """chmod, then chown when an owner or group is given, as one command line.

    The same r/w/x digit is applied to owner, group and others.
    """

    name = "chmod"

    def __init__(self, path: str, change: PermissionChange):
        self.path = path
        self.change = change

    def commands(self) -> list[list[str]]:
        commands = [["chmod", self.change.mode, "--", self.path]]

        owner, group = self.change.owner, self.change.group
        if owner and group:
            commands.append(["chown", f"{owner}:{group}", "--", self.path])
        elif owner:
            commands.append(["chown", owner, "--", self.path])
        elif group:
            commands.append(["chown", f":{group}", "--", self.path])
        return commands

    async def run(self, session: Session) -> Any:
        await run_shell(session, *self.commands())
        return {
            "path": self.path,
            "mode": self.change.mode,
            "permissions": self.change.model_dump(),
        }


class Copy(RemoteOperation):
    name = "copy"

    def __init__(self, source_path: str, destination_path: str):
        self.source_path = source_path
        self.destination_path = destination_path

    async def run(self, session: Session) -> Any:
        await run_shell(session, ["cp", "-r", "--", self.source_path, self.destination_path])
        return {"sourcePath": self.source_path, "destinationPath": self.destination_path}


class Move(RemoteOperation):
    """Move with ``mv`` after confirming it will be a single rename(2).

    ``mv`` only renames atomically within one filesystem; across devices it
    copies and then deletes, leaving a window where both paths exist. The
    device ids of the source and of the destination's parent directory are
    compared first and a cross-device move is refused unless
    ``require_atomic`` is False. ``mv -T`` keeps the destination the final
    path, so an existing directory there is never entered and the parent
    comparison stays the one that matters.
    """

    name = "move"

    def __init__(self, source_path: str, destination_path: str, require_atomic: bool = True):
        self.source_path = source_path
        self.destination_path = destination_path
        self.require_atomic = require_atomic

    @property
    def destination_parent(self) -> str:
        return posixpath.dirname(self.destination_path.rstrip("/")) or "/"

    async def _same_filesystem(self, session: Session) -> bool:
        output = await run_shell(
            session, ["stat", "-c", "%d", "--", self.source_path, self.destination_parent]
        )
        devices = output.split()
        return len(devices) == 2 and devices[0] == devices[1]

    async def run(self, session: Session) -> Any:
        if self.require_atomic and not await self._same_filesystem(session):
            raise NonAtomicMoveError(
                f"Refusing to move {self.source_path} to {self.destination_path}: "
                "source and destination are on different filesystems"
            )

        # -T: the destination is the final path, never a directory to move into
        await run_shell(session, ["mv", "-T", "--", self.source_path, self.destination_path])
        return {"sourcePath": self.source_path, "destinationPath": self.destination_path}
