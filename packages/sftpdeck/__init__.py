"""sftpdeck - remote file management over SSH/SFTP.

Multiplexes file operations from many concurrent web requests over one
long-lived SSH session per (host, user, port):
- Sessions are created lazily and shared through a SessionRegistry
- Listing, reading, writing, uploading, renaming and unlinking use SFTP
- Recursive delete, copy, move and chmod/chown run on the remote shell
- Every operation returns one OperationResult envelope
"""

from .endpoint import Credentials, EndpointKey, join_path
from .manager import FileManager
from .models import OperationResult, PermissionChange, RemoteFileEntry
from .registry import SessionRegistry

__version__ = "1.0.0"

__all__ = [
    "Credentials",
    "EndpointKey",
    "FileManager",
    "OperationResult",
    "PermissionChange",
    "RemoteFileEntry",
    "SessionRegistry",
    "join_path",
]
