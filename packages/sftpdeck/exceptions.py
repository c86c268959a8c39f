"""Custom exceptions for sftpdeck."""


class SftpDeckError(Exception):
    """Base exception for sftpdeck."""

    code = "ERROR"


class ConfigurationError(SftpDeckError):
    """Raised when configuration is invalid or missing."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, missing_key: str = ""):
        super().__init__(message)
        self.missing_key = missing_key


class ConnectError(SftpDeckError):
    """Raised when the SSH handshake or authentication fails."""

    code = "CONNECT_ERROR"

    def __init__(self, message: str, host: str = "", user: str = "", port: int = 0):
        super().__init__(message)
        self.host = host
        self.user = user
        self.port = port


class SessionLostError(ConnectError):
    """Raised when a registered session's transport drops mid-operation."""

    code = "SESSION_LOST"


class SubprotocolError(SftpDeckError):
    """Raised when an SFTP request fails on the remote side."""

    code = "SUBPROTOCOL_ERROR"

    def __init__(self, message: str, operation: str = "", path: str = ""):
        super().__init__(message)
        self.operation = operation
        self.path = path


class CommandError(SftpDeckError):
    """Raised when a remote shell command exits with a nonzero status."""

    code = "COMMAND_ERROR"

    def __init__(self, returncode: int, stderr: str = "", command: str = ""):
        super().__init__(f"Command failed with code {returncode}: {stderr}")
        self.returncode = returncode
        self.stderr = stderr
        self.command = command


class MalformedResponseError(SftpDeckError):
    """Raised when a directory listing record cannot be parsed at all."""

    code = "MALFORMED_RESPONSE"


class LocalResourceError(SftpDeckError):
    """Raised when a local staging buffer cannot be created, used or removed."""

    code = "LOCAL_RESOURCE_ERROR"

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class OperationTimeoutError(SftpDeckError):
    """Raised when a single remote operation exceeds its time budget."""

    code = "TIMEOUT"

    def __init__(self, message: str, timeout: float = 0.0):
        super().__init__(message)
        self.timeout = timeout


class NonAtomicMoveError(SftpDeckError):
    """Raised when a move would cross filesystems and degrade to copy+delete."""

    code = "NOT_ATOMIC"
