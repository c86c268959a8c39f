"""Configuration for sftpdeck."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class SftpDeckConfig:
    """Configuration for the file manager core and its HTTP server."""
    # HTTP server
    host: str = "127.0.0.1"
    port: int = 3001

    # Timeouts
    connect_timeout: float = 10.0
    operation_timeout: float = 60.0

    # SSH
    known_hosts_path: Optional[Path] = None

    # Local staging buffers
    staging_dir: Path = Path(tempfile.gettempdir())

    # Session eviction after transport loss or timeout
    evict_on_failure: bool = True

    log_level: str = "INFO"


def _get_float(key: str, default: str) -> float:
    raw = os.getenv(key, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}", missing_key=key)


def _get_int(key: str, default: str) -> int:
    raw = os.getenv(key, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}", missing_key=key)


def get_config() -> SftpDeckConfig:
    """Load configuration from environment.

    Optional environment variables:
        SFTPDECK_HOST: HTTP bind address (default: 127.0.0.1)
        SFTPDECK_PORT: HTTP port (default: 3001)
        SFTPDECK_CONNECT_TIMEOUT: SSH handshake timeout in seconds (default: 10.0)
        SFTPDECK_OPERATION_TIMEOUT: Per-operation timeout in seconds (default: 60.0)
        SFTPDECK_KNOWN_HOSTS: known_hosts file; empty disables host key checking
        SFTPDECK_STAGING_DIR: Directory for temporary staging files (default: system temp)
        SFTPDECK_EVICT_ON_FAILURE: Drop sessions whose transport failed (default: true)
        SFTPDECK_LOG_LEVEL: Log level for the server (default: INFO)

    Returns:
        SftpDeckConfig with loaded values

    Raises:
        ConfigurationError: If a value cannot be parsed
    """
    # Load .env file if it exists
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    # Then whatever .env python-dotenv's own search finds
    load_dotenv()

    known_hosts = os.getenv("SFTPDECK_KNOWN_HOSTS", "").strip()
    staging_dir = os.getenv("SFTPDECK_STAGING_DIR", "").strip()

    return SftpDeckConfig(
        host=os.getenv("SFTPDECK_HOST", "127.0.0.1"),
        port=_get_int("SFTPDECK_PORT", "3001"),
        connect_timeout=_get_float("SFTPDECK_CONNECT_TIMEOUT", "10.0"),
        operation_timeout=_get_float("SFTPDECK_OPERATION_TIMEOUT", "60.0"),
        known_hosts_path=Path(known_hosts).expanduser() if known_hosts else None,
        staging_dir=Path(staging_dir).expanduser() if staging_dir else Path(tempfile.gettempdir()),
        evict_on_failure=os.getenv("SFTPDECK_EVICT_ON_FAILURE", "true").strip().lower() in _TRUE_VALUES,
        log_level=os.getenv("SFTPDECK_LOG_LEVEL", "INFO").upper(),
    )


def validate_config(config: SftpDeckConfig) -> None:
    """Validate timeouts and configured paths.

    Args:
        config: The configuration to validate

    Raises:
        ConfigurationError: If a value is out of range or a path doesn't exist
    """
    if config.connect_timeout <= 0:
        raise ConfigurationError(
            f"Connect timeout must be positive, got {config.connect_timeout}",
            missing_key="SFTPDECK_CONNECT_TIMEOUT"
        )

    if config.operation_timeout <= 0:
        raise ConfigurationError(
            f"Operation timeout must be positive, got {config.operation_timeout}",
            missing_key="SFTPDECK_OPERATION_TIMEOUT"
        )

    if config.known_hosts_path is not None and not config.known_hosts_path.exists():
        raise ConfigurationError(
            f"known_hosts file not found at {config.known_hosts_path}. "
            "Unset SFTPDECK_KNOWN_HOSTS to disable host key checking.",
            missing_key="SFTPDECK_KNOWN_HOSTS"
        )

    if not config.staging_dir.is_dir():
        raise ConfigurationError(
            f"Staging directory not found at {config.staging_dir}",
            missing_key="SFTPDECK_STAGING_DIR"
        )
