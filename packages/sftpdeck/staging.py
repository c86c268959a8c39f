"""Scoped local staging files between HTTP bodies and SFTP transfers."""

import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from .exceptions import LocalResourceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def staged_file(
    staging_dir: Optional[Union[str, Path]] = None,
    prefix: str = "sftpdeck_"
) -> AsyncIterator[Path]:
    """Create an empty temporary file and remove it on every exit path.

    Args:
        staging_dir: Directory for the file (system temp dir if None)
        prefix: File name prefix

    Yields:
        Path of the staging file

    Raises:
        LocalResourceError: If the file cannot be created or removed
    """
    try:
        fd, name = tempfile.mkstemp(prefix=prefix, dir=staging_dir)
        os.close(fd)
    except OSError as e:
        raise LocalResourceError(f"Failed to create staging file: {e}")

    path = Path(name)
    cleanup_error: Optional[OSError] = None
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove staging file {path}: {e}")
            cleanup_error = e

    if cleanup_error is not None:
        raise LocalResourceError(
            f"Failed to remove staging file: {cleanup_error}", path=str(path)
        )
