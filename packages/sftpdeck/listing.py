"""Directory listing normalization.

Turns raw SFTP ``readdir`` records (``filename``, ``longname`` and an
``attrs`` object with ``size`` and ``mtime``) into ``RemoteFileEntry``
models.

The long name is the ``ls -l`` style line the server renders for display,
e.g. ``drwxr-xr-x    2 www-data www-data     4096 Nov 14 22:13 wp-content``.
Its layout is not standardized, so only the leading mode string and the
owner/group tokens are read from it, and a short line degrades to
``"unknown"`` owner/group instead of failing the listing.
"""

from datetime import datetime, timezone
from typing import Any, Iterable

from .endpoint import join_path
from .exceptions import MalformedResponseError
from .models import FilePermissions, RemoteFileEntry

UNKNOWN = "unknown"

# Returned by most servers but never shown
_SKIPPED_NAMES = (".", "..")


def format_timestamp(epoch_seconds: float) -> str:
    """Render Unix epoch seconds as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_permissions(longname: str) -> FilePermissions:
    """Read owner r/w/x bits and owner/group names from a long-format line."""
    tokens = longname.split()
    return FilePermissions(
        read=longname[1:2] == "r",
        write=longname[2:3] == "w",
        execute=longname[3:4] == "x",
        owner=tokens[2] if len(tokens) > 2 else UNKNOWN,
        group=tokens[3] if len(tokens) > 3 else UNKNOWN,
    )


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def normalize_entry(record: Any, parent_path: str) -> RemoteFileEntry:
    """Convert one raw directory record into a RemoteFileEntry.

    Args:
        record: Object with ``filename``, ``longname`` and ``attrs``
        parent_path: Directory the record was listed from

    Returns:
        The normalized entry

    Raises:
        MalformedResponseError: If the record has no usable name or long name
    """
    name = _as_text(getattr(record, "filename", None))
    longname = _as_text(getattr(record, "longname", None))

    if not isinstance(name, str) or not name:
        raise MalformedResponseError(f"Listing record without a file name in {parent_path}")
    if not isinstance(longname, str) or not longname:
        raise MalformedResponseError(f"Listing record for {name!r} has no long-format attributes")

    attrs = getattr(record, "attrs", None)
    is_directory = longname[0] == "d"

    size = getattr(attrs, "size", None) or 0
    mtime = getattr(attrs, "mtime", None) or 0

    return RemoteFileEntry(
        name=name,
        kind="directory" if is_directory else "file",
        size=0 if is_directory else size,
        modified=format_timestamp(mtime),
        path=join_path(parent_path, name),
        permissions=parse_permissions(longname),
    )


def normalize_listing(records: Iterable[Any], parent_path: str) -> list[RemoteFileEntry]:
    """Normalize a whole ``readdir`` result, keeping the server's order."""
    entries = []
    for record in records:
        if _as_text(getattr(record, "filename", None)) in _SKIPPED_NAMES:
            continue
        entries.append(normalize_entry(record, parent_path))
    return entries
