"""Pydantic models for listing entries, permission changes and operation results."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import SftpDeckError


class FilePermissions(BaseModel):
    """Owner permission bits plus owner and group names of a remote entry."""
    read: bool = Field(description="Owner read bit")
    write: bool = Field(description="Owner write bit")
    execute: bool = Field(description="Owner execute bit")
    owner: str = Field(default="unknown", description="Owning user name")
    group: str = Field(default="unknown", description="Owning group name")


class RemoteFileEntry(BaseModel):
    """One entry of a remote directory listing."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(description="Entry name within its directory")
    kind: Literal["file", "directory"] = Field(alias="type", description="Entry type")
    size: int = Field(default=0, ge=0, description="Size in bytes (0 for directories)")
    modified: str = Field(description="Last modification time, ISO-8601 UTC")
    path: str = Field(description="Absolute remote path")
    permissions: FilePermissions


class PermissionChange(BaseModel):
    """Requested permission and ownership for a remote path.

    The read/write/execute bits are applied identically to owner, group
    and others.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        extra='ignore'
    )

    read: bool = False
    write: bool = False
    execute: bool = False
    owner: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z0-9_.][A-Za-z0-9_.-]*$",
        max_length=64,
        examples=["root", "www-data"]
    )
    group: Optional[str] = Field(
        default=None,
        pattern=r"^[A-Za-z0-9_.][A-Za-z0-9_.-]*$",
        max_length=64,
        examples=["root", "www-data"]
    )

    @property
    def mode_digit(self) -> int:
        mode = 0
        if self.read:
            mode += 4
        if self.write:
            mode += 2
        if self.execute:
            mode += 1
        return mode

    @property
    def mode(self) -> str:
        """Three-digit octal mode with the same bits for owner, group and others."""
        digit = self.mode_digit
        return f"{digit}{digit}{digit}"


class OperationResult(BaseModel):
    """Uniform result envelope returned by every file operation."""
    success: bool = Field(description="Whether the operation succeeded")
    data: Optional[Any] = Field(default=None, description="Operation payload")
    error: Optional[str] = Field(default=None, description="Human-readable error message")
    code: Optional[str] = Field(default=None, description="Machine-readable error code")

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str = "ERROR") -> "OperationResult":
        return cls(success=False, error=error, code=code)

    @classmethod
    def from_error(cls, error: SftpDeckError) -> "OperationResult":
        return cls.fail(str(error), error.code)

    def to_response(self) -> dict[str, Any]:
        """Serialize to the JSON shape sent to the web client."""
        if self.success:
            data = self.data
            if isinstance(data, BaseModel):
                data = data.model_dump(by_alias=True)
            elif isinstance(data, list):
                data = [
                    item.model_dump(by_alias=True) if isinstance(item, BaseModel) else item
                    for item in data
                ]
            return {"success": True, "data": data}
        return {"success": False, "error": self.error, "code": self.code}
