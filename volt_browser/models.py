from __future__ import annotations
"""Data models representing S3 listings and transfers."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass
class Credentials:
    """Connection settings handed to the storage backend."""

    access_key_id: str
    secret_access_key: str
    region: str
    bucket: str
    endpoint_url: Optional[str] = None


@dataclass
class FileEntry:
    """A single (non-folder) object in the bucket."""

    key: str
    size: Optional[int] = None
    last_modified: object = None
    storage_class: Optional[str] = None


@dataclass
class FolderEntry:
    """A common prefix standing in for a folder."""

    prefix: str


@dataclass
class FileListing:
    """Represents the listing result for one prefix."""

    prefix: str = ""
    files: list[FileEntry] = field(default_factory=list)
    folders: list[FolderEntry] = field(default_factory=list)


class TransferKind(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


class TransferStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStatus.COMPLETED, TransferStatus.FAILED, TransferStatus.CANCELED)


@dataclass
class TransferHandle:
    """Progress state for one upload or download."""

    transfer_id: str
    kind: TransferKind
    name: str = ""
    progress: float = 0.0
    status: TransferStatus = TransferStatus.PENDING
    error: Optional[str] = None
    finished_at: Optional[float] = None
