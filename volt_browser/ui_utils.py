from __future__ import annotations
"""UI-agnostic helpers for formatting, filtering and navigation."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata, version
from typing import Iterable, TypeVar

from .models import FileEntry, FolderEntry, TransferHandle, TransferKind, TransferStatus

DIST_NAME = "volt-browser"
SIZE_UNITS = ("B", "KB", "MB", "GB")
SIZE_UNIT_FACTORS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}

EntryT = TypeVar("EntryT", FileEntry, FolderEntry)


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str
    homepage: str | None
    repository: str | None
    author: str | None


@dataclass(frozen=True)
class Breadcrumb:
    label: str
    path: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    try:
        distribution_metadata = metadata(dist_name)
        package_version = version(dist_name)
    except PackageNotFoundError:
        return PackageInfo(
            name="Volt Browser",
            version="",
            summary="Browse, upload and download files stored in an S3 bucket.",
            homepage=None,
            repository=None,
            author=None,
        )
    summary = distribution_metadata.get("Summary") or ""
    author = distribution_metadata.get("Author") or distribution_metadata.get("Author-email")
    homepage = distribution_metadata.get("Home-page")
    repository = None
    for entry in distribution_metadata.get_all("Project-URL") or []:
        label, _, link = entry.partition(",")
        label = label.strip().lower()
        url = link.strip()
        if label == "repository":
            repository = url
        elif label == "homepage" and not homepage:
            homepage = url
    return PackageInfo(
        name=distribution_metadata.get("Name"),
        version=package_version,
        summary=summary,
        homepage=homepage or None,
        repository=repository,
        author=author or None,
    )


def split_size_bytes(size_bytes: int) -> tuple[str, str]:
    if size_bytes <= 0:
        return ("1", "MB")
    for unit in ("GB", "MB", "KB"):
        factor = SIZE_UNIT_FACTORS[unit]
        if size_bytes >= factor and size_bytes % factor == 0:
            return (str(size_bytes // factor), unit)
    return (str(size_bytes), "B")


def parse_size_bytes(value: str, unit: str) -> int | None:
    try:
        amount = int(value.strip())
    except (TypeError, ValueError):
        return None
    if amount <= 0:
        return None
    factor = SIZE_UNIT_FACTORS.get(unit.strip().upper())
    if not factor:
        return None
    return amount * factor


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    suffixes = ["B", "KB", "MB", "GB", "TB"]
    value = float(max(size, 0))
    for suffix in suffixes:
        if value < 1024 or suffix == suffixes[-1]:
            return f"{value:.1f} {suffix}" if suffix != "B" else f"{int(value)} {suffix}"
        value /= 1024
    return f"{size} B"


def format_last_modified(last_modified: object) -> str:
    if not last_modified:
        return "-"
    if isinstance(last_modified, datetime):
        return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or last_modified.isoformat()
    try:
        return last_modified.strftime("%Y-%m-%d %H:%M:%S %Z").strip() or str(last_modified)
    except AttributeError:
        return str(last_modified)


def _entry_text(entry: FileEntry | FolderEntry) -> str:
    return entry.key if isinstance(entry, FileEntry) else entry.prefix


def filter_entries(entries: Iterable[EntryT], query: str) -> list[EntryT]:
    """Keep entries whose key/prefix contains ``query``, ignoring case."""

    needle = (query or "").lower()
    return [entry for entry in entries if needle in _entry_text(entry).lower()]


def relative_name(value: str, base_prefix: str) -> str:
    name = value[len(base_prefix):] if base_prefix and value.startswith(base_prefix) else value
    return name.rstrip("/") or value


def build_breadcrumbs(current_path: str) -> list[Breadcrumb]:
    crumbs = [Breadcrumb(label="Home", path="")]
    path = ""
    for segment in current_path.split("/"):
        if not segment:
            continue
        path += segment + "/"
        crumbs.append(Breadcrumb(label=segment, path=path))
    return crumbs


def parent_path(current_path: str) -> str:
    stripped = current_path.rstrip("/")
    if "/" not in stripped:
        return ""
    return stripped.rsplit("/", 1)[0] + "/"


def format_transfer(handle: TransferHandle) -> str:
    verb = "Uploading" if handle.kind == TransferKind.UPLOAD else "Downloading"
    label = handle.name or handle.transfer_id
    if handle.status == TransferStatus.COMPLETED:
        return f"{label}: done"
    if handle.status == TransferStatus.FAILED:
        return f"{label}: failed" + (f" ({handle.error})" if handle.error else "")
    if handle.status == TransferStatus.CANCELED:
        return f"{label}: canceled"
    if handle.status == TransferStatus.PENDING:
        return f"{verb} {label}: waiting"
    return f"{verb} {label}: {handle.progress:.0%}"
