from __future__ import annotations
"""In-memory state for the active bucket and directory."""
from dataclasses import dataclass

SEPARATOR = "/"


def normalize_prefix(path: str) -> str:
    """Return ``path`` as a folder prefix: empty or ending in the separator."""

    cleaned = (path or "").lstrip(SEPARATOR)
    if cleaned and not cleaned.endswith(SEPARATOR):
        cleaned += SEPARATOR
    return cleaned


@dataclass
class Session:
    """Holds the connected bucket and the current folder prefix."""

    bucket: str | None = None
    current_path: str = ""

    @property
    def is_connected(self) -> bool:
        return self.bucket is not None

    def navigate(self, path: str) -> None:
        self.current_path = normalize_prefix(path)

    def reset(self) -> None:
        self.bucket = None
        self.current_path = ""
