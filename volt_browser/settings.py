from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import dataclass
import json
from pathlib import Path

DEFAULT_MULTIPART_THRESHOLD = 8 * 1024 * 1024
DEFAULT_MULTIPART_CHUNK_SIZE = 8 * 1024 * 1024
DEFAULT_MAX_CONCURRENCY = 4


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    auto_connect: bool = True
    transfer_retention_seconds: int = 3
    upload_multipart_threshold: int = DEFAULT_MULTIPART_THRESHOLD
    upload_chunk_size: int = DEFAULT_MULTIPART_CHUNK_SIZE
    upload_max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    presigned_url_expiry: int = 3600


_POSITIVE_INT_FIELDS = (
    "transfer_retention_seconds",
    "upload_multipart_threshold",
    "upload_chunk_size",
    "upload_max_concurrency",
    "presigned_url_expiry",
)


def _positive_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0:
        return default
    return number


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".volt_browser_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        defaults = AppSettings()
        values = {
            name: _positive_int(data.get(name), getattr(defaults, name))
            for name in _POSITIVE_INT_FIELDS
        }
        auto_connect = data.get("auto_connect", defaults.auto_connect)
        if not isinstance(auto_connect, bool):
            auto_connect = defaults.auto_connect
        return AppSettings(auto_connect=auto_connect, **values)

    def save(self, settings: AppSettings) -> None:
        payload: dict[str, object] = {"auto_connect": bool(settings.auto_connect)}
        for name in _POSITIVE_INT_FIELDS:
            payload[name] = max(int(getattr(settings, name)), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
