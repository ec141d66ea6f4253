from __future__ import annotations
"""Persistence for the remembered S3 connection."""
import json
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from .models import Credentials

SECRET_ENTRY = "default"


class KeychainStore:
    """Encapsulates OS keychain access for secrets."""

    def __init__(self, service_name: str = "volt-browser"):
        self._service_name = service_name

    def get_secret(self, entry: str) -> str:
        if not entry:
            return ""
        try:
            return keyring.get_password(self._service_name, entry) or ""
        except KeyringError:
            return ""

    def set_secret(self, entry: str, secret_key: str) -> None:
        if not entry:
            return
        if not secret_key:
            self.delete_secret(entry)
            return
        try:
            keyring.set_password(self._service_name, entry, secret_key)
        except KeyringError:
            return

    def delete_secret(self, entry: str) -> None:
        if not entry:
            return
        try:
            keyring.delete_password(self._service_name, entry)
        except KeyringError:
            return


class CredentialStorage:
    """JSON file for connection details, with the secret key kept in the keychain."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".volt_browser_credentials.json"
        self._path = Path(storage_path)
        self._keychain = keychain or KeychainStore()

    def load(self) -> Credentials | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict):
            return None
        try:
            access_key_id = data["access_key_id"]
            bucket = data["bucket"]
        except KeyError:
            return None

        return Credentials(
            access_key_id=access_key_id,
            secret_access_key=self._keychain.get_secret(SECRET_ENTRY),
            region=data.get("region") or "",
            bucket=bucket,
            endpoint_url=data.get("endpoint_url") or None,
        )

    def save(self, credentials: Credentials) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._keychain.set_secret(SECRET_ENTRY, credentials.secret_access_key)
        self._write_data(
            {
                "access_key_id": credentials.access_key_id,
                "region": credentials.region,
                "bucket": credentials.bucket,
                "endpoint_url": credentials.endpoint_url or "",
            }
        )

    def clear(self) -> None:
        self._keychain.delete_secret(SECRET_ENTRY)
        try:
            self._path.unlink()
        except FileNotFoundError:
            return

    def _write_data(self, data: dict[str, str]) -> None:
        self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
