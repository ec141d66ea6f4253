from __future__ import annotations
"""Storage facade translating UI intents into backend calls."""
import logging
import re
from typing import Optional, Sequence

from .backend import Payload, StorageBackend
from .models import Credentials, FileEntry, FileListing, FolderEntry
from .session import SEPARATOR, Session

LOGGER = logging.getLogger(__name__)


class NotConnectedError(RuntimeError):
    """Raised when an S3 operation is attempted before connecting."""


class S3ConnectionError(RuntimeError):
    """Raised when the backend rejects a connection attempt."""


class OperationError(RuntimeError):
    """Raised when the backend reports that an operation did not succeed."""


class NoFileSelectedError(OperationError):
    """Raised when the upload file dialog returns no selection."""


def key_basename(path: str) -> str:
    return re.split(r"[\\/]", path)[-1]


class StorageController:
    """Coordinates user actions with a :class:`StorageBackend`."""

    def __init__(self, backend: StorageBackend, session: Session | None = None):
        self._backend = backend
        self._session = session or Session()

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    @property
    def session(self) -> Session:
        return self._session

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    @property
    def current_path(self) -> str:
        return self._session.current_path

    def navigate(self, path: str) -> None:
        self._session.navigate(path)

    # -- connection -----------------------------------------------------

    def connect(self, credentials: Credentials) -> None:
        LOGGER.debug("Connecting to bucket '%s'", credentials.bucket)
        result = self._backend.connect_s3(
            {
                "accessKeyId": credentials.access_key_id,
                "secretAccessKey": credentials.secret_access_key,
                "region": credentials.region,
                "bucket": credentials.bucket,
                "endpoint": credentials.endpoint_url,
            }
        )
        if not result or not result.get("success"):
            message = (result or {}).get("error") or "Failed to connect to S3"
            raise S3ConnectionError(message)
        self._session.bucket = credentials.bucket

    def load_saved_credentials(self) -> Credentials | None:
        stored = self._backend.get_credentials()
        if not stored:
            return None
        return Credentials(
            access_key_id=stored.get("accessKeyId") or stored.get("access_key_id") or "",
            secret_access_key=stored.get("secretAccessKey") or stored.get("secret_access_key") or "",
            region=stored.get("region") or "",
            bucket=stored.get("bucket") or stored.get("bucket_name") or "",
            endpoint_url=stored.get("endpoint") or stored.get("endpoint_url") or None,
        )

    def auto_connect(self) -> bool:
        try:
            credentials = self.load_saved_credentials()
            if credentials is None:
                return False
            self.connect(credentials)
        except Exception:
            LOGGER.debug("Auto-connect failed; falling back to manual connect", exc_info=True)
            return False
        return True

    def disconnect(self) -> None:
        try:
            self._backend.clear_credentials()
        except Exception:
            LOGGER.warning("Unable to clear stored credentials", exc_info=True)
        finally:
            self._session.reset()

    # -- listing --------------------------------------------------------

    def list_files(self, prefix: str | None = None) -> FileListing:
        bucket = self._require_connection()
        actual_prefix = prefix if prefix is not None else self._session.current_path
        result = self._backend.list_objects({"bucket": bucket, "prefix": actual_prefix}) or {}
        files = [
            FileEntry(
                key=obj["Key"],
                size=obj.get("Size"),
                last_modified=obj.get("LastModified"),
                storage_class=obj.get("StorageClass"),
            )
            for obj in result.get("objects") or []
            if not obj["Key"].endswith(SEPARATOR)
        ]
        folders = [FolderEntry(prefix=folder["Prefix"]) for folder in result.get("folders") or []]
        LOGGER.debug("Listed %d file(s), %d folder(s) under '%s'", len(files), len(folders), actual_prefix)
        return FileListing(prefix=actual_prefix, files=files, folders=folders)

    # -- uploads --------------------------------------------------------

    def upload_file(self, key: str, data: bytes = b"") -> list[str]:
        """Upload ``data`` under the current path, or pick local files when ``key`` is empty.

        Returns the keys that were written.
        """

        bucket = self._require_connection()
        if not key:
            file_paths = self._backend.open_file_dialog()
            if not file_paths:
                raise NoFileSelectedError("No file selected")
            uploaded = []
            for file_path in file_paths:
                full_key = self._session.current_path + (key_basename(file_path) or "unknown")
                self._check_upload(
                    self._backend.upload_file({"bucket": bucket, "key": full_key, "filePath": file_path}),
                    full_key,
                )
                uploaded.append(full_key)
            return uploaded

        full_key = self._session.current_path + key
        self._check_upload(
            self._backend.upload_file({"bucket": bucket, "key": full_key, "data": bytes(data)}),
            full_key,
        )
        return [full_key]

    def upload_file_with_progress(self, key: str, data: bytes, transfer_id: str) -> str:
        bucket = self._require_connection()
        if not key:
            raise ValueError("Object key cannot be empty")
        full_key = self._session.current_path + key
        self._check_upload(
            self._backend.upload_file_with_progress(
                {"bucket": bucket, "key": full_key, "data": bytes(data), "transferId": transfer_id}
            ),
            full_key,
        )
        return full_key

    # -- downloads ------------------------------------------------------

    def download_file(self, key: str) -> bytes:
        bucket = self._require_connection()
        result = self._backend.download_file({"bucket": bucket, "key": key}) or {}
        url = result.get("url")
        if url:
            self._backend.open_url(url)
        return b""

    def download_file_with_progress(self, key: str, transfer_id: str, save_path: Optional[str] = None) -> bool:
        bucket = self._require_connection()
        result = self._backend.download_file_with_progress(
            {"bucket": bucket, "key": key, "transferId": transfer_id, "savePath": save_path}
        ) or {}
        return not result.get("canceled")

    def download_files(self, keys: Sequence[str], transfer_ids: Sequence[str]) -> bool:
        bucket = self._require_connection()
        if len(keys) != len(transfer_ids):
            raise ValueError("Each key needs a matching transfer id")
        result = self._backend.download_files(
            {"bucket": bucket, "keys": list(keys), "transferIds": list(transfer_ids)}
        ) or {}
        return not result.get("canceled")

    def download_folder(self, prefix: str, folder_name: str) -> bool:
        bucket = self._require_connection()
        result = self._backend.download_folder(
            {"bucket": bucket, "prefix": prefix, "folderName": folder_name}
        ) or {}
        if result.get("canceled"):
            return False
        if not result.get("success"):
            raise OperationError("Failed to download folder")
        return True

    # -- mutations ------------------------------------------------------

    def delete_file(self, key: str) -> None:
        bucket = self._require_connection()
        result = self._backend.delete_file({"bucket": bucket, "key": key})
        self._check_success(result, "Failed to delete file")

    def delete_folder(self, prefix: str) -> None:
        bucket = self._require_connection()
        if not prefix.strip(SEPARATOR):
            raise ValueError("Folder prefix cannot be empty")
        result = self._backend.delete_folder({"bucket": bucket, "prefix": prefix})
        self._check_success(result, "Failed to delete folder")

    def create_folder(self, folder_name: str) -> str:
        bucket = self._require_connection()
        full_path = self._session.current_path + folder_name
        result = self._backend.create_folder({"bucket": bucket, "folderName": full_path})
        self._check_success(result, "Failed to create folder")
        return full_path

    def rename_file(self, old_key: str, new_name: str) -> str:
        bucket = self._require_connection()
        directory, sep, _ = old_key.rpartition(SEPARATOR)
        new_key = directory + sep + new_name
        if new_key == old_key:
            return old_key
        result = self._backend.rename_file({"bucket": bucket, "oldKey": old_key, "newKey": new_key})
        self._check_success(result, "Failed to rename file")
        return new_key

    def rename_folder(self, old_prefix: str, new_name: str) -> str:
        bucket = self._require_connection()
        stripped = old_prefix[:-1] if old_prefix.endswith(SEPARATOR) else old_prefix
        parent, sep, _ = stripped.rpartition(SEPARATOR)
        new_prefix = parent + sep + new_name + SEPARATOR
        if new_prefix == old_prefix:
            return old_prefix
        result = self._backend.rename_folder(
            {"bucket": bucket, "oldPrefix": old_prefix, "newPrefix": new_prefix}
        )
        self._check_success(result, "Failed to rename folder")
        return new_prefix

    def _require_connection(self) -> str:
        if self._session.bucket is None:
            raise NotConnectedError("Not connected to S3")
        return self._session.bucket

    def _check_success(self, result: Payload | None, message: str) -> None:
        if not result or not result.get("success"):
            raise OperationError(message)

    def _check_upload(self, result: object, key: str) -> None:
        if isinstance(result, dict) and result.get("success") is False:
            raise OperationError(result.get("error") or f"Failed to upload {key}")
