from __future__ import annotations
"""Interface of the storage backend consumed by :class:`StorageController`.

Payloads are plain dictionaries using the backend's camelCase field names
(``transferId``, ``oldKey``, ``folderName`` ...). The controller is the only
place that translates them to and from the snake_case models.
"""
from typing import Any, Callable, Optional, Protocol

Payload = dict[str, Any]
ProgressEvent = dict[str, Any]
ProgressListener = Callable[[ProgressEvent], None]


class StorageBackend(Protocol):
    """RPC-like surface of the process that talks to S3."""

    def connect_s3(self, credentials: Payload) -> Payload: ...

    def get_credentials(self) -> Optional[Payload]: ...

    def clear_credentials(self) -> Any: ...

    def list_objects(self, params: Payload) -> Payload: ...

    def upload_file(self, params: Payload) -> Any: ...

    def upload_file_with_progress(self, params: Payload) -> Any: ...

    def download_file(self, params: Payload) -> Payload: ...

    def download_file_with_progress(self, params: Payload) -> Payload: ...

    def download_files(self, params: Payload) -> Payload: ...

    def delete_file(self, params: Payload) -> Payload: ...

    def delete_folder(self, params: Payload) -> Payload: ...

    def create_folder(self, params: Payload) -> Payload: ...

    def rename_file(self, params: Payload) -> Payload: ...

    def rename_folder(self, params: Payload) -> Payload: ...

    def download_folder(self, params: Payload) -> Payload: ...

    def open_file_dialog(self) -> Optional[list[str]]: ...

    def open_url(self, url: str) -> None: ...

    def on_transfer_progress(self, callback: ProgressListener) -> None: ...
