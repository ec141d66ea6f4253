from __future__ import annotations
"""In-process storage backend built on boto3."""
import io
import logging
import os
import threading
import webbrowser
from typing import Callable, Iterator, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .backend import Payload, ProgressEvent, ProgressListener
from .credentials import CredentialStorage
from .models import Credentials, TransferKind, TransferStatus
from .settings import DEFAULT_MAX_CONCURRENCY, DEFAULT_MULTIPART_CHUNK_SIZE, DEFAULT_MULTIPART_THRESHOLD

LOGGER = logging.getLogger(__name__)

PAGE_SIZE = 1000
DELETE_BATCH_SIZE = 1000

FilePicker = Callable[[], Optional[list[str]]]
SavePathPicker = Callable[[str], Optional[str]]
DirectoryPicker = Callable[[], Optional[str]]


def _error_response(exc: Exception) -> Payload:
    return {"success": False, "error": str(exc)}


def _local_destination(root: str, relative_key: str) -> str | None:
    """Map ``relative_key`` to a file path under ``root``, or ``None`` if it escapes."""

    parts = [part for part in relative_key.split("/") if part not in ("", ".", "..")]
    if not parts:
        return None
    destination = os.path.realpath(os.path.join(root, *parts))
    if os.path.commonpath([root, destination]) != root or destination == root:
        return None
    return destination


class Boto3Backend:
    """Implements the :class:`~volt_browser.backend.StorageBackend` surface with boto3."""

    def __init__(
        self,
        *,
        client_factory: Callable[..., object] | None = None,
        credential_storage: CredentialStorage | None = None,
        file_picker: FilePicker | None = None,
        save_path_picker: SavePathPicker | None = None,
        directory_picker: DirectoryPicker | None = None,
        url_opener: Callable[[str], object] | None = None,
        presigned_url_expiry: int = 3600,
    ):
        self._client_factory = client_factory or boto3.client
        self._credentials = credential_storage or CredentialStorage()
        self.file_picker = file_picker
        self.save_path_picker = save_path_picker
        self.directory_picker = directory_picker
        self._url_opener = url_opener or webbrowser.open
        self._presigned_url_expiry = presigned_url_expiry
        self._client = None
        self._listeners: list[ProgressListener] = []
        self._transfer_config = self._build_transfer_config(None, None, None)

    def configure_transfers(
        self,
        *,
        multipart_threshold: int | None = None,
        multipart_chunk_size: int | None = None,
        max_concurrency: int | None = None,
        presigned_url_expiry: int | None = None,
    ) -> None:
        self._transfer_config = self._build_transfer_config(
            multipart_threshold, multipart_chunk_size, max_concurrency
        )
        if presigned_url_expiry and presigned_url_expiry > 0:
            self._presigned_url_expiry = presigned_url_expiry

    # -- connection -----------------------------------------------------

    def connect_s3(self, credentials: Payload) -> Payload:
        bucket = credentials.get("bucket") or ""
        access_key = credentials.get("accessKeyId") or ""
        secret_key = credentials.get("secretAccessKey") or ""
        if not (bucket and access_key and secret_key):
            return {"success": False, "error": "Access key, secret key and bucket are required"}
        try:
            client = self._create_client(
                endpoint_url=credentials.get("endpoint") or None,
                region=credentials.get("region") or None,
                access_key=access_key,
                secret_key=secret_key,
            )
            client.head_bucket(Bucket=bucket)
        except (ClientError, BotoCoreError) as exc:
            LOGGER.debug("Connection to bucket '%s' failed: %s", bucket, exc)
            return _error_response(exc)
        self._client = client
        self._credentials.save(
            Credentials(
                access_key_id=access_key,
                secret_access_key=secret_key,
                region=credentials.get("region") or "",
                bucket=bucket,
                endpoint_url=credentials.get("endpoint") or None,
            )
        )
        return {"success": True}

    def get_credentials(self) -> Optional[Payload]:
        stored = self._credentials.load()
        if stored is None:
            return None
        return {
            "accessKeyId": stored.access_key_id,
            "secretAccessKey": stored.secret_access_key,
            "region": stored.region,
            "bucket": stored.bucket,
            "endpoint": stored.endpoint_url or "",
        }

    def clear_credentials(self) -> Payload:
        self._credentials.clear()
        self._client = None
        return {"success": True}

    # -- listing --------------------------------------------------------

    def list_objects(self, params: Payload) -> Payload:
        client = self._require_client()
        objects: list[dict[str, object]] = []
        folders: list[dict[str, str]] = []
        for response in self._iter_pages(client, params["bucket"], params.get("prefix") or "", delimiter="/"):
            for obj in response.get("Contents", []):
                objects.append(
                    {
                        "Key": obj["Key"],
                        "Size": obj.get("Size"),
                        "LastModified": obj.get("LastModified"),
                        "StorageClass": obj.get("StorageClass"),
                    }
                )
            folders.extend({"Prefix": common["Prefix"]} for common in response.get("CommonPrefixes", []))
        return {"objects": objects, "folders": folders}

    # -- uploads --------------------------------------------------------

    def upload_file(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket, key = params["bucket"], params["key"]
        try:
            if params.get("filePath"):
                client.upload_file(params["filePath"], bucket, key, Config=self._transfer_config)
            else:
                client.put_object(Bucket=bucket, Key=key, Body=bytes(params.get("data") or b""))
        except (ClientError, BotoCoreError, S3UploadFailedError, OSError) as exc:
            LOGGER.debug("Upload of '%s' failed: %s", key, exc)
            return _error_response(exc)
        return {"success": True}

    def upload_file_with_progress(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket, key, transfer_id = params["bucket"], params["key"], params["transferId"]
        data = bytes(params.get("data") or b"")
        callback = self._build_progress_callback(transfer_id, TransferKind.UPLOAD, len(data))
        self._emit(transfer_id, TransferKind.UPLOAD, 0.0, TransferStatus.IN_PROGRESS)
        try:
            client.upload_fileobj(io.BytesIO(data), bucket, key, Callback=callback, Config=self._transfer_config)
        except (ClientError, BotoCoreError, S3UploadFailedError) as exc:
            self._emit(transfer_id, TransferKind.UPLOAD, None, TransferStatus.FAILED, error=str(exc))
            return _error_response(exc)
        self._emit(transfer_id, TransferKind.UPLOAD, 1.0, TransferStatus.COMPLETED)
        return {"success": True}

    # -- downloads ------------------------------------------------------

    def download_file(self, params: Payload) -> Payload:
        client = self._require_client()
        url = client.generate_presigned_url(
            "get_object",
            Params={"Bucket": params["bucket"], "Key": params["key"]},
            ExpiresIn=self._presigned_url_expiry,
        )
        return {"url": url}

    def download_file_with_progress(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket, key, transfer_id = params["bucket"], params["key"], params["transferId"]
        save_path = params.get("savePath")
        if not save_path:
            save_path = self.save_path_picker(os.path.basename(key)) if self.save_path_picker else None
        if not save_path:
            self._emit(transfer_id, TransferKind.DOWNLOAD, None, TransferStatus.CANCELED)
            return {"canceled": True}
        return self._download_tracked(client, bucket, key, save_path, transfer_id)

    def download_files(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket = params["bucket"]
        pairs = list(zip(params["keys"], params["transferIds"]))
        target_dir = self.directory_picker() if self.directory_picker else None
        if not target_dir:
            for _, transfer_id in pairs:
                self._emit(transfer_id, TransferKind.DOWNLOAD, None, TransferStatus.CANCELED)
            return {"canceled": True}
        errors = []
        for key, transfer_id in pairs:
            destination = os.path.join(target_dir, os.path.basename(key))
            result = self._download_tracked(client, bucket, key, destination, transfer_id)
            if not result.get("success"):
                errors.append(result.get("error"))
        if errors:
            return {"success": False, "error": "; ".join(str(error) for error in errors)}
        return {"success": True}

    def download_folder(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket, prefix = params["bucket"], params["prefix"]
        target_dir = self.directory_picker() if self.directory_picker else None
        if not target_dir:
            return {"canceled": True}
        root = os.path.realpath(os.path.join(target_dir, params.get("folderName") or "download"))
        try:
            for key in self._iter_keys(client, bucket, prefix):
                relative = key[len(prefix):]
                if not relative or relative.endswith("/"):
                    continue
                destination = _local_destination(root, relative)
                if destination is None:
                    LOGGER.warning("Skipping '%s': key does not map inside the download folder", key)
                    continue
                os.makedirs(os.path.dirname(destination), exist_ok=True)
                client.download_file(bucket, key, destination)
        except (ClientError, BotoCoreError, OSError) as exc:
            LOGGER.debug("Folder download of '%s' failed: %s", prefix, exc)
            return _error_response(exc)
        return {"success": True}

    # -- mutations ------------------------------------------------------

    def delete_file(self, params: Payload) -> Payload:
        client = self._require_client()
        try:
            client.delete_object(Bucket=params["bucket"], Key=params["key"])
        except (ClientError, BotoCoreError) as exc:
            return _error_response(exc)
        return {"success": True}

    def delete_folder(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket = params["bucket"]
        if not params.get("prefix"):
            return {"success": False, "error": "Folder prefix cannot be empty"}
        try:
            keys = list(self._iter_keys(client, bucket, params["prefix"]))
            self._delete_keys(client, bucket, keys)
        except (ClientError, BotoCoreError, RuntimeError) as exc:
            return _error_response(exc)
        return {"success": True}

    def create_folder(self, params: Payload) -> Payload:
        client = self._require_client()
        key = params["folderName"]
        if not key.endswith("/"):
            key += "/"
        try:
            client.put_object(Bucket=params["bucket"], Key=key, Body=b"")
        except (ClientError, BotoCoreError) as exc:
            return _error_response(exc)
        return {"success": True}

    def rename_file(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket = params["bucket"]
        try:
            self._move(client, bucket, params["oldKey"], params["newKey"])
        except (ClientError, BotoCoreError) as exc:
            return _error_response(exc)
        return {"success": True}

    def rename_folder(self, params: Payload) -> Payload:
        client = self._require_client()
        bucket, old_prefix, new_prefix = params["bucket"], params["oldPrefix"], params["newPrefix"]
        try:
            keys = list(self._iter_keys(client, bucket, old_prefix))
            for key in keys:
                client.copy_object(
                    Bucket=bucket,
                    Key=new_prefix + key[len(old_prefix):],
                    CopySource={"Bucket": bucket, "Key": key},
                )
            self._delete_keys(client, bucket, keys)
        except (ClientError, BotoCoreError, RuntimeError) as exc:
            return _error_response(exc)
        return {"success": True}

    # -- desktop integration --------------------------------------------

    def open_file_dialog(self) -> Optional[list[str]]:
        if not self.file_picker:
            return None
        return self.file_picker()

    def open_url(self, url: str) -> None:
        self._url_opener(url)

    def on_transfer_progress(self, callback: ProgressListener) -> None:
        self._listeners.append(callback)

    # -- helpers --------------------------------------------------------

    def _create_client(self, *, endpoint_url: str | None, region: str | None, access_key: str, secret_key: str):
        config = Config(signature_version="s3v4")
        return self._client_factory(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=config,
        )

    def _require_client(self):
        if self._client is None:
            raise RuntimeError("Backend is not connected to S3")
        return self._client

    def _iter_pages(self, client, bucket: str, prefix: str, *, delimiter: str | None = None) -> Iterator[dict]:
        request_token: str | None = None
        while True:
            list_params = {"Bucket": bucket, "MaxKeys": PAGE_SIZE}
            if prefix:
                list_params["Prefix"] = prefix
            if delimiter:
                list_params["Delimiter"] = delimiter
            if request_token:
                list_params["ContinuationToken"] = request_token
            response = client.list_objects_v2(**list_params)
            yield response
            request_token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not request_token:
                break

    def _iter_keys(self, client, bucket: str, prefix: str) -> Iterator[str]:
        for response in self._iter_pages(client, bucket, prefix):
            for obj in response.get("Contents", []):
                yield obj["Key"]

    def _delete_keys(self, client, bucket: str, keys: list[str]) -> None:
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            response = client.delete_objects(
                Bucket=bucket,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            errors = response.get("Errors") or []
            if errors:
                first = errors[0]
                raise RuntimeError(f"Unable to delete {first.get('Key')}: {first.get('Message')}")

    def _move(self, client, bucket: str, old_key: str, new_key: str) -> None:
        client.copy_object(Bucket=bucket, Key=new_key, CopySource={"Bucket": bucket, "Key": old_key})
        client.delete_object(Bucket=bucket, Key=old_key)

    def _download_tracked(self, client, bucket: str, key: str, destination: str, transfer_id: str) -> Payload:
        self._emit(transfer_id, TransferKind.DOWNLOAD, 0.0, TransferStatus.IN_PROGRESS)
        try:
            total = client.head_object(Bucket=bucket, Key=key).get("ContentLength") or 0
            callback = self._build_progress_callback(transfer_id, TransferKind.DOWNLOAD, total)
            client.download_file(bucket, key, destination, Callback=callback)
        except (ClientError, BotoCoreError, OSError) as exc:
            self._emit(transfer_id, TransferKind.DOWNLOAD, None, TransferStatus.FAILED, error=str(exc))
            return _error_response(exc)
        self._emit(transfer_id, TransferKind.DOWNLOAD, 1.0, TransferStatus.COMPLETED)
        return {"success": True}

    def _build_transfer_config(
        self,
        multipart_threshold: int | None,
        multipart_chunk_size: int | None,
        max_concurrency: int | None,
    ) -> TransferConfig:
        threshold = multipart_threshold if multipart_threshold and multipart_threshold > 0 else DEFAULT_MULTIPART_THRESHOLD
        chunk_size = multipart_chunk_size if multipart_chunk_size and multipart_chunk_size > 0 else DEFAULT_MULTIPART_CHUNK_SIZE
        concurrency = max_concurrency if max_concurrency and max_concurrency > 0 else DEFAULT_MAX_CONCURRENCY
        return TransferConfig(
            multipart_threshold=threshold,
            multipart_chunksize=chunk_size,
            max_concurrency=concurrency,
        )

    def _build_progress_callback(self, transfer_id: str, kind: TransferKind, total: int):
        transferred = 0
        lock = threading.Lock()

        def _callback(bytes_amount: int) -> None:
            nonlocal transferred
            with lock:
                transferred += bytes_amount
                fraction = transferred / total if total > 0 else 0.0
            self._emit(transfer_id, kind, min(fraction, 1.0), TransferStatus.IN_PROGRESS)

        return _callback

    def _emit(
        self,
        transfer_id: str,
        kind: TransferKind,
        progress: float | None,
        status: TransferStatus,
        *,
        error: str | None = None,
    ) -> None:
        event: ProgressEvent = {"transferId": transfer_id, "kind": kind.value, "status": status.value}
        if progress is not None:
            event["progress"] = progress
        if error:
            event["error"] = error
        for listener in list(self._listeners):
            listener(event)
