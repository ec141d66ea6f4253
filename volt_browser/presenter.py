from __future__ import annotations
"""View-agnostic presenter that wraps controller operations."""
from dataclasses import replace
import logging
import os
import threading
import uuid
from typing import Callable, Iterable, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from .backend import StorageBackend
from .controller import NoFileSelectedError, StorageController
from .models import Credentials, FileEntry, FileListing, FolderEntry, TransferHandle, TransferKind, TransferStatus
from .settings import AppSettings, SettingsStorage
from .transfers import TransferListener, TransferTracker
from .ui_utils import PackageInfo, filter_entries, load_package_info


DispatchFn = Callable[[Callable[[], None]], None]
RunFn = Callable[[Callable[[], None]], None]
ErrorFn = Callable[[str], None]
DoneFn = Callable[[], None]

LOGGER = logging.getLogger(__name__)


def _format_error(exc: Exception) -> str:
    return str(exc)


def _run_in_thread(task: Callable[[], None]) -> None:
    threading.Thread(target=task, daemon=True).start()


def new_transfer_id() -> str:
    return uuid.uuid4().hex


class BrowserPresenter:
    """Runs background operations and returns results via callbacks.

    Holds the view state that is not part of the session: the search text and
    a per-prefix listing cache that every navigation or mutation invalidates.
    """

    def __init__(
        self,
        *,
        backend: StorageBackend | None = None,
        controller: StorageController | None = None,
        settings_storage: SettingsStorage | None = None,
        dispatch: DispatchFn | None = None,
        run_task: RunFn | None = None,
    ) -> None:
        if controller is None:
            if backend is None:
                raise ValueError("Either a backend or a controller is required")
            controller = StorageController(backend)
        self._controller = controller
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._dispatch = dispatch or (lambda func: func())
        self._run_task = run_task or _run_in_thread
        self._package_info = load_package_info()
        self._search_query = ""
        self._listings: dict[str, FileListing] = {}
        self._listing_generation = 0
        self._tracker = TransferTracker(self._controller.backend, dispatch=self._dispatch)
        self._tracker.start()

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def package_info(self) -> PackageInfo:
        return self._package_info

    @property
    def is_connected(self) -> bool:
        return self._controller.is_connected

    @property
    def bucket(self) -> str | None:
        return self._controller.session.bucket

    @property
    def current_path(self) -> str:
        return self._controller.current_path

    @property
    def search_query(self) -> str:
        return self._search_query

    def save_settings(self, settings: AppSettings) -> None:
        self._settings = settings
        self._settings_storage.save(settings)

    # -- view state -----------------------------------------------------

    def set_search_query(self, query: str) -> None:
        self._search_query = query or ""

    def cached_listing(self) -> FileListing | None:
        return self._listings.get(self.current_path)

    def visible_entries(self) -> tuple[list[FolderEntry], list[FileEntry]]:
        listing = self.cached_listing()
        if listing is None:
            return [], []
        return (
            filter_entries(listing.folders, self._search_query),
            filter_entries(listing.files, self._search_query),
        )

    def invalidate_listings(self) -> None:
        """Drop cached listings and any listing request still in flight."""

        self._listing_generation += 1
        self._listings.clear()

    def navigate(self, path: str) -> None:
        LOGGER.debug("Navigating to '%s'", path)
        self._controller.navigate(path)
        self.invalidate_listings()

    # -- connection -----------------------------------------------------

    def auto_connect(self, *, on_done: Callable[[bool], None]) -> None:
        if not self._settings.auto_connect:
            self._dispatch(lambda: on_done(False))
            return

        def task() -> None:
            connected = self._controller.auto_connect()
            LOGGER.debug("Auto-connect result: %s", connected)
            self._dispatch(lambda: on_done(connected))

        self._run_task(task)

    def load_saved_credentials(self, *, on_success: Callable[[Credentials | None], None]) -> None:
        def task() -> None:
            try:
                credentials = self._controller.load_saved_credentials()
            except Exception:
                LOGGER.exception("Unable to load saved credentials")
                credentials = None
            self._dispatch(lambda: on_success(credentials))

        self._run_task(task)

    def connect(
        self,
        credentials: Credentials,
        *,
        on_success: DoneFn,
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        LOGGER.debug("Connecting to bucket '%s'", credentials.bucket)

        def connect_and_reset() -> None:
            self._controller.connect(credentials)
            self._dispatch(self.invalidate_listings)

        self._run(
            "connect",
            connect_and_reset,
            on_success=lambda _: on_success(),
            on_error=on_error,
            on_done=on_done,
        )

    def disconnect(self, *, on_done: DoneFn) -> None:
        def task() -> None:
            self._controller.disconnect()
            self._dispatch(self.invalidate_listings)
            self._dispatch(on_done)

        self._run_task(task)

    # -- listing --------------------------------------------------------

    def list_files(
        self,
        *,
        on_success: Callable[[FileListing], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
        force: bool = False,
    ) -> None:
        prefix = self.current_path
        cached = self._listings.get(prefix)
        if cached is not None and not force:
            self._dispatch(lambda: on_success(cached))
            if on_done:
                self._dispatch(on_done)
            return

        generation = self._listing_generation

        def handle_listing(listing: FileListing) -> None:
            if generation != self._listing_generation:
                LOGGER.debug("Dropping listing for '%s' requested before the last change", listing.prefix)
                return
            self._listings[listing.prefix] = listing
            if listing.prefix != self.current_path:
                LOGGER.debug("Dropping stale listing for '%s'", listing.prefix)
                return
            on_success(listing)

        self._run(
            "list files",
            lambda: self._controller.list_files(prefix),
            on_success=handle_listing,
            on_error=on_error,
            on_done=on_done,
        )

    # -- uploads --------------------------------------------------------

    def upload_with_dialog(
        self,
        *,
        on_success: Callable[[list[str]], None],
        on_error: ErrorFn,
        on_cancelled: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                keys = self._controller.upload_file("")
            except NoFileSelectedError:
                LOGGER.debug("Upload cancelled; no file selected")
                if on_cancelled:
                    self._dispatch(on_cancelled)
            except (BotoCoreError, ClientError) as exc:
                LOGGER.exception("Upload error")
                self._dispatch(lambda: on_error(_format_error(exc)))
            except Exception as exc:
                LOGGER.exception("Unexpected upload error")
                self._dispatch(lambda: on_error(_format_error(exc)))
            else:
                self._dispatch(self.invalidate_listings)
                self._dispatch(lambda: on_success(keys))

        self._run_task(task)

    def upload_data(
        self,
        key: str,
        data: bytes,
        *,
        on_success: Callable[[str], None],
        on_error: ErrorFn,
        transfer_id: str | None = None,
    ) -> str:
        transfer_id = transfer_id or new_transfer_id()
        self._tracker.register(transfer_id, TransferKind.UPLOAD, name=key)
        self._run_transfer(
            transfer_id,
            lambda: self._controller.upload_file_with_progress(key, data, transfer_id),
            on_success=on_success,
            on_error=on_error,
            invalidate=True,
        )
        return transfer_id

    def upload_local_files(
        self,
        paths: Iterable[str],
        *,
        on_success: Callable[[str], None],
        on_error: ErrorFn,
    ) -> list[str]:
        transfer_ids = []
        for path in paths:
            name = os.path.basename(path)
            if not name:
                continue
            transfer_id = new_transfer_id()
            self._tracker.register(transfer_id, TransferKind.UPLOAD, name=name)

            def upload(path: str = path, name: str = name, transfer_id: str = transfer_id) -> str:
                with open(path, "rb") as handle:
                    data = handle.read()
                return self._controller.upload_file_with_progress(name, data, transfer_id)

            self._run_transfer(transfer_id, upload, on_success=on_success, on_error=on_error, invalidate=True)
            transfer_ids.append(transfer_id)
        return transfer_ids

    # -- downloads ------------------------------------------------------

    def download_file(self, key: str, *, on_error: ErrorFn, on_success: DoneFn | None = None) -> None:
        self._run(
            "download",
            lambda: self._controller.download_file(key),
            on_success=lambda _: on_success() if on_success else None,
            on_error=on_error,
        )

    def download_file_with_progress(
        self,
        key: str,
        *,
        save_path: str | None = None,
        on_success: Callable[[bool], None],
        on_error: ErrorFn,
    ) -> str:
        transfer_id = new_transfer_id()
        self._tracker.register(transfer_id, TransferKind.DOWNLOAD, name=os.path.basename(key))
        self._run_transfer(
            transfer_id,
            lambda: self._controller.download_file_with_progress(key, transfer_id, save_path),
            on_success=on_success,
            on_error=on_error,
        )
        return transfer_id

    def download_files(
        self,
        keys: Sequence[str],
        *,
        on_success: Callable[[bool], None],
        on_error: ErrorFn,
    ) -> list[str]:
        transfer_ids = [new_transfer_id() for _ in keys]
        for key, transfer_id in zip(keys, transfer_ids):
            self._tracker.register(transfer_id, TransferKind.DOWNLOAD, name=os.path.basename(key))

        def task() -> None:
            try:
                completed = self._controller.download_files(keys, transfer_ids)
            except Exception as exc:
                LOGGER.exception("Download error for %d file(s)", len(keys))
                for transfer_id in transfer_ids:
                    self._dispatch(
                        lambda transfer_id=transfer_id: self._tracker.finish(
                            transfer_id, TransferStatus.FAILED, _format_error(exc)
                        )
                    )
                self._dispatch(lambda: on_error(_format_error(exc)))
            else:
                if not completed:
                    for transfer_id in transfer_ids:
                        self._dispatch(
                            lambda transfer_id=transfer_id: self._tracker.finish(transfer_id, TransferStatus.CANCELED)
                        )
                self._dispatch(lambda: on_success(completed))

        self._run_task(task)
        return transfer_ids

    def download_folder(
        self,
        prefix: str,
        folder_name: str,
        *,
        on_success: Callable[[bool], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        self._run(
            "download folder",
            lambda: self._controller.download_folder(prefix, folder_name),
            on_success=on_success,
            on_error=on_error,
            on_done=on_done,
        )

    # -- mutations ------------------------------------------------------

    def delete_file(self, key: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._run_mutation("delete file", lambda: self._controller.delete_file(key), on_success, on_error)

    def delete_folder(self, prefix: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._run_mutation("delete folder", lambda: self._controller.delete_folder(prefix), on_success, on_error)

    def create_folder(self, name: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._run_mutation("create folder", lambda: self._controller.create_folder(name), on_success, on_error)

    def rename_file(self, old_key: str, new_name: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._run_mutation(
            "rename file",
            lambda: self._controller.rename_file(old_key, new_name),
            on_success,
            on_error,
        )

    def rename_folder(self, old_prefix: str, new_name: str, *, on_success: DoneFn, on_error: ErrorFn) -> None:
        self._run_mutation(
            "rename folder",
            lambda: self._controller.rename_folder(old_prefix, new_name),
            on_success,
            on_error,
        )

    # -- transfers ------------------------------------------------------

    def subscribe_transfers(self, listener: TransferListener) -> None:
        self._tracker.subscribe(listener)

    def active_transfers(self) -> list[TransferHandle]:
        return self._tracker.active()

    def prune_transfers(self) -> list[TransferHandle]:
        return self._tracker.prune(self._settings.transfer_retention_seconds)

    # -- helpers --------------------------------------------------------

    def _run(
        self,
        name: str,
        func: Callable[[], object],
        *,
        on_success: Callable[[object], None],
        on_error: ErrorFn,
        on_done: DoneFn | None = None,
    ) -> None:
        def task() -> None:
            try:
                result = func()
            except (BotoCoreError, ClientError) as exc:
                LOGGER.exception("S3 error during %s", name)
                self._dispatch(lambda: on_error(_format_error(exc)))
            except Exception as exc:
                LOGGER.exception("Unexpected error during %s", name)
                self._dispatch(lambda: on_error(_format_error(exc)))
            else:
                self._dispatch(lambda: on_success(result))
            finally:
                if on_done:
                    self._dispatch(on_done)

        self._run_task(task)

    def _run_mutation(self, name: str, func: Callable[[], object], on_success: DoneFn, on_error: ErrorFn) -> None:
        def handle_success(_: object) -> None:
            self.invalidate_listings()
            on_success()

        self._run(name, func, on_success=handle_success, on_error=on_error)

    def _run_transfer(
        self,
        transfer_id: str,
        func: Callable[[], object],
        *,
        on_success: Callable[[object], None],
        on_error: ErrorFn,
        invalidate: bool = False,
    ) -> None:
        def handle_success(result: object) -> None:
            status = TransferStatus.CANCELED if result is False else TransferStatus.COMPLETED
            self._tracker.finish(transfer_id, status)
            if invalidate:
                self.invalidate_listings()
            on_success(result)

        def handle_error(message: str) -> None:
            self._tracker.finish(transfer_id, TransferStatus.FAILED, message)
            on_error(message)

        self._run(f"transfer {transfer_id}", func, on_success=handle_success, on_error=handle_error)
