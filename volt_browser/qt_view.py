from __future__ import annotations
"""PySide6-based UI for the S3 file browser."""
import logging
import threading
from typing import Callable

from PySide6 import QtCore, QtGui, QtWidgets

from .models import Credentials, FileEntry, FileListing, FolderEntry, TransferHandle
from .presenter import BrowserPresenter
from .services import Boto3Backend
from .settings import AppSettings
from .ui_utils import (
    SIZE_UNITS,
    PackageInfo,
    build_breadcrumbs,
    format_last_modified,
    format_size,
    format_transfer,
    parent_path,
    parse_size_bytes,
    relative_name,
    split_size_bytes,
)

ENTRY_ROLE = QtCore.Qt.UserRole + 1
PRUNE_INTERVAL_MS = 1000
CONNECTION_BUTTON_TEXT = "Connection..."
PREFERENCES_BUTTON_TEXT = "Preferences"
LOGGER = logging.getLogger(__name__)


class _DispatchBridge(QtCore.QObject):
    run = QtCore.Signal(object)


class UploadDropTreeWidget(QtWidgets.QTreeWidget):
    """Tree widget that accepts local file drops for uploading."""

    def __init__(
        self,
        parent: QtWidgets.QWidget | None = None,
        *,
        drop_allowed: Callable[[], bool],
        handle_drop: Callable[[list[str]], None],
    ) -> None:
        super().__init__(parent)
        self._drop_allowed = drop_allowed
        self._handle_drop = handle_drop
        self.setAcceptDrops(True)
        self.setDropIndicatorShown(True)
        self.setDragDropMode(QtWidgets.QAbstractItemView.DropOnly)

    def dragEnterEvent(self, event: QtGui.QDragEnterEvent) -> None:
        if self._can_accept(event):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event: QtGui.QDragMoveEvent) -> None:
        if self._can_accept(event):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event: QtGui.QDropEvent) -> None:
        if not self._can_accept(event):
            event.ignore()
            return
        paths = [url.toLocalFile() for url in event.mimeData().urls() if url.isLocalFile()]
        event.acceptProposedAction()
        self._handle_drop([path for path in paths if path])

    def _can_accept(self, event: QtGui.QDropEvent) -> bool:
        if not self._drop_allowed():
            return False
        mime = event.mimeData()
        return mime.hasUrls() and any(url.isLocalFile() for url in mime.urls())


class ConnectForm(QtWidgets.QWidget):
    """Credential form shown while disconnected or from the settings button."""

    connect_requested = QtCore.Signal(object)
    cancelled = QtCore.Signal()

    def __init__(self, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        outer = QtWidgets.QVBoxLayout(self)
        outer.addStretch(1)

        box = QtWidgets.QGroupBox("Connect to S3", self)
        box.setMaximumWidth(460)
        form = QtWidgets.QFormLayout(box)
        self.access_key_edit = QtWidgets.QLineEdit()
        self.secret_key_edit = QtWidgets.QLineEdit()
        self.secret_key_edit.setEchoMode(QtWidgets.QLineEdit.Password)
        self.region_edit = QtWidgets.QLineEdit()
        self.region_edit.setPlaceholderText("us-east-1")
        self.bucket_edit = QtWidgets.QLineEdit()
        self.endpoint_edit = QtWidgets.QLineEdit()
        self.endpoint_edit.setPlaceholderText("Optional, for S3-compatible storage")
        form.addRow("Access Key ID:", self.access_key_edit)
        form.addRow("Secret Access Key:", self.secret_key_edit)
        form.addRow("Region:", self.region_edit)
        form.addRow("Bucket:", self.bucket_edit)
        form.addRow("Endpoint URL:", self.endpoint_edit)

        self.error_label = QtWidgets.QLabel("")
        self.error_label.setWordWrap(True)
        palette = self.error_label.palette()
        palette.setColor(QtGui.QPalette.WindowText, QtGui.QColor("firebrick"))
        self.error_label.setPalette(palette)
        form.addRow(self.error_label)

        buttons = QtWidgets.QHBoxLayout()
        buttons.addStretch(1)
        self.cancel_button = QtWidgets.QPushButton("Cancel")
        self.cancel_button.clicked.connect(self.cancelled.emit)
        buttons.addWidget(self.cancel_button)
        self.connect_button = QtWidgets.QPushButton("Connect")
        self.connect_button.setDefault(True)
        self.connect_button.clicked.connect(self._on_connect)
        buttons.addWidget(self.connect_button)
        form.addRow(buttons)

        row = QtWidgets.QHBoxLayout()
        row.addStretch(1)
        row.addWidget(box)
        row.addStretch(1)
        outer.addLayout(row)
        outer.addStretch(1)

        for edit in (self.access_key_edit, self.secret_key_edit, self.bucket_edit):
            edit.textChanged.connect(self._update_connect_state)
        self._update_connect_state()

    def set_cancellable(self, cancellable: bool) -> None:
        self.cancel_button.setVisible(cancellable)

    def set_busy(self, busy: bool) -> None:
        self.connect_button.setText("Connecting..." if busy else "Connect")
        self.connect_button.setEnabled(not busy and self._fields_filled())

    def set_error(self, message: str) -> None:
        self.error_label.setText(message)

    def fill(self, credentials: Credentials | None) -> None:
        if credentials is None:
            return
        self.access_key_edit.setText(credentials.access_key_id)
        self.secret_key_edit.setText(credentials.secret_access_key)
        self.region_edit.setText(credentials.region)
        self.bucket_edit.setText(credentials.bucket)
        self.endpoint_edit.setText(credentials.endpoint_url or "")

    def _fields_filled(self) -> bool:
        return all(
            [
                self.access_key_edit.text().strip(),
                self.secret_key_edit.text().strip(),
                self.bucket_edit.text().strip(),
            ]
        )

    def _update_connect_state(self) -> None:
        self.connect_button.setEnabled(self._fields_filled())

    def _on_connect(self) -> None:
        if not self._fields_filled():
            self.set_error("Access key, secret key and bucket are required")
            return
        self.set_error("")
        self.connect_requested.emit(
            Credentials(
                access_key_id=self.access_key_edit.text().strip(),
                secret_access_key=self.secret_key_edit.text().strip(),
                region=self.region_edit.text().strip(),
                bucket=self.bucket_edit.text().strip(),
                endpoint_url=self.endpoint_edit.text().strip() or None,
            )
        )


class BreadcrumbBar(QtWidgets.QWidget):
    """Row of buttons, one per folder level of the current path."""

    navigate = QtCore.Signal(str)

    def __init__(self, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        self._layout = QtWidgets.QHBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._layout.setSpacing(2)

    def set_path(self, current_path: str) -> None:
        while self._layout.count():
            item = self._layout.takeAt(0)
            widget = item.widget()
            if widget is not None:
                widget.deleteLater()
        crumbs = build_breadcrumbs(current_path)
        for index, crumb in enumerate(crumbs):
            if index:
                self._layout.addWidget(QtWidgets.QLabel("/"))
            button = QtWidgets.QToolButton()
            button.setText(crumb.label)
            button.setAutoRaise(True)
            button.setEnabled(index < len(crumbs) - 1)
            button.clicked.connect(lambda _=False, path=crumb.path: self.navigate.emit(path))
            self._layout.addWidget(button)
        self._layout.addStretch(1)


class TransferPanel(QtWidgets.QFrame):
    """Overlay listing in-flight and recently finished transfers."""

    def __init__(self, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        self.setFrameShape(QtWidgets.QFrame.StyledPanel)
        self._layout = QtWidgets.QVBoxLayout(self)
        self._layout.setContentsMargins(8, 8, 8, 8)
        title = QtWidgets.QLabel("Transfers")
        font = title.font()
        font.setBold(True)
        title.setFont(font)
        self._layout.addWidget(title)
        self._rows: dict[str, tuple[QtWidgets.QWidget, QtWidgets.QLabel, QtWidgets.QProgressBar]] = {}
        self.setVisible(False)

    def update_transfer(self, handle: TransferHandle) -> None:
        row = self._rows.get(handle.transfer_id)
        if row is None:
            container = QtWidgets.QWidget(self)
            row_layout = QtWidgets.QVBoxLayout(container)
            row_layout.setContentsMargins(0, 0, 0, 0)
            label = QtWidgets.QLabel()
            progress = QtWidgets.QProgressBar()
            progress.setRange(0, 100)
            row_layout.addWidget(label)
            row_layout.addWidget(progress)
            self._layout.addWidget(container)
            row = (container, label, progress)
            self._rows[handle.transfer_id] = row
        _, label, progress = row
        label.setText(format_transfer(handle))
        progress.setValue(int(handle.progress * 100))
        self.setVisible(True)

    def remove_transfer(self, transfer_id: str) -> None:
        row = self._rows.pop(transfer_id, None)
        if row is not None:
            row[0].deleteLater()
        if not self._rows:
            self.setVisible(False)


class BrowserWindow(QtWidgets.QMainWindow):
    """Main window for the S3 file browser."""

    def __init__(self, presenter: BrowserPresenter | None = None, backend: Boto3Backend | None = None):
        super().__init__()
        self.setWindowTitle("Volt Browser")
        self.resize(960, 720)
        self.setMinimumSize(640, 480)

        self._dispatch_bridge = _DispatchBridge()
        self._dispatch_bridge.run.connect(lambda func: func())
        self._backend = backend
        if presenter is None:
            if self._backend is None:
                self._backend = Boto3Backend(
                    file_picker=lambda: self._call_on_ui_thread(self._pick_upload_files),
                    save_path_picker=lambda name: self._call_on_ui_thread(lambda: self._pick_save_path(name)),
                    directory_picker=lambda: self._call_on_ui_thread(self._pick_directory),
                )
            presenter = BrowserPresenter(backend=self._backend, dispatch=self._dispatch)
        self.presenter = presenter
        self._settings = self.presenter.settings
        self._package_info = self.presenter.package_info
        self._apply_backend_settings(self._settings)

        self._create_pages()
        self._create_context_menus()
        self.presenter.subscribe_transfers(self.transfer_panel.update_transfer)

        self._prune_timer = QtCore.QTimer(self)
        self._prune_timer.setInterval(PRUNE_INTERVAL_MS)
        self._prune_timer.timeout.connect(self._prune_transfers)
        self._prune_timer.start()

        self.stack.setCurrentWidget(self.loading_page)
        self.presenter.auto_connect(on_done=self._handle_auto_connect)

    def _dispatch(self, func: Callable[[], None]) -> None:
        self._dispatch_bridge.run.emit(func)

    def _call_on_ui_thread(self, func: Callable[[], object]) -> object:
        """Run ``func`` on the GUI thread and block the calling worker until it returns."""

        if QtCore.QThread.currentThread() == self.thread():
            return func()
        done = threading.Event()
        result: dict[str, object] = {}

        def run() -> None:
            try:
                result["value"] = func()
            finally:
                done.set()

        self._dispatch(run)
        done.wait()
        return result.get("value")

    # -- layout ---------------------------------------------------------

    def _create_pages(self) -> None:
        self.stack = QtWidgets.QStackedWidget(self)

        self.loading_page = QtWidgets.QLabel("Connecting...")
        self.loading_page.setAlignment(QtCore.Qt.AlignCenter)
        self.stack.addWidget(self.loading_page)

        self.connect_form = ConnectForm(self)
        self.connect_form.connect_requested.connect(self._connect)
        self.connect_form.cancelled.connect(self._close_settings)
        self.stack.addWidget(self.connect_form)

        self.browser_page = QtWidgets.QWidget(self)
        layout = QtWidgets.QVBoxLayout(self.browser_page)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(8)

        header = QtWidgets.QHBoxLayout()
        self.bucket_label = QtWidgets.QLabel("")
        font = self.bucket_label.font()
        font.setBold(True)
        self.bucket_label.setFont(font)
        header.addWidget(self.bucket_label)
        header.addStretch(1)
        self.search_edit = QtWidgets.QLineEdit()
        self.search_edit.setPlaceholderText("Search files...")
        self.search_edit.setClearButtonEnabled(True)
        self.search_edit.setMinimumWidth(240)
        self.search_edit.textChanged.connect(self._on_search_changed)
        header.addWidget(self.search_edit)
        connection_button = QtWidgets.QPushButton(CONNECTION_BUTTON_TEXT)
        connection_button.setToolTip("Change the bucket connection")
        connection_button.clicked.connect(self._open_settings)
        header.addWidget(connection_button)
        preferences_button = QtWidgets.QPushButton(PREFERENCES_BUTTON_TEXT)
        preferences_button.clicked.connect(self.open_settings_dialog)
        header.addWidget(preferences_button)
        about_button = QtWidgets.QPushButton("About")
        about_button.clicked.connect(self.show_about_dialog)
        header.addWidget(about_button)
        disconnect_button = QtWidgets.QPushButton("Disconnect")
        disconnect_button.clicked.connect(self._disconnect)
        header.addWidget(disconnect_button)
        layout.addLayout(header)

        self.breadcrumbs = BreadcrumbBar(self)
        self.breadcrumbs.navigate.connect(self._navigate)
        layout.addWidget(self.breadcrumbs)

        actions = QtWidgets.QHBoxLayout()
        self.up_button = QtWidgets.QPushButton("Up")
        self.up_button.clicked.connect(lambda: self._navigate(parent_path(self.presenter.current_path)))
        actions.addWidget(self.up_button)
        upload_button = QtWidgets.QPushButton("Upload...")
        upload_button.clicked.connect(self.upload_file)
        actions.addWidget(upload_button)
        new_folder_button = QtWidgets.QPushButton("New Folder...")
        new_folder_button.clicked.connect(self.create_folder)
        actions.addWidget(new_folder_button)
        refresh_button = QtWidgets.QPushButton("Refresh")
        refresh_button.clicked.connect(lambda: self.refresh_listing(force=True))
        actions.addWidget(refresh_button)
        actions.addStretch(1)
        layout.addLayout(actions)

        self.results_tree = UploadDropTreeWidget(
            self,
            drop_allowed=lambda: self.presenter.is_connected,
            handle_drop=self._handle_drop,
        )
        self.results_tree.setHeaderLabels(["Name", "Size", "Last Modified", "Storage Class"])
        self.results_tree.setRootIsDecorated(False)
        self.results_tree.setSelectionMode(QtWidgets.QAbstractItemView.ExtendedSelection)
        self.results_tree.setContextMenuPolicy(QtCore.Qt.CustomContextMenu)
        self.results_tree.customContextMenuRequested.connect(self._handle_tree_right_click)
        self.results_tree.itemDoubleClicked.connect(self._handle_tree_double_click)
        self.results_tree.header().setSectionResizeMode(0, QtWidgets.QHeaderView.Stretch)
        layout.addWidget(self.results_tree, stretch=1)

        self.transfer_panel = TransferPanel(self)
        layout.addWidget(self.transfer_panel)

        self.status_label = QtWidgets.QLabel("Ready")
        layout.addWidget(self.status_label)

        self.stack.addWidget(self.browser_page)
        self.setCentralWidget(self.stack)

    def _create_context_menus(self) -> None:
        self.file_menu = QtWidgets.QMenu(self)
        self.file_menu.addAction("Open in Browser", self._download_selected_via_url)
        self.file_menu.addAction("Download...", self._download_selected_files)
        self.file_menu.addAction("Rename...", self._rename_selected)
        self.file_menu.addSeparator()
        self.file_menu.addAction("Delete", self._delete_selected)

        self.multi_menu = QtWidgets.QMenu(self)
        self.multi_menu.addAction("Download...", self._download_selected_files)
        self.multi_menu.addAction("Delete", self._delete_selected)

        self.folder_menu = QtWidgets.QMenu(self)
        self.folder_menu.addAction("Open", self._open_selected_folder)
        self.folder_menu.addAction("Download Folder...", self._download_selected_folder)
        self.folder_menu.addAction("Rename...", self._rename_selected)
        self.folder_menu.addSeparator()
        self.folder_menu.addAction("Delete", self._delete_selected)

    # -- connection -----------------------------------------------------

    def _handle_auto_connect(self, connected: bool) -> None:
        if connected:
            self._show_browser()
        else:
            self._show_connect_form(cancellable=False)

    def _show_connect_form(self, *, cancellable: bool) -> None:
        self.connect_form.set_cancellable(cancellable)
        self.connect_form.set_busy(False)
        self.connect_form.set_error("")
        self.stack.setCurrentWidget(self.connect_form)

    def _show_browser(self) -> None:
        self.stack.setCurrentWidget(self.browser_page)
        self.refresh_listing()

    def _open_settings(self) -> None:
        self._show_connect_form(cancellable=True)
        self.presenter.load_saved_credentials(on_success=self.connect_form.fill)

    def _close_settings(self) -> None:
        if self.presenter.is_connected:
            self.stack.setCurrentWidget(self.browser_page)

    def _connect(self, credentials: Credentials) -> None:
        self.connect_form.set_busy(True)

        def handle_success() -> None:
            self.bucket_label.setText(credentials.bucket)
            self._show_browser()

        def handle_error(message: str) -> None:
            self.connect_form.set_error(message)

        self.presenter.connect(
            credentials,
            on_success=handle_success,
            on_error=handle_error,
            on_done=lambda: self.connect_form.set_busy(False),
        )

    def _disconnect(self) -> None:
        def handle_done() -> None:
            self.results_tree.clear()
            self.search_edit.clear()
            self.bucket_label.setText("")
            self._show_connect_form(cancellable=False)

        self.presenter.disconnect(on_done=handle_done)

    # -- listing --------------------------------------------------------

    def refresh_listing(self, *, force: bool = False) -> None:
        self.breadcrumbs.set_path(self.presenter.current_path)
        self.up_button.setEnabled(bool(self.presenter.current_path))
        if self.presenter.bucket:
            self.bucket_label.setText(self.presenter.bucket)
        if force:
            self.presenter.invalidate_listings()
        self._set_status("Loading...")
        self.presenter.list_files(
            on_success=self._render_listing,
            on_error=lambda message: self._show_error("List Error", message),
        )

    def _render_listing(self, listing: FileListing) -> None:
        folders, files = self.presenter.visible_entries()
        self.results_tree.clear()
        for folder in folders:
            self._insert_folder_item(folder, listing.prefix)
        for entry in files:
            self._insert_file_item(entry, listing.prefix)
        self._set_status(f"{len(folders)} folder(s), {len(files)} file(s)")

    def _insert_folder_item(self, folder: FolderEntry, base_prefix: str) -> None:
        item = QtWidgets.QTreeWidgetItem([relative_name(folder.prefix, base_prefix) + "/", "", "", ""])
        item.setData(0, ENTRY_ROLE, ("folder", folder.prefix))
        item.setIcon(0, self.style().standardIcon(QtWidgets.QStyle.SP_DirIcon))
        self.results_tree.addTopLevelItem(item)

    def _insert_file_item(self, entry: FileEntry, base_prefix: str) -> None:
        item = QtWidgets.QTreeWidgetItem(
            [
                relative_name(entry.key, base_prefix),
                format_size(entry.size),
                format_last_modified(entry.last_modified),
                entry.storage_class or "-",
            ]
        )
        item.setData(0, ENTRY_ROLE, ("file", entry.key))
        item.setIcon(0, self.style().standardIcon(QtWidgets.QStyle.SP_FileIcon))
        self.results_tree.addTopLevelItem(item)

    def _on_search_changed(self, text: str) -> None:
        self.presenter.set_search_query(text)
        listing = self.presenter.cached_listing()
        if listing is not None:
            self._render_listing(listing)

    def _navigate(self, path: str) -> None:
        self.presenter.navigate(path)
        self.refresh_listing()

    # -- selection ------------------------------------------------------

    def _selected_entries(self) -> list[tuple[str, str]]:
        return [item.data(0, ENTRY_ROLE) for item in self.results_tree.selectedItems()]

    def _handle_tree_double_click(self, item: QtWidgets.QTreeWidgetItem, _column: int) -> None:
        kind, value = item.data(0, ENTRY_ROLE)
        if kind == "folder":
            self._navigate(value)
        else:
            self._download_files([value])

    def _handle_tree_right_click(self, pos: QtCore.QPoint) -> None:
        item = self.results_tree.itemAt(pos)
        if item is None:
            return
        if not item.isSelected():
            self.results_tree.clearSelection()
            item.setSelected(True)
        entries = self._selected_entries()
        global_pos = self.results_tree.viewport().mapToGlobal(pos)
        if len(entries) > 1:
            if all(kind == "file" for kind, _ in entries):
                self.multi_menu.exec(global_pos)
            return
        kind, _ = entries[0]
        menu = self.folder_menu if kind == "folder" else self.file_menu
        menu.exec(global_pos)

    def _open_selected_folder(self) -> None:
        entries = self._selected_entries()
        if len(entries) == 1 and entries[0][0] == "folder":
            self._navigate(entries[0][1])

    # -- uploads --------------------------------------------------------

    def upload_file(self, *_: object) -> None:
        def handle_success(keys: list[str]) -> None:
            self._set_status(f"Uploaded {len(keys)} file(s).")
            self.refresh_listing()

        self.presenter.upload_with_dialog(
            on_success=handle_success,
            on_error=lambda message: self._show_error("Upload Error", message),
            on_cancelled=lambda: self._set_status("Upload cancelled."),
        )

    def _handle_drop(self, paths: list[str]) -> None:
        if not paths:
            return

        def handle_success(key: object) -> None:
            self._set_status(f"Uploaded {key}.")
            self.refresh_listing()

        self.presenter.upload_local_files(
            paths,
            on_success=handle_success,
            on_error=lambda message: self._show_error("Upload Error", message),
        )

    def _pick_upload_files(self) -> list[str] | None:
        paths, _ = QtWidgets.QFileDialog.getOpenFileNames(self, "Select files to upload")
        return paths or None

    def _pick_save_path(self, suggested_name: str) -> str | None:
        path, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Save file", suggested_name)
        return path or None

    def _pick_directory(self) -> str | None:
        path = QtWidgets.QFileDialog.getExistingDirectory(self, "Select download folder")
        return path or None

    # -- downloads ------------------------------------------------------

    def _download_selected_via_url(self) -> None:
        for kind, key in self._selected_entries():
            if kind == "file":
                self.presenter.download_file(
                    key,
                    on_error=lambda message: self._show_error("Download Error", message),
                )

    def _download_selected_files(self) -> None:
        keys = [key for kind, key in self._selected_entries() if kind == "file"]
        self._download_files(keys)

    def _download_files(self, keys: list[str]) -> None:
        if not keys:
            return

        def handle_success(completed: object) -> None:
            self._set_status("Download finished." if completed else "Download cancelled.")

        on_error = lambda message: self._show_error("Download Error", message)
        if len(keys) == 1:
            self.presenter.download_file_with_progress(keys[0], on_success=handle_success, on_error=on_error)
        else:
            self.presenter.download_files(keys, on_success=handle_success, on_error=on_error)

    def _download_selected_folder(self) -> None:
        entries = self._selected_entries()
        if len(entries) != 1 or entries[0][0] != "folder":
            return
        prefix = entries[0][1]
        folder_name = relative_name(prefix, parent_path(prefix))
        self._set_status(f"Downloading {folder_name}...")

        def handle_success(completed: object) -> None:
            self._set_status(f"Downloaded {folder_name}." if completed else "Download cancelled.")

        self.presenter.download_folder(
            prefix,
            folder_name,
            on_success=handle_success,
            on_error=lambda message: self._show_error("Download Error", message),
        )

    # -- mutations ------------------------------------------------------

    def create_folder(self, *_: object) -> None:
        name, accepted = QtWidgets.QInputDialog.getText(self, "New Folder", "Folder name:")
        name = name.strip().strip("/")
        if not accepted or not name:
            return
        self.presenter.create_folder(
            name,
            on_success=lambda: self._after_mutation(f"Created folder {name}."),
            on_error=lambda message: self._show_error("Create Folder Error", message),
        )

    def _rename_selected(self) -> None:
        entries = self._selected_entries()
        if len(entries) != 1:
            return
        kind, value = entries[0]
        current_name = relative_name(value, parent_path(value))
        new_name, accepted = QtWidgets.QInputDialog.getText(self, "Rename", "New name:", text=current_name)
        new_name = new_name.strip().strip("/")
        if not accepted or not new_name:
            return
        on_error = lambda message: self._show_error("Rename Error", message)
        on_success = lambda: self._after_mutation(f"Renamed {current_name} to {new_name}.")
        if kind == "folder":
            self.presenter.rename_folder(value, new_name, on_success=on_success, on_error=on_error)
        else:
            self.presenter.rename_file(value, new_name, on_success=on_success, on_error=on_error)

    def _delete_selected(self) -> None:
        entries = self._selected_entries()
        if not entries:
            return
        if len(entries) == 1:
            prompt = f"Delete {entries[0][1]}?"
        else:
            prompt = f"Delete {len(entries)} items?"
        confirm = QtWidgets.QMessageBox.question(self, "Delete", prompt)
        if confirm != QtWidgets.QMessageBox.Yes:
            return
        on_error = lambda message: self._show_error("Delete Error", message)
        for kind, value in entries:
            on_success = lambda value=value: self._after_mutation(f"Deleted {value}.")
            if kind == "folder":
                self.presenter.delete_folder(value, on_success=on_success, on_error=on_error)
            else:
                self.presenter.delete_file(value, on_success=on_success, on_error=on_error)

    def _after_mutation(self, message: str) -> None:
        self._set_status(message)
        self.refresh_listing()

    # -- settings -------------------------------------------------------

    def open_settings_dialog(self, *_: object) -> None:
        dialog = SettingsDialog(self, settings=self._settings)
        if dialog.exec() != QtWidgets.QDialog.Accepted:
            return
        if dialog.result_settings is None:
            return
        self._settings = dialog.result_settings
        self.presenter.save_settings(self._settings)
        self._apply_backend_settings(self._settings)

    def show_about_dialog(self, *_: object) -> None:
        dialog = AboutDialog(self, package_info=self._package_info)
        dialog.exec()

    def _apply_backend_settings(self, settings: AppSettings) -> None:
        if self._backend is None:
            return
        self._backend.configure_transfers(
            multipart_threshold=settings.upload_multipart_threshold,
            multipart_chunk_size=settings.upload_chunk_size,
            max_concurrency=settings.upload_max_concurrency,
            presigned_url_expiry=settings.presigned_url_expiry,
        )

    # -- misc -----------------------------------------------------------

    def _prune_transfers(self) -> None:
        for handle in self.presenter.prune_transfers():
            self.transfer_panel.remove_transfer(handle.transfer_id)

    def _set_status(self, message: str) -> None:
        self.status_label.setText(message)

    def _show_error(self, title: str, message: str) -> None:
        self._set_status(message)
        QtWidgets.QMessageBox.critical(self, title, message)


class SettingsDialog(QtWidgets.QDialog):
    """Dialog for editing application settings."""

    def __init__(self, parent: QtWidgets.QWidget, *, settings: AppSettings) -> None:
        super().__init__(parent)
        self.setWindowTitle("Preferences")
        self.setModal(True)
        self.result_settings: AppSettings | None = None

        layout = QtWidgets.QVBoxLayout(self)
        tabs = QtWidgets.QTabWidget(self)

        general_tab = QtWidgets.QWidget()
        general_layout = QtWidgets.QFormLayout(general_tab)
        self.auto_connect_checkbox = QtWidgets.QCheckBox("Connect automatically with saved credentials")
        self.auto_connect_checkbox.setChecked(settings.auto_connect)
        general_layout.addRow(self.auto_connect_checkbox)
        self.retention_edit = QtWidgets.QLineEdit(str(settings.transfer_retention_seconds))
        general_layout.addRow("Keep finished transfers (s):", self.retention_edit)
        self.expiry_edit = QtWidgets.QLineEdit(str(settings.presigned_url_expiry))
        general_layout.addRow("Download link expiry (s):", self.expiry_edit)

        upload_tab = QtWidgets.QWidget()
        upload_layout = QtWidgets.QFormLayout(upload_tab)
        self.threshold_edit, self.threshold_unit = self._size_row(
            upload_layout, "Upload multipart threshold:", settings.upload_multipart_threshold
        )
        self.chunk_edit, self.chunk_unit = self._size_row(
            upload_layout, "Upload chunk size:", settings.upload_chunk_size
        )
        self.concurrency_edit = QtWidgets.QLineEdit(str(settings.upload_max_concurrency))
        upload_layout.addRow("Upload max concurrency:", self.concurrency_edit)

        tabs.addTab(general_tab, "General")
        tabs.addTab(upload_tab, "Upload")
        layout.addWidget(tabs)

        button_row = QtWidgets.QHBoxLayout()
        button_row.addStretch(1)
        save_button = QtWidgets.QPushButton("Save")
        save_button.clicked.connect(self._on_save)
        button_row.addWidget(save_button)
        cancel_button = QtWidgets.QPushButton("Cancel")
        cancel_button.clicked.connect(self.reject)
        button_row.addWidget(cancel_button)
        layout.addLayout(button_row)

    def _size_row(
        self, form: QtWidgets.QFormLayout, label: str, size: int
    ) -> tuple[QtWidgets.QLineEdit, QtWidgets.QComboBox]:
        value, unit = split_size_bytes(size)
        edit = QtWidgets.QLineEdit(value)
        combo = QtWidgets.QComboBox()
        combo.addItems(list(SIZE_UNITS))
        combo.setCurrentText(unit)
        row = QtWidgets.QHBoxLayout()
        row.addWidget(edit)
        row.addWidget(combo)
        form.addRow(label, row)
        return edit, combo

    def _positive_int(self, edit: QtWidgets.QLineEdit, label: str) -> int | None:
        try:
            value = int(edit.text().strip())
        except ValueError:
            QtWidgets.QMessageBox.critical(self, "Error", f"{label} must be a whole number")
            return None
        if value <= 0:
            QtWidgets.QMessageBox.critical(self, "Error", f"{label} must be greater than zero")
            return None
        return value

    def _on_save(self) -> None:
        retention = self._positive_int(self.retention_edit, "Transfer retention")
        if retention is None:
            return
        expiry = self._positive_int(self.expiry_edit, "Download link expiry")
        if expiry is None:
            return
        multipart_threshold = parse_size_bytes(self.threshold_edit.text(), self.threshold_unit.currentText())
        if multipart_threshold is None:
            QtWidgets.QMessageBox.critical(self, "Error", "Upload multipart threshold must be valid")
            return
        chunk_size = parse_size_bytes(self.chunk_edit.text(), self.chunk_unit.currentText())
        if chunk_size is None:
            QtWidgets.QMessageBox.critical(self, "Error", "Upload chunk size must be valid")
            return
        max_concurrency = self._positive_int(self.concurrency_edit, "Upload max concurrency")
        if max_concurrency is None:
            return

        self.result_settings = AppSettings(
            auto_connect=self.auto_connect_checkbox.isChecked(),
            transfer_retention_seconds=retention,
            upload_multipart_threshold=multipart_threshold,
            upload_chunk_size=chunk_size,
            upload_max_concurrency=max_concurrency,
            presigned_url_expiry=expiry,
        )
        self.accept()


class AboutDialog(QtWidgets.QDialog):
    """Dialog displaying package metadata."""

    def __init__(self, parent: QtWidgets.QWidget, *, package_info: PackageInfo) -> None:
        super().__init__(parent)
        self.setWindowTitle("About")
        self.setModal(True)

        layout = QtWidgets.QVBoxLayout(self)
        title = QtWidgets.QLabel(f"{package_info.name} {package_info.version}".strip())
        title_font = title.font()
        title_font.setPointSize(14)
        title_font.setBold(True)
        title.setFont(title_font)
        title.setAlignment(QtCore.Qt.AlignCenter)
        layout.addWidget(title)

        summary = QtWidgets.QLabel(package_info.summary or "")
        summary.setAlignment(QtCore.Qt.AlignCenter)
        summary.setWordWrap(True)
        layout.addWidget(summary)

        for label, value in (
            ("Author", package_info.author),
            ("Homepage", package_info.homepage),
            ("Repository", package_info.repository),
        ):
            if value:
                line = QtWidgets.QLabel(f"{label}: {value}")
                line.setAlignment(QtCore.Qt.AlignCenter)
                layout.addWidget(line)

        close_button = QtWidgets.QPushButton("Close")
        close_button.clicked.connect(self.accept)
        layout.addWidget(close_button, alignment=QtCore.Qt.AlignCenter)
