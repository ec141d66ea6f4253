from __future__ import annotations
"""Correlates backend progress events with active transfers."""
import logging
import time
from typing import Callable

from .backend import ProgressEvent, StorageBackend
from .models import TransferHandle, TransferKind, TransferStatus

LOGGER = logging.getLogger(__name__)

DispatchFn = Callable[[Callable[[], None]], None]
TransferListener = Callable[[TransferHandle], None]


def _parse_status(value: object) -> TransferStatus:
    try:
        return TransferStatus(str(value).lower())
    except ValueError:
        return TransferStatus.IN_PROGRESS


def _parse_kind(value: object) -> TransferKind:
    try:
        return TransferKind(str(value).lower())
    except ValueError:
        return TransferKind.DOWNLOAD


class TransferTracker:
    """Keeps one :class:`TransferHandle` per transfer id and notifies listeners.

    Backend events may arrive on worker threads; they are handed to ``dispatch``
    so handle updates and listener calls happen on the UI thread.
    """

    def __init__(
        self,
        backend: StorageBackend,
        *,
        dispatch: DispatchFn | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._dispatch = dispatch or (lambda func: func())
        self._clock = clock
        self._handles: dict[str, TransferHandle] = {}
        self._listeners: list[TransferListener] = []
        self._subscribed = False

    def start(self) -> None:
        if self._subscribed:
            return
        self._backend.on_transfer_progress(self._on_backend_event)
        self._subscribed = True

    def subscribe(self, listener: TransferListener) -> None:
        self._listeners.append(listener)

    def register(self, transfer_id: str, kind: TransferKind, name: str = "") -> TransferHandle:
        handle = TransferHandle(transfer_id=transfer_id, kind=kind, name=name)
        self._handles[transfer_id] = handle
        self._notify(handle)
        return handle

    def get(self, transfer_id: str) -> TransferHandle | None:
        return self._handles.get(transfer_id)

    def active(self) -> list[TransferHandle]:
        return list(self._handles.values())

    def handle_event(self, event: ProgressEvent) -> TransferHandle | None:
        transfer_id = event.get("transferId") or event.get("transfer_id")
        if not transfer_id:
            LOGGER.debug("Ignoring progress event without transfer id: %r", event)
            return None
        handle = self._handles.get(transfer_id)
        if handle is None:
            handle = TransferHandle(
                transfer_id=transfer_id,
                kind=_parse_kind(event.get("kind")),
                name=event.get("name") or "",
            )
            self._handles[transfer_id] = handle
        elif handle.status.is_terminal:
            return handle

        status = _parse_status(event.get("status", TransferStatus.IN_PROGRESS.value))
        try:
            progress = float(event.get("progress", handle.progress))
        except (TypeError, ValueError):
            progress = handle.progress
        handle.progress = min(max(progress, 0.0), 1.0)
        if status == TransferStatus.PENDING:
            status = TransferStatus.IN_PROGRESS
        self._apply_status(handle, status, event.get("error"))
        self._notify(handle)
        return handle

    def finish(self, transfer_id: str, status: TransferStatus, error: str | None = None) -> None:
        handle = self._handles.get(transfer_id)
        if handle is None or handle.status.is_terminal:
            return
        self._apply_status(handle, status, error)
        self._notify(handle)

    def prune(self, retention: float) -> list[TransferHandle]:
        now = self._clock()
        removed = [
            handle
            for handle in self._handles.values()
            if handle.finished_at is not None and now - handle.finished_at >= retention
        ]
        for handle in removed:
            del self._handles[handle.transfer_id]
        return removed

    def _apply_status(self, handle: TransferHandle, status: TransferStatus, error: object) -> None:
        handle.status = status
        if status == TransferStatus.COMPLETED:
            handle.progress = 1.0
        if status == TransferStatus.FAILED and error:
            handle.error = str(error)
        if status.is_terminal:
            handle.finished_at = self._clock()
            LOGGER.debug("Transfer %s finished: %s", handle.transfer_id, status.value)

    def _on_backend_event(self, event: ProgressEvent) -> None:
        self._dispatch(lambda: self.handle_event(event))

    def _notify(self, handle: TransferHandle) -> None:
        for listener in list(self._listeners):
            listener(handle)
