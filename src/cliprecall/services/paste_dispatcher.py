"""Paste dispatcher.

Writes a history item back to the system clipboard and tells the caller
whether to replay the paste keystroke. The write runs inside the monitor's
``self_write()`` guard and its change marker is recorded there, so the
monitor treats the write as already seen instead of recording it again.
"""

import contextlib
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from cliprecall.clipboard.base import ClipboardBackend
from cliprecall.errors import WriteFailure
from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.services.history_store import HistoryStore
from cliprecall.services.monitor import ClipboardMonitor

logger = logging.getLogger(__name__)


class PasteFormat(str, enum.Enum):
    ORIGINAL = "original"
    PLAIN_TEXT = "plainText"


@dataclass(frozen=True)
class PasteResult:
    ok: bool
    item_id: str
    mode: PasteFormat
    paste_gesture: bool = False
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


class PasteDispatcher:

    def __init__(
        self,
        backend: ClipboardBackend,
        monitor: Optional[ClipboardMonitor] = None,
        store: Optional[HistoryStore] = None,
    ) -> None:
        self._backend = backend
        self._monitor = monitor
        self._store = store

    def writeback(
        self,
        item: ClipboardItem,
        mode: PasteFormat = PasteFormat.ORIGINAL,
        paste_gesture: bool = False,
    ) -> PasteResult:
        mode = PasteFormat(mode)
        guard = (self._monitor.self_write() if self._monitor is not None
                 else contextlib.nullcontext())
        with guard as mark_seen:
            try:
                if mode is PasteFormat.PLAIN_TEXT:
                    self._write_plain(item)
                else:
                    self._write_original(item)
            except WriteFailure as exc:
                logger.warning("Could not write %s item %s: %s", item.content_type.value, item.id, exc)
                return PasteResult(False, item.id, mode, error=str(exc))

            if mark_seen is not None:
                self._mark_self_write(mark_seen)
        return PasteResult(True, item.id, mode, paste_gesture=paste_gesture)

    def paste(self, item: ClipboardItem, mode: PasteFormat = PasteFormat.ORIGINAL) -> PasteResult:
        """Write the item and ask the caller to replay the paste keystroke."""
        return self.writeback(item, mode, paste_gesture=True)

    def copy(self, item: ClipboardItem, mode: PasteFormat = PasteFormat.ORIGINAL) -> PasteResult:
        """Write the item without pasting and move it to the top of the history."""
        result = self.writeback(item, mode)
        if result.ok and self._store is not None:
            promoted = self._store.promote(item.id)
            if promoted is not None:
                return PasteResult(True, promoted.id, result.mode)
        return result

    def _write_original(self, item: ClipboardItem) -> None:
        if item.content_type is ContentType.IMAGE:
            if not item.image_data:
                raise WriteFailure("image payload is not available")
            self._backend.write_image(item.image_data, "image/png")
        elif item.content_type is ContentType.FILE:
            self._backend.write_files(item.file_paths)
        else:
            self._backend.write_text(item.plain_text)

    def _write_plain(self, item: ClipboardItem) -> None:
        text = item.plain_text
        if not text:
            raise WriteFailure(f"{item.content_type.value} item has no plain-text form")
        self._backend.write_text(text)

    def _mark_self_write(self, mark_seen: Callable[[int], None]) -> None:
        try:
            marker = self._backend.change_count()
        except Exception:
            logger.exception("Could not read clipboard change marker after write")
            return
        mark_seen(marker)
