"""Clipboard history engine: capture, deduplicate, bound, persist and query clipboard history."""

from cliprecall.engine import ClipboardEngine
from cliprecall.models import ClipboardItem, ClipboardSettings, ContentType
from cliprecall.services import HistoryStore, PasteFormat, PasteResult

__version__ = "0.1.0"

__all__ = [
    "ClipboardEngine",
    "ClipboardItem",
    "ClipboardSettings",
    "ContentType",
    "HistoryStore",
    "PasteFormat",
    "PasteResult",
]
