"""Service layer for cliprecall."""

from cliprecall.services.classifier import classify, classify_strict
from cliprecall.services.fingerprint import Fingerprint, same_content
from cliprecall.services.history_store import HistoryChange, HistoryStore
from cliprecall.services.monitor import ClipboardMonitor, MonitorState
from cliprecall.services.paste_dispatcher import PasteDispatcher, PasteFormat, PasteResult
from cliprecall.services.query import QueryEngine, search

__all__ = [
    "ClipboardMonitor",
    "Fingerprint",
    "HistoryChange",
    "HistoryStore",
    "MonitorState",
    "PasteDispatcher",
    "PasteFormat",
    "PasteResult",
    "QueryEngine",
    "classify",
    "classify_strict",
    "same_content",
    "search",
]
