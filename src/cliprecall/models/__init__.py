"""Data model for the clipboard history engine."""

from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.models.records import ClipboardRecord, HistoryIndex
from cliprecall.models.settings import (
    ClickMode,
    ClipboardSettings,
    JsonSettingsProvider,
    SettingsProvider,
    StaticSettingsProvider,
)

__all__ = [
    "ClickMode",
    "ClipboardItem",
    "ClipboardRecord",
    "ClipboardSettings",
    "ContentType",
    "HistoryIndex",
    "JsonSettingsProvider",
    "SettingsProvider",
    "StaticSettingsProvider",
]
