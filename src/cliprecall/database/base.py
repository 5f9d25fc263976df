from abc import ABC, abstractmethod
from typing import List, Sequence

from cliprecall.models.clipboarditem import ClipboardItem


class HistoryBackend(ABC):
    """Durable storage for the history; the in-memory store stays authoritative."""

    name = "base"

    @abstractmethod
    def load(self) -> List[ClipboardItem]:
        """Return the persisted items; raises ``PersistenceFailure``."""

    @abstractmethod
    def save(self, items: Sequence[ClipboardItem]) -> None:
        """Persist ``items`` (newest first) replacing what was stored; raises ``PersistenceFailure``."""

    def close(self) -> None:
        pass

    def __enter__(self) -> "HistoryBackend":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class MemoryBackend(HistoryBackend):
    """Keeps the last saved history in memory only."""

    name = "memory"

    def __init__(self) -> None:
        self._items: List[ClipboardItem] = []

    def load(self) -> List[ClipboardItem]:
        return list(self._items)

    def save(self, items: Sequence[ClipboardItem]) -> None:
        self._items = list(items)
