from collections import Counter
from typing import Dict, Optional, Sequence, List, Union

from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.services.history_store import HistoryStore

TypeFilter = Optional[Union[ContentType, str]]


def matches(item: ClipboardItem, query: str, type_filter: TypeFilter = None) -> bool:
    if type_filter is not None and item.content_type is not ContentType(type_filter):
        return False
    if not query:
        return True
    return query.casefold() in item.searchable_text.casefold()


def search(items: Sequence[ClipboardItem], query: str = "", type_filter: TypeFilter = None) -> List[ClipboardItem]:
    """Filter ``items`` by type and case-insensitive substring, keeping their order."""
    return [item for item in items if matches(item, query, type_filter)]


def resolve_selection(items: Sequence[ClipboardItem], index: int) -> Optional[ClipboardItem]:
    """Translate a row index of a result list into its item."""
    if 0 <= index < len(items):
        return items[index]
    return None


class QueryEngine:
    """Read-only views over a ``HistoryStore``; nothing is cached."""

    def __init__(self, store: HistoryStore) -> None:
        self._store = store

    def search(self, query: str = "", type_filter: TypeFilter = None) -> List[ClipboardItem]:
        return search(self._store.all_items(), query, type_filter)

    def counts_by_type(self) -> Dict[ContentType, int]:
        counts = Counter(item.content_type for item in self._store.all_items())
        return {content_type: counts.get(content_type, 0) for content_type in ContentType}

    def select(self, query: str, type_filter: TypeFilter, index: int) -> Optional[ClipboardItem]:
        return resolve_selection(self.search(query, type_filter), index)
