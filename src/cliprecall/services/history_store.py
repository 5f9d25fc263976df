"""History store.

Ordered, bounded collection of clipboard items, newest first. Every read and
mutation runs under one re-entrant lock, and eviction happens inside the same
critical section as the insert that triggered it, so callers never observe a
partially evicted history.

Eviction only ever touches unpinned items and runs in three passes:

1. count limit: oldest unpinned items beyond ``history_limit`` go first;
2. age limit: unpinned items older than ``retention_days`` go;
3. capacity: oldest unpinned items go one at a time while the total size
   (pinned included) exceeds ``capacity_limit``. Pinned data is never evicted
   for capacity, so the total can stay above the limit when only pinned items
   remain.

"Oldest" is decided by ``created_at``; ids are never reused so no further
tie-break is needed.
"""

import datetime
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from cliprecall.models.clipboarditem import ClipboardItem, utcnow
from cliprecall.models.settings import ClipboardSettings, SettingsProvider, StaticSettingsProvider
from cliprecall.services.fingerprint import same_content

logger = logging.getLogger(__name__)

INSERTED = "inserted"
EVICTED = "evicted"
REMOVED = "removed"
CLEARED = "cleared"
PINNED = "pinned"
PROMOTED = "promoted"
LOADED = "loaded"


@dataclass(frozen=True)
class HistoryChange:
    kind: str
    item_ids: Tuple[str, ...] = ()


Subscriber = Callable[[HistoryChange], None]


class HistoryStore:

    def __init__(
        self,
        settings: Optional[SettingsProvider] = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._settings = settings or StaticSettingsProvider()
        self._now = now
        self._lock = threading.RLock()
        self._items: List[ClipboardItem] = []
        self._total_bytes = 0
        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------
    def all_items(self) -> List[ClipboardItem]:
        with self._lock:
            return list(self._items)

    def get(self, item_id: str) -> Optional[ClipboardItem]:
        with self._lock:
            return self._find(item_id)

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def newest_unpinned(self) -> Optional[ClipboardItem]:
        with self._lock:
            return next((item for item in self._items if not item.is_pinned), None)

    # ---------------------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------------------
    def insert(self, candidate: ClipboardItem) -> Optional[ClipboardItem]:
        """Prepend ``candidate`` as the newest item and run eviction.

        Returns ``None`` when the candidate repeats the newest unpinned item
        (an unchanged clipboard seen twice) or when eviction removed it
        straight away.
        """
        with self._lock:
            if self._find(candidate.id) is not None:
                raise ValueError(f"item {candidate.id} is already stored")

            if same_content(self.newest_unpinned(), candidate):
                logger.debug("Skipping duplicate %s capture", candidate.content_type.value)
                return None

            self._items.insert(0, candidate)
            self._total_bytes += candidate.data_size
            evicted = self._evict_locked()

        rejected = any(item.id == candidate.id for item in evicted)
        changes = []
        if not rejected:
            changes.append(HistoryChange(INSERTED, (candidate.id,)))
        visible = tuple(item.id for item in evicted if item.id != candidate.id)
        if visible:
            changes.append(HistoryChange(EVICTED, visible))
        self._publish(changes)

        if rejected:
            return None
        return candidate

    def remove(self, item_ids: Iterable[str]) -> List[ClipboardItem]:
        """Delete items by id; this is the only way pinned items ever leave."""
        wanted = {item_ids} if isinstance(item_ids, str) else set(item_ids)
        with self._lock:
            removed = self._drop_locked([item for item in self._items if item.id in wanted])

        if removed:
            self._publish([HistoryChange(REMOVED, tuple(item.id for item in removed))])
        return removed

    def clear(self) -> List[ClipboardItem]:
        """Remove every unpinned item; pinned items are untouched."""
        with self._lock:
            removed = self._drop_locked([item for item in self._items if not item.is_pinned])

        self._publish([HistoryChange(CLEARED, tuple(item.id for item in removed))])
        return removed

    def toggle_pin(self, item_id: str) -> Optional[ClipboardItem]:
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return None
            item.is_pinned = not item.is_pinned

        self._publish([HistoryChange(PINNED, (item.id,))])
        return item

    def promote(self, item_id: str) -> Optional[ClipboardItem]:
        """Move an item to the head of the history.

        The item is replaced by a copy with a fresh id and ``created_at`` so
        both stay immutable for the lifetime of an item.
        """
        with self._lock:
            item = self._find(item_id)
            if item is None:
                return None
            if self._items[0] is item:
                return item

            fresh = item.replace(id="", created_at=self._now())
            self._items.remove(item)
            self._items.insert(0, fresh)

        self._publish([HistoryChange(PROMOTED, (item.id, fresh.id))])
        return fresh

    def load(self, items: Sequence[ClipboardItem]) -> List[ClipboardItem]:
        """Replace the contents with ``items`` (e.g. restored from disk)."""
        with self._lock:
            self._items = sorted(items, key=lambda item: item.created_at, reverse=True)
            self._total_bytes = sum(item.data_size for item in self._items)
            evicted = self._evict_locked()
            loaded = [item.id for item in self._items]

        changes = [HistoryChange(LOADED, tuple(loaded))]
        if evicted:
            changes.append(HistoryChange(EVICTED, tuple(item.id for item in evicted)))
        self._publish(changes)
        return self.all_items()

    def evict(self) -> List[ClipboardItem]:
        """Run an eviction pass outside of an insert (age limits advance with time)."""
        with self._lock:
            evicted = self._evict_locked()

        if evicted:
            self._publish([HistoryChange(EVICTED, tuple(item.id for item in evicted))])
        return evicted

    # ---------------------------------------------------------------------
    # Eviction
    # ---------------------------------------------------------------------
    def _evict_locked(self) -> List[ClipboardItem]:
        settings: ClipboardSettings = self._settings.current()
        evicted: List[ClipboardItem] = []

        if settings.has_history_limit:
            unpinned = self._unpinned_oldest_first()
            excess = len(unpinned) - settings.history_limit
            if excess > 0:
                evicted += self._drop_locked(unpinned[:excess])

        if settings.has_retention_limit:
            cutoff = self._now() - datetime.timedelta(days=settings.retention_days)
            expired = [item for item in self._unpinned_oldest_first() if item.created_at < cutoff]
            evicted += self._drop_locked(expired)

        if self._total_bytes > settings.capacity_limit:
            for item in self._unpinned_oldest_first():
                if self._total_bytes <= settings.capacity_limit:
                    break
                evicted += self._drop_locked([item])
            if self._total_bytes > settings.capacity_limit:
                logger.debug(
                    "History holds %d bytes of pinned data above the %d byte capacity",
                    self._total_bytes, settings.capacity_limit,
                )

        if evicted:
            logger.info("Evicted %d clipboard item(s)", len(evicted))
        return evicted

    def _unpinned_oldest_first(self) -> List[ClipboardItem]:
        # reversed so equal timestamps keep insertion order (stable sort)
        unpinned = [item for item in reversed(self._items) if not item.is_pinned]
        return sorted(unpinned, key=lambda item: item.created_at)

    def _drop_locked(self, victims: Sequence[ClipboardItem]) -> List[ClipboardItem]:
        if not victims:
            return []
        ids = {item.id for item in victims}
        kept, dropped = [], []
        for item in self._items:
            (dropped if item.id in ids else kept).append(item)
        self._items = kept
        self._total_bytes -= sum(item.data_size for item in dropped)
        return dropped

    def _find(self, item_id: str) -> Optional[ClipboardItem]:
        return next((item for item in self._items if item.id == item_id), None)

    # ---------------------------------------------------------------------
    # Change notifications
    # ---------------------------------------------------------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for every visible change; returns an unsubscribe function."""
        with self._subscribers_lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, changes: Sequence[HistoryChange]) -> None:
        with self._subscribers_lock:
            subscribers = list(self._subscribers)

        for change in changes:
            for callback in subscribers:
                try:
                    callback(change)
                except Exception:
                    logger.exception("History subscriber failed on %s", change.kind)
