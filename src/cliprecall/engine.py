"""Clipboard history engine.

``ClipboardEngine`` owns one history store and wires the monitor, query
engine, paste dispatcher and background persistence around it. Construct
one per process and hand it to whatever hosts the UI loop.
"""

import datetime
import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Union

from cliprecall.clipboard import ClipboardBackend, get_clipboard_backend
from cliprecall.config import EngineConfig
from cliprecall.database import FileHistoryStore, HistoryBackend, MemoryBackend, PersistenceWorker
from cliprecall.errors import PersistenceFailure
from cliprecall.models.clipboarditem import ClipboardItem, ContentType, utcnow
from cliprecall.models.settings import JsonSettingsProvider, SettingsProvider
from cliprecall.services.history_store import HistoryChange, HistoryStore
from cliprecall.services.monitor import ClipboardMonitor
from cliprecall.services.paste_dispatcher import PasteDispatcher, PasteFormat, PasteResult
from cliprecall.services.query import QueryEngine, TypeFilter

logger = logging.getLogger(__name__)

ItemRef = Union[ClipboardItem, str]


class ClipboardEngine:

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        backend: Optional[ClipboardBackend] = None,
        settings: Optional[SettingsProvider] = None,
        storage: Optional[HistoryBackend] = None,
        now: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.settings = settings or JsonSettingsProvider(self.config.settings_path)
        self.store = HistoryStore(self.settings, now=now)
        self.query = QueryEngine(self.store)
        self.storage = storage or self._create_storage()
        self.persistence = PersistenceWorker(
            self.store, self.storage, flush_interval=self.config.flush_interval)

        self._backend = backend
        self._monitor: Optional[ClipboardMonitor] = None
        self._dispatcher: Optional[PasteDispatcher] = None
        self._lock = threading.Lock()
        self._loaded = False
        self.running = False

    def _create_storage(self) -> HistoryBackend:
        if self.config.storage == "memory":
            return MemoryBackend()
        if self.config.storage == "redis":
            try:
                return self.config.redis.create_manager()
            except PersistenceFailure as e:
                logger.warning("Redis unavailable, continuing without persistence: %s", e)
                return MemoryBackend()
        return FileHistoryStore(self.config.data_dir)

    # ---------------------------------------------------------------------
    # Collaborators
    # ---------------------------------------------------------------------
    @property
    def clipboard(self) -> ClipboardBackend:
        with self._lock:
            if self._backend is None:
                self._backend = get_clipboard_backend()
            return self._backend

    @property
    def monitor(self) -> ClipboardMonitor:
        backend = self.clipboard
        with self._lock:
            if self._monitor is None:
                self._monitor = ClipboardMonitor(
                    backend,
                    self.store,
                    self.settings,
                    poll_interval=self.config.poll_interval,
                    eviction_interval=self.config.eviction_interval,
                )
            return self._monitor

    @property
    def dispatcher(self) -> PasteDispatcher:
        backend = self.clipboard
        monitor = self.monitor
        with self._lock:
            if self._dispatcher is None:
                self._dispatcher = PasteDispatcher(
                    backend, monitor=monitor, store=self.store)
            return self._dispatcher

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------
    def open(self) -> List[ClipboardItem]:
        """Load persisted history once; later calls return the current items."""
        with self._lock:
            if self._loaded:
                return self.store.all_items()
            self._loaded = True
        items = self.persistence.load()
        logger.info("Clipboard history ready with %d item(s)", len(items))
        return items

    def start(self) -> bool:
        if self.running:
            return True
        self.open()
        self.persistence.start()
        self.running = True
        if not self.monitor.start():
            logger.info("Clipboard engine started without monitoring")
        return True

    def stop(self) -> None:
        if self._monitor is not None:
            self._monitor.stop()
        if not self.running:
            return
        self.running = False
        self.persistence.stop()

    def close(self) -> None:
        self.stop()
        self.persistence.close()

    def run_forever(self) -> None:
        self.start()
        try:
            while self.running:
                time.sleep(1.0)
        except KeyboardInterrupt:
            logger.info("Stopping...")
        finally:
            self.stop()

    def __enter__(self) -> "ClipboardEngine":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------------------------------------------------------------
    # Presentation-facing operations
    # ---------------------------------------------------------------------
    def subscribe(self, callback: Callable[[HistoryChange], None]) -> Callable[[], None]:
        return self.store.subscribe(callback)

    def all_items(self) -> List[ClipboardItem]:
        return self.store.all_items()

    def get(self, item_id: str) -> Optional[ClipboardItem]:
        return self.store.get(item_id)

    def search(self, query: str = "", type_filter: TypeFilter = None) -> List[ClipboardItem]:
        return self.query.search(query, type_filter)

    def counts_by_type(self) -> Dict[ContentType, int]:
        return self.query.counts_by_type()

    def toggle_pin(self, item_id: str) -> Optional[ClipboardItem]:
        return self.store.toggle_pin(item_id)

    def remove(self, *item_ids: str) -> List[ClipboardItem]:
        return self.store.remove(item_ids)

    def clear(self) -> List[ClipboardItem]:
        return self.store.clear()

    def paste(self, item: ItemRef, mode: PasteFormat = PasteFormat.ORIGINAL) -> PasteResult:
        resolved = self._resolve(item)
        if resolved is None:
            return PasteResult(False, str(item), PasteFormat(mode), error="unknown item")
        return self.dispatcher.paste(resolved, mode)

    def copy(self, item: ItemRef, mode: PasteFormat = PasteFormat.ORIGINAL) -> PasteResult:
        resolved = self._resolve(item)
        if resolved is None:
            return PasteResult(False, str(item), PasteFormat(mode), error="unknown item")
        return self.dispatcher.copy(resolved, mode)

    def flush(self) -> bool:
        return self.persistence.flush()

    def _resolve(self, item: ItemRef) -> Optional[ClipboardItem]:
        if isinstance(item, ClipboardItem):
            return item
        return self.store.get(item)
