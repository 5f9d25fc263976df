import logging
import threading
from typing import Callable, List, Optional

from cliprecall.database.base import HistoryBackend
from cliprecall.errors import PersistenceFailure
from cliprecall.models.clipboarditem import ClipboardItem
from cliprecall.services.history_store import HistoryChange, HistoryStore

logger = logging.getLogger(__name__)


class PersistenceWorker:
    """Flushes the in-memory history to a backend in the background.

    The store is updated first and readers see changes immediately; the
    worker only notices that something changed and writes a snapshot on its
    next cycle. A failed flush keeps the history marked dirty and is retried
    on the following cycle, so at most one flush interval is lost on a crash.
    """

    def __init__(self, store: HistoryStore, backend: HistoryBackend, flush_interval: float = 2.0):
        self._store = store
        self._backend = backend
        self.flush_interval = flush_interval
        self._dirty = threading.Event()
        self._stop_event = threading.Event()
        self._flush_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self._on_change)
        self.failures = 0

    @property
    def is_dirty(self) -> bool:
        return self._dirty.is_set()

    def _on_change(self, change: HistoryChange) -> None:
        self._dirty.set()

    def load(self) -> List[ClipboardItem]:
        """Restore the store from the backend; a failure leaves the store empty."""
        try:
            items = self._backend.load()
        except PersistenceFailure as e:
            logger.warning("Could not load clipboard history: %s", e)
            return []
        return self._store.load(items)

    def flush(self) -> bool:
        with self._flush_lock:
            if not self._dirty.is_set():
                return True
            self._dirty.clear()
            items = self._store.all_items()
            try:
                self._backend.save(items)
            except PersistenceFailure as e:
                self._dirty.set()
                self.failures += 1
                logger.warning("Clipboard history flush failed, will retry: %s", e)
                return False
            except Exception:
                self._dirty.set()
                self.failures += 1
                logger.exception("Unexpected error while flushing clipboard history")
                return False
        logger.debug("Flushed %d clipboard item(s) to %s", len(items), self._backend.name)
        return True

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="history-flush", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=max(1.0, self.flush_interval * 2))
            self._thread = None
        self.flush()

    def close(self) -> None:
        self.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._backend.close()

    def _run(self) -> None:
        while not self._stop_event.wait(self.flush_interval):
            self.flush()
