"""Clipboard monitor.

Polls the system clipboard's change marker on a fixed interval and feeds
new content through the classifier into the history store. Each tick moves
through ``idle -> polling -> (captured | unchanged | ignored | failed) -> idle``.
"""

import concurrent.futures
import contextlib
import enum
import logging
import threading
import time
from typing import Callable, Optional

from cliprecall.clipboard.base import ClipboardBackend
from cliprecall.errors import ClassifyFailure, ReadFailure
from cliprecall.models.clipboarditem import ClipboardItem
from cliprecall.models.settings import SettingsProvider
from cliprecall.services.classifier import classify_strict
from cliprecall.services.history_store import HistoryStore

logger = logging.getLogger(__name__)


class MonitorState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    CAPTURED = "captured"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"
    FAILED = "failed"


class ClipboardMonitor:
    """Background poller that records clipboard changes into a ``HistoryStore``."""

    def __init__(
        self,
        backend: ClipboardBackend,
        store: HistoryStore,
        settings: SettingsProvider,
        poll_interval: float = 0.5,
        eviction_interval: float = 60.0,
        on_capture: Optional[Callable[[ClipboardItem], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialise the monitor.

        Args:
            backend: Platform clipboard to poll.
            store: History store receiving captured items.
            settings: Provider consulted on every tick (enabled flag, ignored apps).
            poll_interval: Seconds between ticks; also the longest a single
                clipboard read is awaited before it is abandoned.
            eviction_interval: Seconds between eviction passes on idle ticks.
            on_capture: Optional callback receiving every stored item.
            clock: Monotonic clock, injectable for tests.
        """
        self._backend = backend
        self._store = store
        self._settings = settings
        self.poll_interval = poll_interval
        self.eviction_interval = eviction_interval
        self._on_capture = on_capture
        self._clock = clock

        self._lock = threading.RLock()
        self._tick_lock = threading.RLock()
        self._marker_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._poll_thread: Optional[threading.Thread] = None
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._pending: Optional[concurrent.futures.Future] = None
        self._last_seen: Optional[int] = None
        self._last_eviction = clock()
        self._is_running = False
        self.state = MonitorState.IDLE

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def last_seen(self) -> Optional[int]:
        with self._marker_lock:
            return self._last_seen

    # ---------------------------------------------------------------------
    # Lifecycle management
    # ---------------------------------------------------------------------
    def start(self) -> bool:
        """Start background polling; returns ``False`` when monitoring is disabled."""
        with self._lock:
            if self._is_running:
                logger.debug("ClipboardMonitor already running")
                return True

            if not self._settings.current().is_enabled:
                logger.info("Clipboard monitoring disabled in settings")
                return False

            self._prime()
            logger.info("Starting clipboard monitor (interval=%ss)", self.poll_interval)
            self._stop_event.clear()
            self._is_running = True
            self._poll_thread = threading.Thread(
                target=self._poll_loop, name="clipboard-monitor", daemon=True)
            self._poll_thread.start()
            return True

    def stop(self) -> None:
        with self._lock:
            if self._is_running:
                logger.info("Stopping clipboard monitor")
            self._is_running = False
            self._stop_event.set()
            thread, self._poll_thread = self._poll_thread, None

        # join outside the lock
        if thread is not None:
            thread.join(timeout=max(1.0, self.poll_interval * 2))

        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
                self._pending = None

    def restart(self) -> bool:
        """Re-read settings and restart polling (e.g. after settings changed)."""
        self.stop()
        return self.start()

    def run_forever(self) -> None:
        """Poll in the foreground until ``stop()`` is called or Ctrl+C is pressed."""
        try:
            if not self._is_running and not self.start():
                return
            while not self._stop_event.wait(timeout=self.poll_interval):
                continue
        except KeyboardInterrupt:
            logger.info("Clipboard monitor interrupted by user")
        finally:
            self.stop()

    def __enter__(self) -> "ClipboardMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ---------------------------------------------------------------------
    # Self-write suppression
    # ---------------------------------------------------------------------
    def mark_seen(self, marker: int) -> None:
        """Record ``marker`` as already seen so the next tick skips it."""
        with self._marker_lock:
            self._last_seen = marker

    @contextlib.contextmanager
    def self_write(self):
        """Hold polling while the caller writes to the clipboard.

        Yields ``mark_seen``; the caller reports the marker of its own write
        before the context exits, so no tick can observe the write as new.
        """
        with self._tick_lock:
            yield self.mark_seen

    def _prime(self) -> None:
        try:
            self.mark_seen(self._read(self._backend.change_count))
        except ReadFailure as exc:
            logger.warning("Could not read initial clipboard marker: %s", exc)

    # ---------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------
    def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.poll_interval)

    def tick(self) -> MonitorState:
        """Run one poll; never raises."""
        self.state = MonitorState.POLLING
        try:
            with self._tick_lock:
                outcome = self._tick()
        except ReadFailure as exc:
            logger.warning("Clipboard read failed: %s", exc)
            outcome = MonitorState.FAILED
        except Exception:
            logger.exception("Unexpected error while polling the clipboard")
            outcome = MonitorState.FAILED
        finally:
            self.state = MonitorState.IDLE

        if outcome is MonitorState.UNCHANGED:
            self._maybe_evict()
        return outcome

    def _tick(self) -> MonitorState:
        if self._pending is not None and not self._pending.done():
            logger.debug("Previous clipboard read still running, skipping tick")
            return MonitorState.FAILED

        # commit the marker only once the change is read or ignored
        marker = self._read(self._backend.change_count)
        if marker == self.last_seen:
            return MonitorState.UNCHANGED

        settings = self._settings.current()
        if not settings.is_enabled:
            self.mark_seen(marker)
            return MonitorState.IGNORED

        bundle_id, _ = self._read(self._backend.frontmost_app)
        if settings.is_ignored(bundle_id):
            self.mark_seen(marker)
            logger.info("Ignoring clipboard change from %s", bundle_id)
            return MonitorState.IGNORED

        snapshot = self._read(self._backend.read_snapshot)
        self.mark_seen(marker)
        if settings.is_ignored(snapshot.source_bundle_id):
            logger.info("Ignoring clipboard change from %s", snapshot.source_bundle_id)
            return MonitorState.IGNORED

        try:
            candidate = classify_strict(snapshot)
        except ClassifyFailure as exc:
            logger.debug("Dropping clipboard change: %s", exc)
            return MonitorState.UNCHANGED

        stored = self._store.insert(candidate)
        if stored is None:
            return MonitorState.UNCHANGED

        logger.info("Clipboard captured: %s", stored.content_type.value)
        if self._on_capture is not None:
            try:
                self._on_capture(stored)
            except Exception:
                logger.exception("Error while calling on_capture")
        return MonitorState.CAPTURED

    def _read(self, func):
        """Run a clipboard call on the reader thread, abandoning it after one interval."""
        with self._lock:
            if self._executor is None:
                self._executor = concurrent.futures.ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="clipboard-read")
            future = self._executor.submit(func)
            self._pending = future

        try:
            result = future.result(timeout=self.poll_interval)
        except concurrent.futures.TimeoutError:
            raise ReadFailure(
                f"clipboard read took longer than {self.poll_interval}s") from None
        self._pending = None
        return result

    def _maybe_evict(self) -> None:
        now = self._clock()
        if now - self._last_eviction < self.eviction_interval:
            return
        self._last_eviction = now
        try:
            self._store.evict()
        except Exception:
            logger.exception("Periodic eviction failed")
