import datetime
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

# Make src importable
REPO_ROOT = Path(__file__).resolve().parent.parent
SRC = REPO_ROOT / "src"
sys.path.insert(0, str(SRC))

from cliprecall.clipboard.base import ClipboardBackend, ClipboardSnapshot  # noqa: E402
from cliprecall.models.settings import ClipboardSettings, StaticSettingsProvider  # noqa: E402
from cliprecall.services.history_store import HistoryStore  # noqa: E402

START = datetime.datetime(2024, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)


class FakeClock:
    """Wall clock the tests advance by hand."""

    def __init__(self, start: datetime.datetime = START):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **delta) -> datetime.datetime:
        self.now += datetime.timedelta(**delta)
        return self.now


class FakeClipboard(ClipboardBackend):
    """In-memory clipboard; every write bumps the change counter like a real pasteboard."""

    name = "fake"

    def __init__(self):
        self.count = 0
        self.snapshot = ClipboardSnapshot()
        self.writes: List[Tuple[str, object]] = []
        self.fail_writes = False
        self.fail_reads = False

    def set_snapshot(self, **fields) -> ClipboardSnapshot:
        # contents first, then the marker
        self.snapshot = ClipboardSnapshot(change_count=self.count + 1, **fields)
        self.count += 1
        return self.snapshot

    def copy_text(self, text: str, source: Optional[str] = None) -> ClipboardSnapshot:
        return self.set_snapshot(text=text, source_bundle_id=source)

    def change_count(self) -> int:
        return self.count

    def frontmost_app(self):
        return self.snapshot.source_bundle_id, self.snapshot.source_app_name

    def _read(self) -> ClipboardSnapshot:
        if self.fail_reads:
            raise RuntimeError("pasteboard unavailable")
        return self.snapshot

    def _write_text(self, text: str) -> bool:
        return self._record("text", text, ClipboardSnapshot(text=text))

    def _write_image(self, data: bytes, mime: str) -> bool:
        return self._record("image", data, ClipboardSnapshot(image=data, image_type=mime))

    def _write_files(self, paths: List[str]) -> bool:
        return self._record("files", list(paths), ClipboardSnapshot(file_paths=list(paths)))

    def _record(self, kind: str, payload, snapshot: ClipboardSnapshot) -> bool:
        if self.fail_writes:
            return False
        self.writes.append((kind, payload))
        self.snapshot = snapshot
        self.count += 1
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> StaticSettingsProvider:
    return StaticSettingsProvider(ClipboardSettings())


@pytest.fixture
def store(settings, clock) -> HistoryStore:
    return HistoryStore(settings, now=clock)


@pytest.fixture
def clipboard() -> FakeClipboard:
    return FakeClipboard()
