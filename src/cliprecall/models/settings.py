from __future__ import annotations

import enum
import json
import logging
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

UNLIMITED = -1


class ClickMode(str, enum.Enum):
    DOUBLE_CLICK = "double"
    SINGLE_CLICK = "single"


class HistoryLimit(enum.IntEnum):
    LIMIT_100 = 100
    LIMIT_200 = 200
    LIMIT_400 = 400
    LIMIT_800 = 800
    UNLIMITED = UNLIMITED


class RetentionDays(enum.IntEnum):
    DAYS_7 = 7
    DAYS_30 = 30
    FOREVER = UNLIMITED


class CapacityLimit(enum.IntEnum):
    GB_2 = 2 * 1024 ** 3
    GB_4 = 4 * 1024 ** 3


DEFAULT_IGNORED_APPS = [
    "com.apple.keychainaccess",
    "com.apple.Passwords",
]


class ClipboardSettings(BaseModel):
    """Read-only settings snapshot consumed by the engine.

    ``history_limit`` and ``retention_days`` use ``-1`` for "no limit"; the
    presets above are what a settings screen offers, any positive value is
    accepted.
    """

    is_enabled: bool = True
    click_mode: ClickMode = ClickMode.DOUBLE_CLICK
    history_limit: int = int(HistoryLimit.LIMIT_200)
    retention_days: int = int(RetentionDays.DAYS_30)
    capacity_limit: int = int(CapacityLimit.GB_2)
    ignored_app_bundle_ids: List[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORED_APPS))

    @field_validator("history_limit", "retention_days")
    @classmethod
    def _positive_or_unlimited(cls, value: int) -> int:
        if value != UNLIMITED and value <= 0:
            raise ValueError("must be a positive number or -1 for unlimited")
        return value

    @field_validator("capacity_limit")
    @classmethod
    def _positive_capacity(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("capacity limit must be positive")
        return value

    @property
    def has_history_limit(self) -> bool:
        return self.history_limit != UNLIMITED

    @property
    def has_retention_limit(self) -> bool:
        return self.retention_days != UNLIMITED

    def is_ignored(self, bundle_id: Optional[str]) -> bool:
        return bool(bundle_id) and bundle_id in self.ignored_app_bundle_ids


class SettingsProvider:
    """Source of the current settings; the engine calls ``current()`` on every pass."""

    def current(self) -> ClipboardSettings:
        raise NotImplementedError


class StaticSettingsProvider(SettingsProvider):

    def __init__(self, settings: Optional[ClipboardSettings] = None) -> None:
        self._settings = settings or ClipboardSettings()
        self._lock = threading.Lock()

    def current(self) -> ClipboardSettings:
        with self._lock:
            return self._settings

    def replace(self, settings: ClipboardSettings) -> None:
        with self._lock:
            self._settings = settings

    def update(self, **changes) -> ClipboardSettings:
        with self._lock:
            data = self._settings.model_dump()
            data.update(changes)
            self._settings = ClipboardSettings.model_validate(data)
            return self._settings


class JsonSettingsProvider(SettingsProvider):
    """Settings stored as a JSON document, reloaded whenever the file changes."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._settings = ClipboardSettings()

    def current(self) -> ClipboardSettings:
        with self._lock:
            try:
                mtime = self.path.stat().st_mtime
            except OSError:
                return self._settings

            if mtime != self._mtime:
                self._mtime = mtime
                self._settings = self._read()
            return self._settings

    def _read(self) -> ClipboardSettings:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return ClipboardSettings.model_validate(raw)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Invalid settings file %s, using defaults: %s", self.path, exc)
            return ClipboardSettings()

    def save(self, settings: ClipboardSettings) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
            self._settings = settings
            self._mtime = self.path.stat().st_mtime
