from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from cliprecall.database.redis_manager import RedisManager

STORAGE_BACKENDS = ("file", "redis", "memory")


def _load_env(env_path: Optional[Path] = None) -> None:
    if env_path is not None:
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _to_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class RedisConfig:
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    prefix: str = "cliprecall"

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "RedisConfig":
        _load_env(env_path)

        prefix = os.getenv("CLIPRECALL_REDIS_PREFIX", cls.prefix)
        uri = os.getenv("REDIS_URI")
        if uri:
            return cls.from_uri(uri, prefix=prefix)

        host = os.getenv("REDIS_HOST", cls.host)
        port_raw = os.getenv("REDIS_PORT")
        db_raw = os.getenv("REDIS_DB")
        password = os.getenv("REDIS_PASSWORD") or None

        port = int(port_raw) if port_raw else cls.port
        db = int(db_raw) if db_raw else cls.db

        return cls(host=host, port=port, db=db, password=password, prefix=prefix)

    @classmethod
    def from_uri(cls, uri: str, prefix: str = "cliprecall") -> "RedisConfig":
        parsed = urlparse(uri)
        if parsed.scheme not in {"redis", "rediss"}:
            raise ValueError(
                f"Unsupported Redis URI scheme: {parsed.scheme!r}")

        host = parsed.hostname or cls.host
        port = parsed.port or cls.port
        password = parsed.password or None
        db_fragment = parsed.path.lstrip("/")
        db = int(db_fragment) if db_fragment else cls.db

        return cls(host=host, port=port, db=db, password=password, prefix=prefix)

    def create_manager(self) -> "RedisManager":
        from cliprecall.database.redis_manager import RedisManager

        return RedisManager(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            prefix=self.prefix,
        )


@dataclass(frozen=True)
class EngineConfig:
    data_dir: Path = field(default_factory=lambda: Path.home() / ".cliprecall")
    storage: str = "file"
    poll_interval: float = 0.5
    flush_interval: float = 2.0
    eviction_interval: float = 60.0
    settings_file: Optional[Path] = None
    redis: RedisConfig = field(default_factory=RedisConfig)

    def __post_init__(self) -> None:
        if self.storage not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown storage backend {self.storage!r}, expected one of {STORAGE_BACKENDS}")

    @property
    def settings_path(self) -> Path:
        return self.settings_file or self.data_dir / "settings.json"

    @classmethod
    def from_env(cls, *, env_path: Optional[Path] = None) -> "EngineConfig":
        _load_env(env_path)

        data_dir_raw = os.getenv("CLIPRECALL_DATA_DIR")
        data_dir = Path(data_dir_raw).expanduser() if data_dir_raw else Path.home() / ".cliprecall"
        settings_raw = os.getenv("CLIPRECALL_SETTINGS_FILE")

        return cls(
            data_dir=data_dir,
            storage=os.getenv("CLIPRECALL_STORAGE", "file").strip().lower(),
            poll_interval=_to_float("CLIPRECALL_POLL_INTERVAL", 0.5),
            flush_interval=_to_float("CLIPRECALL_FLUSH_INTERVAL", 2.0),
            eviction_interval=_to_float("CLIPRECALL_EVICTION_INTERVAL", 60.0),
            settings_file=Path(settings_raw).expanduser() if settings_raw else None,
            redis=RedisConfig.from_env(env_path=env_path),
        )
