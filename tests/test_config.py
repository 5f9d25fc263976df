from pathlib import Path

import pytest

from cliprecall.config import EngineConfig, RedisConfig

ENV_VARS = [
    "CLIPRECALL_DATA_DIR", "CLIPRECALL_STORAGE", "CLIPRECALL_POLL_INTERVAL",
    "CLIPRECALL_FLUSH_INTERVAL", "CLIPRECALL_EVICTION_INTERVAL", "CLIPRECALL_SETTINGS_FILE",
    "CLIPRECALL_REDIS_PREFIX", "REDIS_URI", "REDIS_HOST", "REDIS_PORT", "REDIS_DB", "REDIS_PASSWORD",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # setenv first so values loaded from .env files are undone afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = EngineConfig.from_env(env_path=Path("missing.env"))
    assert config.storage == "file"
    assert config.poll_interval == 0.5
    assert config.data_dir == Path.home() / ".cliprecall"
    assert config.settings_path == config.data_dir / "settings.json"
    assert config.redis == RedisConfig()


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CLIPRECALL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CLIPRECALL_STORAGE", "Memory")
    monkeypatch.setenv("CLIPRECALL_POLL_INTERVAL", "0.25")
    monkeypatch.setenv("CLIPRECALL_SETTINGS_FILE", str(tmp_path / "prefs.json"))
    config = EngineConfig.from_env(env_path=Path("missing.env"))
    assert config.data_dir == tmp_path / "data"
    assert config.storage == "memory"
    assert config.poll_interval == 0.25
    assert config.settings_path == tmp_path / "prefs.json"


def test_dotenv_file_is_read(tmp_path):
    env_file = tmp_path / "cliprecall.env"
    env_file.write_text("CLIPRECALL_FLUSH_INTERVAL=5\nREDIS_HOST=cache.local\n")
    config = EngineConfig.from_env(env_path=env_file)
    assert config.flush_interval == 5.0
    assert config.redis.host == "cache.local"


@pytest.mark.parametrize("value", ["zero", "0", "-1"])
def test_invalid_interval(monkeypatch, value):
    monkeypatch.setenv("CLIPRECALL_POLL_INTERVAL", value)
    with pytest.raises(ValueError):
        EngineConfig.from_env(env_path=Path("missing.env"))


def test_unknown_storage():
    with pytest.raises(ValueError):
        EngineConfig(storage="sqlite")


def test_redis_from_uri():
    config = RedisConfig.from_uri("redis://:pw@redis.example:6380/2", prefix="clips")
    assert (config.host, config.port, config.db, config.password, config.prefix) == (
        "redis.example", 6380, 2, "pw", "clips")

    with pytest.raises(ValueError):
        RedisConfig.from_uri("http://redis.example")


def test_redis_from_env_prefers_uri(monkeypatch):
    monkeypatch.setenv("REDIS_URI", "redis://other:6390")
    monkeypatch.setenv("REDIS_HOST", "ignored")
    config = RedisConfig.from_env(env_path=Path("missing.env"))
    assert config.host == "other"
    assert config.port == 6390
