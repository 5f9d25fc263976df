import datetime

import pytest
from pydantic import ValidationError

from cliprecall.models.clipboarditem import ClipboardItem, ContentType, parse_hex_color
from cliprecall.models.records import ClipboardRecord
from cliprecall.models.settings import ClipboardSettings, JsonSettingsProvider, StaticSettingsProvider
from cliprecall.utils.formatting import format_bytes, format_relative_time

from conftest import START


def test_item_requires_matching_payload():
    with pytest.raises(ValueError):
        ClipboardItem(content_type=ContentType.TEXT)
    with pytest.raises(ValueError):
        ClipboardItem(content_type=ContentType.TEXT, text_content="x", color_hex="#ffffff")
    with pytest.raises(ValueError):
        ClipboardItem(content_type=ContentType.IMAGE, text_content="x")


def test_item_ids_are_unique_and_sortable():
    first = ClipboardItem(content_type=ContentType.TEXT, text_content="a", created_at=START)
    second = ClipboardItem(content_type=ContentType.TEXT, text_content="a",
                           created_at=START + datetime.timedelta(seconds=1))
    assert first.id != second.id
    assert first.id < second.id
    assert first != second


def test_naive_timestamps_are_treated_as_utc():
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="a",
                         created_at=datetime.datetime(2024, 1, 1, 9, 30))
    assert item.created_at.tzinfo is datetime.timezone.utc


@pytest.mark.parametrize("kwargs, size", [
    ({"content_type": ContentType.TEXT, "text_content": "héllo"}, 6),
    ({"content_type": ContentType.LINK, "text_content": "https://a.io"}, 12),
    ({"content_type": ContentType.IMAGE, "image_data": b"\x00" * 2048}, 2048),
    ({"content_type": ContentType.COLOR, "color_hex": "#FFAA00"}, 7),
    ({"content_type": ContentType.FILE, "file_paths": ["/a/b", "/c"]}, 7),
])
def test_data_size(kwargs, size):
    assert ClipboardItem(**kwargs).data_size == size


def test_searchable_text_and_titles():
    image = ClipboardItem(content_type=ContentType.IMAGE, image_data=b"\x00" * 1500)
    assert image.searchable_text == "Image 2 KB"
    assert image.display_title == "Image (2 KB)"
    assert image.plain_text is None

    files = ClipboardItem(content_type=ContentType.FILE,
                          file_paths=["/Users/me/report.pdf", "/tmp/notes.txt"])
    assert files.searchable_text == "report.pdf\nnotes.txt"
    assert files.display_title == "2 files"
    assert files.plain_text == "/Users/me/report.pdf\n/tmp/notes.txt"

    single = ClipboardItem(content_type=ContentType.FILE, file_paths=["/tmp/notes.txt"])
    assert single.display_title == "notes.txt"

    long_text = ClipboardItem(content_type=ContentType.TEXT, text_content="word\n" * 50)
    assert long_text.display_title.endswith("...")
    assert len(long_text.display_title) == 103


def test_display_subtitle():
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="a", created_at=START,
                         source_app_name="Safari")
    assert item.display_subtitle(START + datetime.timedelta(minutes=5)) == "5 min. ago · Safari"


def test_replace_builds_new_item():
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="a", created_at=START)
    changed = item.replace(text_content="abc")
    assert changed.id == item.id
    assert changed.data_size == 3
    assert item.text_content == "a"


def test_color_rgba():
    assert parse_hex_color("#FF000080") == (1.0, 0.0, 0.0, 128 / 255.0)
    item = ClipboardItem(content_type=ContentType.COLOR, color_hex="#00FF00")
    assert item.color_rgba() == (0.0, 1.0, 0.0, 1.0)
    assert parse_hex_color("#12") is None


def test_record_roundtrip_keeps_identity():
    item = ClipboardItem(content_type=ContentType.FILE, file_paths=["/tmp/x"], created_at=START,
                         is_pinned=True, source_app_bundle_id="com.apple.finder")
    record = ClipboardRecord.from_item(item)
    restored = ClipboardRecord.model_validate_json(record.model_dump_json()).to_item()
    assert restored.id == item.id
    assert restored.created_at == item.created_at
    assert restored.is_pinned
    assert restored.file_paths == ["/tmp/x"]


def test_settings_defaults_and_validation():
    settings = ClipboardSettings()
    assert settings.history_limit == 200
    assert settings.retention_days == 30
    assert settings.capacity_limit == 2 * 1024 ** 3
    assert settings.is_ignored("com.apple.keychainaccess")
    assert not settings.is_ignored(None)

    with pytest.raises(ValidationError):
        ClipboardSettings(history_limit=0)
    with pytest.raises(ValidationError):
        ClipboardSettings(capacity_limit=-1)
    assert not ClipboardSettings(retention_days=-1).has_retention_limit


def test_static_provider_update():
    provider = StaticSettingsProvider()
    provider.update(history_limit=100, is_enabled=False)
    assert provider.current().history_limit == 100
    assert not provider.current().is_enabled
    with pytest.raises(ValidationError):
        provider.update(history_limit=-5)


def test_json_settings_provider(tmp_path):
    path = tmp_path / "settings.json"
    provider = JsonSettingsProvider(path)
    assert provider.current() == ClipboardSettings()

    provider.save(ClipboardSettings(history_limit=400))
    assert JsonSettingsProvider(path).current().history_limit == 400

    path.write_text("{not json", encoding="utf-8")
    assert JsonSettingsProvider(path).current() == ClipboardSettings()


@pytest.mark.parametrize("size, text", [
    (0, "Zero KB"),
    (512, "512 bytes"),
    (1500, "2 KB"),
    (2_500_000, "2.5 MB"),
    (150_000_000, "150 MB"),
    (3_000_000_000, "3.0 GB"),
])
def test_format_bytes(size, text):
    assert format_bytes(size) == text


def test_format_relative_time():
    assert format_relative_time(START, START + datetime.timedelta(seconds=30)) == "just now"
    assert format_relative_time(START, START + datetime.timedelta(hours=3)) == "3 hr. ago"
    assert format_relative_time(START, START + datetime.timedelta(days=1)) == "1 day ago"
    assert format_relative_time(START, START + datetime.timedelta(days=65)) == "2 mo. ago"
