import io

import pytest
from PIL import Image

from cliprecall.clipboard.base import ClipboardSnapshot
from cliprecall.errors import ClassifyFailure
from cliprecall.models.clipboarditem import ContentType
from cliprecall.services.classifier import (
    classify,
    classify_strict,
    is_hex_color,
    is_link,
    normalize_image,
    rich_text_to_plain,
)


def png_bytes(color=(255, 0, 0)):
    buffer = io.BytesIO()
    Image.new("RGB", (2, 2), color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_plain_text():
    item = classify(ClipboardSnapshot(text="hello world", source_bundle_id="com.apple.TextEdit",
                                      source_app_name="TextEdit"))
    assert item.content_type is ContentType.TEXT
    assert item.text_content == "hello world"
    assert item.source_app_bundle_id == "com.apple.TextEdit"
    assert item.source_app_name == "TextEdit"


def test_http_text_becomes_link():
    item = classify(ClipboardSnapshot(text="https://example.com/path?q=1"))
    assert item.content_type is ContentType.LINK
    assert item.text_content == "https://example.com/path?q=1"


def test_url_representation_wins_over_text():
    item = classify(ClipboardSnapshot(text="Example", url="https://example.com"))
    assert item.content_type is ContentType.LINK
    assert item.text_content == "https://example.com"


@pytest.mark.parametrize("text", ["ftp://example.com", "see https://example.com", "https://"])
def test_non_links_stay_text(text):
    assert classify(ClipboardSnapshot(text=text)).content_type is ContentType.TEXT


def test_hex_text_becomes_color():
    item = classify(ClipboardSnapshot(text="#FF8800"))
    assert item.content_type is ContentType.COLOR
    assert item.color_hex == "#FF8800"


def test_hex_without_hash_gets_prefixed():
    item = classify(ClipboardSnapshot(text=" 11223344 "))
    assert item.content_type is ContentType.COLOR
    assert item.color_hex == "#11223344"


def test_color_representation():
    item = classify(ClipboardSnapshot(color="#00FF00", text="green"))
    assert item.content_type is ContentType.COLOR
    assert item.color_hex == "#00FF00"


def test_file_list_wins_over_everything():
    item = classify(ClipboardSnapshot(
        file_paths=["/tmp/a.txt", "/tmp/b.txt"],
        image=png_bytes(),
        text="/tmp/a.txt",
    ))
    assert item.content_type is ContentType.FILE
    assert item.file_paths == ["/tmp/a.txt", "/tmp/b.txt"]


def test_image_wins_over_text():
    data = png_bytes()
    item = classify(ClipboardSnapshot(image=data, image_type="image/png", text="caption"))
    assert item.content_type is ContentType.IMAGE
    assert item.image_data == data


def test_non_png_image_is_normalized():
    buffer = io.BytesIO()
    Image.new("RGB", (3, 3), (0, 0, 255)).save(buffer, format="BMP")
    item = classify(ClipboardSnapshot(image=buffer.getvalue(), image_type="image/bmp"))
    assert item.image_data.startswith(b"\x89PNG\r\n\x1a\n")


def test_undecodable_image_kept_as_is():
    assert normalize_image(b"not an image", "image/tiff") == b"not an image"


def test_empty_snapshot_yields_nothing():
    assert classify(ClipboardSnapshot()) is None
    assert classify(ClipboardSnapshot(text="")) is None
    with pytest.raises(ClassifyFailure):
        classify_strict(ClipboardSnapshot(change_count=3))


def test_html_only_falls_back_to_plain_text():
    item = classify(ClipboardSnapshot(rich_text="<p>Hello&nbsp;<b>there</b></p><style>p{}</style>"))
    assert item.content_type is ContentType.TEXT
    assert item.text_content == "Hello\xa0there"


def test_rtf_to_plain():
    rtf = r"{\rtf1\ansi{\fonttbl\f0\fswiss Helvetica;}\f0\pard Caf\'e9 au lait\par second line}"
    assert rich_text_to_plain(rtf) == "Café au lait\nsecond line"


def test_helpers():
    assert is_hex_color("#abcdef")
    assert is_hex_color("ABCDEF12")
    assert not is_hex_color("#abcde")
    assert not is_hex_color("#ghijkl")
    assert is_link("http://localhost:8000")
    assert not is_link("mailto:someone@example.com")
    assert rich_text_to_plain(None) is None
    assert rich_text_to_plain("<br>") is None
