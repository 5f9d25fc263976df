from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.services.fingerprint import Fingerprint, content_digest, same_content


def test_text_fingerprint_is_exact():
    a = ClipboardItem(content_type=ContentType.TEXT, text_content="Hello")
    b = ClipboardItem(content_type=ContentType.TEXT, text_content="hello")
    assert not same_content(a, b)
    assert same_content(a, a.replace(id=""))


def test_color_fingerprint_ignores_case():
    a = ClipboardItem(content_type=ContentType.COLOR, color_hex="#ffaa00")
    b = ClipboardItem(content_type=ContentType.COLOR, color_hex="#FFAA00")
    assert same_content(a, b)


def test_image_fingerprint_is_digest():
    item = ClipboardItem(content_type=ContentType.IMAGE, image_data=b"pixels")
    assert Fingerprint.of(item).key == content_digest(b"pixels")


def test_file_fingerprint_is_ordered():
    a = ClipboardItem(content_type=ContentType.FILE, file_paths=["/a", "/b"])
    b = ClipboardItem(content_type=ContentType.FILE, file_paths=["/b", "/a"])
    assert not same_content(a, b)


def test_missing_side_never_matches():
    item = ClipboardItem(content_type=ContentType.TEXT, text_content="x")
    assert not same_content(None, item)
    assert not same_content(item, None)
