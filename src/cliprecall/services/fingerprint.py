import hashlib
from dataclasses import dataclass
from typing import Any, Optional

from cliprecall.models.clipboarditem import ClipboardItem, ContentType


@dataclass(frozen=True)
class Fingerprint:
    """Type-aware content identity of a clipboard item."""

    content_type: ContentType
    key: Any

    @classmethod
    def of(cls, item: ClipboardItem) -> "Fingerprint":
        if item.content_type in (ContentType.TEXT, ContentType.LINK):
            key: Any = item.text_content
        elif item.content_type is ContentType.COLOR:
            key = item.color_hex.lower()
        elif item.content_type is ContentType.IMAGE:
            key = content_digest(item.image_data)
        else:
            key = tuple(item.file_paths)
        return cls(item.content_type, key)


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def same_content(a: Optional[ClipboardItem], b: Optional[ClipboardItem]) -> bool:
    if a is None or b is None:
        return False
    return Fingerprint.of(a) == Fingerprint.of(b)
