import dataclasses
import datetime
import enum
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Dict, List, Optional, Tuple

from ulid import ULID

from cliprecall.utils.formatting import format_bytes, format_relative_time

IMAGE_SEARCH_TOKEN = "Image"

_WHITESPACE = re.compile(r"\s+")


class ContentType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    LINK = "link"
    COLOR = "color"
    FILE = "file"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def icon_name(self) -> str:
        return _ICON_NAMES[self]


_DISPLAY_NAMES = {
    ContentType.TEXT: "Text",
    ContentType.IMAGE: "Image",
    ContentType.LINK: "Link",
    ContentType.COLOR: "Color",
    ContentType.FILE: "File",
}

_ICON_NAMES = {
    ContentType.TEXT: "doc.text",
    ContentType.IMAGE: "photo",
    ContentType.LINK: "link",
    ContentType.COLOR: "paintpalette",
    ContentType.FILE: "doc",
}

_PAYLOAD_FIELDS = {
    ContentType.TEXT: "text_content",
    ContentType.LINK: "text_content",
    ContentType.IMAGE: "image_data",
    ContentType.FILE: "file_paths",
    ContentType.COLOR: "color_hex",
}


def new_item_id(moment: Optional[datetime.datetime] = None) -> str:
    return str(ULID.from_datetime(moment or utcnow()))


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(eq=False)
class ClipboardItem:
    """One captured clipboard entry.

    Items are treated as immutable once created: ``is_pinned`` is the only
    field that changes in place, anything else goes through :meth:`replace`
    which builds a new item and recomputes ``data_size``.
    """

    content_type: ContentType
    text_content: Optional[str] = None
    image_data: Optional[bytes] = None
    file_paths: Optional[List[str]] = None
    color_hex: Optional[str] = None
    source_app_bundle_id: Optional[str] = None
    source_app_name: Optional[str] = None
    is_pinned: bool = False
    created_at: datetime.datetime = field(default_factory=utcnow)
    id: str = ""
    data_size: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.content_type = ContentType(self.content_type)
        if self.created_at.tzinfo is None:
            self.created_at = self.created_at.replace(
                tzinfo=datetime.timezone.utc)
        if not self.id:
            self.id = new_item_id(self.created_at)
        if self.file_paths is not None:
            self.file_paths = list(self.file_paths)
        self._validate_payload()
        self.data_size = self._compute_size()

    def _validate_payload(self) -> None:
        expected = _PAYLOAD_FIELDS[self.content_type]
        populated = [
            name for name in ("text_content", "image_data", "file_paths", "color_hex")
            if getattr(self, name)
        ]
        if populated != [expected]:
            raise ValueError(
                f"{self.content_type.value} item needs exactly one payload "
                f"field ({expected}), got {populated or 'none'}"
            )

    def _compute_size(self) -> int:
        if self.content_type in (ContentType.TEXT, ContentType.LINK):
            return len(self.text_content.encode("utf-8"))
        if self.content_type is ContentType.IMAGE:
            return len(self.image_data)
        if self.content_type is ContentType.FILE:
            return len("\n".join(self.file_paths).encode("utf-8"))
        return len(self.color_hex.encode("utf-8"))

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ClipboardItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def replace(self, **changes: Any) -> "ClipboardItem":
        """Return a new item with ``changes`` applied; ``data_size`` is recomputed."""
        changes.pop("data_size", None)
        values = {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self) if f.init
        }
        values.update(changes)
        return ClipboardItem(**values)

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------
    @property
    def plain_text(self) -> Optional[str]:
        if self.content_type in (ContentType.TEXT, ContentType.LINK):
            return self.text_content
        if self.content_type is ContentType.COLOR:
            return self.color_hex
        if self.content_type is ContentType.FILE:
            return "\n".join(self.file_paths)
        return None

    @property
    def searchable_text(self) -> str:
        if self.content_type is ContentType.IMAGE:
            return f"{IMAGE_SEARCH_TOKEN} {self.formatted_size}"
        if self.content_type is ContentType.FILE:
            return "\n".join(PurePath(path).name or path for path in self.file_paths)
        return self.plain_text or ""

    @property
    def formatted_size(self) -> str:
        return format_bytes(self.data_size)

    @property
    def display_title(self) -> str:
        if self.content_type is ContentType.TEXT:
            cleaned = _WHITESPACE.sub(" ", self.text_content).strip()
            if len(cleaned) > 100:
                return cleaned[:100] + "..."
            return cleaned
        if self.content_type is ContentType.IMAGE:
            return f"{IMAGE_SEARCH_TOKEN} ({self.formatted_size})"
        if self.content_type is ContentType.FILE:
            if len(self.file_paths) == 1:
                return PurePath(self.file_paths[0]).name or self.file_paths[0]
            return f"{len(self.file_paths)} files"
        return self.plain_text or ""

    def display_subtitle(self, now: Optional[datetime.datetime] = None) -> str:
        when = format_relative_time(self.created_at, now)
        if self.source_app_name:
            return f"{when} · {self.source_app_name}"
        return when

    def color_rgba(self) -> Optional[Tuple[float, float, float, float]]:
        if self.content_type is not ContentType.COLOR:
            return None
        return parse_hex_color(self.color_hex)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "contentType": self.content_type.value,
            "createdAt": self.created_at.isoformat(),
            "isPinned": self.is_pinned,
            "title": self.display_title,
            "dataSize": self.data_size,
            "sourceAppBundleId": self.source_app_bundle_id,
            "sourceAppName": self.source_app_name,
        }


def parse_hex_color(value: str) -> Optional[Tuple[float, float, float, float]]:
    """Parse ``#RRGGBB`` or ``#RRGGBBAA`` into 0..1 floats."""
    cleaned = value.strip().replace("#", "")
    if len(cleaned) not in (6, 8):
        return None
    try:
        rgb = int(cleaned, 16)
    except ValueError:
        return None

    if len(cleaned) == 6:
        return (
            ((rgb >> 16) & 0xFF) / 255.0,
            ((rgb >> 8) & 0xFF) / 255.0,
            (rgb & 0xFF) / 255.0,
            1.0,
        )
    return (
        ((rgb >> 24) & 0xFF) / 255.0,
        ((rgb >> 16) & 0xFF) / 255.0,
        ((rgb >> 8) & 0xFF) / 255.0,
        (rgb & 0xFF) / 255.0,
    )
