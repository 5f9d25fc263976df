"""Content classifier.

Turns a :class:`ClipboardSnapshot` into at most one ``ClipboardItem``
candidate. Precedence is file list, image, colour, link, then text; a
snapshot with nothing readable yields ``None``.
"""

import html
import io
import logging
import re
from typing import Optional
from urllib.parse import urlparse

from PIL import Image, UnidentifiedImageError

from cliprecall.clipboard.base import ClipboardSnapshot
from cliprecall.errors import ClassifyFailure
from cliprecall.models.clipboarditem import ClipboardItem, ContentType

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r"^#?([A-Fa-f0-9]{6}|[A-Fa-f0-9]{8})$")

_HTML_TAG = re.compile(r"<[^>]+>")
_HTML_DROP = re.compile(r"<(script|style|head)\b.*?</\1>", re.IGNORECASE | re.DOTALL)
_HTML_BREAK = re.compile(r"<(br|/p|/div|/li|/tr|/h[1-6])\b[^>]*>", re.IGNORECASE)
_RTF_DESTINATION = re.compile(r"\{\\\*[^{}]*\}")
_RTF_TABLES = re.compile(r"\{\\(fonttbl|colortbl|stylesheet|info)(?:[^{}]|\{[^{}]*\})*\}")
_RTF_HEX = re.compile(r"\\'([0-9a-fA-F]{2})")
_RTF_CONTROL = re.compile(r"\\([a-zA-Z]+)(-?\d+)? ?")


def classify(snapshot: ClipboardSnapshot) -> Optional[ClipboardItem]:
    provenance = {
        "source_app_bundle_id": snapshot.source_bundle_id,
        "source_app_name": snapshot.source_app_name,
    }

    if snapshot.file_paths:
        return ClipboardItem(
            content_type=ContentType.FILE,
            file_paths=list(snapshot.file_paths),
            **provenance,
        )

    if snapshot.image:
        return ClipboardItem(
            content_type=ContentType.IMAGE,
            image_data=normalize_image(snapshot.image, snapshot.image_type),
            **provenance,
        )

    text = snapshot.text or rich_text_to_plain(snapshot.rich_text)

    color = snapshot.color or (text.strip() if text and is_hex_color(text.strip()) else None)
    if color:
        return ClipboardItem(
            content_type=ContentType.COLOR,
            color_hex=color if color.startswith("#") else f"#{color}",
            **provenance,
        )

    link = snapshot.url or (text if text and is_link(text) else None)
    if link:
        return ClipboardItem(
            content_type=ContentType.LINK,
            text_content=link,
            **provenance,
        )

    if text:
        return ClipboardItem(
            content_type=ContentType.TEXT,
            text_content=text,
            **provenance,
        )

    return None


def classify_strict(snapshot: ClipboardSnapshot) -> ClipboardItem:
    item = classify(snapshot)
    if item is None:
        raise ClassifyFailure(
            f"clipboard change {snapshot.change_count} had no readable content")
    return item


def is_hex_color(text: str) -> bool:
    return bool(HEX_COLOR.match(text))


def is_link(text: str) -> bool:
    candidate = text.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    parsed = urlparse(candidate)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def normalize_image(data: bytes, image_type: Optional[str] = None) -> bytes:
    """Re-encode image bytes as PNG; undecodable data is kept as-is."""
    if image_type == "image/png" or data[:8] == b"\x89PNG\r\n\x1a\n":
        return data
    try:
        with Image.open(io.BytesIO(data)) as image:
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.debug("Keeping %s image bytes unconverted: %s", image_type or "unknown", exc)
        return data


def rich_text_to_plain(rich_text: Optional[str]) -> Optional[str]:
    if not rich_text:
        return None
    if rich_text.lstrip().startswith("{\\rtf"):
        text = _rtf_to_plain(rich_text)
    else:
        text = _html_to_plain(rich_text)
    text = text.strip()
    return text or None


def _html_to_plain(markup: str) -> str:
    markup = _HTML_DROP.sub("", markup)
    markup = _HTML_BREAK.sub("\n", markup)
    return html.unescape(_HTML_TAG.sub("", markup))


def _rtf_to_plain(document: str) -> str:
    document = _RTF_DESTINATION.sub("", document)
    document = _RTF_TABLES.sub("", document)
    document = _RTF_HEX.sub(lambda m: bytes.fromhex(m.group(1)).decode("cp1252", errors="ignore"), document)

    def control(match: "re.Match[str]") -> str:
        word = match.group(1)
        if word in ("par", "line"):
            return "\n"
        if word == "tab":
            return "\t"
        return ""

    document = _RTF_CONTROL.sub(control, document)
    return document.replace("{", "").replace("}", "")
