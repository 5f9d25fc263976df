from typing import List, Optional, Tuple

try:
    from AppKit import (
        NSColor,
        NSColorSpace,
        NSPasteboard,
        NSPasteboardTypeColor,
        NSPasteboardTypeFileURL,
        NSPasteboardTypeHTML,
        NSPasteboardTypePNG,
        NSPasteboardTypeRTF,
        NSPasteboardTypeString,
        NSPasteboardTypeTIFF,
        NSPasteboardTypeURL,
        NSPasteboardURLReadingFileURLsOnlyKey,
        NSWorkspace,
    )
    from Foundation import NSURL, NSData
    HAS_APPKIT = True
except ImportError:
    HAS_APPKIT = False

from cliprecall.clipboard.base import ClipboardBackend, ClipboardSnapshot
from cliprecall.errors import ReadFailure

_EXTRA_IMAGE_TYPES = (
    ("public.jpeg", "image/jpeg"),
    ("public.heic", "image/heic"),
)


class MacOSClipboard(ClipboardBackend):
    name = "macos"

    def __init__(self) -> None:
        if not HAS_APPKIT:
            raise ReadFailure("pyobjc AppKit bindings are not installed")
        self._pasteboard = NSPasteboard.generalPasteboard()

    def change_count(self) -> int:
        return int(self._pasteboard.changeCount())

    def frontmost_app(self) -> Tuple[Optional[str], Optional[str]]:
        app = NSWorkspace.sharedWorkspace().frontmostApplication()
        if app is None:
            return None, None
        return app.bundleIdentifier(), app.localizedName()

    def _read(self) -> ClipboardSnapshot:
        pasteboard = self._pasteboard
        types = list(pasteboard.types() or [])
        bundle_id, app_name = self.frontmost_app()

        image, image_type = self._get_image(pasteboard, types)

        return ClipboardSnapshot(
            change_count=self.change_count(),
            text=self._get_string(pasteboard, types, NSPasteboardTypeString),
            rich_text=(
                self._get_string(pasteboard, types, NSPasteboardTypeHTML)
                or self._get_string(pasteboard, types, NSPasteboardTypeRTF)
            ),
            url=self._get_string(pasteboard, types, NSPasteboardTypeURL),
            image=image,
            image_type=image_type,
            file_paths=self._get_files(pasteboard, types),
            color=self._get_color(pasteboard, types),
            source_bundle_id=bundle_id,
            source_app_name=app_name,
        )

    def _get_string(self, pasteboard, types: List[str], pb_type: str) -> Optional[str]:
        if pb_type not in types:
            return None
        value = pasteboard.stringForType_(pb_type)
        return str(value) if value else None

    def _get_image(self, pasteboard, types: List[str]) -> Tuple[Optional[bytes], Optional[str]]:
        candidates = [
            (NSPasteboardTypePNG, "image/png"),
            (NSPasteboardTypeTIFF, "image/tiff"),
            *_EXTRA_IMAGE_TYPES,
        ]
        for pb_type, mime in candidates:
            if pb_type in types:
                data = pasteboard.dataForType_(pb_type)
                if data:
                    return bytes(data), mime
        return None, None

    def _get_files(self, pasteboard, types: List[str]) -> List[str]:
        if NSPasteboardTypeFileURL not in types:
            return []
        urls = pasteboard.readObjectsForClasses_options_(
            [NSURL], {NSPasteboardURLReadingFileURLsOnlyKey: True})
        return [str(url.path()) for url in urls or [] if url.isFileURL()]

    def _get_color(self, pasteboard, types: List[str]) -> Optional[str]:
        if NSPasteboardTypeColor not in types:
            return None
        color = NSColor.colorFromPasteboard_(pasteboard)
        if color is None:
            return None
        rgb = color.colorUsingColorSpace_(NSColorSpace.sRGBColorSpace())
        if rgb is None:
            return None
        channels = [rgb.redComponent(), rgb.greenComponent(), rgb.blueComponent()]
        hex_value = "#" + "".join(f"{round(c * 255):02X}" for c in channels)
        if rgb.alphaComponent() < 1.0:
            hex_value += f"{round(rgb.alphaComponent() * 255):02X}"
        return hex_value

    def _write_text(self, text: str) -> bool:
        self._pasteboard.clearContents()
        return bool(self._pasteboard.setString_forType_(text, NSPasteboardTypeString))

    def _write_image(self, data: bytes, mime: str) -> bool:
        pb_type = NSPasteboardTypeTIFF if "tif" in mime.lower() else NSPasteboardTypePNG
        ns_data = NSData.dataWithBytes_length_(data, len(data))
        self._pasteboard.clearContents()
        return bool(self._pasteboard.setData_forType_(ns_data, pb_type))

    def _write_files(self, paths: List[str]) -> bool:
        urls = [NSURL.fileURLWithPath_(path) for path in paths]
        self._pasteboard.clearContents()
        if not self._pasteboard.writeObjects_(urls):
            return False
        # plain-text targets get the paths, one per line
        return bool(self._pasteboard.setString_forType_(
            "\n".join(paths), NSPasteboardTypeString))
