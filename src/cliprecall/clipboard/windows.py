import io
import os
import struct
import time
from typing import List, Optional, Tuple

import win32api
import win32clipboard as wc
import win32con
import win32gui
import win32process
from PIL import Image, ImageGrab

from cliprecall.clipboard.base import ClipboardBackend, ClipboardSnapshot
from cliprecall.errors import ReadFailure

# DROPFILES header: pFiles offset, pt.x, pt.y, fNC, fWide
_DROPFILES = struct.Struct("<IiiII")


class WindowsClipboard(ClipboardBackend):
    name = "windows"

    def __init__(self) -> None:
        self._html_format = wc.RegisterClipboardFormat("HTML Format")

    def change_count(self) -> int:
        return int(wc.GetClipboardSequenceNumber())

    def frontmost_app(self) -> Tuple[Optional[str], Optional[str]]:
        try:
            hwnd = win32gui.GetForegroundWindow()
            _, pid = win32process.GetWindowThreadProcessId(hwnd)
            handle = win32api.OpenProcess(
                win32con.PROCESS_QUERY_INFORMATION | win32con.PROCESS_VM_READ, False, pid)
            try:
                exe_path = win32process.GetModuleFileNameEx(handle, 0)
            finally:
                win32api.CloseHandle(handle)
        except Exception:
            return None, None
        exe_name = os.path.basename(exe_path)
        return exe_name.lower(), os.path.splitext(exe_name)[0]

    def _open(self) -> None:
        for _ in range(3):
            try:
                wc.OpenClipboard()
                return
            except Exception:
                time.sleep(0.05)
        raise ReadFailure("clipboard is locked by another process")

    def _read(self) -> ClipboardSnapshot:
        image = self._from_imagegrab()
        bundle_id, app_name = self.frontmost_app()
        change_count = self.change_count()

        self._open()
        try:
            file_paths: List[str] = []
            if wc.IsClipboardFormatAvailable(win32con.CF_HDROP):
                files = wc.GetClipboardData(win32con.CF_HDROP)
                if isinstance(files, str):
                    files = [files]
                file_paths = list(files or [])

            text = None
            if wc.IsClipboardFormatAvailable(wc.CF_UNICODETEXT):
                text = wc.GetClipboardData(wc.CF_UNICODETEXT)

            rich_text = None
            if wc.IsClipboardFormatAvailable(self._html_format):
                raw = wc.GetClipboardData(self._html_format)
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="ignore")
                rich_text = self._strip_cf_html_header(raw)
        finally:
            wc.CloseClipboard()

        return ClipboardSnapshot(
            change_count=change_count,
            text=text or None,
            rich_text=rich_text,
            image=image,
            image_type="image/png" if image else None,
            file_paths=file_paths,
            source_bundle_id=bundle_id,
            source_app_name=app_name,
        )

    def _from_imagegrab(self) -> Optional[bytes]:
        try:
            clip = ImageGrab.grabclipboard()
        except Exception:
            return None
        if not isinstance(clip, Image.Image):
            return None
        buffer = io.BytesIO()
        clip.save(buffer, format="PNG")
        return buffer.getvalue()

    @staticmethod
    def _strip_cf_html_header(raw: Optional[str]) -> Optional[str]:
        if not raw:
            return None
        start = raw.find("<html")
        if start < 0:
            start = raw.find("<!--StartFragment")
        return raw[start:] if start >= 0 else raw

    def _write_text(self, text: str) -> bool:
        self._open()
        try:
            wc.EmptyClipboard()
            wc.SetClipboardText(text, wc.CF_UNICODETEXT)
        finally:
            wc.CloseClipboard()
        return True

    def _write_image(self, data: bytes, mime: str) -> bool:
        image = Image.open(io.BytesIO(data))
        buffer = io.BytesIO()
        image.convert("RGB").save(buffer, format="BMP")
        # CF_DIB is a BMP without its 14 byte file header
        dib = buffer.getvalue()[14:]

        self._open()
        try:
            wc.EmptyClipboard()
            wc.SetClipboardData(win32con.CF_DIB, dib)
        finally:
            wc.CloseClipboard()
        return True

    def _write_files(self, paths: List[str]) -> bool:
        names = "\0".join(paths) + "\0\0"
        payload = _DROPFILES.pack(_DROPFILES.size, 0, 0, 0, 1) + names.encode("utf-16-le")

        self._open()
        try:
            wc.EmptyClipboard()
            wc.SetClipboardData(win32con.CF_HDROP, payload)
        finally:
            wc.CloseClipboard()
        return True
