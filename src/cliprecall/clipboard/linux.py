import hashlib
import os
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from cliprecall.clipboard.base import ClipboardBackend, ClipboardSnapshot
from cliprecall.errors import ReadFailure

Reader = Callable[[str], Optional[bytes]]


class LinuxClipboard(ClipboardBackend):
    """Clipboard access through ``wl-clipboard`` or ``xclip``.

    Neither tool exposes a change counter, so one is derived from a digest
    of the offered targets and their contents; it increments whenever the
    digest differs from the previous read.
    """

    name = "linux"

    _FILE_TARGETS = ("x-special/gnome-copied-files", "text/uri-list")
    _IMAGE_TARGETS = {
        "image/png": "image/png",
        "image/jpeg": "image/jpeg",
        "image/jpg": "image/jpeg",
        "image/bmp": "image/bmp",
        "image/x-ms-bmp": "image/bmp",
        "image/webp": "image/webp",
        "image/tiff": "image/tiff",
    }
    _TEXT_TARGETS = (
        "text/plain;charset=utf-8",
        "utf8_string",
        "text/plain",
        "string",
    )
    _HTML_TARGET = "text/html"
    _COLOR_TARGET = "application/x-color"

    def __init__(self, timeout: float = 1.5) -> None:
        self.timeout = timeout
        self._lock = threading.Lock()
        self._counter = 0
        self._digest: Optional[str] = None
        self._cached: Optional[ClipboardSnapshot] = None

    # ------------------------------------------------------------------
    # Change tracking
    # ------------------------------------------------------------------
    def change_count(self) -> int:
        snapshot = self._read_raw()
        digest = self._digest_of(snapshot)
        with self._lock:
            if digest != self._digest:
                self._digest = digest
                self._counter += 1
            self._cached = self._with_count(snapshot, self._counter)
            return self._counter

    def _read(self) -> ClipboardSnapshot:
        with self._lock:
            cached = self._cached
            counter = self._counter
        if cached is not None and cached.change_count == counter:
            return cached
        self.change_count()
        with self._lock:
            return self._cached

    def _digest_of(self, snapshot: ClipboardSnapshot) -> str:
        sha = hashlib.sha256()
        for part in (snapshot.text, snapshot.rich_text, snapshot.color):
            sha.update((part or "").encode("utf-8"))
            sha.update(b"\0")
        sha.update(snapshot.image or b"")
        sha.update("\n".join(snapshot.file_paths).encode("utf-8"))
        return sha.hexdigest()

    @staticmethod
    def _with_count(snapshot: ClipboardSnapshot, counter: int) -> ClipboardSnapshot:
        return ClipboardSnapshot(
            change_count=counter,
            text=snapshot.text,
            rich_text=snapshot.rich_text,
            url=snapshot.url,
            image=snapshot.image,
            image_type=snapshot.image_type,
            file_paths=list(snapshot.file_paths),
            color=snapshot.color,
            source_bundle_id=snapshot.source_bundle_id,
            source_app_name=snapshot.source_app_name,
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------
    def _read_raw(self) -> ClipboardSnapshot:
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-paste"):
            types_command = ["wl-paste", "--list-types"]

            def reader(target: str) -> Optional[bytes]:
                return self._run_command(["wl-paste", "--no-newline", "--type", target])
        elif shutil.which("xclip"):
            types_command = ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"]

            def reader(target: str) -> Optional[bytes]:
                return self._run_command(["xclip", "-selection", "clipboard", "-t", target, "-o"])
        else:
            raise ReadFailure("neither wl-paste nor xclip is available")

        types = self._parse_type_list(self._run_command(types_command))
        return self._extract_from_types(types, reader)

    def _extract_from_types(self, types: List[str], reader: Reader) -> ClipboardSnapshot:
        lowered = {target.lower(): target for target in types}
        bundle_id, app_name = self.frontmost_app()

        file_paths: List[str] = []
        for target in self._FILE_TARGETS:
            if target in lowered:
                data = reader(lowered[target])
                if data:
                    file_paths = [str(p) for p in self._parse_paths(data)]
                    break

        image, image_type = None, None
        for target, mime in self._IMAGE_TARGETS.items():
            if target in lowered:
                data = reader(lowered[target])
                if data:
                    image, image_type = data, mime
                    break

        text = None
        for target in self._TEXT_TARGETS:
            if target in lowered:
                data = reader(lowered[target])
                if data:
                    text = data.decode("utf-8", errors="ignore")
                    break

        rich_text = None
        if self._HTML_TARGET in lowered:
            data = reader(lowered[self._HTML_TARGET])
            if data:
                rich_text = data.decode("utf-8", errors="ignore")

        color = None
        if self._COLOR_TARGET in lowered:
            data = reader(lowered[self._COLOR_TARGET])
            color = self._parse_x_color(data) if data else None

        return ClipboardSnapshot(
            text=text,
            rich_text=rich_text,
            image=image,
            image_type=image_type,
            file_paths=file_paths,
            color=color,
            source_bundle_id=bundle_id,
            source_app_name=app_name,
        )

    def frontmost_app(self) -> Tuple[Optional[str], Optional[str]]:
        if not shutil.which("xdotool"):
            return None, None
        pid = self._run_command(["xdotool", "getactivewindow", "getwindowpid"])
        if not pid:
            return None, None
        try:
            comm = Path(f"/proc/{int(pid.strip())}/comm").read_text().strip()
        except (OSError, ValueError):
            return None, None
        return comm or None, comm or None

    def _parse_type_list(self, data: Optional[bytes]) -> List[str]:
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip() for line in text.splitlines() if line.strip()]

    def _parse_paths(self, data: bytes) -> List[Path]:
        text = data.decode("utf-8", errors="ignore")
        lines = [line.strip() for line in text.replace(
            "\r", "\n").split("\n") if line.strip()]
        if lines and lines[0].lower() in {"copy", "cut"}:
            lines = lines[1:]

        paths: List[Path] = []
        for entry in lines:
            if entry.startswith("#"):
                continue
            parsed = urlparse(entry)
            if parsed.scheme == "file":
                paths.append(Path(unquote(parsed.path)))
            elif not parsed.scheme:
                paths.append(Path(unquote(entry)))
        return paths

    @staticmethod
    def _parse_x_color(data: bytes) -> Optional[str]:
        # application/x-color carries four native-endian uint16 channels (RGBA)
        if len(data) < 8:
            return None
        channels = [int.from_bytes(data[i:i + 2], "little") >> 8 for i in range(0, 8, 2)]
        hex_value = "#" + "".join(f"{c:02X}" for c in channels[:3])
        if channels[3] != 0xFF:
            hex_value += f"{channels[3]:02X}"
        return hex_value

    def _run_command(self, command: List[str], data: Optional[bytes] = None) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                input=data,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=self.timeout,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            return None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------
    def _copy_command(self, mime: Optional[str]) -> Optional[List[str]]:
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-copy"):
            return ["wl-copy", "--type", mime] if mime else ["wl-copy"]
        if shutil.which("xclip"):
            command = ["xclip", "-selection", "clipboard"]
            return command + ["-t", mime] if mime else command
        return None

    def _pipe(self, mime: Optional[str], data: bytes) -> bool:
        command = self._copy_command(mime)
        if command is None:
            return False
        try:
            subprocess.run(command, input=data, check=True, timeout=self.timeout)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            return False
        return True

    def _write_text(self, text: str) -> bool:
        return self._pipe(None, text.encode("utf-8"))

    def _write_image(self, data: bytes, mime: str) -> bool:
        return self._pipe(mime or "image/png", data)

    def _write_files(self, paths: List[str]) -> bool:
        uris = "\n".join(Path(path).as_uri() for path in paths)
        return self._pipe("text/uri-list", uris.encode("utf-8"))
