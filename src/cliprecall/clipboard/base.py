from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from cliprecall.errors import ReadFailure, WriteFailure


@dataclass(frozen=True)
class ClipboardSnapshot:
    """Raw representations currently on the clipboard.

    Every field is optional; backends fill in what the platform exposes and
    the classifier decides which one wins.
    """

    change_count: int = 0
    text: Optional[str] = None
    rich_text: Optional[str] = None
    url: Optional[str] = None
    image: Optional[bytes] = None
    image_type: Optional[str] = None
    file_paths: List[str] = field(default_factory=list)
    color: Optional[str] = None
    source_bundle_id: Optional[str] = None
    source_app_name: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (
            self.text or self.rich_text or self.url or self.image
            or self.file_paths or self.color
        )


class ClipboardBackend(ABC):
    """Seam between the engine and a platform clipboard."""

    name = "base"

    @abstractmethod
    def change_count(self) -> int:
        """Monotonic marker that changes whenever the clipboard contents change."""

    @abstractmethod
    def _read(self) -> ClipboardSnapshot:
        pass

    @abstractmethod
    def _write_text(self, text: str) -> bool:
        pass

    @abstractmethod
    def _write_image(self, data: bytes, mime: str) -> bool:
        pass

    @abstractmethod
    def _write_files(self, paths: List[str]) -> bool:
        pass

    def frontmost_app(self) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(bundle_id, name)`` of the application owning the focus."""
        return None, None

    def read_snapshot(self) -> ClipboardSnapshot:
        try:
            return self._read()
        except ReadFailure:
            raise
        except Exception as exc:
            raise ReadFailure(f"{self.name} clipboard read failed: {exc}") from exc

    def write_text(self, text: str) -> None:
        self._checked_write("text", self._write_text, text)

    def write_image(self, data: bytes, mime: str = "image/png") -> None:
        self._checked_write("image", self._write_image, data, mime)

    def write_files(self, paths: List[str]) -> None:
        self._checked_write("file list", self._write_files, list(paths))

    def _checked_write(self, kind: str, writer, *args) -> None:
        try:
            ok = writer(*args)
        except WriteFailure:
            raise
        except Exception as exc:
            raise WriteFailure(f"{self.name} could not write {kind}: {exc}") from exc
        if not ok:
            raise WriteFailure(f"{self.name} refused to write {kind}")
