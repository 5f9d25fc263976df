import logging
import os
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, Set

from pydantic import ValidationError

from cliprecall.database.base import HistoryBackend
from cliprecall.errors import PersistenceFailure
from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.models.records import ClipboardRecord, HistoryIndex
from cliprecall.services.fingerprint import content_digest

logger = logging.getLogger(__name__)


class BlobStore:
    """Content-addressed storage for large payloads (image bytes)."""

    def __init__(self, base_dir: Path, suffix: str = ".png"):
        self.base_dir = Path(base_dir)
        self.suffix = suffix
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        return self.base_dir / f"{key}{self.suffix}"

    def put(self, data: bytes) -> str:
        key = content_digest(data)
        path = self.path_for(key)
        if not path.exists():
            _atomic_write(path, data)
            logger.debug("Saved blob %s (%d bytes)", key, len(data))
        return key

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.path_for(key).read_bytes()
        except OSError:
            return None

    def keys(self) -> Set[str]:
        return {
            path.name[:-len(self.suffix)]
            for path in self.base_dir.iterdir()
            if path.is_file() and path.name.endswith(self.suffix)
        }

    def prune(self, keep: Set[str]) -> int:
        removed = 0
        for key in self.keys() - keep:
            try:
                self.path_for(key).unlink()
                removed += 1
            except OSError as e:
                logger.warning("Could not delete blob %s: %s", key, e)
        return removed


class FileHistoryStore(HistoryBackend):
    """JSON item index plus a blob directory for image bytes.

    Layout under ``base_dir``::

        items.json          HistoryIndex with one ClipboardRecord per item
        blobs/<sha256>.png  image payloads referenced by ``blobKey``
    """

    name = "file"

    def __init__(self, base_dir: Optional[Path] = None):
        if base_dir is None:
            base_dir = Path.home() / ".cliprecall"
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.index_path = self.base_dir / "items.json"
        self.blobs = BlobStore(self.base_dir / "blobs")

    def load(self) -> List[ClipboardItem]:
        if not self.index_path.exists():
            return []

        try:
            index = HistoryIndex.model_validate_json(self.index_path.read_bytes())
        except (OSError, ValidationError) as e:
            raise PersistenceFailure(f"Could not read {self.index_path}: {e}") from e

        items: List[ClipboardItem] = []
        for record in index.items:
            item = self._to_item(record)
            if item is not None:
                items.append(item)
        logger.info("Loaded %d clipboard item(s) from %s", len(items), self.index_path)
        return items

    def _to_item(self, record: ClipboardRecord) -> Optional[ClipboardItem]:
        image_data = None
        if record.contentType is ContentType.IMAGE:
            image_data = self.blobs.get(record.blobKey) if record.blobKey else None
            if image_data is None:
                logger.warning("Dropping image item %s: blob %s is missing", record.itemId, record.blobKey)
                return None
        try:
            return record.to_item(image_data)
        except ValueError as e:
            logger.warning("Dropping invalid item %s: %s", record.itemId, e)
            return None

    def save(self, items: Sequence[ClipboardItem]) -> None:
        try:
            records = []
            referenced: Set[str] = set()
            for item in items:
                blob_key = None
                if item.content_type is ContentType.IMAGE:
                    blob_key = self.blobs.put(item.image_data)
                    referenced.add(blob_key)
                records.append(ClipboardRecord.from_item(item, blob_key))

            index = HistoryIndex(items=records)
            _atomic_write(self.index_path, index.model_dump_json(indent=2).encode("utf-8"))
            self.blobs.prune(referenced)
        except OSError as e:
            raise PersistenceFailure(f"Could not save history to {self.base_dir}: {e}") from e
        logger.debug("Saved %d clipboard item(s)", len(records))


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
