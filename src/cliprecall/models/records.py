from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from cliprecall.models.clipboarditem import ClipboardItem, ContentType


class ClipboardRecord(BaseModel):
    """Persisted form of a ``ClipboardItem``.

    Image bytes are never part of the record; they live in the blob store
    under ``blobKey`` (the SHA-256 of the bytes).
    """

    itemId: str
    contentType: ContentType
    createdAt: datetime
    isPinned: bool = False
    textContent: Optional[str] = None
    filePaths: Optional[List[str]] = None
    colorHex: Optional[str] = None
    blobKey: Optional[str] = None
    sourceAppBundleId: Optional[str] = None
    sourceAppName: Optional[str] = None
    dataSize: int = 0

    @classmethod
    def from_item(cls, item: ClipboardItem, blob_key: Optional[str] = None) -> "ClipboardRecord":
        return cls(
            itemId=item.id,
            contentType=item.content_type,
            createdAt=item.created_at,
            isPinned=item.is_pinned,
            textContent=item.text_content,
            filePaths=item.file_paths,
            colorHex=item.color_hex,
            blobKey=blob_key,
            sourceAppBundleId=item.source_app_bundle_id,
            sourceAppName=item.source_app_name,
            dataSize=item.data_size,
        )

    def to_item(self, image_data: Optional[bytes] = None) -> ClipboardItem:
        return ClipboardItem(
            id=self.itemId,
            content_type=self.contentType,
            created_at=self.createdAt,
            is_pinned=self.isPinned,
            text_content=self.textContent,
            image_data=image_data,
            file_paths=self.filePaths,
            color_hex=self.colorHex,
            source_app_bundle_id=self.sourceAppBundleId,
            source_app_name=self.sourceAppName,
        )


class HistoryIndex(BaseModel):
    version: int = 1
    items: List[ClipboardRecord] = Field(default_factory=list)
