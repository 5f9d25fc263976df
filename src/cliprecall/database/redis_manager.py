import base64
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

import redis
from pydantic import ValidationError

from cliprecall.database.base import HistoryBackend
from cliprecall.errors import PersistenceFailure
from cliprecall.models.clipboarditem import ClipboardItem, ContentType
from cliprecall.models.records import ClipboardRecord
from cliprecall.services.fingerprint import content_digest

logger = logging.getLogger(__name__)


class RedisManager(HistoryBackend):
    """History persisted in Redis.

    Keys (``prefix`` defaults to ``cliprecall``)::

        <prefix>:history       list of item ids, newest first
        <prefix>:item:<id>     hash, one JSON-encoded value per record field
        <prefix>:blob:<sha>    base64 image payload
        <prefix>:blobs         set of stored blob keys
    """

    name = "redis"

    def __init__(self, host: str = 'localhost', port: int = 6379, db: int = 0,
                 password: Optional[str] = None, prefix: str = "cliprecall",
                 client: Optional[Any] = None):
        self.client = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True
        )
        self.prefix = prefix
        self._test_connection()

    def _test_connection(self):
        try:
            self.client.ping()
        except redis.RedisError as e:
            raise PersistenceFailure(f"Redis is unreachable: {e}") from e

    def _key(self, *parts: str) -> str:
        return ":".join((self.prefix, *parts))

    def load(self) -> List[ClipboardItem]:
        try:
            item_ids = self.client.lrange(self._key("history"), 0, -1)
            items = []
            for item_id in item_ids:
                item = self._load_item(item_id)
                if item is not None:
                    items.append(item)
        except redis.RedisError as e:
            raise PersistenceFailure(f"Could not load history from Redis: {e}") from e
        logger.info("Loaded %d clipboard item(s) from Redis", len(items))
        return items

    def _load_item(self, item_id: str) -> Optional[ClipboardItem]:
        data = self.client.hgetall(self._key("item", item_id))
        if not data:
            return None

        try:
            record = ClipboardRecord.model_validate(
                {field: json.loads(value) for field, value in data.items()})
        except (ValueError, ValidationError) as e:
            logger.warning("Dropping unreadable Redis item %s: %s", item_id, e)
            return None

        image_data = None
        if record.contentType is ContentType.IMAGE:
            encoded = self.client.get(self._key("blob", record.blobKey or ""))
            if not encoded:
                logger.warning("Dropping image item %s: blob %s is missing", item_id, record.blobKey)
                return None
            image_data = base64.b64decode(encoded)

        try:
            return record.to_item(image_data)
        except ValueError as e:
            logger.warning("Dropping invalid Redis item %s: %s", item_id, e)
            return None

    def save(self, items: Sequence[ClipboardItem]) -> None:
        try:
            self._save(items)
        except redis.RedisError as e:
            raise PersistenceFailure(f"Could not save history to Redis: {e}") from e

    def _save(self, items: Sequence[ClipboardItem]) -> None:
        previous_ids = set(self.client.lrange(self._key("history"), 0, -1))
        stored_blobs: Set[str] = set(self.client.smembers(self._key("blobs")))
        referenced: Set[str] = set()

        pipe = self.client.pipeline()
        for item in items:
            blob_key = None
            if item.content_type is ContentType.IMAGE:
                blob_key = content_digest(item.image_data)
                referenced.add(blob_key)
                if blob_key not in stored_blobs:
                    pipe.set(self._key("blob", blob_key),
                             base64.b64encode(item.image_data).decode('utf-8'))
                    pipe.sadd(self._key("blobs"), blob_key)

            record = ClipboardRecord.from_item(item, blob_key)
            pipe.delete(self._key("item", item.id))
            pipe.hset(self._key("item", item.id), mapping=self._encode(record))

        for stale_id in previous_ids - {item.id for item in items}:
            pipe.delete(self._key("item", stale_id))

        for stale_blob in stored_blobs - referenced:
            pipe.delete(self._key("blob", stale_blob))
            pipe.srem(self._key("blobs"), stale_blob)

        pipe.delete(self._key("history"))
        if items:
            pipe.rpush(self._key("history"), *[item.id for item in items])
        pipe.execute()

    @staticmethod
    def _encode(record: ClipboardRecord) -> Dict[str, str]:
        return {field: json.dumps(value) for field, value in record.model_dump(mode="json").items()}

    def health_check(self) -> Dict[str, Any]:
        info = self.client.info()
        return {
            "status": "healthy",
            "used_memory": info.get('used_memory_human', 'unknown'),
            "items": self.client.llen(self._key("history")),
            "blobs": self.client.scard(self._key("blobs")),
        }

    def flush_all(self) -> bool:
        keys = list(self.client.scan_iter(match=self._key("*")))
        if keys:
            self.client.delete(*keys)
        return True

    def close(self):
        self.client.close()
