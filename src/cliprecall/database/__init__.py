"""
Storage backends for the clipboard history.
"""

from cliprecall.database.base import HistoryBackend, MemoryBackend
from cliprecall.database.file_store import BlobStore, FileHistoryStore
from cliprecall.database.persistence import PersistenceWorker

__all__ = [
    'BlobStore',
    'FileHistoryStore',
    'HistoryBackend',
    'MemoryBackend',
    'PersistenceWorker',
]
