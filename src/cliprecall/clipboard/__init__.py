from cliprecall.clipboard.base import ClipboardBackend, ClipboardSnapshot
from cliprecall.clipboard.factory import get_clipboard_backend, get_clipboard_class

__all__ = [
    'ClipboardBackend',
    'ClipboardSnapshot',
    'get_clipboard_backend',
    'get_clipboard_class',
]
