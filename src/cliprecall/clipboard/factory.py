import platform
from typing import Type

from cliprecall.clipboard.base import ClipboardBackend


def get_clipboard_class() -> Type[ClipboardBackend]:
    system = platform.system()

    if system == "Windows":
        from cliprecall.clipboard.windows import WindowsClipboard
        return WindowsClipboard
    elif system == "Linux":
        from cliprecall.clipboard.linux import LinuxClipboard
        return LinuxClipboard
    elif system == "Darwin":
        from cliprecall.clipboard.macos import MacOSClipboard
        return MacOSClipboard
    else:
        raise NotImplementedError(f"Platform '{system}' is not supported")


def get_clipboard_backend() -> ClipboardBackend:
    clipboard_class = get_clipboard_class()
    return clipboard_class()
