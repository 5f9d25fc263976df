from cliprecall.utils.formatting import format_bytes, format_relative_time

__all__ = [
    'format_bytes',
    'format_relative_time',
]
