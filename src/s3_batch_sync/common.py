"""
Common utilities

Shared formatting and key helpers used across sync modules.
"""

from pathlib import Path

from .constants import KEY_SEPARATOR


def format_bytes(size_bytes: int) -> str:
    """
    Format byte count as human-readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        str: Formatted size (e.g., "1.5 MB", "2.3 GB")
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    size_float = float(size_bytes)

    for i, unit in enumerate(size_names):
        if size_float < 1024.0 or i == len(size_names) - 1:
            if i == 0:  # Bytes - no decimal
                return f"{int(size_float)} {unit}"
            else:
                return f"{size_float:.1f} {unit}"
        size_float /= 1024.0

    return f"{size_float:.1f} TB"


def pluralize(count: int, word: str) -> str:
    """Return correct singular/plural form of a word."""
    return word if count == 1 else f"{word}s"


def format_duration(seconds: float) -> str:
    """
    Format duration as human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        str: Formatted duration (e.g., "1.5s", "2m 30s", "1h 15m")
    """
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        remaining_seconds = seconds % 60
        return f"{minutes}m {remaining_seconds:.0f}s"
    else:
        hours = int(seconds // 3600)
        remaining_minutes = int((seconds % 3600) // 60)
        return f"{hours}h {remaining_minutes}m"


def join_key(prefix: str, relative_key: str) -> str:
    """Join a key prefix and a relative key with a single separator."""
    prefix = prefix.strip(KEY_SEPARATOR)
    relative_key = relative_key.lstrip(KEY_SEPARATOR)
    if not prefix:
        return relative_key
    return f"{prefix}{KEY_SEPARATOR}{relative_key}"


def relative_key(key: str, base_dir: str) -> str:
    """Strip ``base_dir`` from the front of ``key``.

    Keys outside ``base_dir`` are returned unchanged. Leading separators are
    always dropped so the result never reads as an absolute path.
    """
    base_dir = base_dir.strip(KEY_SEPARATOR)
    if base_dir and key.startswith(base_dir + KEY_SEPARATOR):
        key = key[len(base_dir) + 1 :]
    return key.lstrip(KEY_SEPARATOR)


def local_relative_key(path: Path, base_dir: Path) -> str:
    """Object key fragment for a local file below ``base_dir``."""
    return path.relative_to(base_dir).as_posix()
