"""
Common Utility Functions

Small formatting and environment helpers shared by the dependency engine:
- Size parsing and formatting
- Duration formatting
- Timestamps
- Terminal checks
"""

import re
import sys
from pathlib import Path
from typing import Union
from datetime import datetime


SIZE_PATTERN = re.compile(r'^([0-9]+)([KMGT]?)B?$')

SIZE_MULTIPLIERS = {
    '': 1,
    'K': 1024,
    'M': 1024 ** 2,
    'G': 1024 ** 3,
    'T': 1024 ** 4,
}


def ensure_directory(path: Union[str, Path]) -> Path:
    """Ensure directory exists, creating it if necessary"""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def parse_size(size: str) -> int:
    """
    Parse a size string such as '100MB', '2G' or '512' into bytes

    Raises:
        ValueError: if the string does not match ``[0-9]+[KMGT]?B?``
    """
    match = SIZE_PATTERN.match(size.strip().upper())
    if not match:
        raise ValueError(f"Invalid size: {size!r}")
    number, unit = match.groups()
    return int(number) * SIZE_MULTIPLIERS[unit]


def is_valid_size(size: str) -> bool:
    return bool(SIZE_PATTERN.match(str(size).strip().upper()))


def format_size(size_bytes: int) -> str:
    """
    Format byte size in human-readable format

    Returns:
        Formatted size string (e.g., "1.5 MB")
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    i = 0

    while size >= 1024 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    if i == 0:
        return f"{int(size)} {size_names[i]}"
    return f"{size:.1f} {size_names[i]}"


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format (e.g., "2m 15s")"""
    if seconds < 0:
        return "0s"

    parts = []

    if seconds >= 3600:
        hours = int(seconds // 3600)
        parts.append(f"{hours}h")
        seconds %= 3600

    if seconds >= 60:
        minutes = int(seconds // 60)
        parts.append(f"{minutes}m")
        seconds %= 60

    if seconds >= 1 or not parts:
        parts.append(f"{int(seconds)}s")
    elif seconds > 0:
        parts.append(f"{seconds:.1f}s")

    return " ".join(parts)


def timestamp() -> str:
    """Current local time in ISO format (seconds precision)"""
    return datetime.now().isoformat(timespec='seconds')


def backup_stamp() -> str:
    """Timestamp usable in directory names"""
    return datetime.now().strftime('%Y%m%d_%H%M%S')


def is_interactive() -> bool:
    """True if both stdin and stdout are terminals"""
    return sys.stdin.isatty() and sys.stdout.isatty()
