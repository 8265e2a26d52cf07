from __future__ import annotations

KB: int = 1024
MB: int = KB * 1024
GB: int = MB * 1024
TB: int = GB * 1024

_UNITS: tuple[tuple[int, str], ...] = (
    (TB, "TB"),
    (GB, "GB"),
    (MB, "MB"),
    (KB, "KB"),
)


def format_bytes(size: int) -> str:
    """
    Format a byte count in binary (1024-based) units.

    Examples:
        512 -> "512 B"
        1536 -> "1.50 KB"
        5 * 1024**3 -> "5.00 GB"
    """
    for factor, unit in _UNITS:
        if abs(size) >= factor:
            return f"{size / factor:.2f} {unit}"
    return f"{size} B"
