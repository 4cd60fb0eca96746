"""Human-readable formatting helpers for document listings."""

from __future__ import annotations

_UNIT = 1024
_PREFIXES = "KMGTPE"


def format_file_size(size: int) -> str:
    """Render a byte count with binary units, e.g. ``1536 -> "1.5 KB"``.

    Sizes under 1 KiB are shown as whole bytes (``"512 B"``); larger sizes
    get one decimal place.
    """
    if size < _UNIT:
        return f"{size} B"
    div, exp = _UNIT, 0
    n = size // _UNIT
    while n >= _UNIT:
        div *= _UNIT
        exp += 1
        n //= _UNIT
    return f"{size / div:.1f} {_PREFIXES[exp]}B"
