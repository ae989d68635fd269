# Rev 0.1.0
from __future__ import annotations


def seconds_to_hhmmss(seconds: int) -> str:
    """Board header format; hours are not wrapped at 24."""
    seconds = max(0, int(seconds))
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
