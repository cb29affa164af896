"""Value parsing and formatting for report rows.

Backend values arrive as strings. Nothing in here raises on bad input:
a malformed value becomes zero.
"""

import math
from typing import Optional

MIN_WINDOW_DAYS = 1
MAX_WINDOW_DAYS = 365

# Rendered when no session duration is known; distinct from "0s"
UNKNOWN_DURATION = "—"


def parse_float(value: Optional[str]) -> float:
    """Parse a backend value as float. Malformed, empty or non-finite -> 0.0."""
    if value is None:
        return 0.0
    text = str(value).strip()
    # float() accepts "1_000"; backend numbers never use digit grouping
    if "_" in text:
        return 0.0
    try:
        number = float(text)
    except ValueError:
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def round_half_up(number: float) -> int:
    return int(math.floor(number + 0.5))


def parse_count(value: Optional[str]) -> int:
    """Parse a count-like backend value.

    Parsed as float and rounded half-up, so ``"42.0"`` -> 42 and
    ``"2.5"`` -> 3. Malformed values and negatives -> 0.
    """
    return max(0, round_half_up(parse_float(value)))


def clamp_window(days: Optional[int]) -> int:
    """Clamp a lookback window to [1, 365] days. None -> 30."""
    if days is None:
        return 30
    return max(MIN_WINDOW_DAYS, min(int(days), MAX_WINDOW_DAYS))


def window_start(days: int) -> str:
    """Relative start date for a window ending today (``"30daysAgo"``)."""
    return f"{days}daysAgo"


def range_label(days: int) -> str:
    return f"Last {days} days"


def format_duration(seconds: float) -> str:
    """Render seconds as ``"45s"`` or ``"3m 5s"``; ``<= 0`` -> UNKNOWN_DURATION."""
    if seconds <= 0:
        return UNKNOWN_DURATION
    total = round_half_up(seconds)
    minutes, remainder = divmod(total, 60)
    if minutes == 0:
        return f"{remainder}s"
    return f"{minutes}m {remainder}s"
