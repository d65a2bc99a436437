"""Interval calendar: labels → exchange codes and window durations.

Minute intervals are exact.  ``M`` uses a 30-day month, which is only
used to size fetch windows, never to label candles.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

from .errors import UnsupportedIntervalError

MINUTE_MS = 60_000
DAY_MS = 86_400_000

# (title, exchange code) in display order
INTERVALS: List[Tuple[str, str]] = [
    ("1m", "1"),
    ("3m", "3"),
    ("5m", "5"),
    ("15m", "15"),
    ("30m", "30"),
    ("60m", "60"),
    ("120m", "120"),
    ("240m", "240"),
    ("360m", "360"),
    ("720m", "720"),
    ("1D", "D"),
    ("1W", "W"),
    ("1M", "M"),
]

_CODE_TO_MS: Dict[str, int] = {
    **{code: int(code) * MINUTE_MS for _, code in INTERVALS if code.isdigit()},
    "D": DAY_MS,
    "W": 7 * DAY_MS,
    "M": 30 * DAY_MS,
}

# case matters: "1m" is a minute, "1M" a month
_TITLE_TO_CODE: Dict[str, str] = {title: code for title, code in INTERVALS}


def interval_code(interval: str) -> str:
    """Translate a title ("15m", "1D") or a raw code ("15", "D") to the exchange code."""
    label = str(interval).strip()
    if label in _CODE_TO_MS:
        return label
    code = _TITLE_TO_CODE.get(label)
    if code is None:
        raise UnsupportedIntervalError(label)
    return code


def interval_millis(interval: str) -> int:
    return _CODE_TO_MS[interval_code(interval)]


def window_millis(interval: str, count: int) -> int:
    """Duration in ms covered by ``count`` candles of ``interval``."""
    return int(count) * interval_millis(interval)
