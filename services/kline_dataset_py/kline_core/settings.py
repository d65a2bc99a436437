# kline_core/settings.py
"""Environment-driven configuration and logger factory.

Values are read once at import time.  Every module obtains its logger
through :func:`get_logger` so the whole service shares one format and
one level switch (``KLINE_LOG_LEVEL``).
"""
from __future__ import annotations

import logging
import os
from typing import Optional

# ──────────────────────────────────────────────────────────────────────────────
# Env helpers (strip quotes/whitespace so .env "KEY=value " doesn’t break things)
# ──────────────────────────────────────────────────────────────────────────────

def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip()
    if (v.startswith('"') and v.endswith('"')) or (v.startswith("'") and v.endswith("'")):
        v = v[1:-1].strip()
    return v or default

# ──────────────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────────────

LOG_LEVEL = (_env("KLINE_LOG_LEVEL", "INFO") or "INFO").upper()


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        _h = logging.StreamHandler()
        _h.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
        logger.addHandler(_h)
    logger.setLevel(LOG_LEVEL)
    return logger

# ──────────────────────────────────────────────────────────────────────────────
# Bybit config (via env)
# ──────────────────────────────────────────────────────────────────────────────

BYBIT_BASE_URL = (_env("BYBIT_BASE_URL", "https://api-testnet.bybit.com") or "").rstrip("/")
BYBIT_API_KEY = _env("BYBIT_API_KEY", "") or ""
BYBIT_API_SECRET = _env("BYBIT_API_SECRET", "") or ""
BYBIT_RECV_WINDOW = int(_env("BYBIT_RECV_WINDOW", "5000") or "5000")
BYBIT_TIMEOUT_SECS = float(_env("BYBIT_TIMEOUT_SECS", "30") or "30")
BYBIT_PAGE_DELAY_SECS = float(_env("BYBIT_PAGE_DELAY_SECS", "0.12") or "0.12")

KLINE_ENDPOINT = "/v5/market/kline"
MIN_PAGE_SIZE = 100
MAX_PAGE_SIZE = 1000


def mask_key(key: Optional[str]) -> Optional[str]:
    """Return ``...abcd`` for a key of at least four characters, else None."""
    if key and len(key) >= 4:
        return f"...{key[-4:]}"
    return None
