# kline_core/fetcher.py
"""Fetch a complete historical kline series from Bybit's V5 REST API.

The kline endpoint returns at most ``limit`` candles per call, newest
first.  The fetcher walks the requested range forward one page at a
time, restarting each window one millisecond after the last candle it
received so nothing is skipped or fetched twice, and reports progress
as the share of the requested time range already covered.

All timestamps are unix milliseconds (UTC).  Prices/volumes are floats.
"""
from __future__ import annotations

import asyncio
import datetime as dt
import time
from typing import Any, List, Optional, Union

import httpx

from .errors import TransportError, UnsupportedIntervalError
from .intervals import interval_code, window_millis
from .models import Candle, Dataset, FetchRequest, FetchResult
from .progress import ProgressCallback, ProgressReporter, round_half_up
from .settings import (
    BYBIT_BASE_URL,
    BYBIT_PAGE_DELAY_SECS,
    BYBIT_TIMEOUT_SECS,
    KLINE_ENDPOINT,
    get_logger,
    mask_key,
)
from .signer import Credentials, HmacSigner, Signer, auth_headers

logger = get_logger("kline_fetcher")

# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def _now_ms() -> int:
    return int(time.time() * 1000)


def resolve_end(end: Optional[Union[int, str]], now_ms: int) -> int:
    """Turn the requested end into unix ms; absent or unparsable means now."""
    if end is None or end == "":
        return now_ms
    if isinstance(end, int):
        return end
    text = str(end).strip()
    if text.lstrip("-").isdigit():
        return int(text)
    try:
        parsed = dt.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparsable end %r; using current time", end)
        return now_ms
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return int(parsed.timestamp() * 1000)


def progress_percent(current_start: int, start: int, total_range: int) -> int:
    pct = round_half_up((current_start - start) / total_range * 100)
    return max(1, min(99, pct))


def _page_rows(payload: Any) -> Optional[List[Any]]:
    """Return ``result.list`` or None when the body is not a kline page."""
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if not isinstance(result, dict):
        return None
    rows = result.get("list")
    return rows if isinstance(rows, list) else None

# ──────────────────────────────────────────────────────────────────────────────
# Bybit
# ──────────────────────────────────────────────────────────────────────────────

async def _fetch_kline_page(
    client: httpx.AsyncClient,
    base_url: str,
    params: dict,
    signer: Signer,
    credentials: Credentials,
) -> Any:
    headers = auth_headers(signer, params, credentials.stamped())
    try:
        resp = await client.get(f"{base_url}{KLINE_ENDPOINT}", params=params, headers=headers)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise TransportError(f"Bybit HTTP {e.response.status_code} for {KLINE_ENDPOINT}") from e
    except httpx.HTTPError as e:
        raise TransportError(f"Bybit request failed: {e}") from e
    try:
        return resp.json()
    except ValueError as e:
        raise TransportError(f"Bybit returned malformed JSON: {e}") from e


async def _paginate(
    client: httpx.AsyncClient,
    request: FetchRequest,
    credentials: Credentials,
    signer: Signer,
    base_url: str,
    reporter: ProgressReporter,
    page_delay: float,
    now_ms: int,
) -> FetchResult:
    code = interval_code(request.interval)
    step = window_millis(code, request.limit)
    candle_ms = window_millis(code, 1)

    start = request.start
    end = resolve_end(request.end, now_ms)
    if start > end:
        raise ValueError(f"start {start} is after end {end}")
    total_range = end - start
    if total_range <= 0:
        total_range = 1

    candles: List[Candle] = []
    current_start = start
    pages = 0

    while True:
        # exactly `limit` candle slots, so a full page never drops the oldest one
        window_end = min(current_start + step - 1, end)
        reporter.ongoing(progress_percent(current_start, start, total_range), f"Fetching {request.symbol}")

        params = {
            "category": request.category,
            "symbol": request.symbol,
            "interval": code,
            "start": current_start,
            "end": window_end,
            "limit": request.limit,
        }
        logger.debug("GET %s %s", KLINE_ENDPOINT, params)
        payload = await _fetch_kline_page(client, base_url, params, signer, credentials)
        pages += 1

        rows = _page_rows(payload)
        if not rows:
            if isinstance(payload, dict) and payload.get("retCode") not in (0, None):
                logger.warning(
                    "Bybit kline error: code=%s, msg=%s", payload.get("retCode"), payload.get("retMsg")
                )
            logger.warning(
                "No candles for %s@%s in [%d, %d] (page %d); fetch ends empty",
                request.symbol, code, current_start, window_end, pages,
            )
            reporter.ended("Failed")
            return FetchResult.empty()

        try:
            page = [Candle.from_row(row) for row in reversed(rows)]
        except (TypeError, ValueError, IndexError) as e:
            raise TransportError(f"Undecodable kline row: {e}") from e

        last_ts = candles[-1].timestamp if candles else start - 1
        added = 0
        for candle in page:
            if last_ts < candle.timestamp <= end:
                candles.append(candle)
                last_ts = candle.timestamp
                added += 1

        if added == 0:
            logger.warning(
                "Page %d for %s@%s held no new candle after %d; fetch ends empty",
                pages, request.symbol, code, last_ts,
            )
            reporter.ended("Failed")
            return FetchResult.empty()

        if last_ts >= end or last_ts + candle_ms >= end:
            break

        current_start = last_ts + 1
        if page_delay > 0:
            await asyncio.sleep(page_delay)

    logger.info("Fetched %d candles for %s@%s in %d page(s)", len(candles), request.symbol, code, pages)
    reporter.ended("Finished")
    dataset = Dataset.from_candles(
        candles,
        symbol=request.symbol,
        category=request.category,
        interval=code,
        start=start,
        end=end,
    )
    return FetchResult.success(dataset)

# ──────────────────────────────────────────────────────────────────────────────
# Public entry
# ──────────────────────────────────────────────────────────────────────────────

async def fetch_dataset(
    request: FetchRequest,
    credentials: Credentials,
    *,
    signer: Optional[Signer] = None,
    client: Optional[httpx.AsyncClient] = None,
    base_url: str = BYBIT_BASE_URL,
    on_progress: Optional[ProgressCallback] = None,
    page_delay: float = BYBIT_PAGE_DELAY_SECS,
    now_ms: Optional[int] = None,
) -> FetchResult:
    """
    Fetch every candle of ``request`` and return it as one Dataset.

    The outcome is always one of success, empty (the exchange returned a
    page without candles) or failed (bad interval, transport or decode
    error).  Partial data never leaves this function.
    """
    reporter = ProgressReporter(on_progress, "fetch")
    signer = signer or HmacSigner()
    now_ms = _now_ms() if now_ms is None else now_ms
    logger.info(
        "Fetching %s %s@%s from %s (key=%s)",
        request.category, request.symbol, request.interval, base_url, mask_key(credentials.api_key),
    )
    try:
        if client is not None:
            return await _paginate(client, request, credentials, signer, base_url, reporter, page_delay, now_ms)
        async with httpx.AsyncClient(timeout=BYBIT_TIMEOUT_SECS) as own_client:
            return await _paginate(own_client, request, credentials, signer, base_url, reporter, page_delay, now_ms)
    except UnsupportedIntervalError as e:
        logger.error("Fetch aborted: %s", e)
        reporter.ended(f"Failed: {e}")
        return FetchResult.failed(str(e))
    except Exception as e:
        logger.exception("Fetch of %s@%s aborted", request.symbol, request.interval)
        reporter.ended(f"Failed: {e}")
        return FetchResult.failed(f"{type(e).__name__}: {e}")
