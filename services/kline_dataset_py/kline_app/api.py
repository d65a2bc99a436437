"""
FastAPI application exposing the kline pipeline: API credentials,
paginated candle fetch, indicator enrichment, dataset preview/export
and progress polling.

One :class:`PipelineSession` holds the current dataset.  Fetch and
enrich both run under its lock, so the dataset only ever changes by
being replaced with the result of a completed stage.
"""
from __future__ import annotations

import asyncio
import re
from typing import Any, Callable, Dict, List, Optional

import httpx
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from kline_core import (
    INTERVALS,
    REGISTRY,
    Credentials,
    Dataset,
    FetchRequest,
    FetchStatus,
    ProgressEvent,
    by_category,
    enrich_dataset,
    fetch_dataset,
)
from kline_core.settings import (
    BYBIT_API_KEY,
    BYBIT_API_SECRET,
    BYBIT_BASE_URL,
    BYBIT_PAGE_DELAY_SECS,
    BYBIT_RECV_WINDOW,
    BYBIT_TIMEOUT_SECS,
    get_logger,
    mask_key,
)

logger = get_logger("kline_api")
app = FastAPI(title="Kline Dataset Builder API")


# ----------------------------------------------------------------------
# Session
# ----------------------------------------------------------------------
class PipelineSession:
    def __init__(self):
        self.lock = asyncio.Lock()
        self.dataset: Optional[Dataset] = None
        self.api_key: str = BYBIT_API_KEY
        self.api_secret: str = BYBIT_API_SECRET
        self.base_url: str = BYBIT_BASE_URL
        self.page_delay: float = BYBIT_PAGE_DELAY_SECS
        self.last_event: Optional[ProgressEvent] = None
        self.client_factory: Callable[[], httpx.AsyncClient] = (
            lambda: httpx.AsyncClient(timeout=BYBIT_TIMEOUT_SECS)
        )

    def record(self, event: ProgressEvent) -> None:
        self.last_event = event

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def credentials(self) -> Credentials:
        return Credentials(self.api_key, self.api_secret, BYBIT_RECV_WINDOW)


session = PipelineSession()


# ----------------------------------------------------------------------
# Models
# ----------------------------------------------------------------------
class APIConfig(BaseModel):
    key: str = Field(..., min_length=1, description="Bybit API key")
    secret: str = Field(..., min_length=1, description="Bybit API secret")


class IndicatorRequest(BaseModel):
    indicators: List[str] = Field(..., description="Indicator names, e.g. SMA, MACD, BB")


class DatasetSummary(BaseModel):
    name: str
    symbol: str
    category: str
    interval: str
    rows: int
    columns: List[str]


def _summary(dataset: Dataset) -> DatasetSummary:
    return DatasetSummary(
        name=dataset.name,
        symbol=dataset.symbol,
        category=dataset.category,
        interval=dataset.interval,
        rows=len(dataset),
        columns=dataset.columns,
    )


# ----------------------------------------------------------------------
# Endpoints
# ----------------------------------------------------------------------
@app.get("/settings/api")
async def get_api_config() -> Dict[str, Any]:
    return {"key": mask_key(session.api_key), "has_secret": bool(session.api_secret)}


@app.put("/settings/api")
async def set_api_config(config: APIConfig) -> Dict[str, Any]:
    """Keep credentials for this process only; nothing is written to disk."""
    session.api_key = config.key.strip()
    session.api_secret = config.secret.strip()
    logger.info("API credentials updated (key=%s)", mask_key(session.api_key))
    return {"status": "success"}


@app.get("/intervals")
async def list_intervals() -> List[Dict[str, str]]:
    return [{"title": title, "value": code} for title, code in INTERVALS]


@app.get("/indicators")
async def list_indicators() -> Dict[str, List[Dict[str, Any]]]:
    return {
        category: [
            {"value": d.name, "title": d.title, "inputs": list(d.inputs), "params": dict(d.params)}
            for d in descriptors
        ]
        for category, descriptors in by_category(REGISTRY).items()
    }


@app.post("/dataset/fetch", response_model=DatasetSummary)
async def fetch(req: FetchRequest) -> DatasetSummary:
    """Fetch candles for the request and make them the current dataset."""
    if not session.has_credentials:
        raise HTTPException(400, detail="Must set API config first")

    async with session.lock:
        async with session.client_factory() as client:
            result = await fetch_dataset(
                req,
                session.credentials(),
                client=client,
                base_url=session.base_url,
                on_progress=session.record,
                page_delay=session.page_delay,
            )
        if result.status is FetchStatus.EMPTY:
            raise HTTPException(404, detail="No candles returned for the given symbol/interval/time range")
        if result.status is FetchStatus.FAILED:
            raise HTTPException(502, detail=result.error or "Fetch failed")
        session.dataset = result.dataset

    return _summary(session.dataset)


@app.post("/dataset/indicators")
async def compute_indicators(req: IndicatorRequest) -> Dict[str, Any]:
    if not req.indicators:
        raise HTTPException(400, detail="No indicators requested")

    async with session.lock:
        if not session.dataset:
            raise HTTPException(409, detail="No dataset; fetch data first")
        result = await asyncio.to_thread(
            enrich_dataset, session.dataset, req.indicators, on_progress=session.record
        )
        if not result.ok:
            raise HTTPException(500, detail=result.error or "Indicator calculation failed")
        session.dataset = result.dataset

    return {**_summary(session.dataset).model_dump(), "skipped": result.skipped}


@app.get("/dataset")
async def get_dataset() -> Dict[str, Any]:
    dataset = session.dataset
    if dataset is None:
        raise HTTPException(404, detail="No dataset")
    return {**_summary(dataset).model_dump(), "data": dataset.records()}


@app.get("/dataset/export.csv")
async def export_dataset() -> Response:
    dataset = session.dataset
    if dataset is None:
        raise HTTPException(404, detail="No dataset")
    filename = re.sub(r"[^A-Za-z0-9_-]+", "_", dataset.name).strip("_") + ".csv"
    return Response(
        content=dataset.to_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/progress")
async def get_progress() -> Dict[str, Any]:
    event = session.last_event
    if event is None:
        return {"status": None, "progress": 0, "message": ""}
    return {"status": event.status.value, "progress": event.progress, "message": event.message}
