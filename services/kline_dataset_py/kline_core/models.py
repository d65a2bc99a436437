"""Request, candle and dataset models shared by the fetcher and the engine.

A :class:`Dataset` is a value: stages build a new one instead of
mutating the one they were given.  Rows live in a pandas DataFrame
indexed by the candle open time (ms, ascending, unique).
"""
from __future__ import annotations

import dataclasses
import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd
from pydantic import BaseModel, Field, field_validator

from .settings import MAX_PAGE_SIZE, MIN_PAGE_SIZE

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]
INDEX_NAME = "timestamp"


def to_ms(ts: dt.datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=dt.timezone.utc)
    return int(ts.timestamp() * 1000)


def _utc_date(ms: int) -> str:
    return dt.datetime.fromtimestamp(ms / 1000, tz=dt.timezone.utc).strftime("%Y-%m-%d")


# ----------------------------------------------------------------------
# Request
# ----------------------------------------------------------------------
class FetchRequest(BaseModel):
    category: str = Field("linear", description="Market type: linear, inverse or spot")
    symbol: str = Field("BTCUSDT", description="Trading pair, e.g. BTCUSDT")
    interval: str = Field("60", description="Interval title (15m, 1D) or code (15, D)")
    limit: int = Field(200, ge=MIN_PAGE_SIZE, le=MAX_PAGE_SIZE, description="Candles per page")
    start: int = Field(..., ge=0, description="Inclusive start, unix ms")
    end: Optional[Union[int, str]] = Field(None, description="Inclusive end, unix ms; defaults to now")

    @field_validator("category")
    @classmethod
    def _validate_category(cls, v: str) -> str:
        v = v.lower()
        if v not in {"linear", "inverse", "spot"}:
            raise ValueError("category must be linear, inverse or spot")
        return v

    @field_validator("start", mode="before")
    @classmethod
    def _start_to_ms(cls, v: Any) -> Any:
        if isinstance(v, dt.datetime):
            return to_ms(v)
        return v

    @field_validator("end", mode="before")
    @classmethod
    def _end_to_ms(cls, v: Any) -> Any:
        if isinstance(v, dt.datetime):
            return to_ms(v)
        return v


# ----------------------------------------------------------------------
# Candles and datasets
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class Candle:
    """Standard OHLCV candle."""
    timestamp: int          # Unix ms, candle open time
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Candle":
        """Decode one positional kline row ``[ts, open, high, low, close, volume, ...]``."""
        return cls(
            timestamp=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )


def _empty_rows() -> pd.DataFrame:
    rows = pd.DataFrame({c: pd.Series(dtype=float) for c in OHLCV_COLUMNS})
    rows.index = pd.Index([], dtype="int64", name=INDEX_NAME)
    return rows


@dataclass(frozen=True)
class Dataset:
    symbol: str
    category: str
    interval: str
    start: int
    end: int
    rows: pd.DataFrame = field(default_factory=_empty_rows, repr=False)

    @classmethod
    def from_candles(
        cls,
        candles: Iterable[Candle],
        *,
        symbol: str,
        category: str,
        interval: str,
        start: int,
        end: int,
    ) -> "Dataset":
        candles = list(candles)
        if not candles:
            return cls(symbol, category, interval, start, end)
        rows = pd.DataFrame(
            [dataclasses.astuple(c) for c in candles],
            columns=[INDEX_NAME] + OHLCV_COLUMNS,
        ).set_index(INDEX_NAME)
        rows = rows.astype(float)
        return cls(symbol, category, interval, start, end, rows)

    @property
    def name(self) -> str:
        return f"{self.symbol} at {self.interval} from {_utc_date(self.start)} to {_utc_date(self.end)}"

    @property
    def columns(self) -> List[str]:
        return [INDEX_NAME] + list(self.rows.columns)

    @property
    def indicator_columns(self) -> List[str]:
        return [c for c in self.rows.columns if c not in OHLCV_COLUMNS]

    @property
    def timestamps(self) -> List[int]:
        return [int(ts) for ts in self.rows.index]

    def __len__(self) -> int:
        return len(self.rows)

    def replace_rows(self, rows: pd.DataFrame) -> "Dataset":
        return dataclasses.replace(self, rows=rows)

    def candles(self) -> List[Candle]:
        return [
            Candle(int(ts), row.open, row.high, row.low, row.close, row.volume)
            for ts, row in self.rows[OHLCV_COLUMNS].iterrows()
        ]

    def records(self) -> List[Dict[str, Any]]:
        """Rows as plain dicts; missing indicator values come out as ``None``."""
        flat = self.rows.reset_index().astype(object)
        return flat.where(flat.notna(), None).to_dict("records")

    def to_csv(self) -> str:
        return self.rows.to_csv(index=True)


# ----------------------------------------------------------------------
# Outcomes
# ----------------------------------------------------------------------
class FetchStatus(str, Enum):
    SUCCESS = "success"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    status: FetchStatus
    dataset: Optional[Dataset] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, dataset: Dataset) -> "FetchResult":
        return cls(FetchStatus.SUCCESS, dataset=dataset)

    @classmethod
    def empty(cls) -> "FetchResult":
        return cls(FetchStatus.EMPTY)

    @classmethod
    def failed(cls, error: str) -> "FetchResult":
        return cls(FetchStatus.FAILED, error=error)

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.SUCCESS


class EnrichStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class EnrichResult:
    status: EnrichStatus
    dataset: Optional[Dataset] = None
    error: Optional[str] = None
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is EnrichStatus.SUCCESS
