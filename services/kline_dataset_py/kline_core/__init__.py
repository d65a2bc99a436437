"""Core of the kline dataset builder.

This package fetches historical OHLCV candles from Bybit page by page,
and enriches the resulting dataset with technical indicators picked by
name from a static catalog.  Both stages are pure: they take a value and
return a new one, reporting progress through an optional callback.
"""

from .errors import NoDatasetError, PipelineError, TransportError, UnsupportedIntervalError
from .intervals import INTERVALS, interval_code, window_millis
from .models import (
    Candle,
    Dataset,
    EnrichResult,
    EnrichStatus,
    FetchRequest,
    FetchResult,
    FetchStatus,
)
from .progress import ProgressEvent, ProgressStatus
from .signer import Credentials, HmacSigner
from .fetcher import fetch_dataset
from .registry import REGISTRY, IndicatorDescriptor, by_category, get_descriptor
from .engine import MultiSeries, SingleSeries, enrich_dataset, normalize_result

__all__ = [
    "NoDatasetError",
    "PipelineError",
    "TransportError",
    "UnsupportedIntervalError",
    "INTERVALS",
    "interval_code",
    "window_millis",
    "Candle",
    "Dataset",
    "EnrichResult",
    "EnrichStatus",
    "FetchRequest",
    "FetchResult",
    "FetchStatus",
    "ProgressEvent",
    "ProgressStatus",
    "Credentials",
    "HmacSigner",
    "fetch_dataset",
    "REGISTRY",
    "IndicatorDescriptor",
    "by_category",
    "get_descriptor",
    "MultiSeries",
    "SingleSeries",
    "enrich_dataset",
    "normalize_result",
]
