"""Indicator engine: applies catalog indicators to a fetched dataset.

Inputs for every indicator are taken from the dataset as it was handed
in, so each indicator sees the full candle history.  Results are
written by timestamp into the working frame, and after each indicator
every row holding a missing value is dropped.  Pruning is therefore
cumulative across the selection and the row count never grows.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import NoDatasetError
from .models import OHLCV_COLUMNS, Dataset, EnrichResult, EnrichStatus
from .progress import ProgressCallback, ProgressReporter, round_half_up
from .registry import REGISTRY, IndicatorDescriptor
from .settings import get_logger

logger = get_logger("kline_engine")


# ----------------------------------------------------------------------
# Result shapes
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class SingleSeries:
    values: pd.Series


@dataclass(frozen=True)
class MultiSeries:
    series: Dict[str, pd.Series]


IndicatorResult = Union[SingleSeries, MultiSeries]


def _unwrap(raw: Any) -> Any:
    """Peel one level of ``{"result": ...}`` or ``obj.result`` wrapping."""
    if isinstance(raw, (pd.Series, pd.DataFrame, np.ndarray, list, tuple)):
        return raw
    if isinstance(raw, Mapping):
        if set(raw.keys()) == {"result"}:
            return raw["result"]
        return raw
    nested = getattr(raw, "result", None)
    return raw if nested is None else nested


def _as_series(values: Any, index: pd.Index) -> Optional[pd.Series]:
    if isinstance(values, pd.Series):
        if len(values) != len(index):
            return None
        series = values if values.index.equals(index) else pd.Series(values.to_numpy(), index=index)
    elif isinstance(values, (np.ndarray, list, tuple)):
        arr = np.asarray(values, dtype=object) if not isinstance(values, np.ndarray) else values
        if arr.ndim != 1 or len(arr) != len(index):
            return None
        series = pd.Series(arr, index=index)
    else:
        return None
    try:
        return series.astype(float)
    except (TypeError, ValueError):
        return None


def normalize_result(raw: Any, index: pd.Index) -> Optional[IndicatorResult]:
    """Map whatever a compute function returned onto SingleSeries/MultiSeries.

    Returns None for any shape that cannot be written one value per row.
    """
    value = _unwrap(raw)
    if isinstance(value, pd.DataFrame):
        mapping = {str(col): value[col] for col in value.columns}
    elif isinstance(value, Mapping):
        mapping = dict(value)
    else:
        single = _as_series(value, index)
        return None if single is None else SingleSeries(single)

    series: Dict[str, pd.Series] = {}
    for key, sub in mapping.items():
        s = _as_series(sub, index)
        if s is None:
            return None
        series[str(key)] = s
    return MultiSeries(series) if series else None


def result_columns(name: str, result: IndicatorResult) -> Iterator[Tuple[str, pd.Series]]:
    if isinstance(result, SingleSeries):
        yield name, result.values
    else:
        for key, values in result.series.items():
            yield f"{name}_{key.upper()}", values


def _clean(values: pd.Series) -> pd.Series:
    """Round to 2 dp; NaN/inf become <NA> in a nullable Float64 column."""
    finite = values.replace([np.inf, -np.inf], np.nan).round(2)
    return finite.astype("Float64")


# ----------------------------------------------------------------------
# Engine
# ----------------------------------------------------------------------
def _inputs(rows: pd.DataFrame) -> Dict[str, pd.Series]:
    inputs = {role: rows[role] for role in OHLCV_COLUMNS}
    inputs["any"] = rows["close"]
    return inputs


def apply_indicator(
    descriptor: IndicatorDescriptor, inputs: Mapping[str, pd.Series], index: pd.Index
) -> Optional[IndicatorResult]:
    args = [inputs[role] for role in descriptor.inputs]
    raw = descriptor.compute(*args, **descriptor.params)
    result = normalize_result(raw, index)
    if result is None:
        logger.warning(
            "Indicator %s returned an unexpected result (%s); skipped",
            descriptor.name,
            type(raw).__name__,
        )
    return result


def enrich_dataset(
    dataset: Optional[Dataset],
    names: Iterable[str],
    *,
    registry: Mapping[str, IndicatorDescriptor] = REGISTRY,
    on_progress: Optional[ProgressCallback] = None,
) -> EnrichResult:
    """
    Apply the named indicators, in order, to ``dataset`` and return a new
    enriched dataset.  Unknown names and unusable results are skipped with
    a warning; any other error fails the whole call and nothing computed
    so far is returned.
    """
    reporter = ProgressReporter(on_progress, "enrich")
    if dataset is None or len(dataset) == 0:
        err = NoDatasetError()
        logger.warning(str(err))
        reporter.ended("Failed")
        return EnrichResult(EnrichStatus.FAILED, error=str(err))

    names = list(names)
    total = len(names)
    base = dataset.rows
    inputs = _inputs(base)
    enriched = base.copy()
    skipped = []

    try:
        for i, name in enumerate(names):
            descriptor = registry.get(name)
            if descriptor is None:
                logger.warning("Unknown indicator %s; skipped", name)
                skipped.append(name)
                continue

            reporter.ongoing(round_half_up(i / total * 99), f"Calculating {name}")
            result = apply_indicator(descriptor, inputs, base.index)
            if result is None:
                skipped.append(name)
                continue

            for column, values in result_columns(name, result):
                enriched[column] = _clean(values)

            before = len(enriched)
            enriched = enriched.dropna(how="any")
            logger.debug("%s: %d -> %d rows after pruning", name, before, len(enriched))
    except Exception as e:
        logger.exception("Indicator run aborted")
        reporter.ended("Failed")
        return EnrichResult(EnrichStatus.FAILED, error=f"{type(e).__name__}: {e}")

    logger.info(
        "Enriched %s with %d indicator(s): %d -> %d rows",
        dataset.name,
        total - len(skipped),
        len(base),
        len(enriched),
    )
    reporter.ended("Finished")
    return EnrichResult(EnrichStatus.SUCCESS, dataset=dataset.replace_rows(enriched), skipped=skipped)
