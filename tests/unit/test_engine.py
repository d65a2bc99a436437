from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from kline_core import (
    REGISTRY,
    Candle,
    Dataset,
    IndicatorDescriptor,
    MultiSeries,
    ProgressStatus,
    SingleSeries,
    enrich_dataset,
    normalize_result,
)
from kline_core.engine import _clean, apply_indicator
from kline_core.indicators import compute_sma

T0 = 1_704_067_200_000
MIN = 60_000


def _dataset(closes):
    candles = [Candle(T0 + i * MIN, c, c + 1, c - 1, c, 10.0) for i, c in enumerate(closes)]
    return Dataset.from_candles(
        candles, symbol="BTCUSDT", category="linear", interval="1", start=T0, end=T0 + len(closes) * MIN
    )


def _descriptor(name, compute, inputs=("any",), params=None):
    return IndicatorDescriptor(name, name, "Trend", inputs, compute, params or {})


SMA5 = {"SMA": _descriptor("SMA", compute_sma, params={"period": 5})}


def test_sma_period_5_warmup_and_pruning():
    dataset = _dataset([float(c) for c in range(1, 11)])
    inputs = {"any": dataset.rows["close"]}

    raw = apply_indicator(SMA5["SMA"], inputs, dataset.rows.index)
    assert isinstance(raw, SingleSeries)
    assert raw.values.iloc[:4].isna().all()
    assert raw.values.iloc[4:].notna().all()

    result = enrich_dataset(dataset, ["SMA"], registry=SMA5)
    assert result.ok
    assert result.dataset.timestamps == [T0 + i * MIN for i in range(4, 10)]
    assert list(result.dataset.rows["SMA"].astype(float)) == [3.0, 4.0, 5.0, 6.0, 7.0, 8.0]


def test_unknown_indicator_is_skipped():
    dataset = _dataset([float(c) for c in range(1, 31)])
    result = enrich_dataset(dataset, ["SMA", "NOT_A_REAL_INDICATOR"])

    assert result.ok
    assert result.skipped == ["NOT_A_REAL_INDICATOR"]
    assert "SMA" in result.dataset.rows.columns
    assert result.dataset.rows["SMA"].notna().all()


def test_same_selection_gives_same_values():
    dataset = _dataset([100 + np.sin(i) for i in range(50)])
    first = enrich_dataset(dataset, ["SMA", "RSI"])
    second = enrich_dataset(dataset, ["SMA", "RSI"])
    pd.testing.assert_frame_equal(first.dataset.rows, second.dataset.rows)


def test_row_count_never_grows():
    dataset = _dataset([100 + 3 * np.sin(i / 3) for i in range(80)])
    names = ["OBV", "SMA", "EMA", "BB", "MACD"]
    counts = [len(dataset)]
    for k in range(1, len(names) + 1):
        counts.append(len(enrich_dataset(dataset, names[:k]).dataset))
    assert counts == sorted(counts, reverse=True)
    assert counts[-1] < counts[0]


def test_input_dataset_is_left_untouched():
    dataset = _dataset([float(c) for c in range(1, 21)])
    before = dataset.rows.copy()
    enrich_dataset(dataset, ["SMA", "BB"])
    pd.testing.assert_frame_equal(dataset.rows, before)


def test_multi_output_columns_are_prefixed_and_upper_cased():
    dataset = _dataset([100 + np.cos(i / 2) for i in range(40)])
    result = enrich_dataset(dataset, ["BB"])
    assert result.dataset.indicator_columns == ["BB_LOWER", "BB_MIDDLE", "BB_UPPER", "BB_PB"]


def test_any_role_reads_close_and_params_follow_inputs():
    seen = {}

    def probe(values, volume, scale=1.0):
        seen["values"] = values
        seen["scale"] = scale
        return values * scale

    registry = {"PROBE": _descriptor("PROBE", probe, inputs=("any", "volume"), params={"scale": 2.0})}
    dataset = _dataset([1.0, 2.0, 3.0])
    result = enrich_dataset(dataset, ["PROBE"], registry=registry)

    assert seen["scale"] == 2.0
    pd.testing.assert_series_equal(seen["values"], dataset.rows["close"])
    assert list(result.dataset.rows["PROBE"].astype(float)) == [2.0, 4.0, 6.0]


@pytest.mark.parametrize(
    "raw",
    [
        {"result": [1.0, 2.0, 3.0]},
        SimpleNamespace(result=np.array([1.0, 2.0, 3.0])),
        [1, 2, 3],
    ],
)
def test_wrapped_and_plain_sequences_become_single_series(raw):
    index = pd.Index([1, 2, 3])
    result = normalize_result(raw, index)
    assert isinstance(result, SingleSeries)
    assert result.values.tolist() == [1.0, 2.0, 3.0]


def test_mapping_becomes_multi_series():
    index = pd.Index([1, 2])
    result = normalize_result({"upper": [2.0, 3.0], "lower": pd.Series([0.0, 1.0])}, index)
    assert isinstance(result, MultiSeries)
    assert set(result.series) == {"upper", "lower"}


@pytest.mark.parametrize("raw", ["oops", 42, [1.0, 2.0], {"a": [1.0]}, None, [["x"], ["y"], ["z"]]])
def test_unusable_shapes_are_rejected(raw):
    assert normalize_result(raw, pd.Index([1, 2, 3])) is None


def test_unexpected_shape_is_skipped_not_fatal():
    registry = {
        "BAD": _descriptor("BAD", lambda v: "not a series"),
        "SMA": _descriptor("SMA", compute_sma, params={"period": 2}),
    }
    result = enrich_dataset(_dataset([1.0, 2.0, 3.0, 4.0]), ["BAD", "SMA"], registry=registry)
    assert result.ok
    assert result.skipped == ["BAD"]
    assert result.dataset.indicator_columns == ["SMA"]


def test_error_in_one_indicator_fails_whole_run():
    def boom(values):
        raise RuntimeError("math went wrong")

    events = []
    registry = {"SMA": REGISTRY["SMA"], "BOOM": _descriptor("BOOM", boom)}
    result = enrich_dataset(_dataset([float(c) for c in range(30)]), ["SMA", "BOOM"],
                            registry=registry, on_progress=events.append)

    assert not result.ok
    assert result.dataset is None
    assert "math went wrong" in result.error
    assert events[-1].status is ProgressStatus.ENDED
    assert events[-1].message == "Failed"


@pytest.mark.parametrize("dataset", [None, Dataset("BTCUSDT", "linear", "1", T0, T0)])
def test_missing_dataset_fails_fast(dataset):
    result = enrich_dataset(dataset, ["SMA"])
    assert not result.ok
    assert "fetch data first" in result.error


def test_progress_events():
    events = []
    dataset = _dataset([float(c) for c in range(1, 41)])
    enrich_dataset(dataset, ["SMA", "EMA", "RSI"], on_progress=events.append)

    ongoing = [e for e in events if e.status is ProgressStatus.ONGOING]
    assert [e.progress for e in ongoing] == [0, 33, 66]
    assert "SMA" in ongoing[0].message
    assert events[-1].status is ProgressStatus.ENDED
    assert (events[-1].progress, events[-1].message) == (100, "Finished")


def test_values_are_rounded_and_non_finite_become_missing():
    cleaned = _clean(pd.Series([1.23456, np.nan, np.inf, -np.inf]))
    assert str(cleaned.dtype) == "Float64"
    assert cleaned.iloc[0] == 1.23
    assert cleaned.iloc[1:].isna().all()


def test_records_expose_missing_as_none():
    dataset = _dataset([1.0, 2.0])
    rows = dataset.rows.copy()
    rows["X"] = _clean(pd.Series([np.nan, 2.5], index=rows.index))
    records = dataset.replace_rows(rows).records()
    assert records[0]["X"] is None
    assert records[1]["X"] == 2.5
    assert records[0]["timestamp"] == T0
