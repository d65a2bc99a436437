"""Static catalog of the indicators the engine can apply.

Each descriptor names the price/volume columns the compute function
takes, in call order, and its default parameters.  The input role
``any`` means "a single value series" and is fed with closes.
Categories only group indicators for display; names are unique across
the whole catalog.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from . import indicators as ta

INPUT_ROLES = ("open", "high", "low", "close", "volume", "any")
CATEGORIES = ("Trend", "Momentum", "Volatility", "Volume")


@dataclass(frozen=True)
class IndicatorDescriptor:
    name: str
    title: str
    category: str
    inputs: Tuple[str, ...]
    compute: Callable[..., Any] = field(repr=False)
    params: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        unknown = [r for r in self.inputs if r not in INPUT_ROLES]
        if unknown:
            raise ValueError(f"{self.name}: unknown input roles {unknown}")
        if self.category not in CATEGORIES:
            raise ValueError(f"{self.name}: unknown category {self.category!r}")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


def _build(descriptors: List[IndicatorDescriptor]) -> Mapping[str, IndicatorDescriptor]:
    catalog: Dict[str, IndicatorDescriptor] = {}
    for d in descriptors:
        if d.name in catalog:
            raise ValueError(f"duplicate indicator name {d.name}")
        catalog[d.name] = d
    return MappingProxyType(catalog)


HLC = ("high", "low", "close")
HLCV = ("high", "low", "close", "volume")

REGISTRY: Mapping[str, IndicatorDescriptor] = _build([
    # Trend
    IndicatorDescriptor("SMA", "Simple Moving Average", "Trend", ("any",), ta.compute_sma, {"period": 14}),
    IndicatorDescriptor("EMA", "Exponential Moving Average", "Trend", ("any",), ta.compute_ema, {"period": 14}),
    IndicatorDescriptor("WMA", "Weighted Moving Average", "Trend", ("any",), ta.compute_wma, {"period": 14}),
    IndicatorDescriptor("WEMA", "Wilder's Smoothing Average", "Trend", ("any",), ta.compute_wema, {"period": 14}),
    IndicatorDescriptor(
        "MACD", "Moving Average Convergence Divergence", "Trend", ("any",), ta.compute_macd,
        {"fast": 12, "slow": 26, "signal": 9},
    ),
    IndicatorDescriptor("ADX", "Average Directional Index", "Trend", HLC, ta.compute_adx, {"period": 14}),
    IndicatorDescriptor(
        "PSAR", "Parabolic SAR", "Trend", ("high", "low"), ta.compute_psar,
        {"start": 0.02, "step": 0.02, "max_step": 0.2},
    ),
    IndicatorDescriptor("TRIX", "Triple Exponentially Smoothed Average", "Trend", ("any",), ta.compute_trix, {"period": 18}),
    # Momentum
    IndicatorDescriptor("RSI", "Relative Strength Index", "Momentum", ("close",), ta.compute_rsi, {"period": 14}),
    IndicatorDescriptor(
        "STOCH", "Stochastic Oscillator", "Momentum", HLC, ta.compute_stoch,
        {"period": 14, "signal_period": 3},
    ),
    IndicatorDescriptor("ROC", "Rate of Change", "Momentum", ("any",), ta.compute_roc, {"period": 12}),
    IndicatorDescriptor("WILLR", "Williams %R", "Momentum", HLC, ta.compute_willr, {"period": 14}),
    IndicatorDescriptor("CCI", "Commodity Channel Index", "Momentum", HLC, ta.compute_cci, {"period": 20}),
    IndicatorDescriptor(
        "AO", "Awesome Oscillator", "Momentum", ("high", "low"), ta.compute_ao, {"fast": 5, "slow": 34},
    ),
    # Volatility
    IndicatorDescriptor(
        "BB", "Bollinger Bands", "Volatility", ("close",), ta.compute_bollinger,
        {"period": 20, "std_dev": 2.0},
    ),
    IndicatorDescriptor("ATR", "Average True Range", "Volatility", HLC, ta.compute_atr, {"period": 14}),
    IndicatorDescriptor(
        "KC", "Keltner Channels", "Volatility", HLC, ta.compute_keltner,
        {"period": 20, "multiplier": 2.0},
    ),
    # Volume
    IndicatorDescriptor("OBV", "On-Balance Volume", "Volume", ("close", "volume"), ta.compute_obv),
    IndicatorDescriptor("ADL", "Accumulation/Distribution Line", "Volume", HLCV, ta.compute_adl),
    IndicatorDescriptor("VWAP", "Volume Weighted Average Price", "Volume", HLCV, ta.compute_vwap),
    IndicatorDescriptor("MFI", "Money Flow Index", "Volume", HLCV, ta.compute_mfi, {"period": 14}),
    IndicatorDescriptor("FI", "Force Index", "Volume", ("close", "volume"), ta.compute_force_index, {"period": 13}),
])


def get_descriptor(
    name: str, registry: Mapping[str, IndicatorDescriptor] = REGISTRY
) -> Optional[IndicatorDescriptor]:
    return registry.get(name)


def by_category(
    registry: Mapping[str, IndicatorDescriptor] = REGISTRY,
) -> Dict[str, List[IndicatorDescriptor]]:
    grouped: Dict[str, List[IndicatorDescriptor]] = {c: [] for c in CATEGORIES}
    for d in registry.values():
        grouped[d.category].append(d)
    return grouped
