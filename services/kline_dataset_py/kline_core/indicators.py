"""Technical indicators implemented with pandas and numpy.

Every function takes its price/volume inputs as pandas Series and
returns either a Series or a DataFrame of sub-series, aligned with the
input index and of the same length.  Rows without enough history stay
NaN (warm-up) so no value ever looks ahead.  Parameters are passed by
keyword so the registry can hand them over as a plain mapping.
"""

from __future__ import annotations

import numpy as np
import pandas as pd


def _wilder(series: pd.Series, period: int) -> pd.Series:
    """Wilder's smoothing, i.e. an EMA with alpha = 1/period."""
    return series.ewm(alpha=1.0 / period, min_periods=period, adjust=False).mean()


def _true_range(high: pd.Series, low: pd.Series, close: pd.Series) -> pd.Series:
    prev_close = close.shift(1)
    ranges = pd.concat(
        [high - low, (high - prev_close).abs(), (low - prev_close).abs()], axis=1
    )
    return ranges.max(axis=1)


# ----------------------------------------------------------------------
# Trend
# ----------------------------------------------------------------------
def compute_sma(values: pd.Series, period: int = 14) -> pd.Series:
    """
    Compute the simple moving average (SMA) over the given period.
    Missing values in the initial window remain NaN to avoid look‑ahead.
    """
    return values.rolling(window=period, min_periods=period).mean()


def compute_ema(values: pd.Series, period: int = 14) -> pd.Series:
    """
    Compute the exponential moving average (EMA) using pandas’ ewm.
    The `adjust=False` parameter replicates typical trading‑platform
    EMA behaviour.
    """
    return values.ewm(span=period, adjust=False, min_periods=period).mean()


def compute_wma(values: pd.Series, period: int = 14) -> pd.Series:
    """Linearly weighted moving average; the newest value weighs ``period``."""
    weights = np.arange(1, period + 1, dtype=float)
    return values.rolling(window=period, min_periods=period).apply(
        lambda x: np.dot(x, weights) / weights.sum(), raw=True
    )


def compute_wema(values: pd.Series, period: int = 14) -> pd.Series:
    return _wilder(values, period)


def compute_macd(
    values: pd.Series, fast: int = 12, slow: int = 26, signal: int = 9
) -> pd.DataFrame:
    """
    Compute the Moving Average Convergence Divergence (MACD).
    Returns a DataFrame with columns macd, signal and histogram.
    """
    ema_fast = compute_ema(values, fast)
    ema_slow = compute_ema(values, slow)
    macd_line = ema_fast - ema_slow
    signal_line = macd_line.ewm(span=signal, adjust=False, min_periods=signal).mean()
    return pd.DataFrame(
        {"macd": macd_line, "signal": signal_line, "histogram": macd_line - signal_line}
    )


def compute_adx(
    high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14
) -> pd.DataFrame:
    """
    Average Directional Index with its +DI/-DI lines (Wilder).
    Returns a DataFrame with columns adx, pdi and mdi.
    """
    up = high.diff()
    down = -low.diff()
    plus_dm = pd.Series(np.where((up > down) & (up > 0), up, 0.0), index=high.index)
    minus_dm = pd.Series(np.where((down > up) & (down > 0), down, 0.0), index=high.index)
    atr = _wilder(_true_range(high, low, close), period)
    pdi = 100 * _wilder(plus_dm, period) / atr
    mdi = 100 * _wilder(minus_dm, period) / atr
    dx = 100 * (pdi - mdi).abs() / (pdi + mdi)
    adx = _wilder(dx, period)
    return pd.DataFrame({"adx": adx, "pdi": pdi, "mdi": mdi})


def compute_psar(
    high: pd.Series,
    low: pd.Series,
    start: float = 0.02,
    step: float = 0.02,
    max_step: float = 0.2,
) -> pd.Series:
    """
    Parabolic SAR.  The first bar has no prior extreme point and stays
    NaN; the trend is assumed bullish from the second bar on.
    """
    h = high.to_numpy(dtype=float)
    lo = low.to_numpy(dtype=float)
    out = np.full(len(h), np.nan)
    if len(h) < 2:
        return pd.Series(out, index=high.index)

    bull = True
    af = start
    ep = h[0]
    sar = lo[0]
    for i in range(1, len(h)):
        sar = sar + af * (ep - sar)
        if bull:
            sar = min(sar, lo[i - 1], lo[i - 2] if i >= 2 else lo[i - 1])
            if lo[i] < sar:
                bull, sar, ep, af = False, ep, lo[i], start
            elif h[i] > ep:
                ep, af = h[i], min(af + step, max_step)
        else:
            sar = max(sar, h[i - 1], h[i - 2] if i >= 2 else h[i - 1])
            if h[i] > sar:
                bull, sar, ep, af = True, ep, h[i], start
            elif lo[i] < ep:
                ep, af = lo[i], min(af + step, max_step)
        out[i] = sar
    return pd.Series(out, index=high.index)


def compute_trix(values: pd.Series, period: int = 18) -> pd.Series:
    """One-bar percent rate of change of a triple-smoothed EMA."""
    triple = compute_ema(compute_ema(compute_ema(values, period), period), period)
    return (triple / triple.shift(1) - 1) * 100


# ----------------------------------------------------------------------
# Momentum
# ----------------------------------------------------------------------
def compute_rsi(close: pd.Series, period: int = 14) -> pd.Series:
    """
    Compute the Relative Strength Index (RSI) using Wilder’s method.
    RSI oscillates between 0 and 100.  A flat window reads 50.
    """
    delta = close.diff()
    gain = delta.where(delta > 0, 0.0)
    loss = -delta.where(delta < 0, 0.0)
    avg_gain = _wilder(gain, period)
    avg_loss = _wilder(loss, period)
    rsi = 100 - (100 / (1 + avg_gain / avg_loss))
    flat = (avg_gain == 0) & (avg_loss == 0)
    rsi = rsi.mask(flat, 50.0)
    rsi = rsi.mask((avg_loss == 0) & (avg_gain > 0), 100.0)
    return rsi


def compute_stoch(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 14,
    signal_period: int = 3,
) -> pd.DataFrame:
    """Stochastic oscillator %K and its SMA %D."""
    lowest = low.rolling(window=period, min_periods=period).min()
    highest = high.rolling(window=period, min_periods=period).max()
    k = 100 * (close - lowest) / (highest - lowest)
    d = compute_sma(k, signal_period)
    return pd.DataFrame({"k": k, "d": d})


def compute_roc(values: pd.Series, period: int = 12) -> pd.Series:
    return (values / values.shift(period) - 1) * 100


def compute_willr(
    high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14
) -> pd.Series:
    """Williams %R in the range -100..0."""
    highest = high.rolling(window=period, min_periods=period).max()
    lowest = low.rolling(window=period, min_periods=period).min()
    return -100 * (highest - close) / (highest - lowest)


def compute_cci(
    high: pd.Series, low: pd.Series, close: pd.Series, period: int = 20
) -> pd.Series:
    """Commodity Channel Index on the typical price with Lambert's 0.015 constant."""
    typical = (high + low + close) / 3
    mean = compute_sma(typical, period)
    mean_dev = typical.rolling(window=period, min_periods=period).apply(
        lambda x: np.mean(np.abs(x - x.mean())), raw=True
    )
    return (typical - mean) / (0.015 * mean_dev)


def compute_ao(high: pd.Series, low: pd.Series, fast: int = 5, slow: int = 34) -> pd.Series:
    median = (high + low) / 2
    return compute_sma(median, fast) - compute_sma(median, slow)


# ----------------------------------------------------------------------
# Volatility
# ----------------------------------------------------------------------
def compute_bollinger(
    values: pd.Series, period: int = 20, std_dev: float = 2.0
) -> pd.DataFrame:
    """
    Compute Bollinger Bands (lower, middle, upper) using a rolling mean
    (middle band) and rolling population standard deviation, plus %B
    (``pb``), the position of the price inside the bands.
    """
    middle = values.rolling(window=period, min_periods=period).mean()
    std = values.rolling(window=period, min_periods=period).std(ddof=0)
    upper = middle + std_dev * std
    lower = middle - std_dev * std
    pb = (values - lower) / (upper - lower)
    return pd.DataFrame({"lower": lower, "middle": middle, "upper": upper, "pb": pb})


def compute_atr(
    high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14
) -> pd.Series:
    return _wilder(_true_range(high, low, close), period)


def compute_keltner(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    period: int = 20,
    multiplier: float = 2.0,
) -> pd.DataFrame:
    """Keltner channels: EMA of close ± ``multiplier`` × ATR."""
    middle = compute_ema(close, period)
    atr = compute_atr(high, low, close, period)
    return pd.DataFrame(
        {"lower": middle - multiplier * atr, "middle": middle, "upper": middle + multiplier * atr}
    )


# ----------------------------------------------------------------------
# Volume
# ----------------------------------------------------------------------
def compute_obv(close: pd.Series, volume: pd.Series) -> pd.Series:
    """On-balance volume, starting at 0 on the first bar."""
    direction = np.sign(close.diff()).fillna(0.0)
    return (direction * volume).cumsum()


def compute_adl(
    high: pd.Series, low: pd.Series, close: pd.Series, volume: pd.Series
) -> pd.Series:
    """Accumulation/distribution line.  Bars with high == low add nothing."""
    multiplier = ((close - low) - (high - close)) / (high - low)
    multiplier = multiplier.replace([np.inf, -np.inf], np.nan).fillna(0.0)
    return (multiplier * volume).cumsum()


def compute_vwap(
    high: pd.Series, low: pd.Series, close: pd.Series, volume: pd.Series
) -> pd.Series:
    """Cumulative volume-weighted average typical price over the whole series."""
    typical = (high + low + close) / 3
    return (typical * volume).cumsum() / volume.cumsum()


def compute_mfi(
    high: pd.Series,
    low: pd.Series,
    close: pd.Series,
    volume: pd.Series,
    period: int = 14,
) -> pd.Series:
    typical = (high + low + close) / 3
    raw_flow = typical * volume
    change = typical.diff()
    positive = raw_flow.where(change > 0, 0.0)
    negative = raw_flow.where(change < 0, 0.0)
    # the first bar has no previous typical price to compare against
    positive.iloc[:1] = np.nan
    negative.iloc[:1] = np.nan
    pos_sum = positive.rolling(window=period, min_periods=period).sum()
    neg_sum = negative.rolling(window=period, min_periods=period).sum()
    return 100 - 100 / (1 + pos_sum / neg_sum)


def compute_force_index(close: pd.Series, volume: pd.Series, period: int = 13) -> pd.Series:
    return compute_ema(close.diff() * volume, period)
