"""
Indicator calculations over oldest-first price history.

Each function returns the value at the newest element, or None when the
history is shorter than the lookback or contains non-finite values inside
the window it reads. A missing indicator is reported as missing, never as 0.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from scenariodesk.marketdata.indicators import BollingerBands, IndicatorSet, finite_float


log = logging.getLogger(__name__)


__all__ = [
    "bollinger_bands",
    "compute_indicators",
    "ema",
    "rsi",
    "sma",
]


def _prices(values: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def sma(values: Sequence[float] | np.ndarray, length: int) -> Optional[float]:
    """Simple moving average of the last *length* values."""
    prices = _prices(values)
    if length <= 0 or len(prices) < length:
        return None
    return finite_float(prices[-length:].mean())


def ema(values: Sequence[float] | np.ndarray, length: int) -> Optional[float]:
    """
    Exponential moving average with multiplier ``2 / (length + 1)``.

    Seeded with the simple average of the first *length* values, then
    smoothed over the rest of the history.
    """
    prices = _prices(values)
    if length <= 0 or len(prices) < length:
        return None

    k = 2.0 / (length + 1)
    value = prices[:length].mean()
    for price in prices[length:]:
        value = price * k + value * (1 - k)
    return finite_float(value)


def rsi(values: Sequence[float] | np.ndarray, length: int = 14) -> Optional[float]:
    """
    Relative strength index with Wilder smoothing.

    Needs ``length + 1`` values. A window without losses reads 100.
    """
    prices = _prices(values)
    if length <= 0 or len(prices) < length + 1:
        return None

    deltas = np.diff(prices)
    gains = np.clip(deltas, 0, None)
    losses = np.clip(-deltas, 0, None)

    avg_gain = gains[:length].mean()
    avg_loss = losses[:length].mean()
    for gain, loss in zip(gains[length:], losses[length:]):
        avg_gain = (avg_gain * (length - 1) + gain) / length
        avg_loss = (avg_loss * (length - 1) + loss) / length

    if not (np.isfinite(avg_gain) and np.isfinite(avg_loss)):
        return None
    if avg_loss == 0:
        return 100.0
    return finite_float(100.0 - 100.0 / (1.0 + avg_gain / avg_loss))


def bollinger_bands(
    values: Sequence[float] | np.ndarray,
    length: int = 20,
    num_std: float = 2.0,
) -> Optional[BollingerBands]:
    """Bollinger bands: SMA of the last *length* values +/- *num_std* population deviations."""
    prices = _prices(values)
    if length <= 0 or len(prices) < length:
        return None

    window = prices[-length:]
    middle = finite_float(window.mean())
    deviation = finite_float(window.std())
    if middle is None or deviation is None:
        return None
    return BollingerBands(
        upper=middle + num_std * deviation,
        middle=middle,
        lower=middle - num_std * deviation,
        period=length,
    )


def _by_length(values: np.ndarray, lengths: Sequence[int], fn) -> dict[int, float]:
    out: dict[int, float] = {}
    for length in lengths:
        value = fn(values, length)
        if value is not None:
            out[int(length)] = value
    return out


def compute_indicators(
    closes: Sequence[float] | np.ndarray,
    lows: Sequence[float] | np.ndarray | None = None,
    *,
    sma_lengths: Sequence[int] = (89, 200),
    sma_low_lengths: Sequence[int] = (89, 200),
    ema_lengths: Sequence[int] = (89,),
    rsi_lengths: Sequence[int] = (14,),
    bb_length: Optional[int] = 20,
) -> IndicatorSet:
    """
    Build the current-period indicator set from oldest-first history.

    Lengths the history is too short for are left out, so field references
    to them resolve to "no value".

    Example:
        indicators = compute_indicators(closes, lows, sma_lengths=(20, 89))
        indicators.get("sma", 89)
    """
    c = _prices(closes)
    lo = _prices(lows) if lows is not None else None

    indicators = IndicatorSet(
        sma=_by_length(c, sma_lengths, sma),
        sma_low=_by_length(lo, sma_low_lengths, sma) if lo is not None else {},
        ema=_by_length(c, ema_lengths, ema),
        rsi=_by_length(c, rsi_lengths, rsi),
        bb=bollinger_bands(c, bb_length) if bb_length else None,
    )
    log.debug("Computed indicators from %d bars: %s", len(c), indicators.to_dict())
    return indicators
