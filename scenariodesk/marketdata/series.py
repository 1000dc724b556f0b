import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from scenariodesk.errors import MarketDataError
from scenariodesk.marketdata.candle import Candle
from scenariodesk.marketdata.indicators import IndicatorSet
from scenariodesk.marketdata.technical import compute_indicators
from scenariodesk.time_utils import parse_timestamp, period_timestamp
from scenariodesk.types import MAX_PERIODS, Timeframe, period_label


log = logging.getLogger(__name__)


__all__ = ["TimeframeSeries"]


def _as_array(name: str, values: Sequence[float] | np.ndarray) -> np.ndarray:
    try:
        return np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MarketDataError(f"{name} history is not numeric") from exc


def _cell(arr: Optional[np.ndarray], index: int) -> Optional[float]:
    if arr is None:
        return None
    value = arr[index]
    return float(value) if np.isfinite(value) else None


@dataclass(frozen=True)
class TimeframeSeries:
    """
    The most recent periods of one timeframe, newest first.

    ``candles[0]`` is P0 (current, the only period with indicators) and
    ``candles[n]`` is Pn, n steps further into the past. Periods beyond the
    available history are simply absent.

    Example:
        series = TimeframeSeries.from_history(
            Timeframe.DAILY, opens, highs, lows, closes,
            indicators=IndicatorSet(sma={89: 95.0}),
        )
        series.candle(1).high   # yesterday's high
        series.candle(5)        # None when fewer than six days were supplied
    """

    timeframe: Timeframe
    candles: tuple[Candle, ...] = ()

    def __post_init__(self) -> None:
        if len(self.candles) > MAX_PERIODS:
            raise MarketDataError(
                f"{self.timeframe.value} series holds {len(self.candles)} periods; "
                f"at most {MAX_PERIODS} are supported"
            )
        for period, candle in enumerate(self.candles[1:], start=1):
            if candle.indicators is not None:
                raise MarketDataError(
                    f"{self.timeframe.value} {period_label(period)} carries indicators; "
                    "only P0 may"
                )

    def candle(self, period: int) -> Optional[Candle]:
        """Return the candle for a period index, or None beyond the stored depth."""
        if period < 0 or period >= len(self.candles):
            return None
        return self.candles[period]

    @property
    def current(self) -> Optional[Candle]:
        return self.candle(0)

    @property
    def indicators(self) -> Optional[IndicatorSet]:
        """Indicators of the current period."""
        current = self.current
        return current.indicators if current is not None else None

    @property
    def depth(self) -> int:
        return len(self.candles)

    @classmethod
    def from_history(
        cls,
        timeframe: Timeframe | str,
        opens: Sequence[float] | np.ndarray,
        highs: Sequence[float] | np.ndarray,
        lows: Sequence[float] | np.ndarray,
        closes: Sequence[float] | np.ndarray,
        volumes: Sequence[float] | np.ndarray | None = None,
        *,
        indicators: Optional[IndicatorSet] = None,
        as_of: datetime | str | None = None,
        derive_indicators: bool = False,
    ) -> "TimeframeSeries":
        """
        Build a series from oldest-first OHLC history arrays.

        The last element of each array becomes P0; up to five earlier
        elements become P1..P5. Non-finite history values become missing
        fields rather than zeros.

        Args:
            timeframe: Timeframe code of the history
            opens, highs, lows, closes: Equal-length price arrays, oldest first
            volumes: Optional volume array of the same length
            indicators: Indicator values for the current period
            as_of: Timestamp of P0 (defaults to now); older periods step back
                by the timeframe interval
            derive_indicators: When no *indicators* are given, compute the
                default set (SMA, SMA of lows, EMA, RSI, Bollinger bands)
                from the full close and low history

        Raises:
            MarketDataError: if the arrays differ in length or are not numeric
        """
        tf = Timeframe(timeframe)
        o = _as_array("open", opens)
        h = _as_array("high", highs)
        lo = _as_array("low", lows)
        c = _as_array("close", closes)
        v = _as_array("volume", volumes) if volumes is not None else None

        lengths = {len(o), len(h), len(lo), len(c)}
        if v is not None:
            lengths.add(len(v))
        if len(lengths) != 1:
            raise MarketDataError(
                f"{tf.value} history arrays differ in length: {sorted(lengths)}"
            )

        if indicators is None and derive_indicators:
            indicators = compute_indicators(c, lo)

        anchor = parse_timestamp(as_of) if as_of is not None else datetime.now(timezone.utc)
        available = len(o)
        periods = min(MAX_PERIODS, available)
        candles: list[Candle] = []
        for period in range(periods):
            idx = available - 1 - period
            candles.append(
                Candle(
                    timestamp=period_timestamp(anchor, tf, period),
                    open=_cell(o, idx),
                    high=_cell(h, idx),
                    low=_cell(lo, idx),
                    close=_cell(c, idx),
                    volume=_cell(v, idx),
                    indicators=(indicators or IndicatorSet()) if period == 0 else None,
                )
            )

        log.debug("Built %s series with %d/%d periods", tf.value, periods, available)
        return cls(timeframe=tf, candles=tuple(candles))

    @classmethod
    def from_dict(cls, timeframe: Timeframe | str, payload: Mapping[str, Any]) -> "TimeframeSeries":
        """
        Build from the ``{"P0": {...}, "P1": {...}}`` shape.

        Periods are read in order and stop at the first missing one, so a
        gap never leaves a later period addressable.
        """
        tf = Timeframe(timeframe)
        candles: list[Candle] = []
        for period in range(MAX_PERIODS):
            raw = payload.get(period_label(period))
            if not isinstance(raw, Mapping):
                break
            candles.append(Candle.from_dict(raw, with_indicators=period == 0))
        return cls(timeframe=tf, candles=tuple(candles))

    def to_dict(self) -> dict[str, Any]:
        return {period_label(i): c.to_dict() for i, c in enumerate(self.candles)}

    def __len__(self) -> int:
        return len(self.candles)

    def __repr__(self) -> str:
        return f"TimeframeSeries(timeframe={self.timeframe.value}, periods={len(self)}/{MAX_PERIODS})"
