import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from scenariodesk.marketdata.candle import OHLCV_FIELDS, Candle
from scenariodesk.marketdata.series import TimeframeSeries
from scenariodesk.time_utils import now_utc_iso
from scenariodesk.types import Timeframe


log = logging.getLogger(__name__)


__all__ = ["ParsedMarketData"]


def _timeframe(code: Timeframe | str) -> Optional[Timeframe]:
    try:
        return Timeframe(code)
    except ValueError:
        return None


@dataclass(frozen=True)
class ParsedMarketData:
    """
    Read-only per-symbol snapshot of up to four timeframes.

    A timeframe key is present only when source history for it existed, so
    references into a missing timeframe resolve to "no value" rather than zero.
    The snapshot is built fresh on every market-data fetch and is never
    mutated by the evaluator.

    Attributes:
        symbol: Instrument symbol (e.g. 'SPY', 'ES')
        timeframes: Series keyed by timeframe
        instrument_type: Free-form instrument category (e.g. 'ETF', 'future')
        timestamp: ISO 8601 time the snapshot was produced
    """

    symbol: str
    timeframes: Mapping[Timeframe, TimeframeSeries] = field(default_factory=dict)
    instrument_type: str = ""
    timestamp: str = field(default_factory=now_utc_iso)

    def __post_init__(self) -> None:
        # Accept "1D" style keys; unknown codes raise here instead of on lookup
        normalised = {Timeframe(code): series for code, series in self.timeframes.items()}
        object.__setattr__(self, "timeframes", normalised)

    def series(self, timeframe: Timeframe | str) -> Optional[TimeframeSeries]:
        tf = _timeframe(timeframe)
        if tf is None:
            return None
        return self.timeframes.get(tf)

    def candle(self, timeframe: Timeframe | str, period: int) -> Optional[Candle]:
        series = self.series(timeframe)
        if series is None:
            return None
        return series.candle(period)

    def lookup(
        self,
        timeframe: Timeframe | str,
        period: int,
        kind: str,
        key: int | str | None = None,
    ) -> Optional[float]:
        """
        Fetch one numeric cell.

        Args:
            timeframe: Timeframe code
            period: Period index (0 = current)
            kind: An OHLCV field name, or an indicator family (``sma``, ``ema``...)
            key: Indicator length or band name; ignored for OHLCV fields

        Returns:
            The value, or None when the timeframe, period or field is absent.
            Indicators exist only on P0; asking for them on older periods
            returns None.
        """
        candle = self.candle(timeframe, period)
        if candle is None:
            return None
        if kind in OHLCV_FIELDS:
            return candle.value(kind)
        if period != 0 or candle.indicators is None or key is None:
            return None
        return candle.indicators.get(kind, key)

    @property
    def available_timeframes(self) -> list[Timeframe]:
        return [tf for tf in Timeframe if tf in self.timeframes]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ParsedMarketData":
        """
        Build from the dashboard's parsed-data shape::

            {"symbol": "SPY", "instrumentType": "ETF", "timestamp": "...",
             "timeframes": {"1D": {"P0": {..., "indicators": {...}}, "P1": {...}}}}

        Unknown timeframe codes are skipped with a warning.
        """
        timeframes: dict[Timeframe, TimeframeSeries] = {}
        for code, raw_series in (payload.get("timeframes") or {}).items():
            tf = _timeframe(code)
            if tf is None:
                log.warning("Ignoring unknown timeframe %r for %s", code, payload.get("symbol"))
                continue
            if not isinstance(raw_series, Mapping):
                continue
            series = TimeframeSeries.from_dict(tf, raw_series)
            if len(series):
                timeframes[tf] = series

        return cls(
            symbol=str(payload.get("symbol", "")),
            timeframes=timeframes,
            instrument_type=str(payload.get("instrumentType", payload.get("instrument_type", "")) or ""),
            timestamp=str(payload.get("timestamp") or now_utc_iso()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "instrumentType": self.instrument_type,
            "timestamp": self.timestamp,
            "timeframes": {tf.value: s.to_dict() for tf, s in self.timeframes.items()},
        }

    def __repr__(self) -> str:
        tfs = ",".join(tf.value for tf in self.available_timeframes)
        return f"ParsedMarketData(symbol={self.symbol}, timeframes=[{tfs}], timestamp={self.timestamp})"
