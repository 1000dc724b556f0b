from dataclasses import dataclass
from typing import Any, Mapping, Optional

from scenariodesk.marketdata.indicators import IndicatorSet, finite_float


__all__ = ["Candle", "OHLCV_FIELDS"]


OHLCV_FIELDS = ("open", "high", "low", "close", "volume")


@dataclass(frozen=True)
class Candle:
    """
    One period (P0..P5) of a timeframe.

    Attributes:
        timestamp: ISO 8601 timestamp of the period
        open: Opening price
        high: Highest price during period
        low: Lowest price during period
        close: Closing price
        volume: Trading volume, or None when the feed does not provide it
        indicators: Indicator values; only the current period (P0) carries them
    """

    timestamp: str
    open: Optional[float]
    high: Optional[float]
    low: Optional[float]
    close: Optional[float]
    volume: Optional[float] = None
    indicators: Optional[IndicatorSet] = None

    @property
    def date(self) -> str:
        """Calendar date part of the timestamp (``YYYY-MM-DD``)."""
        return self.timestamp[:10]

    def value(self, name: str) -> Optional[float]:
        """Return an OHLCV field, or None if unknown, missing or not finite."""
        if name not in OHLCV_FIELDS:
            return None
        return finite_float(getattr(self, name))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, with_indicators: bool = False) -> "Candle":
        indicators = None
        if with_indicators and payload.get("indicators") is not None:
            indicators = IndicatorSet.from_dict(payload.get("indicators"))
        return cls(
            timestamp=str(payload.get("timestamp") or payload.get("date") or ""),
            open=finite_float(payload.get("open")),
            high=finite_float(payload.get("high")),
            low=finite_float(payload.get("low")),
            close=finite_float(payload.get("close")),
            volume=finite_float(payload.get("volume")),
            indicators=indicators,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "date": self.date,
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
        if self.indicators is not None:
            out["indicators"] = self.indicators.to_dict()
        return out

    def __repr__(self) -> str:
        return (
            f"Candle(timestamp={self.timestamp}, "
            f"O={self.open}, H={self.high}, "
            f"L={self.low}, C={self.close}, "
            f"V={self.volume})"
        )
