"""Shared enums for timeframes, scenario status, risk and trade zones."""

from datetime import timedelta
from enum import Enum


__all__ = [
    "MAX_PERIODS",
    "NodeStatus",
    "RiskLevel",
    "Timeframe",
    "ZoneType",
    "period_label",
]


# P0 (current) plus five historical periods
MAX_PERIODS = 6


def period_label(period: int) -> str:
    """Return the wire label for a period index (``0`` -> ``"P0"``)."""
    return f"P{period}"


class Timeframe(str, Enum):
    """Sampling interval of the OHLC bars held for a symbol."""
    DAILY = "1D"
    TWO_HOUR = "2H"
    WEEKLY = "1W"
    MONTHLY = "1M"

    @property
    def interval(self) -> timedelta:
        """Distance between two consecutive periods (1M is approximated as 30 days)."""
        return _INTERVALS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_INTERVALS = {
    Timeframe.DAILY: timedelta(days=1),
    Timeframe.TWO_HOUR: timedelta(hours=2),
    Timeframe.WEEKLY: timedelta(weeks=1),
    Timeframe.MONTHLY: timedelta(days=30),
}

_LABELS = {
    Timeframe.DAILY: "Daily",
    Timeframe.TWO_HOUR: "2 Hour",
    Timeframe.WEEKLY: "Weekly",
    Timeframe.MONTHLY: "Monthly",
}


class NodeStatus(str, Enum):
    """Classification produced by evaluating a scenario."""
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    OVERBOUGHT = "OVERBOUGHT"
    OVERSOLD = "OVERSOLD"
    NO_BIAS = "NO_BIAS"

    @property
    def is_directional(self) -> bool:
        return self is not NodeStatus.NO_BIAS


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def from_score(cls, score: float) -> "RiskLevel":
        """
        Bucket a 0-100 risk score.

        Returns:
            LOW below 33, MEDIUM below 66, HIGH otherwise
        """
        if score < 33:
            return cls.LOW
        if score < 66:
            return cls.MEDIUM
        return cls.HIGH


class ZoneType(str, Enum):
    """Side of a configured trade zone."""
    BUY = "BUY"
    SELL = "SELL"
