# tests/conftest.py
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from scenariodesk.marketdata import (  # noqa: E402
    BollingerBands,
    Candle,
    IndicatorSet,
    ParsedMarketData,
    TimeframeSeries,
)
from scenariodesk.types import Timeframe  # noqa: E402


AS_OF = "2026-01-15T21:00:00+00:00"


def make_candle(o, h, lo, c, v=None, indicators=None, ts=AS_OF) -> Candle:
    return Candle(timestamp=ts, open=o, high=h, low=lo, close=c, volume=v, indicators=indicators)


def make_snapshot(series: dict, symbol: str = "SPY") -> ParsedMarketData:
    """Build a snapshot from ``{timeframe: [P0 candle, P1 candle, ...]}``."""
    return ParsedMarketData(
        symbol=symbol,
        instrument_type="ETF",
        timestamp=AS_OF,
        timeframes={
            Timeframe(tf): TimeframeSeries(timeframe=Timeframe(tf), candles=tuple(candles))
            for tf, candles in series.items()
        },
    )


@pytest.fixture
def daily_indicators() -> IndicatorSet:
    return IndicatorSet(
        sma={89: 95.0, 200: 90.0},
        sma_low={89: 94.0},
        ema={89: 96.0},
        rsi={14: 62.5},
        bb=BollingerBands(upper=110.0, middle=100.0, lower=90.0),
    )


@pytest.fixture
def snapshot(daily_indicators) -> ParsedMarketData:
    """
    SPY with six daily periods and three 2-hour periods (no weekly/monthly).

    Daily, newest first:
        P0 o105 h107 l104 c106     P1 o99.8 h100 l99 c99.5    P2 o99 h101 l98 c100
        P3 o98 h100 l97 c99        P4 o97 h99 l96 c98         P5 o96 h98 l95 c97
    2H, newest first:
        P0 o101 h101.5 l97.5 c98   P1 o100 h102 l99.5 c101    P2 o99 h101 l98.5 c100
    """
    daily = TimeframeSeries.from_history(
        Timeframe.DAILY,
        opens=[96, 97, 98, 99, 99.8, 105],
        highs=[98, 99, 100, 101, 100, 107],
        lows=[95, 96, 97, 98, 99, 104],
        closes=[97, 98, 99, 100, 99.5, 106],
        volumes=[1_000_000, 1_100_000, 900_000, 950_000, 1_200_000, 1_500_000],
        indicators=daily_indicators,
        as_of=AS_OF,
    )
    two_hour = TimeframeSeries.from_history(
        Timeframe.TWO_HOUR,
        opens=[99, 100, 101],
        highs=[101, 102, 101.5],
        lows=[98.5, 99.5, 97.5],
        closes=[100, 101, 98],
        indicators=IndicatorSet(sma={89: 99.0}),
        as_of=AS_OF,
    )
    return ParsedMarketData(
        symbol="SPY",
        instrument_type="ETF",
        timestamp=AS_OF,
        timeframes={Timeframe.DAILY: daily, Timeframe.TWO_HOUR: two_hour},
    )


@pytest.fixture
def candle_factory():
    return make_candle


@pytest.fixture
def snapshot_factory():
    return make_snapshot
