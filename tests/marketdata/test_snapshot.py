"""Tests for ParsedMarketData lookups and the dashboard dict shape."""

import logging

import pytest

from scenariodesk.marketdata import ParsedMarketData, TimeframeSeries
from scenariodesk.types import Timeframe


class TestLookup:

    def test_ohlcv_by_period(self, snapshot):
        assert snapshot.lookup("1D", 0, "close") == 106.0
        assert snapshot.lookup("1D", 1, "high") == 100.0
        assert snapshot.lookup(Timeframe.DAILY, 5, "low") == 95.0
        assert snapshot.lookup("2H", 1, "close") == 101.0

    def test_volume(self, snapshot):
        assert snapshot.lookup("1D", 0, "volume") == 1_500_000
        assert snapshot.lookup("2H", 0, "volume") is None

    def test_indicator_on_p0(self, snapshot):
        assert snapshot.lookup("1D", 0, "sma", 89) == 95.0
        assert snapshot.lookup("2H", 0, "sma", 89) == 99.0

    def test_indicator_only_exists_on_p0(self, snapshot):
        assert snapshot.lookup("1D", 1, "sma", 89) is None

    def test_indicator_without_key(self, snapshot):
        assert snapshot.lookup("1D", 0, "sma") is None

    def test_period_beyond_depth(self, snapshot):
        assert snapshot.lookup("2H", 3, "close") is None
        assert snapshot.lookup("1D", 6, "close") is None

    def test_absent_timeframe(self, snapshot):
        assert snapshot.series("1W") is None
        assert snapshot.lookup("1W", 0, "close") is None
        assert snapshot.lookup("1M", 0, "sma", 89) is None

    def test_unknown_timeframe_code(self, snapshot):
        assert snapshot.series("4H") is None
        assert snapshot.candle("4H", 0) is None

    def test_available_timeframes(self, snapshot):
        assert snapshot.available_timeframes == [Timeframe.DAILY, Timeframe.TWO_HOUR]


def test_string_timeframe_keys_are_normalised():
    series = TimeframeSeries(Timeframe.DAILY, ())
    data = ParsedMarketData(symbol="ES", timeframes={"1D": series})
    assert data.series(Timeframe.DAILY) is series
    assert list(data.timeframes) == [Timeframe.DAILY]
    assert type(next(iter(data.timeframes))) is Timeframe


def test_unknown_timeframe_key_rejected_at_construction():
    with pytest.raises(ValueError):
        ParsedMarketData(symbol="ES", timeframes={"4H": TimeframeSeries(Timeframe.DAILY, ())})


def test_timestamp_defaults_to_now():
    assert ParsedMarketData(symbol="ES").timestamp


class TestFromDict:

    PAYLOAD = {
        "symbol": "SPY",
        "instrumentType": "ETF",
        "timestamp": "2026-01-15T21:00:00Z",
        "timeframes": {
            "1D": {
                "P0": {
                    "date": "2026-01-15", "open": 105, "high": 107, "low": 104, "close": 106,
                    "volume": 1500000,
                    "indicators": {"sma": {"89": 95.0}, "bb": {"upper": 110, "middle": 100, "lower": 90}},
                },
                "P1": {"date": "2026-01-14", "open": 99.8, "high": 100, "low": 99, "close": 99.5},
            },
            "2H": {},
            "4H": {"P0": {"open": 1, "high": 1, "low": 1, "close": 1}},
        },
    }

    def test_builds_series(self):
        data = ParsedMarketData.from_dict(self.PAYLOAD)
        assert data.symbol == "SPY"
        assert data.instrument_type == "ETF"
        assert data.timestamp == "2026-01-15T21:00:00Z"
        assert data.lookup("1D", 1, "high") == 100.0
        assert data.lookup("1D", 0, "sma", 89) == 95.0
        assert data.lookup("1D", 0, "bb", "upper") == 110.0

    def test_empty_timeframe_is_absent(self):
        data = ParsedMarketData.from_dict(self.PAYLOAD)
        assert data.series("2H") is None

    def test_unknown_timeframe_skipped_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="scenariodesk.marketdata.snapshot"):
            data = ParsedMarketData.from_dict(self.PAYLOAD)
        assert data.available_timeframes == [Timeframe.DAILY]
        assert "4H" in caplog.text

    def test_to_dict_uses_codes(self):
        out = ParsedMarketData.from_dict(self.PAYLOAD).to_dict()
        assert list(out["timeframes"]) == ["1D"]
        assert out["timeframes"]["1D"]["P0"]["indicators"]["sma"] == {89: 95.0}
