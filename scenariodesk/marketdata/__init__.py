from .candle import OHLCV_FIELDS, Candle
from .indicators import INDICATOR_KINDS, BollingerBands, IndicatorSet, finite_float
from .series import TimeframeSeries
from .snapshot import ParsedMarketData
from .technical import compute_indicators

__all__ = [
    "BollingerBands",
    "Candle",
    "INDICATOR_KINDS",
    "IndicatorSet",
    "OHLCV_FIELDS",
    "ParsedMarketData",
    "TimeframeSeries",
    "compute_indicators",
    "finite_float",
]
