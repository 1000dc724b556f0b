# scenariodesk/__init__.py
"""
Scenariodesk - scenario evaluation for multi-timeframe market data.

Resolves declarative filter conditions against a parsed snapshot of daily,
2-hour, weekly and monthly OHLC bars and classifies each configured
trading scenario as bullish, bearish or without bias.
"""

from .logging_setup import configure_logging
from .marketdata import Candle, IndicatorSet, ParsedMarketData, TimeframeSeries
from .scenarios import (
    ScenarioCatalog,
    ScenarioConfig,
    ScenarioEvaluation,
    ScenarioEvaluator,
    ScenarioFilter,
    evaluate_filter,
    evaluate_scenario,
    resolve_field,
)
from .types import NodeStatus, RiskLevel, Timeframe, ZoneType

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Candle",
    "IndicatorSet",
    "NodeStatus",
    "ParsedMarketData",
    "RiskLevel",
    "ScenarioCatalog",
    "ScenarioConfig",
    "ScenarioEvaluation",
    "ScenarioEvaluator",
    "ScenarioFilter",
    "Timeframe",
    "TimeframeSeries",
    "ZoneType",
    "configure_logging",
    "evaluate_filter",
    "evaluate_scenario",
    "resolve_field",
]
