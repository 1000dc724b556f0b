"""Exceptions raised while building snapshots and scenario configuration.

Evaluation itself never raises; these only surface at construction time.
"""


class ScenarioError(Exception):
    """Base class for scenariodesk errors."""

    pass


class ScenarioConfigError(ScenarioError, ValueError):
    """Raised when a scenario or evaluator configuration value is missing or malformed."""

    pass


class MarketDataError(ScenarioError, ValueError):
    """Raised when a market-data snapshot cannot be built from the supplied history."""

    pass
