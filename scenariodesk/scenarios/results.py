"""Evaluation result records."""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from scenariodesk.scenarios.config import ResolvedTradeZone, RiskFactor
from scenariodesk.types import NodeStatus, RiskLevel


__all__ = [
    "RiskAssessment",
    "ScenarioEvaluation",
    "group_by_status",
]


@dataclass(frozen=True)
class RiskAssessment:
    """Risk attached to an evaluation; level and recommendations come from configuration."""
    level: RiskLevel
    score: float
    factors: tuple[RiskFactor, ...] = ()
    recommendations: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "score": self.score,
            "factors": [f.to_dict() for f in self.factors],
            "recommendations": list(self.recommendations),
        }


@dataclass(frozen=True)
class ScenarioEvaluation:
    """
    Outcome of evaluating one scenario against one snapshot.

    Attributes:
        scenario_id: Scenario that was evaluated
        status: BULLISH, BEARISH or NO_BIAS (OVERBOUGHT/OVERSOLD are reserved)
        confidence: Percentage of filters that passed (0-100)
        probability: Base probability plus matching modifiers (0-100)
        risk: Static risk assessment
        filters: Filter id -> passed
        timestamp: Timestamp of the snapshot the result was computed from
        indicators: Required indicator reference -> value (None if unavailable)
        trade_zones: Trade zones whose levels could be resolved
        message: Why the result is NO_BIAS, when it degraded
    """
    scenario_id: str
    status: NodeStatus
    confidence: float
    probability: float
    risk: RiskAssessment
    filters: Mapping[str, bool] = field(default_factory=dict)
    timestamp: str = ""
    indicators: Mapping[str, Optional[float]] = field(default_factory=dict)
    trade_zones: tuple[ResolvedTradeZone, ...] = ()
    message: Optional[str] = None

    @property
    def passed_count(self) -> int:
        return sum(1 for passed in self.filters.values() if passed)

    @property
    def total_count(self) -> int:
        return len(self.filters)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "scenarioId": self.scenario_id,
            "status": self.status.value,
            "confidence": self.confidence,
            "probability": self.probability,
            "risk": self.risk.to_dict(),
            "filters": dict(self.filters),
            "timestamp": self.timestamp,
            "indicators": dict(self.indicators),
            "tradeZones": [z.to_dict() for z in self.trade_zones],
        }
        if self.message is not None:
            out["message"] = self.message
        return out


def group_by_status(evaluations: Iterable[ScenarioEvaluation]) -> dict[NodeStatus, list[ScenarioEvaluation]]:
    """Group evaluations by resulting status, preserving input order within each group."""
    groups: dict[NodeStatus, list[ScenarioEvaluation]] = defaultdict(list)
    for evaluation in evaluations:
        groups[evaluation.status].append(evaluation)
    return dict(groups)
