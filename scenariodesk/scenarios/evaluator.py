"""
Scenario evaluation.

Evaluates every filter of a scenario against a parsed market-data snapshot
and aggregates the results into a status, confidence, probability and risk
assessment.

Evaluation is a pure function of (scenario, snapshot): no state is kept
between calls, the snapshot is never mutated, and the same inputs always
produce the same result. Evaluations of different scenarios or symbols can
run in parallel without coordination.

Nothing raised while evaluating crosses this module's boundary. Missing
scenarios, unresolvable fields and insufficient history all degrade to a
NO_BIAS result carrying a ``message``.
"""

import logging
from typing import Mapping, Optional

from scenariodesk.marketdata import ParsedMarketData
from scenariodesk.scenarios.config import EvaluatorSettings, ScenarioCatalog, ScenarioConfig
from scenariodesk.scenarios.direction import infer_direction
from scenariodesk.scenarios.fields import resolve_field
from scenariodesk.scenarios.filters import evaluate_filter, unresolved_operands
from scenariodesk.scenarios.results import RiskAssessment, ScenarioEvaluation
from scenariodesk.types import NodeStatus, RiskLevel


log = logging.getLogger(__name__)


__all__ = [
    "ScenarioEvaluator",
    "evaluate_scenario",
    "get_evaluator",
]


class ScenarioEvaluator:
    """
    Evaluates scenarios against market-data snapshots.

    The catalog is only needed to look scenarios up by id; configurations
    can always be passed directly to :meth:`evaluate_scenario`.

    Example:
        evaluator = ScenarioEvaluator(catalog)
        result = evaluator.evaluate("open-above-yesterday-high", snapshot)
        if result.status is NodeStatus.BULLISH:
            log.info("Setup live with %.0f%% confidence", result.confidence)
    """

    def __init__(
        self,
        catalog: Optional[ScenarioCatalog] = None,
        settings: Optional[EvaluatorSettings] = None,
    ):
        self.catalog = catalog if catalog is not None else ScenarioCatalog()
        self.settings = settings if settings is not None else EvaluatorSettings()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def evaluate(self, scenario_id: str, data: ParsedMarketData) -> ScenarioEvaluation:
        """Evaluate a catalogued scenario; an unknown id yields NO_BIAS with a message."""
        scenario = self.catalog.get(scenario_id)
        if scenario is None:
            log.warning("Scenario %s not found in catalog", scenario_id)
            return self._no_bias(scenario_id, data, f"Scenario {scenario_id} not found")
        return self.evaluate_scenario(scenario, data)

    def evaluate_all(
        self,
        data: ParsedMarketData,
        category_id: Optional[str] = None,
    ) -> list[ScenarioEvaluation]:
        """Evaluate every catalogued scenario (optionally one category) in catalog order."""
        return [self.evaluate_scenario(s, data) for s in self.catalog.scenarios(category_id)]

    def evaluate_scenario(self, scenario: ScenarioConfig, data: ParsedMarketData) -> ScenarioEvaluation:
        """
        Evaluate one scenario configuration against a snapshot.

        Raises:
            TypeError: if *scenario* is not a ScenarioConfig (a caller bug)
        """
        if not isinstance(scenario, ScenarioConfig):
            raise TypeError(f"Expected ScenarioConfig, got {type(scenario)!r}")

        try:
            return self._evaluate(scenario, data)
        except Exception as exc:
            log.exception("Evaluation of scenario %s failed; reporting NO_BIAS", scenario.id)
            return self._no_bias(scenario.id, data, f"Evaluation failed: {exc}", scenario)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def filter_results(self, scenario: ScenarioConfig, data: ParsedMarketData) -> dict[str, bool]:
        """Evaluate each active filter; inactive filters are not counted."""
        tolerance = self.settings.equality_tolerance
        return {f.id: evaluate_filter(f, data, tolerance) for f in scenario.active_filters}

    def classify(self, scenario: ScenarioConfig, filter_results: Mapping[str, bool]) -> NodeStatus:
        """
        Turn filter results into a status.

        - nothing passed (or nothing to evaluate): NO_BIAS
        - everything passed: inferred direction
        - partial match at or above the threshold pass rate: inferred direction
        - weaker partial match: inferred direction only if a critical filter passed
        """
        total = len(filter_results)
        passed = sum(1 for ok in filter_results.values() if ok)

        if total == 0 or passed == 0:
            return NodeStatus.NO_BIAS
        if passed == total:
            return infer_direction(scenario)

        pass_rate = passed / total
        if pass_rate >= self.settings.partial_match_threshold:
            return infer_direction(scenario)

        critical_passed = any(
            f.is_critical and filter_results.get(f.id, False) for f in scenario.active_filters
        )
        if critical_passed:
            return infer_direction(scenario)

        log.debug("Scenario %s: weak partial match (%d/%d)", scenario.id, passed, total)
        return NodeStatus.NO_BIAS

    def _evaluate(self, scenario: ScenarioConfig, data: ParsedMarketData) -> ScenarioEvaluation:
        results = self.filter_results(scenario, data)
        total = len(results)
        passed = sum(1 for ok in results.values() if ok)

        confidence = 100.0 * passed / total if total else 0.0
        status = self.classify(scenario, results)
        probability = scenario.probability.compute(
            results, default_base=self.settings.default_base_probability
        )

        indicators = {ref: resolve_field(ref, data) for ref in scenario.required_indicators}
        zones = tuple(
            resolved
            for resolved in (zone.resolve(data) for zone in scenario.trade_zones)
            if resolved is not None
        )

        log.debug(
            "Scenario %s on %s: %d/%d filters passed -> %s",
            scenario.id,
            data.symbol,
            passed,
            total,
            status.value,
        )

        return ScenarioEvaluation(
            scenario_id=scenario.id,
            status=status,
            confidence=confidence,
            probability=probability,
            risk=self._risk(scenario),
            filters=results,
            timestamp=data.timestamp,
            indicators=indicators,
            trade_zones=zones,
            message=self._message(scenario, data, status, results),
        )

    def _risk(self, scenario: Optional[ScenarioConfig]) -> RiskAssessment:
        # No risk model yet: the score is a fixed midpoint, level and advice are static config
        if scenario is None:
            return RiskAssessment(level=RiskLevel.MEDIUM, score=self.settings.default_risk_score)
        return RiskAssessment(
            level=scenario.risk.level,
            score=self.settings.default_risk_score,
            factors=scenario.risk.factors,
            recommendations=scenario.risk.mitigation,
        )

    def _message(
        self,
        scenario: ScenarioConfig,
        data: ParsedMarketData,
        status: NodeStatus,
        results: Mapping[str, bool],
    ) -> Optional[str]:
        if status is not NodeStatus.NO_BIAS:
            return None
        if not results:
            return "Scenario has no active filters"
        if any(results.values()):
            return "Filters matched without a directional signal"
        unresolved = [f.id for f in scenario.active_filters if unresolved_operands(f, data)]
        if unresolved:
            return f"Insufficient market data for filters: {', '.join(unresolved)}"
        return "Conditions not met"

    def _no_bias(
        self,
        scenario_id: str,
        data: ParsedMarketData,
        message: str,
        scenario: Optional[ScenarioConfig] = None,
    ) -> ScenarioEvaluation:
        probability = self.settings.default_base_probability
        if scenario is not None and scenario.probability.base_probability is not None:
            probability = max(0.0, min(100.0, scenario.probability.base_probability))
        return ScenarioEvaluation(
            scenario_id=scenario_id,
            status=NodeStatus.NO_BIAS,
            confidence=0.0,
            probability=probability,
            risk=self._risk(scenario),
            filters={},
            timestamp=getattr(data, "timestamp", ""),
            message=message,
        )


# Lazy default instance for callers that evaluate loose configurations
_evaluator: ScenarioEvaluator | None = None


def get_evaluator() -> ScenarioEvaluator:
    """Get the shared catalog-less evaluator with default settings."""
    global _evaluator
    if _evaluator is None:
        _evaluator = ScenarioEvaluator()
    return _evaluator


def evaluate_scenario(scenario: ScenarioConfig, data: ParsedMarketData) -> ScenarioEvaluation:
    """Evaluate *scenario* against *data* with default settings."""
    return get_evaluator().evaluate_scenario(scenario, data)
