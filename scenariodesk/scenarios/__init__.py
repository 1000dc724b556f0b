from .config import (
    EvaluatorSettings,
    ProbabilityConfig,
    ProbabilityModifier,
    ResolvedTradeZone,
    RiskConfig,
    RiskFactor,
    ScenarioCatalog,
    ScenarioCategory,
    ScenarioConfig,
    TradeZone,
    conditions_to_filters,
    modifier_matches,
)
from .direction import direction_signal, infer_direction
from .evaluator import ScenarioEvaluator, evaluate_scenario, get_evaluator
from .fields import Expression, FieldRef, parse_expression, parse_field_ref, resolve_field
from .filters import Operator, ScenarioFilter, evaluate_filter
from .results import RiskAssessment, ScenarioEvaluation, group_by_status

__all__ = [
    "EvaluatorSettings",
    "Expression",
    "FieldRef",
    "Operator",
    "ProbabilityConfig",
    "ProbabilityModifier",
    "ResolvedTradeZone",
    "RiskAssessment",
    "RiskConfig",
    "RiskFactor",
    "ScenarioCatalog",
    "ScenarioCategory",
    "ScenarioConfig",
    "ScenarioEvaluation",
    "ScenarioEvaluator",
    "ScenarioFilter",
    "TradeZone",
    "conditions_to_filters",
    "direction_signal",
    "evaluate_filter",
    "evaluate_scenario",
    "get_evaluator",
    "group_by_status",
    "infer_direction",
    "modifier_matches",
    "parse_expression",
    "parse_field_ref",
    "resolve_field",
]
