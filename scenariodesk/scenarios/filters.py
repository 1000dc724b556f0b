"""Declarative scenario filters and their evaluation."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from scenariodesk.errors import ScenarioConfigError
from scenariodesk.marketdata import ParsedMarketData
from scenariodesk.scenarios.fields import (
    Expression,
    coerce_period,
    coerce_timeframe,
    parse_expression,
    parse_field_ref,
)
from scenariodesk.types import Timeframe


log = logging.getLogger(__name__)


__all__ = [
    "DEFAULT_TOLERANCE",
    "Operator",
    "ScenarioFilter",
    "determine_filter_type",
    "evaluate_filter",
    "extract_indicator",
    "unresolved_operands",
]


# Absolute tolerance for eq/ne, absorbs float and display rounding
DEFAULT_TOLERANCE = 0.01


class Operator(str, Enum):
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EQ = "eq"
    NE = "ne"
    BETWEEN = "between"
    ABOVE = "above"
    BELOW = "below"
    CROSSES_ABOVE = "crosses_above"
    CROSSES_BELOW = "crosses_below"

    @classmethod
    def parse(cls, raw: Any) -> Optional["Operator"]:
        """Return the operator for *raw*, or None if it is not one we evaluate."""
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return None


def determine_filter_type(field: str) -> str:
    """
    Classify a field by substring: ``price``, ``volume``, ``indicator`` or ``custom``.

    Price words win, so ``1D_P0_close`` is price even though it also names a timeframe.
    """
    f = (field or "").lower()
    if any(token in f for token in ("price", "open", "high", "low", "close")):
        return "price"
    if "volume" in f:
        return "volume"
    if any(token in f for token in ("rsi", "sma", "ema", "bb", "atr", "vwap")):
        return "indicator"
    return "custom"


def extract_indicator(field: str) -> Optional[str]:
    f = (field or "").lower()
    if "rsi" in f:
        return "rsi"
    if "sma" in f:
        return "sma"
    if "ema" in f:
        return "ema"
    if "bb" in f or "bollinger" in f:
        return "bollingerBands"
    if "atr" in f:
        return "atr"
    if "vwap" in f:
        return "vwap"
    return None


def _flag(raw: Any) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "true", "yes")
    return bool(raw)


@dataclass(frozen=True)
class ScenarioFilter:
    """
    One declarative condition of a scenario.

    Operands are parsed into :class:`Expression` objects when the filter is
    built, so evaluation never re-parses strings.

    Attributes:
        id: Filter identifier, unique within a scenario
        field: Left-hand operand
        operator: Comparison to apply; None when the configured operator is
            unknown (the filter then never passes)
        value: Right-hand operand for single-operand operators
        min_value, max_value: Inclusive bounds for ``between``
        timeframe, period: Where bare field names are looked up
        weight: Relative weight (informational)
        is_required, critical, priority: Mark the filter as significant for
            weak partial matches
    """

    id: str
    field: Expression
    operator: Optional[Operator]
    value: Optional[Expression] = None
    min_value: Optional[Expression] = None
    max_value: Optional[Expression] = None
    timeframe: Optional[Timeframe] = None
    period: int = 0
    weight: float = 1.0
    is_required: bool = False
    critical: bool = False
    priority: str = ""
    type: str = "custom"
    indicator: Optional[str] = None
    description: str = ""
    is_active: bool = True

    @property
    def field_name(self) -> str:
        return self.field.text

    @property
    def is_critical(self) -> bool:
        """Whether a pass of this filter alone can carry a weak partial match."""
        return self.critical or self.is_required or self.priority == "high"

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, index: int = 0) -> "ScenarioFilter":
        """
        Build a filter from configuration.

        Operands may sit at the top level or under ``parameters`` (the shape
        produced by the dashboard's condition builder). Timeframe and period
        come from the field reference when it is fully qualified, otherwise
        from the ``timeframe``/``period`` keys.

        Raises:
            ScenarioConfigError: if the entry or its parameters are not mappings,
                the field is missing or weight is not numeric
        """
        if not isinstance(raw, Mapping):
            raise ScenarioConfigError(f"filter #{index} must be a mapping, got {raw!r}")
        filter_id = str(raw.get("id") or f"filter-{index}")

        params = raw.get("parameters") or {}
        if not isinstance(params, Mapping):
            raise ScenarioConfigError(f"filter {filter_id!r}: parameters must be a mapping, got {params!r}")

        def pick(*keys: str) -> Any:
            for key in keys:
                if raw.get(key) is not None:
                    return raw[key]
                if params.get(key) is not None:
                    return params[key]
            return None

        field_text = pick("field")
        if field_text is None or str(field_text).strip() == "":
            raise ScenarioConfigError(f"filter {filter_id!r}: field is missing")
        field_text = str(field_text).strip()

        ref = parse_field_ref(field_text)
        if ref is not None:
            timeframe: Optional[Timeframe] = ref.timeframe
            period = ref.period
        else:
            timeframe = coerce_timeframe(raw.get("timeframe"))
            period = coerce_period(raw.get("period")) or 0

        operator_raw = raw.get("operator", "gt")
        operator = Operator.parse(operator_raw)
        if operator is None:
            log.warning("Filter %s uses unsupported operator %r; it will never pass", filter_id, operator_raw)

        try:
            weight = float(raw["weight"]) if raw.get("weight") is not None else 1.0
        except (TypeError, ValueError) as exc:
            raise ScenarioConfigError(f"filter {filter_id!r}: weight is not numeric") from exc

        def operand(*keys: str) -> Optional[Expression]:
            value = pick(*keys)
            if value is None:
                return None
            return parse_expression(value, timeframe, period)

        return cls(
            id=filter_id,
            field=parse_expression(field_text, timeframe, period),
            operator=operator,
            value=operand("value"),
            min_value=operand("minValue", "min_value"),
            max_value=operand("maxValue", "max_value"),
            timeframe=timeframe,
            period=period,
            weight=weight,
            is_required=_flag(raw.get("isRequired", raw.get("required", False))),
            critical=_flag(raw.get("critical", False)),
            priority=str(raw.get("priority") or "").lower(),
            type=str(raw.get("type") or determine_filter_type(field_text)),
            indicator=raw.get("indicator") or extract_indicator(field_text),
            description=str(raw.get("description") or raw.get("name") or ""),
            is_active=_flag(raw.get("isActive", True)),
        )


def _compare(op: Operator, current: float, operand: float, tolerance: float) -> bool:
    if op in (Operator.GT, Operator.ABOVE):
        return current > operand
    if op in (Operator.LT, Operator.BELOW):
        return current < operand
    if op is Operator.GTE:
        return current >= operand
    if op is Operator.LTE:
        return current <= operand
    if op is Operator.EQ:
        return abs(current - operand) < tolerance
    if op is Operator.NE:
        return abs(current - operand) >= tolerance
    return False


def _resolve(expr: Optional[Expression], data: ParsedMarketData) -> Optional[float]:
    return expr.resolve(data) if expr is not None else None


def _evaluate(f: ScenarioFilter, data: ParsedMarketData, tolerance: float) -> bool:
    op = f.operator
    if op is None:
        return False

    current = f.field.resolve(data)
    if current is None:
        return False

    if op is Operator.BETWEEN:
        lo = _resolve(f.min_value, data)
        hi = _resolve(f.max_value, data)
        if lo is None or hi is None or lo > hi:
            return False
        return lo <= current <= hi

    operand = _resolve(f.value, data)
    if operand is None:
        return False

    if op in (Operator.CROSSES_ABOVE, Operator.CROSSES_BELOW):
        previous_expr = f.field.shifted(1)
        previous = previous_expr.resolve(data) if previous_expr is not None else None
        if previous is None:
            return False
        if op is Operator.CROSSES_ABOVE:
            return previous <= operand < current
        return previous >= operand > current

    return _compare(op, current, operand, tolerance)


def unresolved_operands(scenario_filter: ScenarioFilter, data: ParsedMarketData) -> list[str]:
    """
    Operands of a filter that have no value in *data*.

    Covers the field, the operand(s) its operator compares against and, for
    crosses, the field one period earlier. A non-empty result means the
    snapshot lacks the history or timeframe the filter needs.
    """
    f = scenario_filter
    if f.operator is None:
        return []

    if f.operator is Operator.BETWEEN:
        operands = [f.field, f.min_value, f.max_value]
    else:
        operands = [f.field, f.value]
    missing = [str(e) for e in operands if e is not None and e.resolve(data) is None]

    if f.operator in (Operator.CROSSES_ABOVE, Operator.CROSSES_BELOW) and f.field.ref is not None:
        previous = f.field.shifted(1)
        if previous is None or previous.resolve(data) is None:
            missing.append(f"{f.field.text} (previous period)")
    return missing


def evaluate_filter(
    scenario_filter: ScenarioFilter,
    data: ParsedMarketData,
    tolerance: float = DEFAULT_TOLERANCE,
) -> bool:
    """
    Evaluate one filter against a snapshot.

    Any operand that cannot be resolved makes the filter fail; a missing data
    point means "condition not met". Never raises.
    """
    try:
        passed = _evaluate(scenario_filter, data, tolerance)
    except Exception:
        log.exception("Filter %s failed to evaluate; treating as not met", scenario_filter.id)
        return False

    log.debug(
        "Filter %s: %s %s -> %s",
        scenario_filter.id,
        scenario_filter.field_name,
        scenario_filter.operator.value if scenario_filter.operator else "?",
        passed,
    )
    return passed
