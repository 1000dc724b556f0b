from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

from scenariodesk.errors import ScenarioConfigError
from scenariodesk.marketdata import ParsedMarketData, finite_float
from scenariodesk.scenarios.fields import Expression, coerce_period, coerce_timeframe, parse_expression
from scenariodesk.scenarios.filters import DEFAULT_TOLERANCE, ScenarioFilter
from scenariodesk.types import RiskLevel, Timeframe, ZoneType


log = logging.getLogger(__name__)


__all__ = [
    "EvaluatorSettings",
    "ProbabilityConfig",
    "ProbabilityModifier",
    "ResolvedTradeZone",
    "RiskConfig",
    "RiskFactor",
    "ScenarioCatalog",
    "ScenarioCategory",
    "ScenarioConfig",
    "TradeZone",
    "conditions_to_filters",
    "modifier_matches",
]


def _number(raw: Any, what: str) -> float:
    value = finite_float(raw)
    if value is None:
        raise ScenarioConfigError(f"{what} is missing or not a finite number, got {raw!r}")
    return value


def _mapping(raw: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise ScenarioConfigError(f"{what} must be a mapping, got {raw!r}")
    return raw


def _entries(raw: Any, what: str) -> Sequence[Any]:
    if raw is None:
        return ()
    if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, Sequence):
        raise ScenarioConfigError(f"{what} must be a list, got {raw!r}")
    return raw


def _risk_level(raw: Any, what: str) -> RiskLevel:
    try:
        return RiskLevel(str(raw).strip().upper())
    except ValueError as exc:
        raise ScenarioConfigError(f"{what} must be one of LOW/MEDIUM/HIGH, got {raw!r}") from exc


# ----------------------------------------------------------------------
# Trade zones
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedTradeZone:
    """A trade zone with its levels resolved against one snapshot."""
    id: str
    type: ZoneType
    entry: float
    stop: float
    target: float
    risk_pct: float
    reward_pct: float
    risk_reward: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "entry": self.entry,
            "stop": self.stop,
            "target": self.target,
            "riskPct": self.risk_pct,
            "rewardPct": self.reward_pct,
            "riskReward": self.risk_reward,
        }


@dataclass(frozen=True)
class TradeZone:
    """
    A configured entry/stop/target zone.

    Levels are expressions (``"1D_P1_high"``, ``"1D_P0_sma_89 * 0.99"``).
    """
    id: str
    type: ZoneType
    entry_price: Expression
    stop_loss: Expression
    take_profit: Expression
    timeframe: Optional[Timeframe] = None
    period: int = 0
    description: str = ""

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, index: int = 0) -> TradeZone:
        raw = _mapping(raw, f"tradeZones[{index}]")
        zone_id = str(raw.get("id") or f"zone-{index}")
        try:
            zone_type = ZoneType(str(raw.get("type", "")).strip().upper())
        except ValueError as exc:
            raise ScenarioConfigError(
                f"trade zone {zone_id!r}: type must be BUY or SELL, got {raw.get('type')!r}"
            ) from exc

        timeframe = raw.get("timeframe")
        period = raw.get("period")
        return cls(
            id=zone_id,
            type=zone_type,
            entry_price=parse_expression(raw.get("entryPrice"), timeframe, period),
            stop_loss=parse_expression(raw.get("stopLoss"), timeframe, period),
            take_profit=parse_expression(raw.get("takeProfit"), timeframe, period),
            timeframe=coerce_timeframe(timeframe),
            period=coerce_period(period) or 0,
            description=str(raw.get("description") or ""),
        )

    def resolve(self, data: ParsedMarketData) -> Optional[ResolvedTradeZone]:
        """
        Resolve entry/stop/target and compute risk and reward.

        Risk and reward are percentages of the entry price. BUY risk is
        entry - stop and reward target - entry; SELL mirrors both. The
        risk/reward ratio is 0 when risk is not positive.

        Returns:
            None if any level cannot be resolved or the entry is zero
        """
        entry = self.entry_price.resolve(data)
        stop = self.stop_loss.resolve(data)
        target = self.take_profit.resolve(data)
        if entry is None or stop is None or target is None or entry == 0:
            return None

        if self.type is ZoneType.BUY:
            risk = entry - stop
            reward = target - entry
        else:
            risk = stop - entry
            reward = entry - target

        return ResolvedTradeZone(
            id=self.id,
            type=self.type,
            entry=entry,
            stop=stop,
            target=target,
            risk_pct=risk / entry * 100,
            reward_pct=reward / entry * 100,
            risk_reward=reward / risk if risk > 0 else 0.0,
        )


# ----------------------------------------------------------------------
# Probability
# ----------------------------------------------------------------------


def modifier_matches(condition: str, filter_results: Mapping[str, bool]) -> bool:
    """
    Evaluate a probability-modifier condition against filter results.

    Grammar (terms joined with ``&&`` must all hold):
      - ``all``: every filter passed (and there is at least one)
      - ``any``: at least one filter passed
      - ``none``: no filter passed
      - ``<filter_id>``: that filter passed
      - ``!<filter_id>``: that filter exists and failed

    Unknown filter ids never match.
    """
    terms = [t.strip() for t in (condition or "").split("&&")]
    if not terms or not all(terms):
        return False

    for term in terms:
        lowered = term.lower()
        if lowered == "all":
            ok = bool(filter_results) and all(filter_results.values())
        elif lowered == "any":
            ok = any(filter_results.values())
        elif lowered == "none":
            ok = not any(filter_results.values())
        elif term.startswith("!"):
            fid = term[1:].strip()
            ok = fid in filter_results and not filter_results[fid]
        else:
            ok = filter_results.get(term, False)
        if not ok:
            return False
    return True


@dataclass(frozen=True)
class ProbabilityModifier:
    condition: str
    adjustment: float
    description: str = ""

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, index: int = 0) -> ProbabilityModifier:
        raw = _mapping(raw, f"probability.modifiers[{index}]")
        return cls(
            condition=str(raw.get("condition") or ""),
            adjustment=_number(raw.get("adjustment"), "probability modifier adjustment"),
            description=str(raw.get("description") or ""),
        )


@dataclass(frozen=True)
class ProbabilityConfig:
    base_probability: Optional[float] = None
    modifiers: tuple[ProbabilityModifier, ...] = ()
    calculation_method: str = "weighted"

    @classmethod
    def from_raw(cls, raw: Any) -> ProbabilityConfig:
        """Accept a bare number (base probability), a mapping, or None."""
        if raw is None:
            return cls()
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return cls(base_probability=_number(raw, "probability"))
        if not isinstance(raw, Mapping):
            raise ScenarioConfigError(f"probability must be a number or mapping, got {raw!r}")

        base = raw.get("baseProbability")
        return cls(
            base_probability=_number(base, "probability.baseProbability") if base is not None else None,
            modifiers=tuple(
                ProbabilityModifier.from_raw(m, index=i)
                for i, m in enumerate(_entries(raw.get("modifiers"), "probability.modifiers"))
            ),
            calculation_method=str(raw.get("calculationMethod") or "weighted"),
        )

    def compute(self, filter_results: Mapping[str, bool], *, default_base: float = 50.0) -> float:
        """Base probability plus matching modifier adjustments, clamped to [0, 100]."""
        probability = self.base_probability if self.base_probability is not None else default_base
        for modifier in self.modifiers:
            if modifier_matches(modifier.condition, filter_results):
                probability += modifier.adjustment
        return max(0.0, min(100.0, probability))


# ----------------------------------------------------------------------
# Risk
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class RiskFactor:
    name: str
    impact: RiskLevel = RiskLevel.MEDIUM
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "impact": self.impact.value, "description": self.description}


@dataclass(frozen=True)
class RiskConfig:
    level: RiskLevel = RiskLevel.MEDIUM
    factors: tuple[RiskFactor, ...] = ()
    mitigation: tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: Any, *, fallback_level: Any = None) -> RiskConfig:
        """Accept a level string, a ``{level, factors, mitigation}`` mapping, or None."""
        if raw is None:
            if fallback_level is None:
                return cls()
            return cls(level=_risk_level(fallback_level, "riskLevel"))
        if isinstance(raw, str):
            return cls(level=_risk_level(raw, "risk"))
        if not isinstance(raw, Mapping):
            raise ScenarioConfigError(f"risk must be a level or mapping, got {raw!r}")

        level = raw.get("level", fallback_level)
        factors = []
        for i, f in enumerate(_entries(raw.get("factors"), "risk.factors")):
            if isinstance(f, str):
                factors.append(RiskFactor(name=f))
                continue
            f = _mapping(f, f"risk.factors[{i}]")
            factors.append(
                RiskFactor(
                    name=str(f.get("name") or ""),
                    impact=_risk_level(f.get("impact", "MEDIUM"), "risk factor impact"),
                    description=str(f.get("description") or ""),
                )
            )
        return cls(
            level=_risk_level(level, "risk.level") if level is not None else RiskLevel.MEDIUM,
            factors=tuple(factors),
            mitigation=tuple(str(m) for m in raw.get("mitigation") or ()),
        )


# ----------------------------------------------------------------------
# Scenarios
# ----------------------------------------------------------------------


def conditions_to_filters(conditions: Iterable[Mapping[str, Any]]) -> tuple[ScenarioFilter, ...]:
    """
    Convert legacy ``conditions`` into filters.

    A one-time transform applied when configuration is loaded: ids default to
    ``filter-<index>``, the operator to ``gt``, the period to P0, and the
    filter type is inferred from the field name.
    """
    return tuple(ScenarioFilter.from_raw(c, index=i) for i, c in enumerate(conditions))


@dataclass(frozen=True)
class ScenarioConfig:
    """
    A named bundle of filters plus trade-zone, probability and risk metadata.

    Attributes:
        id: Scenario identifier (e.g. 'open-above-yesterday-high')
        name: Display name
        filters: Conditions evaluated against each snapshot
        trade_zones: Entry/stop/target zones, also a direction hint
        probability: Base probability and modifiers
        risk: Static risk level, factors and mitigation
        required_indicators: Field references reported with each evaluation
    """
    id: str
    name: str = ""
    description: str = ""
    category: Optional[str] = None
    filters: tuple[ScenarioFilter, ...] = ()
    trade_zones: tuple[TradeZone, ...] = ()
    probability: ProbabilityConfig = field(default_factory=ProbabilityConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    required_indicators: tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any], *, category: Optional[str] = None) -> ScenarioConfig:
        """Validate and construct from a raw scenario mapping.

        ``filters`` are used when present, otherwise legacy ``conditions``
        are converted.

        Raises ``ScenarioConfigError`` with a clear message on bad/missing
        values instead of letting ``KeyError`` or ``TypeError`` propagate.
        """
        raw = _mapping(raw, "scenario")
        scenario_id = raw.get("id")
        if not scenario_id:
            raise ScenarioConfigError("scenario id is missing")
        scenario_id = str(scenario_id)

        try:
            if raw.get("filters") is not None:
                filters = tuple(
                    ScenarioFilter.from_raw(_mapping(f, f"filters[{i}]"), index=i)
                    for i, f in enumerate(_entries(raw["filters"], "filters"))
                )
            else:
                conditions = _entries(raw.get("conditions"), "conditions")
                filters = conditions_to_filters(
                    _mapping(c, f"conditions[{i}]") for i, c in enumerate(conditions)
                )

            seen: set[str] = set()
            for f in filters:
                if f.id in seen:
                    raise ScenarioConfigError(f"duplicate filter id {f.id!r}")
                seen.add(f.id)

            zones = tuple(
                TradeZone.from_raw(z, index=i)
                for i, z in enumerate(_entries(raw.get("tradeZones"), "tradeZones"))
            )
            probability = ProbabilityConfig.from_raw(raw.get("probability"))
            risk = RiskConfig.from_raw(raw.get("risk"), fallback_level=raw.get("riskLevel"))
        except ScenarioConfigError as exc:
            raise ScenarioConfigError(f"scenario {scenario_id!r}: {exc}") from exc

        return cls(
            id=scenario_id,
            name=str(raw.get("name") or scenario_id),
            description=str(raw.get("description") or ""),
            category=raw.get("category") or category,
            filters=filters,
            trade_zones=zones,
            probability=probability,
            risk=risk,
            required_indicators=tuple(str(r) for r in raw.get("requiredIndicators") or ()),
        )

    @property
    def active_filters(self) -> tuple[ScenarioFilter, ...]:
        return tuple(f for f in self.filters if f.is_active)


@dataclass(frozen=True)
class ScenarioCategory:
    id: str
    name: str = ""
    description: str = ""
    scenarios: tuple[ScenarioConfig, ...] = ()

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> ScenarioCategory:
        raw = _mapping(raw, "scenario category")
        category_id = str(raw.get("id") or "default")
        return cls(
            id=category_id,
            name=str(raw.get("name") or category_id),
            description=str(raw.get("description") or ""),
            scenarios=tuple(
                ScenarioConfig.from_raw(s, category=category_id) for s in raw.get("scenarios") or ()
            ),
        )


class ScenarioCatalog:
    """
    Read-only set of scenario configurations, grouped by category.

    Built once from static configuration and passed to the evaluator, so
    tests can supply synthetic scenario sets.

    Example:
        catalog = ScenarioCatalog.from_raw([day_trading_config])
        scenario = catalog.get("open-above-yesterday-high")
    """

    def __init__(self, categories: Sequence[ScenarioCategory] = ()):
        self._categories: dict[str, ScenarioCategory] = {}
        self._scenarios: dict[str, ScenarioConfig] = {}

        for category in categories:
            if category.id in self._categories:
                raise ScenarioConfigError(f"duplicate category id {category.id!r}")
            self._categories[category.id] = category
            for scenario in category.scenarios:
                if scenario.id in self._scenarios:
                    raise ScenarioConfigError(f"duplicate scenario id {scenario.id!r}")
                self._scenarios[scenario.id] = scenario

        log.debug(
            "Scenario catalog loaded: %d categories, %d scenarios",
            len(self._categories),
            len(self._scenarios),
        )

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> ScenarioCatalog:
        """Build from one category mapping or a list of them."""
        if isinstance(raw, Mapping):
            raw = [raw]
        return cls([ScenarioCategory.from_raw(c) for c in raw])

    @classmethod
    def of(cls, *scenarios: ScenarioConfig, category_id: str = "default") -> ScenarioCatalog:
        """Wrap loose scenarios in a single category."""
        return cls([ScenarioCategory(id=category_id, name=category_id, scenarios=tuple(scenarios))])

    def get(self, scenario_id: str) -> Optional[ScenarioConfig]:
        return self._scenarios.get(scenario_id)

    def category(self, category_id: str) -> Optional[ScenarioCategory]:
        return self._categories.get(category_id)

    def categories(self) -> list[ScenarioCategory]:
        return list(self._categories.values())

    def scenarios(self, category_id: Optional[str] = None) -> list[ScenarioConfig]:
        if category_id is None:
            return list(self._scenarios.values())
        category = self._categories.get(category_id)
        return list(category.scenarios) if category is not None else []

    def required_indicators(self, scenario_id: str) -> list[str]:
        scenario = self.get(scenario_id)
        return list(scenario.required_indicators) if scenario is not None else []

    def __contains__(self, scenario_id: object) -> bool:
        return scenario_id in self._scenarios

    def __iter__(self) -> Iterator[ScenarioConfig]:
        return iter(self._scenarios.values())

    def __len__(self) -> int:
        return len(self._scenarios)

    def __repr__(self) -> str:
        return f"ScenarioCatalog(categories={len(self._categories)}, scenarios={len(self)})"


# ----------------------------------------------------------------------
# Evaluator settings
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class EvaluatorSettings:
    """Tunables of the scenario evaluator."""
    equality_tolerance: float = DEFAULT_TOLERANCE
    partial_match_threshold: float = 0.5
    default_base_probability: float = 50.0
    default_risk_score: float = 50.0

    def __post_init__(self) -> None:
        if self.equality_tolerance < 0:
            raise ScenarioConfigError("equality_tolerance must be >= 0")
        if not 0 < self.partial_match_threshold <= 1:
            raise ScenarioConfigError("partial_match_threshold must be in (0, 1]")
        for name in ("default_base_probability", "default_risk_score"):
            if not 0 <= getattr(self, name) <= 100:
                raise ScenarioConfigError(f"{name} must be within [0, 100]")

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> EvaluatorSettings:
        raw = raw or {}
        defaults = cls()
        return cls(
            equality_tolerance=_number(
                raw.get("equality_tolerance", defaults.equality_tolerance), "equality_tolerance"
            ),
            partial_match_threshold=_number(
                raw.get("partial_match_threshold", defaults.partial_match_threshold),
                "partial_match_threshold",
            ),
            default_base_probability=_number(
                raw.get("default_base_probability", defaults.default_base_probability),
                "default_base_probability",
            ),
            default_risk_score=_number(
                raw.get("default_risk_score", defaults.default_risk_score), "default_risk_score"
            ),
        )
