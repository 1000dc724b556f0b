"""Best-effort scenario direction inference.

A scenario whose filters match still needs a side. Nothing in the
configuration states it explicitly, so the side is guessed from naming and
structure. This is a heuristic, not an algorithm; rules are applied in a
fixed order and the first one that yields a side wins:

  1. keywords in the scenario id, then in the scenario name
  2. majority of BUY vs SELL trade zones
  3. majority of ``gt`` filters on close/open/high vs ``lt`` filters on
     close/open/low
  4. otherwise NO_BIAS

Misclassification is possible (e.g. "no-breakout-below-support" reads as
bullish because "breakout" comes first in the bullish list); the order is
pinned by tests.
"""

import logging
from typing import TYPE_CHECKING, Optional

from scenariodesk.scenarios.filters import Operator
from scenariodesk.types import NodeStatus, ZoneType

if TYPE_CHECKING:
    from scenariodesk.scenarios.config import ScenarioConfig


log = logging.getLogger(__name__)


__all__ = [
    "BEARISH_KEYWORDS",
    "BULLISH_KEYWORDS",
    "direction_signal",
    "infer_direction",
]


BULLISH_KEYWORDS = ("above", "breakout", "bounce", "oversold", "support", "buy")
BEARISH_KEYWORDS = ("below", "breakdown", "overbought", "resistance", "sell")

_BULLISH_PRICE_FIELDS = ("close", "open", "high")
_BEARISH_PRICE_FIELDS = ("close", "open", "low")


def _keyword_direction(text: str) -> Optional[NodeStatus]:
    t = (text or "").lower()
    if any(k in t for k in BULLISH_KEYWORDS):
        return NodeStatus.BULLISH
    if any(k in t for k in BEARISH_KEYWORDS):
        return NodeStatus.BEARISH
    return None


def _majority(bullish: int, bearish: int) -> Optional[NodeStatus]:
    if bullish > bearish:
        return NodeStatus.BULLISH
    if bearish > bullish:
        return NodeStatus.BEARISH
    return None


def _zone_direction(scenario: "ScenarioConfig") -> Optional[NodeStatus]:
    buys = sum(1 for z in scenario.trade_zones if z.type is ZoneType.BUY)
    sells = sum(1 for z in scenario.trade_zones if z.type is ZoneType.SELL)
    return _majority(buys, sells)


def _filter_direction(scenario: "ScenarioConfig") -> Optional[NodeStatus]:
    bullish = 0
    bearish = 0
    for f in scenario.filters:
        name = f.field_name.lower()
        if f.operator is Operator.GT and any(p in name for p in _BULLISH_PRICE_FIELDS):
            bullish += 1
        elif f.operator is Operator.LT and any(p in name for p in _BEARISH_PRICE_FIELDS):
            bearish += 1
    return _majority(bullish, bearish)


def direction_signal(scenario: "ScenarioConfig") -> tuple[NodeStatus, str]:
    """
    Infer a scenario's side and report which rule decided it.

    Returns:
        ``(status, source)`` where source is one of ``"id"``, ``"name"``,
        ``"trade_zones"``, ``"filters"`` or ``"default"``
    """
    for source, text in (("id", scenario.id), ("name", scenario.name)):
        status = _keyword_direction(text)
        if status is not None:
            return status, source

    status = _zone_direction(scenario)
    if status is not None:
        return status, "trade_zones"

    status = _filter_direction(scenario)
    if status is not None:
        return status, "filters"

    return NodeStatus.NO_BIAS, "default"


def infer_direction(scenario: "ScenarioConfig") -> NodeStatus:
    status, source = direction_signal(scenario)
    log.debug("Scenario %s direction %s (from %s)", scenario.id, status.value, source)
    return status
