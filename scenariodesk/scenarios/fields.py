"""Field references and derived expressions.

A field reference names one numeric cell of a snapshot as
``<timeframe>_P<n>_<field>`` (``1D_P0_open``, ``2H_P1_high``,
``1D_P0_sma_89``). Filters and trade zones may also scale a reference by a
literal (``1D_P0_sma_89 * 0.99``) or use a plain number.

Strings are parsed once into :class:`Expression` objects when configuration
is loaded; evaluation only ever works with the typed form. Anything that
cannot be parsed or looked up resolves to ``None`` ("no value"), which is a
normal outcome (e.g. not enough history), never an error.
"""

import math
import re
from dataclasses import dataclass, replace
from typing import Any, Optional

from scenariodesk.marketdata import OHLCV_FIELDS, ParsedMarketData, finite_float
from scenariodesk.types import MAX_PERIODS, Timeframe, period_label


__all__ = [
    "Expression",
    "FieldRef",
    "coerce_period",
    "coerce_timeframe",
    "parse_expression",
    "parse_field_name",
    "parse_field_ref",
    "resolve_field",
]


_FIELD = r"(open|high|low|close|volume|sma_low_\d+|sma_\d+|ema_\d+|rsi_\d+|bb_(?:upper|middle|lower))"
_FIELD_RE = re.compile(rf"^{_FIELD}$")
_REF_RE = re.compile(rf"^(1D|2H|1W|1M)_P(\d+)_{_FIELD}$")

_INDICATOR_LABELS = {
    "sma": "SMA",
    "sma_low": "SMA Low",
    "ema": "EMA",
    "rsi": "RSI",
}


def parse_field_name(name: str) -> Optional[tuple[str, int | str | None]]:
    """
    Split a field name into ``(kind, key)``.

    ``"close"`` -> ``("close", None)``, ``"sma_89"`` -> ``("sma", 89)``,
    ``"sma_low_200"`` -> ``("sma_low", 200)``, ``"bb_upper"`` -> ``("bb", "upper")``.
    Returns None for names that are not market-data fields.
    """
    if not isinstance(name, str) or not _FIELD_RE.match(name):
        return None
    if name in OHLCV_FIELDS:
        return name, None
    kind, _, key = name.rpartition("_")
    if kind == "bb":
        return kind, key
    return kind, int(key)


@dataclass(frozen=True)
class FieldRef:
    """
    Typed address of one snapshot cell.

    Attributes:
        timeframe: Timeframe of the series
        period: Period index, 0 (current) to 5
        kind: OHLCV field name or indicator family
        key: Indicator length or Bollinger band name; None for OHLCV fields
    """

    timeframe: Timeframe
    period: int
    kind: str
    key: int | str | None = None

    @property
    def name(self) -> str:
        """Field name in wire form (``open``, ``sma_89``, ``bb_upper``)."""
        if self.key is None:
            return self.kind
        return f"{self.kind}_{self.key}"

    @property
    def is_indicator(self) -> bool:
        return self.kind not in OHLCV_FIELDS

    @property
    def label(self) -> str:
        """Human readable label, e.g. ``SMA 89 (1D) (P0)``."""
        if self.kind == "bb":
            base = f"BB {str(self.key).capitalize()}"
        elif self.is_indicator:
            base = f"{_INDICATOR_LABELS.get(self.kind, self.kind.upper())} {self.key}"
        else:
            base = self.kind.capitalize()
        return f"{base} ({self.timeframe.value}) ({period_label(self.period)})"

    def shifted(self, steps: int = 1) -> Optional["FieldRef"]:
        """The same field *steps* periods further into the past, or None past P5."""
        period = self.period + steps
        if period < 0 or period >= MAX_PERIODS:
            return None
        return replace(self, period=period)

    def resolve(self, data: ParsedMarketData) -> Optional[float]:
        return data.lookup(self.timeframe, self.period, self.kind, self.key)

    def __str__(self) -> str:
        return f"{self.timeframe.value}_{period_label(self.period)}_{self.name}"


def parse_field_ref(text: Any) -> Optional[FieldRef]:
    """Parse ``<timeframe>_P<n>_<field>``; returns None for anything else."""
    if not isinstance(text, str):
        return None
    match = _REF_RE.match(text.strip())
    if not match:
        return None
    timeframe, period, name = match.groups()
    if int(period) >= MAX_PERIODS:
        return None
    kind, key = parse_field_name(name)
    return FieldRef(Timeframe(timeframe), int(period), kind, key)


@dataclass(frozen=True)
class Expression:
    """
    A field reference or literal, optionally scaled by literals.

    Value = ``base * factor / divisor`` where base is the referenced cell or
    the constant. An expression with neither a reference nor a constant is
    unresolvable and always yields None.
    """

    text: str
    ref: Optional[FieldRef] = None
    constant: Optional[float] = None
    factor: float = 1.0
    divisor: float = 1.0

    @property
    def is_resolvable(self) -> bool:
        return self.ref is not None or self.constant is not None

    def shifted(self, steps: int = 1) -> Optional["Expression"]:
        """The same expression evaluated *steps* periods earlier (references only)."""
        if self.ref is None:
            return None
        ref = self.ref.shifted(steps)
        if ref is None:
            return None
        return replace(self, ref=ref, text=f"{self.text}@-{steps}")

    def resolve(self, data: ParsedMarketData) -> Optional[float]:
        if self.ref is not None:
            base = self.ref.resolve(data)
        else:
            base = self.constant
        if base is None or self.divisor == 0:
            return None
        value = base * self.factor / self.divisor
        return value if math.isfinite(value) else None

    def __str__(self) -> str:
        return self.text


def _parse_operand(
    text: str,
    timeframe: Optional[Timeframe],
    period: Optional[int],
) -> Expression:
    number = finite_float(text)
    if number is not None:
        return Expression(text, constant=number)

    ref = parse_field_ref(text)
    if ref is not None:
        return Expression(text, ref=ref)

    # Bare field names ("close", "sma_89") are qualified by the filter's timeframe/period
    parsed = parse_field_name(text)
    if parsed is not None and timeframe is not None:
        kind, key = parsed
        return Expression(text, ref=FieldRef(timeframe, period or 0, kind, key))

    return Expression(text)


def _parse_scaled(
    text: str,
    op: str,
    timeframe: Optional[Timeframe],
    period: Optional[int],
) -> Expression:
    parts = [p.strip() for p in text.split(op)]
    if len(parts) != 2 or not all(parts):
        return Expression(text)

    left, right = parts
    literal = finite_float(right)
    if literal is None and op == "*":
        # "0.99 * 1D_P0_sma_89" reads the same as "1D_P0_sma_89 * 0.99"
        literal = finite_float(left)
        left = right
    if literal is None:
        return Expression(text)

    base = _parse_operand(left, timeframe, period)
    if not base.is_resolvable:
        return Expression(text)
    if op == "*":
        return replace(base, text=text, factor=literal)
    if literal == 0:
        return Expression(text)
    return replace(base, text=text, divisor=literal)


def parse_expression(
    value: Any,
    timeframe: Timeframe | str | None = None,
    period: int | str | None = None,
) -> Expression:
    """
    Parse a configured operand into an :class:`Expression`.

    Accepts numbers, numeric strings, ``<tf>_P<n>_<field>`` references,
    ``<expr> * <literal>`` and ``<expr> / <literal>``. Bare field names are
    resolved against *timeframe*/*period* when given. Malformed input
    (unparseable multiplier, division by zero, unknown names) produces an
    unresolvable expression.
    """
    if isinstance(value, Expression):
        return value
    if value is None or isinstance(value, bool):
        return Expression("" if value is None else str(value))
    if isinstance(value, (int, float)):
        number = finite_float(value)
        return Expression(str(value), constant=number)

    text = str(value).strip()
    tf = coerce_timeframe(timeframe)
    p = coerce_period(period)

    has_mul = "*" in text
    has_div = "/" in text
    if has_mul and has_div:
        return Expression(text)
    if has_mul:
        return _parse_scaled(text, "*", tf, p)
    if has_div:
        return _parse_scaled(text, "/", tf, p)
    return _parse_operand(text, tf, p)


def coerce_timeframe(timeframe: Timeframe | str | None) -> Optional[Timeframe]:
    """Timeframe for a code, or None when absent or unknown."""
    if timeframe is None:
        return None
    try:
        return Timeframe(timeframe)
    except ValueError:
        return None


def coerce_period(period: int | str | None) -> Optional[int]:
    """Period index for ``3``, ``"3"`` or ``"P3"``; None when absent or out of range."""
    if period is None:
        return None
    if isinstance(period, int):
        return period if 0 <= period < MAX_PERIODS else None
    text = str(period).strip().upper()
    if text.startswith("P"):
        text = text[1:]
    try:
        p = int(text)
    except ValueError:
        return None
    return p if 0 <= p < MAX_PERIODS else None


def resolve_field(expression: Any, data: ParsedMarketData) -> Optional[float]:
    """
    Resolve a reference, expression or literal against a snapshot.

    Returns:
        The numeric value, or None when it cannot be resolved. Never NaN
        or infinity.
    """
    return parse_expression(expression).resolve(data)
