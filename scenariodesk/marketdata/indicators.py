import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


__all__ = [
    "BollingerBands",
    "INDICATOR_KINDS",
    "IndicatorSet",
    "finite_float",
]


# Indicator families a field reference may address on P0
INDICATOR_KINDS = ("sma", "sma_low", "ema", "rsi", "bb")


def finite_float(value: Any) -> Optional[float]:
    """Coerce *value* to a float; None when it is missing, boolean, non-numeric or not finite."""
    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


def _length_map(raw: Optional[Mapping[Any, Any]]) -> dict[int, float]:
    """Normalise ``{"89": 412.3}`` style mappings to ``{89: 412.3}``, dropping bad entries."""
    out: dict[int, float] = {}
    for key, value in (raw or {}).items():
        try:
            length = int(key)
        except (TypeError, ValueError):
            continue
        number = finite_float(value)
        if number is not None:
            out[length] = number
    return out


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    period: int = 20

    def band(self, name: str) -> Optional[float]:
        if name not in ("upper", "middle", "lower"):
            return None
        return finite_float(getattr(self, name))


@dataclass(frozen=True)
class IndicatorSet:
    """
    Indicator values attached to the current (P0) bar of a timeframe.

    Each moving-average family maps an integer length to its value, e.g.
    ``sma={89: 412.5, 200: 398.1}``.

    Attributes:
        sma: Simple moving averages of the close
        sma_low: Simple moving averages of the low
        ema: Exponential moving averages
        rsi: Relative strength index by lookback length
        bb: Bollinger bands, if computed
    """

    sma: Mapping[int, float] = field(default_factory=dict)
    sma_low: Mapping[int, float] = field(default_factory=dict)
    ema: Mapping[int, float] = field(default_factory=dict)
    rsi: Mapping[int, float] = field(default_factory=dict)
    bb: Optional[BollingerBands] = None

    def get(self, kind: str, key: int | str) -> Optional[float]:
        """
        Look up one indicator value.

        Args:
            kind: One of ``INDICATOR_KINDS``
            key: Length for moving averages/RSI, band name for ``bb``

        Returns:
            The value, or None when not present or not finite
        """
        if kind == "bb":
            return self.bb.band(str(key)) if self.bb is not None else None
        values = getattr(self, kind, None) if kind in INDICATOR_KINDS else None
        if values is None:
            return None
        try:
            return finite_float(values.get(int(key)))
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "IndicatorSet":
        """Build from the dashboard shape (``sma``, ``smaLow``, ``ema``, ``rsi``, ``bb``)."""
        payload = payload or {}
        bb_raw = payload.get("bb")
        bb = None
        if isinstance(bb_raw, Mapping):
            upper = finite_float(bb_raw.get("upper"))
            middle = finite_float(bb_raw.get("middle"))
            lower = finite_float(bb_raw.get("lower"))
            if upper is not None and middle is not None and lower is not None:
                bb = BollingerBands(
                    upper=upper,
                    middle=middle,
                    lower=lower,
                    period=int(bb_raw.get("period", 20) or 20),
                )
        return cls(
            sma=_length_map(payload.get("sma")),
            sma_low=_length_map(payload.get("smaLow", payload.get("sma_low"))),
            ema=_length_map(payload.get("ema")),
            rsi=_length_map(payload.get("rsi")),
            bb=bb,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "sma": dict(self.sma),
            "smaLow": dict(self.sma_low),
            "ema": dict(self.ema),
            "rsi": dict(self.rsi),
        }
        if self.bb is not None:
            out["bb"] = {
                "upper": self.bb.upper,
                "middle": self.bb.middle,
                "lower": self.bb.lower,
                "period": self.bb.period,
            }
        return out
