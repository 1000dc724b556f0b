"""Timestamps for snapshots and period bars.

Datetimes are handled UTC-aware internally; snapshots, candles and
evaluation results carry them as ISO 8601 strings.
"""

from datetime import datetime, timezone

from scenariodesk.types import Timeframe


__all__ = [
    "now_utc_iso",
    "parse_timestamp",
    "period_timestamp",
    "to_iso",
]


def _from_epoch_ms(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def parse_timestamp(ts: str | int | float | datetime) -> datetime:
    """
    Normalise a bar or snapshot timestamp to a UTC-aware datetime.

    Feeds deliver these as datetimes, epoch milliseconds (numbers or numeric
    strings) or ISO 8601 text, sometimes with a space separator, a trailing
    ``Z`` or a ``YYYY/MM/DD`` date. Values without a zone are read as UTC.

    Raises:
        ValueError: if *ts* is blank or not a timestamp
    """
    if isinstance(ts, datetime):
        dt = ts
    elif isinstance(ts, (int, float)):
        return _from_epoch_ms(ts)
    else:
        text = (ts or "").strip()
        if not text:
            raise ValueError("Empty timestamp")
        if _is_number(text):
            return _from_epoch_ms(float(text))

        date, sep, rest = text.replace(" ", "T", 1).partition("T")
        text = date.replace("/", "-") + sep + rest
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(dt: datetime) -> str:
    """ISO 8601 text for *dt* in UTC."""
    return parse_timestamp(dt).astimezone(timezone.utc).isoformat()


def now_utc_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def period_timestamp(as_of: datetime, timeframe: Timeframe, period: int) -> str:
    """Timestamp of the bar *period* steps before *as_of* on *timeframe*."""
    return to_iso(as_of - timeframe.interval * period)
