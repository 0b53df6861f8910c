from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _identity(value: Any) -> Any:
    return value


@runtime_checkable
class WireConverter(Protocol):
    def to_wire(self, value: Any) -> Any: ...

    def from_wire(self, value: Any) -> Any: ...


@dataclass(frozen=True)
class Converter:
    to_wire: Callable[[Any], Any] = _identity
    from_wire: Callable[[Any], Any] = _identity


type Process = Callable[[Any], Any] | WireConverter | Sequence[Callable[[Any], Any] | WireConverter]


def as_converters(process: Process | None) -> tuple[Converter, ...]:
    if process is None:
        return ()
    if isinstance(process, Converter):
        return (process,)
    if isinstance(process, WireConverter):
        return (Converter(to_wire=process.to_wire, from_wire=process.from_wire),)
    if callable(process):
        return (Converter(to_wire=process),)
    if isinstance(process, Sequence) and not isinstance(process, (str, bytes)):
        out: list[Converter] = []
        for item in process:
            out.extend(as_converters(item))
        return tuple(out)
    raise TypeError(f"unsupported process: {type(process).__name__}")


def parse_date(value: Any) -> datetime:
    """Interprets ``value`` as an aware datetime.

    Accepts aware datetimes, dates (midnight UTC), ISO-8601 strings (UTC when
    no offset is given) and epoch milliseconds, fractional ones included.
    Naive datetimes are rejected: the wire formats carry an instant, so a
    naive value could not be read back unchanged. Raises ValueError or
    TypeError otherwise.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("naive datetime has no timezone")
        return value
    if isinstance(value, date):
        return datetime.combine(value, time(), tzinfo=UTC)
    if isinstance(value, bool):
        raise TypeError("bool is not a date")
    if isinstance(value, Decimal):
        return EPOCH + timedelta(microseconds=int((value * 1000).to_integral_value()))
    if isinstance(value, (int, float)):
        return EPOCH + timedelta(milliseconds=value)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise TypeError(f"unsupported date value: {type(value).__name__}")


def is_valid_date(value: Any) -> bool:
    try:
        parse_date(value)
    except (TypeError, ValueError, OverflowError):
        return False
    return True


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def _to_iso(value: Any) -> Any:
    if _is_empty(value):
        return None
    return parse_date(value).astimezone(UTC).isoformat().replace("+00:00", "Z")


def _to_timestamp(value: Any) -> Any:
    if _is_empty(value):
        return None
    micros = (parse_date(value) - EPOCH) // timedelta(microseconds=1)
    if micros % 1000 == 0:
        return micros // 1000
    return Decimal(micros) / 1000


def _from_wire_date(value: Any) -> Any:
    if _is_empty(value):
        return None
    return parse_date(value)


iso_date_converter = Converter(to_wire=_to_iso, from_wire=_from_wire_date)
timestamp_converter = Converter(to_wire=_to_timestamp, from_wire=_from_wire_date)

DATE_CONVERTERS: dict[str, Converter] = {
    "ISO-8601": iso_date_converter,
    "Timestamp": timestamp_converter,
}
