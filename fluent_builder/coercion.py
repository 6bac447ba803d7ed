"""Value coercion: bound parameter values and inline SQL literals."""

import datetime
import decimal
import math
import uuid
from collections.abc import Sequence
from typing import Any, List

scalar_types = (
    str, bool, int, float, decimal.Decimal,
    datetime.datetime, datetime.date, datetime.time, datetime.timedelta,
    uuid.UUID, bytes, bytearray, memoryview,
)


def coerce_scalar(value: Any) -> Any:
    """Return value as a driver-bindable parameter, or raise TypeError."""
    if value is None or isinstance(value, scalar_types):
        return value
    raise TypeError(f'Unsupported value type for binding: {type(value).__name__}')


def is_sequence(value: Any) -> bool:
    """True for ordered collections usable as an IN list."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray, memoryview))


def coerce_sequence(values: Any) -> List[Any]:
    """Coerce every element of an IN list, failing fast on non-sequences."""
    if not is_sequence(values):
        raise TypeError(f'Expected a list or tuple of values, got {type(values).__name__}')
    return [coerce_scalar(v) for v in values]


def quote_string(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def to_literal(value: Any) -> str:
    """Render value as inline SQL text."""
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        return 'TRUE' if value else 'FALSE'
    if isinstance(value, decimal.Decimal) and not value.is_finite():
        return quote_string(str(value)) + '::numeric'
    if isinstance(value, (int, decimal.Decimal)):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "'NaN'::float8"
        if math.isinf(value):
            return "'Infinity'::float8" if value > 0 else "'-Infinity'::float8"
        return repr(value)
    if isinstance(value, str):
        return quote_string(value)
    if isinstance(value, (datetime.date, datetime.time)):
        return quote_string(value.isoformat())
    if isinstance(value, uuid.UUID):
        return quote_string(str(value))
    raise TypeError(f'Unsupported value type for literal: {type(value).__name__}')
