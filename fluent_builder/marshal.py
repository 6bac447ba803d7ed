"""Mapping between dataclass records and database rows.

Destination records are dataclasses. A field's column name defaults to the
lower-cased field name and can be overridden with a ``db`` metadata tag::

    @dataclass
    class User:
        id: int
        full_name: str = field(metadata={'db': 'name'})
        email: Optional[str] = None

Reading a row, each result column is matched against the record's fields in a
fixed order: a field named exactly like the column, then a field named like the
upper-cased column (``ID``, ``URL``), then a field whose ``db`` tag equals the
column, then an untagged field whose lower-cased name equals the column
(``userId`` read back as ``userid``). A column that matches nothing raises
FieldNotFoundError.
"""

import dataclasses
import decimal
import functools
import types
import typing
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .coercion import coerce_scalar
from .errors import FieldNotFoundError

_convertible = (int, float, str, bool, decimal.Decimal)


@dataclasses.dataclass(frozen=True)
class FieldSpec:
    """How one dataclass field maps to a column."""
    name: str
    column: str
    tag: Optional[str]
    target: Optional[type]
    optional: bool
    init: bool


def _unwrap(annotation: Any) -> Tuple[Optional[type], bool]:
    """Return (scalar type, is Optional) for a field annotation."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        optional = len(args) < len(typing.get_args(annotation))
        if len(args) == 1 and isinstance(args[0], type):
            return args[0], optional
        return None, optional
    if isinstance(annotation, type):
        return annotation, False
    return None, False


@functools.lru_cache(maxsize=None)
def describe(cls: type) -> Tuple[FieldSpec, ...]:
    """Build the field descriptor table for a dataclass type, once per type."""
    if not (isinstance(cls, type) and dataclasses.is_dataclass(cls)):
        raise TypeError(f'Expected a dataclass type, got {cls!r}')
    hints = typing.get_type_hints(cls)
    specs = []
    for f in dataclasses.fields(cls):
        tag = f.metadata.get('db') or None
        target, optional = _unwrap(hints.get(f.name, f.type))
        specs.append(FieldSpec(
            name=f.name,
            column=tag or f.name.lower(),
            tag=tag,
            target=target,
            optional=optional,
            init=f.init,
        ))
    return tuple(specs)


def match_field(cls: type, column: str) -> Optional[FieldSpec]:
    """Find the field receiving column: exact name, upper-cased name, db tag, then lower-cased name."""
    specs = describe(cls)
    by_name = {s.name: s for s in specs}
    if column in by_name:
        return by_name[column]
    if column.upper() in by_name:
        return by_name[column.upper()]
    for s in specs:
        if s.tag == column:
            return s
    # unquoted identifiers come back folded to lower case, as record_to_columns writes them
    for s in specs:
        if s.tag is None and s.name.lower() == column:
            return s
    return None


def validate_fields(cls: type, columns: Sequence[str]) -> Dict[str, FieldSpec]:
    """Resolve every column to a field or raise FieldNotFoundError."""
    resolved = {}
    for col in columns:
        spec = match_field(cls, col)
        if spec is None:
            raise FieldNotFoundError(col, cls)
        resolved[col] = spec
    return resolved


def convert(spec: FieldSpec, value: Any) -> Any:
    """Widen or narrow a scanned value to the field's declared scalar type."""
    if value is None:
        return None
    target = spec.target
    if target is None or target not in _convertible:
        return value
    if isinstance(value, target) and not (target is int and isinstance(value, bool)):
        return value
    if target is str and isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode()
    return target(value)


def row_to_record(cls: type, columns: Sequence[str], row: Sequence[Any],
                  resolved: Optional[Dict[str, FieldSpec]] = None) -> Any:
    """Build an instance of cls from one result row."""
    resolved = resolved or validate_fields(cls, columns)
    kwargs = {}
    for col, value in zip(columns, row):
        spec = resolved[col]
        if spec.init:
            kwargs[spec.name] = convert(spec, value)
    for f in dataclasses.fields(cls):
        if not f.init or f.name in kwargs:
            continue
        if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = None
    return cls(**kwargs)


def record_to_columns(data: Any) -> Tuple[List[str], List[Any]]:
    """Split a dataclass instance or a mapping into column names and bindable values."""
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        columns, values = [], []
        for spec in describe(type(data)):
            columns.append(spec.column)
            values.append(coerce_scalar(getattr(data, spec.name)))
        return columns, values
    if isinstance(data, Mapping):
        return list(data.keys()), [coerce_scalar(v) for v in data.values()]
    raise TypeError(f'Expected a dataclass instance or a mapping, got {type(data).__name__}')


def records_to_rows(records: Sequence[Any]) -> Tuple[List[str], List[Tuple[Any, ...]]]:
    """Column list from the first record, then one tuple per record in that order."""
    if not records:
        raise ValueError('No rows provided for insert')
    columns, first = record_to_columns(records[0])
    rows = [tuple(first)]
    for idx, rec in enumerate(records[1:], start=1):
        if isinstance(rec, Mapping):
            missing = [c for c in columns if c not in rec]
            if missing:
                raise ValueError(f'Row {idx} is missing columns: {missing}')
            rows.append(tuple(coerce_scalar(rec[c]) for c in columns))
        else:
            cols, vals = record_to_columns(rec)
            if cols != columns:
                raise ValueError(f'Row {idx} has columns {cols}, expected {columns}')
            rows.append(tuple(vals))
    return columns, rows
