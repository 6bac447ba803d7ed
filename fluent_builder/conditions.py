"""Binding entries for WHERE clauses and the placeholder-numbering composer."""

import re
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple, Union

from .mappings import placeholder_prefix

_rx_placeholder = re.compile(r"'(?:[^']|'')*'|\$(\d+)")


def renumber(sql: str, offset: int) -> str:
    """Shift every $n placeholder in sql by offset, leaving quoted strings alone."""
    if not offset:
        return sql

    def repl(m: re.Match) -> str:
        if m.group(1) is None:
            return m.group(0)
        return f'{placeholder_prefix}{int(m.group(1)) + offset}'
    return _rx_placeholder.sub(repl, sql)


def placeholder(i: int) -> str:
    return f'{placeholder_prefix}{i}'


@dataclass(frozen=True)
class Fragment:
    """Pre-rendered SQL numbered from $1, with the values its placeholders bind."""
    sql: str
    values: Tuple[Any, ...] = ()

    def splice(self, offset: int) -> str:
        return renumber(self.sql, offset)


@dataclass(frozen=True)
class Bound:
    """`<key> $n` with one bound value."""
    key: str
    value: Any


@dataclass(frozen=True)
class BoundList:
    """`<key> ($n, $n+1, ...)` with one placeholder per element."""
    key: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Literal:
    """`<key> <text>` spliced verbatim, no placeholders."""
    key: str
    text: str


@dataclass(frozen=True)
class Subquery:
    """`<key> (<fragment>)` where the fragment's placeholders are renumbered in place."""
    key: str
    fragment: Fragment


Entry = Union[Bound, BoundList, Literal, Subquery]


def make_key(connective: str, *parts: str) -> str:
    """Join connective, operand and operator into the stored entry key."""
    return ' '.join(p for p in (connective, *parts) if p)


def _join(key: str, payload: str) -> str:
    return f'{key} {payload}' if key else payload


def compose_where(entries: Sequence[Entry], start_at: int = 1) -> Tuple[str, List[Any]]:
    """Render entries into ' WHERE ...' and the values in placeholder order."""
    if not entries:
        return '', []
    i = start_at
    parts = []
    values: List[Any] = []
    for e in entries:
        if isinstance(e, Bound):
            parts.append(_join(e.key, placeholder(i)))
            values.append(e.value)
            i += 1
        elif isinstance(e, BoundList):
            phs = [placeholder(i + k) for k in range(len(e.values))]
            parts.append(_join(e.key, f'({", ".join(phs)})'))
            values.extend(e.values)
            i += len(e.values)
        elif isinstance(e, Literal):
            parts.append(_join(e.key, e.text))
        elif isinstance(e, Subquery):
            parts.append(_join(e.key, f'({e.fragment.splice(i - 1)})'))
            values.extend(e.fragment.values)
            i += len(e.fragment.values)
        else:
            raise TypeError(f'Unsupported binding entry: {type(e).__name__}')
    return ' WHERE ' + ' '.join(parts), values


def compose_order_by(order_by: Sequence[Tuple[str, str]], order_by_raw: str = '') -> str:
    """Structured pairs in call order, else the raw expression."""
    if order_by:
        return ' ORDER BY ' + ', '.join(f'{col} {direction}' for col, direction in order_by)
    if order_by_raw:
        return ' ORDER BY ' + order_by_raw
    return ''
