"""Fluent query builder: clause accumulation and statement rendering for PostgreSQL."""

import logging
from typing import Any, List, Optional, Sequence, Tuple

from .coercion import coerce_scalar, coerce_sequence, to_literal
from .conditions import (
    Bound, BoundList, Entry, Fragment, Literal, Subquery,
    compose_order_by, compose_where, make_key, placeholder,
)
from .errors import NoTableError
from .mappings import join_types, lock_for_update as lock_clause, order_directions, quote_char, valid_operators
from .marshal import record_to_columns

logger = logging.getLogger(__name__)

Statement = Tuple[str, List[Any]]


def quote_ident(name: str) -> str:
    return f'{quote_char}{name}{quote_char}'


class QueryBuilder:
    """Accumulates chained clause calls and renders them into (sql, values).

    One instance holds the state of one statement at a time. table() resets
    everything, every other fluent method mutates the state in place and
    returns the same object. Instances are not safe to share between
    concurrent call sequences; build one per thread or task.
    """

    def __init__(self):
        self._union: List[Fragment] = []
        self._is_union_all = False
        self._union_pending = False
        self._reset()

    def _reset(self):
        """Clear every clause. Union arms survive only right after union()."""
        self._table = ''
        self._columns: List[str] = ['*']
        self._where: List[Entry] = []
        self._joins: List[str] = []
        self._order_by: List[Tuple[str, str]] = []
        self._order_by_raw = ''
        self._group_by = ''
        self._having = ''
        self._limit = 0
        self._offset = 0
        self._lock_for_update = False
        self._from = ''
        if not self._union_pending:
            self._union = []
            self._is_union_all = False
        self._union_pending = False

    # -- table and columns -------------------------------------------------

    def table(self, name: str) -> 'QueryBuilder':
        """Start a new statement against name, discarding previous clauses."""
        self._reset()
        self._table = name
        return self

    def select(self, *columns: str) -> 'QueryBuilder':
        self._columns = list(columns) or ['*']
        return self

    def add_select(self, *columns: str) -> 'QueryBuilder':
        self._columns.extend(columns)
        return self

    def select_raw(self, expr: str) -> 'QueryBuilder':
        self._columns = [expr]
        return self

    def from_(self, table: str) -> 'QueryBuilder':
        """Auxiliary FROM for multi-table UPDATE."""
        self._from = table
        return self

    # -- where ---------------------------------------------------------------

    def _push(self, connective: str, *parts: str, entry_cls=None, payload=None) -> 'QueryBuilder':
        if not self._where:
            connective = ''
        self._where.append(entry_cls(make_key(connective, *parts), payload))
        return self

    def _compare(self, connective: str, operand: str, operator: str, value: Any) -> 'QueryBuilder':
        op = operator.strip().upper()
        if op in ('IN', 'NOT IN'):
            return self._in(connective, operand, op, value)
        if op not in valid_operators:
            raise ValueError(f'Invalid operator: {operator}')
        return self._push(connective, operand, op, entry_cls=Bound, payload=coerce_scalar(value))

    def where(self, operand: str, operator: str, value: Any) -> 'QueryBuilder':
        """Add `operand operator $n`; joined with AND when other predicates exist."""
        return self._compare('AND', operand, operator, value)

    def and_where(self, operand: str, operator: str, value: Any) -> 'QueryBuilder':
        return self._compare('AND', operand, operator, value)

    def or_where(self, operand: str, operator: str, value: Any) -> 'QueryBuilder':
        return self._compare('OR', operand, operator, value)

    def _in(self, connective: str, field: str, op: str, values: Any) -> 'QueryBuilder':
        coerced = coerce_sequence(values)
        if not coerced:
            # IN () is invalid SQL; an empty list matches nothing, its negation everything
            return self._push(connective, entry_cls=Literal, payload='FALSE' if op == 'IN' else 'TRUE')
        return self._push(connective, field, op, entry_cls=BoundList, payload=tuple(coerced))

    def where_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        """Add `field IN ($n, ...)`, one placeholder per element. Raises TypeError on non-sequences."""
        return self._in('AND', field, 'IN', values)

    def where_not_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self._in('AND', field, 'NOT IN', values)

    def and_where_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self._in('AND', field, 'IN', values)

    def and_where_not_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self._in('AND', field, 'NOT IN', values)

    def or_where_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self._in('OR', field, 'IN', values)

    def or_where_not_in(self, field: str, values: Sequence[Any]) -> 'QueryBuilder':
        return self._in('OR', field, 'NOT IN', values)

    def where_null(self, field: str) -> 'QueryBuilder':
        return self._push('AND', field, entry_cls=Literal, payload='IS NULL')

    def where_not_null(self, field: str) -> 'QueryBuilder':
        return self._push('AND', field, entry_cls=Literal, payload='IS NOT NULL')

    def and_where_null(self, field: str) -> 'QueryBuilder':
        return self._push('AND', field, entry_cls=Literal, payload='IS NULL')

    def and_where_not_null(self, field: str) -> 'QueryBuilder':
        return self._push('AND', field, entry_cls=Literal, payload='IS NOT NULL')

    def or_where_null(self, field: str) -> 'QueryBuilder':
        return self._push('OR', field, entry_cls=Literal, payload='IS NULL')

    def or_where_not_null(self, field: str) -> 'QueryBuilder':
        return self._push('OR', field, entry_cls=Literal, payload='IS NOT NULL')

    def _between(self, connective: str, field: str, op: str, low: Any, high: Any) -> 'QueryBuilder':
        text = f'{op} {to_literal(low)} AND {to_literal(high)}'
        return self._push(connective, field, entry_cls=Literal, payload=text)

    def where_between(self, field: str, low: Any, high: Any) -> 'QueryBuilder':
        """Add `field BETWEEN low AND high` with both bounds inlined as literals."""
        return self._between('AND', field, 'BETWEEN', low, high)

    def where_not_between(self, field: str, low: Any, high: Any) -> 'QueryBuilder':
        return self._between('AND', field, 'NOT BETWEEN', low, high)

    def and_where_between(self, field: str, low: Any, high: Any) -> 'QueryBuilder':
        return self._between('AND', field, 'BETWEEN', low, high)

    def and_where_not_between(self, field: str, low: Any, high: Any) -> 'QueryBuilder':
        return self._between('AND', field, 'NOT BETWEEN', low, high)

    def or_where_between(self, field: str, low: Any, high: Any) -> 'QueryBuilder':
        return self._between('OR', field, 'BETWEEN', low, high)

    def or_where_not_between(self, field: str, low: Any, high: Any) -> 'QueryBuilder':
        return self._between('OR', field, 'NOT BETWEEN', low, high)

    def where_raw(self, raw: str) -> 'QueryBuilder':
        """Splice raw SQL into WHERE. The caller is responsible for its safety."""
        return self._push('AND', entry_cls=Literal, payload=raw)

    def and_where_raw(self, raw: str) -> 'QueryBuilder':
        return self._push('AND', entry_cls=Literal, payload=raw)

    def or_where_raw(self, raw: str) -> 'QueryBuilder':
        return self._push('OR', entry_cls=Literal, payload=raw)

    def _exists(self, keyword: str, nested: 'QueryBuilder') -> 'QueryBuilder':
        # captured now: later changes to nested do not leak into this statement
        sql, values = nested.build_select()
        return self._push('AND', keyword, entry_cls=Subquery, payload=Fragment(sql, tuple(values)))

    def where_exists(self, nested: 'QueryBuilder') -> 'QueryBuilder':
        """Add `EXISTS (<nested SELECT>)`, rendered from nested at call time."""
        return self._exists('EXISTS', nested)

    def where_not_exists(self, nested: 'QueryBuilder') -> 'QueryBuilder':
        return self._exists('NOT EXISTS', nested)

    # -- joins ---------------------------------------------------------------

    def _join(self, join_type: str, table: str, on: Optional[str] = None) -> 'QueryBuilder':
        fragment = f' {join_types[join_type]} {table}'
        if on:
            fragment += f' ON {on}'
        self._joins.append(fragment)
        return self

    def inner_join(self, table: str, left: str, operator: str, right: str) -> 'QueryBuilder':
        return self._join('inner', table, f'{left} {operator} {right}')

    def left_join(self, table: str, left: str, operator: str, right: str) -> 'QueryBuilder':
        return self._join('left', table, f'{left} {operator} {right}')

    def right_join(self, table: str, left: str, operator: str, right: str) -> 'QueryBuilder':
        return self._join('right', table, f'{left} {operator} {right}')

    def full_join(self, table: str, left: str, operator: str, right: str) -> 'QueryBuilder':
        return self._join('full', table, f'{left} {operator} {right}')

    def full_outer_join(self, table: str, left: str, operator: str, right: str) -> 'QueryBuilder':
        return self._join('full_outer', table, f'{left} {operator} {right}')

    def cross_join(self, table: str) -> 'QueryBuilder':
        return self._join('cross', table)

    # -- grouping, ordering, paging ---------------------------------------------

    def group_by(self, expr: str) -> 'QueryBuilder':
        self._group_by = expr
        return self

    def having(self, operand: str, operator: str, value: Any) -> 'QueryBuilder':
        self._having = f'{operand} {operator} {to_literal(value)}'
        return self

    def having_raw(self, raw: str) -> 'QueryBuilder':
        self._having = raw
        return self

    def and_having_raw(self, raw: str) -> 'QueryBuilder':
        self._having = f'{self._having} AND {raw}' if self._having else raw
        return self

    def or_having_raw(self, raw: str) -> 'QueryBuilder':
        self._having = f'{self._having} OR {raw}' if self._having else raw
        return self

    def order_by(self, column: str, direction: str = 'ASC') -> 'QueryBuilder':
        """Append an ORDER BY pair; discards any order_by_raw()."""
        direction = direction.strip().upper()
        if direction not in order_directions:
            raise ValueError(f'Invalid order direction: {direction}')
        self._order_by.append((column, direction))
        self._order_by_raw = ''
        return self

    def order_by_raw(self, expr: str) -> 'QueryBuilder':
        """Replace the whole ORDER BY with expr; discards earlier order_by() pairs."""
        self._order_by = []
        self._order_by_raw = expr
        return self

    def limit(self, n: int) -> 'QueryBuilder':
        if n < 0:
            raise ValueError(f'limit must be >= 0, got {n}')
        self._limit = n
        return self

    def offset(self, n: int) -> 'QueryBuilder':
        if n < 0:
            raise ValueError(f'offset must be >= 0, got {n}')
        self._offset = n
        return self

    def lock_for_update(self) -> 'QueryBuilder':
        self._lock_for_update = True
        return self

    # -- union ---------------------------------------------------------------

    def _capture_union(self, union_all: bool) -> 'QueryBuilder':
        self._require_table()
        sql, values = self._build_single_select(1)
        self._union.append(Fragment(sql, tuple(values)))
        logger.debug(f'Captured union arm {len(self._union)}: {sql}')
        self._is_union_all = self._is_union_all or union_all
        self._union_pending = True
        self._reset()
        self._union_pending = True
        return self

    def union(self) -> 'QueryBuilder':
        """Freeze the current SELECT as a UNION arm; the next table() starts the next arm."""
        return self._capture_union(False)

    def union_all(self) -> 'QueryBuilder':
        return self._capture_union(True)

    def consume_union(self):
        """Drop captured UNION arms once a statement using them has run."""
        self._union = []
        self._is_union_all = False
        self._union_pending = False

    # -- rendering -------------------------------------------------------------

    @property
    def table_name(self) -> str:
        return self._table

    @property
    def columns(self) -> List[str]:
        return list(self._columns)

    def _require_table(self):
        if not self._table:
            raise NoTableError()

    def build_where(self, start_at: int = 1) -> Statement:
        return compose_where(self._where, start_at)

    def build_clauses(self, start_at: int = 1) -> Statement:
        """Render every clause after FROM, numbering placeholders from start_at."""
        clauses = ''.join(self._joins)
        where_sql, values = self.build_where(start_at)
        clauses += where_sql
        if self._group_by:
            clauses += f' GROUP BY {self._group_by}'
        if self._having:
            clauses += f' HAVING {self._having}'
        clauses += compose_order_by(self._order_by, self._order_by_raw)
        if self._limit > 0:
            clauses += f' LIMIT {self._limit}'
        if self._offset > 0:
            clauses += f' OFFSET {self._offset}'
        if self._lock_for_update:
            clauses += lock_clause
        return clauses, values

    def _build_single_select(self, start_at: int) -> Statement:
        clauses, values = self.build_clauses(start_at)
        return f'SELECT {", ".join(self._columns)} FROM {quote_ident(self._table)}{clauses}', values

    def build_select(self) -> Statement:
        """Render the SELECT, stitching any captured UNION arms in front of it."""
        self._require_table()
        if not self._union:
            return self._build_single_select(1)
        glue = ' UNION ALL ' if self._is_union_all else ' UNION '
        parts, values = [], []
        for frag in self._union:
            parts.append(frag.splice(len(values)))
            values.extend(frag.values)
        sql, tail = self._build_single_select(len(values) + 1)
        parts.append(sql)
        values.extend(tail)
        return glue.join(parts), values

    def to_sql(self) -> Statement:
        return self.build_select()

    def build_aggregate(self, expr: str) -> Statement:
        """SELECT expr over the current joins/where/group, without ordering or paging."""
        self._require_table()
        sql = f'SELECT {expr} FROM {quote_ident(self._table)}' + ''.join(self._joins)
        where_sql, values = self.build_where()
        sql += where_sql
        if self._group_by:
            sql += f' GROUP BY {self._group_by}'
        if self._having:
            sql += f' HAVING {self._having}'
        return sql, values

    def build_count(self) -> Statement:
        """COUNT(*) of the current statement, counted across any captured UNION arms."""
        if not self._union:
            return self.build_aggregate('COUNT(*)')
        sql, values = self.build_select()
        return f'SELECT COUNT(*) FROM ({sql}) AS t', values

    def build_exists(self) -> Statement:
        self._require_table()
        clauses, values = self.build_clauses()
        return f'SELECT EXISTS(SELECT 1 FROM {quote_ident(self._table)}{clauses})', values

    def build_insert(self, data: Any, returning: Optional[str] = None) -> Statement:
        self._require_table()
        columns, values = record_to_columns(data)
        if not columns:
            raise ValueError('No columns provided for insert')
        bindings = ', '.join(placeholder(i) for i in range(1, len(values) + 1))
        sql = f'INSERT INTO {quote_ident(self._table)} ({", ".join(columns)}) VALUES({bindings})'
        if returning:
            sql += f' RETURNING {returning}'
        return sql, values

    def build_replace(self, data: Any, conflict: str) -> Statement:
        """INSERT ... ON CONFLICT(conflict) DO UPDATE SET every column from excluded."""
        sql, values = self.build_insert(data)
        columns, _ = record_to_columns(data)
        sets = ', '.join(f'{c} = excluded.{c}' for c in columns)
        return f'{sql} ON CONFLICT({conflict}) DO UPDATE SET {sets}', values

    def build_update(self, data: Any) -> Statement:
        """SET placeholders take $1..$N, WHERE placeholders continue from $N+1."""
        self._require_table()
        columns, values = record_to_columns(data)
        if not columns:
            raise ValueError('No columns provided for update')
        sets = ', '.join(f'{c} = {placeholder(i)}' for i, c in enumerate(columns, start=1))
        sql = f'UPDATE {quote_ident(self._table)} SET {sets}'
        if self._from:
            sql += f' FROM {self._from}'
        where_sql, where_values = self.build_where(len(columns) + 1)
        return sql + where_sql, values + where_values

    def build_delete(self) -> Statement:
        self._require_table()
        where_sql, values = self.build_where()
        return f'DELETE FROM {quote_ident(self._table)}{where_sql}', values

    def build_incr_decr(self, column: str, sign: str, on: int) -> Statement:
        self._require_table()
        if isinstance(on, bool) or not isinstance(on, int) or on < 0:
            raise ValueError(f'increment step must be a non-negative int, got {on!r}')
        where_sql, values = self.build_where()
        sql = f'UPDATE {quote_ident(self._table)} SET {column} = {column}{sign}{on}'
        return sql + where_sql, values
