"""Terminal operations: run the builder's rendered statements through a driver."""

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from fluent_builder import (
    NoMoreRows, NoRowsFound, QueryBuilder, Table, compose_alter, compose_create,
    records_to_rows, row_to_record, validate_fields,
)
from fluent_builder.mappings import default_schema

logger = logging.getLogger(__name__)


class Executor:
    """Mixin providing reads, writes, aggregates and schema operations.

    Subclasses supply _state(), the builder holding the current statement,
    and sql(), the driver the statement runs on.
    """

    def _state(self) -> QueryBuilder:
        raise NotImplementedError

    def sql(self):
        raise NotImplementedError

    # -- reads ---------------------------------------------------------------

    def _select(self, consume: bool = True) -> Tuple[str, List[Any]]:
        b = self._state()
        sql, values = b.build_select()
        if consume:
            b.consume_union()
        return sql, values

    def _fetch(self, sql: str, values: Sequence[Any]) -> Tuple[List[str], List[Tuple[Any, ...]]]:
        with self.sql().query(sql, values) as cursor:
            return cursor.columns, cursor.fetch_all()

    def _records(self, cls: type, consume: bool = True) -> List[Any]:
        columns, rows = self._fetch(*self._select(consume))
        resolved = validate_fields(cls, columns)
        return [row_to_record(cls, columns, row, resolved) for row in rows]

    def get(self) -> List[Dict[str, Any]]:
        """Run the SELECT and return one dict per row."""
        columns, rows = self._fetch(*self._select())
        return [dict(zip(columns, row)) for row in rows]

    def get_df(self) -> pd.DataFrame:
        """Run the SELECT into a DataFrame, keeping column order even with no rows."""
        columns, rows = self._fetch(*self._select())
        return pd.DataFrame.from_records(rows, columns=columns)

    def get_structs(self, cls: type) -> List[Any]:
        return self._records(cls)

    def _first(self, cls: type) -> Tuple[str, Optional[Any]]:
        self._state().limit(1)
        sql, values = self._select()
        columns, rows = self._fetch(sql, values)
        if not rows:
            return sql, None
        return sql, row_to_record(cls, columns, rows[0])

    def scan_struct(self, cls: type) -> Optional[Any]:
        """First row as a cls instance, or None when nothing matches."""
        return self._first(cls)[1]

    def first(self, cls: type) -> Any:
        """First row as a cls instance; raises NoRowsFound when nothing matches."""
        sql, record = self._first(cls)
        if record is None:
            raise NoRowsFound(sql)
        return record

    def find(self, cls: type, id: Any) -> Any:
        self._state().where('id', '=', id)
        return self.first(cls)

    def value(self, column: str) -> Any:
        """Single column of the first row; raises NoRowsFound when nothing matches."""
        b = self._state()
        b.select(column).limit(1)
        sql, values = self._select()
        _, rows = self._fetch(sql, values)
        if not rows:
            raise NoRowsFound(sql)
        return rows[0][0]

    def pluck(self, column: str) -> List[Any]:
        return [row[column] for row in self.get()]

    def pluck_map(self, key: str, value: str) -> List[Dict[Any, Any]]:
        return [{row[key]: row[value]} for row in self.get()]

    def exists(self) -> bool:
        sql, values = self._state().build_exists()
        return bool(self.sql().query_scalar(sql, values))

    def doesnt_exist(self) -> bool:
        return not self.exists()

    # -- aggregates ------------------------------------------------------------

    def _aggregate(self, expr: str) -> Any:
        sql, values = self._state().build_aggregate(expr)
        return self.sql().query_scalar(sql, values)

    def count(self) -> int:
        """Row count of the current statement, across any captured UNION arms."""
        return int(self.sql().query_scalar(*self._state().build_count()) or 0)

    def _numeric(self, expr: str) -> Optional[float]:
        result = self._aggregate(expr)
        return float(result) if result is not None else None

    def avg(self, column: str) -> Optional[float]:
        return self._numeric(f'AVG({column})')

    def min(self, column: str) -> Optional[float]:
        return self._numeric(f'MIN({column})')

    def max(self, column: str) -> Optional[float]:
        return self._numeric(f'MAX({column})')

    def sum(self, column: str) -> Optional[float]:
        return self._numeric(f'SUM({column})')

    # -- writes ----------------------------------------------------------------

    def insert(self, data: Any) -> int:
        """Insert one dataclass instance or mapping."""
        return self.sql().execute(*self._state().build_insert(data))

    def insert_get_id(self, data: Any) -> Any:
        """Insert one record and return its generated id."""
        return self.sql().query_scalar(*self._state().build_insert(data, returning='id'))

    def insert_batch(self, records: Sequence[Any]) -> int:
        """Bulk-load records with COPY; columns come from the first record."""
        b = self._state()
        b._require_table()
        columns, rows = records_to_rows(records)
        inserter = self.sql().prepare_bulk_insert(b.table_name, columns)
        try:
            for row in rows:
                inserter.add_row(*row)
            loaded = inserter.finish()
        except Exception:
            inserter.abort()
            raise
        logger.info(f'Inserted {loaded} rows into {b.table_name}')
        return loaded

    def update(self, data: Any) -> int:
        return self.sql().execute(*self._state().build_update(data))

    def delete(self) -> int:
        return self.sql().execute(*self._state().build_delete())

    def replace(self, data: Any, conflict: str) -> int:
        """Insert, or update every column when conflict is violated."""
        return self.sql().execute(*self._state().build_replace(data, conflict))

    def increment(self, column: str, on: int) -> int:
        return self.sql().execute(*self._state().build_incr_decr(column, '+', on))

    def decrement(self, column: str, on: int) -> int:
        return self.sql().execute(*self._state().build_incr_decr(column, '-', on))

    # -- iteration -------------------------------------------------------------

    def each_to_struct(self, fn: Callable[[Any], None]):
        """Call fn(cursor) repeatedly until it raises NoMoreRows.

        fn pulls rows with next(cursor, cls); any other exception propagates.
        """
        with self.sql().query(*self._select()) as cursor:
            while True:
                try:
                    fn(cursor)
                except NoMoreRows:
                    return

    def next(self, cursor, cls: type) -> Any:
        """Advance cursor and marshal the row into cls; raises NoMoreRows at the end."""
        resolved = validate_fields(cls, cursor.columns)
        if not cursor.next():
            raise NoMoreRows()
        return row_to_record(cls, cursor.columns, cursor.scan(), resolved)

    def chunk(self, cls: type, size: int, fn: Callable[[List[Any]], Optional[bool]]):
        """Feed fn successive windows of at most size records.

        Stops early when fn returns False. Each window is fully read before fn runs.
        Captured UNION arms apply to every window and are consumed on return.
        """
        if size <= 0:
            raise ValueError(f'chunk size must be > 0, got {size}')
        b = self._state()
        try:
            total = self.count()
            if total == 0:
                return
            if total <= size:
                fn(self._records(cls, consume=False))
                return
            for i in range(math.ceil(total / size)):
                b.offset(i * size).limit(size)
                records = self._records(cls, consume=False)
                if not records:
                    return
                if fn(records) is False:
                    return
        finally:
            b.consume_union()

    # -- schema ----------------------------------------------------------------

    def has_table(self, schema: str, table: str) -> bool:
        sql = ('SELECT EXISTS(SELECT 1 FROM information_schema.tables '
               'WHERE table_schema = $1 AND table_name = $2)')
        return bool(self.sql().query_scalar(sql, [schema, table]))

    def has_columns(self, schema: str, table: str, *columns: str) -> bool:
        """True when every named column exists on schema.table."""
        wanted = sorted(set(columns))
        if not wanted:
            return True
        phs = ', '.join(f'${i}' for i in range(3, len(wanted) + 3))
        sql = ('SELECT COUNT(*) FROM information_schema.columns '
               f'WHERE table_schema = $1 AND table_name = $2 AND column_name IN ({phs})')
        return int(self.sql().query_scalar(sql, [schema, table, *wanted]) or 0) == len(wanted)

    def schema(self, table: str, fn: Callable[[Table], None]) -> List[str]:
        """Create table from fn's definition, or alter it when it already exists."""
        t = Table(table)
        fn(t)
        if self.has_table(default_schema, table):
            statements = compose_alter(t, lambda col: self.has_columns(default_schema, table, col))
        else:
            statements = compose_create(t)
        for stmt in statements:
            self.sql().execute(stmt)
        return statements

    def drop(self, tables: Any) -> int:
        return self.sql().execute(f'DROP TABLE {_table_list(tables)}')

    def drop_if_exists(self, tables: Any) -> int:
        return self.sql().execute(f'DROP TABLE IF EXISTS {_table_list(tables)}')

    def truncate(self, tables: Any) -> int:
        return self.sql().execute(f'TRUNCATE {_table_list(tables)}')

    def rename(self, old: str, new: str) -> int:
        return self.sql().execute(f'ALTER TABLE {old} RENAME TO {new}')


def _table_list(tables: Any) -> str:
    if isinstance(tables, str):
        return tables
    return ', '.join(tables)
