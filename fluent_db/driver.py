"""SQLAlchemy-backed driver: statement execution, row cursors, transactions and COPY bulk loads."""

import io
import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from fluent_builder import quote_ident
from .adapt_sql import adapt_sql

logger = logging.getLogger(__name__)

_copy_escapes = str.maketrans({'\\': '\\\\', '\n': '\\n', '\r': '\\r', '\t': '\\t'})


def encode_copy_value(value: Any) -> str:
    """One field of a COPY text-format row."""
    if value is None:
        return '\\N'
    if isinstance(value, bool):
        return 't' if value else 'f'
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = '\\x' + bytes(value).hex()
    elif isinstance(value, (datetime, date, time)):
        raw = value.isoformat()
    else:
        raw = str(value)
    return raw.translate(_copy_escapes)


def encode_copy_row(values: Sequence[Any]) -> str:
    return '\t'.join(encode_copy_value(v) for v in values) + '\n'


class RowCursor:
    """Forward-only cursor over one query result.

    next() advances, scan() returns the current row. The cursor closes itself
    when exhausted; on_close releases the owning connection, if any.
    """

    def __init__(self, result, on_close: Optional[Callable[[], None]] = None):
        self._result = result
        self._on_close = on_close
        self._row: Optional[Tuple[Any, ...]] = None
        self.columns: List[str] = list(result.keys())
        self.closed = False

    def next(self) -> bool:
        if self.closed:
            return False
        row = self._result.fetchone()
        if row is None:
            self.close()
            return False
        self._row = tuple(row)
        return True

    def scan(self) -> Tuple[Any, ...]:
        if self._row is None:
            raise RuntimeError('scan() called before a successful next()')
        return self._row

    def fetch_all(self) -> List[Tuple[Any, ...]]:
        return list(self)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self._result.close()
        finally:
            if self._on_close is not None:
                self._on_close()

    def __iter__(self) -> Iterator[Tuple[Any, ...]]:
        while self.next():
            yield self.scan()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


class BulkInserter:
    """Buffers rows in COPY text format and streams them with copy_expert on finish()."""

    def __init__(self, table: str, columns: Sequence[str], connect: Callable, debug: bool = False):
        self.table = table
        self.columns = list(columns)
        self._connect = connect
        self._debug = debug
        self._buf = io.StringIO()
        self.count = 0

    @property
    def copy_sql(self) -> str:
        return f'COPY {quote_ident(self.table)} ({", ".join(self.columns)}) FROM STDIN'

    def add_row(self, *values: Any):
        if len(values) != len(self.columns):
            raise ValueError(f'Expected {len(self.columns)} values, got {len(values)}')
        self._buf.write(encode_copy_row(values))
        self.count += 1

    def finish(self) -> int:
        """Flush every buffered row in one COPY and return the number loaded."""
        if self._debug:
            logger.debug(f'SQL: {self.copy_sql} | Params: {self.count} rows')
        self._buf.seek(0)
        with self._connect() as conn:
            cur = conn.connection.cursor()
            try:
                cur.copy_expert(self.copy_sql, self._buf)
            finally:
                cur.close()
        logger.debug(f'Copied {self.count} rows into {self.table}')
        return self.count

    def abort(self):
        self._buf = io.StringIO()
        self.count = 0


class _Runner:
    """Shared execution paths over a connection supplied by _conn()."""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def _log(self, sql: str, params: Any):
        """Log SQL and params if debug enabled."""
        if self.debug:
            logger.debug(f'SQL: {sql} | Params: {params}')

    @contextmanager
    def _conn(self) -> Iterator[Connection]:
        raise NotImplementedError

    def execute(self, sql: str, values: Sequence[Any] = ()) -> int:
        """Run a statement and return the affected row count."""
        self._log(sql, values)
        query, params = adapt_sql(sql, values)
        with self._conn() as conn:
            return conn.execute(text(query), params).rowcount

    def query_scalar(self, sql: str, values: Sequence[Any] = ()) -> Any:
        """First column of the first row, or None."""
        self._log(sql, values)
        query, params = adapt_sql(sql, values)
        with self._conn() as conn:
            return conn.execute(text(query), params).scalar()

    def prepare_bulk_insert(self, table: str, columns: Sequence[str]) -> BulkInserter:
        return BulkInserter(table, columns, self._conn, self.debug)


class Driver(_Runner):
    """Executes against a pooled Engine; every statement gets its own transaction."""

    def __init__(self, engine: Engine, debug: bool = False):
        super().__init__(debug)
        self.engine = engine

    @contextmanager
    def _conn(self) -> Iterator[Connection]:
        with self.engine.begin() as conn:
            yield conn

    def query(self, sql: str, values: Sequence[Any] = ()) -> RowCursor:
        """Open a cursor; the pooled connection is returned when the cursor closes."""
        self._log(sql, values)
        query, params = adapt_sql(sql, values)
        conn = self.engine.connect()
        try:
            result = conn.execute(text(query), params)
        except Exception:
            conn.close()
            raise
        return RowCursor(result, conn.close)

    def begin(self) -> 'TxDriver':
        conn = self.engine.connect()
        try:
            tx = conn.begin()
        except Exception:
            conn.close()
            raise
        logger.debug('Transaction started')
        return TxDriver(conn, tx, self.debug)

    def dispose(self):
        """Dispose of engine resources."""
        self.engine.dispose()


class TxDriver(_Runner):
    """Executes on one connection inside an open transaction until commit() or rollback()."""

    def __init__(self, conn: Connection, tx, debug: bool = False):
        super().__init__(debug)
        self.conn = conn
        self.tx = tx

    @contextmanager
    def _conn(self) -> Iterator[Connection]:
        yield self.conn

    def query(self, sql: str, values: Sequence[Any] = ()) -> RowCursor:
        self._log(sql, values)
        query, params = adapt_sql(sql, values)
        return RowCursor(self.conn.execute(text(query), params))

    def commit(self):
        try:
            self.tx.commit()
            logger.debug('Transaction committed')
        finally:
            self.conn.close()

    def rollback(self):
        try:
            self.tx.rollback()
            logger.debug('Transaction rolled back')
        finally:
            self.conn.close()
