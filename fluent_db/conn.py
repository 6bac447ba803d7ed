"""Database handle: a fluent builder bound to a pooled engine, plus transactions."""

import logging
from typing import Any, Callable, Optional, Tuple, List

from sqlalchemy import create_engine
from sqlalchemy.pool import QueuePool

from fluent_builder import QueryBuilder, TransactionModeError
from .config import DB_CONFIG
from .driver import Driver
from .executor import Executor

logger = logging.getLogger(__name__)


def _is_commit_result(result: Any) -> bool:
    """A positive count or a non-empty collection commits; anything else rolls back."""
    if isinstance(result, int) and not isinstance(result, bool):
        return result > 0
    if isinstance(result, (list, tuple, dict)):
        return len(result) > 0
    return False


class Txn(Executor):
    """Executor bound to an open transaction, sharing the builder of its DB."""

    def __init__(self, tx, builder: QueryBuilder):
        self.tx = tx
        self.builder = builder

    def _state(self) -> QueryBuilder:
        return self.builder

    def sql(self):
        if self.tx is None:
            raise TransactionModeError()
        return self.tx


class DB(QueryBuilder, Executor):
    """Fluent query builder with execution against PostgreSQL.

    Statements run on the pooled engine, or on the open transaction while
    in_transaction() is running.
    """

    def __init__(
        self, conn: Optional[str] = None, pool_size: int = 5, pool_timeout: int = 30,
        echo: bool = False, debug: bool = False, driver=None
    ):
        QueryBuilder.__init__(self)
        self.debug = debug
        if driver is None:
            engine = create_engine(
                conn, poolclass=QueuePool, pool_size=pool_size,
                pool_timeout=pool_timeout, pool_recycle=3600, echo=echo, future=True
            )
            driver = Driver(engine, debug)
        self.driver = driver
        self.txn: Optional[Txn] = None

    @classmethod
    def from_driver(cls, driver, debug: bool = False) -> 'DB':
        """Wrap an existing driver, e.g. one sharing another engine."""
        return cls(driver=driver, debug=debug)

    def _state(self) -> QueryBuilder:
        return self

    def sql(self):
        """The transaction driver while a transaction is open, else the pooled driver."""
        if self.txn is not None:
            return self.txn.sql()
        return self.driver

    def in_transaction(self, fn: Callable[[], Any]) -> Any:
        """Run fn inside one transaction and return its result.

        Commits when fn returns a positive int or a non-empty list/tuple/dict,
        rolls back otherwise. An exception from fn rolls back and propagates.
        """
        if self.txn is not None:
            raise TransactionModeError('sql: nested transactions are not supported')
        tx = self.driver.begin()
        self.txn = Txn(tx, self)
        try:
            try:
                result = fn()
            except BaseException as exc:
                logger.debug(f'Rolling back after error: {exc}')
                try:
                    tx.rollback()
                except Exception as rb_exc:
                    logger.warning(f'Rollback failed: {rb_exc}')
                    raise rb_exc from exc
                raise
            if _is_commit_result(result):
                tx.commit()
            else:
                logger.debug(f'Rolling back, transaction returned {result!r}')
                tx.rollback()
            return result
        finally:
            self.txn = None

    def dump(self) -> Tuple[str, List[Any]]:
        """Log and return the SELECT the current state renders to."""
        sql, values = self.build_select()
        logger.info(f'SQL: {sql} | Params: {values}')
        return sql, values

    def close(self):
        """Dispose of engine resources."""
        self.driver.dispose()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def connect(conn_str: Optional[str] = None, **overrides) -> DB:
    """Build a DB from DB_CONFIG, with keyword overrides."""
    settings = dict(DB_CONFIG)
    if conn_str is not None:
        settings['conn_str'] = conn_str
    settings.update(overrides)
    return DB(
        settings['conn_str'], pool_size=settings['pool_size'], pool_timeout=settings['pool_timeout'],
        echo=settings['echo'], debug=settings['debug']
    )
