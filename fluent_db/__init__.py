"""Execution layer: run fluent_builder statements on PostgreSQL via SQLAlchemy and psycopg2."""

from .conn import DB, Txn, connect
from .config import DB_CONFIG, load_config
from .driver import BulkInserter, Driver, RowCursor, TxDriver, encode_copy_row, encode_copy_value
from .executor import Executor
from .adapt_sql import adapt_sql
from fluent_builder.errors import (
    FluentSQLError, NoTableError, TransactionModeError, FieldNotFoundError, NoMoreRows, NoRowsFound
)

__all__ = [
    'DB', 'Txn', 'connect', 'DB_CONFIG', 'load_config',
    'BulkInserter', 'Driver', 'RowCursor', 'TxDriver', 'encode_copy_row', 'encode_copy_value',
    'Executor', 'adapt_sql',
    'FluentSQLError', 'NoTableError', 'TransactionModeError', 'FieldNotFoundError', 'NoMoreRows',
    'NoRowsFound',
]
