"""SQL builder subpackage: clause accumulation, rendering, coercion and marshaling."""

from .query_builder import QueryBuilder, quote_ident
from .conditions import Bound, BoundList, Fragment, Literal, Subquery, compose_where, compose_order_by
from .coercion import coerce_scalar, coerce_sequence, to_literal
from .marshal import describe, match_field, validate_fields, row_to_record, record_to_columns, records_to_rows
from .table_creator import Table, compose_create, compose_alter
from .errors import (
    FluentSQLError, NoTableError, TransactionModeError, FieldNotFoundError, NoMoreRows, NoRowsFound
)

__all__ = [
    'QueryBuilder', 'quote_ident',
    'Bound', 'BoundList', 'Fragment', 'Literal', 'Subquery', 'compose_where', 'compose_order_by',
    'coerce_scalar', 'coerce_sequence', 'to_literal',
    'describe', 'match_field', 'validate_fields', 'row_to_record', 'record_to_columns', 'records_to_rows',
    'Table', 'compose_create', 'compose_alter',
    'FluentSQLError', 'NoTableError', 'TransactionModeError', 'FieldNotFoundError', 'NoMoreRows',
    'NoRowsFound',
]
