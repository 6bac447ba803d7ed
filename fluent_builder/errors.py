"""Error taxonomy shared by the builder and the execution layer."""


class FluentSQLError(Exception):
    """Base class for every error raised by fluentsql."""


class NoTableError(FluentSQLError, ValueError):
    """A terminal operation was called before table()."""

    def __init__(self, message: str = 'sql: there was no table() call with table name set'):
        super().__init__(message)


class TransactionModeError(FluentSQLError):
    """A transaction-scoped operation ran without a live transaction."""

    def __init__(self, message: str = 'sql: there was no transaction object set properly'):
        super().__init__(message)


class FieldNotFoundError(FluentSQLError, LookupError):
    """A result column could not be matched to a destination field."""

    def __init__(self, column: str, target: type):
        self.column = column
        self.target = target
        super().__init__(f'field {column} not found in {target.__name__}')


class NoMoreRows(FluentSQLError):
    """Raised by next() once the cursor is exhausted."""

    def __init__(self, message: str = 'sql: no more rows'):
        super().__init__(message)


class NoRowsFound(FluentSQLError, LookupError):
    """A single-row read found nothing."""

    def __init__(self, query: str):
        self.query = query
        super().__init__(f'sql: no rows in result set for query: {query}')
