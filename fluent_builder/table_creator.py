"""Table definition DSL and CREATE/ALTER TABLE statement composition."""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .coercion import quote_string, to_literal
from .mappings import column_types, current_date, current_date_time, current_time

ADD = ' ADD '
MODIFY = ' ALTER '
DROP = ' DROP '
RENAME = ' RENAME '


@dataclass
class Column:
    """Properties collected for one column by the Table DSL."""
    name: str = ''
    column_type: str = ''
    rename_to: Optional[str] = None
    is_not_null: bool = False
    is_primary_key: bool = False
    default: Optional[str] = None
    is_index: bool = False
    is_unique: bool = False
    foreign_key: Optional[str] = None
    idx_name: str = ''
    comment: Optional[str] = None
    is_drop: bool = False
    is_modify: bool = False
    collation: Optional[str] = None


class Table:
    """Collects column definitions for Schema(); every modifier applies to the last column."""

    def __init__(self, name: str):
        self.name = name
        self.columns: List[Column] = []
        self._comment: Optional[str] = None

    def _add(self, name: str, column_type: str, **opts) -> 'Table':
        self.columns.append(Column(name=name, column_type=column_type, **opts))
        return self

    @property
    def _last(self) -> Column:
        if not self.columns:
            raise ValueError('Column modifier called before any column was defined')
        return self.columns[-1]

    # column types
    def increments(self, name: str) -> 'Table':
        return self._add(name, column_types['serial'], is_primary_key=True)

    def big_increments(self, name: str) -> 'Table':
        return self._add(name, column_types['big_serial'], is_primary_key=True)

    def small_int(self, name: str) -> 'Table':
        return self._add(name, column_types['small_int'])

    def integer(self, name: str) -> 'Table':
        return self._add(name, column_types['integer'])

    def big_int(self, name: str) -> 'Table':
        return self._add(name, column_types['big_int'])

    def boolean(self, name: str) -> 'Table':
        return self._add(name, column_types['boolean'])

    def string(self, name: str, length: int) -> 'Table':
        return self._add(name, f"{column_types['varchar']}({length})")

    def char(self, name: str, length: int) -> 'Table':
        return self._add(name, f"{column_types['char']}({length})")

    def text(self, name: str) -> 'Table':
        return self._add(name, column_types['text'])

    def dbl_precision(self, name: str) -> 'Table':
        return self._add(name, column_types['dbl_precision'])

    def numeric(self, name: str, precision: int, scale: int) -> 'Table':
        return self._add(name, f"{column_types['numeric']}({precision}, {scale})")

    def decimal(self, name: str, precision: int, scale: int) -> 'Table':
        """Alias of numeric(); the two are the same type in PostgreSQL."""
        return self.numeric(name, precision, scale)

    def _temporal(self, name: str, type_key: str, default_expr: str, is_default: bool) -> 'Table':
        return self._add(name, column_types[type_key], default=default_expr if is_default else None)

    def date(self, name: str, is_default: bool = False) -> 'Table':
        return self._temporal(name, 'date', current_date, is_default)

    def time(self, name: str, is_default: bool = False) -> 'Table':
        return self._temporal(name, 'time', current_time, is_default)

    def date_time(self, name: str, is_default: bool = False) -> 'Table':
        return self._temporal(name, 'date_time', current_date_time, is_default)

    def date_time_tz(self, name: str, is_default: bool = False) -> 'Table':
        return self._temporal(name, 'date_time_tz', current_date_time, is_default)

    def ts_vector(self, name: str) -> 'Table':
        return self._add(name, column_types['ts_vector'])

    def ts_query(self, name: str) -> 'Table':
        return self._add(name, column_types['ts_query'])

    def json(self, name: str) -> 'Table':
        return self._add(name, column_types['json'])

    def jsonb(self, name: str) -> 'Table':
        return self._add(name, column_types['jsonb'])

    def point(self, name: str) -> 'Table':
        return self._add(name, column_types['point'])

    def polygon(self, name: str) -> 'Table':
        return self._add(name, column_types['polygon'])

    # modifiers
    def not_null(self) -> 'Table':
        self._last.is_not_null = True
        return self

    def collation(self, coll: str) -> 'Table':
        self._last.collation = coll
        return self

    def default(self, value: Any) -> 'Table':
        self._last.default = to_literal(value)
        return self

    def comment(self, text: str) -> 'Table':
        self._last.comment = text
        return self

    def index(self, idx_name: str) -> 'Table':
        self._last.idx_name = idx_name
        self._last.is_index = True
        return self

    def unique(self, idx_name: str) -> 'Table':
        self._last.idx_name = idx_name
        self._last.is_unique = True
        return self

    def foreign_key(self, idx_name: str, ref_table: str, on_col: str) -> 'Table':
        """Reference ref_table(on_col) from the last column through constraint idx_name."""
        self._last.foreign_key = (
            f'ALTER TABLE {self.name} ADD CONSTRAINT {idx_name} '
            f'FOREIGN KEY ({self._last.name}) REFERENCES {ref_table} ({on_col})'
        )
        return self

    def change(self) -> 'Table':
        """Alter the last column's type/options instead of adding it."""
        self._last.is_modify = True
        return self

    def table_comment(self, text: str) -> 'Table':
        self._comment = text
        return self

    # structural changes
    def rename(self, old: str, new: str) -> 'Table':
        self.columns.append(Column(name=old, rename_to=new, is_modify=True))
        return self

    def drop_column(self, name: str) -> 'Table':
        self.columns.append(Column(name=name, is_drop=True))
        return self

    def drop_index(self, idx_name: str) -> 'Table':
        self.columns.append(Column(idx_name=idx_name, is_drop=True, is_index=True))
        return self


def column_options(col: Column) -> str:
    sql = ''
    if col.is_primary_key:
        sql += ' PRIMARY KEY'
    if col.is_not_null:
        sql += ' NOT NULL'
    if col.default is not None:
        sql += f' DEFAULT {col.default}'
    if col.collation is not None:
        sql += f' COLLATE "{col.collation}"'
    return sql


def compose_column(col: Column) -> str:
    return f'{col.name} {col.column_type}{column_options(col)}'


def column_def(table: str, col: Column, op: str) -> str:
    """One ALTER TABLE statement adding, altering, renaming or dropping col."""
    sql = f'ALTER TABLE {table}{op}COLUMN {col.name}'
    if op == RENAME:
        return f'{sql} TO {col.rename_to}'
    if op == MODIFY:
        sql += f' TYPE {col.column_type}'
        if col.collation is not None:
            sql += f' COLLATE "{col.collation}"'
        return sql
    if op != DROP:
        sql += f' {col.column_type}{column_options(col)}'
    return sql


def modify_options(table: str, col: Column) -> List[str]:
    """SET NOT NULL / SET DEFAULT follow an ALTER ... TYPE as separate statements."""
    prefix = f'ALTER TABLE {table} ALTER COLUMN {col.name}'
    statements = []
    if col.is_not_null:
        statements.append(f'{prefix} SET NOT NULL')
    if col.default is not None:
        statements.append(f'{prefix} SET DEFAULT {col.default}')
    return statements


def compose_index(table: str, col: Column) -> str:
    if col.is_index:
        return f'CREATE INDEX {col.idx_name} ON {table} ({col.name})'
    if col.is_unique:
        return f'CREATE UNIQUE INDEX {col.idx_name} ON {table} ({col.name})'
    if col.foreign_key:
        return col.foreign_key
    return ''


def compose_comment(table: str, col: Column) -> str:
    if col.comment is not None:
        return f'COMMENT ON COLUMN {table}.{col.name} IS {quote_string(col.comment)}'
    return ''


def compose_table_comment(t: Table) -> str:
    if t._comment is not None:
        return f'COMMENT ON TABLE {t.name} IS {quote_string(t._comment)}'
    return ''


def compose_create(t: Table) -> List[str]:
    """CREATE TABLE, then its indexes, then its comments."""
    body = ', '.join(compose_column(c) for c in t.columns)
    statements = [f'CREATE TABLE {t.name}({body})']
    statements += [compose_index(t.name, c) for c in t.columns]
    statements += [compose_comment(t.name, c) for c in t.columns]
    statements.append(compose_table_comment(t))
    return [s for s in statements if s]


def compose_alter(t: Table, has_column: Callable[[str], bool]) -> List[str]:
    """One statement per column change; plain columns are added only when missing."""
    alters, indices, comments = [], [], []
    for col in t.columns:
        if col.is_modify and col.rename_to is not None:
            alters.append(column_def(t.name, col, RENAME))
        elif col.is_modify:
            alters.append(column_def(t.name, col, MODIFY))
            alters.extend(modify_options(t.name, col))
        elif col.is_drop:
            alters.append(f'DROP INDEX {col.idx_name}' if col.is_index else column_def(t.name, col, DROP))
        else:
            if not has_column(col.name):
                alters.append(column_def(t.name, col, ADD))
            indices.append(compose_index(t.name, col))
            comments.append(compose_comment(t.name, col))
    comments.append(compose_table_comment(t))
    return [s for s in alters + indices + comments if s]
