"""PostgreSQL dialect constants: placeholders, quoting, operators and column types."""

placeholder_prefix = '$'
quote_char = '"'

order_directions = ('ASC', 'DESC')

valid_operators = {
    '=', '!=', '<>', '<', '>', '<=', '>=',
    'LIKE', 'NOT LIKE', 'ILIKE', 'NOT ILIKE',
    'SIMILAR TO', 'NOT SIMILAR TO', '~', '~*', '!~', '!~*',
    '@>', '<@', '&&', '@@', 'IS DISTINCT FROM', 'IS NOT DISTINCT FROM',
}

join_types = {
    'inner': 'INNER JOIN',
    'left': 'LEFT JOIN',
    'right': 'RIGHT JOIN',
    'full': 'FULL JOIN',
    'full_outer': 'FULL OUTER JOIN',
    'cross': 'CROSS JOIN',
}

lock_for_update = ' FOR UPDATE'

# Column types for the schema builder
column_types = {
    'serial': 'SERIAL',
    'big_serial': 'BIGSERIAL',
    'small_int': 'SMALLINT',
    'integer': 'INTEGER',
    'big_int': 'BIGINT',
    'boolean': 'BOOLEAN',
    'text': 'TEXT',
    'varchar': 'VARCHAR',
    'char': 'CHAR',
    'date': 'DATE',
    'time': 'TIME',
    'date_time': 'TIMESTAMP',
    'date_time_tz': 'TIMESTAMPTZ',
    'dbl_precision': 'DOUBLE PRECISION',
    'numeric': 'NUMERIC',
    'ts_vector': 'TSVECTOR',
    'ts_query': 'TSQUERY',
    'json': 'JSON',
    'jsonb': 'JSONB',
    'point': 'POINT',
    'polygon': 'POLYGON',
}

# Defaults that are SQL expressions, emitted unquoted
current_date = 'CURRENT_DATE'
current_time = 'CURRENT_TIME'
current_date_time = 'NOW()'

default_schema = 'public'
