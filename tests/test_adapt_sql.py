"""Tests for fluent_db.adapt_sql: $n placeholders to SQLAlchemy bind parameters."""

import pytest

from fluent_db.adapt_sql import adapt_sql


@pytest.mark.unit
class TestAdaptSql:

    def test_rewrites_placeholders(self):
        sql, params = adapt_sql('SELECT * FROM "t" WHERE a = $1 AND b IN ($2, $3)', [1, 'x', None])
        assert sql == 'SELECT * FROM "t" WHERE a = :p1 AND b IN (:p2, :p3)'
        assert params == {'p1': 1, 'p2': 'x', 'p3': None}

    def test_no_placeholders(self):
        assert adapt_sql('SELECT 1', []) == ('SELECT 1', {})

    def test_quoted_dollar_left_alone(self):
        sql, params = adapt_sql("SELECT * FROM t WHERE a = $1 AND b = 'costs $2'", [1])
        assert sql == "SELECT * FROM t WHERE a = :p1 AND b = 'costs $2'"
        assert params == {'p1': 1}

    def test_quoted_colon_escaped(self):
        sql, _ = adapt_sql("SELECT * FROM t WHERE note = 'at:noon' AND a = $1", [1])
        assert sql == "SELECT * FROM t WHERE note = 'at\\:noon' AND a = :p1"

    def test_cast_after_placeholder_is_separated(self):
        sql, _ = adapt_sql('SELECT $1::int', [1])
        assert sql == 'SELECT :p1 ::int'

    def test_missing_values(self):
        with pytest.raises(ValueError, match='Missing parameters'):
            adapt_sql('SELECT * FROM t WHERE a = $1 AND b = $2', [1])
