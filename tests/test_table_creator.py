"""Tests for fluent_builder.table_creator: the Table DSL and CREATE/ALTER composition."""

import pytest

from fluent_builder.table_creator import Table, compose_alter, compose_create


@pytest.mark.unit
class TestCreate:

    def test_create_with_index_and_comments(self):
        t = Table('users')
        (
            t.increments('id')
            .string('name', 64).not_null().index('idx_name')
            .text('bio').comment('about')
            .date_time('created_at', is_default=True)
            .table_comment('people')
        )
        assert compose_create(t) == [
            'CREATE TABLE users(id SERIAL PRIMARY KEY, name VARCHAR(64) NOT NULL, bio TEXT,'
            ' created_at TIMESTAMP DEFAULT NOW())',
            'CREATE INDEX idx_name ON users (name)',
            "COMMENT ON COLUMN users.bio IS 'about'",
            "COMMENT ON TABLE users IS 'people'",
        ]

    def test_column_types(self):
        t = Table('t')
        (
            t.big_increments('id').small_int('a').big_int('b').boolean('c').char('d', 2)
            .dbl_precision('e').numeric('f', 10, 2).decimal('g', 5, 1).date('h').time('i')
            .date_time_tz('j').ts_vector('k').ts_query('l').json('m').jsonb('n').point('o').polygon('p')
        )
        body = compose_create(t)[0]
        for fragment in (
            'id BIGSERIAL PRIMARY KEY', 'a SMALLINT', 'b BIGINT', 'c BOOLEAN', 'd CHAR(2)',
            'e DOUBLE PRECISION', 'f NUMERIC(10, 2)', 'g NUMERIC(5, 1)', 'h DATE', 'i TIME',
            'j TIMESTAMPTZ', 'k TSVECTOR', 'l TSQUERY', 'm JSON', 'n JSONB', 'o POINT', 'p POLYGON',
        ):
            assert fragment in body

    def test_unique_and_foreign_key(self):
        t = Table('posts')
        t.string('slug', 20).unique('ux_slug').integer('user_id').foreign_key('fk_user', 'users', 'id')
        assert compose_create(t)[1:] == [
            'CREATE UNIQUE INDEX ux_slug ON posts (slug)',
            'ALTER TABLE posts ADD CONSTRAINT fk_user FOREIGN KEY (user_id) REFERENCES users (id)',
        ]

    def test_default_and_collation(self):
        t = Table('t')
        t.string('name', 10).default("a'b").collation('C')
        assert compose_create(t)[0] == 'CREATE TABLE t(name VARCHAR(10) DEFAULT \'a\'\'b\' COLLATE "C")'

    def test_modifier_without_column(self):
        with pytest.raises(ValueError):
            Table('t').not_null()


@pytest.mark.unit
class TestAlter:

    def test_one_statement_per_change(self):
        t = Table('users')
        (
            t.string('name', 64)
            .integer('age').default(0)
            .string('title', 10).change().not_null()
            .rename('bio', 'about')
            .drop_column('old')
            .drop_index('idx_x')
        )
        assert compose_alter(t, lambda col: col == 'name') == [
            'ALTER TABLE users ADD COLUMN age INTEGER DEFAULT 0',
            'ALTER TABLE users ALTER COLUMN title TYPE VARCHAR(10)',
            'ALTER TABLE users ALTER COLUMN title SET NOT NULL',
            'ALTER TABLE users RENAME COLUMN bio TO about',
            'ALTER TABLE users DROP COLUMN old',
            'DROP INDEX idx_x',
        ]

    def test_indexes_and_comments_follow_alters(self):
        t = Table('users')
        t.string('email', 100).unique('ux_email').comment('login').table_comment('accounts')
        assert compose_alter(t, lambda col: False) == [
            'ALTER TABLE users ADD COLUMN email VARCHAR(100)',
            'CREATE UNIQUE INDEX ux_email ON users (email)',
            "COMMENT ON COLUMN users.email IS 'login'",
            "COMMENT ON TABLE users IS 'accounts'",
        ]
