"""Tests for Executor.chunk: windowed reads with early stop."""

from dataclasses import dataclass

import pytest

COLUMNS = ['id', 'name']


@dataclass
class Row:
    id: int
    name: str


def rows(*ids):
    return (COLUMNS, [(i, f'n{i}') for i in ids])


@pytest.mark.integration
class TestChunk:

    @pytest.mark.parametrize('size', [0, -3])
    def test_size_validated_before_counting(self, db, fake_driver, size):
        with pytest.raises(ValueError):
            db.table('users').chunk(Row, size, lambda batch: True)
        assert fake_driver.calls == []

    def test_no_rows_never_calls_back(self, db, fake_driver):
        fake_driver.scalars.append(0)
        seen = []
        db.table('users').chunk(Row, 10, seen.append)
        assert seen == []

    def test_small_result_in_one_call(self, db, fake_driver):
        fake_driver.scalars.append(3)
        fake_driver.results.append(rows(1, 2, 3))
        seen = []
        db.table('users').chunk(Row, 10, seen.append)
        assert [[r.id for r in batch] for batch in seen] == [[1, 2, 3]]
        assert fake_driver.last == ('SELECT * FROM "users"', [])

    def test_windows_cover_every_row(self, db, fake_driver):
        fake_driver.scalars.append(5)
        fake_driver.results.extend([rows(1, 2), rows(3, 4), rows(5)])
        seen = []
        db.table('users').where('active', '=', True).chunk(Row, 2, seen.append)
        assert [[r.id for r in batch] for batch in seen] == [[1, 2], [3, 4], [5]]
        assert [sql for sql, _ in fake_driver.calls] == [
            'SELECT COUNT(*) FROM "users" WHERE active = $1',
            'SELECT * FROM "users" WHERE active = $1 LIMIT 2',
            'SELECT * FROM "users" WHERE active = $1 LIMIT 2 OFFSET 2',
            'SELECT * FROM "users" WHERE active = $1 LIMIT 2 OFFSET 4',
        ]

    def test_false_stops_iteration(self, db, fake_driver):
        fake_driver.scalars.append(6)
        fake_driver.results.extend([rows(1, 2), rows(3, 4), rows(5, 6)])
        seen = []

        def fn(batch):
            seen.append(batch)
            return False

        db.table('users').chunk(Row, 2, fn)
        assert len(seen) == 1
        assert len(fake_driver.calls) == 2

    def test_short_window_ends_early(self, db, fake_driver):
        fake_driver.scalars.append(4)
        fake_driver.results.extend([rows(1, 2), rows()])
        seen = []
        db.table('users').chunk(Row, 2, seen.append)
        assert len(seen) == 1

    def test_union_arms_apply_to_every_window(self, db, fake_driver):
        fake_driver.scalars.append(3)
        fake_driver.results.extend([rows(1, 2), rows(3)])
        seen = []
        db.table('a').union().table('b').chunk(Row, 2, seen.append)
        assert [[r.id for r in batch] for batch in seen] == [[1, 2], [3]]
        assert [sql for sql, _ in fake_driver.calls] == [
            'SELECT COUNT(*) FROM (SELECT * FROM "a" UNION SELECT * FROM "b") AS t',
            'SELECT * FROM "a" UNION SELECT * FROM "b" LIMIT 2',
            'SELECT * FROM "a" UNION SELECT * FROM "b" LIMIT 2 OFFSET 2',
        ]
        assert db.build_select() == ('SELECT * FROM "b" LIMIT 2 OFFSET 2', [])
