"""
Shared pytest configuration and fixtures for all tests.

The execution layer runs against FakeDriver: it records every (sql, values)
pair it receives and replays queued results, so no database server is needed.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path so tests import fluent_builder / fluent_db without installation
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from fluent_db import DB  # noqa: E402
from fluent_db.driver import RowCursor  # noqa: E402


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests - isolated function-level tests")
    config.addinivalue_line("markers", "integration: Integration tests - builder and driver together")
    config.addinivalue_line("markers", "edge_case: Edge case tests - boundary conditions")


# ====================
# Fake driver
# ====================

class FakeResult:
    """Minimal stand-in for a SQLAlchemy CursorResult."""
    def __init__(self, columns, rows):
        self._columns = list(columns)
        self._rows = list(rows)
        self.closed = False

    def keys(self):
        return self._columns

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def close(self):
        self.closed = True


class FakeBulk:
    """Records rows handed to a bulk insert."""
    def __init__(self, owner, table, columns):
        self.owner = owner
        self.table = table
        self.columns = list(columns)
        self.rows = []
        self.finished = False
        self.aborted = False

    def add_row(self, *values):
        if len(values) != len(self.columns):
            raise ValueError(f'Expected {len(self.columns)} values, got {len(values)}')
        self.rows.append(values)

    def finish(self):
        if self.owner.fail_bulk:
            raise RuntimeError('copy failed')
        self.finished = True
        return len(self.rows)

    def abort(self):
        self.aborted = True
        self.rows = []


class FakeDriver:
    """Driver double: records calls, replays queued query results and scalars."""
    def __init__(self):
        self.calls = []
        self.results = []
        self.scalars = []
        self.rowcount = 1
        self.bulks = []
        self.fail_bulk = False
        self.txs = []
        self.disposed = False

    def execute(self, sql, values=()):
        self.calls.append((sql, list(values)))
        return self.rowcount

    def query(self, sql, values=()):
        self.calls.append((sql, list(values)))
        columns, rows = self.results.pop(0) if self.results else ([], [])
        return RowCursor(FakeResult(columns, rows))

    def query_scalar(self, sql, values=()):
        self.calls.append((sql, list(values)))
        return self.scalars.pop(0) if self.scalars else None

    def prepare_bulk_insert(self, table, columns):
        bulk = FakeBulk(self, table, columns)
        self.bulks.append(bulk)
        return bulk

    def begin(self):
        tx = FakeTx(self)
        self.txs.append(tx)
        return tx

    def dispose(self):
        self.disposed = True

    @property
    def last(self):
        return self.calls[-1]


class FakeTx(FakeDriver):
    """Transaction double sharing its parent's queued results."""
    def __init__(self, parent):
        super().__init__()
        self.results = parent.results
        self.scalars = parent.scalars
        self.committed = False
        self.rolled_back = False
        self.fail_rollback = False

    def commit(self):
        self.committed = True

    def rollback(self):
        if self.fail_rollback:
            raise RuntimeError('rollback failed')
        self.rolled_back = True


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def db(fake_driver):
    return DB.from_driver(fake_driver)
