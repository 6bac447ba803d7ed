"""Tests for fluent_builder.marshal: dataclass records to and from rows."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

import pytest

from fluent_builder import FieldNotFoundError
from fluent_builder.marshal import (
    describe, match_field, record_to_columns, records_to_rows, row_to_record, validate_fields,
)


@dataclass
class User:
    id: int
    full_name: str = field(metadata={'db': 'name'})
    email: Optional[str] = None
    score: float = 0.0


@dataclass
class Link:
    ID: int
    URL: str


@dataclass
class Price:
    amount: Decimal
    label: Optional[str] = None


@pytest.mark.unit
class TestDescribe:

    def test_columns_from_tag_or_lowercased_name(self):
        assert [s.column for s in describe(User)] == ['id', 'name', 'email', 'score']
        assert [s.column for s in describe(Link)] == ['id', 'url']

    def test_optional_detected(self):
        specs = {s.name: s for s in describe(User)}
        assert specs['email'].optional and specs['email'].target is str
        assert not specs['id'].optional

    def test_cached_per_class(self):
        assert describe(User) is describe(User)

    def test_rejects_non_dataclass(self):
        with pytest.raises(TypeError):
            describe(dict)


@pytest.mark.unit
class TestMatching:

    def test_exact_name(self):
        assert match_field(User, 'email').name == 'email'

    def test_upper_cased_name(self):
        assert match_field(Link, 'url').name == 'URL'

    def test_db_tag(self):
        assert match_field(User, 'name').name == 'full_name'

    def test_unknown_column(self):
        assert match_field(User, 'nope') is None
        with pytest.raises(FieldNotFoundError, match='field nope not found in User') as exc:
            validate_fields(User, ['id', 'nope'])
        assert exc.value.column == 'nope'
        assert exc.value.target is User


@pytest.mark.unit
class TestRowToRecord:

    def test_builds_instance(self):
        user = row_to_record(User, ['id', 'name', 'email', 'score'], (1, 'Ann', None, 2))
        assert user == User(id=1, full_name='Ann', email=None, score=2.0)
        assert isinstance(user.score, float)

    def test_missing_required_fields_become_none(self):
        user = row_to_record(User, ['name'], ('Ann',))
        assert user.id is None
        assert user.score == 0.0

    def test_bytes_decoded_for_str_fields(self):
        link = row_to_record(Link, ['id', 'url'], (1, b'http://x'))
        assert link.URL == 'http://x'

    def test_decimal_target(self):
        assert row_to_record(Price, ['amount'], ('1.50',)).amount == Decimal('1.50')


@pytest.mark.unit
class TestRecordToColumns:

    def test_dataclass(self):
        cols, values = record_to_columns(User(id=1, full_name='Ann', email=None))
        assert cols == ['id', 'name', 'email', 'score']
        assert values == [1, 'Ann', None, 0.0]

    def test_mapping_keeps_insertion_order(self):
        assert record_to_columns({'b': 2, 'a': 1}) == (['b', 'a'], [2, 1])

    def test_rejects_other_shapes(self):
        with pytest.raises(TypeError):
            record_to_columns([1, 2])
        with pytest.raises(TypeError):
            record_to_columns(User)

    def test_round_trip_with_none_field(self):
        user = User(id=7, full_name='Bo', email=None, score=1.5)
        cols, values = record_to_columns(user)
        assert row_to_record(User, cols, values) == user


@pytest.mark.unit
class TestRecordsToRows:

    def test_mappings_follow_first_record_order(self):
        cols, rows = records_to_rows([{'a': 1, 'b': 2}, {'b': 4, 'a': 3}])
        assert cols == ['a', 'b']
        assert rows == [(1, 2), (3, 4)]

    def test_dataclasses(self):
        cols, rows = records_to_rows([Link(1, 'x'), Link(2, 'y')])
        assert cols == ['id', 'url']
        assert rows == [(1, 'x'), (2, 'y')]

    def test_empty(self):
        with pytest.raises(ValueError, match='No rows'):
            records_to_rows([])

    def test_missing_column(self):
        with pytest.raises(ValueError, match='missing columns'):
            records_to_rows([{'a': 1, 'b': 2}, {'a': 3}])


@dataclass
class Account:
    userId: int
    displayName: Optional[str] = None


@pytest.mark.edge_case
class TestMixedCaseFields:

    def test_written_column_reads_back(self):
        cols, values = record_to_columns(Account(7, 'x'))
        assert cols == ['userid', 'displayname']
        assert row_to_record(Account, cols, values) == Account(7, 'x')

    def test_lower_cased_match_comes_after_tag(self):
        assert match_field(Account, 'userid').name == 'userId'
        assert match_field(User, 'full_name').name == 'full_name'
