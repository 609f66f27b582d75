"""
Tests for per-stream locking and its error mapping.
"""

import pytest
from django.db import DatabaseError, OperationalError, transaction

from ledgerman.adapters import get_item_registry
from ledgerman.exceptions import ConcurrencyError, NotFoundError, PersistenceError
from ledgerman.locking import advisory_key, lock_company, lock_stream, normalize_company_id


class LockNotAvailable(Exception):
    """Stands in for the driver error PostgreSQL raises on lock_timeout."""

    sqlstate = '55P03'


class FailingRegistry:
    """Registry whose lock_item raises the given error."""

    def __init__(self, error=None):
        self.error = error

    def lock_item(self, company_id, item_id, using):
        if self.error is not None:
            raise self.error
        return None


def lock_timeout():
    try:
        raise OperationalError('canceling statement due to lock timeout') from LockNotAvailable()
    except OperationalError as exc:
        return exc


class TestNormalizeCompanyId:
    """Tests for normalize_company_id()."""

    @pytest.mark.parametrize('value,expected', [
        ('ACME', 'ACME'),
        ('  acme ', 'ACME'),
        ('Globex', 'GLOBEX'),
    ])
    def test_trimmed_and_upper_case(self, value, expected):
        assert normalize_company_id(value) == expected

    @pytest.mark.parametrize('value', ['', '   ', None])
    def test_blank_company(self, value):
        with pytest.raises(NotFoundError) as exc:
            normalize_company_id(value)

        assert exc.value.code == 'COMPANY_NOT_FOUND'


class TestAdvisoryKey:
    """Tests for advisory_key()."""

    def test_deterministic(self):
        assert advisory_key('ACME', 7) == advisory_key('ACME', 7)

    def test_distinct_per_stream(self):
        keys = {advisory_key('ACME', 7), advisory_key('ACME', 8), advisory_key('GLOBEX', 7)}

        assert len(keys) == 3

    def test_fits_signed_bigint(self):
        for item_id in range(200):
            assert -2 ** 63 <= advisory_key('ACME', item_id) < 2 ** 63


@pytest.mark.django_db
class TestLockStream:
    """Tests for lock_stream()."""

    def test_returns_locked_item(self, item):
        with transaction.atomic():
            record = lock_stream('ACME', item.pk, get_item_registry())

        assert record.item_id == item.pk
        assert record.company_id == 'ACME'
        assert record.opening_stock == 50

    def test_item_of_another_company(self, item, other_company):
        with pytest.raises(NotFoundError) as exc:
            with transaction.atomic():
                lock_stream('GLOBEX', item.pk, get_item_registry())

        assert exc.value.code == 'ITEM_NOT_FOUND'

    def test_missing_item(self):
        with pytest.raises(NotFoundError) as exc:
            with transaction.atomic():
                lock_stream('ACME', 1, FailingRegistry())

        assert exc.value.code == 'ITEM_NOT_FOUND'

    def test_lock_timeout(self):
        with pytest.raises(ConcurrencyError) as exc:
            with transaction.atomic():
                lock_stream('ACME', 1, FailingRegistry(lock_timeout()))

        assert exc.value.code == 'LOCK_TIMEOUT'
        assert exc.value.data == {'company_id': 'ACME', 'item_id': 1}
        assert isinstance(exc.value.__cause__, OperationalError)

    @pytest.mark.parametrize('message', ['database is locked', 'database table is locked'])
    def test_sqlite_database_lock(self, message):
        with pytest.raises(ConcurrencyError) as exc:
            with transaction.atomic():
                lock_stream('ACME', 1, FailingRegistry(OperationalError(message)))

        assert exc.value.code == 'LOCK_TIMEOUT'

    def test_other_operational_error(self):
        with pytest.raises(PersistenceError) as exc:
            with transaction.atomic():
                lock_stream('ACME', 1, FailingRegistry(OperationalError('server closed the connection')))

        assert exc.value.code == 'DATABASE_ERROR'
        assert 'server closed' in exc.value.data['error']

    def test_database_error(self):
        with pytest.raises(PersistenceError) as exc:
            with transaction.atomic():
                lock_stream('ACME', 1, FailingRegistry(DatabaseError('disk full')))

        assert exc.value.code == 'DATABASE_ERROR'


@pytest.mark.django_db
class TestLockCompany:
    """Tests for lock_company()."""

    def test_locks_items_in_id_order(self, item, nut, empty_item):
        with transaction.atomic():
            records = lock_company('ACME', get_item_registry())

        assert [r.item_id for r in records] == sorted([item.pk, nut.pk, empty_item.pk])

    def test_unknown_company(self, company):
        with pytest.raises(NotFoundError) as exc:
            with transaction.atomic():
                lock_company('NOPE', get_item_registry())

        assert exc.value.code == 'COMPANY_NOT_FOUND'

    def test_company_without_items(self, other_company):
        with transaction.atomic():
            assert lock_company('GLOBEX', get_item_registry()) == []
