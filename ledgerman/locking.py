"""
Per-stream locking.

Every append for one (company, item) stream runs read-head → compute →
insert. That sequence is only safe when it is serialized per stream, so the
lock is taken before the head is read and held until the enclosing
transaction commits or rolls back.

Strategies (LEDGERMAN["LOCK_STRATEGY"]):
    - row:      SELECT ... FOR UPDATE on the item row (PostgreSQL, MySQL, Oracle)
    - advisory: pg_advisory_xact_lock on a hash of "company:item" (PostgreSQL)

On PostgreSQL the wait is bounded by LEDGERMAN["LOCK_TIMEOUT_MS"].

SQLite ignores FOR UPDATE. Writers there are serialized by the database
file lock instead; run transactions in IMMEDIATE mode to take it at BEGIN.
Either way, losing the race surfaces as ConcurrencyError('LOCK_TIMEOUT').
"""

import hashlib
import logging

from django.db import DEFAULT_DB_ALIAS, DatabaseError, OperationalError, connections

from ledgerman.conf import ledgerman_settings
from ledgerman.exceptions import ConcurrencyError, NotFoundError, PersistenceError, ValidationError
from ledgerman.protocols.items import ItemRecord, ItemRegistry

logger = logging.getLogger('ledgerman')

# SQLSTATE lock_not_available
LOCK_NOT_AVAILABLE = '55P03'

# SQLite holds one write lock per database file
SQLITE_LOCK_ERRORS = ('SQLITE_BUSY', 'SQLITE_LOCKED')
SQLITE_LOCK_MESSAGES = ('database is locked', 'database table is locked')


def normalize_company_id(company_id) -> str:
    """Company codes are compared trimmed and upper-case."""
    value = str(company_id or '').strip().upper()
    if not value:
        raise NotFoundError('COMPANY_NOT_FOUND', company_id=company_id)
    return value


def advisory_key(company_id: str, item_id: int) -> int:
    """Stable signed 64-bit key for pg_advisory_xact_lock."""
    digest = hashlib.blake2b(f"{company_id}:{item_id}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, 'big', signed=True)


def require_unit_of_work(using: str = DEFAULT_DB_ALIAS, **context) -> None:
    """Ledger writes must share the caller's open transaction."""
    if not connections[using].in_atomic_block:
        raise ValidationError('NO_UNIT_OF_WORK', **context)


def _uses_advisory(connection) -> bool:
    return ledgerman_settings.LOCK_STRATEGY == 'advisory' and connection.vendor == 'postgresql'


def is_lock_contention(exc: Exception) -> bool:
    """
    True when a database error means another writer holds the lock.

    PostgreSQL reports lock_timeout as SQLSTATE 55P03. SQLite has no row
    locks: a second writer fails on the database file lock instead.
    """
    cause = exc.__cause__
    code = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if code == LOCK_NOT_AVAILABLE:
        return True
    name = getattr(cause, 'sqlite_errorname', None) or ''
    if name.startswith(SQLITE_LOCK_ERRORS):
        return True
    return str(exc).startswith(SQLITE_LOCK_MESSAGES)


class _BoundedWait:
    """Sets a transaction-local lock_timeout on PostgreSQL, restores it on success."""

    def __init__(self, connection):
        self.connection = connection
        self.previous = None

    def __enter__(self):
        timeout = ledgerman_settings.LOCK_TIMEOUT_MS
        if self.connection.vendor != 'postgresql' or not timeout:
            return self
        with self.connection.cursor() as cursor:
            cursor.execute("SELECT current_setting('lock_timeout')")
            self.previous = cursor.fetchone()[0]
            cursor.execute("SELECT set_config('lock_timeout', %s, true)", [f"{int(timeout)}ms"])
        return self

    def __exit__(self, exc_type, exc, tb):
        # An aborted transaction accepts no further statements; rollback resets it.
        if self.previous is not None and exc_type is None:
            with self.connection.cursor() as cursor:
                cursor.execute("SELECT set_config('lock_timeout', %s, true)", [self.previous])
        return False


def _advisory_lock(connection, company_id: str, item_id: int) -> None:
    with connection.cursor() as cursor:
        cursor.execute("SELECT pg_advisory_xact_lock(%s)", [advisory_key(company_id, item_id)])


def lock_stream(company_id: str, item_id: int, registry: ItemRegistry,
                using: str = DEFAULT_DB_ALIAS) -> ItemRecord:
    """
    Lock one (company, item) stream for the rest of the transaction.

    Also resolves the item, so a successful lock proves the item belongs
    to the company.

    Raises:
        ValidationError('NO_UNIT_OF_WORK'): Called outside transaction.atomic()
        NotFoundError('ITEM_NOT_FOUND'): Item does not belong to the company
        ConcurrencyError('LOCK_TIMEOUT'): Lock not acquired within LOCK_TIMEOUT_MS
        PersistenceError('DATABASE_ERROR'): Any other store failure
    """
    require_unit_of_work(using, company_id=company_id, item_id=item_id)
    connection = connections[using]

    try:
        with _BoundedWait(connection):
            if _uses_advisory(connection):
                _advisory_lock(connection, company_id, item_id)
                item = registry.get_item(company_id, item_id, using)
            else:
                item = registry.lock_item(company_id, item_id, using)
    except OperationalError as exc:
        if is_lock_contention(exc):
            logger.warning(
                "ledger.lock.timeout",
                extra={"company_id": company_id, "item_id": item_id},
            )
            raise ConcurrencyError('LOCK_TIMEOUT', company_id=company_id, item_id=item_id) from exc
        raise PersistenceError('DATABASE_ERROR', company_id=company_id, item_id=item_id,
                               error=str(exc)) from exc
    except DatabaseError as exc:
        raise PersistenceError('DATABASE_ERROR', company_id=company_id, item_id=item_id,
                               error=str(exc)) from exc

    if item is None:
        raise NotFoundError('ITEM_NOT_FOUND', company_id=company_id, item_id=item_id)
    return item


def lock_company(company_id: str, registry: ItemRegistry,
                 using: str = DEFAULT_DB_ALIAS) -> list[ItemRecord]:
    """
    Lock every stream of a company (rebuild). Items are locked in item_id
    order so two company-wide lockers cannot deadlock each other.

    Raises:
        NotFoundError('COMPANY_NOT_FOUND'): Unknown company
        (plus everything lock_stream raises)
    """
    require_unit_of_work(using, company_id=company_id)
    if not registry.company_exists(company_id, using):
        raise NotFoundError('COMPANY_NOT_FOUND', company_id=company_id)
    connection = connections[using]

    try:
        with _BoundedWait(connection):
            items = registry.items_for_company(company_id, lock=True, using=using)
            if _uses_advisory(connection):
                for item in items:
                    _advisory_lock(connection, company_id, item.item_id)
    except OperationalError as exc:
        if is_lock_contention(exc):
            raise ConcurrencyError('LOCK_TIMEOUT', company_id=company_id) from exc
        raise PersistenceError('DATABASE_ERROR', company_id=company_id, error=str(exc)) from exc
    except DatabaseError as exc:
        raise PersistenceError('DATABASE_ERROR', company_id=company_id, error=str(exc)) from exc
    return items
