"""
Ledger appends: the online path (append, post, compensate, adjust).

Every method runs inside the caller's transaction.atomic() block and takes
the per-stream lock before reading the latest balance.
"""

import logging

from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, OperationalError, transaction
from django.db.models import Max
from django.utils import timezone

from ledgerman import labels
from ledgerman.adapters import get_item_registry
from ledgerman.conf import ledgerman_settings
from ledgerman.exceptions import ConcurrencyError, PersistenceError, ValidationError
from ledgerman.locking import (
    is_lock_contention,
    lock_stream,
    normalize_company_id,
    require_unit_of_work,
)
from ledgerman.models.entry import CHRONOLOGICAL, LedgerEntry
from ledgerman.models.enums import SourceType, TransactionType
from ledgerman.timeline import as_business_datetime

logger = logging.getLogger('ledgerman')


def _validate(transaction_type, quantity_change) -> TransactionType:
    try:
        kind = TransactionType(transaction_type)
    except ValueError:
        raise ValidationError('INVALID_TYPE', transaction_type=transaction_type) from None

    if isinstance(quantity_change, bool) or not isinstance(quantity_change, int) or quantity_change == 0:
        raise ValidationError('INVALID_QUANTITY', quantity_change=quantity_change)

    if not kind.accepts(quantity_change):
        raise ValidationError(
            'INVALID_SIGN',
            transaction_type=kind.value,
            quantity_change=quantity_change,
        )
    return kind


class LedgerAppends:
    """Append-side ledger methods."""

    @classmethod
    def append(cls, *, company_id, item_id: int, transaction_date, transaction_type,
               quantity_change: int, reference_label: str = '', counterparty_label: str = '',
               actor_id=None, actor_name: str | None = None,
               source_type: str | None = None, source_document_id: int | None = None,
               source_line_id: int | None = None, reverses: LedgerEntry | None = None,
               metadata: dict | None = None, using: str = DEFAULT_DB_ALIAS) -> LedgerEntry:
        """
        Append one signed quantity change to an item's ledger.

        new net_balance = latest net_balance (0 if none) + quantity_change

        Does NOT refresh the item's stock mirror; use post() for that.

        Raises:
            ValidationError: zero/non-integer delta, unknown type, wrong sign,
                no open transaction, backdated entry under the "reject" policy
            NotFoundError('ITEM_NOT_FOUND'): item does not belong to company
            ConcurrencyError: lock timeout or sequence collision on insert
            PersistenceError: any other store failure

        Concurrency:
            - Requires the caller's transaction.atomic()
            - Locks the (company, item) stream before reading the head
            - Lock is held until the caller commits or rolls back
        """
        kind = _validate(transaction_type, quantity_change)
        company_id = normalize_company_id(company_id)
        require_unit_of_work(using, company_id=company_id, item_id=item_id)

        lock_stream(company_id, item_id, get_item_registry(), using)

        stream = LedgerEntry.objects.using(using).for_stream(company_id, item_id)
        head = stream.head()
        last_balance = head.net_balance if head else 0
        last_sequence = stream.aggregate(m=Max('sequence'))['m'] or 0

        when = as_business_datetime(transaction_date)
        metadata = dict(metadata or {})
        if head and when < head.transaction_date:
            if ledgerman_settings.BACKDATE_POLICY == 'reject':
                raise ValidationError(
                    'BACKDATED_ENTRY',
                    requested=when,
                    latest=head.transaction_date,
                )
            metadata['requested_date'] = when.isoformat()
            logger.warning(
                "ledger.append.clamped",
                extra={
                    "company_id": company_id,
                    "item_id": item_id,
                    "requested": when.isoformat(),
                    "recorded": head.transaction_date.isoformat(),
                },
            )
            when = head.transaction_date

        recorded_at = timezone.now()
        if head and head.recorded_at > recorded_at:
            recorded_at = head.recorded_at

        try:
            with transaction.atomic(using=using):
                entry = LedgerEntry.objects.using(using).create(
                    company_id=company_id,
                    item_id=item_id,
                    transaction_date=when,
                    transaction_type=kind,
                    reference_label=reference_label or '',
                    counterparty_label=counterparty_label or '',
                    actor_id=str(actor_id) if actor_id is not None else None,
                    actor_name=actor_name or ledgerman_settings.DEFAULT_ACTOR_NAME,
                    quantity_change=quantity_change,
                    net_balance=last_balance + quantity_change,
                    source_type=source_type,
                    source_document_id=source_document_id,
                    source_line_id=source_line_id,
                    reverses=reverses,
                    metadata=metadata,
                    recorded_at=recorded_at,
                    sequence=last_sequence + 1,
                )
        except IntegrityError as exc:
            raise ConcurrencyError(
                'CONSISTENCY_CHECK_FAILED',
                company_id=company_id,
                item_id=item_id,
                sequence=last_sequence + 1,
            ) from exc
        except OperationalError as exc:
            if is_lock_contention(exc):
                # SQLite: another writer holds the database lock
                raise ConcurrencyError('LOCK_TIMEOUT', company_id=company_id, item_id=item_id) from exc
            raise PersistenceError('DATABASE_ERROR', company_id=company_id, item_id=item_id,
                                   error=str(exc)) from exc
        except DatabaseError as exc:
            raise PersistenceError(
                'DATABASE_ERROR',
                company_id=company_id,
                item_id=item_id,
                error=str(exc),
            ) from exc

        logger.info(
            "ledger.append",
            extra={
                "company_id": company_id,
                "item_id": item_id,
                "type": kind.value,
                "change": quantity_change,
                "balance": entry.net_balance,
                "sequence": entry.sequence,
            },
        )
        return entry

    @classmethod
    def post(cls, *, using: str = DEFAULT_DB_ALIAS, **fields) -> LedgerEntry:
        """
        Append and refresh the item's stock mirror from the new balance.

        Same arguments as append(). This is the entry point for movement
        mutators: the mirror is written only here and only in the same
        transaction as the entry it reflects.
        """
        entry = cls.append(using=using, **fields)
        get_item_registry().set_stock_mirror(entry.company_id, entry.item_id, entry.net_balance, using=using)
        return entry

    @classmethod
    def compensate(cls, *, company_id, source_type: str, source_document_id: int,
                   reference_label: str = '', counterparty_label: str = '',
                   actor_id=None, actor_name: str | None = None, transaction_date=None,
                   using: str = DEFAULT_DB_ALIAS) -> list[LedgerEntry]:
        """
        Void a source document: append an equal-and-opposite entry for every
        entry it caused that has not been reversed yet.

        Compensations are dated now unless transaction_date is given, and
        each one links back to the entry it cancels via ``reverses``.
        Calling it twice for the same document posts nothing the second time.

        Returns:
            The compensating entries, in item then chronological order
        """
        company_id = normalize_company_id(company_id)
        require_unit_of_work(using, company_id=company_id)

        originals = list(
            LedgerEntry.objects.using(using)
            .for_company(company_id)
            .for_source(source_type, source_document_id)
            .filter(reverses__isnull=True, reversed_by__isnull=True)
            .order_by('item_id', *CHRONOLOGICAL)
        )

        when = as_business_datetime(transaction_date)
        entries = []
        for original in originals:
            entries.append(cls.post(
                company_id=company_id,
                item_id=original.item_id,
                transaction_date=when,
                transaction_type=TransactionType(original.transaction_type).compensation,
                quantity_change=-original.quantity_change,
                reference_label=reference_label or original.reference_label,
                counterparty_label=counterparty_label or original.counterparty_label,
                actor_id=actor_id,
                actor_name=actor_name,
                source_type=original.source_type,
                source_document_id=original.source_document_id,
                source_line_id=original.source_line_id,
                reverses=original,
                using=using,
            ))

        logger.info(
            "ledger.compensate",
            extra={
                "company_id": company_id,
                "source_type": source_type,
                "source_document_id": source_document_id,
                "entries": len(entries),
            },
        )
        return entries

    @classmethod
    def adjust(cls, *, company_id, item_id: int, new_quantity: int, actor_id=None,
               actor_name: str | None = None, transaction_date=None,
               source_document_id: int | None = None,
               using: str = DEFAULT_DB_ALIAS) -> LedgerEntry | None:
        """
        Manual stock correction.

        Calculates delta automatically: new_quantity - current balance.
        Returns None when the balance already matches.

        source_document_id points at the host record of the correction
        (e.g. a StockAdjustment row) so a rebuild can replay it.
        """
        company_id = normalize_company_id(company_id)
        lock_stream(company_id, item_id, get_item_registry(), using)

        head = LedgerEntry.objects.using(using).for_stream(company_id, item_id).head()
        delta = new_quantity - (head.net_balance if head else 0)

        if delta == 0:
            return None

        return cls.post(
            company_id=company_id,
            item_id=item_id,
            transaction_date=transaction_date,
            transaction_type=TransactionType.OPENING,
            quantity_change=delta,
            reference_label=labels.ADJUSTMENT_LABEL,
            counterparty_label=labels.ADJUSTMENT_COUNTERPARTY,
            actor_id=actor_id,
            actor_name=actor_name,
            source_type=SourceType.ADJUSTMENT,
            source_document_id=source_document_id,
            metadata={'new_quantity': new_quantity},
            using=using,
        )
