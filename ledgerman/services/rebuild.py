"""
Ledger rebuild: the offline path (replay, verify, mirror sync).

The replay is the reference definition of a correct ledger: for each item,
an OPENING entry, then IN/REJ per receiving line, OUT per dispatch line and
an OPENING-typed entry per manual adjustment, sorted by business date and
document creation time, with a running total.

This is a maintenance operation. It deletes the rows it regenerates and must
not race live appends; it holds the row locks of every item it rebuilds.
"""

import logging
from dataclasses import dataclass, field

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction

from ledgerman import labels
from ledgerman.adapters import get_item_registry, get_movement_source
from ledgerman.conf import ledgerman_settings
from ledgerman.exceptions import NotFoundError, PersistenceError
from ledgerman.locking import lock_company, lock_stream, normalize_company_id
from ledgerman.models.entry import LedgerEntry
from ledgerman.models.enums import SourceType, TransactionType
from ledgerman.protocols.items import ItemRecord
from ledgerman.timeline import as_business_datetime, replay_key

logger = logging.getLogger('ledgerman')


@dataclass
class RebuildResult:
    """Outcome of a rebuild run."""

    company_id: str
    items: int = 0
    entries: int = 0
    balances: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Discrepancy:
    """One broken invariant found by verify()."""

    company_id: str
    item_id: int
    kind: str  # "balance" or "mirror"
    expected: int
    found: int
    entry_id: int | None = None


class LedgerRebuild:
    """Replay and audit methods."""

    @classmethod
    def plan(cls, company_id, item_id: int, using: str = DEFAULT_DB_ALIAS) -> list[LedgerEntry]:
        """
        Regenerated entries for one item, unsaved (dry run).

        Raises:
            NotFoundError('ITEM_NOT_FOUND'): item does not belong to company
        """
        company_id = normalize_company_id(company_id)
        item = get_item_registry().get_item(company_id, item_id, using)
        if item is None:
            raise NotFoundError('ITEM_NOT_FOUND', company_id=company_id, item_id=item_id)
        return cls._replay(item)

    @classmethod
    def rebuild(cls, company_id, using: str = DEFAULT_DB_ALIAS) -> RebuildResult:
        """
        Regenerate the ledger of every item the company owns.

        One transaction for the whole company: either every item is rebuilt
        or nothing changes.

        Raises:
            NotFoundError('COMPANY_NOT_FOUND'): unknown company
            ConcurrencyError('LOCK_TIMEOUT'): live writers held an item too long
            PersistenceError: store failure
        """
        company_id = normalize_company_id(company_id)
        result = RebuildResult(company_id=company_id)
        registry = get_item_registry()

        with transaction.atomic(using=using):
            for item in lock_company(company_id, registry, using):
                cls._rebuild_item(item, result, using)

        logger.info(
            "ledger.rebuild.done",
            extra={
                "company_id": company_id,
                "items": result.items,
                "entries": result.entries,
            },
        )
        return result

    @classmethod
    def rebuild_item(cls, company_id, item_id: int, using: str = DEFAULT_DB_ALIAS) -> RebuildResult:
        """Regenerate one item's ledger (chunked, recoverable runs)."""
        company_id = normalize_company_id(company_id)
        result = RebuildResult(company_id=company_id)

        with transaction.atomic(using=using):
            item = lock_stream(company_id, item_id, get_item_registry(), using)
            cls._rebuild_item(item, result, using)

        return result

    @classmethod
    def verify(cls, company_id, item_id: int | None = None,
               using: str = DEFAULT_DB_ALIAS) -> list[Discrepancy]:
        """
        Audit running balances and stock mirrors.

        Use for:
        - Integrity audit
        - Deciding whether a rebuild is needed
        - Debug

        Returns:
            Every entry whose net_balance breaks the running total, and every
            item whose mirror differs from its latest balance
        """
        company_id = normalize_company_id(company_id)
        registry = get_item_registry()

        if item_id is not None:
            item = registry.get_item(company_id, item_id, using)
            if item is None:
                raise NotFoundError('ITEM_NOT_FOUND', company_id=company_id, item_id=item_id)
            items = [item]
        else:
            if not registry.company_exists(company_id, using):
                raise NotFoundError('COMPANY_NOT_FOUND', company_id=company_id)
            items = registry.items_for_company(company_id, using=using)

        found = []
        for item in items:
            running = 0
            stream = LedgerEntry.objects.using(using).for_stream(company_id, item.item_id).chronological()
            for entry in stream.iterator():
                running += entry.quantity_change
                if entry.net_balance != running:
                    found.append(Discrepancy(company_id, item.item_id, 'balance',
                                             expected=running, found=entry.net_balance,
                                             entry_id=entry.pk))
                    running = entry.net_balance
            if item.current_stock != running:
                found.append(Discrepancy(company_id, item.item_id, 'mirror',
                                         expected=running, found=item.current_stock))

        for discrepancy in found:
            logger.warning(
                "ledger.verify.mismatch",
                extra={
                    "company_id": discrepancy.company_id,
                    "item_id": discrepancy.item_id,
                    "kind": discrepancy.kind,
                    "expected": discrepancy.expected,
                    "found": discrepancy.found,
                    "entry_id": discrepancy.entry_id,
                },
            )
        return found

    @classmethod
    def sync_mirrors(cls, company_id=None, using: str = DEFAULT_DB_ALIAS) -> int:
        """
        Refresh item stock mirrors from their latest balances.

        Args:
            company_id: One company, or None for every company

        Returns:
            Number of mirrors that changed
        """
        registry = get_item_registry()
        if company_id is None:
            companies = registry.company_ids(using)
        else:
            companies = [normalize_company_id(company_id)]

        synced = 0
        for code in companies:
            with transaction.atomic(using=using):
                for item in lock_company(code, registry, using):
                    head = LedgerEntry.objects.using(using).for_stream(code, item.item_id).head()
                    balance = head.net_balance if head else 0
                    if balance == item.current_stock:
                        continue
                    registry.set_stock_mirror(code, item.item_id, balance, using=using)
                    synced += 1
                    logger.info(
                        "ledger.mirror.synced",
                        extra={
                            "company_id": code,
                            "item_id": item.item_id,
                            "old": item.current_stock,
                            "new": balance,
                        },
                    )
        return synced

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _rebuild_item(cls, item: ItemRecord, result: RebuildResult, using: str) -> None:
        entries = cls._replay(item)
        try:
            # Maintenance path: the only place ledger rows are removed.
            LedgerEntry.objects.using(using).for_stream(item.company_id, item.item_id).delete()
            LedgerEntry.objects.using(using).bulk_create(entries)
        except DatabaseError as exc:
            raise PersistenceError(
                'DATABASE_ERROR',
                company_id=item.company_id,
                item_id=item.item_id,
                error=str(exc),
            ) from exc

        balance = entries[-1].net_balance
        get_item_registry().set_stock_mirror(item.company_id, item.item_id, balance, using=using)

        result.items += 1
        result.entries += len(entries)
        result.balances[item.item_id] = balance
        logger.info(
            "ledger.rebuild.item",
            extra={
                "company_id": item.company_id,
                "item_id": item.item_id,
                "entries": len(entries),
                "balance": balance,
            },
        )

    @classmethod
    def _replay(cls, item: ItemRecord) -> list[LedgerEntry]:
        """Candidate entries, sorted, with running balances and sequences."""
        source = get_movement_source()
        opened = as_business_datetime(item.created_at)

        candidates = [
            cls._candidate(
                item,
                transaction_type=TransactionType.OPENING,
                quantity_change=item.opening_stock or 0,
                transaction_date=opened,
                recorded_at=opened,
                reference_label=labels.OPENING_LABEL,
                counterparty_label=labels.OPENING_COUNTERPARTY,
                source_type=SourceType.OPENING,
            )
        ]

        for fact in source.receipts_for_item(item.company_id, item.item_id):
            common = dict(
                transaction_date=as_business_datetime(fact.business_date or fact.document_created_at),
                recorded_at=as_business_datetime(fact.document_created_at),
                counterparty_label=fact.counterparty,
                actor_id=fact.actor_id,
                actor_name=fact.actor_name,
                source_type=SourceType.RECEIVING,
                source_document_id=fact.document_id,
                source_line_id=fact.line_id,
            )
            if fact.received:
                candidates.append(cls._candidate(
                    item,
                    transaction_type=TransactionType.IN,
                    quantity_change=fact.received,
                    reference_label=labels.reference_label(TransactionType.IN, fact.document_number),
                    **common,
                ))
            if fact.rejected:
                candidates.append(cls._candidate(
                    item,
                    transaction_type=TransactionType.REJ,
                    quantity_change=-fact.rejected,
                    reference_label=labels.reference_label(TransactionType.REJ, fact.document_number),
                    **common,
                ))

        for fact in source.dispatches_for_item(item.company_id, item.item_id):
            if not fact.dispatched:
                continue
            candidates.append(cls._candidate(
                item,
                transaction_type=TransactionType.OUT,
                quantity_change=-fact.dispatched,
                transaction_date=as_business_datetime(fact.business_date or fact.document_created_at),
                recorded_at=as_business_datetime(fact.document_created_at),
                reference_label=labels.reference_label(TransactionType.OUT, fact.document_number),
                counterparty_label=fact.counterparty,
                actor_id=fact.actor_id,
                actor_name=fact.actor_name,
                source_type=SourceType.DISPATCH,
                source_document_id=fact.document_id,
                source_line_id=fact.line_id,
            ))

        for fact in source.adjustments_for_item(item.company_id, item.item_id):
            if not fact.quantity_change:
                continue
            candidates.append(cls._candidate(
                item,
                transaction_type=TransactionType.OPENING,
                quantity_change=fact.quantity_change,
                transaction_date=as_business_datetime(fact.business_date or fact.document_created_at),
                recorded_at=as_business_datetime(fact.document_created_at),
                reference_label=labels.ADJUSTMENT_LABEL,
                counterparty_label=labels.ADJUSTMENT_COUNTERPARTY,
                actor_id=fact.actor_id,
                actor_name=fact.actor_name,
                source_type=SourceType.ADJUSTMENT,
                source_document_id=fact.document_id,
            ))

        # list.sort is stable: emission order breaks the remaining ties
        candidates.sort(key=replay_key)

        running = 0
        for sequence, entry in enumerate(candidates, start=1):
            running += entry.quantity_change
            entry.net_balance = running
            entry.sequence = sequence
        return candidates

    @classmethod
    def _candidate(cls, item: ItemRecord, *, actor_id=None, actor_name=None, **fields) -> LedgerEntry:
        return LedgerEntry(
            company_id=item.company_id,
            item_id=item.item_id,
            actor_id=str(actor_id) if actor_id is not None else None,
            actor_name=actor_name or ledgerman_settings.DEFAULT_ACTOR_NAME,
            net_balance=0,
            sequence=0,
            **fields,
        )
