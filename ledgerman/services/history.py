"""
Item history: read-only projections of the ledger.

All methods are classmethods on Ledger and take no locks.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from django.db import DEFAULT_DB_ALIAS
from django.db.models import Count, Max, Q, Sum
from django.db.models.functions import Coalesce

from ledgerman import labels
from ledgerman.adapters import get_movement_source
from ledgerman.conf import ledgerman_settings
from ledgerman.exceptions import ValidationError
from ledgerman.locking import normalize_company_id
from ledgerman.models.entry import LedgerEntry
from ledgerman.models.enums import HISTORY_CATEGORIES, TransactionType
from ledgerman.timeline import as_business_datetime

# Receiving counts are shown only for these types
_RECEIVING_TYPES = (TransactionType.IN, TransactionType.REJ)


@dataclass(frozen=True)
class HistoryRow:
    """One ledger entry joined back to its originating document."""

    entry_id: int
    transaction_date: datetime
    recorded_at: datetime
    transaction_type: str
    category: str
    quantity_change: int
    net_balance: int
    reference_label: str
    counterparty_label: str
    actor_name: str
    source_type: str | None
    document_number: str | None
    counterparty_name: str | None
    received: int | None = None
    rejected: int | None = None
    short: int | None = None
    challan_number: str | None = None
    challan_date: date | None = None


@dataclass(frozen=True)
class HistorySummary:
    """Totals over an item's whole ledger."""

    company_id: str
    item_id: int
    opening: int
    total_in: int
    total_out: int
    total_rejected: int
    balance: int
    entries: int
    last_transaction_date: datetime | None


_CATEGORY_BY_TYPE = {kind: category for category, kind in HISTORY_CATEGORIES.items()}


def _resolve_types(types) -> set[str]:
    """
    Map user categories (or raw type values) onto TransactionType values.

    Accepts an iterable or a single, possibly comma-separated, string.
    """
    if isinstance(types, str):
        types = types.split(',')
    resolved = set()
    for value in types:
        key = str(value).strip()
        if not key:
            continue
        if key.lower() in HISTORY_CATEGORIES:
            resolved.add(HISTORY_CATEGORIES[key.lower()].value)
        elif key.upper() in TransactionType.values:
            resolved.add(key.upper())
        else:
            raise ValidationError('UNKNOWN_CATEGORY', category=value)
    return resolved


def _upper_bound(value) -> Q:
    # A bare date includes the whole day
    if isinstance(value, date) and not isinstance(value, datetime):
        end = as_business_datetime(datetime.combine(value + timedelta(days=1), time.min))
        return Q(transaction_date__lt=end)
    return Q(transaction_date__lte=as_business_datetime(value))


class LedgerHistory:
    """Read-only history methods."""

    @classmethod
    def history(cls, company_id, item_id: int, date_from=None, date_to=None,
                types=None, search: str | None = None, limit: int | None = None,
                using: str = DEFAULT_DB_ALIAS) -> list[HistoryRow]:
        """
        Everything that happened to an item, latest first.

        Args:
            date_from: Earliest business date (date or datetime, inclusive)
            date_to: Latest business date (a date includes the whole day)
            types: Categories "incoming", "outgoing", "opening", "rejected"
                or raw types; None = all
            search: Case-insensitive match on reference, counterparty or actor
            limit: Row cap (None = HISTORY_LIMIT)

        Returns:
            List of HistoryRow; empty for unknown items or items without entries

        Raises:
            ValidationError('UNKNOWN_CATEGORY'): unrecognized type filter
            ValidationError('INVALID_LIMIT'): negative or non-integer limit
        """
        company_id = normalize_company_id(company_id)
        qs = LedgerEntry.objects.using(using).for_stream(company_id, item_id)

        kinds = _resolve_types(types) if types else None
        if kinds:
            qs = qs.filter(transaction_type__in=kinds)
        if date_from is not None:
            qs = qs.filter(transaction_date__gte=as_business_datetime(date_from))
        if date_to is not None:
            qs = qs.filter(_upper_bound(date_to))
        if search:
            qs = qs.filter(
                Q(reference_label__icontains=search)
                | Q(counterparty_label__icontains=search)
                | Q(actor_name__icontains=search)
            )

        if limit is None:
            limit = ledgerman_settings.HISTORY_LIMIT
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationError('INVALID_LIMIT', limit=limit)
        entries = list(qs.reverse_chronological()[:limit])
        if not entries:
            return []

        refs = {entry.source_ref for entry in entries if entry.source_ref is not None}
        details = get_movement_source().describe(refs) if refs else {}

        return [cls._project(entry, details.get(entry.source_ref)) for entry in entries]

    @classmethod
    def balance(cls, company_id, item_id: int, using: str = DEFAULT_DB_ALIAS) -> int:
        """Latest net_balance of the item (0 if it has no entries)."""
        company_id = normalize_company_id(company_id)
        head = LedgerEntry.objects.using(using).for_stream(company_id, item_id).head()
        return head.net_balance if head else 0

    @classmethod
    def summary(cls, company_id, item_id: int, using: str = DEFAULT_DB_ALIAS) -> HistorySummary:
        """
        Opening, in, out and rejected totals plus the current balance.

        total_out and total_rejected are reported as positive quantities;
        total_rejected is net of returned stock.
        """
        company_id = normalize_company_id(company_id)
        qs = LedgerEntry.objects.using(using).for_stream(company_id, item_id)

        def total(kind):
            return Coalesce(Sum('quantity_change', filter=Q(transaction_type=kind)), 0)

        totals = qs.aggregate(
            opening=total(TransactionType.OPENING),
            total_in=total(TransactionType.IN),
            total_out=total(TransactionType.OUT),
            total_rejected=total(TransactionType.REJ),
            entries=Count('pk'),
            last=Max('transaction_date'),
        )

        return HistorySummary(
            company_id=company_id,
            item_id=item_id,
            opening=totals['opening'],
            total_in=totals['total_in'],
            total_out=-totals['total_out'],
            total_rejected=-totals['total_rejected'],
            balance=cls.balance(company_id, item_id, using=using),
            entries=totals['entries'],
            last_transaction_date=totals['last'],
        )

    # ══════════════════════════════════════════════════════════════
    # INTERNALS
    # ══════════════════════════════════════════════════════════════

    @classmethod
    def _project(cls, entry: LedgerEntry, detail) -> HistoryRow:
        kind = TransactionType(entry.transaction_type)

        if detail is not None:
            document_number = detail.document_number
            counterparty_name = detail.counterparty_name
        else:
            # No structured reference (manual adjustment or label-only row)
            document_number = None
            if entry.source_ref is None:
                document_number = labels.legacy_document_number(kind, entry.reference_label)
            counterparty_name = entry.counterparty_label or None

        receiving = {}
        if detail is not None and kind in _RECEIVING_TYPES:
            receiving = dict(
                received=detail.received,
                rejected=detail.rejected,
                short=detail.short,
                challan_number=detail.challan_number,
                challan_date=detail.challan_date,
            )

        return HistoryRow(
            entry_id=entry.pk,
            transaction_date=entry.transaction_date,
            recorded_at=entry.recorded_at,
            transaction_type=kind.value,
            category=_CATEGORY_BY_TYPE[kind],
            quantity_change=entry.quantity_change,
            net_balance=entry.net_balance,
            reference_label=entry.reference_label,
            counterparty_label=entry.counterparty_label,
            actor_name=entry.actor_name,
            source_type=entry.source_type,
            document_number=document_number,
            counterparty_name=counterparty_name,
            **receiving,
        )
