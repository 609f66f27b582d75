"""
Movement Source Protocol: Interface to the authoritative movement documents.

The rebuild job replays ``ReceiptFact`` / ``DispatchFact`` records; the
history projector resolves entries back to their documents through
``describe()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, NamedTuple, Protocol, runtime_checkable


class SourceRef(NamedTuple):
    """Structured pointer from a ledger entry to its originating record."""

    source_type: str
    document_id: int
    line_id: int | None = None


# ══════════════════════════════════════════════════════════════
# DATA TYPES
# ══════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ReceiptFact:
    """One completed, active receiving line for an item."""

    document_id: int
    line_id: int
    document_number: str
    business_date: datetime
    document_created_at: datetime
    received: int
    rejected: int
    counterparty: str  # "Vendor: Acme"
    actor_id: str | None = None
    actor_name: str | None = None


@dataclass(frozen=True)
class DispatchFact:
    """One completed, active dispatch line for an item."""

    document_id: int
    line_id: int
    document_number: str
    business_date: datetime
    document_created_at: datetime
    dispatched: int
    counterparty: str  # "Customer: Foo", "Store to Factory"
    actor_id: str | None = None
    actor_name: str | None = None


@dataclass(frozen=True)
class AdjustmentFact:
    """One manual stock correction for an item."""

    document_id: int
    business_date: datetime
    document_created_at: datetime
    quantity_change: int
    actor_id: str | None = None
    actor_name: str | None = None


@dataclass(frozen=True)
class SourceDetail:
    """Document facts shown next to a history row."""

    document_number: str
    counterparty_name: str | None = None
    received: int | None = None
    rejected: int | None = None
    short: int | None = None
    challan_number: str | None = None
    challan_date: date | None = None


# ══════════════════════════════════════════════════════════════
# PROTOCOL
# ══════════════════════════════════════════════════════════════


@runtime_checkable
class MovementSource(Protocol):
    """
    Protocol for reading movement documents.

    Implementations must return facts in a deterministic order (document
    creation time, then line id) so that replay is reproducible.
    """

    def receipts_for_item(self, company_id: str, item_id: int) -> Iterable[ReceiptFact]:
        """Completed, active receiving lines for the item."""
        ...

    def dispatches_for_item(self, company_id: str, item_id: int) -> Iterable[DispatchFact]:
        """Completed, active dispatch lines for the item."""
        ...

    def adjustments_for_item(self, company_id: str, item_id: int) -> Iterable[AdjustmentFact]:
        """Manual stock corrections for the item."""
        ...

    def describe(self, refs: Iterable[SourceRef]) -> dict[SourceRef, SourceDetail]:
        """
        Resolve many source references at once.

        Args:
            refs: References taken from ledger entries

        Returns:
            Dict[SourceRef, SourceDetail]; unresolvable refs are omitted
        """
        ...
