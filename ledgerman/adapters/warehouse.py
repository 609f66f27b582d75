"""
Warehouse Backends.

Implements ItemRegistry and MovementSource over the ``warehouse`` app.

Vocabulary mapping:
    Ledgerman               →  Warehouse
    ─────────────────────────────────────────
    company_id              →  Company.code
    ItemRecord              →  Item
    set_stock_mirror()      →  Item.current_stock
    ReceiptFact             →  ReceivingLine (completed, active document)
    DispatchFact            →  DispatchLine (completed, active document)
    AdjustmentFact          →  StockAdjustment
"""

import logging
from collections import defaultdict

from django.db import DEFAULT_DB_ALIAS

from ledgerman.models.enums import SourceType
from ledgerman.protocols.items import ItemRecord
from ledgerman.protocols.movements import (
    AdjustmentFact,
    DispatchFact,
    ReceiptFact,
    SourceDetail,
    SourceRef,
)

logger = logging.getLogger(__name__)


def _record(item) -> ItemRecord:
    return ItemRecord(
        item_id=item.pk,
        company_id=item.company.code,
        sku=item.sku,
        name=item.name,
        opening_stock=item.opening_stock,
        created_at=item.created_at,
        current_stock=item.current_stock,
    )


class WarehouseItemRegistry:
    """ItemRegistry backed by warehouse.Item."""

    def _items(self, company_id: str, using: str = DEFAULT_DB_ALIAS):
        from warehouse.models import Item

        return Item.objects.using(using).select_related('company').filter(company__code=company_id)

    def company_exists(self, company_id: str, using: str = DEFAULT_DB_ALIAS) -> bool:
        from warehouse.models import Company

        return Company.objects.using(using).filter(code=company_id).exists()

    def company_ids(self, using: str = DEFAULT_DB_ALIAS) -> list[str]:
        from warehouse.models import Company

        return list(Company.objects.using(using).order_by('code').values_list('code', flat=True))

    def get_item(self, company_id: str, item_id: int,
                 using: str = DEFAULT_DB_ALIAS) -> ItemRecord | None:
        item = self._items(company_id, using).filter(pk=item_id).first()
        return _record(item) if item else None

    def lock_item(self, company_id: str, item_id: int, using: str) -> ItemRecord | None:
        # of=('self',) keeps the company row unlocked
        item = (
            self._items(company_id, using)
            .select_for_update(of=('self',))
            .filter(pk=item_id)
            .first()
        )
        return _record(item) if item else None

    def items_for_company(self, company_id: str, lock: bool = False,
                          using: str = DEFAULT_DB_ALIAS) -> list[ItemRecord]:
        qs = self._items(company_id, using).order_by('pk')
        if lock:
            qs = qs.select_for_update(of=('self',))
        return [_record(item) for item in qs]

    def set_stock_mirror(self, company_id: str, item_id: int, balance: int,
                         using: str = DEFAULT_DB_ALIAS) -> None:
        self._items(company_id, using).filter(pk=item_id).update(current_stock=balance)


class WarehouseMovementSource:
    """MovementSource backed by warehouse receiving, dispatch and adjustment records."""

    def receipts_for_item(self, company_id: str, item_id: int) -> list[ReceiptFact]:
        from warehouse.models import DocumentStatus, ReceivingLine

        lines = (
            ReceivingLine.objects
            .select_related('document')
            .filter(
                item_id=item_id,
                document__company__code=company_id,
                document__status=DocumentStatus.COMPLETED,
                document__is_active=True,
            )
            .order_by('document__created_at', 'document_id', 'pk')
        )
        return [
            ReceiptFact(
                document_id=line.document_id,
                line_id=line.pk,
                document_number=line.document.document_number,
                business_date=line.document.receiving_date,
                document_created_at=line.document.created_at,
                received=line.received,
                rejected=line.rejected,
                counterparty=line.document.counterparty_label,
                actor_id=line.document.received_by_id,
                actor_name=line.document.received_by_name or None,
            )
            for line in lines
        ]

    def dispatches_for_item(self, company_id: str, item_id: int) -> list[DispatchFact]:
        from warehouse.models import DispatchLine, DocumentStatus

        lines = (
            DispatchLine.objects
            .select_related('document')
            .filter(
                item_id=item_id,
                document__company__code=company_id,
                document__status=DocumentStatus.COMPLETED,
                document__is_active=True,
            )
            .order_by('document__created_at', 'document_id', 'pk')
        )
        return [
            DispatchFact(
                document_id=line.document_id,
                line_id=line.pk,
                document_number=line.document.document_number,
                business_date=line.document.dispatch_date,
                document_created_at=line.document.created_at,
                dispatched=line.quantity,
                counterparty=line.document.counterparty_label,
                actor_id=line.document.dispatched_by_id,
                actor_name=line.document.dispatched_by_name or None,
            )
            for line in lines
        ]

    def adjustments_for_item(self, company_id: str, item_id: int) -> list[AdjustmentFact]:
        from warehouse.models import StockAdjustment

        adjustments = (
            StockAdjustment.objects
            .filter(item_id=item_id, company__code=company_id)
            .exclude(quantity_change=0)
            .order_by('created_at', 'pk')
        )
        return [
            AdjustmentFact(
                document_id=adjustment.pk,
                business_date=adjustment.adjusted_at,
                document_created_at=adjustment.created_at,
                quantity_change=adjustment.quantity_change,
                actor_id=adjustment.actor_id,
                actor_name=adjustment.actor_name or None,
            )
            for adjustment in adjustments
        ]

    def describe(self, refs) -> dict[SourceRef, SourceDetail]:
        """
        One query per source type.

        Voided documents still resolve, so compensations keep their
        document number in history.
        """
        from warehouse.models import DispatchDocument, ReceivingLine

        by_type = defaultdict(set)
        for ref in refs:
            by_type[ref.source_type].add(ref)

        details = {}

        receiving = by_type.get(SourceType.RECEIVING.value)
        if receiving:
            line_ids = {ref.line_id for ref in receiving if ref.line_id is not None}
            lines = {
                line.pk: line
                for line in ReceivingLine.objects.select_related('document').filter(pk__in=line_ids)
            }
            for ref in receiving:
                line = lines.get(ref.line_id)
                if line is None or line.document_id != ref.document_id:
                    continue
                details[ref] = SourceDetail(
                    document_number=line.document.document_number,
                    counterparty_name=line.document.vendor_name or None,
                    received=line.received,
                    rejected=line.rejected,
                    short=line.short,
                    challan_number=line.challan_number or None,
                    challan_date=line.challan_date,
                )

        dispatch = by_type.get(SourceType.DISPATCH.value)
        if dispatch:
            documents = DispatchDocument.objects.in_bulk({ref.document_id for ref in dispatch})
            for ref in dispatch:
                document = documents.get(ref.document_id)
                if document is None:
                    continue
                details[ref] = SourceDetail(
                    document_number=document.document_number,
                    counterparty_name=document.destination_name or document.counterparty_label,
                )

        unresolved = len(set().union(*by_type.values())) - len(details) if by_type else 0
        if unresolved:
            logger.debug("describe: %d source references did not resolve", unresolved)
        return details
