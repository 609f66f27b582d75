"""
Warehouse movement mutators.

Each function is one unit of work: the document change and every ledger
entry it causes commit or roll back together. Lines are posted in item
order so two documents touching the same items lock them in the same order.
"""

import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from ledgerman import labels, ledger
from ledgerman.exceptions import NotFoundError, ValidationError
from ledgerman.models.enums import SourceType, TransactionType
from warehouse.models import (
    Company,
    DestinationType,
    DispatchDocument,
    DispatchLine,
    DocumentStatus,
    Item,
    ReceivingDocument,
    ReceivingLine,
    StockAdjustment,
)

logger = logging.getLogger('warehouse')


def _require_positive(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError('INVALID_QUANTITY', quantity_change=quantity)


def _lock_document(model, document):
    try:
        return model.objects.select_for_update().get(pk=document.pk)
    except model.DoesNotExist:
        raise NotFoundError('DOCUMENT_NOT_FOUND', document_id=document.pk) from None


def _require_status(document, status: str) -> None:
    if document.status != status or not document.is_active:
        raise ValidationError(
            'INVALID_STATUS',
            current=document.status,
            expected=status,
            is_active=document.is_active,
        )


# ══════════════════════════════════════════════════════════════
# ITEMS
# ══════════════════════════════════════════════════════════════


def create_item(company: Company, sku: str, name: str, opening_stock: int = 0,
                created_at: datetime | None = None, actor_id=None, actor_name=None) -> Item:
    """
    Create an item and post its opening balance.

    Nothing is posted when opening_stock is 0; the rebuild still emits a
    zero OPENING entry for it.
    """
    with transaction.atomic():
        item = Item.objects.create(
            company=company,
            sku=sku,
            name=name,
            opening_stock=opening_stock,
            created_at=created_at or timezone.now(),
        )
        if opening_stock:
            ledger.post(
                company_id=company.code,
                item_id=item.pk,
                transaction_date=item.created_at,
                transaction_type=TransactionType.OPENING,
                quantity_change=opening_stock,
                reference_label=labels.OPENING_LABEL,
                counterparty_label=labels.OPENING_COUNTERPARTY,
                actor_id=actor_id,
                actor_name=actor_name,
                source_type=SourceType.OPENING,
            )
            item.refresh_from_db(fields=['current_stock'])

    logger.info("warehouse.item.created", extra={"company_id": company.code, "item_id": item.pk})
    return item


def adjust_stock(item: Item, new_quantity: int, reason: str = '', actor_id=None,
                 actor_name=None, adjusted_at: datetime | None = None) -> StockAdjustment | None:
    """
    Set an item's stock to new_quantity.

    Returns:
        The StockAdjustment, or None when the stock already matched
    """
    if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
        raise ValidationError('INVALID_QUANTITY', quantity_change=new_quantity)

    with transaction.atomic():
        adjustment = StockAdjustment.objects.create(
            company=item.company,
            item=item,
            new_quantity=new_quantity,
            reason=reason,
            adjusted_at=adjusted_at or timezone.now(),
            actor_id=actor_id,
            actor_name=actor_name or '',
        )
        entry = ledger.adjust(
            company_id=item.company.code,
            item_id=item.pk,
            new_quantity=new_quantity,
            actor_id=actor_id,
            actor_name=actor_name,
            transaction_date=adjustment.adjusted_at,
            source_document_id=adjustment.pk,
        )
        if entry is None:
            adjustment.delete()
            return None

        adjustment.quantity_change = entry.quantity_change
        adjustment.save(update_fields=['quantity_change'])

    logger.info(
        "warehouse.stock.adjusted",
        extra={
            "company_id": item.company.code,
            "item_id": item.pk,
            "change": adjustment.quantity_change,
            "new_quantity": new_quantity,
        },
    )
    return adjustment


# ══════════════════════════════════════════════════════════════
# RECEIVING
# ══════════════════════════════════════════════════════════════


def complete_receiving(document: ReceivingDocument) -> ReceivingDocument:
    """
    Mark a draft receiving document completed.

    Posts IN +received and REJ -rejected for every line.

    Raises:
        ValidationError('INVALID_STATUS'): document is not an active draft
        ValidationError('INSUFFICIENT_QUANTITY'): a line rejects more than it received
    """
    with transaction.atomic():
        doc = _lock_document(ReceivingDocument, document)
        _require_status(doc, DocumentStatus.DRAFT)
        code = doc.company.code

        for line in doc.lines.select_related('item').order_by('item_id', 'pk'):
            if line.rejected > line.received:
                raise ValidationError(
                    'INSUFFICIENT_QUANTITY',
                    line_id=line.pk,
                    available=line.received,
                    requested=line.rejected,
                )
            common = dict(
                company_id=code,
                item_id=line.item_id,
                transaction_date=doc.receiving_date,
                counterparty_label=doc.counterparty_label,
                actor_id=doc.received_by_id,
                actor_name=doc.received_by_name or None,
                source_type=SourceType.RECEIVING,
                source_document_id=doc.pk,
                source_line_id=line.pk,
            )
            if line.received:
                ledger.post(
                    transaction_type=TransactionType.IN,
                    quantity_change=line.received,
                    reference_label=labels.reference_label(TransactionType.IN, doc.document_number),
                    **common,
                )
            if line.rejected:
                ledger.post(
                    transaction_type=TransactionType.REJ,
                    quantity_change=-line.rejected,
                    reference_label=labels.reference_label(TransactionType.REJ, doc.document_number),
                    **common,
                )

        doc.status = DocumentStatus.COMPLETED
        doc.save(update_fields=['status'])

    logger.info("warehouse.receiving.completed", extra={"company_id": code, "document_id": doc.pk})
    return doc


def reject_received(line: ReceivingLine, quantity: int, when=None,
                    actor_id=None, actor_name=None) -> ReceivingLine:
    """
    Reject stock that was already received (REJ -quantity).

    Raises:
        ValidationError('INSUFFICIENT_QUANTITY'): more than received - rejected
    """
    _require_positive(quantity)

    with transaction.atomic():
        doc = _lock_document(ReceivingDocument, line.document)
        _require_status(doc, DocumentStatus.COMPLETED)
        line = ReceivingLine.objects.select_for_update().get(pk=line.pk)

        available = line.received - line.rejected
        if quantity > available:
            raise ValidationError(
                'INSUFFICIENT_QUANTITY',
                line_id=line.pk,
                available=available,
                requested=quantity,
            )

        ledger.post(
            company_id=doc.company.code,
            item_id=line.item_id,
            transaction_date=when,
            transaction_type=TransactionType.REJ,
            quantity_change=-quantity,
            reference_label=labels.reference_label(TransactionType.REJ, doc.document_number),
            counterparty_label=doc.counterparty_label,
            actor_id=actor_id,
            actor_name=actor_name,
            source_type=SourceType.RECEIVING,
            source_document_id=doc.pk,
            source_line_id=line.pk,
        )
        line.rejected += quantity
        line.save(update_fields=['rejected'])

    return line


def return_rejected(line: ReceivingLine, quantity: int, when=None,
                    actor_id=None, actor_name=None) -> ReceivingLine:
    """
    Restore rejected stock that came back usable (REJ +quantity).

    Raises:
        ValidationError('INSUFFICIENT_QUANTITY'): more than currently rejected
    """
    _require_positive(quantity)

    with transaction.atomic():
        doc = _lock_document(ReceivingDocument, line.document)
        _require_status(doc, DocumentStatus.COMPLETED)
        line = ReceivingLine.objects.select_for_update().get(pk=line.pk)

        if quantity > line.rejected:
            raise ValidationError(
                'INSUFFICIENT_QUANTITY',
                line_id=line.pk,
                available=line.rejected,
                requested=quantity,
            )

        ledger.post(
            company_id=doc.company.code,
            item_id=line.item_id,
            transaction_date=when,
            transaction_type=TransactionType.REJ,
            quantity_change=quantity,
            reference_label=labels.reference_label(TransactionType.REJ, doc.document_number),
            counterparty_label=doc.counterparty_label,
            actor_id=actor_id,
            actor_name=actor_name,
            source_type=SourceType.RECEIVING,
            source_document_id=doc.pk,
            source_line_id=line.pk,
        )
        line.rejected -= quantity
        line.save(update_fields=['rejected'])

    return line


def receive_short(line: ReceivingLine, quantity: int, when=None,
                  actor_id=None, actor_name=None) -> ReceivingLine:
    """
    Book short stock that arrived after the document was completed.

    Posts IN +quantity labelled "IN (Short) / <invoice>" and moves the
    quantity from short into received, so a rebuild replays it as part of
    the original receipt.

    Raises:
        ValidationError('INSUFFICIENT_QUANTITY'): more than the line is short
    """
    _require_positive(quantity)

    with transaction.atomic():
        doc = _lock_document(ReceivingDocument, line.document)
        _require_status(doc, DocumentStatus.COMPLETED)
        line = ReceivingLine.objects.select_for_update().get(pk=line.pk)

        if quantity > line.short:
            raise ValidationError(
                'INSUFFICIENT_QUANTITY',
                line_id=line.pk,
                available=line.short,
                requested=quantity,
            )

        ledger.post(
            company_id=doc.company.code,
            item_id=line.item_id,
            transaction_date=when,
            transaction_type=TransactionType.IN,
            quantity_change=quantity,
            reference_label=labels.reference_label(TransactionType.IN, doc.document_number,
                                                   qualifier=labels.SHORT),
            counterparty_label=doc.counterparty_label,
            actor_id=actor_id if actor_id is not None else doc.received_by_id,
            actor_name=actor_name or doc.received_by_name or None,
            source_type=SourceType.RECEIVING,
            source_document_id=doc.pk,
            source_line_id=line.pk,
        )
        line.short -= quantity
        line.received += quantity
        line.save(update_fields=['short', 'received'])

    logger.info(
        "warehouse.receiving.short_received",
        extra={"company_id": doc.company.code, "document_id": doc.pk, "line_id": line.pk,
               "quantity": quantity},
    )
    return line


def correct_rejected(line: ReceivingLine, rejected: int, when=None,
                     actor_id=None, actor_name=None) -> ReceivingLine:
    """
    Set a completed line's rejected count.

    Posts the difference as REJ labelled "REJ (Adj) / <invoice>"; nothing
    is posted when the count is unchanged.

    Raises:
        ValidationError('INVALID_QUANTITY'): negative or non-integer count
        ValidationError('INSUFFICIENT_QUANTITY'): more rejected than received
    """
    if isinstance(rejected, bool) or not isinstance(rejected, int) or rejected < 0:
        raise ValidationError('INVALID_QUANTITY', quantity_change=rejected)

    with transaction.atomic():
        doc = _lock_document(ReceivingDocument, line.document)
        _require_status(doc, DocumentStatus.COMPLETED)
        line = ReceivingLine.objects.select_for_update().get(pk=line.pk)

        if rejected > line.received:
            raise ValidationError(
                'INSUFFICIENT_QUANTITY',
                line_id=line.pk,
                available=line.received,
                requested=rejected,
            )
        delta = rejected - line.rejected
        if not delta:
            return line

        ledger.post(
            company_id=doc.company.code,
            item_id=line.item_id,
            transaction_date=when,
            transaction_type=TransactionType.REJ,
            quantity_change=-delta,
            reference_label=labels.reference_label(TransactionType.REJ, doc.document_number,
                                                   qualifier=labels.ADJ),
            counterparty_label=doc.counterparty_label,
            actor_id=actor_id,
            actor_name=actor_name,
            source_type=SourceType.RECEIVING,
            source_document_id=doc.pk,
            source_line_id=line.pk,
        )
        line.rejected = rejected
        line.save(update_fields=['rejected'])

    return line


def void_receiving(document: ReceivingDocument, actor_id=None, actor_name=None) -> list:
    """
    Cancel a receiving document: compensate its entries, then soft delete.

    Returns:
        The compensating ledger entries (empty for drafts or repeat calls)
    """
    with transaction.atomic():
        doc = _lock_document(ReceivingDocument, document)
        entries = ledger.compensate(
            company_id=doc.company.code,
            source_type=SourceType.RECEIVING,
            source_document_id=doc.pk,
            reference_label=labels.void_label(doc.document_number),
            actor_id=actor_id,
            actor_name=actor_name,
        )
        if doc.is_active:
            doc.is_active = False
            doc.save(update_fields=['is_active'])

    logger.info(
        "warehouse.receiving.voided",
        extra={"company_id": doc.company.code, "document_id": doc.pk, "entries": len(entries)},
    )
    return entries


# ══════════════════════════════════════════════════════════════
# DISPATCH
# ══════════════════════════════════════════════════════════════


def complete_dispatch(document: DispatchDocument) -> DispatchDocument:
    """
    Mark a draft dispatch document completed (OUT -quantity per line).

    Stock may go negative; the ledger records what physically left.
    """
    with transaction.atomic():
        doc = _lock_document(DispatchDocument, document)
        _require_status(doc, DocumentStatus.DRAFT)
        code = doc.company.code

        for line in doc.lines.select_related('item').order_by('item_id', 'pk'):
            _require_positive(line.quantity)
            ledger.post(
                company_id=code,
                item_id=line.item_id,
                transaction_date=doc.dispatch_date,
                transaction_type=TransactionType.OUT,
                quantity_change=-line.quantity,
                reference_label=labels.reference_label(TransactionType.OUT, doc.document_number),
                counterparty_label=doc.counterparty_label,
                actor_id=doc.dispatched_by_id,
                actor_name=doc.dispatched_by_name or None,
                source_type=SourceType.DISPATCH,
                source_document_id=doc.pk,
                source_line_id=line.pk,
            )

        doc.status = DocumentStatus.COMPLETED
        doc.save(update_fields=['status'])

    logger.info("warehouse.dispatch.completed", extra={"company_id": code, "document_id": doc.pk})
    return doc


def void_dispatch(document: DispatchDocument, actor_id=None, actor_name=None) -> list:
    """Cancel a dispatch document: compensate its entries, then soft delete."""
    with transaction.atomic():
        doc = _lock_document(DispatchDocument, document)
        entries = ledger.compensate(
            company_id=doc.company.code,
            source_type=SourceType.DISPATCH,
            source_document_id=doc.pk,
            reference_label=labels.void_label(doc.document_number),
            actor_id=actor_id,
            actor_name=actor_name,
        )
        if doc.is_active:
            doc.is_active = False
            doc.save(update_fields=['is_active'])

    logger.info(
        "warehouse.dispatch.voided",
        extra={"company_id": doc.company.code, "document_id": doc.pk, "entries": len(entries)},
    )
    return entries


# ══════════════════════════════════════════════════════════════
# MANUFACTURING
# ══════════════════════════════════════════════════════════════


def record_manufacturing(company: Company, finished_item: Item, quantity: int,
                         components: list[tuple[Item, int]], batch: str,
                         when: datetime | None = None, actor_id=None,
                         actor_name=None) -> tuple[DispatchDocument, ReceivingDocument]:
    """
    Consume components and produce a finished good.

    Creates a completed dispatch to the factory for the components and a
    completed receiving for the finished good, both numbered MFG-<batch>,
    so the rebuild replays manufacturing like any other movement.

    Args:
        components: (item, quantity consumed) pairs
    """
    _require_positive(quantity)
    for _, consumed in components:
        _require_positive(consumed)

    number = f"MFG-{batch}"
    when = when or timezone.now()

    with transaction.atomic():
        consumption = DispatchDocument.objects.create(
            company=company,
            invoice_challan_number=number,
            dispatch_date=when,
            destination_type=DestinationType.FACTORY,
            dispatched_by_id=actor_id,
            dispatched_by_name=actor_name or '',
        )
        DispatchLine.objects.bulk_create([
            DispatchLine(document=consumption, item=item, quantity=consumed)
            for item, consumed in components
        ])
        complete_dispatch(consumption)

        production = ReceivingDocument.objects.create(
            company=company,
            invoice_number=number,
            receiving_date=when,
            vendor_name='Production',
            received_by_id=actor_id,
            received_by_name=actor_name or '',
        )
        ReceivingLine.objects.create(document=production, item=finished_item, received=quantity)
        complete_receiving(production)

    logger.info(
        "warehouse.manufacturing.recorded",
        extra={
            "company_id": company.code,
            "batch": batch,
            "finished_item_id": finished_item.pk,
            "quantity": quantity,
        },
    )
    consumption.refresh_from_db()
    production.refresh_from_db()
    return consumption, production
