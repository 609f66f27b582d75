"""
LedgerEntry model: Immutable, per-item log of signed quantity changes.
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledgerman.models.enums import SourceType, TransactionType


# Chronological order of a stream: business date, then write time, then insertion sequence
CHRONOLOGICAL = ('transaction_date', 'recorded_at', 'sequence')
REVERSE_CHRONOLOGICAL = tuple(f'-{field}' for field in CHRONOLOGICAL)


class LedgerEntryQuerySet(models.QuerySet):
    """QuerySet with stream and ordering helpers."""

    def for_stream(self, company_id: str, item_id: int):
        """Entries of one (company, item) stream."""
        return self.filter(company_id=company_id, item_id=item_id)

    def for_company(self, company_id: str):
        return self.filter(company_id=company_id)

    def chronological(self):
        return self.order_by(*CHRONOLOGICAL)

    def reverse_chronological(self):
        return self.order_by(*REVERSE_CHRONOLOGICAL)

    def head(self):
        """Latest entry of the queryset, or None."""
        return self.reverse_chronological().first()

    def for_source(self, source_type: str, document_id: int):
        return self.filter(source_type=source_type, source_document_id=document_id)


class LedgerEntry(models.Model):
    """
    One immutable, signed quantity change for one item.

    Rules:
    - NEVER update() or delete() in normal operation
    - Corrections are new entries with inverse delta (see ``reverses``)
    - net_balance is the running total through this entry, in
      (transaction_date, recorded_at, sequence) order

    Only the rebuild job removes rows, as a maintenance operation.
    """

    company_id = models.CharField(
        max_length=50,
        db_index=True,
        verbose_name=_('Company'),
    )
    item_id = models.PositiveBigIntegerField(
        verbose_name=_('Item'),
    )

    transaction_date = models.DateTimeField(
        verbose_name=_('Transaction date'),
        help_text=_('Business date of the movement.'),
    )
    transaction_type = models.CharField(
        max_length=10,
        choices=TransactionType.choices,
        verbose_name=_('Type'),
    )

    reference_label = models.CharField(
        max_length=255,
        blank=True,
        default='',
        verbose_name=_('Reference'),
        help_text=_('Display only. Ex: "IN / INV-2031"'),
    )
    counterparty_label = models.CharField(
        max_length=255,
        blank=True,
        default='',
        verbose_name=_('Source / destination'),
    )
    actor_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        verbose_name=_('Actor ID'),
    )
    actor_name = models.CharField(
        max_length=255,
        default='System',
        verbose_name=_('Actor'),
    )

    quantity_change = models.IntegerField(
        verbose_name=_('Change'),
        help_text=_('Positive = stock in, Negative = stock out'),
    )
    net_balance = models.IntegerField(
        verbose_name=_('Balance'),
    )

    # Structured link back to the originating record
    source_type = models.CharField(
        max_length=20,
        choices=SourceType.choices,
        null=True,
        blank=True,
        verbose_name=_('Source type'),
    )
    source_document_id = models.PositiveBigIntegerField(null=True, blank=True, verbose_name=_('Source document'))
    source_line_id = models.PositiveBigIntegerField(null=True, blank=True, verbose_name=_('Source line'))

    reverses = models.OneToOneField(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='reversed_by',
        verbose_name=_('Reverses'),
    )
    metadata = models.JSONField(default=dict, blank=True, verbose_name=_('Metadata'))

    recorded_at = models.DateTimeField(default=timezone.now, verbose_name=_('Recorded at'))
    sequence = models.PositiveIntegerField(verbose_name=_('Sequence'))

    objects = LedgerEntryQuerySet.as_manager()

    class Meta:
        verbose_name = _('Ledger entry')
        verbose_name_plural = _('Ledger entries')
        ordering = list(CHRONOLOGICAL)
        constraints = [
            models.UniqueConstraint(
                fields=['company_id', 'item_id', 'sequence'],
                name='unique_ledger_stream_sequence',
            ),
        ]
        indexes = [
            models.Index(fields=['company_id', 'item_id', 'transaction_date', 'recorded_at', 'sequence'],
                         name='ledgerman_stream_order_idx'),
            models.Index(fields=['source_type', 'source_document_id'], name='ledgerman_source_idx'),
        ]

    def save(self, *args, **kwargs):
        """Insert only."""
        if self.pk:
            raise ValueError(
                "Ledger entries are immutable. "
                "To correct, append a new entry with the inverse delta."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        """Entries are immutable; deletion always raises."""
        raise ValueError(
            "Ledger entries are immutable. "
            "To reverse, append a new entry with the inverse delta."
        )

    @property
    def source_ref(self):
        """SourceRef for this entry, or None when it has no structured source."""
        if self.source_type is None or self.source_document_id is None:
            return None
        from ledgerman.protocols.movements import SourceRef
        return SourceRef(self.source_type, self.source_document_id, self.source_line_id)

    def __str__(self) -> str:
        signal = '+' if self.quantity_change > 0 else ''
        return f"{self.transaction_type} {signal}{self.quantity_change} = {self.net_balance} | {self.reference_label}"
