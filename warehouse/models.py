"""
Warehouse models: items and the documents that move them.

Item.current_stock is a mirror of the item's latest ledger balance and is
written only by ledgerman.
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ledgerman.labels import MISSING


class DocumentStatus(models.TextChoices):
    DRAFT = 'draft', _('Draft')
    COMPLETED = 'completed', _('Completed')


class DestinationType(models.TextChoices):
    CUSTOMER = 'customer', _('Customer')
    FACTORY = 'factory', _('Factory')
    OTHER = 'other', _('Other')


class Company(models.Model):
    """Tenant. Identified across the ledger by its upper-case code."""

    code = models.CharField(max_length=50, unique=True, verbose_name=_('Code'))
    name = models.CharField(max_length=255, verbose_name=_('Name'))
    created_at = models.DateTimeField(default=timezone.now, verbose_name=_('Created at'))

    class Meta:
        verbose_name = _('Company')
        verbose_name_plural = _('Companies')
        ordering = ['code']

    def save(self, *args, **kwargs):
        self.code = (self.code or '').strip().upper()
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return self.code


class Item(models.Model):
    """Stock-keeping unit owned by one company."""

    company = models.ForeignKey(
        Company,
        on_delete=models.PROTECT,
        related_name='items',
        verbose_name=_('Company'),
    )
    sku = models.CharField(max_length=64, verbose_name=_('SKU'))
    name = models.CharField(max_length=255, verbose_name=_('Name'))
    opening_stock = models.IntegerField(default=0, verbose_name=_('Opening stock'))
    current_stock = models.IntegerField(
        default=0,
        editable=False,
        verbose_name=_('Current stock'),
        help_text=_('Mirror of the latest ledger balance.'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))
    created_at = models.DateTimeField(default=timezone.now, verbose_name=_('Created at'))

    class Meta:
        verbose_name = _('Item')
        verbose_name_plural = _('Items')
        ordering = ['company', 'sku']
        constraints = [
            models.UniqueConstraint(fields=['company', 'sku'], name='unique_item_sku_per_company'),
        ]

    def __str__(self) -> str:
        return f"{self.sku} ({self.current_stock})"


class ReceivingDocument(models.Model):
    """Incoming inventory: one vendor invoice, many item lines."""

    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name='receivings')
    invoice_number = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Invoice number'))
    receiving_date = models.DateTimeField(default=timezone.now, verbose_name=_('Receiving date'))
    vendor_name = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Vendor'))
    received_by_id = models.CharField(max_length=64, null=True, blank=True)
    received_by_name = models.CharField(max_length=255, blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=DocumentStatus.choices,
        default=DocumentStatus.DRAFT,
        verbose_name=_('Status'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))
    created_at = models.DateTimeField(default=timezone.now, verbose_name=_('Created at'))

    class Meta:
        verbose_name = _('Receiving document')
        verbose_name_plural = _('Receiving documents')
        ordering = ['created_at', 'pk']

    @property
    def document_number(self) -> str:
        return self.invoice_number or MISSING

    @property
    def counterparty_label(self) -> str:
        return f"Vendor: {self.vendor_name}" if self.vendor_name else MISSING

    def __str__(self) -> str:
        return f"IN {self.document_number} [{self.status}]"


class ReceivingLine(models.Model):
    """
    One item on a receiving document.

    ``received`` counts everything that arrived, rejected units included;
    ``rejected`` is the part sent back or held as unusable.
    """

    document = models.ForeignKey(ReceivingDocument, on_delete=models.CASCADE, related_name='lines')
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name='receiving_lines')
    received = models.PositiveIntegerField(default=0, verbose_name=_('Received'))
    rejected = models.PositiveIntegerField(default=0, verbose_name=_('Rejected'))
    short = models.PositiveIntegerField(default=0, verbose_name=_('Short'))
    challan_number = models.CharField(max_length=100, blank=True, default='', verbose_name=_('Challan number'))
    challan_date = models.DateField(null=True, blank=True, verbose_name=_('Challan date'))

    class Meta:
        verbose_name = _('Receiving line')
        verbose_name_plural = _('Receiving lines')
        ordering = ['document', 'pk']

    def __str__(self) -> str:
        return f"{self.item.sku}: +{self.received} / -{self.rejected}"


class DispatchDocument(models.Model):
    """Outgoing inventory: one challan or docket, many item lines."""

    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name='dispatches')
    invoice_challan_number = models.CharField(max_length=100, blank=True, default='')
    docket_number = models.CharField(max_length=100, blank=True, default='')
    dispatch_date = models.DateTimeField(default=timezone.now, verbose_name=_('Dispatch date'))
    destination_type = models.CharField(
        max_length=20,
        choices=DestinationType.choices,
        default=DestinationType.CUSTOMER,
        verbose_name=_('Destination type'),
    )
    destination_name = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Destination'))
    dispatched_by_id = models.CharField(max_length=64, null=True, blank=True)
    dispatched_by_name = models.CharField(max_length=255, blank=True, default='')
    status = models.CharField(
        max_length=20,
        choices=DocumentStatus.choices,
        default=DocumentStatus.DRAFT,
        verbose_name=_('Status'),
    )
    is_active = models.BooleanField(default=True, verbose_name=_('Active'))
    created_at = models.DateTimeField(default=timezone.now, verbose_name=_('Created at'))

    class Meta:
        verbose_name = _('Dispatch document')
        verbose_name_plural = _('Dispatch documents')
        ordering = ['created_at', 'pk']

    @property
    def document_number(self) -> str:
        return self.invoice_challan_number or self.docket_number or MISSING

    @property
    def counterparty_label(self) -> str:
        if self.destination_type == DestinationType.FACTORY:
            return "Store to Factory"
        if self.destination_type == DestinationType.CUSTOMER and self.destination_name:
            return f"Customer: {self.destination_name}"
        return self.destination_name or MISSING

    def __str__(self) -> str:
        return f"OUT {self.document_number} [{self.status}]"


class DispatchLine(models.Model):
    document = models.ForeignKey(DispatchDocument, on_delete=models.CASCADE, related_name='lines')
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name='dispatch_lines')
    quantity = models.PositiveIntegerField(verbose_name=_('Quantity'))

    class Meta:
        verbose_name = _('Dispatch line')
        verbose_name_plural = _('Dispatch lines')
        ordering = ['document', 'pk']

    def __str__(self) -> str:
        return f"{self.item.sku}: -{self.quantity}"


class StockAdjustment(models.Model):
    """Manual stock correction, replayed by the ledger rebuild."""

    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name='adjustments')
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name='adjustments')
    new_quantity = models.IntegerField(verbose_name=_('New quantity'))
    quantity_change = models.IntegerField(default=0, verbose_name=_('Change'))
    reason = models.CharField(max_length=255, blank=True, default='', verbose_name=_('Reason'))
    adjusted_at = models.DateTimeField(default=timezone.now, verbose_name=_('Adjusted at'))
    actor_id = models.CharField(max_length=64, null=True, blank=True)
    actor_name = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now, verbose_name=_('Created at'))

    class Meta:
        verbose_name = _('Stock adjustment')
        verbose_name_plural = _('Stock adjustments')
        ordering = ['created_at', 'pk']

    def __str__(self) -> str:
        return f"{self.item.sku} → {self.new_quantity} ({self.quantity_change:+d})"
