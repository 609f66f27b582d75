"""
Ledgerman Admin with Unfold theme.

To use, add 'ledgerman.contrib.admin_unfold' to INSTALLED_APPS after 'ledgerman'.
The plain admin in ledgerman.admin then steps aside.
"""

from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.decorators import display

from ledgerman.contrib.admin_unfold.base import ReadOnlyModelAdmin, format_change, format_datetime
from ledgerman.models import LedgerEntry


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyModelAdmin):
    """Admin for LedgerEntry (read-only audit trail)."""

    list_display = ['transaction_date_display', 'company_id', 'item_id', 'type_display',
                    'change_display', 'net_balance', 'reference_label',
                    'counterparty_label', 'actor_name']
    list_filter = ['transaction_type', 'source_type', 'company_id']
    search_fields = ['reference_label', 'counterparty_label', 'actor_name', '=item_id']
    date_hierarchy = 'transaction_date'
    ordering = ['company_id', 'item_id', '-transaction_date', '-recorded_at', '-sequence']

    @display(description=_('Date'), ordering='transaction_date')
    def transaction_date_display(self, obj):
        return format_datetime(obj.transaction_date)

    @display(
        description=_('Type'),
        ordering='transaction_type',
        label={
            'OPENING': 'info',
            'IN': 'success',
            'OUT': 'warning',
            'REJ': 'danger',
        },
    )
    def type_display(self, obj):
        return obj.transaction_type

    @display(description=_('Change'), ordering='quantity_change')
    def change_display(self, obj):
        return format_change(obj.quantity_change)
