"""
Ledgerman Admin: basic fallback (works without Unfold).

For the Unfold-styled version, add 'ledgerman.contrib.admin_unfold' to INSTALLED_APPS.
When the Unfold contrib is loaded, this module does nothing (avoids double registration).

The ledger is append-only, so the admin is a read-only audit view.
"""

from django.apps import apps
from django.contrib import admin
from django.utils.translation import gettext_lazy as _

# Skip registration if the Unfold contrib is installed (it will register its own admin)
if not apps.is_installed('ledgerman.contrib.admin_unfold'):
    from ledgerman.models import LedgerEntry

    @admin.register(LedgerEntry)
    class LedgerEntryAdmin(admin.ModelAdmin):
        """LedgerEntry admin: read-only. Entries only change via the ledger service."""

        list_display = ['transaction_date', 'company_id', 'item_id', 'transaction_type',
                        'change_display', 'net_balance', 'reference_label',
                        'counterparty_label', 'actor_name']
        list_filter = ['transaction_type', 'source_type', 'company_id']
        search_fields = ['reference_label', 'counterparty_label', 'actor_name', '=item_id']
        readonly_fields = ['company_id', 'item_id', 'transaction_date', 'transaction_type',
                           'reference_label', 'counterparty_label', 'actor_id', 'actor_name',
                           'quantity_change', 'net_balance', 'source_type', 'source_document_id',
                           'source_line_id', 'reverses', 'metadata', 'recorded_at', 'sequence']
        date_hierarchy = 'transaction_date'
        ordering = ['company_id', 'item_id', '-transaction_date', '-recorded_at', '-sequence']

        def has_add_permission(self, request):
            return False

        def has_change_permission(self, request, obj=None):
            return False

        def has_delete_permission(self, request, obj=None):
            return False

        @admin.display(description=_('Change'), ordering='quantity_change')
        def change_display(self, obj):
            return f"{obj.quantity_change:+d}"
