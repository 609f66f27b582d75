"""
Base classes for Unfold admin in Ledgerman.

Ledger rows are immutable, so the base admin denies add, change and
delete and shows every field compressed.
"""

from unfold.admin import ModelAdmin


def format_change(value: int | None) -> str:
    """
    Format a signed quantity change.

    Returns:
        "+20", "-5" or "-" for None
    """
    if value is None:
        return "-"
    return f"{value:+d}"


def format_datetime(dt) -> str:
    """Format datetime as DD/MM/YY · HH:MM."""
    if dt:
        return dt.strftime('%d/%m/%y · %H:%M')
    return '-'


class ReadOnlyModelAdmin(ModelAdmin):
    """ModelAdmin base for audit views."""

    compressed_fields = True

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields]
