"""
Enums for Ledgerman models.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TransactionType(models.TextChoices):
    """
    Kind of stock movement an entry records.

    OPENING: Opening balance, also used for manual stock corrections (+/-).
    IN:      Stock received (always positive).
    OUT:     Stock dispatched (always negative).
    REJ:     Rejection (negative) or rejected stock returned (positive).
    """
    OPENING = 'OPENING', _('Opening')
    IN = 'IN', _('Incoming')
    OUT = 'OUT', _('Outgoing')
    REJ = 'REJ', _('Rejected')

    def accepts(self, quantity_change: int) -> bool:
        """Does the sign of quantity_change fit this type?"""
        if self is TransactionType.IN:
            return quantity_change > 0
        if self is TransactionType.OUT:
            return quantity_change < 0
        return quantity_change != 0

    @property
    def compensation(self) -> 'TransactionType':
        """Type used by the entry that cancels one of this type."""
        return {
            TransactionType.IN: TransactionType.OUT,
            TransactionType.OUT: TransactionType.IN,
        }.get(self, self)


class SourceType(models.TextChoices):
    """Which kind of record caused an entry."""
    OPENING = 'opening', _('Opening stock')
    RECEIVING = 'receiving', _('Receiving document')
    DISPATCH = 'dispatch', _('Dispatch document')
    ADJUSTMENT = 'adjustment', _('Manual adjustment')


# User-facing history filters
HISTORY_CATEGORIES = {
    'incoming': TransactionType.IN,
    'outgoing': TransactionType.OUT,
    'opening': TransactionType.OPENING,
    'rejected': TransactionType.REJ,
}
