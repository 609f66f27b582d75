"""
Ledgerman Models.

- LedgerEntry: Immutable, per-item ledger of signed quantity changes
- TransactionType: OPENING / IN / OUT / REJ
- SourceType: Kind of record an entry points back to
"""

from ledgerman.models.entry import LedgerEntry
from ledgerman.models.enums import HISTORY_CATEGORIES, SourceType, TransactionType

__all__ = [
    'TransactionType',
    'SourceType',
    'HISTORY_CATEGORIES',
    'LedgerEntry',
]
