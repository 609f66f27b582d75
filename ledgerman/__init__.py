"""
Django Ledgerman: per-item stock ledger with running balances.

Usage:
    from ledgerman import ledger, LedgerError

    with transaction.atomic():
        ledger.post(company_id="ACME", item_id=7, transaction_type="OUT",
                    quantity_change=-10, transaction_date=today)
    ledger.balance("ACME", 7)
"""


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name == 'ledger':
        from ledgerman.service import Ledger
        return Ledger
    elif name == 'LedgerError':
        from ledgerman.exceptions import LedgerError
        return LedgerError
    elif name == 'LedgerEntry':
        from ledgerman.models.entry import LedgerEntry
        return LedgerEntry
    elif name == 'TransactionType':
        from ledgerman.models.enums import TransactionType
        return TransactionType
    elif name == 'SourceType':
        from ledgerman.models.enums import SourceType
        return SourceType
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    'ledger',
    'LedgerError',
    'LedgerEntry',
    'TransactionType',
    'SourceType',
]

__version__ = '0.1.0'
