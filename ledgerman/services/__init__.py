"""
Ledger services: modular organization of ledger operations.

    from ledgerman.services import LedgerAppends, LedgerRebuild, LedgerHistory
"""

from ledgerman.services.appends import LedgerAppends
from ledgerman.services.history import HistoryRow, HistorySummary, LedgerHistory
from ledgerman.services.rebuild import Discrepancy, LedgerRebuild, RebuildResult

__all__ = [
    'LedgerAppends',
    'LedgerRebuild',
    'LedgerHistory',
    'HistoryRow',
    'HistorySummary',
    'RebuildResult',
    'Discrepancy',
]
