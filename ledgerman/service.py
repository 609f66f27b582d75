"""
Ledger Service: the single public interface for all ledger operations.

Usage:
    from django.db import transaction
    from ledgerman import ledger

    with transaction.atomic():
        ledger.post(
            company_id="ACME",
            item_id=item.pk,
            transaction_date=receiving.receiving_date,
            transaction_type="IN",
            quantity_change=20,
            reference_label="IN / INV-2031",
            counterparty_label="Vendor: Northwind",
        )

    ledger.balance("ACME", item.pk)            # 70
    ledger.history("ACME", item.pk, types=["incoming"])
"""

from ledgerman.services.appends import LedgerAppends
from ledgerman.services.history import LedgerHistory
from ledgerman.services.rebuild import LedgerRebuild


class Ledger(LedgerAppends, LedgerRebuild, LedgerHistory):
    """
    Single interface for all ledger operations.

    Online path (append, post, compensate, adjust) runs inside the
    caller's transaction and serializes per (company, item) stream.
    Offline path (rebuild, rebuild_item, plan, verify, sync_mirrors) is
    maintenance. History methods only read.
    """
