"""
Item Registry Protocol: Interface to the system that owns items.

Ledgerman defines this protocol, the host back office implements it
(see ``ledgerman.adapters.warehouse``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class ItemRecord:
    """What the ledger needs to know about an item."""

    item_id: int
    company_id: str
    sku: str
    name: str
    opening_stock: int
    created_at: datetime
    current_stock: int = 0  # mirror of the latest net_balance


@runtime_checkable
class ItemRegistry(Protocol):
    """
    Protocol for item lookup, locking and the stock mirror.

    The stock mirror is written by the ledger only, through
    ``set_stock_mirror``, in the same transaction as the ledger write.
    """

    def company_exists(self, company_id: str, using: str = 'default') -> bool:
        """True if the company code resolves."""
        ...

    def company_ids(self, using: str = 'default') -> list[str]:
        """Every company code, sorted."""
        ...

    def get_item(self, company_id: str, item_id: int, using: str = 'default') -> ItemRecord | None:
        """
        Resolve an item owned by the company.

        Returns:
            ItemRecord or None if the item does not exist for that company
        """
        ...

    def lock_item(self, company_id: str, item_id: int, using: str) -> ItemRecord | None:
        """
        Resolve and row-lock an item until the current transaction ends.

        Args:
            company_id: Normalized company code
            item_id: Item primary key
            using: Database alias of the open transaction

        Returns:
            ItemRecord or None if the item does not exist for that company
        """
        ...

    def items_for_company(self, company_id: str, lock: bool = False,
                          using: str = 'default') -> list[ItemRecord]:
        """
        Every item owned by the company, ordered by item_id.

        Args:
            lock: Row-lock every returned item until the transaction ends
        """
        ...

    def set_stock_mirror(self, company_id: str, item_id: int, balance: int,
                         using: str = 'default') -> None:
        """Store the latest ledger balance on the item record."""
        ...
