"""
Ledgerman Protocols.

Defines interfaces for external system integration.
"""

from ledgerman.protocols.items import ItemRecord, ItemRegistry
from ledgerman.protocols.movements import (
    AdjustmentFact,
    DispatchFact,
    MovementSource,
    ReceiptFact,
    SourceDetail,
    SourceRef,
)

__all__ = [
    "ItemRecord",
    "ItemRegistry",
    "AdjustmentFact",
    "DispatchFact",
    "MovementSource",
    "ReceiptFact",
    "SourceDetail",
    "SourceRef",
]
