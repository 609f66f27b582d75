"""
Ledgerman Adapters.

Implementations of protocols for external systems.
"""

from ledgerman.adapters.loader import (
    get_item_registry,
    get_movement_source,
    reset_adapters,
)

__all__ = [
    "get_item_registry",
    "get_movement_source",
    "reset_adapters",
]
