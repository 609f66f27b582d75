"""
Ledgerman configuration.

Usage in settings.py:
    LEDGERMAN = {
        "ITEM_REGISTRY": "ledgerman.adapters.warehouse.WarehouseItemRegistry",
        "MOVEMENT_SOURCE": "ledgerman.adapters.warehouse.WarehouseMovementSource",
        "LOCK_STRATEGY": "row",
        "LOCK_TIMEOUT_MS": 5000,
        "BACKDATE_POLICY": "clamp",
    }
"""

from dataclasses import dataclass
from typing import Any

from django.conf import settings


@dataclass
class LedgermanSettings:
    """Ledgerman configuration settings."""

    # Item registry backend (dotted path)
    ITEM_REGISTRY: str = ""

    # Movement source backend (dotted path)
    MOVEMENT_SOURCE: str = ""

    # Per-item exclusion: "row" (SELECT FOR UPDATE on the item) or "advisory" (PostgreSQL).
    # SQLite has no FOR UPDATE: writers queue on the database lock, taken at BEGIN
    # with DATABASES OPTIONS {"transaction_mode": "IMMEDIATE"} (Django 5.1+).
    LOCK_STRATEGY: str = "row"

    # Bounded wait for the per-item lock, PostgreSQL only (0 = wait forever)
    LOCK_TIMEOUT_MS: int = 5000

    # Appends dated before the latest entry: "clamp" or "reject"
    BACKDATE_POLICY: str = "clamp"

    # Default row cap for item history
    HISTORY_LIMIT: int = 1000

    # Actor name recorded when the caller gives none
    DEFAULT_ACTOR_NAME: str = "System"


def get_ledgerman_settings() -> LedgermanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "LEDGERMAN", {})
    return LedgermanSettings(**{
        k: v for k, v in user_settings.items()
        if k in LedgermanSettings.__dataclass_fields__
    })


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_ledgerman_settings(), name)


ledgerman_settings = _LazySettings()
