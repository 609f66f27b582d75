"""
Ledgerman adapter loading: resolves the configured backends.

Usage:
    from ledgerman.adapters import get_item_registry, get_movement_source

    registry = get_item_registry()
    item = registry.get_item("ACME", 7)

Settings:
    LEDGERMAN = {
        "ITEM_REGISTRY": "ledgerman.adapters.warehouse.WarehouseItemRegistry",
        "MOVEMENT_SOURCE": "ledgerman.adapters.warehouse.WarehouseMovementSource",
    }

If a backend is not configured, the getter raises ImproperlyConfigured.
"""

from __future__ import annotations

import logging
import threading
from typing import Any

from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from ledgerman.conf import ledgerman_settings
from ledgerman.protocols.items import ItemRegistry
from ledgerman.protocols.movements import MovementSource

logger = logging.getLogger(__name__)


# Cached backend instances, keyed by setting name
_lock = threading.Lock()
_backends: dict[str, Any] = {}


def _load(setting: str) -> Any:
    backend = _backends.get(setting)
    if backend is None:
        with _lock:
            backend = _backends.get(setting)
            if backend is None:  # double-checked
                path = getattr(ledgerman_settings, setting)

                if not path:
                    raise ImproperlyConfigured(
                        f"LEDGERMAN['{setting}'] must be configured. "
                        "Example: 'ledgerman.adapters.warehouse.Warehouse...'"
                    )

                try:
                    backend = import_string(path)()
                except ImportError as e:
                    raise ImproperlyConfigured(
                        f"Failed to import {setting} '{path}': {e}"
                    ) from e

                _backends[setting] = backend
                logger.debug("Loaded %s: %s", setting, path)
    return backend


def get_item_registry() -> ItemRegistry:
    """
    Return the configured item registry.

    Raises:
        ImproperlyConfigured: If ITEM_REGISTRY is not configured or import fails
    """
    return _load("ITEM_REGISTRY")


def get_movement_source() -> MovementSource:
    """
    Return the configured movement source.

    Raises:
        ImproperlyConfigured: If MOVEMENT_SOURCE is not configured or import fails
    """
    return _load("MOVEMENT_SOURCE")


def reset_adapters() -> None:
    """Drop cached backends. Useful for testing."""
    with _lock:
        _backends.clear()
