"""Ledgerman Admin with Unfold theme."""

__all__ = [
    "ReadOnlyModelAdmin",
    "format_change",
]


def __getattr__(name):
    """Lazy import to avoid circular imports during app loading."""
    if name in ("ReadOnlyModelAdmin", "format_change"):
        from ledgerman.contrib.admin_unfold import base
        return getattr(base, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
