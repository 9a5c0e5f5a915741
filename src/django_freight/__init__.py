"""Django Freight - booking-to-billing lifecycle for freight forwarding."""

__version__ = "0.1.0"

__all__ = [
    "TenantScope",
    "FreightError",
    "ValidationError",
    "NotFound",
    "Forbidden",
    "InvalidTransition",
    "AggregateInconsistency",
]


def __getattr__(name):
    """Lazy import to avoid AppRegistryNotReady errors."""
    if name == "TenantScope":
        from django_freight.scoping import TenantScope
        return TenantScope
    if name in __all__:
        from django_freight import exceptions
        return getattr(exceptions, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
