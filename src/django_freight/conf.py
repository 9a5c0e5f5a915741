"""Django Freight configuration.

All settings can be overridden in your Django settings.py.

Example:
    # settings.py
    FREIGHT_WEIGHT_ROUNDING_STEP = "0.5"
    FREIGHT_TRACKING_PREFIX = "LR-"
"""

from decimal import Decimal

from django.conf import settings


DEFAULTS = {
    'WEIGHT_ROUNDING_STEP': None,
    'TRACKING_PREFIX': 'LR-',
    'MANIFEST_PREFIX': 'MF-',
    'CONTRACT_PREFIX': 'RC-',
    'NUMBER_PAD_WIDTH': 6,
    'ELEVATED_ROLES': ('admin', 'superadmin'),
    'BLOCKED_CREDIT_STATUSES': ('blocked', 'suspended'),
}


def get_setting(name: str, default=None):
    """Get a setting with FREIGHT_ prefix.

    Read on every call so that ``override_settings`` in tests takes effect.
    """
    if default is None:
        default = DEFAULTS.get(name)
    return getattr(settings, f"FREIGHT_{name}", default)


def get_weight_rounding_step() -> Decimal | None:
    """Return the charged-weight rounding step, or None when disabled."""
    step = get_setting('WEIGHT_ROUNDING_STEP')
    if step in (None, '', 0):
        return None
    step = Decimal(str(step))
    if step <= 0:
        return None
    return step


def get_elevated_roles() -> frozenset[str]:
    """Roles that may see every branch of their organization."""
    return frozenset(get_setting('ELEVATED_ROLES'))


def get_blocked_credit_statuses() -> frozenset[str]:
    """Sender credit statuses that refuse new bookings."""
    return frozenset(get_setting('BLOCKED_CREDIT_STATUSES'))


# =============================================================================
# DEFAULT SETTINGS REFERENCE
# =============================================================================

# FREIGHT_WEIGHT_ROUNDING_STEP = None  # e.g. "0.5" rounds 25.2kg up to 25.5kg
# FREIGHT_TRACKING_PREFIX = 'LR-'  # system-generated tracking numbers
# FREIGHT_MANIFEST_PREFIX = 'MF-'
# FREIGHT_CONTRACT_PREFIX = 'RC-'
# FREIGHT_NUMBER_PAD_WIDTH = 6
# FREIGHT_ELEVATED_ROLES = ('admin', 'superadmin')  # bypass branch filter only
# FREIGHT_BLOCKED_CREDIT_STATUSES = ('blocked', 'suspended')
