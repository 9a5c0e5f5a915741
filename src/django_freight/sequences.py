"""Organization-scoped number generation for tracking, manifest and contract numbers."""

from django.db import transaction

from .conf import get_setting
from .models import NumberSequence


SCOPE_PREFIX_SETTINGS = {
    'booking': 'TRACKING_PREFIX',
    'manifest': 'MANIFEST_PREFIX',
    'rate_contract': 'CONTRACT_PREFIX',
}


def next_number(scope: str, organization, include_year: bool = True, is_taken=None) -> str:
    """
    Get the next formatted number for an organization atomically.

    Uses select_for_update() so two concurrent bookings can never be issued
    the same tracking number. A sequence is created on first use with the
    prefix configured for its scope.

    Args:
        scope: 'booking', 'manifest' or 'rate_contract'
        organization: The Organization instance that owns the counter
        include_year: Whether to include the year (used when auto-creating)
        is_taken: Optional callable; values it returns True for (numbers
            already entered by hand) are skipped

    Returns:
        The formatted value (e.g., "LR-2026-000001")
    """
    with transaction.atomic():
        try:
            seq = NumberSequence.objects.select_for_update().get(
                organization=organization,
                scope=scope,
            )
        except NumberSequence.DoesNotExist:
            seq = NumberSequence.objects.create(
                organization=organization,
                scope=scope,
                prefix=get_setting(SCOPE_PREFIX_SETTINGS.get(scope, 'TRACKING_PREFIX')),
                current_value=0,
                pad_width=get_setting('NUMBER_PAD_WIDTH'),
                include_year=include_year,
            )
            seq = NumberSequence.objects.select_for_update().get(pk=seq.pk)

        seq.current_value += 1
        while is_taken is not None and is_taken(seq.formatted_value):
            seq.current_value += 1
        seq.save(update_fields=['current_value', 'updated_at'])

        return seq.formatted_value
