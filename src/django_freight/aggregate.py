"""Booking aggregate.

A booking's ``total_amount`` equals the sum of ``line_total`` over its live,
non-cancelled lines. It is written here and nowhere else, as an explicit
step inside the transaction of every line mutation.

Locking order for every line mutation:
1. ``lock_booking`` takes the booking row lock (SELECT ... FOR UPDATE)
2. the line is inserted, updated, cancelled or soft deleted
3. ``recompute_booking_total`` re-reads the full line set and writes the sum

Because step 1 serializes writers on the same booking, the re-read in step 3
always sees every committed line, so concurrent inserts cannot lose an
update. Different bookings lock different rows and never wait on each other.
"""

import logging
from decimal import Decimal

from django.db import DatabaseError, transaction
from django.db.models import Sum

from .exceptions import AggregateInconsistency, NotFound
from .models import Booking, BookingArticle
from .states import LineStatus


logger = logging.getLogger(__name__)


def lock_booking(booking_id) -> Booking:
    """Lock and return a fresh copy of the booking row.

    Must be called inside a transaction.
    """
    try:
        return Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise NotFound('Booking', booking_id)


def billable_lines(booking_id):
    return BookingArticle.objects.filter(booking_id=booking_id).exclude(
        status=LineStatus.CANCELLED
    )


def compute_booking_total(booking_id) -> Decimal:
    """Sum the line totals of the booking's non-cancelled lines."""
    total = billable_lines(booking_id).aggregate(total=Sum('line_total'))['total']
    return total if total is not None else Decimal('0.00')


@transaction.atomic
def recompute_booking_total(booking) -> Booking:
    """Recompute and persist the booking total.

    Joins the caller's transaction. Any database failure is re-raised as
    AggregateInconsistency so the enclosing line mutation rolls back with it.
    """
    booking_id = getattr(booking, 'pk', booking)
    try:
        locked = lock_booking(booking_id)
        total = compute_booking_total(booking_id)
        if locked.total_amount != total:
            locked.total_amount = total
            locked.save(update_fields=['total_amount', 'updated_at'])
    except DatabaseError as exc:
        logger.error(f"Total recompute failed for booking {booking_id}: {exc}")
        raise AggregateInconsistency(booking_id, str(exc)) from exc

    if isinstance(booking, Booking):
        booking.total_amount = locked.total_amount
    return locked


def booking_total_is_consistent(booking) -> bool:
    """Check the stored total against the sum of the current lines."""
    booking_id = getattr(booking, 'pk', booking)
    stored = Booking.objects.values_list('total_amount', flat=True).get(pk=booking_id)
    return stored == compute_booking_total(booking_id)
