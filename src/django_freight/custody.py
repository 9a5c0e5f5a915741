"""Custody state machine.

Provides:
- transition_line: Move one booking line along LINE_GRAPH
- mark_loaded / mark_in_transit / mark_unloaded / mark_out_for_delivery /
  mark_delivered / report_damaged / report_missing / cancel_line: shortcuts
- transition_booking: Move a booking along BOOKING_GRAPH
- cancel_booking: Cancel a booking and every non-terminal line
- get_allowed_line_transitions: Valid next states of a line
- check_transition: Raise InvalidTransition unless a graph allows a move

Rules:
- A line may only be loaded while its booking is booked or in_transit.
- Delivered is only reachable from unloaded or out_for_delivery, so every
  delivered line has passed loaded and unloaded in order.
- A booking is delivered only when all of its non-cancelled lines are.
- Re-applying a line's current state is a no-op, so retried scans are safe.
- Every applied transition appends a CustodyEvent.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .aggregate import lock_booking, recompute_booking_total
from .exceptions import InvalidTransition
from .models import Booking, BookingArticle, CustodyEvent
from .scoping import TenantScope, get_scoped
from .states import BOOKING_GRAPH, LINE_GRAPH, BookingStatus, LineStatus


logger = logging.getLogger(__name__)


LOADABLE_BOOKING_STATES = frozenset({BookingStatus.BOOKED, BookingStatus.IN_TRANSIT})

# Line states that mean the consignment has left the origin branch
_IN_CUSTODY = frozenset({
    LineStatus.LOADED,
    LineStatus.IN_TRANSIT,
    LineStatus.UNLOADED,
    LineStatus.OUT_FOR_DELIVERY,
    LineStatus.DELIVERED,
})

# Actor/timestamp stamp fields per target state
_STAMPS = {
    LineStatus.LOADED: ('loaded_at', 'loaded_by'),
    LineStatus.UNLOADED: ('unloaded_at', 'unloaded_by'),
    LineStatus.DELIVERED: ('delivered_at', 'delivered_by'),
}


def record_event(
    event_type: str,
    *,
    organization_id,
    branch_id=None,
    booking=None,
    line=None,
    manifest=None,
    from_status: str = '',
    to_status: str = '',
    actor: str = '',
    metadata: dict = None,
) -> CustodyEvent:
    """Append one immutable custody event."""
    return CustodyEvent.objects.create(
        organization_id=organization_id,
        branch_id=branch_id,
        booking=booking,
        line=line,
        manifest=manifest,
        event_type=event_type,
        from_status=from_status or '',
        to_status=to_status or '',
        actor=actor or '',
        metadata=metadata or {},
    )


def get_allowed_line_transitions(line: BookingArticle) -> list[str]:
    return list(LINE_GRAPH.allowed_from(line.status))


def check_transition(graph, from_state: str, to_state: str):
    if graph.can_transition(from_state, to_state):
        return
    if graph.is_terminal(from_state):
        raise InvalidTransition(
            from_state, to_state,
            f"Cannot transition {graph.name} from terminal state '{from_state}'",
        )
    raise InvalidTransition(from_state, to_state)


@transaction.atomic
def transition_line(
    scope: TenantScope,
    line,
    to_status: str,
    *,
    manifest=None,
    metadata: dict = None,
) -> BookingArticle:
    """
    Transition a booking line to a new custody state.

    Locks the booking row first (same order as every line mutation), then
    re-reads the line, so the precondition is evaluated against committed
    state.

    Args:
        scope: Caller's tenant scope
        line: BookingArticle instance or id
        to_status: Target LineStatus
        manifest: Optional manifest the transition happens under
        metadata: Optional metadata for the custody event

    Returns:
        The updated line (unchanged if already in to_status)

    Raises:
        NotFound / Forbidden: If the line is outside the caller's scope
        InvalidTransition: If the line or its booking is in an incompatible state
    """
    line = get_scoped(scope, BookingArticle, line, 'Line', for_write=True)
    booking = lock_booking(line.booking_id)
    line = BookingArticle.objects.select_for_update().get(pk=line.pk)

    if line.status == to_status:
        return line

    check_transition(LINE_GRAPH, line.status, to_status)
    if to_status == LineStatus.LOADED and booking.status not in LOADABLE_BOOKING_STATES:
        raise InvalidTransition(
            line.status, to_status,
            f"Booking {booking.tracking_number} is {booking.status}; lines can only be "
            f"loaded while it is booked or in transit",
        )

    from_status = line.status
    line.status = to_status
    update_fields = ['status', 'updated_at']
    if to_status in _STAMPS:
        at_field, by_field = _STAMPS[to_status]
        setattr(line, at_field, timezone.now())
        setattr(line, by_field, scope.actor)
        update_fields += [at_field, by_field]
    line.save(update_fields=update_fields)

    record_event(
        f"line_{to_status}",
        organization_id=booking.organization_id,
        branch_id=booking.branch_id,
        booking=booking,
        line=line,
        manifest=manifest,
        from_status=from_status,
        to_status=to_status,
        actor=scope.actor,
        metadata=metadata,
    )

    if to_status == LineStatus.CANCELLED:
        recompute_booking_total(booking)

    _advance_booking(scope, booking)
    return line


def _advance_booking(scope: TenantScope, booking: Booking):
    """Follow the booking status after a line transition."""
    statuses = list(
        BookingArticle.objects.filter(booking_id=booking.pk).values_list('status', flat=True)
    )

    if booking.status == BookingStatus.BOOKED and _IN_CUSTODY.intersection(statuses):
        _apply_booking_status(scope, booking, BookingStatus.IN_TRANSIT)

    if booking.status == BookingStatus.IN_TRANSIT and _all_delivered(statuses):
        _apply_booking_status(scope, booking, BookingStatus.DELIVERED)


def _all_delivered(statuses) -> bool:
    active = [status for status in statuses if status != LineStatus.CANCELLED]
    return bool(active) and all(status == LineStatus.DELIVERED for status in active)


def _apply_booking_status(scope: TenantScope, booking: Booking, to_status: str, metadata: dict = None):
    from_status = booking.status
    booking.status = to_status
    update_fields = ['status', 'updated_at']
    if to_status == BookingStatus.DELIVERED:
        booking.delivered_at = timezone.now()
        update_fields.append('delivered_at')
    booking.save(update_fields=update_fields)

    record_event(
        f"booking_{to_status}",
        organization_id=booking.organization_id,
        branch_id=booking.branch_id,
        booking=booking,
        from_status=from_status,
        to_status=to_status,
        actor=scope.actor,
        metadata=metadata,
    )
    logger.info(f"Booking {booking.tracking_number}: {from_status} -> {to_status}")


@transaction.atomic
def transition_booking(scope: TenantScope, booking, to_status: str, metadata: dict = None) -> Booking:
    """
    Transition a booking to a new custody state.

    Raises:
        InvalidTransition: If the graph disallows the move, or delivery is
            requested while a non-cancelled line is not yet delivered
    """
    if to_status == BookingStatus.CANCELLED:
        return cancel_booking(scope, booking, reason=(metadata or {}).get('reason', ''))

    booking = get_scoped(scope, Booking, booking, for_write=True)
    locked = lock_booking(booking.pk)

    if locked.status == to_status:
        return locked

    check_transition(BOOKING_GRAPH, locked.status, to_status)
    if to_status == BookingStatus.DELIVERED:
        statuses = list(
            BookingArticle.objects.filter(booking_id=locked.pk).values_list('status', flat=True)
        )
        if not _all_delivered(statuses):
            pending = len([s for s in statuses if s not in (LineStatus.DELIVERED, LineStatus.CANCELLED)])
            raise InvalidTransition(
                locked.status, to_status,
                f"{pending} line(s) of booking {locked.tracking_number} are not delivered",
            )

    _apply_booking_status(scope, locked, to_status, metadata)
    return locked


@transaction.atomic
def cancel_booking(scope: TenantScope, booking, reason: str = '') -> Booking:
    """
    Cancel a booking, cascading cancellation to every non-terminal line.

    The total is recomputed in the same transaction, so it drops to the sum
    of lines that had already reached a terminal state other than cancelled.

    Raises:
        InvalidTransition: If the booking is already delivered
    """
    booking = get_scoped(scope, Booking, booking, for_write=True)
    locked = lock_booking(booking.pk)

    if locked.status == BookingStatus.CANCELLED:
        return locked
    check_transition(BOOKING_GRAPH, locked.status, BookingStatus.CANCELLED)

    open_lines = [
        line for line in BookingArticle.objects.select_for_update().filter(booking_id=locked.pk)
        if not LINE_GRAPH.is_terminal(line.status)
    ]
    for line in open_lines:
        from_status = line.status
        line.status = LineStatus.CANCELLED
        line.save(update_fields=['status', 'updated_at'])
        record_event(
            'line_cancelled',
            organization_id=locked.organization_id,
            branch_id=locked.branch_id,
            booking=locked,
            line=line,
            from_status=from_status,
            to_status=LineStatus.CANCELLED,
            actor=scope.actor,
            metadata={'reason': reason, 'cascade': True},
        )

    recompute_booking_total(locked)

    locked.cancelled_at = timezone.now()
    locked.cancelled_by = scope.actor
    locked.cancellation_reason = reason
    locked.save(update_fields=['cancelled_at', 'cancelled_by', 'cancellation_reason', 'updated_at'])
    _apply_booking_status(scope, locked, BookingStatus.CANCELLED, {'reason': reason})

    if isinstance(booking, Booking):
        booking.status = locked.status
        booking.total_amount = locked.total_amount
    return locked


def mark_loaded(scope, line, **kwargs):
    return transition_line(scope, line, LineStatus.LOADED, **kwargs)


def mark_in_transit(scope, line, **kwargs):
    return transition_line(scope, line, LineStatus.IN_TRANSIT, **kwargs)


def mark_unloaded(scope, line, **kwargs):
    return transition_line(scope, line, LineStatus.UNLOADED, **kwargs)


def mark_out_for_delivery(scope, line, **kwargs):
    return transition_line(scope, line, LineStatus.OUT_FOR_DELIVERY, **kwargs)


def mark_delivered(scope, line, **kwargs):
    return transition_line(scope, line, LineStatus.DELIVERED, **kwargs)


def report_damaged(scope, line, remarks: str = '', **kwargs):
    return transition_line(scope, line, LineStatus.DAMAGED, metadata={'remarks': remarks}, **kwargs)


def report_missing(scope, line, remarks: str = '', **kwargs):
    return transition_line(scope, line, LineStatus.MISSING, metadata={'remarks': remarks}, **kwargs)


def cancel_line(scope, line, reason: str = ''):
    """Cancel one line; it drops out of the booking total."""
    return transition_line(scope, line, LineStatus.CANCELLED, metadata={'reason': reason})
