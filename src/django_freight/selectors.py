"""
Freight Selectors - Public read-only API.

Every selector takes the caller's TenantScope first and only returns rows
inside it. Single-row getters raise NotFound for rows of another
organization and Forbidden for rows of another branch.

Usage:
    from django_freight.selectors import get_booking, list_bookings, booking_summary
"""
from django.db.models import Count, Q, QuerySet

from django_freight import aggregate
from django_freight.models import Booking, BookingArticle, CustodyEvent, Manifest
from django_freight.scoping import TenantScope, get_scoped


# =============================================================================
# BOOKING SELECTORS
# =============================================================================

def get_booking(scope: TenantScope, booking_id) -> Booking:
    """Get one booking visible to the scope."""
    return get_scoped(scope, Booking, booking_id)


def get_booking_by_tracking_number(scope: TenantScope, tracking_number: str) -> Booking | None:
    """Get a booking by tracking number, or None if not visible."""
    return Booking.objects.visible_to(scope).filter(tracking_number=tracking_number).first()


def list_bookings(
    scope: TenantScope,
    status: str = None,
    destination_branch=None,
    customer=None,
) -> QuerySet[Booking]:
    """List bookings visible to the scope, newest first."""
    qs = Booking.objects.visible_to(scope).select_related(
        'branch', 'destination_branch', 'sender', 'receiver',
    )
    if status:
        qs = qs.filter(status=status)
    if destination_branch is not None:
        qs = qs.filter(destination_branch_id=getattr(destination_branch, 'pk', destination_branch))
    if customer is not None:
        customer_id = getattr(customer, 'pk', customer)
        qs = qs.filter(Q(sender_id=customer_id) | Q(receiver_id=customer_id))
    return qs.order_by('-created_at')


def booking_summary(scope: TenantScope, booking_id) -> dict:
    """Total and custody status of a booking, as read by invoicing and credit checks."""
    booking = get_booking(scope, booking_id)
    line_counts = dict(
        BookingArticle.objects.filter(booking_id=booking.pk)
        .order_by()
        .values('status')
        .annotate(count=Count('id'))
        .values_list('status', 'count')
    )
    return {
        'id': str(booking.pk),
        'tracking_number': booking.tracking_number,
        'status': booking.status,
        'payment_type': booking.payment_type,
        'total_amount': booking.total_amount,
        'line_count': sum(line_counts.values()),
        'lines_by_status': line_counts,
    }


def booking_total_is_consistent(scope: TenantScope, booking_id) -> bool:
    """Check that the stored total equals the sum of the booking's line totals."""
    booking = get_booking(scope, booking_id)
    return aggregate.booking_total_is_consistent(booking)


def get_booking_events(scope: TenantScope, booking_id) -> QuerySet[CustodyEvent]:
    """Custody trail of a booking, oldest first."""
    booking = get_booking(scope, booking_id)
    return CustodyEvent.objects.filter(booking=booking).order_by('occurred_at')


# =============================================================================
# LINE SELECTORS
# =============================================================================

def get_line(scope: TenantScope, line_id) -> BookingArticle:
    """Get one booking line visible to the scope."""
    return get_scoped(scope, BookingArticle, line_id, 'Line')


def list_lines(scope: TenantScope, booking_id=None, status: str = None) -> QuerySet[BookingArticle]:
    """List booking lines visible to the scope."""
    qs = BookingArticle.objects.visible_to(scope).select_related('booking', 'article')
    if booking_id is not None:
        qs = qs.filter(booking_id=getattr(booking_id, 'pk', booking_id))
    if status:
        qs = qs.filter(status=status)
    return qs.order_by('booking__created_at', 'created_at')


# =============================================================================
# MANIFEST SELECTORS
# =============================================================================

def get_manifest(scope: TenantScope, manifest_id) -> Manifest:
    """Get one manifest visible to the scope."""
    return get_scoped(scope, Manifest, manifest_id)


def list_manifests(scope: TenantScope, status: str = None, travel_date=None) -> QuerySet[Manifest]:
    """List manifests visible to the scope, latest trip first."""
    qs = Manifest.objects.visible_to(scope).select_related('branch', 'destination_branch')
    if status:
        qs = qs.filter(status=status)
    if travel_date is not None:
        qs = qs.filter(travel_date=travel_date)
    return qs.order_by('-travel_date', '-created_at')
