"""Booking services.

Provides:
- create_booking: Validate, price and persist a booking with its lines
- add_line / update_line / remove_line: Line maintenance while booked
- delete_booking: Soft delete a booking that never had lines

Every line mutation follows the same order inside one transaction: lock the
booking row, mutate the line, recompute the booking total. A failure at any
step rolls back the whole mutation.
"""

import logging
from dataclasses import dataclass, replace

from django.db import IntegrityError, transaction

from .aggregate import lock_booking, recompute_booking_total
from .conf import get_blocked_credit_statuses
from .custody import record_event
from .exceptions import InvalidTransition, ValidationError
from .lines import LineInput, validate_line
from .models import Article, Booking, BookingArticle, Branch, Customer, ManifestItem
from .rates import charged_weight_for, resolve_rate
from .scoping import TenantScope, get_reference, get_scoped, guard_branch
from .sequences import next_number
from .states import BookingStatus, LineStatus, ManifestStatus


logger = logging.getLogger(__name__)


@dataclass
class LineRequest:
    """One article line as supplied by booking intake.

    Leave ``rate_per_unit`` as None to have it resolved from contracts,
    customer rates or the article base rate. Leave ``charged_weight`` as None
    to derive it from the actual weight and FREIGHT_WEIGHT_ROUNDING_STEP.
    """

    article: object
    quantity: int
    actual_weight: object = 0
    charged_weight: object = None
    rate_per_unit: object = None
    rate_basis: str = None
    loading_per_unit: object = 0
    unloading_per_unit: object = 0
    insurance_required: bool = False
    insurance_value: object = 0
    insurance_charge: object = 0
    packaging_charge: object = 0
    declared_value: object = 0
    unit_of_measure: str = None
    description: str = ''
    private_mark_number: str = ''
    is_fragile: bool = False
    special_instructions: str = ''


@dataclass
class _PricedLine:
    request: LineRequest
    article: Article
    line_input: LineInput
    rate_source: str


# Model field names for the LineInput attributes that are named differently
_INPUT_FIELDS = {
    'loading_per_unit': 'loading_charge_per_unit',
    'unloading_per_unit': 'unloading_charge_per_unit',
}

_DERIVED_FIELDS = ('freight_amount', 'loading_total', 'unloading_total', 'line_total')

_UPDATABLE_FIELDS = frozenset({
    'quantity', 'actual_weight', 'charged_weight', 'rate_per_unit', 'rate_basis',
    'loading_per_unit', 'unloading_per_unit', 'insurance_required', 'insurance_value',
    'insurance_charge', 'packaging_charge', 'declared_value', 'unit_of_measure',
    'description', 'private_mark_number', 'is_fragile', 'special_instructions',
})

_PRICING_FIELDS = frozenset({
    'quantity', 'actual_weight', 'charged_weight', 'rate_per_unit', 'rate_basis',
    'loading_per_unit', 'unloading_per_unit', 'insurance_required', 'insurance_value',
    'insurance_charge', 'packaging_charge',
})


def billing_customer(payment_type: str, sender, receiver):
    """The customer whose rates apply: the receiver for to-pay bookings, else the sender."""
    if payment_type == Booking.PaymentType.TO_PAY:
        return receiver
    return sender


def _price_line(scope, request: LineRequest, *, customer, branch_id, as_of=None) -> _PricedLine:
    """Resolve the rate of one requested line and build its engine input.

    Raises:
        NotFound: If the article is not in the caller's organization
        ValidationError: If the line breaks an engine rule
    """
    article = get_reference(scope, Article, request.article)
    if not article.is_active:
        raise ValidationError(f"Article '{article.name}' is inactive")

    line_input = LineInput.build(
        quantity=request.quantity,
        actual_weight=request.actual_weight,
        charged_weight=charged_weight_for(request.actual_weight, request.charged_weight),
        rate_per_unit=request.rate_per_unit,
        rate_basis=request.rate_basis or article.rate_basis,
        loading_per_unit=request.loading_per_unit,
        unloading_per_unit=request.unloading_per_unit,
        insurance_required=request.insurance_required,
        insurance_value=request.insurance_value,
        insurance_charge=request.insurance_charge,
        packaging_charge=request.packaging_charge,
    )

    rate_source = BookingArticle.RateSource.MANUAL
    if request.rate_per_unit is None:
        resolved = resolve_rate(
            scope,
            article=article,
            customer=customer,
            quantity=max(line_input.quantity, 1),
            weight=line_input.charged_weight,
            as_of=as_of,
            branch_id=branch_id,
        )
        line_input = replace(
            line_input,
            rate_per_unit=resolved.rate_per_unit,
            rate_basis=request.rate_basis or resolved.rate_basis,
        )
        rate_source = resolved.source

    errors = validate_line(line_input)
    if errors:
        raise ValidationError(errors)
    return _PricedLine(request=request, article=article, line_input=line_input, rate_source=rate_source)


def _price_lines(scope, requests, *, customer, branch_id, as_of=None, existing_article_ids=()):
    """Price every requested line, collecting errors per line index."""
    priced = []
    line_errors = {}
    seen = {str(pk) for pk in existing_article_ids}

    for index, request in enumerate(requests):
        try:
            line = _price_line(scope, request, customer=customer, branch_id=branch_id, as_of=as_of)
        except ValidationError as exc:
            line_errors[index] = exc.messages
            continue
        article_id = str(line.article.pk)
        if article_id in seen:
            line_errors[index] = [f"Article '{line.article.name}' appears more than once in the booking"]
            continue
        seen.add(article_id)
        priced.append(line)

    return priced, line_errors


def _build_line(booking: Booking, priced: _PricedLine, actor: str) -> BookingArticle:
    request, line_input = priced.request, priced.line_input
    return BookingArticle(
        booking=booking,
        article=priced.article,
        quantity=line_input.quantity,
        unit_of_measure=request.unit_of_measure or priced.article.unit_of_measure,
        actual_weight=line_input.actual_weight,
        charged_weight=line_input.charged_weight,
        declared_value=request.declared_value or 0,
        rate_per_unit=line_input.rate_per_unit,
        rate_basis=line_input.rate_basis,
        rate_source=priced.rate_source,
        loading_charge_per_unit=line_input.loading_per_unit,
        unloading_charge_per_unit=line_input.unloading_per_unit,
        insurance_required=line_input.insurance_required,
        insurance_value=line_input.insurance_value,
        insurance_charge=line_input.insurance_charge,
        packaging_charge=line_input.packaging_charge,
        description=request.description,
        private_mark_number=request.private_mark_number,
        is_fragile=request.is_fragile,
        special_instructions=request.special_instructions,
        created_by=actor,
    )


def _tracking_number_taken(organization_id, tracking_number: str) -> bool:
    return Booking.objects.filter(
        organization_id=organization_id,
        tracking_number=tracking_number,
    ).exists()


def create_booking(
    scope: TenantScope,
    *,
    destination_branch,
    sender,
    receiver,
    lines=(),
    branch=None,
    tracking_number: str = None,
    payment_type: str = Booking.PaymentType.PAID,
    reference_number: str = '',
    remarks: str = '',
    expected_delivery_date=None,
    as_of=None,
) -> Booking:
    """
    Create a booking with zero or more priced lines.

    Every line is validated and priced before anything is written; the
    booking, its lines, its total and its booking_created event are then
    persisted in one transaction.

    Args:
        scope: Caller's tenant scope
        destination_branch: Branch instance or id the consignment is bound for
        sender: Customer instance or id
        receiver: Customer instance or id
        lines: Iterable of LineRequest
        branch: Origin branch (defaults to the scope's branch)
        tracking_number: Manual tracking number; generated when None
        payment_type: Booking.PaymentType value
        as_of: Pricing date for rate resolution (defaults to today)

    Returns:
        The created Booking with its computed total

    Raises:
        ValidationError: Invalid header or lines (line errors keyed by index)
        NotFound: Unknown branch, customer or article in the organization
        Forbidden: Origin branch outside the caller's scope
    """
    lines = list(lines)
    errors = []

    origin_ref = branch if branch is not None else scope.branch_id
    if origin_ref is None:
        raise ValidationError("Origin branch is required")
    origin = guard_branch(scope, get_reference(scope, Branch, origin_ref))
    destination = get_reference(scope, Branch, destination_branch)
    sender = get_reference(scope, Customer, sender, 'Sender')
    receiver = get_reference(scope, Customer, receiver, 'Receiver')

    if origin.pk == destination.pk:
        errors.append("Origin and destination branch must be different")
    for label, station in (('Origin', origin), ('Destination', destination)):
        if not station.is_active:
            errors.append(f"{label} branch '{station.code}' is inactive")
    if sender.credit_status in get_blocked_credit_statuses():
        errors.append(f"Sender '{sender.name}' credit status is {sender.credit_status}")
    if payment_type not in Booking.PaymentType.values:
        errors.append(f"Unknown payment type '{payment_type}'")

    tracking_type = Booking.TrackingType.SYSTEM
    if tracking_number is not None:
        tracking_number = tracking_number.strip()
        tracking_type = Booking.TrackingType.MANUAL
        if not tracking_number:
            errors.append("Manual tracking number cannot be blank")
        elif _tracking_number_taken(scope.organization_id, tracking_number):
            errors.append(f"Tracking number '{tracking_number}' already exists")

    priced, line_errors = _price_lines(
        scope,
        lines,
        customer=billing_customer(payment_type, sender, receiver),
        branch_id=origin.pk,
        as_of=as_of,
    )
    if errors or line_errors:
        messages = errors + [
            f"line {index}: {message}"
            for index, messages in sorted(line_errors.items())
            for message in messages
        ]
        raise ValidationError(messages, line_errors=line_errors)

    with transaction.atomic():
        if tracking_type == Booking.TrackingType.SYSTEM:
            tracking_number = next_number(
                'booking', origin.organization,
                is_taken=lambda value: _tracking_number_taken(scope.organization_id, value),
            )

        try:
            with transaction.atomic():
                booking = Booking.objects.create(
                    organization_id=scope.organization_id,
                    branch=origin,
                    destination_branch=destination,
                    sender=sender,
                    receiver=receiver,
                    tracking_number=tracking_number,
                    tracking_type=tracking_type,
                    payment_type=payment_type,
                    reference_number=reference_number,
                    remarks=remarks,
                    expected_delivery_date=expected_delivery_date,
                    created_by=scope.actor,
                )
        except IntegrityError:
            # Another booking claimed the number after the check above
            raise ValidationError(f"Tracking number '{tracking_number}' already exists")

        for line in priced:
            _build_line(booking, line, scope.actor).save()

        record_event(
            'booking_created',
            organization_id=booking.organization_id,
            branch_id=booking.branch_id,
            booking=booking,
            to_status=booking.status,
            actor=scope.actor,
            metadata={'tracking_number': tracking_number, 'lines': len(priced)},
        )
        recompute_booking_total(booking)

    logger.info(
        f"Created booking {booking.tracking_number} with {len(priced)} line(s), "
        f"total {booking.total_amount}"
    )
    return booking


def _require_booked(booking: Booking, action: str):
    if booking.status != BookingStatus.BOOKED:
        raise InvalidTransition(
            booking.status, booking.status,
            f"Cannot {action} booking {booking.tracking_number} while it is {booking.status}",
        )


@transaction.atomic
def add_line(scope: TenantScope, booking, request: LineRequest, *, as_of=None) -> BookingArticle:
    """
    Add one line to a booked booking and recompute its total.

    Raises:
        InvalidTransition: If the booking has left the booked state
        ValidationError: If the line is invalid or its article is already on the booking
    """
    booking = get_scoped(scope, Booking, booking, for_write=True)
    locked = lock_booking(booking.pk)
    _require_booked(locked, 'add lines to')

    existing = BookingArticle.objects.filter(booking_id=locked.pk).values_list('article_id', flat=True)
    priced, line_errors = _price_lines(
        scope,
        [request],
        customer=billing_customer(locked.payment_type, locked.sender, locked.receiver),
        branch_id=locked.branch_id,
        as_of=as_of,
        existing_article_ids=list(existing),
    )
    if line_errors:
        raise ValidationError(line_errors[0], line_errors=line_errors)

    line = _build_line(locked, priced[0], scope.actor)
    line.save()
    record_event(
        'line_added',
        organization_id=locked.organization_id,
        branch_id=locked.branch_id,
        booking=locked,
        line=line,
        to_status=line.status,
        actor=scope.actor,
        metadata={'line_total': str(line.line_total)},
    )
    recompute_booking_total(locked)
    return line


@transaction.atomic
def update_line(scope: TenantScope, line, *, as_of=None, **changes) -> BookingArticle:
    """
    Change the inputs of a booked line and recompute its amounts and the booking total.

    Derived amounts (freight_amount, loading_total, unloading_total,
    line_total) cannot be set. Passing ``rate_per_unit=None`` re-resolves the
    rate; passing ``charged_weight=None`` re-derives it from the actual weight.

    Raises:
        ValidationError: Unknown or derived field, or the result breaks a line rule
        InvalidTransition: If the line or its booking has left the booked state
    """
    derived = sorted(set(changes) & set(_DERIVED_FIELDS))
    if derived:
        raise ValidationError([f"{name} is computed and cannot be set" for name in derived])
    unknown = sorted(set(changes) - _UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError([f"Unknown line field '{name}'" for name in unknown])

    line = get_scoped(scope, BookingArticle, line, 'Line', for_write=True)
    locked = lock_booking(line.booking_id)
    line = BookingArticle.objects.select_for_update().get(pk=line.pk)
    _require_booked(locked, 'edit lines of')
    if line.status != LineStatus.BOOKED:
        raise InvalidTransition(line.status, line.status, f"Cannot edit a line that is {line.status}")

    for name, value in changes.items():
        if name in ('rate_per_unit', 'charged_weight') and value is None:
            continue
        setattr(line, _INPUT_FIELDS.get(name, name), value)

    if 'charged_weight' in changes and changes['charged_weight'] is None:
        line.charged_weight = charged_weight_for(line.actual_weight)
    if 'rate_per_unit' in changes and changes['rate_per_unit'] is None:
        resolved = resolve_rate(
            scope,
            article=line.article,
            customer=billing_customer(locked.payment_type, locked.sender, locked.receiver),
            quantity=line.quantity,
            weight=line.charged_weight,
            as_of=as_of,
            branch_id=locked.branch_id,
        )
        line.rate_per_unit = resolved.rate_per_unit
        if 'rate_basis' not in changes:
            line.rate_basis = resolved.rate_basis
        line.rate_source = resolved.source
    elif 'rate_per_unit' in changes:
        line.rate_source = BookingArticle.RateSource.MANUAL

    errors = validate_line(line.to_line_input())
    if errors:
        raise ValidationError(errors)

    line.save()
    record_event(
        'line_updated',
        organization_id=locked.organization_id,
        branch_id=locked.branch_id,
        booking=locked,
        line=line,
        from_status=line.status,
        to_status=line.status,
        actor=scope.actor,
        metadata={
            'fields': sorted(changes),
            'repriced': bool(_PRICING_FIELDS & set(changes)),
            'line_total': str(line.line_total),
        },
    )
    recompute_booking_total(locked)
    return line


@transaction.atomic
def remove_line(scope: TenantScope, line, reason: str = '') -> Booking:
    """
    Soft delete a line of a booked booking and recompute the total.

    Raises:
        InvalidTransition: If the booking has left the booked state
        ValidationError: If the line is on an open manifest
    """
    line = get_scoped(scope, BookingArticle, line, 'Line', for_write=True)
    locked = lock_booking(line.booking_id)
    _require_booked(locked, 'remove lines from')

    on_manifest = ManifestItem.objects.filter(
        line=line,
        manifest__deleted_at__isnull=True,
    ).exclude(
        manifest__status__in=[ManifestStatus.COMPLETED, ManifestStatus.CANCELLED],
    ).exists()
    if on_manifest:
        raise ValidationError("Line is on an open manifest; remove it from the manifest first")

    line.delete()
    record_event(
        'line_removed',
        organization_id=locked.organization_id,
        branch_id=locked.branch_id,
        booking=locked,
        line=line,
        from_status=line.status,
        actor=scope.actor,
        metadata={'reason': reason},
    )
    return recompute_booking_total(locked)


@transaction.atomic
def delete_booking(scope: TenantScope, booking) -> Booking:
    """
    Soft delete a booking that has no lines.

    Bookings with lines attached are cancelled, never deleted.

    Raises:
        ValidationError: If the booking has lines
    """
    booking = get_scoped(scope, Booking, booking, for_write=True)
    locked = lock_booking(booking.pk)
    if BookingArticle.objects.filter(booking_id=locked.pk).exists():
        raise ValidationError(
            f"Booking {locked.tracking_number} has lines; cancel it instead of deleting"
        )
    locked.delete()
    logger.info(f"Deleted booking {locked.tracking_number}")
    return locked
