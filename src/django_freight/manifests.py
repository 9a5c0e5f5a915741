"""Loading manifests.

A manifest groups booked lines for one vehicle trip. Dispatch and completion
are bulk custody transitions evaluated line by line: each line runs in its
own savepoint, a failing line is recorded on its ManifestItem and the rest
carry on. The manifest's own status is written last, after every item has
been attempted:

- every item resolved     -> in_transit (dispatch) / completed (completion)
- any item failed         -> partially_processed, with the phase left open

Re-running dispatch or completion only retries unresolved items. Tenant
scope violations are not per-item failures: they abort the whole call.
"""

import logging
from datetime import date

from django.db import transaction
from django.utils import timezone

from .custody import check_transition, record_event, transition_line
from .exceptions import InvalidTransition, NotFound, ValidationError
from .models import BookingArticle, Branch, Manifest, ManifestItem
from .scoping import TenantScope, get_reference, get_scoped, guard_branch
from .sequences import next_number
from .states import (
    LINE_GRAPH,
    MANIFEST_GRAPH,
    ItemOutcome,
    LineStatus,
    ManifestPhase,
    ManifestStatus,
    UnloadCondition,
)
from .value_objects import ItemResult, ManifestResult


logger = logging.getLogger(__name__)


CONDITION_STATUS = {
    UnloadCondition.GOOD: LineStatus.UNLOADED,
    UnloadCondition.DAMAGED: LineStatus.DAMAGED,
    UnloadCondition.MISSING: LineStatus.MISSING,
}

# Per-line failures; anything else aborts the bulk operation
ITEM_ERRORS = (InvalidTransition, ValidationError, NotFound)

_RESOLVED = (ItemOutcome.SUCCEEDED, ItemOutcome.SKIPPED)


def _lock_manifest(scope: TenantScope, manifest) -> Manifest:
    manifest = get_scoped(scope, Manifest, manifest, for_write=True)
    return Manifest.objects.select_for_update().get(pk=manifest.pk)


def _open_item_for(line_id):
    """The line's item on a manifest that is neither completed nor cancelled."""
    return ManifestItem.objects.filter(
        line_id=line_id,
        manifest__deleted_at__isnull=True,
    ).exclude(
        manifest__status__in=[ManifestStatus.COMPLETED, ManifestStatus.CANCELLED],
    ).select_related('manifest').first()


def create_manifest(
    scope: TenantScope,
    *,
    destination_branch,
    vehicle_number: str,
    driver_name: str = '',
    travel_date: date = None,
    branch=None,
    lines=(),
) -> Manifest:
    """
    Create a manifest dispatching from the caller's branch.

    Args:
        scope: Caller's tenant scope
        destination_branch: Branch instance or id
        vehicle_number: Vehicle registration
        driver_name: Optional driver name
        travel_date: Trip date (defaults to today)
        branch: Dispatching branch (defaults to the scope's branch)
        lines: Optional initial lines (instances or ids)

    Raises:
        ValidationError: Blank vehicle number or identical origin and destination
    """
    origin_ref = branch if branch is not None else scope.branch_id
    if origin_ref is None:
        raise ValidationError("Dispatching branch is required")
    origin = guard_branch(scope, get_reference(scope, Branch, origin_ref))
    destination = get_reference(scope, Branch, destination_branch)

    errors = []
    if not (vehicle_number or '').strip():
        errors.append("Vehicle number is required")
    if origin.pk == destination.pk:
        errors.append("Origin and destination branch must be different")
    if errors:
        raise ValidationError(errors)

    with transaction.atomic():
        manifest = Manifest.objects.create(
            organization_id=scope.organization_id,
            branch=origin,
            destination_branch=destination,
            manifest_number=next_number('manifest', origin.organization),
            vehicle_number=vehicle_number.strip().upper(),
            driver_name=driver_name,
            travel_date=travel_date or timezone.localdate(),
            created_by=scope.actor,
        )
        record_event(
            'manifest_created',
            organization_id=manifest.organization_id,
            branch_id=manifest.branch_id,
            manifest=manifest,
            to_status=manifest.status,
            actor=scope.actor,
        )
        lines = list(lines)
        if lines:
            add_lines_to_manifest(scope, manifest, lines)

    logger.info(f"Created manifest {manifest.manifest_number} for vehicle {manifest.vehicle_number}")
    return manifest


@transaction.atomic
def add_lines_to_manifest(scope: TenantScope, manifest, lines) -> Manifest:
    """
    Add booked lines to a manifest that has not been dispatched yet.

    All-or-nothing: every line is checked first and errors are reported per
    index.

    Raises:
        InvalidTransition: If the manifest has been dispatched or cancelled
        ValidationError: If any line is not booked, belongs to another branch,
            or already sits on an open manifest
    """
    locked = _lock_manifest(scope, manifest)
    if locked.status != ManifestStatus.CREATED:
        raise InvalidTransition(
            locked.status, locked.status,
            f"Lines can only be added to manifest {locked.manifest_number} before dispatch",
        )

    accepted = []
    line_errors = {}
    seen = set()
    for index, ref in enumerate(lines):
        line = get_scoped(scope, BookingArticle, ref, 'Line')
        booking = line.booking
        problem = None
        if line.pk in seen:
            problem = "Line listed twice"
        elif line.status != LineStatus.BOOKED:
            problem = f"Line is {line.status}, only booked lines can be manifested"
        elif booking.branch_id != locked.branch_id:
            problem = f"Booking {booking.tracking_number} was not booked at the dispatching branch"
        else:
            open_item = _open_item_for(line.pk)
            if open_item is not None:
                problem = f"Line is already on manifest {open_item.manifest.manifest_number}"
        if problem:
            line_errors[index] = [problem]
            continue
        seen.add(line.pk)
        accepted.append(line)

    if line_errors:
        raise ValidationError(
            [f"line {index}: {errors[0]}" for index, errors in sorted(line_errors.items())],
            line_errors=line_errors,
        )

    for line in accepted:
        ManifestItem.objects.create(manifest=locked, line=line)
        record_event(
            'manifest_line_added',
            organization_id=locked.organization_id,
            branch_id=locked.branch_id,
            booking=line.booking,
            line=line,
            manifest=locked,
            actor=scope.actor,
        )
    return locked


@transaction.atomic
def remove_line_from_manifest(scope: TenantScope, manifest, line) -> Manifest:
    """
    Take a line off a manifest.

    Allowed before dispatch, and for items that failed to load while the
    manifest is partially processed in its loading phase.
    """
    locked = _lock_manifest(scope, manifest)
    line_id = getattr(line, 'pk', line)
    item = ManifestItem.objects.filter(manifest=locked, line_id=line_id).first()
    if item is None:
        raise NotFound('Manifest line', line_id)

    loading_retry = (
        locked.status == ManifestStatus.PARTIALLY_PROCESSED
        and locked.phase == ManifestPhase.LOADING
        and item.load_outcome != ItemOutcome.SUCCEEDED
    )
    if locked.status != ManifestStatus.CREATED and not loading_retry:
        raise InvalidTransition(
            locked.status, locked.status,
            f"Line cannot be removed from manifest {locked.manifest_number} once loaded",
        )

    item.delete()
    record_event(
        'manifest_line_removed',
        organization_id=locked.organization_id,
        branch_id=locked.branch_id,
        line=item.line,
        manifest=locked,
        actor=scope.actor,
    )
    return locked


def _run_item(scope, manifest, item, to_status: str, metadata: dict):
    """Attempt one line transition in its own savepoint."""
    try:
        line = transition_line(scope, item.line_id, to_status, manifest=manifest, metadata=metadata)
    except ITEM_ERRORS as exc:
        logger.warning(
            f"Manifest {manifest.manifest_number}: line {item.line_id} -> {to_status} failed: {exc}"
        )
        current = BookingArticle.all_objects.filter(pk=item.line_id).values_list('status', flat=True).first()
        return ItemOutcome.FAILED, current or '', str(exc)
    return ItemOutcome.SUCCEEDED, line.status, ''


def _finish(scope, manifest: Manifest, to_status: str, phase: str, stamp: str = None):
    check_transition(MANIFEST_GRAPH, manifest.status, to_status)
    from_status = manifest.status
    manifest.status = to_status
    manifest.phase = phase
    update_fields = ['status', 'phase', 'updated_at']
    if stamp:
        setattr(manifest, f"{stamp}_at", timezone.now())
        setattr(manifest, f"{stamp}_by", scope.actor)
        update_fields += [f"{stamp}_at", f"{stamp}_by"]
    manifest.save(update_fields=update_fields)
    record_event(
        f"manifest_{to_status}",
        organization_id=manifest.organization_id,
        branch_id=manifest.branch_id,
        manifest=manifest,
        from_status=from_status,
        to_status=to_status,
        actor=scope.actor,
        metadata={'phase': phase} if phase else None,
    )


@transaction.atomic
def dispatch_manifest(scope: TenantScope, manifest) -> ManifestResult:
    """
    Load every line of the manifest and send it on its way.

    Moves each unresolved member line booked -> loaded in its own savepoint.
    The manifest goes to in_transit only when every item is loaded; otherwise
    it is left partially_processed in the loading phase.

    Returns:
        ManifestResult with one ItemResult per attempted line

    Raises:
        InvalidTransition: If the manifest is not awaiting (re)dispatch
        ValidationError: If the manifest has no lines
        Forbidden: If any line is outside the caller's scope (nothing is applied)
    """
    locked = _lock_manifest(scope, manifest)
    retry = locked.status == ManifestStatus.PARTIALLY_PROCESSED and locked.phase == ManifestPhase.LOADING
    if locked.status != ManifestStatus.CREATED and not retry:
        raise InvalidTransition(
            locked.status, ManifestStatus.IN_TRANSIT,
            f"Manifest {locked.manifest_number} is not awaiting dispatch",
        )

    items = list(
        ManifestItem.objects.filter(manifest=locked).select_related('line__booking').order_by('created_at')
    )
    if not items:
        raise ValidationError(f"Manifest {locked.manifest_number} has no lines")

    results = []
    metadata = {'manifest_number': locked.manifest_number, 'vehicle_number': locked.vehicle_number}
    for item in items:
        if item.load_outcome == ItemOutcome.SUCCEEDED:
            continue
        outcome, status, error = _run_item(scope, locked, item, LineStatus.LOADED, metadata)
        item.load_outcome = outcome
        item.load_error = error
        item.save(update_fields=['load_outcome', 'load_error', 'updated_at'])
        results.append(ItemResult(item.line_id, item.line.booking.tracking_number, outcome, status, error))

    first_dispatch = locked.status == ManifestStatus.CREATED
    if all(item.load_outcome == ItemOutcome.SUCCEEDED for item in items):
        _finish(scope, locked, ManifestStatus.IN_TRANSIT, '', 'dispatched' if first_dispatch else None)
    else:
        _finish(scope, locked, ManifestStatus.PARTIALLY_PROCESSED, ManifestPhase.LOADING,
                'dispatched' if first_dispatch else None)

    result = ManifestResult(manifest=locked, items=tuple(results))
    logger.info(f"Dispatched manifest {locked.manifest_number}: {result.summary()}")
    return result


@transaction.atomic
def complete_manifest(scope: TenantScope, manifest, conditions: dict = None, remarks: dict = None) -> ManifestResult:
    """
    Unload the manifest at its destination.

    Each loaded line moves to the status matching its reported condition
    (good -> unloaded, damaged -> damaged, missing -> missing; default good).
    Lines that were never loaded, and lines that already reached a different
    terminal status (cancelled, reported missing) are skipped. The manifest
    completes only when
    every item is resolved; otherwise it is left partially_processed in the
    unloading phase.

    Args:
        scope: Caller's tenant scope
        manifest: Manifest instance or id
        conditions: Optional {line_id: UnloadCondition}
        remarks: Optional {line_id: free text}

    Raises:
        InvalidTransition: If the manifest has not been dispatched or is closed
        ValidationError: Unknown condition value or line not on the manifest
    """
    conditions = {str(k): v for k, v in (conditions or {}).items()}
    remarks = {str(k): v for k, v in (remarks or {}).items()}

    locked = _lock_manifest(scope, manifest)
    if locked.status not in (ManifestStatus.IN_TRANSIT, ManifestStatus.PARTIALLY_PROCESSED):
        raise InvalidTransition(
            locked.status, ManifestStatus.COMPLETED,
            f"Manifest {locked.manifest_number} is not in transit",
        )

    items = list(
        ManifestItem.objects.filter(manifest=locked).select_related('line__booking').order_by('created_at')
    )
    member_ids = {str(item.line_id) for item in items}
    errors = [f"Line {line_id} is not on manifest {locked.manifest_number}"
              for line_id in sorted(set(conditions) - member_ids)]
    errors += [f"Unknown unload condition '{value}'"
               for value in conditions.values() if value not in UnloadCondition.values]
    if errors:
        raise ValidationError(errors)

    results = []
    for item in items:
        if item.unload_outcome in _RESOLVED:
            continue
        key = str(item.line_id)
        tracking_number = item.line.booking.tracking_number
        if item.load_outcome != ItemOutcome.SUCCEEDED:
            item.unload_outcome = ItemOutcome.SKIPPED
            item.unload_error = "Line was not loaded on this manifest"
            item.save(update_fields=['unload_outcome', 'unload_error', 'updated_at'])
            results.append(ItemResult(item.line_id, tracking_number, ItemOutcome.SKIPPED,
                                      item.line.status, item.unload_error))
            continue

        condition = conditions.get(key, UnloadCondition.GOOD)
        note = remarks.get(key, '')
        target = CONDITION_STATUS[condition]
        if LINE_GRAPH.is_terminal(item.line.status):
            already = item.line.status == target
            item.unload_outcome = ItemOutcome.SUCCEEDED if already else ItemOutcome.SKIPPED
            item.unload_error = '' if already else f"Line is already {item.line.status}"
            item.unload_condition = condition
            item.remarks = note
            item.save(update_fields=['unload_outcome', 'unload_error', 'unload_condition', 'remarks', 'updated_at'])
            results.append(ItemResult(item.line_id, tracking_number, item.unload_outcome,
                                      item.line.status, item.unload_error))
            continue

        metadata = {'manifest_number': locked.manifest_number, 'condition': condition, 'remarks': note}
        outcome, status, error = _run_item(scope, locked, item, target, metadata)
        item.unload_outcome = outcome
        item.unload_error = error
        item.unload_condition = condition
        item.remarks = note
        item.save(update_fields=['unload_outcome', 'unload_error', 'unload_condition', 'remarks', 'updated_at'])
        results.append(ItemResult(item.line_id, tracking_number, outcome, status, error))

    if all(item.unload_outcome in _RESOLVED for item in items):
        _finish(scope, locked, ManifestStatus.COMPLETED, '', 'completed')
    else:
        _finish(scope, locked, ManifestStatus.PARTIALLY_PROCESSED, ManifestPhase.UNLOADING)

    result = ManifestResult(manifest=locked, items=tuple(results))
    logger.info(f"Completed manifest {locked.manifest_number}: {result.summary()}")
    return result


@transaction.atomic
def cancel_manifest(scope: TenantScope, manifest, reason: str = '') -> Manifest:
    """Cancel a manifest before dispatch; its lines become free to manifest again."""
    locked = _lock_manifest(scope, manifest)
    if locked.status == ManifestStatus.CANCELLED:
        return locked
    check_transition(MANIFEST_GRAPH, locked.status, ManifestStatus.CANCELLED)

    from_status = locked.status
    locked.status = ManifestStatus.CANCELLED
    locked.cancelled_at = timezone.now()
    locked.save(update_fields=['status', 'cancelled_at', 'updated_at'])
    record_event(
        'manifest_cancelled',
        organization_id=locked.organization_id,
        branch_id=locked.branch_id,
        manifest=locked,
        from_status=from_status,
        to_status=locked.status,
        actor=scope.actor,
        metadata={'reason': reason},
    )
    logger.info(f"Cancelled manifest {locked.manifest_number}")
    return locked
