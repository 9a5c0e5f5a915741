"""Tests for manifest loading and unloading."""
from datetime import date

import pytest

from django_freight.custody import cancel_line, mark_loaded, report_missing
from django_freight.exceptions import Forbidden, InvalidTransition, ValidationError
from django_freight.manifests import (
    add_lines_to_manifest,
    cancel_manifest,
    complete_manifest,
    create_manifest,
    dispatch_manifest,
    remove_line_from_manifest,
)
from django_freight.models import Booking, BookingArticle, CustodyEvent, Manifest, ManifestItem
from django_freight.services import LineRequest


@pytest.fixture
def lines(booking, make_booking, drum):
    """Three booked lines at branch A across two bookings."""
    second = make_booking(lines=[LineRequest(article=drum, quantity=3)])
    return list(BookingArticle.objects.filter(booking__in=[booking, second]).order_by("line_total"))


@pytest.fixture
def manifest(scope_a, branch_b, lines):
    return create_manifest(
        scope_a, destination_branch=branch_b, vehicle_number="ka 01 ab 1234",
        driver_name="Ravi", lines=lines,
    )


def by_line(result):
    return {item.line_id: item for item in result.items}


def statuses(lines):
    return [BookingArticle.objects.get(pk=line.pk).status for line in lines]


@pytest.mark.django_db
class TestCreateManifest:
    """Creating manifests at the dispatching branch."""

    def test_creates_numbered_manifest(self, manifest, branch_a, lines):
        assert manifest.manifest_number == f"MF-{date.today().year}-000001"
        assert manifest.vehicle_number == "KA 01 AB 1234"
        assert manifest.branch_id == branch_a.pk
        assert manifest.status == "created"
        assert manifest.created_by == "clerk-hyd"
        assert ManifestItem.objects.filter(manifest=manifest).count() == 3
        assert CustodyEvent.objects.filter(manifest=manifest, event_type="manifest_created").exists()

    def test_vehicle_number_required(self, scope_a, branch_b):
        with pytest.raises(ValidationError):
            create_manifest(scope_a, destination_branch=branch_b, vehicle_number="  ")

    def test_destination_must_differ(self, scope_a, branch_a):
        with pytest.raises(ValidationError):
            create_manifest(scope_a, destination_branch=branch_a, vehicle_number="TS09")

    def test_cannot_dispatch_from_another_branch(self, scope_b, branch_a, branch_c):
        with pytest.raises(Forbidden):
            create_manifest(scope_b, branch=branch_a, destination_branch=branch_c, vehicle_number="TS09")

        assert Manifest.objects.count() == 0


@pytest.mark.django_db
class TestAddLines:
    """Only booked lines of the dispatching branch, on one open manifest at a time."""

    def test_line_cannot_be_on_two_open_manifests(self, scope_a, branch_c, manifest, lines):
        other = create_manifest(scope_a, destination_branch=branch_c, vehicle_number="TS09")

        with pytest.raises(ValidationError) as exc_info:
            add_lines_to_manifest(scope_a, other, [lines[0]])

        assert manifest.manifest_number in exc_info.value.line_errors[0][0]
        assert ManifestItem.objects.filter(manifest=other).count() == 0

    def test_cancelled_manifest_frees_its_lines(self, scope_a, branch_c, manifest, lines):
        cancel_manifest(scope_a, manifest, reason="Vehicle breakdown")
        other = create_manifest(scope_a, destination_branch=branch_c, vehicle_number="TS09")

        add_lines_to_manifest(scope_a, other, lines)

        assert ManifestItem.objects.filter(manifest=other).count() == 3

    def test_only_booked_lines(self, scope_a, branch_b, lines):
        mark_loaded(scope_a, lines[0])

        with pytest.raises(ValidationError) as exc_info:
            create_manifest(scope_a, destination_branch=branch_b, vehicle_number="TS09", lines=lines)

        assert list(exc_info.value.line_errors) == [0]
        assert Manifest.objects.count() == 0

    def test_only_lines_booked_at_dispatching_branch(self, admin_scope, scope_b, branch_a, branch_c, make_booking, drum):
        elsewhere = make_booking(
            scope=scope_b, destination_branch=branch_c,
            lines=[LineRequest(article=drum, quantity=1)],
        )
        line = BookingArticle.objects.get(booking=elsewhere)

        with pytest.raises(ValidationError) as exc_info:
            create_manifest(
                admin_scope, branch=branch_a, destination_branch=branch_c,
                vehicle_number="TS09", lines=[line],
            )

        assert "not booked at the dispatching branch" in exc_info.value.line_errors[0][0]

    def test_lines_only_added_before_dispatch(self, scope_a, manifest, make_booking, drum):
        dispatch_manifest(scope_a, manifest)
        extra = make_booking(lines=[LineRequest(article=drum, quantity=1)])

        with pytest.raises(InvalidTransition):
            add_lines_to_manifest(scope_a, manifest, list(BookingArticle.objects.filter(booking=extra)))

    def test_remove_line_before_dispatch(self, scope_a, manifest, lines):
        remove_line_from_manifest(scope_a, manifest, lines[0])

        assert ManifestItem.objects.filter(manifest=manifest).count() == 2

    def test_remove_loaded_line_rejected(self, scope_a, manifest, lines):
        dispatch_manifest(scope_a, manifest)

        with pytest.raises(InvalidTransition):
            remove_line_from_manifest(scope_a, manifest, lines[0])


@pytest.mark.django_db
class TestDispatchManifest:
    """Bulk loading with per-line outcomes."""

    def test_dispatch_loads_every_line(self, scope_a, manifest, lines, booking):
        result = dispatch_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        booking.refresh_from_db()
        assert manifest.status == "in_transit"
        assert manifest.dispatched_by == "clerk-hyd"
        assert result.is_complete
        assert result.summary() == "3 of 3 lines processed, 0 failed, 0 skipped"
        assert statuses(lines) == ["loaded", "loaded", "loaded"]
        assert booking.status == "in_transit"

    def test_one_failing_line_does_not_block_the_rest(self, scope_a, manifest, lines):
        """Lines are processed independently; the manifest records the partial outcome."""
        cancel_line(scope_a, lines[0], reason="Customer withdrew")

        result = dispatch_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        outcomes = by_line(result)
        assert len(result.succeeded) == 2
        assert len(result.failed) == 1
        assert outcomes[lines[0].pk].status == "cancelled"
        assert "terminal state" in outcomes[lines[0].pk].error
        assert manifest.status == "partially_processed"
        assert manifest.phase == "loading"
        assert statuses(lines) == ["cancelled", "loaded", "loaded"]
        item = ManifestItem.objects.get(manifest=manifest, line=lines[0])
        assert item.load_outcome == "failed"
        assert item.load_error

    def test_retry_after_removing_failed_line(self, scope_a, manifest, lines):
        cancel_line(scope_a, lines[0])
        dispatch_manifest(scope_a, manifest)

        remove_line_from_manifest(scope_a, manifest, lines[0])
        result = dispatch_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        assert result.items == ()
        assert manifest.status == "in_transit"
        assert manifest.dispatched_at is not None

    def test_retry_only_attempts_unresolved_lines(self, scope_a, manifest, lines):
        cancel_line(scope_a, lines[0])
        dispatch_manifest(scope_a, manifest)

        result = dispatch_manifest(scope_a, manifest)

        assert [item.line_id for item in result.items] == [lines[0].pk]
        manifest.refresh_from_db()
        assert manifest.status == "partially_processed"

    def test_empty_manifest_rejected(self, scope_a, branch_b):
        empty = create_manifest(scope_a, destination_branch=branch_b, vehicle_number="TS09")

        with pytest.raises(ValidationError):
            dispatch_manifest(scope_a, empty)

    def test_cannot_dispatch_twice(self, scope_a, manifest):
        dispatch_manifest(scope_a, manifest)

        with pytest.raises(InvalidTransition):
            dispatch_manifest(scope_a, manifest)

    def test_scope_violation_aborts_everything(self, scope_b, manifest, lines):
        with pytest.raises(Forbidden):
            dispatch_manifest(scope_b, manifest)

        manifest.refresh_from_db()
        assert manifest.status == "created"
        assert statuses(lines) == ["booked", "booked", "booked"]


@pytest.mark.django_db
class TestCompleteManifest:
    """Bulk unloading under reported conditions."""

    def test_complete_with_conditions(self, scope_a, manifest, lines):
        dispatch_manifest(scope_a, manifest)

        result = complete_manifest(
            scope_a, manifest,
            conditions={lines[1].pk: "damaged", str(lines[2].pk): "missing"},
            remarks={lines[1].pk: "Torn packaging"},
        )

        manifest.refresh_from_db()
        assert manifest.status == "completed"
        assert manifest.completed_by == "clerk-hyd"
        assert result.summary() == "3 of 3 lines processed, 0 failed, 0 skipped"
        assert statuses(lines) == ["unloaded", "damaged", "missing"]
        item = ManifestItem.objects.get(manifest=manifest, line=lines[1])
        assert item.unload_condition == "damaged"
        assert item.remarks == "Torn packaging"

    def test_unknown_condition_rejected(self, scope_a, manifest, lines):
        dispatch_manifest(scope_a, manifest)

        with pytest.raises(ValidationError):
            complete_manifest(scope_a, manifest, conditions={lines[0].pk: "wet"})

        manifest.refresh_from_db()
        assert manifest.status == "in_transit"
        assert statuses(lines) == ["loaded", "loaded", "loaded"]

    def test_condition_for_foreign_line_rejected(self, scope_a, manifest, booking, make_booking, drum):
        dispatch_manifest(scope_a, manifest)
        stranger = make_booking(lines=[LineRequest(article=drum, quantity=1)])
        line = BookingArticle.objects.get(booking=stranger)

        with pytest.raises(ValidationError) as exc_info:
            complete_manifest(scope_a, manifest, conditions={line.pk: "good"})

        assert "is not on manifest" in str(exc_info.value)

    def test_never_loaded_lines_are_skipped(self, scope_a, manifest, lines):
        cancel_line(scope_a, lines[0])
        dispatch_manifest(scope_a, manifest)

        result = complete_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        assert len(result.skipped) == 1
        assert by_line(result)[lines[0].pk].skipped
        assert manifest.status == "completed"
        assert statuses(lines) == ["cancelled", "unloaded", "unloaded"]

    def test_lines_closed_in_transit_are_skipped(self, scope_a, manifest, lines):
        """A line cancelled or reported missing after loading does not hold the manifest open."""
        dispatch_manifest(scope_a, manifest)
        cancel_line(scope_a, lines[0])
        report_missing(scope_a, lines[1], remarks="Not found at hub")

        result = complete_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        outcomes = by_line(result)
        assert manifest.status == "completed"
        assert result.summary() == "1 of 3 lines processed, 0 failed, 2 skipped"
        assert outcomes[lines[0].pk].error == "Line is already cancelled"
        assert outcomes[lines[1].pk].status == "missing"
        assert statuses(lines) == ["cancelled", "missing", "unloaded"]

    def test_missing_line_reported_missing_again_succeeds(self, scope_a, manifest, lines):
        dispatch_manifest(scope_a, manifest)
        report_missing(scope_a, lines[0])

        result = complete_manifest(scope_a, manifest, conditions={lines[0].pk: "missing"})

        manifest.refresh_from_db()
        assert manifest.status == "completed"
        assert result.summary() == "3 of 3 lines processed, 0 failed, 0 skipped"

    def test_failed_unload_leaves_manifest_open_for_retry(self, scope_a, manifest, lines, monkeypatch):
        from django_freight import manifests

        real_transition = manifests.transition_line
        failures = []

        def flaky_transition(scope, line_id, to_status, **kwargs):
            if line_id == lines[0].pk and not failures:
                failures.append(line_id)
                raise InvalidTransition("loaded", to_status, "Unloading bay closed")
            return real_transition(scope, line_id, to_status, **kwargs)

        dispatch_manifest(scope_a, manifest)
        monkeypatch.setattr(manifests, "transition_line", flaky_transition)

        result = complete_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        assert len(result.failed) == 1
        assert result.failed[0].status == "loaded"
        assert manifest.status == "partially_processed"
        assert manifest.phase == "unloading"
        assert statuses(lines) == ["loaded", "unloaded", "unloaded"]

        retry = complete_manifest(scope_a, manifest)

        manifest.refresh_from_db()
        assert [item.line_id for item in retry.items] == [lines[0].pk]
        assert manifest.status == "completed"
        assert statuses(lines) == ["unloaded", "unloaded", "unloaded"]

    def test_cannot_complete_before_dispatch(self, scope_a, manifest):
        with pytest.raises(InvalidTransition):
            complete_manifest(scope_a, manifest)

    def test_completed_booking_lines_can_be_delivered(self, scope_a, manifest, lines):
        from django_freight.custody import mark_delivered

        dispatch_manifest(scope_a, manifest)
        complete_manifest(scope_a, manifest)
        for line in lines:
            mark_delivered(scope_a, line)

        assert set(Booking.objects.values_list("status", flat=True)) == {"delivered"}


@pytest.mark.django_db
class TestCancelManifest:
    """Manifests can only be cancelled before dispatch."""

    def test_cancel_created_manifest(self, scope_a, manifest):
        cancelled = cancel_manifest(scope_a, manifest, reason="Vehicle breakdown")

        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_at is not None

    def test_cannot_cancel_dispatched_manifest(self, scope_a, manifest):
        dispatch_manifest(scope_a, manifest)

        with pytest.raises(InvalidTransition):
            cancel_manifest(scope_a, manifest)
