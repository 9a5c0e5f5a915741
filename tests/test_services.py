"""Tests for booking intake and line maintenance services."""
from datetime import date
from decimal import Decimal

import pytest

from django_freight.exceptions import Forbidden, InvalidTransition, NotFound, ValidationError
from django_freight.models import Article, Booking, BookingArticle, CustodyEvent, CustomerArticleRate
from django_freight.services import (
    LineRequest,
    add_line,
    create_booking,
    delete_booking,
    remove_line,
    update_line,
)


@pytest.mark.django_db
class TestCreateBooking:
    """Booking intake: validate, price and persist atomically."""

    def test_creates_booking_with_computed_total(self, booking):
        lines = BookingArticle.objects.filter(booking=booking).order_by("freight_amount")

        assert booking.status == "booked"
        assert booking.total_amount == Decimal("1800.00")
        assert [line.line_total for line in lines] == [Decimal("500.00"), Decimal("1300.00")]

    def test_system_tracking_number(self, booking):
        year = date.today().year

        assert booking.tracking_number == f"LR-{year}-000001"
        assert booking.tracking_type == "system"

    def test_sequential_tracking_numbers(self, make_booking):
        first = make_booking()
        second = make_booking()

        assert first.tracking_number.endswith("000001")
        assert second.tracking_number.endswith("000002")

    def test_booking_without_lines(self, make_booking):
        booking = make_booking()

        assert booking.total_amount == Decimal("0")

    def test_manual_tracking_number(self, make_booking):
        booking = make_booking(tracking_number=" 4521 ")

        assert booking.tracking_number == "4521"
        assert booking.tracking_type == "manual"

    def test_duplicate_manual_tracking_number_rejected(self, make_booking):
        make_booking(tracking_number="4521")

        with pytest.raises(ValidationError) as exc_info:
            make_booking(tracking_number="4521")

        assert "already exists" in str(exc_info.value)

    def test_system_number_skips_manually_entered_numbers(self, make_booking):
        year = date.today().year
        make_booking(tracking_number=f"LR-{year}-000001")

        booking = make_booking()

        assert booking.tracking_number == f"LR-{year}-000002"
        assert make_booking().tracking_number == f"LR-{year}-000003"

    def test_concurrent_duplicate_manual_number_is_a_validation_error(self, make_booking, monkeypatch):
        """The unique constraint backs the pre-check when two bookings race for a number."""
        from django_freight import services

        make_booking(tracking_number="4521")
        monkeypatch.setattr(services, "_tracking_number_taken", lambda organization_id, number: False)

        with pytest.raises(ValidationError) as exc_info:
            make_booking(tracking_number="4521")

        assert "already exists" in str(exc_info.value)
        assert Booking.objects.filter(tracking_number="4521").count() == 1

    def test_origin_and_destination_must_differ(self, make_booking, branch_a):
        with pytest.raises(ValidationError) as exc_info:
            make_booking(destination_branch=branch_a)

        assert "must be different" in str(exc_info.value)

    def test_blocked_sender_refused(self, make_booking, sender):
        sender.credit_status = "blocked"
        sender.save()

        with pytest.raises(ValidationError) as exc_info:
            make_booking()

        assert "credit status is blocked" in str(exc_info.value)

    def test_line_errors_reported_per_index(self, make_booking, carton, steel):
        """Every line is validated before anything is written."""
        with pytest.raises(ValidationError) as exc_info:
            make_booking(lines=[
                LineRequest(article=carton, quantity=2),
                LineRequest(article=steel, quantity=0, actual_weight="10", charged_weight="9"),
            ])

        assert list(exc_info.value.line_errors) == [1]
        assert len(exc_info.value.line_errors[1]) == 2
        assert Booking.objects.count() == 0
        assert BookingArticle.objects.count() == 0

    def test_rate_finer_than_stored_precision_rejected(self, make_booking, carton):
        """A stored line must reproduce the total it was priced at."""
        with pytest.raises(ValidationError) as exc_info:
            make_booking(lines=[LineRequest(article=carton, quantity=1000, rate_per_unit="0.00005")])

        assert exc_info.value.line_errors[0] == [
            "rate_per_unit allows at most 4 decimal places, got 0.00005",
        ]
        assert Booking.objects.count() == 0

    def test_duplicate_article_rejected(self, make_booking, carton):
        with pytest.raises(ValidationError) as exc_info:
            make_booking(lines=[
                LineRequest(article=carton, quantity=2),
                LineRequest(article=carton, quantity=3),
            ])

        assert 1 in exc_info.value.line_errors

    def test_article_of_other_organization_not_found(self, make_booking, other_org):
        foreign = Article.objects.create(organization=other_org, name="Crate", base_rate=Decimal("5"))

        with pytest.raises(NotFound):
            make_booking(lines=[LineRequest(article=foreign, quantity=1)])

        assert Booking.objects.count() == 0

    def test_cannot_book_from_another_branch(self, scope_a, branch_b, branch_c, sender, receiver):
        with pytest.raises(Forbidden):
            create_booking(
                scope_a, branch=branch_b, destination_branch=branch_c,
                sender=sender, receiver=receiver,
            )

    def test_elevated_scope_must_name_origin(self, admin_scope, branch_a, branch_b, sender, receiver):
        with pytest.raises(ValidationError):
            create_booking(admin_scope, destination_branch=branch_b, sender=sender, receiver=receiver)

        booking = create_booking(
            admin_scope, branch=branch_a, destination_branch=branch_b,
            sender=sender, receiver=receiver,
        )
        assert booking.branch_id == branch_a.pk

    def test_unresolved_rate_uses_resolver(self, make_booking, org, carton, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("80"), effective_from=date(2020, 1, 1),
        )

        booking = make_booking(lines=[LineRequest(article=carton, quantity=3)])
        line = BookingArticle.objects.get(booking=booking)

        assert line.rate_per_unit == Decimal("80")
        assert line.rate_source == "customer"
        assert booking.total_amount == Decimal("240.00")

    def test_to_pay_booking_priced_for_receiver(self, make_booking, org, carton, receiver):
        CustomerArticleRate.objects.create(
            organization=org, customer=receiver, article=carton,
            rate=Decimal("60"), effective_from=date(2020, 1, 1),
        )

        booking = make_booking(payment_type="to_pay", lines=[LineRequest(article=carton, quantity=1)])

        assert booking.total_amount == Decimal("60.00")

    def test_manual_rate_kept(self, make_booking, carton):
        booking = make_booking(lines=[LineRequest(article=carton, quantity=3, rate_per_unit="90")])
        line = BookingArticle.objects.get(booking=booking)

        assert line.rate_source == "manual"
        assert line.line_total == Decimal("270.00")

    def test_records_booking_created_event(self, booking):
        event = CustodyEvent.objects.get(booking=booking, event_type="booking_created")

        assert event.actor == "clerk-hyd"
        assert event.metadata["lines"] == 2


@pytest.mark.django_db
class TestAddLine:
    """Adding lines to a booked booking."""

    def test_add_line_updates_total(self, scope_a, booking, drum):
        line = add_line(scope_a, booking, LineRequest(article=drum, quantity=4, loading_per_unit="5"))

        booking.refresh_from_db()
        assert line.line_total == Decimal("100.00")
        assert booking.total_amount == Decimal("1900.00")

    def test_add_existing_article_rejected(self, scope_a, booking, carton):
        with pytest.raises(ValidationError):
            add_line(scope_a, booking, LineRequest(article=carton, quantity=1))

    def test_invalid_line_changes_nothing(self, scope_a, booking, drum):
        with pytest.raises(ValidationError):
            add_line(scope_a, booking, LineRequest(article=drum, quantity=1, insurance_charge="10"))

        booking.refresh_from_db()
        assert booking.total_amount == Decimal("1800.00")
        assert BookingArticle.objects.filter(booking=booking).count() == 2

    def test_only_while_booked(self, scope_a, booking, drum):
        from django_freight.custody import mark_loaded
        mark_loaded(scope_a, BookingArticle.objects.filter(booking=booking).first())

        with pytest.raises(InvalidTransition):
            add_line(scope_a, booking, LineRequest(article=drum, quantity=1))


@pytest.mark.django_db
class TestUpdateLine:
    """Editing line inputs recomputes derived amounts and the total."""

    def test_update_recomputes_line_and_total(self, scope_a, booking, carton):
        line = BookingArticle.objects.get(booking=booking, article=carton)

        updated = update_line(scope_a, line, quantity=7, unloading_per_unit="2")

        booking.refresh_from_db()
        assert updated.freight_amount == Decimal("700.00")
        assert updated.unloading_total == Decimal("14.00")
        assert updated.line_total == Decimal("714.00")
        assert booking.total_amount == Decimal("2014.00")

    def test_derived_fields_cannot_be_set(self, scope_a, booking, carton):
        line = BookingArticle.objects.get(booking=booking, article=carton)

        with pytest.raises(ValidationError) as exc_info:
            update_line(scope_a, line, line_total="1.00")

        assert "line_total is computed and cannot be set" in str(exc_info.value)

    def test_charged_weight_below_actual_rejected(self, scope_a, booking, steel):
        line = BookingArticle.objects.get(booking=booking, article=steel)

        with pytest.raises(ValidationError):
            update_line(scope_a, line, charged_weight="20")

        line.refresh_from_db()
        assert line.charged_weight == Decimal("26.000")
        assert line.line_total == Decimal("1300.00")

    def test_edit_finer_than_stored_precision_rejected(self, scope_a, booking, carton):
        line = BookingArticle.objects.get(booking=booking, article=carton)

        with pytest.raises(ValidationError):
            update_line(scope_a, line, loading_per_unit="0.005")

        line.refresh_from_db()
        booking.refresh_from_db()
        assert line.loading_total == Decimal("0.00")
        assert booking.total_amount == Decimal("1800.00")

    def test_rate_reresolved_when_cleared(self, scope_a, booking, carton, org, sender):
        line = BookingArticle.objects.get(booking=booking, article=carton)
        update_line(scope_a, line, rate_per_unit="150")
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("95"), effective_from=date(2020, 1, 1),
        )

        updated = update_line(scope_a, line, rate_per_unit=None)

        assert updated.rate_per_unit == Decimal("95")
        assert updated.rate_source == "customer"

    def test_unknown_field_rejected(self, scope_a, booking, carton):
        line = BookingArticle.objects.get(booking=booking, article=carton)

        with pytest.raises(ValidationError):
            update_line(scope_a, line, status="delivered")


@pytest.mark.django_db
class TestRemoveLine:
    """Removing lines while booked."""

    def test_remove_line_soft_deletes_and_updates_total(self, scope_a, booking, steel):
        line = BookingArticle.objects.get(booking=booking, article=steel)

        updated = remove_line(scope_a, line, reason="Customer withdrew")

        assert updated.total_amount == Decimal("500.00")
        assert not BookingArticle.objects.filter(pk=line.pk).exists()
        assert BookingArticle.all_objects.filter(pk=line.pk).exists()

    def test_removed_article_can_be_added_again(self, scope_a, booking, steel):
        remove_line(scope_a, BookingArticle.objects.get(booking=booking, article=steel))

        add_line(scope_a, booking, LineRequest(article=steel, quantity=1, actual_weight="10"))

        booking.refresh_from_db()
        assert booking.total_amount == Decimal("1000.00")


@pytest.mark.django_db
class TestDeleteBooking:
    """Bookings with lines are cancelled, never deleted."""

    def test_delete_empty_booking(self, scope_a, make_booking):
        booking = make_booking()

        delete_booking(scope_a, booking)

        assert not Booking.objects.filter(pk=booking.pk).exists()

    def test_booking_with_lines_cannot_be_deleted(self, scope_a, booking):
        with pytest.raises(ValidationError):
            delete_booking(scope_a, booking)

        assert Booking.objects.filter(pk=booking.pk).exists()
