"""Tests for rate resolution."""
from datetime import date, datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.test import override_settings
from freezegun import freeze_time

from django_freight.exceptions import NotFound
from django_freight.models import Article, ContractRate, CustomerArticleRate, RateContract
from django_freight.rates import (
    charged_weight_for,
    explain_rate_resolution,
    list_applicable_rates,
    resolve_rate,
)


def active_contract(org, customer, *, number, approved_at, branch=None,
                    valid_from=date(2026, 1, 1), valid_until=date(2026, 12, 31), discount="0"):
    return RateContract.objects.create(
        organization=org,
        branch=branch,
        customer=customer,
        contract_number=number,
        valid_from=valid_from,
        valid_until=valid_until,
        discount_percentage=Decimal(discount),
        status="active",
        approved_at=approved_at,
    )


@pytest.mark.django_db
class TestBaseRateFallback:
    """Without contracts or negotiated rates the article base rate applies."""

    def test_base_rate_without_customer(self, scope_a, carton):
        resolved = resolve_rate(scope_a, article=carton)

        assert resolved.rate_per_unit == Decimal("100.00")
        assert resolved.rate_basis == "per_unit"
        assert resolved.source == "base"
        assert resolved.source_id == carton.pk

    def test_base_rate_when_customer_has_no_discount(self, scope_a, steel, sender):
        """Absence of a customer rate is not an error."""
        resolved = resolve_rate(scope_a, article=steel, customer=sender, weight="26")

        assert resolved.source == "base"
        assert resolved.rate_basis == "per_weight"
        assert resolved.discount_percentage == Decimal("0")

    def test_article_id_accepted(self, scope_a, carton):
        assert resolve_rate(scope_a, article=carton.pk).source_id == carton.pk

    def test_article_of_other_organization_not_found(self, scope_a, other_org):
        foreign = Article.objects.create(organization=other_org, name="Crate", base_rate=Decimal("5"))

        with pytest.raises(NotFound):
            resolve_rate(scope_a, article=foreign)

    def test_unknown_article_not_found(self, scope_a):
        with pytest.raises(NotFound):
            resolve_rate(scope_a, article="00000000-0000-0000-0000-000000000000")

    def test_soft_deleted_article_not_found(self, scope_a, carton):
        carton.delete()

        with pytest.raises(NotFound):
            resolve_rate(scope_a, article=carton.pk)


@pytest.mark.django_db
class TestCustomerRates:
    """Negotiated customer rates override the base rate."""

    def test_customer_rate_with_discount(self, scope_a, org, carton, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("80.00"), discount_percentage=Decimal("10"),
            effective_from=date(2026, 1, 1),
        )

        resolved = resolve_rate(scope_a, article=carton, customer=sender, as_of=date(2026, 3, 1))

        assert resolved.source == "customer"
        assert resolved.list_rate == Decimal("80.00")
        assert resolved.rate_per_unit == Decimal("72.0000")

    def test_most_recent_effective_rate_wins(self, scope_a, org, carton, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("90"), effective_from=date(2026, 1, 1),
        )
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("85"), effective_from=date(2026, 6, 1),
        )

        assert resolve_rate(scope_a, article=carton, customer=sender,
                            as_of=date(2026, 7, 1)).rate_per_unit == Decimal("85")
        assert resolve_rate(scope_a, article=carton, customer=sender,
                            as_of=date(2026, 5, 1)).rate_per_unit == Decimal("90")

    def test_expired_or_inactive_rates_ignored(self, scope_a, org, carton, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton, rate=Decimal("60"),
            effective_from=date(2025, 1, 1), effective_until=date(2025, 12, 31),
        )
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton, rate=Decimal("55"),
            effective_from=date(2026, 1, 1), is_active=False,
        )

        resolved = resolve_rate(scope_a, article=carton, customer=sender, as_of=date(2026, 2, 1))

        assert resolved.source == "base"

    def test_defaults_to_today(self, scope_a, org, carton, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("70"), effective_from=date(2026, 5, 1),
        )

        with freeze_time("2026-04-30"):
            assert resolve_rate(scope_a, article=carton, customer=sender).source == "base"
        with freeze_time("2026-05-01"):
            assert resolve_rate(scope_a, article=carton, customer=sender).source == "customer"


@pytest.mark.django_db
class TestContractRates:
    """Active contract overrides win over every other rate."""

    def test_active_contract_override_wins(self, scope_a, org, steel, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=steel,
            rate=Decimal("45"), rate_basis="per_weight", effective_from=date(2026, 1, 1),
        )
        contract = active_contract(org, sender, number="RC-1", discount="5",
                                   approved_at=datetime(2026, 1, 2, tzinfo=dt_timezone.utc))
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("40"))

        resolved = resolve_rate(scope_a, article=steel, customer=sender, weight="26", as_of=date(2026, 3, 1))

        assert resolved.source == "contract"
        assert resolved.rate_basis == "per_weight"
        assert resolved.list_rate == Decimal("40")
        assert resolved.rate_per_unit == Decimal("38.0000")

    def test_contract_outside_window_ignored(self, scope_a, org, steel, sender):
        contract = active_contract(org, sender, number="RC-1",
                                   approved_at=datetime(2026, 1, 2, tzinfo=dt_timezone.utc),
                                   valid_from=date(2026, 1, 1), valid_until=date(2026, 1, 31))
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("40"))

        with freeze_time("2026-01-31"):
            assert resolve_rate(scope_a, article=steel, customer=sender).source == "contract"
        with freeze_time("2026-02-01"):
            assert resolve_rate(scope_a, article=steel, customer=sender).source == "base"

    def test_non_active_contract_ignored(self, scope_a, org, steel, sender):
        contract = active_contract(org, sender, number="RC-1", approved_at=None)
        contract.status = "pending_approval"
        contract.save()
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("40"))

        resolved = resolve_rate(scope_a, article=steel, customer=sender, as_of=date(2026, 3, 1))

        assert resolved.source == "base"

    def test_most_recently_approved_contract_wins(self, scope_a, org, steel, sender):
        older = active_contract(org, sender, number="RC-1",
                                approved_at=datetime(2026, 1, 5, tzinfo=dt_timezone.utc))
        newer = active_contract(org, sender, number="RC-2",
                                approved_at=datetime(2026, 2, 5, tzinfo=dt_timezone.utc))
        ContractRate.objects.create(contract=older, article=steel, rate_per_unit=Decimal("41"))
        newest_rate = ContractRate.objects.create(contract=newer, article=steel, rate_per_unit=Decimal("39"))

        resolved = resolve_rate(scope_a, article=steel, customer=sender, as_of=date(2026, 3, 1))

        assert resolved.source_id == newest_rate.pk
        assert resolved.rate_per_unit == Decimal("39")

    def test_weight_slab_selects_override(self, scope_a, org, steel, sender):
        contract = active_contract(org, sender, number="RC-1",
                                   approved_at=datetime(2026, 1, 2, tzinfo=dt_timezone.utc))
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("45"),
                                    weight_from=Decimal("0"), weight_to=Decimal("99.999"))
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("35"),
                                    weight_from=Decimal("100"))

        light = resolve_rate(scope_a, article=steel, customer=sender, weight="26", as_of=date(2026, 3, 1))
        heavy = resolve_rate(scope_a, article=steel, customer=sender, weight="250", as_of=date(2026, 3, 1))

        assert light.rate_per_unit == Decimal("45")
        assert heavy.rate_per_unit == Decimal("35")

    def test_minimum_quantity(self, scope_a, org, carton, sender):
        contract = active_contract(org, sender, number="RC-1",
                                   approved_at=datetime(2026, 1, 2, tzinfo=dt_timezone.utc))
        ContractRate.objects.create(contract=contract, article=carton, rate_basis="per_unit",
                                    rate_per_unit=Decimal("70"), min_quantity=50)

        few = resolve_rate(scope_a, article=carton, customer=sender, quantity=10, as_of=date(2026, 3, 1))
        many = resolve_rate(scope_a, article=carton, customer=sender, quantity=50, as_of=date(2026, 3, 1))

        assert few.source == "base"
        assert many.source == "contract"

    def test_other_branch_contract_ignored(self, scope_a, org, branch_b, steel, sender):
        contract = active_contract(org, sender, number="RC-1", branch=branch_b,
                                   approved_at=datetime(2026, 1, 2, tzinfo=dt_timezone.utc))
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("40"))

        resolved = resolve_rate(scope_a, article=steel, customer=sender, as_of=date(2026, 3, 1))

        assert resolved.source == "base"


@pytest.mark.django_db
class TestTransparency:
    """Candidate listing and explanations."""

    def test_list_applicable_rates_in_resolution_order(self, scope_a, org, steel, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=steel,
            rate=Decimal("45"), effective_from=date(2026, 1, 1),
        )
        contract = active_contract(org, sender, number="RC-1",
                                   approved_at=datetime(2026, 1, 2, tzinfo=dt_timezone.utc))
        ContractRate.objects.create(contract=contract, article=steel, rate_per_unit=Decimal("40"))

        candidates = list_applicable_rates(scope_a, article=steel, customer=sender, as_of=date(2026, 3, 1))

        assert [c["source"] for c in candidates] == ["contract", "customer", "base"]
        assert candidates[0]["contract_number"] == "RC-1"

    def test_explain_rate_resolution(self, scope_a, carton):
        result = explain_rate_resolution(scope_a, article=carton, as_of=date(2026, 3, 1))

        assert result["selected_rate"].source == "base"
        assert "article base rate" in result["explanation"]
        assert result["context"]["as_of"] == "2026-03-01"
        assert len(result["candidates"]) == 1

    def test_explain_mentions_discount(self, scope_a, org, carton, sender):
        CustomerArticleRate.objects.create(
            organization=org, customer=sender, article=carton,
            rate=Decimal("80.00"), discount_percentage=Decimal("10"),
            effective_from=date(2026, 1, 1),
        )

        resolved = resolve_rate(scope_a, article=carton, customer=sender, as_of=date(2026, 3, 1))

        assert "10.00% off 80.0000" in resolved.explain()


class TestChargedWeight:
    """Charged weight rounding policy."""

    def test_explicit_charged_weight_kept(self):
        assert charged_weight_for("25.5", "26.0") == Decimal("26.0")

    def test_explicit_charged_weight_never_clamped(self):
        """A charged weight below actual is returned as is and rejected later by the engine."""
        assert charged_weight_for("25.5", "20") == Decimal("20")

    def test_defaults_to_actual_weight_without_policy(self):
        assert charged_weight_for("25.2") == Decimal("25.2")

    @override_settings(FREIGHT_WEIGHT_ROUNDING_STEP="0.5")
    def test_rounds_up_to_configured_step(self):
        assert charged_weight_for("25.2") == Decimal("25.5")
        assert charged_weight_for("25.5") == Decimal("25.5")
        assert charged_weight_for("25.51") == Decimal("26.0")

    @override_settings(FREIGHT_WEIGHT_ROUNDING_STEP=5)
    def test_integer_step(self):
        assert charged_weight_for("12") == Decimal("15")
