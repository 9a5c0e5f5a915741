"""Rate resolver.

Resolution order (first match wins):
1. An ACTIVE rate contract of the customer whose validity window contains the
   pricing date, with an override for the article that matches the charged
   weight slab and minimum quantity. Ties go to the most recently approved
   contract.
2. The customer's negotiated rate for the article, most recent effective_from.
3. The article's base rate and default basis.

Missing discounts are not an error; a missing article or customer is.
"""

from datetime import date
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP

from django.db.models import F, Q
from django.utils import timezone

from .conf import get_weight_rounding_step
from .lines import to_decimal
from .models import Article, ContractRate, Customer, CustomerArticleRate
from .scoping import TenantScope, get_reference
from .states import ContractStatus
from .value_objects import ResolvedRate


RATE_PLACES = Decimal('0.0001')
HUNDRED = Decimal('100')


def charged_weight_for(actual_weight, charged_weight=None) -> Decimal:
    """Return the weight a line is billed on.

    An explicit charged weight is returned as given; the line engine rejects
    it if it is below the actual weight. When absent, the actual weight is
    rounded UP to FREIGHT_WEIGHT_ROUNDING_STEP (or used as is when unset).
    """
    if charged_weight is not None and charged_weight != '':
        return to_decimal(charged_weight, 'charged_weight')
    actual = to_decimal(actual_weight, 'actual_weight')
    step = get_weight_rounding_step()
    if step is None or actual <= 0:
        return actual
    return (actual / step).to_integral_value(rounding=ROUND_CEILING) * step


def apply_discount(rate: Decimal, discount_percentage) -> Decimal:
    discount = Decimal(discount_percentage or 0)
    if not discount:
        return rate
    return (rate * (HUNDRED - discount) / HUNDRED).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def _pricing_date(as_of) -> date:
    if as_of is None:
        return timezone.localdate()
    if hasattr(as_of, 'date') and callable(as_of.date):
        return as_of.date()
    return as_of


def _contract_rates(scope, article, customer, quantity, weight, on, branch_id):
    qs = ContractRate.objects.filter(
        article=article,
        is_active=True,
        min_quantity__lte=quantity,
        contract__organization_id=scope.organization_id,
        contract__customer=customer,
        contract__status=ContractStatus.ACTIVE,
        contract__deleted_at__isnull=True,
        contract__valid_from__lte=on,
        contract__valid_until__gte=on,
    ).filter(
        Q(weight_from__isnull=True) | Q(weight_from__lte=weight),
        Q(weight_to__isnull=True) | Q(weight_to__gte=weight),
    )
    branch_q = Q(contract__branch__isnull=True)
    if branch_id is not None:
        branch_q |= Q(contract__branch_id=branch_id)
    return qs.filter(branch_q).select_related('contract').order_by(
        F('contract__approved_at').desc(nulls_last=True),
        F('weight_from').desc(nulls_last=True),
    )


def _customer_rates(scope, article, customer, on):
    return CustomerArticleRate.objects.filter(
        organization_id=scope.organization_id,
        customer=customer,
        article=article,
        is_active=True,
        effective_from__lte=on,
    ).filter(
        Q(effective_until__isnull=True) | Q(effective_until__gte=on)
    ).order_by('-effective_from', '-created_at')


def resolve_rate(
    scope: TenantScope,
    *,
    article,
    customer=None,
    quantity: int = 1,
    weight=0,
    as_of=None,
    branch_id=None,
) -> ResolvedRate:
    """Resolve the rate per unit and rate basis for one line.

    Args:
        scope: Caller's tenant scope
        article: Article instance or id
        customer: Optional paying customer (instance or id)
        quantity: Line quantity, matched against contract minimum quantities
        weight: Charged weight, matched against contract weight slabs
        as_of: Pricing date (defaults to today)
        branch_id: Booking branch for branch-level contracts (defaults to the scope's)

    Raises:
        NotFound: If the article or customer is not in the caller's organization
    """
    article = get_reference(scope, Article, article)
    on = _pricing_date(as_of)
    weight = to_decimal(weight, 'weight')
    branch_id = branch_id or scope.branch_id

    if customer is not None:
        customer = get_reference(scope, Customer, customer)

        override = _contract_rates(scope, article, customer, quantity, weight, on, branch_id).first()
        if override:
            discount = override.contract.discount_percentage
            return ResolvedRate(
                rate_per_unit=apply_discount(override.rate_per_unit, discount),
                rate_basis=override.rate_basis,
                source='contract',
                source_id=override.pk,
                list_rate=override.rate_per_unit,
                discount_percentage=discount,
                as_of=on,
            )

        negotiated = _customer_rates(scope, article, customer, on).first()
        if negotiated:
            return ResolvedRate(
                rate_per_unit=apply_discount(negotiated.rate, negotiated.discount_percentage),
                rate_basis=negotiated.rate_basis,
                source='customer',
                source_id=negotiated.pk,
                list_rate=negotiated.rate,
                discount_percentage=negotiated.discount_percentage,
                as_of=on,
            )

    return ResolvedRate(
        rate_per_unit=article.base_rate,
        rate_basis=article.rate_basis,
        source='base',
        source_id=article.pk,
        list_rate=article.base_rate,
        discount_percentage=Decimal('0'),
        as_of=on,
    )


def list_applicable_rates(
    scope: TenantScope,
    *,
    article,
    customer=None,
    quantity: int = 1,
    weight=0,
    as_of=None,
    branch_id=None,
) -> list[dict]:
    """List every rate that could apply, in resolution order (most specific first)."""
    article = get_reference(scope, Article, article)
    on = _pricing_date(as_of)
    weight = to_decimal(weight, 'weight')
    branch_id = branch_id or scope.branch_id

    candidates = []
    if customer is not None:
        customer = get_reference(scope, Customer, customer)
        for rate in _contract_rates(scope, article, customer, quantity, weight, on, branch_id):
            candidates.append({
                "source": "contract",
                "id": str(rate.pk),
                "contract_number": rate.contract.contract_number,
                "rate": str(rate.rate_per_unit),
                "rate_basis": rate.rate_basis,
                "discount_percentage": str(rate.contract.discount_percentage),
            })
        for rate in _customer_rates(scope, article, customer, on):
            candidates.append({
                "source": "customer",
                "id": str(rate.pk),
                "rate": str(rate.rate),
                "rate_basis": rate.rate_basis,
                "discount_percentage": str(rate.discount_percentage),
            })
    candidates.append({
        "source": "base",
        "id": str(article.pk),
        "rate": str(article.base_rate),
        "rate_basis": article.rate_basis,
        "discount_percentage": "0",
    })
    return candidates


def explain_rate_resolution(
    scope: TenantScope,
    *,
    article,
    customer=None,
    quantity: int = 1,
    weight=0,
    as_of=None,
    branch_id=None,
) -> dict:
    """Explain how a rate was resolved. Useful for debugging and auditing."""
    kwargs = dict(
        article=article,
        customer=customer,
        quantity=quantity,
        weight=weight,
        as_of=as_of,
        branch_id=branch_id,
    )
    resolved = resolve_rate(scope, **kwargs)
    return {
        "selected_rate": resolved,
        "candidates": list_applicable_rates(scope, **kwargs),
        "explanation": resolved.explain(),
        "context": {
            "article": str(getattr(article, 'pk', article)),
            "customer": str(getattr(customer, 'pk', customer)) if customer is not None else None,
            "quantity": quantity,
            "weight": str(weight),
            "as_of": resolved.as_of.isoformat(),
        },
    }
