"""Rate contract lifecycle.

Provides:
- create_rate_contract: Draft a contract for a customer
- add_contract_rate: Attach an article override to a draft contract
- submit_rate_contract: draft -> pending_approval
- approve_rate_contract: pending_approval -> active
- terminate_rate_contract: draft/pending_approval/active -> terminated
- expire_rate_contracts: active contracts past valid_until -> expired

Only ACTIVE contracts are consulted by the rate resolver.
"""

import logging
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.utils import timezone

from .custody import check_transition
from .exceptions import InvalidTransition, ValidationError
from .lines import check_places, to_decimal
from .models import Article, Branch, ContractRate, Customer, Organization, RateContract
from .scoping import TenantScope, get_reference, get_scoped, guard_branch
from .sequences import next_number
from .states import CONTRACT_GRAPH, ContractStatus, RateBasis


logger = logging.getLogger(__name__)


def _check_discount(value, errors: list) -> Decimal:
    discount = to_decimal(value, 'discount_percentage')
    if discount < 0 or discount > 100:
        errors.append("discount_percentage must be between 0 and 100")
    return discount


def _contract_number_taken(organization_id, contract_number: str) -> bool:
    return RateContract.all_objects.filter(
        organization_id=organization_id,
        contract_number=contract_number,
    ).exists()


def create_rate_contract(
    scope: TenantScope,
    *,
    customer,
    valid_from,
    valid_until,
    contract_type: str = RateContract.ContractType.STANDARD,
    discount_percentage=0,
    branch=None,
    contract_number: str = None,
    notes: str = '',
) -> RateContract:
    """
    Draft a rate contract.

    Args:
        scope: Caller's tenant scope
        customer: Customer instance or id
        valid_from / valid_until: Inclusive validity window (dates)
        contract_type: RateContract.ContractType value
        discount_percentage: Discount applied to every override rate
        branch: Owning branch; None makes the contract organization-wide
        contract_number: Manual number; generated when None

    Raises:
        ValidationError: Bad window, discount, type or duplicate number
    """
    customer = get_reference(scope, Customer, customer)
    if branch is not None:
        branch = guard_branch(scope, get_reference(scope, Branch, branch))
    elif not scope.all_branches:
        branch = get_reference(scope, Branch, scope.branch_id)

    errors = []
    discount = _check_discount(discount_percentage, errors)
    if valid_until < valid_from:
        errors.append("valid_until cannot be before valid_from")
    if contract_type not in RateContract.ContractType.values:
        errors.append(f"Unknown contract type '{contract_type}'")
    if contract_number is not None and _contract_number_taken(scope.organization_id, contract_number):
        errors.append(f"Contract number '{contract_number}' already exists")
    if errors:
        raise ValidationError(errors)

    with transaction.atomic():
        if contract_number is None:
            organization = Organization.objects.get(pk=scope.organization_id)
            contract_number = next_number(
                'rate_contract', organization,
                is_taken=lambda value: _contract_number_taken(scope.organization_id, value),
            )
        try:
            with transaction.atomic():
                contract = RateContract.objects.create(
                    organization_id=scope.organization_id,
                    branch=branch,
                    customer=customer,
                    contract_number=contract_number,
                    contract_type=contract_type,
                    valid_from=valid_from,
                    valid_until=valid_until,
                    discount_percentage=discount,
                    notes=notes,
                    created_by=scope.actor,
                )
        except IntegrityError:
            raise ValidationError(f"Contract number '{contract_number}' already exists")

    logger.info(f"Drafted rate contract {contract.contract_number} for {customer}")
    return contract


@transaction.atomic
def add_contract_rate(
    scope: TenantScope,
    contract,
    *,
    article,
    rate_per_unit,
    rate_basis: str = RateBasis.PER_WEIGHT,
    weight_from=None,
    weight_to=None,
    min_quantity: int = 1,
) -> ContractRate:
    """
    Add an article override to a draft contract.

    Raises:
        InvalidTransition: If the contract is no longer a draft
        ValidationError: Negative rate, bad basis, bad weight slab or quantity
    """
    contract = _lock_contract(scope, contract)
    if contract.status != ContractStatus.DRAFT:
        raise InvalidTransition(
            contract.status, contract.status,
            f"Rates can only be added to draft contracts, {contract.contract_number} is {contract.status}",
        )
    article = get_reference(scope, Article, article)

    errors = []
    rate = check_places(to_decimal(rate_per_unit, 'rate_per_unit'), 4, 'rate_per_unit')
    if rate < 0:
        errors.append("rate_per_unit cannot be negative")
    if rate_basis not in RateBasis.values:
        errors.append(f"unknown rate_basis '{rate_basis}'")
    low = to_decimal(weight_from, 'weight_from') if weight_from is not None else None
    high = to_decimal(weight_to, 'weight_to') if weight_to is not None else None
    if low is not None and high is not None and high < low:
        errors.append("weight_to cannot be below weight_from")
    if min_quantity is None or int(min_quantity) < 1:
        errors.append("min_quantity must be at least 1")
    if errors:
        raise ValidationError(errors)

    return ContractRate.objects.create(
        contract=contract,
        article=article,
        rate_per_unit=rate,
        rate_basis=rate_basis,
        weight_from=low,
        weight_to=high,
        min_quantity=int(min_quantity),
    )


def _lock_contract(scope: TenantScope, contract) -> RateContract:
    contract = get_scoped(scope, RateContract, contract, 'Rate contract', for_write=True)
    return RateContract.objects.select_for_update().get(pk=contract.pk)


def _move(contract: RateContract, to_status: str, update_fields=()):
    check_transition(CONTRACT_GRAPH, contract.status, to_status)
    from_status = contract.status
    contract.status = to_status
    contract.save(update_fields=['status', 'updated_at', *update_fields])
    logger.info(f"Rate contract {contract.contract_number}: {from_status} -> {to_status}")
    return contract


@transaction.atomic
def submit_rate_contract(scope: TenantScope, contract) -> RateContract:
    """Submit a draft for approval. A contract needs at least one rate."""
    contract = _lock_contract(scope, contract)
    check_transition(CONTRACT_GRAPH, contract.status, ContractStatus.PENDING_APPROVAL)
    if not ContractRate.objects.filter(contract=contract, is_active=True).exists():
        raise ValidationError(f"Contract {contract.contract_number} has no rates")
    return _move(contract, ContractStatus.PENDING_APPROVAL)


@transaction.atomic
def approve_rate_contract(scope: TenantScope, contract) -> RateContract:
    """Activate a pending contract, stamping approver and time."""
    contract = _lock_contract(scope, contract)
    check_transition(CONTRACT_GRAPH, contract.status, ContractStatus.ACTIVE)
    contract.approved_at = timezone.now()
    contract.approved_by = scope.actor
    return _move(contract, ContractStatus.ACTIVE, ['approved_at', 'approved_by'])


@transaction.atomic
def terminate_rate_contract(scope: TenantScope, contract, reason: str = '') -> RateContract:
    """Terminate a contract; it stops applying to new bookings immediately."""
    contract = _lock_contract(scope, contract)
    contract.terminated_at = timezone.now()
    if reason:
        contract.notes = f"{contract.notes}\nTerminated: {reason}".strip()
    return _move(contract, ContractStatus.TERMINATED, ['terminated_at', 'notes'])


@transaction.atomic
def expire_rate_contracts(scope: TenantScope = None, as_of=None) -> int:
    """
    Expire active contracts whose validity window ended before ``as_of``.

    Runs for the contracts the scope may write (a branch scope leaves
    organization-wide contracts alone), or for every organization when scope
    is None (the expire_rate_contracts management command).

    Returns:
        Number of contracts expired
    """
    on = as_of or timezone.localdate()
    qs = RateContract.objects.all() if scope is None else RateContract.objects.visible_to(scope)
    if scope is not None and not scope.all_branches:
        qs = qs.filter(branch_id=scope.branch_id)
    expired = list(
        qs.select_for_update().filter(status=ContractStatus.ACTIVE, valid_until__lt=on)
    )
    for contract in expired:
        _move(contract, ContractStatus.EXPIRED)
    return len(expired)
