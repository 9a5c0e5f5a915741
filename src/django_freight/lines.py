"""Article line engine.

Pure functions that validate one candidate booking line and compute its
amounts. Nothing here touches the database; ``BookingArticle.save()`` and the
booking services call ``compute_line`` before every write so that stored
totals can never drift from their inputs.

Billing rules:
- per-weight freight uses the CHARGED weight, never the actual weight
- loading/unloading charges are per physical unit, multiplied by quantity
- line total = freight + loading total + unloading total + insurance + packaging
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import ValidationError
from .states import RateBasis


CENT = Decimal('0.01')
ZERO = Decimal('0')

# Decimal places each input is stored with
INPUT_PLACES = {
    'actual_weight': 3,
    'charged_weight': 3,
    'rate_per_unit': 4,
    'loading_per_unit': 2,
    'unloading_per_unit': 2,
    'insurance_value': 2,
    'insurance_charge': 2,
    'packaging_charge': 2,
}


def to_decimal(value, field_name: str = 'value') -> Decimal:
    """Coerce input to Decimal, rejecting anything that is not a number."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field_name} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return result


def quantize_amount(amount: Decimal) -> Decimal:
    """Round a monetary amount to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def check_places(value: Decimal, places: int, field_name: str = 'value') -> Decimal:
    """Reject a value with more decimal places than its column stores."""
    if value.quantize(Decimal(1).scaleb(-places)) != value:
        raise ValidationError(f"{field_name} allows at most {places} decimal places, got {value}")
    return value


@dataclass(frozen=True)
class LineInput:
    """Candidate line as supplied by intake, after rate resolution."""

    quantity: int
    actual_weight: Decimal
    charged_weight: Decimal
    rate_per_unit: Decimal
    rate_basis: str = RateBasis.PER_UNIT
    loading_per_unit: Decimal = ZERO
    unloading_per_unit: Decimal = ZERO
    insurance_required: bool = False
    insurance_value: Decimal = ZERO
    insurance_charge: Decimal = ZERO
    packaging_charge: Decimal = ZERO

    @classmethod
    def build(cls, **raw) -> 'LineInput':
        """Build from loosely typed input (strings, floats, None)."""
        quantity = raw.get('quantity')
        try:
            quantity_int = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError(f"quantity must be an integer, got {quantity!r}")
        if quantity_int != to_decimal(quantity, 'quantity'):
            raise ValidationError(f"quantity must be a whole number, got {quantity!r}")
        decimals = {
            name: check_places(to_decimal(raw.get(name), name), places, name)
            for name, places in INPUT_PLACES.items()
        }
        return cls(
            quantity=quantity_int,
            rate_basis=raw.get('rate_basis') or RateBasis.PER_UNIT,
            insurance_required=bool(raw.get('insurance_required')),
            **decimals,
        )


@dataclass(frozen=True)
class LineAmounts:
    """Derived, read-only amounts of a line."""

    freight_amount: Decimal
    loading_total: Decimal
    unloading_total: Decimal
    insurance_charge: Decimal
    packaging_charge: Decimal
    line_total: Decimal


def validate_line(line: LineInput) -> list[str]:
    """Return every rule the candidate line breaks (empty list = valid)."""
    errors = []

    if line.quantity <= 0:
        errors.append(f"quantity must be positive, got {line.quantity}")
    if line.actual_weight < 0:
        errors.append("actual_weight cannot be negative")
    if line.charged_weight < line.actual_weight:
        errors.append(
            f"charged_weight ({line.charged_weight}) cannot be below "
            f"actual_weight ({line.actual_weight})"
        )
    if line.rate_basis not in RateBasis.values:
        errors.append(f"unknown rate_basis '{line.rate_basis}'")

    for name in ('rate_per_unit', 'loading_per_unit', 'unloading_per_unit',
                 'insurance_value', 'insurance_charge', 'packaging_charge'):
        if getattr(line, name) < 0:
            errors.append(f"{name} cannot be negative")

    if line.insurance_required:
        if line.insurance_value <= 0:
            errors.append("insurance_value must be positive when insurance is required")
        if line.insurance_charge <= 0:
            errors.append("insurance_charge must be positive when insurance is required")
    elif line.insurance_charge > 0:
        errors.append("insurance_charge requires insurance_required")

    return errors


def freight_amount(line: LineInput) -> Decimal:
    """Freight for the line: charged weight or quantity times the rate."""
    if line.rate_basis == RateBasis.PER_WEIGHT:
        return quantize_amount(line.charged_weight * line.rate_per_unit)
    return quantize_amount(Decimal(line.quantity) * line.rate_per_unit)


def compute_line(line: LineInput) -> LineAmounts:
    """Validate the line and compute its amounts.

    Raises:
        ValidationError: If any rule in ``validate_line`` is broken
    """
    errors = validate_line(line)
    if errors:
        raise ValidationError(errors)

    freight = freight_amount(line)
    loading_total = quantize_amount(line.loading_per_unit * line.quantity)
    unloading_total = quantize_amount(line.unloading_per_unit * line.quantity)
    insurance = quantize_amount(line.insurance_charge)
    packaging = quantize_amount(line.packaging_charge)

    return LineAmounts(
        freight_amount=freight,
        loading_total=loading_total,
        unloading_total=unloading_total,
        insurance_charge=insurance,
        packaging_charge=packaging,
        line_total=freight + loading_total + unloading_total + insurance + packaging,
    )
