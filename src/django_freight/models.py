"""Models for django-freight.

Provides:
- Organization, Branch: the tenant hierarchy
- Customer, Article: organization reference data
- CustomerArticleRate, RateContract, ContractRate: pricing inputs
- Booking, BookingArticle: the consignment and its priced lines
- Manifest, ManifestItem: vehicle dispatch batches and per-line outcomes
- CustodyEvent: append-only audit trail of every applied transition
- NumberSequence: organization-scoped counters for human-readable numbers

Write through services only. Direct model manipulation bypasses the tenant
guard and the booking total invariant and is unsupported.
"""

import uuid
from datetime import date
from decimal import Decimal

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .exceptions import ImmutableRecord
from .lines import LineInput, compute_line
from .scoping import SoftDeleteManager, TenantManager, TenantQuerySet
from .states import (
    BookingStatus,
    ContractStatus,
    ItemOutcome,
    LineStatus,
    ManifestPhase,
    ManifestStatus,
    RateBasis,
    UnloadCondition,
)


class FreightBaseModel(models.Model):
    """Abstract base with UUID primary key, timestamps and soft delete."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = SoftDeleteManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True

    def delete(self, using=None, keep_parents=False):
        """Soft delete the object by setting deleted_at timestamp."""
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at', 'updated_at'])

    def hard_delete(self, using=None, keep_parents=False):
        """Permanently delete the object from the database."""
        super().delete(using=using, keep_parents=keep_parents)

    def restore(self):
        self.deleted_at = None
        self.save(update_fields=['deleted_at', 'updated_at'])

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# =============================================================================
# TENANCY
# =============================================================================

class Organization(FreightBaseModel):
    """A tenant. Every other row belongs to exactly one organization."""

    name = models.CharField(max_length=200)
    code = models.SlugField(max_length=50, unique=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        app_label = 'django_freight'
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def organization_id(self):
        # Lets the tenant guard treat an organization like any scoped row
        return self.pk


class Branch(FreightBaseModel):
    """A station of an organization: booking origin, destination, depot."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='branches',
    )
    name = models.CharField(max_length=200)
    code = models.CharField(max_length=20)
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'code'],
                condition=Q(deleted_at__isnull=True),
                name='freight_unique_active_branch_code',
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class Customer(FreightBaseModel):
    """Sender or receiver of bookings.

    A null branch makes the customer visible to every branch of the organization.
    """

    class CreditStatus(models.TextChoices):
        ACTIVE = 'active', 'Active'
        BLOCKED = 'blocked', 'Blocked'
        SUSPENDED = 'suspended', 'Suspended'

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='customers',
    )
    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='customers',
        help_text="Home branch (null = organization-wide)",
    )
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=30, blank=True)
    credit_status = models.CharField(
        max_length=20,
        choices=CreditStatus.choices,
        default=CreditStatus.ACTIVE,
    )

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['name']

    def __str__(self):
        return self.name


class Article(FreightBaseModel):
    """Organization-level master item that booking lines refer to."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='articles',
    )
    name = models.CharField(max_length=200)
    unit_of_measure = models.CharField(max_length=20, default='Nos')
    base_rate = models.DecimalField(max_digits=12, decimal_places=4, default=Decimal('0'))
    rate_basis = models.CharField(
        max_length=20,
        choices=RateBasis.choices,
        default=RateBasis.PER_UNIT,
    )
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['name']
        constraints = [
            models.CheckConstraint(
                condition=Q(base_rate__gte=0),
                name='freight_article_base_rate_non_negative',
            ),
        ]

    def __str__(self):
        return self.name


class CustomerArticleRate(FreightBaseModel):
    """Negotiated rate for one customer and article, effective-dated."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='customer_rates',
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.CASCADE,
        related_name='article_rates',
    )
    article = models.ForeignKey(
        Article,
        on_delete=models.CASCADE,
        related_name='customer_rates',
    )
    rate = models.DecimalField(max_digits=12, decimal_places=4)
    rate_basis = models.CharField(
        max_length=20,
        choices=RateBasis.choices,
        default=RateBasis.PER_UNIT,
    )
    discount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0'),
    )
    effective_from = models.DateField(default=date.today)
    effective_until = models.DateField(
        null=True,
        blank=True,
        help_text="NULL means indefinite",
    )
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['-effective_from']
        constraints = [
            models.CheckConstraint(
                condition=Q(rate__gte=0),
                name='freight_customer_rate_non_negative',
            ),
            models.CheckConstraint(
                condition=Q(discount_percentage__gte=0) & Q(discount_percentage__lte=100),
                name='freight_customer_rate_discount_range',
            ),
            models.CheckConstraint(
                condition=Q(effective_until__isnull=True) | Q(effective_until__gte=F('effective_from')),
                name='freight_customer_rate_window',
            ),
        ]

    def __str__(self):
        return f"{self.customer} / {self.article}: {self.rate} ({self.rate_basis})"


class RateContract(FreightBaseModel):
    """Time-bounded pricing agreement between the tenant and a customer.

    Only an ACTIVE contract whose [valid_from, valid_until] window contains the
    pricing date overrides article base rates.
    """

    class ContractType(models.TextChoices):
        STANDARD = 'standard', 'Standard'
        SPECIAL = 'special', 'Special'
        VOLUME = 'volume', 'Volume'
        SEASONAL = 'seasonal', 'Seasonal'

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='rate_contracts',
    )
    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='rate_contracts',
        help_text="Owning branch (null = organization-wide)",
    )
    contract_number = models.CharField(max_length=100)
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name='rate_contracts',
    )
    contract_type = models.CharField(
        max_length=20,
        choices=ContractType.choices,
        default=ContractType.STANDARD,
    )
    valid_from = models.DateField()
    valid_until = models.DateField()
    discount_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('0'),
    )
    status = models.CharField(
        max_length=20,
        choices=ContractStatus.choices,
        default=ContractStatus.DRAFT,
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.CharField(max_length=150, blank=True)
    terminated_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.CharField(max_length=150, blank=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['-approved_at', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'contract_number'],
                name='freight_unique_contract_number',
            ),
            models.CheckConstraint(
                condition=Q(valid_until__gte=F('valid_from')),
                name='freight_contract_window',
            ),
            models.CheckConstraint(
                condition=Q(discount_percentage__gte=0) & Q(discount_percentage__lte=100),
                name='freight_contract_discount_range',
            ),
        ]
        indexes = [
            models.Index(fields=['organization', 'customer', 'status'], name='freight_contract_status_idx'),
        ]

    def __str__(self):
        return f"{self.contract_number} ({self.status})"

    def covers_date(self, on: date) -> bool:
        return self.valid_from <= on <= self.valid_until


class ContractRate(FreightBaseModel):
    """A contract's override rate for one article, optionally per weight slab."""

    TENANT_PATH = 'contract__'

    contract = models.ForeignKey(
        RateContract,
        on_delete=models.CASCADE,
        related_name='rates',
    )
    article = models.ForeignKey(
        Article,
        on_delete=models.PROTECT,
        related_name='contract_rates',
    )
    rate_per_unit = models.DecimalField(max_digits=12, decimal_places=4)
    rate_basis = models.CharField(
        max_length=20,
        choices=RateBasis.choices,
        default=RateBasis.PER_WEIGHT,
    )
    weight_from = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    weight_to = models.DecimalField(max_digits=10, decimal_places=3, null=True, blank=True)
    min_quantity = models.PositiveIntegerField(default=1)
    is_active = models.BooleanField(default=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        constraints = [
            models.CheckConstraint(
                condition=Q(rate_per_unit__gte=0),
                name='freight_contract_rate_non_negative',
            ),
            models.CheckConstraint(
                condition=(
                    Q(weight_from__isnull=True) | Q(weight_to__isnull=True)
                    | Q(weight_to__gte=F('weight_from'))
                ),
                name='freight_contract_rate_slab',
            ),
        ]

    def __str__(self):
        return f"{self.contract.contract_number} / {self.article}: {self.rate_per_unit}"


class NumberSequence(FreightBaseModel):
    """Organization-scoped counter for human-readable numbers.

    Generates values like "LR-2026-000123". Incremented under a row lock by
    ``sequences.next_number``.
    """

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name='sequences',
    )
    scope = models.CharField(
        max_length=50,
        help_text="Sequence scope, e.g. 'booking', 'manifest', 'rate_contract'",
    )
    prefix = models.CharField(max_length=20)
    current_value = models.PositiveBigIntegerField(default=0)
    pad_width = models.PositiveSmallIntegerField(default=6)
    include_year = models.BooleanField(default=True)

    class Meta:
        app_label = 'django_freight'
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'scope'],
                name='freight_unique_sequence_scope',
            ),
        ]

    def __str__(self):
        return f"{self.scope} (org:{self.organization_id}): {self.current_value}"

    @property
    def formatted_value(self) -> str:
        number_str = str(self.current_value).zfill(self.pad_width)
        if self.include_year:
            return f"{self.prefix}{timezone.now().year}-{number_str}"
        return f"{self.prefix}{number_str}"


# =============================================================================
# BOOKINGS
# =============================================================================

class Booking(FreightBaseModel):
    """One shipment consignment.

    ``total_amount`` is derived: it always equals the sum of the line totals
    of its non-cancelled lines and is only written by
    ``aggregate.recompute_booking_total``.
    """

    class PaymentType(models.TextChoices):
        PAID = 'paid', 'Paid'
        TO_PAY = 'to_pay', 'To pay'
        TO_BE_BILLED = 'to_be_billed', 'To be billed'

    class TrackingType(models.TextChoices):
        SYSTEM = 'system', 'System generated'
        MANUAL = 'manual', 'Manual'

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='bookings',
    )
    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        related_name='bookings',
        help_text="Origin branch; scopes the booking",
    )
    destination_branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        related_name='incoming_bookings',
    )
    sender = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name='sent_bookings',
    )
    receiver = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        related_name='received_bookings',
    )
    tracking_number = models.CharField(max_length=50)
    tracking_type = models.CharField(
        max_length=10,
        choices=TrackingType.choices,
        default=TrackingType.SYSTEM,
    )
    payment_type = models.CharField(
        max_length=20,
        choices=PaymentType.choices,
        default=PaymentType.PAID,
    )
    reference_number = models.CharField(max_length=100, blank=True)
    remarks = models.TextField(blank=True)
    expected_delivery_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.BOOKED,
    )
    total_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0'),
        editable=False,
    )

    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=150, blank=True)
    cancellation_reason = models.TextField(blank=True)
    created_by = models.CharField(max_length=150, blank=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'tracking_number'],
                condition=Q(deleted_at__isnull=True),
                name='freight_unique_tracking_number',
            ),
            models.CheckConstraint(
                condition=~Q(branch=F('destination_branch')),
                name='freight_booking_distinct_branches',
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name='freight_booking_total_non_negative',
            ),
        ]
        indexes = [
            models.Index(fields=['organization', 'branch', 'status'], name='freight_booking_status_idx'),
        ]

    def __str__(self):
        return f"{self.tracking_number} ({self.status})"


class BookingArticle(FreightBaseModel):
    """One priced, trackable item or batch within a booking.

    freight_amount, loading_total, unloading_total and line_total are outputs
    of ``lines.compute_line`` and are recomputed from the inputs on every save.
    """

    TENANT_PATH = 'booking__'

    class RateSource(models.TextChoices):
        CONTRACT = 'contract', 'Rate contract'
        CUSTOMER = 'customer', 'Customer rate'
        BASE = 'base', 'Article base rate'
        MANUAL = 'manual', 'Entered at booking'

    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        related_name='lines',
    )
    article = models.ForeignKey(
        Article,
        on_delete=models.PROTECT,
        related_name='booking_lines',
    )

    quantity = models.PositiveIntegerField()
    unit_of_measure = models.CharField(max_length=20, default='Nos')
    actual_weight = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal('0'))
    charged_weight = models.DecimalField(max_digits=10, decimal_places=3, default=Decimal('0'))
    declared_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    rate_per_unit = models.DecimalField(max_digits=12, decimal_places=4)
    rate_basis = models.CharField(
        max_length=20,
        choices=RateBasis.choices,
        default=RateBasis.PER_UNIT,
    )
    rate_source = models.CharField(
        max_length=20,
        choices=RateSource.choices,
        default=RateSource.MANUAL,
    )
    loading_charge_per_unit = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    unloading_charge_per_unit = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    insurance_required = models.BooleanField(default=False)
    insurance_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    insurance_charge = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))
    packaging_charge = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0'))

    # Derived (see lines.compute_line)
    freight_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), editable=False)
    loading_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), editable=False)
    unloading_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), editable=False)
    line_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'), editable=False)

    description = models.TextField(blank=True)
    private_mark_number = models.CharField(max_length=100, blank=True)
    is_fragile = models.BooleanField(default=False)
    special_instructions = models.TextField(blank=True)

    status = models.CharField(
        max_length=20,
        choices=LineStatus.choices,
        default=LineStatus.BOOKED,
    )
    loaded_at = models.DateTimeField(null=True, blank=True)
    loaded_by = models.CharField(max_length=150, blank=True)
    unloaded_at = models.DateTimeField(null=True, blank=True)
    unloaded_by = models.CharField(max_length=150, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    delivered_by = models.CharField(max_length=150, blank=True)
    created_by = models.CharField(max_length=150, blank=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['created_at']
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name='freight_line_quantity_positive',
            ),
            models.CheckConstraint(
                condition=Q(charged_weight__gte=F('actual_weight')),
                name='freight_line_charged_weight_covers_actual',
            ),
            models.UniqueConstraint(
                fields=['booking', 'article'],
                condition=Q(deleted_at__isnull=True),
                name='freight_unique_article_per_booking',
            ),
        ]
        indexes = [
            models.Index(fields=['booking', 'status'], name='freight_line_status_idx'),
        ]

    def __str__(self):
        return f"{self.article} x{self.quantity} ({self.status})"

    def to_line_input(self) -> LineInput:
        return LineInput.build(
            quantity=self.quantity,
            actual_weight=self.actual_weight,
            charged_weight=self.charged_weight,
            rate_per_unit=self.rate_per_unit,
            rate_basis=self.rate_basis,
            loading_per_unit=self.loading_charge_per_unit,
            unloading_per_unit=self.unloading_charge_per_unit,
            insurance_required=self.insurance_required,
            insurance_value=self.insurance_value,
            insurance_charge=self.insurance_charge,
            packaging_charge=self.packaging_charge,
        )

    def apply_amounts(self):
        """Overwrite the derived fields from the current inputs."""
        amounts = compute_line(self.to_line_input())
        self.freight_amount = amounts.freight_amount
        self.loading_total = amounts.loading_total
        self.unloading_total = amounts.unloading_total
        self.line_total = amounts.line_total
        return amounts

    def save(self, *args, **kwargs):
        """Recompute derived amounts before every write."""
        update_fields = kwargs.get('update_fields')
        if update_fields is None:
            self.apply_amounts()
        elif not set(update_fields) <= _NON_PRICING_FIELDS:
            self.apply_amounts()
            kwargs['update_fields'] = set(update_fields) | _DERIVED_FIELDS
        super().save(*args, **kwargs)

    @property
    def is_cancelled(self) -> bool:
        return self.status == LineStatus.CANCELLED


_DERIVED_FIELDS = {'freight_amount', 'loading_total', 'unloading_total', 'line_total'}
_NON_PRICING_FIELDS = {
    'status', 'updated_at', 'deleted_at',
    'loaded_at', 'loaded_by', 'unloaded_at', 'unloaded_by', 'delivered_at', 'delivered_by',
}


# =============================================================================
# MANIFESTS
# =============================================================================

class Manifest(FreightBaseModel):
    """A batch of lines grouped for one vehicle trip."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='manifests',
    )
    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        related_name='manifests',
        help_text="Dispatching branch; scopes the manifest",
    )
    destination_branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        related_name='incoming_manifests',
    )
    manifest_number = models.CharField(max_length=50)
    vehicle_number = models.CharField(max_length=30)
    driver_name = models.CharField(max_length=150, blank=True)
    travel_date = models.DateField(default=date.today)

    status = models.CharField(
        max_length=25,
        choices=ManifestStatus.choices,
        default=ManifestStatus.CREATED,
    )
    phase = models.CharField(
        max_length=10,
        choices=ManifestPhase.choices,
        blank=True,
        help_text="Phase left incomplete while partially processed",
    )
    dispatched_at = models.DateTimeField(null=True, blank=True)
    dispatched_by = models.CharField(max_length=150, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.CharField(max_length=150, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.CharField(max_length=150, blank=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['-travel_date', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['organization', 'manifest_number'],
                name='freight_unique_manifest_number',
            ),
        ]

    def __str__(self):
        return f"{self.manifest_number} {self.vehicle_number} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status not in (ManifestStatus.COMPLETED, ManifestStatus.CANCELLED)


class ManifestItem(FreightBaseModel):
    """A line's membership in a manifest with the outcome of each phase."""

    TENANT_PATH = 'manifest__'

    manifest = models.ForeignKey(
        Manifest,
        on_delete=models.CASCADE,
        related_name='items',
    )
    line = models.ForeignKey(
        BookingArticle,
        on_delete=models.PROTECT,
        related_name='manifest_items',
    )
    load_outcome = models.CharField(
        max_length=10,
        choices=ItemOutcome.choices,
        default=ItemOutcome.PENDING,
    )
    load_error = models.TextField(blank=True)
    unload_outcome = models.CharField(
        max_length=10,
        choices=ItemOutcome.choices,
        default=ItemOutcome.PENDING,
    )
    unload_error = models.TextField(blank=True)
    unload_condition = models.CharField(
        max_length=10,
        choices=UnloadCondition.choices,
        blank=True,
    )
    remarks = models.TextField(blank=True)

    objects = TenantManager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['manifest', 'line'],
                condition=Q(deleted_at__isnull=True),
                name='freight_unique_manifest_line',
            ),
        ]

    def __str__(self):
        return f"{self.manifest.manifest_number} / {self.line_id}"


# =============================================================================
# AUDIT
# =============================================================================

class CustodyEvent(models.Model):
    """Immutable record of one applied transition or lifecycle fact.

    Never modified after creation.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(
        Organization,
        on_delete=models.PROTECT,
        related_name='custody_events',
    )
    branch = models.ForeignKey(
        Branch,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='custody_events',
    )
    booking = models.ForeignKey(
        Booking,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='events',
    )
    line = models.ForeignKey(
        BookingArticle,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='events',
    )
    manifest = models.ForeignKey(
        Manifest,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='events',
    )
    event_type = models.CharField(max_length=50)
    from_status = models.CharField(max_length=25, blank=True)
    to_status = models.CharField(max_length=25, blank=True)
    actor = models.CharField(max_length=150, blank=True)
    occurred_at = models.DateTimeField(default=timezone.now)
    metadata = models.JSONField(default=dict, blank=True)

    objects = TenantQuerySet.as_manager()

    class Meta:
        app_label = 'django_freight'
        ordering = ['occurred_at']
        indexes = [
            models.Index(fields=['booking', 'occurred_at'], name='freight_event_booking_idx'),
            models.Index(fields=['manifest', 'occurred_at'], name='freight_event_manifest_idx'),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecord(f"Custody event {self.pk} is immutable")
        super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.event_type}: {self.from_status or '-'} -> {self.to_status or '-'}"
