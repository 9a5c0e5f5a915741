# Generated manually for standalone django-freight package

import datetime
import decimal
import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


def base_fields():
    return [
        (
            "id",
            models.UUIDField(
                default=uuid.uuid4, editable=False, primary_key=True, serialize=False
            ),
        ),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
        ("deleted_at", models.DateTimeField(blank=True, null=True)),
    ]


RATE_BASIS_CHOICES = [
    ("per_weight", "Per unit of weight"),
    ("per_unit", "Per unit of quantity"),
]

ITEM_OUTCOME_CHOICES = [
    ("pending", "Pending"),
    ("succeeded", "Succeeded"),
    ("failed", "Failed"),
    ("skipped", "Skipped"),
]


def money(max_digits=14, **kwargs):
    return models.DecimalField(
        decimal_places=2, default=decimal.Decimal("0"), max_digits=max_digits, **kwargs
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=200)),
                ("code", models.SlugField(unique=True)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Branch",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=200)),
                ("code", models.CharField(max_length=20)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="branches",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=200)),
                ("phone", models.CharField(blank=True, max_length=30)),
                (
                    "credit_status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("blocked", "Blocked"),
                            ("suspended", "Suspended"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "branch",
                    models.ForeignKey(
                        blank=True,
                        help_text="Home branch (null = organization-wide)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customers",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customers",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Article",
            fields=[
                *base_fields(),
                ("name", models.CharField(max_length=200)),
                ("unit_of_measure", models.CharField(default="Nos", max_length=20)),
                (
                    "base_rate",
                    models.DecimalField(
                        decimal_places=4, default=decimal.Decimal("0"), max_digits=12
                    ),
                ),
                (
                    "rate_basis",
                    models.CharField(
                        choices=RATE_BASIS_CHOICES, default="per_unit", max_length=20
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="articles",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="CustomerArticleRate",
            fields=[
                *base_fields(),
                ("rate", models.DecimalField(decimal_places=4, max_digits=12)),
                (
                    "rate_basis",
                    models.CharField(
                        choices=RATE_BASIS_CHOICES, default="per_unit", max_length=20
                    ),
                ),
                ("discount_percentage", money(max_digits=5)),
                ("effective_from", models.DateField(default=datetime.date.today)),
                (
                    "effective_until",
                    models.DateField(
                        blank=True, help_text="NULL means indefinite", null=True
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "article",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customer_rates",
                        to="django_freight.article",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="article_rates",
                        to="django_freight.customer",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customer_rates",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["-effective_from"],
            },
        ),
        migrations.CreateModel(
            name="RateContract",
            fields=[
                *base_fields(),
                ("contract_number", models.CharField(max_length=100)),
                (
                    "contract_type",
                    models.CharField(
                        choices=[
                            ("standard", "Standard"),
                            ("special", "Special"),
                            ("volume", "Volume"),
                            ("seasonal", "Seasonal"),
                        ],
                        default="standard",
                        max_length=20,
                    ),
                ),
                ("valid_from", models.DateField()),
                ("valid_until", models.DateField()),
                ("discount_percentage", money(max_digits=5)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("pending_approval", "Pending approval"),
                            ("active", "Active"),
                            ("expired", "Expired"),
                            ("terminated", "Terminated"),
                        ],
                        default="draft",
                        max_length=20,
                    ),
                ),
                ("approved_at", models.DateTimeField(blank=True, null=True)),
                ("approved_by", models.CharField(blank=True, max_length=150)),
                ("terminated_at", models.DateTimeField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("created_by", models.CharField(blank=True, max_length=150)),
                (
                    "branch",
                    models.ForeignKey(
                        blank=True,
                        help_text="Owning branch (null = organization-wide)",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rate_contracts",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rate_contracts",
                        to="django_freight.customer",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rate_contracts",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["-approved_at", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ContractRate",
            fields=[
                *base_fields(),
                ("rate_per_unit", models.DecimalField(decimal_places=4, max_digits=12)),
                (
                    "rate_basis",
                    models.CharField(
                        choices=RATE_BASIS_CHOICES, default="per_weight", max_length=20
                    ),
                ),
                (
                    "weight_from",
                    models.DecimalField(
                        blank=True, decimal_places=3, max_digits=10, null=True
                    ),
                ),
                (
                    "weight_to",
                    models.DecimalField(
                        blank=True, decimal_places=3, max_digits=10, null=True
                    ),
                ),
                ("min_quantity", models.PositiveIntegerField(default=1)),
                ("is_active", models.BooleanField(default=True)),
                (
                    "article",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="contract_rates",
                        to="django_freight.article",
                    ),
                ),
                (
                    "contract",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rates",
                        to="django_freight.ratecontract",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="NumberSequence",
            fields=[
                *base_fields(),
                (
                    "scope",
                    models.CharField(
                        help_text="Sequence scope, e.g. 'booking', 'manifest', 'rate_contract'",
                        max_length=50,
                    ),
                ),
                ("prefix", models.CharField(max_length=20)),
                ("current_value", models.PositiveBigIntegerField(default=0)),
                ("pad_width", models.PositiveSmallIntegerField(default=6)),
                ("include_year", models.BooleanField(default=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sequences",
                        to="django_freight.organization",
                    ),
                ),
            ],
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                *base_fields(),
                ("tracking_number", models.CharField(max_length=50)),
                (
                    "tracking_type",
                    models.CharField(
                        choices=[("system", "System generated"), ("manual", "Manual")],
                        default="system",
                        max_length=10,
                    ),
                ),
                (
                    "payment_type",
                    models.CharField(
                        choices=[
                            ("paid", "Paid"),
                            ("to_pay", "To pay"),
                            ("to_be_billed", "To be billed"),
                        ],
                        default="paid",
                        max_length=20,
                    ),
                ),
                ("reference_number", models.CharField(blank=True, max_length=100)),
                ("remarks", models.TextField(blank=True)),
                ("expected_delivery_date", models.DateField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("booked", "Booked"),
                            ("in_transit", "In transit"),
                            ("delivered", "Delivered"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="booked",
                        max_length=20,
                    ),
                ),
                ("total_amount", money(editable=False)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_by", models.CharField(blank=True, max_length=150)),
                ("cancellation_reason", models.TextField(blank=True)),
                ("created_by", models.CharField(blank=True, max_length=150)),
                (
                    "branch",
                    models.ForeignKey(
                        help_text="Origin branch; scopes the booking",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "destination_branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incoming_bookings",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="django_freight.organization",
                    ),
                ),
                (
                    "receiver",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="received_bookings",
                        to="django_freight.customer",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="sent_bookings",
                        to="django_freight.customer",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="BookingArticle",
            fields=[
                *base_fields(),
                ("quantity", models.PositiveIntegerField()),
                ("unit_of_measure", models.CharField(default="Nos", max_length=20)),
                (
                    "actual_weight",
                    models.DecimalField(
                        decimal_places=3, default=decimal.Decimal("0"), max_digits=10
                    ),
                ),
                (
                    "charged_weight",
                    models.DecimalField(
                        decimal_places=3, default=decimal.Decimal("0"), max_digits=10
                    ),
                ),
                ("declared_value", money(max_digits=12)),
                ("rate_per_unit", models.DecimalField(decimal_places=4, max_digits=12)),
                (
                    "rate_basis",
                    models.CharField(
                        choices=RATE_BASIS_CHOICES, default="per_unit", max_length=20
                    ),
                ),
                (
                    "rate_source",
                    models.CharField(
                        choices=[
                            ("contract", "Rate contract"),
                            ("customer", "Customer rate"),
                            ("base", "Article base rate"),
                            ("manual", "Entered at booking"),
                        ],
                        default="manual",
                        max_length=20,
                    ),
                ),
                ("loading_charge_per_unit", money(max_digits=10)),
                ("unloading_charge_per_unit", money(max_digits=10)),
                ("insurance_required", models.BooleanField(default=False)),
                ("insurance_value", money(max_digits=12)),
                ("insurance_charge", money(max_digits=10)),
                ("packaging_charge", money(max_digits=10)),
                ("freight_amount", money(editable=False)),
                ("loading_total", money(editable=False)),
                ("unloading_total", money(editable=False)),
                ("line_total", money(editable=False)),
                ("description", models.TextField(blank=True)),
                ("private_mark_number", models.CharField(blank=True, max_length=100)),
                ("is_fragile", models.BooleanField(default=False)),
                ("special_instructions", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("booked", "Booked"),
                            ("loaded", "Loaded"),
                            ("in_transit", "In transit"),
                            ("unloaded", "Unloaded"),
                            ("out_for_delivery", "Out for delivery"),
                            ("delivered", "Delivered"),
                            ("damaged", "Damaged"),
                            ("missing", "Missing"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="booked",
                        max_length=20,
                    ),
                ),
                ("loaded_at", models.DateTimeField(blank=True, null=True)),
                ("loaded_by", models.CharField(blank=True, max_length=150)),
                ("unloaded_at", models.DateTimeField(blank=True, null=True)),
                ("unloaded_by", models.CharField(blank=True, max_length=150)),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("delivered_by", models.CharField(blank=True, max_length=150)),
                ("created_by", models.CharField(blank=True, max_length=150)),
                (
                    "article",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="booking_lines",
                        to="django_freight.article",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                        to="django_freight.booking",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="Manifest",
            fields=[
                *base_fields(),
                ("manifest_number", models.CharField(max_length=50)),
                ("vehicle_number", models.CharField(max_length=30)),
                ("driver_name", models.CharField(blank=True, max_length=150)),
                ("travel_date", models.DateField(default=datetime.date.today)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("in_transit", "In transit"),
                            ("partially_processed", "Partially processed"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="created",
                        max_length=25,
                    ),
                ),
                (
                    "phase",
                    models.CharField(
                        blank=True,
                        choices=[("loading", "Loading"), ("unloading", "Unloading")],
                        help_text="Phase left incomplete while partially processed",
                        max_length=10,
                    ),
                ),
                ("dispatched_at", models.DateTimeField(blank=True, null=True)),
                ("dispatched_by", models.CharField(blank=True, max_length=150)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_by", models.CharField(blank=True, max_length=150)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("created_by", models.CharField(blank=True, max_length=150)),
                (
                    "branch",
                    models.ForeignKey(
                        help_text="Dispatching branch; scopes the manifest",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="manifests",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "destination_branch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="incoming_manifests",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="manifests",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["-travel_date", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ManifestItem",
            fields=[
                *base_fields(),
                (
                    "load_outcome",
                    models.CharField(
                        choices=ITEM_OUTCOME_CHOICES, default="pending", max_length=10
                    ),
                ),
                ("load_error", models.TextField(blank=True)),
                (
                    "unload_outcome",
                    models.CharField(
                        choices=ITEM_OUTCOME_CHOICES, default="pending", max_length=10
                    ),
                ),
                ("unload_error", models.TextField(blank=True)),
                (
                    "unload_condition",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("good", "Good"),
                            ("damaged", "Damaged"),
                            ("missing", "Missing"),
                        ],
                        max_length=10,
                    ),
                ),
                ("remarks", models.TextField(blank=True)),
                (
                    "line",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="manifest_items",
                        to="django_freight.bookingarticle",
                    ),
                ),
                (
                    "manifest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="django_freight.manifest",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.CreateModel(
            name="CustodyEvent",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("event_type", models.CharField(max_length=50)),
                ("from_status", models.CharField(blank=True, max_length=25)),
                ("to_status", models.CharField(blank=True, max_length=25)),
                ("actor", models.CharField(blank=True, max_length=150)),
                (
                    "occurred_at",
                    models.DateTimeField(default=django.utils.timezone.now),
                ),
                ("metadata", models.JSONField(blank=True, default=dict)),
                (
                    "booking",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="django_freight.booking",
                    ),
                ),
                (
                    "branch",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="custody_events",
                        to="django_freight.branch",
                    ),
                ),
                (
                    "line",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="django_freight.bookingarticle",
                    ),
                ),
                (
                    "manifest",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="events",
                        to="django_freight.manifest",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="custody_events",
                        to="django_freight.organization",
                    ),
                ),
            ],
            options={
                "ordering": ["occurred_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="branch",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("organization", "code"),
                name="freight_unique_active_branch_code",
            ),
        ),
        migrations.AddConstraint(
            model_name="article",
            constraint=models.CheckConstraint(
                condition=models.Q(("base_rate__gte", 0)),
                name="freight_article_base_rate_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="customerarticlerate",
            constraint=models.CheckConstraint(
                condition=models.Q(("rate__gte", 0)),
                name="freight_customer_rate_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="customerarticlerate",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("discount_percentage__gte", 0), ("discount_percentage__lte", 100)
                ),
                name="freight_customer_rate_discount_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="customerarticlerate",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("effective_until__isnull", True),
                    ("effective_until__gte", models.F("effective_from")),
                    _connector="OR",
                ),
                name="freight_customer_rate_window",
            ),
        ),
        migrations.AddIndex(
            model_name="ratecontract",
            index=models.Index(
                fields=["organization", "customer", "status"],
                name="freight_contract_status_idx",
            ),
        ),
        migrations.AddConstraint(
            model_name="ratecontract",
            constraint=models.UniqueConstraint(
                fields=("organization", "contract_number"),
                name="freight_unique_contract_number",
            ),
        ),
        migrations.AddConstraint(
            model_name="ratecontract",
            constraint=models.CheckConstraint(
                condition=models.Q(("valid_until__gte", models.F("valid_from"))),
                name="freight_contract_window",
            ),
        ),
        migrations.AddConstraint(
            model_name="ratecontract",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("discount_percentage__gte", 0), ("discount_percentage__lte", 100)
                ),
                name="freight_contract_discount_range",
            ),
        ),
        migrations.AddConstraint(
            model_name="contractrate",
            constraint=models.CheckConstraint(
                condition=models.Q(("rate_per_unit__gte", 0)),
                name="freight_contract_rate_non_negative",
            ),
        ),
        migrations.AddConstraint(
            model_name="contractrate",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("weight_from__isnull", True),
                    ("weight_to__isnull", True),
                    ("weight_to__gte", models.F("weight_from")),
                    _connector="OR",
                ),
                name="freight_contract_rate_slab",
            ),
        ),
        migrations.AddConstraint(
            model_name="numbersequence",
            constraint=models.UniqueConstraint(
                fields=("organization", "scope"),
                name="freight_unique_sequence_scope",
            ),
        ),
        migrations.AddIndex(
            model_name="booking",
            index=models.Index(
                fields=["organization", "branch", "status"],
                name="freight_booking_status_idx",
            ),
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("organization", "tracking_number"),
                name="freight_unique_tracking_number",
            ),
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    ("branch", models.F("destination_branch")), _negated=True
                ),
                name="freight_booking_distinct_branches",
            ),
        ),
        migrations.AddConstraint(
            model_name="booking",
            constraint=models.CheckConstraint(
                condition=models.Q(("total_amount__gte", 0)),
                name="freight_booking_total_non_negative",
            ),
        ),
        migrations.AddIndex(
            model_name="bookingarticle",
            index=models.Index(
                fields=["booking", "status"], name="freight_line_status_idx"
            ),
        ),
        migrations.AddConstraint(
            model_name="bookingarticle",
            constraint=models.CheckConstraint(
                condition=models.Q(("quantity__gt", 0)),
                name="freight_line_quantity_positive",
            ),
        ),
        migrations.AddConstraint(
            model_name="bookingarticle",
            constraint=models.CheckConstraint(
                condition=models.Q(("charged_weight__gte", models.F("actual_weight"))),
                name="freight_line_charged_weight_covers_actual",
            ),
        ),
        migrations.AddConstraint(
            model_name="bookingarticle",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("booking", "article"),
                name="freight_unique_article_per_booking",
            ),
        ),
        migrations.AddConstraint(
            model_name="manifest",
            constraint=models.UniqueConstraint(
                fields=("organization", "manifest_number"),
                name="freight_unique_manifest_number",
            ),
        ),
        migrations.AddConstraint(
            model_name="manifestitem",
            constraint=models.UniqueConstraint(
                condition=models.Q(("deleted_at__isnull", True)),
                fields=("manifest", "line"),
                name="freight_unique_manifest_line",
            ),
        ),
        migrations.AddIndex(
            model_name="custodyevent",
            index=models.Index(
                fields=["booking", "occurred_at"], name="freight_event_booking_idx"
            ),
        ),
        migrations.AddIndex(
            model_name="custodyevent",
            index=models.Index(
                fields=["manifest", "occurred_at"], name="freight_event_manifest_idx"
            ),
        ),
    ]
