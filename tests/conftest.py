# tests/conftest.py
"""
Pytest configuration and shared fixtures for django-freight tests.
"""
from decimal import Decimal

import django
import pytest
from django.conf import settings


def pytest_configure():
    if not settings.configured:
        settings.configure(
            DEBUG=True,
            SECRET_KEY="test-secret-key-for-freight-tests",
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME": ":memory:",
                }
            },
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "django.contrib.auth",
                "django_freight",
            ],
            DEFAULT_AUTO_FIELD="django.db.models.BigAutoField",
            USE_TZ=True,
            TIME_ZONE="UTC",
        )
    django.setup()


# =============================================================================
# TENANTS
# =============================================================================

@pytest.fixture
def org():
    from django_freight.models import Organization
    return Organization.objects.create(name="Swift Cargo", code="swift")


@pytest.fixture
def other_org():
    from django_freight.models import Organization
    return Organization.objects.create(name="Rival Logistics", code="rival")


@pytest.fixture
def branch_a(org):
    from django_freight.models import Branch
    return Branch.objects.create(organization=org, name="Hyderabad", code="HYD")


@pytest.fixture
def branch_b(org):
    from django_freight.models import Branch
    return Branch.objects.create(organization=org, name="Bengaluru", code="BLR")


@pytest.fixture
def branch_c(org):
    from django_freight.models import Branch
    return Branch.objects.create(organization=org, name="Chennai", code="MAA")


@pytest.fixture
def other_branch(other_org):
    from django_freight.models import Branch
    return Branch.objects.create(organization=other_org, name="Pune", code="PNQ")


@pytest.fixture
def scope_a(org, branch_a):
    from django_freight.scoping import TenantScope
    return TenantScope(organization_id=org.pk, branch_id=branch_a.pk, actor="clerk-hyd")


@pytest.fixture
def scope_b(org, branch_b):
    from django_freight.scoping import TenantScope
    return TenantScope(organization_id=org.pk, branch_id=branch_b.pk, actor="clerk-blr")


@pytest.fixture
def admin_scope(org):
    from django_freight.scoping import TenantScope
    return TenantScope(organization_id=org.pk, role="admin", actor="ops-admin")


@pytest.fixture
def other_scope(other_org, other_branch):
    from django_freight.scoping import TenantScope
    return TenantScope(organization_id=other_org.pk, branch_id=other_branch.pk, actor="rival-clerk")


# =============================================================================
# REFERENCE DATA
# =============================================================================

@pytest.fixture
def sender(org):
    from django_freight.models import Customer
    return Customer.objects.create(organization=org, name="Deccan Textiles")


@pytest.fixture
def receiver(org):
    from django_freight.models import Customer
    return Customer.objects.create(organization=org, name="Garden City Traders")


@pytest.fixture
def carton(org):
    """Article priced per unit at 100.00."""
    from django_freight.models import Article
    return Article.objects.create(
        organization=org,
        name="Carton",
        base_rate=Decimal("100.00"),
        rate_basis="per_unit",
    )


@pytest.fixture
def steel(org):
    """Article priced per unit of weight at 50.00."""
    from django_freight.models import Article
    return Article.objects.create(
        organization=org,
        name="Steel coil",
        unit_of_measure="Kg",
        base_rate=Decimal("50.00"),
        rate_basis="per_weight",
    )


@pytest.fixture
def drum(org):
    """Article priced per unit at 20.00."""
    from django_freight.models import Article
    return Article.objects.create(organization=org, name="Drum", base_rate=Decimal("20.00"))


@pytest.fixture
def make_booking(scope_a, branch_b, sender, receiver):
    """Factory creating a booking from branch A to branch B."""
    from django_freight.services import create_booking

    def _make(lines=(), scope=None, **kwargs):
        kwargs.setdefault("destination_branch", branch_b)
        kwargs.setdefault("sender", sender)
        kwargs.setdefault("receiver", receiver)
        return create_booking(scope or scope_a, lines=lines, **kwargs)

    return _make


@pytest.fixture
def booking(make_booking, carton, steel):
    """A booked booking with two lines: 5 cartons (500.00) and 26kg of steel (1300.00)."""
    from django_freight.services import LineRequest
    return make_booking(lines=[
        LineRequest(article=carton, quantity=5),
        LineRequest(article=steel, quantity=10, actual_weight="25.5", charged_weight="26.0"),
    ])
