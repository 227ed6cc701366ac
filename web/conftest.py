from decimal import Decimal

import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def notifications_for_tests(settings):
    """Run dispatch inline with every channel off unless a test enables it."""
    settings.NOTIFY_DISPATCH_MODE = "inline"
    settings.NOTIFY_EMAIL_ENABLED = False
    settings.NOTIFY_SMS_ENABLED = False
    settings.NOTIFY_WHATSAPP_ENABLED = False
    settings.TWILIO_ACCOUNT_SID = ""
    settings.TWILIO_AUTH_TOKEN = ""
    settings.HTTP_RETRY_BACKOFF_BASE = 0.0


@pytest.fixture(autouse=True)
def reset_process_state():
    # throttles live in the cache; breakers and the error formatter are module-level
    from apps.notifications.http_adapters import _sms_cb, _whatsapp_cb
    from gateway.errors import get_error_formatter

    cache.clear()
    _sms_cb.on_success()
    _whatsapp_cb.on_success()
    get_error_formatter.cache_clear()
    yield
    get_error_formatter.cache_clear()


@pytest.fixture
def tenant(db):
    from apps.catalog.models import Tenant

    return Tenant.objects.create(name="FreshMart", slug="freshmart")


@pytest.fixture
def other_tenant(db):
    from apps.catalog.models import Tenant

    return Tenant.objects.create(name="Other Shop", slug="other-shop")


@pytest.fixture
def make_user(db):
    from apps.accounts.models import StoreUser

    counter = {"n": 0}

    def _make(tenant, role="customer", **kwargs):
        counter["n"] += 1
        defaults = {
            "name": f"User {counter['n']}",
            "email": f"user{counter['n']}@example.com",
            "phone": "",
            "role": role,
        }
        defaults.update(kwargs)
        return StoreUser.objects.create(tenant=tenant, **defaults)

    return _make


@pytest.fixture
def customer(tenant, make_user):
    return make_user(tenant, "customer", name="Asha", email="asha@example.com")


@pytest.fixture
def other_customer(tenant, make_user):
    return make_user(tenant, "customer", name="Ravi", email="ravi@example.com")


@pytest.fixture
def staff(tenant, make_user):
    return make_user(tenant, "staff", name="Store Staff", email="staff@example.com")


@pytest.fixture
def delivery(tenant, make_user):
    return make_user(tenant, "delivery", name="Rider", email="rider@example.com")


@pytest.fixture
def make_product(db):
    from apps.catalog.models import Product

    def _make(tenant, name="Tomatoes", price="100.00", stock=5, is_active=True):
        return Product.objects.create(
            tenant=tenant, name=name, price=Decimal(price), stock=stock, is_active=is_active
        )

    return _make


@pytest.fixture
def auth_headers():
    """Identity headers as forwarded by the authentication gateway."""

    def _headers(user):
        return {
            "HTTP_X_TENANT_ID": str(user.tenant_id),
            "HTTP_X_USER_ID": str(user.id),
            "HTTP_X_USER_ROLE": user.role,
        }

    return _headers
