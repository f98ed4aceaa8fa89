import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.notifications import get_notification_service

from .factories import make_admin, make_product, make_seller, make_user


@pytest.fixture(autouse=True)
def reset_process_state():
    """Clear throttle counters and in-memory notifications between tests."""
    cache.clear()
    get_notification_service().clear()
    yield
    get_notification_service().clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def buyer(db):
    return make_user()


@pytest.fixture
def seller(db):
    return make_seller()


@pytest.fixture
def admin_user(db):
    return make_admin()


@pytest.fixture
def product(seller):
    return make_product(seller)


@pytest.fixture
def superuser(db):
    """Superuser created the way ``createsuperuser`` does, keeping the default buyer role."""
    return make_user(is_staff=True, is_superuser=True)
