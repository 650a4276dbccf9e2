import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from modules.core.schema import schema_capabilities
from modules.orders.dtos import CreateOrderDTO, LineItemDTO


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _fresh_schema_capabilities():
    """Capability answers are cached per process; start every test clean."""
    schema_capabilities.reset()
    yield
    schema_capabilities.reset()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def organization_id():
    return uuid.UUID("0190f0c0-0000-7000-8000-00000000aaaa")


@pytest.fixture()
def other_organization_id():
    return uuid.UUID("0190f0c0-0000-7000-8000-00000000bbbb")


@pytest.fixture()
def user():
    return get_user_model().objects.create_user(
        username="operator", password="testpass123"
    )


@pytest.fixture()
def auth_client(api_client, user, organization_id):
    """Authenticated client scoped to ``organization_id``."""
    api_client.force_authenticate(user=user)
    api_client.defaults["HTTP_X_ORGANIZATION_ID"] = str(organization_id)
    return api_client


@pytest.fixture()
def fixed_now():
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def order_service():
    from modules.orders.views import build_order_service

    return build_order_service()


@pytest.fixture()
def squid_item():
    return LineItemDTO(
        product="Frozen Squid Rings",
        size="40/60",
        glaze="20%",
        packing="6x1 kg",
        kilos=Decimal("1200"),
        price_per_kg=Decimal("4.50"),
    )


@pytest.fixture()
def create_dto(squid_item):
    return CreateOrderDTO(
        buyer="Pescados E Guillem",
        supplier="Silver Sea Foods",
        destination="Valencia, Spain",
        line_items=[squid_item],
    )


@pytest.fixture()
def order(order_service, organization_id, create_dto):
    return order_service.create_order(organization_id, create_dto)
