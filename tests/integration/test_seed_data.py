"""Integration tests for the ``seed_data`` management command."""

from io import StringIO

import pytest
from django.contrib.auth import get_user_model
from django.core.management import call_command

from modules.core.management.commands.seed_data import DEMO_ORGANIZATION
from modules.mailbox.models import InboundMessage
from modules.orders.models import HistoryEntry, Order

pytestmark = pytest.mark.integration


def _seed(**options) -> str:
    out = StringIO()
    call_command("seed_data", stdout=out, **options)
    return out.getvalue()


class TestSeedData:
    def test_creates_orders_messages_and_users(self):
        output = _seed(orders=3)

        orders = Order.objects.filter(organization_id=DEMO_ORGANIZATION)
        assert orders.count() == 3
        assert InboundMessage.objects.filter(organization_id=DEMO_ORGANIZATION).count() == 5
        assert get_user_model().objects.filter(username="admin").exists()
        assert "Seed completed: users=2, orders=3, messages=5" in output

    def test_every_order_has_a_stage_one_entry(self):
        _seed(orders=3)

        for order in Order.objects.filter(organization_id=DEMO_ORGANIZATION):
            assert HistoryEntry.objects.filter(order=order, stage=1).exists()
            assert order.line_items.exists()

    def test_second_run_is_idempotent(self):
        _seed(orders=3)
        output = _seed(orders=3)

        assert Order.objects.filter(organization_id=DEMO_ORGANIZATION).count() == 3
        assert "Skipping orders (already seeded)." in output
        assert "users=0, orders=0, messages=0" in output

    def test_custom_organisation(self, organization_id):
        _seed(orders=2, organization=organization_id)

        assert Order.objects.filter(organization_id=organization_id).count() == 2
        assert not Order.objects.filter(organization_id=DEMO_ORGANIZATION).exists()
