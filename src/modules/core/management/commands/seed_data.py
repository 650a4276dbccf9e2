from __future__ import annotations

import random
import uuid
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from modules.mailbox.models import InboundMessage
from modules.orders.dtos import CreateOrderDTO, LineItemDTO
from modules.orders.models import Order
from modules.orders.views import build_order_service

DEMO_ORGANIZATION = uuid.UUID("0190f0c0-0000-7000-8000-000000000001")

BUYERS = [
    ("Pescados E Guillem", "Valencia, Spain"),
    ("Seapeix", "Barcelona, Spain"),
    ("Noriberica", "Porto, Portugal"),
    ("Fiorital", "Venice, Italy"),
    ("Compesca", "Vigo, Spain"),
]

SUPPLIERS = ["Silver Sea Foods", "JB Boda Exports", "Raunaq Ice & Cold Storage"]

CATALOG = [
    ("Frozen Squid Rings", "40/60", "20%", "6x1 kg", Decimal("4.50")),
    ("Frozen Vannamei Shrimp", "21/25", "10%", "10x1 kg", Decimal("7.80")),
    ("Frozen Cuttlefish Whole", "200/300", "15%", "10 kg bulk", Decimal("3.90")),
    ("Frozen Baby Octopus", "20/40", "25%", "6x1 kg", Decimal("5.25")),
]


class Command(BaseCommand):
    help = "Seed database with demo orders and inbound messages."

    def add_arguments(self, parser):
        parser.add_argument(
            "--organization",
            type=uuid.UUID,
            default=DEMO_ORGANIZATION,
            help="Organisation UUID to seed (default: demo organisation).",
        )
        parser.add_argument("--orders", type=int, default=12)

    def handle(self, *args, **options):
        random.seed(42)
        organization_id = options["organization"]
        self.stdout.write(f"Seeding development data for {organization_id}...")

        users_created = self._seed_users()
        orders_created = self._seed_orders(organization_id, options["orders"])
        messages_created = self._seed_messages(organization_id)

        self.stdout.write(
            self.style.SUCCESS(
                "Seed completed: "
                f"users={users_created}, "
                f"orders={orders_created}, "
                f"messages={messages_created}"
            )
        )

    def _seed_users(self) -> int:
        User = get_user_model()
        created = 0
        if not User.objects.filter(username="admin").exists():
            User.objects.create_superuser("admin", password="admin123")
            created += 1
        if not User.objects.filter(username="operator").exists():
            User.objects.create_user("operator", password="operator123")
            created += 1
        return created

    def _seed_orders(self, organization_id: uuid.UUID, count: int) -> int:
        self.stdout.write("Creating orders...")
        if Order.objects.filter(organization_id=organization_id).exists():
            self.stdout.write(self.style.WARNING("Skipping orders (already seeded)."))
            return 0

        service = build_order_service()
        for _ in range(count):
            buyer, destination = random.choice(BUYERS)
            items = [
                LineItemDTO(
                    product=product,
                    size=size,
                    glaze=glaze,
                    packing=packing,
                    kilos=Decimal(random.randint(5, 20) * 1000),
                    price_per_kg=price,
                )
                for product, size, glaze, packing, price in random.sample(
                    CATALOG, k=random.randint(1, 3)
                )
            ]
            order = service.create_order(
                organization_id,
                CreateOrderDTO(
                    buyer=buyer,
                    supplier=random.choice(SUPPLIERS),
                    destination=destination,
                    line_items=items,
                ),
            )
            for stage in range(2, random.randint(1, 8) + 1):
                service.advance_stage(organization_id, order.id, stage)

        self.stdout.write(self.style.SUCCESS("Creating orders... Done!"))
        return count

    def _seed_messages(self, organization_id: uuid.UUID) -> int:
        self.stdout.write("Creating inbound messages...")
        created = 0
        now = timezone.now()
        for i, (buyer, _) in enumerate(BUYERS):
            _, was_created = InboundMessage.objects.get_or_create(
                organization_id=organization_id,
                external_id=f"seed-{i + 1}",
                defaults={
                    "sender_email": f"purchasing@{buyer.split()[0].lower()}.example",
                    "sender_name": buyer,
                    "recipient": "orders@gi.example",
                    "subject": f"RE: shipment schedule {buyer}",
                    "body": "Please confirm the vessel schedule.",
                    "received_at": now - timedelta(hours=i * 5),
                    "detected_stage": 5 if i % 2 else None,
                },
            )
            created += int(was_created)
        self.stdout.write(self.style.SUCCESS("Creating inbound messages... Done!"))
        return created
