from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.orders"
    label = "orders"

    def ready(self) -> None:
        from modules.orders.events import (
            OrderAmended,
            OrderCreated,
            OrderRestored,
            OrderSoftDeleted,
            OrderStageChanged,
        )
        from modules.orders.handlers import (
            order_amended_handler,
            order_created_handler,
            order_lifecycle_handler,
            order_stage_changed_handler,
        )
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(OrderCreated, order_created_handler)
        event_bus.subscribe(OrderStageChanged, order_stage_changed_handler)
        event_bus.subscribe(OrderAmended, order_amended_handler)
        event_bus.subscribe(OrderSoftDeleted, order_lifecycle_handler)
        event_bus.subscribe(OrderRestored, order_lifecycle_handler)
