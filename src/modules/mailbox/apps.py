from django.apps import AppConfig


class MailboxConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "modules.mailbox"
    label = "mailbox"

    def ready(self) -> None:
        from modules.mailbox.events import (
            HistoryEntryReassigned,
            HistoryEntryRemoved,
            MessageLinked,
        )
        from modules.mailbox.handlers import correction_handler
        from shared.infrastructure.bus import event_bus

        event_bus.subscribe(MessageLinked, correction_handler)
        event_bus.subscribe(HistoryEntryReassigned, correction_handler)
        event_bus.subscribe(HistoryEntryRemoved, correction_handler)
