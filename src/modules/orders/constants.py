"""Order domain constants.

Stage numbers and the markers the ledger relies on.  Display names for
stages are *not* defined here: they come from ``settings.ORDER_STAGE_NAMES``
through :mod:`modules.orders.stages`.
"""

from django.db import models


class Stage(models.IntegerChoices):
    PURCHASE_ORDER = 1, "Purchase Order"
    PROFORMA_INVOICE = 2, "Proforma Invoice"
    ARTWORK = 3, "Artwork"
    INSPECTION = 4, "Inspection"
    SCHEDULE = 5, "Schedule"
    DRAFT_DOCUMENTS = 6, "Draft Documents"
    FINAL_DOCUMENTS = 7, "Final Documents"
    SHIPPED = 8, "Shipped"


STAGE_MIN = Stage.PURCHASE_ORDER.value
STAGE_MAX = Stage.SHIPPED.value
TERMINAL_STAGE = Stage.SHIPPED.value


class OrderStatus(models.TextChoices):
    """Display status flag, kept in step with ``deleted_at``."""

    SENT = "sent", "Sent"
    DELETED = "deleted", "Deleted"


class ArtworkStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


AMENDMENT_MARKER = "AMENDED"

DEFAULT_CURRENCY = "USD"
DEFAULT_ORIGIN = "India"

PDF_URL_KEY = "pdf_url"
