import uuid
from contextvars import ContextVar
from typing import Callable, Optional

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger()

ORGANIZATION_HEADER = "HTTP_X_ORGANIZATION_ID"


def _parse_organization(raw: Optional[str]) -> Optional[uuid.UUID]:
    if not raw:
        return None
    try:
        return uuid.UUID(raw)
    except ValueError:
        return None


class CorrelationIdMiddleware:
    """Binds a correlation ID and the organisation scope to each request.

    Reads X-Request-ID from the incoming request, generating a UUID4 when
    absent, and stores it in a ContextVar so structlog can inject it into
    every log line.  The ``X-Organization-ID`` header (issued by the
    external membership service) is parsed into ``request.organization_id``
    and bound to the log context as well.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.META.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        correlation_id_var.set(cid)

        organization_id = _parse_organization(request.META.get(ORGANIZATION_HEADER))
        request.organization_id = organization_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)
        if organization_id:
            structlog.contextvars.bind_contextvars(
                organization_id=str(organization_id)
            )

        logger.info(
            "request_started",
            method=request.method,
            path=request.get_full_path(),
        )

        response = self.get_response(request)

        logger.info(
            "request_finished",
            method=request.method,
            path=request.get_full_path(),
            status_code=response.status_code,
        )

        response["X-Request-ID"] = cid
        return response
