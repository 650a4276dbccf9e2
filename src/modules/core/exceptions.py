"""Error taxonomy shared by every module, plus the DRF error renderer.

Services raise subclasses of these bases; the API layer never inspects
messages, only types.  ``DomainExceptionHandler`` plugs them into
drf-standardized-errors, which renders every error (domain or DRF) as::

    {"type": "<kind>", "errors": [{"code": "...", "detail": "..."}]}
"""

from __future__ import annotations

from typing import Any, Dict, List

import structlog
from drf_standardized_errors.formatter import ExceptionFormatter
from drf_standardized_errors.handler import ExceptionHandler
from drf_standardized_errors.types import ErrorType
from pydantic import ValidationError as DTOValidationError
from rest_framework import exceptions, status
from rest_framework.exceptions import ErrorDetail
from rest_framework.settings import api_settings

logger = structlog.get_logger(__name__)


class NotFound(Exception):
    """Entity absent, soft-deleted, or outside the organisation scope."""

    code = "not_found"


class InvariantViolation(Exception):
    """Input breaks a domain invariant (e.g. stage outside 1..8)."""

    code = "invariant_violation"


class Conflict(Exception):
    """The stored state moved on since the caller last read it."""

    code = "conflict"


class SchemaCompatibilityError(Exception):
    """A storage column required by this code path is missing and no
    degraded path exists."""

    code = "schema_incompatible"


class PersistencePartialFailure(Exception):
    """A multi-step write could not be completed."""

    code = "partial_failure"


class AllocationRace(Exception):
    """Concurrent identifier allocation collided and retries ran out."""

    code = "allocation_race"


_STATUS_BY_TYPE = (
    (NotFound, status.HTTP_404_NOT_FOUND, "not_found"),
    (InvariantViolation, status.HTTP_400_BAD_REQUEST, "validation_error"),
    (Conflict, status.HTTP_409_CONFLICT, "conflict"),
    (AllocationRace, status.HTTP_409_CONFLICT, "conflict"),
    (SchemaCompatibilityError, status.HTTP_503_SERVICE_UNAVAILABLE, "unavailable"),
    (PersistencePartialFailure, status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error"),
)


class DomainAPIException(exceptions.APIException):
    """A domain error carried through DRF with its status and envelope type."""

    def __init__(self, detail: str, code: str, http_status: int, error_type: str):
        super().__init__(detail=detail, code=code)
        self.status_code = http_status
        self.error_type = error_type


class DomainExceptionHandler(ExceptionHandler):
    """Teaches drf-standardized-errors about domain and DTO errors."""

    def convert_known_exceptions(self, exc: Exception) -> Exception:
        for exc_type, http_status, error_type in _STATUS_BY_TYPE:
            if isinstance(exc, exc_type):
                logger.warning(
                    "api.domain_error",
                    error_type=type(exc).__name__,
                    detail=str(exc),
                )
                return DomainAPIException(
                    str(exc), exc_type.code, http_status, error_type
                )

        if isinstance(exc, DTOValidationError):
            detail: Dict[str, List[ErrorDetail]] = {}
            for error in exc.errors():
                attr = ".".join(str(loc) for loc in error["loc"])
                detail.setdefault(attr or api_settings.NON_FIELD_ERRORS_KEY, []).append(
                    ErrorDetail(error["msg"], code=error["type"])
                )
            return exceptions.ValidationError(detail)

        return super().convert_known_exceptions(exc)


class DomainExceptionFormatter(ExceptionFormatter):
    """Keeps domain envelope types and reports every 400 as a validation error."""

    def get_error_type(self) -> Any:
        error_type = getattr(self.exc, "error_type", None)
        if error_type:
            return error_type
        if self.exc.status_code == status.HTTP_400_BAD_REQUEST:
            return ErrorType.VALIDATION_ERROR
        return super().get_error_type()
