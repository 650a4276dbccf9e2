"""View helpers shared by the API modules."""

from __future__ import annotations

from uuid import UUID

from rest_framework.exceptions import ValidationError


class OrganizationScopedViewMixin:
    """Exposes the organisation parsed by ``CorrelationIdMiddleware``.

    Every domain endpoint needs a scope; requests without a valid
    ``X-Organization-ID`` header are rejected with 400.
    """

    @property
    def organization_id(self) -> UUID:
        organization_id = getattr(self.request, "organization_id", None)  # type: ignore[attr-defined]
        if organization_id is None:
            raise ValidationError(
                {"X-Organization-ID": ["A valid organisation UUID header is required."]},
                code="missing_organization",
            )
        return organization_id
