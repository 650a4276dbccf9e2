"""Liveness/readiness endpoint: database, cache and the outbox backlog."""

import time
from typing import Any, Callable, Dict

import structlog
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.core.models import EventStatus, OutboxEvent

logger = structlog.get_logger()

_CACHE_KEY = "_health_check"


def _check_database() -> Dict[str, Any]:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return {}


def _check_cache() -> Dict[str, Any]:
    cache.set(_CACHE_KEY, "ok", 10)
    if cache.get(_CACHE_KEY) != "ok":
        raise ConnectionError("Cache read failed")
    return {}


def _check_outbox() -> Dict[str, Any]:
    # informational: a growing backlog means the drain task is not running
    pending = OutboxEvent.objects.filter(status=EventStatus.PENDING).count()
    return {"pending_events": pending}


def _probe(name: str, check: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    start = time.monotonic()
    try:
        extra = check()
    except (DatabaseError, ConnectionError, OSError) as exc:
        logger.error("health_check_failure", service=name, error=str(exc))
        return {"status": "down"}
    return {
        "status": "up",
        "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        **extra,
    }


def health_check(request: HttpRequest) -> JsonResponse:
    services = {
        "database": _probe("database", _check_database),
        "cache": _probe("cache", _check_cache),
    }
    if services["database"]["status"] == "up":
        services["outbox"] = _probe("outbox", _check_outbox)

    healthy = all(service["status"] == "up" for service in services.values())
    logger.info("health_check_completed", status="healthy" if healthy else "unhealthy")

    return JsonResponse(
        {
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )
