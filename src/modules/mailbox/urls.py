"""Mailbox URL configuration."""

from __future__ import annotations

from rest_framework.routers import DefaultRouter

from modules.mailbox.views import HistoryCorrectionViewSet, MessageViewSet

router = DefaultRouter(trailing_slash=True)
router.register("messages", MessageViewSet, basename="message")
router.register("history", HistoryCorrectionViewSet, basename="history-entry")

urlpatterns = router.urls
