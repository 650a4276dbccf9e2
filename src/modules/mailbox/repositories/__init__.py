"""Mailbox repositories package."""

from modules.mailbox.repositories.django_repository import MessageDjangoRepository
from modules.mailbox.repositories.interfaces import IMessageRepository

__all__ = ["IMessageRepository", "MessageDjangoRepository"]
