# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Notification dispatcher: stores notifications produced by domain events and
serves each recipient's feed.
"""

import logging
from typing import Any, Dict, Iterator, Optional

from opentelemetry import trace

from domain.errors import NotFoundError
from domain.events import DomainEvent
from domain.notifications import draft_for
from models.entities import Notification
from models.enums import NotificationType
from .store import EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class NotificationFeed:
    """
    A recipient's notifications, newest first.

    Iterating queries the store afresh, so the feed can be iterated again
    and always reflects the current notifications.
    """

    def __init__(self, store: EntityStore, recipient_id: str, limit: Optional[int] = None):
        self.store = store
        self.recipient_id = recipient_id
        self.limit = limit

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return self.store.find(
            EntityStore.NOTIFICATIONS,
            {'recipient_id': self.recipient_id},
            sort_by='created_at',
            descending=True,
            limit=self.limit
        )

    def __len__(self) -> int:
        total = self.store.count(EntityStore.NOTIFICATIONS, {'recipient_id': self.recipient_id})
        return min(total, self.limit) if self.limit else total


class NotificationDispatcher:
    """Creates, reads and clears in-app notifications."""

    def __init__(self, store: EntityStore):
        self.store = store

    def handle(self, event: DomainEvent) -> None:
        """Event bus subscriber: turn a committed domain event into a notification."""
        draft = draft_for(event)
        if draft is None:
            logger.debug(f"No notification for {event.name}")
            return
        self.emit(draft.recipient_id, draft.message, draft.type, draft.subject_id)

    def emit(
        self,
        recipient_id: str,
        message: str,
        notification_type: NotificationType,
        subject_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Append a notification for a recipient."""
        with tracer.start_as_current_span("notifications.emit") as span:
            span.set_attribute("notification.recipient_id", recipient_id)

            document = Notification(
                recipient_id=recipient_id,
                message=message,
                type=notification_type,
                subject_id=subject_id
            ).to_document()
            self.store.insert(EntityStore.NOTIFICATIONS, document)
            span.set_attribute("notification.type", document['type'])

            logger.info(
                f"Notification created: {document['id']}",
                extra={"extra_fields": {"recipient_id": recipient_id, "type": document['type']}}
            )
            return document

    def mark_read(self, notification_id: str) -> Dict[str, Any]:
        """Mark a notification read. Marking it again changes nothing."""
        updated = self.store.update_if(EntityStore.NOTIFICATIONS, notification_id, {}, {'is_read': True})
        if updated is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return updated

    def get(self, notification_id: str) -> Dict[str, Any]:
        notification = self.store.get(EntityStore.NOTIFICATIONS, notification_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return notification

    def list_for(self, recipient_id: str, limit: Optional[int] = None) -> NotificationFeed:
        return NotificationFeed(self.store, recipient_id, limit)

    def clear_all(self, recipient_id: str) -> int:
        """Delete every notification of a recipient and return how many were removed."""
        deleted = self.store.delete_many(EntityStore.NOTIFICATIONS, {'recipient_id': recipient_id})
        logger.info(f"Cleared {deleted} notification(s) for {recipient_id}")
        return deleted

    def unread_count(self, recipient_id: str) -> int:
        return self.store.count(EntityStore.NOTIFICATIONS, {'recipient_id': recipient_id, 'is_read': False})
