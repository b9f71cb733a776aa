# SPDX-License-Identifier: Apache-2.0

"""
Notification content derived from domain events.

Maps each domain event onto the notification it produces: who receives it,
what it says, and which kind it is.
"""

from dataclasses import dataclass
from typing import Optional

from models.enums import CollaborationStatus, NotificationType
from .events import (
    CollaborationRequested,
    CollaborationResponded,
    DomainEvent,
    VolunteerRegistered,
    VolunteerWithdrawn
)


@dataclass
class NotificationDraft:
    """Notification content ready to be stored."""
    recipient_id: str
    message: str
    type: NotificationType
    subject_id: Optional[str] = None


def draft_for(event: DomainEvent) -> Optional[NotificationDraft]:
    """
    Build the notification a domain event should produce.

    Args:
        event: Committed domain event

    Returns:
        NotificationDraft, or None when the event notifies nobody
    """
    if isinstance(event, VolunteerRegistered):
        return NotificationDraft(
            recipient_id=event.owner_id,
            message=(
                f"A volunteer registered for '{event.position_name}' in \"{event.event_title}\" "
                f"({event.remaining_slots} slot(s) left)."
            ),
            type=NotificationType.REGISTRATION,
            subject_id=event.event_id
        )

    if isinstance(event, VolunteerWithdrawn):
        return NotificationDraft(
            recipient_id=event.owner_id,
            message=f"A volunteer withdrew from '{event.position_name}' in \"{event.event_title}\".",
            type=NotificationType.WITHDRAWAL,
            subject_id=event.event_id
        )

    if isinstance(event, CollaborationRequested):
        return NotificationDraft(
            recipient_id=event.requested_to,
            message=f"You have a new collaboration request for issue \"{event.issue_title}\".",
            type=NotificationType.COLLABORATION_REQUEST,
            subject_id=event.request_id
        )

    if isinstance(event, CollaborationResponded):
        if event.status == CollaborationStatus.ACCEPTED.value:
            message = f"Your collaboration request for issue \"{event.issue_title}\" was accepted."
            if not event.applied:
                message += " The issue had already been assigned, so the assignment was not changed."
            notification_type = NotificationType.COLLABORATION_ACCEPTED
        else:
            message = f"Your collaboration request for issue \"{event.issue_title}\" was rejected."
            notification_type = NotificationType.COLLABORATION_REJECTED
        return NotificationDraft(
            recipient_id=event.requested_by,
            message=message,
            type=notification_type,
            subject_id=event.request_id
        )

    return None
