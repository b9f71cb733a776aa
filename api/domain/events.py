# SPDX-License-Identifier: Apache-2.0

"""
Domain events published by the registration and collaboration engines.

Events are immutable facts about committed state transitions. Subscribers
(notification dispatcher, message relay) react to them without the engines
knowing who listens.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict
import uuid


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for domain events."""

    message_id: str = field(default_factory=lambda: str(uuid.uuid4()), init=False)
    occurred_at: datetime = field(default_factory=_now, init=False)

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def routing_key(self) -> str:
        """Dotted routing key used when relaying to a topic exchange."""
        return ROUTING_KEYS[type(self)]

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload['occurred_at'] = self.occurred_at.isoformat()
        payload['name'] = self.name
        return payload


@dataclass(frozen=True)
class VolunteerRegistered(DomainEvent):
    event_id: str = ""
    event_title: str = ""
    owner_id: str = ""
    position_name: str = ""
    volunteer_id: str = ""
    remaining_slots: int = 0


@dataclass(frozen=True)
class VolunteerWithdrawn(DomainEvent):
    event_id: str = ""
    event_title: str = ""
    owner_id: str = ""
    position_name: str = ""
    volunteer_id: str = ""


@dataclass(frozen=True)
class CollaborationRequested(DomainEvent):
    request_id: str = ""
    issue_id: str = ""
    issue_title: str = ""
    requested_by: str = ""
    requested_to: str = ""


@dataclass(frozen=True)
class CollaborationResponded(DomainEvent):
    request_id: str = ""
    issue_id: str = ""
    issue_title: str = ""
    requested_by: str = ""
    requested_to: str = ""
    status: str = ""
    applied: bool = False


ROUTING_KEYS = {
    VolunteerRegistered: "registration.volunteer.registered",
    VolunteerWithdrawn: "registration.volunteer.withdrawn",
    CollaborationRequested: "collaboration.request.created",
    CollaborationResponded: "collaboration.request.responded",
}
