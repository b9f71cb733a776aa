# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the civic volunteering platform.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from .base import BaseEntity, ensure_utc, utcnow
from .enums import (
    IssueStatus,
    IssueTag,
    EventStatus,
    EventCategory,
    CollaborationStatus,
    NotificationType,
    UserRole,
    OPEN_EVENT_STATUSES
)


class User(BaseEntity):
    """Platform user reference (citizen, volunteer, NGO or admin)."""

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    email: str = Field(..., description="Contact email address")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Platform role")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        import re
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate user name."""
        if not v.strip():
            raise ValueError('User name cannot be empty')
        return v.strip()


class Issue(BaseEntity):
    """Civic issue reported by a citizen and handled by NGOs."""

    title: str = Field(..., min_length=1, max_length=200, description="Issue title")
    body: str = Field(default="", max_length=5000, description="Issue description")
    location: str = Field(..., min_length=1, max_length=300, description="Where the issue is")
    tags: List[IssueTag] = Field(default_factory=list, description="Issue tags")
    status: IssueStatus = Field(default=IssueStatus.OPEN, description="Assignment status")
    created_by: str = Field(..., description="User ID of the reporter")
    assigned_ngo: Optional[str] = Field(None, description="NGO handling the issue")
    upvoters: List[str] = Field(default_factory=list, description="Users who upvoted")
    downvoters: List[str] = Field(default_factory=list, description="Users who downvoted")
    is_flagged: bool = Field(default=False, description="Flagged for review after repeated downvotes")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        """Validate issue title."""
        if not v.strip():
            raise ValueError('Issue title cannot be empty')
        return v.strip()

    @field_validator('tags')
    @classmethod
    def deduplicate_tags(cls, v):
        """Tags form a set; keep first occurrence order."""
        return list(dict.fromkeys(v))

    @model_validator(mode='after')
    def validate_assignment(self):
        """An issue has an assigned NGO exactly when it is Assigned or Resolved."""
        assigned_statuses = (IssueStatus.ASSIGNED, IssueStatus.RESOLVED)
        if (self.assigned_ngo is not None) != (self.status in assigned_statuses):
            raise ValueError('assigned_ngo must be set exactly when status is Assigned or Resolved')
        if set(self.upvoters) & set(self.downvoters):
            raise ValueError('A user cannot both upvote and downvote an issue')
        return self


class VolunteerPosition(BaseModel):
    """Named, capacity-bounded slot within an event."""

    name: str = Field(..., min_length=1, max_length=100, description="Position name")
    capacity: int = Field(..., ge=0, description="Maximum number of volunteers")
    registered: List[str] = Field(default_factory=list, description="Registered volunteer IDs")
    available: Optional[int] = Field(None, ge=0, description="Remaining free slots")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate position name."""
        if not v.strip():
            raise ValueError('Position name cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_counts(self):
        """Registered volunteers are unique and never exceed capacity."""
        if len(set(self.registered)) != len(self.registered):
            raise ValueError('A volunteer can only be registered once per position')
        if len(self.registered) > self.capacity:
            raise ValueError('Registered volunteers exceed position capacity')
        expected = self.capacity - len(self.registered)
        if self.available is None:
            self.available = expected
        elif self.available != expected:
            raise ValueError('available must equal capacity minus registered volunteers')
        return self

    def has_volunteer(self, volunteer_id: str) -> bool:
        return volunteer_id in self.registered


class EventFeedback(BaseModel):
    """A participant's rating of a completed event."""

    user_id: str = Field(..., description="Participant giving the feedback")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: str = Field(default="", max_length=1000, description="Free-text comment")
    submitted_at: datetime = Field(default_factory=utcnow, description="Submission timestamp")


class Event(BaseEntity):
    """Volunteering event owned by an NGO."""

    owner_id: str = Field(..., description="NGO that owns the event")
    title: str = Field(..., min_length=1, max_length=200, description="Event title")
    category: EventCategory = Field(..., description="Event category")
    description: str = Field(default="", max_length=5000, description="Event description")
    location: str = Field(..., min_length=1, max_length=300, description="Event location")
    start_time: datetime = Field(..., description="Event start")
    end_time: datetime = Field(..., description="Event end")
    status: EventStatus = Field(default=EventStatus.UPCOMING, description="Event status")
    positions: List[VolunteerPosition] = Field(default_factory=list, description="Volunteer positions")
    feedback: List[EventFeedback] = Field(default_factory=list, description="Participant feedback")

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_timezone(cls, v):
        return ensure_utc(v)

    @model_validator(mode='after')
    def validate_event(self):
        """Validate time window and position name uniqueness."""
        if self.end_time < self.start_time:
            raise ValueError('Event end time must be after start time')
        names = [position.name for position in self.positions]
        if len(set(names)) != len(names):
            raise ValueError('Position names must be unique within an event')
        return self

    def get_position(self, name: str) -> Optional[VolunteerPosition]:
        for position in self.positions:
            if position.name == name:
                return position
        return None

    def is_open_for_registration(self) -> bool:
        return self.status in OPEN_EVENT_STATUSES

    def has_volunteers(self) -> bool:
        return any(position.registered for position in self.positions)

    def is_participant(self, user_id: str) -> bool:
        return any(position.has_volunteer(user_id) for position in self.positions)

    def has_feedback_from(self, user_id: str) -> bool:
        return any(entry.user_id == user_id for entry in self.feedback)


class CollaborationRequest(BaseEntity):
    """Request from one NGO to another to jointly handle an issue."""

    issue_id: str = Field(..., description="Issue under negotiation")
    requested_by: str = Field(..., description="NGO proposing the collaboration")
    requested_to: str = Field(..., description="NGO asked to collaborate")
    message: str = Field(..., min_length=1, max_length=2000, description="Proposal message")
    status: CollaborationStatus = Field(default=CollaborationStatus.PENDING, description="Workflow status")
    responded_at: Optional[datetime] = Field(None, description="Response timestamp")
    applied: Optional[bool] = Field(None, description="Whether acceptance assigned the issue")

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        """Validate request message."""
        if not v.strip():
            raise ValueError('Collaboration message cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_parties(self):
        """An NGO cannot request collaboration with itself."""
        if self.requested_by == self.requested_to:
            raise ValueError('An NGO cannot send a collaboration request to itself')
        return self


class Notification(BaseEntity):
    """In-app notification delivered to a single recipient."""

    recipient_id: str = Field(..., description="User receiving the notification")
    message: str = Field(..., min_length=1, max_length=1000, description="Notification text")
    type: NotificationType = Field(..., description="Notification kind")
    subject_id: Optional[str] = Field(None, description="Event or request the notification refers to")
    is_read: bool = Field(default=False, description="Whether the recipient has read it")


class Donation(BaseEntity):
    """Donation recorded for an NGO."""

    ngo_id: str = Field(..., description="Receiving NGO")
    donor_id: str = Field(..., description="Donating user")
    amount: float = Field(..., gt=0, description="Donated amount")
    currency: str = Field(default="INR", min_length=3, max_length=3, description="ISO currency code")
    message: str = Field(default="Supporting a good cause", max_length=500, description="Donor message")
