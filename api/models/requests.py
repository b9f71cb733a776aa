# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from .base import ensure_utc
from .enums import (
    CollaborationDecision,
    CollaborationStatus,
    EventCategory,
    EventStatus,
    IssueTag,
    UserRole,
    VoteDirection
)


class RequestModel(BaseModel):
    """Base model for request bodies."""

    model_config = ConfigDict(
        use_enum_values=True,
        extra='forbid'
    )


class CreateUserRequest(RequestModel):
    """Request model for adding a user reference."""

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    email: str = Field(..., description="Contact email")
    role: UserRole = Field(default=UserRole.CITIZEN, description="Platform role")


class CreateIssueRequest(RequestModel):
    """Request model for reporting an issue."""

    title: str = Field(..., min_length=1, max_length=200, description="Issue title")
    body: str = Field(default="", max_length=5000, description="Issue description")
    location: str = Field(..., min_length=1, max_length=300, description="Issue location")
    tags: List[IssueTag] = Field(default_factory=list, description="Issue tags")


class PositionSpec(RequestModel):
    """A volunteer position to create."""

    name: str = Field(..., min_length=1, max_length=100, description="Position name")
    capacity: int = Field(..., ge=0, description="Number of volunteer slots")


class CreateEventRequest(RequestModel):
    """Request model for creating an event."""

    title: str = Field(..., min_length=1, max_length=200, description="Event title")
    category: EventCategory = Field(..., description="Event category")
    description: str = Field(default="", max_length=5000, description="Event description")
    location: str = Field(..., min_length=1, max_length=300, description="Event location")
    start_time: datetime = Field(..., description="Event start")
    end_time: datetime = Field(..., description="Event end")
    positions: List[PositionSpec] = Field(default_factory=list, description="Volunteer positions")

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_timezone(cls, v):
        """Treat naive timestamps as UTC."""
        return ensure_utc(v)


class UpdateEventRequest(RequestModel):
    """Request model for editing event details; omitted fields stay unchanged."""

    title: Optional[str] = Field(None, min_length=1, max_length=200, description="Event title")
    category: Optional[EventCategory] = Field(None, description="Event category")
    description: Optional[str] = Field(None, max_length=5000, description="Event description")
    location: Optional[str] = Field(None, min_length=1, max_length=300, description="Event location")
    start_time: Optional[datetime] = Field(None, description="Event start")
    end_time: Optional[datetime] = Field(None, description="Event end")

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_timezone(cls, v):
        """Treat naive timestamps as UTC."""
        return ensure_utc(v) if v is not None else v

    @field_validator('title', 'location')
    @classmethod
    def validate_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Value cannot be blank')
        return v.strip() if v is not None else v


class EventFeedbackRequest(RequestModel):
    """Request model for rating a completed event."""

    rating: int = Field(..., ge=1, le=5, description="Rating from 1 to 5")
    comment: str = Field(default="", max_length=1000, description="Optional comment")


class AddPositionsRequest(RequestModel):
    """Request model for appending positions to an event."""

    positions: List[PositionSpec] = Field(..., min_length=1, description="Positions to add")


class UpdateEventStatusRequest(RequestModel):
    """Request model for changing an event's status."""

    status: EventStatus = Field(..., description="New event status")


class CreateCollaborationRequest(RequestModel):
    """Request model for proposing a collaboration on an issue."""

    issue_id: str = Field(..., description="Issue to collaborate on")
    to_ngo: str = Field(..., description="NGO being asked")
    message: str = Field(..., min_length=1, max_length=2000, description="Proposal message")

    @field_validator('message')
    @classmethod
    def validate_message(cls, v):
        """Validate message is not blank."""
        if not v.strip():
            raise ValueError('Message cannot be empty')
        return v.strip()


class RespondCollaborationRequest(RequestModel):
    """Request model for answering a collaboration request."""

    decision: CollaborationDecision = Field(..., description="Accept or Reject")


class VoteRequest(RequestModel):
    """Request model for voting on an issue."""

    direction: VoteDirection = Field(..., description="Up or Down")


class CreateDonationRequest(RequestModel):
    """Request model for recording a donation."""

    ngo_id: str = Field(..., description="Receiving NGO")
    amount: float = Field(..., gt=0, description="Donated amount")
    currency: str = Field(default="INR", min_length=3, max_length=3, description="ISO currency code")
    message: Optional[str] = Field(None, max_length=500, description="Donor message")


# Path and query parameters

class UserPath(BaseModel):
    user_id: str = Field(..., description="User ID")


class NgoPath(BaseModel):
    ngo_id: str = Field(..., description="NGO user ID")


class IssuePath(BaseModel):
    issue_id: str = Field(..., description="Issue ID")


class EventPath(BaseModel):
    event_id: str = Field(..., description="Event ID")


class PositionPath(BaseModel):
    event_id: str = Field(..., description="Event ID")
    position_name: str = Field(..., description="Position name")


class CollaborationPath(BaseModel):
    request_id: str = Field(..., description="Collaboration request ID")


class NotificationPath(BaseModel):
    notification_id: str = Field(..., description="Notification ID")


class NotificationQuery(BaseModel):
    limit: Optional[int] = Field(None, ge=1, le=100, description="Maximum notifications to return")


class IncomingRequestsQuery(BaseModel):
    status: Optional[CollaborationStatus] = Field(None, description="Only requests in this status")


class DonationStatsQuery(BaseModel):
    recent: int = Field(default=5, ge=1, le=50, description="Number of recent donations to include")
