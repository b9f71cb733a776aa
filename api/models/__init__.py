# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas for the civic volunteering platform.
"""

# Base models
from .base import BaseEntity, ensure_utc, generate_object_id, utcnow

# Enumerations
from .enums import (
    IssueStatus,
    IssueTag,
    EventStatus,
    EventCategory,
    CollaborationStatus,
    CollaborationDecision,
    NotificationType,
    UserRole,
    VoteDirection,
    OPEN_EVENT_STATUSES,
    FLAG_DOWNVOTE_THRESHOLD
)

# Core entities
from .entities import (
    User,
    Issue,
    VolunteerPosition,
    EventFeedback,
    Event,
    CollaborationRequest,
    Notification,
    Donation
)

# Request models
from .requests import (
    CreateUserRequest,
    CreateIssueRequest,
    PositionSpec,
    CreateEventRequest,
    UpdateEventRequest,
    EventFeedbackRequest,
    AddPositionsRequest,
    UpdateEventStatusRequest,
    CreateCollaborationRequest,
    RespondCollaborationRequest,
    VoteRequest,
    CreateDonationRequest
)

# Response models
from .responses import HalLink, DonationStats

__all__ = [
    # Base models
    "BaseEntity",
    "generate_object_id",
    "utcnow",
    "ensure_utc",

    # Enumerations
    "IssueStatus",
    "IssueTag",
    "EventStatus",
    "EventCategory",
    "CollaborationStatus",
    "CollaborationDecision",
    "NotificationType",
    "UserRole",
    "VoteDirection",
    "OPEN_EVENT_STATUSES",
    "FLAG_DOWNVOTE_THRESHOLD",

    # Core entities
    "User",
    "Issue",
    "VolunteerPosition",
    "EventFeedback",
    "Event",
    "CollaborationRequest",
    "Notification",
    "Donation",

    # Request models
    "CreateUserRequest",
    "CreateIssueRequest",
    "PositionSpec",
    "CreateEventRequest",
    "UpdateEventRequest",
    "EventFeedbackRequest",
    "AddPositionsRequest",
    "UpdateEventStatusRequest",
    "CreateCollaborationRequest",
    "RespondCollaborationRequest",
    "VoteRequest",
    "CreateDonationRequest",

    # Response models
    "HalLink",
    "DonationStats"
]
