# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the civic volunteering platform.
"""

from enum import Enum


class IssueStatus(str, Enum):
    """Issue assignment lifecycle."""
    OPEN = "Open"
    ASSIGNED = "Assigned"
    RESOLVED = "Resolved"


class IssueTag(str, Enum):
    """Issue classification tags."""
    ROAD = "Road"
    WATER = "Water"
    ELECTRICITY = "Electricity"
    EDUCATION = "Education"
    HEALTH = "Health"
    SANITATION = "Sanitation"


class EventStatus(str, Enum):
    """Event lifecycle status."""
    UPCOMING = "Upcoming"
    ONGOING = "Ongoing"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Statuses in which volunteers may still register
OPEN_EVENT_STATUSES = (EventStatus.UPCOMING.value, EventStatus.ONGOING.value)


class EventCategory(str, Enum):
    """Event categories."""
    BLOOD_DONATION = "Blood Donation"
    HEALTH_CAMP = "Health Camp"
    EDUCATION = "Education"
    ENVIRONMENT = "Environment"
    FOOD_DISTRIBUTION = "Food Distribution"
    FUNDRAISING = "Fundraising"
    AWARENESS = "Awareness"


class CollaborationStatus(str, Enum):
    """Collaboration request workflow status."""
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class CollaborationDecision(str, Enum):
    """Responses an NGO can give to a collaboration request."""
    ACCEPT = "Accept"
    REJECT = "Reject"


class NotificationType(str, Enum):
    """Kinds of in-app notifications."""
    REGISTRATION = "registration"
    WITHDRAWAL = "withdrawal"
    COLLABORATION_REQUEST = "collaboration-request"
    COLLABORATION_ACCEPTED = "collaboration-accepted"
    COLLABORATION_REJECTED = "collaboration-rejected"


class UserRole(str, Enum):
    """Platform user roles."""
    CITIZEN = "citizen"
    VOLUNTEER = "volunteer"
    NGO = "ngo"
    ADMIN = "admin"


class VoteDirection(str, Enum):
    """Community votes on a reported issue."""
    UP = "Up"
    DOWN = "Down"


# Downvotes at which an issue is flagged for review
FLAG_DOWNVOTE_THRESHOLD = 2
