# SPDX-License-Identifier: Apache-2.0

"""
Collaboration request state machine and issue assignment rules.

A request starts Pending and moves once to Accepted or Rejected; both are
terminal. Accepting assigns the issue to the accepting NGO only while the
issue is still Open.
"""

from typing import Any, Dict, Optional, Tuple

from models.entities import CollaborationRequest, Issue
from models.enums import (
    CollaborationDecision,
    CollaborationStatus,
    FLAG_DOWNVOTE_THRESHOLD,
    IssueStatus,
    UserRole,
    VoteDirection
)
from models.requests import CreateIssueRequest
from .errors import ForbiddenError, NotFoundError, ValidationFailedError
from .validation import ValidationResult


DECISION_STATUS = {
    CollaborationDecision.ACCEPT.value: CollaborationStatus.ACCEPTED.value,
    CollaborationDecision.REJECT.value: CollaborationStatus.REJECTED.value,
}


def build_issue(creator_id: str, request: CreateIssueRequest) -> Issue:
    """Build a new Open, unassigned issue."""
    return Issue(
        title=request.title,
        body=request.body,
        location=request.location.strip(),
        tags=request.tags,
        created_by=creator_id
    )


def require_ngo(user: Optional[Dict[str, Any]], user_id: str) -> Dict[str, Any]:
    """Return the user document if it is an NGO, otherwise raise NotFoundError."""
    if user is None or user.get('role') != UserRole.NGO.value:
        raise NotFoundError(f"NGO {user_id} not found")
    return user


def validate_request_creation(from_ngo: str, to_ngo: str, message: str) -> ValidationResult:
    """
    Validate a new collaboration request before storage.

    Args:
        from_ngo: Requesting NGO
        to_ngo: Target NGO
        message: Proposal text

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []
    if from_ngo == to_ngo:
        errors.append("An NGO cannot send a collaboration request to itself")
    if not message or not message.strip():
        errors.append("Collaboration message is required")
    elif len(message.strip()) > 2000:
        errors.append("Collaboration message cannot exceed 2000 characters")
    return ValidationResult.from_errors(errors)


def build_request(issue_id: str, from_ngo: str, to_ngo: str, message: str) -> CollaborationRequest:
    """Build a Pending collaboration request."""
    validate_request_creation(from_ngo, to_ngo, message).raise_for_errors()
    return CollaborationRequest(
        issue_id=issue_id,
        requested_by=from_ngo,
        requested_to=to_ngo,
        message=message
    )


def resolve_decision(decision: str) -> str:
    """Map an Accept/Reject decision onto the request status it produces."""
    try:
        return DECISION_STATUS[CollaborationDecision(decision).value]
    except ValueError:
        raise ValidationFailedError(f"Invalid decision: {decision}")


def authorize_responder(request: Dict[str, Any], responder_id: str) -> None:
    """Only the NGO a request was sent to may answer it."""
    if request.get('requested_to') != responder_id:
        raise ForbiddenError("Only the requested NGO can respond to this collaboration request")


def assignee_for(request: Dict[str, Any]) -> str:
    """The NGO that takes the issue when a request is accepted: the one accepting."""
    return request['requested_to']


def authorize_resolution(issue: Dict[str, Any], ngo_id: str) -> None:
    """Only the assigned NGO may resolve an Assigned issue."""
    if issue.get('status') != IssueStatus.ASSIGNED.value:
        raise ValidationFailedError(f"Issue {issue.get('id')} is not assigned (status: {issue.get('status')})")
    if issue.get('assigned_ngo') != ngo_id:
        raise ForbiddenError("Only the assigned NGO can resolve this issue")


def voter_lists(direction: str) -> Tuple[str, str]:
    """Return the (add_to, remove_from) voter fields for a vote direction."""
    try:
        direction = VoteDirection(direction)
    except ValueError:
        raise ValidationFailedError(f"Invalid vote direction: {direction}")
    if direction == VoteDirection.UP:
        return 'upvoters', 'downvoters'
    return 'downvoters', 'upvoters'


def should_flag(issue: Dict[str, Any]) -> bool:
    """An issue is flagged once enough users have downvoted it."""
    return not issue.get('is_flagged') and len(issue.get('downvoters', [])) >= FLAG_DOWNVOTE_THRESHOLD
