# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Collaboration workflow: issues, collaboration requests and issue assignment.
"""

import logging
from typing import Any, Dict

from opentelemetry import trace

from domain.collaboration import (
    assignee_for,
    authorize_resolution,
    authorize_responder,
    build_issue,
    build_request,
    require_ngo,
    resolve_decision,
    should_flag,
    voter_lists
)
from domain.errors import (
    AlreadyResolvedError,
    AlreadyVotedError,
    ConflictError,
    DuplicatePendingError,
    IssueAlreadyAssignedError,
    NotFoundError
)
from domain.events import CollaborationRequested, CollaborationResponded
from models.base import utcnow
from models.enums import CollaborationStatus, IssueStatus
from models.requests import CreateIssueRequest
from .event_bus import EventBus
from .store import DuplicateRecordError, EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class CollaborationWorkflow:
    """
    Drives collaboration requests from Pending to Accepted or Rejected.

    Accepting a request assigns the issue in a second conditional write. If
    the issue was assigned in between, the acceptance stays recorded, the
    request is flagged ``applied=False`` and IssueAlreadyAssignedError is
    raised; the issue is never reassigned.
    """

    def __init__(self, store: EntityStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def get_issue(self, issue_id: str) -> Dict[str, Any]:
        issue = self.store.get(EntityStore.ISSUES, issue_id)
        if issue is None:
            raise NotFoundError(f"Issue {issue_id} not found")
        return issue

    def get_request(self, request_id: str) -> Dict[str, Any]:
        request = self.store.get(EntityStore.COLLABORATIONS, request_id)
        if request is None:
            raise NotFoundError(f"Collaboration request {request_id} not found")
        return request

    def create_issue(self, creator_id: str, request: CreateIssueRequest) -> Dict[str, Any]:
        """Report a new Open, unassigned issue."""
        with tracer.start_as_current_span("collaboration.create_issue") as span:
            span.set_attribute("issue.created_by", creator_id)
            if self.store.get(EntityStore.USERS, creator_id) is None:
                raise NotFoundError(f"User {creator_id} not found")

            document = build_issue(creator_id, request).to_document()
            self.store.insert(EntityStore.ISSUES, document)
            logger.info(f"Issue created: {document['id']}", extra={"extra_fields": {"created_by": creator_id}})
            return document

    def create_request(self, issue_id: str, from_ngo: str, to_ngo: str, message: str) -> Dict[str, Any]:
        """
        Open a Pending collaboration request.

        Raises:
            ValidationFailedError: Self-request or empty message
            NotFoundError: Issue or either NGO absent
            DuplicatePendingError: A Pending request for (issue, to_ngo) exists
        """
        with tracer.start_as_current_span("collaboration.create_request") as span:
            span.set_attributes({
                "issue.id": issue_id,
                "collaboration.requested_by": from_ngo,
                "collaboration.requested_to": to_ngo
            })

            document = build_request(issue_id, from_ngo, to_ngo, message).to_document()
            issue = self.get_issue(issue_id)
            require_ngo(self.store.get(EntityStore.USERS, from_ngo), from_ngo)
            require_ngo(self.store.get(EntityStore.USERS, to_ngo), to_ngo)

            try:
                self.store.insert(
                    EntityStore.COLLABORATIONS,
                    document,
                    unique_on={
                        'issue_id': issue_id,
                        'requested_to': to_ngo,
                        'status': CollaborationStatus.PENDING.value
                    }
                )
            except DuplicateRecordError:
                raise DuplicatePendingError(
                    f"A pending collaboration request for issue {issue_id} to NGO {to_ngo} already exists"
                )

            logger.info(f"Collaboration request created: {document['id']}")
            self.bus.publish(CollaborationRequested(
                request_id=document['id'],
                issue_id=issue_id,
                issue_title=issue['title'],
                requested_by=from_ngo,
                requested_to=to_ngo
            ))
            return document

    def respond(self, request_id: str, responder_id: str, decision: str) -> Dict[str, Any]:
        """
        Accept or reject a Pending request. Repeating a response fails.

        Raises:
            NotFoundError: Request absent
            ForbiddenError: Responder is not the requested NGO
            AlreadyResolvedError: Request no longer Pending
            IssueAlreadyAssignedError: Accepted, but the issue was taken meanwhile
        """
        status = resolve_decision(decision)

        with tracer.start_as_current_span("collaboration.respond") as span:
            span.set_attributes({"collaboration.id": request_id, "collaboration.decision": status})

            request = self.get_request(request_id)
            authorize_responder(request, responder_id)

            updated = self.store.update_if(
                EntityStore.COLLABORATIONS,
                request_id,
                {'status': CollaborationStatus.PENDING.value},
                {'status': status, 'responded_at': utcnow()}
            )
            if updated is None:
                raise AlreadyResolvedError(f"Collaboration request {request_id} has already been answered")

            issue = self.store.get(EntityStore.ISSUES, request['issue_id']) or {}
            if status == CollaborationStatus.REJECTED.value:
                logger.info(f"Collaboration request rejected: {request_id}")
                self._publish_response(updated, issue, applied=False)
                return updated

            assigned = self.store.update_if(
                EntityStore.ISSUES,
                request['issue_id'],
                {'status': IssueStatus.OPEN.value},
                {'status': IssueStatus.ASSIGNED.value, 'assigned_ngo': assignee_for(request)}
            )
            applied = assigned is not None
            span.set_attribute("collaboration.applied", applied)

            updated = self.store.update_if(
                EntityStore.COLLABORATIONS,
                request_id,
                {'status': CollaborationStatus.ACCEPTED.value},
                {'applied': applied}
            ) or updated
            self._publish_response(updated, assigned or issue, applied=applied)

            if not applied:
                logger.warning(
                    f"Collaboration request {request_id} accepted but issue {request['issue_id']} was already assigned",
                    extra={"extra_fields": {"assigned_ngo": issue.get('assigned_ngo')}}
                )
                raise IssueAlreadyAssignedError(
                    f"Issue {request['issue_id']} has already been assigned",
                    request=updated
                )

            logger.info(f"Collaboration request accepted: {request_id}; issue assigned to {assignee_for(request)}")
            return updated

    def _publish_response(self, request: Dict[str, Any], issue: Dict[str, Any], applied: bool) -> None:
        self.bus.publish(CollaborationResponded(
            request_id=request['id'],
            issue_id=request['issue_id'],
            issue_title=issue.get('title', ''),
            requested_by=request['requested_by'],
            requested_to=request['requested_to'],
            status=request['status'],
            applied=applied
        ))

    def resolve_issue(self, issue_id: str, ngo_id: str) -> Dict[str, Any]:
        """Mark an Assigned issue Resolved; only the assigned NGO may do so."""
        with tracer.start_as_current_span("collaboration.resolve_issue") as span:
            span.set_attributes({"issue.id": issue_id, "ngo.id": ngo_id})

            issue = self.get_issue(issue_id)
            authorize_resolution(issue, ngo_id)

            updated = self.store.update_if(
                EntityStore.ISSUES,
                issue_id,
                {'status': IssueStatus.ASSIGNED.value, 'assigned_ngo': ngo_id},
                {'status': IssueStatus.RESOLVED.value}
            )
            if updated is None:
                raise ConflictError(f"Issue {issue_id} was modified concurrently")

            logger.info(f"Issue resolved: {issue_id} by NGO {ngo_id}")
            return updated

    def vote(self, issue_id: str, user_id: str, direction: str) -> Dict[str, Any]:
        """
        Upvote or downvote an issue. Voting the other way moves the user's
        vote; repeating the same vote fails. Enough downvotes flag the issue.

        Raises:
            NotFoundError: Issue absent
            AlreadyVotedError: User already cast this vote
        """
        add_to, remove_from = voter_lists(direction)

        with tracer.start_as_current_span("collaboration.vote") as span:
            span.set_attributes({"issue.id": issue_id, "vote.direction": direction})

            updated = self.store.cast_vote(issue_id, user_id, add_to, remove_from)
            if updated is None:
                self.get_issue(issue_id)
                raise AlreadyVotedError(f"User {user_id} has already voted {direction} on issue {issue_id}")

            if should_flag(updated):
                updated = self.store.update_if(
                    EntityStore.ISSUES, issue_id, {'is_flagged': False}, {'is_flagged': True}
                ) or self.get_issue(issue_id)
                logger.warning(
                    f"Issue flagged after repeated downvotes: {issue_id}",
                    extra={"extra_fields": {"downvotes": len(updated.get('downvoters', []))}}
                )

            logger.info(f"Issue {issue_id} voted {direction} by {user_id}")
            return updated
