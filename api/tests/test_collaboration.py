# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the collaboration request workflow and issue assignment.
"""

import threading
import pytest

from domain.errors import (
    AlreadyResolvedError,
    AlreadyVotedError,
    DuplicatePendingError,
    ForbiddenError,
    IssueAlreadyAssignedError,
    NotFoundError,
    ValidationFailedError
)
from domain.events import CollaborationRequested, CollaborationResponded
from models.enums import CollaborationStatus, IssueStatus, NotificationType, UserRole
from services.store import EntityStore


@pytest.fixture
def third_ngo(make_user):
    return make_user(UserRole.NGO, "Road Safety Forum")


@pytest.fixture
def pending(workflow, issue, ngo, other_ngo):
    return workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Can you help fix this light?")


class TestIssues:
    """Test issue reporting and resolution."""

    def test_issue_starts_open_and_unassigned(self, issue, citizen):
        assert issue['status'] == IssueStatus.OPEN.value
        assert issue['assigned_ngo'] is None
        assert issue['created_by'] == citizen['id']
        assert issue['tags'] == ["Electricity", "Road"]

    def test_unknown_creator(self, workflow, issue_request):
        with pytest.raises(NotFoundError):
            workflow.create_issue("missing", issue_request)

    def test_resolve_by_assigned_ngo(self, workflow, pending, other_ngo):
        workflow.respond(pending['id'], other_ngo['id'], "Accept")

        resolved = workflow.resolve_issue(pending['issue_id'], other_ngo['id'])

        assert resolved['status'] == IssueStatus.RESOLVED.value
        assert resolved['assigned_ngo'] == other_ngo['id']

    def test_resolve_by_other_ngo_forbidden(self, workflow, pending, ngo, other_ngo):
        workflow.respond(pending['id'], other_ngo['id'], "Accept")

        with pytest.raises(ForbiddenError):
            workflow.resolve_issue(pending['issue_id'], ngo['id'])

    def test_resolve_open_issue_rejected(self, workflow, issue, ngo):
        with pytest.raises(ValidationFailedError, match="not assigned"):
            workflow.resolve_issue(issue['id'], ngo['id'])


class TestCreateRequest:
    """Test opening collaboration requests."""

    def test_request_starts_pending(self, pending, issue, ngo, other_ngo):
        assert pending['status'] == CollaborationStatus.PENDING.value
        assert pending['issue_id'] == issue['id']
        assert pending['requested_by'] == ngo['id']
        assert pending['requested_to'] == other_ngo['id']
        assert pending['responded_at'] is None
        assert pending['applied'] is None

    def test_target_ngo_is_notified(self, pending, dispatcher, other_ngo):
        notification = next(iter(dispatcher.list_for(other_ngo['id'])))
        assert notification['type'] == NotificationType.COLLABORATION_REQUEST.value
        assert notification['subject_id'] == pending['id']
        assert "Broken street light" in notification['message']

    def test_publishes_requested_event(self, workflow, bus, issue, ngo, other_ngo):
        received = []
        bus.subscribe(received.append, CollaborationRequested)

        request = workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Join us")

        assert len(received) == 1
        assert received[0].request_id == request['id']
        assert received[0].routing_key == "collaboration.request.created"

    def test_self_request_rejected(self, workflow, issue, ngo):
        with pytest.raises(ValidationFailedError, match="itself"):
            workflow.create_request(issue['id'], ngo['id'], ngo['id'], "Help me")

    def test_blank_message_rejected(self, workflow, issue, ngo, other_ngo):
        with pytest.raises(ValidationFailedError, match="message"):
            workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "   ")

    def test_missing_issue(self, workflow, ngo, other_ngo):
        with pytest.raises(NotFoundError, match="Issue"):
            workflow.create_request("missing", ngo['id'], other_ngo['id'], "Help")

    def test_target_must_be_ngo(self, workflow, issue, ngo, citizen):
        with pytest.raises(NotFoundError, match="NGO"):
            workflow.create_request(issue['id'], ngo['id'], citizen['id'], "Help")

    def test_duplicate_pending_rejected(self, workflow, pending, issue, third_ngo, other_ngo):
        with pytest.raises(DuplicatePendingError):
            workflow.create_request(issue['id'], third_ngo['id'], other_ngo['id'], "Me too")

    def test_different_target_allowed(self, workflow, pending, issue, ngo, third_ngo):
        request = workflow.create_request(issue['id'], ngo['id'], third_ngo['id'], "Also asking you")
        assert request['status'] == CollaborationStatus.PENDING.value

    def test_new_request_allowed_after_rejection(self, workflow, pending, issue, ngo, other_ngo):
        workflow.respond(pending['id'], other_ngo['id'], "Reject")

        again = workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Please reconsider")
        assert again['id'] != pending['id']


class TestRespond:
    """Test accepting and rejecting requests."""

    def test_accept_assigns_issue_to_accepting_ngo(self, workflow, pending, other_ngo):
        accepted = workflow.respond(pending['id'], other_ngo['id'], "Accept")

        assert accepted['status'] == CollaborationStatus.ACCEPTED.value
        assert accepted['applied'] is True
        assert accepted['responded_at'] is not None

        issue = workflow.get_issue(pending['issue_id'])
        assert issue['status'] == IssueStatus.ASSIGNED.value
        assert issue['assigned_ngo'] == other_ngo['id']

    def test_reject_leaves_issue_open(self, workflow, pending, other_ngo):
        rejected = workflow.respond(pending['id'], other_ngo['id'], "Reject")

        assert rejected['status'] == CollaborationStatus.REJECTED.value
        assert rejected['responded_at'] is not None
        assert workflow.get_issue(pending['issue_id'])['status'] == IssueStatus.OPEN.value

    def test_requester_notified_of_response(self, workflow, dispatcher, pending, ngo, other_ngo):
        workflow.respond(pending['id'], other_ngo['id'], "Reject")

        notification = next(iter(dispatcher.list_for(ngo['id'])))
        assert notification['type'] == NotificationType.COLLABORATION_REJECTED.value
        assert "rejected" in notification['message']

    def test_only_target_may_respond(self, workflow, pending, ngo):
        with pytest.raises(ForbiddenError):
            workflow.respond(pending['id'], ngo['id'], "Accept")

        assert workflow.get_request(pending['id'])['status'] == CollaborationStatus.PENDING.value

    def test_invalid_decision(self, workflow, pending, other_ngo):
        with pytest.raises(ValidationFailedError):
            workflow.respond(pending['id'], other_ngo['id'], "Maybe")

    def test_missing_request(self, workflow, other_ngo):
        with pytest.raises(NotFoundError):
            workflow.respond("missing", other_ngo['id'], "Accept")

    @pytest.mark.parametrize("first,second", [
        ("Accept", "Accept"),
        ("Accept", "Reject"),
        ("Reject", "Reject"),
        ("Reject", "Accept"),
    ])
    def test_second_response_rejected(self, workflow, pending, other_ngo, first, second):
        workflow.respond(pending['id'], other_ngo['id'], first)

        with pytest.raises(AlreadyResolvedError):
            workflow.respond(pending['id'], other_ngo['id'], second)

    def test_accept_after_issue_taken_keeps_assignment(self, workflow, issue, ngo, other_ngo, third_ngo):
        first = workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Help?")
        second = workflow.create_request(issue['id'], ngo['id'], third_ngo['id'], "Or you?")
        workflow.respond(first['id'], other_ngo['id'], "Accept")

        with pytest.raises(IssueAlreadyAssignedError) as excinfo:
            workflow.respond(second['id'], third_ngo['id'], "Accept")

        late = workflow.get_request(second['id'])
        assert late['status'] == CollaborationStatus.ACCEPTED.value
        assert late['applied'] is False
        assert excinfo.value.request['id'] == second['id']
        assert excinfo.value.request['applied'] is False
        assert workflow.get_issue(issue['id'])['assigned_ngo'] == other_ngo['id']

    def test_unapplied_acceptance_still_notifies(self, workflow, dispatcher, bus, issue, ngo, other_ngo, third_ngo):
        responses = []
        bus.subscribe(responses.append, CollaborationResponded)
        first = workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Help?")
        second = workflow.create_request(issue['id'], ngo['id'], third_ngo['id'], "Or you?")
        workflow.respond(first['id'], other_ngo['id'], "Accept")

        with pytest.raises(IssueAlreadyAssignedError):
            workflow.respond(second['id'], third_ngo['id'], "Accept")

        assert [event.applied for event in responses] == [True, False]
        notification = next(iter(dispatcher.list_for(ngo['id'])))
        assert "already been assigned" in notification['message']

    def test_accept_on_resolved_issue_is_not_applied(self, workflow, store, issue, ngo, other_ngo, third_ngo):
        late = workflow.create_request(issue['id'], ngo['id'], third_ngo['id'], "Late offer")
        store.update_if(
            EntityStore.ISSUES, issue['id'], {},
            {'status': IssueStatus.RESOLVED.value, 'assigned_ngo': other_ngo['id']}
        )

        with pytest.raises(IssueAlreadyAssignedError):
            workflow.respond(late['id'], third_ngo['id'], "Accept")

        assert workflow.get_issue(issue['id'])['status'] == IssueStatus.RESOLVED.value


def _race(*calls):
    """Run callables at the same instant and collect what each returned or raised."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def run(index, call):
        barrier.wait()
        try:
            outcomes[index] = call()
        except Exception as error:
            outcomes[index] = error

    threads = [threading.Thread(target=run, args=(index, call)) for index, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


class TestConcurrentWorkflow:
    """Test that racing writers get exactly one winner."""

    def test_concurrent_responses_resolve_once(self, workflow, pending, other_ngo):
        outcomes = _race(
            lambda: workflow.respond(pending['id'], other_ngo['id'], "Accept"),
            lambda: workflow.respond(pending['id'], other_ngo['id'], "Reject")
        )

        failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], AlreadyResolvedError)
        winner = next(outcome for outcome in outcomes if not isinstance(outcome, Exception))
        assert workflow.get_request(pending['id'])['status'] == winner['status']

    def test_concurrent_duplicate_requests_store_one(self, workflow, store, issue, ngo, other_ngo, third_ngo):
        outcomes = _race(
            lambda: workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Help?"),
            lambda: workflow.create_request(issue['id'], third_ngo['id'], other_ngo['id'], "Help too?")
        )

        failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicatePendingError)
        stored = list(store.find(EntityStore.COLLABORATIONS, {
            'issue_id': issue['id'],
            'requested_to': other_ngo['id'],
            'status': CollaborationStatus.PENDING.value
        }))
        assert len(stored) == 1


class TestVotes:
    """Test issue voting and downvote flagging."""

    def test_upvote(self, workflow, issue, ngo):
        updated = workflow.vote(issue['id'], ngo['id'], "Up")

        assert updated['upvoters'] == [ngo['id']]
        assert updated['downvoters'] == []
        assert updated['is_flagged'] is False

    def test_opposite_vote_moves_the_vote(self, workflow, issue, ngo):
        workflow.vote(issue['id'], ngo['id'], "Up")

        updated = workflow.vote(issue['id'], ngo['id'], "Down")

        assert updated['upvoters'] == []
        assert updated['downvoters'] == [ngo['id']]

    def test_repeated_vote_rejected(self, workflow, issue, ngo):
        workflow.vote(issue['id'], ngo['id'], "Up")

        with pytest.raises(AlreadyVotedError):
            workflow.vote(issue['id'], ngo['id'], "Up")
        assert workflow.get_issue(issue['id'])['upvoters'] == [ngo['id']]

    def test_downvotes_flag_issue(self, workflow, issue, ngo, other_ngo, third_ngo):
        assert workflow.vote(issue['id'], ngo['id'], "Down")['is_flagged'] is False

        flagged = workflow.vote(issue['id'], other_ngo['id'], "Down")
        assert flagged['is_flagged'] is True

        # The flag stays once raised
        workflow.vote(issue['id'], ngo['id'], "Up")
        assert workflow.get_issue(issue['id'])['is_flagged'] is True

    def test_invalid_direction(self, workflow, issue, ngo):
        with pytest.raises(ValidationFailedError):
            workflow.vote(issue['id'], ngo['id'], "Sideways")

    def test_missing_issue(self, workflow, ngo):
        with pytest.raises(NotFoundError):
            workflow.vote("missing", ngo['id'], "Up")
