# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the notification dispatcher and notification feeds.
"""

import pytest
from unittest.mock import Mock

from domain.errors import NotFoundError
from domain.events import CollaborationResponded, DomainEvent, VolunteerRegistered
from domain.notifications import draft_for
from models.enums import CollaborationStatus, NotificationType


class TestNotificationDrafts:
    """Test mapping of domain events onto notifications."""

    def test_registration_goes_to_event_owner(self):
        draft = draft_for(VolunteerRegistered(
            event_id="evt-1",
            event_title="Blood Drive",
            owner_id="ngo-1",
            position_name="Nurse",
            volunteer_id="vol-1",
            remaining_slots=3
        ))

        assert draft.recipient_id == "ngo-1"
        assert draft.type == NotificationType.REGISTRATION
        assert draft.subject_id == "evt-1"
        assert "Blood Drive" in draft.message

    def test_accepted_response_goes_to_requester(self):
        draft = draft_for(CollaborationResponded(
            request_id="req-1",
            issue_title="Pothole",
            requested_by="ngo-1",
            requested_to="ngo-2",
            status=CollaborationStatus.ACCEPTED.value,
            applied=True
        ))

        assert draft.recipient_id == "ngo-1"
        assert draft.type == NotificationType.COLLABORATION_ACCEPTED
        assert "already been assigned" not in draft.message

    def test_plain_domain_event_notifies_nobody(self):
        assert draft_for(DomainEvent()) is None


class TestNotificationDispatcher:
    """Test storing, reading and clearing notifications."""

    def test_emit_creates_unread_notification(self, dispatcher):
        notification = dispatcher.emit("user-1", "Hello", NotificationType.REGISTRATION, "evt-1")

        assert notification['recipient_id'] == "user-1"
        assert notification['type'] == NotificationType.REGISTRATION.value
        assert notification['is_read'] is False
        assert dispatcher.get(notification['id']) == notification

    def test_feed_is_newest_first(self, dispatcher):
        for index in range(3):
            dispatcher.emit("user-1", f"Message {index}", NotificationType.REGISTRATION)

        messages = [n['message'] for n in dispatcher.list_for("user-1")]

        assert messages == ["Message 2", "Message 1", "Message 0"]

    def test_feed_only_contains_recipient_notifications(self, dispatcher):
        dispatcher.emit("user-1", "Mine", NotificationType.REGISTRATION)
        dispatcher.emit("user-2", "Theirs", NotificationType.REGISTRATION)

        assert [n['message'] for n in dispatcher.list_for("user-1")] == ["Mine"]

    def test_feed_limit(self, dispatcher):
        for index in range(5):
            dispatcher.emit("user-1", f"Message {index}", NotificationType.REGISTRATION)

        feed = dispatcher.list_for("user-1", limit=2)

        assert len(feed) == 2
        assert [n['message'] for n in feed] == ["Message 4", "Message 3"]

    def test_feed_can_be_iterated_again(self, dispatcher):
        dispatcher.emit("user-1", "First", NotificationType.REGISTRATION)
        feed = dispatcher.list_for("user-1")

        assert len(list(feed)) == 1
        dispatcher.emit("user-1", "Second", NotificationType.REGISTRATION)
        assert [n['message'] for n in feed] == ["Second", "First"]

    def test_mark_read_is_idempotent(self, dispatcher):
        notification = dispatcher.emit("user-1", "Hello", NotificationType.REGISTRATION)

        first = dispatcher.mark_read(notification['id'])
        second = dispatcher.mark_read(notification['id'])

        assert first['is_read'] is True
        assert second == first
        assert dispatcher.unread_count("user-1") == 0

    def test_mark_read_missing(self, dispatcher):
        with pytest.raises(NotFoundError):
            dispatcher.mark_read("missing")

    def test_get_missing(self, dispatcher):
        with pytest.raises(NotFoundError):
            dispatcher.get("missing")

    def test_unread_count(self, dispatcher):
        first = dispatcher.emit("user-1", "One", NotificationType.REGISTRATION)
        dispatcher.emit("user-1", "Two", NotificationType.WITHDRAWAL)
        dispatcher.mark_read(first['id'])

        assert dispatcher.unread_count("user-1") == 1

    def test_clear_all(self, dispatcher):
        dispatcher.emit("user-1", "One", NotificationType.REGISTRATION)
        dispatcher.emit("user-1", "Two", NotificationType.REGISTRATION)
        dispatcher.emit("user-2", "Other", NotificationType.REGISTRATION)

        assert dispatcher.clear_all("user-1") == 2
        assert list(dispatcher.list_for("user-1")) == []
        assert len(dispatcher.list_for("user-2")) == 1
        assert dispatcher.clear_all("user-1") == 0

    def test_failing_subscriber_does_not_undo_registration(self, registration, bus, dispatcher, event, ngo):
        failing = Mock(side_effect=RuntimeError("broker down"))
        bus.subscribe(failing)

        position = registration.register(event['id'], "Cleaner", "volunteer-1")

        failing.assert_called_once()
        assert position['registered'] == ["volunteer-1"]
        assert registration.get_event(event['id'])['positions'][0]['registered'] == ["volunteer-1"]
        assert dispatcher.unread_count(ngo['id']) == 1

    def test_failing_dispatcher_does_not_fail_request(self, workflow, store, bus, issue, ngo, other_ngo):
        store_insert = store.insert

        def insert(collection, document, unique_on=None):
            if collection == "notifications":
                raise RuntimeError("notification store down")
            return store_insert(collection, document, unique_on)

        store.insert = insert

        request = workflow.create_request(issue['id'], ngo['id'], other_ngo['id'], "Help")
        assert workflow.get_request(request['id'])['status'] == CollaborationStatus.PENDING.value
