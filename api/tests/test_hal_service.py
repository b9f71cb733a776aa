# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL response formatting utilities.
"""

from datetime import datetime, timezone

from services.hal import (
    HalLinkBuilder, AffordanceLinkBuilder,
    HalResponseBuilder, HalFormatter, create_hal_formatter, to_json_compatible
)
from models.responses import HalLink


def _event(status="Upcoming", registered=None, capacity=2):
    registered = registered or []
    return {
        'id': "evt-1",
        'owner_id': "ngo-1",
        'title': "Food Drive",
        'status': status,
        'positions': [{
            'name': "Packer",
            'capacity': capacity,
            'registered': registered,
            'available': capacity - len(registered)
        }]
    }


class TestHalLinkBuilder:
    """Test HAL link builder functionality."""

    def test_build_basic_link(self):
        """Test building a basic HAL link."""
        builder = HalLinkBuilder("https://api.example.com")

        link = builder.build_link("/api/events/123")

        assert isinstance(link, HalLink)
        assert link.href == "https://api.example.com/api/events/123"
        assert link.method == "GET"
        assert link.type is None

    def test_build_action_link(self):
        """Test building an action link."""
        builder = HalLinkBuilder("https://api.example.com/")

        link = builder.build_action_link("/api/events/123/status", method="PATCH", title="Update status")

        assert link.href == "https://api.example.com/api/events/123/status"
        assert link.method == "PATCH"
        assert link.type == "application/json"
        assert link.title == "Update status"


class TestAffordanceLinkBuilder:
    """Test state-dependent affordance links."""

    def setup_method(self):
        self.builder = AffordanceLinkBuilder("https://api.example.com")

    def test_anonymous_sees_register_links(self):
        links = self.builder.build_event_affordances(_event())

        assert 'register:Packer' in links
        assert 'delete' not in links

    def test_registered_volunteer_sees_withdraw_link(self):
        links = self.builder.build_event_affordances(_event(registered=["vol-1"]), "vol-1")

        assert links['withdraw:Packer'].method == "DELETE"
        assert 'register:Packer' not in links

    def test_full_position_has_no_register_link(self):
        links = self.builder.build_event_affordances(_event(registered=["vol-1", "vol-2"]), "vol-3")
        assert 'register:Packer' not in links

    def test_closed_event_has_no_register_link(self):
        links = self.builder.build_event_affordances(_event(status="Cancelled"), "vol-3")
        assert 'register:Packer' not in links

    def test_owner_sees_management_links(self):
        links = self.builder.build_event_affordances(_event(), "ngo-1")

        assert links['add_positions'].href.endswith("/api/events/evt-1/positions")
        assert links['update_status'].method == "PATCH"
        assert links['delete'].method == "DELETE"

    def test_position_name_is_url_encoded(self):
        event = _event()
        event['positions'][0]['name'] = "First Aid"

        links = self.builder.build_event_affordances(event)

        assert links['register:First Aid'].href.endswith("/positions/First%20Aid/registrations")

    def test_respond_link_only_for_target_of_pending_request(self):
        request = {'id': "req-1", 'issue_id': "iss-1", 'status': "Pending", 'requested_to': "ngo-2"}

        assert 'respond' in self.builder.build_collaboration_affordances(request, "ngo-2")
        assert 'respond' not in self.builder.build_collaboration_affordances(request, "ngo-1")
        request['status'] = "Accepted"
        assert 'respond' not in self.builder.build_collaboration_affordances(request, "ngo-2")

    def test_issue_affordances(self):
        issue = {'id': "iss-1", 'created_by': "cit-1", 'status': "Open", 'assigned_ngo': None}
        assert 'request_collaboration' in self.builder.build_issue_affordances(issue)

        issue.update(status="Assigned", assigned_ngo="ngo-2")
        assert 'resolve' in self.builder.build_issue_affordances(issue, "ngo-2")
        assert 'resolve' not in self.builder.build_issue_affordances(issue, "ngo-1")

    def test_notification_mark_read_link(self):
        links = self.builder.build_notification_affordances({'id': "n-1", 'is_read': False})
        assert 'mark_read' in links
        assert 'mark_read' not in self.builder.build_notification_affordances({'id': "n-1", 'is_read': True})


class TestHalResponseBuilder:
    """Test HAL resource, collection and error documents."""

    def setup_method(self):
        self.builder = HalResponseBuilder("https://api.example.com")

    def test_resource_response_serializes_datetimes(self):
        created = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
        event = dict(_event(), created_at=created)

        response = self.builder.build_resource_response(event, "event")

        assert response['created_at'] == "2024-05-01T09:30:00+00:00"
        assert response['_links']['self']['href'] == "https://api.example.com/api/events/evt-1"
        assert event['created_at'] is created

    def test_collection_response(self):
        response = self.builder.build_collection_response([_event()], "event", "/api/ngos/ngo-1/events")

        assert response['total'] == 1
        assert response['_links']['self']['href'] == "https://api.example.com/api/ngos/ngo-1/events"
        assert response['_embedded']['items'][0]['id'] == "evt-1"

    def test_error_response(self):
        response = self.builder.build_error_response(
            "capacity-exceeded", "Capacity Exceeded", 409, "No slots available", "/api/events/evt-1"
        )

        assert response['type'] == "https://api.example.com/problems/capacity-exceeded"
        assert response['status'] == 409
        assert 'help' in response['_links']
        assert 'errors' not in response

    def test_validation_error_links_schema(self):
        response = HalFormatter("https://api.example.com").format_validation_error(
            "Request validation failed", "/api/events", [{"field": "title", "message": "required"}]
        )

        assert response['status'] == 400
        assert response['errors'][0]['field'] == "title"
        assert 'schema' in response['_links']


def test_to_json_compatible_recurses():
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert to_json_compatible({'a': [moment, {'b': moment}], 'c': 1}) == {
        'a': ["2024-01-01T00:00:00+00:00", {'b': "2024-01-01T00:00:00+00:00"}],
        'c': 1
    }


def test_create_hal_formatter():
    formatter = create_hal_formatter("https://api.example.com")
    assert isinstance(formatter, HalFormatter)
