# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS responses with state-dependent affordance links.
"""

from datetime import datetime
from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, quote

from models.enums import CollaborationStatus, EventStatus, IssueStatus, OPEN_EVENT_STATUSES
from models.responses import HalLink


def to_json_compatible(value: Any) -> Any:
    """Render datetimes as ISO 8601 strings, recursing into dicts and lists."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json_compatible(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_json_compatible(item) for item in value]
    return value


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_action_link(
        self,
        path: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        return self.build_link(
            path,
            method=method,
            content_type="application/json",
            title=title
        )


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on caller and state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_event_affordances(
        self,
        event: Dict[str, Any],
        current_user_id: Optional[str] = None
    ) -> Dict[str, HalLink]:
        """Build affordance links for an event."""
        event_path = f"/api/events/{event['id']}"
        links = {
            'self': self.link_builder.build_self_link(event_path),
            'owner_events': self.link_builder.build_link(
                f"/api/ngos/{event['owner_id']}/events",
                title="Events by the same NGO"
            )
        }

        is_open = event.get('status') in OPEN_EVENT_STATUSES
        for position in event.get('positions', []):
            registration_path = f"{event_path}/positions/{quote(position['name'], safe='')}/registrations"
            registered = position.get('registered', [])
            if current_user_id and current_user_id in registered:
                links[f"withdraw:{position['name']}"] = self.link_builder.build_action_link(
                    registration_path, method="DELETE", title=f"Withdraw from {position['name']}"
                )
            elif is_open and position.get('available', 0) > 0:
                links[f"register:{position['name']}"] = self.link_builder.build_action_link(
                    registration_path, title=f"Register for {position['name']}"
                )

        if current_user_id and event.get('status') == EventStatus.COMPLETED.value:
            participated = any(current_user_id in position.get('registered', []) for position in event.get('positions', []))
            rated = any(entry.get('user_id') == current_user_id for entry in event.get('feedback', []))
            if participated and not rated:
                links['submit_feedback'] = self.link_builder.build_action_link(
                    f"{event_path}/feedback", title="Rate this event"
                )

        if current_user_id and current_user_id == event['owner_id']:
            links['edit'] = self.link_builder.build_action_link(
                event_path, method="PATCH", title="Edit event details"
            )
            links['add_positions'] = self.link_builder.build_action_link(
                f"{event_path}/positions", title="Add positions"
            )
            links['update_status'] = self.link_builder.build_action_link(
                f"{event_path}/status", method="PATCH", title="Update status"
            )
            links['delete'] = self.link_builder.build_action_link(
                event_path, method="DELETE", title="Delete event"
            )

        return links

    def build_collaboration_affordances(
        self,
        request: Dict[str, Any],
        current_user_id: Optional[str] = None
    ) -> Dict[str, HalLink]:
        """Build affordance links for a collaboration request."""
        links = {
            'self': self.link_builder.build_self_link(f"/api/collaborations/{request['id']}"),
            'issue': self.link_builder.build_link(f"/api/issues/{request['issue_id']}", title="Issue")
        }

        if (request.get('status') == CollaborationStatus.PENDING.value and
                current_user_id == request.get('requested_to')):
            links['respond'] = self.link_builder.build_action_link(
                f"/api/collaborations/{request['id']}/response", title="Accept or reject"
            )

        return links

    def build_position_affordances(
        self,
        position: Dict[str, Any],
        current_user_id: Optional[str] = None
    ) -> Dict[str, HalLink]:
        """Build affordance links for a single position of an event."""
        event_path = f"/api/events/{position['event_id']}"
        registration_path = f"{event_path}/positions/{quote(position['name'], safe='')}/registrations"
        links = {
            'event': self.link_builder.build_link(event_path, title="Event")
        }
        if current_user_id and current_user_id in position.get('registered', []):
            links['withdraw'] = self.link_builder.build_action_link(
                registration_path, method="DELETE", title="Withdraw"
            )
        elif position.get('available', 0) > 0:
            links['register'] = self.link_builder.build_action_link(registration_path, title="Register")
        return links

    def build_issue_affordances(
        self,
        issue: Dict[str, Any],
        current_user_id: Optional[str] = None
    ) -> Dict[str, HalLink]:
        """Build affordance links for an issue."""
        issue_path = f"/api/issues/{issue['id']}"
        links = {
            'self': self.link_builder.build_self_link(issue_path),
            'creator_issues': self.link_builder.build_link(
                f"/api/users/{issue['created_by']}/issues", title="Issues by the same reporter"
            )
        }
        if current_user_id:
            links['vote'] = self.link_builder.build_action_link(f"{issue_path}/votes", title="Upvote or downvote")
        if issue.get('status') == IssueStatus.OPEN.value:
            links['request_collaboration'] = self.link_builder.build_action_link(
                "/api/collaborations", title="Request a collaboration"
            )
        elif (issue.get('status') == IssueStatus.ASSIGNED.value and
                current_user_id == issue.get('assigned_ngo')):
            links['resolve'] = self.link_builder.build_action_link(
                f"{issue_path}/resolve", title="Mark resolved"
            )
        return links

    def build_notification_affordances(self, notification: Dict[str, Any]) -> Dict[str, HalLink]:
        """Build affordance links for a notification."""
        links = {
            'collection': self.link_builder.build_link("/api/notifications", title="Notifications")
        }
        if not notification.get('is_read'):
            links['mark_read'] = self.link_builder.build_action_link(
                f"/api/notifications/{notification['id']}/read", title="Mark as read"
            )
        return links


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(
        self,
        data: Dict[str, Any],
        resource_type: str,
        current_user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build a HAL resource response with appropriate affordance links."""
        response = to_json_compatible(data)

        if resource_type == "event":
            links = self.affordance_builder.build_event_affordances(data, current_user_id)
        elif resource_type == "collaboration":
            links = self.affordance_builder.build_collaboration_affordances(data, current_user_id)
        elif resource_type == "position":
            links = self.affordance_builder.build_position_affordances(data, current_user_id)
        elif resource_type == "issue":
            links = self.affordance_builder.build_issue_affordances(data, current_user_id)
        elif resource_type == "notification":
            links = self.affordance_builder.build_notification_affordances(data)
        elif resource_type == "donation":
            links = {
                'stats': self.link_builder.build_link(
                    f"/api/ngos/{data['ngo_id']}/donations/stats", title="Donation statistics"
                )
            }
        elif 'id' in data:
            links = {
                'self': self.link_builder.build_self_link(f"/api/{resource_type}s/{data['id']}")
            }
        else:
            links = {}

        response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        resource_type: str,
        collection_path: str,
        current_user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with embedded resources."""
        embedded = [
            self.build_resource_response(item, resource_type, current_user_id)
            for item in items
        ]
        return {
            'total': len(embedded),
            '_links': {
                'self': self.link_builder.build_self_link(collection_path).model_dump(exclude_none=True)
            },
            '_embedded': {
                'items': embedded
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{self.base_url}/problems/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }
        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )

        error_response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_event(self, event: Dict[str, Any], current_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.builder.build_resource_response(event, "event", current_user_id)

    def format_collaboration(self, request: Dict[str, Any], current_user_id: Optional[str] = None) -> Dict[str, Any]:
        return self.builder.build_resource_response(request, "collaboration", current_user_id)

    def format_collection(
        self,
        items: List[Dict[str, Any]],
        resource_type: str,
        collection_path: str,
        current_user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.builder.build_collection_response(items, resource_type, collection_path, current_user_id)

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error",
            "Validation Error",
            400,
            detail,
            instance,
            validation_errors
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.builder.build_error_response(
            "authentication-required",
            "Authentication Required",
            401,
            detail,
            instance
        )

    def format_domain_error(self, error_type: str, title: str, status: int, detail: str, instance: str) -> Dict[str, Any]:
        """Format an error raised by the registration or collaboration engines."""
        return self.builder.build_error_response(error_type, title, status, detail, instance)

    def format_service_unavailable(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a storage outage response."""
        return self.builder.build_error_response(
            "service-unavailable",
            "Service Unavailable",
            503,
            detail,
            instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error",
            "Internal Server Error",
            500,
            detail,
            instance
        )


# Convenience function for creating HAL formatter
def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
