# SPDX-License-Identifier: Apache-2.0

"""
Notification feed endpoints.

Notifications are produced by registration and collaboration activity; these
endpoints only read, mark and clear the caller's own notifications.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.errors import ForbiddenError
from models.requests import NotificationPath, NotificationQuery
from utils.request import require_caller

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

notifications_tag = Tag(name="Notifications", description="In-app notification feed")
notifications_bp = APIBlueprint(
    'notifications',
    __name__,
    url_prefix='/api/notifications',
    abp_tags=[notifications_tag]
)


@notifications_bp.get('')
@require_caller
def list_notifications(query: NotificationQuery):
    """The caller's notifications, newest first."""
    with tracer.start_as_current_span("notifications.list", attributes={"user.id": g.caller_id}):
        feed = current_app.notification_dispatcher.list_for(g.caller_id, limit=query.limit)
        hal_response = current_app.hal_formatter.format_collection(
            list(feed), "notification", "/api/notifications", g.caller_id
        )
        hal_response['unread'] = current_app.notification_dispatcher.unread_count(g.caller_id)
        return jsonify(hal_response), 200


@notifications_bp.get('/unread-count')
@require_caller
def unread_count():
    """Number of unread notifications of the caller."""
    count = current_app.notification_dispatcher.unread_count(g.caller_id)
    return jsonify({
        'unread': count,
        '_links': {
            'notifications': current_app.hal_formatter.builder.link_builder.build_link(
                "/api/notifications", title="Notifications"
            ).model_dump(exclude_none=True)
        }
    }), 200


@notifications_bp.post('/<string:notification_id>/read')
@require_caller
def mark_notification_read(path: NotificationPath):
    """Mark one of the caller's notifications as read. Repeating is harmless."""
    dispatcher = current_app.notification_dispatcher
    notification = dispatcher.get(path.notification_id)
    if notification['recipient_id'] != g.caller_id:
        raise ForbiddenError("Notifications can only be marked read by their recipient")

    notification = dispatcher.mark_read(path.notification_id)
    hal_response = current_app.hal_formatter.builder.build_resource_response(
        notification, "notification", g.caller_id
    )
    return jsonify(hal_response), 200


@notifications_bp.delete('')
@require_caller
def clear_notifications():
    """Delete all of the caller's notifications."""
    deleted = current_app.notification_dispatcher.clear_all(g.caller_id)
    logger.info(
        "Notifications cleared",
        extra={"extra_fields": {"user_id": g.caller_id, "deleted": deleted}}
    )
    return jsonify({'deleted': deleted}), 200
