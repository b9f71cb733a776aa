# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Event and volunteer registration endpoints.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import (
    AddPositionsRequest,
    CreateEventRequest,
    EventFeedbackRequest,
    EventPath,
    PositionPath,
    UpdateEventRequest,
    UpdateEventStatusRequest
)
from utils.request import get_caller_id, require_caller

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

events_tag = Tag(name="Events", description="Volunteering events and position registration")
events_bp = APIBlueprint(
    'events',
    __name__,
    url_prefix='/api/events',
    abp_tags=[events_tag]
)


def _event_response(event, status_code=200):
    hal_response = current_app.hal_formatter.format_event(event, get_caller_id())
    return jsonify(hal_response), status_code


@events_bp.post('')
@require_caller
def create_event(body: CreateEventRequest):
    """
    Create an event owned by the calling NGO.

    Every position starts empty with all of its slots available.
    """
    event = current_app.registration_engine.create_event(g.caller_id, body)
    return _event_response(event, 201)


@events_bp.get('/<string:event_id>')
def get_event(path: EventPath):
    """Get an event with its positions."""
    return _event_response(current_app.registration_engine.get_event(path.event_id))


@events_bp.patch('/<string:event_id>')
@require_caller
def update_event(path: EventPath, body: UpdateEventRequest):
    """
    Edit an event's details. Only the owning NGO may do this, and the
    dates cannot move once volunteers have registered.
    """
    event = current_app.registration_engine.update_event(path.event_id, g.caller_id, body)
    return _event_response(event)


@events_bp.post('/<string:event_id>/feedback')
@require_caller
def submit_event_feedback(path: EventPath, body: EventFeedbackRequest):
    """Rate a Completed event the caller volunteered at. One rating per participant."""
    event = current_app.registration_engine.submit_feedback(path.event_id, g.caller_id, body)
    return _event_response(event, 201)


@events_bp.post('/<string:event_id>/positions')
@require_caller
def add_positions(path: EventPath, body: AddPositionsRequest):
    """Append positions to an event owned by the caller."""
    event = current_app.registration_engine.add_positions(path.event_id, g.caller_id, body.positions)
    return _event_response(event)


@events_bp.patch('/<string:event_id>/status')
@require_caller
def update_event_status(path: EventPath, body: UpdateEventStatusRequest):
    """Move an event to a new lifecycle status."""
    event = current_app.registration_engine.update_status(path.event_id, g.caller_id, body.status)
    return _event_response(event)


@events_bp.delete('/<string:event_id>')
@require_caller
def delete_event(path: EventPath):
    """Delete an event owned by the caller."""
    current_app.registration_engine.delete_event(path.event_id, g.caller_id)
    return '', 204


@events_bp.post('/<string:event_id>/positions/<string:position_name>/registrations')
@require_caller
def register_volunteer(path: PositionPath):
    """
    Register the caller as a volunteer for a position.

    Fails with 409 when the position is full, the caller is already
    registered or the event no longer accepts registrations.
    """
    with tracer.start_as_current_span(
        "events.register",
        attributes={"event.id": path.event_id, "position.name": path.position_name}
    ):
        position = current_app.registration_engine.register(path.event_id, path.position_name, g.caller_id)
        hal_response = current_app.hal_formatter.builder.build_resource_response(position, "position", g.caller_id)
        return jsonify(hal_response), 201


@events_bp.delete('/<string:event_id>/positions/<string:position_name>/registrations')
@require_caller
def withdraw_volunteer(path: PositionPath):
    """Withdraw the caller from a position. Withdrawing twice is harmless."""
    position = current_app.registration_engine.withdraw(path.event_id, path.position_name, g.caller_id)
    hal_response = current_app.hal_formatter.builder.build_resource_response(position, "position", g.caller_id)
    return jsonify(hal_response), 200
