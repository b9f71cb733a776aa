# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User reference endpoints and per-user projections.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
import logging

from models.requests import CreateUserRequest, UserPath
from domain.errors import ForbiddenError
from utils.request import get_caller_id, require_caller

logger = logging.getLogger(__name__)

users_tag = Tag(name="Users", description="User references and their issues and events")
users_bp = APIBlueprint(
    'users',
    __name__,
    url_prefix='/api/users',
    abp_tags=[users_tag]
)


@users_bp.post('')
def create_user(body: CreateUserRequest):
    """Add a user reference (citizen, volunteer, NGO or admin)."""
    user = current_app.user_directory.create_user(body)
    return jsonify(current_app.hal_formatter.builder.build_resource_response(user, "user")), 201


@users_bp.get('/<string:user_id>')
def get_user(path: UserPath):
    """Get a user reference."""
    user = current_app.user_directory.get_user(path.user_id)
    return jsonify(current_app.hal_formatter.builder.build_resource_response(user, "user")), 200


@users_bp.get('/<string:user_id>/issues')
def list_user_issues(path: UserPath):
    """Issues reported by a user, newest first."""
    issues = current_app.query_facade.issues_by_creator(path.user_id)
    return jsonify(current_app.hal_formatter.format_collection(
        issues, "issue", f"/api/users/{path.user_id}/issues", get_caller_id()
    )), 200


@users_bp.get('/<string:user_id>/events')
def list_user_events(path: UserPath):
    """Events where the user is registered as a volunteer."""
    events = current_app.query_facade.events_by_volunteer(path.user_id)
    return jsonify(current_app.hal_formatter.format_collection(
        events, "event", f"/api/users/{path.user_id}/events", get_caller_id()
    )), 200


@users_bp.get('/<string:user_id>/donations')
@require_caller
def list_user_donations(path: UserPath):
    """A donor's own donation history, newest first. Only visible to the donor."""
    if path.user_id != g.caller_id:
        raise ForbiddenError("Donation history is only visible to the donor")
    donations = current_app.query_facade.donations_by_donor(path.user_id)
    return jsonify(current_app.hal_formatter.format_collection(
        donations, "donation", f"/api/users/{path.user_id}/donations", g.caller_id
    )), 200
