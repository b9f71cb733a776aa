# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Collaboration request endpoints.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from models.requests import CollaborationPath, CreateCollaborationRequest, RespondCollaborationRequest
from utils.request import get_caller_id, require_caller

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

collaborations_tag = Tag(name="Collaborations", description="NGO-to-NGO collaboration requests")
collaborations_bp = APIBlueprint(
    'collaborations',
    __name__,
    url_prefix='/api/collaborations',
    abp_tags=[collaborations_tag]
)


@collaborations_bp.post('')
@require_caller
def create_collaboration_request(body: CreateCollaborationRequest):
    """
    Ask another NGO to collaborate on an issue.

    At most one Pending request may exist per issue and target NGO.
    """
    request_doc = current_app.collaboration_workflow.create_request(
        body.issue_id, g.caller_id, body.to_ngo, body.message
    )
    return jsonify(current_app.hal_formatter.format_collaboration(request_doc, g.caller_id)), 201


@collaborations_bp.get('/<string:request_id>')
def get_collaboration_request(path: CollaborationPath):
    """Get a collaboration request."""
    request_doc = current_app.collaboration_workflow.get_request(path.request_id)
    return jsonify(current_app.hal_formatter.format_collaboration(request_doc, get_caller_id())), 200


@collaborations_bp.post('/<string:request_id>/response')
@require_caller
def respond_to_collaboration_request(path: CollaborationPath, body: RespondCollaborationRequest):
    """
    Accept or reject a Pending request addressed to the caller.

    Accepting assigns the issue to the caller while it is still Open.
    """
    with tracer.start_as_current_span(
        "collaborations.respond",
        attributes={"collaboration.id": path.request_id, "collaboration.decision": body.decision}
    ):
        request_doc = current_app.collaboration_workflow.respond(path.request_id, g.caller_id, body.decision)
        return jsonify(current_app.hal_formatter.format_collaboration(request_doc, g.caller_id)), 200
