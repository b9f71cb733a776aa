# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Civic issue endpoints.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
import logging

from models.requests import CreateIssueRequest, IssuePath, VoteRequest
from utils.request import get_caller_id, require_caller

logger = logging.getLogger(__name__)

issues_tag = Tag(name="Issues", description="Civic issues reported by citizens")
issues_bp = APIBlueprint(
    'issues',
    __name__,
    url_prefix='/api/issues',
    abp_tags=[issues_tag]
)


@issues_bp.post('')
@require_caller
def create_issue(body: CreateIssueRequest):
    """Report a new issue. It starts Open and unassigned."""
    issue = current_app.collaboration_workflow.create_issue(g.caller_id, body)
    hal_response = current_app.hal_formatter.builder.build_resource_response(issue, "issue", g.caller_id)
    return jsonify(hal_response), 201


@issues_bp.get('/<string:issue_id>')
def get_issue(path: IssuePath):
    """Get an issue."""
    issue = current_app.collaboration_workflow.get_issue(path.issue_id)
    hal_response = current_app.hal_formatter.builder.build_resource_response(issue, "issue", get_caller_id())
    return jsonify(hal_response), 200


@issues_bp.post('/<string:issue_id>/resolve')
@require_caller
def resolve_issue(path: IssuePath):
    """Mark an Assigned issue Resolved. Only the assigned NGO may do this."""
    issue = current_app.collaboration_workflow.resolve_issue(path.issue_id, g.caller_id)
    hal_response = current_app.hal_formatter.builder.build_resource_response(issue, "issue", g.caller_id)
    return jsonify(hal_response), 200


@issues_bp.post('/<string:issue_id>/votes')
@require_caller
def vote_issue(path: IssuePath, body: VoteRequest):
    """
    Upvote or downvote an issue. Voting the other way moves the caller's
    vote; repeating the same vote fails with 409.
    """
    issue = current_app.collaboration_workflow.vote(path.issue_id, g.caller_id, body.direction)
    hal_response = current_app.hal_formatter.builder.build_resource_response(issue, "issue", g.caller_id)
    return jsonify(hal_response), 200
