# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Per-NGO projections: events, collaboration requests and donation statistics.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from models.requests import DonationStatsQuery, IncomingRequestsQuery, NgoPath
from utils.request import get_caller_id

logger = logging.getLogger(__name__)

ngos_tag = Tag(name="NGOs", description="NGO dashboards")
ngos_bp = APIBlueprint(
    'ngos',
    __name__,
    url_prefix='/api/ngos',
    abp_tags=[ngos_tag]
)


@ngos_bp.get('/<string:ngo_id>/events')
def list_ngo_events(path: NgoPath):
    """Events owned by an NGO, latest start first."""
    events = current_app.query_facade.events_by_ngo(path.ngo_id)
    return jsonify(current_app.hal_formatter.format_collection(
        events, "event", f"/api/ngos/{path.ngo_id}/events", get_caller_id()
    )), 200


@ngos_bp.get('/<string:ngo_id>/collaborations/incoming')
def list_incoming_requests(path: NgoPath, query: IncomingRequestsQuery):
    """Collaboration requests addressed to an NGO, optionally filtered by status."""
    status = query.status.value if query.status else None
    requests = current_app.query_facade.incoming_requests(path.ngo_id, status)
    return jsonify(current_app.hal_formatter.format_collection(
        requests, "collaboration", f"/api/ngos/{path.ngo_id}/collaborations/incoming", get_caller_id()
    )), 200


@ngos_bp.get('/<string:ngo_id>/collaborated-issues')
def list_collaborated_issues(path: NgoPath):
    """Issues the NGO works on through accepted collaboration requests."""
    issues = current_app.query_facade.collaborated_issues(path.ngo_id)
    return jsonify(current_app.hal_formatter.format_collection(
        issues, "issue", f"/api/ngos/{path.ngo_id}/collaborated-issues", get_caller_id()
    )), 200


@ngos_bp.get('/<string:ngo_id>/donations/stats')
def get_donation_stats(path: NgoPath, query: DonationStatsQuery):
    """Donation count, total, distinct donors and the most recent donations."""
    stats = current_app.donation_service.donation_stats(path.ngo_id, recent=query.recent)
    hal_response = dict(stats)
    hal_response['_links'] = {
        'self': current_app.hal_formatter.builder.link_builder.build_self_link(
            f"/api/ngos/{path.ngo_id}/donations/stats"
        ).model_dump(exclude_none=True),
        'donate': current_app.hal_formatter.builder.link_builder.build_action_link(
            "/api/donations", title="Donate"
        ).model_dump(exclude_none=True)
    }
    return jsonify(hal_response), 200
