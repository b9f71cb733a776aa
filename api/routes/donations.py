# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Donation endpoints. Donations are recorded without any payment processing.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
import logging

from models.requests import CreateDonationRequest
from utils.request import require_caller

logger = logging.getLogger(__name__)

donations_tag = Tag(name="Donations", description="Donations to NGOs")
donations_bp = APIBlueprint(
    'donations',
    __name__,
    url_prefix='/api/donations',
    abp_tags=[donations_tag]
)


@donations_bp.post('')
@require_caller
def record_donation(body: CreateDonationRequest):
    """Record a donation from the caller to an NGO."""
    donation = current_app.donation_service.record_donation(
        body.ngo_id, g.caller_id, body.amount, message=body.message, currency=body.currency
    )
    return jsonify(current_app.hal_formatter.builder.build_resource_response(donation, "donation")), 201
