# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for middleware functionality.
"""

import pytest
from unittest.mock import Mock
from flask import Flask, g, jsonify
from pydantic import BaseModel, Field, ValidationError
from pymongo.errors import AutoReconnect
from werkzeug.exceptions import MethodNotAllowed

from domain.errors import CapacityExceededError, IssueAlreadyAssignedError, NotFoundError
from middleware.error_handler import ErrorHandlerMiddleware
from middleware.validation import ValidationMiddleware
from services.hal import HalFormatter
from utils.request import CALLER_HEADER, get_caller_id, require_caller


class SampleBody(BaseModel):
    title: str = Field(..., min_length=1)
    capacity: int = Field(..., ge=0)


class TestValidationMiddleware:
    """Test validation middleware functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.app = Flask(__name__)
        self.validation_middleware = ValidationMiddleware("https://api.example.com")

    def test_format_validation_errors(self):
        """Test formatting Pydantic validation errors."""
        errors = [
            {"loc": ("body", "title"), "msg": "Field required", "type": "missing"},
            {"loc": ("capacity",), "msg": "Input should be greater than or equal to 0", "type": "greater_than_equal"}
        ]
        validation_error = Mock()
        validation_error.errors.return_value = errors

        result = self.validation_middleware.format_validation_errors(validation_error)

        assert result == [
            {"field": "body.title", "message": "Field required", "type": "missing"},
            {"field": "capacity", "message": "Input should be greater than or equal to 0", "type": "greater_than_equal"}
        ]

    def test_handle_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            SampleBody(title="", capacity=-1)

        with self.app.test_request_context('/api/events', method='POST'):
            response = self.validation_middleware.handle_validation_error(exc_info.value)

        assert response.status_code == 400
        data = response.get_json()
        assert data['type'] == "https://api.example.com/problems/validation-error"
        assert data['instance'] == "/api/events"
        assert {error['field'] for error in data['errors']} == {"title", "capacity"}


class TestErrorHandlerMiddleware:
    """Test mapping of exceptions onto problem documents."""

    def setup_method(self):
        self.app = Flask(__name__)
        self.app.config['ENVIRONMENT'] = 'test'
        ErrorHandlerMiddleware(self.app, "https://api.example.com")

        @self.app.route('/full')
        def full():
            raise CapacityExceededError("No slots available for position 'Driver'")

        @self.app.route('/missing')
        def missing():
            raise NotFoundError("Event evt-1 not found")

        @self.app.route('/late')
        def late():
            raise IssueAlreadyAssignedError("Issue iss-1 has already been assigned", request={'id': "req-1", 'applied': False})

        @self.app.route('/outage')
        def outage():
            raise AutoReconnect("connection reset")

        @self.app.route('/bug')
        def bug():
            raise KeyError("positions")

        @self.app.route('/method')
        def method():
            raise MethodNotAllowed()

        self.client = self.app.test_client()

    def test_domain_error(self):
        response = self.client.get('/full')

        assert response.status_code == 409
        data = response.get_json()
        assert data['type'] == "https://api.example.com/problems/capacity-exceeded"
        assert data['title'] == "Capacity Exceeded"
        assert data['detail'] == "No slots available for position 'Driver'"
        assert data['instance'] == "/full"

    def test_not_found(self):
        response = self.client.get('/missing')
        assert response.status_code == 404
        assert response.get_json()['type'].endswith("/problems/resource-not-found")

    def test_issue_already_assigned_embeds_request(self):
        data = self.client.get('/late').get_json()
        assert data['_embedded']['request'] == {'id': "req-1", 'applied': False}

    def test_store_outage(self):
        response = self.client.get('/outage')

        assert response.status_code == 503
        assert response.get_json()['title'] == "Service Unavailable"

    def test_unexpected_error(self):
        response = self.client.get('/bug')

        assert response.status_code == 500
        assert "KeyError" in response.get_json()['detail']

    def test_unexpected_error_hidden_in_production(self):
        self.app.config['ENVIRONMENT'] = 'production'

        response = self.client.get('/bug')

        assert response.get_json()['detail'] == "An unexpected error occurred"

    def test_http_errors(self):
        assert self.client.get('/nowhere').status_code == 404
        response = self.client.get('/method')
        assert response.status_code == 405
        assert response.get_json()['type'].endswith("/problems/method-not-allowed")


class TestCallerIdentity:
    """Test the caller identity decorator."""

    def setup_method(self):
        self.app = Flask(__name__)
        self.app.hal_formatter = HalFormatter("https://api.example.com")

        @self.app.route('/me')
        @require_caller
        def me():
            return jsonify({'caller': g.caller_id})

        self.client = self.app.test_client()

    def test_caller_exposed(self):
        response = self.client.get('/me', headers={CALLER_HEADER: "user-1"})
        assert response.get_json() == {'caller': "user-1"}

    def test_missing_caller(self):
        response = self.client.get('/me')

        assert response.status_code == 401
        assert response.get_json()['detail'] == "Missing X-User-Id header"

    def test_blank_caller(self):
        assert self.client.get('/me', headers={CALLER_HEADER: "   "}).status_code == 401

    def test_get_caller_id_optional(self):
        with self.app.test_request_context('/'):
            assert get_caller_id() is None
