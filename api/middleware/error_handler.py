# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Maps business errors, storage outages and HTTP errors onto problem documents.
"""

from flask import Flask, request
from werkzeug.exceptions import HTTPException
from pymongo.errors import PyMongoError
from typing import Dict, Any, Tuple
from opentelemetry import trace
import logging

from domain.errors import DomainError, IssueAlreadyAssignedError
from services.hal import HalFormatter, to_json_compatible

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


HTTP_ERROR_TYPES = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(DomainError)
        def handle_domain_error(error):
            return self.handle_domain_error(error)

        @self.app.errorhandler(PyMongoError)
        def handle_store_unavailable(error):
            return self.handle_store_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            if error.code is not None and error.code < 500:
                return self.handle_client_error(error)
            return self.handle_server_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: DomainError) -> Tuple[Dict[str, Any], int]:
        """
        Handle errors raised by the engines.

        Args:
            error: Business error carrying its status and problem type

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.domain_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Domain error: {error.title}",
                extra={
                    "extra_fields": {
                        "error_type": error.error_type,
                        "status_code": error.status_code,
                        "detail": error.message,
                        "path": request.path,
                        "method": request.method
                    }
                }
            )

            error_response = self.hal_formatter.format_domain_error(
                error.error_type,
                error.title,
                error.status_code,
                error.message,
                request.path
            )

            # The acceptance was recorded even though the assignment was not
            if isinstance(error, IssueAlreadyAssignedError) and error.request is not None:
                error_response['_embedded'] = {'request': to_json_compatible(error.request)}

            return error_response, error.status_code

    def handle_store_error(self, error: PyMongoError) -> Tuple[Dict[str, Any], int]:
        """Handle storage outages: the operation did not take place."""
        with tracer.start_as_current_span("error_handler.store_error") as span:
            span.record_exception(error)
            span.set_attributes({
                "error.type": "service-unavailable",
                "error.class": error.__class__.__name__,
                "http.path": request.path
            })

            logger.error(
                f"Store unavailable: {error.__class__.__name__}",
                extra={
                    "extra_fields": {
                        "error_class": error.__class__.__name__,
                        "error_message": str(error),
                        "path": request.path,
                        "method": request.method
                    }
                },
                exc_info=True
            )

            error_response = self.hal_formatter.format_service_unavailable(
                "The data store is temporarily unavailable",
                request.path
            )
            return error_response, 503

    def handle_client_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """Handle client errors (4xx status codes)."""
        error_type, title = HTTP_ERROR_TYPES.get(error.code, ("client-error", error.name))
        detail = str(error.description) if error.description else title

        logger.warning(
            f"Client error: {title}",
            extra={
                "extra_fields": {
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                }
            }
        )

        if error_type == "authentication-required":
            error_response = self.hal_formatter.format_authentication_error(detail, request.path)
        else:
            error_response = self.hal_formatter.builder.build_error_response(
                error_type,
                title,
                error.code,
                detail,
                request.path
            )

        return error_response, error.code

    def handle_server_error(self, error: HTTPException) -> Tuple[Dict[str, Any], int]:
        """Handle server errors (5xx status codes)."""
        status = error.code or 500
        detail = str(error.description) if error.description else error.name

        logger.error(
            f"Server error: {error.name}",
            extra={
                "extra_fields": {
                    "status_code": status,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                }
            },
            exc_info=True
        )

        if self.app.config.get('ENVIRONMENT') == 'production':
            detail = "An internal server error occurred"

        error_response = self.hal_formatter.builder.build_error_response(
            "server-error",
            error.name,
            status,
            detail,
            request.path
        )
        return error_response, status

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "extra_fields": {
                        "error_class": error.__class__.__name__,
                        "error_message": str(error),
                        "path": request.path,
                        "method": request.method
                    }
                },
                exc_info=True
            )

            # Don't expose internal error details
            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            error_response = self.hal_formatter.format_server_error(detail, request.path)

            return error_response, 500
