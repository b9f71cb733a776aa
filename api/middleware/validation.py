# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation error formatting.

Request bodies, path and query parameters are validated by flask-openapi3
against the Pydantic models in ``models.requests``; this module turns the
resulting ValidationError into a HAL problem document.
"""

from flask import request, jsonify, make_response
from typing import Dict, Any, List
from pydantic import ValidationError
from opentelemetry import trace
import logging

from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ValidationMiddleware:
    """Formats request validation failures."""

    def __init__(self, base_url: str):
        self.hal_formatter = HalFormatter(base_url)

    def format_validation_errors(self, validation_error: ValidationError) -> List[Dict[str, Any]]:
        """
        Format Pydantic validation errors for API response.

        Args:
            validation_error: Pydantic ValidationError

        Returns:
            List of formatted error dictionaries
        """
        errors = []

        for error in validation_error.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"]
            })

        return errors

    def handle_validation_error(self, validation_error: ValidationError):
        """flask-openapi3 validation error callback."""
        span = trace.get_current_span()
        span.set_attribute("validation.result", "validation_error")

        validation_errors = self.format_validation_errors(validation_error)
        model_name = getattr(validation_error, 'title', 'request')

        logger.warning(
            "Request validation failed",
            extra={
                "extra_fields": {
                    "model": model_name,
                    "path": request.path,
                    "method": request.method,
                    "errors": validation_errors
                }
            }
        )

        error_response = self.hal_formatter.format_validation_error(
            f"Request validation failed for {model_name}",
            request.path,
            validation_errors
        )
        return make_response(jsonify(error_response), 400)
