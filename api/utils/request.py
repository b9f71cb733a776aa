# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for identifying the caller.

The caller is identified by the ``X-User-Id`` header and trusted as given;
verifying it is the job of whatever sits in front of this API.
"""

from functools import wraps
from typing import Callable, Optional
from flask import current_app, g, jsonify, request
import logging

logger = logging.getLogger(__name__)

CALLER_HEADER = 'X-User-Id'


def get_caller_id() -> Optional[str]:
    """Return the caller id from the request headers, or None if absent."""
    caller_id = request.headers.get(CALLER_HEADER, '').strip()
    return caller_id or None


def require_caller(f: Callable) -> Callable:
    """Reject requests without a caller id; expose it as ``g.caller_id``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        caller_id = get_caller_id()
        if caller_id is None:
            logger.warning(
                "Request without caller identity",
                extra={"extra_fields": {"path": request.path, "method": request.method}}
            )
            error_response = current_app.hal_formatter.format_authentication_error(
                f"Missing {CALLER_HEADER} header",
                request.path
            )
            return jsonify(error_response), 401

        g.caller_id = caller_id
        return f(*args, **kwargs)
    return decorated_function
