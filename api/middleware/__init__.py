# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

Error handling and request validation for the civic volunteering API.
"""
