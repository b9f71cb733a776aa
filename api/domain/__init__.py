# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the civic volunteering platform.

This package contains pure business rules: event and position validation,
the collaboration request state machine, the error taxonomy, domain events
and the notifications they produce. Nothing here touches storage.
"""
