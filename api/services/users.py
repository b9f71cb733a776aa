# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User references: the citizens, volunteers and NGOs other records point at.
"""

import logging
from typing import Any, Dict

from domain.errors import ConflictError, NotFoundError
from models.entities import User
from models.requests import CreateUserRequest
from .store import DuplicateRecordError, EntityStore

logger = logging.getLogger(__name__)


class UserDirectory:
    """Creates and looks up user references."""

    def __init__(self, store: EntityStore):
        self.store = store

    def create_user(self, request: CreateUserRequest) -> Dict[str, Any]:
        """Add a user; emails are unique across the platform."""
        document = User(name=request.name, email=request.email, role=request.role).to_document()
        try:
            self.store.insert(EntityStore.USERS, document, unique_on={'email': document['email']})
        except DuplicateRecordError:
            raise ConflictError(f"A user with email {document['email']} already exists")

        logger.info(f"User created: {document['id']}", extra={"extra_fields": {"role": document['role']}})
        return document

    def get_user(self, user_id: str) -> Dict[str, Any]:
        user = self.store.get(EntityStore.USERS, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user
