# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Read-only projections over issues, events and collaboration requests.
"""

import logging
from typing import Any, Dict, List, Optional

from domain.errors import ValidationFailedError
from models.enums import CollaborationStatus
from .store import EntityStore

logger = logging.getLogger(__name__)


class QueryFacade:
    """Query side of the platform. Never mutates the store."""

    def __init__(self, store: EntityStore):
        self.store = store

    def issues_by_creator(self, user_id: str) -> List[Dict[str, Any]]:
        """Issues reported by a user, newest first."""
        return list(self.store.find(
            EntityStore.ISSUES, {'created_by': user_id}, sort_by='created_at', descending=True
        ))

    def collaborated_issues(self, ngo_id: str) -> List[Dict[str, Any]]:
        """
        Issues the NGO collaborates on through an Accepted request, as either
        requester or target. Each issue appears once, newest first.
        """
        issue_ids = []
        for role in ('requested_by', 'requested_to'):
            for request in self.store.find(
                EntityStore.COLLABORATIONS,
                {role: ngo_id, 'status': CollaborationStatus.ACCEPTED.value}
            ):
                if request['issue_id'] not in issue_ids:
                    issue_ids.append(request['issue_id'])

        issues = [self.store.get(EntityStore.ISSUES, issue_id) for issue_id in issue_ids]
        issues = [issue for issue in issues if issue is not None]
        issues.sort(key=lambda issue: issue['created_at'], reverse=True)

        logger.debug(f"NGO {ngo_id} collaborates on {len(issues)} issue(s)")
        return issues

    def events_by_ngo(self, ngo_id: str) -> List[Dict[str, Any]]:
        """Events owned by an NGO, latest start first."""
        return list(self.store.find(
            EntityStore.EVENTS, {'owner_id': ngo_id}, sort_by='start_time', descending=True
        ))

    def events_by_volunteer(self, user_id: str) -> List[Dict[str, Any]]:
        """Events where the user holds a slot in any position, latest start first."""
        return list(self.store.find(
            EntityStore.EVENTS, {'positions.registered': user_id}, sort_by='start_time', descending=True
        ))

    def incoming_requests(self, ngo_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Collaboration requests addressed to an NGO, newest first."""
        filters = {'requested_to': ngo_id}
        if status is not None:
            try:
                filters['status'] = CollaborationStatus(status).value
            except ValueError:
                raise ValidationFailedError(f"Invalid collaboration status: {status}")
        return list(self.store.find(
            EntityStore.COLLABORATIONS, filters, sort_by='created_at', descending=True
        ))

    def donations_by_donor(self, donor_id: str) -> List[Dict[str, Any]]:
        """A donor's own donation history, newest first."""
        return list(self.store.find(
            EntityStore.DONATIONS, {'donor_id': donor_id}, sort_by='created_at', descending=True
        ))
