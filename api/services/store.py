# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Entity store interface shared by the MongoDB and in-memory backends.

Each collection maps an opaque string id to a document. Every write that
carries a precondition is a single conditional operation: it either applies
atomically or matches nothing and returns None/False, leaving callers to
decide what the failure means.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Iterator, List, Optional


class DuplicateRecordError(Exception):
    """Raised when an insert would violate a uniqueness constraint."""
    pass


class EntityStore(ABC):
    """Persistence operations required by the engines."""

    USERS = "users"
    ISSUES = "issues"
    EVENTS = "events"
    COLLABORATIONS = "collaboration_requests"
    NOTIFICATIONS = "notifications"
    DONATIONS = "donations"

    def setup(self) -> None:
        """Prepare backend structures (indexes). No-op by default."""

    @abstractmethod
    def insert(self, collection: str, document: Dict[str, Any],
               unique_on: Optional[Dict[str, Any]] = None) -> str:
        """
        Insert a document and return its id.

        Args:
            collection: Target collection
            document: Document with an ``id`` key
            unique_on: Filter that must match no existing document

        Raises:
            DuplicateRecordError: If ``unique_on`` matches an existing document
        """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document by id."""

    @abstractmethod
    def find(self, collection: str, filters: Optional[Dict[str, Any]] = None,
             sort_by: Optional[str] = None, descending: bool = False,
             limit: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """
        Lazily iterate documents matching equality filters.

        Filter keys may be dotted paths; a filter matches a list field when
        any element equals the value.
        """

    @abstractmethod
    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        """Count documents matching filters."""

    @abstractmethod
    def update_if(self, collection: str, doc_id: str, expected: Dict[str, Any],
                  changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Apply ``changes`` only if the document still matches ``expected``.

        Returns:
            The updated document, or None if the document is missing or the
            precondition no longer holds
        """

    @abstractmethod
    def delete_if(self, collection: str, doc_id: str,
                  expected: Optional[Dict[str, Any]] = None) -> bool:
        """Delete a document if it exists and matches ``expected``."""

    @abstractmethod
    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        """Delete all matching documents and return how many were removed."""

    @abstractmethod
    def admit_volunteer(self, event_id: str, position_name: str, volunteer_id: str,
                        open_statuses: Iterable[str]) -> Optional[Dict[str, Any]]:
        """
        Add a volunteer to a position in one atomic step.

        Succeeds only if the event status is in ``open_statuses``, the
        position exists, has a free slot and does not already hold the
        volunteer.

        Returns:
            The updated event, or None if any precondition failed
        """

    @abstractmethod
    def release_volunteer(self, event_id: str, position_name: str,
                          volunteer_id: str) -> Optional[Dict[str, Any]]:
        """
        Remove a volunteer from a position in one atomic step.

        Returns:
            The updated event, or None if the volunteer was not registered
        """

    @abstractmethod
    def append_positions(self, event_id: str, owner_id: str,
                         positions: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Append positions to an event owned by ``owner_id``.

        Succeeds only if none of the new names exists on the event yet.
        """

    @abstractmethod
    def update_event_details(self, event_id: str, expected: Dict[str, Any], changes: Dict[str, Any],
                             require_no_volunteers: bool = False) -> Optional[Dict[str, Any]]:
        """
        Set event fields if the event matches ``expected``.

        With ``require_no_volunteers`` the write also requires that no
        position holds a volunteer.
        """

    @abstractmethod
    def add_feedback(self, event_id: str, feedback: Dict[str, Any],
                     completed_status: str) -> Optional[Dict[str, Any]]:
        """
        Append participant feedback in one atomic step.

        Succeeds only if the event has ``completed_status``, the author holds
        a slot in some position and has not given feedback yet.
        """

    @abstractmethod
    def cast_vote(self, issue_id: str, user_id: str, add_to: str,
                  remove_from: str) -> Optional[Dict[str, Any]]:
        """
        Add ``user_id`` to the ``add_to`` voter list and remove it from
        ``remove_from``, unless it is already in ``add_to``.
        """

    @abstractmethod
    def donation_summary(self, ngo_id: str, recent: int = 5) -> Dict[str, Any]:
        """Aggregate donation count, total, distinct donors and most recent entries."""

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        """Report backend health."""
