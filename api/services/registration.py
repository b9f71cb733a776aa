# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Registration engine: event lifecycle and capacity-bounded volunteer admission.
"""

import logging
from typing import Any, Dict, Iterable

from opentelemetry import trace

from domain.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from domain.events import VolunteerRegistered, VolunteerWithdrawn
from domain.registration import (
    build_event,
    build_positions,
    build_feedback,
    explain_admission_failure,
    explain_feedback_failure,
    explain_update_failure,
    plan_event_update,
    position_view,
    validate_status_transition
)
from models.enums import EventStatus, OPEN_EVENT_STATUSES, UserRole
from models.requests import CreateEventRequest, EventFeedbackRequest, PositionSpec, UpdateEventRequest
from .event_bus import EventBus
from .store import EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RegistrationEngine:
    """Creates events and admits or releases volunteers without overbooking."""

    def __init__(self, store: EntityStore, bus: EventBus):
        self.store = store
        self.bus = bus

    def _require_ngo(self, user_id: str) -> Dict[str, Any]:
        user = self.store.get(EntityStore.USERS, user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if user.get('role') != UserRole.NGO.value:
            raise ForbiddenError("Only NGOs can create events")
        return user

    def _owned_event(self, event_id: str, requester_id: str) -> Dict[str, Any]:
        event = self.get_event(event_id)
        if event['owner_id'] != requester_id:
            raise ForbiddenError("Only the owning NGO can modify this event")
        return event

    def get_event(self, event_id: str) -> Dict[str, Any]:
        event = self.store.get(EntityStore.EVENTS, event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    def create_event(self, owner_id: str, request: CreateEventRequest) -> Dict[str, Any]:
        """
        Create an Upcoming event whose positions all start empty.

        Raises:
            NotFoundError: If the owner is unknown
            ForbiddenError: If the owner is not an NGO
            ValidationFailedError: On bad dates or duplicate position names
        """
        with tracer.start_as_current_span("registration.create_event") as span:
            span.set_attribute("event.owner_id", owner_id)
            self._require_ngo(owner_id)

            document = build_event(owner_id, request).to_document()
            self.store.insert(EntityStore.EVENTS, document)
            span.set_attribute("event.id", document['id'])

            logger.info(
                f"Event created: {document['id']}",
                extra={"extra_fields": {"owner_id": owner_id, "positions": len(document['positions'])}}
            )
            return document

    def add_positions(self, event_id: str, requester_id: str, specs: Iterable[PositionSpec]) -> Dict[str, Any]:
        """Append new, empty positions to an event owned by the requester."""
        with tracer.start_as_current_span("registration.add_positions") as span:
            span.set_attributes({"event.id": event_id, "requester.id": requester_id})
            event = self._owned_event(event_id, requester_id)

            existing = [position['name'] for position in event.get('positions', [])]
            positions = [position.model_dump() for position in build_positions(specs, existing)]

            updated = self.store.append_positions(event_id, requester_id, positions)
            if updated is None:
                if self.store.get(EntityStore.EVENTS, event_id) is None:
                    raise NotFoundError(f"Event {event_id} not found")
                raise ValidationFailedError("Position names must be unique within an event")

            logger.info(f"Added {len(positions)} position(s) to event {event_id}")
            return updated

    def update_status(self, event_id: str, requester_id: str, new_status: str) -> Dict[str, Any]:
        """Move an event along its lifecycle; Completed and Cancelled are terminal."""
        try:
            new_status = EventStatus(new_status).value
        except ValueError:
            raise ValidationFailedError(f"Invalid event status: {new_status}")

        with tracer.start_as_current_span("registration.update_status") as span:
            span.set_attributes({"event.id": event_id, "event.new_status": new_status})
            event = self._owned_event(event_id, requester_id)
            validate_status_transition(event['status'], new_status).raise_for_errors()

            updated = self.store.update_if(
                EntityStore.EVENTS,
                event_id,
                {'status': event['status'], 'owner_id': requester_id},
                {'status': new_status}
            )
            if updated is None:
                raise ConflictError(f"Event {event_id} was modified concurrently")

            logger.info(f"Event {event_id} status changed: {event['status']} -> {new_status}")
            return updated

    def update_event(self, event_id: str, requester_id: str, request: UpdateEventRequest) -> Dict[str, Any]:
        """
        Edit an event's details. Dates are frozen once any volunteer has registered.

        Raises:
            NotFoundError: Event absent
            ForbiddenError: Requester does not own the event
            ValidationFailedError: Empty update, bad dates, or dates moved after registrations
        """
        with tracer.start_as_current_span("registration.update_event") as span:
            span.set_attributes({"event.id": event_id, "requester.id": requester_id})
            event = self._owned_event(event_id, requester_id)
            changes, dates_changed = plan_event_update(event, request)
            span.set_attribute("event.dates_changed", dates_changed)

            expected = {
                'owner_id': requester_id,
                'start_time': event['start_time'],
                'end_time': event['end_time']
            }
            updated = self.store.update_event_details(
                event_id, expected, changes, require_no_volunteers=dates_changed
            )
            if updated is None:
                raise explain_update_failure(
                    self.store.get(EntityStore.EVENTS, event_id), event_id, requester_id, dates_changed
                )

            logger.info(
                f"Event updated: {event_id}",
                extra={"extra_fields": {"fields": sorted(changes)}}
            )
            return updated

    def submit_feedback(self, event_id: str, user_id: str, request: EventFeedbackRequest) -> Dict[str, Any]:
        """
        Record a participant's rating of a Completed event, once per participant.

        Raises:
            NotFoundError: Event absent
            ValidationFailedError: Event not Completed
            ForbiddenError: User held no slot in the event
            DuplicateFeedbackError: User already rated the event
        """
        with tracer.start_as_current_span("registration.submit_feedback") as span:
            span.set_attributes({"event.id": event_id, "user.id": user_id, "feedback.rating": request.rating})

            feedback = build_feedback(user_id, request).model_dump()
            updated = self.store.add_feedback(event_id, feedback, EventStatus.COMPLETED.value)
            if updated is None:
                error = explain_feedback_failure(self.store.get(EntityStore.EVENTS, event_id), event_id, user_id)
                span.set_attribute("feedback.rejected", error.error_type)
                raise error

            logger.info(f"Feedback submitted for event {event_id} by {user_id}")
            return updated

    def register(self, event_id: str, position_name: str, volunteer_id: str) -> Dict[str, Any]:
        """
        Admit a volunteer into a position.

        The admission is a single conditional write; when it matches nothing
        the event is re-read only to report which precondition failed.

        Returns:
            The updated position view

        Raises:
            NotFoundError: Event or position absent
            EventClosedError: Event is Completed or Cancelled
            AlreadyRegisteredError: Volunteer already holds a slot in the position
            CapacityExceededError: No free slot left
        """
        with tracer.start_as_current_span("registration.register") as span:
            span.set_attributes({
                "event.id": event_id,
                "position.name": position_name,
                "volunteer.id": volunteer_id
            })

            updated = self.store.admit_volunteer(event_id, position_name, volunteer_id, OPEN_EVENT_STATUSES)
            if updated is None:
                error = explain_admission_failure(
                    self.store.get(EntityStore.EVENTS, event_id), event_id, position_name, volunteer_id
                )
                span.set_attribute("registration.rejected", error.error_type)
                logger.info(
                    f"Registration rejected: {error.message}",
                    extra={"extra_fields": {"event_id": event_id, "reason": error.error_type}}
                )
                raise error

            position = position_view(updated, position_name)
            logger.info(
                f"Volunteer {volunteer_id} registered for '{position_name}' in event {event_id}",
                extra={"extra_fields": {"available": position['available']}}
            )

            self.bus.publish(VolunteerRegistered(
                event_id=event_id,
                event_title=updated['title'],
                owner_id=updated['owner_id'],
                position_name=position_name,
                volunteer_id=volunteer_id,
                remaining_slots=position['available']
            ))
            return position

    def withdraw(self, event_id: str, position_name: str, volunteer_id: str) -> Dict[str, Any]:
        """
        Remove a volunteer from a position. Withdrawing an absent volunteer
        is a no-op that still returns the position.

        Raises:
            NotFoundError: Event or position absent
        """
        with tracer.start_as_current_span("registration.withdraw") as span:
            span.set_attributes({
                "event.id": event_id,
                "position.name": position_name,
                "volunteer.id": volunteer_id
            })

            updated = self.store.release_volunteer(event_id, position_name, volunteer_id)
            if updated is None:
                position = position_view(self.get_event(event_id), position_name)
                if position is None:
                    raise NotFoundError(f"Position '{position_name}' not found in event {event_id}")
                span.set_attribute("registration.noop", True)
                return position

            logger.info(f"Volunteer {volunteer_id} withdrew from '{position_name}' in event {event_id}")
            self.bus.publish(VolunteerWithdrawn(
                event_id=event_id,
                event_title=updated['title'],
                owner_id=updated['owner_id'],
                position_name=position_name,
                volunteer_id=volunteer_id
            ))
            return position_view(updated, position_name)

    def delete_event(self, event_id: str, requester_id: str) -> None:
        """Delete an event in one conditional write keyed on id and owner."""
        with tracer.start_as_current_span("registration.delete_event") as span:
            span.set_attributes({"event.id": event_id, "requester.id": requester_id})

            if self.store.delete_if(EntityStore.EVENTS, event_id, {'owner_id': requester_id}):
                logger.info(f"Event deleted: {event_id}")
                return

            if self.store.get(EntityStore.EVENTS, event_id) is None:
                raise NotFoundError(f"Event {event_id} not found")
            raise ForbiddenError("Only the owning NGO can delete this event")
