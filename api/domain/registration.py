# SPDX-License-Identifier: Apache-2.0

"""
Event and volunteer-position rules.

Pure functions: building events, positions and feedback from requests,
validating status transitions and detail edits, and naming the reason a
conditional write matched nothing. None of them touch storage.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from models.entities import Event, EventFeedback, VolunteerPosition
from models.enums import EventStatus
from models.requests import CreateEventRequest, EventFeedbackRequest, PositionSpec, UpdateEventRequest
from .errors import (
    AlreadyRegisteredError,
    CapacityExceededError,
    ConflictError,
    DomainError,
    DuplicateFeedbackError,
    EventClosedError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError
)
from .validation import ValidationResult


# Completed and Cancelled are terminal
VALID_STATUS_TRANSITIONS = {
    EventStatus.UPCOMING.value: [EventStatus.ONGOING.value, EventStatus.COMPLETED.value, EventStatus.CANCELLED.value],
    EventStatus.ONGOING.value: [EventStatus.COMPLETED.value, EventStatus.CANCELLED.value],
    EventStatus.COMPLETED.value: [],
    EventStatus.CANCELLED.value: [],
}


def validate_positions(specs: Iterable[PositionSpec], existing_names: Iterable[str] = ()) -> ValidationResult:
    """
    Validate position specs against each other and against existing positions.

    Args:
        specs: Positions requested
        existing_names: Names of positions the event already has

    Returns:
        ValidationResult with duplicate-name errors
    """
    errors = []
    seen = set(existing_names)
    for index, spec in enumerate(specs):
        name = spec.name.strip()
        if not name:
            errors.append(f"Position name at index {index} is required")
        elif name in seen:
            errors.append(f"Position '{name}' already exists")
        seen.add(name)
    return ValidationResult.from_errors(errors)


def build_positions(specs: Iterable[PositionSpec], existing_names: Iterable[str] = ()) -> List[VolunteerPosition]:
    """Build empty positions; raises ValidationFailedError on duplicate names."""
    specs = list(specs)
    validate_positions(specs, existing_names).raise_for_errors()
    return [VolunteerPosition(name=spec.name, capacity=spec.capacity) for spec in specs]


def build_event(owner_id: str, request: CreateEventRequest) -> Event:
    """Build a new Upcoming event owned by the given NGO."""
    errors = []
    if request.end_time < request.start_time:
        errors.append("Event end time must be after start time")
    ValidationResult.from_errors(errors).raise_for_errors()

    return Event(
        owner_id=owner_id,
        title=request.title.strip(),
        category=request.category,
        description=request.description,
        location=request.location.strip(),
        start_time=request.start_time,
        end_time=request.end_time,
        positions=build_positions(request.positions)
    )


def validate_status_transition(current_status: str, new_status: str) -> ValidationResult:
    """
    Validate an event status transition.

    Args:
        current_status: Current event status
        new_status: Desired new status

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []
    if new_status not in VALID_STATUS_TRANSITIONS.get(current_status, []):
        errors.append(f"Invalid status transition from {current_status} to {new_status}")
    return ValidationResult.from_errors(errors)


def explain_admission_failure(
    document: Optional[Dict[str, Any]],
    event_id: str,
    position_name: str,
    volunteer_id: str
) -> DomainError:
    """
    Name the precondition that made a conditional admission write match nothing.

    Checked in order: event exists, event open, position exists,
    volunteer not yet registered, slot available.
    """
    if document is None:
        return NotFoundError(f"Event {event_id} not found")

    event = Event.from_document(document)
    if not event.is_open_for_registration():
        return EventClosedError(f"Event {event_id} is not open for registration (status: {event.status})")

    position = event.get_position(position_name)
    if position is None:
        return NotFoundError(f"Position '{position_name}' not found in event {event_id}")

    if position.has_volunteer(volunteer_id):
        return AlreadyRegisteredError(f"Volunteer {volunteer_id} is already registered for '{position_name}'")

    return CapacityExceededError(f"No slots available for position '{position_name}'")


def position_view(document: Dict[str, Any], position_name: str) -> Optional[Dict[str, Any]]:
    """Project one position of an event for API responses; None if the event has no such position."""
    position = Event.from_document(document).get_position(position_name)
    if position is None:
        return None
    return {
        'event_id': document['id'],
        'name': position.name,
        'capacity': position.capacity,
        'registered': list(position.registered),
        'available': position.available,
    }


def plan_event_update(document: Dict[str, Any], request: UpdateEventRequest) -> Tuple[Dict[str, Any], bool]:
    """
    Work out the field changes an update request makes.

    Returns:
        The changes to apply and whether they move the event's dates
    """
    event = Event.from_document(document)
    changes = request.model_dump(exclude_none=True)

    start_time = changes.get('start_time', event.start_time)
    end_time = changes.get('end_time', event.end_time)
    errors = []
    if not changes:
        errors.append("No fields to update")
    if end_time < start_time:
        errors.append("Event end time must be after start time")
    ValidationResult.from_errors(errors).raise_for_errors()

    dates_changed = start_time != event.start_time or end_time != event.end_time
    return changes, dates_changed


def explain_update_failure(
    document: Optional[Dict[str, Any]],
    event_id: str,
    requester_id: str,
    dates_changed: bool
) -> DomainError:
    """Name the reason a conditional event update matched nothing."""
    if document is None:
        return NotFoundError(f"Event {event_id} not found")
    event = Event.from_document(document)
    if event.owner_id != requester_id:
        return ForbiddenError("Only the owning NGO can modify this event")
    if dates_changed and event.has_volunteers():
        return ValidationFailedError("Event dates cannot change once volunteers have registered")
    return ConflictError(f"Event {event_id} was modified concurrently")


def build_feedback(user_id: str, request: EventFeedbackRequest) -> EventFeedback:
    """Build a feedback entry from a participant's request."""
    return EventFeedback(user_id=user_id, rating=request.rating, comment=request.comment.strip())


def explain_feedback_failure(document: Optional[Dict[str, Any]], event_id: str, user_id: str) -> DomainError:
    """
    Name the precondition that made a conditional feedback write match nothing.

    Checked in order: event exists, event completed, author participated,
    author has not rated the event yet.
    """
    if document is None:
        return NotFoundError(f"Event {event_id} not found")

    event = Event.from_document(document)
    if event.status != EventStatus.COMPLETED.value:
        return ValidationFailedError("Feedback can only be submitted for completed events")
    if not event.is_participant(user_id):
        return ForbiddenError("Only participants can submit feedback")
    if event.has_feedback_from(user_id):
        return DuplicateFeedbackError(f"User {user_id} has already submitted feedback for event {event_id}")
    return ConflictError(f"Event {event_id} was modified concurrently")
