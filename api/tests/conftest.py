# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta, timezone

from models.entities import User
from models.enums import UserRole
from models.requests import CreateEventRequest, CreateIssueRequest, PositionSpec
from services.collaboration import CollaborationWorkflow
from services.event_bus import EventBus
from services.memory_store import InMemoryStore
from services.notifications import NotificationDispatcher
from services.queries import QueryFacade
from services.registration import RegistrationEngine
from services.store import EntityStore

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'


@pytest.fixture
def store():
    """Fresh in-memory entity store."""
    return InMemoryStore()


@pytest.fixture
def bus():
    """Event bus with no subscribers."""
    return EventBus()


@pytest.fixture
def dispatcher(store, bus):
    """Notification dispatcher subscribed to the bus, as the application wires it."""
    dispatcher = NotificationDispatcher(store)
    bus.subscribe(dispatcher.handle)
    return dispatcher


@pytest.fixture
def registration(store, bus, dispatcher):
    return RegistrationEngine(store, bus)


@pytest.fixture
def workflow(store, bus, dispatcher):
    return CollaborationWorkflow(store, bus)


@pytest.fixture
def queries(store):
    return QueryFacade(store)


@pytest.fixture
def make_user(store):
    """Factory storing a user reference with the given role."""
    counter = {'n': 0}

    def _make_user(role: UserRole = UserRole.CITIZEN, name: str = None):
        counter['n'] += 1
        user = User(
            name=name or f"{role.value.title()} {counter['n']}",
            email=f"{role.value}{counter['n']}@example.org",
            role=role
        ).to_document()
        store.insert(EntityStore.USERS, user)
        return user

    return _make_user


@pytest.fixture
def ngo(make_user):
    return make_user(UserRole.NGO, "Green Hands")


@pytest.fixture
def other_ngo(make_user):
    return make_user(UserRole.NGO, "Clean Water Trust")


@pytest.fixture
def citizen(make_user):
    return make_user(UserRole.CITIZEN, "Asha")


@pytest.fixture
def event_request():
    """Two-position event starting tomorrow."""
    start = datetime.now(timezone.utc) + timedelta(days=1)
    return CreateEventRequest(
        title="Lake Cleanup Drive",
        category="Environment",
        description="Clearing plastic from the lake shore",
        location="Ulsoor Lake",
        start_time=start,
        end_time=start + timedelta(hours=4),
        positions=[
            PositionSpec(name="Cleaner", capacity=2),
            PositionSpec(name="Coordinator", capacity=1)
        ]
    )


@pytest.fixture
def event(registration, ngo, event_request):
    return registration.create_event(ngo['id'], event_request)


@pytest.fixture
def issue_request():
    return CreateIssueRequest(
        title="Broken street light",
        body="The light at the corner has been out for a week",
        location="MG Road",
        tags=["Electricity", "Road"]
    )


@pytest.fixture
def issue(workflow, citizen, issue_request):
    return workflow.create_issue(citizen['id'], issue_request)


@pytest.fixture
def app():
    """Application wired to the in-memory store."""
    from app import create_app

    application = create_app({
        'STORE_BACKEND': 'memory',
        'ENVIRONMENT': 'test',
        'OTEL_ENABLED': False,
        'REDIS_URL': '',
        'AMQP_URL': '',
        'BASE_URL': 'http://api.test'
    })
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    """Create test client."""
    with app.test_client() as client:
        yield client
