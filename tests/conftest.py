"""
Pytest configuration and fixtures for the helpdesk sequence tests.

This module provides:
- Test database setup and teardown
- Flask test client and JWT auth headers
- A controllable clock for the sequence engine
- Mock channel sender
- Common test data
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock
from flask_jwt_extended import create_access_token

from helpdesk.main import create_app
from helpdesk.extensions import db
from helpdesk.models import Organization, Channel, Contact, Conversation
from helpdesk.services.scheduler import SequenceScheduler


class FrozenClock:
    """Naive UTC clock that only moves when told to."""

    def __init__(self, now=None):
        self.current = now or datetime(2024, 5, 6, 9, 0, 0)

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def app():
    """Create and configure a new app instance for each test."""
    app = create_app('testing')
    
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()

@pytest.fixture
def db_session(app):
    """Database session for tests."""
    yield db.session

@pytest.fixture
def clock():
    return FrozenClock()

@pytest.fixture
def engine(app, clock):
    """The application's sequence engine, pinned to the test clock."""
    engine = app.extensions['sequence_engine']
    engine.clock = clock
    return engine

@pytest.fixture
def sample_organization(db_session):
    """Create a sample organization for testing."""
    organization = Organization(name="Acme Support")
    db_session.add(organization)
    db_session.commit()
    return organization

@pytest.fixture
def other_organization(db_session):
    organization = Organization(name="Other Org")
    db_session.add(organization)
    db_session.commit()
    return organization

@pytest.fixture
def sample_channel(db_session, sample_organization):
    """Create a sample WhatsApp channel for testing."""
    channel = Channel(
        organization_id=sample_organization.id,
        type="whatsapp",
        name="Support WhatsApp",
        config={"phone_number_id": "1234567890"}
    )
    db_session.add(channel)
    db_session.commit()
    return channel

@pytest.fixture
def sample_contact(db_session, sample_organization):
    contact = Contact(
        organization_id=sample_organization.id,
        identifier="+15551234567",
        name="Jane Doe"
    )
    db_session.add(contact)
    db_session.commit()
    return contact

@pytest.fixture
def sample_conversation(db_session, sample_organization, sample_channel, sample_contact):
    """Create a sample conversation for testing."""
    conversation = Conversation(
        organization_id=sample_organization.id,
        channel_id=sample_channel.id,
        contact_id=sample_contact.id
    )
    db_session.add(conversation)
    db_session.commit()
    return conversation

@pytest.fixture
def sample_sequence(engine, sample_organization):
    """An ACTIVE three-step sequence: greeting, 5 minute pause, follow-up."""
    return engine.create_sequence(
        sample_organization.id,
        name="Welcome",
        shortcut="welcome",
        status="ACTIVE",
        steps=[
            {"type": "TEXT", "content": {"text": "Hi there!"}},
            {"type": "DELAY", "content": {"delay_minutes": 5}},
            {"type": "TEXT", "content": {"text": "Anything else we can help with?"}}
        ]
    )

@pytest.fixture
def delayed_sequence(engine, sample_organization):
    """An ACTIVE sequence that opens with a 10 minute pause."""
    return engine.create_sequence(
        sample_organization.id,
        name="Follow up",
        shortcut="followup",
        status="ACTIVE",
        steps=[
            {"type": "DELAY", "content": {"delay_minutes": 10}},
            {"type": "TEXT", "content": {"text": "Just checking in"}}
        ]
    )

@pytest.fixture
def auth_headers(app, sample_organization):
    """Bearer token for an agent of the sample organization."""
    token = create_access_token(
        identity="agent-1",
        additional_claims={"organization_id": sample_organization.id}
    )
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def mock_channel_sender():
    """Mock channel sender for testing."""
    sender = Mock()
    sender.send_step.return_value = {
        "success": True,
        "message_id": "msg-123"
    }
    return sender

@pytest.fixture
def scheduler(app, engine, mock_channel_sender):
    """Scheduler wired to the test engine and the mock sender; never started."""
    return SequenceScheduler(
        app,
        engine=engine,
        sender=mock_channel_sender,
        notifier=engine.wake_notifier
    )
