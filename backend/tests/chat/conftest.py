"""Fixtures for chat tests."""

import pytest

from cryptohub.chat import ChatRoomProtocol, ChatService, Session
from cryptohub.identity import UserIdentityResolver


class Inbox:
    """Records the events delivered to one session."""

    def __init__(self):
        self.events = []

    async def send(self, event, data):
        self.events.append((event, data))

    def names(self):
        return [event for event, _ in self.events]

    def of(self, event):
        return [data for name, data in self.events if name == event]

    def clear(self):
        self.events.clear()


@pytest.fixture
def resolver(datastore):
    return UserIdentityResolver(datastore)


@pytest.fixture
def service(datastore, resolver):
    return ChatService(datastore, datastore, resolver)


@pytest.fixture
def protocol(service):
    return ChatRoomProtocol(service)


@pytest.fixture
def connect(protocol):
    """Open a session for an identity; returns (session, inbox)."""

    def _connect(identity):
        inbox = Inbox()
        session = Session(identity=identity, send=inbox.send)
        protocol.connect(session)
        return session, inbox

    return _connect
