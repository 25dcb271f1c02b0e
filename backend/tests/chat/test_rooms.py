"""Tests for RoomRegistry."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from cryptohub.chat import InRoom, NoRoom, RoomRegistry, Session
from cryptohub.identity import Identity


async def _noop(event, data):
    pass


def make_session(name="alice"):
    return Session(identity=Identity(subject=f"auth0|{name}", name=name), send=_noop)


class TestRoomRegistry:
    """Membership bookkeeping."""

    def test_new_session_has_no_room(self):
        """Test the initial state of a session."""
        session = make_session()
        assert isinstance(session.state, NoRoom)
        assert session.room_id is None

    def test_move_into_room(self):
        """Test joining a first room."""
        rooms = RoomRegistry()
        session = make_session()
        assert rooms.move(session, "bitcoin") is None
        assert session.state == InRoom("bitcoin")
        assert rooms.members("bitcoin") == [session]

    def test_move_between_rooms(self):
        """Test that a session is only ever in one room."""
        rooms = RoomRegistry()
        session = make_session()
        rooms.move(session, "bitcoin")
        assert rooms.move(session, "ethereum") == "bitcoin"
        assert rooms.members("bitcoin") == []
        assert rooms.members("ethereum") == [session]

    def test_empty_room_disappears(self):
        """Test that a room exists only while it has members."""
        rooms = RoomRegistry()
        session = make_session()
        rooms.move(session, "bitcoin")
        assert "bitcoin" in rooms
        rooms.remove(session)
        assert "bitcoin" not in rooms
        assert len(rooms) == 0

    def test_remove_from_named_room(self):
        """Test leaving the room the session is in."""
        rooms = RoomRegistry()
        session = make_session()
        rooms.move(session, "bitcoin")
        assert rooms.remove(session, "bitcoin") == "bitcoin"
        assert isinstance(session.state, NoRoom)

    def test_remove_from_other_room_is_noop(self):
        """Test that leaving a room the session is not in changes nothing."""
        rooms = RoomRegistry()
        session = make_session()
        rooms.move(session, "bitcoin")
        assert rooms.remove(session, "ethereum") is None
        assert session.room_id == "bitcoin"
        assert rooms.members("bitcoin") == [session]

    def test_remove_without_room(self):
        """Test removing a session that never joined."""
        rooms = RoomRegistry()
        assert rooms.remove(make_session()) is None

    def test_members_are_a_snapshot(self):
        """Test that the member list is a copy."""
        rooms = RoomRegistry()
        alice, bob = make_session("alice"), make_session("bob")
        rooms.move(alice, "bitcoin")
        rooms.move(bob, "bitcoin")
        members = rooms.members("bitcoin")
        rooms.remove(bob)
        assert len(members) == 2
        assert rooms.members("bitcoin") == [alice]


ROOMS = ["bitcoin", "ethereum", "cardano"]


def assert_single_membership(rooms, sessions):
    """Every session is listed exactly in the room it believes it is in."""
    listed = [member.id for room_id in ROOMS for member in rooms.members(room_id)]
    assert len(listed) == len(set(listed))
    for room_id in ROOMS:
        expected = {session.id for session in sessions if session.room_id == room_id}
        assert {member.id for member in rooms.members(room_id)} == expected


class TestConcurrentMembership:
    """Joins and leaves racing from many threads."""

    def test_concurrent_moves_lose_no_update(self):
        """Test that every session ends up listed only in the room it last joined."""
        rooms = RoomRegistry()
        sessions = [make_session(f"user{i}") for i in range(40)]

        def churn(session, offset):
            for step in range(200):
                rooms.move(session, ROOMS[(offset + step) % len(ROOMS)])
            return session.room_id

        with ThreadPoolExecutor(max_workers=8) as pool:
            last_joined = list(pool.map(churn, sessions, range(len(sessions))))

        for offset, room_id in enumerate(last_joined):
            assert room_id == ROOMS[(offset + 199) % len(ROOMS)]
        assert_single_membership(rooms, sessions)
        assert sum(len(rooms.members(room_id)) for room_id in ROOMS) == len(sessions)

    def test_concurrent_moves_and_removes(self):
        """Test that racing joins and leaves keep membership consistent."""
        rooms = RoomRegistry()
        sessions = [make_session(f"user{i}") for i in range(40)]

        def churn(session, offset):
            for step in range(100):
                rooms.move(session, ROOMS[(offset + step) % len(ROOMS)])
                if step % 3 == 1:
                    rooms.remove(session)
            if offset % 2:
                rooms.remove(session)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(churn, sessions, range(len(sessions))))

        assert_single_membership(rooms, sessions)
        for offset, session in enumerate(sessions):
            if offset % 2:
                assert session.room_id is None
            else:
                assert session.room_id is not None
        assert sum(len(rooms.members(room_id)) for room_id in ROOMS) == len(sessions) // 2


@pytest.mark.asyncio
class TestConcurrentJoins:
    """Joins racing through the protocol on one event loop."""

    async def test_gathered_joins(self, protocol, connect):
        """Test that concurrent join_room calls leave each session in its last room."""
        sessions = [connect(Identity(subject=f"auth0|user{i}", name=f"user{i}"))[0] for i in range(30)]

        await asyncio.gather(*(protocol.join_room(s, ROOMS[i % 3]) for i, s in enumerate(sessions)))
        await asyncio.gather(*(protocol.join_room(s, ROOMS[(i + 1) % 3]) for i, s in enumerate(sessions)))

        for i, session in enumerate(sessions):
            assert session.room_id == ROOMS[(i + 1) % 3]
        assert_single_membership(protocol.rooms, sessions)
        assert sum(len(protocol.rooms.members(room_id)) for room_id in ROOMS) == len(sessions)
