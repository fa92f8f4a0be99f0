"""Shared fixtures and fakes for the team draw tests."""

import random
from collections import Counter

import pytest

from core.authorization import AllowlistAuthorization
from core.display_sync import DisplaySynchronizer, InMemoryDisplayBoard
from core.locks import ScopeLockRegistry
from core.session_manager import AssignmentEngine
from core.session_store import MemorySessionStore
from models import Slot

ORGANIZER = "organizer"


class FlakyStore(MemorySessionStore):
    """Memory store whose saves/loads can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_saves = False
        self.fail_loads = False
        self.save_calls = 0

    def save(self, scope_id, session):
        self.save_calls += 1
        if self.fail_saves:
            raise OSError("disk full")
        super().save(scope_id, session)

    def load(self, scope_id):
        if self.fail_loads:
            raise OSError("disk unreadable")
        return super().load(scope_id)


class RecordingBoard(InMemoryDisplayBoard):
    """Display board that counts calls and can be told to fail."""

    def __init__(self):
        super().__init__()
        self.creates = 0
        self.updates = 0
        self.fail_creates = False
        self.fail_updates = False

    def create(self, scope_id, content):
        self.creates += 1
        if self.fail_creates:
            raise ConnectionError("chat api unreachable")
        return super().create(scope_id, content)

    def update(self, handle, content):
        self.updates += 1
        if self.fail_updates:
            raise PermissionError("message can no longer be edited")
        super().update(handle, content)


class BrokenAuthorization:
    def is_organizer(self, scope_id, principal_id):
        raise RuntimeError("identity provider timeout")


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def board():
    return RecordingBoard()


@pytest.fixture
def authorization():
    return AllowlistAuthorization({ORGANIZER})


@pytest.fixture
def engine(store, board, authorization):
    return AssignmentEngine(
        store=store,
        synchronizer=DisplaySynchronizer(board),
        authorization=authorization,
        lock_registry=ScopeLockRegistry(timeout=2.0),
        default_capacity_per_team=4,
        rng=random.Random(1234),
    )


@pytest.fixture
def check_invariants():
    """Return a checker asserting the session invariants."""

    def _check(session):
        seen = Counter()
        for index, team in enumerate(session.teams):
            assert len(team.field_ids) <= session.capacity_per_team
            for member_id in team.member_ids():
                seen[member_id] += 1
            if team.keeper_id:
                assert session.roster[team.keeper_id].placement.slot == Slot.KEEPER
                assert session.roster[team.keeper_id].placement.team_index == index
            for member_id in team.field_ids:
                assert session.roster[member_id].placement.slot == Slot.FIELD
                assert session.roster[member_id].placement.team_index == index
            for member_id in team.substitute_ids:
                assert session.roster[member_id].placement.slot == Slot.SUBSTITUTE
                assert session.roster[member_id].placement.team_index == index

        assert all(count == 1 for count in seen.values())
        assert set(seen) == set(session.roster)
        assert session.keeper_count <= session.team_count

    return _check