"""Tests for DisplaySynchronizer and the in-memory display board."""

import pytest

from conftest import ORGANIZER
from core.display_sync import DisplaySurfaceMissing, DisplaySynchronizer, InMemoryDisplayBoard
from core.exceptions import DisplaySyncFailure
from models import Role, TeamSession


class TestInMemoryDisplayBoard:
    def test_create_update_get(self):
        board = InMemoryDisplayBoard()
        handle = board.create("chat", "v1")
        board.update(handle, "v2")
        assert board.get(handle) == "v2"
        assert board.owner_of(handle) == "chat"

    def test_update_missing_surface(self):
        board = InMemoryDisplayBoard()
        with pytest.raises(DisplaySurfaceMissing):
            board.update("gone", "content")


class TestDisplaySynchronizer:
    def test_creates_surface_when_no_handle(self, board):
        session = TeamSession(scope_id="chat", team_count=2, capacity_per_team=4)
        handle = DisplaySynchronizer(board).upsert(session)

        assert session.display_handle == handle
        assert board.creates == 1
        assert "Teams for chat" in board.get(handle)

    def test_updates_existing_surface(self, board):
        session = TeamSession(scope_id="chat", team_count=2, capacity_per_team=4)
        sync = DisplaySynchronizer(board)
        first = sync.upsert(session)
        second = sync.upsert(session)

        assert first == second
        assert board.creates == 1
        assert board.updates == 1

    def test_uneditable_surface_is_recreated(self, board):
        session = TeamSession(scope_id="chat", team_count=2, capacity_per_team=4)
        sync = DisplaySynchronizer(board)
        old = sync.upsert(session)

        board.fail_updates = True
        new = sync.upsert(session)

        assert new != old
        assert session.display_handle == new

    def test_create_failure_raises(self, board):
        session = TeamSession(scope_id="chat", team_count=2, capacity_per_team=4)
        board.fail_creates = True

        with pytest.raises(DisplaySyncFailure):
            DisplaySynchronizer(board).upsert(session)
        assert session.display_handle is None


class TestEngineDisplayFallback:
    def test_missing_surface_is_replaced_on_next_join(self, engine, store, board):
        engine.create_session("chat", 2, 4, ORGANIZER)
        engine.register_member("chat", "alice", "Alice", Role.FIELD)
        first = store.load("chat").display_handle
        assert first is not None
        assert "Alice" in board.get(first)

        board.remove(first)
        engine.register_member("chat", "bob", "Bob", Role.FIELD)

        second = store.load("chat").display_handle
        assert second is not None
        assert second != first
        assert "Bob" in board.get(second)
        assert board.get(first) is None

    def test_handle_change_is_persisted_again(self, engine, store, board):
        engine.create_session("chat", 2, 4, ORGANIZER)
        saves = store.save_calls

        board.remove(store.load("chat").display_handle)
        engine.register_member("chat", "alice", "Alice", Role.FIELD)

        assert store.save_calls == saves + 2

    def test_failed_create_is_retried_on_next_join(self, engine, store, board):
        board.fail_creates = True
        engine.create_session("chat", 2, 4, ORGANIZER)
        assert store.load("chat").display_handle is None

        board.fail_creates = False
        engine.register_member("chat", "alice", "Alice", Role.FIELD)

        handle = store.load("chat").display_handle
        assert handle is not None
        assert "Alice" in board.get(handle)
