"""Concurrency tests: many threads hitting one session."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import ORGANIZER
from core.exceptions import DuplicateRegistration, RoleUnavailable, SessionBusy
from models import Role, Slot


def test_concurrent_joins_have_no_lost_updates(engine, store, check_invariants):
    teams, capacity, joins = 4, 5, 30
    engine.create_session("chat", teams, capacity, ORGANIZER)
    barrier = threading.Barrier(joins)

    def join(n):
        barrier.wait()
        return engine.register_member("chat", f"p{n}", f"Player {n}", Role.FIELD)

    with ThreadPoolExecutor(max_workers=joins) as pool:
        placements = list(pool.map(join, range(joins)))

    session = store.load("chat")
    placed = [p for p in placements if p.slot == Slot.FIELD]
    substitutes = [p for p in placements if p.slot == Slot.SUBSTITUTE]

    assert len(placed) == min(joins, teams * capacity)
    assert len(substitutes) == joins - teams * capacity
    assert len(session.roster) == joins
    assert session.revision == 1 + joins
    assert [len(team.field_ids) for team in session.teams] == [capacity] * teams
    check_invariants(session)


def test_concurrent_duplicate_joins_register_once(engine, store):
    engine.create_session("chat", 2, 4, ORGANIZER)
    attempts = 12
    barrier = threading.Barrier(attempts)

    def join(_):
        barrier.wait()
        try:
            engine.register_member("chat", "alice", "Alice", Role.FIELD)
            return "ok"
        except DuplicateRegistration:
            return "duplicate"

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(join, range(attempts)))

    assert results.count("ok") == 1
    assert results.count("duplicate") == attempts - 1
    assert store.load("chat").revision == 2


def test_concurrent_keepers_fill_each_slot_once(engine, store, check_invariants):
    engine.create_session("chat", 4, 4, ORGANIZER)
    attempts = 10

    def join(n):
        try:
            return engine.register_member("chat", f"k{n}", f"Keeper {n}", Role.KEEPER)
        except RoleUnavailable:
            return None

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        results = list(pool.map(join, range(attempts)))

    seated = [p for p in results if p is not None]
    assert sorted(p.team_index for p in seated) == [0, 1, 2, 3]
    check_invariants(store.load("chat"))


def test_joins_and_reshuffles_interleave_safely(engine, store, check_invariants):
    engine.create_session("chat", 3, 3, ORGANIZER)

    def work(n):
        if n % 5 == 0:
            engine.reshuffle("chat", ORGANIZER)
        else:
            engine.register_member("chat", f"p{n}", f"P{n}", Role.FIELD)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(40)))

    session = store.load("chat")
    assert len(session.roster) == 32
    loads = [len(team.field_ids) for team in session.teams]
    assert max(loads) - min(loads) <= 1
    check_invariants(session)


def test_lock_wait_is_bounded(engine):
    engine.create_session("chat", 2, 4, ORGANIZER)
    engine.locks.timeout = 0.05

    held = threading.Event()
    release = threading.Event()

    def hold_lock():
        with engine.locks.hold("chat"):
            held.set()
            release.wait(2)

    holder = threading.Thread(target=hold_lock)
    holder.start()
    held.wait(2)
    try:
        with pytest.raises(SessionBusy):
            engine.register_member("chat", "alice", "Alice", Role.FIELD)
        # other scopes are unaffected
        engine.create_session("other", 2, 4, ORGANIZER)
    finally:
        release.set()
        holder.join()

    assert engine.register_member("chat", "alice", "Alice", Role.FIELD).slot == Slot.FIELD
