"""Tests for the pure placement rules."""

import random

from models import Member, Role, Slot, Team, TeamSession
from services.placement_service import (
    pick_field_team,
    pick_keeper_team,
    pick_substitute_team,
    place_field_player,
    place_keeper,
    reshuffle_layout,
)


def _teams(*field_loads, subs=None):
    subs = subs or [0] * len(field_loads)
    return [
        Team(
            field_ids=[f"t{i}f{n}" for n in range(load)],
            substitute_ids=[f"t{i}s{n}" for n in range(sub)],
        )
        for i, (load, sub) in enumerate(zip(field_loads, subs))
    ]


class TestPickKeeperTeam:
    def test_none_when_every_team_has_keeper(self):
        teams = [Team(keeper_id="a"), Team(keeper_id="b")]
        assert pick_keeper_team(teams, random.Random(0)) is None

    def test_only_keeperless_teams_are_candidates(self):
        teams = [Team(keeper_id="a"), Team(), Team(keeper_id="c"), Team()]
        picks = {pick_keeper_team(teams, random.Random(seed)) for seed in range(50)}
        assert picks == {1, 3}


class TestPickFieldTeam:
    def test_picks_among_least_loaded(self):
        teams = _teams(2, 1, 1)
        picks = {pick_field_team(teams, 4, random.Random(seed)) for seed in range(50)}
        assert picks == {1, 2}

    def test_ignores_full_teams(self):
        teams = _teams(4, 3, 4)
        assert pick_field_team(teams, 4, random.Random(0)) == 1

    def test_none_when_all_full(self):
        assert pick_field_team(_teams(4, 4), 4, random.Random(0)) is None


class TestPickSubstituteTeam:
    def test_prefers_fewest_substitutes(self):
        teams = _teams(4, 4, 4, subs=[1, 0, 1])
        assert pick_substitute_team(teams, random.Random(0)) == 1


class TestPlaceFieldPlayer:
    def test_appends_to_team(self):
        teams = _teams(1, 0)
        placement = place_field_player(teams, "new", 4, random.Random(0))
        assert placement.slot == Slot.FIELD
        assert placement.team_index == 1
        assert teams[1].field_ids == ["new"]

    def test_falls_back_to_substitute(self):
        teams = _teams(2, 2, subs=[1, 0])
        placement = place_field_player(teams, "late", 2, random.Random(0))
        assert placement.slot == Slot.SUBSTITUTE
        assert placement.team_index == 1
        assert placement.label == "substitute@1"
        assert teams[1].substitute_ids == ["late"]


class TestPlaceKeeper:
    def test_returns_none_without_mutation_when_full(self):
        teams = [Team(keeper_id="a"), Team(keeper_id="b")]
        assert place_keeper(teams, "c", random.Random(0)) is None
        assert [team.keeper_id for team in teams] == ["a", "b"]

    def test_seats_keeper(self):
        teams = [Team(keeper_id="a"), Team()]
        placement = place_keeper(teams, "b", random.Random(0))
        assert placement.slot == Slot.KEEPER
        assert placement.label == "1"
        assert teams[1].keeper_id == "b"


class TestReshuffleLayout:
    def _session(self, keepers, fielders, team_count=3, capacity=2):
        session = TeamSession(scope_id="chat", team_count=team_count, capacity_per_team=capacity)
        for n in range(keepers):
            session.roster[f"k{n}"] = Member(id=f"k{n}", display_name=f"K{n}", desired_role=Role.KEEPER)
        for n in range(fielders):
            session.roster[f"f{n}"] = Member(id=f"f{n}", display_name=f"F{n}", desired_role=Role.FIELD)
        return session

    def test_extra_keepers_are_demoted_to_field(self):
        session = self._session(keepers=5, fielders=2)
        teams, placements = reshuffle_layout(session, random.Random(7))

        assert sum(1 for team in teams if team.keeper_id) == 3
        demoted = [mid for mid, p in placements.items() if mid.startswith("k") and p.slot != Slot.KEEPER]
        assert len(demoted) == 2
        assert set(placements) == set(session.roster)

    def test_balanced_and_overflow_goes_to_substitutes(self):
        session = self._session(keepers=0, fielders=8)
        teams, placements = reshuffle_layout(session, random.Random(3))

        assert [len(team.field_ids) for team in teams] == [2, 2, 2]
        assert sum(len(team.substitute_ids) for team in teams) == 2
        assert max(len(t.substitute_ids) for t in teams) - min(len(t.substitute_ids) for t in teams) <= 1

    def test_does_not_mutate_session(self):
        session = self._session(keepers=1, fielders=3)
        before = [team.member_ids() for team in session.teams]
        reshuffle_layout(session, random.Random(0))
        assert [team.member_ids() for team in session.teams] == before

    def test_single_keeper_lands_on_varied_teams(self):
        session = self._session(keepers=1, fielders=0)
        seats = set()
        for seed in range(40):
            teams, _ = reshuffle_layout(session, random.Random(seed))
            seats.add(next(i for i, team in enumerate(teams) if team.keeper_id))
        assert len(seats) > 1
