"""
Qualification recompute against the database: flags, team status cascade,
precedence with other status writers and failure isolation.
"""
import pytest

from tournament_hub.errors import NotFoundError
from tournament_hub.events.bus import EventBus, StandingUpdated
from tournament_hub.config.settings import DispatchMode, settings
from tournament_hub.orm import GroupStanding, StatusSource, TeamStatus
from tournament_hub.services.qualification_service import QualificationService
from tournament_hub.tests.factories import (
    make_tournament, make_team, make_group, make_standing, make_scored_group,
    fetch_standings, fetch_team,
)


def qualified_names(standings):
    return {name for name, s in standings.items() if s.is_qualified}


class TestRecomputeGroup:

    async def test_scenario_ten_eight_eight_five(self, db, session_factory):
        tournament = await make_tournament(db, teams_per_group_qualify=2)
        group, _ = await make_scored_group(db, tournament, {"Alpha": 10, "Bravo": 8, "Charlie": 8, "Delta": 5})

        result = await QualificationService.recompute_group(db, group.id)

        standings = await fetch_standings(session_factory, group.id)
        assert qualified_names(standings) == {"Alpha", "Bravo"}
        assert result.qualify_count == 2
        assert len(result.qualified_team_ids) == 2

    async def test_team_statuses_follow_the_flags(self, db, session_factory):
        tournament = await make_tournament(db)
        group, standings = await make_scored_group(db, tournament, {"A": 9, "B": 6, "C": 3})

        await QualificationService.recompute_group(db, group.id)

        a = await fetch_team(session_factory, standings["A"].team_id)
        c = await fetch_team(session_factory, standings["C"].team_id)
        assert a.status == TeamStatus.QUALIFIED
        assert a.status_source == StatusSource.QUALIFICATION
        assert c.status == TeamStatus.REGISTERED

    async def test_dropping_out_reverts_to_registered(self, db, session_factory):
        tournament = await make_tournament(db)
        group, standings = await make_scored_group(db, tournament, {"A": 9, "B": 6, "C": 3})
        await QualificationService.recompute_group(db, group.id)

        async with session_factory() as session:
            row = await session.get(GroupStanding, standings["C"].id)
            row.points = 20
            await session.commit()

        async with session_factory() as session:
            await QualificationService.recompute_group(session, group.id)

        b = await fetch_team(session_factory, standings["B"].team_id)
        c = await fetch_team(session_factory, standings["C"].team_id)
        assert b.status == TeamStatus.REGISTERED
        assert c.status == TeamStatus.QUALIFIED
        assert qualified_names(await fetch_standings(session_factory, group.id)) == {"A", "C"}

    async def test_revert_never_touches_unpaid_teams(self, db, session_factory):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament)
        leaders = [await make_team(db, tournament, name) for name in ("A", "B")]
        unpaid = await make_team(db, tournament, "Unpaid", status=TeamStatus.PENDING_PAYMENT)
        for i, team in enumerate(leaders):
            await make_standing(db, group, team, points=10 - i)
        await make_standing(db, group, unpaid, points=0)

        await QualificationService.recompute_group(db, group.id)

        assert (await fetch_team(session_factory, unpaid.id)).status == TeamStatus.PENDING_PAYMENT

    async def test_recompute_is_idempotent(self, db, session_factory):
        tournament = await make_tournament(db)
        group, _ = await make_scored_group(db, tournament, {"A": 5, "B": 5, "C": 4, "D": 1})

        first = await QualificationService.recompute_group(db, group.id)
        flags_after_first = qualified_names(await fetch_standings(session_factory, group.id))

        async with session_factory() as session:
            second = await QualificationService.recompute_group(session, group.id)

        assert qualified_names(await fetch_standings(session_factory, group.id)) == flags_after_first
        assert second.qualified_team_ids == first.qualified_team_ids
        assert second.flags_changed == 0

    async def test_qualify_count_defaults_to_two(self, db, session_factory):
        tournament = await make_tournament(db, teams_per_group_qualify=None)
        group, _ = await make_scored_group(db, tournament, {"A": 3, "B": 2, "C": 1})

        result = await QualificationService.recompute_group(db, group.id)

        assert result.qualify_count == 2
        assert qualified_names(await fetch_standings(session_factory, group.id)) == {"A", "B"}

    @pytest.mark.parametrize("configured", [-1, 0])
    async def test_non_positive_default_falls_back_to_two(self, db, session_factory, monkeypatch, configured):
        monkeypatch.setattr(settings, "DEFAULT_TEAMS_PER_GROUP_QUALIFY", configured)
        tournament = await make_tournament(db, teams_per_group_qualify=None)
        group, _ = await make_scored_group(db, tournament, {"A": 10, "B": 8, "C": 8, "D": 5})

        result = await QualificationService.recompute_group(db, group.id)

        assert result.qualify_count == 2
        assert len(result.qualified_team_ids) == 2
        assert len(result.unqualified_team_ids) == 2
        assert qualified_names(await fetch_standings(session_factory, group.id)) == {"A", "B"}

    async def test_qualify_count_from_tournament(self, db, session_factory):
        tournament = await make_tournament(db, teams_per_group_qualify=3)
        group, _ = await make_scored_group(db, tournament, {"A": 4, "B": 3, "C": 2, "D": 1})

        await QualificationService.recompute_group(db, group.id)

        assert qualified_names(await fetch_standings(session_factory, group.id)) == {"A", "B", "C"}

    async def test_admin_override_survives_recompute(self, db, session_factory):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament)
        pinned = await make_team(db, tournament, "Pinned", status=TeamStatus.ELIMINATED,
                                 status_source=StatusSource.ADMIN)
        other = await make_team(db, tournament, "Other")
        await make_standing(db, group, pinned, points=10)
        await make_standing(db, group, other, points=5)

        await QualificationService.recompute_group(db, group.id)

        assert (await fetch_team(session_factory, pinned.id)).status == TeamStatus.ELIMINATED
        assert (await fetch_team(session_factory, other.id)).status == TeamStatus.QUALIFIED
        # The flag itself is still derived from the standings
        assert qualified_names(await fetch_standings(session_factory, group.id)) == {"Pinned", "Other"}

    async def test_groups_are_independent(self, db, session_factory):
        tournament = await make_tournament(db, teams_per_group_qualify=1)
        group_a, _ = await make_scored_group(db, tournament, {"A1": 3, "A2": 1}, "Group A")
        group_b, _ = await make_scored_group(db, tournament, {"B1": 0, "B2": 2}, "Group B")

        await QualificationService.recompute_group(db, group_a.id)

        assert qualified_names(await fetch_standings(session_factory, group_a.id)) == {"A1"}
        assert qualified_names(await fetch_standings(session_factory, group_b.id)) == set()

    async def test_empty_group(self, db):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament)

        result = await QualificationService.recompute_group(db, group.id)

        assert result.qualified_team_ids == []

    async def test_unknown_group(self, db):
        with pytest.raises(NotFoundError):
            await QualificationService.recompute_group(db, "missing-group")


class TestStandingUpdatedHandler:

    async def test_handler_recomputes_in_its_own_session(self, db, session_factory):
        tournament = await make_tournament(db)
        group, standings = await make_scored_group(db, tournament, {"A": 1, "B": 2, "C": 3})

        handler = QualificationService.standing_updated_handler(session_factory)
        result = await handler(StandingUpdated(standing_id=standings["A"].id, group_id=group.id))

        assert set(result.qualified_team_ids) == {standings["B"].team_id, standings["C"].team_id}

    async def test_failures_are_logged_not_raised(self, session_factory, caplog):
        bus = EventBus(mode=DispatchMode.INLINE)
        bus.subscribe(StandingUpdated, QualificationService.standing_updated_handler(session_factory))

        await bus.publish(StandingUpdated(standing_id="s", group_id="missing-group"))

        assert len(bus.recent_failures) == 1
        assert "missing-group" in caplog.text
