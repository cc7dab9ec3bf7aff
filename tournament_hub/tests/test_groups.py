"""
Group batch creation and team-to-group assignment.
"""
import pytest

from tournament_hub.errors import ValidationError, NotFoundError, ConflictError, ErrorCode
from tournament_hub.services.group_service import GroupService, group_names
from tournament_hub.services.standing_service import StandingService
from tournament_hub.tests.factories import (
    make_tournament, make_team, make_group, make_standing, fetch_standings, fetch_team,
)


class TestCreateGroups:

    def test_names_start_at_a(self):
        assert group_names(3) == ["Group A", "Group B", "Group C"]
        assert group_names(26)[-1] == "Group Z"

    @pytest.mark.parametrize("count", [0, -1, 27])
    def test_out_of_range(self, count):
        with pytest.raises(ValidationError):
            group_names(count)

    async def test_creates_k_groups(self, db):
        tournament = await make_tournament(db)

        groups = await GroupService.create_groups(db, tournament.id, 4)

        assert [g.name for g in groups] == ["Group A", "Group B", "Group C", "Group D"]
        assert all(g.tournament_id == tournament.id for g in groups)
        assert len(await GroupService.list_groups(db, tournament.id)) == 4

    async def test_unknown_tournament(self, db):
        with pytest.raises(ValidationError):
            await GroupService.create_groups(db, "no-such-tournament", 2)

    async def test_second_call_duplicates(self, db):
        tournament = await make_tournament(db)

        await GroupService.create_groups(db, tournament.id, 2)
        await GroupService.create_groups(db, tournament.id, 2)

        names = [g.name for g in await GroupService.list_groups(db, tournament.id)]
        assert names == ["Group A", "Group A", "Group B", "Group B"]


class TestAssignTeamToGroup:

    async def test_creates_zeroed_standing_and_sets_group_name(self, db, session_factory):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament, "Group C")
        team = await make_team(db, tournament, "Raptors")

        standing = await GroupService.assign_team_to_group(db, team.id, group.id)

        assert (standing.wins, standing.losses, standing.draws, standing.points, standing.games_played) == (0, 0, 0, 0, 0)
        assert standing.is_qualified is False
        assert (await fetch_team(session_factory, team.id)).group_name == "Group C"

    async def test_explicit_group_name(self, db, session_factory):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament)
        team = await make_team(db, tournament, "Raptors")

        await GroupService.assign_team_to_group(db, team.id, group.id, group_name="Pool 1")

        assert (await fetch_team(session_factory, team.id)).group_name == "Pool 1"

    async def test_duplicate_pair_conflicts(self, db):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament)
        team = await make_team(db, tournament, "Raptors")
        await GroupService.assign_team_to_group(db, team.id, group.id)

        with pytest.raises(ConflictError) as exc:
            await GroupService.assign_team_to_group(db, team.id, group.id)
        assert exc.value.code == ErrorCode.DUPLICATE_STANDING

    async def test_unknown_team_or_group(self, db):
        tournament = await make_tournament(db)
        group = await make_group(db, tournament)
        team = await make_team(db, tournament, "Raptors")

        with pytest.raises(NotFoundError):
            await GroupService.assign_team_to_group(db, "missing", group.id)
        with pytest.raises(NotFoundError):
            await GroupService.assign_team_to_group(db, team.id, "missing")

    async def test_cross_tournament_assignment_rejected(self, db):
        home = await make_tournament(db, name="Home")
        away = await make_tournament(db, name="Away")
        group = await make_group(db, home)
        team = await make_team(db, away, "Visitors")

        with pytest.raises(ValidationError):
            await GroupService.assign_team_to_group(db, team.id, group.id)

    async def test_new_team_waits_for_the_next_update(self, db, session_factory, bus):
        """Assignment does not recompute; the next standing update does."""
        tournament = await make_tournament(db, teams_per_group_qualify=2)
        group = await make_group(db, tournament)
        existing = await make_team(db, tournament, "Existing")
        standing = await make_standing(db, group, existing, points=3)
        await StandingService.update_standing(db, standing.id, {"points": 4}, bus)

        newcomer = await make_team(db, tournament, "Newcomer")
        await GroupService.assign_team_to_group(db, newcomer.id, group.id)

        before = await fetch_standings(session_factory, group.id)
        assert before["Newcomer"].is_qualified is False
        assert before["Existing"].is_qualified is True

        await StandingService.update_standing(db, standing.id, {"points": 5}, bus)

        after = await fetch_standings(session_factory, group.id)
        assert after["Newcomer"].is_qualified is True
