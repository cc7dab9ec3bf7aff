"""
Team registration, join requests and roster-driven status.
"""
import pytest

from tournament_hub.errors import (
    ValidationError, InvalidStateError, ConflictError, ForbiddenError, ErrorCode
)
from tournament_hub.orm import TeamStatus, StatusSource, TournamentStatus, JoinRequestStatus
from tournament_hub.services.team_service import TeamService
from tournament_hub.tests.factories import make_user, make_tournament, fetch_team


async def users(db, *names, admin=False):
    return [await make_user(db, f"{name}@example.com", admin=admin) for name in names]


class TestCreateTeam:

    async def test_caller_becomes_captain(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db)

        team = await TeamService.create_team(db, captain, tournament.id, "  Raptors ")

        assert team.name == "Raptors"
        assert team.captain_id == captain.id
        assert team.status == TeamStatus.INCOMPLETE
        assert [(m.user_id, m.role) for m in team.members] == [(captain.id, "captain")]

    async def test_registration_must_be_open(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db, status=TournamentStatus.UPCOMING)

        with pytest.raises(InvalidStateError):
            await TeamService.create_team(db, captain, tournament.id, "Raptors")

    async def test_one_team_per_tournament(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db)
        await TeamService.create_team(db, captain, tournament.id, "Raptors")

        with pytest.raises(ConflictError):
            await TeamService.create_team(db, captain, tournament.id, "Second")

    async def test_tournament_full(self, db):
        first, second, third = await users(db, "a", "b", "c")
        tournament = await make_tournament(db, max_teams=2)
        await TeamService.create_team(db, first, tournament.id, "One")
        await TeamService.create_team(db, second, tournament.id, "Two")

        with pytest.raises(ValidationError):
            await TeamService.create_team(db, third, tournament.id, "Three")

    async def test_solo_tournament_is_complete_immediately(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db, team_size=1)

        team = await TeamService.create_team(db, captain, tournament.id, "Solo")

        assert team.status == TeamStatus.PENDING_PAYMENT
        assert team.status_source == StatusSource.ROSTER


class TestJoinRequests:

    async def test_approval_adds_player_and_completes_roster(self, db, session_factory):
        captain, player = await users(db, "cap", "player")
        tournament = await make_tournament(db, team_size=2)
        team = await TeamService.create_team(db, captain, tournament.id, "Duo")

        request = await TeamService.request_to_join(db, player, team.id, riot_id="player#EUW")
        answered = await TeamService.respond_to_join_request(db, captain, request.id, approve=True)

        assert answered.status == JoinRequestStatus.APPROVED.value
        stored = await fetch_team(session_factory, team.id)
        assert {m.user_id: m.role for m in stored.members} == {captain.id: "captain", player.id: "player"}
        assert stored.status == TeamStatus.PENDING_PAYMENT

    async def test_duplicate_request(self, db):
        captain, player = await users(db, "cap", "player")
        tournament = await make_tournament(db)
        team = await TeamService.create_team(db, captain, tournament.id, "Raptors")
        await TeamService.request_to_join(db, player, team.id)

        with pytest.raises(ConflictError) as exc:
            await TeamService.request_to_join(db, player, team.id)
        assert exc.value.code == ErrorCode.DUPLICATE_JOIN_REQUEST

    async def test_cannot_request_while_on_another_team(self, db):
        alice, bob = await users(db, "alice", "bob")
        tournament = await make_tournament(db)
        await TeamService.create_team(db, alice, tournament.id, "Alpha")
        bravo = await TeamService.create_team(db, bob, tournament.id, "Bravo")

        with pytest.raises(ConflictError):
            await TeamService.request_to_join(db, alice, bravo.id)

    async def test_second_approval_in_one_tournament_is_refused(self, db, session_factory):
        alice, bob, carol = await users(db, "alice", "bob", "carol")
        tournament = await make_tournament(db)
        alpha = await TeamService.create_team(db, alice, tournament.id, "Alpha")
        bravo = await TeamService.create_team(db, bob, tournament.id, "Bravo")
        to_alpha = await TeamService.request_to_join(db, carol, alpha.id)
        to_bravo = await TeamService.request_to_join(db, carol, bravo.id)

        await TeamService.respond_to_join_request(db, alice, to_alpha.id, approve=True)
        with pytest.raises(ConflictError):
            await TeamService.respond_to_join_request(db, bob, to_bravo.id, approve=True)

        assert [t.id for t in await TeamService.list_user_teams(db, carol.id)] == [alpha.id]
        stored = await fetch_team(session_factory, bravo.id)
        assert carol.id not in {m.user_id for m in stored.members}

    async def test_other_tournaments_do_not_count(self, db):
        alice, bob = await users(db, "alice", "bob")
        spring = await make_tournament(db)
        autumn = await make_tournament(db, name="Autumn Cup")
        await TeamService.create_team(db, alice, spring.id, "Alpha")
        bravo = await TeamService.create_team(db, bob, autumn.id, "Bravo")

        request = await TeamService.request_to_join(db, alice, bravo.id)

        assert request.status == JoinRequestStatus.PENDING.value

    async def test_full_or_locked_team(self, db):
        captain, player = await users(db, "cap", "player")
        tournament = await make_tournament(db, team_size=1)
        team = await TeamService.create_team(db, captain, tournament.id, "Solo")

        with pytest.raises(ValidationError):
            await TeamService.request_to_join(db, player, team.id)

        await TeamService.admin_update_team(db, team.id, {"is_locked": True})
        with pytest.raises(ValidationError):
            await TeamService.request_to_join(db, player, team.id)

    async def test_only_captain_or_admin_responds(self, db):
        captain, player, stranger = await users(db, "cap", "player", "stranger")
        (admin,) = await users(db, "admin", admin=True)
        tournament = await make_tournament(db)
        team = await TeamService.create_team(db, captain, tournament.id, "Raptors")
        request = await TeamService.request_to_join(db, player, team.id)

        with pytest.raises(ForbiddenError):
            await TeamService.respond_to_join_request(db, stranger, request.id, approve=True)

        answered = await TeamService.respond_to_join_request(db, admin, request.id, approve=False)
        assert answered.status == JoinRequestStatus.REJECTED.value

        with pytest.raises(InvalidStateError):
            await TeamService.respond_to_join_request(db, captain, request.id, approve=True)


class TestRoster:

    async def test_leaving_reopens_the_roster(self, db, session_factory):
        captain, player = await users(db, "cap", "player")
        tournament = await make_tournament(db, team_size=2)
        team = await TeamService.create_team(db, captain, tournament.id, "Duo")
        request = await TeamService.request_to_join(db, player, team.id)
        await TeamService.respond_to_join_request(db, captain, request.id, approve=True)

        await TeamService.leave_team(db, player, team.id)

        assert (await fetch_team(session_factory, team.id)).status == TeamStatus.INCOMPLETE

    async def test_leaving_after_payment_keeps_registration(self, db, session_factory):
        captain, player = await users(db, "cap", "player")
        tournament = await make_tournament(db, team_size=2)
        team = await TeamService.create_team(db, captain, tournament.id, "Duo")
        request = await TeamService.request_to_join(db, player, team.id)
        await TeamService.respond_to_join_request(db, captain, request.id, approve=True)
        await TeamService.admin_update_team(db, team.id, {"status": "registered"})
        await TeamService.admin_update_team(db, team.id, {"release_status_override": True})

        await TeamService.leave_team(db, player, team.id)

        assert (await fetch_team(session_factory, team.id)).status == TeamStatus.REGISTERED

    async def test_captain_cannot_leave(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db)
        team = await TeamService.create_team(db, captain, tournament.id, "Raptors")

        with pytest.raises(ValidationError):
            await TeamService.leave_team(db, captain, team.id)


class TestAdminUpdate:

    async def test_status_override_and_release(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db)
        team = await TeamService.create_team(db, captain, tournament.id, "Raptors")

        team = await TeamService.admin_update_team(db, team.id, {"status": "eliminated"})
        assert team.status == TeamStatus.ELIMINATED
        assert team.status_source == StatusSource.ADMIN

        team = await TeamService.admin_update_team(db, team.id, {"release_status_override": True})
        assert team.status == TeamStatus.ELIMINATED
        assert team.status_source is None

    async def test_unknown_field(self, db):
        (captain,) = await users(db, "cap")
        tournament = await make_tournament(db)
        team = await TeamService.create_team(db, captain, tournament.id, "Raptors")

        with pytest.raises(ValidationError):
            await TeamService.admin_update_team(db, team.id, {"captain_id": "someone"})
