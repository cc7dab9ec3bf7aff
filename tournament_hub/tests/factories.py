"""
Row builders for tests. Each helper inserts and commits one object.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tournament_hub.orm import (
    AppRole, Group, GroupStanding, Profile, Team, TeamMember, TeamRole, TeamStatus,
    Tournament, TournamentStatus, User, UserRole,
)
from tournament_hub.rbac import create_access_token, hash_password

DEFAULT_PASSWORD = "password123"


async def make_user(
    db: AsyncSession,
    email: str,
    admin: bool = False,
    banned: bool = False,
    username: Optional[str] = None,
) -> User:
    user = User(email=email, password_hash=hash_password(DEFAULT_PASSWORD))
    user.roles = [UserRole(role=AppRole.user)] + ([UserRole(role=AppRole.admin)] if admin else [])
    user.profile = Profile(username=username or email.split("@")[0], is_banned=banned)
    db.add(user)
    await db.commit()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def make_tournament(db: AsyncSession, **fields) -> Tournament:
    values = {
        "name": "Spring Cup",
        "start_date": datetime.utcnow() + timedelta(days=7),
        "team_size": 5,
        "max_teams": 16,
        "status": TournamentStatus.REGISTRATION_OPEN,
        "teams_per_group_qualify": 2,
    }
    values.update(fields)
    tournament = Tournament(**values)
    db.add(tournament)
    await db.commit()
    return tournament


async def make_team(
    db: AsyncSession,
    tournament: Tournament,
    name: str,
    status: TeamStatus = TeamStatus.REGISTERED,
    captain: Optional[User] = None,
    **fields,
) -> Team:
    team = Team(tournament_id=tournament.id, name=name, status=status, **fields)
    if captain is not None:
        team.captain_id = captain.id
        team.members = [TeamMember(user_id=captain.id, role=TeamRole.CAPTAIN.value)]
    db.add(team)
    await db.commit()
    return team


async def make_group(db: AsyncSession, tournament: Tournament, name: str = "Group A") -> Group:
    group = Group(tournament_id=tournament.id, name=name)
    db.add(group)
    await db.commit()
    return group


async def make_standing(db: AsyncSession, group: Group, team: Team, points: int = 0, **counters) -> GroupStanding:
    standing = GroupStanding(group_id=group.id, team_id=team.id, points=points, **counters)
    db.add(standing)
    await db.commit()
    return standing


async def make_scored_group(db: AsyncSession, tournament: Tournament, points_by_name: dict, group_name: str = "Group A"):
    """A group holding one registered team per entry, with the given points."""
    group = await make_group(db, tournament, group_name)
    standings = {}
    for name, points in points_by_name.items():
        team = await make_team(db, tournament, name)
        standings[name] = await make_standing(db, group, team, points=points)
    return group, standings


async def fetch_standings(session_factory, group_id: str):
    """Standings of a group read through a new session, keyed by team name."""
    async with session_factory() as session:
        result = await session.execute(select(GroupStanding).where(GroupStanding.group_id == group_id))
        return {s.team.name: s for s in result.scalars().all()}


async def fetch_team(session_factory, team_id: str) -> Team:
    async with session_factory() as session:
        return await session.get(Team, team_id)
