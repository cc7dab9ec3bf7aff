from .base import Base

from .user import User, UserRole, Profile, AppRole
from .tournament import Tournament, TournamentStatus, TournamentType, MatchType
from .team import Team, TeamMember, JoinRequest, TeamStatus, StatusSource, TeamRole, JoinRequestStatus
from .group import Group, GroupStanding, STANDING_STAT_FIELDS
from .match import Match
from .payment import Payment, PaymentStatus


__all__ = [
    "Base",
    "User",
    "UserRole",
    "Profile",
    "AppRole",
    "Tournament",
    "TournamentStatus",
    "TournamentType",
    "MatchType",
    "Team",
    "TeamMember",
    "JoinRequest",
    "TeamStatus",
    "StatusSource",
    "TeamRole",
    "JoinRequestStatus",
    "Group",
    "GroupStanding",
    "STANDING_STAT_FIELDS",
    "Match",
    "Payment",
    "PaymentStatus",
]
