from .user import User
from .session import Session
from .team import Team
from .competition import Competition, CompetitionMember, CompetitionStatus
from .match import Match, MatchStatus
from .prediction import Prediction
from .data_version import DataVersion

__all__ = [
    "User",
    "Session",
    "Team",
    "Competition",
    "CompetitionMember",
    "CompetitionStatus",
    "Match",
    "MatchStatus",
    "Prediction",
    "DataVersion",
]
