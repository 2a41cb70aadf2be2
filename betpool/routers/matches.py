from typing import Optional
from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from ..database import get_session
from ..dependencies import require_user
from ..errors import NotFoundError
from ..models.match import Match
from ..models.team import Team
from ..models.user import User
from ..services.lifecycle import eligible_for_betting
from ..timeutils import utcnow

router = APIRouter(prefix="/api/matches", tags=["matches"])


def match_payload(match: Match, teams: dict, now) -> dict:
    home = teams.get(match.home_team_id)
    away = teams.get(match.away_team_id)
    return {
        "id": match.id,
        "competition_id": match.competition_id,
        "home_team_id": match.home_team_id,
        "home_team": home.name if home else None,
        "away_team_id": match.away_team_id,
        "away_team": away.name if away else None,
        "kickoff": match.kickoff,
        "status": match.status,
        "home_score": match.home_score,
        "away_score": match.away_score,
        "betting_open": eligible_for_betting(match, now)
    }


@router.get("")
async def list_matches(
    competition_id: Optional[int] = None,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    query = select(Match).order_by(Match.kickoff, Match.id)
    if competition_id is not None:
        query = query.where(Match.competition_id == competition_id)

    teams = {team.id: team for team in db.exec(select(Team)).all()}
    now = utcnow()
    return [match_payload(match, teams, now) for match in db.exec(query).all()]


@router.get("/{match_id}")
async def get_match(
    match_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    match = db.get(Match, match_id)
    if not match:
        raise NotFoundError(f"Match {match_id} not found")

    teams = {t.id: t for t in (db.get(Team, match.home_team_id), db.get(Team, match.away_team_id)) if t}
    return match_payload(match, teams, utcnow())
