from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, StrictInt
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_admin
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.competition import Competition
from ..models.match import Match
from ..models.team import Team
from ..models.user import User
from ..services import competitions as competition_service
from ..services import ledger, lifecycle, scoring
from ..timeutils import to_naive_utc, utcnow
from .competitions import competition_payload
from .matches import match_payload

router = APIRouter(prefix="/admin", tags=["admin"])


class TeamCreate(BaseModel):
    name: str
    code: Optional[str] = None


class MatchCreate(BaseModel):
    home_team_id: int
    away_team_id: int
    kickoff: datetime
    competition_id: Optional[int] = None


class FinalScore(BaseModel):
    home_score: StrictInt
    away_score: StrictInt


class PredictionEdit(BaseModel):
    predicted_home: StrictInt
    predicted_away: StrictInt


class CompetitionCreate(BaseModel):
    name: str
    start_date: datetime
    end_date: datetime


# Teams
@router.post("/teams", status_code=status.HTTP_201_CREATED)
async def create_team(
    team_data: TeamCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    team = Team(name=team_data.name, code=team_data.code)
    try:
        db.add(team)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Team {team_data.name} already exists")
    db.refresh(team)
    return {"id": team.id, "name": team.name, "code": team.code}


# Matches
@router.post("/matches", status_code=status.HTTP_201_CREATED)
async def create_match(
    match_data: MatchCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    if match_data.home_team_id == match_data.away_team_id:
        raise ValidationError("A team cannot play itself")

    teams = {}
    for team_id in (match_data.home_team_id, match_data.away_team_id):
        team = db.get(Team, team_id)
        if not team:
            raise NotFoundError(f"Team {team_id} not found")
        teams[team_id] = team
    if match_data.competition_id is not None and not db.get(Competition, match_data.competition_id):
        raise NotFoundError(f"Competition {match_data.competition_id} not found")

    match = Match(
        home_team_id=match_data.home_team_id,
        away_team_id=match_data.away_team_id,
        kickoff=to_naive_utc(match_data.kickoff),
        competition_id=match_data.competition_id
    )
    db.add(match)
    db.commit()
    db.refresh(match)
    return match_payload(match, teams, utcnow())


@router.put("/matches/{match_id}/result")
async def record_result(
    match_id: int,
    result: FinalScore,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    """Record (or correct) a final score and score the match's predictions."""
    scored = scoring.record_final_score(db, match_id, result.home_score, result.away_score)
    return {"match_id": match_id, "predictions_scored": scored}


@router.post("/matches/{match_id}/rescore")
async def rescore(
    match_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    scored = scoring.rescore_match(db, match_id)
    return {"match_id": match_id, "predictions_scored": scored}


@router.post("/matches/advance")
async def advance_statuses(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    """Move matches whose kickoff has passed to live."""
    return {"updated": lifecycle.advance_match_statuses(db)}


# Predictions
@router.put("/predictions/{prediction_id}")
async def update_prediction(
    prediction_id: int,
    prediction_data: PredictionEdit,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    """Correct any prediction; points follow if the match is finished."""
    prediction = ledger.admin_update_prediction(
        db,
        current_user,
        prediction_id,
        prediction_data.predicted_home,
        prediction_data.predicted_away
    )
    return {
        "id": prediction.id,
        "user_id": prediction.user_id,
        "match_id": prediction.match_id,
        "predicted_home": prediction.predicted_home,
        "predicted_away": prediction.predicted_away,
        "points": prediction.points
    }


@router.delete("/predictions/{prediction_id}")
async def delete_prediction(
    prediction_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    ledger.delete_prediction(db, current_user, prediction_id)
    return {"message": "Prediction deleted"}


# Competitions
@router.post("/competitions", status_code=status.HTTP_201_CREATED)
async def create_competition(
    competition_data: CompetitionCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    start_date = to_naive_utc(competition_data.start_date)
    end_date = to_naive_utc(competition_data.end_date)
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date")

    competition = Competition(name=competition_data.name, start_date=start_date, end_date=end_date)
    db.add(competition)
    db.commit()
    db.refresh(competition)
    return competition_payload(competition, utcnow())


@router.post("/competitions/{competition_id}/close")
async def close_competition(
    competition_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    competition = competition_service.close_competition(db, competition_id)
    return competition_payload(competition, utcnow())


@router.post("/competitions/close-due")
async def close_due(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_session)
):
    closed = competition_service.close_due_competitions(db)
    now = utcnow()
    return [competition_payload(c, now) for c in closed]
