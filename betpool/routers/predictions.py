from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, StrictInt
from sqlmodel import Session

from ..database import get_session
from ..dependencies import require_user
from ..models.prediction import Prediction
from ..models.user import User
from ..services import ledger

router = APIRouter(prefix="/api/predictions", tags=["predictions"])


class PredictionCreate(BaseModel):
    predicted_home: StrictInt
    predicted_away: StrictInt


class PredictionResponse(BaseModel):
    id: int
    match_id: int
    user_id: int
    predicted_home: int
    predicted_away: int
    points: Optional[int] = None
    created_at: datetime
    updated_at: datetime


def _to_response(prediction: Prediction) -> PredictionResponse:
    return PredictionResponse(
        id=prediction.id,
        match_id=prediction.match_id,
        user_id=prediction.user_id,
        predicted_home=prediction.predicted_home,
        predicted_away=prediction.predicted_away,
        points=prediction.points,
        created_at=prediction.created_at,
        updated_at=prediction.updated_at
    )


@router.get("", response_model=List[PredictionResponse])
async def list_my_predictions(
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return [_to_response(p) for p in ledger.list_user_predictions(db, current_user.id)]


@router.put("/match/{match_id}", response_model=PredictionResponse)
async def place_prediction(
    match_id: int,
    prediction_data: PredictionCreate,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    """Create or update the current user's prediction for a match."""
    prediction = ledger.place_or_update(
        db,
        actor=current_user,
        user_id=current_user.id,
        match_id=match_id,
        predicted_home=prediction_data.predicted_home,
        predicted_away=prediction_data.predicted_away
    )
    return _to_response(prediction)


@router.get("/match/{match_id}", response_model=PredictionResponse)
async def get_my_prediction(
    match_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    return _to_response(ledger.get_prediction(db, current_user.id, match_id))


@router.get("/match/{match_id}/all")
async def list_match_bets(
    match_id: int,
    current_user: User = Depends(require_user),
    db: Session = Depends(get_session)
):
    """Everybody's bets on a match. Scores of others stay hidden until kickoff."""
    return ledger.list_match_predictions(db, match_id, viewer=current_user)
