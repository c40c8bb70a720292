from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db
from ..errors import DuplicateStateError, PersistenceError

router = APIRouter(tags=["scores"])


@router.post("/", response_model=schemas.EventStandings)
def submit_score(payload: schemas.ScoreSubmit, db: Session = Depends(get_db)) -> schemas.EventStandings:
    try:
        event_id = crud.submit_score(
            db,
            tournament_id=payload.tournament_id,
            category_type=payload.category_type,
            competitor_id=payload.competitor_id,
            judge_a_score=payload.judge_a_score,
            judge_b_score=payload.judge_b_score,
            judge_c_score=payload.judge_c_score,
        )
    except DuplicateStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.user_message) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.user_message) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return crud.build_event_standings(db, event_id)
