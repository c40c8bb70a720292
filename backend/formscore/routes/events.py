from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, schemas, serializers
from ..database import get_db
from ..errors import DuplicateStateError, PersistenceError
from ..identity import DEFAULT_CATEGORY_TYPE, EventIdentityGuard

router = APIRouter(tags=["events"])


@router.post("/ensure", response_model=schemas.EventRead)
def ensure_event(payload: schemas.EventEnsure, db: Session = Depends(get_db)) -> schemas.EventRead:
    guard = EventIdentityGuard(db)
    try:
        event_id = guard.get_or_create(payload.tournament_id, payload.category_type)
        event = guard.wait_for_event(event_id)
    except DuplicateStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.user_message) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.user_message) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return serializers.event_to_read(event)


@router.get("/lookup", response_model=schemas.EventValidationRead)
def lookup_event(
    tournament_id: str,
    category_type: str = DEFAULT_CATEGORY_TYPE,
    db: Session = Depends(get_db),
) -> schemas.EventValidationRead:
    try:
        event = EventIdentityGuard(db).find_existing(tournament_id, category_type)
    except DuplicateStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.user_message) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if event is None:
        return schemas.EventValidationRead(valid=False, error="No scores recorded for this event yet")
    return schemas.EventValidationRead(valid=True, event=serializers.event_to_read(event))


@router.get("/{event_id}/validate", response_model=schemas.EventValidationRead)
def validate_event(event_id: str, db: Session = Depends(get_db)) -> schemas.EventValidationRead:
    result = EventIdentityGuard(db).validate(event_id)
    return schemas.EventValidationRead(
        valid=result.valid,
        event=serializers.event_to_read(result.record) if result.valid and result.record else None,
        error=result.error,
    )


@router.get("/{event_id}/standings", response_model=schemas.EventStandings)
def event_standings(event_id: str, db: Session = Depends(get_db)) -> schemas.EventStandings:
    try:
        return crud.build_event_standings(db, event_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc


@router.delete("/{event_id}/scores/{competitor_id}", response_model=schemas.EventStandings)
def delete_score(event_id: str, competitor_id: str, db: Session = Depends(get_db)) -> schemas.EventStandings:
    try:
        crud.delete_score(db, event_id=event_id, competitor_id=competitor_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.user_message) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return crud.build_event_standings(db, event_id)
