from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.orm import Session

from .. import crud, schemas, serializers
from ..database import get_db
from ..errors import PersistenceError
from ..tiebreak import TieBreakerResolver

router = APIRouter(tags=["tie-groups"])


@router.get("/{event_id}/tie-groups", response_model=list[schemas.TieGroupRead])
def list_tie_groups(event_id: str, db: Session = Depends(get_db)) -> list[schemas.TieGroupRead]:
    try:
        groups = TieBreakerResolver(db).podium_groups(event_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return [
        serializers.tie_group_to_read(
            rank_start=group.rank_start,
            total_score=group.total_score,
            status=group_status,
            members=[row.record for row in group.members],
        )
        for group, group_status in groups
    ]


@router.post("/{event_id}/tie-groups/{rank_start}/begin", response_model=list[schemas.ScoreRow])
def begin_tie_breaker(
    event_id: str,
    rank_start: int = Path(ge=1),
    db: Session = Depends(get_db),
) -> list[schemas.ScoreRow]:
    try:
        members = TieBreakerResolver(db).begin_resolution(event_id, rank_start)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.user_message) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return [serializers.score_to_row(member, is_tied=True) for member in members]


@router.post("/{event_id}/tie-groups/{rank_start}/resolve", response_model=schemas.EventStandings)
def resolve_tie_breaker(
    event_id: str,
    payload: schemas.TieResolution,
    rank_start: int = Path(ge=1),
    db: Session = Depends(get_db),
) -> schemas.EventStandings:
    try:
        TieBreakerResolver(db).resolve(event_id, rank_start, payload.ordered_winner_ids)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.user_message) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return crud.build_event_standings(db, event_id)


@router.post("/{event_id}/tie-groups/{rank_start}/reopen", response_model=schemas.EventStandings)
def reopen_tie_breaker(
    event_id: str,
    rank_start: int = Path(ge=1),
    db: Session = Depends(get_db),
) -> schemas.EventStandings:
    try:
        TieBreakerResolver(db).reopen(event_id, rank_start)
    except PersistenceError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.user_message) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return crud.build_event_standings(db, event_id)
