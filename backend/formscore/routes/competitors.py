from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db

router = APIRouter(tags=["competitors"])


@router.get("/{competitor_id}/points", response_model=schemas.CompetitorPointsSummary)
def competitor_points(competitor_id: str, db: Session = Depends(get_db)) -> schemas.CompetitorPointsSummary:
    try:
        return crud.build_competitor_points_summary(db, competitor_id)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
