from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import Base, SessionLocal, engine
from .logs import setup_logging
from .models import Tournament
from .routes import competitors, events, scores, tie_groups

logger = setup_logging(settings.log_level)

app = FastAPI(
    title="Forms Scoring API",
    version="1.0.0",
    description=(
        "Judged-event scoring for forms tournaments: race-safe event identity, "
        "competition ranking, podium tie-breakers and seasonal points."
    ),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Base.metadata.create_all(bind=engine)


def seed_if_empty() -> None:
    if not settings.auto_seed_on_empty:
        return

    db = SessionLocal()
    try:
        has_tournaments = db.query(Tournament.id).first() is not None
    finally:
        db.close()

    if has_tournaments:
        return

    from seed import seed

    logger.info("database empty, loading demo tournament")
    seed(demo_scores=False)


seed_if_empty()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(events.router, prefix="/events")
app.include_router(tie_groups.router, prefix="/events")
app.include_router(scores.router, prefix="/scores")
app.include_router(competitors.router, prefix="/competitors")
