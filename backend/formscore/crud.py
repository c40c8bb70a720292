import logging
import math

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas, serializers
from .errors import NotFoundError, PersistenceError, ValidationError
from .identity import EventIdentityGuard
from .logs import operation_logger
from .points import normalize_tournament_class, points
from .ranking import Placement, TieGroup, place_with_resolutions, rank_records, tie_groups

JUDGE_SCORE_MIN = 0.0
JUDGE_SCORE_MAX = 10.0

logger = logging.getLogger(__name__)


def _total_score(judge_a: float, judge_b: float, judge_c: float) -> float:
    # Rounded so equal judge sums compare equal regardless of float order.
    return round(float(judge_a) + float(judge_b) + float(judge_c), 2)


def _validate_judge_scores(judge_a: float, judge_b: float, judge_c: float) -> None:
    for label, value in (("A", judge_a), ("B", judge_b), ("C", judge_c)):
        if value is None:
            raise ValidationError(f"Judge {label} score is required.")
        if not math.isfinite(value) or value < JUDGE_SCORE_MIN or value > JUDGE_SCORE_MAX:
            raise ValidationError(
                f"Judge {label} score must be between {JUDGE_SCORE_MIN:g} and {JUDGE_SCORE_MAX:g}."
            )


def commit_or_raise(db: Session, operation: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(operation, str(exc)) from exc


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_event_or_raise(db: Session, event_id: str) -> models.Event:
    event = (
        db.query(models.Event)
        .options(selectinload(models.Event.tournament))
        .filter(models.Event.id == event_id)
        .first()
    )
    if not event:
        raise NotFoundError("Event")
    return event


def get_event_scores(db: Session, event_id: str) -> list[models.ScoreRecord]:
    return (
        db.query(models.ScoreRecord)
        .options(selectinload(models.ScoreRecord.competitor))
        .filter(models.ScoreRecord.event_id == event_id)
        .order_by(models.ScoreRecord.competitor_id.asc())
        .all()
    )


def get_score(db: Session, event_id: str, competitor_id: str) -> models.ScoreRecord | None:
    return (
        db.query(models.ScoreRecord)
        .filter(
            models.ScoreRecord.event_id == event_id,
            models.ScoreRecord.competitor_id == competitor_id,
        )
        .first()
    )


def event_tournament_class(event: models.Event) -> schemas.TournamentClass:
    raw_class = event.tournament.tournament_class if event.tournament else None
    return normalize_tournament_class(raw_class)


def event_field_size(db: Session, event_id: str) -> int:
    participants = (
        db.query(func.count(models.EventParticipant.id))
        .filter(models.EventParticipant.event_id == event_id)
        .scalar()
    ) or 0
    scored = (
        db.query(func.count(models.ScoreRecord.id))
        .filter(models.ScoreRecord.event_id == event_id)
        .scalar()
    ) or 0
    # Every score implies a participant, even if that row is not visible yet.
    return max(int(participants), int(scored))


def group_status(members: list[models.ScoreRecord], fingerprint: str) -> schemas.TieBreakerStatus:
    if members and all(
        member.tie_breaker_status == "resolved" and member.tie_group_key == fingerprint
        for member in members
    ):
        return "resolved"
    if any(member.tie_breaker_status == "awaiting_selection" for member in members):
        return "awaiting_selection"
    return "untouched"


def podium_tie_groups(scores: list[models.ScoreRecord]) -> list[TieGroup]:
    return tie_groups(rank_records(scores), podium_only=True)


# ---------------------------------------------------------------------------
# Ranking pass
# ---------------------------------------------------------------------------

def recompute_event(
    db: Session,
    event_id: str,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> list[Placement]:
    """Re-rank every score of an event and persist rank and points.

    Records frozen by a tie-breaker keep their judged order, placed at the
    group's current base rank. Everything else gets the competition rank.
    Points always follow the rank, class and current field size.
    """
    log = operation_logger(log or logger, event=event_id)
    event = get_event_or_raise(db, event_id)
    scores = get_event_scores(db, event_id)

    tournament_class = event_tournament_class(event)
    field_size = event_field_size(db, event_id)

    resolutions = {
        score.competitor_id: (score.tie_breaker_status, score.final_rank, score.tie_group_key)
        for score in scores
    }
    placements = place_with_resolutions(rank_records(scores), resolutions)

    reverted: list[str] = []
    for placement in placements:
        score: models.ScoreRecord = placement.record
        score.final_rank = placement.rank
        score.points_earned = points(placement.rank, tournament_class, field_size)
        if placement.frozen:
            continue

        if score.tie_breaker_status == "resolved":
            reverted.append(score.competitor_id)
        score.tie_breaker_status = placement.tie_breaker_status
        score.tie_group_key = None

    if reverted:
        log.info("scores changed under resolved tie-breaker, reverted %s", ", ".join(reverted))

    commit_or_raise(db, "recompute event ranks")
    log.debug(
        "recomputed %d scores (class %s, field size %d)",
        len(placements),
        tournament_class,
        field_size,
    )
    return placements


# ---------------------------------------------------------------------------
# Score mutations
# ---------------------------------------------------------------------------

def submit_score(
    db: Session,
    tournament_id: str,
    category_type: str | None,
    competitor_id: str,
    judge_a_score: float,
    judge_b_score: float,
    judge_c_score: float,
    guard: EventIdentityGuard | None = None,
) -> str:
    """Record one competitor's judge scores and re-rank the event.

    Returns the event id the score was written against.
    """
    _validate_judge_scores(judge_a_score, judge_b_score, judge_c_score)
    guard = guard or EventIdentityGuard(db)

    event_id = guard.get_or_create(tournament_id, category_type)
    guard.ensure_participant(event_id, competitor_id)
    log = operation_logger(guard.logger, event=event_id, competitor=competitor_id)

    total = _total_score(judge_a_score, judge_b_score, judge_c_score)
    score = get_score(db, event_id, competitor_id)

    if score is None:
        score = models.ScoreRecord(
            id=models.new_id(),
            event_id=event_id,
            competitor_id=competitor_id,
            tie_breaker_status="untouched",
        )
        db.add(score)
        try:
            db.flush()
        except IntegrityError as exc:
            # Another judge's device created the row first; edit that one.
            db.rollback()
            score = get_score(db, event_id, competitor_id)
            if score is None:
                raise PersistenceError("create score", str(exc.orig)) from exc
            log.info("score row created concurrently, updating existing row %s", score.id)

    score.judge_a_score = judge_a_score
    score.judge_b_score = judge_b_score
    score.judge_c_score = judge_c_score
    score.total_score = total
    commit_or_raise(db, "save score")

    recompute_event(db, event_id, log=log)
    return event_id


def delete_score(db: Session, event_id: str, competitor_id: str) -> None:
    get_event_or_raise(db, event_id)
    score = get_score(db, event_id, competitor_id)
    if not score:
        raise NotFoundError("Score")

    db.delete(score)
    (
        db.query(models.EventParticipant)
        .filter(
            models.EventParticipant.event_id == event_id,
            models.EventParticipant.competitor_id == competitor_id,
        )
        .delete(synchronize_session=False)
    )
    commit_or_raise(db, "delete score")

    recompute_event(db, event_id)


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

def build_event_standings(db: Session, event_id: str) -> schemas.EventStandings:
    event = get_event_or_raise(db, event_id)
    scores = get_event_scores(db, event_id)
    ranked = rank_records(scores)
    tied_ids = {row.competitor_id for row in ranked if row.is_tied}

    rows = sorted(
        scores,
        key=lambda score: (
            score.final_rank if score.final_rank is not None else 10**6,
            score.competitor_id,
        ),
    )

    podium_ties: list[schemas.TieGroupRead] = []
    for group in tie_groups(ranked, podium_only=True):
        members = [row.record for row in group.members]
        podium_ties.append(
            serializers.tie_group_to_read(
                rank_start=group.rank_start,
                total_score=group.total_score,
                status=group_status(members, group.fingerprint),
                members=members,
            )
        )

    return schemas.EventStandings(
        event=serializers.event_to_read(event),
        tournament_class=event_tournament_class(event),
        field_size=event_field_size(db, event_id),
        rows=[serializers.score_to_row(score, is_tied=score.competitor_id in tied_ids) for score in rows],
        podium_ties=podium_ties,
        has_pending_podium_ties=any(group.status != "resolved" for group in podium_ties),
    )


def build_competitor_points_summary(db: Session, competitor_id: str) -> schemas.CompetitorPointsSummary:
    competitor = db.get(models.Competitor, competitor_id)
    if not competitor:
        raise NotFoundError("Competitor")

    scores = (
        db.query(models.ScoreRecord)
        .options(selectinload(models.ScoreRecord.event).selectinload(models.Event.tournament))
        .filter(
            models.ScoreRecord.competitor_id == competitor_id,
            models.ScoreRecord.final_rank.isnot(None),
        )
        .all()
    )

    events: list[schemas.CompetitorEventPoints] = []
    for score in scores:
        event = score.event
        tournament = event.tournament
        events.append(
            schemas.CompetitorEventPoints(
                event_id=event.id,
                event_name=event.name,
                category_type=event.category_type,
                tournament_id=tournament.id,
                tournament_name=tournament.name,
                tournament_class=normalize_tournament_class(tournament.tournament_class),
                final_rank=score.final_rank,
                points_earned=score.points_earned or 0,
                total_score=score.total_score,
            )
        )

    events.sort(key=lambda item: (item.tournament_name.lower(), item.category_type, item.event_id))

    return schemas.CompetitorPointsSummary(
        competitor_id=competitor.id,
        competitor_name=competitor.name,
        total_points=sum(item.points_earned for item in events),
        events=events,
    )
