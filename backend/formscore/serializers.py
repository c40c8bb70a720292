from . import models, schemas
from .points import medal_for_rank


def event_to_read(event: models.Event) -> schemas.EventRead:
    return schemas.EventRead(
        id=event.id,
        tournament_id=event.tournament_id,
        category_type=event.category_type,
        name=event.name,
        created_at=event.created_at,
    )


def score_to_row(score: models.ScoreRecord, is_tied: bool = False) -> schemas.ScoreRow:
    competitor_name = score.competitor.name if score.competitor else "Unknown"
    source_type = score.competitor.source_type if score.competitor else "tournament"

    return schemas.ScoreRow(
        id=score.id,
        competitor_id=score.competitor_id,
        competitor_name=competitor_name,
        source_type=source_type,
        judge_a_score=score.judge_a_score,
        judge_b_score=score.judge_b_score,
        judge_c_score=score.judge_c_score,
        total_score=score.total_score,
        final_rank=score.final_rank,
        points_earned=score.points_earned,
        medal=medal_for_rank(score.final_rank),
        is_tied=is_tied and score.tie_breaker_status != "resolved",
        tie_breaker_status=score.tie_breaker_status,
    )


def tie_group_to_read(
    rank_start: int,
    total_score: float,
    status: schemas.TieBreakerStatus,
    members: list[models.ScoreRecord],
) -> schemas.TieGroupRead:
    return schemas.TieGroupRead(
        rank_start=rank_start,
        rank_end=rank_start + len(members) - 1,
        total_score=total_score,
        status=status,
        competitor_ids=[member.competitor_id for member in members],
        members=[score_to_row(member, is_tied=True) for member in members],
    )
