from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TieBreakerStatus = Literal["untouched", "awaiting_selection", "resolved"]
TournamentClass = Literal["AAA", "AA", "A", "B", "C"]
Medal = Literal["gold", "silver", "bronze"]


class ORMBaseModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class EventEnsure(BaseModel):
    tournament_id: str = Field(min_length=36, max_length=36)
    category_type: str = Field(default="traditional_forms", min_length=1, max_length=64)


class EventRead(ORMBaseModel):
    id: str
    tournament_id: str
    category_type: str
    name: str
    created_at: datetime


class EventValidationRead(BaseModel):
    valid: bool
    event: EventRead | None = None
    error: str | None = None


class ScoreSubmit(BaseModel):
    tournament_id: str = Field(min_length=36, max_length=36)
    category_type: str = Field(default="traditional_forms", min_length=1, max_length=64)
    competitor_id: str = Field(min_length=36, max_length=36)

    judge_a_score: float = Field(ge=0, le=10)
    judge_b_score: float = Field(ge=0, le=10)
    judge_c_score: float = Field(ge=0, le=10)

    @field_validator("judge_a_score", "judge_b_score", "judge_c_score")
    @classmethod
    def round_judge_score(cls, value: float) -> float:
        return round(value, 2)


class TieResolution(BaseModel):
    ordered_winner_ids: list[str] = Field(default_factory=list)


class ScoreRow(BaseModel):
    id: str
    competitor_id: str
    competitor_name: str
    source_type: str

    judge_a_score: float
    judge_b_score: float
    judge_c_score: float
    total_score: float

    final_rank: int | None = None
    points_earned: int | None = None
    medal: Medal | None = None
    is_tied: bool = False
    tie_breaker_status: TieBreakerStatus = "untouched"


class TieGroupRead(BaseModel):
    rank_start: int
    rank_end: int
    total_score: float
    status: TieBreakerStatus
    competitor_ids: list[str] = Field(default_factory=list)
    members: list[ScoreRow] = Field(default_factory=list)


class EventStandings(BaseModel):
    event: EventRead
    tournament_class: TournamentClass
    field_size: int
    rows: list[ScoreRow] = Field(default_factory=list)
    podium_ties: list[TieGroupRead] = Field(default_factory=list)
    has_pending_podium_ties: bool = False


class CompetitorEventPoints(BaseModel):
    event_id: str
    event_name: str
    category_type: str
    tournament_id: str
    tournament_name: str
    tournament_class: TournamentClass
    final_rank: int
    points_earned: int
    total_score: float


class CompetitorPointsSummary(BaseModel):
    competitor_id: str
    competitor_name: str
    total_points: int
    events: list[CompetitorEventPoints] = Field(default_factory=list)
