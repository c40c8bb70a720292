import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base

TIE_BREAKER_STATUSES = ("untouched", "awaiting_selection", "resolved")
SOURCE_TYPES = ("tournament", "manual", "champion")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Tournament(Base):
    __tablename__ = "tournaments"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)
    # Free text such as "AA - Regional"; normalised by points.normalize_tournament_class.
    tournament_class = Column(String(64), nullable=False, default="A")
    date = Column(DateTime(timezone=True), nullable=True)

    competitors = relationship("Competitor", back_populates="tournament", cascade="all, delete-orphan")
    events = relationship("Event", back_populates="tournament", cascade="all, delete-orphan")


class Competitor(Base):
    __tablename__ = "tournament_competitors"

    id = Column(String(36), primary_key=True, default=new_id)
    tournament_id = Column(String(36), ForeignKey("tournaments.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    source_type = Column(String(16), nullable=False, default="tournament")

    tournament = relationship("Tournament", back_populates="competitors")
    scores = relationship("ScoreRecord", back_populates="competitor")

    __table_args__ = (
        CheckConstraint(
            "source_type in ('tournament', 'manual', 'champion')",
            name="ck_competitor_source_type_valid",
        ),
    )


class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=new_id)
    tournament_id = Column(String(36), ForeignKey("tournaments.id"), nullable=False, index=True)
    category_type = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    tournament = relationship("Tournament", back_populates="events")
    participants = relationship("EventParticipant", back_populates="event", cascade="all, delete-orphan")
    scores = relationship("ScoreRecord", back_populates="event", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("tournament_id", "category_type", name="uq_event_tournament_category"),
        CheckConstraint("length(id) = 36", name="ck_event_id_uuid_length"),
        CheckConstraint("length(category_type) > 0", name="ck_event_category_not_empty"),
    )


class EventParticipant(Base):
    __tablename__ = "event_participants"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    competitor_id = Column(String(36), ForeignKey("tournament_competitors.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    event = relationship("Event", back_populates="participants")
    competitor = relationship("Competitor")

    __table_args__ = (
        UniqueConstraint("event_id", "competitor_id", name="uq_participant_event_competitor"),
    )


class ScoreRecord(Base):
    __tablename__ = "event_scores"

    id = Column(String(36), primary_key=True, default=new_id)
    event_id = Column(String(36), ForeignKey("events.id"), nullable=False, index=True)
    competitor_id = Column(String(36), ForeignKey("tournament_competitors.id"), nullable=False, index=True)

    judge_a_score = Column(Float, nullable=False, default=0.0)
    judge_b_score = Column(Float, nullable=False, default=0.0)
    judge_c_score = Column(Float, nullable=False, default=0.0)
    total_score = Column(Float, nullable=False, default=0.0)

    final_rank = Column(Integer, nullable=True)
    points_earned = Column(Integer, nullable=True)
    tie_breaker_status = Column(String(24), nullable=False, default="untouched", index=True)
    # Fingerprint of the tie group this record was resolved in; null unless resolved.
    tie_group_key = Column(String(48), nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="scores")
    competitor = relationship("Competitor", back_populates="scores")

    __table_args__ = (
        UniqueConstraint("event_id", "competitor_id", name="uq_score_event_competitor"),
        CheckConstraint("judge_a_score >= 0 and judge_a_score <= 10", name="ck_score_judge_a_range"),
        CheckConstraint("judge_b_score >= 0 and judge_b_score <= 10", name="ck_score_judge_b_range"),
        CheckConstraint("judge_c_score >= 0 and judge_c_score <= 10", name="ck_score_judge_c_range"),
        CheckConstraint("final_rank is null or final_rank >= 1", name="ck_score_final_rank_positive"),
        CheckConstraint("points_earned is null or points_earned >= 0", name="ck_score_points_nonnegative"),
        CheckConstraint(
            "tie_breaker_status in ('untouched', 'awaiting_selection', 'resolved')",
            name="ck_score_tie_breaker_status_valid",
        ),
    )
