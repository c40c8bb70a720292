"""Idempotent get-or-create for rows many clients race to create.

There is no transaction spanning event -> participant -> score, so every
writer follows the same optimistic protocol:

1. query by the natural key;
2. none found: insert (``ON CONFLICT DO NOTHING`` where the dialect has it);
3. lost the race (conflict): re-read with bounded retry, never trust the
   failed write;
4. more than one row: DuplicateStateError, never pick one;
5. check the id is well formed and not a known leaked sentinel.

The store's UNIQUE constraint is the only arbiter of who won.
"""
from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .errors import DuplicateStateError, NotFoundError, PersistenceError, ValidationError
from .logs import operation_logger
from .retry import RetryPolicy, default_policy, retry, retry_with_outcome

DEFAULT_CATEGORY_TYPE = "traditional_forms"

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def is_well_formed_id(value: object) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def normalize_category_type(value: object) -> str:
    if value is None:
        return DEFAULT_CATEGORY_TYPE
    if not isinstance(value, str):
        raise ValidationError(f"Category type must be text, got {type(value).__name__}.")

    clean = "_".join(value.strip().lower().split())
    if not clean:
        raise ValidationError("Category type cannot be empty.")
    if len(clean) > 64:
        raise ValidationError("Category type cannot exceed 64 characters.")
    return clean


def default_event_name(category_type: str) -> str:
    return f"{category_type.replace('_', ' ').title()} Event"


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return True
    message = str(orig or exc).lower()
    return "unique" in message or "duplicate key" in message


@dataclass(frozen=True)
class EventValidation:
    valid: bool
    record: models.Event | None = None
    error: str | None = None


class EventIdentityGuard:
    def __init__(
        self,
        db: Session,
        *,
        policy: RetryPolicy | None = None,
        use_upsert: bool | None = None,
        denylist: Iterable[str] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.db = db
        self.policy = policy or default_policy()
        self.use_upsert = settings.event_use_upsert if use_upsert is None else use_upsert
        self.denylist = frozenset(
            item.lower() for item in (settings.event_id_denylist if denylist is None else denylist)
        )
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Identifier checks
    # ------------------------------------------------------------------

    def check_identifier(self, value: object, what: str = "event") -> str:
        if not is_well_formed_id(value):
            raise ValidationError(f"Invalid {what} id: {value!r}")
        if str(value).lower() in self.denylist:
            raise ValidationError(
                f"Refusing known-corrupt {what} id: {value}",
                f"This {what} reference is corrupt. Reload the tournament and try again.",
            )
        return str(value)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def get_or_create(self, tournament_id: str, category_type: str | None = DEFAULT_CATEGORY_TYPE) -> str:
        tournament_id = self.check_identifier(tournament_id, "tournament")
        category = normalize_category_type(category_type)
        log = operation_logger(self.logger, tournament=tournament_id, category=category)

        if self.db.get(models.Tournament, tournament_id) is None:
            raise NotFoundError("Tournament")

        key = f"tournament {tournament_id} / category '{category}'"
        filters = (
            models.Event.tournament_id == tournament_id,
            models.Event.category_type == category,
        )
        values = {
            "tournament_id": tournament_id,
            "category_type": category,
            "name": default_event_name(category),
            "created_at": models.utcnow(),
        }

        event = self._get_or_insert(
            models.Event,
            filters=filters,
            values=values,
            conflict_columns=("tournament_id", "category_type"),
            what="event",
            key=key,
            log=log,
        )
        return self.check_identifier(event.id, "event")

    def find_existing(
        self,
        tournament_id: str,
        category_type: str | None = DEFAULT_CATEGORY_TYPE,
    ) -> models.Event | None:
        """Read-only lookup. None means "not there yet", which is a normal state."""
        tournament_id = self.check_identifier(tournament_id, "tournament")
        category = normalize_category_type(category_type)
        log = operation_logger(self.logger, tournament=tournament_id, category=category)
        filters = (
            models.Event.tournament_id == tournament_id,
            models.Event.category_type == category,
        )

        outcome = retry_with_outcome(
            lambda: self._find(models.Event, filters),
            self.policy.with_mode("soft"),
            what="Event",
            sleep=self.sleep,
            log=log,
        )
        if not outcome.satisfied:
            return None

        event = self._single_or_raise(outcome.value, "event", f"tournament {tournament_id} / category '{category}'")
        self.check_identifier(event.id, "event")
        return event

    def validate(self, event_id: object) -> EventValidation:
        try:
            checked = self.check_identifier(event_id, "event")
        except ValidationError as exc:
            return EventValidation(valid=False, error=str(exc))

        # Drop any cached copy so this is a fresh read.
        self.db.expire_all()
        record = self.db.get(models.Event, checked)
        if record is None:
            return EventValidation(valid=False, error=f"Event {checked} not found")
        if not record.category_type or not record.tournament_id:
            return EventValidation(
                valid=False,
                record=record,
                error=f"Event {checked} is missing its category or tournament",
            )
        return EventValidation(valid=True, record=record)

    def wait_for_event(self, event_id: str) -> models.Event:
        """Hard-mode wait until ``validate`` accepts the event."""

        # Malformed ids fail now, not after the retry budget.
        self.check_identifier(event_id, "event")
        log = operation_logger(self.logger, event=event_id)

        def attempt() -> models.Event | None:
            result = self.validate(event_id)
            return result.record if result.valid else None

        return retry(
            attempt,
            self.policy.with_mode("hard"),
            what="Event",
            sleep=self.sleep,
            log=log,
        )

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def ensure_participant(self, event_id: str, competitor_id: str) -> models.EventParticipant:
        event_id = self.check_identifier(event_id, "event")
        competitor_id = self.check_identifier(competitor_id, "competitor")
        log = operation_logger(self.logger, event=event_id, competitor=competitor_id)

        competitor = self.db.get(models.Competitor, competitor_id)
        if competitor is None:
            raise NotFoundError("Competitor")
        event = self.wait_for_event(event_id)
        if competitor.tournament_id != event.tournament_id:
            raise ValidationError(
                f"Competitor {competitor_id} is not registered in tournament {event.tournament_id}."
            )

        filters = (
            models.EventParticipant.event_id == event_id,
            models.EventParticipant.competitor_id == competitor_id,
        )
        participant = self._get_or_insert(
            models.EventParticipant,
            filters=filters,
            values={
                "event_id": event_id,
                "competitor_id": competitor_id,
                "created_at": models.utcnow(),
            },
            conflict_columns=("event_id", "competitor_id"),
            what="participant",
            key=f"event {event_id} / competitor {competitor_id}",
            log=log,
        )

        # The score row references the participant pair; it must be readable first.
        retry(
            lambda: self._find(models.EventParticipant, filters),
            self.policy.with_mode("hard"),
            what="Participant",
            sleep=self.sleep,
            log=log,
        )
        return participant

    # ------------------------------------------------------------------
    # Shared protocol
    # ------------------------------------------------------------------

    def _find(self, model: type, filters: tuple[Any, ...]) -> list[Any]:
        self.db.expire_all()
        return list(self.db.scalars(select(model).where(*filters)).all())

    def _single_or_raise(self, rows: list[Any], what: str, key: str) -> Any:
        if len(rows) > 1:
            raise DuplicateStateError(what, key, [row.id for row in rows])
        return rows[0]

    def _get_or_insert(
        self,
        model: type,
        *,
        filters: tuple[Any, ...],
        values: dict[str, Any],
        conflict_columns: tuple[str, ...],
        what: str,
        key: str,
        log: logging.LoggerAdapter,
    ) -> Any:
        rows = self._find(model, filters)
        if rows:
            return self._single_or_raise(rows, what, key)

        new_id = models.new_id()
        created = self._insert(model, {"id": new_id, **values}, conflict_columns, what, log)
        if created:
            log.info("created %s %s", what, new_id)
        else:
            log.info("lost %s creation race, re-reading", what)

        rows = retry(
            lambda: self._find(model, filters),
            self.policy.with_mode("hard"),
            what=what.capitalize(),
            sleep=self.sleep,
            log=log,
        )
        row = self._single_or_raise(rows, what, key)
        if created and row.id != new_id:
            # Our insert committed but another row answers the key.
            raise DuplicateStateError(what, key, [new_id, row.id])
        return row

    def _insert(
        self,
        model: type,
        values: dict[str, Any],
        conflict_columns: tuple[str, ...],
        what: str,
        log: logging.LoggerAdapter,
    ) -> bool:
        dialect = self.db.get_bind().dialect.name
        insert_factory = _UPSERT_DIALECTS.get(dialect) if self.use_upsert else None

        try:
            if insert_factory is not None:
                statement = insert_factory(model.__table__).values(**values).on_conflict_do_nothing(
                    index_elements=list(conflict_columns)
                )
                result = self.db.execute(statement)
                self.db.commit()
                return result.rowcount == 1

            self.db.add(model(**values))
            self.db.commit()
            return True
        except IntegrityError as exc:
            self.db.rollback()
            if _is_unique_violation(exc):
                log.debug("%s insert hit uniqueness conflict: %s", what, exc.orig)
                return False
            raise PersistenceError(f"create {what}", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"create {what}", str(exc)) from exc
