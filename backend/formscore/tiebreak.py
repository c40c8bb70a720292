"""Manual tie-breaker workflow for podium tie groups.

A tie group whose base rank is on the podium moves through
untouched -> awaiting_selection -> resolved. The judge picks the winners
in order; the last member's place follows by elimination. Resolved groups
are frozen by their fingerprint (members and shared total): the order
survives scores moving above the group, while any change to the members or
their shared total puts the group back to untouched on the next ranking
pass (see ranking.place_with_resolutions).
"""
import logging

from sqlalchemy.orm import Session

from . import crud, models
from .errors import NotFoundError, ValidationError
from .logs import operation_logger
from .points import points
from .ranking import TieGroup


class TieBreakerResolver:
    def __init__(self, db: Session, logger: logging.Logger | logging.LoggerAdapter | None = None):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    def _group_or_raise(self, event_id: str, rank_start: int) -> tuple[models.Event, TieGroup]:
        event = crud.get_event_or_raise(self.db, event_id)
        scores = crud.get_event_scores(self.db, event_id)

        for group in crud.podium_tie_groups(scores):
            if group.rank_start == rank_start:
                return event, group
        raise NotFoundError(f"Podium tie group at rank {rank_start}")

    @staticmethod
    def _members(group: TieGroup) -> list[models.ScoreRecord]:
        return [row.record for row in group.members]

    def podium_groups(self, event_id: str) -> list[tuple[TieGroup, str]]:
        crud.get_event_or_raise(self.db, event_id)
        scores = crud.get_event_scores(self.db, event_id)
        return [
            (group, crud.group_status(self._members(group), group.fingerprint))
            for group in crud.podium_tie_groups(scores)
        ]

    def begin_resolution(self, event_id: str, rank_start: int) -> list[models.ScoreRecord]:
        """Mark the group as awaiting a judge's selection and return its members."""
        log = operation_logger(self.logger, event=event_id, rank=rank_start)
        _, group = self._group_or_raise(event_id, rank_start)
        members = self._members(group)

        status = crud.group_status(members, group.fingerprint)
        if status == "resolved":
            raise ValidationError("Tie group is already resolved. Reopen it to choose again.")

        if status == "untouched":
            for member in members:
                member.tie_breaker_status = "awaiting_selection"
            crud.commit_or_raise(self.db, "begin tie-breaker")
            log.info("awaiting selection for %d tied competitors", len(members))

        return members

    def resolve(self, event_id: str, rank_start: int, ordered_winner_ids: list[str]) -> list[models.ScoreRecord]:
        """Apply the judge's order to a podium tie group.

        ``ordered_winner_ids`` lists every member but the last, best first.
        Nothing is written unless the whole selection is valid. An untouched
        group passes through awaiting_selection implicitly, so calling
        ``begin_resolution`` first is optional.
        """
        log = operation_logger(self.logger, event=event_id, rank=rank_start)
        event, group = self._group_or_raise(event_id, rank_start)
        members = self._members(group)

        if crud.group_status(members, group.fingerprint) == "resolved":
            raise ValidationError("Tie group is already resolved. Reopen it to choose again.")

        expected = group.size - 1
        if len(ordered_winner_ids) != expected:
            raise ValidationError(
                f"Select exactly {expected} winner{'s' if expected != 1 else ''} "
                f"for a {group.size}-way tie, got {len(ordered_winner_ids)}."
            )

        member_ids = set(group.competitor_ids)
        foreign = [competitor_id for competitor_id in ordered_winner_ids if competitor_id not in member_ids]
        if foreign:
            raise ValidationError(f"Not in this tie group: {', '.join(foreign)}")
        if len(set(ordered_winner_ids)) != len(ordered_winner_ids):
            raise ValidationError("Each competitor can be selected only once.")

        remaining = [competitor_id for competitor_id in group.competitor_ids if competitor_id not in ordered_winner_ids]
        final_order = [*ordered_winner_ids, *remaining]

        by_competitor = {member.competitor_id: member for member in members}
        tournament_class = crud.event_tournament_class(event)
        field_size = crud.event_field_size(self.db, event_id)
        fingerprint = group.fingerprint

        for offset, competitor_id in enumerate(final_order):
            member = by_competitor[competitor_id]
            member.final_rank = group.rank_start + offset
            member.points_earned = points(member.final_rank, tournament_class, field_size)
            member.tie_breaker_status = "resolved"
            member.tie_group_key = fingerprint

        crud.commit_or_raise(self.db, "resolve tie-breaker")
        log.info("resolved tie order: %s", ", ".join(final_order))

        crud.recompute_event(self.db, event_id, log=log)
        return [by_competitor[competitor_id] for competitor_id in final_order]

    def reopen(self, event_id: str, rank_start: int) -> list[models.ScoreRecord]:
        """Undo a resolution so the judge can choose again."""
        log = operation_logger(self.logger, event=event_id, rank=rank_start)
        _, group = self._group_or_raise(event_id, rank_start)
        members = self._members(group)

        if crud.group_status(members, group.fingerprint) != "resolved":
            raise ValidationError("Only a resolved tie group can be reopened.")

        for member in members:
            member.tie_breaker_status = "untouched"
            member.tie_group_key = None
        crud.commit_or_raise(self.db, "reopen tie-breaker")
        log.info("reopened tie-breaker")

        crud.recompute_event(self.db, event_id, log=log)
        return members
