"""Ranking engine for judged events (standard competition ranking).

Single source of truth for event ranks across API, tie-breaker and points:
- Sort by total score descending; ties share the rank of their first slot.
- The next distinct score skips as many ranks as the tie group is wide
  (27, 27, 24 -> 1, 1, 3).
- Order inside a tie group is competitor id ascending, never store order.
- Tie groups resolved by a judge keep their order while their fingerprint
  (members, shared total) is unchanged; the block moves with its base rank.
"""
from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from .points import PODIUM_PLACES


class ScoreLike(Protocol):
    competitor_id: str
    total_score: float | None


@dataclass(frozen=True)
class RankedRecord:
    competitor_id: str
    total_score: float
    rank: int
    is_tied: bool
    group_size: int
    record: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class TieGroup:
    rank_start: int
    total_score: float
    members: tuple[RankedRecord, ...]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def rank_end(self) -> int:
        return self.rank_start + self.size - 1

    @property
    def affects_podium(self) -> bool:
        return self.rank_start <= PODIUM_PLACES

    @property
    def competitor_ids(self) -> tuple[str, ...]:
        return tuple(member.competitor_id for member in self.members)

    @property
    def fingerprint(self) -> str:
        return tie_group_fingerprint(self.competitor_ids, self.total_score)


@dataclass(frozen=True)
class Placement:
    competitor_id: str
    total_score: float
    rank: int
    is_tied: bool
    frozen: bool
    tie_breaker_status: str
    tie_group_key: str | None = None
    record: Any = field(default=None, compare=False, repr=False)


def _total(record: ScoreLike) -> float:
    value = getattr(record, "total_score", None)
    if value is None:
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def tie_group_fingerprint(competitor_ids: Iterable[str], total_score: float) -> str:
    payload = {
        "members": sorted(competitor_ids),
        "total": round(float(total_score), 2),
    }
    raw = json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    return f"tb:{hashlib.sha1(raw.encode('utf-8')).hexdigest()}"


def rank_records(records: Iterable[ScoreLike]) -> list[RankedRecord]:
    ordered = sorted(records, key=lambda record: (-_total(record), str(record.competitor_id)))

    ranked: list[RankedRecord] = []
    index = 0
    while index < len(ordered):
        score = _total(ordered[index])
        end = index
        while end < len(ordered) and _total(ordered[end]) == score:
            end += 1

        group_size = end - index
        rank = index + 1
        for record in ordered[index:end]:
            ranked.append(
                RankedRecord(
                    competitor_id=str(record.competitor_id),
                    total_score=score,
                    rank=rank,
                    is_tied=group_size > 1,
                    group_size=group_size,
                    record=record,
                )
            )
        index = end

    return ranked


def tie_groups(ranked: Sequence[RankedRecord], podium_only: bool = False) -> list[TieGroup]:
    groups: list[TieGroup] = []
    current: list[RankedRecord] = []

    def flush() -> None:
        if len(current) > 1:
            group = TieGroup(
                rank_start=current[0].rank,
                total_score=current[0].total_score,
                members=tuple(current),
            )
            if group.affects_podium or not podium_only:
                groups.append(group)

    for row in ranked:
        if current and row.rank != current[0].rank:
            flush()
            current = []
        current.append(row)
    flush()

    return groups


def place_with_resolutions(
    ranked: Sequence[RankedRecord],
    resolutions: Mapping[str, tuple[str, int | None, str | None]],
) -> list[Placement]:
    """Merge a fresh ranking with persisted tie-breaker state.

    ``resolutions`` maps competitor id to (tie_breaker_status, final_rank,
    tie_group_key) as last persisted. A resolved group is frozen only if
    every member is resolved under the fingerprint the group has now;
    otherwise its members fall back to the plain competition rank and
    their status reverts to untouched.

    A frozen group keeps the judge's order but sits at the group's current
    base rank, so scores added or removed above it shift the whole block.
    """
    frozen_ranks: dict[str, int] = {}
    podium_tied_ids: set[str] = set()

    for group in tie_groups(ranked):
        if group.affects_podium:
            podium_tied_ids.update(group.competitor_ids)

        fingerprint = group.fingerprint
        states = {competitor_id: resolutions.get(competitor_id) for competitor_id in group.competitor_ids}
        if not all(
            state is not None and state[0] == "resolved" and state[1] and state[2] == fingerprint
            for state in states.values()
        ):
            continue

        judged_order = sorted(
            group.competitor_ids,
            key=lambda competitor_id: (states[competitor_id][1], competitor_id),  # type: ignore[index]
        )
        for offset, competitor_id in enumerate(judged_order):
            frozen_ranks[competitor_id] = group.rank_start + offset

    placements: list[Placement] = []
    for row in ranked:
        status, _, stored_key = resolutions.get(row.competitor_id, ("untouched", None, None))

        if row.competitor_id in frozen_ranks:
            placements.append(
                Placement(
                    competitor_id=row.competitor_id,
                    total_score=row.total_score,
                    rank=frozen_ranks[row.competitor_id],
                    is_tied=False,
                    frozen=True,
                    tie_breaker_status="resolved",
                    tie_group_key=stored_key,
                    record=row.record,
                )
            )
            continue

        if status == "awaiting_selection" and row.competitor_id in podium_tied_ids:
            next_status = "awaiting_selection"
        else:
            next_status = "untouched"

        placements.append(
            Placement(
                competitor_id=row.competitor_id,
                total_score=row.total_score,
                rank=row.rank,
                is_tied=row.is_tied,
                frozen=False,
                tie_breaker_status=next_status,
                tie_group_key=None,
                record=row.record,
            )
        )

    return sorted(placements, key=lambda placement: (placement.rank, placement.competitor_id))
