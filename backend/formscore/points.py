"""Seasonal points lookup: (rank, tournament class, field size) -> points."""
import re
from typing import Literal

TournamentClass = Literal["AAA", "AA", "A", "B", "C"]

TOURNAMENT_CLASSES: tuple[str, ...] = ("AAA", "AA", "A", "B", "C")
DEFAULT_CLASS: TournamentClass = "A"
PODIUM_PLACES = 3

POINTS_BY_CLASS: dict[str, dict[int, int]] = {
    "AAA": {1: 20, 2: 15, 3: 10},
    "AA": {1: 15, 2: 10, 3: 8},
    "A": {1: 8, 2: 5, 3: 2},
    "B": {1: 5, 2: 3, 3: 1},
}

_CLASS_PATTERN = re.compile(r"^\s*(AAA|AA|A|B|C)(?:\s*[-–]|\s|$)", re.IGNORECASE)


def normalize_tournament_class(value: object) -> TournamentClass:
    """Map stored class text ("AA - Regional", "c", None, ...) to a class.

    Unknown or garbled input falls back to class A.
    """
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_CLASS

    match = _CLASS_PATTERN.match(value)
    if not match:
        return DEFAULT_CLASS
    return match.group(1).upper()  # type: ignore[return-value]


def _class_c_points(rank: int, field_size: int) -> int:
    if field_size >= 4:
        return {1: 2, 2: 1}.get(rank, 0)
    if field_size == 3:
        return {1: 1}.get(rank, 0)
    return 0


def points(rank: int | None, tournament_class: object, field_size: int | None) -> int:
    if not rank or not field_size or rank <= 0 or field_size <= 0:
        return 0
    if rank > PODIUM_PLACES:
        return 0

    normalized = normalize_tournament_class(tournament_class)
    if normalized == "C":
        return _class_c_points(rank, field_size)

    return POINTS_BY_CLASS[normalized].get(rank, 0)


def medal_for_rank(rank: int | None) -> Literal["gold", "silver", "bronze"] | None:
    if rank == 1:
        return "gold"
    if rank == 2:
        return "silver"
    if rank == 3:
        return "bronze"
    return None
