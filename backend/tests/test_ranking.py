import random
from dataclasses import dataclass

from formscore.ranking import (
    place_with_resolutions,
    rank_records,
    tie_group_fingerprint,
    tie_groups,
)


@dataclass
class Entry:
    competitor_id: str
    total_score: float | None


def entries(**totals):
    return [Entry(competitor_id, total) for competitor_id, total in totals.items()]


def ranks_by_id(ranked):
    return {row.competitor_id: row.rank for row in ranked}


def test_empty_event_has_no_ranks():
    assert rank_records([]) == []
    assert tie_groups([]) == []


def test_single_record_is_first_and_not_tied():
    ranked = rank_records(entries(solo=21.5))

    assert len(ranked) == 1
    assert ranked[0].rank == 1
    assert ranked[0].is_tied is False


def test_ties_share_rank_and_next_rank_skips():
    ranked = rank_records(entries(carol=24.0, bob=27.0, alice=27.0))

    assert [(row.competitor_id, row.rank, row.is_tied) for row in ranked] == [
        ("alice", 1, True),
        ("bob", 1, True),
        ("carol", 3, False),
    ]


def test_three_way_tie_below_leader():
    ranked = rank_records(entries(a=29.0, b=27.0, c=27.0, d=27.0, e=20.0))

    assert ranks_by_id(ranked) == {"a": 1, "b": 2, "c": 2, "d": 2, "e": 5}
    assert ranked[1].group_size == 3


def test_rank_properties_hold_for_mixed_fields():
    fields = [
        [10, 10, 10, 10],
        [30, 29.5, 29.5, 28, 28, 28, 1],
        [5, 7, 5, 7, 9, 0, 0],
        [12.25, 12.2, 12.25],
    ]
    for totals in fields:
        ranked = rank_records([Entry(f"c{index:02d}", total) for index, total in enumerate(totals)])

        assert ranked[0].rank == 1
        for earlier, later in zip(ranked, ranked[1:]):
            assert earlier.rank <= later.rank
            assert earlier.total_score >= later.total_score
            if earlier.total_score == later.total_score:
                assert earlier.rank == later.rank
            else:
                # Next distinct score takes rank r + k for a group of k at rank r.
                assert later.rank == earlier.rank + earlier.group_size


def test_ranking_ignores_input_order():
    records = entries(d=18.0, a=27.0, c=24.0, b=27.0, e=24.0)
    expected = [(row.competitor_id, row.rank) for row in rank_records(records)]

    shuffler = random.Random(7)
    for _ in range(10):
        shuffled = list(records)
        shuffler.shuffle(shuffled)
        assert [(row.competitor_id, row.rank) for row in rank_records(shuffled)] == expected


def test_missing_total_ranks_as_zero():
    ranked = rank_records(entries(late=None, early=3.0, other=0.0))

    assert ranks_by_id(ranked) == {"early": 1, "late": 2, "other": 2}
    assert ranked[1].total_score == 0.0


def test_podium_tie_groups():
    ranked = rank_records(entries(a=30.0, b=28.0, c=28.0, d=28.0, e=20.0, f=20.0))

    all_groups = tie_groups(ranked)
    podium = tie_groups(ranked, podium_only=True)

    assert [(group.rank_start, group.size) for group in all_groups] == [(2, 3), (5, 2)]
    assert [(group.rank_start, group.rank_end) for group in podium] == [(2, 4)]
    assert podium[0].competitor_ids == ("b", "c", "d")


def test_tie_starting_on_third_place_affects_podium():
    ranked = rank_records(entries(a=30.0, b=29.0, c=28.0, d=28.0, e=28.0))

    podium = tie_groups(ranked, podium_only=True)

    assert len(podium) == 1
    assert podium[0].rank_start == 3
    assert podium[0].rank_end == 5


def test_fingerprint_tracks_members_and_total():
    base = tie_group_fingerprint(["b", "a"], 27.0)

    assert base == tie_group_fingerprint(["a", "b"], 27.0)
    assert base.startswith("tb:")
    assert base != tie_group_fingerprint(["a", "b"], 27.5)
    assert base != tie_group_fingerprint(["a", "b", "c"], 27.0)


def test_fingerprint_ignores_where_the_group_sits():
    lower = rank_records(entries(alice=27.0, bob=27.0))
    higher = rank_records(entries(dora=30.0, alice=27.0, bob=27.0))

    assert tie_groups(lower)[0].fingerprint == tie_groups(higher)[0].fingerprint


def test_resolved_group_stays_frozen():
    ranked = rank_records(entries(alice=27.0, bob=27.0, carol=24.0))
    key = tie_groups(ranked)[0].fingerprint
    resolutions = {
        "alice": ("resolved", 2, key),
        "bob": ("resolved", 1, key),
        "carol": ("untouched", 3, None),
    }

    placements = place_with_resolutions(ranked, resolutions)

    assert [(item.competitor_id, item.rank, item.frozen) for item in placements] == [
        ("bob", 1, True),
        ("alice", 2, True),
        ("carol", 3, False),
    ]
    assert all(item.is_tied is False for item in placements)


def test_resolved_group_reverts_when_total_changes():
    before = rank_records(entries(alice=27.0, bob=27.0, carol=24.0))
    key = tie_groups(before)[0].fingerprint
    resolutions = {
        "alice": ("resolved", 2, key),
        "bob": ("resolved", 1, key),
        "carol": ("untouched", 3, None),
    }

    after = rank_records(entries(alice=27.0, bob=27.0, carol=27.0))
    placements = place_with_resolutions(after, resolutions)

    assert {item.competitor_id: item.rank for item in placements} == {"alice": 1, "bob": 1, "carol": 1}
    assert {item.tie_breaker_status for item in placements} == {"untouched"}
    assert not any(item.frozen for item in placements)


def test_awaiting_selection_survives_only_inside_podium_tie():
    ranked = rank_records(entries(alice=27.0, bob=27.0, carol=24.0))
    resolutions = {
        "alice": ("awaiting_selection", 1, None),
        "bob": ("awaiting_selection", 1, None),
        "carol": ("awaiting_selection", 3, None),
    }

    statuses = {item.competitor_id: item.tie_breaker_status for item in place_with_resolutions(ranked, resolutions)}

    assert statuses == {"alice": "awaiting_selection", "bob": "awaiting_selection", "carol": "untouched"}


def test_frozen_group_moves_with_its_base_rank():
    before = rank_records(entries(alice=27.0, bob=27.0, carol=24.0))
    key = tie_groups(before)[0].fingerprint
    resolutions = {
        "alice": ("resolved", 2, key),
        "bob": ("resolved", 1, key),
        "carol": ("untouched", 3, None),
    }

    after = rank_records(entries(dora=30.0, alice=27.0, bob=27.0, carol=24.0))
    placements = place_with_resolutions(after, resolutions)

    assert [(item.competitor_id, item.rank, item.tie_breaker_status) for item in placements] == [
        ("dora", 1, "untouched"),
        ("bob", 2, "resolved"),
        ("alice", 3, "resolved"),
        ("carol", 4, "untouched"),
    ]
    assert placements[1].tie_group_key == key
