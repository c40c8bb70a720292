from __future__ import annotations

import argparse
from datetime import datetime, timezone

from formscore import crud, models
from formscore.database import Base, SessionLocal, engine
from formscore.identity import EventIdentityGuard

DEMO_TOURNAMENTS = [
    {
        "name": "Spring Open",
        "tournament_class": "AA - Regional",
        "date": datetime(2026, 4, 18, tzinfo=timezone.utc),
        "competitors": [
            ("Maya Chen", "tournament"),
            ("Leo Park", "champion"),
            ("Sofia Alvarez", "tournament"),
            ("Noah Kim", "manual"),
            ("Ava Patel", "tournament"),
        ],
    },
    {
        "name": "Harvest Classic",
        "tournament_class": "C",
        "date": datetime(2026, 9, 26, tzinfo=timezone.utc),
        "competitors": [
            ("Leo Park", "champion"),
            ("Ethan Brooks", "tournament"),
            ("Zoe Martin", "manual"),
        ],
    },
]

# Judge A, B, C per competitor name, for the traditional forms event.
DEMO_SCORES = {
    "Spring Open": {
        "Maya Chen": (9.1, 9.0, 9.2),
        "Leo Park": (9.2, 9.0, 9.1),
        "Sofia Alvarez": (8.7, 8.9, 8.8),
        "Noah Kim": (8.5, 8.6, 8.4),
        "Ava Patel": (8.5, 8.5, 8.5),
    },
    "Harvest Classic": {
        "Leo Park": (9.4, 9.3, 9.5),
        "Ethan Brooks": (8.8, 9.0, 8.9),
        "Zoe Martin": (8.1, 8.4, 8.2),
    },
}


def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def apply_demo_scores(db, tournament: models.Tournament) -> None:
    guard = EventIdentityGuard(db)
    scores = DEMO_SCORES.get(tournament.name, {})

    for competitor in tournament.competitors:
        judge_scores = scores.get(competitor.name)
        if judge_scores is None:
            continue
        judge_a, judge_b, judge_c = judge_scores
        crud.submit_score(
            db,
            tournament_id=tournament.id,
            category_type="traditional_forms",
            competitor_id=competitor.id,
            judge_a_score=judge_a,
            judge_b_score=judge_b,
            judge_c_score=judge_c,
            guard=guard,
        )


def seed(*, demo_scores: bool = False) -> None:
    reset_database()

    db = SessionLocal()
    try:
        tournaments: list[models.Tournament] = []

        for fixture in DEMO_TOURNAMENTS:
            tournament = models.Tournament(
                name=fixture["name"],
                tournament_class=fixture["tournament_class"],
                date=fixture["date"],
            )
            db.add(tournament)
            db.flush()

            for name, source_type in fixture["competitors"]:
                db.add(models.Competitor(tournament_id=tournament.id, name=name, source_type=source_type))

            tournaments.append(tournament)

        db.commit()

        if demo_scores:
            for tournament in tournaments:
                db.refresh(tournament)
                apply_demo_scores(db, tournament)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed forms tournament data.")
    parser.add_argument(
        "--demo-scores",
        action="store_true",
        help="Seed with sample judge scores so standings and tie-breakers have data.",
    )
    args = parser.parse_args()

    seed(demo_scores=args.demo_scores)
    mode = "demo" if args.demo_scores else "fresh"
    print(f"Seed completed ({mode})")
