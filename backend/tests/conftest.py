from datetime import datetime, timezone

import pytest
from sqlalchemy.pool import StaticPool

from formscore import models
from formscore.database import Base, build_engine, make_session_factory
from formscore.retry import RetryPolicy


@pytest.fixture()
def session_factory():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    session_factory = make_session_factory(engine)
    Base.metadata.create_all(bind=engine)
    return session_factory


@pytest.fixture()
def fast_policy():
    return RetryPolicy(max_attempts=3, initial_delay_ms=10, backoff_multiplier=2.0)


@pytest.fixture()
def sleeps():
    """Collects requested delays instead of sleeping."""
    return []


def seed_tournament(session_factory, tournament_class="A", competitors=("Alice", "Bob", "Carol"), name="Spring Open"):
    with session_factory() as db:
        tournament = models.Tournament(
            name=name,
            tournament_class=tournament_class,
            date=datetime(2026, 4, 18, tzinfo=timezone.utc),
        )
        db.add(tournament)
        db.flush()

        people = [models.Competitor(tournament_id=tournament.id, name=person) for person in competitors]
        db.add_all(people)
        db.commit()

        return tournament.id, {person.name: person.id for person in people}
