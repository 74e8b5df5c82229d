"""
Shared fixtures for the ToneMap test suite.
"""

import itertools
from datetime import datetime, timedelta

import pytest

from tonemap.models.listening_models import AudioFeatures, ListeningEvent, TrackCandidate
from tonemap.services.event_store import InMemoryEventStore

# Wednesday, 9am
NOW = datetime(2024, 3, 6, 9, 0, 0)
USER_ID = "user-1"


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Mutable clock: call it for the time, `clock.advance(...)` to move it."""

    class FakeClock:
        def __init__(self):
            self.current = NOW

        def __call__(self):
            return self.current

        def advance(self, **kwargs):
            self.current += timedelta(**kwargs)
            return self.current

        def set(self, moment):
            self.current = moment
            return self.current

    return FakeClock()


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def event_store(clock):
    return InMemoryEventStore(clock=clock)


@pytest.fixture
def make_event():
    """Factory for listening events with sensible defaults."""
    counter = itertools.count(1)

    def factory(
        played_at=NOW,
        track_id=None,
        artist_name=None,
        energy=0.6,
        valence=0.6,
        tempo=120.0,
        genres=None,
        user_id=USER_ID,
        **kwargs
    ):
        n = next(counter)
        features = kwargs.pop("features", None) or AudioFeatures(energy=energy, valence=valence, tempo=tempo)
        return ListeningEvent(
            user_id=user_id,
            track_id=track_id or f"track-{n}",
            track_name=kwargs.pop("track_name", f"Track {n}"),
            artist_name=artist_name or f"Artist {n}",
            played_at=played_at,
            features=features,
            genres=list(genres) if genres is not None else ["indie rock"],
            **kwargs
        )

    return factory


@pytest.fixture
def make_track():
    """Factory for track candidates."""
    counter = itertools.count(1)

    def factory(
        track_id=None,
        artist_name=None,
        energy=0.6,
        valence=0.6,
        tempo=120.0,
        genres=None,
        **kwargs
    ):
        n = next(counter)
        features = kwargs.pop("features", None) or AudioFeatures(energy=energy, valence=valence, tempo=tempo)
        return TrackCandidate(
            track_id=track_id or f"cand-{n}",
            track_name=kwargs.pop("track_name", f"Candidate {n}"),
            artist_name=artist_name or f"Band {n}",
            features=features,
            genres=list(genres) if genres is not None else ["indie rock"],
            **kwargs
        )

    return factory


@pytest.fixture
def morning_events(make_event):
    """60 morning plays over the last 20 days, one artist each, energy 0.8."""
    events = []
    for i in range(60):
        day = NOW - timedelta(days=(i % 20) + 1)
        played_at = day.replace(hour=6 + (i % 5), minute=i % 60)
        events.append(make_event(
            played_at=played_at,
            track_id=f"morning-{i}",
            artist_name=f"Morning Artist {i}",
            energy=0.8,
            valence=0.7,
            tempo=125.0,
            completed=True
        ))
    return events
