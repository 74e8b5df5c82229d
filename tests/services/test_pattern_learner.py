"""
Tests for PatternLearner.

Validates sample-size thresholds, confidence, idempotent upserts, pattern
lookup by context hint and failure reporting.
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from tonemap.exceptions import NotAuthenticatedError, PersistenceError
from tonemap.models.listening_models import (
    AudioFeatures,
    ContextSignature,
    DayGroup,
    DayOfWeek,
    PatternKind,
    TimeOfDay,
    WeatherCondition,
)
from tonemap.services.event_store import InMemoryEventStore
from tonemap.services.pattern_learner import (
    COMBINED_SIGNATURES,
    PatternLearner,
    build_characteristics,
    signature_covers,
    single_dimension_signatures,
)

SATURDAY_MORNING = datetime(2024, 3, 2, 9, 0)


@pytest.fixture
def learner(event_store, clock):
    return PatternLearner(event_store, clock=clock)


def _saved_keys(report):
    return {p.signature.key() for p in report.saved}


class TestSignatureFamilies:
    def test_every_dimension_value_gets_a_signature(self):
        signatures = single_dimension_signatures()
        assert len(signatures) == 4 + 7 + 7 + 5
        assert all(len(s.specified) == 1 for s in signatures)

    def test_combined_signatures_use_day_groups(self):
        assert len(COMBINED_SIGNATURES) == 4
        assert all(s.kind is PatternKind.COMBINED for s in COMBINED_SIGNATURES)
        assert all(isinstance(s.day_of_week, DayGroup) for s in COMBINED_SIGNATURES)


class TestBuildCharacteristics:
    def test_averages_skip_missing_values(self, make_event):
        events = [
            make_event(energy=0.2, valence=0.4, genres=["jazz"], artist_name="Miles"),
            make_event(features=AudioFeatures(energy=0.6), genres=["jazz", "bebop"], artist_name="Miles"),
        ]

        characteristics = build_characteristics(events)

        assert characteristics.sample_size == 2
        assert characteristics.avg_energy == pytest.approx(0.4)
        assert characteristics.avg_valence == pytest.approx(0.4)
        assert characteristics.avg_danceability is None
        assert characteristics.top_genres[0].name == "jazz"
        assert characteristics.top_genres[0].count == 2
        assert characteristics.top_artists[0].name == "Miles"


class TestAnalyzePatterns:
    @pytest.mark.asyncio
    async def test_single_dimension_needs_three_samples(self, learner, event_store, make_event, user_id, now):
        rainy = [
            make_event(played_at=now - timedelta(days=i + 1), weather=WeatherCondition.RAINY)
            for i in range(2)
        ]
        event_store.add_events(rainy)

        report = await learner.analyze_patterns(user_id)
        rainy_key = ContextSignature(weather=WeatherCondition.RAINY).key()
        assert rainy_key not in _saved_keys(report)

        event_store.add_events([make_event(played_at=now - timedelta(days=5), weather=WeatherCondition.RAINY)])
        report = await learner.analyze_patterns(user_id)
        assert rainy_key in _saved_keys(report)

    @pytest.mark.asyncio
    async def test_combined_needs_ten_samples(self, learner, event_store, make_event, user_id):
        weekend_morning = ContextSignature(time_of_day=TimeOfDay.MORNING, day_of_week=DayGroup.WEEKEND)
        event_store.add_events([
            make_event(played_at=SATURDAY_MORNING - timedelta(weeks=i)) for i in range(9)
        ])

        report = await learner.analyze_patterns(user_id)
        assert weekend_morning.key() not in _saved_keys(report)
        assert ContextSignature(day_of_week=DayOfWeek.SATURDAY).key() in _saved_keys(report)

        event_store.add_events([make_event(played_at=SATURDAY_MORNING - timedelta(weeks=9))])
        report = await learner.analyze_patterns(user_id)
        assert weekend_morning.key() in _saved_keys(report)

    @pytest.mark.asyncio
    async def test_morning_pattern_confidence(self, learner, event_store, morning_events, user_id):
        event_store.add_events(morning_events)

        await learner.analyze_patterns(user_id)
        pattern = await event_store.get_pattern(user_id, ContextSignature(time_of_day=TimeOfDay.MORNING))

        assert pattern.sample_size == 60
        assert pattern.confidence_score == pytest.approx(0.6)
        assert pattern.avg_energy == pytest.approx(0.8)

    @pytest.mark.asyncio
    async def test_confidence_capped_at_one(self, learner, event_store, make_event, user_id, now):
        event_store.add_events([
            make_event(played_at=(now - timedelta(days=i + 1)).replace(hour=19)) for i in range(150)
        ])

        await learner.analyze_patterns(user_id)
        pattern = await event_store.get_pattern(user_id, ContextSignature(time_of_day=TimeOfDay.EVENING))

        assert pattern.sample_size == 150
        assert pattern.confidence_score == 1.0

    @pytest.mark.asyncio
    async def test_events_without_energy_are_ignored(self, learner, event_store, make_event, user_id, now):
        event_store.add_events([
            make_event(played_at=now - timedelta(days=i + 1), features=AudioFeatures(valence=0.5))
            for i in range(5)
        ])

        report = await learner.analyze_patterns(user_id)

        assert report.saved == []

    @pytest.mark.asyncio
    async def test_reanalysis_updates_in_place(self, learner, event_store, morning_events, user_id):
        event_store.add_events(morning_events)
        signature = ContextSignature(time_of_day=TimeOfDay.MORNING)

        await learner.analyze_patterns(user_id)
        first = await event_store.get_pattern(user_id, signature)
        await learner.analyze_patterns(user_id)
        second = await event_store.get_pattern(user_id, signature)

        assert first.pattern_id == second.pattern_id
        patterns = await event_store.get_patterns_for_context(user_id, time_of_day=TimeOfDay.MORNING, limit=100)
        assert len([p for p in patterns if p.signature == signature]) == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_keep_one_row_per_signature(
        self, learner, event_store, morning_events, user_id, clock
    ):
        event_store.add_events(morning_events)
        other_session = PatternLearner(event_store, clock=clock)

        first, second, third = await asyncio.gather(
            learner.analyze_patterns(user_id),
            learner.analyze_patterns(user_id),
            other_session.analyze_patterns(user_id),
        )

        keys = _saved_keys(first)
        assert keys == _saved_keys(second) == _saved_keys(third)
        assert len(event_store._pattern_rows) == len(keys)
        for report in (second, third):
            ids = {p.signature.key(): p.pattern_id for p in report.saved}
            assert ids == {p.signature.key(): p.pattern_id for p in first.saved}

    @pytest.mark.asyncio
    async def test_failed_writes_are_reported(self, make_event, user_id, now, clock):
        class FailingStore(InMemoryEventStore):
            async def upsert_pattern(self, user_id, signature, characteristics):
                if signature.weather is WeatherCondition.SUNNY:
                    raise PersistenceError("disk full")
                return await super().upsert_pattern(user_id, signature, characteristics)

        store = FailingStore(clock=clock)
        store.add_events([
            make_event(played_at=now - timedelta(days=i + 1), weather=WeatherCondition.SUNNY) for i in range(4)
        ])

        report = await PatternLearner(store, clock=clock).analyze_patterns(user_id)

        assert report.failed == [ContextSignature(weather=WeatherCondition.SUNNY)]
        assert not report.succeeded
        assert report.saved

    @pytest.mark.asyncio
    async def test_requires_user(self, learner):
        with pytest.raises(NotAuthenticatedError):
            await learner.analyze_patterns("")


class TestPatternLookup:
    def test_signature_covers(self):
        hint = ContextSignature(time_of_day=TimeOfDay.MORNING, day_of_week=DayOfWeek.SATURDAY)
        assert signature_covers(hint, ContextSignature(time_of_day=TimeOfDay.MORNING))
        assert signature_covers(hint, ContextSignature(time_of_day=TimeOfDay.MORNING, day_of_week=DayGroup.WEEKEND))
        assert not signature_covers(hint, ContextSignature(day_of_week=DayGroup.WEEKDAY))
        assert not signature_covers(hint, ContextSignature(weather=WeatherCondition.RAINY))

    @pytest.mark.asyncio
    async def test_exact_pattern_wins(self, learner, event_store, morning_events, user_id):
        event_store.add_events(morning_events)
        await learner.analyze_patterns(user_id)

        hint = ContextSignature(time_of_day=TimeOfDay.MORNING)
        pattern = await learner.find_best_pattern(user_id, hint)

        assert pattern.signature == hint

    @pytest.mark.asyncio
    async def test_falls_back_to_most_confident_covering_pattern(
        self, learner, event_store, morning_events, user_id
    ):
        event_store.add_events(morning_events)
        await learner.analyze_patterns(user_id)

        hint = ContextSignature(
            time_of_day=TimeOfDay.MORNING,
            day_of_week=DayOfWeek.TUESDAY,
            weather=WeatherCondition.SNOWY
        )
        pattern = await learner.find_best_pattern(user_id, hint)

        assert pattern is not None
        assert signature_covers(hint, pattern.signature)
        assert pattern.signature.weather is not WeatherCondition.SNOWY

    @pytest.mark.asyncio
    async def test_no_pattern_without_history(self, learner, user_id):
        assert await learner.find_best_pattern(user_id, ContextSignature(time_of_day=TimeOfDay.NIGHT)) is None

    @pytest.mark.asyncio
    async def test_taste_summary(self, learner, event_store, morning_events, user_id):
        assert await learner.get_taste_summary(user_id) is None

        event_store.add_events(morning_events)
        await learner.analyze_patterns(user_id)
        summary = await learner.get_taste_summary(user_id)

        assert summary.avg_energy == pytest.approx(0.8)
        assert summary.top_genres == ["indie rock"]
        assert summary.pattern_count > 1
