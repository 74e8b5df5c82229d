"""
Tests for ContextTracker and its change classification.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from tonemap.exceptions import ExternalLookupError
from tonemap.models.config_models import EngineConfig
from tonemap.models.context_models import (
    ContextChange,
    ContextChangeType,
    ListeningContext,
    Mood,
    TrackerState,
)
from tonemap.models.listening_models import ActivityType, DayOfWeek, TimeOfDay, WeatherCondition
from tonemap.models.playlist_models import (
    GeneratedPlaylist,
    GenerationType,
    PlaylistContextSnapshot,
    PlaylistTemplate,
)
from tonemap.services.cache_manager import CacheManager
from tonemap.services.context_detector import ContextDetector
from tonemap.services.context_tracker import (
    NOTIFICATION_TITLE,
    ContextTracker,
    choose_template,
    describe_changes,
    detect_changes,
)


def _context(now, time_of_day=TimeOfDay.MORNING, day=DayOfWeek.WEDNESDAY, **kwargs):
    return ListeningContext(timestamp=now, time_of_day=time_of_day, day_of_week=day, **kwargs)


@pytest.fixture
def playlist(user_id):
    return GeneratedPlaylist(
        user_id=user_id,
        name="Contextual",
        context_snapshot=PlaylistContextSnapshot(generation_type=GenerationType.AUTO, is_context_based=True)
    )


@pytest.fixture
def assembler(playlist):
    mock = AsyncMock()
    mock.generate_from_template.return_value = playlist
    return mock


@pytest.fixture
def sink():
    return AsyncMock()


@pytest.fixture
def detector(event_store, clock):
    return ContextDetector(event_store, clock=clock)


@pytest.fixture
def tracker(user_id, detector, assembler, event_store, sink, clock):
    return ContextTracker(user_id, detector, assembler, event_store, notification_sink=sink, clock=clock)


class TestDetectChanges:
    def test_identical_contexts(self, now):
        assert detect_changes(_context(now), _context(now)) == []

    def test_time_shift(self, now):
        changes = detect_changes(_context(now), _context(now, TimeOfDay.AFTERNOON))

        assert changes == [ContextChange(ContextChangeType.TIME_SHIFT, "morning", "afternoon")]

    def test_lost_weather_is_not_a_change(self, now):
        previous = _context(now, weather=WeatherCondition.RAINY)
        assert detect_changes(previous, _context(now)) == []

    def test_weather_and_activity(self, now):
        previous = _context(now, weather=WeatherCondition.SUNNY)
        current = _context(now, weather=WeatherCondition.RAINY, activity=ActivityType.WALKING)

        kinds = [c.change_type for c in detect_changes(previous, current)]

        assert kinds == [ContextChangeType.WEATHER_CHANGE, ContextChangeType.ACTIVITY_CHANGE]

    def test_mood_and_genre_shifts(self, now):
        previous = _context(now, recent_genres=["jazz"], recent_mood=Mood.CALM_HAPPY)
        current = _context(now, recent_genres=["techno"], recent_mood=Mood.ENERGETIC_INTENSE)

        changes = detect_changes(previous, current)

        assert len(changes) == 2
        assert all(c.change_type is ContextChangeType.LISTENING_PATTERN_CHANGE for c in changes)

    def test_overlapping_genres_are_not_a_change(self, now):
        previous = _context(now, recent_genres=["jazz", "soul"])
        current = _context(now, recent_genres=["soul", "funk"])
        assert detect_changes(previous, current) == []


class TestChooseTemplate:
    @pytest.mark.parametrize("time_of_day,day,mood,template", [
        (TimeOfDay.NIGHT, DayOfWeek.MONDAY, Mood.ENERGETIC_HAPPY, PlaylistTemplate.WORKOUT),
        (TimeOfDay.MORNING, DayOfWeek.MONDAY, Mood.CALM_MELANCHOLIC, PlaylistTemplate.EVENING_WINDDOWN),
        (TimeOfDay.MORNING, DayOfWeek.MONDAY, Mood.BALANCED, PlaylistTemplate.MORNING_ENERGY),
        (TimeOfDay.AFTERNOON, DayOfWeek.TUESDAY, Mood.CALM_HAPPY, PlaylistTemplate.FOCUS_FLOW),
        (TimeOfDay.AFTERNOON, DayOfWeek.SUNDAY, Mood.BALANCED, PlaylistTemplate.RIGHT_NOW),
        (TimeOfDay.EVENING, DayOfWeek.FRIDAY, Mood.BALANCED, PlaylistTemplate.EVENING_WINDDOWN),
        (TimeOfDay.NIGHT, DayOfWeek.SATURDAY, Mood.BALANCED, PlaylistTemplate.EVENING_WINDDOWN),
    ])
    def test_template_for_context(self, now, time_of_day, day, mood, template):
        assert choose_template(_context(now, time_of_day, day, recent_mood=mood)) is template


class TestDescribeChanges:
    def test_descriptions(self):
        changes = [
            ContextChange(ContextChangeType.TIME_SHIFT, "morning", "afternoon"),
            ContextChange(ContextChangeType.WEATHER_CHANGE, "sunny", "partly_cloudy"),
            ContextChange(ContextChangeType.ACTIVITY_CHANGE, None, "running"),
        ]
        assert describe_changes(changes) == (
            "Good afternoon, Weather changed to partly cloudy, You're now running"
        )

    def test_empty(self):
        assert describe_changes([]) == "Context updated"


class TestCheckContext:
    @pytest.mark.asyncio
    async def test_first_check_only_stores_context(self, tracker, assembler):
        result = await tracker.check_context()

        assert result.suppressed_reason == "initial context"
        assert tracker.last_context.time_of_day is TimeOfDay.MORNING
        assert tracker.state is TrackerState.IDLE
        assert_not_generated(assembler)

    @pytest.mark.asyncio
    async def test_unchanged_context_does_nothing(self, tracker, assembler, clock):
        await tracker.check_context()
        clock.advance(minutes=15)

        result = await tracker.check_context()

        assert result.changes == []
        assert not result.generated
        assert_not_generated(assembler)

    @pytest.mark.asyncio
    async def test_time_bucket_rollover_generates(self, tracker, assembler, sink, clock, playlist):
        await tracker.check_context()
        clock.set(clock().replace(hour=12))

        result = await tracker.check_context()

        assert result.generated
        assert [c.change_type for c in result.changes] == [ContextChangeType.TIME_SHIFT]
        call = assembler.generate_from_template.await_args
        assert call.args[1] is PlaylistTemplate.FOCUS_FLOW
        assert call.args[2].use_current_context and call.args[2].include_discovery
        assert call.kwargs["changes"] == ["Good afternoon"]
        assert tracker.last_generation_at == clock()

        sink.notify.assert_awaited_once_with(
            NOTIFICATION_TITLE,
            "Good afternoon. We made a fresh playlist just for you.",
            {"type": "contextual_playlist", "playlist_id": playlist.playlist_id, "template": "focus_flow"}
        )
        suggestions = await tracker.get_contextual_suggestions()
        assert [s.playlist.playlist_id for s in suggestions] == [playlist.playlist_id]
        assert suggestions[0].expires_at == clock() + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_generation_gate(self, tracker, detector, assembler, clock):
        await tracker.check_context()
        clock.set(clock().replace(hour=12))
        await tracker.check_context()

        clock.advance(minutes=10)
        detector.set_activity(ActivityType.RUNNING)
        gated = await tracker.check_context()

        assert gated.suppressed_reason == "rate limited"
        assert assembler.generate_from_template.await_count == 1

        clock.advance(minutes=25)
        detector.set_activity(ActivityType.WALKING)
        allowed = await tracker.check_context()

        assert allowed.generated
        assert assembler.generate_from_template.await_count == 2

    @pytest.mark.asyncio
    async def test_no_playlist_leaves_gate_open(self, tracker, assembler, clock):
        assembler.generate_from_template.return_value = None
        await tracker.check_context()
        clock.set(clock().replace(hour=12))

        result = await tracker.check_context()

        assert result.suppressed_reason == "no listening data"
        assert tracker.last_generation_at is None

    @pytest.mark.asyncio
    async def test_notification_failure_is_not_fatal(self, tracker, sink, clock):
        sink.notify.side_effect = ExternalLookupError("push", "unreachable")
        await tracker.check_context()
        clock.set(clock().replace(hour=18))

        result = await tracker.check_context()

        assert result.generated

    @pytest.mark.asyncio
    async def test_manual_trigger_ignores_gate(self, tracker, assembler, clock):
        await tracker.generate_for_current_context()
        clock.advance(minutes=1)
        await tracker.generate_for_current_context()

        assert assembler.generate_from_template.await_count == 2
        assert assembler.generate_from_template.await_args.args[1] is PlaylistTemplate.MORNING_ENERGY

    @pytest.mark.asyncio
    async def test_suggestions_expire(self, tracker, clock):
        await tracker.generate_for_current_context()

        clock.advance(hours=24)

        assert await tracker.get_contextual_suggestions() == []


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_restores_state_and_stop_goes_idle(
        self, user_id, detector, assembler, event_store, clock, now, tmp_path
    ):
        cache = CacheManager(cache_dir=str(tmp_path))
        cache.save_tracker_state(user_id, _context(now.replace(hour=6)), None)
        clock.set(now.replace(hour=13))
        tracker = ContextTracker(user_id, detector, assembler, event_store, cache_manager=cache, clock=clock)

        await tracker.start()

        assert tracker.is_tracking
        assert tracker.state is TrackerState.TRACKING
        assembler.generate_from_template.assert_awaited_once()
        assert cache.get_tracker_state(user_id)[1] == clock()

        await tracker.stop()

        assert not tracker.is_tracking
        assert tracker.state is TrackerState.IDLE
        cache.close()

    @pytest.mark.asyncio
    async def test_store_error_does_not_end_tracking(self, user_id, detector, assembler, event_store, clock, now):
        calls = []

        async def flaky_detect(uid):
            calls.append(uid)
            if len(calls) == 2:
                raise ConnectionError("db down")
            return _context(now)

        detector.detect = flaky_detect
        config = EngineConfig(context_check_interval_minutes=0.0001)
        tracker = ContextTracker(user_id, detector, assembler, event_store, config=config, clock=clock)

        await tracker.start()
        for _ in range(200):
            if len(calls) >= 4:
                break
            await asyncio.sleep(0.01)

        assert len(calls) >= 4
        assert tracker.is_tracking

        await tracker.stop()

        assert tracker.state is TrackerState.IDLE

    @pytest.mark.asyncio
    async def test_stop_after_failed_timer(self, tracker):
        async def broken():
            raise OSError("disk gone")

        tracker._tick_task = asyncio.ensure_future(broken())
        await asyncio.sleep(0)

        await tracker.stop()

        assert tracker.state is TrackerState.IDLE

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_timer(self, tracker):
        await tracker.start()
        task = tracker._tick_task

        await tracker.start()

        assert tracker._tick_task is task
        await tracker.stop()


def assert_not_generated(assembler):
    assembler.generate_from_template.assert_not_awaited()
