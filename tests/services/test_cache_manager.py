"""
Tests for CacheManager.
"""

import pytest

from tonemap.models.context_models import ListeningContext, Mood, WeatherReading
from tonemap.models.listening_models import ActivityType, DayOfWeek, TimeOfDay, WeatherCondition
from tonemap.services.cache_manager import CacheManager


@pytest.fixture
def cache(tmp_path):
    manager = CacheManager(cache_dir=str(tmp_path / "cache"))
    yield manager
    manager.close()


class TestCacheManager:
    def test_get_set_and_delete(self, cache):
        assert cache.get("weather", "k") is None
        assert cache.set("weather", "k", {"a": 1})
        assert cache.get("weather", "k") == {"a": 1}
        assert cache.delete("weather", "k")
        assert cache.get("weather", "k", default="missing") == "missing"

    def test_unknown_namespace(self, cache):
        assert not cache.set("lyrics", "k", 1)
        assert cache.get("lyrics", "k", default=0) == 0
        assert not cache.clear("lyrics")

    def test_clear_all(self, cache):
        cache.set("weather", "a", 1)
        cache.set("tracker", "b", 2)

        assert cache.clear()
        assert cache.get_stats()["weather"]["size"] == 0
        assert cache.get_stats()["tracker"]["size"] == 0

    def test_weather_round_trip(self, cache, now):
        reading = WeatherReading(condition=WeatherCondition.RAINY, temperature_c=11.5, fetched_at=now)

        cache.cache_weather(52.5, 13.4, reading)

        assert cache.get_weather(52.5, 13.4) == reading
        assert cache.get_weather(48.8, 2.3) is None

    def test_unreadable_weather_entry_is_a_miss(self, cache):
        cache.set("weather", cache._generate_key("weather", 1.0, 2.0), {"condition": "hail"})
        assert cache.get_weather(1.0, 2.0) is None


class TestTrackerState:
    def test_round_trip(self, cache, user_id, now):
        context = ListeningContext(
            timestamp=now,
            time_of_day=TimeOfDay.MORNING,
            day_of_week=DayOfWeek.WEDNESDAY,
            weather=WeatherCondition.SUNNY,
            activity=ActivityType.WALKING,
            recent_genres=["house"],
            recent_mood=Mood.ENERGETIC_HAPPY
        )

        assert cache.save_tracker_state(user_id, context, now)

        assert cache.get_tracker_state(user_id) == (context, now)

    def test_missing_state(self, cache, user_id):
        assert cache.get_tracker_state(user_id) == (None, None)

    def test_partial_state(self, cache, user_id, now):
        cache.save_tracker_state(user_id, None, now)
        assert cache.get_tracker_state(user_id) == (None, now)
