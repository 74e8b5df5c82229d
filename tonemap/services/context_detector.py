"""
Context Detector

Builds a snapshot of the user's current situation: time bucket, weather,
activity, and the mood and genres of what they have been playing lately.
"""

from collections import Counter
from datetime import datetime
from typing import Callable, List, Optional, Sequence

import structlog

from ..api.interfaces import EventStore, WeatherProvider
from ..exceptions import ExternalLookupError, ensure_authenticated
from ..models.config_models import EngineConfig
from ..models.context_models import ListeningContext, Mood, WeatherReading
from ..models.listening_models import ActivityType, DayOfWeek, EventQuery, ListeningEvent, TimeOfDay
from ..utils.async_utils import fetch_with_timeout
from .cache_manager import CacheManager

logger = structlog.get_logger(__name__)

NEUTRAL_FEATURE = 0.5
RECENT_GENRE_COUNT = 3


def derive_recent_mood(events: Sequence[ListeningEvent]) -> Mood:
    """Mood from mean energy/valence of recent events; missing values count as 0.5."""
    if not events:
        return Mood.BALANCED
    energies = [NEUTRAL_FEATURE if e.features.energy is None else e.features.energy for e in events]
    valences = [NEUTRAL_FEATURE if e.features.valence is None else e.features.valence for e in events]
    return Mood.from_averages(sum(energies) / len(energies), sum(valences) / len(valences))


def derive_recent_genres(events: Sequence[ListeningEvent], count: int = RECENT_GENRE_COUNT) -> List[str]:
    """Most frequent genres of recent events."""
    genres = Counter(g for e in events for g in e.genres if g)
    return [genre for genre, _ in genres.most_common(count)]


class ContextDetector:
    """
    Detects the listening context for one session.

    Activity is pushed in by the host (manual choice or a phone activity
    signal); weather comes from the provider through the cache.
    """

    def __init__(
        self,
        event_store: EventStore,
        weather_provider: Optional[WeatherProvider] = None,
        cache_manager: Optional[CacheManager] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.event_store = event_store
        self.weather_provider = weather_provider
        self.cache_manager = cache_manager
        self.config = config or EngineConfig()
        self.clock = clock
        self.activity: Optional[ActivityType] = None
        self.logger = logger.bind(component="ContextDetector")

    def set_activity(self, activity: Optional[ActivityType]) -> None:
        if activity != self.activity:
            self.logger.info(
                "Activity updated",
                previous=self.activity.value if self.activity else None,
                current=activity.value if activity else None
            )
        self.activity = activity

    async def detect(self, user_id: str) -> ListeningContext:
        """
        Detect the current context.

        Raises:
            NotAuthenticatedError: If user_id is empty
        """
        ensure_authenticated(user_id)
        now = self.clock()

        weather = await self._current_weather()
        recent = await fetch_with_timeout(
            self.event_store.get_events_by_context(
                EventQuery(user_id=user_id, limit=self.config.recent_events_window)
            ),
            timeout=self.config.fetch_timeout_seconds,
            default=[],
            operation="recent_events",
            log=self.logger
        )

        context = ListeningContext(
            timestamp=now,
            time_of_day=TimeOfDay.from_datetime(now),
            day_of_week=DayOfWeek.from_datetime(now),
            weather=weather.condition if weather else None,
            temperature_c=weather.temperature_c if weather else None,
            activity=self.activity,
            recent_genres=derive_recent_genres(recent),
            recent_mood=derive_recent_mood(recent)
        )

        self.logger.debug(
            "Context detected",
            time_of_day=context.time_of_day.value,
            day_of_week=context.day_of_week.value,
            weather=context.weather.value if context.weather else None,
            activity=context.activity.value if context.activity else None,
            mood=context.recent_mood.value,
            recent_events=len(recent)
        )
        return context

    async def _current_weather(self) -> Optional[WeatherReading]:
        """Cached reading when fresh, else a provider lookup; None on any failure."""
        if self.weather_provider is None:
            return None

        latitude, longitude = self.config.weather_latitude, self.config.weather_longitude
        if self.cache_manager is not None:
            cached = self.cache_manager.get_weather(latitude, longitude)
            if cached is not None:
                return cached

        try:
            reading = await fetch_with_timeout(
                self.weather_provider.get_current_weather(),
                timeout=self.config.fetch_timeout_seconds,
                default=None,
                operation="current_weather",
                log=self.logger
            )
        except ExternalLookupError as e:
            self.logger.warning("Weather lookup failed, continuing without weather", error=str(e))
            return None

        if reading is not None and self.cache_manager is not None:
            self.cache_manager.cache_weather(latitude, longitude, reading)
        return reading
