"""
Context Models

Detected listening context, context changes and the contextual
suggestions produced when the context tracker regenerates a playlist.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from .listening_models import (
    ActivityType,
    ContextSignature,
    DayOfWeek,
    TimeOfDay,
    UNSPECIFIED,
    WeatherCondition,
)
from .playlist_models import GeneratedPlaylist

HIGH_THRESHOLD = 0.6
LOW_THRESHOLD = 0.4


class Mood(Enum):
    """Mood signal derived from recent listening."""
    ENERGETIC_HAPPY = "energetic_happy"
    ENERGETIC_INTENSE = "energetic_intense"
    CALM_HAPPY = "calm_happy"
    CALM_MELANCHOLIC = "calm_melancholic"
    BALANCED = "balanced"

    @classmethod
    def from_averages(cls, energy: float, valence: float) -> "Mood":
        high_energy = energy > HIGH_THRESHOLD
        low_energy = energy < LOW_THRESHOLD
        high_valence = valence > HIGH_THRESHOLD
        low_valence = valence < LOW_THRESHOLD

        if high_energy and high_valence:
            return cls.ENERGETIC_HAPPY
        if high_energy and low_valence:
            return cls.ENERGETIC_INTENSE
        if low_energy and high_valence:
            return cls.CALM_HAPPY
        if low_energy and low_valence:
            return cls.CALM_MELANCHOLIC
        return cls.BALANCED

    @property
    def is_energetic(self) -> bool:
        return self in (Mood.ENERGETIC_HAPPY, Mood.ENERGETIC_INTENSE)


class ContextChangeType(Enum):
    """Kinds of significant context change."""
    TIME_SHIFT = "time_shift"
    WEATHER_CHANGE = "weather_change"
    ACTIVITY_CHANGE = "activity_change"
    LISTENING_PATTERN_CHANGE = "listening_pattern_change"


class TrackerState(Enum):
    """Lifecycle states of the context tracker."""
    IDLE = "idle"
    TRACKING = "tracking"
    EVALUATING = "evaluating"
    GENERATING = "generating"
    NOTIFYING = "notifying"


@dataclass
class WeatherReading:
    """Current weather from a weather provider."""
    condition: WeatherCondition
    temperature_c: Optional[float] = None
    fetched_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": self.condition.value,
            "temperature_c": self.temperature_c,
            "fetched_at": self.fetched_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherReading":
        return cls(
            condition=WeatherCondition(data["condition"]),
            temperature_c=data.get("temperature_c"),
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
        )


@dataclass
class ListeningContext:
    """Snapshot of the user's situational context."""
    timestamp: datetime
    time_of_day: TimeOfDay
    day_of_week: DayOfWeek
    weather: Optional[WeatherCondition] = None
    temperature_c: Optional[float] = None
    activity: Optional[ActivityType] = None
    recent_genres: List[str] = field(default_factory=list)
    recent_mood: Mood = Mood.BALANCED

    @property
    def is_weekend(self) -> bool:
        return self.day_of_week.is_weekend

    @property
    def signature(self) -> ContextSignature:
        return ContextSignature(
            time_of_day=self.time_of_day,
            day_of_week=self.day_of_week,
            weather=self.weather or UNSPECIFIED,
            activity=self.activity or UNSPECIFIED,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "time_of_day": self.time_of_day.value,
            "day_of_week": self.day_of_week.value,
            "weather": self.weather.value if self.weather else None,
            "temperature_c": self.temperature_c,
            "activity": self.activity.value if self.activity else None,
            "recent_genres": list(self.recent_genres),
            "recent_mood": self.recent_mood.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ListeningContext":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            time_of_day=TimeOfDay(data["time_of_day"]),
            day_of_week=DayOfWeek(data["day_of_week"]),
            weather=WeatherCondition(data["weather"]) if data.get("weather") else None,
            temperature_c=data.get("temperature_c"),
            activity=ActivityType(data["activity"]) if data.get("activity") else None,
            recent_genres=list(data.get("recent_genres", [])),
            recent_mood=Mood(data.get("recent_mood", Mood.BALANCED.value)),
        )


@dataclass
class ContextChange:
    """One classified change between two contexts."""
    change_type: ContextChangeType
    previous: Optional[str] = None
    current: Optional[str] = None

    def describe(self) -> str:
        if self.change_type is ContextChangeType.TIME_SHIFT:
            return f"Good {self.current}"
        if self.change_type is ContextChangeType.WEATHER_CHANGE:
            return f"Weather changed to {(self.current or '').replace('_', ' ')}"
        if self.change_type is ContextChangeType.ACTIVITY_CHANGE:
            return f"You're now {self.current}"
        return "Your music taste shifted"


@dataclass
class ContextualSuggestion:
    """A context-triggered playlist kept for a limited time."""
    user_id: str
    playlist: GeneratedPlaylist
    context: ListeningContext
    changes: List[ContextChange] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if self.expires_at is None:
            self.expires_at = self.created_at + timedelta(hours=24)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class ContextCheckResult:
    """Outcome of one context evaluation."""
    context: ListeningContext
    changes: List[ContextChange] = field(default_factory=list)
    playlist: Optional[GeneratedPlaylist] = None
    suppressed_reason: Optional[str] = None

    @property
    def generated(self) -> bool:
        return self.playlist is not None
