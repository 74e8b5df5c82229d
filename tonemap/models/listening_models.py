"""
Listening Models

Core domain records for ToneMap: listening events, context signatures,
learned listening patterns and the per-request track projections used by
scoring and selection.
"""

import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import structlog

logger = structlog.get_logger(__name__)


class TimeOfDay(Enum):
    """Time-of-day buckets."""
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"

    @classmethod
    def from_datetime(cls, moment: datetime) -> "TimeOfDay":
        """Bucket a timestamp: [5,12) morning, [12,17) afternoon, [17,21) evening, else night."""
        hour = moment.hour
        if 5 <= hour < 12:
            return cls.MORNING
        if 12 <= hour < 17:
            return cls.AFTERNOON
        if 17 <= hour < 21:
            return cls.EVENING
        return cls.NIGHT


class DayOfWeek(Enum):
    """Days of the week, Monday first to match datetime.weekday()."""
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_datetime(cls, moment: datetime) -> "DayOfWeek":
        return list(cls)[moment.weekday()]

    @property
    def is_weekend(self) -> bool:
        return self in (DayOfWeek.SATURDAY, DayOfWeek.SUNDAY)


class DayGroup(Enum):
    """Groups of days usable in place of a single day in a signature."""
    WEEKDAY = "weekday"
    WEEKEND = "weekend"

    @property
    def days(self) -> Tuple[DayOfWeek, ...]:
        if self is DayGroup.WEEKEND:
            return (DayOfWeek.SATURDAY, DayOfWeek.SUNDAY)
        return tuple(day for day in DayOfWeek if not day.is_weekend)


class WeatherCondition(Enum):
    """Weather conditions reported by the weather provider."""
    SUNNY = "sunny"
    PARTLY_CLOUDY = "partly_cloudy"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    SNOWY = "snowy"
    FOGGY = "foggy"
    STORMY = "stormy"


class ActivityType(Enum):
    """Physical activity of the listener."""
    STATIONARY = "stationary"
    WALKING = "walking"
    RUNNING = "running"
    DRIVING = "driving"
    CYCLING = "cycling"


class Unspecified(Enum):
    """Marker for a signature dimension that is deliberately left open."""
    UNSPECIFIED = "unspecified"

    def __repr__(self) -> str:
        return "UNSPECIFIED"


UNSPECIFIED = Unspecified.UNSPECIFIED


class PatternKind(Enum):
    """Kind of a pattern, derived from which signature dimensions are set."""
    TIME = "time"
    DAY = "day"
    WEATHER = "weather"
    ACTIVITY = "activity"
    COMBINED = "combined"


DayDimension = Union[DayOfWeek, DayGroup, Unspecified]

# Dimension name -> enum types accepted for it (besides UNSPECIFIED)
SIGNATURE_DIMENSIONS: Dict[str, Tuple[type, ...]] = {
    "time_of_day": (TimeOfDay,),
    "day_of_week": (DayOfWeek, DayGroup),
    "weather": (WeatherCondition,),
    "activity": (ActivityType,),
}

_SINGLE_DIMENSION_KINDS = {
    "time_of_day": PatternKind.TIME,
    "day_of_week": PatternKind.DAY,
    "weather": PatternKind.WEATHER,
    "activity": PatternKind.ACTIVITY,
}


@dataclass(frozen=True)
class ContextSignature:
    """
    A context key with four dimensions.

    Each dimension is either a concrete value or UNSPECIFIED. A signature
    with only time_of_day set is a time-only pattern key; UNSPECIFIED never
    means "value unknown".
    """
    time_of_day: Union[TimeOfDay, Unspecified] = UNSPECIFIED
    day_of_week: DayDimension = UNSPECIFIED
    weather: Union[WeatherCondition, Unspecified] = UNSPECIFIED
    activity: Union[ActivityType, Unspecified] = UNSPECIFIED

    def __post_init__(self):
        for name, allowed in SIGNATURE_DIMENSIONS.items():
            value = getattr(self, name)
            if value is not UNSPECIFIED and not isinstance(value, allowed):
                raise TypeError(
                    f"{name} must be one of {[t.__name__ for t in allowed]} or UNSPECIFIED, "
                    f"got {value!r}"
                )

    @property
    def specified(self) -> Dict[str, Enum]:
        """Dimensions that carry a concrete value."""
        return {
            name: getattr(self, name)
            for name in SIGNATURE_DIMENSIONS
            if getattr(self, name) is not UNSPECIFIED
        }

    @property
    def is_empty(self) -> bool:
        return not self.specified

    @property
    def kind(self) -> PatternKind:
        specified = self.specified
        if len(specified) == 1:
            return _SINGLE_DIMENSION_KINDS[next(iter(specified))]
        return PatternKind.COMBINED

    @property
    def label(self) -> str:
        """Human readable label, e.g. 'weekend morning'."""
        if self.is_empty:
            return "any context"
        parts = [value.value.replace("_", " ") for value in self.specified.values()]
        if isinstance(self.day_of_week, DayGroup) and self.time_of_day is not UNSPECIFIED:
            parts = [self.day_of_week.value, self.time_of_day.value]
        return " ".join(parts)

    def key(self) -> Tuple[str, str, str, str]:
        """Storage key; UNSPECIFIED dimensions are stored as 'unspecified'."""
        return tuple(getattr(self, name).value for name in SIGNATURE_DIMENSIONS)

    @classmethod
    def from_key(cls, key: Iterable[str]) -> "ContextSignature":
        values = {}
        for (name, allowed), raw in zip(SIGNATURE_DIMENSIONS.items(), key):
            if raw == UNSPECIFIED.value:
                values[name] = UNSPECIFIED
                continue
            for enum_type in allowed:
                try:
                    values[name] = enum_type(raw)
                    break
                except ValueError:
                    continue
            else:
                raise ValueError(f"Unknown value {raw!r} for signature dimension {name}")
        return cls(**values)

    def matches_event(self, event: "ListeningEvent") -> bool:
        """True when the event's context tags satisfy every specified dimension."""
        if self.time_of_day is not UNSPECIFIED and event.time_of_day is not self.time_of_day:
            return False
        if isinstance(self.day_of_week, DayGroup):
            if event.day_of_week not in self.day_of_week.days:
                return False
        elif self.day_of_week is not UNSPECIFIED and event.day_of_week is not self.day_of_week:
            return False
        if self.weather is not UNSPECIFIED and event.weather is not self.weather:
            return False
        if self.activity is not UNSPECIFIED and event.activity is not self.activity:
            return False
        return True

    def is_consistent_with(self, other: "ContextSignature") -> bool:
        """True when every dimension specified on `other` is equal here."""
        return all(getattr(self, name) == value for name, value in other.specified.items())


@dataclass
class AudioFeatures:
    """Audio feature vector; every field may be missing."""
    energy: Optional[float] = None
    valence: Optional[float] = None
    tempo: Optional[float] = None
    danceability: Optional[float] = None
    acousticness: Optional[float] = None
    instrumentalness: Optional[float] = None
    liveness: Optional[float] = None
    speechiness: Optional[float] = None
    loudness: Optional[float] = None
    mode: Optional[int] = None
    key: Optional[int] = None
    time_signature: Optional[int] = None

    @property
    def has_core_features(self) -> bool:
        """Whether any of energy, valence or tempo is known."""
        return any(v is not None for v in (self.energy, self.valence, self.tempo))

    def get(self, name: str) -> Optional[float]:
        return getattr(self, name)

    def filled_from(self, other: "AudioFeatures") -> "AudioFeatures":
        """Return a copy with missing fields taken from `other`."""
        updates = {
            f.name: getattr(other, f.name)
            for f in fields(self)
            if getattr(self, f.name) is None and getattr(other, f.name) is not None
        }
        return replace(self, **updates) if updates else self

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Features compared against pattern averages
PATTERN_FEATURES: Tuple[str, ...] = (
    "energy", "valence", "tempo", "danceability", "acousticness", "instrumentalness"
)


@dataclass
class ListeningEvent:
    """
    One played track instance.

    Context tags default from played_at; engagement fields are patched
    through the event store when the track finishes or is skipped.
    """
    user_id: str
    track_id: str
    track_name: str
    artist_name: str
    played_at: datetime

    artist_id: Optional[str] = None
    album_name: Optional[str] = None
    duration_ms: Optional[int] = None
    features: AudioFeatures = field(default_factory=AudioFeatures)
    genres: List[str] = field(default_factory=list)
    popularity: Optional[int] = None
    explicit: bool = False
    release_year: Optional[int] = None

    # Context tags
    time_of_day: Optional[TimeOfDay] = None
    day_of_week: Optional[DayOfWeek] = None
    weather: Optional[WeatherCondition] = None
    activity: Optional[ActivityType] = None

    # Engagement outcome
    skipped: bool = False
    completed: bool = False
    play_duration_ms: Optional[int] = None

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if self.time_of_day is None:
            self.time_of_day = TimeOfDay.from_datetime(self.played_at)
        if self.day_of_week is None:
            self.day_of_week = DayOfWeek.from_datetime(self.played_at)


@dataclass
class RankedItem:
    """A name with its occurrence count."""
    name: str
    count: int


def confidence_for_sample_size(sample_size: int) -> float:
    """Confidence of a pattern: min(sample_size / 100, 1)."""
    if sample_size <= 0:
        return 0.0
    return min(sample_size / 100.0, 1.0)


@dataclass
class PatternCharacteristics:
    """Aggregates computed from the events behind one signature."""
    sample_size: int
    avg_energy: Optional[float] = None
    avg_valence: Optional[float] = None
    avg_tempo: Optional[float] = None
    avg_danceability: Optional[float] = None
    avg_acousticness: Optional[float] = None
    avg_instrumentalness: Optional[float] = None
    top_genres: List[RankedItem] = field(default_factory=list)
    top_artists: List[RankedItem] = field(default_factory=list)

    @property
    def confidence_score(self) -> float:
        return confidence_for_sample_size(self.sample_size)


@dataclass
class ListeningPattern:
    """A learned listening profile for one context signature."""
    user_id: str
    signature: ContextSignature
    sample_size: int
    confidence_score: float
    avg_energy: Optional[float] = None
    avg_valence: Optional[float] = None
    avg_tempo: Optional[float] = None
    avg_danceability: Optional[float] = None
    avg_acousticness: Optional[float] = None
    avg_instrumentalness: Optional[float] = None
    top_genres: List[RankedItem] = field(default_factory=list)
    top_artists: List[RankedItem] = field(default_factory=list)
    pattern_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def kind(self) -> PatternKind:
        return self.signature.kind

    def average_for(self, feature: str) -> Optional[float]:
        return getattr(self, f"avg_{feature}", None)

    @classmethod
    def from_characteristics(
        cls,
        user_id: str,
        signature: ContextSignature,
        characteristics: PatternCharacteristics,
        pattern_id: Optional[str] = None,
        updated_at: Optional[datetime] = None
    ) -> "ListeningPattern":
        pattern = cls(
            user_id=user_id,
            signature=signature,
            sample_size=characteristics.sample_size,
            confidence_score=characteristics.confidence_score,
            avg_energy=characteristics.avg_energy,
            avg_valence=characteristics.avg_valence,
            avg_tempo=characteristics.avg_tempo,
            avg_danceability=characteristics.avg_danceability,
            avg_acousticness=characteristics.avg_acousticness,
            avg_instrumentalness=characteristics.avg_instrumentalness,
            top_genres=list(characteristics.top_genres),
            top_artists=list(characteristics.top_artists),
        )
        if pattern_id:
            pattern.pattern_id = pattern_id
        if updated_at:
            pattern.updated_at = updated_at
        return pattern


@dataclass
class TrackCandidate:
    """
    Deduplicated per-track projection of listening events.

    Built per generation request and never persisted as such.
    """
    track_id: str
    track_name: str
    artist_name: str
    artist_id: Optional[str] = None
    album_name: Optional[str] = None
    duration_ms: Optional[int] = None
    features: AudioFeatures = field(default_factory=AudioFeatures)
    genres: List[str] = field(default_factory=list)
    popularity: Optional[int] = None
    explicit: bool = False
    release_year: Optional[int] = None

    # Engagement aggregates
    last_played: Optional[datetime] = None
    play_count: int = 0
    skip_rate: float = 0.0
    completion_rate: float = 0.0

    is_discovered: bool = False
    is_from_saved_album: bool = False
    features_estimated: bool = False

    @property
    def artist_key(self) -> str:
        """Key used for per-artist caps."""
        return self.artist_id or self.artist_name.strip().lower()


@dataclass
class ScoreBreakdown:
    """Named components of a track score."""
    context_match: float = 0.5
    audio_similarity: float = 0.5
    engagement: float = 0.5
    recency: float = 0.5
    diversity: float = 1.0


@dataclass
class ScoredTrack:
    """A candidate with its relevance score."""
    track: TrackCandidate
    score: float
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    @property
    def track_id(self) -> str:
        return self.track.track_id


@dataclass
class EventQuery:
    """
    Filter for event-store reads.

    Empty context lists leave that dimension open. Results are returned
    newest first and capped at `limit`.
    """
    user_id: str
    time_of_day: List[TimeOfDay] = field(default_factory=list)
    day_of_week: List[DayOfWeek] = field(default_factory=list)
    weather: List[WeatherCondition] = field(default_factory=list)
    activity: List[ActivityType] = field(default_factory=list)
    require_energy: bool = False
    completed_only: bool = False
    since: Optional[datetime] = None
    limit: int = 200

    @classmethod
    def for_signature(
        cls,
        user_id: str,
        signature: ContextSignature,
        limit: int = 200,
        require_energy: bool = False
    ) -> "EventQuery":
        """Build a query selecting exactly the events a signature covers."""
        days: List[DayOfWeek] = []
        if isinstance(signature.day_of_week, DayGroup):
            days = list(signature.day_of_week.days)
        elif signature.day_of_week is not UNSPECIFIED:
            days = [signature.day_of_week]
        return cls(
            user_id=user_id,
            time_of_day=[] if signature.time_of_day is UNSPECIFIED else [signature.time_of_day],
            day_of_week=days,
            weather=[] if signature.weather is UNSPECIFIED else [signature.weather],
            activity=[] if signature.activity is UNSPECIFIED else [signature.activity],
            require_energy=require_energy,
            limit=limit,
        )

    def matches(self, event: ListeningEvent) -> bool:
        if event.user_id != self.user_id:
            return False
        if self.time_of_day and event.time_of_day not in self.time_of_day:
            return False
        if self.day_of_week and event.day_of_week not in self.day_of_week:
            return False
        if self.weather and event.weather not in self.weather:
            return False
        if self.activity and event.activity not in self.activity:
            return False
        if self.require_energy and event.features.energy is None:
            return False
        if self.completed_only and not event.completed:
            return False
        if self.since is not None and event.played_at < self.since:
            return False
        return True
