"""
Playlist Models

Pydantic models for the library boundary: generation filters and options,
generated playlists with their context snapshot, feedback and preview
statistics, and per-user preferences.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .listening_models import (
    ActivityType,
    DayOfWeek,
    TimeOfDay,
    TrackCandidate,
    WeatherCondition,
)

FeatureRange = Tuple[float, float]

# Range filters checked against track audio features
AUDIO_RANGE_FILTERS: Tuple[str, ...] = (
    "energy_range",
    "valence_range",
    "tempo_range",
    "danceability_range",
    "acousticness_range",
    "instrumentalness_range",
)


class PlaylistTemplate(Enum):
    """Predefined playlist templates."""
    MORNING_ENERGY = "morning_energy"
    FOCUS_FLOW = "focus_flow"
    EVENING_WINDDOWN = "evening_winddown"
    RAINY_DAY = "rainy_day"
    WORKOUT = "workout"
    WEEKEND_VIBES = "weekend_vibes"
    RIGHT_NOW = "right_now"
    CUSTOM = "custom"


class EnergyArcShape(Enum):
    """Energy progression across a playlist."""
    STEADY = "steady"
    BUILDING = "building"
    PEAKING = "peaking"
    WINDING_DOWN = "winding_down"


class DiversityLevel(Enum):
    """How strictly the selector spreads artists and genres."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GenerationType(Enum):
    """How a playlist was requested."""
    AUTO = "auto"
    CUSTOM = "custom"


class PlaylistFilters(BaseModel):
    """Filters applied to candidate tracks."""

    energy_range: Optional[FeatureRange] = Field(default=None, description="Energy bounds [0, 1]")
    valence_range: Optional[FeatureRange] = Field(default=None, description="Valence bounds [0, 1]")
    tempo_range: Optional[FeatureRange] = Field(default=None, description="Tempo bounds in BPM")
    danceability_range: Optional[FeatureRange] = Field(default=None, description="Danceability bounds")
    acousticness_range: Optional[FeatureRange] = Field(default=None, description="Acousticness bounds")
    instrumentalness_range: Optional[FeatureRange] = Field(
        default=None, description="Instrumentalness bounds"
    )

    time_of_day: List[TimeOfDay] = Field(default_factory=list, description="Listening time buckets")
    day_of_week: List[DayOfWeek] = Field(default_factory=list, description="Listening days")
    weather: List[WeatherCondition] = Field(default_factory=list, description="Weather while listening")
    activity: List[ActivityType] = Field(default_factory=list, description="Activity while listening")

    genres: List[str] = Field(default_factory=list, description="Genres to include")
    artists: List[str] = Field(default_factory=list, description="Artists to include")
    exclude_genres: List[str] = Field(default_factory=list, description="Genres to exclude")
    exclude_artists: List[str] = Field(default_factory=list, description="Artists to exclude")

    min_popularity: Optional[int] = Field(default=None, ge=0, le=100)
    max_popularity: Optional[int] = Field(default=None, ge=0, le=100)
    year_range: Optional[Tuple[int, int]] = Field(default=None, description="Release year bounds")
    exclude_explicit: bool = Field(default=False, description="Drop explicit tracks")

    def has_audio_filters(self) -> bool:
        return any(getattr(self, name) is not None for name in AUDIO_RANGE_FILTERS)

    def has_context_filters(self) -> bool:
        return bool(self.time_of_day or self.day_of_week or self.weather or self.activity)

    def merged_with(self, overrides: Optional["PlaylistFilters"]) -> "PlaylistFilters":
        """Return a copy where every field explicitly set on `overrides` wins."""
        if overrides is None:
            return self.model_copy(deep=True)
        updates = {name: getattr(overrides, name) for name in overrides.model_fields_set}
        return self.model_copy(update=updates, deep=True)


class PlaylistGenerationOptions(BaseModel):
    """Options for a generation request."""

    template: Optional[PlaylistTemplate] = Field(default=None, description="Template to apply")
    filters: Optional[PlaylistFilters] = Field(default=None, description="Extra filters")
    track_limit: Optional[int] = Field(
        default=None, ge=1, le=200, description="Number of tracks (user default when omitted)"
    )
    include_discovery: bool = Field(default=False, description="Blend in unplayed tracks")
    energy_arc: Optional[EnergyArcShape] = Field(default=None, description="Energy ordering")
    smart_transitions: bool = Field(default=False, description="Order for smooth key/tempo changes")
    diversity_level: DiversityLevel = Field(default=DiversityLevel.MEDIUM)
    use_current_context: bool = Field(default=False, description="Select for the detected context")
    name: Optional[str] = Field(default=None, description="Playlist name override")
    description: Optional[str] = Field(default=None, description="Playlist description override")


class PlaylistContextSnapshot(BaseModel):
    """What produced a playlist."""

    generation_type: GenerationType
    template: Optional[PlaylistTemplate] = None
    filters: Optional[PlaylistFilters] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    is_context_based: bool = False
    matched_pattern_id: Optional[str] = None
    context: Optional[Dict[str, Any]] = Field(default=None, description="Detected context, if any")
    changes: List[str] = Field(default_factory=list, description="Context changes that triggered it")
    backfilled: bool = Field(default=False, description="Diversity caps were relaxed")


class GeneratedPlaylist(BaseModel):
    """An ordered playlist produced by the assembler."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    playlist_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    name: str
    description: str = ""
    track_ids: List[str] = Field(default_factory=list)
    tracks: List[TrackCandidate] = Field(default_factory=list)
    total_tracks: int = 0
    total_duration_ms: int = 0
    context_snapshot: PlaylistContextSnapshot
    created_at: datetime = Field(default_factory=datetime.now)

    platform_playlist_id: Optional[str] = None
    user_rating: Optional[int] = Field(default=None, ge=1, le=5)
    tracks_skipped: List[str] = Field(default_factory=list)
    tracks_loved: List[str] = Field(default_factory=list)
    feedback_notes: Optional[str] = None


class PlaylistFeedback(BaseModel):
    """User feedback on a saved playlist."""

    rating: Optional[int] = Field(default=None, ge=1, le=5)
    skipped_track_ids: List[str] = Field(default_factory=list)
    loved_track_ids: List[str] = Field(default_factory=list)
    notes: Optional[str] = None


class PlaylistStats(BaseModel):
    """Preview statistics for a playlist."""

    track_count: int = 0
    total_duration_ms: int = 0
    avg_energy: Optional[float] = None
    avg_valence: Optional[float] = None
    avg_tempo: Optional[float] = None
    top_genres: List[str] = Field(default_factory=list)
    top_artists: List[str] = Field(default_factory=list)
    energy_progression: List[float] = Field(default_factory=list)
    mood_distribution: Dict[str, int] = Field(
        default_factory=lambda: {"happy": 0, "sad": 0, "energetic": 0, "calm": 0}
    )
    discovery_count: int = 0


class UserPreferences(BaseModel):
    """Per-user playlist preferences."""

    blacklisted_tracks: List[str] = Field(default_factory=list)
    blacklisted_artists: List[str] = Field(default_factory=list)
    blacklisted_genres: List[str] = Field(default_factory=list)
    default_track_limit: int = Field(default=25, ge=1, le=200)
