"""
Models Module

Data models for the ToneMap engine: listening events and patterns,
detected context, playlist requests and results, and engine configuration.
"""

from .listening_models import (
    ActivityType,
    AudioFeatures,
    ContextSignature,
    DayGroup,
    DayOfWeek,
    EventQuery,
    ListeningEvent,
    ListeningPattern,
    PATTERN_FEATURES,
    PatternCharacteristics,
    PatternKind,
    RankedItem,
    ScoreBreakdown,
    ScoredTrack,
    TimeOfDay,
    TrackCandidate,
    UNSPECIFIED,
    Unspecified,
    WeatherCondition,
    confidence_for_sample_size,
)
from .playlist_models import (
    DiversityLevel,
    EnergyArcShape,
    GeneratedPlaylist,
    GenerationType,
    PlaylistContextSnapshot,
    PlaylistFeedback,
    PlaylistFilters,
    PlaylistGenerationOptions,
    PlaylistStats,
    PlaylistTemplate,
    UserPreferences,
)
from .context_models import (
    ContextChange,
    ContextChangeType,
    ContextCheckResult,
    ContextualSuggestion,
    ListeningContext,
    Mood,
    TrackerState,
    WeatherReading,
)
from .config_models import EngineConfig
from .discovery_models import ArtistSummary, DiscoveryRequest

__all__ = [
    # Listening models
    "ActivityType",
    "AudioFeatures",
    "ContextSignature",
    "DayGroup",
    "DayOfWeek",
    "EventQuery",
    "ListeningEvent",
    "ListeningPattern",
    "PATTERN_FEATURES",
    "PatternCharacteristics",
    "PatternKind",
    "RankedItem",
    "ScoreBreakdown",
    "ScoredTrack",
    "TimeOfDay",
    "TrackCandidate",
    "UNSPECIFIED",
    "Unspecified",
    "WeatherCondition",
    "confidence_for_sample_size",

    # Playlist models
    "DiversityLevel",
    "EnergyArcShape",
    "GeneratedPlaylist",
    "GenerationType",
    "PlaylistContextSnapshot",
    "PlaylistFeedback",
    "PlaylistFilters",
    "PlaylistGenerationOptions",
    "PlaylistStats",
    "PlaylistTemplate",
    "UserPreferences",

    # Context models
    "ContextChange",
    "ContextChangeType",
    "ContextCheckResult",
    "ContextualSuggestion",
    "ListeningContext",
    "Mood",
    "TrackerState",
    "WeatherReading",

    # Discovery
    "ArtistSummary",
    "DiscoveryRequest",

    # Configuration
    "EngineConfig",
]
