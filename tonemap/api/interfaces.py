"""
External Interfaces

Abstract collaborators the engine depends on: the event store, the music
platform client, discovery sources, weather providers and notification
sinks. Concrete implementations live outside the core (the in-memory
event store and the Open-Meteo weather client are reference adapters).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.context_models import ContextualSuggestion, WeatherReading
from ..models.discovery_models import ArtistSummary, DiscoveryRequest
from ..models.listening_models import (
    ActivityType,
    AudioFeatures,
    ContextSignature,
    DayOfWeek,
    EventQuery,
    ListeningEvent,
    ListeningPattern,
    PatternCharacteristics,
    TimeOfDay,
    TrackCandidate,
    WeatherCondition,
)
from ..models.playlist_models import GeneratedPlaylist, PlaylistFeedback, UserPreferences


class EventStore(ABC):
    """Persistence for listening events, patterns, suggestions and playlists."""

    @abstractmethod
    async def save_event(self, event: ListeningEvent) -> ListeningEvent:
        """Persist a new listening event."""

    @abstractmethod
    async def update_engagement(
        self,
        user_id: str,
        event_id: str,
        *,
        skipped: bool,
        completed: bool,
        play_duration_ms: Optional[int] = None
    ) -> Optional[ListeningEvent]:
        """Patch the engagement outcome of an event; None if it does not exist."""

    @abstractmethod
    async def get_events_by_context(self, query: EventQuery) -> List[ListeningEvent]:
        """Events matching a query, newest first, capped at query.limit."""

    @abstractmethod
    async def get_recent_events(self, user_id: str, days: int) -> List[ListeningEvent]:
        """Events from the last `days` days, newest first."""

    @abstractmethod
    async def upsert_pattern(
        self,
        user_id: str,
        signature: ContextSignature,
        characteristics: PatternCharacteristics
    ) -> ListeningPattern:
        """Update the pattern with exactly this signature, or insert it."""

    @abstractmethod
    async def get_pattern(self, user_id: str, signature: ContextSignature) -> Optional[ListeningPattern]:
        """The pattern stored under exactly this signature."""

    @abstractmethod
    async def get_patterns_for_context(
        self,
        user_id: str,
        *,
        time_of_day: Optional[TimeOfDay] = None,
        day_of_week: Optional[DayOfWeek] = None,
        weather: Optional[WeatherCondition] = None,
        activity: Optional[ActivityType] = None,
        limit: int = 5
    ) -> List[ListeningPattern]:
        """Patterns whose given dimensions match, highest confidence first."""

    @abstractmethod
    async def save_suggestion(self, suggestion: ContextualSuggestion) -> None:
        """Store a contextual suggestion, replacing the user's previous ones."""

    @abstractmethod
    async def get_suggestions(self, user_id: str, now: datetime, limit: int = 2) -> List[ContextualSuggestion]:
        """Unexpired suggestions, newest first."""

    @abstractmethod
    async def save_playlist(self, playlist: GeneratedPlaylist) -> GeneratedPlaylist:
        """Persist an accepted playlist."""

    @abstractmethod
    async def get_playlist(self, user_id: str, playlist_id: str) -> Optional[GeneratedPlaylist]:
        """Load a saved playlist."""

    @abstractmethod
    async def update_playlist_feedback(
        self,
        user_id: str,
        playlist_id: str,
        feedback: PlaylistFeedback
    ) -> Optional[GeneratedPlaylist]:
        """Apply rating/feedback to a saved playlist."""

    @abstractmethod
    async def get_user_preferences(self, user_id: str) -> UserPreferences:
        """Blacklists and playlist defaults for a user."""


class MusicPlatformClient(ABC):
    """The streaming platform the user listens on."""

    @abstractmethod
    async def get_currently_playing(self) -> Optional[TrackCandidate]:
        """The track playing right now, if any."""

    @abstractmethod
    async def get_audio_features(self, track_ids: List[str]) -> Dict[str, AudioFeatures]:
        """Audio features keyed by track id; unknown ids are omitted."""

    @abstractmethod
    async def get_tracks_with_metadata(self, track_ids: List[str]) -> List[TrackCandidate]:
        """Full track objects for the given ids."""

    @abstractmethod
    async def create_playlist(self, name: str, description: str) -> str:
        """Create an empty playlist and return its platform id."""

    @abstractmethod
    async def add_tracks(self, playlist_id: str, track_ids: List[str]) -> None:
        """Append tracks to a platform playlist."""

    @abstractmethod
    async def get_artist_top_tracks(self, artist_id: str) -> List[TrackCandidate]:
        """An artist's most popular tracks."""

    @abstractmethod
    async def get_related_artists(self, artist_id: str) -> List[ArtistSummary]:
        """Artists related to the given one."""

    @abstractmethod
    async def get_saved_album_tracks(self, album_limit: int = 30) -> List[TrackCandidate]:
        """Tracks from the user's saved albums."""


class DiscoverySource(ABC):
    """Finds tracks the user has not played yet."""

    @abstractmethod
    async def discover_tracks(
        self,
        seed_tracks: List[TrackCandidate],
        request: DiscoveryRequest
    ) -> List[TrackCandidate]:
        """Candidate tracks related to the seeds."""


class WeatherProvider(ABC):
    """Current weather at the user's location."""

    @abstractmethod
    async def get_current_weather(self) -> WeatherReading:
        """
        Current condition and temperature.

        Raises:
            ExternalLookupError: If the lookup fails
        """


class NotificationSink(ABC):
    """Delivers user-facing notifications."""

    @abstractmethod
    async def notify(self, title: str, body: str, data: Dict[str, Any]) -> None:
        """Send one notification."""
