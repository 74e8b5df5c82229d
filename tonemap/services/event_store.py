"""
In-Memory Event Store

Reference EventStore used by tests and local runs. Patterns are kept as
flat rows the way a relational table would hold them: signature columns,
averages, and top genres/artists encoded as JSON text.
"""

import asyncio
import json
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from ..api.interfaces import EventStore
from ..exceptions import PersistenceError
from ..models.context_models import ContextualSuggestion
from ..models.listening_models import (
    ActivityType,
    ContextSignature,
    DayOfWeek,
    EventQuery,
    ListeningEvent,
    ListeningPattern,
    PatternCharacteristics,
    RankedItem,
    TimeOfDay,
    WeatherCondition,
)
from ..models.playlist_models import GeneratedPlaylist, PlaylistFeedback, UserPreferences

logger = structlog.get_logger(__name__)

PatternKey = Tuple[str, Tuple[str, str, str, str]]

AVERAGE_COLUMNS = (
    "avg_energy",
    "avg_valence",
    "avg_tempo",
    "avg_danceability",
    "avg_acousticness",
    "avg_instrumentalness",
)


def _encode_ranked(items: List[RankedItem]) -> str:
    return json.dumps([{"name": item.name, "count": item.count} for item in items])


def _decode_ranked(raw: Optional[str]) -> List[RankedItem]:
    if not raw:
        return []
    return [RankedItem(name=item["name"], count=int(item["count"])) for item in json.loads(raw)]


def pattern_to_row(pattern: ListeningPattern) -> Dict[str, Any]:
    """Flatten a pattern into a storage row."""
    time_of_day, day_of_week, weather, activity = pattern.signature.key()
    row = {
        "id": pattern.pattern_id,
        "user_id": pattern.user_id,
        "context_type": pattern.kind.value,
        "time_of_day": time_of_day,
        "day_of_week": day_of_week,
        "weather_condition": weather,
        "activity_type": activity,
        "sample_size": pattern.sample_size,
        "confidence_score": pattern.confidence_score,
        "top_genres": _encode_ranked(pattern.top_genres),
        "top_artists": _encode_ranked(pattern.top_artists),
        "last_updated": pattern.updated_at.isoformat(),
    }
    for column in AVERAGE_COLUMNS:
        row[column] = getattr(pattern, column)
    return row


def row_to_pattern(row: Dict[str, Any]) -> ListeningPattern:
    """Rebuild a pattern from a storage row."""
    signature = ContextSignature.from_key(
        (row["time_of_day"], row["day_of_week"], row["weather_condition"], row["activity_type"])
    )
    return ListeningPattern(
        user_id=row["user_id"],
        signature=signature,
        sample_size=row["sample_size"],
        confidence_score=row["confidence_score"],
        top_genres=_decode_ranked(row.get("top_genres")),
        top_artists=_decode_ranked(row.get("top_artists")),
        pattern_id=row["id"],
        updated_at=datetime.fromisoformat(row["last_updated"]),
        **{column: row.get(column) for column in AVERAGE_COLUMNS}
    )


class InMemoryEventStore(EventStore):
    """
    Process-local EventStore.

    Pattern rows are unique per (user, signature); upserts take a lock so
    concurrent analysis runs cannot insert duplicates.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self._events: Dict[str, List[ListeningEvent]] = {}
        self._pattern_rows: Dict[PatternKey, Dict[str, Any]] = {}
        self._suggestions: Dict[str, List[ContextualSuggestion]] = {}
        self._playlists: Dict[Tuple[str, str], GeneratedPlaylist] = {}
        self._preferences: Dict[str, UserPreferences] = {}
        self._pattern_lock = asyncio.Lock()
        self.logger = logger.bind(component="InMemoryEventStore")

    # Events

    async def save_event(self, event: ListeningEvent) -> ListeningEvent:
        if not event.user_id:
            raise PersistenceError("Listening event has no user id")
        self._events.setdefault(event.user_id, []).append(event)
        return event

    async def update_engagement(
        self,
        user_id: str,
        event_id: str,
        *,
        skipped: bool,
        completed: bool,
        play_duration_ms: Optional[int] = None
    ) -> Optional[ListeningEvent]:
        for event in self._events.get(user_id, []):
            if event.event_id == event_id:
                event.skipped = skipped
                event.completed = completed
                if play_duration_ms is not None:
                    event.play_duration_ms = play_duration_ms
                return event
        self.logger.debug("Engagement update for unknown event", user_id=user_id, event_id=event_id)
        return None

    async def get_events_by_context(self, query: EventQuery) -> List[ListeningEvent]:
        matching = [e for e in self._events.get(query.user_id, []) if query.matches(e)]
        matching.sort(key=lambda e: e.played_at, reverse=True)
        return matching[:query.limit]

    async def get_recent_events(self, user_id: str, days: int) -> List[ListeningEvent]:
        since = self.clock() - timedelta(days=days)
        query = EventQuery(user_id=user_id, since=since, limit=len(self._events.get(user_id, [])))
        return await self.get_events_by_context(query)

    # Patterns

    async def upsert_pattern(
        self,
        user_id: str,
        signature: ContextSignature,
        characteristics: PatternCharacteristics
    ) -> ListeningPattern:
        key = (user_id, signature.key())
        async with self._pattern_lock:
            existing = self._pattern_rows.get(key)
            pattern = ListeningPattern.from_characteristics(
                user_id,
                signature,
                characteristics,
                pattern_id=existing["id"] if existing else None,
                updated_at=self.clock()
            )
            self._pattern_rows[key] = pattern_to_row(pattern)

        self.logger.debug(
            "Pattern upserted",
            user_id=user_id,
            signature=signature.label,
            updated=existing is not None,
            sample_size=pattern.sample_size
        )
        return pattern

    async def get_pattern(self, user_id: str, signature: ContextSignature) -> Optional[ListeningPattern]:
        row = self._pattern_rows.get((user_id, signature.key()))
        return row_to_pattern(row) if row else None

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
        wanted = {
            "time_of_day": time_of_day,
            "day_of_week": day_of_week,
            "weather_condition": weather,
            "activity_type": activity,
        }
        rows = [
            row for (owner, _), row in self._pattern_rows.items()
            if owner == user_id
            and all(value is None or row[column] == value.value for column, value in wanted.items())
        ]
        rows.sort(key=lambda row: row["confidence_score"], reverse=True)
        return [row_to_pattern(row) for row in rows[:limit]]

    # Suggestions

    async def save_suggestion(self, suggestion: ContextualSuggestion) -> None:
        self._suggestions[suggestion.user_id] = [suggestion]

    async def get_suggestions(self, user_id: str, now: datetime, limit: int = 2) -> List[ContextualSuggestion]:
        live = [s for s in self._suggestions.get(user_id, []) if not s.is_expired(now)]
        live.sort(key=lambda s: s.created_at, reverse=True)
        return live[:limit]

    # Playlists

    async def save_playlist(self, playlist: GeneratedPlaylist) -> GeneratedPlaylist:
        if not playlist.user_id:
            raise PersistenceError("Playlist has no user id")
        self._playlists[(playlist.user_id, playlist.playlist_id)] = playlist
        return playlist

    async def get_playlist(self, user_id: str, playlist_id: str) -> Optional[GeneratedPlaylist]:
        return self._playlists.get((user_id, playlist_id))

    async def update_playlist_feedback(
        self,
        user_id: str,
        playlist_id: str,
        feedback: PlaylistFeedback
    ) -> Optional[GeneratedPlaylist]:
        playlist = self._playlists.get((user_id, playlist_id))
        if playlist is None:
            return None

        updates: Dict[str, Any] = {}
        if feedback.rating is not None:
            updates["user_rating"] = feedback.rating
        if feedback.skipped_track_ids:
            updates["tracks_skipped"] = list(dict.fromkeys(playlist.tracks_skipped + feedback.skipped_track_ids))
        if feedback.loved_track_ids:
            updates["tracks_loved"] = list(dict.fromkeys(playlist.tracks_loved + feedback.loved_track_ids))
        if feedback.notes is not None:
            updates["feedback_notes"] = feedback.notes

        updated = playlist.model_copy(update=updates)
        self._playlists[(user_id, playlist_id)] = updated
        return updated

    # Preferences

    async def get_user_preferences(self, user_id: str) -> UserPreferences:
        return self._preferences.get(user_id, UserPreferences())

    async def set_user_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        self._preferences[user_id] = preferences

    def add_events(self, events: List[ListeningEvent]) -> None:
        """Bulk-load events synchronously (fixtures and imports)."""
        for event in events:
            self._events.setdefault(event.user_id, []).append(replace(event))
