"""
Candidate Building and Filtering

Turns listening events into deduplicated track candidates and applies
playlist filters and user blacklists. Filtering is lenient about missing
data: a feature the track does not have never excludes it.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from ..models.listening_models import ListeningEvent, TrackCandidate
from ..models.playlist_models import PlaylistFilters, UserPreferences
from .genre_clusters import genres_overlap

logger = structlog.get_logger(__name__)

# Filter field -> feature name
RANGE_FEATURES: Tuple[Tuple[str, str], ...] = (
    ("energy_range", "energy"),
    ("valence_range", "valence"),
    ("tempo_range", "tempo"),
    ("danceability_range", "danceability"),
    ("acousticness_range", "acousticness"),
    ("instrumentalness_range", "instrumentalness"),
)


def build_candidates(events: Sequence[ListeningEvent]) -> List[TrackCandidate]:
    """
    Deduplicate events into one candidate per track.

    The most recent event supplies display metadata; missing feature fields
    are filled from older plays. Engagement aggregates cover every play.
    Candidates come back ordered by their most recent play, newest first.
    """
    grouped: Dict[str, List[ListeningEvent]] = OrderedDict()
    for event in sorted(events, key=lambda e: e.played_at, reverse=True):
        grouped.setdefault(event.track_id, []).append(event)

    candidates = []
    for track_id, plays in grouped.items():
        latest = plays[0]
        features = latest.features
        genres = list(latest.genres)
        for older in plays[1:]:
            features = features.filled_from(older.features)
            if not genres and older.genres:
                genres = list(older.genres)

        play_count = len(plays)
        candidates.append(TrackCandidate(
            track_id=track_id,
            track_name=latest.track_name,
            artist_name=latest.artist_name,
            artist_id=latest.artist_id,
            album_name=latest.album_name,
            duration_ms=latest.duration_ms,
            features=features,
            genres=genres,
            popularity=latest.popularity,
            explicit=latest.explicit,
            release_year=latest.release_year,
            last_played=latest.played_at,
            play_count=play_count,
            skip_rate=sum(1 for p in plays if p.skipped) / play_count,
            completion_rate=sum(1 for p in plays if p.completed) / play_count,
        ))
    return candidates


def _in_range(value: Optional[float], bounds: Optional[Tuple[float, float]]) -> bool:
    if bounds is None or value is None:
        return True
    low, high = bounds
    return low <= value <= high


def _matches_artist(track: TrackCandidate, names: Sequence[str]) -> bool:
    return any(genres_overlap(name, track.artist_name) for name in names if name)


def passes_filters(track: TrackCandidate, filters: PlaylistFilters) -> bool:
    """Check one candidate against every filter; missing values pass."""
    for filter_name, feature in RANGE_FEATURES:
        if not _in_range(track.features.get(feature), getattr(filters, filter_name)):
            return False

    if filters.genres and track.genres:
        if not any(genres_overlap(wanted, g) for wanted in filters.genres for g in track.genres):
            return False

    if filters.exclude_genres and track.genres:
        excluded = [e.lower() for e in filters.exclude_genres if e]
        if any(e in g.lower() for e in excluded for g in track.genres):
            return False

    if filters.artists and not _matches_artist(track, filters.artists):
        return False

    if filters.exclude_artists and _matches_artist(track, filters.exclude_artists):
        return False

    if track.popularity is not None:
        if filters.min_popularity is not None and track.popularity < filters.min_popularity:
            return False
        if filters.max_popularity is not None and track.popularity > filters.max_popularity:
            return False

    if filters.year_range is not None and track.release_year is not None:
        if not _in_range(track.release_year, filters.year_range):
            return False

    if filters.exclude_explicit and track.explicit:
        return False

    return True


def apply_filters(
    tracks: Sequence[TrackCandidate],
    filters: Optional[PlaylistFilters]
) -> List[TrackCandidate]:
    """Keep the candidates that pass `filters` (all of them when None)."""
    if filters is None:
        return list(tracks)
    kept = [t for t in tracks if passes_filters(t, filters)]
    logger.debug("Applied filters", candidates=len(tracks), kept=len(kept))
    return kept


def apply_blacklist(
    tracks: Sequence[TrackCandidate],
    preferences: Optional[UserPreferences]
) -> List[TrackCandidate]:
    """Drop blacklisted tracks, artists (substring) and genres (substring)."""
    if preferences is None:
        return list(tracks)

    blocked_tracks = set(preferences.blacklisted_tracks)
    blocked_artists = [a.lower() for a in preferences.blacklisted_artists if a]
    blocked_genres = [g.lower() for g in preferences.blacklisted_genres if g]

    kept = []
    for track in tracks:
        if track.track_id in blocked_tracks:
            continue
        artist = track.artist_name.lower()
        if any(blocked in artist for blocked in blocked_artists):
            continue
        if any(blocked in g.lower() for blocked in blocked_genres for g in track.genres):
            continue
        kept.append(track)

    if len(kept) != len(tracks):
        logger.debug("Applied blacklist", removed=len(tracks) - len(kept))
    return kept
