"""
Platform Discovery Source

Finds unheard tracks through the music platform's catalogue:

1. Top tracks of the user's favourite artists
2. Top tracks of related artists that share the user's genres
3. Unplayed tracks from the user's saved albums

Each strategy fails on its own without stopping the others.
"""

import statistics
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Set

import structlog

from ..api.interfaces import DiscoverySource, MusicPlatformClient
from ..exceptions import ExternalLookupError
from ..models.discovery_models import ArtistSummary, DiscoveryRequest
from ..models.listening_models import TrackCandidate
from ..selection.genre_clusters import genres_overlap

logger = structlog.get_logger(__name__)

TOP_TRACK_ARTISTS = 25
RELATED_SEED_ARTISTS = 8
RELATED_ARTISTS_PER_SEED = 8
TRACK_POPULARITY_SIGMAS = 1.5
ARTIST_POPULARITY_SIGMAS = 2.0
SAVED_ALBUM_LIMIT = 30
DEFAULT_POPULARITY = 50.0


@dataclass
class PopularityProfile:
    """Mean and standard deviation of seed popularity."""
    mean: float = DEFAULT_POPULARITY
    stdev: float = 0.0

    @classmethod
    def from_tracks(cls, tracks: Sequence[TrackCandidate]) -> "PopularityProfile":
        values = [t.popularity for t in tracks if t.popularity is not None]
        if not values:
            return cls()
        return cls(mean=statistics.fmean(values), stdev=statistics.pstdev(values))

    def accepts(self, popularity: Optional[int], sigmas: float) -> bool:
        if popularity is None:
            return True
        return abs(popularity - self.mean) <= self.stdev * sigmas


class PlatformDiscoverySource(DiscoverySource):
    """DiscoverySource backed by a MusicPlatformClient."""

    def __init__(self, platform_client: MusicPlatformClient):
        self.platform_client = platform_client
        self.logger = logger.bind(component="PlatformDiscoverySource")

    async def discover_tracks(
        self,
        seed_tracks: List[TrackCandidate],
        request: DiscoveryRequest
    ) -> List[TrackCandidate]:
        seen: Set[str] = set(request.exclude_track_ids)
        seen.update(t.track_id for t in seed_tracks)
        profile = PopularityProfile.from_tracks(seed_tracks)
        artist_ids = list(request.seed_artist_ids) or [
            t.artist_id for t in seed_tracks if t.artist_id
        ]

        discovered: List[TrackCandidate] = []
        strategies = (
            ("artist_top_tracks", self._from_artist_top_tracks),
            ("related_artists", self._from_related_artists),
            ("saved_albums", self._from_saved_albums),
        )
        for name, strategy in strategies:
            remaining = request.target_count - len(discovered)
            if remaining <= 0:
                break
            found = await strategy(artist_ids, request, profile, seen, remaining)
            discovered.extend(found)
            self.logger.info("Discovery strategy finished", strategy=name, found=len(found))

        self.logger.info(
            "Discovery completed",
            target=request.target_count,
            discovered=len(discovered),
            seed_artists=len(artist_ids)
        )
        return discovered[:request.target_count]

    async def _from_artist_top_tracks(
        self,
        artist_ids: List[str],
        request: DiscoveryRequest,
        profile: PopularityProfile,
        seen: Set[str],
        wanted: int
    ) -> List[TrackCandidate]:
        """One popularity-matched top track per favourite artist."""
        found = []
        for artist_id in artist_ids[:TOP_TRACK_ARTISTS]:
            if len(found) >= wanted:
                break
            try:
                top_tracks = await self.platform_client.get_artist_top_tracks(artist_id)
            except ExternalLookupError as e:
                self.logger.warning("Artist top tracks unavailable", artist_id=artist_id, error=str(e))
                continue

            for track in top_tracks:
                if track.track_id in seen:
                    continue
                if profile.accepts(track.popularity, TRACK_POPULARITY_SIGMAS):
                    found.append(replace(track, is_discovered=True))
                    seen.add(track.track_id)
                    break
        return found

    async def _from_related_artists(
        self,
        artist_ids: List[str],
        request: DiscoveryRequest,
        profile: PopularityProfile,
        seen: Set[str],
        wanted: int
    ) -> List[TrackCandidate]:
        """One top track each from genre- and popularity-matched related artists."""
        found = []
        for artist_id in artist_ids[:RELATED_SEED_ARTISTS]:
            if len(found) >= wanted:
                break
            try:
                related = await self.platform_client.get_related_artists(artist_id)
            except ExternalLookupError as e:
                self.logger.warning("Related artists unavailable", artist_id=artist_id, error=str(e))
                continue

            matching = [a for a in related if self._artist_matches(a, request.seed_genres, profile)]
            for artist in matching[:RELATED_ARTISTS_PER_SEED]:
                if len(found) >= wanted:
                    break
                try:
                    top_tracks = await self.platform_client.get_artist_top_tracks(artist.artist_id)
                except ExternalLookupError as e:
                    self.logger.warning(
                        "Related artist tracks unavailable", artist=artist.name, error=str(e)
                    )
                    continue

                for track in top_tracks[:1]:
                    if track.track_id in seen:
                        continue
                    if profile.accepts(track.popularity, TRACK_POPULARITY_SIGMAS):
                        found.append(replace(track, is_discovered=True))
                        seen.add(track.track_id)
        return found

    async def _from_saved_albums(
        self,
        artist_ids: List[str],
        request: DiscoveryRequest,
        profile: PopularityProfile,
        seen: Set[str],
        wanted: int
    ) -> List[TrackCandidate]:
        """Unplayed tracks from saved albums, most recently saved first."""
        try:
            album_tracks = await self.platform_client.get_saved_album_tracks(SAVED_ALBUM_LIMIT)
        except ExternalLookupError as e:
            self.logger.warning("Saved albums unavailable", error=str(e))
            return []

        found = []
        for track in album_tracks:
            if len(found) >= wanted:
                break
            if track.track_id in seen:
                continue
            found.append(replace(track, is_discovered=True, is_from_saved_album=True))
            seen.add(track.track_id)
        return found

    @staticmethod
    def _artist_matches(
        artist: ArtistSummary,
        seed_genres: List[str],
        profile: PopularityProfile
    ) -> bool:
        genre_match = any(
            genres_overlap(genre, seed) for genre in artist.genres for seed in seed_genres
        )
        return genre_match and profile.accepts(artist.popularity, ARTIST_POPULARITY_SIGMAS)
