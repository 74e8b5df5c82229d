"""
Discovery Blender

Mixes tracks the user has never played into a selection drawn from their
history. Discovery is best effort: a slow or failing discovery source only
means the playlist is built from history alone.
"""

import math
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

import structlog

from ..api.interfaces import DiscoverySource, MusicPlatformClient
from ..exceptions import ExternalLookupError
from ..features.genre_feature_estimator import GenreFeatureEstimator
from ..models.discovery_models import DiscoveryRequest
from ..models.listening_models import PATTERN_FEATURES, TrackCandidate
from ..models.playlist_models import PlaylistFilters, PlaylistTemplate
from ..selection.filters import passes_filters
from ..selection.scoring.track_scorer import feature_similarity
from ..utils.async_utils import fetch_with_timeout
from .discovery_config import (
    DISCOVERY_FEATURE_GATES,
    FALLBACK_SEED_GENRES,
    INTERLEAVE_CADENCE,
    MAX_TRACKS_PER_ARTIST,
    MIN_SEED_TRACKS,
    PRIMARY_SHARE,
    PROFILE_DEFAULTS,
    PROFILE_TRACK_COUNT,
    SEED_ARTIST_COUNT,
    SEED_GENRE_COUNT,
    SEED_TRACK_COUNT,
    TARGET_PROFILE_OVERRIDES,
    apply_bounds,
    within_bounds,
)

logger = structlog.get_logger(__name__)


@dataclass
class BlendResult:
    """Blended tracks plus how many of them are discoveries."""
    tracks: List[TrackCandidate] = field(default_factory=list)
    discovery_count: int = 0
    requested_discovery: int = 0
    target_profile: Dict[str, float] = field(default_factory=dict)


def build_target_profile(
    tracks: Sequence[TrackCandidate],
    template: Optional[PlaylistTemplate] = None
) -> Dict[str, float]:
    """
    Mean features of the top tracks, clamped by template overrides.

    Missing values count as the neutral default (0.5, or 120 BPM for tempo).
    """
    top = list(tracks)[:PROFILE_TRACK_COUNT]
    profile = {}
    for feature in PATTERN_FEATURES:
        default = PROFILE_DEFAULTS[feature]
        if top:
            values = [
                default if t.features.get(feature) is None else t.features.get(feature)
                for t in top
            ]
            profile[feature] = sum(values) / len(values)
        else:
            profile[feature] = default

    for feature, bounds in TARGET_PROFILE_OVERRIDES.get(template, {}).items():
        profile[feature] = apply_bounds(profile[feature], bounds)
    return profile


def profile_similarity(track: TrackCandidate, profile: Dict[str, float]) -> float:
    """Mean feature similarity over the features the track has."""
    scores = [
        feature_similarity(feature, track.features.get(feature), target)
        for feature, target in profile.items()
        if track.features.get(feature) is not None
    ]
    if not scores:
        return 0.5
    return sum(scores) / len(scores)


def interleave(
    primary: Sequence[TrackCandidate],
    discovered: Sequence[TrackCandidate],
    limit: int,
    cadence: int = INTERLEAVE_CADENCE,
    max_per_artist: int = MAX_TRACKS_PER_ARTIST
) -> List[TrackCandidate]:
    """
    Merge two ordered lists at `cadence` primary tracks per discovery.

    Tracks whose artist already has `max_per_artist` entries are dropped.
    Once one list runs out the other continues alone.
    """
    result: List[TrackCandidate] = []
    artist_counts: Counter = Counter()
    seen_ids = set()
    primary_queue = list(primary)
    discovery_queue = list(discovered)

    def admit(track: TrackCandidate) -> bool:
        if track.track_id in seen_ids or artist_counts[track.artist_key] >= max_per_artist:
            return False
        result.append(track)
        seen_ids.add(track.track_id)
        artist_counts[track.artist_key] += 1
        return True

    since_discovery = 0
    while len(result) < limit and (primary_queue or discovery_queue):
        take_discovery = discovery_queue and (since_discovery >= cadence or not primary_queue)
        if take_discovery:
            if admit(discovery_queue.pop(0)):
                since_discovery = 0
        elif admit(primary_queue.pop(0)):
            since_discovery += 1

    return result


class DiscoveryBlender:
    """
    Blends discovered tracks into a primary selection.

    Workflow: target profile from the primary tracks, seeds, a discovery
    request for twice the wanted count, features for the discoveries,
    template gates, ranking by profile similarity and finally a 3:1
    interleave with a per-artist cap.
    """

    def __init__(
        self,
        discovery_source: DiscoverySource,
        estimator: Optional[GenreFeatureEstimator] = None,
        platform_client: Optional[MusicPlatformClient] = None,
        fetch_timeout: float = 10.0
    ):
        self.discovery_source = discovery_source
        self.estimator = estimator or GenreFeatureEstimator()
        self.platform_client = platform_client
        self.fetch_timeout = fetch_timeout
        self.logger = logger.bind(component="DiscoveryBlender")

    async def blend(
        self,
        primary: Sequence[TrackCandidate],
        limit: int,
        template: Optional[PlaylistTemplate] = None,
        filters: Optional[PlaylistFilters] = None,
        discovery_count: Optional[int] = None
    ) -> BlendResult:
        """
        Blend discoveries into `primary`.

        Args:
            primary: Selected history tracks, best first
            limit: Size of the blended playlist
            template: Template whose overrides and gates apply
            filters: Request filters discoveries must also pass
            discovery_count: Number of discoveries wanted; by default
                whatever the primary quota leaves of `limit`

        Returns:
            BlendResult; its tracks equal `primary` when no seeds exist or
            nothing was discovered
        """
        primary = list(primary)
        if len(primary) < MIN_SEED_TRACKS:
            self.logger.info("Not enough seed tracks for discovery", primary=len(primary))
            return BlendResult(tracks=primary[:limit])

        if discovery_count is None:
            quota = min(len(primary), math.ceil(limit * PRIMARY_SHARE))
            discovery_count = limit - quota
        else:
            discovery_count = max(0, min(discovery_count, limit))
            quota = min(len(primary), limit - discovery_count)

        profile = build_target_profile(primary, template)
        if discovery_count <= 0:
            return BlendResult(tracks=primary[:limit], target_profile=profile)

        request = self._build_request(primary, discovery_count, profile, template)
        discovered = await self._discover(primary[:SEED_TRACK_COUNT], request)
        discovered = await self._attach_features(discovered)
        ranked = self._gate_and_rank(discovered, profile, template, filters)[:discovery_count]

        blended = interleave(primary[:quota], ranked, limit)
        if len(blended) < limit:
            blended = self._top_up(blended, primary[quota:], limit)

        discoveries = sum(1 for t in blended if t.is_discovered)
        self.logger.info(
            "Discovery blend completed",
            primary_quota=quota,
            requested=discovery_count,
            discovered=len(discovered),
            accepted=len(ranked),
            blended=len(blended),
            discoveries=discoveries,
            template=template.value if template else None
        )
        return BlendResult(
            tracks=blended,
            discovery_count=discoveries,
            requested_discovery=discovery_count,
            target_profile=profile
        )

    def _build_request(
        self,
        primary: List[TrackCandidate],
        discovery_count: int,
        profile: Dict[str, float],
        template: Optional[PlaylistTemplate]
    ) -> DiscoveryRequest:
        artist_counts = Counter(t.artist_id for t in primary if t.artist_id)
        genre_counts = Counter(g.lower().strip() for t in primary for g in t.genres if g.strip())
        seed_genres = [g for g, _ in genre_counts.most_common(SEED_GENRE_COUNT)]

        return DiscoveryRequest(
            target_count=discovery_count * 2,
            seed_track_ids=[t.track_id for t in primary[:SEED_TRACK_COUNT]],
            seed_artist_ids=[a for a, _ in artist_counts.most_common(SEED_ARTIST_COUNT)],
            seed_genres=seed_genres or list(FALLBACK_SEED_GENRES),
            exclude_track_ids={t.track_id for t in primary},
            target_features=dict(profile),
            feature_bounds=dict(DISCOVERY_FEATURE_GATES.get(template, {}))
        )

    async def _discover(
        self,
        seeds: List[TrackCandidate],
        request: DiscoveryRequest
    ) -> List[TrackCandidate]:
        try:
            discovered = await fetch_with_timeout(
                self.discovery_source.discover_tracks(seeds, request),
                timeout=self.fetch_timeout,
                default=[],
                operation="discover_tracks",
                log=self.logger
            )
        except ExternalLookupError as e:
            self.logger.warning("Discovery lookup failed", service=e.service, error=str(e))
            return []
        except Exception as e:
            self.logger.warning("Discovery source raised", error=str(e), exc_info=True)
            return []

        return [
            replace(t, is_discovered=True)
            for t in discovered
            if t.track_id not in request.exclude_track_ids
        ]

    async def _attach_features(self, tracks: List[TrackCandidate]) -> List[TrackCandidate]:
        """Platform features when available, estimates for anything still missing."""
        if not tracks:
            return tracks

        if self.platform_client is not None:
            try:
                features = await fetch_with_timeout(
                    self.platform_client.get_audio_features([t.track_id for t in tracks]),
                    timeout=self.fetch_timeout,
                    default={},
                    operation="discovery_audio_features",
                    log=self.logger
                )
            except ExternalLookupError as e:
                self.logger.warning("Platform audio features unavailable", error=str(e))
                features = {}
            except Exception as e:
                self.logger.warning("Platform audio features raised", error=str(e), exc_info=True)
                features = {}
            tracks = [
                replace(t, features=features[t.track_id].filled_from(t.features))
                if t.track_id in features else t
                for t in tracks
            ]

        return [
            t if t.features.has_core_features else self.estimator.estimate_for_track(t)
            for t in tracks
        ]

    @staticmethod
    def _gate_and_rank(
        tracks: List[TrackCandidate],
        profile: Dict[str, float],
        template: Optional[PlaylistTemplate],
        filters: Optional[PlaylistFilters]
    ) -> List[TrackCandidate]:
        gates = DISCOVERY_FEATURE_GATES.get(template, {})
        accepted = [
            t for t in tracks
            if all(within_bounds(t.features.get(f), bounds) for f, bounds in gates.items())
            and (filters is None or passes_filters(t, filters))
        ]
        return sorted(accepted, key=lambda t: profile_similarity(t, profile), reverse=True)

    @staticmethod
    def _top_up(
        blended: List[TrackCandidate],
        leftovers: Sequence[TrackCandidate],
        limit: int
    ) -> List[TrackCandidate]:
        artist_counts = Counter(t.artist_key for t in blended)
        seen_ids = {t.track_id for t in blended}
        result = list(blended)
        for track in leftovers:
            if len(result) >= limit:
                break
            if track.track_id in seen_ids or artist_counts[track.artist_key] >= MAX_TRACKS_PER_ARTIST:
                continue
            result.append(track)
            seen_ids.add(track.track_id)
            artist_counts[track.artist_key] += 1
        return result
