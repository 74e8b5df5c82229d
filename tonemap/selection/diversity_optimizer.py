"""
Diversity Optimizer

Greedy selection of a bounded, diverse subset of scored tracks:
per-artist and per-genre-cluster caps, a penalty for tracks played in the
last couple of hours, and a relaxed backfill when the caps leave the
playlist too short.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Sequence, Set

import structlog

from ..models.listening_models import ScoredTrack
from ..models.playlist_models import DiversityLevel
from .genre_clusters import cluster_for

logger = structlog.get_logger(__name__)

# level -> (max tracks per artist, genre cluster share of the limit)
DIVERSITY_LIMITS: Dict[DiversityLevel, Dict[str, float]] = {
    DiversityLevel.HIGH: {"max_per_artist": 2, "cluster_share": 0.4},
    DiversityLevel.MEDIUM: {"max_per_artist": 3, "cluster_share": 0.5},
    DiversityLevel.LOW: {"max_per_artist": 4, "cluster_share": 0.7},
}

BACKFILL_THRESHOLD = 0.8
REPEAT_PENALTY_FACTOR = 0.5


@dataclass
class SelectionResult:
    """Selected tracks plus what the selection did to get them."""
    tracks: List[ScoredTrack] = field(default_factory=list)
    backfilled: bool = False
    penalized: int = 0
    artist_counts: Dict[str, int] = field(default_factory=dict)
    cluster_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def track_ids(self) -> List[str]:
        return [s.track_id for s in self.tracks]


class DiversityOptimizer:
    """
    Diversity-constrained selection over scored tracks.

    Responsibilities:
    - Halve scores of tracks played within the repeat-penalty window
    - Enforce per-artist caps (and genre-cluster caps at high diversity)
    - Backfill without constraints when fewer than 80% of slots fill
    """

    def __init__(
        self,
        recency_penalty_hours: float = 2,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.recency_penalty = timedelta(hours=recency_penalty_hours)
        self.clock = clock
        self.logger = logger.bind(component="DiversityOptimizer")

    def select_with_diversity(
        self,
        scored_tracks: Sequence[ScoredTrack],
        limit: int,
        diversity_level: DiversityLevel = DiversityLevel.MEDIUM
    ) -> SelectionResult:
        """
        Select up to `limit` tracks honouring diversity caps.

        Args:
            scored_tracks: Scored candidates in any order
            limit: Maximum number of tracks to return
            diversity_level: How strictly to spread artists and genres

        Returns:
            SelectionResult; `backfilled` is set when caps had to be relaxed
        """
        if limit <= 0 or not scored_tracks:
            return SelectionResult()

        ranked, penalized = self._apply_repeat_penalty(scored_tracks)
        limits = self._get_diversity_limits(diversity_level, limit)

        result = SelectionResult(penalized=penalized)
        tracking = {"artists": {}, "clusters": {}, "selected_ids": set()}

        for scored in ranked:
            if len(result.tracks) >= limit:
                break
            if self._passes_diversity_constraints(scored, tracking, limits, diversity_level):
                result.tracks.append(scored)
                self._update_tracking(scored, tracking)

        if len(result.tracks) < limit * BACKFILL_THRESHOLD:
            added = self._fill_remaining_slots(ranked, result.tracks, tracking, limit)
            if added:
                result.backfilled = True
                self.logger.warning(
                    "Diversity constraints relaxed to fill playlist",
                    admitted_with_constraints=len(result.tracks) - added,
                    backfilled=added,
                    limit=limit,
                    diversity_level=diversity_level.value
                )

        result.artist_counts = dict(tracking["artists"])
        result.cluster_counts = dict(tracking["clusters"])

        self.logger.info(
            "Diversity selection completed",
            selected=len(result.tracks),
            candidates=len(scored_tracks),
            unique_artists=len(result.artist_counts),
            clusters=result.cluster_counts,
            penalized=penalized,
            backfilled=result.backfilled
        )
        return result

    def _apply_repeat_penalty(self, scored_tracks: Sequence[ScoredTrack]):
        now = self.clock()
        adjusted = []
        penalized = 0
        for scored in scored_tracks:
            last_played = scored.track.last_played
            if last_played is not None and now - last_played <= self.recency_penalty:
                adjusted.append(replace(scored, score=scored.score * REPEAT_PENALTY_FACTOR))
                penalized += 1
            else:
                adjusted.append(scored)
        adjusted.sort(key=lambda s: s.score, reverse=True)
        return adjusted, penalized

    @staticmethod
    def _get_diversity_limits(level: DiversityLevel, limit: int) -> Dict[str, int]:
        config = DIVERSITY_LIMITS[level]
        return {
            "max_per_artist": int(config["max_per_artist"]),
            "max_per_cluster": math.ceil(limit * config["cluster_share"]),
        }

    @staticmethod
    def _passes_diversity_constraints(
        scored: ScoredTrack,
        tracking: Dict,
        limits: Dict[str, int],
        level: DiversityLevel
    ) -> bool:
        if scored.track_id in tracking["selected_ids"]:
            return False
        if tracking["artists"].get(scored.track.artist_key, 0) >= limits["max_per_artist"]:
            return False
        if level is DiversityLevel.HIGH:
            cluster = cluster_for(scored.track.genres)
            if tracking["clusters"].get(cluster, 0) >= limits["max_per_cluster"]:
                return False
        return True

    @staticmethod
    def _update_tracking(scored: ScoredTrack, tracking: Dict):
        artist = scored.track.artist_key
        cluster = cluster_for(scored.track.genres)
        tracking["artists"][artist] = tracking["artists"].get(artist, 0) + 1
        tracking["clusters"][cluster] = tracking["clusters"].get(cluster, 0) + 1
        tracking["selected_ids"].add(scored.track_id)

    def _fill_remaining_slots(
        self,
        ranked: Sequence[ScoredTrack],
        selected: List[ScoredTrack],
        tracking: Dict,
        limit: int
    ) -> int:
        """Add the best unselected tracks, ignoring caps. Returns how many were added."""
        added = 0
        selected_ids: Set[str] = tracking["selected_ids"]
        for scored in ranked:
            if len(selected) >= limit:
                break
            if scored.track_id in selected_ids:
                continue
            selected.append(scored)
            self._update_tracking(scored, tracking)
            added += 1
        return added
