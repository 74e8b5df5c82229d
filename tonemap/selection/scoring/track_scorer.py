"""
Track Scorer

Computes a weighted relevance score per candidate, either against a
learned listening pattern or, when no pattern applies, against a neutral
baseline driven by popularity and the user's own engagement.
"""

from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

import structlog

from ...features.genre_feature_estimator import GenreFeatureEstimator
from ...models.listening_models import (
    ListeningPattern,
    ScoreBreakdown,
    ScoredTrack,
    TrackCandidate,
)
from .context_weights import FeatureWeights, ScoringContext, resolve_feature_weights
from .engagement_scorer import EngagementScorer
from .recency_scorer import RecencyScorer

logger = structlog.get_logger(__name__)

PATTERN_SCORE_WEIGHTS = {
    "context_match": 0.40,
    "audio_similarity": 0.25,
    "engagement": 0.20,
    "recency": 0.10,
    "diversity": 0.05,
}

CUSTOM_SCORE_WEIGHTS = {
    "context_match": 0.20,
    "audio_similarity": 0.25,
    "engagement": 0.35,
    "recency": 0.15,
    "diversity": 0.05,
}

NEUTRAL_SCORE = 0.5
TEMPO_SPAN = 200.0
FULL_TRUST_SAMPLE_SIZE = 50


def feature_similarity(feature: str, track_value: float, target_value: float) -> float:
    """Similarity in [0, 1]; tempo is normalised over a 200 BPM span."""
    if feature == "tempo":
        return 1 - min(abs(track_value - target_value) / TEMPO_SPAN, 1.0)
    return 1 - abs(track_value - target_value)


class TrackScorer:
    """
    Scores candidate tracks for selection.

    Candidates without energy, valence and tempo get estimated features
    before scoring; filtering has already happened by then.
    """

    def __init__(
        self,
        estimator: Optional[GenreFeatureEstimator] = None,
        engagement_scorer: Optional[EngagementScorer] = None,
        recency_scorer: Optional[RecencyScorer] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.estimator = estimator or GenreFeatureEstimator()
        self.engagement_scorer = engagement_scorer or EngagementScorer()
        self.recency_scorer = recency_scorer or RecencyScorer()
        self.clock = clock
        self.logger = logger.bind(component="TrackScorer")

    def ensure_features(self, tracks: Sequence[TrackCandidate]) -> List[TrackCandidate]:
        """Estimate features for candidates lacking first-party analysis."""
        prepared = []
        estimated = 0
        for track in tracks:
            if track.features.has_core_features:
                prepared.append(track)
            else:
                prepared.append(self.estimator.estimate_for_track(track))
                estimated += 1
        if estimated:
            self.logger.debug("Estimated missing features", estimated=estimated, total=len(tracks))
        return prepared

    def score_against_pattern(
        self,
        tracks: Sequence[TrackCandidate],
        pattern: ListeningPattern,
        context: Optional[ScoringContext] = None
    ) -> List[ScoredTrack]:
        """
        Score candidates relative to a learned pattern.

        Args:
            tracks: Candidates to score
            pattern: Pattern the playlist should resemble
            context: Active context dimensions for feature weighting

        Returns:
            Scored tracks sorted best first
        """
        now = self.clock()
        weights = resolve_feature_weights(context)
        scored = []

        for track in self.ensure_features(tracks):
            breakdown = ScoreBreakdown(
                context_match=self.context_match(track, pattern, weights),
                audio_similarity=self.audio_similarity(track, pattern, weights),
                engagement=self.engagement_scorer.score(track, now),
                recency=self.recency_scorer.score(track, now),
                diversity=1.0,
            )
            scored.append(ScoredTrack(
                track=track,
                score=self._combine(breakdown, PATTERN_SCORE_WEIGHTS),
                breakdown=breakdown
            ))

        scored.sort(key=lambda s: s.score, reverse=True)
        self.logger.debug(
            "Scored tracks against pattern",
            pattern=pattern.signature.label,
            tracks=len(scored),
            top_score=round(scored[0].score, 3) if scored else None
        )
        return scored

    def score_custom(self, tracks: Sequence[TrackCandidate]) -> List[ScoredTrack]:
        """Score candidates without a pattern: popularity, engagement, recency."""
        now = self.clock()
        scored = []

        for track in self.ensure_features(tracks):
            popularity = 50 if track.popularity is None else track.popularity
            breakdown = ScoreBreakdown(
                context_match=NEUTRAL_SCORE,
                audio_similarity=popularity / 100,
                engagement=self.engagement_scorer.score(track, now),
                recency=self.recency_scorer.score(track, now),
                diversity=1.0,
            )
            scored.append(ScoredTrack(
                track=track,
                score=self._combine(breakdown, CUSTOM_SCORE_WEIGHTS),
                breakdown=breakdown
            ))

        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    def context_match(
        self,
        track: TrackCandidate,
        pattern: Optional[ListeningPattern],
        weights: FeatureWeights
    ) -> float:
        """Weighted feature similarity scaled by how much the pattern can be trusted."""
        if pattern is None:
            return NEUTRAL_SCORE

        total = sum(
            similarity * weight
            for similarity, weight in self._comparable(track, pattern, weights)
        )
        trust = pattern.confidence_score * min(pattern.sample_size / FULL_TRUST_SAMPLE_SIZE, 1.0)
        return total * trust

    def audio_similarity(
        self,
        track: TrackCandidate,
        pattern: ListeningPattern,
        weights: FeatureWeights
    ) -> float:
        """Weighted mean feature similarity (not confidence scaled)."""
        pairs = self._comparable(track, pattern, weights)
        weight_total = sum(weight for _, weight in pairs)
        if not pairs or weight_total == 0:
            return NEUTRAL_SCORE
        return sum(similarity * weight for similarity, weight in pairs) / weight_total

    def _comparable(
        self,
        track: TrackCandidate,
        pattern: ListeningPattern,
        weights: FeatureWeights
    ) -> List[Tuple[float, float]]:
        pairs = []
        for feature, weight in weights.items():
            track_value = track.features.get(feature)
            target = pattern.average_for(feature)
            if track_value is None or target is None:
                continue
            pairs.append((feature_similarity(feature, track_value, target), weight))
        return pairs

    @staticmethod
    def _combine(breakdown: ScoreBreakdown, weights: dict) -> float:
        return sum(getattr(breakdown, name) * weight for name, weight in weights.items())
