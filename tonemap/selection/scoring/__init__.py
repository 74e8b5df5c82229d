"""
Scoring Components

Context feature weights, engagement and recency scorers, and the track
scorer that combines them.
"""

from .context_weights import (
    DEFAULT_FEATURE_WEIGHTS,
    OVERRIDE_ORDER,
    FeatureWeights,
    ScoringContext,
    resolve_feature_weights,
)
from .engagement_scorer import EngagementScorer, days_since
from .recency_scorer import RecencyScorer, recency_curve
from .track_scorer import TrackScorer, feature_similarity

__all__ = [
    "DEFAULT_FEATURE_WEIGHTS",
    "EngagementScorer",
    "FeatureWeights",
    "OVERRIDE_ORDER",
    "RecencyScorer",
    "ScoringContext",
    "TrackScorer",
    "days_since",
    "feature_similarity",
    "recency_curve",
    "resolve_feature_weights",
]
