"""
Features Module

Genre-based estimation of audio features for tracks without analysis data.
"""

from .genre_feature_estimator import GenreFeatureEstimator
from .genre_profiles import DEFAULT_FEATURES, GENRE_PROFILES

__all__ = [
    "DEFAULT_FEATURES",
    "GENRE_PROFILES",
    "GenreFeatureEstimator",
]
