"""
Genre Feature Estimator

Estimates an audio-feature vector from genre tags and track metadata
(popularity, duration, explicit flag, release year) for tracks that have
no first-party audio analysis.
"""

import random
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

import structlog

from ..models.listening_models import AudioFeatures, TrackCandidate
from .genre_profiles import DEFAULT_FEATURES, GENRE_PROFILES, GenreProfile

logger = structlog.get_logger(__name__)

Features = Dict[str, float]

MAINSTREAM_TEMPO = 122.0

SAD_KEYWORDS = ("emo", "goth", "doom", "sad", "melancholic", "dark", "post-punk", "shoegaze")
HAPPY_KEYWORDS = ("happy", "upbeat", "party", "dance", "funk", "disco", "tropical")

# (first year, last year, tempo, valence, energy)
ERA_ADJUSTMENTS = (
    (None, 1959, -10.0, 0.05, -0.10),
    (1960, 1979, -8.0, 0.08, -0.05),
    (1980, 1989, 0.0, 0.05, 0.08),
    (1990, 1999, 5.0, -0.08, 0.0),
    (2000, 2009, 8.0, 0.0, 0.05),
    (2010, 2019, 10.0, 0.0, 0.0),
    (2020, None, 0.0, 0.10, 0.0),
)

CLAMP_RANGES = {
    "tempo": (40.0, 200.0),
    "loudness": (-60.0, 0.0),
}

VARIANCE_RANGES = {
    "energy": 0.1,
    "valence": 0.12,
    "danceability": 0.1,
    "tempo": 10.0,
    "acousticness": 0.08,
    "instrumentalness": 0.08,
    "loudness": 3.0,
    "speechiness": 0.05,
    "liveness": 0.1,
}


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


class GenreFeatureEstimator:
    """
    Estimates audio features from genres and metadata.

    The estimate is deterministic unless `apply_variance` is enabled, in
    which case each field gets a small random perturbation.
    """

    def __init__(
        self,
        profiles: Optional[Dict[str, GenreProfile]] = None,
        apply_variance: bool = False,
        rng: Optional[random.Random] = None
    ):
        self.profiles = profiles if profiles is not None else GENRE_PROFILES
        self.apply_variance = apply_variance
        self.rng = rng or random.Random()
        self.logger = logger.bind(component="GenreFeatureEstimator")

    def estimate(
        self,
        genres: Iterable[str],
        popularity: Optional[int] = None,
        duration_ms: Optional[int] = None,
        explicit: bool = False,
        release_year: Optional[int] = None
    ) -> AudioFeatures:
        """
        Estimate a full feature vector.

        Args:
            genres: Genre tags of the track or its artist
            popularity: Popularity 0-100 (50 when unknown)
            duration_ms: Track duration
            explicit: Explicit content flag
            release_year: Release year, if known

        Returns:
            AudioFeatures with every estimated field set and clamped
        """
        genre_list = [g for g in genres if g]
        matched = self.match_profiles(genre_list)
        features = self._average_profiles(matched) if matched else dict(DEFAULT_FEATURES)

        features = self._adjust_for_duration(features, duration_ms)
        features = self._adjust_for_popularity(features, 50 if popularity is None else popularity)
        features = self._adjust_for_release_year(features, release_year)
        features = self._adjust_for_explicit(features, explicit)

        features = self._refine_energy(features)
        features = self._refine_valence(features, genre_list)
        features = self._refine_danceability(features)

        features = self._clamp_features(features)
        if self.apply_variance:
            features = self.add_variance(features)

        self.logger.debug(
            "Estimated features",
            genres=genre_list[:3],
            matched_profiles=len(matched),
            energy=round(features["energy"], 3),
            tempo=round(features["tempo"], 1)
        )
        return AudioFeatures(**features)

    def estimate_for_track(self, track: TrackCandidate) -> TrackCandidate:
        """
        Fill a candidate's missing features from an estimate.

        Real feature values are kept; only missing fields are estimated.
        """
        estimated = self.estimate(
            track.genres,
            popularity=track.popularity,
            duration_ms=track.duration_ms,
            explicit=track.explicit,
            release_year=track.release_year
        )
        return replace(
            track,
            features=track.features.filled_from(estimated),
            features_estimated=True
        )

    def match_profiles(self, genres: List[str]) -> List[GenreProfile]:
        """Exact table hit first, otherwise the first bidirectional substring match."""
        matched = []
        for genre in genres:
            genre_lower = genre.lower().strip()
            if genre_lower in self.profiles:
                matched.append(self.profiles[genre_lower])
                continue
            for profile_genre, profile in self.profiles.items():
                if profile_genre in genre_lower or genre_lower in profile_genre:
                    matched.append(profile)
                    break
        return matched

    def _average_profiles(self, profiles: List[GenreProfile]) -> Features:
        result = dict(DEFAULT_FEATURES)
        for key in result:
            values = [p[key] for p in profiles if key in p]
            if values:
                result[key] = sum(values) / len(values)
        return result

    def _adjust_for_duration(self, features: Features, duration_ms: Optional[int]) -> Features:
        if not duration_ms:
            return features
        minutes = duration_ms / 60000
        f = dict(features)

        if minutes > 6:
            f["tempo"] -= 8
            f["danceability"] *= 0.75
            f["instrumentalness"] = min(f["instrumentalness"] * 1.4, 0.95)
            f["energy"] *= 0.9
            f["valence"] *= 0.95
        elif minutes > 5:
            f["tempo"] -= 5
            f["danceability"] *= 0.85
            f["instrumentalness"] = min(f["instrumentalness"] * 1.3, 0.95)
            f["energy"] *= 0.95
        elif minutes < 2.5:
            f["tempo"] += 10
            f["energy"] = min(f["energy"] * 1.15, 0.95)
            f["danceability"] = min(f["danceability"] * 1.1, 0.95)
            f["valence"] += 0.05
        return f

    def _adjust_for_popularity(self, features: Features, popularity: int) -> Features:
        factor = popularity / 100
        f = dict(features)

        # Hits drift toward a mainstream tempo
        if popularity > 80:
            f["tempo"] -= (f["tempo"] - MAINSTREAM_TEMPO) * 0.15

        dance_boost = 0.15 if popularity > 80 else (factor - 0.5) * 0.15
        f["danceability"] = min(f["danceability"] + dance_boost, 0.95)
        f["energy"] += (factor - 0.5) * 0.10
        f["valence"] += (factor - 0.5) * 0.08
        return f

    def _adjust_for_release_year(self, features: Features, release_year: Optional[int]) -> Features:
        if not release_year:
            return features
        f = dict(features)
        for first, last, tempo, valence, energy in ERA_ADJUSTMENTS:
            if (first is None or release_year >= first) and (last is None or release_year <= last):
                f["tempo"] += tempo
                f["valence"] = _clamp(f["valence"] + valence, 0.0, 1.0)
                f["energy"] = _clamp(f["energy"] + energy, 0.0, 1.0)
                if first == 2020:
                    f["danceability"] = min(f["danceability"] + 0.08, 0.95)
                break
        return f

    def _adjust_for_explicit(self, features: Features, explicit: bool) -> Features:
        if not explicit:
            return features
        f = dict(features)
        f["speechiness"] = min(f["speechiness"] * 1.3, 0.66)
        f["energy"] = min(f["energy"] + 0.05, 1.0)
        return f

    def _refine_energy(self, features: Features) -> Features:
        boost = 0.0
        tempo = features["tempo"]
        if tempo > 160:
            boost += 0.15
        elif tempo > 140:
            boost += 0.08
        if tempo < 80:
            boost -= 0.15
        elif tempo < 95:
            boost -= 0.08

        normalized_loudness = (features["loudness"] + 60) / 60
        if normalized_loudness > 0.8:
            boost += 0.12
        elif normalized_loudness < 0.3:
            boost -= 0.10

        return {**features, "energy": _clamp(features["energy"] + boost, 0.0, 1.0)}

    def _refine_valence(self, features: Features, genres: List[str]) -> Features:
        genres_lower = [g.lower() for g in genres]
        has_sad = any(k in g for g in genres_lower for k in SAD_KEYWORDS)
        has_happy = any(k in g for g in genres_lower for k in HAPPY_KEYWORDS)

        adjustment = 0.0
        if has_sad:
            adjustment -= 0.20
        if has_happy:
            adjustment += 0.20
        if features["acousticness"] > 0.7 and not has_happy:
            adjustment -= 0.10
        if features["instrumentalness"] > 0.7:
            adjustment -= (features["valence"] - 0.5) * 0.3

        return {**features, "valence": _clamp(features["valence"] + adjustment, 0.0, 1.0)}

    def _refine_danceability(self, features: Features) -> Features:
        tempo = features["tempo"]
        adjustment = 0.0
        if 115 <= tempo <= 135:
            adjustment += 0.12
        elif tempo < 90 or tempo > 160:
            adjustment -= 0.15
        return {**features, "danceability": _clamp(features["danceability"] + adjustment, 0.0, 1.0)}

    def _clamp_features(self, features: Features) -> Features:
        return {
            key: _clamp(value, *CLAMP_RANGES.get(key, (0.0, 1.0)))
            for key, value in features.items()
        }

    def add_variance(self, features: Features) -> Features:
        """Perturb each field by up to +/- half its variance range, then clamp."""
        varied = {
            key: value + (self.rng.random() - 0.5) * VARIANCE_RANGES.get(key, 0.0)
            for key, value in features.items()
        }
        return self._clamp_features(varied)
