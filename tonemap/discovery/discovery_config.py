"""
Discovery Configuration

Template-specific target profiles and feature gates for discovery tracks,
plus blending constants.
"""

from typing import Dict, Optional, Tuple

from ..models.playlist_models import PlaylistTemplate

Bounds = Tuple[Optional[float], Optional[float]]

PRIMARY_SHARE = 0.7
CUSTOM_MIN_DISCOVERY_SHARE = 0.3
INTERLEAVE_CADENCE = 3
MAX_TRACKS_PER_ARTIST = 2
MIN_SEED_TRACKS = 3
PROFILE_TRACK_COUNT = 20
SEED_TRACK_COUNT = 5
SEED_GENRE_COUNT = 3
SEED_ARTIST_COUNT = 25
FALLBACK_SEED_GENRES = ("pop", "rock", "indie")

PROFILE_DEFAULTS: Dict[str, float] = {
    "energy": 0.5,
    "valence": 0.5,
    "tempo": 120.0,
    "danceability": 0.5,
    "acousticness": 0.5,
    "instrumentalness": 0.5,
}

# Template -> feature -> (floor, ceiling) applied to the target profile
TARGET_PROFILE_OVERRIDES: Dict[PlaylistTemplate, Dict[str, Bounds]] = {
    PlaylistTemplate.MORNING_ENERGY: {
        "energy": (0.65, None),
        "valence": (0.6, None),
        "tempo": (110, None),
    },
    PlaylistTemplate.WORKOUT: {
        "energy": (0.75, None),
        "tempo": (130, None),
    },
    PlaylistTemplate.EVENING_WINDDOWN: {
        "energy": (None, 0.5),
        "valence": (None, 0.6),
        "tempo": (None, 110),
    },
    PlaylistTemplate.FOCUS_FLOW: {
        "energy": (0.4, 0.4),
        "valence": (0.5, 0.5),
        "acousticness": (0.3, None),
    },
    PlaylistTemplate.RAINY_DAY: {
        "energy": (None, 0.5),
        "acousticness": (0.4, None),
    },
}

# Template -> feature -> (min, max) a discovered track must satisfy
DISCOVERY_FEATURE_GATES: Dict[PlaylistTemplate, Dict[str, Bounds]] = {
    PlaylistTemplate.MORNING_ENERGY: {"energy": (0.5, None), "tempo": (90, None)},
    PlaylistTemplate.WORKOUT: {"energy": (0.6, None), "tempo": (110, None)},
    PlaylistTemplate.EVENING_WINDDOWN: {"energy": (None, 0.65)},
    PlaylistTemplate.FOCUS_FLOW: {"energy": (0.2, 0.75)},
    PlaylistTemplate.RAINY_DAY: {"energy": (None, 0.75)},
}


def apply_bounds(value: float, bounds: Bounds) -> float:
    floor, ceiling = bounds
    if floor is not None:
        value = max(value, floor)
    if ceiling is not None:
        value = min(value, ceiling)
    return value


def within_bounds(value: Optional[float], bounds: Bounds) -> bool:
    if value is None:
        return True
    floor, ceiling = bounds
    if floor is not None and value < floor:
        return False
    if ceiling is not None and value > ceiling:
        return False
    return True
