"""
Discovery Models

Requests passed to discovery sources and artist summaries returned by the
music platform.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

FeatureBounds = Tuple[Optional[float], Optional[float]]


@dataclass
class DiscoveryRequest:
    """What a discovery source should look for."""
    target_count: int
    seed_track_ids: List[str] = field(default_factory=list)
    seed_artist_ids: List[str] = field(default_factory=list)
    seed_genres: List[str] = field(default_factory=list)
    exclude_track_ids: Set[str] = field(default_factory=set)
    target_features: Dict[str, float] = field(default_factory=dict)
    feature_bounds: Dict[str, FeatureBounds] = field(default_factory=dict)


@dataclass
class ArtistSummary:
    """An artist as reported by the music platform."""
    artist_id: str
    name: str
    genres: List[str] = field(default_factory=list)
    popularity: Optional[int] = None
