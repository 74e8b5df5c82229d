"""
Selection Module

Candidate building and filtering, scoring, diversity-constrained
selection and playlist ordering.
"""

from .diversity_optimizer import DiversityOptimizer, SelectionResult
from .filters import apply_blacklist, apply_filters, build_candidates, passes_filters
from .genre_clusters import GENRE_CLUSTERS, cluster_for
from .ordering import order_for_smart_transitions, shape_energy_arc
from .track_selector import TrackSelector

__all__ = [
    "DiversityOptimizer",
    "GENRE_CLUSTERS",
    "SelectionResult",
    "TrackSelector",
    "apply_blacklist",
    "apply_filters",
    "build_candidates",
    "cluster_for",
    "order_for_smart_transitions",
    "passes_filters",
    "shape_energy_arc",
]
