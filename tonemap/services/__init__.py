"""
Services for ToneMap

Pattern learning, context detection and tracking, playlist assembly,
storage and the per-session ToneMapService facade.
"""

from .cache_manager import CacheManager
from .context_detector import ContextDetector, derive_recent_genres, derive_recent_mood
from .context_tracker import ContextTracker, choose_template, describe_changes, detect_changes
from .event_store import InMemoryEventStore, pattern_to_row, row_to_pattern
from .pattern_learner import PatternAnalysisReport, PatternLearner, TasteSummary
from .playlist_assembler import PlaylistAssembler, compute_playlist_stats
from .playlist_templates import TEMPLATE_CONFIGS, TemplateConfig, get_template_config, resolve_options
from .recommendation_service import HomeSnapshot, ToneMapService

__all__ = [
    "CacheManager",
    "ContextDetector",
    "ContextTracker",
    "HomeSnapshot",
    "InMemoryEventStore",
    "PatternAnalysisReport",
    "PatternLearner",
    "PlaylistAssembler",
    "TEMPLATE_CONFIGS",
    "TasteSummary",
    "TemplateConfig",
    "ToneMapService",
    "choose_template",
    "compute_playlist_stats",
    "derive_recent_genres",
    "derive_recent_mood",
    "describe_changes",
    "detect_changes",
    "get_template_config",
    "pattern_to_row",
    "resolve_options",
    "row_to_pattern",
]
