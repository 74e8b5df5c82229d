"""
Track Selector

Fetches listening history for a target context, turns it into candidates,
filters, scores and diversifies them. Strict filters are relaxed before
giving up: only an empty history ends in NoDataAvailableError.
"""

from typing import Optional

import structlog

from ..api.interfaces import EventStore
from ..exceptions import NoDataAvailableError
from ..models.listening_models import EventQuery, ListeningPattern
from ..models.playlist_models import DiversityLevel, PlaylistFilters, UserPreferences
from ..utils.async_utils import fetch_with_timeout
from .diversity_optimizer import DiversityOptimizer, SelectionResult
from .filters import apply_blacklist, apply_filters, build_candidates
from .scoring.context_weights import ScoringContext
from .scoring.track_scorer import TrackScorer

logger = structlog.get_logger(__name__)

PATTERN_FETCH_LIMIT = 500
AUDIO_FILTER_FETCH_LIMIT = 2000
DEFAULT_FETCH_LIMIT = 1000
RELAXED_POOL_FACTOR = 3


class TrackSelector:
    """
    Selects tracks from the user's history.

    Two modes: relative to a learned pattern, or custom (filters only,
    neutral scoring).
    """

    def __init__(
        self,
        event_store: EventStore,
        scorer: TrackScorer,
        optimizer: DiversityOptimizer,
        fetch_timeout: float = 10.0
    ):
        self.event_store = event_store
        self.scorer = scorer
        self.optimizer = optimizer
        self.fetch_timeout = fetch_timeout
        self.logger = logger.bind(component="TrackSelector")

    async def select_from_pattern(
        self,
        user_id: str,
        pattern: ListeningPattern,
        limit: int,
        filters: Optional[PlaylistFilters] = None,
        diversity_level: DiversityLevel = DiversityLevel.MEDIUM,
        context: Optional[ScoringContext] = None,
        preferences: Optional[UserPreferences] = None
    ) -> SelectionResult:
        """
        Select tracks that resemble a learned pattern.

        Candidates come from the events behind the pattern's signature. When
        none survive filtering, falls back to custom selection.

        Raises:
            NoDataAvailableError: If the fallback finds no history either
        """
        query = EventQuery.for_signature(user_id, pattern.signature, limit=PATTERN_FETCH_LIMIT)
        events = await fetch_with_timeout(
            self.event_store.get_events_by_context(query),
            timeout=self.fetch_timeout,
            default=[],
            operation="pattern_events",
            log=self.logger
        )

        candidates = apply_blacklist(build_candidates(events), preferences)
        candidates = apply_filters(candidates, filters)

        if not candidates:
            self.logger.info(
                "No pattern candidates after filtering, using custom selection",
                pattern=pattern.signature.label,
                events=len(events)
            )
            return await self.select_custom(
                user_id, filters or PlaylistFilters(), limit, diversity_level, preferences
            )

        scored = self.scorer.score_against_pattern(candidates, pattern, context)
        result = self.optimizer.select_with_diversity(scored, limit, diversity_level)

        self.logger.info(
            "Selected tracks from pattern",
            pattern=pattern.signature.label,
            confidence=pattern.confidence_score,
            candidates=len(candidates),
            selected=len(result.tracks)
        )
        return result

    async def select_custom(
        self,
        user_id: str,
        filters: PlaylistFilters,
        limit: int,
        diversity_level: DiversityLevel = DiversityLevel.MEDIUM,
        preferences: Optional[UserPreferences] = None
    ) -> SelectionResult:
        """
        Select tracks by explicit filters with neutral scoring.

        Context filters narrow the history fetch only when no audio filters
        are given. An empty filtered pool falls back to the unfiltered
        candidates.

        Raises:
            NoDataAvailableError: If the user has no usable history at all
        """
        has_audio_filters = filters.has_audio_filters()
        query = EventQuery(
            user_id=user_id,
            limit=AUDIO_FILTER_FETCH_LIMIT if has_audio_filters else DEFAULT_FETCH_LIMIT
        )
        if not has_audio_filters:
            query.time_of_day = list(filters.time_of_day)
            query.day_of_week = list(filters.day_of_week)
            query.weather = list(filters.weather)
            query.activity = list(filters.activity)

        events = await fetch_with_timeout(
            self.event_store.get_events_by_context(query),
            timeout=self.fetch_timeout,
            default=[],
            operation="custom_events",
            log=self.logger
        )

        candidates = apply_blacklist(build_candidates(events), preferences)
        filtered = apply_filters(candidates, filters)

        if not filtered:
            filtered = candidates[:limit * RELAXED_POOL_FACTOR]
            if filtered:
                self.logger.warning(
                    "No tracks matched filters, relaxing to unfiltered history",
                    relaxed_pool=len(filtered)
                )

        if not filtered:
            self.logger.warning("No listening history available for selection", user_id=user_id)
            raise NoDataAvailableError()

        scored = self.scorer.score_custom(filtered)
        result = self.optimizer.select_with_diversity(scored, limit, diversity_level)

        self.logger.info(
            "Selected tracks with custom filters",
            events=len(events),
            candidates=len(candidates),
            filtered=len(filtered),
            selected=len(result.tracks)
        )
        return result
