"""
Playlist Assembler

Turns a generation request into a finished playlist: resolves template
options, picks a pattern or falls back to filters, selects tracks, blends
in discoveries, orders the result and records how it was made.
"""

import math
import time
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

import structlog

from ..api.interfaces import EventStore, MusicPlatformClient
from ..discovery.discovery_blender import DiscoveryBlender
from ..discovery.discovery_config import CUSTOM_MIN_DISCOVERY_SHARE
from ..exceptions import ExternalLookupError, NoDataAvailableError, PersistenceError, ensure_authenticated
from ..models.config_models import EngineConfig
from ..models.context_models import ListeningContext
from ..models.listening_models import ListeningPattern, TrackCandidate
from ..models.playlist_models import (
    EnergyArcShape,
    GeneratedPlaylist,
    GenerationType,
    PlaylistContextSnapshot,
    PlaylistFeedback,
    PlaylistFilters,
    PlaylistGenerationOptions,
    PlaylistStats,
    PlaylistTemplate,
    UserPreferences,
)
from ..selection.diversity_optimizer import SelectionResult
from ..selection.ordering import order_for_smart_transitions, shape_energy_arc
from ..selection.scoring.context_weights import ScoringContext
from ..selection.track_selector import TrackSelector
from ..utils.async_utils import fetch_with_timeout
from ..utils.logging_config import log_error, log_performance
from .context_detector import ContextDetector
from .pattern_learner import PatternLearner
from .playlist_templates import (
    context_band_filters,
    pattern_hint_for,
    resolve_options,
    template_description,
    template_name,
)

logger = structlog.get_logger(__name__)

STATS_TOP_ITEMS = 5
NEUTRAL_ENERGY = 0.5


def compute_playlist_stats(tracks: Sequence[TrackCandidate]) -> PlaylistStats:
    """Aggregate preview statistics; missing features are left out of averages."""

    def mean(feature: str) -> Optional[float]:
        values = [t.features.get(feature) for t in tracks if t.features.get(feature) is not None]
        return sum(values) / len(values) if values else None

    def mood_count(predicate) -> int:
        return sum(
            1 for t in tracks
            if t.features.energy is not None and t.features.valence is not None
            and predicate(t.features.energy, t.features.valence)
        )

    genres = Counter(g for t in tracks for g in t.genres if g)
    artists = Counter(t.artist_name for t in tracks)

    return PlaylistStats(
        track_count=len(tracks),
        total_duration_ms=sum(t.duration_ms or 0 for t in tracks),
        avg_energy=mean("energy"),
        avg_valence=mean("valence"),
        avg_tempo=mean("tempo"),
        top_genres=[g for g, _ in genres.most_common(STATS_TOP_ITEMS)],
        top_artists=[a for a, _ in artists.most_common(STATS_TOP_ITEMS)],
        energy_progression=[
            NEUTRAL_ENERGY if t.features.energy is None else t.features.energy for t in tracks
        ],
        mood_distribution={
            "happy": mood_count(lambda e, v: v > 0.6 and e > 0.6),
            "sad": mood_count(lambda e, v: v < 0.4 and e < 0.4),
            "energetic": sum(1 for t in tracks if (t.features.energy or 0) > 0.7),
            "calm": sum(1 for t in tracks if t.features.energy is not None and t.features.energy < 0.4),
        },
        discovery_count=sum(1 for t in tracks if t.is_discovered),
    )


class PlaylistAssembler:
    """
    Generates, previews and persists playlists for one session.

    `generate_*` return None when the user has no usable history; every
    other failure propagates.
    """

    def __init__(
        self,
        event_store: EventStore,
        pattern_learner: PatternLearner,
        track_selector: TrackSelector,
        context_detector: ContextDetector,
        discovery_blender: Optional[DiscoveryBlender] = None,
        platform_client: Optional[MusicPlatformClient] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.event_store = event_store
        self.pattern_learner = pattern_learner
        self.track_selector = track_selector
        self.context_detector = context_detector
        self.discovery_blender = discovery_blender
        self.platform_client = platform_client
        self.config = config or EngineConfig()
        self.clock = clock
        self.logger = logger.bind(component="PlaylistAssembler")

    async def generate_from_template(
        self,
        user_id: str,
        template: PlaylistTemplate,
        options: Optional[PlaylistGenerationOptions] = None,
        context: Optional[ListeningContext] = None,
        changes: Optional[List[str]] = None
    ) -> Optional[GeneratedPlaylist]:
        """
        Generate a playlist from a template.

        Args:
            user_id: Owner of the listening history
            template: Template providing defaults
            options: Explicit options overriding the template
            context: Already-detected context (detected on demand otherwise)
            changes: Context change descriptions that triggered generation

        Returns:
            The playlist, or None when there is no listening history

        Raises:
            NotAuthenticatedError: If user_id is empty
        """
        ensure_authenticated(user_id)
        started = time.time()
        resolved = resolve_options(template, options)
        preferences = await self.event_store.get_user_preferences(user_id)
        limit = self._track_limit(resolved, preferences)
        pattern: Optional[ListeningPattern] = None

        self.logger.info(
            "Generating playlist from template",
            template=template.value,
            limit=limit,
            use_current_context=resolved.use_current_context
        )

        try:
            if template is PlaylistTemplate.RIGHT_NOW or resolved.use_current_context:
                result, context, pattern = await self.select_for_current_context(
                    user_id, limit, resolved, preferences, context
                )
            else:
                hint = pattern_hint_for(template, resolved.filters)
                pattern = await self.pattern_learner.find_best_pattern(user_id, hint)
                if pattern is not None:
                    result = await self.track_selector.select_from_pattern(
                        user_id,
                        pattern,
                        limit,
                        filters=resolved.filters,
                        diversity_level=resolved.diversity_level,
                        context=ScoringContext.from_signature(hint, template),
                        preferences=preferences
                    )
                else:
                    result = await self.track_selector.select_custom(
                        user_id,
                        resolved.filters or PlaylistFilters(),
                        limit,
                        resolved.diversity_level,
                        preferences
                    )
        except NoDataAvailableError as e:
            self.logger.warning("Playlist generation found no data", template=template.value, message=str(e))
            return None

        tracks = [scored.track for scored in result.tracks]
        if resolved.include_discovery:
            tracks = await self._blend_discovery(tracks, limit, template, resolved.filters)

        playlist = self._build_playlist(
            user_id,
            template,
            self._order(tracks, resolved),
            resolved,
            result,
            pattern=pattern,
            context=context,
            changes=changes
        )
        log_performance(
            "generate_from_template",
            time.time() - started,
            template=template.value,
            tracks=playlist.total_tracks
        )
        return playlist

    async def generate_custom(
        self,
        user_id: str,
        filters: PlaylistFilters,
        options: Optional[PlaylistGenerationOptions] = None
    ) -> Optional[GeneratedPlaylist]:
        """
        Generate a playlist from explicit filters.

        Discovery fills the gap when history is short, and contributes at
        least 30% of the playlist when requested.
        """
        ensure_authenticated(user_id)
        started = time.time()
        resolved = resolve_options(PlaylistTemplate.CUSTOM, options)
        resolved = resolved.model_copy(update={"filters": filters})
        preferences = await self.event_store.get_user_preferences(user_id)
        limit = self._track_limit(resolved, preferences)

        try:
            result = await self.track_selector.select_custom(
                user_id, filters, limit, resolved.diversity_level, preferences
            )
        except NoDataAvailableError as e:
            self.logger.warning("Custom playlist found no data", message=str(e))
            return None

        tracks = [scored.track for scored in result.tracks]
        if len(tracks) < limit or resolved.include_discovery:
            # Unrequested discovery only fills the gap and never displaces history
            discovery_count = limit - len(tracks)
            if resolved.include_discovery:
                discovery_count = max(discovery_count, math.floor(limit * CUSTOM_MIN_DISCOVERY_SHARE))
            tracks = await self._blend_discovery(tracks, limit, None, filters, discovery_count)

        playlist = self._build_playlist(
            user_id, PlaylistTemplate.CUSTOM, self._order(tracks, resolved), resolved, result
        )
        log_performance("generate_custom", time.time() - started, tracks=playlist.total_tracks)
        return playlist

    async def select_for_current_context(
        self,
        user_id: str,
        limit: int,
        options: PlaylistGenerationOptions,
        preferences: Optional[UserPreferences] = None,
        context: Optional[ListeningContext] = None
    ) -> Tuple[SelectionResult, ListeningContext, Optional[ListeningPattern]]:
        """
        Select for the detected context.

        Uses the best pattern covering the context; without one, falls back
        to broad energy bands for the time of day.

        Raises:
            NoDataAvailableError: If the user has no usable history
        """
        if context is None:
            context = await self.context_detector.detect(user_id)

        pattern = await self.pattern_learner.find_best_pattern(user_id, context.signature)
        if pattern is not None:
            scoring_context = ScoringContext(
                time_of_day=context.time_of_day,
                activity=context.activity,
                weather=context.weather,
                template=options.template
            )
            result = await self.track_selector.select_from_pattern(
                user_id,
                pattern,
                limit,
                filters=options.filters,
                diversity_level=options.diversity_level,
                context=scoring_context,
                preferences=preferences
            )
            return result, context, pattern

        self.logger.info(
            "No pattern for current context, using time-of-day bands",
            time_of_day=context.time_of_day.value
        )
        filters = context_band_filters(context.time_of_day).merged_with(options.filters)
        result = await self.track_selector.select_custom(
            user_id, filters, limit, options.diversity_level, preferences
        )
        return result, context, None

    async def preview_playlist(self, playlist: GeneratedPlaylist) -> PlaylistStats:
        """Preview statistics, with platform audio features filled in where available."""
        tracks = list(playlist.tracks)
        missing = [t.track_id for t in tracks if not t.features.has_core_features]
        if missing and self.platform_client is not None:
            try:
                features = await fetch_with_timeout(
                    self.platform_client.get_audio_features(missing),
                    timeout=self.config.fetch_timeout_seconds,
                    default={},
                    operation="preview_audio_features",
                    log=self.logger
                )
            except ExternalLookupError as e:
                self.logger.warning("Preview without platform features", error=str(e))
                features = {}
            tracks = [
                replace(t, features=t.features.filled_from(features[t.track_id]))
                if t.track_id in features else t
                for t in tracks
            ]
        return compute_playlist_stats(tracks)

    async def save_playlist(
        self,
        user_id: str,
        playlist: GeneratedPlaylist,
        push_to_platform: bool = False,
        name: Optional[str] = None
    ) -> GeneratedPlaylist:
        """
        Persist an accepted playlist, optionally creating it on the platform.

        A platform failure is logged and the playlist is still saved.

        Raises:
            PersistenceError: If the store rejects the playlist
        """
        ensure_authenticated(user_id)
        if name:
            playlist = playlist.model_copy(update={"name": name})

        if push_to_platform and self.platform_client is not None:
            platform_name = name or f"{playlist.name} - {playlist.created_at:%b} {playlist.created_at.day}"
            try:
                platform_id = await self.platform_client.create_playlist(platform_name, playlist.description)
                await self.platform_client.add_tracks(platform_id, playlist.track_ids)
                playlist = playlist.model_copy(
                    update={"platform_playlist_id": platform_id, "name": platform_name}
                )
            except ExternalLookupError as e:
                self.logger.warning(
                    "Platform playlist creation failed, saving locally only",
                    playlist_id=playlist.playlist_id,
                    error=str(e)
                )

        try:
            saved = await self.event_store.save_playlist(playlist)
        except PersistenceError as e:
            log_error(e, {"operation": "save_playlist", "user_id": user_id, "playlist_id": playlist.playlist_id})
            raise
        self.logger.info(
            "Playlist saved",
            playlist_id=saved.playlist_id,
            tracks=saved.total_tracks,
            platform_playlist_id=saved.platform_playlist_id
        )
        return saved

    async def submit_feedback(
        self,
        user_id: str,
        playlist_id: str,
        feedback: PlaylistFeedback
    ) -> Optional[GeneratedPlaylist]:
        ensure_authenticated(user_id)
        updated = await self.event_store.update_playlist_feedback(user_id, playlist_id, feedback)
        if updated is None:
            self.logger.warning("Feedback for unknown playlist", playlist_id=playlist_id)
        return updated

    async def regenerate_playlist(self, user_id: str, playlist_id: str) -> Optional[GeneratedPlaylist]:
        """Generate a fresh playlist with the settings recorded on a saved one."""
        ensure_authenticated(user_id)
        original = await self.event_store.get_playlist(user_id, playlist_id)
        if original is None:
            self.logger.warning("Cannot regenerate unknown playlist", playlist_id=playlist_id)
            return None

        snapshot = original.context_snapshot
        options = PlaylistGenerationOptions(**snapshot.options)
        if snapshot.filters is not None:
            options = options.model_copy(update={"filters": snapshot.filters})

        if snapshot.template is not None and snapshot.template is not PlaylistTemplate.CUSTOM:
            return await self.generate_from_template(user_id, snapshot.template, options)
        return await self.generate_custom(user_id, snapshot.filters or PlaylistFilters(), options)

    def _track_limit(self, options: PlaylistGenerationOptions, preferences: UserPreferences) -> int:
        if options.track_limit:
            return options.track_limit
        if "default_track_limit" in preferences.model_fields_set:
            return preferences.default_track_limit
        return self.config.default_track_limit

    async def _blend_discovery(
        self,
        tracks: List[TrackCandidate],
        limit: int,
        template: Optional[PlaylistTemplate],
        filters: Optional[PlaylistFilters],
        discovery_count: Optional[int] = None
    ) -> List[TrackCandidate]:
        if self.discovery_blender is None:
            self.logger.debug("Discovery requested but no discovery source configured")
            return tracks
        blended = await self.discovery_blender.blend(
            tracks, limit, template=template, filters=filters, discovery_count=discovery_count
        )
        return blended.tracks

    @staticmethod
    def _order(tracks: List[TrackCandidate], options: PlaylistGenerationOptions) -> List[TrackCandidate]:
        if options.energy_arc and options.energy_arc is not EnergyArcShape.STEADY:
            tracks = shape_energy_arc(tracks, options.energy_arc)
        if options.smart_transitions:
            tracks = order_for_smart_transitions(tracks)
        return tracks

    def _build_playlist(
        self,
        user_id: str,
        template: PlaylistTemplate,
        tracks: List[TrackCandidate],
        options: PlaylistGenerationOptions,
        result: SelectionResult,
        pattern: Optional[ListeningPattern] = None,
        context: Optional[ListeningContext] = None,
        changes: Optional[List[str]] = None
    ) -> GeneratedPlaylist:
        snapshot = PlaylistContextSnapshot(
            generation_type=GenerationType.CUSTOM if template is PlaylistTemplate.CUSTOM else GenerationType.AUTO,
            template=template,
            filters=options.filters,
            options=options.model_dump(mode="json", exclude={"template", "filters"}),
            is_context_based=template is PlaylistTemplate.RIGHT_NOW or options.use_current_context,
            matched_pattern_id=pattern.pattern_id if pattern else None,
            context=context.to_dict() if context else None,
            changes=list(changes or []),
            backfilled=result.backfilled
        )
        playlist = GeneratedPlaylist(
            user_id=user_id,
            name=options.name or template_name(template),
            description=options.description or template_description(template),
            track_ids=[t.track_id for t in tracks],
            tracks=tracks,
            total_tracks=len(tracks),
            total_duration_ms=sum(t.duration_ms or 0 for t in tracks),
            context_snapshot=snapshot,
            created_at=self.clock()
        )
        self.logger.info(
            "Playlist assembled",
            playlist_id=playlist.playlist_id,
            template=template.value,
            tracks=playlist.total_tracks,
            discoveries=sum(1 for t in tracks if t.is_discovered),
            pattern=pattern.signature.label if pattern else None,
            backfilled=result.backfilled
        )
        return playlist
