"""
ToneMap Service

Per-session facade over the recommendation engine. Wires the pattern
learner, track selection, discovery, the playlist assembler and the context
tracker together for one signed-in user.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

import structlog

from ..api.interfaces import DiscoverySource, EventStore, MusicPlatformClient, NotificationSink, WeatherProvider
from ..api.weather_client import OpenMeteoClient
from ..discovery.discovery_blender import DiscoveryBlender
from ..discovery.platform_discovery import PlatformDiscoverySource
from ..exceptions import ExternalLookupError, ensure_authenticated
from ..features.genre_feature_estimator import GenreFeatureEstimator
from ..models.config_models import EngineConfig
from ..models.context_models import ListeningContext
from ..models.listening_models import ActivityType, TrackCandidate
from ..models.playlist_models import (
    GeneratedPlaylist,
    PlaylistFeedback,
    PlaylistFilters,
    PlaylistGenerationOptions,
    PlaylistStats,
    PlaylistTemplate,
)
from ..selection.diversity_optimizer import DiversityOptimizer
from ..selection.scoring.track_scorer import TrackScorer
from ..selection.track_selector import TrackSelector
from ..utils.async_utils import fetch_with_timeout
from ..utils.logging_config import set_request_context
from .cache_manager import CacheManager
from .context_detector import ContextDetector
from .context_tracker import ContextTracker
from .pattern_learner import PatternAnalysisReport, PatternLearner, TasteSummary
from .playlist_assembler import PlaylistAssembler

logger = structlog.get_logger(__name__)


@dataclass
class HomeSnapshot:
    """Everything the home screen shows, fetched together."""
    context: ListeningContext
    suggestions: List[GeneratedPlaylist] = field(default_factory=list)
    taste: Optional[TasteSummary] = None
    now_playing: Optional[TrackCandidate] = None


class ToneMapService:
    """
    Recommendation engine for one user session.

    Every operation requires a signed-in user and raises
    NotAuthenticatedError otherwise. Build with `from_config` unless the
    components are being swapped out.
    """

    def __init__(
        self,
        user_id: str,
        event_store: EventStore,
        pattern_learner: PatternLearner,
        assembler: PlaylistAssembler,
        context_detector: ContextDetector,
        context_tracker: ContextTracker,
        cache_manager: Optional[CacheManager] = None,
        platform_client: Optional[MusicPlatformClient] = None,
        weather_client: Optional[OpenMeteoClient] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.user_id = user_id
        self.event_store = event_store
        self.pattern_learner = pattern_learner
        self.assembler = assembler
        self.context_detector = context_detector
        self.context_tracker = context_tracker
        self.cache_manager = cache_manager
        self.platform_client = platform_client
        self.weather_client = weather_client
        self.config = config or EngineConfig()
        self.clock = clock
        self.logger = logger.bind(service="ToneMapService", user_id=user_id)

        if user_id:
            set_request_context(user_id)
        self.logger.info("ToneMap service initialized", weather_enabled=self.config.weather_enabled)

    @classmethod
    def from_config(
        cls,
        user_id: str,
        event_store: EventStore,
        config: Optional[EngineConfig] = None,
        weather_provider: Optional[WeatherProvider] = None,
        platform_client: Optional[MusicPlatformClient] = None,
        discovery_source: Optional[DiscoverySource] = None,
        notification_sink: Optional[NotificationSink] = None,
        cache_manager: Optional[CacheManager] = None,
        clock: Callable[[], datetime] = datetime.now
    ) -> "ToneMapService":
        """
        Build a session with the default component graph.

        Args:
            user_id: Signed-in user (may be empty; operations then raise)
            event_store: Persistence for events, patterns and playlists
            config: Engine settings (EngineConfig defaults when omitted)
            weather_provider: Weather source; an Open-Meteo client is built
                when omitted and coordinates are configured
            platform_client: Music platform client for features, saving and
                platform discovery
            discovery_source: Discovery source; platform discovery is used
                when omitted and a platform client is given
            notification_sink: Receiver of contextual playlist notifications
            cache_manager: Shared cache (one is opened in config.cache_dir
                when omitted)
            clock: Time source

        Returns:
            Wired ToneMapService
        """
        config = config or EngineConfig()

        weather_client: Optional[OpenMeteoClient] = None
        if weather_provider is None and config.weather_enabled:
            weather_client = OpenMeteoClient(
                config.weather_latitude,
                config.weather_longitude,
                timeout=config.fetch_timeout_seconds,
                clock=clock
            )
            weather_provider = weather_client

        if discovery_source is None and platform_client is not None:
            discovery_source = PlatformDiscoverySource(platform_client)

        cache_manager = cache_manager or CacheManager(
            cache_dir=config.cache_dir,
            weather_ttl_seconds=int(config.weather_cache_minutes * 60)
        )

        estimator = GenreFeatureEstimator(apply_variance=config.estimate_variance)
        selector = TrackSelector(
            event_store,
            TrackScorer(estimator=estimator, clock=clock),
            DiversityOptimizer(recency_penalty_hours=config.recency_penalty_hours, clock=clock),
            fetch_timeout=config.fetch_timeout_seconds
        )
        learner = PatternLearner(event_store, config=config, clock=clock)
        detector = ContextDetector(
            event_store,
            weather_provider=weather_provider,
            cache_manager=cache_manager,
            config=config,
            clock=clock
        )
        blender = None
        if discovery_source is not None:
            blender = DiscoveryBlender(
                discovery_source,
                estimator=estimator,
                platform_client=platform_client,
                fetch_timeout=config.fetch_timeout_seconds
            )
        assembler = PlaylistAssembler(
            event_store,
            learner,
            selector,
            detector,
            discovery_blender=blender,
            platform_client=platform_client,
            config=config,
            clock=clock
        )
        tracker = ContextTracker(
            user_id,
            detector,
            assembler,
            event_store,
            cache_manager=cache_manager,
            notification_sink=notification_sink,
            config=config,
            clock=clock
        )

        return cls(
            user_id,
            event_store,
            learner,
            assembler,
            detector,
            tracker,
            cache_manager=cache_manager,
            platform_client=platform_client,
            weather_client=weather_client,
            config=config,
            clock=clock
        )

    # Generation

    async def generate_from_template(
        self,
        template: PlaylistTemplate,
        options: Optional[PlaylistGenerationOptions] = None
    ) -> Optional[GeneratedPlaylist]:
        ensure_authenticated(self.user_id)
        return await self.assembler.generate_from_template(self.user_id, template, options)

    async def generate_custom(
        self,
        filters: PlaylistFilters,
        options: Optional[PlaylistGenerationOptions] = None
    ) -> Optional[GeneratedPlaylist]:
        ensure_authenticated(self.user_id)
        return await self.assembler.generate_custom(self.user_id, filters, options)

    async def generate_for_current_context(self) -> Optional[GeneratedPlaylist]:
        """Generate and store a contextual suggestion now, ignoring the rate gate."""
        ensure_authenticated(self.user_id)
        return await self.context_tracker.generate_for_current_context()

    def set_activity(self, activity: Optional[ActivityType]) -> None:
        self.context_detector.set_activity(activity)

    # Patterns

    async def analyze_patterns(self, user_id: Optional[str] = None) -> PatternAnalysisReport:
        """Recompute patterns for the session user (or an explicit one)."""
        target = user_id or self.user_id
        ensure_authenticated(target)
        return await self.pattern_learner.analyze_patterns(target)

    async def start_periodic_analysis(self) -> None:
        ensure_authenticated(self.user_id)
        self.pattern_learner.start_periodic_analysis(self.user_id)

    async def stop_periodic_analysis(self) -> None:
        await self.pattern_learner.stop_periodic_analysis()

    async def get_taste_summary(self) -> Optional[TasteSummary]:
        ensure_authenticated(self.user_id)
        return await self.pattern_learner.get_taste_summary(self.user_id)

    # Context tracking

    async def start_context_tracking(self) -> None:
        ensure_authenticated(self.user_id)
        await self.context_tracker.start()

    async def stop_context_tracking(self) -> None:
        await self.context_tracker.stop()

    async def get_contextual_suggestions(self) -> List[GeneratedPlaylist]:
        """Playlists of the live contextual suggestions, newest first."""
        ensure_authenticated(self.user_id)
        suggestions = await self.context_tracker.get_contextual_suggestions()
        return [suggestion.playlist for suggestion in suggestions]

    # Playlists

    async def preview_playlist(self, playlist: GeneratedPlaylist) -> PlaylistStats:
        ensure_authenticated(self.user_id)
        return await self.assembler.preview_playlist(playlist)

    async def save_playlist(
        self,
        playlist: GeneratedPlaylist,
        push_to_platform: bool = False,
        name: Optional[str] = None
    ) -> GeneratedPlaylist:
        ensure_authenticated(self.user_id)
        return await self.assembler.save_playlist(self.user_id, playlist, push_to_platform, name)

    async def rate_playlist(self, playlist_id: str, rating: int) -> Optional[GeneratedPlaylist]:
        ensure_authenticated(self.user_id)
        return await self.assembler.submit_feedback(
            self.user_id, playlist_id, PlaylistFeedback(rating=rating)
        )

    async def submit_feedback(self, playlist_id: str, feedback: PlaylistFeedback) -> Optional[GeneratedPlaylist]:
        ensure_authenticated(self.user_id)
        return await self.assembler.submit_feedback(self.user_id, playlist_id, feedback)

    async def regenerate_playlist(self, playlist_id: str) -> Optional[GeneratedPlaylist]:
        ensure_authenticated(self.user_id)
        return await self.assembler.regenerate_playlist(self.user_id, playlist_id)

    # Views

    async def get_home_snapshot(self) -> HomeSnapshot:
        """Context, suggestions, taste and now playing, fetched concurrently."""
        ensure_authenticated(self.user_id)
        context, suggestions, taste, now_playing = await asyncio.gather(
            self.context_detector.detect(self.user_id),
            self.get_contextual_suggestions(),
            self.get_taste_summary(),
            self._now_playing()
        )
        return HomeSnapshot(context=context, suggestions=suggestions, taste=taste, now_playing=now_playing)

    async def _now_playing(self) -> Optional[TrackCandidate]:
        if self.platform_client is None:
            return None
        try:
            return await fetch_with_timeout(
                self.platform_client.get_currently_playing(),
                timeout=self.config.fetch_timeout_seconds,
                default=None,
                operation="currently_playing",
                log=self.logger
            )
        except ExternalLookupError as e:
            self.logger.warning("Currently playing unavailable", error=str(e))
            return None

    async def close(self) -> None:
        """Stop background work and release clients and caches."""
        await self.context_tracker.stop()
        await self.pattern_learner.stop_periodic_analysis()
        if self.weather_client is not None:
            await self.weather_client.close()
        if self.cache_manager is not None:
            self.cache_manager.close()
        self.logger.info("ToneMap service closed")
