"""
Context Tracker

Watches one user's listening context on a timer. When the context shifts
(time bucket, weather, activity, or what they have been playing) it
generates a fresh playlist, keeps it as a contextual suggestion and
notifies the user.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import structlog

from ..api.interfaces import EventStore, NotificationSink
from ..exceptions import ExternalLookupError, ensure_authenticated
from ..models.config_models import EngineConfig
from ..models.context_models import (
    ContextChange,
    ContextChangeType,
    ContextCheckResult,
    ContextualSuggestion,
    ListeningContext,
    Mood,
    TrackerState,
)
from ..models.listening_models import TimeOfDay
from ..models.playlist_models import GeneratedPlaylist, PlaylistGenerationOptions, PlaylistTemplate
from .cache_manager import CacheManager
from .context_detector import ContextDetector
from .playlist_assembler import PlaylistAssembler

logger = structlog.get_logger(__name__)

NOTIFICATION_TITLE = "🎵 New Playlist Ready!"
NOTIFICATION_TYPE = "contextual_playlist"
NO_CHANGE_DESCRIPTION = "Context updated"


def detect_changes(previous: ListeningContext, current: ListeningContext) -> List[ContextChange]:
    """Classify the significant differences between two contexts."""
    changes: List[ContextChange] = []

    if current.time_of_day is not previous.time_of_day:
        changes.append(ContextChange(
            ContextChangeType.TIME_SHIFT, previous.time_of_day.value, current.time_of_day.value
        ))

    if current.weather is not None and current.weather is not previous.weather:
        changes.append(ContextChange(
            ContextChangeType.WEATHER_CHANGE,
            previous.weather.value if previous.weather else None,
            current.weather.value
        ))

    if current.activity is not None and current.activity is not previous.activity:
        changes.append(ContextChange(
            ContextChangeType.ACTIVITY_CHANGE,
            previous.activity.value if previous.activity else None,
            current.activity.value
        ))

    if current.recent_mood is not None and previous.recent_mood is not None \
            and current.recent_mood is not previous.recent_mood:
        changes.append(ContextChange(
            ContextChangeType.LISTENING_PATTERN_CHANGE,
            previous.recent_mood.value,
            current.recent_mood.value
        ))

    if current.recent_genres and previous.recent_genres \
            and not set(current.recent_genres) & set(previous.recent_genres):
        changes.append(ContextChange(
            ContextChangeType.LISTENING_PATTERN_CHANGE,
            ", ".join(previous.recent_genres),
            ", ".join(current.recent_genres)
        ))

    return changes


def choose_template(context: ListeningContext) -> PlaylistTemplate:
    """Template that best fits a context; recent mood outranks the clock."""
    if context.recent_mood.is_energetic:
        return PlaylistTemplate.WORKOUT
    if context.recent_mood is Mood.CALM_MELANCHOLIC:
        return PlaylistTemplate.EVENING_WINDDOWN

    if context.time_of_day is TimeOfDay.MORNING:
        return PlaylistTemplate.MORNING_ENERGY
    if context.time_of_day is TimeOfDay.AFTERNOON:
        return PlaylistTemplate.RIGHT_NOW if context.is_weekend else PlaylistTemplate.FOCUS_FLOW
    return PlaylistTemplate.EVENING_WINDDOWN


def describe_changes(changes: List[ContextChange]) -> str:
    if not changes:
        return NO_CHANGE_DESCRIPTION
    return ", ".join(change.describe() for change in changes)


class ContextTracker:
    """
    Periodic context watcher for one user session.

    The generation gate is soft: two overlapping checks may both pass it,
    and the later suggestion replaces the earlier one.
    """

    def __init__(
        self,
        user_id: str,
        detector: ContextDetector,
        assembler: PlaylistAssembler,
        event_store: EventStore,
        cache_manager: Optional[CacheManager] = None,
        notification_sink: Optional[NotificationSink] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.user_id = user_id
        self.detector = detector
        self.assembler = assembler
        self.event_store = event_store
        self.cache_manager = cache_manager
        self.notification_sink = notification_sink
        self.config = config or EngineConfig()
        self.clock = clock

        self.state = TrackerState.IDLE
        self.last_context: Optional[ListeningContext] = None
        self.last_generation_at: Optional[datetime] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._inflight: Optional[asyncio.Task] = None
        self.logger = logger.bind(component="ContextTracker", user_id=user_id)

    @property
    def is_tracking(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    async def start(self) -> None:
        """Load persisted state, run a first check and start the timer."""
        ensure_authenticated(self.user_id)
        if self.is_tracking:
            self.logger.info("Context tracking already running")
            return

        if self.cache_manager is not None:
            self.last_context, self.last_generation_at = self.cache_manager.get_tracker_state(self.user_id)

        self.state = TrackerState.TRACKING
        await self._run_shielded()
        self._tick_task = asyncio.create_task(self._tick_loop())
        self.logger.info(
            "Context tracking started",
            interval_minutes=self.config.context_check_interval_minutes,
            restored_context=self.last_context is not None
        )

    async def stop(self) -> None:
        """Cancel the timer; a check already running is allowed to finish."""
        task, self._tick_task = self._tick_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.logger.error("Context tracking timer had failed", error=str(e), exc_info=True)

        inflight = self._inflight
        if inflight is not None and not inflight.done():
            await asyncio.wait([inflight])

        self.state = TrackerState.IDLE
        self.logger.info("Context tracking stopped")

    async def _tick_loop(self) -> None:
        interval = self.config.context_check_interval_minutes * 60
        while True:
            await asyncio.sleep(interval)
            try:
                await self._run_shielded()
            except Exception as e:
                # A failing check must not end the timer
                self.logger.error("Context check failed", error=str(e), exc_info=True)

    async def _run_shielded(self) -> Optional[ContextCheckResult]:
        # Cancelling the caller leaves the check itself running
        self._inflight = asyncio.ensure_future(self.check_context())
        return await asyncio.shield(self._inflight)

    def _resting_state(self) -> TrackerState:
        if self.is_tracking or self.state is not TrackerState.IDLE:
            return TrackerState.TRACKING
        return TrackerState.IDLE

    async def check_context(self) -> ContextCheckResult:
        """
        Evaluate the current context once.

        Returns:
            ContextCheckResult with the detected context, the classified
            changes and the generated playlist (if any)

        Raises:
            NotAuthenticatedError: If the session has no user
        """
        ensure_authenticated(self.user_id)
        resting = self._resting_state()
        self.state = TrackerState.EVALUATING
        try:
            current = await self.detector.detect(self.user_id)
            previous = self.last_context

            if previous is None:
                self._remember(current)
                self.logger.info("Initial context stored", signature=current.signature.label)
                return ContextCheckResult(context=current, suppressed_reason="initial context")

            changes = detect_changes(previous, current)
            self._remember(current)

            if not changes:
                return ContextCheckResult(context=current)

            self.logger.info(
                "Context changed",
                changes=[change.change_type.value for change in changes],
                description=describe_changes(changes)
            )

            if self._within_gate():
                self.logger.info(
                    "Too soon since last generation, skipping",
                    last_generation_at=self.last_generation_at.isoformat()
                )
                return ContextCheckResult(context=current, changes=changes, suppressed_reason="rate limited")

            playlist = await self._generate_and_notify(current, changes)
            return ContextCheckResult(
                context=current,
                changes=changes,
                playlist=playlist,
                suppressed_reason=None if playlist else "no listening data"
            )
        finally:
            self.state = resting

    async def generate_for_current_context(self) -> Optional[GeneratedPlaylist]:
        """Manual trigger: generate for the current context, ignoring the gate."""
        ensure_authenticated(self.user_id)
        resting = self._resting_state()
        try:
            current = await self.detector.detect(self.user_id)
            changes = detect_changes(self.last_context, current) if self.last_context else []
            self._remember(current)
            return await self._generate_and_notify(current, changes)
        finally:
            self.state = resting

    async def get_contextual_suggestions(self) -> List[ContextualSuggestion]:
        """Unexpired suggestions, newest first."""
        ensure_authenticated(self.user_id)
        return await self.event_store.get_suggestions(
            self.user_id, self.clock(), limit=self.config.max_contextual_suggestions
        )

    def _within_gate(self) -> bool:
        if self.last_generation_at is None:
            return False
        gap = timedelta(minutes=self.config.min_generation_interval_minutes)
        return self.clock() - self.last_generation_at < gap

    def _remember(self, context: ListeningContext) -> None:
        self.last_context = context
        self._persist()

    def _persist(self) -> None:
        if self.cache_manager is not None:
            self.cache_manager.save_tracker_state(self.user_id, self.last_context, self.last_generation_at)

    async def _generate_and_notify(
        self,
        context: ListeningContext,
        changes: List[ContextChange]
    ) -> Optional[GeneratedPlaylist]:
        self.state = TrackerState.GENERATING
        template = choose_template(context)
        descriptions = [change.describe() for change in changes]

        playlist = await self.assembler.generate_from_template(
            self.user_id,
            template,
            PlaylistGenerationOptions(use_current_context=True, include_discovery=True),
            context=context,
            changes=descriptions
        )
        if playlist is None:
            self.logger.warning("Contextual generation produced no playlist", template=template.value)
            return None

        now = self.clock()
        await self.event_store.save_suggestion(ContextualSuggestion(
            user_id=self.user_id,
            playlist=playlist,
            context=context,
            changes=changes,
            created_at=now,
            expires_at=now + timedelta(hours=self.config.suggestion_ttl_hours)
        ))
        self.last_generation_at = now
        self._persist()

        self.state = TrackerState.NOTIFYING
        await self._notify(playlist, template, changes)
        self.logger.info(
            "Contextual playlist ready",
            template=template.value,
            playlist_id=playlist.playlist_id,
            tracks=playlist.total_tracks
        )
        return playlist

    async def _notify(
        self,
        playlist: GeneratedPlaylist,
        template: PlaylistTemplate,
        changes: List[ContextChange]
    ) -> None:
        if self.notification_sink is None:
            return
        try:
            await self.notification_sink.notify(
                NOTIFICATION_TITLE,
                f"{describe_changes(changes)}. We made a fresh playlist just for you.",
                {
                    "type": NOTIFICATION_TYPE,
                    "playlist_id": playlist.playlist_id,
                    "template": template.value,
                }
            )
        except ExternalLookupError as e:
            self.logger.error("Notification failed", playlist_id=playlist.playlist_id, error=str(e))
