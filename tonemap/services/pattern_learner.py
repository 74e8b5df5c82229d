"""
Pattern Learner

Learns per-context listening profiles from a user's history. Every
signature family (time of day, day, weather, activity, and a fixed set of
combined contexts) is aggregated into a ListeningPattern and upserted.
"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from ..api.interfaces import EventStore
from ..exceptions import PersistenceError, ensure_authenticated
from ..models.config_models import EngineConfig
from ..models.listening_models import (
    ActivityType,
    ContextSignature,
    DayGroup,
    DayOfWeek,
    EventQuery,
    ListeningEvent,
    ListeningPattern,
    PATTERN_FEATURES,
    PatternCharacteristics,
    RankedItem,
    TimeOfDay,
    UNSPECIFIED,
    WeatherCondition,
)
from ..utils.async_utils import fetch_with_timeout
from ..utils.logging_config import log_error

logger = structlog.get_logger(__name__)

SINGLE_FETCH_LIMIT = 200
SINGLE_MIN_SAMPLES = 3
COMBINED_FETCH_LIMIT = 100
COMBINED_MIN_SAMPLES = 10
TOP_ITEMS = 10
TASTE_TOP_GENRES = 5
ALL_PATTERNS_LIMIT = 1000

COMBINED_SIGNATURES: Tuple[ContextSignature, ...] = (
    ContextSignature(time_of_day=TimeOfDay.MORNING, day_of_week=DayGroup.WEEKEND),
    ContextSignature(time_of_day=TimeOfDay.EVENING, day_of_week=DayGroup.WEEKEND),
    ContextSignature(time_of_day=TimeOfDay.MORNING, day_of_week=DayGroup.WEEKDAY),
    ContextSignature(time_of_day=TimeOfDay.AFTERNOON, day_of_week=DayGroup.WEEKDAY),
)


def single_dimension_signatures() -> List[ContextSignature]:
    """One signature per value of each context dimension."""
    return (
        [ContextSignature(time_of_day=t) for t in TimeOfDay]
        + [ContextSignature(day_of_week=d) for d in DayOfWeek]
        + [ContextSignature(weather=w) for w in WeatherCondition]
        + [ContextSignature(activity=a) for a in ActivityType]
    )


def _mean(values: Sequence[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def _ranked(names: Sequence[str], limit: int = TOP_ITEMS) -> List[RankedItem]:
    # Counter.most_common keeps first-seen order among equal counts
    return [RankedItem(name=name, count=count) for name, count in Counter(names).most_common(limit)]


def build_characteristics(events: Sequence[ListeningEvent]) -> PatternCharacteristics:
    """Aggregate events into pattern averages and top genres/artists."""
    averages = {
        f"avg_{feature}": _mean([e.features.get(feature) for e in events])
        for feature in PATTERN_FEATURES
    }
    return PatternCharacteristics(
        sample_size=len(events),
        top_genres=_ranked([g for e in events for g in e.genres if g]),
        top_artists=_ranked([e.artist_name for e in events if e.artist_name]),
        **averages
    )


def signature_covers(hint: ContextSignature, candidate: ContextSignature) -> bool:
    """True when every dimension set on `candidate` agrees with `hint`."""
    for name, value in candidate.specified.items():
        hinted = getattr(hint, name)
        if isinstance(value, DayGroup):
            if hinted is UNSPECIFIED:
                return False
            if isinstance(hinted, DayGroup):
                if hinted is not value:
                    return False
            elif hinted not in value.days:
                return False
        elif hinted != value:
            return False
    return True


@dataclass
class PatternAnalysisReport:
    """Outcome of one analysis run."""
    saved: List[ListeningPattern] = field(default_factory=list)
    skipped: List[ContextSignature] = field(default_factory=list)
    failed: List[ContextSignature] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed


@dataclass
class TasteSummary:
    """Overall taste across all learned patterns."""
    avg_energy: Optional[float] = None
    avg_valence: Optional[float] = None
    avg_tempo: Optional[float] = None
    top_genres: List[str] = field(default_factory=list)
    pattern_count: int = 0


class PatternLearner:
    """
    Learns and looks up listening patterns for one session.

    Analysis runs for the same user are serialised; different users may
    run concurrently.
    """

    def __init__(
        self,
        event_store: EventStore,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.event_store = event_store
        self.config = config or EngineConfig()
        self.clock = clock
        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._periodic_task: Optional[asyncio.Task] = None
        self.logger = logger.bind(component="PatternLearner")

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._user_locks:
            self._user_locks[user_id] = asyncio.Lock()
        return self._user_locks[user_id]

    async def analyze_patterns(self, user_id: str) -> PatternAnalysisReport:
        """
        Recompute every pattern for a user.

        Signatures with too few events are skipped. A failed fetch is
        logged and skipped; a failed write is listed in `report.failed`.

        Raises:
            NotAuthenticatedError: If user_id is empty
        """
        ensure_authenticated(user_id)
        started = self.clock()
        report = PatternAnalysisReport()

        async with self._lock_for(user_id):
            for signature in single_dimension_signatures():
                await self._analyze_signature(
                    user_id, signature, SINGLE_FETCH_LIMIT, SINGLE_MIN_SAMPLES, report
                )
            for signature in COMBINED_SIGNATURES:
                await self._analyze_signature(
                    user_id, signature, COMBINED_FETCH_LIMIT, COMBINED_MIN_SAMPLES, report
                )

        self.logger.info(
            "Pattern analysis complete",
            user_id=user_id,
            saved=len(report.saved),
            skipped=len(report.skipped),
            failed=len(report.failed),
            duration_seconds=(self.clock() - started).total_seconds()
        )
        return report

    async def _analyze_signature(
        self,
        user_id: str,
        signature: ContextSignature,
        fetch_limit: int,
        min_samples: int,
        report: PatternAnalysisReport
    ) -> None:
        query = EventQuery.for_signature(user_id, signature, limit=fetch_limit, require_energy=True)
        try:
            events = await fetch_with_timeout(
                self.event_store.get_events_by_context(query),
                timeout=self.config.fetch_timeout_seconds,
                default=None,
                operation="pattern_events",
                log=self.logger
            )
        except PersistenceError as e:
            self.logger.warning("Pattern fetch failed", signature=signature.label, error=str(e))
            events = None

        if events is None or len(events) < min_samples:
            report.skipped.append(signature)
            return

        characteristics = build_characteristics(events)
        try:
            pattern = await self.event_store.upsert_pattern(user_id, signature, characteristics)
        except PersistenceError as e:
            self.logger.error("Failed to save pattern", signature=signature.label, error=str(e))
            log_error(e, {"operation": "upsert_pattern", "user_id": user_id, "signature": signature.label})
            report.failed.append(signature)
            return

        report.saved.append(pattern)
        self.logger.debug(
            "Pattern learned",
            signature=signature.label,
            sample_size=pattern.sample_size,
            confidence=pattern.confidence_score
        )

    async def find_best_pattern(
        self,
        user_id: str,
        hint: ContextSignature
    ) -> Optional[ListeningPattern]:
        """
        Pattern for a context hint.

        The pattern stored under exactly `hint` wins; otherwise the most
        confident pattern whose dimensions all agree with the hint.
        """
        ensure_authenticated(user_id)
        if not hint.is_empty:
            exact = await self.event_store.get_pattern(user_id, hint)
            if exact is not None:
                return exact

        patterns = await self.event_store.get_patterns_for_context(user_id, limit=ALL_PATTERNS_LIMIT)
        matching = [p for p in patterns if signature_covers(hint, p.signature)]
        if not matching:
            return None
        return max(matching, key=lambda p: (p.confidence_score, len(p.signature.specified)))

    async def get_patterns_for_context(
        self,
        user_id: str,
        time_of_day: Optional[TimeOfDay] = None,
        weather: Optional[WeatherCondition] = None,
        activity: Optional[ActivityType] = None,
        limit: int = 5
    ) -> List[ListeningPattern]:
        ensure_authenticated(user_id)
        return await self.event_store.get_patterns_for_context(
            user_id,
            time_of_day=time_of_day,
            weather=weather,
            activity=activity,
            limit=limit
        )

    async def get_taste_summary(self, user_id: str) -> Optional[TasteSummary]:
        """Averages and top genres across all patterns; None before any analysis."""
        ensure_authenticated(user_id)
        patterns = await self.event_store.get_patterns_for_context(user_id, limit=ALL_PATTERNS_LIMIT)
        if not patterns:
            return None

        genre_counts: Counter = Counter()
        for pattern in patterns:
            for item in pattern.top_genres:
                genre_counts[item.name] += item.count

        return TasteSummary(
            avg_energy=_mean([p.avg_energy for p in patterns]),
            avg_valence=_mean([p.avg_valence for p in patterns]),
            avg_tempo=_mean([p.avg_tempo for p in patterns]),
            top_genres=[name for name, _ in genre_counts.most_common(TASTE_TOP_GENRES)],
            pattern_count=len(patterns)
        )

    def start_periodic_analysis(self, user_id: str) -> asyncio.Task:
        """Run analysis now and then every `pattern_analysis_interval_hours`."""
        ensure_authenticated(user_id)
        if self._periodic_task is not None and not self._periodic_task.done():
            self.logger.info("Periodic analysis already running", user_id=user_id)
            return self._periodic_task

        self._periodic_task = asyncio.create_task(self._periodic_loop(user_id))
        self.logger.info(
            "Periodic analysis started",
            user_id=user_id,
            interval_hours=self.config.pattern_analysis_interval_hours
        )
        return self._periodic_task

    async def stop_periodic_analysis(self) -> None:
        task, self._periodic_task = self._periodic_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("Periodic analysis stopped")

    async def _periodic_loop(self, user_id: str) -> None:
        interval = self.config.pattern_analysis_interval_hours * 3600
        while True:
            report = await self.analyze_patterns(user_id)
            if report.failed:
                self.logger.warning(
                    "Periodic analysis saved only some patterns",
                    failed=[s.label for s in report.failed]
                )
            await asyncio.sleep(interval)
