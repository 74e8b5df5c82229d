"""
Engagement Scorer

Scores tracks from the user's own engagement history: completion and
skip rates, play count and how long ago the track was last played.
"""

from datetime import datetime
from typing import Optional

import structlog

from ...models.listening_models import TrackCandidate

logger = structlog.get_logger(__name__)

# (max days since last play, multiplier)
DECAY_STEPS = ((30, 1.0), (90, 0.85), (180, 0.7))
STALE_MULTIPLIER = 0.5


def days_since(moment: Optional[datetime], now: datetime) -> Optional[float]:
    """Fractional days between `moment` and `now`, never negative."""
    if moment is None:
        return None
    return max(0.0, (now - moment).total_seconds() / 86400)


class EngagementScorer:
    """
    Scores tracks based on how the user engaged with them.
    """

    def __init__(self):
        self.logger = logger.bind(component="EngagementScorer")

    def score(self, track: TrackCandidate, now: datetime) -> float:
        """
        Calculate the engagement score.

        Args:
            track: Candidate with engagement aggregates
            now: Reference time for decay

        Returns:
            Engagement score in [0.1, 1.0]
        """
        try:
            base = (
                track.completion_rate * 0.4 +
                (1 - track.skip_rate) * 0.3 +
                min(track.play_count / 50, 0.2)
            )
            popularity_floor = (track.popularity or 0) / 100 * 0.1
            base = max(base, popularity_floor)

            total = base * self.decay_multiplier(days_since(track.last_played, now))
            return min(1.0, max(0.1, total))

        except (TypeError, ValueError) as e:
            self.logger.warning("Engagement scoring failed", track_id=track.track_id, error=str(e))
            return 0.5

    @staticmethod
    def decay_multiplier(days: Optional[float]) -> float:
        if days is None:
            return 1.0
        for max_days, multiplier in DECAY_STEPS:
            if days <= max_days:
                return multiplier
        return STALE_MULTIPLIER
