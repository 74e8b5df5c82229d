"""
Recency Scorer

Scores how welcome a track is given when it was last played: very recent
plays are mildly penalised, one to four weeks is the sweet spot, and long
forgotten tracks decay toward a floor.
"""

from datetime import datetime
from typing import Optional

from ...models.listening_models import TrackCandidate
from .engagement_scorer import days_since

UNKNOWN_RECENCY = 0.5
RECENCY_FLOOR = 0.2


def recency_curve(days: Optional[float]) -> float:
    """
    Piecewise-linear recency score.

    0-3 days: 0.6 -> 0.7, 3-7: 0.7 -> 0.9, 7-30: 0.9 -> 1.0,
    30-90: 1.0 -> 0.8, then -0.5 per 365 days down to 0.2.
    """
    if days is None:
        return UNKNOWN_RECENCY
    days = max(0.0, days)

    if days <= 3:
        return 0.6 + (days / 3) * 0.1
    if days <= 7:
        return 0.7 + ((days - 3) / 4) * 0.2
    if days <= 30:
        return 0.9 + ((days - 7) / 23) * 0.1
    if days <= 90:
        return 1.0 - ((days - 30) / 60) * 0.2
    return max(RECENCY_FLOOR, 0.8 - ((days - 90) / 365) * 0.5)


class RecencyScorer:
    """Scores tracks by time since last play."""

    def score(self, track: TrackCandidate, now: datetime) -> float:
        return recency_curve(days_since(track.last_played, now))
