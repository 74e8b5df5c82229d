"""
Tests for track scoring, context feature weights and diversity selection.
"""

from datetime import timedelta

import pytest

from tonemap.models.listening_models import (
    ActivityType,
    AudioFeatures,
    ContextSignature,
    ListeningPattern,
    ScoredTrack,
    TimeOfDay,
    WeatherCondition,
)
from tonemap.models.playlist_models import DiversityLevel, PlaylistTemplate
from tonemap.selection.diversity_optimizer import DiversityOptimizer
from tonemap.selection.scoring.context_weights import (
    DEFAULT_FEATURE_WEIGHTS,
    ScoringContext,
    resolve_feature_weights,
)
from tonemap.selection.scoring.engagement_scorer import EngagementScorer
from tonemap.selection.scoring.recency_scorer import recency_curve
from tonemap.selection.scoring.track_scorer import TrackScorer, feature_similarity


@pytest.fixture
def pattern(user_id):
    return ListeningPattern(
        user_id=user_id,
        signature=ContextSignature(time_of_day=TimeOfDay.MORNING),
        sample_size=80,
        confidence_score=0.8,
        avg_energy=0.8,
        avg_valence=0.7,
        avg_tempo=125.0
    )


@pytest.fixture
def scorer(clock):
    return TrackScorer(clock=clock)


class TestRecencyCurve:
    @pytest.mark.parametrize("boundary", [3, 7, 30, 90])
    def test_continuous_at_segment_boundaries(self, boundary):
        assert recency_curve(boundary - 1e-6) == pytest.approx(recency_curve(boundary + 1e-6), abs=1e-4)

    def test_sweet_spot_and_floor(self):
        assert recency_curve(30) == pytest.approx(1.0)
        assert recency_curve(0) == pytest.approx(0.6)
        assert recency_curve(5000) == pytest.approx(0.2)
        assert recency_curve(None) == 0.5


class TestEngagementScorer:
    def test_completed_tracks_beat_skipped_ones(self, make_track, now):
        scorer = EngagementScorer()
        loved = make_track(completion_rate=1.0, skip_rate=0.0, play_count=20, last_played=now)
        skipped = make_track(completion_rate=0.0, skip_rate=1.0, play_count=1, last_played=now)
        assert scorer.score(loved, now) > scorer.score(skipped, now)

    def test_score_is_bounded_and_decays(self, make_track, now):
        scorer = EngagementScorer()
        track = make_track(completion_rate=1.0, play_count=100, last_played=now - timedelta(days=200))
        assert 0.1 <= scorer.score(track, now) <= 1.0
        assert scorer.decay_multiplier(200) == 0.5
        assert scorer.decay_multiplier(10) == 1.0


class TestFeatureWeights:
    def test_later_dimensions_win_on_shared_fields(self):
        context = ScoringContext(
            time_of_day=TimeOfDay.MORNING,
            activity=ActivityType.RUNNING,
            template=PlaylistTemplate.WORKOUT
        )
        weights = resolve_feature_weights(context)

        assert weights.energy == pytest.approx(0.40)
        assert weights.tempo == pytest.approx(0.40)
        assert weights.valence == pytest.approx(0.30)

    def test_base_weights_are_not_mutated(self):
        resolve_feature_weights(ScoringContext(weather=WeatherCondition.RAINY))
        assert DEFAULT_FEATURE_WEIGHTS.acousticness == pytest.approx(0.15)

    def test_no_context_returns_base(self):
        assert resolve_feature_weights(None) is DEFAULT_FEATURE_WEIGHTS

    def test_from_signature_drops_unspecified(self):
        context = ScoringContext.from_signature(ContextSignature(weather=WeatherCondition.SUNNY))
        assert context.weather is WeatherCondition.SUNNY
        assert context.time_of_day is None


class TestTrackScorer:
    def test_tempo_similarity_uses_200_bpm_span(self):
        assert feature_similarity("tempo", 100, 150) == pytest.approx(0.75)
        assert feature_similarity("tempo", 0, 400) == 0.0
        assert feature_similarity("energy", 0.2, 0.8) == pytest.approx(0.4)

    def test_closer_tracks_score_higher(self, scorer, pattern, make_track):
        close = make_track(track_id="close", energy=0.8, valence=0.7, tempo=125.0)
        far = make_track(track_id="far", energy=0.1, valence=0.1, tempo=60.0)

        scored = scorer.score_against_pattern([far, close], pattern)

        assert [s.track_id for s in scored] == ["close", "far"]
        assert scored[0].breakdown.audio_similarity == pytest.approx(1.0)

    def test_context_match_scales_with_trust(self, scorer, pattern, make_track, user_id):
        weak = ListeningPattern(
            user_id=user_id,
            signature=pattern.signature,
            sample_size=5,
            confidence_score=0.05,
            avg_energy=0.8,
            avg_valence=0.7,
            avg_tempo=125.0
        )
        track = make_track(energy=0.8, valence=0.7, tempo=125.0)

        strong_score = scorer.score_against_pattern([track], pattern)[0]
        weak_score = scorer.score_against_pattern([track], weak)[0]

        assert weak_score.breakdown.context_match < strong_score.breakdown.context_match

    def test_tracks_without_features_are_estimated(self, scorer, pattern, make_track):
        bare = make_track(features=AudioFeatures(), genres=["techno"])
        scored = scorer.score_against_pattern([bare], pattern)

        assert scored[0].track.features_estimated
        assert scored[0].track.features.energy is not None

    def test_custom_scoring_is_neutral_on_context(self, scorer, make_track):
        scored = scorer.score_custom([make_track(popularity=90), make_track(popularity=10)])
        assert all(s.breakdown.context_match == 0.5 for s in scored)
        assert scored[0].track.popularity == 90


class TestDiversityOptimizer:
    @staticmethod
    def _scored(make_track, count, artists, genres=("indie rock",), **kwargs):
        return [
            ScoredTrack(
                track=make_track(
                    track_id=f"t{i}",
                    artist_name=artists[i % len(artists)],
                    genres=[genres[i % len(genres)]],
                    **kwargs
                ),
                score=1.0 - i / 100
            )
            for i in range(count)
        ]

    def test_never_exceeds_limit_or_repeats(self, make_track, clock):
        optimizer = DiversityOptimizer(clock=clock)
        scored = self._scored(make_track, 40, [f"a{i}" for i in range(40)])
        scored += scored[:5]

        result = optimizer.select_with_diversity(scored, 12, DiversityLevel.LOW)

        assert len(result.tracks) == 12
        assert len(set(result.track_ids)) == 12

    def test_high_diversity_caps_artists_and_clusters(self, make_track, clock):
        optimizer = DiversityOptimizer(clock=clock)
        genres = ("indie rock", "house", "punk rock", "jazz", "heavy metal")
        scored = self._scored(make_track, 20, [f"a{i}" for i in range(20)], genres=genres)

        result = optimizer.select_with_diversity(scored, 10, DiversityLevel.HIGH)

        assert len(result.tracks) == 10
        assert not result.backfilled
        assert max(result.cluster_counts.values()) <= 4
        assert max(result.artist_counts.values()) <= 2

    def test_backfills_when_caps_starve_the_playlist(self, make_track, clock):
        optimizer = DiversityOptimizer(clock=clock)
        scored = self._scored(make_track, 30, ["one", "two", "three"])

        result = optimizer.select_with_diversity(scored, 10, DiversityLevel.HIGH)

        assert result.backfilled
        assert len(result.tracks) == 10
        assert len(set(result.track_ids)) == 10

    def test_recent_plays_are_penalised(self, make_track, clock, now):
        optimizer = DiversityOptimizer(recency_penalty_hours=2, clock=clock)
        fresh = ScoredTrack(track=make_track(track_id="fresh", last_played=now - timedelta(minutes=30)), score=0.9)
        older = ScoredTrack(track=make_track(track_id="older", last_played=now - timedelta(days=3)), score=0.6)

        result = optimizer.select_with_diversity([fresh, older], 2, DiversityLevel.LOW)

        assert result.track_ids == ["older", "fresh"]
        assert result.penalized == 1

    def test_empty_input(self, clock):
        result = DiversityOptimizer(clock=clock).select_with_diversity([], 10)
        assert result.tracks == []
        assert not result.backfilled
