"""
Tests for PlaylistAssembler: template and custom generation, discovery,
preview statistics, saving and regeneration.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from tonemap.discovery.discovery_blender import DiscoveryBlender
from tonemap.exceptions import ExternalLookupError, NotAuthenticatedError, PersistenceError
from tonemap.models.context_models import ListeningContext
from tonemap.models.listening_models import AudioFeatures, ContextSignature, DayOfWeek, TimeOfDay
from tonemap.models.playlist_models import (
    GeneratedPlaylist,
    GenerationType,
    PlaylistContextSnapshot,
    PlaylistFeedback,
    PlaylistFilters,
    PlaylistGenerationOptions,
    PlaylistTemplate,
    UserPreferences,
)
from tonemap.selection.diversity_optimizer import DiversityOptimizer
from tonemap.selection.scoring.track_scorer import TrackScorer
from tonemap.selection.track_selector import TrackSelector
from tonemap.services.context_detector import ContextDetector
from tonemap.services.pattern_learner import PatternLearner
from tonemap.services.playlist_assembler import PlaylistAssembler, compute_playlist_stats


@pytest.fixture
def learner(event_store, clock):
    return PatternLearner(event_store, clock=clock)


@pytest.fixture
def platform_client():
    client = AsyncMock()
    client.create_playlist.return_value = "platform-1"
    client.get_audio_features.return_value = {}
    return client


@pytest.fixture
def discovery_source(make_track):
    source = AsyncMock()
    source.discover_tracks.return_value = [
        make_track(track_id=f"new-{i}", artist_name=f"New Artist {i}") for i in range(20)
    ]
    return source


@pytest.fixture
def assembler(event_store, learner, clock, platform_client, discovery_source):
    selector = TrackSelector(event_store, TrackScorer(clock=clock), DiversityOptimizer(clock=clock))
    return PlaylistAssembler(
        event_store,
        learner,
        selector,
        ContextDetector(event_store, clock=clock),
        discovery_blender=DiscoveryBlender(discovery_source),
        platform_client=platform_client,
        clock=clock
    )


@pytest_asyncio.fixture
async def analysed(event_store, learner, morning_events, user_id):
    event_store.add_events(morning_events)
    await learner.analyze_patterns(user_id)
    return event_store


def _playlist(user_id, tracks):
    return GeneratedPlaylist(
        user_id=user_id,
        name="Preview",
        track_ids=[t.track_id for t in tracks],
        tracks=tracks,
        total_tracks=len(tracks),
        context_snapshot=PlaylistContextSnapshot(generation_type=GenerationType.CUSTOM)
    )


class TestGenerateFromTemplate:
    @pytest.mark.asyncio
    @pytest.mark.usefixtures("analysed")
    async def test_morning_energy_uses_morning_pattern(self, assembler, event_store, user_id):
        playlist = await assembler.generate_from_template(user_id, PlaylistTemplate.MORNING_ENERGY)
        morning = await event_store.get_pattern(user_id, ContextSignature(time_of_day=TimeOfDay.MORNING))

        assert playlist.name == "Morning Energy"
        assert playlist.total_tracks == 25
        assert len(set(playlist.track_ids)) == 25
        assert playlist.context_snapshot.template is PlaylistTemplate.MORNING_ENERGY
        assert playlist.context_snapshot.generation_type is GenerationType.AUTO
        assert playlist.context_snapshot.matched_pattern_id == morning.pattern_id
        assert not playlist.context_snapshot.is_context_based

    @pytest.mark.asyncio
    async def test_no_history_returns_none(self, assembler, user_id):
        assert await assembler.generate_from_template(user_id, PlaylistTemplate.FOCUS_FLOW) is None

    @pytest.mark.asyncio
    async def test_without_patterns_falls_back_to_filters(self, assembler, event_store, morning_events, user_id):
        event_store.add_events(morning_events)

        playlist = await assembler.generate_from_template(
            user_id, PlaylistTemplate.MORNING_ENERGY, PlaylistGenerationOptions(track_limit=10)
        )

        assert playlist.total_tracks == 10
        assert playlist.context_snapshot.matched_pattern_id is None

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("analysed")
    async def test_preferences_set_default_length(self, assembler, event_store, user_id):
        await event_store.set_user_preferences(user_id, UserPreferences(default_track_limit=5))

        playlist = await assembler.generate_from_template(user_id, PlaylistTemplate.MORNING_ENERGY)

        assert playlist.total_tracks == 5

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("analysed")
    async def test_right_now_records_context(self, assembler, user_id, now):
        context = ListeningContext(timestamp=now, time_of_day=TimeOfDay.MORNING, day_of_week=DayOfWeek.WEDNESDAY)

        playlist = await assembler.generate_from_template(
            user_id, PlaylistTemplate.RIGHT_NOW, context=context, changes=["Good morning"]
        )

        snapshot = playlist.context_snapshot
        assert snapshot.is_context_based
        assert snapshot.context["time_of_day"] == "morning"
        assert snapshot.changes == ["Good morning"]
        assert snapshot.matched_pattern_id is not None

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("analysed")
    async def test_weekend_vibes_blends_discoveries(self, assembler, user_id):
        playlist = await assembler.generate_from_template(
            user_id, PlaylistTemplate.WEEKEND_VIBES, PlaylistGenerationOptions(track_limit=10)
        )

        assert playlist.total_tracks == 10
        assert sum(1 for t in playlist.tracks if t.is_discovered) == 3

    @pytest.mark.asyncio
    async def test_requires_user(self, assembler):
        with pytest.raises(NotAuthenticatedError):
            await assembler.generate_from_template("", PlaylistTemplate.WORKOUT)


class TestGenerateCustom:
    @pytest.mark.asyncio
    async def test_short_history_is_filled_with_discoveries(self, assembler, event_store, make_event, user_id, now):
        event_store.add_events([
            make_event(played_at=now - timedelta(days=i + 1), track_id=f"old-{i}") for i in range(5)
        ])

        playlist = await assembler.generate_custom(
            user_id, PlaylistFilters(), PlaylistGenerationOptions(track_limit=10)
        )

        assert playlist.total_tracks == 10
        assert sum(1 for t in playlist.tracks if t.is_discovered) == 5
        assert playlist.context_snapshot.generation_type is GenerationType.CUSTOM

    @pytest.mark.asyncio
    async def test_unrequested_discovery_keeps_all_history(self, assembler, event_store, make_event, user_id, now):
        event_store.add_events([
            make_event(played_at=now - timedelta(days=i + 1), track_id=f"old-{i}") for i in range(9)
        ])

        playlist = await assembler.generate_custom(
            user_id, PlaylistFilters(), PlaylistGenerationOptions(track_limit=10)
        )

        history = {t.track_id for t in playlist.tracks if not t.is_discovered}
        assert history == {f"old-{i}" for i in range(9)}
        assert sum(1 for t in playlist.tracks if t.is_discovered) == 1

    @pytest.mark.asyncio
    @pytest.mark.usefixtures("analysed")
    async def test_requested_discovery_takes_at_least_thirty_percent(self, assembler, user_id):
        playlist = await assembler.generate_custom(
            user_id,
            PlaylistFilters(energy_range=(0.5, 1.0)),
            PlaylistGenerationOptions(track_limit=10, include_discovery=True)
        )

        assert sum(1 for t in playlist.tracks if t.is_discovered) == 3

    @pytest.mark.asyncio
    async def test_no_history_returns_none(self, assembler, user_id):
        assert await assembler.generate_custom(user_id, PlaylistFilters()) is None


class TestPreview:
    def test_stats(self, make_track):
        tracks = [
            make_track(energy=0.9, valence=0.8, genres=["house"], duration_ms=200000),
            make_track(energy=0.2, valence=0.1, genres=["house", "ambient"], duration_ms=100000),
            make_track(features=AudioFeatures(), genres=[], is_discovered=True),
        ]

        stats = compute_playlist_stats(tracks)

        assert stats.track_count == 3
        assert stats.total_duration_ms == 300000
        assert stats.avg_energy == pytest.approx(0.55)
        assert stats.top_genres == ["house", "ambient"]
        assert stats.energy_progression == [0.9, 0.2, 0.5]
        assert stats.mood_distribution == {"happy": 1, "sad": 1, "energetic": 1, "calm": 1}
        assert stats.discovery_count == 1

    @pytest.mark.asyncio
    async def test_platform_features_fill_gaps(self, assembler, platform_client, make_track, user_id):
        bare = make_track(track_id="bare", features=AudioFeatures())
        platform_client.get_audio_features.return_value = {
            "bare": AudioFeatures(energy=0.3, valence=0.2, tempo=90.0)
        }

        stats = await assembler.preview_playlist(_playlist(user_id, [bare, make_track(energy=0.9)]))

        assert stats.avg_energy == pytest.approx(0.6)
        platform_client.get_audio_features.assert_awaited_once_with(["bare"])

    @pytest.mark.asyncio
    async def test_platform_failure_still_previews(self, assembler, platform_client, make_track, user_id):
        platform_client.get_audio_features.side_effect = ExternalLookupError("platform", "down")

        stats = await assembler.preview_playlist(_playlist(user_id, [make_track(features=AudioFeatures())]))

        assert stats.avg_energy is None


class TestSaveAndFeedback:
    @pytest.mark.asyncio
    async def test_save_pushes_to_platform(self, assembler, platform_client, event_store, make_track, user_id, now):
        playlist = _playlist(user_id, [make_track(track_id="a"), make_track(track_id="b")])
        playlist = playlist.model_copy(update={"name": "Morning Energy", "created_at": now})

        saved = await assembler.save_playlist(user_id, playlist, push_to_platform=True)

        platform_client.create_playlist.assert_awaited_once_with("Morning Energy - Mar 6", playlist.description)
        platform_client.add_tracks.assert_awaited_once_with("platform-1", ["a", "b"])
        assert saved.platform_playlist_id == "platform-1"
        assert (await event_store.get_playlist(user_id, playlist.playlist_id)).platform_playlist_id == "platform-1"

    @pytest.mark.asyncio
    async def test_platform_failure_still_saves(self, assembler, platform_client, event_store, make_track, user_id):
        platform_client.create_playlist.side_effect = ExternalLookupError("platform", "unauthorised")
        playlist = _playlist(user_id, [make_track()])

        saved = await assembler.save_playlist(user_id, playlist, push_to_platform=True, name="Mine")

        assert saved.platform_playlist_id is None
        assert saved.name == "Mine"
        assert await event_store.get_playlist(user_id, playlist.playlist_id) is not None

    @pytest.mark.asyncio
    async def test_store_failure_is_logged_and_raised(self, assembler, event_store, make_track, user_id, monkeypatch):
        monkeypatch.setattr(event_store, "save_playlist", AsyncMock(side_effect=PersistenceError("disk full")))
        playlist = _playlist(user_id, [make_track()])

        with patch("tonemap.services.playlist_assembler.log_error") as log_error:
            with pytest.raises(PersistenceError):
                await assembler.save_playlist(user_id, playlist)

        error, context = log_error.call_args.args
        assert isinstance(error, PersistenceError)
        assert context == {"operation": "save_playlist", "user_id": user_id, "playlist_id": playlist.playlist_id}

    @pytest.mark.asyncio
    async def test_feedback(self, assembler, make_track, user_id):
        playlist = await assembler.save_playlist(user_id, _playlist(user_id, [make_track()]))

        updated = await assembler.submit_feedback(user_id, playlist.playlist_id, PlaylistFeedback(rating=5))

        assert updated.user_rating == 5
        assert await assembler.submit_feedback(user_id, "unknown", PlaylistFeedback(rating=1)) is None


class TestRegenerate:
    @pytest.mark.asyncio
    @pytest.mark.usefixtures("analysed")
    async def test_regenerate_reuses_settings(self, assembler, user_id):
        original = await assembler.generate_from_template(
            user_id, PlaylistTemplate.EVENING_WINDDOWN, PlaylistGenerationOptions(track_limit=8)
        )
        await assembler.save_playlist(user_id, original)

        fresh = await assembler.regenerate_playlist(user_id, original.playlist_id)

        assert fresh.playlist_id != original.playlist_id
        assert fresh.context_snapshot.template is PlaylistTemplate.EVENING_WINDDOWN
        assert fresh.context_snapshot.options["track_limit"] == 8
        assert fresh.total_tracks == 8

    @pytest.mark.asyncio
    async def test_unknown_playlist(self, assembler, user_id):
        assert await assembler.regenerate_playlist(user_id, "missing") is None
