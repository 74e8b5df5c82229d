"""
Tests for candidate building, filtering, blacklists and playlist ordering.
"""

from datetime import timedelta

import pytest

from tonemap.models.listening_models import AudioFeatures
from tonemap.models.playlist_models import EnergyArcShape, PlaylistFilters, UserPreferences
from tonemap.selection.filters import apply_blacklist, apply_filters, build_candidates, passes_filters
from tonemap.selection.genre_clusters import cluster_for
from tonemap.selection.ordering import order_for_smart_transitions, shape_energy_arc


class TestBuildCandidates:
    def test_deduplicates_and_aggregates_engagement(self, make_event, now):
        events = [
            make_event(track_id="a", played_at=now - timedelta(days=3), skipped=True),
            make_event(track_id="a", played_at=now - timedelta(days=1), completed=True),
            make_event(track_id="b", played_at=now - timedelta(hours=5)),
        ]

        candidates = build_candidates(events)

        assert [c.track_id for c in candidates] == ["b", "a"]
        track_a = candidates[1]
        assert track_a.play_count == 2
        assert track_a.skip_rate == pytest.approx(0.5)
        assert track_a.completion_rate == pytest.approx(0.5)
        assert track_a.last_played == now - timedelta(days=1)

    def test_missing_features_filled_from_older_plays(self, make_event, now):
        events = [
            make_event(track_id="a", played_at=now, features=AudioFeatures(energy=0.3)),
            make_event(track_id="a", played_at=now - timedelta(days=2), energy=0.9, valence=0.1, tempo=99.0),
        ]

        candidate = build_candidates(events)[0]

        assert candidate.features.energy == 0.3
        assert candidate.features.valence == 0.1
        assert candidate.features.tempo == 99.0


class TestFilters:
    def test_missing_feature_never_excludes(self, make_track):
        track = make_track(features=AudioFeatures(energy=0.9))
        assert passes_filters(track, PlaylistFilters(valence_range=(0.0, 0.1), tempo_range=(60, 70)))

    def test_range_bounds_are_inclusive(self, make_track):
        track = make_track(energy=0.5)
        assert passes_filters(track, PlaylistFilters(energy_range=(0.5, 0.5)))
        assert not passes_filters(track, PlaylistFilters(energy_range=(0.51, 1.0)))

    def test_genre_match_is_bidirectional_substring(self, make_track):
        track = make_track(genres=["indie rock"])
        assert passes_filters(track, PlaylistFilters(genres=["rock"]))
        assert passes_filters(track, PlaylistFilters(genres=["Indie Rock Revival"]))
        assert not passes_filters(track, PlaylistFilters(genres=["jazz"]))

    def test_exclusions_and_explicit(self, make_track):
        track = make_track(artist_name="The Cure", genres=["post-punk"], explicit=True)
        assert not passes_filters(track, PlaylistFilters(exclude_genres=["punk"]))
        assert not passes_filters(track, PlaylistFilters(exclude_artists=["cure"]))
        assert not passes_filters(track, PlaylistFilters(exclude_explicit=True))

    def test_popularity_without_value_passes(self, make_track):
        assert passes_filters(make_track(popularity=None), PlaylistFilters(min_popularity=80))
        assert not passes_filters(make_track(popularity=20), PlaylistFilters(min_popularity=80))

    def test_adding_filters_never_grows_the_result(self, make_track):
        tracks = [
            make_track(energy=e / 10, valence=(10 - e) / 10, tempo=80 + e * 10, genres=[g])
            for e in range(11)
            for g in ("indie rock", "house")
        ]
        loose = PlaylistFilters(energy_range=(0.2, 0.9))
        tighter = loose.merged_with(PlaylistFilters(tempo_range=(100, 150)))
        tightest = tighter.merged_with(PlaylistFilters(genres=["house"]))

        loose_ids = {t.track_id for t in apply_filters(tracks, loose)}
        tighter_ids = {t.track_id for t in apply_filters(tracks, tighter)}
        tightest_ids = {t.track_id for t in apply_filters(tracks, tightest)}

        assert tightest_ids <= tighter_ids <= loose_ids
        assert len(loose_ids) < len(tracks)

    def test_no_filters_keeps_everything(self, make_track):
        tracks = [make_track() for _ in range(3)]
        assert apply_filters(tracks, None) == tracks


class TestBlacklist:
    def test_tracks_artists_and_genres(self, make_track):
        keep = make_track(artist_name="Slowdive", genres=["shoegaze"])
        tracks = [
            make_track(track_id="blocked-id"),
            make_track(artist_name="Nickelback Tribute"),
            make_track(genres=["christmas pop"]),
            keep,
        ]
        preferences = UserPreferences(
            blacklisted_tracks=["blocked-id"],
            blacklisted_artists=["nickelback"],
            blacklisted_genres=["christmas"]
        )

        assert apply_blacklist(tracks, preferences) == [keep]


class TestGenreClusters:
    def test_cluster_assignment(self):
        assert cluster_for([]) == "unknown"
        assert cluster_for(["deep house"]) == "electronic"
        assert cluster_for(["gregorian chant"]) == "other"
        assert cluster_for(["indie rock"]) == "indie"


class TestOrdering:
    @pytest.fixture
    def tracks(self, make_track):
        return [make_track(track_id=f"e{e}", energy=e / 10) for e in (5, 1, 9, 3, 7)]

    def test_building_and_winding_down(self, tracks):
        building = [t.features.energy for t in shape_energy_arc(tracks, EnergyArcShape.BUILDING)]
        winding = [t.features.energy for t in shape_energy_arc(tracks, EnergyArcShape.WINDING_DOWN)]
        assert building == sorted(building)
        assert winding == sorted(winding, reverse=True)

    def test_peaking_rises_then_falls(self, tracks):
        energies = [t.features.energy for t in shape_energy_arc(tracks, EnergyArcShape.PEAKING)]
        assert energies == [0.1, 0.3, 0.9, 0.7, 0.5]

    def test_steady_keeps_order(self, tracks):
        assert shape_energy_arc(tracks, EnergyArcShape.STEADY) == tracks
        assert shape_energy_arc(tracks, None) == tracks

    def test_smart_transitions_walk_nearest_neighbour(self, make_track):
        start = make_track(track_id="start", features=AudioFeatures(tempo=100.0, key=0))
        far = make_track(track_id="far", features=AudioFeatures(tempo=170.0, key=6))
        near = make_track(track_id="near", features=AudioFeatures(tempo=104.0, key=1))

        ordered = order_for_smart_transitions([start, far, near])

        assert [t.track_id for t in ordered] == ["start", "near", "far"]
