"""Tests for aggregate queries over the index."""

import pytest

from music_index.core.database import get_db_connection, insert_track
from music_index.domain.library.models import TrackInfo
from music_index.domain.library.stats import (
    albums_count,
    artists_count,
    random_media_art,
    random_media_art_for_album,
    random_media_art_for_artist,
    random_media_art_for_genre,
    tracks_count,
    tracks_duration,
)


@pytest.fixture
def library(db_path):
    tracks = [
        (0, "/m/1.mp3", TrackInfo("One", ("A", "B"), ("Alpha",), ("Rock",), duration=100), "/art/alpha.png"),
        (1, "/m/2.mp3", TrackInfo("Two", ("a",), ("ALPHA",), ("rock",), duration=50), "/art/alpha.png"),
        (2, "/m/3.mp3", TrackInfo("Three", ("C",), ("Gamma",), ("Jazz",), duration=30), "/art/gamma.png"),
        (3, "/m/4.mp3", TrackInfo("Four", duration=20), ""),
    ]
    with get_db_connection(db_path) as conn:
        for track_id, path, info, media_art in tracks:
            assert insert_track(conn, track_id, path, 1000, info, media_art)
        conn.commit()
    return db_path


class TestCounts:
    def test_empty_library(self, db_path):
        assert tracks_count(db_path) == 0
        assert tracks_duration(db_path) == 0
        assert artists_count(db_path) == 0
        assert albums_count(db_path) == 0

    def test_tracks_counted_once(self, library):
        assert tracks_count(library) == 4
        assert tracks_duration(library) == 200

    def test_artists_ignore_case_and_include_unknown(self, library):
        # A, B, C and '' for the untagged track
        assert artists_count(library) == 4

    def test_albums(self, library):
        # Alpha, Gamma and ''
        assert albums_count(library) == 3


class TestRandomMediaArt:
    def test_any(self, library):
        assert random_media_art(library) in {"/art/alpha.png", "/art/gamma.png"}

    def test_for_artist(self, library):
        assert random_media_art_for_artist("c", library) == "/art/gamma.png"
        assert random_media_art_for_artist("B", library) == "/art/alpha.png"

    def test_for_album(self, library):
        assert random_media_art_for_album("A", "alpha", library) == "/art/alpha.png"
        assert random_media_art_for_album("C", "Alpha", library) == ""

    def test_genre_is_case_sensitive(self, library):
        assert random_media_art_for_genre("Jazz", library) == "/art/gamma.png"
        assert random_media_art_for_genre("jazz", library) == ""

    def test_only_tracks_without_art(self, library):
        assert random_media_art_for_artist("", library) == ""

    def test_distinct_paths_are_equally_likely(self, db_path):
        with get_db_connection(db_path) as conn:
            for i in range(50):
                insert_track(conn, i, f"/m/{i}.mp3", 1, TrackInfo(), "/art/common.png")
            insert_track(conn, 50, "/m/rare.mp3", 1, TrackInfo(), "/art/rare.png")
            conn.commit()

        seen = {random_media_art(db_path) for _ in range(200)}

        assert seen == {"/art/common.png", "/art/rare.png"}

    def test_empty_library(self, db_path):
        assert random_media_art(db_path) == ""
