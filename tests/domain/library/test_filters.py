"""Tests for library root, blacklist and .nomedia filtering."""

import os

from music_index.domain.library.filters import (
    NoMediaCache,
    is_blacklisted,
    is_in_library,
    prepare_directories,
)


class TestPrepareDirectories:
    def test_appends_separator(self):
        assert prepare_directories(["/music"]) == ["/music" + os.sep]

    def test_keeps_existing_separator(self):
        assert prepare_directories(["/music/"]) == ["/music/"]

    def test_removes_duplicates_keeping_order(self):
        assert prepare_directories(["/b", "/a", "/b/"]) == ["/b/", "/a/"]

    def test_expands_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert prepare_directories(["~/Music"]) == [str(tmp_path / "Music") + os.sep]

    def test_skips_empty_entries(self):
        assert prepare_directories(["", "/a"]) == ["/a/"]


class TestPrefixMatching:
    def test_file_inside_root(self):
        assert is_in_library("/music/album/a.mp3", prepare_directories(["/music"]))

    def test_sibling_with_same_prefix_is_outside(self):
        assert not is_in_library("/music-videos/a.mp3", prepare_directories(["/music"]))

    def test_blacklisted(self):
        blacklist = prepare_directories(["/music/podcasts"])
        assert is_blacklisted("/music/podcasts/show/1.mp3", blacklist)
        assert not is_blacklisted("/music/podcasts2/1.mp3", blacklist)

    def test_empty_blacklist(self):
        assert not is_blacklisted("/music/a.mp3", [])


class TestNoMediaCache:
    def test_detects_marker(self, tmp_path):
        (tmp_path / ".nomedia").touch()
        assert NoMediaCache().is_no_media_directory(str(tmp_path))

    def test_without_marker(self, tmp_path):
        assert not NoMediaCache().is_no_media_directory(str(tmp_path))

    def test_marker_must_be_a_file(self, tmp_path):
        (tmp_path / ".nomedia").mkdir()
        assert not NoMediaCache().is_no_media_directory(str(tmp_path))

    def test_result_is_remembered(self, tmp_path):
        cache = NoMediaCache()
        assert not cache.is_no_media_directory(str(tmp_path))

        (tmp_path / ".nomedia").touch()

        assert not cache.is_no_media_directory(str(tmp_path))
