"""
Tests for the music-index command line.
"""

import io
from unittest.mock import patch

import pytest
from rich.console import Console

import music_index.core.output as output_module
from conftest import fake_classifier, image_bytes, make_config, write_audio
from music_index.cli import (
    EXIT_CANCELLED,
    EXIT_FAILURE,
    EXIT_OK,
    format_duration,
    run,
)
from music_index.core.config import get_config_path
from music_index.domain.library.models import TrackInfo
from music_index.library_service import LibraryService


@pytest.fixture
def console_output(monkeypatch):
    buffer = io.StringIO()
    monkeypatch.setattr(output_module, "_console", Console(file=buffer, width=200))
    return buffer


@pytest.fixture
def service(library_dir, tmp_path, tag_reader):
    library_service = LibraryService(
        make_config(library_dir),
        db_path=tmp_path / "cli" / "library.sqlite",
        media_art_dir=tmp_path / "cli" / "media-art",
        classifier=fake_classifier,
        tag_reader=tag_reader,
    )
    yield library_service
    library_service.shutdown()


class TestFormatDuration:
    def test_minutes(self):
        assert format_duration(125) == "2:05"

    def test_hours(self):
        assert format_duration(3 * 3600 + 61) == "3:01:01"

    def test_negative(self):
        assert format_duration(-5) == "0:00"


class TestInitConfig:
    def test_creates_then_keeps(self, console_output):
        assert run(["init-config"]) == EXIT_OK
        assert get_config_path().exists()
        assert "Created default configuration" in console_output.getvalue()

        assert run(["init-config"]) == EXIT_OK
        assert "already exists" in console_output.getvalue()


class TestScan:
    def test_scan_then_stats(self, service, library_dir, tag_reader, console_output):
        song = write_audio(library_dir / "a.mp3")
        tag_reader.set(song, TrackInfo(title="A", artists=("X",), duration=3700))

        assert run(["scan"], service=service) == EXIT_OK
        assert "Added" in console_output.getvalue()

        assert run(["stats"], service=service) == EXIT_OK
        output = console_output.getvalue()
        assert "Tracks" in output
        assert "1:01:40" in output

    def test_art_preference_flag(self, service, console_output):
        assert run(["scan", "--prefer-directory-art"], service=service) == EXIT_OK
        assert service.config.library.prefer_directory_media_art is True

        assert run(["scan", "--prefer-embedded-art"], service=service) == EXIT_OK
        assert service.config.library.prefer_directory_media_art is False

    def test_cancelled_scan(self, library_dir, tmp_path, tag_reader, console_output):
        write_audio(library_dir / "a.mp3")
        write_audio(library_dir / "b.mp3")
        holder = {}

        def cancelling_reader(path, mime_type=""):
            holder["service"].cancel_update()
            return tag_reader(path, mime_type)

        holder["service"] = LibraryService(
            make_config(library_dir),
            db_path=tmp_path / "cancel" / "library.sqlite",
            media_art_dir=tmp_path / "cancel" / "media-art",
            classifier=fake_classifier,
            tag_reader=cancelling_reader,
        )
        try:
            assert run(["scan"], service=holder["service"]) == EXIT_CANCELLED
            assert holder["service"].tracks_count() == 1
        finally:
            holder["service"].shutdown()

    def test_unusable_database(self, library_dir, tmp_path, tag_reader, console_output):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        broken = LibraryService(
            make_config(library_dir),
            db_path=blocker / "library.sqlite",
            classifier=fake_classifier,
            tag_reader=tag_reader,
        )
        try:
            assert run(["scan"], service=broken) == EXIT_FAILURE
            assert "Failed to open the library database" in console_output.getvalue()
        finally:
            broken.shutdown()


class TestArtCommands:
    def test_random_art_empty_library(self, service, console_output):
        assert run(["random-art"], service=service) == EXIT_FAILURE
        assert "No artwork found" in console_output.getvalue()

    def test_album_needs_artist(self, service, console_output):
        with pytest.raises(SystemExit) as excinfo:
            run(["random-art", "--album", "Record"], service=service)
        assert excinfo.value.code == 2

    def test_set_art_then_random_art(self, service, library_dir, tag_reader, tmp_path, console_output):
        song = write_audio(library_dir / "a.mp3")
        tag_reader.set(song, TrackInfo(title="A", artists=("Band",), albums=("Record",)))
        image = tmp_path / "picked.png"
        image.write_bytes(image_bytes())
        assert run(["scan"], service=service) == EXIT_OK

        assert run(["set-art", "Band", "Record", str(image)], service=service) == EXIT_OK

        assert run(["random-art", "--artist", "Band", "--album", "Record"], service=service) == EXIT_OK
        assert str(service.media_art_dir) in console_output.getvalue()

    def test_set_art_missing_image(self, service, tmp_path, console_output):
        assert run(["set-art", "Band", "Record", str(tmp_path / "nope.png")], service=service) == EXIT_FAILURE
        assert "No such image" in console_output.getvalue()


class TestReset:
    def test_reset_with_yes(self, service, library_dir, console_output):
        write_audio(library_dir / "a.mp3")
        run(["scan"], service=service)

        assert run(["reset", "--yes"], service=service) == EXIT_OK
        assert service.tracks_count() == 0

    def test_reset_declined(self, service, console_output):
        with patch("music_index.cli.Confirm.ask", return_value=False):
            assert run(["reset"], service=service) == EXIT_FAILURE


def test_no_command(console_output):
    assert run([]) == EXIT_FAILURE
