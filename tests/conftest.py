"""Shared fixtures: isolated XDG directories, fake collaborators, images."""

import io
import os
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from music_index.core.config import Config, LibraryConfig
from music_index.core.database import init_database
from music_index.domain.library.models import TrackInfo


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point config, data and cache directories into tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    for name in (
        "MUSIC_INDEX_LIBRARY_PATHS",
        "MUSIC_INDEX_BLACKLISTED_PATHS",
        "MUSIC_INDEX_PREFER_DIRECTORY_ART",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def library_dir(tmp_path) -> Path:
    path = tmp_path / "Music"
    path.mkdir()
    return path


@pytest.fixture
def db_path(tmp_path) -> Path:
    path = tmp_path / "data" / "library.sqlite"
    init_database(path)
    return path


@pytest.fixture
def media_art_dir(tmp_path) -> Path:
    return tmp_path / "cache" / "media-art"


def make_config(library_dir: Path, blacklisted=(), prefer_directory_media_art=False) -> Config:
    config = Config()
    config.library = LibraryConfig(
        library_paths=[str(library_dir)],
        blacklisted_paths=[str(p) for p in blacklisted],
        prefer_directory_media_art=prefer_directory_media_art,
    )
    return config


def image_bytes(color=(200, 30, 30), image_format: str = "PNG") -> bytes:
    """Encode a tiny real image."""
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color).save(buffer, format=image_format)
    return buffer.getvalue()


def write_audio(path: Path, mtime_s: Optional[int] = None) -> Path:
    """Create a placeholder audio file, optionally with a fixed mtime."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"not really audio")
    if mtime_s is not None:
        os.utime(path, (mtime_s, mtime_s))
    return path


def fake_classifier(path: str) -> str:
    suffix = Path(path).suffix.lower()
    return {
        ".mp3": "audio/mpeg",
        ".flac": "audio/flac",
        ".ogg": "audio/x-vorbis+ogg",
    }.get(suffix, "application/octet-stream")


class FakeTagReader:
    """Tag reader returning registered TrackInfo per path.

    Unregistered files read as a 120 second track titled after the file.
    """

    def __init__(self):
        self.tracks: dict[str, Optional[TrackInfo]] = {}
        self.calls: list[str] = []

    def set(self, path: Path, info: Optional[TrackInfo]) -> None:
        self.tracks[str(path)] = info

    def __call__(self, path: str, mime_type: str = "") -> Optional[TrackInfo]:
        self.calls.append(path)
        if path in self.tracks:
            return self.tracks[path]
        return TrackInfo(title=Path(path).stem, duration=120)


@pytest.fixture
def tag_reader() -> FakeTagReader:
    return FakeTagReader()
