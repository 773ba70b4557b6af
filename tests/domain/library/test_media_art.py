"""Tests for cover art resolution and the media-art cache."""

import hashlib
import os
from pathlib import Path

import pytest

from conftest import image_bytes
from music_index.domain.library.media_art import (
    DirectoryMediaArtCache,
    EmbeddedMediaArtStore,
    copy_media_art,
    image_suffix,
    is_embedded_media_art,
    is_manual_media_art,
    resolve_media_art,
)


@pytest.fixture
def art_dir(tmp_path):
    path = tmp_path / "media-art"
    path.mkdir()
    return path


class TestImageSuffix:
    @pytest.mark.parametrize(
        "image_format,suffix",
        [("PNG", "png"), ("JPEG", "jpg"), ("GIF", "gif"), ("BMP", "bmp")],
    )
    def test_known_formats(self, image_format, suffix):
        assert image_suffix(image_bytes(image_format=image_format)) == suffix

    def test_garbage_is_not_an_image(self):
        assert image_suffix(b"definitely not an image") == ""

    def test_empty_bytes(self):
        assert image_suffix(b"") == ""


class TestEmbeddedMediaArtStore:
    def test_file_named_by_content_hash(self, art_dir):
        data = image_bytes()
        store = EmbeddedMediaArtStore(str(art_dir))

        path = store.save(data)

        assert path == os.path.join(str(art_dir), f"{hashlib.md5(data).hexdigest()}-embedded.png")
        assert Path(path).read_bytes() == data

    def test_same_bytes_written_once(self, art_dir):
        data = image_bytes()
        store = EmbeddedMediaArtStore(str(art_dir))

        first = store.save(data)
        os.utime(first, (1, 1))
        second = store.save(data)

        assert first == second
        assert os.stat(first).st_mtime == 1
        assert len(list(art_dir.iterdir())) == 1

    def test_different_bytes_different_files(self, art_dir):
        store = EmbeddedMediaArtStore(str(art_dir))

        assert store.save(image_bytes((1, 2, 3))) != store.save(image_bytes((4, 5, 6)))
        assert len(store) == 2

    def test_seeded_from_existing_files(self, art_dir):
        data = image_bytes()
        existing = art_dir / f"{hashlib.md5(data).hexdigest()}-embedded.jpg"
        existing.write_bytes(b"whatever was written before")

        store = EmbeddedMediaArtStore(str(art_dir))

        assert len(store) == 1
        # Known digest wins, even though the bytes would sniff as PNG now
        assert store.save(data) == str(existing)

    def test_unknown_content_not_written(self, art_dir):
        store = EmbeddedMediaArtStore(str(art_dir))

        assert store.save(b"\x00\x01garbage") == ""
        assert list(art_dir.iterdir()) == []

    def test_write_failure_yields_no_art(self, tmp_path):
        store = EmbeddedMediaArtStore(str(tmp_path / "missing-dir"))

        assert store.save(image_bytes()) == ""


class TestDirectoryMediaArtCache:
    @pytest.mark.parametrize(
        "name",
        ["cover.jpg", "Folder.PNG", "front.jpeg", "AlbumArt_{ABC}_Large.jpg", "albumart.png"],
    )
    def test_matching_names(self, tmp_path, name):
        (tmp_path / name).write_bytes(b"x")

        assert DirectoryMediaArtCache().find(str(tmp_path)) == str(tmp_path / name)

    @pytest.mark.parametrize("name", ["cover.gif", "back.jpg", "my-cover.jpg", "cover.jpg.bak"])
    def test_non_matching_names(self, tmp_path, name):
        (tmp_path / name).write_bytes(b"x")

        assert DirectoryMediaArtCache().find(str(tmp_path)) == ""

    def test_first_match_in_case_insensitive_order(self, tmp_path):
        for name in ("front.jpg", "Cover.png", "folder.jpg"):
            (tmp_path / name).write_bytes(b"x")

        assert DirectoryMediaArtCache().find(str(tmp_path)) == str(tmp_path / "Cover.png")

    def test_directories_are_ignored(self, tmp_path):
        (tmp_path / "cover.jpg").mkdir()
        (tmp_path / "folder.jpg").write_bytes(b"x")

        assert DirectoryMediaArtCache().find(str(tmp_path)) == str(tmp_path / "folder.jpg")

    def test_negative_result_is_cached(self, tmp_path):
        cache = DirectoryMediaArtCache()
        assert cache.find(str(tmp_path)) == ""

        (tmp_path / "cover.jpg").write_bytes(b"x")

        assert cache.find(str(tmp_path)) == ""

    def test_missing_directory(self, tmp_path):
        assert DirectoryMediaArtCache().find(str(tmp_path / "nope")) == ""


class TestResolveMediaArt:
    @pytest.fixture
    def album(self, tmp_path):
        path = tmp_path / "Album"
        path.mkdir()
        return path

    def resolve(self, art_dir, album, data, prefer_directory, with_cover=True):
        if with_cover:
            (album / "cover.jpg").write_bytes(b"x")
        return resolve_media_art(
            data,
            str(album / "track.mp3"),
            DirectoryMediaArtCache(),
            EmbeddedMediaArtStore(str(art_dir)),
            prefer_directory,
        )

    def test_embedded_preferred_by_default(self, art_dir, album):
        result = self.resolve(art_dir, album, image_bytes(), prefer_directory=False)

        assert result.startswith(str(art_dir))
        assert "-embedded." in result

    def test_directory_preferred(self, art_dir, album):
        result = self.resolve(art_dir, album, image_bytes(), prefer_directory=True)

        assert result == str(album / "cover.jpg")

    def test_directory_used_without_embedded(self, art_dir, album):
        assert self.resolve(art_dir, album, b"", prefer_directory=False) == str(album / "cover.jpg")

    def test_embedded_fallback_when_directory_preferred(self, art_dir, album):
        result = self.resolve(art_dir, album, image_bytes(), prefer_directory=True, with_cover=False)

        assert "-embedded." in result

    def test_nothing_found(self, art_dir, album):
        assert self.resolve(art_dir, album, b"", prefer_directory=True, with_cover=False) == ""


class TestMediaArtKinds:
    def test_embedded(self, art_dir):
        path = str(art_dir / "abc-embedded.png")
        assert is_embedded_media_art(path, str(art_dir))
        assert not is_manual_media_art(path, str(art_dir))

    def test_manual(self, art_dir):
        path = str(art_dir / "0b5c3c1e-uuid.png")
        assert is_manual_media_art(path, str(art_dir))
        assert not is_embedded_media_art(path, str(art_dir))

    def test_directory_image_is_neither(self, art_dir, tmp_path):
        path = str(tmp_path / "Album" / "cover-embedded.jpg")
        assert not is_embedded_media_art(path, str(art_dir))
        assert not is_manual_media_art(path, str(art_dir))

    def test_sibling_directory_with_same_prefix(self, art_dir):
        path = str(art_dir) + "-old/abc.png"
        assert not is_manual_media_art(path, str(art_dir))

    def test_empty(self, art_dir):
        assert not is_manual_media_art("", str(art_dir))
        assert not is_embedded_media_art("", str(art_dir))


class TestCopyMediaArt:
    def test_copy_gets_fresh_name(self, tmp_path):
        source = tmp_path / "picked.PNG"
        source.write_bytes(image_bytes())
        art_dir = tmp_path / "new" / "media-art"

        first = copy_media_art(str(source), str(art_dir))
        second = copy_media_art(str(source), str(art_dir))

        assert first != second
        assert Path(first).parent == art_dir
        assert first.endswith(".PNG")
        assert "-embedded" not in first
        assert Path(first).read_bytes() == source.read_bytes()

    def test_missing_source(self, tmp_path):
        assert copy_media_art(str(tmp_path / "nope.png"), str(tmp_path / "art")) is None
