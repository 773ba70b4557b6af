"""
Cover art resolution and the media-art cache.

A track's artwork comes from an image next to it in its directory
(cover.jpg, folder.png, ...), from the bytes embedded in its tags, or is
assigned by the user. Embedded art is written once per distinct content
under ``<md5>-embedded.<ext>`` so identical covers share one file.
"""

import hashlib
import io
import os
import re
import shutil
import uuid
from pathlib import Path
from typing import Optional

from loguru import logger
from PIL import Image, UnidentifiedImageError

DIRECTORY_MEDIA_ART_PATTERN = re.compile(
    r"^(albumart.*|cover|folder|front)\.(jpeg|jpg|png)$", re.IGNORECASE
)

EMBEDDED_MEDIA_ART_MARKER = "-embedded"

# Pillow format name -> file suffix
IMAGE_FORMAT_SUFFIXES = {
    "JPEG": "jpg",
    "PNG": "png",
    "GIF": "gif",
    "BMP": "bmp",
    "WEBP": "webp",
    "TIFF": "tiff",
}


def image_suffix(data: bytes) -> str:
    """Sniff the image type of ``data``.

    Returns:
        Suffix without dot, or '' if the bytes aren't a known image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError):
        return ""
    if not image_format:
        return ""
    return IMAGE_FORMAT_SUFFIXES.get(image_format, image_format.lower())


def is_cached_media_art(media_art: str, media_art_dir: str) -> bool:
    """Check if an artwork path points into the media-art cache."""
    return bool(media_art) and media_art.startswith(media_art_dir.rstrip(os.sep) + os.sep)


def is_embedded_media_art(media_art: str, media_art_dir: str) -> bool:
    """Check if an artwork path is a cached copy of embedded art."""
    return is_cached_media_art(media_art, media_art_dir) and (
        EMBEDDED_MEDIA_ART_MARKER in os.path.basename(media_art)
    )


def is_manual_media_art(media_art: str, media_art_dir: str) -> bool:
    """Check if an artwork path was assigned by the user."""
    return is_cached_media_art(media_art, media_art_dir) and not is_embedded_media_art(
        media_art, media_art_dir
    )


class DirectoryMediaArtCache:
    """Per-scan memo of the cover image found in each directory.

    Directories without a matching image are remembered as ''.
    """

    def __init__(self) -> None:
        self._directories: dict[str, str] = {}

    def find(self, directory: str) -> str:
        found = self._directories.get(directory)
        if found is not None:
            return found

        media_art = ""
        try:
            with os.scandir(directory) as entries:
                names = sorted(
                    (entry.name for entry in entries if DIRECTORY_MEDIA_ART_PATTERN.match(entry.name)),
                    key=str.casefold,
                )
        except OSError as e:
            logger.debug(f"Can't list {directory} for media art: {e}")
            names = []

        for name in names:
            path = os.path.join(directory, name)
            if os.path.isfile(path) and os.access(path, os.R_OK):
                media_art = path
                break

        self._directories[directory] = media_art
        return media_art


class EmbeddedMediaArtStore:
    """Content-addressed files for embedded artwork.

    Knows every ``*-embedded.*`` file already on disk, so an image is
    written at most once no matter how many tracks embed it.
    """

    def __init__(self, media_art_dir: str) -> None:
        self.media_art_dir = str(media_art_dir)
        self._files: dict[str, str] = {}
        self._load_existing()

    def _load_existing(self) -> None:
        try:
            paths = list(Path(self.media_art_dir).glob(f"*{EMBEDDED_MEDIA_ART_MARKER}.*"))
        except OSError as e:
            logger.warning(f"Failed to list media art directory {self.media_art_dir}: {e}")
            return
        for path in paths:
            if path.is_file():
                digest = path.name.split(EMBEDDED_MEDIA_ART_MARKER, 1)[0]
                self._files[digest] = os.path.join(self.media_art_dir, path.name)

    def __len__(self) -> int:
        return len(self._files)

    def save(self, data: bytes) -> str:
        """Persist embedded art, reusing an identical earlier copy.

        Returns:
            Path of the cached file, or '' if the bytes aren't an image or
            the file couldn't be written
        """
        digest = hashlib.md5(data).hexdigest()
        found = self._files.get(digest)
        if found is not None:
            return found

        suffix = image_suffix(data)
        if not suffix:
            return ""

        file_path = os.path.join(
            self.media_art_dir, f"{digest}{EMBEDDED_MEDIA_ART_MARKER}.{suffix}"
        )
        try:
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.warning(f"Failed to write embedded media art {file_path}: {e}")
            return ""

        self._files[digest] = file_path
        return file_path


def resolve_media_art(
    embedded_data: bytes,
    file_path: str,
    directory_cache: DirectoryMediaArtCache,
    embedded_store: EmbeddedMediaArtStore,
    prefer_directory_media_art: bool,
) -> str:
    """Pick the artwork for one track.

    Args:
        embedded_data: Cover bytes from the file's tags (may be empty)
        file_path: The audio file
        directory_cache: Scan-scoped directory image lookup
        embedded_store: Scan-scoped embedded art cache
        prefer_directory_media_art: Directory image wins over embedded art

    Returns:
        Artwork path, or '' for none
    """
    directory = os.path.dirname(file_path)
    if prefer_directory_media_art:
        media_art = directory_cache.find(directory)
        if not media_art and embedded_data:
            media_art = embedded_store.save(embedded_data)
        return media_art

    if not embedded_data:
        return directory_cache.find(directory)
    return embedded_store.save(embedded_data)


def copy_media_art(source: str, media_art_dir: str) -> Optional[str]:
    """Copy a user-chosen image into the cache under a fresh name.

    Returns:
        Path of the copy, or None if it couldn't be made
    """
    try:
        os.makedirs(media_art_dir, exist_ok=True)
    except OSError as e:
        logger.warning(f"Failed to create media art directory {media_art_dir}: {e}")
        return None

    suffix = Path(source).suffix
    new_file_path = os.path.join(str(media_art_dir), f"{uuid.uuid4()}{suffix}")
    try:
        shutil.copyfile(source, new_file_path)
    except OSError as e:
        logger.warning(f"Failed to copy file from {source} to {new_file_path}: {e}")
        return None
    return new_file_path
