"""
Track metadata extraction.

Reads tags from audio files using Mutagen and normalises them into
TrackInfo, including the raw bytes of embedded cover art.
"""

import base64
import binascii
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError
from mutagen.apev2 import APEv2, APEBinaryValue, APETextValue
from mutagen.flac import Picture
from mutagen.id3 import ID3, TCON
from mutagen.mp4 import MP4Tags

from .models import TrackInfo

# ID3, MP4, Vorbis comment and APEv2 names, tried in order
TITLE_TAGS = ["TIT2", "\xa9nam", "TITLE", "title"]
ARTIST_TAGS = ["TPE1", "\xa9ART", "ARTIST", "artist"]
ALBUM_TAGS = ["TALB", "\xa9alb", "ALBUM", "album"]
GENRE_TAGS = ["TCON", "\xa9gen", "GENRE", "genre"]
YEAR_TAGS = ["TDRC", "TYER", "\xa9day", "DATE", "YEAR", "date", "year"]
TRACK_NUMBER_TAGS = ["TRCK", "trkn", "TRACKNUMBER", "TRACK", "tracknumber"]
DISC_NUMBER_TAGS = ["TPOS", "disk", "DISCNUMBER", "DISC", "discnumber"]

# ID3/FLAC picture type for the front cover
FRONT_COVER_PICTURE_TYPE = 3


def _as_strings(value: Any) -> list[str]:
    """Flatten one tag value into unique, non-empty strings."""
    if isinstance(value, TCON):
        items = value.genres
    elif hasattr(value, "text"):  # ID3 text frame
        items = value.text
    elif isinstance(value, APETextValue):
        items = list(value)
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]

    strings: list[str] = []
    for item in items:
        if isinstance(item, tuple):  # MP4 trkn/disk: (number, total)
            item = item[0]
        text = str(item).strip()
        if text and text not in strings:
            strings.append(text)
    return strings


def get_tag_values(tags: Any, tag_names: list[str]) -> list[str]:
    """Get all values of the first tag name present in ``tags``."""
    if tags is None:
        return []
    for tag_name in tag_names:
        try:
            value = tags.get(tag_name)
        except (KeyError, ValueError):
            # Vorbis comments reject non-ASCII keys such as MP4's \xa9nam
            continue
        if value:
            strings = _as_strings(value)
            if strings:
                return strings
    return []


def get_tag_value(tags: Any, tag_names: list[str]) -> Optional[str]:
    """Get the first value of the first tag name present in ``tags``."""
    values = get_tag_values(tags, tag_names)
    return values[0] if values else None


def _parse_number(value: Optional[str]) -> int:
    """Parse '3', '3/12' or '2004-05-01' style values, 0 if unparseable."""
    if not value:
        return 0
    head = value.split("/")[0].split("-")[0].strip()
    try:
        return max(int(head), 0)
    except ValueError:
        return 0


def _pick_picture_data(pictures: list[Any]) -> bytes:
    if not pictures:
        return b""
    for picture in pictures:
        if getattr(picture, "type", None) == FRONT_COVER_PICTURE_TYPE:
            return bytes(picture.data)
    return bytes(pictures[0].data)


def _vorbis_pictures(tags: Any) -> list[Picture]:
    pictures = []
    try:
        encoded_pictures = tags.get("metadata_block_picture") or []
    except (KeyError, ValueError):
        return pictures
    for encoded in encoded_pictures:
        try:
            pictures.append(Picture(base64.b64decode(encoded)))
        except (binascii.Error, MutagenError, ValueError):
            continue
    return pictures


def extract_media_art_data(audio: Any) -> bytes:
    """Get the embedded cover art bytes of a loaded Mutagen file.

    Prefers the front cover when the container stores typed pictures.

    Returns:
        Raw image bytes, or b"" when there is no embedded art
    """
    # FLAC keeps pictures outside the Vorbis comment block
    pictures = getattr(audio, "pictures", None)
    if pictures:
        return _pick_picture_data(pictures)

    tags = audio.tags
    if tags is None:
        return b""

    if isinstance(tags, ID3):
        return _pick_picture_data(tags.getall("APIC"))

    if isinstance(tags, MP4Tags):
        covers = tags.get("covr")
        return bytes(covers[0]) if covers else b""

    if isinstance(tags, APEv2):
        value = tags.get("Cover Art (Front)")
        if isinstance(value, APEBinaryValue):
            # "<file name>\0<image bytes>"
            _, _, data = value.value.partition(b"\x00")
            return data
        return b""

    return _pick_picture_data(_vorbis_pictures(tags))


def extract_metadata_from_filename(local_path: str) -> TrackInfo:
    """Basic info from the file name for containers Mutagen can't read."""
    title = Path(local_path).stem
    artists: tuple[str, ...] = ()

    # Try to parse "Artist - Title" format
    if " - " in title:
        artist, title = (part.strip() for part in title.split(" - ", 1))
        artists = (artist,) if artist else ()

    return TrackInfo(title=title, artists=artists)


def read_track_info(local_path: str, mime_type: str = "") -> Optional[TrackInfo]:
    """Read a file's tags into TrackInfo.

    Args:
        local_path: Audio file to read
        mime_type: Content type from the classifier (used for logging only;
            Mutagen probes the container itself)

    Returns:
        TrackInfo, or None if the file is damaged or unreadable
    """
    try:
        audio_file = MutagenFile(local_path)
    except (MutagenError, OSError) as e:
        logger.warning(f"Could not read metadata from {local_path} ({mime_type}): {e}")
        return None

    if audio_file is None:
        # Container Mutagen doesn't parse (e.g. Matroska), use filename
        return extract_metadata_from_filename(local_path)

    tags = audio_file.tags

    title = get_tag_value(tags, TITLE_TAGS) or Path(local_path).stem

    duration = 0
    if getattr(audio_file, "info", None) is not None:
        length = getattr(audio_file.info, "length", None) or 0
        duration = max(int(round(length)), 0)

    disc_number = _parse_number(get_tag_value(tags, DISC_NUMBER_TAGS))

    return TrackInfo(
        title=title,
        artists=tuple(get_tag_values(tags, ARTIST_TAGS)),
        albums=tuple(get_tag_values(tags, ALBUM_TAGS)),
        genres=tuple(get_tag_values(tags, GENRE_TAGS)),
        year=_parse_number(get_tag_value(tags, YEAR_TAGS)),
        track_number=_parse_number(get_tag_value(tags, TRACK_NUMBER_TAGS)),
        disc_number=str(disc_number) if disc_number else "",
        duration=duration,
        media_art_data=extract_media_art_data(audio_file),
    )
