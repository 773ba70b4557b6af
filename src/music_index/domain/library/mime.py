"""
Audio content classification.

Maps files to the MIME type names the index understands, either from the
file name alone or by probing the content with Mutagen.
"""

import mimetypes
from enum import Enum
from pathlib import Path

import mutagen
from mutagen import MutagenError
from mutagen.flac import FLAC
from mutagen.monkeysaudio import MonkeysAudio
from mutagen.mp3 import MP3
from mutagen.mp4 import MP4
from mutagen.oggflac import OggFLAC
from mutagen.oggopus import OggOpus
from mutagen.oggvorbis import OggVorbis
from mutagen.wave import WAVE
from mutagen.wavpack import WavPack

OCTET_STREAM_MIME_TYPE = "application/octet-stream"

FLAC_MIME_TYPE = "audio/flac"
MP4_MIME_TYPE = "audio/mp4"
MP4B_MIME_TYPE = "audio/x-m4b"
MPEG_MIME_TYPE = "audio/mpeg"
VORBIS_OGG_MIME_TYPE = "audio/x-vorbis+ogg"
FLAC_OGG_MIME_TYPE = "audio/x-flac+ogg"
OPUS_OGG_MIME_TYPE = "audio/x-opus+ogg"
APE_MIME_TYPE = "audio/x-ape"
MATROSKA_MIME_TYPE = "application/x-matroska"
WAV_MIME_TYPE = "audio/x-wav"
WAVPACK_MIME_TYPE = "audio/x-wavpack"


class MimeType(Enum):
    """Audio container types the tag reader knows how to handle."""

    FLAC = FLAC_MIME_TYPE
    MP4 = MP4_MIME_TYPE
    MP4B = MP4B_MIME_TYPE
    MPEG = MPEG_MIME_TYPE
    VORBIS_OGG = VORBIS_OGG_MIME_TYPE
    FLAC_OGG = FLAC_OGG_MIME_TYPE
    OPUS_OGG = OPUS_OGG_MIME_TYPE
    APE = APE_MIME_TYPE
    MATROSKA = MATROSKA_MIME_TYPE
    WAV = WAV_MIME_TYPE
    WAVPACK = WAVPACK_MIME_TYPE
    OTHER = ""


def mime_type_from_string(mime_type: str) -> MimeType:
    """Map a MIME type name to MimeType (OTHER if unsupported)."""
    try:
        return MimeType(mime_type)
    except ValueError:
        return MimeType.OTHER


# Suffixes worth probing (lower case, no dot)
AUDIO_EXTENSIONS = frozenset(
    {
        "flac",
        "aac",
        "m4a",
        "f4a",
        "m4b",
        "f4b",
        "mp3",
        "mpga",
        "oga",
        "ogg",
        "opus",
        "ape",
        "mka",
        "wav",
        "wv",
        "wvp",
    }
)

# Content types accepted into the index
SUPPORTED_MIME_TYPES = frozenset(m.value for m in MimeType if m is not MimeType.OTHER)

EXTENSION_MIME_TYPES = {
    "flac": FLAC_MIME_TYPE,
    "aac": "audio/aac",
    "m4a": MP4_MIME_TYPE,
    "f4a": MP4_MIME_TYPE,
    "m4b": MP4B_MIME_TYPE,
    "f4b": MP4B_MIME_TYPE,
    "mp3": MPEG_MIME_TYPE,
    "mpga": MPEG_MIME_TYPE,
    "oga": "audio/ogg",
    "ogg": "audio/ogg",
    "opus": OPUS_OGG_MIME_TYPE,
    "ape": APE_MIME_TYPE,
    "mka": "audio/x-matroska",
    "wav": WAV_MIME_TYPE,
    "wv": WAVPACK_MIME_TYPE,
    "wvp": WAVPACK_MIME_TYPE,
}

_MUTAGEN_MIME_TYPES = (
    (MP3, MPEG_MIME_TYPE),
    (FLAC, FLAC_MIME_TYPE),
    (MP4, MP4_MIME_TYPE),
    (OggVorbis, VORBIS_OGG_MIME_TYPE),
    (OggFLAC, FLAC_OGG_MIME_TYPE),
    (OggOpus, OPUS_OGG_MIME_TYPE),
    (MonkeysAudio, APE_MIME_TYPE),
    (WAVE, WAV_MIME_TYPE),
    (WavPack, WAVPACK_MIME_TYPE),
)

_EBML_MAGIC = b"\x1a\x45\xdf\xa3"
_MP4_AUDIOBOOK_BRANDS = (b"M4B ", b"F4B ")


def file_suffix(path: str) -> str:
    """Lower-cased suffix without the dot ('' if none)."""
    return Path(path).suffix[1:].lower()


def is_audio_extension(path: str) -> bool:
    """Check if the file name looks like a supported audio file."""
    return file_suffix(path) in AUDIO_EXTENSIONS


def is_supported_mime_type(mime_type: str) -> bool:
    """Check if a content type may be indexed."""
    return mime_type in SUPPORTED_MIME_TYPES


def _read_header(path: str, size: int = 12) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read(size)
    except OSError:
        return b""


def _classify_by_extension(path: str) -> str:
    suffix = file_suffix(path)
    if suffix in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or OCTET_STREAM_MIME_TYPE


def _classify_by_content(path: str) -> str:
    header = _read_header(path)
    if header.startswith(_EBML_MAGIC):
        return MATROSKA_MIME_TYPE

    try:
        audio = mutagen.File(path)
    except (MutagenError, OSError):
        return OCTET_STREAM_MIME_TYPE
    if audio is None:
        return OCTET_STREAM_MIME_TYPE

    for audio_class, mime_type in _MUTAGEN_MIME_TYPES:
        if isinstance(audio, audio_class):
            if mime_type == MP4_MIME_TYPE and header[8:12] in _MP4_AUDIOBOOK_BRANDS:
                return MP4B_MIME_TYPE
            return mime_type

    # Formats we don't index (AAC/ADTS, ASF, AIFF, ...) keep mutagen's own name
    mime = getattr(audio, "mime", None)
    return mime[0] if mime else OCTET_STREAM_MIME_TYPE


def classify_file(path: str, match_content: bool = True) -> str:
    """Get the MIME type of a file.

    Args:
        path: File to classify
        match_content: Probe the file content instead of trusting its name

    Returns:
        MIME type name; application/octet-stream when nothing matches
    """
    if match_content:
        return _classify_by_content(path)
    return _classify_by_extension(path)
