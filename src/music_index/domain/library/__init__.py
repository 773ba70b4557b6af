"""Library domain - audio file indexing and cover art.

This domain handles:
- Content classification and tag reading
- Cover art resolution and the media-art cache
- Reconciling the index with the library directories
- Aggregate queries over the index
"""

# Models
from .models import ScanResult, TrackInfo

# Classification and metadata
from .mime import (
    MimeType,
    classify_file,
    is_audio_extension,
    is_supported_mime_type,
    mime_type_from_string,
)
from .metadata import extract_media_art_data, read_track_info

# Cover art
from .media_art import (
    DirectoryMediaArtCache,
    EmbeddedMediaArtStore,
    copy_media_art,
    resolve_media_art,
)

# Reconciliation
from .scanner import ScanContext, process_file, scan_library

# Aggregates
from .stats import (
    albums_count,
    artists_count,
    random_media_art,
    random_media_art_for_album,
    random_media_art_for_artist,
    random_media_art_for_genre,
    tracks_count,
    tracks_duration,
)

__all__ = [
    # Models
    "ScanResult",
    "TrackInfo",
    # Classification and metadata
    "MimeType",
    "classify_file",
    "is_audio_extension",
    "is_supported_mime_type",
    "mime_type_from_string",
    "extract_media_art_data",
    "read_track_info",
    # Cover art
    "DirectoryMediaArtCache",
    "EmbeddedMediaArtStore",
    "copy_media_art",
    "resolve_media_art",
    # Reconciliation
    "ScanContext",
    "process_file",
    "scan_library",
    # Aggregates
    "albums_count",
    "artists_count",
    "random_media_art",
    "random_media_art_for_album",
    "random_media_art_for_artist",
    "random_media_art_for_genre",
    "tracks_count",
    "tracks_duration",
]
