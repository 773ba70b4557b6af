"""
Music library domain models.

Contains data structures for tag-reader output and scan bookkeeping.
"""

from dataclasses import dataclass
from typing import NamedTuple


class TrackInfo(NamedTuple):
    """Metadata read from one audio file.

    Multi-valued fields keep tag order with duplicates removed. An empty
    tuple means the tag is absent.
    """

    title: str = ""
    artists: tuple[str, ...] = ()
    albums: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()
    year: int = 0
    track_number: int = 0
    disc_number: str = ""
    duration: int = 0  # in seconds
    media_art_data: bytes = b""  # raw embedded cover bytes, empty if none


@dataclass
class ScanResult:
    """Outcome of one reconciliation pass."""

    added: int = 0
    updated: int = 0
    media_art_updated: int = 0
    removed: int = 0
    media_art_removed: int = 0
    skipped: int = 0
    cancelled: bool = False
    created_table: bool = False  # schema was missing or outdated and got recreated
    elapsed_ms: int = 0

    @property
    def changed(self) -> bool:
        """Whether the pass touched the index or the artwork cache."""
        return bool(
            self.added
            or self.updated
            or self.media_art_updated
            or self.removed
            or self.media_art_removed
        )
