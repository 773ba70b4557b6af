"""
Read-only aggregate queries over the index.

Every function opens its own short-lived connection, so results reflect
only committed data even while a scan is running.
"""

import sqlite3
from pathlib import Path
from typing import Optional

from loguru import logger

from music_index.core.database import TRACK_ROWS_VIEW, get_db_connection


def _scalar(query: str, params: tuple = (), db_path: Optional[Path] = None, default=0):
    try:
        with get_db_connection(db_path) as conn:
            row = conn.execute(query, params).fetchone()
    except sqlite3.Error as e:
        logger.warning(f"Failed to query database: {e}")
        return default
    if row is None or row[0] is None:
        return default
    return row[0]


def artists_count(db_path: Optional[Path] = None) -> int:
    """Number of distinct artists (tracks without one count as '')."""
    return _scalar(f"SELECT COUNT(DISTINCT artist) FROM {TRACK_ROWS_VIEW}", db_path=db_path)


def albums_count(db_path: Optional[Path] = None) -> int:
    """Number of distinct albums (tracks without one count as '')."""
    return _scalar(f"SELECT COUNT(DISTINCT album) FROM {TRACK_ROWS_VIEW}", db_path=db_path)


def tracks_count(db_path: Optional[Path] = None) -> int:
    return _scalar("SELECT COUNT(*) FROM tracks", db_path=db_path)


def tracks_duration(db_path: Optional[Path] = None) -> int:
    """Total duration of all tracks in seconds."""
    return _scalar("SELECT COALESCE(SUM(duration), 0) FROM tracks", db_path=db_path)


def _random_media_art(where: str = "", params: tuple = (), db_path: Optional[Path] = None) -> str:
    # Distinct art paths are equally likely however many tracks share one
    if where:
        query = f"""
            SELECT media_art FROM tracks
            WHERE media_art != '' AND id IN (
                SELECT id FROM {TRACK_ROWS_VIEW} WHERE {where}
            )
            GROUP BY media_art ORDER BY RANDOM() LIMIT 1
        """
    else:
        query = """
            SELECT media_art FROM tracks
            WHERE media_art != ''
            GROUP BY media_art ORDER BY RANDOM() LIMIT 1
        """
    return _scalar(query, params, db_path=db_path, default="")


def random_media_art(db_path: Optional[Path] = None) -> str:
    """Random artwork path from the whole library ('' if none)."""
    return _random_media_art(db_path=db_path)


def random_media_art_for_artist(artist: str, db_path: Optional[Path] = None) -> str:
    return _random_media_art("artist = ?", (artist,), db_path=db_path)


def random_media_art_for_album(artist: str, album: str, db_path: Optional[Path] = None) -> str:
    return _random_media_art("artist = ? AND album = ?", (artist, album), db_path=db_path)


def random_media_art_for_genre(genre: str, db_path: Optional[Path] = None) -> str:
    return _random_media_art("genre = ?", (genre,), db_path=db_path)
