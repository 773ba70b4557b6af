"""
SQLite index store for Music Index

One row per file in ``tracks``; artists, albums and genres live in ordered
join tables. The ``track_rows`` view rebuilds the flat one-row-per
(artist, album, genre) shape that the aggregate queries are defined over.

Mutating helpers never commit: the caller owns the transaction.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence

from loguru import logger

from .config import get_data_dir
from .exceptions import SchemaError, StoreOpenError, StoreReadError

# SQLITE_MAX_VARIABLE_NUMBER on older SQLite builds
MAX_PARAMETERS_COUNT = 999

TRACK_COLUMNS = (
    "id",
    "file_path",
    "modification_time",
    "title",
    "year",
    "track_number",
    "disc_number",
    "duration",
    "media_art",
)

# join table -> (value column, collation)
MULTI_VALUE_TABLES = {
    "track_artists": ("artist", "NOCASE"),
    "track_albums": ("album", "NOCASE"),
    "track_genres": ("genre", "BINARY"),
}

TRACK_ROWS_VIEW = "track_rows"


class IndexedTrack(NamedTuple):
    """The slice of a stored track that reconciliation needs."""

    id: int
    file_path: str
    modification_time: int
    media_art: str


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    return get_data_dir() / "library.sqlite"


def open_database(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open (creating if needed) the index database.

    Raises:
        StoreOpenError: If the data directory or database file can't be opened
    """
    db_path = Path(db_path) if db_path else get_database_path()
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(db_path, timeout=30.0)
    except (OSError, sqlite3.Error) as e:
        raise StoreOpenError(db_path, f"Failed to open database at {db_path}: {e}") from e

    conn.row_factory = sqlite3.Row
    try:
        # WAL lets interactive reads proceed while a scan holds its write transaction
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
    except sqlite3.Error as e:
        conn.close()
        raise StoreOpenError(db_path, f"Failed to configure database at {db_path}: {e}") from e
    return conn


@contextmanager
def get_db_connection(db_path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    """Get a short-lived connection with proper cleanup.

    Interactive reads use this so they never share the scan's connection.
    """
    conn = open_database(db_path)
    try:
        yield conn
    finally:
        conn.close()


def _table_columns(conn: sqlite3.Connection, table_name: str) -> set[str]:
    cursor = conn.execute(f"PRAGMA table_info({table_name})")
    return {row["name"] for row in cursor.fetchall()}


def _view_exists(conn: sqlite3.Connection, view_name: str) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'view' AND name = ?", (view_name,)
    )
    return cursor.fetchone() is not None


def _schema_matches(conn: sqlite3.Connection) -> bool:
    if _table_columns(conn, "tracks") != set(TRACK_COLUMNS):
        return False
    for table_name, (value_column, _) in MULTI_VALUE_TABLES.items():
        if _table_columns(conn, table_name) != {"track_id", "position", value_column}:
            return False
    return _view_exists(conn, TRACK_ROWS_VIEW)


def _drop_schema(conn: sqlite3.Connection) -> None:
    conn.execute(f"DROP VIEW IF EXISTS {TRACK_ROWS_VIEW}")
    for table_name in MULTI_VALUE_TABLES:
        conn.execute(f"DROP TABLE IF EXISTS {table_name}")
    conn.execute("DROP TABLE IF EXISTS tracks")


def _create_schema(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE tracks (
            id INTEGER PRIMARY KEY,
            file_path TEXT NOT NULL UNIQUE,
            modification_time INTEGER NOT NULL,
            title TEXT COLLATE NOCASE,
            year INTEGER,
            track_number INTEGER,
            disc_number TEXT,
            duration INTEGER,
            media_art TEXT NOT NULL DEFAULT ''
        )
    """)

    for table_name, (value_column, collation) in MULTI_VALUE_TABLES.items():
        conn.execute(f"""
            CREATE TABLE {table_name} (
                track_id INTEGER NOT NULL,
                position INTEGER NOT NULL,
                {value_column} TEXT NOT NULL COLLATE {collation},
                PRIMARY KEY (track_id, position),
                FOREIGN KEY (track_id) REFERENCES tracks (id) ON DELETE CASCADE
            )
        """)
        conn.execute(
            f"CREATE INDEX idx_{table_name}_{value_column} ON {table_name} ({value_column})"
        )

    conn.execute("CREATE INDEX idx_tracks_media_art ON tracks (media_art)")

    # Empty lists contribute a single '' so every track yields at least one row
    conn.execute(f"""
        CREATE VIEW {TRACK_ROWS_VIEW} AS
        SELECT
            t.id AS id,
            t.file_path AS file_path,
            t.modification_time AS modification_time,
            t.title AS title,
            COALESCE(a.artist, '') COLLATE NOCASE AS artist,
            COALESCE(al.album, '') COLLATE NOCASE AS album,
            t.year AS year,
            t.track_number AS track_number,
            t.disc_number AS disc_number,
            COALESCE(g.genre, '') AS genre,
            t.duration AS duration,
            t.media_art AS media_art
        FROM tracks t
        LEFT JOIN track_artists a ON a.track_id = t.id
        LEFT JOIN track_albums al ON al.track_id = t.id
        LEFT JOIN track_genres g ON g.track_id = t.id
    """)


def ensure_schema(conn: sqlite3.Connection) -> bool:
    """Make sure the tracks schema has exactly the expected shape.

    Any mismatch (missing table, extra or missing column, missing view) drops
    everything and recreates it; previously indexed data is gone afterwards.

    Returns:
        True if the schema was (re)created, False if it was already current

    Raises:
        SchemaError: If dropping or creating the schema fails
    """
    try:
        if _schema_matches(conn):
            return False
    except sqlite3.Error as e:
        raise SchemaError(f"Failed to inspect tracks schema: {e}") from e

    logger.info("Tracks schema missing or outdated, recreating")
    try:
        _drop_schema(conn)
    except sqlite3.Error as e:
        raise SchemaError(f"Failed to remove tracks schema: {e}") from e

    try:
        _create_schema(conn)
        conn.commit()
    except sqlite3.Error as e:
        raise SchemaError(f"Failed to create tracks schema: {e}") from e

    return True


def init_database(db_path: Optional[Path] = None) -> bool:
    """Open the database and ensure its schema.

    Returns:
        True if the tracks schema was just (re)created
    """
    with get_db_connection(db_path) as conn:
        return ensure_schema(conn)


def begin_transaction(conn: sqlite3.Connection) -> None:
    """Open the scan transaction; every following mutation joins it."""
    if not conn.in_transaction:
        conn.execute("BEGIN")


def load_all_tracks(conn: sqlite3.Connection) -> List[IndexedTrack]:
    """Load every stored track ordered by id.

    Raises:
        StoreReadError: If the tracks can't be read
    """
    try:
        cursor = conn.execute("""
            SELECT id, file_path, modification_time, media_art
            FROM tracks
            ORDER BY id
        """)
        return [
            IndexedTrack(
                id=row["id"],
                file_path=row["file_path"],
                modification_time=row["modification_time"],
                media_art=row["media_art"] or "",
            )
            for row in cursor.fetchall()
        ]
    except sqlite3.Error as e:
        raise StoreReadError(f"Failed to get files from database: {e}") from e


def _chunks(values: Sequence[Any], size: int = MAX_PARAMETERS_COUNT) -> Iterator[Sequence[Any]]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


def _placeholders(count: int) -> str:
    return ",".join("?" * count)


@contextmanager
def _savepoint(conn: sqlite3.Connection, name: str = "track") -> Iterator[None]:
    """Undo everything done inside the block if a statement fails.

    Joins the caller's transaction, opening one if there is none.
    """
    begin_transaction(conn)
    conn.execute(f"SAVEPOINT {name}")
    try:
        yield
    except sqlite3.Error:
        conn.execute(f"ROLLBACK TO {name}")
        conn.execute(f"RELEASE {name}")
        raise
    conn.execute(f"RELEASE {name}")


def _write_track(
    conn: sqlite3.Connection,
    track_id: int,
    file_path: str,
    modification_time: int,
    info: Any,
    media_art: str,
) -> None:
    conn.execute(
        """
        INSERT INTO tracks (id, file_path, modification_time, title, year,
                            track_number, disc_number, duration, media_art)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
    """,
        (
            track_id,
            file_path,
            modification_time,
            info.title or "",
            info.year or 0,
            info.track_number or 0,
            info.disc_number or "",
            info.duration or 0,
            media_art or "",
        ),
    )
    for table_name, values in (
        ("track_artists", info.artists),
        ("track_albums", info.albums),
        ("track_genres", info.genres),
    ):
        value_column = MULTI_VALUE_TABLES[table_name][0]
        conn.executemany(
            f"INSERT INTO {table_name} (track_id, position, {value_column}) VALUES (?, ?, ?)",
            [(track_id, position, value) for position, value in enumerate(values)],
        )


def insert_track(
    conn: sqlite3.Connection,
    track_id: int,
    file_path: str,
    modification_time: int,
    info: Any,
    media_art: str,
) -> bool:
    """Insert one track and its ordered artists/albums/genres.

    Either all of the track's rows are written or none are.

    Args:
        conn: Connection holding the scan transaction
        track_id: Id to store the track under
        file_path: Absolute file path
        modification_time: File mtime in epoch milliseconds
        info: TrackInfo from the tag reader
        media_art: Resolved artwork path ('' for none)

    Returns:
        True on success, False if a statement failed (logged)
    """
    try:
        with _savepoint(conn):
            _write_track(conn, track_id, file_path, modification_time, info, media_art)
    except sqlite3.Error as e:
        logger.warning(f"Failed to insert track in the database: {file_path}: {e}")
        return False
    return True


def replace_track(
    conn: sqlite3.Connection,
    track_id: int,
    file_path: str,
    modification_time: int,
    info: Any,
    media_art: str,
) -> bool:
    """Replace a stored track's content, keeping its id.

    On failure the previously stored track is left as it was.
    """
    try:
        with _savepoint(conn):
            conn.execute("DELETE FROM tracks WHERE id = ?", (track_id,))
            _write_track(conn, track_id, file_path, modification_time, info, media_art)
    except sqlite3.Error as e:
        logger.warning(f"Failed to replace track in the database: {file_path}: {e}")
        return False
    return True


def delete_tracks(conn: sqlite3.Connection, track_ids: Iterable[int]) -> bool:
    """Delete tracks by id (join rows cascade)."""
    track_ids = list(track_ids)
    ok = True
    for chunk in _chunks(track_ids):
        try:
            conn.execute(
                f"DELETE FROM tracks WHERE id IN ({_placeholders(len(chunk))})", chunk
            )
        except sqlite3.Error as e:
            logger.warning(f"Failed to remove files from database: {e}")
            ok = False
    return ok


def update_media_art(conn: sqlite3.Connection, track_id: int, media_art: str) -> bool:
    """Point one track at a new artwork path."""
    try:
        conn.execute(
            "UPDATE tracks SET media_art = ? WHERE id = ?", (media_art or "", track_id)
        )
    except sqlite3.Error as e:
        logger.warning(f"Failed to update media art for track {track_id}: {e}")
        return False
    return True


def nullify_media_art(conn: sqlite3.Connection, media_art_paths: Iterable[str]) -> bool:
    """Clear every reference to the given artwork paths."""
    media_art_paths = list(media_art_paths)
    ok = True
    for chunk in _chunks(media_art_paths):
        try:
            conn.execute(
                f"UPDATE tracks SET media_art = '' WHERE media_art IN ({_placeholders(len(chunk))})",
                chunk,
            )
        except sqlite3.Error as e:
            logger.warning(f"Failed to remove media art from database: {e}")
            ok = False
    return ok


def get_distinct_media_art(conn: sqlite3.Connection) -> set[str]:
    """Get every non-empty artwork path currently referenced."""
    try:
        cursor = conn.execute(
            "SELECT DISTINCT media_art FROM tracks WHERE media_art != ''"
        )
        return {row["media_art"] for row in cursor.fetchall()}
    except sqlite3.Error as e:
        logger.warning(f"Failed to get media art from database: {e}")
        return set()


def set_media_art_for_album(
    conn: sqlite3.Connection, artist: str, album: str, media_art: str
) -> int:
    """Assign artwork to every track of (artist, album).

    Returns:
        Number of tracks updated

    Raises:
        sqlite3.Error: If the update fails
    """
    cursor = conn.execute(
        f"""
        UPDATE tracks SET media_art = ?
        WHERE id IN (
            SELECT id FROM {TRACK_ROWS_VIEW} WHERE artist = ? AND album = ?
        )
    """,
        (media_art, artist, album),
    )
    return cursor.rowcount


def clear_tracks(conn: sqlite3.Connection) -> None:
    """Delete every indexed track.

    Raises:
        sqlite3.Error: If the delete fails
    """
    for table_name in MULTI_VALUE_TABLES:
        conn.execute(f"DELETE FROM {table_name}")
    conn.execute("DELETE FROM tracks")


def get_track_rows(
    conn: sqlite3.Connection, file_path: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Read the flattened artist x album x genre rows.

    Args:
        conn: Open connection
        file_path: Only rows of this file when given

    Returns:
        Rows ordered by id
    """
    query = f"SELECT * FROM {TRACK_ROWS_VIEW}"
    params: tuple = ()
    if file_path is not None:
        query += " WHERE file_path = ?"
        params = (file_path,)
    query += " ORDER BY id"
    cursor = conn.execute(query, params)
    return [dict(row) for row in cursor.fetchall()]


def get_track_values(conn: sqlite3.Connection, track_id: int) -> Dict[str, List[str]]:
    """Get the ordered artists, albums and genres of one track."""
    values: Dict[str, List[str]] = {}
    for table_name, (value_column, _) in MULTI_VALUE_TABLES.items():
        cursor = conn.execute(
            f"SELECT {value_column} FROM {table_name} WHERE track_id = ? ORDER BY position",
            (track_id,),
        )
        values[value_column + "s"] = [row[value_column] for row in cursor.fetchall()]
    return values
