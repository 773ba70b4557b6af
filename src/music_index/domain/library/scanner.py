"""
Library reconciliation.

Walks the configured library roots, compares what is on disk with the
index and applies the smallest set of inserts, updates and deletes, all in
one transaction. Cover art is resolved along the way and the media-art
cache is swept of files nothing references anymore.
"""

import os
import sqlite3
import stat
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from music_index.core.config import Config, get_media_art_dir
from music_index.core.database import (
    begin_transaction,
    delete_tracks,
    ensure_schema,
    get_distinct_media_art,
    insert_track,
    load_all_tracks,
    nullify_media_art,
    open_database,
    replace_track,
    update_media_art,
)

from .filters import NoMediaCache, is_blacklisted, is_in_library, prepare_directories
from .media_art import (
    DirectoryMediaArtCache,
    EmbeddedMediaArtStore,
    is_embedded_media_art,
    is_manual_media_art,
    resolve_media_art,
)
from .metadata import read_track_info
from .mime import classify_file, is_audio_extension, is_supported_mime_type
from .models import ScanResult, TrackInfo

Classifier = Callable[[str], str]
TagReader = Callable[[str, str], Optional[TrackInfo]]


@dataclass
class ScanContext:
    """Everything one scan knows about the index and the filesystem.

    Created when a scan starts and dropped when it ends, so nothing leaks
    from one scan into the next.
    """

    media_art_dir: str
    library_directories: list[str]
    blacklisted_directories: list[str]
    prefer_directory_media_art: bool
    embedded_media_art: EmbeddedMediaArtStore
    classifier: Classifier = classify_file
    tag_reader: TagReader = read_track_info
    no_media: NoMediaCache = field(default_factory=NoMediaCache)
    directory_media_art: DirectoryMediaArtCache = field(default_factory=DirectoryMediaArtCache)

    # Index state loaded before the walk
    files: dict[str, int] = field(default_factory=dict)
    modification_times: dict[int, int] = field(default_factory=dict)
    media_art: dict[int, str] = field(default_factory=dict)
    media_art_exists: dict[str, bool] = field(default_factory=dict)
    last_id: int = -1

    ids_to_delete: list[int] = field(default_factory=list)
    visited: set[str] = field(default_factory=set)
    result: ScanResult = field(default_factory=ScanResult)

    def check_media_art(self, media_art: str) -> bool:
        exists = self.media_art_exists.get(media_art)
        if exists is None:
            exists = os.path.exists(media_art)
            self.media_art_exists[media_art] = exists
        return exists

    @property
    def deleted_media_art(self) -> list[str]:
        return [path for path, exists in self.media_art_exists.items() if not exists]

    def next_id(self) -> int:
        self.last_id += 1
        return self.last_id

    def resolve(self, media_art_data: bytes, file_path: str) -> str:
        return resolve_media_art(
            media_art_data,
            file_path,
            self.directory_media_art,
            self.embedded_media_art,
            self.prefer_directory_media_art,
        )


def modification_time_ms(st: os.stat_result) -> int:
    """File mtime in whole epoch milliseconds."""
    return st.st_mtime_ns // 1_000_000


def _is_readable_file(path: str) -> Optional[os.stat_result]:
    """Stat ``path``, returning None unless it's a readable regular file."""
    try:
        st = os.stat(path)
    except OSError:
        return None
    if not stat.S_ISREG(st.st_mode) or not os.access(path, os.R_OK):
        return None
    return st


def _should_remove(ctx: ScanContext, file_path: str) -> bool:
    if _is_readable_file(file_path) is None:
        return True
    if not is_in_library(file_path, ctx.library_directories):
        return True
    if is_blacklisted(file_path, ctx.blacklisted_directories):
        return True
    return ctx.no_media.is_no_media_directory(os.path.dirname(file_path))


def load_index(ctx: ScanContext, conn: sqlite3.Connection) -> None:
    """Load stored tracks into ``ctx``, marking stale ones for deletion.

    Raises:
        StoreReadError: If the tracks can't be read
    """
    for track in load_all_tracks(conn):
        ctx.last_id = track.id

        if _should_remove(ctx, track.file_path):
            ctx.ids_to_delete.append(track.id)
            continue

        ctx.files[track.file_path] = track.id
        ctx.modification_times[track.id] = track.modification_time

        # Art whose file is gone stays out of the map, the walk re-resolves it
        if not track.media_art or ctx.check_media_art(track.media_art):
            ctx.media_art[track.id] = track.media_art


def _add_file(
    ctx: ScanContext, conn: sqlite3.Connection, file_path: str, st: os.stat_result
) -> None:
    if ctx.no_media.is_no_media_directory(os.path.dirname(file_path)) or is_blacklisted(
        file_path, ctx.blacklisted_directories
    ):
        ctx.result.skipped += 1
        return

    if not is_audio_extension(file_path):
        ctx.result.skipped += 1
        return

    mime_type = ctx.classifier(file_path)
    if not is_supported_mime_type(mime_type):
        logger.debug(f"Skipping {file_path}: unsupported content type {mime_type}")
        ctx.result.skipped += 1
        return

    info = ctx.tag_reader(file_path, mime_type)
    if info is None:
        ctx.result.skipped += 1
        return

    media_art = ctx.resolve(info.media_art_data, file_path)
    if insert_track(conn, ctx.next_id(), file_path, modification_time_ms(st), info, media_art):
        ctx.result.added += 1


def _refresh_media_art(
    ctx: ScanContext, conn: sqlite3.Connection, track_id: int, file_path: str
) -> None:
    deleted = track_id not in ctx.media_art
    media_art = ctx.media_art.get(track_id, "")

    if is_manual_media_art(media_art, ctx.media_art_dir):
        return

    embedded = is_embedded_media_art(media_art, ctx.media_art_dir)
    if embedded and not ctx.prefer_directory_media_art:
        return

    # Embedded bytes only matter if the stored art vanished or is a directory image
    media_art_data = b""
    if deleted or (media_art and not embedded):
        info = ctx.tag_reader(file_path, ctx.classifier(file_path))
        if info is not None:
            media_art_data = info.media_art_data

    new_media_art = ctx.resolve(media_art_data, file_path)

    # Embedded art is never replaced by nothing
    if embedded and not new_media_art:
        return
    if new_media_art != media_art:
        if update_media_art(conn, track_id, new_media_art):
            ctx.result.media_art_updated += 1


def _update_changed_file(
    ctx: ScanContext,
    conn: sqlite3.Connection,
    track_id: int,
    file_path: str,
    st: os.stat_result,
) -> None:
    mime_type = ctx.classifier(file_path)
    info = ctx.tag_reader(file_path, mime_type) if is_supported_mime_type(mime_type) else None
    if info is None:
        logger.debug(f"{file_path} is no longer a supported audio file")
        ctx.ids_to_delete.append(track_id)
        return

    media_art = ctx.resolve(info.media_art_data, file_path)
    if replace_track(conn, track_id, file_path, modification_time_ms(st), info, media_art):
        ctx.result.updated += 1


def process_file(ctx: ScanContext, conn: sqlite3.Connection, file_path: str) -> None:
    """Bring one file on disk in line with the index."""
    if file_path in ctx.visited:
        return
    ctx.visited.add(file_path)

    st = _is_readable_file(file_path)
    if st is None:
        return

    track_id = ctx.files.get(file_path)
    if track_id is None:
        _add_file(ctx, conn, file_path, st)
    elif modification_time_ms(st) == ctx.modification_times.get(track_id):
        _refresh_media_art(ctx, conn, track_id, file_path)
    else:
        _update_changed_file(ctx, conn, track_id, file_path, st)


def _walk_library(
    ctx: ScanContext, conn: sqlite3.Connection, cancel_event: threading.Event
) -> bool:
    """Visit every file under the library roots.

    Returns:
        False if the walk was cancelled
    """
    visited_directories: set[str] = set()

    for root in ctx.library_directories:
        for dirpath, dirnames, filenames in os.walk(
            root.rstrip(os.sep) or os.sep, followlinks=True
        ):
            if cancel_event.is_set():
                return False

            # Symlinks can lead back into an already walked tree
            real_path = os.path.realpath(dirpath)
            if real_path in visited_directories:
                dirnames[:] = []
                continue
            visited_directories.add(real_path)
            dirnames.sort()

            for filename in sorted(filenames):
                if cancel_event.is_set():
                    return False
                file_path = os.path.join(dirpath, filename)
                try:
                    process_file(ctx, conn, file_path)
                except Exception as e:
                    logger.opt(exception=e).warning(f"Failed to process {file_path}")

    return True


def sweep_media_art(conn: sqlite3.Connection, media_art_dir: str) -> int:
    """Delete cached artwork files no track references.

    Returns:
        Number of files removed
    """
    referenced = get_distinct_media_art(conn)
    removed = 0
    try:
        entries = list(Path(media_art_dir).iterdir())
    except OSError as e:
        logger.warning(f"Failed to list media art directory {media_art_dir}: {e}")
        return 0

    for entry in entries:
        file_path = os.path.join(media_art_dir, entry.name)
        if not entry.is_file() or file_path in referenced:
            continue
        try:
            entry.unlink()
            removed += 1
        except OSError as e:
            logger.warning(f"Failed to remove file: {file_path}: {e}")
    return removed


def _finish(ctx: ScanContext, conn: sqlite3.Connection) -> None:
    if ctx.ids_to_delete:
        logger.debug(f"Removing {len(ctx.ids_to_delete)} tracks from database")
        if delete_tracks(conn, ctx.ids_to_delete):
            ctx.result.removed = len(ctx.ids_to_delete)

    # A vanished embedded file may have been written again during the walk
    deleted_media_art = [path for path in ctx.deleted_media_art if not os.path.exists(path)]
    if deleted_media_art:
        nullify_media_art(conn, deleted_media_art)

    ctx.result.media_art_removed = sweep_media_art(conn, ctx.media_art_dir)


def scan_library(
    config: Config,
    db_path: Optional[Path] = None,
    media_art_dir: Optional[Path] = None,
    cancel_event: Optional[threading.Event] = None,
    classifier: Classifier = classify_file,
    tag_reader: TagReader = read_track_info,
) -> ScanResult:
    """Reconcile the index with the library directories.

    Args:
        config: Configuration (library roots, blacklist, art preference)
        db_path: Database file (default: the data directory's library.sqlite)
        media_art_dir: Artwork cache (default: the cache directory's media-art)
        cancel_event: Set to stop the scan; work done so far is committed
        classifier: Content type detection for candidate files
        tag_reader: Metadata reader for supported files

    Returns:
        ScanResult with per-kind counts

    Raises:
        StoreOpenError: If the database can't be opened
        SchemaError: If the tracks schema can't be created
        StoreReadError: If the stored tracks can't be loaded
    """
    started = time.perf_counter()
    cancel_event = cancel_event or threading.Event()
    media_art_dir = str(media_art_dir or get_media_art_dir())
    logger.info("Start scanning files")

    conn = open_database(db_path)
    try:
        created_table = ensure_schema(conn)
        begin_transaction(conn)

        try:
            os.makedirs(media_art_dir, exist_ok=True)
        except OSError as e:
            logger.warning(f"Failed to create media art directory: {media_art_dir}: {e}")

        ctx = ScanContext(
            media_art_dir=media_art_dir,
            library_directories=prepare_directories(config.library.library_paths),
            blacklisted_directories=prepare_directories(config.library.blacklisted_paths),
            prefer_directory_media_art=config.library.prefer_directory_media_art,
            embedded_media_art=EmbeddedMediaArtStore(media_art_dir),
            classifier=classifier,
            tag_reader=tag_reader,
        )
        ctx.result.created_table = created_table
        logger.debug(f"{len(ctx.embedded_media_art)} embedded artwork files already cached")

        load_index(ctx, conn)

        if _walk_library(ctx, conn, cancel_event):
            _finish(ctx, conn)
        else:
            logger.warning("Scan cancelled, stop updating")
            ctx.result.cancelled = True

        conn.commit()
    finally:
        conn.close()

    result = ctx.result
    result.elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(
        f"End scanning files in {result.elapsed_ms} ms: "
        f"{result.added} added, {result.updated} updated, {result.removed} removed, "
        f"{result.media_art_updated} artwork updated, {result.media_art_removed} artwork files removed"
    )
    return result
