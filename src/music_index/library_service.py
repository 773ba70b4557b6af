"""
Process-wide library service.

Owns the background scan worker and guarantees that at most one scan runs
at a time. Also exposes the read-only queries and the user mutations, and
notifies subscribers when the index or the artwork changes.
"""

import atexit
import shutil
import sqlite3
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from loguru import logger

from music_index.core.config import Config, get_media_art_dir, load_config
from music_index.core.database import (
    clear_tracks,
    get_database_path,
    get_db_connection,
    init_database,
    set_media_art_for_album,
)
from music_index.core.exceptions import IndexStoreError
from music_index.domain.library import stats
from music_index.domain.library.media_art import copy_media_art
from music_index.domain.library.metadata import read_track_info
from music_index.domain.library.mime import classify_file
from music_index.domain.library.models import ScanResult
from music_index.domain.library.scanner import Classifier, TagReader, scan_library
from music_index.events import (
    DATABASE_CHANGED,
    MEDIA_ART_CHANGED,
    TABLE_CREATED,
    UPDATING_CHANGED,
    EventEmitter,
)


def _mark_worker_thread() -> None:
    # Scan worker logs to file only, never to the user's console
    threading.current_thread().silent_logging = True


class LibraryService:
    """Handle to the index database, the artwork cache and the scan worker.

    Subscribe to ``events`` for updating_changed(bool), database_changed,
    media_art_changed and table_created.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        db_path: Optional[Path] = None,
        media_art_dir: Optional[Path] = None,
        classifier: Classifier = classify_file,
        tag_reader: TagReader = read_track_info,
    ):
        self.config = config if config is not None else load_config()
        self.db_path = Path(db_path) if db_path else get_database_path()
        self.media_art_dir = Path(media_art_dir) if media_art_dir else get_media_art_dir()
        self.classifier = classifier
        self.tag_reader = tag_reader

        self.events = EventEmitter()

        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="library-scan",
            initializer=_mark_worker_thread,
        )
        self._lock = threading.Lock()
        self._updating = False
        self._resetting = False
        self._closed = False
        self._cancel_event = threading.Event()
        self._idle = threading.Event()
        self._idle.set()

        self._database_initialized = False
        self._created_table = False
        self.last_result: Optional[ScanResult] = None
        self.last_error: Optional[BaseException] = None

    def _emit_database_changed(self) -> None:
        # Anything that changes the tracks may change the artwork too
        self.events.emit(DATABASE_CHANGED)
        self.events.emit(MEDIA_ART_CHANGED)

    @property
    def is_database_initialized(self) -> bool:
        return self._database_initialized

    @property
    def created_table(self) -> bool:
        """Whether init_database() had to (re)create the tracks schema."""
        return self._created_table

    @property
    def is_updating(self) -> bool:
        with self._lock:
            return self._updating

    def init_database(self) -> bool:
        """Open the database and make sure the schema is current.

        Returns:
            True if the database is usable
        """
        try:
            created = init_database(self.db_path)
        except IndexStoreError as e:
            logger.error(f"Failed to initialize database: {e}")
            self._database_initialized = False
            return False

        self._database_initialized = True
        self._created_table = created
        if created:
            self.events.emit(TABLE_CREATED)
        return True

    def update_database(self) -> Optional["Future[ScanResult]"]:
        """Start a background scan.

        The database is initialized first if nobody did it yet. A database
        that can't be opened still gets a scan, whose future then carries
        the error.

        Returns:
            Future of the scan, or None if a scan or a reset is running
        """
        if not self._database_initialized:
            self.init_database()

        with self._lock:
            if self._updating or self._resetting or self._closed:
                return None
            self._updating = True
            self._idle.clear()
            self._cancel_event = threading.Event()
            cancel_event = self._cancel_event

        self.events.emit(UPDATING_CHANGED, True)
        future = self._executor.submit(self._run_scan, cancel_event)
        future.add_done_callback(self._on_scan_done)
        return future

    def _run_scan(self, cancel_event: threading.Event) -> ScanResult:
        try:
            return scan_library(
                self.config,
                db_path=self.db_path,
                media_art_dir=self.media_art_dir,
                cancel_event=cancel_event,
                classifier=self.classifier,
                tag_reader=self.tag_reader,
            )
        except Exception:
            logger.exception("Library scan failed")
            raise

    def _on_scan_done(self, future: "Future[ScanResult]") -> None:
        error = future.exception()
        self.last_error = error
        self.last_result = None if error else future.result()

        if self.last_result is not None:
            self._database_initialized = True
            if self.last_result.created_table:
                self._created_table = True

        with self._lock:
            self._updating = False

        if self.last_result is not None and self.last_result.created_table:
            self.events.emit(TABLE_CREATED)
        self.events.emit(UPDATING_CHANGED, False)
        self._emit_database_changed()

        # A listener may already have started the next scan
        with self._lock:
            if not self._updating:
                self._idle.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no scan is running and its notifications went out.

        Returns:
            False if the timeout expired first
        """
        return self._idle.wait(timeout)

    def cancel_update(self) -> None:
        """Ask the running scan to stop; what it wrote so far is kept."""
        self._cancel_event.set()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.cancel_update()
        self._executor.shutdown(wait=wait)

    def reset_database(self) -> bool:
        """Forget every track and delete the artwork cache."""
        with self._lock:
            if self._updating or self._resetting:
                logger.warning("Can't reset database while updating")
                return False
            self._resetting = True

        try:
            try:
                with get_db_connection(self.db_path) as conn:
                    clear_tracks(conn)
                    conn.commit()
            except (IndexStoreError, sqlite3.Error) as e:
                logger.warning(f"Failed to reset database: {e}")
                return False

            try:
                shutil.rmtree(self.media_art_dir)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove media art directory: {e}")
        finally:
            with self._lock:
                self._resetting = False

        self._emit_database_changed()
        return True

    def set_media_art(self, artist: str, album: str, image_path: str) -> bool:
        """Assign a user-chosen image to every track of an album.

        The image is copied into the artwork cache, so later scans leave it
        alone.
        """
        media_art = copy_media_art(image_path, str(self.media_art_dir))
        if media_art is None:
            return False

        try:
            with get_db_connection(self.db_path) as conn:
                updated = set_media_art_for_album(conn, artist, album, media_art)
                conn.commit()
        except (IndexStoreError, sqlite3.Error) as e:
            logger.warning(f"Failed to set media art for {artist} - {album}: {e}")
            return False

        logger.info(f"Set media art for {updated} tracks of {artist} - {album}")
        self.events.emit(MEDIA_ART_CHANGED)
        return True

    def artists_count(self) -> int:
        if not self._database_initialized:
            return 0
        return stats.artists_count(self.db_path)

    def albums_count(self) -> int:
        if not self._database_initialized:
            return 0
        return stats.albums_count(self.db_path)

    def tracks_count(self) -> int:
        if not self._database_initialized:
            return 0
        return stats.tracks_count(self.db_path)

    def tracks_duration(self) -> int:
        if not self._database_initialized:
            return 0
        return stats.tracks_duration(self.db_path)

    def random_media_art(self) -> str:
        if not self._database_initialized:
            return ""
        return stats.random_media_art(self.db_path)

    def random_media_art_for_artist(self, artist: str) -> str:
        if not self._database_initialized:
            return ""
        return stats.random_media_art_for_artist(artist, self.db_path)

    def random_media_art_for_album(self, artist: str, album: str) -> str:
        if not self._database_initialized:
            return ""
        return stats.random_media_art_for_album(artist, album, self.db_path)

    def random_media_art_for_genre(self, genre: str) -> str:
        if not self._database_initialized:
            return ""
        return stats.random_media_art_for_genre(genre, self.db_path)


_service: Optional[LibraryService] = None
_service_lock = threading.Lock()


def get_library_service() -> LibraryService:
    """Get the shared LibraryService, creating and initializing it once."""
    global _service
    with _service_lock:
        if _service is None:
            _service = LibraryService()
            _service.init_database()
            atexit.register(_service.shutdown)
        return _service
