"""
Path filters applied while scanning: library roots, blacklisted
directories and .nomedia markers.
"""

import os
from pathlib import Path
from typing import Iterable

NO_MEDIA_MARKER = ".nomedia"


def prepare_directories(directories: Iterable[str]) -> list[str]:
    """Normalise configured directories into unique prefixes.

    Each entry is expanded and made absolute, and always ends with a path
    separator so '/music' never matches '/music-videos'. The configured
    order is kept.
    """
    prepared: list[str] = []
    for directory in directories:
        if not directory:
            continue
        path = os.path.abspath(os.path.expanduser(str(directory)))
        if not path.endswith(os.sep):
            path += os.sep
        if path not in prepared:
            prepared.append(path)
    return prepared


def has_prefix(path: str, directories: list[str]) -> bool:
    """Check if ``path`` lies below any of the prepared directories."""
    return any(path.startswith(directory) for directory in directories)


def is_in_library(path: str, library_directories: list[str]) -> bool:
    """Check if a file belongs to one of the library roots."""
    return has_prefix(path, library_directories)


def is_blacklisted(path: str, blacklisted_directories: list[str]) -> bool:
    """Check if a file lies in a blacklisted directory."""
    return has_prefix(path, blacklisted_directories)


class NoMediaCache:
    """Remembers which directories carry a .nomedia marker.

    Scan-scoped: each directory is checked on disk once per scan.
    """

    def __init__(self) -> None:
        self._directories: dict[str, bool] = {}

    def is_no_media_directory(self, directory: str) -> bool:
        found = self._directories.get(directory)
        if found is not None:
            return found
        no_media = Path(directory, NO_MEDIA_MARKER).is_file()
        self._directories[directory] = no_media
        return no_media
