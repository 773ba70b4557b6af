"""
Configuration management for Music Index
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

APP_NAME = "music-index"


@dataclass
class LibraryConfig:
    """Configuration for the indexed music library."""

    library_paths: List[str] = field(
        default_factory=lambda: [str(Path.home() / "Music")]
    )
    blacklisted_paths: List[str] = field(default_factory=list)
    # Use cover.jpg/folder.png next to the files even when tags embed artwork
    prefer_directory_media_art: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-index/music-index.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = False  # Also output to console (for debugging)


@dataclass
class NotificationsConfig:
    """Configuration for desktop notifications."""

    enabled: bool = False
    show_success: bool = True
    show_errors: bool = True


@dataclass
class Config:
    """Main configuration object."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Used during development so a checkout's config.toml wins over the
    user's global one.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    try:
        current = Path(__file__).resolve().parent
        for parent in [current] + list(current.parents):
            if (parent / "pyproject.toml").exists():
                config_path = parent / "config.toml"
                if config_path.exists():
                    return config_path
                return None
    except OSError:
        pass
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/music-index (or ~/.config/music-index)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path (database, logs)."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


def get_cache_dir() -> Path:
    """Get the cache directory path (media art)."""
    cache_home = os.environ.get("XDG_CACHE_HOME")
    if cache_home:
        return Path(cache_home) / APP_NAME
    return Path.home() / ".cache" / APP_NAME


def get_media_art_dir() -> Path:
    """Get the directory holding cached embedded and user-assigned artwork."""
    return get_cache_dir() / "media-art"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Index Configuration

[library]
# Directories to scan recursively for audio files
library_paths = ["~/Music"]

# Directories (and everything below them) that are never indexed
blacklisted_paths = []

# Prefer cover.jpg / folder.png next to the files over artwork embedded in tags
prefer_directory_media_art = false

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-index/music-index.log)
# log_file = "/path/to/custom/music-index.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also output logs to console (useful for debugging)
console_output = false

[notifications]
# Send a desktop notification when a scan finishes
enabled = false

# Show success notifications
show_success = true

# Show error notifications
show_errors = true
""".strip()


def _split_paths(value: str) -> List[str]:
    return [str(Path(p).expanduser()) for p in value.split(os.pathsep) if p.strip()]


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(config: Config) -> Config:
    """Apply MUSIC_INDEX_* environment variables on top of file values.

    - MUSIC_INDEX_LIBRARY_PATHS: os.pathsep-separated library roots
    - MUSIC_INDEX_BLACKLISTED_PATHS: os.pathsep-separated blacklisted dirs
    - MUSIC_INDEX_PREFER_DIRECTORY_ART: true/false
    """
    library_paths = os.environ.get("MUSIC_INDEX_LIBRARY_PATHS")
    if library_paths:
        config.library.library_paths = _split_paths(library_paths)

    blacklisted_paths = os.environ.get("MUSIC_INDEX_BLACKLISTED_PATHS")
    if blacklisted_paths is not None:
        config.library.blacklisted_paths = _split_paths(blacklisted_paths)

    prefer_directory_art = os.environ.get("MUSIC_INDEX_PREFER_DIRECTORY_ART")
    if prefer_directory_art is not None:
        config.library.prefer_directory_media_art = _parse_bool(prefer_directory_art)

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables (optionally from <config dir>/.env) override
    TOML values, see apply_env_overrides().
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        return apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        return apply_env_overrides(Config())

    config = Config()

    if "library" in toml_data:
        library_data = toml_data["library"]
        config.library = LibraryConfig(
            library_paths=[
                str(Path(p).expanduser())
                for p in library_data.get("library_paths", config.library.library_paths)
            ],
            blacklisted_paths=[
                str(Path(p).expanduser())
                for p in library_data.get(
                    "blacklisted_paths", config.library.blacklisted_paths
                )
            ],
            prefer_directory_media_art=library_data.get(
                "prefer_directory_media_art",
                config.library.prefer_directory_media_art,
            ),
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            max_file_size_mb=logging_data.get(
                "max_file_size_mb", config.logging.max_file_size_mb
            ),
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    if "notifications" in toml_data:
        notifications_data = toml_data["notifications"]
        config.notifications = NotificationsConfig(
            enabled=notifications_data.get("enabled", config.notifications.enabled),
            show_success=notifications_data.get(
                "show_success", config.notifications.show_success
            ),
            show_errors=notifications_data.get(
                "show_errors", config.notifications.show_errors
            ),
        )

    return apply_env_overrides(config)


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
    get_cache_dir().mkdir(parents=True, exist_ok=True)
