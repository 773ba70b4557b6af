"""
Music Index CLI - Entry point

Scans the configured library directories into the index and queries it.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from music_index.core.config import (
    Config,
    create_default_config,
    get_config_path,
    load_config,
)
from music_index.core.output import get_console, setup_loguru_from_config
from music_index.domain.library.models import ScanResult
from music_index.library_service import LibraryService
from music_index.notifications import notify_scan_failed, notify_scan_finished

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


def format_duration(seconds: int) -> str:
    """Format seconds as H:MM:SS (or M:SS under an hour)."""
    minutes, seconds = divmod(max(int(seconds), 0), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def print_scan_summary(console: Console, result: ScanResult) -> None:
    table = Table(title="Library scan", show_header=False)
    table.add_column("What", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Added", str(result.added))
    table.add_row("Updated", str(result.updated))
    table.add_row("Removed", str(result.removed))
    table.add_row("Artwork updated", str(result.media_art_updated))
    table.add_row("Artwork files removed", str(result.media_art_removed))
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Time", f"{result.elapsed_ms} ms")
    console.print(table)


def run_init_config(console: Console) -> int:
    """Write the default config.toml if there is none yet."""
    config_path = get_config_path()
    if config_path.exists():
        console.print(f"Configuration already exists at: {config_path}")
        return EXIT_OK

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(create_default_config(), encoding="utf-8")
    except OSError as e:
        console.print(f"Failed to write {config_path}: {e}", style="red")
        return EXIT_FAILURE

    console.print(f"Created default configuration at: {config_path}", style="green")
    return EXIT_OK


def run_scan(service: LibraryService, console: Console) -> int:
    """Run one scan in the background and wait for it.

    Ctrl-C asks the scan to stop; everything indexed until then is kept.
    """
    if service.update_database() is None:
        console.print("A library scan is already running", style="yellow")
        return EXIT_FAILURE

    with console.status("Scanning library..."):
        while True:
            try:
                service.wait()
                break
            except KeyboardInterrupt:
                console.print("Cancelling scan...", style="yellow")
                service.cancel_update()

    if service.last_error is not None:
        console.print(f"Library scan failed: {service.last_error}", style="red")
        notify_scan_failed(service.config.notifications, str(service.last_error))
        return EXIT_FAILURE

    result = service.last_result
    print_scan_summary(console, result)
    notify_scan_finished(service.config.notifications, result)

    if result.cancelled:
        console.print("Scan cancelled, partial progress was saved", style="yellow")
        return EXIT_CANCELLED
    return EXIT_OK


def run_stats(service: LibraryService, console: Console) -> int:
    table = Table(title="Library", show_header=False)
    table.add_column("What", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Artists", str(service.artists_count()))
    table.add_row("Albums", str(service.albums_count()))
    table.add_row("Tracks", str(service.tracks_count()))
    table.add_row("Duration", format_duration(service.tracks_duration()))
    console.print(table)
    return EXIT_OK


def run_random_art(
    service: LibraryService,
    console: Console,
    artist: Optional[str] = None,
    album: Optional[str] = None,
    genre: Optional[str] = None,
) -> int:
    if album is not None:
        media_art = service.random_media_art_for_album(artist or "", album)
    elif artist is not None:
        media_art = service.random_media_art_for_artist(artist)
    elif genre is not None:
        media_art = service.random_media_art_for_genre(genre)
    else:
        media_art = service.random_media_art()

    if not media_art:
        console.print("No artwork found", style="yellow")
        return EXIT_FAILURE

    console.print(media_art, highlight=False)
    return EXIT_OK


def run_set_art(
    service: LibraryService, console: Console, artist: str, album: str, image: str
) -> int:
    image_path = Path(image).expanduser()
    if not image_path.is_file():
        console.print(f"No such image: {image_path}", style="red")
        return EXIT_FAILURE

    if not service.set_media_art(artist, album, str(image_path.resolve())):
        console.print(f"Failed to set artwork for {artist} - {album}", style="red")
        return EXIT_FAILURE

    console.print(f"Artwork set for {artist} - {album}", style="green")
    return EXIT_OK


def run_reset(service: LibraryService, console: Console, assume_yes: bool = False) -> int:
    if not assume_yes and not Confirm.ask(
        "Delete every indexed track and all cached artwork?", console=console
    ):
        console.print("Aborted")
        return EXIT_FAILURE

    if not service.reset_database():
        console.print("Failed to reset the library", style="red")
        return EXIT_FAILURE

    console.print("Library reset", style="green")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-index",
        description="Music Index - Local audio library indexer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Add global options
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
        help="Override the configured log level",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Also write log messages to stderr",
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    scan_parser = subparsers.add_parser("scan", help="Update the index from the library directories")
    art_preference = scan_parser.add_mutually_exclusive_group()
    art_preference.add_argument(
        "--prefer-directory-art",
        dest="prefer_directory_art",
        action="store_true",
        default=None,
        help="Use cover images next to the files before embedded artwork",
    )
    art_preference.add_argument(
        "--prefer-embedded-art",
        dest="prefer_directory_art",
        action="store_false",
        help="Use embedded artwork before cover images next to the files",
    )
    scan_parser.add_argument(
        "--library",
        action="append",
        metavar="DIR",
        help="Library directory to scan instead of the configured ones (repeatable)",
    )

    subparsers.add_parser("stats", help="Show artist, album and track counts")

    random_parser = subparsers.add_parser("random-art", help="Print a random artwork path")
    random_parser.add_argument("--artist", help="Only artwork of this artist")
    random_parser.add_argument("--album", help="Only artwork of this album (needs --artist)")
    random_parser.add_argument("--genre", help="Only artwork of this genre")

    set_art_parser = subparsers.add_parser("set-art", help="Assign an image to an album")
    set_art_parser.add_argument("artist", help="Album artist")
    set_art_parser.add_argument("album", help="Album title")
    set_art_parser.add_argument("image", help="Image file to use")

    reset_parser = subparsers.add_parser("reset", help="Delete the index and cached artwork")
    reset_parser.add_argument("-y", "--yes", action="store_true", help="Don't ask for confirmation")

    subparsers.add_parser("init-config", help="Write the default configuration file")

    return parser


def apply_cli_overrides(config: Config, args: argparse.Namespace) -> Config:
    if args.log_level:
        config.logging.level = args.log_level
    if args.verbose:
        config.logging.console_output = True
    if getattr(args, "prefer_directory_art", None) is not None:
        config.library.prefer_directory_media_art = args.prefer_directory_art
    if getattr(args, "library", None):
        config.library.library_paths = [str(Path(p).expanduser()) for p in args.library]
    return config


def run(argv: Optional[list[str]] = None, service: Optional[LibraryService] = None) -> int:
    """Parse arguments and run one command.

    Args:
        argv: Command line (default: sys.argv[1:])
        service: Service to use instead of one built from the configuration

    Returns:
        Exit code (0 success, 1 failure, 130 cancelled)
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    console = get_console()

    if not args.subcommand:
        parser.print_help()
        return EXIT_FAILURE

    if args.subcommand == "init-config":
        return run_init_config(console)

    if args.subcommand == "random-art" and args.album is not None and args.artist is None:
        parser.error("--album requires --artist")

    owns_service = service is None
    if owns_service:
        config = apply_cli_overrides(load_config(), args)
        setup_loguru_from_config(config.logging)
        service = LibraryService(config)
    else:
        apply_cli_overrides(service.config, args)

    try:
        if not service.init_database():
            console.print(f"Failed to open the library database at {service.db_path}", style="red")
            return EXIT_FAILURE

        if args.subcommand == "scan":
            return run_scan(service, console)
        if args.subcommand == "stats":
            return run_stats(service, console)
        if args.subcommand == "random-art":
            return run_random_art(service, console, args.artist, args.album, args.genre)
        if args.subcommand == "set-art":
            return run_set_art(service, console, args.artist, args.album, args.image)
        if args.subcommand == "reset":
            return run_reset(service, console, assume_yes=args.yes)
    finally:
        if owns_service:
            service.shutdown()

    parser.print_help()
    return EXIT_FAILURE


def main() -> None:
    """Main entry point for the music-index command."""
    sys.exit(run())


if __name__ == "__main__":
    main()
