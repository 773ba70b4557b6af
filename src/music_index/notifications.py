"""Desktop notification helpers for Music Index."""

import shutil
import subprocess
from typing import Literal

from loguru import logger

from music_index.core.config import NotificationsConfig
from music_index.domain.library.models import ScanResult


def notify(
    title: str, message: str, urgency: Literal["low", "normal", "critical"] = "normal"
) -> bool:
    """
    Show a desktop notification using notify-send.

    Args:
        title: Notification title
        message: Notification message body
        urgency: Urgency level ('low', 'normal', 'critical')

    Returns:
        True if notify-send was run

    Note:
        Skips the notification if notify-send is not available.
    """
    if not shutil.which("notify-send"):
        return False

    try:
        subprocess.run(
            [
                "notify-send",
                "--urgency",
                urgency,
                "--app-name",
                "Music Index",
                title,
                message,
            ],
            check=False,
            timeout=2.0,
            capture_output=True,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"notify-send failed: {e}")
        return False
    return True


def notify_success(message: str) -> bool:
    """Show a success notification with checkmark."""
    return notify("✓ Music Index", message, urgency="normal")


def notify_error(message: str) -> bool:
    """Show an error notification with X mark."""
    return notify("✗ Music Index", message, urgency="critical")


def format_scan_summary(result: ScanResult) -> str:
    if result.cancelled:
        return "Library scan cancelled"
    if not result.changed:
        return "Library is up to date"
    return (
        f"Library updated: {result.added} added, {result.updated} updated, "
        f"{result.removed} removed"
    )


def notify_scan_finished(config: NotificationsConfig, result: ScanResult) -> bool:
    """Report a finished scan, honouring the notification settings."""
    if not config.enabled or not config.show_success:
        return False
    return notify_success(format_scan_summary(result))


def notify_scan_failed(config: NotificationsConfig, error: str) -> bool:
    if not config.enabled or not config.show_errors:
        return False
    return notify_error(f"Library scan failed: {error}")
