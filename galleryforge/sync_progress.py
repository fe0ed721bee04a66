"""
SyncProgress - Tracks and displays synchronization progress.
"""

import logging
from typing import Optional

from .sync_stats import SyncStats


class SyncProgress:
    """
    Tracks and displays synchronization progress with optional per-file output.
    """

    def __init__(
        self,
        show_files: bool = False,
        log_interval: int = 100,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize progress tracker.

        Args:
            show_files: If True, print each file as it's synchronized
            log_interval: Log summary progress every N files (when not show_files)
            logger: Optional logger instance
        """
        self.show_files = show_files
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(__name__)
        self.last_logged = 0

    def on_file_synchronized(self, file_path: str, action: str) -> None:
        """
        Called when a file has been added or updated.

        Args:
            file_path: The media file
            action: 'added' or 'updated'
        """
        if self.show_files:
            print(f"  [OK] {file_path} -> {action}")

    def on_file_skipped(self, file_path: str, reason: str) -> None:
        if self.show_files:
            print(f"  [SKIP] {file_path} -> {reason}")

    def on_file_error(self, file_path: str, error: str) -> None:
        if self.show_files:
            print(f"  [ERROR] {file_path} -> {error}")

    def on_album(self, directory: str, action: str) -> None:
        if self.show_files:
            print(f"  [ALBUM] {directory} -> {action}")

    def on_progress_update(self, stats: SyncStats) -> None:
        """
        Called after every file to report overall progress.

        Args:
            stats: Current synchronization statistics
        """
        total_done = stats.completed_count

        if not self.show_files and total_done - self.last_logged >= self.log_interval:
            self.last_logged = total_done
            eta_minutes = stats.estimated_remaining_seconds / 60

            self.logger.info(
                f"Progress: {total_done}/{stats.total_files} files "
                f"({stats.files_created} added, {stats.files_updated} updated, "
                f"{stats.files_skipped} skipped, {stats.errors} errors; "
                f"{stats.rate_per_minute:.1f}/min, ~{eta_minutes:.0f}m remaining)"
            )

    def __call__(self, stats: SyncStats) -> None:
        """Allow use as callback for stats updates."""
        self.on_progress_update(stats)
