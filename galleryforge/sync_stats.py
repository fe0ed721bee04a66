"""
SyncStats - Statistics for a synchronization run.
"""

import time
from dataclasses import dataclass, field
from typing import List


@dataclass
class SyncStats:
    """
    Statistics for a synchronization run.

    Attributes:
        total_files: Files found in the scanned directories
        albums_created: Directories added as new albums
        albums_updated: Existing albums that were saved again
        albums_deleted: Stored albums whose directory no longer exists
        files_created: Files added as new media objects
        files_updated: Existing media objects that were synchronized
        files_skipped: Hidden, derived or unsupported files
        files_deleted: Stored media objects whose file no longer exists
        errors: Files that failed to synchronize
        start_time: Start timestamp
        skipped_files: Paths of skipped files with the reason
        error_details: List of error messages
        terminated: True when the run was stopped before finishing
    """
    total_files: int = 0
    albums_created: int = 0
    albums_updated: int = 0
    albums_deleted: int = 0
    files_created: int = 0
    files_updated: int = 0
    files_skipped: int = 0
    files_deleted: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.time)
    skipped_files: List[str] = field(default_factory=list)
    error_details: List[str] = field(default_factory=list)
    terminated: bool = False

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time in seconds."""
        return time.time() - self.start_time

    @property
    def completed_count(self) -> int:
        """Files handled so far (created + updated + skipped + errors)."""
        return self.files_created + self.files_updated + self.files_skipped + self.errors

    @property
    def remaining_count(self) -> int:
        return max(0, self.total_files - self.completed_count)

    @property
    def rate_per_second(self) -> float:
        """Processing rate in files per second."""
        if self.elapsed_seconds > 0:
            return self.completed_count / self.elapsed_seconds
        return 0.0

    @property
    def rate_per_minute(self) -> float:
        return self.rate_per_second * 60

    @property
    def estimated_remaining_seconds(self) -> float:
        if self.rate_per_second > 0:
            return self.remaining_count / self.rate_per_second
        return 0.0

    @property
    def percent_complete(self) -> float:
        if self.total_files <= 0:
            return 100.0
        return min(100.0, 100.0 * self.completed_count / self.total_files)
