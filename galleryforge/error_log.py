"""
ErrorLog - Records non-fatal errors raised while processing media objects.
"""

import logging
import threading
import traceback
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Deque, List, Optional


@dataclass
class AppError:
    """
    One recorded error.

    Attributes:
        gallery_id: Gallery the error occurred in
        exception_type: Class name of the exception
        message: Exception message
        timestamp: ISO timestamp of when it was recorded
        stack_trace: Formatted traceback, empty when unavailable
        id: Persisted id, None until saved
    """
    gallery_id: int
    exception_type: str
    message: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    stack_trace: str = ""
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'AppError':
        return cls(**data)


class ErrorLog:
    """
    Keeps the most recent errors in memory and forwards them to the backing store.

    Recording never raises: a failure while persisting an error is logged
    and dropped, since the error being recorded is already non-fatal.
    """

    def __init__(
        self,
        data_provider=None,
        max_errors: int = 500,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize error log.

        Args:
            data_provider: Optional backing store exposing app_error_save()
            max_errors: Number of errors kept in memory
            logger: Optional logger instance
        """
        self.data_provider = data_provider
        self.logger = logger or logging.getLogger(__name__)
        self._errors: Deque[AppError] = deque(maxlen=max_errors)
        self._lock = threading.Lock()

    def record(self, exc: BaseException, gallery_id: int = 1) -> AppError:
        """
        Record an exception.

        Args:
            exc: The exception that was caught
            gallery_id: Gallery the error belongs to

        Returns:
            The recorded AppError
        """
        stack_trace = ""
        if exc.__traceback__ is not None:
            stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

        app_error = AppError(
            gallery_id=gallery_id,
            exception_type=type(exc).__name__,
            message=str(exc),
            stack_trace=stack_trace,
        )

        with self._lock:
            self._errors.append(app_error)
        self.logger.error(f"[gallery {gallery_id}] {app_error.exception_type}: {app_error.message}")

        if self.data_provider is not None:
            try:
                app_error.id = self.data_provider.app_error_save(app_error)
            except Exception as e:
                self.logger.error(f"Failed to persist error record: {e}")

        return app_error

    @property
    def errors(self) -> List[AppError]:
        with self._lock:
            return list(self._errors)

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()
