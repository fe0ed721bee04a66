"""
Exceptions raised by the gallery pipeline.
"""

from typing import Optional


class GalleryError(Exception):
    """Base class for every error raised by galleryforge."""


class BusinessError(GalleryError):
    """
    Structural or configuration error.

    Raised for malformed alternate path mappings, invalid object state,
    non-writable objects and other conditions that are never retried.
    """


class InvalidGalleryObjectError(BusinessError):
    """A gallery object cannot be loaded or is in the wrong state for an operation."""

    def __init__(self, message: str, object_id: Optional[int] = None):
        super().__init__(message)
        self.object_id = object_id


class UnsupportedMediaObjectTypeError(GalleryError):
    """The file type is disabled, unknown, or does not match the requested variant."""

    def __init__(self, file_path: str, message: Optional[str] = None):
        super().__init__(message or f"Unsupported media object type: {file_path}")
        self.file_path = file_path


class UnsupportedImageTypeError(GalleryError):
    """The image decoder cannot open or process a file."""

    def __init__(self, file_path: str = "", message: Optional[str] = None):
        super().__init__(message or f"Unsupported image type: {file_path}")
        self.file_path = file_path


class SynchronizationInProgressError(GalleryError):
    """Another synchronization is already running for the gallery."""


class SynchronizationTerminatedError(GalleryError):
    """A running synchronization was asked to stop."""
