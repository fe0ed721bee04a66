"""
Media gallery artifact pipeline.

Albums map to directories and media objects to files. Saving a media object
produces its thumbnail and optimized images and extracts its metadata;
the synchronizer reconciles a directory tree with the backing store.
"""

__version__ = "1.0.0"

from .exceptions import (
    BusinessError,
    GalleryError,
    InvalidGalleryObjectError,
    SynchronizationInProgressError,
    SynchronizationTerminatedError,
    UnsupportedImageTypeError,
    UnsupportedMediaObjectTypeError,
)
from .gallery_settings import GallerySettings, GallerySettingsCache
from .context import GalleryContext
from .error_log import AppError, ErrorLog
from .hash_keys import DedupIndex, compute_hash_key
from .gallery_object import GalleryObject, GalleryObjectType
from .album import Album, assign_album_thumbnail, create_virtual_album
from .media_objects import Audio, ExternalMediaObject, GenericMediaObject, Image, MediaObject, Video
from .factory import (
    create_album,
    create_external_media_object,
    create_media_object,
    create_root_album,
    load_album,
    load_album_by_id,
    load_media_object,
    load_root_album,
)
from .gallery_db import GalleryDb
from .sync_stats import SyncStats
from .sync_progress import SyncProgress
from .synchronizer import SyncOptions, Synchronizer

__all__ = [
    "BusinessError",
    "GalleryError",
    "InvalidGalleryObjectError",
    "SynchronizationInProgressError",
    "SynchronizationTerminatedError",
    "UnsupportedImageTypeError",
    "UnsupportedMediaObjectTypeError",
    "GallerySettings",
    "GallerySettingsCache",
    "GalleryContext",
    "AppError",
    "ErrorLog",
    "DedupIndex",
    "compute_hash_key",
    "GalleryObject",
    "GalleryObjectType",
    "Album",
    "assign_album_thumbnail",
    "create_virtual_album",
    "Audio",
    "ExternalMediaObject",
    "GenericMediaObject",
    "Image",
    "MediaObject",
    "Video",
    "create_album",
    "create_external_media_object",
    "create_media_object",
    "create_root_album",
    "load_album",
    "load_album_by_id",
    "load_media_object",
    "load_root_album",
    "GalleryDb",
    "SyncStats",
    "SyncProgress",
    "SyncOptions",
    "Synchronizer",
]
