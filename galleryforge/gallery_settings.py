"""
GallerySettings - Read-only per-gallery configuration for the artifact pipeline.
"""

import configparser
import logging
import os
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import BusinessError
from .paths import map_album_directory_to_alternate, normalize_directory

logger = logging.getLogger(__name__)


def parse_bool(value) -> bool:
    """Convert diverse string values into True or False."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 't', 'yes', 'y', 'on'):
        return True
    if text in ('0', 'false', 'f', 'no', 'n', 'off', ''):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_int(value) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    return int(str(value).strip())


def parse_str(value) -> str:
    return "" if value is None else str(value).strip()


def parse_extensions(value) -> Tuple[str, ...]:
    """Parse a comma separated extension list into lower-case '.ext' entries."""
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(',')
    result = []
    for item in items:
        item = str(item).strip().lower()
        if not item:
            continue
        if not item.startswith('.'):
            item = '.' + item
        result.append(item)
    return tuple(result)


@dataclass(frozen=True)
class GallerySettings:
    """
    Settings consulted by the artifact pipeline for one gallery.

    Instances are frozen: components read them during a save but never
    change them. Use ``dataclasses.replace`` to derive a modified copy.

    Attributes:
        gallery_id: Gallery (tenant) the settings belong to
        media_object_path: Root directory of the original media files
        thumbnail_path: Root of the thumbnail cache tree ('' = media path)
        optimized_path: Root of the optimized cache tree ('' = media path)
        max_thumbnail_length: Longest edge of a thumbnail, in pixels
        max_optimized_length: Longest edge of an optimized image, in pixels
        optimized_image_trigger_size_kb: Originals larger than this get an optimized image
        image_magick_file_types: Extensions routed through ImageMagick first
        external_tool_timeout_seconds: Timeout applied to ImageMagick and FFmpeg
        video_thumbnail_position: Second at which video thumbnails are captured
    """
    media_object_path: str
    gallery_id: int = 1
    thumbnail_path: str = ""
    optimized_path: str = ""
    media_object_path_is_read_only: bool = False
    max_thumbnail_length: int = 115
    thumbnail_image_jpeg_quality: int = 70
    thumbnail_file_name_prefix: str = "zThumb_"
    thumbnail_auto_enlarge: bool = False
    max_optimized_length: int = 640
    optimized_image_jpeg_quality: int = 70
    optimized_image_trigger_size_kb: int = 50
    optimized_file_name_prefix: str = "zOpt_"
    original_image_jpeg_quality: int = 95
    image_magick_file_types: Tuple[str, ...] = ('.pdf', '.txt', '.eps', '.psd', '.tif', '.tiff')
    image_magick_path: str = "convert"
    ffmpeg_path: str = "ffmpeg"
    external_tool_timeout_seconds: int = 60
    video_thumbnail_position: int = 3
    extract_metadata: bool = True
    media_object_caption_template: str = "{Title}"
    default_video_player_width: int = 640
    default_video_player_height: int = 480
    default_audio_player_width: int = 600
    default_audio_player_height: int = 60
    default_generic_object_width: int = 640
    default_generic_object_height: int = 480
    default_album_directory_name_length: int = 25
    synch_album_title_and_directory_name: bool = False
    allow_unspecified_mime_types: bool = False
    discard_original_image_during_import: bool = False
    generic_icon_path: str = ""
    extra: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def full_media_object_path(self) -> str:
        return normalize_directory(self.media_object_path)

    @property
    def full_thumbnail_path(self) -> str:
        return normalize_directory(self.thumbnail_path) if self.thumbnail_path else self.full_media_object_path

    @property
    def full_optimized_path(self) -> str:
        return normalize_directory(self.optimized_path) if self.optimized_path else self.full_media_object_path

    def thumbnail_directory_for(self, album_path: str) -> str:
        """Directory that holds thumbnails for the album at album_path."""
        return map_album_directory_to_alternate(album_path, self.full_thumbnail_path, self.full_media_object_path)

    def optimized_directory_for(self, album_path: str) -> str:
        """Directory that holds optimized images for the album at album_path."""
        return map_album_directory_to_alternate(album_path, self.full_optimized_path, self.full_media_object_path)

    def cache_directories_for(self, album_path: str) -> List[str]:
        """Thumbnail and optimized directories of album_path that live outside the media tree."""
        directories = []
        for directory in (self.thumbnail_directory_for(album_path), self.optimized_directory_for(album_path)):
            if directory != album_path and directory not in directories:
                directories.append(directory)
        return directories

    def is_image_magick_type(self, file_name: str) -> bool:
        """True if file_name has an extension configured for ImageMagick."""
        return os.path.splitext(file_name)[1].lower() in self.image_magick_file_types

    def validate(self) -> List[str]:
        """
        Validate the settings.

        Returns:
            List of problems, empty when the settings are usable
        """
        errors = []
        if not self.media_object_path:
            errors.append("media_object_path is required")
        for name in ('thumbnail_image_jpeg_quality', 'optimized_image_jpeg_quality',
                     'original_image_jpeg_quality'):
            value = getattr(self, name)
            if not 0 <= value <= 100:
                errors.append(f"{name} must be between 0 and 100 (got {value})")
        for name in ('max_thumbnail_length', 'max_optimized_length',
                     'external_tool_timeout_seconds', 'default_album_directory_name_length'):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be greater than 0")
        if self.video_thumbnail_position < 0:
            errors.append("video_thumbnail_position cannot be negative")
        if not self.thumbnail_file_name_prefix:
            errors.append("thumbnail_file_name_prefix is required")
        if not self.optimized_file_name_prefix:
            errors.append("optimized_file_name_prefix is required")
        return errors

    @classmethod
    def from_dict(cls, rows: Mapping[str, object], gallery_id: Optional[int] = None) -> 'GallerySettings':
        """
        Build settings from key/value rows.

        Keys are matched against SETTING_PARSERS; unknown keys are kept in
        ``extra`` and otherwise ignored.

        Args:
            rows: Mapping of setting name to raw value
            gallery_id: Overrides any gallery_id present in rows

        Raises:
            BusinessError: If a known key holds a value that cannot be parsed
        """
        values = {}
        extra = {}
        for key, raw in rows.items():
            name = key.strip().lower()
            parser = SETTING_PARSERS.get(name)
            if parser is None:
                logger.debug(f"Ignoring unknown gallery setting '{key}'")
                extra[key] = parse_str(raw)
                continue
            try:
                values[name] = parser(raw)
            except (TypeError, ValueError) as e:
                raise BusinessError(f"Invalid value for gallery setting '{key}': {raw!r} ({e})")

        if gallery_id is not None:
            values['gallery_id'] = gallery_id
        if 'media_object_path' not in values:
            raise BusinessError("Gallery setting 'media_object_path' is required")
        return cls(extra=extra, **values)

    @classmethod
    def from_ini(cls, path: str, section: str = 'gallery') -> 'GallerySettings':
        """Load settings from a section of an INI file."""
        config = configparser.ConfigParser()
        if not config.read(path):
            raise BusinessError(f"Configuration file not found: {path}")
        if not config.has_section(section):
            raise BusinessError(f"Configuration file {path} has no [{section}] section")
        return cls.from_dict(dict(config.items(section)))

    @classmethod
    def from_env(cls, prefix: str = 'GALLERY_', environ: Optional[Mapping[str, str]] = None) -> 'GallerySettings':
        """Load settings from environment variables such as GALLERY_MEDIA_OBJECT_PATH."""
        environ = os.environ if environ is None else environ
        rows = {
            key[len(prefix):].lower(): value
            for key, value in environ.items()
            if key.startswith(prefix) and key[len(prefix):].lower() in SETTING_PARSERS
        }
        return cls.from_dict(rows)

    def with_overrides(self, rows: Mapping[str, object]) -> 'GallerySettings':
        """Return a copy with the given key/value rows applied."""
        values = {}
        for key, raw in rows.items():
            parser = SETTING_PARSERS.get(key.strip().lower())
            if parser is None:
                continue
            try:
                values[key.strip().lower()] = parser(raw)
            except (TypeError, ValueError) as e:
                raise BusinessError(f"Invalid value for gallery setting '{key}': {raw!r} ({e})")
        return replace(self, **values)


# Every loadable setting and the converter for its raw value
SETTING_PARSERS: Dict[str, Callable[[object], object]] = {
    'gallery_id': parse_int,
    'media_object_path': parse_str,
    'thumbnail_path': parse_str,
    'optimized_path': parse_str,
    'media_object_path_is_read_only': parse_bool,
    'max_thumbnail_length': parse_int,
    'thumbnail_image_jpeg_quality': parse_int,
    'thumbnail_file_name_prefix': parse_str,
    'thumbnail_auto_enlarge': parse_bool,
    'max_optimized_length': parse_int,
    'optimized_image_jpeg_quality': parse_int,
    'optimized_image_trigger_size_kb': parse_int,
    'optimized_file_name_prefix': parse_str,
    'original_image_jpeg_quality': parse_int,
    'image_magick_file_types': parse_extensions,
    'image_magick_path': parse_str,
    'ffmpeg_path': parse_str,
    'external_tool_timeout_seconds': parse_int,
    'video_thumbnail_position': parse_int,
    'extract_metadata': parse_bool,
    'media_object_caption_template': parse_str,
    'default_video_player_width': parse_int,
    'default_video_player_height': parse_int,
    'default_audio_player_width': parse_int,
    'default_audio_player_height': parse_int,
    'default_generic_object_width': parse_int,
    'default_generic_object_height': parse_int,
    'default_album_directory_name_length': parse_int,
    'synch_album_title_and_directory_name': parse_bool,
    'allow_unspecified_mime_types': parse_bool,
    'discard_original_image_during_import': parse_bool,
    'generic_icon_path': parse_str,
}



class GallerySettingsCache:
    """
    Loads settings once per gallery through the backing store.

    Args:
        loader: Callable taking a gallery id and returning key/value rows
    """

    def __init__(self, loader: Callable[[int], Mapping[str, object]]):
        self._loader = loader
        self._settings: Dict[int, GallerySettings] = {}
        self._lock = threading.Lock()

    def get(self, gallery_id: int) -> GallerySettings:
        with self._lock:
            settings = self._settings.get(gallery_id)
            if settings is None:
                settings = GallerySettings.from_dict(self._loader(gallery_id), gallery_id=gallery_id)
                self._settings[gallery_id] = settings
            return settings

    def add(self, settings: GallerySettings) -> None:
        with self._lock:
            self._settings[settings.gallery_id] = settings

    def clear(self, gallery_ids: Optional[Iterable[int]] = None) -> None:
        with self._lock:
            if gallery_ids is None:
                self._settings.clear()
            else:
                for gallery_id in gallery_ids:
                    self._settings.pop(gallery_id, None)
