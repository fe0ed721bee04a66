"""
Creators - Strategies that generate the thumbnail, optimized and original files.

Each creator is stateless: ``generate(obj)`` inspects the gallery object it
is handed, decides whether its artifact has to be (re)generated, writes the
file when it does, and returns an ArtifactResult the display object applies.
"""

import logging
import os
import tempfile
import uuid
from typing import Optional, Tuple

from PIL import Image

from .display_object import ArtifactResult, ArtifactStatus, DisplayObject
from .exceptions import BusinessError, UnsupportedImageTypeError
from .file_names import validate_file_name
from .generic_icons import GenericIcon, choose_generic_icon, load_generic_icon
from .hash_keys import compute_hash_key
from .image_helper import (
    JPEG_EXTENSIONS,
    calculate_optimized_dimensions,
    calculate_thumbnail_dimensions,
    create_resized_bitmap,
    file_size_kb,
    get_output_format,
    open_bitmap,
    rotate_bitmap,
    save_image,
    upright_exif,
)
from .metadata import MetadataItemCollection
from .metadata_extractor import MetadataExtractor, duration_from_items
from .mime_types import MimeTypeCategory

logger = logging.getLogger(__name__)

# Capture position used when a video is shorter than the configured one
VIDEO_THUMBNAIL_POSITION_FALLBACK = 1

EXTERNAL_ICONS = {
    MimeTypeCategory.AUDIO: GenericIcon.AUDIO,
    MimeTypeCategory.VIDEO: GenericIcon.VIDEO,
    MimeTypeCategory.IMAGE: GenericIcon.IMAGE,
}


def new_temp_jpeg_path() -> str:
    """Unique path in the temp directory for an intermediate JPEG."""
    return os.path.join(tempfile.gettempdir(), f"{uuid.uuid4()}.jpg")


def write_resized(
    source: Image.Image,
    dest_path: str,
    width: int,
    height: int,
    jpeg_quality: int,
    source_path: str = ""
) -> int:
    """Resize source to width x height, encode it as JPEG and return the file size in KB."""
    resized = create_resized_bitmap(source, width, height, source_path)
    try:
        save_image(resized, dest_path, 'JPEG', jpeg_quality)
    finally:
        resized.close()
    return file_size_kb(dest_path)


class DisplayObjectCreator:
    """
    Base class for artifact creators.

    Subclasses implement ``generate``; the helpers here cover the file
    naming, resizing and cleanup every creator shares.
    """

    def generate(self, obj) -> ArtifactResult:
        raise NotImplementedError

    @staticmethod
    def target_file_name(obj, display: DisplayObject, directory: str, prefix: str, stem: Optional[str] = None) -> str:
        """
        File name for a regenerated artifact.

        The artifact keeps its current name when it already has the wanted
        one, so regeneration overwrites the file in place. Otherwise a
        collision-free name is allocated in directory.
        """
        if stem is None:
            stem = os.path.splitext(obj.original.file_name)[0]
        wanted = f"{prefix}{stem}.jpg"
        if display.file_name == wanted and display.directory == directory:
            return wanted
        return validate_file_name(directory, wanted)

    @staticmethod
    def delete_temp_file(obj, path: str) -> None:
        """Remove an intermediate file; failures are recorded, never raised."""
        if not path or not os.path.exists(path):
            return
        try:
            os.remove(path)
        except OSError as e:
            obj.context.record_error(e)

    @staticmethod
    def thumbnail_from_bitmap(obj, source: Image.Image, dest_path: str, auto_enlarge: bool, source_path: str = "") -> Tuple[int, int, int]:
        settings = obj.settings
        width, height = calculate_thumbnail_dimensions(
            source.width, source.height, settings.max_thumbnail_length, auto_enlarge)
        size_kb = write_resized(source, dest_path, width, height,
                                settings.thumbnail_image_jpeg_quality, source_path)
        return width, height, size_kb

    def thumbnail_from_file(self, obj, source_path: str, dest_path: str, auto_enlarge: bool) -> Tuple[int, int, int]:
        source = open_bitmap(source_path)
        try:
            return self.thumbnail_from_bitmap(obj, source, dest_path, auto_enlarge, source_path)
        finally:
            source.close()

    def thumbnail_from_icon(self, obj, icon: GenericIcon, dest_path: str) -> Tuple[int, int, int]:
        """Stock icons are always scaled to the full thumbnail length."""
        source = load_generic_icon(icon, obj.settings.generic_icon_path)
        try:
            return self.thumbnail_from_bitmap(obj, source, dest_path, auto_enlarge=True)
        finally:
            source.close()

    @staticmethod
    def thumbnail_is_missing(obj) -> bool:
        """New objects never have a usable thumbnail."""
        return obj.is_new or not obj.thumbnail.exists()


class NullDisplayObjectCreator(DisplayObjectCreator):
    """Creator for display objects that have no file."""

    def generate(self, obj) -> ArtifactResult:
        return ArtifactResult.unchanged()


class ImageThumbnailCreator(DisplayObjectCreator):
    """
    Creates the JPEG thumbnail of an image.

    Extensions configured for ImageMagick are converted by the external tool
    into a temp JPEG first; the temp file is kept on the original display
    object so the optimized creator can reuse it. Everything else, and any
    ImageMagick failure, goes through Pillow. A decoder failure raises
    UnsupportedImageTypeError, which the save behavior turns into a
    generic thumbnail.
    """

    def is_required(self, obj) -> bool:
        return (
            not obj.thumbnail.exists()
            or obj.regenerate_thumbnail_on_save
            or obj.rotation != 0
        )

    def generate(self, obj) -> ArtifactResult:
        if not self.is_required(obj):
            return ArtifactResult.unchanged()

        settings = obj.settings
        directory = settings.thumbnail_directory_for(obj.album_physical_path)
        file_name = self.target_file_name(obj, obj.thumbnail, directory, settings.thumbnail_file_name_prefix)
        dest_path = os.path.join(directory, file_name)

        dimensions = None
        if settings.is_image_magick_type(obj.original.file_name):
            temp_path = convert_with_image_magick(obj)
            if temp_path:
                dimensions = self.thumbnail_from_file(obj, temp_path, dest_path, settings.thumbnail_auto_enlarge)

        if dimensions is None:
            dimensions = self.thumbnail_from_bitmap(
                obj, obj.original.bitmap, dest_path, settings.thumbnail_auto_enlarge, obj.original.physical_path)

        width, height, size_kb = dimensions
        obj.context.logger.debug(f"Created thumbnail {dest_path} ({width}x{height})")
        return ArtifactResult(ArtifactStatus.GENERATED, file_name, width, height, size_kb)


def convert_with_image_magick(obj) -> str:
    """
    Return a temp JPEG rendering of the original produced by ImageMagick.

    An existing temp file from an earlier creator is reused. Returns an
    empty string when ImageMagick produced nothing.
    """
    temp_path = obj.original.temp_file_path
    if temp_path and os.path.exists(temp_path):
        return temp_path

    temp_path = new_temp_jpeg_path()
    if obj.context.external_tools.generate_raster_thumbnail(obj.original.physical_path, temp_path):
        obj.original.temp_file_path = temp_path
        return temp_path
    return ""


class ImageOptimizedCreator(DisplayObjectCreator):
    """
    Creates the web-sized JPEG of an image.

    An optimized file is only written when the original is large (file size
    over the trigger, or an edge longer than max_optimized_length) or is not
    a JPEG. Otherwise the optimized display object mirrors the original.
    """

    def is_required(self, obj) -> bool:
        triggered = (
            self.is_missing(obj)
            or obj.regenerate_optimized_on_save
            or obj.rotation != 0
        )
        return triggered and (self.exceeds_triggers(obj) or not self.is_jpeg(obj))

    @staticmethod
    def is_missing(obj) -> bool:
        """True when a separate optimized file is expected but absent."""
        has_separate_file = obj.optimized.file_name != obj.original.file_name
        return has_separate_file and not obj.optimized.exists()

    @staticmethod
    def is_jpeg(obj) -> bool:
        return os.path.splitext(obj.original.file_name)[1].lower() in JPEG_EXTENSIONS

    @staticmethod
    def exceeds_triggers(obj) -> bool:
        settings = obj.settings
        original = obj.original
        max_length = settings.max_optimized_length
        return (
            original.size_kb > settings.optimized_image_trigger_size_kb
            or original.width > max_length
            or original.height > max_length
        )

    def generate(self, obj) -> ArtifactResult:
        if not self.is_required(obj):
            if obj.rotation != 0 or (obj.is_new and not obj.optimized.file_name):
                self.discard_separate_file(obj)
                return obj.optimized.mirror(obj.original)
            return ArtifactResult.unchanged()

        settings = obj.settings
        directory = settings.optimized_directory_for(obj.album_physical_path)
        file_name = self.target_file_name(obj, obj.optimized, directory, settings.optimized_file_name_prefix)
        dest_path = os.path.join(directory, file_name)

        dimensions = None
        if settings.is_image_magick_type(obj.original.file_name):
            temp_path = convert_with_image_magick(obj)
            if temp_path:
                source = open_bitmap(temp_path)
                try:
                    dimensions = self.write_optimized(obj, source, dest_path, temp_path)
                finally:
                    source.close()

        if dimensions is None:
            dimensions = self.write_optimized(obj, obj.original.bitmap, dest_path, obj.original.physical_path)

        width, height, size_kb = dimensions
        obj.context.logger.debug(f"Created optimized image {dest_path} ({width}x{height})")
        return ArtifactResult(ArtifactStatus.GENERATED, file_name, width, height, size_kb)

    @staticmethod
    def write_optimized(obj, source: Image.Image, dest_path: str, source_path: str) -> Tuple[int, int, int]:
        settings = obj.settings
        width, height = calculate_optimized_dimensions(source.width, source.height, settings.max_optimized_length)
        size_kb = write_resized(source, dest_path, width, height,
                                settings.optimized_image_jpeg_quality, source_path)
        return width, height, size_kb

    @staticmethod
    def discard_separate_file(obj) -> None:
        """Delete a separate optimized file that is about to be replaced by the original."""
        optimized = obj.optimized
        if optimized.is_null or not optimized.file_name or optimized.file_name == obj.original.file_name:
            return
        path = optimized.physical_path
        if os.path.exists(path):
            try:
                os.remove(path)
            except OSError as e:
                obj.context.record_error(e)


class ImageOriginalCreator(DisplayObjectCreator):
    """
    Applies a pending rotation to the original image file.

    Only existing images with a rotation request are touched. The file is
    re-encoded in its own format at the original JPEG quality and the hash
    key is recomputed from the rewritten content. Any failure is fatal to
    the save.
    """

    def generate(self, obj) -> ArtifactResult:
        if obj.is_new or obj.rotation == 0:
            return ArtifactResult.unchanged()

        file_path = obj.original.physical_path
        if not os.path.exists(file_path):
            raise BusinessError(f"Cannot rotate image because no file exists at {file_path}.")

        source = obj.original.bitmap
        image_format = source.format or get_output_format(file_path)
        try:
            exif = upright_exif(source)
            rotated = rotate_bitmap(source, obj.rotation)
        except (OSError, ValueError) as e:
            obj.original.release()
            raise UnsupportedImageTypeError(file_path) from e

        save_image(rotated, file_path, image_format, obj.settings.original_image_jpeg_quality, exif)
        obj.original.replace_bitmap(rotated)
        obj.hash_key = compute_hash_key(file_path)

        obj.context.logger.info(f"Rotated {file_path} by {obj.rotation} degrees")
        return ArtifactResult(
            ArtifactStatus.GENERATED,
            obj.original.file_name,
            rotated.width,
            rotated.height,
            file_size_kb(file_path),
        )


class GenericThumbnailCreator(DisplayObjectCreator):
    """
    Creates thumbnails for documents, audio and unreadable images.

    Extensions configured for ImageMagick are rendered by the external tool;
    everything else, and any tool failure, gets the stock icon for the file's
    MIME type.
    """

    def is_required(self, obj) -> bool:
        return self.thumbnail_is_missing(obj) or obj.regenerate_thumbnail_on_save

    def generate(self, obj) -> ArtifactResult:
        if not self.is_required(obj):
            return ArtifactResult.unchanged()

        settings = obj.settings
        directory = settings.thumbnail_directory_for(obj.album_physical_path)
        file_name = self.target_file_name(obj, obj.thumbnail, directory, settings.thumbnail_file_name_prefix)
        dest_path = os.path.join(directory, file_name)

        dimensions = None
        if settings.is_image_magick_type(obj.original.file_name):
            dimensions = self.thumbnail_from_image_magick(obj, dest_path)

        if dimensions is None:
            icon = choose_generic_icon(obj.original.file_name)
            dimensions = self.thumbnail_from_icon(obj, icon, dest_path)
            obj.context.logger.debug(f"Using generic {icon.value} icon for {obj.original.file_name}")

        width, height, size_kb = dimensions
        return ArtifactResult(ArtifactStatus.GENERATED, file_name, width, height, size_kb)

    def thumbnail_from_image_magick(self, obj, dest_path: str) -> Optional[Tuple[int, int, int]]:
        temp_path = new_temp_jpeg_path()
        if not obj.context.external_tools.generate_raster_thumbnail(obj.original.physical_path, temp_path):
            return None
        try:
            return self.thumbnail_from_file(obj, temp_path, dest_path, auto_enlarge=False)
        except UnsupportedImageTypeError as e:
            obj.context.logger.warning(f"ImageMagick output for {obj.original.file_name} is unreadable: {e}")
            return None
        finally:
            self.delete_temp_file(obj, temp_path)


class ExternalThumbnailCreator(DisplayObjectCreator):
    """Creates the stock-icon thumbnail of an externally hosted media object."""

    FILE_STEM = "external"

    def is_required(self, obj) -> bool:
        return self.thumbnail_is_missing(obj) or obj.regenerate_thumbnail_on_save

    def generate(self, obj) -> ArtifactResult:
        if not self.is_required(obj):
            return ArtifactResult.unchanged()

        settings = obj.settings
        directory = settings.thumbnail_directory_for(obj.album_physical_path)
        file_name = self.target_file_name(
            obj, obj.thumbnail, directory, settings.thumbnail_file_name_prefix, stem=self.FILE_STEM)
        dest_path = os.path.join(directory, file_name)

        icon = EXTERNAL_ICONS.get(obj.original.external_category, GenericIcon.UNKNOWN)
        width, height, size_kb = self.thumbnail_from_icon(obj, icon, dest_path)
        return ArtifactResult(ArtifactStatus.GENERATED, file_name, width, height, size_kb)


class VideoThumbnailCreator(DisplayObjectCreator):
    """
    Creates a video thumbnail from a frame captured by FFmpeg.

    The FFmpeg output of the capture is reused for metadata extraction of
    new videos. When no frame is produced and the video is shorter than the
    capture position, the capture is retried at one second; if that also
    fails, the stock video icon is used.
    """

    def is_required(self, obj) -> bool:
        return self.thumbnail_is_missing(obj) or obj.regenerate_thumbnail_on_save

    def generate(self, obj) -> ArtifactResult:
        if not self.is_required(obj):
            return ArtifactResult.unchanged()

        settings = obj.settings
        tools = obj.context.external_tools
        source_path = obj.original.physical_path
        position = settings.video_thumbnail_position
        temp_path = new_temp_jpeg_path()

        ffmpeg_output = tools.generate_video_thumbnail(source_path, temp_path, position)

        if ffmpeg_output and obj.is_new and settings.extract_metadata and obj.extract_metadata_on_save:
            items = obj.context.metadata_extractor.extract(source_path, MimeTypeCategory.VIDEO, ffmpeg_output)
            obj.metadata.add_range(items)
            obj.extract_metadata_on_save = False

        if not os.path.exists(temp_path):
            duration = self.duration_seconds(obj, ffmpeg_output)
            if duration is not None and duration < position:
                obj.context.logger.info(
                    f"Video {source_path} is shorter than {position}s; "
                    f"capturing at {VIDEO_THUMBNAIL_POSITION_FALLBACK}s")
                tools.generate_video_thumbnail(source_path, temp_path, VIDEO_THUMBNAIL_POSITION_FALLBACK)

        directory = settings.thumbnail_directory_for(obj.album_physical_path)
        file_name = self.target_file_name(obj, obj.thumbnail, directory, settings.thumbnail_file_name_prefix)
        dest_path = os.path.join(directory, file_name)

        dimensions = None
        if os.path.exists(temp_path):
            try:
                dimensions = self.thumbnail_from_file(obj, temp_path, dest_path, auto_enlarge=False)
            except UnsupportedImageTypeError as e:
                obj.context.logger.warning(f"Captured frame of {source_path} is unreadable: {e}")
            finally:
                self.delete_temp_file(obj, temp_path)

        if dimensions is None:
            obj.context.logger.info(f"No frame captured from {source_path}; using the generic video icon")
            dimensions = self.thumbnail_from_icon(obj, GenericIcon.VIDEO, dest_path)

        width, height, size_kb = dimensions
        return ArtifactResult(ArtifactStatus.GENERATED, file_name, width, height, size_kb)

    @staticmethod
    def duration_seconds(obj, ffmpeg_output: str) -> Optional[float]:
        duration = duration_from_items(obj.metadata)
        if duration is None and ffmpeg_output:
            items = MetadataItemCollection()
            MetadataExtractor.parse_video_metadata(ffmpeg_output, items)
            duration = duration_from_items(items)
        return duration
