"""
Media object variants: Image, Video, Audio, GenericMediaObject and ExternalMediaObject.

Every variant owns a thumbnail, an optimized and an original display object.
Which creator drives each of them is looked up by the variant's
GalleryObjectType in the tables below.
"""

import os
from typing import Optional, Set

from .creators import (
    ExternalThumbnailCreator,
    GenericThumbnailCreator,
    ImageOptimizedCreator,
    ImageOriginalCreator,
    ImageThumbnailCreator,
    NullDisplayObjectCreator,
    VideoThumbnailCreator,
)
from .display_object import DisplayObject, DisplayObjectType
from .exceptions import BusinessError, InvalidGalleryObjectError, UnsupportedImageTypeError, UnsupportedMediaObjectTypeError
from .gallery_object import GalleryObject, GalleryObjectType
from .hash_keys import compute_hash_key
from .image_helper import file_size_kb
from .mime_types import MimeTypeCategory
from .save_behaviors import MediaObjectDeleteBehavior, MediaObjectSaveBehavior

THUMBNAIL_CREATORS = {
    GalleryObjectType.IMAGE: ImageThumbnailCreator,
    GalleryObjectType.VIDEO: VideoThumbnailCreator,
    GalleryObjectType.AUDIO: GenericThumbnailCreator,
    GalleryObjectType.GENERIC: GenericThumbnailCreator,
    GalleryObjectType.EXTERNAL: ExternalThumbnailCreator,
}

# Variants missing here get a null optimized display object
OPTIMIZED_CREATORS = {
    GalleryObjectType.IMAGE: ImageOptimizedCreator,
}

ORIGINAL_CREATORS = {
    GalleryObjectType.IMAGE: ImageOriginalCreator,
}


class MediaObject(GalleryObject):
    """
    A gallery object backed by one original file.

    Construct it either from a source file (a new object) or from a
    persisted record (an existing object), never both.

    Attributes:
        dedup_index: Hash keys of the gallery's stored objects
        duplicate_ids: IDs of stored objects whose content equals this file
    """

    # Required MIME category of the original file; None accepts any file
    category: Optional[MimeTypeCategory] = None

    def __init__(
        self,
        parent,
        file_path: Optional[str] = None,
        record=None,
        dedup_index=None,
        **kwargs
    ):
        if parent is None:
            raise ValueError("A media object requires a parent album")
        if (file_path is None) == (record is None):
            raise ValueError("Provide either a source file or a persisted record")

        super().__init__(parent=parent, **kwargs)
        self.dedup_index = dedup_index
        self.duplicate_ids: Set[int] = set()
        self._persisted_hash_key = ""

        self.thumbnail = DisplayObject(self, DisplayObjectType.THUMBNAIL, THUMBNAIL_CREATORS[self.object_type]())
        optimized_creator = OPTIMIZED_CREATORS.get(self.object_type)
        if optimized_creator is not None:
            self.optimized = DisplayObject(self, DisplayObjectType.OPTIMIZED, optimized_creator())
        else:
            self.optimized = DisplayObject.null(self, DisplayObjectType.OPTIMIZED)
        original_creator = ORIGINAL_CREATORS.get(self.object_type, NullDisplayObjectCreator)
        self.original = DisplayObject(self, DisplayObjectType.ORIGINAL, original_creator())

        self.save_behavior = MediaObjectSaveBehavior(self)
        self.delete_behavior = MediaObjectDeleteBehavior(self)

        if record is not None:
            self.apply_record(record)
        else:
            self.init_from_file(file_path)

        # Construction must never leave the object looking modified
        self.has_changes = False

    def init_from_file(self, file_path: str) -> None:
        file_path = os.path.abspath(file_path)
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"Media file not found: {file_path}")

        self.original.set_original_file(file_path)
        self.validate_file_type(file_path)

        self.hash_key = compute_hash_key(file_path)
        if self.dedup_index is not None:
            self.duplicate_ids = self.dedup_index.ids_for(self.hash_key)

        self.original.size_kb = file_size_kb(file_path)
        self.init_original_dimensions(file_path)

        if self.settings.extract_metadata:
            self.init_metadata(file_path)
        self.extract_metadata_on_save = False

        if not self.title:
            self.set_title(self.settings.media_object_caption_template)
            if not self.title:
                self.title = os.path.basename(file_path)

    def validate_file_type(self, file_path: str) -> None:
        """
        Raises:
            UnsupportedMediaObjectTypeError: If the file's MIME category does not match the variant
        """
        if self.category is None:
            return
        mime_type = self.original.mime_type
        if mime_type is None or mime_type.category != self.category:
            raise UnsupportedMediaObjectTypeError(
                file_path,
                f"{os.path.basename(file_path)} is not a {self.category.value} file")

    def init_original_dimensions(self, file_path: str) -> None:
        raise NotImplementedError

    @property
    def metadata_category(self) -> MimeTypeCategory:
        """Category the metadata extractor reads the original as."""
        mime_type = self.original.mime_type
        return mime_type.category if mime_type else MimeTypeCategory.OTHER

    def init_metadata(self, file_path: str) -> None:
        self.metadata.add_range(self.context.metadata_extractor.extract(file_path, self.metadata_category))

    def apply_record(self, record) -> None:
        """Populate this object from a persisted MediaObjectRecord."""
        from .records import apply_media_object_record
        apply_media_object_record(self, record)
        self._persisted_hash_key = self.hash_key

    @property
    def is_duplicate(self) -> bool:
        return bool(self.duplicate_ids - ({self.id} if self.id is not None else set()))

    def check_for_optimized_image(self) -> None:
        if not self.optimized.is_null and not self.optimized.exists():
            self.regenerate_optimized_on_save = True

    def persist_record(self) -> int:
        if self.data_provider is None:
            raise BusinessError("Cannot save a media object without a backing store")
        return self.data_provider.media_object_save(self)

    def finalize_artifacts(self, object_id: int) -> None:
        super().finalize_artifacts(object_id)
        if self.dedup_index is not None:
            if self._persisted_hash_key and self._persisted_hash_key != self.hash_key:
                self.dedup_index.discard(self._persisted_hash_key, self.id)
            self.dedup_index.add(self.hash_key, self.id)
        self._persisted_hash_key = self.hash_key

    def load_from_store(self) -> None:
        record = self.data_provider.media_object_load(self.id) if self.data_provider else None
        if record is None:
            raise InvalidGalleryObjectError(f"No media object with ID {self.id} exists in the backing store", self.id)
        self.apply_record(record)
        self.has_changes = False

    def set_generic_fallback(self) -> None:
        """Switch to a stock-icon thumbnail and drop the optimized image."""
        self.thumbnail.creator = GenericThumbnailCreator()
        self.optimized = DisplayObject.null(self, DisplayObjectType.OPTIMIZED)


class Image(MediaObject):
    """
    A photo or other raster image.

    Images read their pixel dimensions from the file. A file the native
    decoder cannot read raises UnsupportedImageTypeError, unless its extension
    is configured for ImageMagick, in which case the external tool renders it
    at save time.
    """

    object_type = GalleryObjectType.IMAGE
    category = MimeTypeCategory.IMAGE

    def init_original_dimensions(self, file_path: str) -> None:
        try:
            bitmap = self.original.bitmap
            self.original.width, self.original.height = bitmap.size
        except UnsupportedImageTypeError:
            self.original.release()
            if not self.settings.is_image_magick_type(file_path):
                raise
            self.context.logger.info(f"{file_path} will be rendered by ImageMagick")

    def init_metadata(self, file_path: str) -> None:
        try:
            super().init_metadata(file_path)
        except UnsupportedImageTypeError:
            self.original.release()
            raise

    def delete_original_file(self) -> None:
        """
        Replace the original with the optimized image to save disk space.

        The optimized file is moved over the original; when the extensions
        differ the original takes the optimized file's extension under a
        collision-free name.
        """
        from .file_names import validate_file_name

        optimized = self.optimized
        if not optimized.file_name or optimized.file_name == self.original.file_name:
            return

        original_path = self.original.physical_path
        optimized_path = optimized.physical_path
        original_ext = os.path.splitext(original_path)[1]
        optimized_ext = os.path.splitext(optimized_path)[1]

        self.original.release()
        os.remove(original_path)

        if original_ext.lower() != optimized_ext.lower():
            directory = os.path.dirname(original_path)
            stem = os.path.splitext(os.path.basename(original_path))[0]
            original_path = os.path.join(directory, validate_file_name(directory, stem + optimized_ext))

        os.replace(optimized_path, original_path)

        self.original.file_name = os.path.basename(original_path)
        self.hash_key = compute_hash_key(original_path)
        self.original.width = optimized.width
        self.original.height = optimized.height
        self.original.size_kb = optimized.size_kb
        optimized.file_name = self.original.file_name
        self.metadata.refresh_file_metadata_on_save = True
        self.has_changes = True


class Video(MediaObject):
    """
    A video file.

    Metadata of new videos is read from the FFmpeg output of the thumbnail
    capture during the first save, so FFmpeg runs once.
    """

    object_type = GalleryObjectType.VIDEO
    category = MimeTypeCategory.VIDEO

    def init_original_dimensions(self, file_path: str) -> None:
        self.original.width = self.settings.default_video_player_width
        self.original.height = self.settings.default_video_player_height

    def init_from_file(self, file_path: str) -> None:
        super().init_from_file(file_path)
        self.extract_metadata_on_save = self.settings.extract_metadata

    def init_metadata(self, file_path: str) -> None:
        pass


class Audio(MediaObject):
    object_type = GalleryObjectType.AUDIO
    category = MimeTypeCategory.AUDIO

    def init_original_dimensions(self, file_path: str) -> None:
        self.original.width = self.settings.default_audio_player_width
        self.original.height = self.settings.default_audio_player_height


class GenericMediaObject(MediaObject):
    """Any file that is not handled by a more specific variant: documents, archives, unreadable images."""

    object_type = GalleryObjectType.GENERIC

    def init_original_dimensions(self, file_path: str) -> None:
        self.original.width = self.settings.default_generic_object_width
        self.original.height = self.settings.default_generic_object_height

    @property
    def metadata_category(self) -> MimeTypeCategory:
        # Only the file items; the content may not be readable at all
        return MimeTypeCategory.OTHER


EXTERNAL_DIMENSION_SETTINGS = {
    MimeTypeCategory.AUDIO: ('default_audio_player_width', 'default_audio_player_height'),
    MimeTypeCategory.VIDEO: ('default_video_player_width', 'default_video_player_height'),
}


class ExternalMediaObject(MediaObject):
    """
    A media object hosted elsewhere and embedded through an HTML snippet.

    It has no original file: only a stock-icon thumbnail is written.
    """

    object_type = GalleryObjectType.EXTERNAL

    def __init__(
        self,
        parent,
        external_html: Optional[str] = None,
        external_category: MimeTypeCategory = MimeTypeCategory.OTHER,
        record=None,
        **kwargs
    ):
        if record is None and external_html is None:
            raise ValueError("Provide either the external HTML or a persisted record")
        self._external_html = external_html
        self._external_category = external_category
        # The base constructor requires exactly one source; the HTML stands in for the file
        super().__init__(parent, file_path=None if record is not None else "", record=record, **kwargs)

    def init_from_file(self, file_path: str) -> None:
        self.original.external_html_source = self._external_html
        self.original.external_category = self._external_category
        width_name, height_name = EXTERNAL_DIMENSION_SETTINGS.get(
            self._external_category, ('default_generic_object_width', 'default_generic_object_height'))
        self.original.width = getattr(self.settings, width_name)
        self.original.height = getattr(self.settings, height_name)
        self.extract_metadata_on_save = False
        if not self.title:
            self.title = f"External {self._external_category.value}"

    def init_original_dimensions(self, file_path: str) -> None:
        pass
