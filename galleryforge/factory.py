"""
Factory - Creates new gallery objects and inflates stored ones.

The variant of a new media object is chosen from its file's MIME category
and the variant of a stored one from its record's type tag, both through
lookup tables.
"""

import logging
import os
from datetime import datetime
from typing import Optional

from .album import Album
from .exceptions import InvalidGalleryObjectError, UnsupportedImageTypeError, UnsupportedMediaObjectTypeError
from .gallery_object import GalleryObjectType
from .media_objects import Audio, ExternalMediaObject, GenericMediaObject, Image, MediaObject, Video
from .mime_types import MimeTypeCategory, get_category
from .records import AlbumRecord, MediaObjectRecord, apply_album_record

logger = logging.getLogger(__name__)

ROOT_ALBUM_TITLE = "All albums"
ROOT_ALBUM_SUMMARY = "Welcome to the gallery."
SYSTEM_USER_NAME = "System"

MIME_CATEGORY_VARIANTS = {
    MimeTypeCategory.IMAGE: Image,
    MimeTypeCategory.VIDEO: Video,
    MimeTypeCategory.AUDIO: Audio,
    MimeTypeCategory.OTHER: GenericMediaObject,
}

GALLERY_OBJECT_TYPES = {
    GalleryObjectType.IMAGE: Image,
    GalleryObjectType.VIDEO: Video,
    GalleryObjectType.AUDIO: Audio,
    GalleryObjectType.GENERIC: GenericMediaObject,
    GalleryObjectType.EXTERNAL: ExternalMediaObject,
}


def find_child_for_file(parent: Album, file_path: str) -> Optional[MediaObject]:
    """The media object of parent whose original is file_path, if any."""
    file_path = os.path.normcase(os.path.abspath(file_path))
    for child in parent.media_objects:
        original_path = child.original.physical_path
        if original_path and os.path.normcase(original_path) == file_path:
            return child
    return None


def create_media_object(file_path: str, parent: Album, dedup_index=None) -> MediaObject:
    """
    Create a new media object for a file inside parent's directory.

    A file that already belongs to one of parent's media objects returns
    that object. Images the decoder cannot read become generic media
    objects.

    Args:
        file_path: Media file located in the album directory
        parent: Album that receives the object
        dedup_index: Hash keys of the stored objects, for duplicate detection

    Returns:
        The media object, added to parent but not yet saved

    Raises:
        UnsupportedMediaObjectTypeError: If the file type is unknown and unspecified types are not allowed
    """
    if parent is None:
        raise ValueError("A media object requires a parent album")

    existing = find_child_for_file(parent, file_path)
    if existing is not None:
        return existing

    category = get_category(file_path)
    variant = MIME_CATEGORY_VARIANTS.get(category)
    if variant is None:
        if not parent.settings.allow_unspecified_mime_types:
            raise UnsupportedMediaObjectTypeError(file_path)
        variant = GenericMediaObject

    if variant is Image:
        try:
            media_object = Image(parent, file_path=file_path, dedup_index=dedup_index)
        except UnsupportedImageTypeError as e:
            logger.info(f"{file_path} cannot be decoded, adding it as a generic media object ({e})")
            media_object = GenericMediaObject(parent, file_path=file_path, dedup_index=dedup_index)
    else:
        media_object = variant(parent, file_path=file_path, dedup_index=dedup_index)

    parent.add(media_object)
    return media_object


def create_external_media_object(
    external_html: str,
    category: MimeTypeCategory,
    parent: Album
) -> ExternalMediaObject:
    """
    Create a media object that embeds content hosted elsewhere.

    Raises:
        ValueError: If the HTML is empty or the category is not set
    """
    if not external_html:
        raise ValueError("External media objects require an HTML snippet")
    if category == MimeTypeCategory.NOT_SET:
        raise ValueError("External media objects require a MIME category")
    media_object = ExternalMediaObject(parent, external_html=external_html, external_category=category)
    parent.add(media_object)
    return media_object


def load_media_object(record: MediaObjectRecord, parent: Album, dedup_index=None) -> MediaObject:
    """Inflate a stored media object; its variant comes from the record's type tag."""
    try:
        variant = GALLERY_OBJECT_TYPES[record.object_type]
    except (KeyError, ValueError) as e:
        raise InvalidGalleryObjectError(
            f"Media object {record.id} has an unknown type '{record.gallery_object_type}'", record.id) from e
    return variant(parent, record=record, dedup_index=dedup_index)


def load_album(record: AlbumRecord, parent: Optional[Album], context=None) -> Album:
    """Inflate a stored album. The root album needs the gallery context since it has no parent."""
    album = Album(
        parent=parent,
        context=context,
        id=record.id,
        directory_name=record.directory_name or "",
    )
    apply_album_record(album, record)
    return album


def load_album_by_id(context, album_id: int) -> Album:
    """
    Load an album and the chain of albums above it.

    Raises:
        InvalidGalleryObjectError: If no album with that id is stored
    """
    record = context.data_provider.album_load(album_id)
    if record is None:
        raise InvalidGalleryObjectError(f"No album with ID {album_id} exists in the backing store", album_id)
    parent = None
    if record.parent_id is not None:
        parent = load_album_by_id(context, record.parent_id)
    album = load_album(record, parent, context if parent is None else None)
    if parent is not None:
        parent.add(album)
    return album


def create_album(
    parent: Album,
    title: str = "",
    directory_name: str = "",
    user_name: str = ""
) -> Album:
    """
    Create a new child album of parent.

    The directory name is derived from the title on the first save when it
    is not given.
    """
    if parent is None:
        raise ValueError("A child album requires a parent album")
    album = Album(parent=parent, title=title, directory_name=directory_name)
    album.is_private = parent.is_private
    if user_name:
        album.update_audit_fields(user_name)
    parent.add(album)
    return album


def create_root_album(context) -> Album:
    """Create and save the root album of a gallery."""
    album = Album(context=context, title=ROOT_ALBUM_TITLE, summary=ROOT_ALBUM_SUMMARY)
    album.update_audit_fields(SYSTEM_USER_NAME, datetime.now())
    album.save()
    logger.info(f"Created root album {album.id} for gallery {context.gallery_id}")
    return album


def load_root_album(context) -> Album:
    """Load the root album of a gallery, creating it when the gallery has none."""
    record = context.data_provider.album_root_record(context.gallery_id)
    if record is None:
        return create_root_album(context)
    return load_album(record, None, context)
