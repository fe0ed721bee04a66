"""
Records - Persisted form of albums, media objects and their metadata.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional

from .gallery_object import GalleryObjectType
from .metadata import MetadataItem, MetadataItemName
from .mime_types import MimeTypeCategory

logger = logging.getLogger(__name__)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def parse_timestamp(value) -> Optional[datetime]:
    """Accept a datetime, an ISO string or None."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class MetadataRecord:
    """
    One stored metadata item.

    Attributes:
        name: MetadataItemName value
        value: Item value
        description: Display label
        id: Persisted id, None until saved
        media_object_id: Owning media object
    """
    name: str
    value: str
    description: str = ""
    id: Optional[int] = None
    media_object_id: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> 'MetadataRecord':
        return cls(**data)

    @classmethod
    def from_item(cls, item: MetadataItem, media_object_id: Optional[int] = None) -> 'MetadataRecord':
        return cls(
            name=item.name.value,
            value=item.value,
            description=item.description,
            id=item.id,
            media_object_id=media_object_id,
        )


@dataclass
class AlbumRecord:
    """
    Stored state of an album.

    Attributes:
        id: Album id
        gallery_id: Gallery the album belongs to
        parent_id: Parent album id; None for the root album
        title: Album title
        directory_name: Directory name inside the parent's directory
        summary: Album description
        thumbnail_media_object_id: Media object whose thumbnail represents the album, 0 for none
        sequence: Position among siblings
        is_private: Hidden from anonymous users
    """
    id: Optional[int]
    gallery_id: int
    parent_id: Optional[int]
    title: str = ""
    directory_name: str = ""
    summary: str = ""
    thumbnail_media_object_id: int = 0
    sequence: int = 0
    is_private: bool = False
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    owner_user_name: str = ""
    created_by: str = ""
    date_added: Optional[datetime] = None
    last_modified_by: str = ""
    date_last_modified: Optional[datetime] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ('date_start', 'date_end', 'date_added', 'date_last_modified'):
            data[key] = format_timestamp(data[key])
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'AlbumRecord':
        data = dict(data)
        for key in ('date_start', 'date_end', 'date_added', 'date_last_modified'):
            data[key] = parse_timestamp(data.get(key))
        data['is_private'] = bool(data.get('is_private', False))
        data['thumbnail_media_object_id'] = data.get('thumbnail_media_object_id') or 0
        return cls(**data)

    @classmethod
    def from_album(cls, album) -> 'AlbumRecord':
        parent = album.parent
        return cls(
            id=album.id,
            gallery_id=album.gallery_id,
            parent_id=parent.id if parent is not None else None,
            title=album.title,
            directory_name=album.directory_name,
            summary=album.summary,
            thumbnail_media_object_id=album.thumbnail_media_object_id,
            sequence=album.sequence,
            is_private=album.is_private,
            date_start=album.date_start,
            date_end=album.date_end,
            owner_user_name=album.owner_user_name,
            created_by=album.created_by,
            date_added=album.date_added,
            last_modified_by=album.last_modified_by,
            date_last_modified=album.date_last_modified,
        )


@dataclass
class MediaObjectRecord:
    """
    Stored state of a media object and its three display objects.

    The variant to construct comes from gallery_object_type, a
    GalleryObjectType value.
    """
    id: Optional[int]
    album_id: int
    gallery_object_type: str
    title: str = ""
    hash_key: str = ""
    thumbnail_file_name: str = ""
    thumbnail_width: int = 0
    thumbnail_height: int = 0
    thumbnail_size_kb: int = 0
    optimized_file_name: str = ""
    optimized_width: int = 0
    optimized_height: int = 0
    optimized_size_kb: int = 0
    original_file_name: str = ""
    original_width: int = 0
    original_height: int = 0
    original_size_kb: int = 0
    external_html_source: str = ""
    external_category: str = MimeTypeCategory.NOT_SET.value
    sequence: int = 0
    is_private: bool = False
    created_by: str = ""
    date_added: Optional[datetime] = None
    last_modified_by: str = ""
    date_last_modified: Optional[datetime] = None
    metadata: List[MetadataRecord] = field(default_factory=list)

    @property
    def object_type(self) -> GalleryObjectType:
        return GalleryObjectType(self.gallery_object_type)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['date_added'] = format_timestamp(self.date_added)
        data['date_last_modified'] = format_timestamp(self.date_last_modified)
        data['metadata'] = [item.to_dict() for item in self.metadata]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'MediaObjectRecord':
        data = dict(data)
        data['date_added'] = parse_timestamp(data.get('date_added'))
        data['date_last_modified'] = parse_timestamp(data.get('date_last_modified'))
        data['is_private'] = bool(data.get('is_private', False))
        data['metadata'] = [MetadataRecord.from_dict(item) for item in data.get('metadata') or []]
        return cls(**data)

    @classmethod
    def from_media_object(cls, obj) -> 'MediaObjectRecord':
        thumbnail, optimized, original = obj.thumbnail, obj.optimized, obj.original
        return cls(
            id=obj.id,
            album_id=obj.parent.id,
            gallery_object_type=obj.object_type.value,
            title=obj.title,
            hash_key=obj.hash_key,
            thumbnail_file_name=thumbnail.file_name,
            thumbnail_width=thumbnail.width,
            thumbnail_height=thumbnail.height,
            thumbnail_size_kb=thumbnail.size_kb,
            optimized_file_name=optimized.file_name,
            optimized_width=optimized.width,
            optimized_height=optimized.height,
            optimized_size_kb=optimized.size_kb,
            original_file_name=original.file_name,
            original_width=original.width,
            original_height=original.height,
            original_size_kb=original.size_kb,
            external_html_source=original.external_html_source or "",
            external_category=original.external_category.value,
            sequence=obj.sequence,
            is_private=obj.is_private,
            created_by=obj.created_by,
            date_added=obj.date_added,
            last_modified_by=obj.last_modified_by,
            date_last_modified=obj.date_last_modified,
            metadata=[MetadataRecord.from_item(item, obj.id) for item in obj.metadata],
        )


def apply_display_fields(display, file_name: str, width: int, height: int, size_kb: int, media_object_id) -> None:
    # Null stand-ins never carry a file
    if display.is_null:
        return
    display.file_name = file_name or ""
    display.width = width or 0
    display.height = height or 0
    display.size_kb = size_kb or 0
    display.media_object_id = media_object_id


def apply_media_object_record(obj, record: MediaObjectRecord) -> None:
    """Populate a media object from its stored record; the object is inflated afterwards."""
    obj._id = record.id
    obj._title = record.title or ""
    obj._sequence = record.sequence or 0
    obj._is_private = bool(record.is_private)
    obj.hash_key = record.hash_key or ""
    obj.created_by = record.created_by
    obj.date_added = record.date_added
    obj.last_modified_by = record.last_modified_by
    obj.date_last_modified = record.date_last_modified

    apply_display_fields(obj.thumbnail, record.thumbnail_file_name, record.thumbnail_width,
                         record.thumbnail_height, record.thumbnail_size_kb, record.id)
    apply_display_fields(obj.optimized, record.optimized_file_name, record.optimized_width,
                         record.optimized_height, record.optimized_size_kb, record.id)
    apply_display_fields(obj.original, record.original_file_name, record.original_width,
                         record.original_height, record.original_size_kb, record.id)
    obj.original.external_html_source = record.external_html_source or ""
    if record.external_category:
        obj.original.external_category = MimeTypeCategory(record.external_category)

    obj.metadata.clear()
    for item in record.metadata:
        try:
            name = MetadataItemName(item.name)
        except ValueError:
            logger.warning(f"Ignoring unknown metadata item '{item.name}' of media object {record.id}")
            continue
        obj.metadata.add(MetadataItem(name, item.value, item.description or None, id=item.id, has_changes=False))

    obj.is_inflated = True
    obj.has_changes = False


def apply_album_record(album, record: AlbumRecord) -> None:
    """Populate an album from its stored record."""
    album._id = record.id
    album._title = record.title or ""
    album._directory_name = record.directory_name or ""
    album._sequence = record.sequence or 0
    album._is_private = bool(record.is_private)
    album.summary = record.summary or ""
    album._thumbnail_media_object_id = record.thumbnail_media_object_id or 0
    album.date_start = record.date_start
    album.date_end = record.date_end
    album.owner_user_name = record.owner_user_name or ""
    album.created_by = record.created_by
    album.date_added = record.date_added
    album.last_modified_by = record.last_modified_by
    album.date_last_modified = record.date_last_modified
    album.is_inflated = True
    album.has_changes = False
