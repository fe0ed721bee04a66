"""
Album - A gallery object backed by a directory.
"""

import os
import threading
from datetime import datetime
from typing import List, Optional

from .display_object import DisplayObject, DisplayObjectType
from .creators import NullDisplayObjectCreator
from .exceptions import BusinessError, InvalidGalleryObjectError
from .file_names import MAX_FILE_NAME_LENGTH, clean_directory_name, validate_directory_name
from .gallery_object import GalleryObject, GalleryObjectType

MAX_ALBUM_TITLE_LENGTH = 200


class Album(GalleryObject):
    """
    A directory of media objects and child albums.

    The album's physical path is its parent's path plus its directory name;
    the root album maps to the gallery's media object path. A virtual album
    is an in-memory container that is never written anywhere.

    Attributes:
        summary: Album description
        date_start: Start of the period the album covers
        date_end: End of the period the album covers
        owner_user_name: User owning the album
    """

    object_type = GalleryObjectType.ALBUM

    def __init__(
        self,
        parent: Optional['Album'] = None,
        context=None,
        id: Optional[int] = None,
        title: str = "",
        directory_name: str = "",
        summary: str = "",
        thumbnail_media_object_id: int = 0,
        date_start: Optional[datetime] = None,
        date_end: Optional[datetime] = None,
        owner_user_name: str = "",
        is_virtual: bool = False,
        **kwargs
    ):
        super().__init__(parent=parent, context=context, id=id, title=title, **kwargs)
        self._directory_name = directory_name
        self.summary = summary
        self._thumbnail_media_object_id = thumbnail_media_object_id or 0
        self.date_start = date_start
        self.date_end = date_end
        self.owner_user_name = owner_user_name
        self._is_virtual = is_virtual

        self._children: List[GalleryObject] = []
        self._children_lock = threading.RLock()
        # A new album has nothing in the backing store to load
        self._children_loaded = self.is_new

        self._thumbnail = DisplayObject(self, DisplayObjectType.THUMBNAIL, NullDisplayObjectCreator())
        self._thumbnail_resolved_for: Optional[int] = None
        self.optimized = DisplayObject.null(self, DisplayObjectType.OPTIMIZED)
        self.original = DisplayObject.null(self, DisplayObjectType.ORIGINAL)

        from .save_behaviors import AlbumDeleteBehavior, AlbumSaveBehavior
        self.save_behavior = AlbumSaveBehavior(self)
        self.delete_behavior = AlbumDeleteBehavior(self)

        self._full_physical_path_on_disk = "" if self.is_new or is_virtual else self.full_physical_path
        self.has_changes = False

    @property
    def is_root_album(self) -> bool:
        return self.parent is None and not self._is_virtual

    @property
    def is_virtual(self) -> bool:
        return self._is_virtual

    @is_virtual.setter
    def is_virtual(self, value: bool) -> None:
        if value and not self.is_new:
            raise BusinessError("An existing album cannot be converted into a virtual album.")
        self._is_virtual = value

    @property
    def directory_name(self) -> str:
        return self._directory_name

    @directory_name.setter
    def directory_name(self, value: str) -> None:
        value = (value or "").strip()
        if value != self._directory_name:
            self._directory_name = value
            self.has_changes = True

    @property
    def full_physical_path(self) -> str:
        """Directory the album should live in."""
        if self.is_root_album:
            return self.settings.full_media_object_path
        if self._is_virtual:
            if self._directory_name:
                raise BusinessError(f"A virtual album cannot have a directory name ('{self._directory_name}').")
            return ""
        return os.path.join(self.parent.full_physical_path, self._directory_name)

    @property
    def full_physical_path_on_disk(self) -> str:
        """Directory the album currently lives in; empty until it has been created."""
        if self.is_root_album:
            return self.settings.full_media_object_path
        return self._full_physical_path_on_disk

    @property
    def album_physical_path(self) -> str:
        return self.full_physical_path

    @property
    def thumbnail_media_object_id(self) -> int:
        return self._thumbnail_media_object_id

    @thumbnail_media_object_id.setter
    def thumbnail_media_object_id(self, value: int) -> None:
        value = value or 0
        if value != self._thumbnail_media_object_id:
            self._thumbnail_media_object_id = value
            self.has_changes = True

    @property
    def thumbnail(self) -> DisplayObject:
        """Thumbnail of the media object chosen to represent the album."""
        if self._thumbnail_resolved_for != self._thumbnail_media_object_id:
            self.resolve_thumbnail()
        return self._thumbnail

    @thumbnail.setter
    def thumbnail(self, value: DisplayObject) -> None:
        if value is not None:
            self._thumbnail = value

    def resolve_thumbnail(self) -> None:
        media_object = None
        if self._thumbnail_media_object_id:
            media_object = self.find_media_object(self._thumbnail_media_object_id)

        if media_object is not None:
            source = media_object.thumbnail
            self._thumbnail.set_physical_path(source.physical_path)
            self._thumbnail.width = source.width
            self._thumbnail.height = source.height
            self._thumbnail.size_kb = source.size_kb
        else:
            self._thumbnail.set_physical_path("")
        self._thumbnail_resolved_for = self._thumbnail_media_object_id

    def validate_title(self, title: str) -> str:
        if title is None:
            raise ValueError("An album title cannot be None")
        if len(title) > MAX_ALBUM_TITLE_LENGTH:
            title = title[:MAX_ALBUM_TITLE_LENGTH].strip()
        return title

    @GalleryObject.title.setter
    def title(self, value: str) -> None:
        value = self.validate_title(value)
        if value == self._title:
            return
        self._title = value
        self.has_changes = True
        if (self.settings.synch_album_title_and_directory_name
                and not self.is_new and not self.is_root_album and not self._is_virtual):
            self.sync_directory_name_with_title()

    def sync_directory_name_with_title(self) -> None:
        """Rename the directory after the title; the move happens on save."""
        max_length = self.settings.default_album_directory_name_length
        # The album's own directory would otherwise count as a collision
        if clean_directory_name(self._title, max_length) == self._directory_name:
            return
        parent_path = self.parent.full_physical_path
        self.directory_name = validate_directory_name(
            parent_path, self._title, max_length,
            also_free_in=self.settings.cache_directories_for(parent_path))

    # Children

    @property
    def children(self) -> List[GalleryObject]:
        self.load_children()
        with self._children_lock:
            return list(self._children)

    def load_children(self) -> None:
        """Load child records from the backing store on first access."""
        if self._children_loaded:
            return
        with self._children_lock:
            if self._children_loaded:
                return
            if self.data_provider is not None:
                from .factory import load_album, load_media_object
                album_records, media_records = self.data_provider.album_child_records(self.id)
                for record in album_records:
                    self._children.append(load_album(record, self))
                for record in media_records:
                    self._children.append(load_media_object(record, self))
            self._children_loaded = True

    def get_children(
        self,
        object_type: Optional[GalleryObjectType] = None,
        media_objects_only: bool = False,
        sort_by_sequence: bool = False,
        exclude_private: bool = False
    ) -> List[GalleryObject]:
        """
        Child objects filtered by type.

        Args:
            object_type: Only children of this type
            media_objects_only: Only non-album children
            sort_by_sequence: Order by sequence
            exclude_private: Skip private children
        """
        children = self.children
        if object_type is not None:
            children = [c for c in children if c.object_type == object_type]
        if media_objects_only:
            children = [c for c in children if c.object_type.is_media_object]
        if exclude_private:
            children = [c for c in children if not c.is_private]
        if sort_by_sequence:
            children.sort(key=lambda c: c.sequence)
        return children

    @property
    def child_albums(self) -> List['Album']:
        return self.get_children(GalleryObjectType.ALBUM, sort_by_sequence=True)

    @property
    def media_objects(self) -> List[GalleryObject]:
        return self.get_children(media_objects_only=True, sort_by_sequence=True)

    def add(self, gallery_object: GalleryObject) -> None:
        """
        Add a child.

        A virtual album only collects the object; its real parent is kept so
        its file paths stay valid.
        """
        if gallery_object is None:
            raise ValueError("Cannot add None to an album")
        self.load_children()
        with self._children_lock:
            for child in self._children:
                if child is gallery_object or (
                        not child.is_new and child.id == gallery_object.id
                        and child.object_type == gallery_object.object_type):
                    return
            self._children.append(gallery_object)
        if not self._is_virtual:
            old_parent = gallery_object.parent
            if old_parent is not None and old_parent is not self:
                old_parent.remove(gallery_object)
            gallery_object.parent = self

    def remove(self, gallery_object: GalleryObject) -> None:
        with self._children_lock:
            self._children = [c for c in self._children if c is not gallery_object]

    def find_media_object(self, media_object_id: int):
        """Find a media object by id in this album or below it."""
        for child in self.children:
            if child.object_type.is_media_object:
                if child.id == media_object_id:
                    return child
            else:
                found = child.find_media_object(media_object_id)
                if found is not None:
                    return found
        return None

    # Save

    def check_for_thumbnail_image(self) -> None:
        """Album thumbnails belong to a media object; nothing to regenerate."""

    def validate_save(self) -> None:
        super().validate_save()
        if self.is_new:
            self.validate_directory_name()
            if not self.title and self.directory_name:
                self.title = self.directory_name

    def validate_sequence(self) -> None:
        if self.is_root_album or self._is_virtual:
            return
        super().validate_sequence()

    def validate_directory_name(self) -> None:
        if self.is_root_album or self._is_virtual:
            return
        if not self.directory_name:
            parent_path = self.parent.full_physical_path
            self.directory_name = validate_directory_name(
                parent_path,
                self.title,
                self.settings.default_album_directory_name_length,
                also_free_in=self.settings.cache_directories_for(parent_path),
            )
        if len(self.directory_name) > MAX_FILE_NAME_LENGTH:
            raise BusinessError(
                f"Invalid directory name. The maximum length for a directory name is {MAX_FILE_NAME_LENGTH} "
                f"characters, but one was specified that is {len(self.directory_name)} characters. "
                f"More info: album ID = {self.id}; album title = '{self.title}'"
            )

    def persist_record(self) -> int:
        if self.data_provider is None:
            raise BusinessError("Cannot save an album without a backing store")
        return self.data_provider.album_save(self)

    def finalize_artifacts(self, object_id: int) -> None:
        if object_id is None:
            raise InvalidGalleryObjectError(f"The backing store returned no id for {self!r}")
        if self.is_new:
            self._id = object_id
        self._full_physical_path_on_disk = self.full_physical_path
        self.relocate_child_albums_on_disk()

    def relocate_child_albums_on_disk(self) -> None:
        """Child directories moved with this album; follow them."""
        with self._children_lock:
            child_albums = [c for c in self._children if c.object_type == GalleryObjectType.ALBUM]
        for child in child_albums:
            if child._full_physical_path_on_disk:
                child._full_physical_path_on_disk = os.path.join(
                    self._full_physical_path_on_disk, os.path.basename(child._full_physical_path_on_disk))
                child.relocate_child_albums_on_disk()

    def load_from_store(self) -> None:
        from .records import apply_album_record
        record = self.data_provider.album_load(self.id) if self.data_provider else None
        if record is None:
            raise InvalidGalleryObjectError(f"No album with ID {self.id} exists in the backing store", self.id)
        apply_album_record(self, record)

    def validate_thumbnails_after_save(self) -> None:
        if self._is_virtual:
            return
        super().validate_thumbnails_after_save()

    def delete(self, from_file_system: bool = True) -> None:
        if self.is_root_album:
            raise BusinessError("The root album cannot be deleted.")
        super().delete(from_file_system)


def first_media_object_id(album: Album) -> int:
    """ID of the first saved media object in album, searching child albums when it has none."""
    for media_object in album.media_objects:
        # New objects met during synchronization have no id yet
        if not media_object.is_new:
            return media_object.id
    for child_album in album.child_albums:
        media_object_id = first_media_object_id(child_album)
        if media_object_id:
            return media_object_id
    return 0


def assign_album_thumbnail(
    album: Album,
    recurse_parents: bool = False,
    recurse_children: bool = False,
    user_name: str = ""
) -> None:
    """
    Give albums without a usable thumbnail the first media object they contain.

    Args:
        album: Album to check
        recurse_parents: Also check every ancestor album
        recurse_children: Also check every descendant album
        user_name: User recorded in the audit fields of updated albums
    """
    if album is None:
        raise ValueError("album is required")

    if not album.is_root_album and not album.is_virtual and not album.is_new and not album.thumbnail.exists():
        album.thumbnail_media_object_id = first_media_object_id(album)
        if album.has_changes:
            album.update_audit_fields(user_name or album.last_modified_by)
            album.save()

    if recurse_children:
        for child_album in album.child_albums:
            assign_album_thumbnail(child_album, recurse_children=True, user_name=user_name)

    if recurse_parents:
        parent = album.parent
        while parent is not None:
            assign_album_thumbnail(parent, user_name=user_name)
            parent = parent.parent


def create_virtual_album(context) -> Album:
    """An in-memory album used to group objects from different albums."""
    return Album(context=context, is_virtual=True)


