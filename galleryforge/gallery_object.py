"""
GalleryObject - Base class of albums and media objects.
"""

import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from .exceptions import BusinessError, InvalidGalleryObjectError
from .metadata import MetadataItemCollection, MetadataItemName

# Template placeholders such as {Title} or {DatePictureTaken}
TITLE_PLACEHOLDER = re.compile(r"\{(\w+)\}")

MAX_TITLE_LENGTH = 1000

# DateLastModified must be this recent when an object with changes is saved
AUDIT_WINDOW = timedelta(minutes=10)


class GalleryObjectType(Enum):
    ALBUM = 'album'
    IMAGE = 'image'
    VIDEO = 'video'
    AUDIO = 'audio'
    GENERIC = 'generic'
    EXTERNAL = 'external'

    @property
    def is_media_object(self) -> bool:
        return self != GalleryObjectType.ALBUM


class GalleryObject:
    """
    Shared state and save/delete flow of albums and media objects.

    An object is new while its id is None. The first successful save assigns
    the persisted id through ``finalize_artifacts``; after that the object is
    never new again.

    Subclasses set ``object_type`` and provide ``persist_record``.

    Attributes:
        parent: Album containing this object; None only for the root album
        context: Gallery settings and collaborators
        sequence: Position among siblings, 0 until assigned
        has_changes: True when there are unsaved changes
        is_inflated: True when every property has been loaded
        is_writable: False for read-only copies
        regenerate_thumbnail_on_save: Force the thumbnail to be recreated
        regenerate_optimized_on_save: Force the optimized image to be recreated
    """

    object_type: GalleryObjectType = None

    def __init__(
        self,
        parent=None,
        context=None,
        id: Optional[int] = None,
        title: str = "",
        sequence: int = 0,
        is_private: bool = False,
        created_by: str = "",
        date_added: Optional[datetime] = None,
        last_modified_by: str = "",
        date_last_modified: Optional[datetime] = None,
        hash_key: str = "",
        is_inflated: bool = True
    ):
        if context is None:
            if parent is None:
                raise ValueError("A gallery object requires a parent album or a gallery context")
            context = parent.context

        self.context = context
        self.parent = parent
        self._id = id
        self._title = title
        self._sequence = sequence
        self._is_private = is_private
        self.created_by = created_by
        self.date_added = date_added
        self.last_modified_by = last_modified_by
        self.date_last_modified = date_last_modified
        self.hash_key = hash_key
        self.is_inflated = is_inflated
        self.is_writable = True
        self.has_changes = False
        self._rotation = 0
        self._regenerate_thumbnail_on_save = False
        self._regenerate_optimized_on_save = False
        self.metadata = MetadataItemCollection()
        self.thumbnail = None
        self.optimized = None
        self.original = None
        self.save_behavior = None
        self.delete_behavior = None

    @property
    def id(self) -> Optional[int]:
        return self._id

    @property
    def is_new(self) -> bool:
        return self._id is None

    @property
    def settings(self):
        return self.context.settings

    @property
    def gallery_id(self) -> int:
        return self.context.gallery_id

    @property
    def data_provider(self):
        return self.context.data_provider

    @property
    def album_physical_path(self) -> str:
        """Directory of the album that holds this object's original file."""
        return self.parent.full_physical_path

    @property
    def title(self) -> str:
        return self._title

    @title.setter
    def title(self, value: str) -> None:
        value = self.validate_title(value)
        if value != self._title:
            self._title = value
            self.has_changes = True

    @property
    def sequence(self) -> int:
        return self._sequence

    @sequence.setter
    def sequence(self, value: int) -> None:
        if value != self._sequence:
            self._sequence = value
            self.has_changes = True

    @property
    def is_private(self) -> bool:
        return self._is_private

    @is_private.setter
    def is_private(self, value: bool) -> None:
        if value != self._is_private:
            self._is_private = value
            self.has_changes = True

    @property
    def rotation(self) -> int:
        """Pending clockwise rotation in degrees (0, 90, 180 or 270), consumed by save."""
        return self._rotation

    @rotation.setter
    def rotation(self, degrees: int) -> None:
        degrees = degrees % 360
        if degrees not in (0, 90, 180, 270):
            raise ValueError(f"Rotation must be a multiple of 90 degrees (got {degrees})")
        if degrees != self._rotation:
            self._rotation = degrees
            # Rotating rewrites the file, so its size and dates change
            self.metadata.refresh_file_metadata_on_save = True
            self.has_changes = True

    @property
    def regenerate_thumbnail_on_save(self) -> bool:
        return self._regenerate_thumbnail_on_save

    @regenerate_thumbnail_on_save.setter
    def regenerate_thumbnail_on_save(self, value: bool) -> None:
        # A forced regeneration must reach the save behavior
        if value != self._regenerate_thumbnail_on_save:
            self._regenerate_thumbnail_on_save = value
            self.has_changes = True

    @property
    def regenerate_optimized_on_save(self) -> bool:
        return self._regenerate_optimized_on_save

    @regenerate_optimized_on_save.setter
    def regenerate_optimized_on_save(self, value: bool) -> None:
        if value != self._regenerate_optimized_on_save:
            self._regenerate_optimized_on_save = value
            self.has_changes = True

    @property
    def extract_metadata_on_save(self) -> bool:
        return self.metadata.extract_on_save

    @extract_metadata_on_save.setter
    def extract_metadata_on_save(self, value: bool) -> None:
        self.metadata.extract_on_save = value

    @property
    def mime_type(self):
        return self.original.mime_type if self.original is not None else None

    def validate_title(self, title: str) -> str:
        title = title or ""
        if len(title) > MAX_TITLE_LENGTH:
            title = title[:MAX_TITLE_LENGTH].strip()
        return title

    def set_title(self, template: str) -> None:
        """
        Assign the title from a template such as ``{Title}``.

        Each ``{Name}`` placeholder is replaced by the value of the metadata
        item of that name; unknown or missing items become empty. The title
        is only changed when the result is not empty.
        """
        if not template:
            return

        def replace(match) -> str:
            try:
                name = MetadataItemName(match.group(1))
            except ValueError:
                return ""
            return self.metadata.value_of(name)

        title = TITLE_PLACEHOLDER.sub(replace, template).strip()
        if title:
            self.title = title

    def update_audit_fields(self, user_name: str, now: Optional[datetime] = None) -> None:
        """Stamp the created/modified audit fields for user_name."""
        now = now or datetime.now()
        if self.is_new and not self.created_by:
            self.created_by = user_name
            self.date_added = now
        self.last_modified_by = user_name
        self.date_last_modified = now

    def inflate(self) -> None:
        """Load the full property set from the backing store if it has not been loaded."""
        if not self.is_new and not self.is_inflated:
            self.load_from_store()
            if not self.is_inflated or self.has_changes:
                raise InvalidGalleryObjectError(
                    f"Inflating {self!r} left it in an inconsistent state "
                    f"(is_inflated={self.is_inflated}, has_changes={self.has_changes})",
                    self.id,
                )

    def load_from_store(self) -> None:
        raise NotImplementedError

    def save(self) -> None:
        """
        Validate, generate artifacts and persist this object.

        Raises:
            InvalidGalleryObjectError: If an existing object has not been inflated
            BusinessError: If the object is read-only or its audit fields are unset
        """
        self.validate_save()

        if self.is_new or self.has_changes:
            self.save_behavior.save()

        self.has_changes = False
        self._rotation = 0
        self._regenerate_thumbnail_on_save = False
        self._regenerate_optimized_on_save = False
        self.is_inflated = True

        self.validate_thumbnails_after_save()

    def persist_record(self) -> int:
        """Write this object to the backing store and return its id."""
        raise NotImplementedError

    def finalize_artifacts(self, object_id: int) -> None:
        """
        Complete a save once the record has been persisted.

        Assigns the persisted id on the first save, back-fills the display
        objects' owner id and releases the original's decoded bitmap.
        """
        if object_id is None:
            raise InvalidGalleryObjectError(f"The backing store returned no id for {self!r}")
        if self.is_new:
            self._id = object_id
        elif self._id != object_id:
            raise InvalidGalleryObjectError(
                f"Cannot change the id of {self!r} to {object_id}", self._id)

        for display in (self.thumbnail, self.optimized, self.original):
            if display is not None and display.media_object_id is None:
                display.media_object_id = self._id
        if self.original is not None:
            self.original.release()
        self.metadata.mark_saved()

    def validate_save(self) -> None:
        if not self.is_new and not self.is_inflated:
            raise InvalidGalleryObjectError(
                f"Cannot save {self!r} because it has not been inflated from the backing store", self.id)
        if not self.is_writable:
            raise BusinessError(f"This gallery object (ID {self.id}, {type(self).__name__}) is not updateable.")

        self.validate_sequence()
        self.check_for_thumbnail_image()
        self.check_for_optimized_image()
        self.validate_audit_fields()

    def validate_sequence(self) -> None:
        """Place a new object after its siblings."""
        if self.sequence == 0 and self.parent is not None:
            siblings = [child for child in self.parent.children if child is not self]
            self.sequence = max((child.sequence for child in siblings), default=0) + 1

    def check_for_thumbnail_image(self) -> None:
        if self.thumbnail is not None and not self.thumbnail.is_null and not self.thumbnail.exists():
            self.regenerate_thumbnail_on_save = True

    def check_for_optimized_image(self) -> None:
        """Only images have an optimized file to check."""

    def validate_audit_fields(self) -> None:
        if not self.created_by:
            raise BusinessError("created_by must be set to the current user before this object can be saved.")
        if self.date_added is None:
            raise BusinessError("date_added must be set before this object can be saved.")
        if not self.last_modified_by:
            raise BusinessError("last_modified_by must be set to the current user before this object can be saved.")
        if self.has_changes and (self.date_last_modified is None
                                 or self.date_last_modified < datetime.now() - AUDIT_WINDOW):
            raise BusinessError("date_last_modified must be set to the current date before this object can be saved.")

    def validate_thumbnails_after_save(self) -> None:
        """Give the parent album a thumbnail if it has none yet."""
        from .album import assign_album_thumbnail
        parent = self.parent
        if parent is not None and not parent.is_virtual and not parent.thumbnail_media_object_id:
            assign_album_thumbnail(parent, recurse_parents=True, user_name=self.last_modified_by)

    def delete(self, from_file_system: bool = True) -> None:
        """
        Delete this object from the gallery.

        Args:
            from_file_system: Also remove the files from disk
        """
        from .album import assign_album_thumbnail
        self.delete_behavior.delete(from_file_system)
        parent = self.parent
        if parent is not None:
            parent.remove(self)
            if not parent.is_virtual:
                assign_album_thumbnail(parent, recurse_parents=True, user_name=self.last_modified_by)

    def delete_from_gallery(self) -> None:
        """Delete the record but leave the files on disk."""
        self.delete(from_file_system=False)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, title={self.title!r})"
