"""
DisplayObject - One on-disk representation (thumbnail, optimized, original) of a gallery object.
"""

import os
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image

from .exceptions import BusinessError, InvalidGalleryObjectError
from .image_helper import open_bitmap
from .mime_types import MimeType, MimeTypeCategory
from .paths import is_same_directory


class DisplayObjectType(Enum):
    THUMBNAIL = 'thumbnail'
    OPTIMIZED = 'optimized'
    ORIGINAL = 'original'


class ArtifactStatus(Enum):
    # File written (or replaced) on disk
    GENERATED = 'generated'
    # Fields copied from another display object; no file I/O
    MIRRORED = 'mirrored'
    # Nothing to do
    UNCHANGED = 'unchanged'


@dataclass
class ArtifactResult:
    """
    Outcome of a creator run for one display object.

    Attributes:
        status: What the creator did
        file_name: File name of the artifact
        width: Width in pixels
        height: Height in pixels
        size_kb: File size in KB
    """
    status: ArtifactStatus
    file_name: str = ""
    width: int = 0
    height: int = 0
    size_kb: int = 0

    @classmethod
    def unchanged(cls) -> 'ArtifactResult':
        return cls(ArtifactStatus.UNCHANGED)

    @property
    def changed(self) -> bool:
        return self.status != ArtifactStatus.UNCHANGED


class DisplayObject:
    """
    A thumbnail, optimized or original representation of a gallery object.

    The physical path is never stored: it is derived from the parent
    object's album directory and the gallery's cache roots every time it is
    read, so moving or renaming an album moves its display objects with it.

    Attributes:
        display_type: Role of this representation
        creator: Strategy that generates the file
        file_name: File name (no directory); empty when there is no file
        width: Width in pixels
        height: Height in pixels
        size_kb: File size in KB
        media_object_id: ID of the owning media object, None until saved
        temp_file_path: Intermediate JPEG produced by an external tool
        is_null: True for a stand-in that never touches the disk
    """

    def __init__(
        self,
        parent,
        display_type: DisplayObjectType,
        creator,
        file_name: str = "",
        width: int = 0,
        height: int = 0,
        size_kb: int = 0,
        media_object_id: Optional[int] = None,
        is_null: bool = False
    ):
        if parent is None:
            raise ValueError("A display object requires a parent gallery object")

        # The parent owns its display objects; keep only a weak back-reference
        self._parent = weakref.ref(parent)
        self.display_type = display_type
        self.creator = creator
        self.file_name = file_name
        self.width = width
        self.height = height
        self.size_kb = size_kb
        self.media_object_id = media_object_id
        self.is_null = is_null
        self.temp_file_path = ""
        self.external_html_source = ""
        self.external_category = MimeTypeCategory.NOT_SET
        self._directory_override: Optional[str] = None
        self._bitmap: Optional[Image.Image] = None

    @classmethod
    def null(cls, parent, display_type: DisplayObjectType) -> 'DisplayObject':
        """A display object that performs no I/O and occupies no disk slot."""
        from .creators import NullDisplayObjectCreator
        return cls(parent, display_type, NullDisplayObjectCreator(), is_null=True)

    @property
    def parent(self):
        parent = self._parent()
        if parent is None:
            raise InvalidGalleryObjectError("The gallery object owning this display object no longer exists")
        return parent

    @property
    def directory(self) -> str:
        """Directory holding the file, derived from the parent album."""
        if self._directory_override is not None:
            return self._directory_override

        parent = self.parent
        album_path = parent.album_physical_path
        settings = parent.settings

        if self.display_type == DisplayObjectType.THUMBNAIL:
            return settings.thumbnail_directory_for(album_path)
        if self.display_type == DisplayObjectType.OPTIMIZED:
            # No separate optimized file: the optimized object points at the original
            if self.file_name and self.file_name == parent.original.file_name:
                return album_path
            return settings.optimized_directory_for(album_path)
        return album_path

    @property
    def physical_path(self) -> str:
        if self.is_null or not self.file_name:
            return ""
        return os.path.join(self.directory, self.file_name)

    def exists(self) -> bool:
        path = self.physical_path
        return bool(path) and os.path.exists(path)

    def set_physical_path(self, path: str) -> None:
        """Point this display object at an explicit file, outside the derived location."""
        if not path:
            self._directory_override = None
            self.file_name = ""
            return
        self._directory_override = os.path.dirname(path)
        self.file_name = os.path.basename(path)

    def set_original_file(self, file_path: str) -> None:
        """
        Assign the source file of an original display object.

        Raises:
            BusinessError: If the file is not located in the parent album's directory
        """
        directory = os.path.dirname(os.path.abspath(file_path))
        if not is_same_directory(directory, self.parent.album_physical_path):
            raise BusinessError(
                f"The file {file_path} must be located in the album directory "
                f"{self.parent.album_physical_path}"
            )
        self.release()
        self.file_name = os.path.basename(file_path)

    @property
    def mime_type(self) -> Optional[MimeType]:
        return MimeType.load(self.file_name) if self.file_name else None

    @property
    def bitmap(self) -> Image.Image:
        """
        Decoded bitmap of the file, opened on first access.

        Raises:
            UnsupportedImageTypeError: If the file cannot be decoded
        """
        if self._bitmap is None:
            self._bitmap = open_bitmap(self.physical_path)
        return self._bitmap

    @property
    def has_bitmap(self) -> bool:
        return self._bitmap is not None

    def replace_bitmap(self, bitmap: Optional[Image.Image]) -> None:
        if self._bitmap is not None and self._bitmap is not bitmap:
            self._bitmap.close()
        self._bitmap = bitmap

    def release(self) -> None:
        """Close the decoded bitmap, if any."""
        self.replace_bitmap(None)

    def generate_and_save_file(self) -> ArtifactResult:
        """Run the creator for this display object and apply its result."""
        result = self.creator.generate(self.parent)
        self.apply(result)
        return result

    def apply(self, result: ArtifactResult) -> None:
        if not result.changed:
            return
        self.file_name = result.file_name
        self.width = result.width
        self.height = result.height
        self.size_kb = result.size_kb
        self.parent.has_changes = True

    def mirror(self, other: 'DisplayObject') -> ArtifactResult:
        """Copy file name, dimensions and size from another display object."""
        return ArtifactResult(
            ArtifactStatus.MIRRORED,
            file_name=other.file_name,
            width=other.width,
            height=other.height,
            size_kb=other.size_kb,
        )

    def __repr__(self) -> str:
        return (f"DisplayObject({self.display_type.value}, {self.file_name!r}, "
                f"{self.width}x{self.height}, {self.size_kb} KB)")
