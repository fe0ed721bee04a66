"""
MIME type lookup by file extension.
"""

import mimetypes
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class MimeTypeCategory(Enum):
    NOT_SET = 'not_set'
    OTHER = 'other'
    IMAGE = 'image'
    VIDEO = 'video'
    AUDIO = 'audio'


# Formats missing from the platform MIME table
_EXTRA_TYPES = {
    '.psd': 'image/psd',
    '.eps': 'image/eps',
    '.cr2': 'image/x-canon-cr2',
    '.crw': 'image/x-canon-crw',
    '.nef': 'image/x-nikon-nef',
    '.dng': 'image/x-adobe-dng',
    '.arw': 'image/x-sony-arw',
    '.orf': 'image/x-olympus-orf',
    '.raf': 'image/x-fuji-raf',
    '.heic': 'image/heic',
    '.webp': 'image/webp',
    '.tga': 'image/x-targa',
    '.flv': 'video/x-flv',
    '.m4v': 'video/x-m4v',
    '.mkv': 'video/x-matroska',
    '.wmv': 'video/x-ms-wmv',
    '.mts': 'video/mp2t',
    '.3gp': 'video/3gpp',
    '.wma': 'audio/x-ms-wma',
    '.m4a': 'audio/mp4',
    '.flac': 'audio/flac',
    '.ogg': 'audio/ogg',
    '.docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    '.pptx': 'application/vnd.openxmlformats-officedocument.presentationml.presentation',
}

_CATEGORIES = {
    'image': MimeTypeCategory.IMAGE,
    'video': MimeTypeCategory.VIDEO,
    'audio': MimeTypeCategory.AUDIO,
}


@dataclass(frozen=True)
class MimeType:
    """
    A MIME type resolved from a file extension.

    Attributes:
        extension: Lower-case extension including the dot
        full_type: e.g. 'image/jpeg'
    """
    extension: str
    full_type: str

    @property
    def major_type(self) -> str:
        return self.full_type.split('/', 1)[0]

    @property
    def subtype(self) -> str:
        return self.full_type.split('/', 1)[1] if '/' in self.full_type else ''

    @property
    def category(self) -> MimeTypeCategory:
        return _CATEGORIES.get(self.major_type, MimeTypeCategory.OTHER)

    @classmethod
    def load(cls, file_name: str) -> Optional['MimeType']:
        """Return the MIME type for file_name, or None for an unknown extension."""
        extension = os.path.splitext(file_name)[1].lower()
        if not extension:
            return None
        full_type = _EXTRA_TYPES.get(extension)
        if full_type is None:
            full_type, _ = mimetypes.guess_type(f"file{extension}", strict=False)
        if full_type is None:
            return None
        return cls(extension=extension, full_type=full_type)


def get_category(file_name: str) -> MimeTypeCategory:
    """Category of a file name, NOT_SET when the extension is unknown."""
    mime_type = MimeType.load(file_name)
    return mime_type.category if mime_type else MimeTypeCategory.NOT_SET
