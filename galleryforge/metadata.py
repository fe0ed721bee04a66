"""
Metadata items attached to a media object.
"""

from enum import Enum
from typing import Iterator, List, Optional


class MetadataItemName(Enum):
    """Closed set of metadata item names, in display order."""
    TITLE = 'Title'
    DESCRIPTION = 'Description'
    SUBJECT = 'Subject'
    AUTHOR = 'Author'
    COPYRIGHT = 'Copyright'
    COMMENT = 'Comment'
    KEYWORDS = 'Keywords'
    RATING = 'Rating'
    DATE_PICTURE_TAKEN = 'DatePictureTaken'
    CAMERA_MODEL = 'CameraModel'
    EQUIPMENT_MANUFACTURER = 'EquipmentManufacturer'
    DIMENSIONS = 'Dimensions'
    WIDTH = 'Width'
    HEIGHT = 'Height'
    HORIZONTAL_RESOLUTION = 'HorizontalResolution'
    VERTICAL_RESOLUTION = 'VerticalResolution'
    COLOR_REPRESENTATION = 'ColorRepresentation'
    EXPOSURE_COMPENSATION = 'ExposureCompensation'
    EXPOSURE_PROGRAM = 'ExposureProgram'
    EXPOSURE_TIME = 'ExposureTime'
    FLASH_MODE = 'FlashMode'
    F_NUMBER = 'FNumber'
    FOCAL_LENGTH = 'FocalLength'
    ISO_SPEED = 'IsoSpeed'
    LENS_APERTURE = 'LensAperture'
    LIGHT_SOURCE = 'LightSource'
    METERING_MODE = 'MeteringMode'
    SUBJECT_DISTANCE = 'SubjectDistance'
    DURATION = 'Duration'
    BIT_RATE = 'BitRate'
    AUDIO_FORMAT = 'AudioFormat'
    VIDEO_FORMAT = 'VideoFormat'
    GPS_VERSION = 'GpsVersion'
    GPS_LOCATION = 'GpsLocation'
    GPS_LATITUDE = 'GpsLatitude'
    GPS_LONGITUDE = 'GpsLongitude'
    GPS_ALTITUDE = 'GpsAltitude'
    GPS_DEST_LOCATION = 'GpsDestLocation'
    GPS_DEST_LATITUDE = 'GpsDestLatitude'
    GPS_DEST_LONGITUDE = 'GpsDestLongitude'
    IPTC_BYLINE = 'IptcByline'
    IPTC_BYLINE_TITLE = 'IptcBylineTitle'
    IPTC_CAPTION = 'IptcCaption'
    IPTC_CITY = 'IptcCity'
    IPTC_COPYRIGHT_NOTICE = 'IptcCopyrightNotice'
    IPTC_COUNTRY_PRIMARY_LOCATION_NAME = 'IptcCountryPrimaryLocationName'
    IPTC_CREDIT = 'IptcCredit'
    IPTC_DATE_CREATED = 'IptcDateCreated'
    IPTC_HEADLINE = 'IptcHeadline'
    IPTC_KEYWORDS = 'IptcKeywords'
    IPTC_OBJECT_NAME = 'IptcObjectName'
    IPTC_ORIGINAL_TRANSMISSION_REFERENCE = 'IptcOriginalTransmissionReference'
    IPTC_PROVINCE_STATE = 'IptcProvinceState'
    IPTC_RECORD_VERSION = 'IptcRecordVersion'
    IPTC_SOURCE = 'IptcSource'
    IPTC_SPECIAL_INSTRUCTIONS = 'IptcSpecialInstructions'
    IPTC_SUBLOCATION = 'IptcSublocation'
    IPTC_WRITER_EDITOR = 'IptcWriterEditor'
    FILE_NAME = 'FileName'
    FILE_NAME_WITHOUT_EXTENSION = 'FileNameWithoutExtension'
    FILE_SIZE_KB = 'FileSizeKb'
    DATE_FILE_CREATED = 'DateFileCreated'
    DATE_FILE_CREATED_UTC = 'DateFileCreatedUtc'
    DATE_FILE_LAST_MODIFIED = 'DateFileLastModified'
    DATE_FILE_LAST_MODIFIED_UTC = 'DateFileLastModifiedUtc'


FILE_METADATA_ITEM_NAMES = (
    MetadataItemName.DATE_FILE_CREATED,
    MetadataItemName.DATE_FILE_CREATED_UTC,
    MetadataItemName.DATE_FILE_LAST_MODIFIED,
    MetadataItemName.DATE_FILE_LAST_MODIFIED_UTC,
    MetadataItemName.FILE_NAME,
    MetadataItemName.FILE_NAME_WITHOUT_EXTENSION,
    MetadataItemName.FILE_SIZE_KB,
)

DESCRIPTIONS = {
    MetadataItemName.FILE_SIZE_KB: 'File size',
    MetadataItemName.FILE_NAME_WITHOUT_EXTENSION: 'File name',
    MetadataItemName.F_NUMBER: 'F-stop',
    MetadataItemName.ISO_SPEED: 'ISO speed',
    MetadataItemName.GPS_VERSION: 'GPS version',
    MetadataItemName.GPS_LOCATION: 'GPS location',
    MetadataItemName.GPS_LATITUDE: 'GPS latitude',
    MetadataItemName.GPS_LONGITUDE: 'GPS longitude',
    MetadataItemName.GPS_ALTITUDE: 'GPS altitude',
    MetadataItemName.GPS_DEST_LOCATION: 'GPS destination location',
    MetadataItemName.GPS_DEST_LATITUDE: 'GPS destination latitude',
    MetadataItemName.GPS_DEST_LONGITUDE: 'GPS destination longitude',
}


def describe(name: MetadataItemName) -> str:
    """Human readable description of a metadata item name."""
    if name in DESCRIPTIONS:
        return DESCRIPTIONS[name]
    words = []
    for ch in name.value:
        if ch.isupper() and words:
            words.append(' ')
        words.append(ch)
    return ''.join(words).capitalize()


class MetadataItem:
    """
    One descriptive (name, value) pair of a media object.

    Attributes:
        id: Persisted id, None until saved
        name: Item name
        description: Display label
        value: Item value
        has_changes: True when the value differs from the persisted one
        extract_from_file_on_save: Re-read the value from the file on next save
        is_visible: Whether the item is shown to users
    """

    def __init__(
        self,
        name: MetadataItemName,
        value: str,
        description: Optional[str] = None,
        id: Optional[int] = None,
        has_changes: bool = True,
        is_visible: bool = True
    ):
        self.id = id
        self.name = name
        self.description = description if description is not None else describe(name)
        self._value = value
        self.has_changes = has_changes
        self.extract_from_file_on_save = False
        self.is_visible = is_visible

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, value: str) -> None:
        if value != self._value:
            self._value = value
            self.has_changes = True

    def copy(self) -> 'MetadataItem':
        item = MetadataItem(self.name, self._value, self.description, self.id, self.has_changes, self.is_visible)
        item.extract_from_file_on_save = self.extract_from_file_on_save
        return item

    def __repr__(self) -> str:
        return f"MetadataItem({self.name.value}={self._value!r})"


class MetadataItemCollection:
    """
    Ordered metadata items, unique by name.
    """

    def __init__(self, items: Optional[List[MetadataItem]] = None):
        self._items: List[MetadataItem] = []
        self._extract_on_save_when_empty: Optional[bool] = None
        for item in items or []:
            self.add(item)

    def __iter__(self) -> Iterator[MetadataItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: MetadataItemName) -> bool:
        return self.get(name) is not None

    def get(self, name: MetadataItemName) -> Optional[MetadataItem]:
        for item in self._items:
            if item.name == name:
                return item
        return None

    def value_of(self, name: MetadataItemName, default: str = '') -> str:
        item = self.get(name)
        return item.value if item else default

    def add(self, item: MetadataItem) -> bool:
        """Add item unless one with the same name exists. Returns True if added."""
        if item is None or item.name in self:
            return False
        self._items.append(item)
        return True

    def add_new(
        self,
        name: MetadataItemName,
        value: str,
        description: Optional[str] = None,
        has_changes: bool = True
    ) -> MetadataItem:
        """Create and add an item, or update the value of the existing one."""
        existing = self.get(name)
        if existing is not None:
            existing.value = value
            return existing
        item = MetadataItem(name, value, description, has_changes=has_changes)
        self._items.append(item)
        return item

    def add_range(self, items: 'MetadataItemCollection') -> None:
        for item in items:
            self.add(item)

    def remove(self, name: MetadataItemName) -> None:
        self._items = [item for item in self._items if item.name != name]

    def clear(self) -> None:
        self._items.clear()

    def copy(self) -> 'MetadataItemCollection':
        return MetadataItemCollection([item.copy() for item in self._items])

    def items_to_update(self) -> List[MetadataItem]:
        """Items flagged for re-extraction from the file."""
        return [item for item in self._items if item.extract_from_file_on_save]

    def items_to_save(self) -> List[MetadataItem]:
        """Items whose value changed since they were loaded."""
        return [item for item in self._items if item.has_changes]

    def visible_items(self) -> List[MetadataItem]:
        return [item for item in self._items if item.is_visible]

    def mark_saved(self) -> None:
        for item in self._items:
            item.has_changes = False
            item.extract_from_file_on_save = False

    @property
    def extract_on_save(self) -> bool:
        """True when every item is flagged for re-extraction."""
        if self._items:
            return all(item.extract_from_file_on_save for item in self._items)
        return bool(self._extract_on_save_when_empty)

    @extract_on_save.setter
    def extract_on_save(self, value: bool) -> None:
        if self._items:
            for item in self._items:
                item.extract_from_file_on_save = value
        else:
            self._extract_on_save_when_empty = value

    @property
    def refresh_file_metadata_on_save(self) -> bool:
        """True when any file-derived item is flagged for re-extraction."""
        return any(
            item.extract_from_file_on_save and item.name in FILE_METADATA_ITEM_NAMES
            for item in self._items
        )

    @refresh_file_metadata_on_save.setter
    def refresh_file_metadata_on_save(self, value: bool) -> None:
        for name in FILE_METADATA_ITEM_NAMES:
            item = self.get(name)
            if item is not None:
                item.extract_from_file_on_save = value
