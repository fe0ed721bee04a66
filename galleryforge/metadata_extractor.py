"""
MetadataExtractor - Reads descriptive metadata from media files.

Image metadata comes from Pillow's EXIF, GPS and IPTC readers; video and
audio metadata is parsed out of FFmpeg's textual stream description. Fields
that are absent or unreadable are omitted.
"""

import logging
import os
import re
import struct
from datetime import datetime, timezone
from fractions import Fraction
from typing import Callable, Dict, Optional, Tuple

from PIL import Image, IptcImagePlugin, UnidentifiedImageError

from .exceptions import UnsupportedImageTypeError
from .metadata import MetadataItemCollection, MetadataItemName as N
from .mime_types import MimeTypeCategory

IFD_EXIF = 0x8769
IFD_GPS = 0x8825

# IFD0 tags
TAG_IMAGE_DESCRIPTION = 0x010E
TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_X_RESOLUTION = 0x011A
TAG_Y_RESOLUTION = 0x011B
TAG_RESOLUTION_UNIT = 0x0128
TAG_ARTIST = 0x013B
TAG_RATING = 0x4746
TAG_COPYRIGHT = 0x8298
TAG_XP_TITLE = 0x9C9B
TAG_XP_COMMENT = 0x9C9C
TAG_XP_AUTHOR = 0x9C9D
TAG_XP_KEYWORDS = 0x9C9E
TAG_XP_SUBJECT = 0x9C9F

# Exif sub-IFD tags
TAG_EXPOSURE_TIME = 0x829A
TAG_F_NUMBER = 0x829D
TAG_EXPOSURE_PROGRAM = 0x8822
TAG_ISO_SPEED = 0x8827
TAG_DATE_TIME_ORIGINAL = 0x9003
TAG_APERTURE_VALUE = 0x9202
TAG_EXPOSURE_BIAS = 0x9204
TAG_SUBJECT_DISTANCE = 0x9206
TAG_METERING_MODE = 0x9207
TAG_LIGHT_SOURCE = 0x9208
TAG_FLASH = 0x9209
TAG_FOCAL_LENGTH = 0x920A
TAG_USER_COMMENT = 0x9286
TAG_COLOR_SPACE = 0xA001

EXPOSURE_PROGRAMS = {
    1: 'Manual', 2: 'Normal', 3: 'Aperture priority', 4: 'Shutter priority',
    5: 'Creative', 6: 'Action', 7: 'Portrait', 8: 'Landscape',
}

METERING_MODES = {
    1: 'Average', 2: 'Center weighted average', 3: 'Spot', 4: 'Multi-spot',
    5: 'Pattern', 6: 'Partial', 255: 'Other',
}

LIGHT_SOURCES = {
    1: 'Daylight', 2: 'Fluorescent', 3: 'Tungsten', 4: 'Flash', 9: 'Fine weather',
    10: 'Cloudy weather', 11: 'Shade', 12: 'Daylight fluorescent', 13: 'Day white fluorescent',
    14: 'Cool white fluorescent', 15: 'White fluorescent', 17: 'Standard light A',
    18: 'Standard light B', 19: 'Standard light C', 20: 'D55', 21: 'D65', 22: 'D75',
    23: 'D50', 24: 'ISO studio tungsten', 255: 'Other',
}

FLASH_MODES = {
    0x00: 'No flash', 0x01: 'Flash fired', 0x05: 'Flash fired, return not detected',
    0x07: 'Flash fired, return detected', 0x09: 'Flash fired, compulsory',
    0x10: 'Flash did not fire, compulsory', 0x18: 'Flash did not fire, auto',
    0x19: 'Flash fired, auto', 0x20: 'No flash function', 0x41: 'Flash fired, red-eye reduction',
    0x59: 'Flash fired, auto, red-eye reduction',
}

COLOR_SPACES = {1: 'sRGB', 0xFFFF: 'Uncalibrated'}

RESOLUTION_UNITS = {2: 'dpi', 3: 'dpcm'}

# IPTC record 2 datasets
IPTC_DATASETS: Dict[N, int] = {
    N.IPTC_RECORD_VERSION: 0,
    N.IPTC_OBJECT_NAME: 5,
    N.IPTC_KEYWORDS: 25,
    N.IPTC_SPECIAL_INSTRUCTIONS: 40,
    N.IPTC_DATE_CREATED: 55,
    N.IPTC_BYLINE: 80,
    N.IPTC_BYLINE_TITLE: 85,
    N.IPTC_CITY: 90,
    N.IPTC_SUBLOCATION: 92,
    N.IPTC_PROVINCE_STATE: 95,
    N.IPTC_COUNTRY_PRIMARY_LOCATION_NAME: 101,
    N.IPTC_ORIGINAL_TRANSMISSION_REFERENCE: 103,
    N.IPTC_HEADLINE: 105,
    N.IPTC_CREDIT: 110,
    N.IPTC_SOURCE: 115,
    N.IPTC_COPYRIGHT_NOTICE: 116,
    N.IPTC_CAPTION: 120,
    N.IPTC_WRITER_EDITOR: 122,
}

DURATION_PATTERN = re.compile(r"[Dd]uration:.((\d|:|\.)*)")
BIT_RATE_PATTERN = re.compile(r"[Bb]itrate:.((\d|:)*)")
AUDIO_PATTERN = re.compile(r"[Aa]udio:.*")
VIDEO_PATTERN = re.compile(r"[Vv]ideo:.*")
DIMENSIONS_PATTERN = re.compile(r"(\d{2,4})x(\d{2,4})")

DATE_PARSE_FORMATS = (
    '%Y:%m:%d %H:%M:%S',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%dT%H:%M:%S',
    '%Y:%m:%d',
    '%Y-%m-%d',
)
STRICT_DATE_FORMAT = '%Y%m%d'


def format_metadata_date(value: datetime) -> str:
    """Format a date the way every date metadata item is stored, e.g. 'Sat, 05 Jun 2010 3:04:05 PM'."""
    hour = value.hour % 12 or 12
    return f"{value:%a, %d %b %Y} {hour}:{value:%M:%S %p}"


def parse_metadata_date(raw: str) -> Optional[datetime]:
    """
    Parse a raw date string from a file.

    The general formats are tried first; the strict ``yyyyMMdd`` form is the
    last resort. Returns None when nothing matches.
    """
    text = (raw or '').strip().rstrip('\x00')
    if not text:
        return None
    for fmt in DATE_PARSE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text, STRICT_DATE_FORMAT)
    except ValueError:
        return None


def parse_duration_seconds(duration: str) -> Optional[float]:
    """Convert an FFmpeg duration such as '00:01:25.27' into seconds."""
    parts = (duration or '').strip().split(':')
    if len(parts) != 3:
        return None
    try:
        hours, minutes, seconds = int(parts[0]), int(parts[1]), float(parts[2])
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds


def _to_float(value) -> Optional[float]:
    try:
        if isinstance(value, tuple) and len(value) == 2:
            return value[0] / value[1] if value[1] else None
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


def _format_number(value: float, decimals: int = 1) -> str:
    text = f"{value:.{decimals}f}".rstrip('0').rstrip('.')
    return text or '0'


def _clean_string(value) -> str:
    if value is None:
        return ''
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='replace')
    return str(value).strip().rstrip('\x00').strip()


def _decode_xp(value) -> str:
    """Decode a Windows XP* tag (UTF-16LE bytes or a tuple of byte values)."""
    if isinstance(value, tuple):
        value = bytes(value)
    if isinstance(value, bytes):
        return value.decode('utf-16-le', errors='replace').rstrip('\x00').strip()
    return _clean_string(value)


def _decode_user_comment(value) -> str:
    if isinstance(value, bytes):
        prefix, body = value[:8], value[8:]
        if prefix.startswith(b'UNICODE'):
            return body.decode('utf-16', errors='replace').rstrip('\x00').strip()
        if prefix.startswith(b'ASCII') or prefix == b'\x00' * 8:
            return body.decode('ascii', errors='replace').rstrip('\x00').strip()
        return value.decode('utf-8', errors='replace').rstrip('\x00').strip()
    return _clean_string(value)


def _gps_to_decimal(coordinate, ref) -> Optional[float]:
    try:
        degrees, minutes, seconds = (_to_float(part) for part in coordinate)
    except (TypeError, ValueError):
        return None
    if degrees is None or minutes is None or seconds is None:
        return None
    decimal = degrees + minutes / 60 + seconds / 3600
    if _clean_string(ref).upper() in ('S', 'W'):
        decimal = -decimal
    return decimal


class MetadataExtractor:
    """
    Builds the metadata collection for a media file.
    """

    def __init__(
        self,
        probe: Optional[Callable[[str], str]] = None,
        error_log=None,
        gallery_id: int = 1,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize metadata extractor.

        Args:
            probe: Callable returning FFmpeg's description of a file
            error_log: Optional ErrorLog receiving unreadable-metadata errors
            gallery_id: Gallery the files belong to, for error records
            logger: Optional logger instance
        """
        self.probe = probe
        self.error_log = error_log
        self.gallery_id = gallery_id
        self.logger = logger or logging.getLogger(__name__)

    def extract(
        self,
        file_path: str,
        category: MimeTypeCategory,
        ffmpeg_output: Optional[str] = None
    ) -> MetadataItemCollection:
        """
        Extract every available metadata item from file_path.

        Args:
            file_path: Media file to read
            category: MIME category of the file
            ffmpeg_output: Previously captured FFmpeg output, reused for video/audio

        Returns:
            Collection of metadata items

        Raises:
            UnsupportedImageTypeError: If reading an image exhausts memory
        """
        items = MetadataItemCollection()
        self.add_file_metadata(file_path, items)

        if category == MimeTypeCategory.IMAGE:
            self.add_image_metadata(file_path, items)
        elif category in (MimeTypeCategory.VIDEO, MimeTypeCategory.AUDIO):
            if not ffmpeg_output and self.probe is not None:
                ffmpeg_output = self.probe(file_path)
            if ffmpeg_output:
                self.parse_video_metadata(ffmpeg_output, items)

        return items

    def add_file_metadata(self, file_path: str, items: MetadataItemCollection) -> None:
        """Add the file name, size and timestamp items."""
        stat = os.stat(file_path)
        size_kb = max(1, stat.st_size // 1024)
        created = getattr(stat, 'st_birthtime', stat.st_ctime)
        file_name = os.path.basename(file_path)

        items.add_new(N.FILE_NAME, file_name)
        items.add_new(N.FILE_NAME_WITHOUT_EXTENSION, os.path.splitext(file_name)[0])
        items.add_new(N.FILE_SIZE_KB, f"{size_kb:,} KB")
        items.add_new(N.DATE_FILE_CREATED, format_metadata_date(datetime.fromtimestamp(created)))
        items.add_new(N.DATE_FILE_CREATED_UTC, format_metadata_date(
            datetime.fromtimestamp(created, timezone.utc)))
        items.add_new(N.DATE_FILE_LAST_MODIFIED, format_metadata_date(datetime.fromtimestamp(stat.st_mtime)))
        items.add_new(N.DATE_FILE_LAST_MODIFIED_UTC, format_metadata_date(
            datetime.fromtimestamp(stat.st_mtime, timezone.utc)))

    def add_image_metadata(self, file_path: str, items: MetadataItemCollection) -> None:
        """
        Add EXIF, GPS and IPTC items of an image.

        A file whose container throws while its metadata is read is treated
        as having no metadata. Memory exhaustion closes the file and raises
        UnsupportedImageTypeError.
        """
        img = None
        try:
            img = Image.open(file_path)
            exif = img.getexif()
            self._add_exif_items(exif, img.size, items)
            self._add_gps_items(exif.get_ifd(IFD_GPS), items)
            self._add_iptc_items(IptcImagePlugin.getiptcinfo(img) or {}, items)
        except MemoryError as e:
            if img is not None:
                img.close()
                img = None
            raise UnsupportedImageTypeError(file_path) from e
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError, KeyError, TypeError, IndexError,
                struct.error) as e:
            self.logger.warning(f"Cannot extract metadata from file {file_path}: {e}")
            if self.error_log is not None:
                self.error_log.record(e, self.gallery_id)
        finally:
            if img is not None:
                img.close()

    def _add_exif_items(self, exif, size: Tuple[int, int], items: MetadataItemCollection) -> None:
        exif_ifd = exif.get_ifd(IFD_EXIF)

        def add_string(name, value) -> None:
            text = _clean_string(value)
            if text:
                items.add_new(name, text)

        title = _decode_xp(exif.get(TAG_XP_TITLE)) if TAG_XP_TITLE in exif else ''
        add_string(N.TITLE, title)
        add_string(N.DESCRIPTION, exif.get(TAG_IMAGE_DESCRIPTION))
        if TAG_XP_SUBJECT in exif:
            add_string(N.SUBJECT, _decode_xp(exif[TAG_XP_SUBJECT]))

        author = _clean_string(exif.get(TAG_ARTIST))
        if not author and TAG_XP_AUTHOR in exif:
            author = _decode_xp(exif[TAG_XP_AUTHOR])
        add_string(N.AUTHOR, author)
        add_string(N.COPYRIGHT, exif.get(TAG_COPYRIGHT))

        comment = _decode_user_comment(exif_ifd.get(TAG_USER_COMMENT)) if TAG_USER_COMMENT in exif_ifd else ''
        if not comment and TAG_XP_COMMENT in exif:
            comment = _decode_xp(exif[TAG_XP_COMMENT])
        add_string(N.COMMENT, comment)
        if TAG_XP_KEYWORDS in exif:
            add_string(N.KEYWORDS, _decode_xp(exif[TAG_XP_KEYWORDS]).replace(';', ', '))

        rating = exif.get(TAG_RATING)
        if isinstance(rating, int) and rating > 0:
            items.add_new(N.RATING, str(rating))

        add_string(N.CAMERA_MODEL, exif.get(TAG_MODEL))
        add_string(N.EQUIPMENT_MANUFACTURER, exif.get(TAG_MAKE))

        if TAG_DATE_TIME_ORIGINAL in exif_ifd:
            taken = parse_metadata_date(_clean_string(exif_ifd[TAG_DATE_TIME_ORIGINAL]))
            if taken is not None:
                items.add_new(N.DATE_PICTURE_TAKEN, format_metadata_date(taken))

        width, height = size
        if width and height:
            items.add_new(N.DIMENSIONS, f"{width} x {height}")
            items.add_new(N.WIDTH, f"{width} pixels")
            items.add_new(N.HEIGHT, f"{height} pixels")

        unit = RESOLUTION_UNITS.get(exif.get(TAG_RESOLUTION_UNIT, 2), 'dpi')
        for tag, name in ((TAG_X_RESOLUTION, N.HORIZONTAL_RESOLUTION), (TAG_Y_RESOLUTION, N.VERTICAL_RESOLUTION)):
            resolution = _to_float(exif.get(tag)) if tag in exif else None
            if resolution:
                items.add_new(name, f"{_format_number(resolution, 0)} {unit}")

        color_space = exif_ifd.get(TAG_COLOR_SPACE)
        if color_space in COLOR_SPACES:
            items.add_new(N.COLOR_REPRESENTATION, COLOR_SPACES[color_space])

        bias = _to_float(exif_ifd.get(TAG_EXPOSURE_BIAS)) if TAG_EXPOSURE_BIAS in exif_ifd else None
        if bias is not None:
            items.add_new(N.EXPOSURE_COMPENSATION, f"{_format_number(bias)} step")

        program = exif_ifd.get(TAG_EXPOSURE_PROGRAM)
        if program in EXPOSURE_PROGRAMS:
            items.add_new(N.EXPOSURE_PROGRAM, EXPOSURE_PROGRAMS[program])

        if TAG_EXPOSURE_TIME in exif_ifd:
            exposure = exif_ifd[TAG_EXPOSURE_TIME]
            seconds = _to_float(exposure)
            if seconds:
                if seconds > 1:
                    text = _format_number(seconds, 2)
                else:
                    fraction = Fraction(seconds).limit_denominator(100000)
                    text = f"{fraction.numerator}/{fraction.denominator}" if fraction.numerator != fraction.denominator else '1'
                items.add_new(N.EXPOSURE_TIME, f"{text} sec.")

        flash = exif_ifd.get(TAG_FLASH)
        if isinstance(flash, int):
            items.add_new(N.FLASH_MODE, FLASH_MODES.get(flash, 'Flash fired' if flash & 1 else 'No flash'))

        f_number = _to_float(exif_ifd.get(TAG_F_NUMBER)) if TAG_F_NUMBER in exif_ifd else None
        if f_number:
            items.add_new(N.F_NUMBER, f"f/{_format_number(f_number)}")

        aperture = f_number
        if not aperture and TAG_APERTURE_VALUE in exif_ifd:
            apex = _to_float(exif_ifd[TAG_APERTURE_VALUE])
            if apex is not None:
                aperture = round(2 ** (apex / 2), 1)
        if aperture:
            items.add_new(N.LENS_APERTURE, f"f/{_format_number(aperture)}")

        focal_length = _to_float(exif_ifd.get(TAG_FOCAL_LENGTH)) if TAG_FOCAL_LENGTH in exif_ifd else None
        if focal_length:
            items.add_new(N.FOCAL_LENGTH, f"{round(focal_length)} mm")

        iso = exif_ifd.get(TAG_ISO_SPEED)
        if isinstance(iso, tuple):
            iso = iso[0] if iso else None
        if iso:
            items.add_new(N.ISO_SPEED, str(iso))

        light_source = exif_ifd.get(TAG_LIGHT_SOURCE)
        if light_source in LIGHT_SOURCES:
            items.add_new(N.LIGHT_SOURCE, LIGHT_SOURCES[light_source])

        metering = exif_ifd.get(TAG_METERING_MODE)
        if metering in METERING_MODES:
            items.add_new(N.METERING_MODE, METERING_MODES[metering])

        distance = _to_float(exif_ifd.get(TAG_SUBJECT_DISTANCE)) if TAG_SUBJECT_DISTANCE in exif_ifd else None
        if distance:
            items.add_new(N.SUBJECT_DISTANCE, f"{_format_number(distance, 3)} meters")

    def _add_gps_items(self, gps: Dict[int, object], items: MetadataItemCollection) -> None:
        if not gps:
            return

        version = gps.get(0)
        if version:
            if isinstance(version, (bytes, tuple, list)):
                items.add_new(N.GPS_VERSION, '.'.join(str(part) for part in version))
            else:
                items.add_new(N.GPS_VERSION, _clean_string(version))

        latitude = _gps_to_decimal(gps[2], gps.get(1)) if 2 in gps else None
        longitude = _gps_to_decimal(gps[4], gps.get(3)) if 4 in gps else None
        if latitude is not None and longitude is not None:
            items.add_new(N.GPS_LOCATION, f"{latitude:.6f}, {longitude:.6f}")
            items.add_new(N.GPS_LATITUDE, f"{latitude:.6f}")
            items.add_new(N.GPS_LONGITUDE, f"{longitude:.6f}")

        altitude = _to_float(gps[6]) if 6 in gps else None
        if altitude is not None:
            ref = gps.get(5)
            if ref in (1, b'\x01'):
                altitude = -altitude
            items.add_new(N.GPS_ALTITUDE, f"{altitude:,.0f} meters")

        dest_latitude = _gps_to_decimal(gps[0x14], gps.get(0x13)) if 0x14 in gps else None
        dest_longitude = _gps_to_decimal(gps[0x16], gps.get(0x15)) if 0x16 in gps else None
        if dest_latitude is not None and dest_longitude is not None:
            items.add_new(N.GPS_DEST_LOCATION, f"{dest_latitude:.6f}, {dest_longitude:.6f}")
            items.add_new(N.GPS_DEST_LATITUDE, f"{dest_latitude:.6f}")
            items.add_new(N.GPS_DEST_LONGITUDE, f"{dest_longitude:.6f}")

    def _add_iptc_items(self, iptc: Dict[Tuple[int, int], object], items: MetadataItemCollection) -> None:
        for name, dataset in IPTC_DATASETS.items():
            raw = iptc.get((2, dataset))
            if raw is None:
                continue

            if name == N.IPTC_RECORD_VERSION:
                value = str(int.from_bytes(raw, 'big')) if isinstance(raw, bytes) else _clean_string(raw)
            elif isinstance(raw, list):
                value = ', '.join(_clean_string(part) for part in raw if _clean_string(part))
            else:
                value = _clean_string(raw)

            if name == N.IPTC_DATE_CREATED:
                created = parse_metadata_date(value)
                value = format_metadata_date(created) if created else ''

            if value:
                items.add_new(name, value)

    @staticmethod
    def parse_video_metadata(ffmpeg_output: str, items: MetadataItemCollection) -> None:
        """Add Duration, BitRate, AudioFormat, VideoFormat, Width and Height from FFmpeg output."""
        match = DURATION_PATTERN.search(ffmpeg_output)
        if match and match.group(1).strip():
            items.add_new(N.DURATION, match.group(1).strip())

        match = BIT_RATE_PATTERN.search(ffmpeg_output)
        if match:
            try:
                kb = float(match.group(1))
                items.add_new(N.BIT_RATE, f"{kb:g} kb/s")
            except ValueError:
                pass

        match = AUDIO_PATTERN.search(ffmpeg_output)
        if match:
            items.add_new(N.AUDIO_FORMAT, match.group(0).strip())

        match = VIDEO_PATTERN.search(ffmpeg_output)
        if match:
            items.add_new(N.VIDEO_FORMAT, match.group(0).strip())

        match = DIMENSIONS_PATTERN.search(ffmpeg_output)
        if match:
            items.add_new(N.WIDTH, f"{int(match.group(1))} pixels")
            items.add_new(N.HEIGHT, f"{int(match.group(2))} pixels")


def duration_from_items(items: MetadataItemCollection) -> Optional[float]:
    """Duration in seconds recorded in a metadata collection, if any."""
    item = items.get(N.DURATION)
    return parse_duration_seconds(item.value) if item else None

