"""Tests for metadata items and extraction."""

import pytest
import struct
from datetime import datetime
from PIL import Image
from unittest.mock import MagicMock

from galleryforge.exceptions import UnsupportedImageTypeError
from galleryforge.metadata import MetadataItem, MetadataItemCollection, MetadataItemName, describe
from galleryforge.metadata_extractor import (
    MetadataExtractor,
    duration_from_items,
    format_metadata_date,
    parse_duration_seconds,
    parse_metadata_date,
)
from galleryforge.mime_types import MimeTypeCategory

N = MetadataItemName

FFMPEG_OUTPUT = """
Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'clip.mp4':
  Duration: 00:01:25.27, start: 0.000000, bitrate: 1205 kb/s
    Stream #0:0(und): Video: h264 (High), yuv420p, 1280x720, 1071 kb/s, 29.97 fps
    Stream #0:1(und): Audio: aac (LC), 44100 Hz, stereo, fltp, 128 kb/s
"""


class TestMetadataItemCollection:
    """Tests for MetadataItemCollection."""

    def test_add_rejects_duplicate_names(self):
        """Test items are unique by name."""
        items = MetadataItemCollection()

        assert items.add(MetadataItem(N.TITLE, "a")) is True
        assert items.add(MetadataItem(N.TITLE, "b")) is False
        assert items.value_of(N.TITLE) == "a"

    def test_add_new_updates_existing(self):
        """Test add_new changes the value of an existing item."""
        items = MetadataItemCollection()
        item = items.add_new(N.AUTHOR, "Ann", has_changes=False)

        items.add_new(N.AUTHOR, "Bob")

        assert item.value == "Bob"
        assert item.has_changes is True
        assert len(items) == 1

    def test_items_to_save(self):
        """Test only changed items are saved."""
        items = MetadataItemCollection([
            MetadataItem(N.TITLE, "a", has_changes=False),
            MetadataItem(N.AUTHOR, "b"),
        ])

        assert [item.name for item in items.items_to_save()] == [N.AUTHOR]

    def test_extract_on_save_all_items(self):
        """Test extract_on_save is true only when every item is flagged."""
        items = MetadataItemCollection([MetadataItem(N.TITLE, "a"), MetadataItem(N.AUTHOR, "b")])

        items.extract_on_save = True
        assert items.extract_on_save is True

        items.get(N.TITLE).extract_from_file_on_save = False
        assert items.extract_on_save is False
        assert [item.name for item in items.items_to_update()] == [N.AUTHOR]

    def test_extract_on_save_empty(self):
        """Test the flag is remembered on an empty collection."""
        items = MetadataItemCollection()

        items.extract_on_save = True

        assert items.extract_on_save is True

    def test_refresh_file_metadata_on_save(self):
        """Test only the file-derived items are flagged."""
        items = MetadataItemCollection([MetadataItem(N.FILE_NAME, "a.jpg"), MetadataItem(N.TITLE, "t")])

        items.refresh_file_metadata_on_save = True

        assert items.refresh_file_metadata_on_save is True
        assert items.get(N.TITLE).extract_from_file_on_save is False

    def test_mark_saved(self):
        """Test saving clears the change flags."""
        items = MetadataItemCollection([MetadataItem(N.TITLE, "a")])
        items.extract_on_save = True

        items.mark_saved()

        assert items.items_to_save() == []
        assert items.items_to_update() == []

    def test_describe(self):
        """Test descriptions split the name into words."""
        assert describe(N.CAMERA_MODEL) == "Camera model"
        assert describe(N.FILE_SIZE_KB) == "File size"


class TestDates:
    """Tests for date and duration helpers."""

    def test_format_metadata_date(self):
        """Test the stored date format."""
        assert format_metadata_date(datetime(2010, 6, 5, 15, 4, 5)) == "Sat, 05 Jun 2010 3:04:05 PM"

    def test_format_midnight(self):
        """Test midnight is shown as 12 AM."""
        assert format_metadata_date(datetime(2010, 6, 5, 0, 0, 0)).endswith("12:00:00 AM")

    @pytest.mark.parametrize("raw", ["2010:06:05 15:04:05", "2010-06-05T15:04:05", "2010-06-05 15:04:05"])
    def test_parse_metadata_date(self, raw):
        """Test the general date formats."""
        assert parse_metadata_date(raw) == datetime(2010, 6, 5, 15, 4, 5)

    def test_parse_strict_date(self):
        """Test the compact yyyyMMdd form."""
        assert parse_metadata_date("20100605") == datetime(2010, 6, 5)

    def test_parse_invalid_date(self):
        """Test unparsable dates return None."""
        assert parse_metadata_date("sometime") is None
        assert parse_metadata_date("") is None

    def test_parse_duration_seconds(self):
        """Test FFmpeg durations are converted to seconds."""
        assert parse_duration_seconds("00:01:25.27") == pytest.approx(85.27)
        assert parse_duration_seconds("N/A") is None


class TestMetadataExtractor:
    """Tests for MetadataExtractor class."""

    def test_file_metadata(self, sample_jpeg, logger):
        """Test file name and size items are always present."""
        items = MetadataExtractor(logger=logger).extract(sample_jpeg, MimeTypeCategory.OTHER)

        assert items.value_of(N.FILE_NAME) == "photo.jpg"
        assert items.value_of(N.FILE_NAME_WITHOUT_EXTENSION) == "photo"
        assert items.value_of(N.FILE_SIZE_KB) == "1 KB"
        assert N.DATE_FILE_LAST_MODIFIED in items

    def test_image_exif(self, tmp_path, logger):
        """Test EXIF tags of an image are extracted."""
        path = str(tmp_path / "exif.jpg")
        img = Image.new('RGB', (64, 48), 'white')
        exif = Image.Exif()
        exif[0x0110] = "Camera X"
        exif[0x010F] = "Maker"
        exif[0x013B] = "Jane Doe"
        img.save(path, exif=exif)

        items = MetadataExtractor(logger=logger).extract(path, MimeTypeCategory.IMAGE)

        assert items.value_of(N.CAMERA_MODEL) == "Camera X"
        assert items.value_of(N.EQUIPMENT_MANUFACTURER) == "Maker"
        assert items.value_of(N.AUTHOR) == "Jane Doe"

    def test_unreadable_image_has_file_items_only(self, tmp_path, logger):
        """Test an unreadable image yields only the file items and records the error."""
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not an image")
        error_log = MagicMock()

        items = MetadataExtractor(error_log=error_log, logger=logger).extract(str(path), MimeTypeCategory.IMAGE)

        assert items.value_of(N.FILE_NAME) == "broken.jpg"
        assert N.CAMERA_MODEL not in items
        error_log.record.assert_called_once()

    def test_truncated_exif_has_file_items_only(self, mocker, tmp_path, logger):
        """Test an EXIF block the parser cannot unpack counts as no metadata."""
        path = str(tmp_path / "truncated.jpg")
        Image.new('RGB', (64, 48), 'white').save(path, exif=b"Exif\x00\x00MM\x00*\x00\x00\x00\x08\x00\x05")
        mocker.patch.object(Image.Image, 'getexif', side_effect=struct.error("unpack requires a buffer of 12 bytes"))
        error_log = MagicMock()

        items = MetadataExtractor(error_log=error_log, logger=logger).extract(path, MimeTypeCategory.IMAGE)

        assert items.value_of(N.FILE_NAME) == "truncated.jpg"
        assert N.CAMERA_MODEL not in items
        error_log.record.assert_called_once()

    def test_memory_error_raises_unsupported(self, mocker, sample_jpeg, logger):
        """Test running out of memory while reading an image raises UnsupportedImageTypeError."""
        mocker.patch('galleryforge.metadata_extractor.Image.open', side_effect=MemoryError)

        with pytest.raises(UnsupportedImageTypeError):
            MetadataExtractor(logger=logger).extract(sample_jpeg, MimeTypeCategory.IMAGE)

    def test_video_uses_probe(self, tmp_path, logger):
        """Test video metadata comes from the probe output."""
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00" * 10)
        probe = MagicMock(return_value=FFMPEG_OUTPUT)

        items = MetadataExtractor(probe=probe, logger=logger).extract(str(path), MimeTypeCategory.VIDEO)

        probe.assert_called_once_with(str(path))
        assert items.value_of(N.DURATION) == "00:01:25.27"
        assert items.value_of(N.WIDTH) == "1280 pixels"

    def test_video_reuses_ffmpeg_output(self, tmp_path, logger):
        """Test captured FFmpeg output is reused instead of probing again."""
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"\x00" * 10)
        probe = MagicMock()

        MetadataExtractor(probe=probe, logger=logger).extract(str(path), MimeTypeCategory.VIDEO, FFMPEG_OUTPUT)

        probe.assert_not_called()

    def test_parse_video_metadata(self):
        """Test all FFmpeg items are parsed."""
        items = MetadataItemCollection()

        MetadataExtractor.parse_video_metadata(FFMPEG_OUTPUT, items)

        assert items.value_of(N.BIT_RATE) == "1205 kb/s"
        assert items.value_of(N.VIDEO_FORMAT).startswith("Video: h264")
        assert items.value_of(N.AUDIO_FORMAT).startswith("Audio: aac")
        assert items.value_of(N.HEIGHT) == "720 pixels"
        assert duration_from_items(items) == pytest.approx(85.27)
