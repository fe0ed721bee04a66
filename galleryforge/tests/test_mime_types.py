"""Tests for MIME type lookup and generic icons."""

import pytest

from galleryforge.generic_icons import GenericIcon, choose_generic_icon, load_generic_icon
from galleryforge.mime_types import MimeType, MimeTypeCategory, get_category


class TestMimeType:
    """Tests for MimeType lookup."""

    @pytest.mark.parametrize("file_name,category", [
        ("photo.JPG", MimeTypeCategory.IMAGE),
        ("raw.cr2", MimeTypeCategory.IMAGE),
        ("clip.mp4", MimeTypeCategory.VIDEO),
        ("song.mp3", MimeTypeCategory.AUDIO),
        ("song.flac", MimeTypeCategory.AUDIO),
        ("report.pdf", MimeTypeCategory.OTHER),
        ("notes.txt", MimeTypeCategory.OTHER),
        ("file.zzzunknown", MimeTypeCategory.NOT_SET),
        ("no_extension", MimeTypeCategory.NOT_SET),
    ])
    def test_get_category(self, file_name, category):
        """Test categories are derived from the extension."""
        assert get_category(file_name) == category

    def test_load(self):
        """Test the full type is split into major type and subtype."""
        mime_type = MimeType.load("photo.jpeg")

        assert mime_type.full_type == 'image/jpeg'
        assert mime_type.major_type == 'image'
        assert mime_type.subtype == 'jpeg'
        assert mime_type.extension == '.jpeg'

    def test_load_unknown(self):
        """Test unknown extensions return None."""
        assert MimeType.load("file.zzzunknown") is None


class TestGenericIcons:
    """Tests for stock icon selection."""

    @pytest.mark.parametrize("file_name,icon", [
        ("song.mp3", GenericIcon.AUDIO),
        ("clip.mp4", GenericIcon.VIDEO),
        ("scan.psd", GenericIcon.IMAGE),
        ("report.pdf", GenericIcon.PDF),
        ("letter.docx", GenericIcon.DOC),
        ("budget.xlsx", GenericIcon.EXCEL),
        ("slides.pptx", GenericIcon.POWERPOINT),
        ("file.zzzunknown", GenericIcon.UNKNOWN),
    ])
    def test_choose_generic_icon(self, file_name, icon):
        """Test the icon follows the MIME type."""
        assert choose_generic_icon(file_name) == icon

    def test_draw_builtin_icon(self):
        """Test the built-in icon is drawn when no directory is configured."""
        img = load_generic_icon(GenericIcon.VIDEO)

        assert img.size == (256, 256)
        assert img.mode == 'RGB'

    def test_icon_directory_wins(self, tmp_path):
        """Test an icon file in the icon directory replaces the drawing."""
        from PIL import Image
        Image.new('RGB', (32, 16), 'yellow').save(str(tmp_path / "genericpdf.png"))

        img = load_generic_icon(GenericIcon.PDF, str(tmp_path))

        assert img.size == (32, 16)
