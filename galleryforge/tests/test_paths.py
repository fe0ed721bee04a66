"""Tests for path mapping between the media tree and the cache trees."""

import os
import pytest

from galleryforge.exceptions import BusinessError
from galleryforge.paths import is_same_directory, map_album_directory_to_alternate, normalize_directory


class TestNormalizeDirectory:
    """Tests for normalize_directory."""

    def test_empty_path(self):
        """Test empty input stays empty."""
        assert normalize_directory("") == ""

    def test_trailing_separator_removed(self, tmp_path):
        """Test trailing separators are dropped."""
        path = str(tmp_path) + os.sep

        assert normalize_directory(path) == str(tmp_path)

    def test_is_same_directory_ignores_case(self, tmp_path):
        """Test directory comparison is case-insensitive."""
        assert is_same_directory(str(tmp_path / "Media"), str(tmp_path / "media"))


class TestMapAlbumDirectory:
    """Tests for map_album_directory_to_alternate."""

    def test_maps_nested_album(self, tmp_path):
        """Test an album keeps its position under the alternate root."""
        media = str(tmp_path / "media")
        cache = str(tmp_path / "cache")
        album = os.path.join(media, "2010", "Vacation")

        result = map_album_directory_to_alternate(album, cache, media)

        assert result == os.path.join(cache, "2010", "Vacation")

    def test_root_album_maps_to_alternate_root(self, tmp_path):
        """Test the media root maps to the alternate root itself."""
        media = str(tmp_path / "media")
        cache = str(tmp_path / "cache")

        assert map_album_directory_to_alternate(media, cache, media) == cache

    def test_no_alternate_root(self, tmp_path):
        """Test an empty alternate root returns the album path."""
        album = str(tmp_path / "media" / "a")

        assert map_album_directory_to_alternate(album, "", str(tmp_path / "media")) == album

    def test_alternate_same_as_media(self, tmp_path):
        """Test an alternate root equal to the media root returns the album path."""
        media = str(tmp_path / "media")
        album = os.path.join(media, "a")

        assert map_album_directory_to_alternate(album, media + os.sep, media) == album

    def test_album_outside_media_root(self, tmp_path):
        """Test an album outside the media root is rejected."""
        with pytest.raises(BusinessError):
            map_album_directory_to_alternate(
                str(tmp_path / "elsewhere"), str(tmp_path / "cache"), str(tmp_path / "media"))

    def test_sibling_with_common_prefix_rejected(self, tmp_path):
        """Test a sibling directory sharing the media root prefix is not treated as inside it."""
        with pytest.raises(BusinessError):
            map_album_directory_to_alternate(
                str(tmp_path / "media2" / "a"), str(tmp_path / "cache"), str(tmp_path / "media"))
