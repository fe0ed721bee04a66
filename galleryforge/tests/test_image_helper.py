"""Tests for image helper functions."""

import os
import pytest
from PIL import Image

from galleryforge.exceptions import UnsupportedImageTypeError
from galleryforge.image_helper import (
    calculate_optimized_dimensions,
    calculate_thumbnail_dimensions,
    convert_color_mode,
    create_resized_bitmap,
    file_size_kb,
    get_image_size,
    get_output_format,
    open_bitmap,
    resize_file,
    rotate_bitmap,
    save_image,
    upright_exif,
)


class TestDimensions:
    """Tests for dimension calculations."""

    def test_landscape(self):
        """Test the width becomes the max length for landscape images."""
        assert calculate_thumbnail_dimensions(1000, 800, 115, False) == (115, 92)

    def test_portrait(self):
        """Test the height becomes the max length for portrait images."""
        assert calculate_thumbnail_dimensions(600, 1000, 100, False) == (60, 100)

    def test_integer_truncation(self):
        """Test the short edge is truncated, not rounded."""
        assert calculate_thumbnail_dimensions(1000, 333, 115, False) == (115, 38)

    def test_small_image_not_enlarged(self):
        """Test images smaller than the max keep their size."""
        assert calculate_thumbnail_dimensions(50, 40, 115, False) == (50, 40)

    def test_small_image_enlarged(self):
        """Test auto_enlarge scales small images up."""
        assert calculate_thumbnail_dimensions(50, 40, 115, True) == (115, 92)

    def test_square(self):
        """Test square images use the height branch."""
        assert calculate_thumbnail_dimensions(300, 300, 100, False) == (100, 100)

    def test_optimized_never_enlarged(self):
        """Test optimized dimensions never enlarge."""
        assert calculate_optimized_dimensions(200, 100, 640) == (200, 100)
        assert calculate_optimized_dimensions(1280, 960, 640) == (640, 480)

    def test_camera_sized_original(self):
        """Test a 4000x3000 original with limits of 200 and 1200."""
        assert calculate_thumbnail_dimensions(4000, 3000, 200, False) == (200, 150)
        assert calculate_optimized_dimensions(4000, 3000, 1200) == (1200, 900)


class TestBitmaps:
    """Tests for bitmap handling."""

    def test_open_bitmap(self, sample_jpeg):
        """Test a JPEG is opened and loaded."""
        img = open_bitmap(sample_jpeg)

        assert img.size == (100, 80)
        img.close()

    def test_open_bitmap_unreadable(self, tmp_path):
        """Test an undecodable file raises UnsupportedImageTypeError."""
        path = tmp_path / "broken.jpg"
        path.write_bytes(b"not an image")

        with pytest.raises(UnsupportedImageTypeError):
            open_bitmap(str(path))

    def test_get_image_size(self, sample_png):
        """Test reading dimensions."""
        assert get_image_size(sample_png) == (60, 120)

    def test_convert_color_mode_flattens_alpha(self):
        """Test transparency is flattened onto white."""
        img = Image.new('RGBA', (2, 2), (0, 0, 0, 0))

        result = convert_color_mode(img)

        assert result.mode == 'RGB'
        assert result.getpixel((0, 0)) == (255, 255, 255)

    def test_create_resized_bitmap(self):
        """Test resizing produces the exact target size."""
        source = Image.new('RGB', (400, 200), 'green')

        resized = create_resized_bitmap(source, 100, 50)

        assert resized.size == (100, 50)
        assert resized.mode == 'RGB'

    def test_create_resized_bitmap_clamps_zero(self):
        """Test zero dimensions are clamped to one pixel."""
        resized = create_resized_bitmap(Image.new('RGB', (400, 1), 'green'), 100, 0)

        assert resized.size == (100, 1)

    def test_create_resized_bitmap_retries_after_memory_error(self, mocker):
        """Test one MemoryError is retried after a garbage collection."""
        source = Image.new('RGB', (400, 200), 'green')
        real_new = Image.new
        failures = []

        def new(*args, **kwargs):
            if not failures:
                failures.append(args)
                raise MemoryError()
            return real_new(*args, **kwargs)

        mocker.patch('galleryforge.image_helper.Image.new', side_effect=new)
        collect = mocker.patch('galleryforge.image_helper.gc.collect')

        resized = create_resized_bitmap(source, 100, 50)

        assert resized.size == (100, 50)
        collect.assert_called_once()

    def test_create_resized_bitmap_memory_error_twice(self, mocker):
        """Test a second MemoryError surfaces as UnsupportedImageTypeError."""
        source = Image.new('RGB', (400, 200), 'green')
        mocker.patch('galleryforge.image_helper.Image.new', side_effect=MemoryError)
        mocker.patch('galleryforge.image_helper.gc.collect')

        with pytest.raises(UnsupportedImageTypeError):
            create_resized_bitmap(source, 100, 50, "/media/huge.jpg")

    def test_rotate_bitmap(self):
        """Test rotation by 90 degrees swaps the dimensions."""
        rotated = rotate_bitmap(Image.new('RGB', (40, 20)), 90)

        assert rotated.size == (20, 40)

    def test_rotate_bitmap_zero(self):
        """Test zero rotation returns the source."""
        source = Image.new('RGB', (40, 20))

        assert rotate_bitmap(source, 0) is source

    def test_upright_exif(self, tmp_path):
        """Test the orientation tag is reset and other tags are kept."""
        path = str(tmp_path / "turned.jpg")
        exif = Image.Exif()
        exif[0x0110] = "Camera X"
        exif[0x0112] = 8
        Image.new('RGB', (40, 20)).save(path, exif=exif)

        with Image.open(path) as img:
            raw = upright_exif(img)

        upright = Image.Exif()
        upright.load(raw)
        assert upright[0x0112] == 1
        assert upright[0x0110] == "Camera X"

    def test_upright_exif_none(self):
        """Test an image without EXIF yields None."""
        assert upright_exif(Image.new('RGB', (40, 20))) is None


class TestSaving:
    """Tests for encoding and resizing files."""

    def test_get_output_format(self):
        """Test the encoder is chosen from the extension."""
        assert get_output_format("a.PNG") == 'PNG'
        assert get_output_format("a.unknown") == 'JPEG'

    def test_save_image_creates_directory(self, tmp_path):
        """Test the parent directory is created and no temp file is left."""
        dest = tmp_path / "out" / "thumb.jpg"

        save_image(Image.new('RGBA', (10, 10)), str(dest))

        assert dest.exists()
        assert [name for name in os.listdir(dest.parent) if name.startswith('.tmp_')] == []

    def test_save_image_embeds_exif(self, tmp_path):
        """Test an EXIF block is written into JPEG output and skipped for PNG."""
        exif = Image.Exif()
        exif[0x0110] = "Camera X"
        jpeg_path = tmp_path / "out.jpg"
        png_path = tmp_path / "out.png"

        save_image(Image.new('RGB', (10, 10)), str(jpeg_path), exif=exif.tobytes())
        save_image(Image.new('RGB', (10, 10)), str(png_path), exif=exif.tobytes())

        with Image.open(jpeg_path) as img:
            assert img.getexif().get(0x0110) == "Camera X"
        with Image.open(png_path) as img:
            assert 0x0110 not in img.getexif()

    def test_file_size_kb_minimum(self, tmp_path):
        """Test tiny files count as 1 KB."""
        path = tmp_path / "tiny.bin"
        path.write_bytes(b"x")

        assert file_size_kb(str(path)) == 1

    def test_resize_file(self, large_jpeg, tmp_path):
        """Test resizing a file into a JPEG thumbnail."""
        dest = str(tmp_path / "thumb.jpg")

        width, height, size_kb = resize_file(large_jpeg, dest, 115, False, 70)

        assert (width, height) == (115, 92)
        assert size_kb >= 1
        with Image.open(dest) as img:
            assert img.format == 'JPEG'
            assert img.size == (115, 92)
