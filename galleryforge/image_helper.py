"""
ImageHelper - Dimension math, resizing and encoding of bitmaps.
"""

import gc
import logging
import os
import tempfile
import threading
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .exceptions import UnsupportedImageTypeError

logger = logging.getLogger(__name__)

# Serializes bitmap draws across worker threads
_draw_lock = threading.Lock()

JPEG_EXTENSIONS = ('.jpg', '.jpeg', '.jpe')

OUTPUT_FORMATS = {
    '.jpg': 'JPEG',
    '.jpeg': 'JPEG',
    '.jpe': 'JPEG',
    '.png': 'PNG',
    '.gif': 'GIF',
    '.bmp': 'BMP',
    '.tif': 'TIFF',
    '.tiff': 'TIFF',
    '.webp': 'WEBP',
}

EXIF_FORMATS = ('JPEG', 'TIFF', 'WEBP')

TAG_ORIENTATION = 0x0112

ROTATIONS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def calculate_thumbnail_dimensions(
    original_width: int,
    original_height: int,
    max_length: int,
    auto_enlarge: bool
) -> Tuple[int, int]:
    """
    Calculate thumbnail dimensions that preserve the aspect ratio.

    When auto_enlarge is False and both dimensions already fit inside
    max_length, the original dimensions are returned. Otherwise the longer
    edge becomes max_length and the other edge is scaled with integer
    truncation.

    Args:
        original_width: Width of the source, in pixels
        original_height: Height of the source, in pixels
        max_length: Target length of the longer edge
        auto_enlarge: Whether images smaller than max_length are scaled up

    Returns:
        Tuple of (width, height)
    """
    if not auto_enlarge and max_length > original_width and max_length > original_height:
        return original_width, original_height

    if original_width > original_height:
        width = max_length
        height = original_height * width // original_width
    else:
        height = max_length
        width = original_width * height // original_height if original_height else 0

    return width, height


def calculate_optimized_dimensions(
    original_width: int,
    original_height: int,
    max_length: int
) -> Tuple[int, int]:
    """Calculate optimized image dimensions. Optimized images are never enlarged."""
    return calculate_thumbnail_dimensions(original_width, original_height, max_length, auto_enlarge=False)


def open_bitmap(file_path: str) -> Image.Image:
    """
    Open an image with the native decoder and load its pixels.

    Raises:
        UnsupportedImageTypeError: If Pillow cannot decode the file
    """
    try:
        img = Image.open(file_path)
        img.load()
        return img
    except MemoryError:
        gc.collect()
        try:
            img = Image.open(file_path)
            img.load()
            return img
        except MemoryError as e:
            raise UnsupportedImageTypeError(file_path) from e
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise UnsupportedImageTypeError(file_path, f"Cannot decode image {file_path}: {e}") from e


def get_image_size(file_path: str) -> Tuple[int, int]:
    """Read the pixel dimensions of an image without decoding the pixels."""
    try:
        with Image.open(file_path) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise UnsupportedImageTypeError(file_path, f"Cannot read image size of {file_path}: {e}") from e


def convert_color_mode(img: Image.Image) -> Image.Image:
    """Flatten transparency onto white and convert to RGB."""
    if img.mode in ('RGBA', 'LA'):
        background = Image.new('RGB', img.size, (255, 255, 255))
        if img.mode == 'LA':
            img = img.convert('RGBA')
        background.paste(img, mask=img.split()[-1])
        return background
    elif img.mode == 'P':
        img = img.convert('RGBA')
        background = Image.new('RGB', img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    elif img.mode != 'RGB':
        return img.convert('RGB')
    return img


def create_resized_bitmap(
    source: Image.Image,
    width: int,
    height: int,
    file_path: str = ""
) -> Image.Image:
    """
    Draw source onto a new white RGB canvas of exactly width x height.

    A MemoryError from Pillow is retried once after a garbage collection
    pass; a second failure surfaces as UnsupportedImageTypeError.

    Args:
        source: Decoded source bitmap
        width: Target width (clamped to at least 1)
        height: Target height (clamped to at least 1)
        file_path: Source path, used in error messages

    Returns:
        New RGB bitmap
    """
    width = max(1, width)
    height = max(1, height)

    def draw() -> Image.Image:
        with _draw_lock:
            flattened = convert_color_mode(source)
            canvas = Image.new('RGB', (width, height), (255, 255, 255))
            canvas.paste(flattened.resize((width, height), Image.Resampling.LANCZOS))
            return canvas

    try:
        return draw()
    except MemoryError:
        logger.warning(f"Out of memory resizing {file_path or 'bitmap'}; collecting garbage and retrying")
        gc.collect()
        try:
            return draw()
        except MemoryError as e:
            raise UnsupportedImageTypeError(file_path) from e


def rotate_bitmap(source: Image.Image, degrees: int) -> Image.Image:
    """Rotate a bitmap clockwise by 90, 180 or 270 degrees."""
    transpose = ROTATIONS.get(degrees % 360)
    if transpose is None:
        return source
    return source.transpose(transpose)


def upright_exif(source: Image.Image) -> Optional[bytes]:
    """
    EXIF block of source with the orientation reset to upright.

    Used when the pixels themselves have been rotated, so viewers must not
    rotate them a second time. Returns None when the image has no EXIF.
    """
    exif = source.getexif()
    if not exif:
        return None
    if TAG_ORIENTATION in exif:
        exif[TAG_ORIENTATION] = 1
    return exif.tobytes()


def get_output_format(file_path: str) -> str:
    """Determine the Pillow encoder for a file path based on its extension."""
    return OUTPUT_FORMATS.get(os.path.splitext(file_path)[1].lower(), 'JPEG')


def save_image(
    img: Image.Image,
    file_path: str,
    image_format: Optional[str] = None,
    jpeg_quality: int = 70,
    exif: Optional[bytes] = None
) -> None:
    """
    Encode an image to file_path.

    The parent directory is created if needed. The image is written to a
    temporary file in the same directory and moved into place, so a
    partially written file is never visible under its final name.

    Args:
        img: Bitmap to encode
        file_path: Destination path
        image_format: Pillow format name; derived from the extension when None
        jpeg_quality: Quality (0-100) applied when encoding JPEG
        exif: Raw EXIF block to embed; ignored for formats that cannot carry one
    """
    image_format = image_format or get_output_format(file_path)
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    if image_format == 'JPEG' and img.mode not in ('RGB', 'L', 'CMYK'):
        img = convert_color_mode(img)

    options = {}
    if exif and image_format in EXIF_FORMATS:
        options['exif'] = exif

    fd, tmp_path = tempfile.mkstemp(prefix='.tmp_', suffix=os.path.splitext(file_path)[1], dir=directory or None)
    try:
        with os.fdopen(fd, 'wb') as output:
            if image_format == 'JPEG':
                img.save(output, format='JPEG', quality=jpeg_quality, optimize=True, **options)
            else:
                img.save(output, format=image_format, **options)
        os.replace(tmp_path, file_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def file_size_kb(file_path: str) -> int:
    """Size of a file in KB; very small files count as 1."""
    return max(1, os.path.getsize(file_path) // 1024)


def resize_file(
    source_path: str,
    dest_path: str,
    max_length: int,
    auto_enlarge: bool,
    jpeg_quality: int
) -> Tuple[int, int, int]:
    """
    Resize the image at source_path into a JPEG at dest_path.

    Returns:
        Tuple of (width, height, size_kb) of the written file
    """
    source = open_bitmap(source_path)
    try:
        width, height = calculate_thumbnail_dimensions(source.width, source.height, max_length, auto_enlarge)
        resized = create_resized_bitmap(source, width, height, source_path)
    finally:
        source.close()
    save_image(resized, dest_path, 'JPEG', jpeg_quality)
    return width, height, file_size_kb(dest_path)
