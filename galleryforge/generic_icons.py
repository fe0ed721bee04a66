"""
Generic stock icons used when no real thumbnail can be produced.
"""

import os
from enum import Enum
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from .mime_types import MimeType


class GenericIcon(Enum):
    AUDIO = 'audio'
    VIDEO = 'video'
    IMAGE = 'image'
    DOC = 'doc'
    EXCEL = 'excel'
    POWERPOINT = 'powerpoint'
    PDF = 'pdf'
    UNKNOWN = 'unknown'


APPLICATION_ICONS = {
    '.doc': GenericIcon.DOC, '.dot': GenericIcon.DOC, '.docm': GenericIcon.DOC,
    '.dotm': GenericIcon.DOC, '.dotx': GenericIcon.DOC, '.docx': GenericIcon.DOC,
    '.xls': GenericIcon.EXCEL, '.xlam': GenericIcon.EXCEL, '.xlsb': GenericIcon.EXCEL,
    '.xlsm': GenericIcon.EXCEL, '.xltm': GenericIcon.EXCEL, '.xltx': GenericIcon.EXCEL,
    '.xlsx': GenericIcon.EXCEL,
    '.ppt': GenericIcon.POWERPOINT, '.pps': GenericIcon.POWERPOINT, '.pptx': GenericIcon.POWERPOINT,
    '.potm': GenericIcon.POWERPOINT, '.ppam': GenericIcon.POWERPOINT, '.ppsm': GenericIcon.POWERPOINT,
    '.pdf': GenericIcon.PDF,
}

MAJOR_TYPE_ICONS = {
    'audio': GenericIcon.AUDIO,
    'video': GenericIcon.VIDEO,
    'image': GenericIcon.IMAGE,
}

_ICON_STYLES = {
    GenericIcon.AUDIO: ((46, 125, 50), 'AUDIO'),
    GenericIcon.VIDEO: ((198, 40, 40), 'VIDEO'),
    GenericIcon.IMAGE: ((21, 101, 192), 'IMAGE'),
    GenericIcon.DOC: ((25, 118, 210), 'DOC'),
    GenericIcon.EXCEL: ((27, 94, 32), 'XLS'),
    GenericIcon.POWERPOINT: ((230, 81, 0), 'PPT'),
    GenericIcon.PDF: ((183, 28, 28), 'PDF'),
    GenericIcon.UNKNOWN: ((97, 97, 97), '?'),
}

ICON_SIZE = 256


def choose_generic_icon(file_name: str) -> GenericIcon:
    """
    Pick the stock icon for a file.

    Audio, video and image files use the icon for their MIME major type.
    Application files are matched by extension; anything else is UNKNOWN.
    """
    mime_type = MimeType.load(file_name)
    if mime_type is None:
        return GenericIcon.UNKNOWN
    if mime_type.major_type in MAJOR_TYPE_ICONS:
        return MAJOR_TYPE_ICONS[mime_type.major_type]
    if mime_type.major_type == 'application':
        return APPLICATION_ICONS.get(mime_type.extension, GenericIcon.UNKNOWN)
    return GenericIcon.UNKNOWN


def load_generic_icon(icon: GenericIcon, icon_directory: Optional[str] = None) -> Image.Image:
    """
    Return the bitmap for a stock icon.

    A file named ``generic<icon>.jpg`` or ``generic<icon>.png`` in
    icon_directory wins over the built-in drawing.
    """
    if icon_directory:
        for ext in ('.jpg', '.png'):
            path = os.path.join(icon_directory, f"generic{icon.value}{ext}")
            if os.path.exists(path):
                with Image.open(path) as img:
                    img.load()
                    return img.copy()

    return draw_generic_icon(icon)


def draw_generic_icon(icon: GenericIcon) -> Image.Image:
    """Draw a simple document-style icon labelled with the media kind."""
    color, label = _ICON_STYLES[icon]
    img = Image.new('RGB', (ICON_SIZE, ICON_SIZE), (255, 255, 255))
    draw = ImageDraw.Draw(img)

    margin = ICON_SIZE // 8
    fold = ICON_SIZE // 5
    left, top = margin + ICON_SIZE // 16, margin
    right, bottom = ICON_SIZE - margin - ICON_SIZE // 16, ICON_SIZE - margin
    outline = [
        (left, top), (right - fold, top), (right, top + fold),
        (right, bottom), (left, bottom),
    ]
    draw.polygon(outline, fill=(245, 245, 245), outline=color)
    draw.line([(right - fold, top), (right - fold, top + fold), (right, top + fold)], fill=color, width=3)

    band_top = bottom - ICON_SIZE // 3
    draw.rectangle([left, band_top, right, bottom], fill=color)

    font = ImageFont.load_default()
    text_box = draw.textbbox((0, 0), label, font=font)
    text_width = text_box[2] - text_box[0]
    text_height = text_box[3] - text_box[1]
    draw.text(
        ((left + right - text_width) // 2, (band_top + bottom - text_height) // 2),
        label,
        fill=(255, 255, 255),
        font=font,
    )
    return img
