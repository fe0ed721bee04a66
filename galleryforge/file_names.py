"""
Collision-free file and directory names inside a target directory.

Allocation is check-then-act: two callers racing on the same directory can
still be handed the same name, so writers must tolerate an existing file
when they finally create it.
"""

import os
from typing import Sequence

DEFAULT_FILE_NAME = "DefaultFilename"
DEFAULT_ALBUM_DIRECTORY_NAME = "Album"
MAX_FILE_NAME_LENGTH = 255

# Characters rejected by gallery file names on top of the OS-invalid set
_INVALID_CHARS = set('&?*:\\/<>|"') | {chr(c) for c in range(32)}


def remove_invalid_characters(name: str) -> str:
    """Strip characters that are invalid in file or directory names."""
    return "".join(ch for ch in name if ch not in _INVALID_CHARS)


def validate_file_name(
    directory: str,
    file_name: str,
    max_length: int = MAX_FILE_NAME_LENGTH
) -> str:
    """
    Return a valid file name that does not exist in the directory.

    Invalid characters are removed, an empty stem falls back to
    ``DefaultFilename``, the name is truncated to max_length and, while a
    file with that name exists, a counter is inserted before the extension:
    ``photo.jpg`` becomes ``photo(1).jpg``, ``photo(2).jpg``, ...

    Args:
        directory: Directory the file will be written to
        file_name: Desired file name, including extension
        max_length: Maximum allowed length of the returned name

    Returns:
        The validated file name (without directory)
    """
    stem, ext = os.path.splitext(file_name)
    if not ext:
        raise ValueError(f"File name '{file_name}' must have an extension")

    stem = remove_invalid_characters(stem).strip()
    ext = remove_invalid_characters(ext)
    if not stem:
        stem = DEFAULT_FILE_NAME

    if len(stem) + len(ext) > max_length:
        stem = stem[:max(1, max_length - len(ext))]

    candidate = stem + ext
    counter = 1
    while os.path.exists(os.path.join(directory, candidate)):
        suffix = f"({counter})"
        base = stem
        if len(base) + len(suffix) + len(ext) > max_length:
            base = base[:max(1, max_length - len(suffix) - len(ext))]
        candidate = base + suffix + ext
        counter += 1

    return candidate


def clean_directory_name(
    directory_name: str,
    max_length: int,
    default_name: str = DEFAULT_ALBUM_DIRECTORY_NAME
) -> str:
    """Sanitize and truncate a directory name without checking the file system."""
    name = remove_invalid_characters(directory_name).strip()
    if not name:
        name = default_name

    if len(name) > max_length:
        name = name[:max_length]
    # Windows shares reject trailing dots and spaces
    return name.rstrip(". ") or default_name


def validate_directory_name(
    parent_directory: str,
    directory_name: str,
    max_length: int,
    default_name: str = DEFAULT_ALBUM_DIRECTORY_NAME,
    also_free_in: Sequence[str] = ()
) -> str:
    """
    Return a valid directory name that does not exist in parent_directory.

    Args:
        parent_directory: Directory that will contain the new directory
        directory_name: Desired name, usually the album title
        max_length: Maximum allowed length of the returned name
        default_name: Name used when nothing valid remains
        also_free_in: Further directories where the name must be unused,
            such as the matching thumbnail and optimized cache directories

    Returns:
        The validated directory name
    """
    name = clean_directory_name(directory_name, max_length, default_name)
    parents = [parent_directory, *also_free_in]

    candidate = name
    counter = 1
    while any(os.path.exists(os.path.join(parent, candidate)) for parent in parents):
        suffix = f"({counter})"
        base = name
        if len(base) + len(suffix) > max_length:
            base = base[:max(1, max_length - len(suffix))]
        candidate = base + suffix
        counter += 1

    return candidate

