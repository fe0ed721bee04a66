"""
Path mapping between the media object tree and the thumbnail/optimized cache trees.
"""

import os

from .exceptions import BusinessError


def normalize_directory(path: str) -> str:
    """Return an absolute, normalized directory path without a trailing separator."""
    if not path:
        return ""
    return os.path.normpath(os.path.abspath(path))


def is_same_directory(first: str, second: str) -> bool:
    """Case-insensitive comparison of two normalized directory paths."""
    return normalize_directory(first).lower() == normalize_directory(second).lower()


def map_album_directory_to_alternate(
    album_path: str,
    alternate_root: str,
    media_root: str
) -> str:
    """
    Map an album directory to the matching directory under an alternate root.

    The album's position relative to the media root is preserved, so
    ``/media/2010/Vacation`` maps to ``/cache/2010/Vacation`` when the
    alternate root is ``/cache``.

    Args:
        album_path: Physical directory of the album
        alternate_root: Root of the cache tree; empty means "same as source"
        media_root: Root of the media object tree

    Returns:
        Directory under the alternate root, or album_path when no separate
        cache tree is configured.

    Raises:
        BusinessError: If album_path is not located under media_root
    """
    if not alternate_root:
        return album_path

    album_dir = normalize_directory(album_path)
    media_dir = normalize_directory(media_root)

    if is_same_directory(alternate_root, media_dir):
        return album_path

    if album_dir.lower() == media_dir.lower():
        relative = ""
    elif album_dir.lower().startswith(media_dir.lower().rstrip(os.sep) + os.sep):
        relative = album_dir[len(media_dir):]
    else:
        raise BusinessError(
            f"Expected album path '{album_path}' to start with the media object "
            f"root '{media_root}'. Cannot map it to the alternate directory '{alternate_root}'."
        )

    relative = relative.strip(os.sep)
    alternate_dir = normalize_directory(alternate_root)
    return os.path.join(alternate_dir, relative) if relative else alternate_dir
