"""
Content fingerprints used to detect duplicate media files within a gallery.
"""

import hashlib
import logging
import threading
from typing import Dict, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)

HASH_CHUNK_SIZE = 1024 * 1024


def compute_hash_key(file_path: str) -> str:
    """
    Compute the hash key of a file from its content.

    Byte-identical files always produce the same key, regardless of their
    name or timestamps.

    Args:
        file_path: File to fingerprint

    Returns:
        Upper-case hex MD5 digest of the file content
    """
    md5 = hashlib.md5()
    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b''):
            md5.update(chunk)
    return md5.hexdigest().upper()


class DedupIndex:
    """
    Hash keys of every media object stored for one gallery.

    The index is owned by the backing store and handed to the code that
    creates media objects. New objects add their key once they have been
    persisted; deleted objects remove it.
    """

    def __init__(self, gallery_id: int, entries: Optional[Iterable[Tuple[Optional[int], str]]] = None):
        """
        Args:
            gallery_id: Gallery the keys belong to
            entries: Iterable of (media_object_id, hash_key) pairs
        """
        self.gallery_id = gallery_id
        self._keys: Dict[str, Set[int]] = {}
        self._lock = threading.Lock()
        for media_object_id, hash_key in entries or []:
            self.add(hash_key, media_object_id)

    @classmethod
    def from_data_provider(cls, data_provider, gallery_id: int) -> 'DedupIndex':
        """Load every hash key of a gallery in one batch."""
        entries = data_provider.media_object_hash_keys(gallery_id)
        index = cls(gallery_id, entries)
        logger.debug(f"Loaded {len(index)} hash keys for gallery {gallery_id}")
        return index

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def __contains__(self, hash_key: str) -> bool:
        return self.contains(hash_key)

    def contains(self, hash_key: str) -> bool:
        if not hash_key:
            return False
        with self._lock:
            return hash_key in self._keys

    def ids_for(self, hash_key: str) -> Set[int]:
        """IDs of the stored media objects that have this key."""
        with self._lock:
            return set(self._keys.get(hash_key, ()))

    def add(self, hash_key: str, media_object_id: Optional[int] = None) -> None:
        if not hash_key:
            return
        with self._lock:
            ids = self._keys.setdefault(hash_key, set())
            if media_object_id is not None:
                ids.add(media_object_id)

    def discard(self, hash_key: str, media_object_id: Optional[int] = None) -> None:
        """
        Remove a key, or only one object's claim on it.

        The key stays in the index while other objects still use it.
        """
        if not hash_key:
            return
        with self._lock:
            ids = self._keys.get(hash_key)
            if ids is None:
                return
            if media_object_id is not None:
                ids.discard(media_object_id)
                if ids:
                    return
            del self._keys[hash_key]
