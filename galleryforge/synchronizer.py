"""
Synchronizer - Reconciles an album's directory tree with the backing store.
"""

import logging
import os
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from .album import Album, assign_album_thumbnail
from .creators import ImageOptimizedCreator
from .exceptions import (
    BusinessError,
    GalleryError,
    SynchronizationInProgressError,
    SynchronizationTerminatedError,
    UnsupportedImageTypeError,
    UnsupportedMediaObjectTypeError,
)
from .factory import SYSTEM_USER_NAME, create_album, create_media_object, find_child_for_file
from .gallery_object import GalleryObject, GalleryObjectType
from .hash_keys import DedupIndex, compute_hash_key
from .image_helper import file_size_kb
from .mime_types import MimeTypeCategory, get_category
from .sync_progress import SyncProgress
from .sync_stats import SyncStats

# Original dimensions of existing non-image objects, refreshed from the player defaults
PLAYER_DIMENSION_SETTINGS = {
    GalleryObjectType.VIDEO: ('default_video_player_width', 'default_video_player_height'),
    GalleryObjectType.AUDIO: ('default_audio_player_width', 'default_audio_player_height'),
    GalleryObjectType.GENERIC: ('default_generic_object_width', 'default_generic_object_height'),
}


@dataclass
class SyncOptions:
    """
    What a synchronization run does besides adding and removing objects.

    Attributes:
        recursive: Also synchronize child directories
        overwrite_thumbnail: Recreate every thumbnail
        overwrite_optimized: Recreate every optimized image
        regenerate_metadata: Re-extract the metadata of every media object
        user_name: User recorded in the audit fields
    """
    recursive: bool = True
    overwrite_thumbnail: bool = False
    overwrite_optimized: bool = False
    regenerate_metadata: bool = False
    user_name: str = SYSTEM_USER_NAME


def is_hidden(name: str) -> bool:
    return name.startswith('.')


def is_file_type_allowed(file_name: str, settings) -> bool:
    """True when files of this type may be added to the gallery."""
    category = get_category(file_name)
    return category != MimeTypeCategory.NOT_SET or settings.allow_unspecified_mime_types


class Synchronizer:
    """
    Walks the directory of an album and brings the gallery in line with it.

    New files become media objects and new directories become albums.
    Stored objects whose file or directory is gone are deleted from the
    gallery, along with thumbnail and optimized files nothing refers to.
    Only one synchronization per gallery runs at a time.
    """

    _running_galleries: Set[int] = set()
    _running_lock = threading.Lock()

    def __init__(
        self,
        context,
        dedup_index: Optional[DedupIndex] = None,
        progress: Optional[SyncProgress] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize synchronizer.

        Args:
            context: GalleryContext of the gallery to synchronize
            dedup_index: Hash keys of the stored objects; loaded from the data provider when omitted
            progress: Optional progress tracker
            logger: Optional logger instance
        """
        self.context = context
        self.dedup_index = dedup_index
        self.progress = progress
        self.logger = logger or logging.getLogger(__name__)
        self.options = SyncOptions()
        self.stats = SyncStats()
        self._stop_requested = False
        self._stored_albums: Dict[str, Album] = {}
        self._stored_media_objects: Dict[str, GalleryObject] = {}
        self._synchronized: Set[GalleryObject] = set()

    @property
    def settings(self):
        return self.context.settings

    def stop(self) -> None:
        """Request the synchronization to stop after the current file."""
        self._stop_requested = True

    def synchronize(self, album: Album, options: Optional[SyncOptions] = None) -> SyncStats:
        """
        Synchronize an album with its directory.

        Args:
            album: Album whose directory is scanned
            options: Run options; the defaults synchronize recursively without overwriting

        Returns:
            SyncStats with results

        Raises:
            SynchronizationInProgressError: If the gallery is already being synchronized
            BusinessError: If an album or media object involved is not writable
        """
        if album is None:
            raise ValueError("album is required")
        self.options = options or SyncOptions()
        if not self.options.user_name:
            raise ValueError("A user name is required to synchronize")

        gallery_id = album.gallery_id
        with self._running_lock:
            if gallery_id in self._running_galleries:
                raise SynchronizationInProgressError(
                    f"A synchronization of gallery {gallery_id} is already in progress")
            self._running_galleries.add(gallery_id)

        try:
            self.initialize(album)
            self.logger.info(
                f"Starting synchronization of {album.full_physical_path_on_disk}: "
                f"{self.stats.total_files} files")
            try:
                self.synchronize_album(album, album.full_physical_path_on_disk)
                self.delete_unsynchronized_objects()
                self.delete_orphaned_images(album)
                assign_album_thumbnail(album, recurse_children=True, user_name=self.options.user_name)
            except SynchronizationTerminatedError:
                self.stats.terminated = True
                self.logger.info("Stop requested, synchronization halted")
        finally:
            self._stored_albums.clear()
            self._stored_media_objects.clear()
            self._synchronized.clear()
            self._stop_requested = False
            with self._running_lock:
                self._running_galleries.discard(gallery_id)

        self.logger.info(
            f"Synchronization complete: {self.stats.files_created} added, "
            f"{self.stats.files_updated} updated, {self.stats.files_skipped} skipped, "
            f"{self.stats.files_deleted} deleted, {self.stats.errors} errors "
            f"({self.stats.elapsed_seconds:.1f}s)"
        )
        return self.stats

    def initialize(self, album: Album) -> None:
        """Collect the stored objects in scope and flag them for this run's options."""
        self.stats = SyncStats(total_files=self.count_files(album.full_physical_path_on_disk))
        self._stored_albums.clear()
        self._stored_media_objects.clear()
        self._synchronized.clear()

        if self.dedup_index is None and self.context.data_provider is not None:
            self.dedup_index = DedupIndex.from_data_provider(self.context.data_provider, album.gallery_id)

        self.check_writable(album)
        album.regenerate_thumbnail_on_save = self.options.overwrite_thumbnail
        self._stored_albums[album.full_physical_path_on_disk] = album
        self._synchronized.add(album)
        self.collect_stored_objects(album)

    def collect_stored_objects(self, album: Album) -> None:
        for media_object in album.media_objects:
            self.check_writable(media_object)
            media_object.regenerate_thumbnail_on_save = self.options.overwrite_thumbnail
            media_object.regenerate_optimized_on_save = self.options.overwrite_optimized
            if self.options.regenerate_metadata:
                media_object.extract_metadata_on_save = True
                media_object.has_changes = True
            # First one wins when the store holds duplicates; the others get deleted
            if media_object.hash_key and media_object.hash_key not in self._stored_media_objects:
                self._stored_media_objects[media_object.hash_key] = media_object

        if not self.options.recursive:
            return

        for child_album in album.child_albums:
            self.check_writable(child_album)
            child_album.regenerate_thumbnail_on_save = self.options.overwrite_thumbnail
            self._stored_albums.setdefault(child_album.full_physical_path_on_disk, child_album)
            self.collect_stored_objects(child_album)

    @staticmethod
    def check_writable(gallery_object: GalleryObject) -> None:
        if not gallery_object.is_writable:
            raise BusinessError(
                f"The {type(gallery_object).__name__.lower()} is not writable "
                f"(ID {gallery_object.id}, title '{gallery_object.title}')")

    def count_files(self, directory: str) -> int:
        """Files a run will visit, without hidden and derived files."""
        prefixes = self.derived_file_prefixes()
        count = 0
        try:
            entries = list(os.scandir(directory))
        except OSError:
            return 0
        for entry in entries:
            if is_hidden(entry.name):
                continue
            if entry.is_file():
                if not entry.name.lower().startswith(prefixes):
                    count += 1
            elif entry.is_dir() and self.options.recursive:
                count += self.count_files(entry.path)
        return count

    def derived_file_prefixes(self):
        return (self.settings.thumbnail_file_name_prefix.lower(), self.settings.optimized_file_name_prefix.lower())

    # Walk

    def synchronize_album(self, album: Album, directory: str) -> None:
        self.synchronize_media_object_files(album, directory)
        self.synchronize_external_media_objects(album)
        if self.options.recursive:
            self.synchronize_child_directories(album, directory)

    def synchronize_media_object_files(self, album: Album, directory: str) -> None:
        file_names = sorted(entry.name for entry in os.scandir(directory) if entry.is_file())

        for file_name in file_names:
            file_path = os.path.join(directory, file_name)

            if is_hidden(file_name):
                self.skip_file(file_path, "hidden file")
                continue

            if self.is_derived_file(file_path):
                continue

            try:
                self.synchronize_file(album, file_path)
            except (GalleryError, OSError) as e:
                error_msg = f"Error synchronizing {file_path}: {e}"
                self.logger.error(error_msg)
                self.context.record_error(e)
                self.stats.errors += 1
                self.stats.error_details.append(error_msg)
                if self.progress:
                    self.progress.on_file_error(file_path, str(e))

            if self.progress:
                self.progress.on_progress_update(self.stats)

            if self._stop_requested:
                raise SynchronizationTerminatedError(f"Synchronization stopped after {file_path}")

    def is_derived_file(self, file_path: str) -> bool:
        """
        True for thumbnail and optimized files.

        A derived file found in the media directory while the cache root is
        elsewhere is left over from an earlier configuration and is deleted.
        """
        settings = self.settings
        name = os.path.basename(file_path).lower()
        for prefix, cache_root in (
            (settings.thumbnail_file_name_prefix, settings.full_thumbnail_path),
            (settings.optimized_file_name_prefix, settings.full_optimized_path),
        ):
            if not name.startswith(prefix.lower()):
                continue
            if cache_root != settings.full_media_object_path and not settings.media_object_path_is_read_only:
                self.logger.debug(f"Deleting stale derived file {file_path}")
                try:
                    os.remove(file_path)
                except OSError as e:
                    self.context.record_error(e)
            return True
        return False

    def synchronize_file(self, album: Album, file_path: str) -> None:
        media_object = find_child_for_file(album, file_path)
        if media_object is None and self._stored_media_objects:
            media_object = self._stored_media_objects.get(compute_hash_key(file_path))

        if media_object is None:
            self.create_new_media_object(album, file_path)
        elif is_file_type_allowed(file_path, self.settings):
            self.update_existing_media_object(album, media_object, file_path)
        else:
            # A disabled file type; its stored object is deleted with the unsynchronized ones
            self.skip_file(file_path, "disabled file type")

    def skip_file(self, file_path: str, reason: str) -> None:
        self.stats.files_skipped += 1
        self.stats.skipped_files.append(f"{self.relative_path(file_path)}: {reason}")
        if self.progress:
            self.progress.on_file_skipped(file_path, reason)

    def relative_path(self, path: str) -> str:
        return os.path.relpath(path, self.settings.full_media_object_path)

    def create_new_media_object(self, album: Album, file_path: str) -> None:
        user_name = self.options.user_name
        try:
            media_object = create_media_object(file_path, album, self.dedup_index)
        except UnsupportedMediaObjectTypeError:
            self.skip_file(file_path, "disabled file type")
            return

        media_object.update_audit_fields(user_name)
        media_object.save()

        settings = self.settings
        if (media_object.object_type == GalleryObjectType.IMAGE
                and settings.discard_original_image_during_import
                and not settings.media_object_path_is_read_only):
            media_object.delete_original_file()
            media_object.update_audit_fields(user_name)
            media_object.save()

        self._synchronized.add(media_object)
        self.stats.files_created += 1
        if self.progress:
            self.progress.on_file_synchronized(file_path, "added")

    def update_existing_media_object(self, album: Album, media_object, file_path: str) -> None:
        # A stored object whose update fails still has its file; it must not be deleted
        self._synchronized.add(media_object)

        if media_object.parent is not album:
            # Moved from another directory
            self.logger.info(f"{file_path} moved into album {album.id}")
            album.add(media_object)
            media_object.original.file_name = os.path.basename(file_path)
            media_object.has_changes = True

        hash_key = compute_hash_key(file_path)
        if hash_key != media_object.hash_key:
            media_object.hash_key = hash_key
            media_object.has_changes = True

        if not media_object.thumbnail.exists():
            media_object.regenerate_thumbnail_on_save = True

        try:
            if media_object.object_type == GalleryObjectType.IMAGE:
                self.evaluate_original_image(media_object)
                self.evaluate_optimized_image(media_object)
            else:
                self.update_non_image_dimensions(media_object)

            media_object.update_audit_fields(self.options.user_name)
            media_object.save()
        finally:
            media_object.original.release()

        self.stats.files_updated += 1
        if self.progress:
            self.progress.on_file_synchronized(file_path, "updated")

    def evaluate_original_image(self, media_object) -> None:
        """Re-read the original's dimensions and size when thumbnails or optimized images are recreated."""
        if not (self.options.overwrite_thumbnail or self.options.overwrite_optimized):
            return

        original = media_object.original
        before = (original.width, original.height, original.size_kb)
        try:
            original.width, original.height = original.bitmap.size
        except UnsupportedImageTypeError as e:
            self.logger.debug(f"Keeping stored dimensions of {original.physical_path}: {e}")
        original.size_kb = file_size_kb(original.physical_path)
        if (original.width, original.height, original.size_kb) != before:
            media_object.has_changes = True

    def evaluate_optimized_image(self, media_object) -> None:
        """
        Make sure an image has the optimized file it needs.

        A missing optimized file is regenerated when the original is large
        enough to need one; otherwise the optimized fields mirror the
        original. With overwrite_optimized an existing optimized file that
        is no longer needed is replaced by the original as well.
        """
        optimized = media_object.optimized
        if optimized.is_null:
            return

        exceeds_triggers = ImageOptimizedCreator.exceeds_triggers(media_object)
        if not optimized.exists():
            if exceeds_triggers:
                media_object.regenerate_optimized_on_save = True
            else:
                self.mirror_original(media_object)
        elif self.options.overwrite_optimized and not exceeds_triggers:
            self.mirror_original(media_object)

    @staticmethod
    def mirror_original(media_object) -> None:
        optimized, original = media_object.optimized, media_object.original
        if (optimized.file_name, optimized.width, optimized.height, optimized.size_kb) == (
                original.file_name, original.width, original.height, original.size_kb):
            return
        optimized.apply(optimized.mirror(original))

    def update_non_image_dimensions(self, media_object) -> None:
        object_type = media_object.object_type
        if object_type == GalleryObjectType.GENERIC:
            mime_type = media_object.mime_type
            # A corrupt image stored as a generic object keeps its dimensions
            if mime_type is not None and mime_type.category != MimeTypeCategory.OTHER:
                return

        setting_names = PLAYER_DIMENSION_SETTINGS.get(object_type)
        if setting_names is None:
            return
        width, height = (getattr(self.settings, name) for name in setting_names)
        original = media_object.original
        if (original.width, original.height) != (width, height):
            original.width, original.height = width, height
            media_object.has_changes = True

    def synchronize_external_media_objects(self, album: Album) -> None:
        for media_object in album.get_children(GalleryObjectType.EXTERNAL):
            if self.options.overwrite_thumbnail or not media_object.thumbnail.exists():
                media_object.regenerate_thumbnail_on_save = True
                media_object.update_audit_fields(self.options.user_name)
                media_object.save()
            self._synchronized.add(media_object)

    def synchronize_child_directories(self, parent_album: Album, parent_directory: str) -> None:
        directory_names = sorted(entry.name for entry in os.scandir(parent_directory) if entry.is_dir())

        for directory_name in directory_names:
            directory = os.path.join(parent_directory, directory_name)
            if is_hidden(directory_name):
                self.stats.skipped_files.append(f"{self.relative_path(directory)}: hidden directory")
                continue
            if self.is_cache_directory(directory):
                continue

            child_album = self.synchronize_directory(parent_album, directory)
            try:
                self.synchronize_album(child_album, directory)
            except PermissionError as e:
                self.logger.warning(f"Cannot read {directory}: {e}")
                self.stats.skipped_files.append(f"{self.relative_path(directory)}: restricted directory")
                self._synchronized.discard(child_album)
                if not child_album.is_new:
                    child_album.delete_from_gallery()

    def is_cache_directory(self, directory: str) -> bool:
        """True for the thumbnail or optimized root when it is nested inside the media path."""
        settings = self.settings
        roots = {settings.full_thumbnail_path, settings.full_optimized_path} - {settings.full_media_object_path}
        return os.path.normpath(directory) in {os.path.normpath(root) for root in roots}

    def synchronize_directory(self, parent_album: Album, directory: str) -> Album:
        """Find, or create, the album of a directory below parent_album."""
        child_album = self._stored_albums.get(directory)
        if child_album is not None:
            self._synchronized.add(child_album)
            child_album.is_private = parent_album.is_private or child_album.is_private
            child_album.regenerate_thumbnail_on_save = self.options.overwrite_thumbnail
            action = "updated"
        else:
            directory_name = os.path.basename(directory)
            child_album = create_album(parent_album, title=directory_name, directory_name=directory_name)
            self._synchronized.add(child_album)
            action = "added"

        if child_album.is_new or child_album.has_changes:
            is_new = child_album.is_new
            child_album.update_audit_fields(self.options.user_name)
            child_album.save()
            if is_new:
                self.stats.albums_created += 1
            else:
                self.stats.albums_updated += 1
            if self.progress:
                self.progress.on_album(directory, action)

        return child_album

    # Clean-up

    def delete_unsynchronized_objects(self) -> None:
        """Delete the stored albums and media objects that were not found on disk."""
        deleted: List[GalleryObject] = []

        for album in list(self._stored_albums.values()):
            if album in self._synchronized or album.is_root_album or self.is_below(album, deleted):
                continue
            self.logger.info(f"Deleting album {album.id} ('{album.title}'): its directory is gone")
            album.delete_from_gallery()
            deleted.append(album)
            self.stats.albums_deleted += 1

        for media_object in list(self._stored_media_objects.values()):
            if media_object in self._synchronized or self.is_below(media_object, deleted):
                continue
            self.logger.info(f"Deleting media object {media_object.id} ('{media_object.title}'): its file is gone")
            media_object.delete_from_gallery()
            self.stats.files_deleted += 1

    @staticmethod
    def is_below(gallery_object: GalleryObject, albums: List[GalleryObject]) -> bool:
        parent = gallery_object.parent
        while parent is not None:
            if any(parent is album for album in albums):
                return True
            parent = parent.parent
        return False

    def delete_orphaned_images(self, album: Album) -> None:
        """
        Delete thumbnail and optimized files no media object of the album refers to.

        Only prefixed files are considered; anything else in the directories
        is left alone.
        """
        settings = self.settings
        album_path = album.full_physical_path_on_disk
        paths = []
        if settings.full_media_object_path in (settings.full_thumbnail_path, settings.full_optimized_path):
            paths.append(album_path)
        for path in (settings.thumbnail_directory_for(album_path), settings.optimized_directory_for(album_path)):
            if path not in paths:
                paths.append(path)

        prefixes = self.derived_file_prefixes()
        referenced = set()
        for media_object in album.media_objects:
            referenced.add(media_object.thumbnail.file_name.lower())
            referenced.add(media_object.optimized.file_name.lower())

        for path in paths:
            if not os.path.isdir(path):
                continue
            for entry in os.scandir(path):
                name = entry.name.lower()
                if not entry.is_file() or not name.startswith(prefixes) or name in referenced:
                    continue
                try:
                    os.remove(entry.path)
                    self.logger.debug(f"Deleted orphaned file {entry.path}")
                except OSError as e:
                    self.context.record_error(e)

        if self.options.recursive:
            for child_album in album.child_albums:
                self.delete_orphaned_images(child_album)
