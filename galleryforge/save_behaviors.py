"""
Save and delete behaviors for media objects and albums.

A save behavior writes the object's files first and its record second; the
record is never written for files that failed. File-system changes are not
rolled back when the backing store rejects the record.
"""

import os
import shutil

from .exceptions import BusinessError, UnsupportedImageTypeError
from .file_names import validate_directory_name
from .metadata import MetadataItemCollection


class MediaObjectSaveBehavior:
    """
    Saves an image, video, audio, generic or external media object.

    The original is rotated first, then the thumbnail and optimized files are
    generated from it. An unreadable image degrades to a stock-icon thumbnail
    and no optimized file instead of failing the save.
    """

    def __init__(self, media_object):
        self.media_object = media_object

    def save(self) -> None:
        obj = self.media_object

        # Rotation failures are fatal; everything after this may only degrade
        obj.original.generate_and_save_file()

        try:
            obj.thumbnail.generate_and_save_file()
            obj.optimized.generate_and_save_file()
        except UnsupportedImageTypeError as e:
            obj.context.logger.warning(
                f"Cannot read {obj.original.file_name}; using a generic thumbnail ({e})")
            obj.set_generic_fallback()
            obj.thumbnail.generate_and_save_file()
        finally:
            self.delete_temp_file()

        self.update_metadata()

        object_id = obj.persist_record()
        obj.finalize_artifacts(object_id)

    def delete_temp_file(self) -> None:
        """Remove the intermediate JPEG left by ImageMagick; failures are only recorded."""
        original = self.media_object.original
        temp_path = original.temp_file_path
        original.temp_file_path = ""
        if not temp_path or not os.path.exists(temp_path):
            return
        try:
            os.remove(temp_path)
        except OSError as e:
            self.media_object.context.record_error(e)

    def extract_metadata(self) -> MetadataItemCollection:
        """
        Read the metadata of the original file.

        Raises:
            UnsupportedImageTypeError: If reading the file exhausts memory
        """
        obj = self.media_object
        try:
            return obj.context.metadata_extractor.extract(obj.original.physical_path, obj.metadata_category)
        except UnsupportedImageTypeError:
            obj.original.release()
            raise
        except MemoryError as e:
            obj.original.release()
            raise UnsupportedImageTypeError(obj.original.physical_path) from e

    def update_metadata(self) -> None:
        """
        Refresh the metadata from the original file.

        With extract_metadata_on_save every item is replaced by a fresh
        extraction. Otherwise only the items flagged for re-extraction are
        refreshed; an item missing from the file gets an empty value, which
        the backing store deletes.
        """
        obj = self.media_object
        # External media objects have no file to read
        if not obj.original.physical_path:
            return

        if obj.extract_metadata_on_save:
            extracted = self.extract_metadata()
            obj.metadata.clear()
            obj.metadata.add_range(extracted)
            # Tells the backing store to replace every stored item
            obj.extract_metadata_on_save = True
            obj.has_changes = True
            return

        items_to_update = obj.metadata.items_to_update()
        if not items_to_update:
            return

        extracted = self.extract_metadata()
        for item in items_to_update:
            item.value = extracted.value_of(item.name)


class AlbumSaveBehavior:
    """
    Saves an album: its directory first, its record second.

    Virtual albums are never saved. The root album's directory is the media
    object path, which is never created or moved here.
    """

    def __init__(self, album):
        self.album = album

    def save(self) -> None:
        album = self.album
        if album.is_virtual:
            return

        self.persist_to_file_system()

        object_id = album.persist_record()
        album.finalize_artifacts(object_id)

    def persist_to_file_system(self) -> None:
        album = self.album
        if album.is_root_album:
            return

        settings = album.settings
        if album.is_new:
            path = album.full_physical_path
            os.makedirs(path, exist_ok=True)
            for cache_path in (settings.thumbnail_directory_for(path), settings.optimized_directory_for(path)):
                if cache_path != path:
                    os.makedirs(cache_path, exist_ok=True)
            album.context.logger.debug(f"Created album directory {path}")
            return

        old_path = album.full_physical_path_on_disk
        if not old_path or old_path == album.full_physical_path:
            return

        # The wanted name may be taken by a sibling or a stale cache directory
        parent_directory = os.path.dirname(album.full_physical_path)
        new_name = validate_directory_name(
            parent_directory, album.directory_name, settings.default_album_directory_name_length,
            also_free_in=settings.cache_directories_for(parent_directory))
        if new_name != album.directory_name:
            album.directory_name = new_name

        new_path = album.full_physical_path
        if not os.path.isdir(old_path):
            raise BusinessError(f"Cannot move album {album.id} because its directory {old_path} does not exist.")
        shutil.move(old_path, new_path)
        album.context.logger.info(f"Moved album directory {old_path} to {new_path}")

        self.move_cache_directory(
            settings.thumbnail_directory_for(old_path), settings.thumbnail_directory_for(new_path), new_path)
        self.move_cache_directory(
            settings.optimized_directory_for(old_path), settings.optimized_directory_for(new_path), new_path)

    def move_cache_directory(self, old_cache_path: str, new_cache_path: str, album_path: str) -> None:
        """
        Move a thumbnail or optimized cache directory along with its album.

        A cache directory that was never created is created empty at the new
        location. An empty directory already at the new location is replaced;
        a non-empty one is left alone together with the old directory and the
        conflict is recorded. Failures are recorded, never raised.
        """
        if new_cache_path == album_path:
            return
        try:
            if os.path.isdir(old_cache_path):
                if os.path.isdir(new_cache_path):
                    if os.listdir(new_cache_path):
                        raise BusinessError(
                            f"Cannot move cache directory {old_cache_path} because {new_cache_path} "
                            f"already exists and is not empty.")
                    os.rmdir(new_cache_path)
                os.makedirs(os.path.dirname(new_cache_path), exist_ok=True)
                shutil.move(old_cache_path, new_cache_path)
            elif not os.path.isdir(new_cache_path):
                os.makedirs(new_cache_path)
        except (OSError, BusinessError) as e:
            self.album.context.logger.warning(f"Cannot move cache directory {old_cache_path}: {e}")
            self.album.context.record_error(e)


class MediaObjectDeleteBehavior:
    """
    Deletes a media object's files and record.

    The original is kept when the media path is read-only. Failures deleting
    the thumbnail or optimized file are recorded and do not stop the delete.
    """

    def __init__(self, media_object):
        self.media_object = media_object

    def delete(self, from_file_system: bool = True) -> None:
        obj = self.media_object
        if from_file_system:
            self.delete_files()

        if obj.data_provider is not None and not obj.is_new:
            obj.data_provider.media_object_delete(obj)

        if obj.dedup_index is not None and obj.hash_key and not obj.is_new:
            obj.dedup_index.discard(obj.hash_key, obj.id)

    def delete_files(self) -> None:
        obj = self.media_object
        obj.original.release()

        self.delete_file(obj.thumbnail.physical_path)
        # Without a separate optimized file the optimized path is the original
        if obj.optimized.file_name != obj.original.file_name:
            self.delete_file(obj.optimized.physical_path)

        if not obj.settings.media_object_path_is_read_only:
            original_path = obj.original.physical_path
            if original_path and os.path.exists(original_path):
                os.remove(original_path)

    def delete_file(self, path: str) -> None:
        if not path or not os.path.exists(path):
            return
        try:
            os.remove(path)
        except OSError as e:
            self.media_object.context.record_error(e)


class AlbumDeleteBehavior:
    """
    Deletes an album, everything below it and its directories.
    """

    def __init__(self, album):
        self.album = album

    def delete(self, from_file_system: bool = True) -> None:
        album = self.album
        if album.is_root_album:
            raise BusinessError("The root album cannot be deleted.")

        for child in album.children:
            child.delete_behavior.delete(from_file_system)
            album.remove(child)

        if from_file_system and not album.is_virtual and not album.settings.media_object_path_is_read_only:
            self.delete_directories()

        if album.data_provider is not None and not album.is_new and not album.is_virtual:
            album.data_provider.album_delete(album)

    def delete_directories(self) -> None:
        album = self.album
        settings = album.settings
        path = album.full_physical_path_on_disk or album.full_physical_path
        if not path:
            return

        for cache_path in (settings.thumbnail_directory_for(path), settings.optimized_directory_for(path)):
            if cache_path != path and os.path.isdir(cache_path):
                try:
                    shutil.rmtree(cache_path)
                except OSError as e:
                    album.context.record_error(e)

        if os.path.isdir(path):
            shutil.rmtree(path)
            album.context.logger.info(f"Deleted album directory {path}")
