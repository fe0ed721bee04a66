"""Tests for Album class and album thumbnails."""

import dataclasses
import os
import pytest

from galleryforge.album import assign_album_thumbnail, create_virtual_album, first_media_object_id
from galleryforge.context import GalleryContext
from galleryforge.exceptions import BusinessError
from galleryforge.factory import create_album, create_media_object, load_album_by_id, load_root_album
from galleryforge.gallery_object import GalleryObjectType


def save(gallery_object, user_name="tester"):
    gallery_object.update_audit_fields(user_name)
    gallery_object.save()


class TestAlbum:
    """Tests for Album class."""

    def test_root_album(self, root_album, settings, store):
        """Test the root album maps to the media path."""
        assert root_album.is_root_album
        assert root_album.full_physical_path == settings.full_media_object_path
        assert root_album.title == "All albums"
        assert store.albums[root_album.id].parent_id is None

    def test_save_creates_directory(self, root_album, media_dir):
        """Test saving a new album creates its directory from the title."""
        album = create_album(root_album, title="Summer 2020")

        save(album)

        assert album.directory_name == "Summer 2020"
        assert os.path.isdir(os.path.join(media_dir, "Summer 2020"))
        assert album.full_physical_path_on_disk == os.path.join(root_album.full_physical_path, "Summer 2020")
        assert album.sequence == 1

    def test_title_from_directory(self, root_album):
        """Test an album without title takes its directory name."""
        album = create_album(root_album, directory_name="trips")

        save(album)

        assert album.title == "trips"

    def test_directory_name_collision(self, root_album, media_dir):
        """Test a taken directory name gets a counter."""
        os.makedirs(os.path.join(media_dir, "Trips"))
        album = create_album(root_album, title="Trips")

        save(album)

        assert album.directory_name == "Trips(1)"

    def test_title_truncated(self, root_album):
        """Test album titles are limited to 200 characters."""
        album = create_album(root_album)

        album.title = "x" * 250

        assert len(album.title) == 200

    def test_rename_moves_directory(self, settings, store, logger, media_dir):
        """Test a title change renames the directory when titles and directories are kept in sync."""
        settings = dataclasses.replace(settings, synch_album_title_and_directory_name=True)
        root = load_root_album(GalleryContext(settings=settings, data_provider=store, logger=logger))
        album = create_album(root, title="Summer")
        save(album)

        album.title = "Winter"
        save(album)

        assert album.directory_name == "Winter"
        assert os.path.isdir(os.path.join(media_dir, "Winter"))
        assert not os.path.exists(os.path.join(media_dir, "Summer"))

    def test_rename_moves_cache_directory(self, tmp_path, settings, store, logger, media_dir):
        """Test the thumbnail directory follows a moved album."""
        thumbs = str(tmp_path / "thumbs")
        settings = dataclasses.replace(settings, synch_album_title_and_directory_name=True, thumbnail_path=thumbs)
        root = load_root_album(GalleryContext(settings=settings, data_provider=store, logger=logger))
        album = create_album(root, title="Summer")
        save(album)

        album.title = "Winter"
        save(album)

        assert os.path.isdir(os.path.join(thumbs, "Winter"))
        assert not os.path.exists(os.path.join(thumbs, "Summer"))

    def test_rename_avoids_stale_cache_directory(self, tmp_path, settings, store, logger, make_image):
        """Test a name left over in the thumbnail tree is not reused by a rename."""
        thumbs = str(tmp_path / "thumbs")
        settings = dataclasses.replace(settings, synch_album_title_and_directory_name=True, thumbnail_path=thumbs)
        root = load_root_album(GalleryContext(settings=settings, data_provider=store, logger=logger))
        album = create_album(root, title="Summer")
        save(album)
        image = create_media_object(make_image(os.path.join("Summer", "a.jpg")), album)
        save(image)
        os.makedirs(os.path.join(thumbs, "Winter"))

        album.title = "Winter"
        save(album)

        assert album.directory_name == "Winter(1)"
        assert os.path.isfile(os.path.join(thumbs, "Winter(1)", "zThumb_a.jpg"))
        assert os.listdir(os.path.join(thumbs, "Winter")) == []
        assert image.thumbnail.exists()

    def test_rename_collision_moves_cache_directories(self, tmp_path, settings, store, logger, media_dir,
                                                      make_image):
        """Test the media and cache directories all move to the same unique name."""
        thumbs = str(tmp_path / "thumbs")
        optimized = str(tmp_path / "optimized")
        settings = dataclasses.replace(settings, synch_album_title_and_directory_name=True,
                                       thumbnail_path=thumbs, optimized_path=optimized)
        root = load_root_album(GalleryContext(settings=settings, data_provider=store, logger=logger))
        album = create_album(root, title="Summer")
        save(album)
        image = create_media_object(make_image(os.path.join("Summer", "big.jpg"), size=(1000, 800)), album)
        save(image)
        os.makedirs(os.path.join(media_dir, "Winter"))

        album.title = "Winter"
        save(album)

        assert album.directory_name == "Winter(1)"
        assert os.path.isfile(os.path.join(media_dir, "Winter(1)", "big.jpg"))
        assert os.path.isfile(os.path.join(thumbs, "Winter(1)", "zThumb_big.jpg"))
        assert os.path.isfile(os.path.join(optimized, "Winter(1)", "zOpt_big.jpg"))
        for tree in (media_dir, thumbs, optimized):
            assert not os.path.exists(os.path.join(tree, "Summer"))
        assert image.optimized.exists()

    def test_move_cache_directory_replaces_empty_target(self, root_album, tmp_path):
        """Test an empty directory at the target is replaced instead of receiving the old one."""
        old = tmp_path / "thumbs" / "Summer"
        new = tmp_path / "thumbs" / "Winter"
        old.mkdir(parents=True)
        (old / "zThumb_a.jpg").write_bytes(b"jpeg")
        new.mkdir()

        root_album.save_behavior.move_cache_directory(str(old), str(new), str(tmp_path / "media" / "Winter"))

        assert os.listdir(new) == ["zThumb_a.jpg"]
        assert not old.exists()

    def test_move_cache_directory_keeps_non_empty_target(self, root_album, tmp_path, store):
        """Test a non-empty target leaves both directories in place and records the conflict."""
        old = tmp_path / "thumbs" / "Summer"
        new = tmp_path / "thumbs" / "Winter"
        old.mkdir(parents=True)
        (old / "zThumb_a.jpg").write_bytes(b"jpeg")
        new.mkdir()
        (new / "zThumb_b.jpg").write_bytes(b"jpeg")

        root_album.save_behavior.move_cache_directory(str(old), str(new), str(tmp_path / "media" / "Winter"))

        assert os.listdir(old) == ["zThumb_a.jpg"]
        assert os.listdir(new) == ["zThumb_b.jpg"]
        assert len(store.errors) == 1

    def test_children_inherit_privacy(self, root_album):
        """Test new child albums copy the parent's privacy."""
        parent = create_album(root_album, title="Private")
        parent.is_private = True

        child = create_album(parent, title="Child")

        assert child.is_private is True

    def test_get_children_filters(self, root_album, sample_jpeg):
        """Test filtering children by type."""
        album = create_album(root_album, title="A")
        image = create_media_object(sample_jpeg, root_album)

        assert root_album.child_albums == [album]
        assert root_album.media_objects == [image]
        assert root_album.get_children(GalleryObjectType.IMAGE) == [image]

    def test_add_moves_object(self, root_album, sample_jpeg):
        """Test adding an object to another album reparents it."""
        album = create_album(root_album, title="A")
        image = create_media_object(sample_jpeg, root_album)

        album.add(image)

        assert image.parent is album
        assert image not in root_album.children

    def test_children_loaded_from_store(self, context, root_album, make_image):
        """Test stored children are loaded lazily."""
        album = create_album(root_album, title="Trips")
        save(album)
        image = create_media_object(make_image(os.path.join("Trips", "beach.jpg")), album)
        save(image)

        reloaded = load_root_album(context)

        assert reloaded is not root_album
        [trips] = reloaded.child_albums
        assert trips.id == album.id
        [beach] = trips.media_objects
        assert beach.id == image.id
        assert beach.thumbnail.file_name == "zThumb_beach.jpg"
        assert beach.thumbnail.exists()

    def test_load_album_by_id(self, context, root_album):
        """Test an album is loaded with its parents."""
        album = create_album(root_album, title="A")
        save(album)
        child = create_album(album, title="B")
        save(child)

        loaded = load_album_by_id(context, child.id)

        assert loaded.title == "B"
        assert loaded.parent.id == album.id
        assert loaded.parent.parent.is_root_album
        assert loaded.full_physical_path == child.full_physical_path


class TestAlbumDelete:
    """Tests for deleting albums."""

    def test_delete_album_tree(self, root_album, make_image, media_dir, store):
        """Test an album, its objects and its directory are deleted."""
        album = create_album(root_album, title="Trips")
        save(album)
        image = create_media_object(make_image(os.path.join("Trips", "beach.jpg")), album)
        save(image)

        album.delete()

        assert not os.path.exists(os.path.join(media_dir, "Trips"))
        assert album.id not in store.albums
        assert image.id not in store.media_objects
        assert album not in root_album.children

    def test_root_album_cannot_be_deleted(self, root_album):
        """Test deleting the root album is rejected."""
        with pytest.raises(BusinessError):
            root_album.delete()


class TestAlbumThumbnail:
    """Tests for album thumbnail assignment."""

    def test_first_saved_object_becomes_thumbnail(self, root_album, make_image):
        """Test saving a media object gives its album a thumbnail."""
        album = create_album(root_album, title="Trips")
        save(album)
        image = create_media_object(make_image(os.path.join("Trips", "beach.jpg")), album)
        save(image)

        assert album.thumbnail_media_object_id == image.id
        assert album.thumbnail.physical_path == image.thumbnail.physical_path

    def test_thumbnail_from_child_album(self, root_album, make_image):
        """Test an album without media objects uses one from a child album."""
        parent = create_album(root_album, title="Parent")
        save(parent)
        child = create_album(parent, title="Child")
        save(child)
        image = create_media_object(make_image(os.path.join("Parent", "Child", "a.jpg")), child)
        save(image)

        assert first_media_object_id(parent) == image.id
        assert parent.thumbnail_media_object_id == image.id

    def test_reassigned_after_delete(self, root_album, make_image):
        """Test deleting the thumbnail object picks the next one."""
        album = create_album(root_album, title="Trips")
        save(album)
        first = create_media_object(make_image(os.path.join("Trips", "a.jpg")), album)
        save(first)
        second = create_media_object(make_image(os.path.join("Trips", "b.jpg"), color='green'), album)
        save(second)

        first.delete()

        assert album.thumbnail_media_object_id == second.id

    def test_requires_album(self):
        """Test a missing album is rejected."""
        with pytest.raises(ValueError):
            assign_album_thumbnail(None)


class TestVirtualAlbum:
    """Tests for virtual albums."""

    def test_virtual_album_keeps_parent(self, context, root_album, sample_jpeg):
        """Test a virtual album collects objects without reparenting them."""
        virtual = create_virtual_album(context)
        image = create_media_object(sample_jpeg, root_album)

        virtual.add(image)

        assert virtual.is_virtual
        assert not virtual.is_root_album
        assert virtual.full_physical_path == ""
        assert image.parent is root_album
        assert virtual.children == [image]

    def test_existing_album_cannot_become_virtual(self, root_album):
        """Test a saved album cannot be made virtual."""
        with pytest.raises(BusinessError):
            root_album.is_virtual = True
