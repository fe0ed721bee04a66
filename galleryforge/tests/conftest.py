"""
Pytest fixtures for galleryforge tests.
"""

import itertools
import logging
import os

import pytest


class InMemoryStore:
    """
    Backing store keeping records in dictionaries.

    Implements the data provider interface the gallery objects, the
    synchronizer and the error log call, without a database.
    """

    def __init__(self):
        self.albums = {}
        self.media_objects = {}
        self.settings = {}
        self.errors = []
        self._ids = itertools.count(1)

    def album_save(self, album):
        from galleryforge.records import AlbumRecord
        record = AlbumRecord.from_album(album)
        if record.id is None:
            record.id = next(self._ids)
        self.albums[record.id] = record
        return record.id

    def album_delete(self, album):
        self.albums.pop(album.id, None)

    def album_load(self, album_id):
        return self.albums.get(album_id)

    def album_root_record(self, gallery_id):
        for record in self.albums.values():
            if record.gallery_id == gallery_id and record.parent_id is None:
                return record
        return None

    def album_child_records(self, album_id):
        albums = sorted(
            (r for r in self.albums.values() if r.parent_id == album_id), key=lambda r: (r.sequence, r.id))
        media = sorted(
            (r for r in self.media_objects.values() if r.album_id == album_id), key=lambda r: (r.sequence, r.id))
        return albums, media

    def media_object_save(self, media_object):
        from galleryforge.records import MediaObjectRecord
        record = MediaObjectRecord.from_media_object(media_object)
        if record.id is None:
            record.id = next(self._ids)
        for item in record.metadata:
            item.media_object_id = record.id
        self.media_objects[record.id] = record
        return record.id

    def media_object_delete(self, media_object):
        self.media_objects.pop(media_object.id, None)

    def media_object_load(self, media_object_id):
        return self.media_objects.get(media_object_id)

    def media_object_hash_keys(self, gallery_id):
        album_ids = {r.id for r in self.albums.values() if r.gallery_id == gallery_id}
        return [(r.id, r.hash_key) for r in self.media_objects.values()
                if r.album_id in album_ids and r.hash_key]

    def gallery_settings_load(self, gallery_id):
        return dict(self.settings.get(gallery_id, {}))

    def app_error_save(self, app_error):
        self.errors.append(app_error)
        return len(self.errors)


def write_image(path, size=(100, 80), color='red', image_format=None):
    """Write a solid-color image and return its path."""
    from PIL import Image

    os.makedirs(os.path.dirname(path), exist_ok=True)
    img = Image.new('RGB', size, color=color)
    img.save(path, format=image_format)
    img.close()
    return path


@pytest.fixture
def logger():
    """Fixture providing a logger."""
    return logging.getLogger('test')


@pytest.fixture
def media_dir(tmp_path):
    """Fixture providing an empty media object directory."""
    path = tmp_path / "media"
    path.mkdir()
    return str(path)


@pytest.fixture
def settings(media_dir):
    """Fixture providing gallery settings without ImageMagick file types."""
    from galleryforge.gallery_settings import GallerySettings

    return GallerySettings(media_object_path=media_dir, image_magick_file_types=())


@pytest.fixture
def store():
    """Fixture providing an empty in-memory backing store."""
    return InMemoryStore()


@pytest.fixture
def context(settings, store, logger):
    """Fixture providing a gallery context on the in-memory store."""
    from galleryforge.context import GalleryContext

    return GalleryContext(settings=settings, data_provider=store, logger=logger)


@pytest.fixture
def root_album(context):
    """Fixture providing the saved root album of the gallery."""
    from galleryforge.factory import load_root_album

    return load_root_album(context)


@pytest.fixture
def make_image(media_dir):
    """Fixture providing a function that writes an image below the media directory."""
    def make(relative_path, size=(100, 80), color='red'):
        return write_image(os.path.join(media_dir, relative_path), size=size, color=color)
    return make


@pytest.fixture
def sample_jpeg(make_image):
    """Fixture providing a small JPEG in the media directory."""
    return make_image('photo.jpg')


@pytest.fixture
def large_jpeg(make_image):
    """Fixture providing a JPEG larger than the optimized image length."""
    return make_image('large.jpg', size=(1000, 800), color='blue')


@pytest.fixture
def sample_png(media_dir):
    """Fixture providing a PNG with transparency in the media directory."""
    from PIL import Image

    path = os.path.join(media_dir, 'drawing.png')
    img = Image.new('RGBA', (60, 120), color=(255, 0, 0, 128))
    img.save(path, format='PNG')
    img.close()
    return path
