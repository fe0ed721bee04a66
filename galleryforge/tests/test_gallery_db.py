"""Tests for GalleryDb class."""

import mysql.connector
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock

from galleryforge.exceptions import BusinessError
from galleryforge.factory import create_album
from galleryforge.gallery_db import TABLES, GalleryDb
from galleryforge.metadata import MetadataItem, MetadataItemCollection, MetadataItemName


class TestGalleryDb:
    """Tests for GalleryDb class."""

    @pytest.fixture
    def cursor(self):
        """Mock cursor returned by every pooled connection."""
        cursor = MagicMock()
        cursor.lastrowid = 42
        return cursor

    @pytest.fixture
    def connection(self, cursor):
        """Mock pooled connection."""
        connection = MagicMock()
        connection.cursor.return_value = cursor
        return connection

    @pytest.fixture
    def mock_pool(self, mocker, connection):
        """Patch the MySQL connection pool."""
        pool_class = mocker.patch('galleryforge.gallery_db.pooling.MySQLConnectionPool')
        pool_class.return_value.get_connection.return_value = connection
        return pool_class

    @pytest.fixture
    def db(self, logger):
        """GalleryDb with test credentials."""
        return GalleryDb(host='db', user='gallery', password='secret', database='gallery', logger=logger)

    def test_pool_created_lazily(self, db, mock_pool, cursor):
        """Test the pool is created on first use and reused afterwards."""
        assert db.connection_pool is None

        db.get_cursor()
        db.get_cursor()

        mock_pool.assert_called_once()
        assert mock_pool.call_args.kwargs['database'] == 'gallery'
        assert mock_pool.call_args.kwargs['pool_size'] == 8

    def test_get_cursor_buffered(self, db, mock_pool, connection, cursor):
        """Test cursors are buffered."""
        result = db.get_cursor()

        assert result == (cursor, connection)
        connection.cursor.assert_called_with(buffered=True)

    def test_fetch_all_returns_dicts(self, db, mock_pool, cursor, connection):
        """Test rows are returned as dictionaries keyed by column name."""
        cursor.description = [('setting_name',), ('setting_value',)]
        cursor.fetchall.return_value = [('max_thumbnail_length', '200')]

        rows = db.fetch_all("SELECT setting_name, setting_value FROM gallery_setting")

        assert rows == [{'setting_name': 'max_thumbnail_length', 'setting_value': '200'}]
        cursor.close.assert_called_once()
        connection.close.assert_called_once()

    def test_gallery_settings_load(self, db, mock_pool, cursor):
        """Test settings rows become a name to value mapping."""
        cursor.description = [('setting_name',), ('setting_value',)]
        cursor.fetchall.return_value = [('media_object_path', '/srv/media'), ('gallery_id', '2')]

        settings = db.gallery_settings_load(2)

        assert settings == {'media_object_path': '/srv/media', 'gallery_id': '2'}
        assert cursor.execute.call_args[0][1] == (2,)

    def test_media_object_hash_keys(self, db, mock_pool, cursor):
        """Test hash keys are returned as (id, hash_key) pairs."""
        cursor.description = [('id',), ('hash_key',)]
        cursor.fetchall.return_value = [(1, 'abc'), (2, 'def')]

        assert db.media_object_hash_keys(1) == [(1, 'abc'), (2, 'def')]

    def test_album_load_missing(self, db, mock_pool, cursor):
        """Test an unknown album id returns None."""
        cursor.description = [('id',)]
        cursor.fetchall.return_value = []

        assert db.album_load(5) is None

    def test_execute_many_commits(self, db, mock_pool, cursor, connection):
        """Test statements run in one transaction."""
        row_ids = db.execute_many([("DELETE FROM album WHERE id = %s", (1,)), ("DELETE FROM album WHERE id = %s", (2,))])

        assert row_ids == [42, 42]
        assert cursor.execute.call_count == 2
        connection.commit.assert_called_once()

    def test_execute_many_rolls_back(self, db, mock_pool, cursor, connection):
        """Test a failing statement rolls back the transaction."""
        cursor.execute.side_effect = mysql.connector.Error("boom")

        with pytest.raises(mysql.connector.Error):
            db.execute("DELETE FROM album WHERE id = %s", (1,))

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()
        connection.close.assert_called_once()

    def test_album_save_insert(self, db, mock_pool, cursor, root_album):
        """Test a new album is inserted and gets the generated id."""
        album = create_album(root_album, title="Trips", directory_name="Trips")

        assert db.album_save(album) == 42

        sql, params = cursor.execute.call_args[0]
        assert sql.startswith("INSERT INTO album")
        assert params[0] == root_album.gallery_id
        assert params[1] == root_album.id
        assert params[2] == "Trips"

    def test_album_save_update(self, db, mock_pool, cursor, root_album):
        """Test an existing album is updated by id."""
        assert db.album_save(root_album) == root_album.id

        sql, params = cursor.execute.call_args[0]
        assert sql.startswith("UPDATE album SET")
        assert params[-1] == root_album.id

    def test_create_tables(self, db, mock_pool, cursor, connection):
        """Test every table is created."""
        db.create_tables()

        assert cursor.execute.call_count == len(TABLES)
        connection.commit.assert_called_once()


class TestSaveMetadata:
    """Tests for GalleryDb.save_metadata."""

    def test_replace_all_on_extract(self):
        """Test extraction replaces every stored item and skips empty values."""
        cursor = MagicMock(lastrowid=9)
        metadata = MetadataItemCollection([
            MetadataItem(MetadataItemName.TITLE, "Beach", id=1),
            MetadataItem(MetadataItemName.AUTHOR, "", id=2),
        ])
        metadata.extract_on_save = True
        media_object = SimpleNamespace(metadata=metadata, extract_metadata_on_save=True)

        GalleryDb.save_metadata(cursor, media_object, 5)

        statements = [call[0][0] for call in cursor.execute.call_args_list]
        assert statements[0].startswith("DELETE FROM media_object_metadata WHERE media_object_id")
        assert len(statements) == 2
        assert metadata.get(MetadataItemName.TITLE).id == 9
        assert metadata.get(MetadataItemName.AUTHOR).id is None

    def test_changed_items_only(self):
        """Test only changed items are written: new ones inserted, existing updated, emptied deleted."""
        cursor = MagicMock(lastrowid=11)
        new_item = MetadataItem(MetadataItemName.TITLE, "Beach")
        updated_item = MetadataItem(MetadataItemName.AUTHOR, "Jane", id=3)
        emptied_item = MetadataItem(MetadataItemName.COMMENT, "", id=4)
        unchanged_item = MetadataItem(MetadataItemName.COPYRIGHT, "(c)", id=5, has_changes=False)
        media_object = SimpleNamespace(
            metadata=MetadataItemCollection([new_item, updated_item, emptied_item, unchanged_item]),
            extract_metadata_on_save=False,
        )

        GalleryDb.save_metadata(cursor, media_object, 5)

        statements = [call[0][0].split()[0] for call in cursor.execute.call_args_list]
        assert statements == ['INSERT', 'UPDATE', 'DELETE']
        assert new_item.id == 11
        assert emptied_item.id is None


class TestFromIni:
    """Tests for GalleryDb.from_ini."""

    def test_reads_section(self, tmp_path):
        """Test connection settings are read from the database section."""
        config = tmp_path / "gallery.ini"
        config.write_text("[database]\nhost = db.local\nport = 3307\nuser = gallery\ndatabase = photos\n")

        db = GalleryDb.from_ini(str(config))

        assert (db.host, db.port, db.user, db.password, db.database) == ('db.local', 3307, 'gallery', '', 'photos')

    def test_missing_file(self, tmp_path):
        """Test a missing file raises BusinessError."""
        with pytest.raises(BusinessError):
            GalleryDb.from_ini(str(tmp_path / "missing.ini"))

    def test_missing_section(self, tmp_path):
        """Test a file without the section raises BusinessError."""
        config = tmp_path / "gallery.ini"
        config.write_text("[gallery]\nmedia_object_path = /srv/media\n")

        with pytest.raises(BusinessError):
            GalleryDb.from_ini(str(config))
