"""
GalleryDb - MySQL backing store for albums, media objects, settings and errors.
"""

import configparser
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import mysql.connector
from mysql.connector import errorcode, pooling
from retrying import retry

from .error_log import AppError
from .exceptions import BusinessError
from .records import AlbumRecord, MediaObjectRecord, MetadataRecord

ALBUM_COLUMNS = (
    'id', 'gallery_id', 'parent_id', 'title', 'directory_name', 'summary', 'thumbnail_media_object_id',
    'sequence', 'is_private', 'date_start', 'date_end', 'owner_user_name',
    'created_by', 'date_added', 'last_modified_by', 'date_last_modified',
)

MEDIA_OBJECT_COLUMNS = (
    'id', 'album_id', 'gallery_object_type', 'title', 'hash_key',
    'thumbnail_file_name', 'thumbnail_width', 'thumbnail_height', 'thumbnail_size_kb',
    'optimized_file_name', 'optimized_width', 'optimized_height', 'optimized_size_kb',
    'original_file_name', 'original_width', 'original_height', 'original_size_kb',
    'external_html_source', 'external_category', 'sequence', 'is_private',
    'created_by', 'date_added', 'last_modified_by', 'date_last_modified',
)

METADATA_COLUMNS = ('id', 'media_object_id', 'name', 'description', 'value')

TABLES = {
    'album': (
        "CREATE TABLE IF NOT EXISTS `album` ("
        "  id INT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  gallery_id INT NOT NULL,"
        "  parent_id INT NULL,"
        "  title VARCHAR(200) NOT NULL DEFAULT '',"
        "  directory_name VARCHAR(255) NOT NULL DEFAULT '',"
        "  summary TEXT,"
        "  thumbnail_media_object_id INT NOT NULL DEFAULT 0,"
        "  sequence INT NOT NULL DEFAULT 0,"
        "  is_private BOOLEAN NOT NULL DEFAULT FALSE,"
        "  date_start DATETIME NULL,"
        "  date_end DATETIME NULL,"
        "  owner_user_name VARCHAR(256) NOT NULL DEFAULT '',"
        "  created_by VARCHAR(256) NOT NULL,"
        "  date_added DATETIME NOT NULL,"
        "  last_modified_by VARCHAR(256) NOT NULL,"
        "  date_last_modified DATETIME NOT NULL,"
        "  INDEX idx_album_parent (parent_id),"
        "  INDEX idx_album_gallery (gallery_id)"
        ") ENGINE=InnoDB"
    ),
    'media_object': (
        "CREATE TABLE IF NOT EXISTS `media_object` ("
        "  id INT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  album_id INT NOT NULL,"
        "  gallery_object_type VARCHAR(20) NOT NULL,"
        "  title VARCHAR(1000) NOT NULL DEFAULT '',"
        "  hash_key CHAR(32) NOT NULL DEFAULT '',"
        "  thumbnail_file_name VARCHAR(255) NOT NULL DEFAULT '',"
        "  thumbnail_width INT NOT NULL DEFAULT 0,"
        "  thumbnail_height INT NOT NULL DEFAULT 0,"
        "  thumbnail_size_kb INT NOT NULL DEFAULT 0,"
        "  optimized_file_name VARCHAR(255) NOT NULL DEFAULT '',"
        "  optimized_width INT NOT NULL DEFAULT 0,"
        "  optimized_height INT NOT NULL DEFAULT 0,"
        "  optimized_size_kb INT NOT NULL DEFAULT 0,"
        "  original_file_name VARCHAR(255) NOT NULL DEFAULT '',"
        "  original_width INT NOT NULL DEFAULT 0,"
        "  original_height INT NOT NULL DEFAULT 0,"
        "  original_size_kb INT NOT NULL DEFAULT 0,"
        "  external_html_source TEXT,"
        "  external_category VARCHAR(20) NOT NULL DEFAULT 'not_set',"
        "  sequence INT NOT NULL DEFAULT 0,"
        "  is_private BOOLEAN NOT NULL DEFAULT FALSE,"
        "  created_by VARCHAR(256) NOT NULL,"
        "  date_added DATETIME NOT NULL,"
        "  last_modified_by VARCHAR(256) NOT NULL,"
        "  date_last_modified DATETIME NOT NULL,"
        "  INDEX idx_media_object_album (album_id),"
        "  INDEX idx_media_object_hash_key (hash_key)"
        ") ENGINE=InnoDB"
    ),
    'media_object_metadata': (
        "CREATE TABLE IF NOT EXISTS `media_object_metadata` ("
        "  id INT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  media_object_id INT NOT NULL,"
        "  name VARCHAR(100) NOT NULL,"
        "  description VARCHAR(200) NOT NULL DEFAULT '',"
        "  value TEXT,"
        "  UNIQUE KEY uq_metadata_item (media_object_id, name)"
        ") ENGINE=InnoDB"
    ),
    'gallery_setting': (
        "CREATE TABLE IF NOT EXISTS `gallery_setting` ("
        "  id INT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  gallery_id INT NOT NULL,"
        "  setting_name VARCHAR(200) NOT NULL,"
        "  setting_value TEXT,"
        "  UNIQUE KEY uq_gallery_setting (gallery_id, setting_name)"
        ") ENGINE=InnoDB"
    ),
    'app_error': (
        "CREATE TABLE IF NOT EXISTS `app_error` ("
        "  id INT NOT NULL AUTO_INCREMENT PRIMARY KEY,"
        "  gallery_id INT NOT NULL,"
        "  timestamp VARCHAR(40) NOT NULL,"
        "  exception_type VARCHAR(200) NOT NULL,"
        "  message TEXT,"
        "  stack_trace TEXT"
        ") ENGINE=InnoDB"
    ),
}


def is_connection_error(e: Exception) -> bool:
    return isinstance(e, mysql.connector.Error)


class GalleryDb:
    """
    Backing store implemented on MySQL.

    Connections come from a lazily created pool; acquiring one is retried
    with exponential backoff. Every statement is parameterized.
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: str,
        database: str,
        port: int = 3306,
        pool_size: int = 8,
        logger: Optional[logging.Logger] = None
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.pool_size = pool_size
        self.logger = logger or logging.getLogger(__name__)
        self.connection_pool = None

    @classmethod
    def from_ini(cls, path: str, section: str = 'database', logger: Optional[logging.Logger] = None) -> 'GalleryDb':
        config = configparser.ConfigParser()
        if not config.read(path):
            raise BusinessError(f"Configuration file not found: {path}")
        if not config.has_section(section):
            raise BusinessError(f"Configuration file {path} has no [{section}] section")
        return cls(
            host=config.get(section, 'host', fallback='localhost'),
            port=config.getint(section, 'port', fallback=3306),
            user=config.get(section, 'user'),
            password=config.get(section, 'password', fallback=''),
            database=config.get(section, 'database'),
            pool_size=config.getint(section, 'pool_size', fallback=8),
            logger=logger,
        )

    def initialize_pool(self) -> None:
        """
        Initialize the connection pool lazily if it hasn't been created yet.
        """
        if not self.connection_pool:
            self.logger.debug("Initializing connection pool...")
            try:
                self.connection_pool = pooling.MySQLConnectionPool(
                    pool_name="gallery_db_pool",
                    pool_size=self.pool_size,
                    user=self.user,
                    password=self.password,
                    host=self.host,
                    port=self.port,
                    database=self.database,
                )
                self.logger.debug("Connection pool initialized.")
            except mysql.connector.Error as err:
                self.logger.error(f"Failed to initialize connection pool: {err}")
                raise

    @retry(retry_on_exception=is_connection_error, stop_max_attempt_number=3, wait_exponential_multiplier=1000)
    def get_cursor(self):
        """
        Get a connection from the pool and create a cursor.
        """
        try:
            self.initialize_pool()
            connection = self.connection_pool.get_connection()
            return connection.cursor(buffered=True), connection
        except mysql.connector.Error as e:
            self.logger.warning(f"Error getting cursor: {e}")
            raise

    def close_connection(self, connection) -> None:
        """
        Return a connection to the pool.
        """
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.logger.warning(f"Error closing connection: {e}")

    def create_tables(self) -> None:
        """
        Create the required database tables if they do not exist.
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            for table_name, table_description in TABLES.items():
                try:
                    self.logger.info(f"Creating table {table_name}...")
                    cursor.execute(table_description)
                except mysql.connector.Error as err:
                    if err.errno == errorcode.ER_TABLE_EXISTS_ERROR:
                        self.logger.info(f"Table {table_name} already exists.")
                    else:
                        self.logger.error(f"Error creating table {table_name}: {err}")
                        raise
            connection.commit()
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Dict]:
        """Run a SELECT and return its rows as dictionaries."""
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {query} {params}")
            cursor.execute(query, params)
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except mysql.connector.Error as e:
            self.logger.error(f"Error fetching records: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def execute(self, sql: str, params: Tuple = ()) -> int:
        """Run one write statement in its own transaction and return the last inserted id."""
        return self.execute_many([(sql, params)])[-1]

    def execute_many(self, statements: Iterable[Tuple[str, Tuple]]) -> List[int]:
        """Run write statements in one transaction; returns the lastrowid of each."""
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            row_ids = []
            for sql, params in statements:
                self.logger.debug(f"SQL: {sql} {params}")
                cursor.execute(sql, params)
                row_ids.append(cursor.lastrowid)
            connection.commit()
            return row_ids
        except mysql.connector.Error as e:
            self.logger.error(f"Error executing statement: {e}")
            if connection:
                connection.rollback()
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    # Albums

    def album_save(self, album) -> int:
        record = AlbumRecord.from_album(album)
        values = tuple(getattr(record, column) for column in ALBUM_COLUMNS[1:])
        if record.id is None:
            columns = ", ".join(ALBUM_COLUMNS[1:])
            placeholders = ", ".join(["%s"] * len(values))
            return self.execute(f"INSERT INTO album ({columns}) VALUES ({placeholders})", values)

        assignments = ", ".join(f"{column} = %s" for column in ALBUM_COLUMNS[1:])
        self.execute(f"UPDATE album SET {assignments} WHERE id = %s", values + (record.id,))
        return record.id

    def album_delete(self, album) -> None:
        self.execute("DELETE FROM album WHERE id = %s", (album.id,))
        self.logger.debug(f"Deleted album record {album.id}")

    def album_load(self, album_id: int) -> Optional[AlbumRecord]:
        rows = self.fetch_all(f"SELECT {', '.join(ALBUM_COLUMNS)} FROM album WHERE id = %s", (album_id,))
        return AlbumRecord.from_dict(rows[0]) if rows else None

    def album_root_record(self, gallery_id: int) -> Optional[AlbumRecord]:
        rows = self.fetch_all(
            f"SELECT {', '.join(ALBUM_COLUMNS)} FROM album WHERE gallery_id = %s AND parent_id IS NULL ORDER BY id",
            (gallery_id,))
        return AlbumRecord.from_dict(rows[0]) if rows else None

    def album_child_records(self, album_id: int) -> Tuple[List[AlbumRecord], List[MediaObjectRecord]]:
        """Child albums and media objects of an album, each ordered by sequence."""
        album_rows = self.fetch_all(
            f"SELECT {', '.join(ALBUM_COLUMNS)} FROM album WHERE parent_id = %s ORDER BY sequence, id",
            (album_id,))
        media_rows = self.fetch_all(
            f"SELECT {', '.join(MEDIA_OBJECT_COLUMNS)} FROM media_object WHERE album_id = %s ORDER BY sequence, id",
            (album_id,))
        metadata_rows = self.fetch_all(
            f"SELECT {', '.join('m.' + c for c in METADATA_COLUMNS)} FROM media_object_metadata m "
            "JOIN media_object o ON o.id = m.media_object_id WHERE o.album_id = %s ORDER BY m.id",
            (album_id,))
        return (
            [AlbumRecord.from_dict(row) for row in album_rows],
            self.build_media_object_records(media_rows, metadata_rows),
        )

    # Media objects

    @staticmethod
    def build_media_object_records(media_rows: List[Dict], metadata_rows: List[Dict]) -> List[MediaObjectRecord]:
        metadata: Dict[int, List[MetadataRecord]] = {}
        for row in metadata_rows:
            metadata.setdefault(row['media_object_id'], []).append(MetadataRecord.from_dict(row))
        records = []
        for row in media_rows:
            record = MediaObjectRecord.from_dict(dict(row, metadata=[]))
            record.metadata = metadata.get(record.id, [])
            records.append(record)
        return records

    def media_object_save(self, media_object) -> int:
        """
        Insert or update a media object and its metadata.

        When every metadata item is flagged for extraction the stored items
        are replaced; otherwise only changed items are written and items
        with an empty value are deleted.
        """
        record = MediaObjectRecord.from_media_object(media_object)
        values = tuple(getattr(record, column) for column in MEDIA_OBJECT_COLUMNS[1:])

        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            if record.id is None:
                columns = ", ".join(MEDIA_OBJECT_COLUMNS[1:])
                placeholders = ", ".join(["%s"] * len(values))
                cursor.execute(f"INSERT INTO media_object ({columns}) VALUES ({placeholders})", values)
                media_object_id = cursor.lastrowid
            else:
                assignments = ", ".join(f"{column} = %s" for column in MEDIA_OBJECT_COLUMNS[1:])
                cursor.execute(f"UPDATE media_object SET {assignments} WHERE id = %s", values + (record.id,))
                media_object_id = record.id

            self.save_metadata(cursor, media_object, media_object_id)
            connection.commit()
            return media_object_id
        except mysql.connector.Error as e:
            self.logger.error(f"Error saving media object {media_object!r}: {e}")
            if connection:
                connection.rollback()
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    @staticmethod
    def save_metadata(cursor, media_object, media_object_id: int) -> None:
        insert = "INSERT INTO media_object_metadata (media_object_id, name, description, value) VALUES (%s, %s, %s, %s)"
        metadata = media_object.metadata

        if media_object.extract_metadata_on_save:
            cursor.execute("DELETE FROM media_object_metadata WHERE media_object_id = %s", (media_object_id,))
            for item in metadata:
                item.id = None
                if item.value:
                    cursor.execute(insert, (media_object_id, item.name.value, item.description, item.value))
                    item.id = cursor.lastrowid
            return

        for item in metadata.items_to_save():
            if not item.value:
                if item.id is not None:
                    cursor.execute("DELETE FROM media_object_metadata WHERE id = %s", (item.id,))
                    item.id = None
            elif item.id is None:
                cursor.execute(insert, (media_object_id, item.name.value, item.description, item.value))
                item.id = cursor.lastrowid
            else:
                cursor.execute("UPDATE media_object_metadata SET description = %s, value = %s WHERE id = %s",
                               (item.description, item.value, item.id))

    def media_object_delete(self, media_object) -> None:
        self.execute_many([
            ("DELETE FROM media_object_metadata WHERE media_object_id = %s", (media_object.id,)),
            ("DELETE FROM media_object WHERE id = %s", (media_object.id,)),
        ])
        self.logger.debug(f"Deleted media object record {media_object.id}")

    def media_object_load(self, media_object_id: int) -> Optional[MediaObjectRecord]:
        media_rows = self.fetch_all(
            f"SELECT {', '.join(MEDIA_OBJECT_COLUMNS)} FROM media_object WHERE id = %s", (media_object_id,))
        if not media_rows:
            return None
        metadata_rows = self.fetch_all(
            f"SELECT {', '.join(METADATA_COLUMNS)} FROM media_object_metadata WHERE media_object_id = %s ORDER BY id",
            (media_object_id,))
        return self.build_media_object_records(media_rows, metadata_rows)[0]

    def media_object_hash_keys(self, gallery_id: int) -> List[Tuple[int, str]]:
        """(id, hash_key) of every media object in a gallery, for the dedup index."""
        rows = self.fetch_all(
            "SELECT o.id, o.hash_key FROM media_object o JOIN album a ON a.id = o.album_id "
            "WHERE a.gallery_id = %s AND o.hash_key <> ''",
            (gallery_id,))
        return [(row['id'], row['hash_key']) for row in rows]

    # Settings and errors

    def gallery_settings_load(self, gallery_id: int) -> Dict[str, str]:
        rows = self.fetch_all(
            "SELECT setting_name, setting_value FROM gallery_setting WHERE gallery_id = %s", (gallery_id,))
        return {row['setting_name']: row['setting_value'] for row in rows}

    def gallery_setting_save(self, gallery_id: int, name: str, value: str) -> None:
        self.execute(
            "INSERT INTO gallery_setting (gallery_id, setting_name, setting_value) VALUES (%s, %s, %s) "
            "ON DUPLICATE KEY UPDATE setting_value = VALUES(setting_value)",
            (gallery_id, name, value))

    def app_error_save(self, app_error: AppError) -> int:
        return self.execute(
            "INSERT INTO app_error (gallery_id, timestamp, exception_type, message, stack_trace) "
            "VALUES (%s, %s, %s, %s, %s)",
            (app_error.gallery_id, app_error.timestamp, app_error.exception_type,
             app_error.message, app_error.stack_trace))
