"""
Command Line Interface for galleryforge.
"""

import argparse
import configparser
import logging
import os
import signal
import sys
from typing import Callable, Dict, List, Optional

from .context import GalleryContext
from .creators import new_temp_jpeg_path
from .exceptions import BusinessError, GalleryError, UnsupportedImageTypeError
from .external_tools import ExternalTools
from .factory import SYSTEM_USER_NAME, load_album_by_id, load_root_album
from .gallery_db import GalleryDb
from .gallery_settings import GallerySettings, GallerySettingsCache
from .hash_keys import DedupIndex
from .image_helper import resize_file
from .sync_progress import SyncProgress
from .synchronizer import SyncOptions, Synchronizer


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('sh').setLevel(logging.WARNING)
    logging.getLogger('mysql.connector').setLevel(logging.WARNING)
    logging.getLogger('PIL').setLevel(logging.WARNING)

    return logging.getLogger('galleryforge')


def read_ini_section(path: str, section: str) -> Dict[str, str]:
    config = configparser.ConfigParser()
    if not config.read(path):
        raise BusinessError(f"Configuration file not found: {path}")
    if not config.has_section(section):
        raise BusinessError(f"Configuration file {path} has no [{section}] section")
    return dict(config.items(section))


def settings_loader(config_path: str, db: GalleryDb) -> Callable[[int], Dict[str, object]]:
    """Settings rows of a gallery: the [gallery] section overridden by the stored settings."""
    base = read_ini_section(config_path, 'gallery')

    def load(gallery_id: int) -> Dict[str, object]:
        rows: Dict[str, object] = dict(base)
        rows.update(db.gallery_settings_load(gallery_id))
        return rows

    return load


def cmd_init_db(args: argparse.Namespace) -> int:
    """Execute init-db command."""
    logger = setup_logging(args.verbose)

    try:
        db = GalleryDb.from_ini(args.config, logger=logger)
        db.create_tables()
        logger.info(f"Database {db.database} on {db.host} is ready")
        return 0
    except BusinessError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception(f"Database initialization failed: {e}")
        return 1


def cmd_sync(args: argparse.Namespace) -> int:
    """Execute sync command."""
    logger = setup_logging(args.verbose)

    try:
        db = GalleryDb.from_ini(args.config, logger=logger)
        settings_cache = GallerySettingsCache(settings_loader(args.config, db))
        settings = settings_cache.get(args.gallery_id)
    except BusinessError as e:
        logger.error(str(e))
        return 1

    errors = settings.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return 1

    logger.info(f"Gallery: {settings.gallery_id}")
    logger.info(f"Media path: {settings.full_media_object_path}")

    if args.show_files:
        logger.info("Show-files mode: will print each file")

    context = GalleryContext(settings=settings, data_provider=db, logger=logger)

    progress = None
    if not args.quiet:
        progress = SyncProgress(show_files=args.show_files, logger=logger)

    synchronizer = Synchronizer(
        context,
        dedup_index=DedupIndex.from_data_provider(db, settings.gallery_id),
        progress=progress,
        logger=logger,
    )
    options = SyncOptions(
        recursive=args.recursive,
        overwrite_thumbnail=args.overwrite_thumbnails,
        overwrite_optimized=args.overwrite_optimized,
        regenerate_metadata=args.regenerate_metadata,
        user_name=args.user,
    )

    def request_stop(signum, frame):
        logger.info("Interrupted by user, stopping after the current file")
        synchronizer.stop()

    previous_handler = signal.signal(signal.SIGINT, request_stop)
    try:
        if args.album_id is not None:
            album = load_album_by_id(context, args.album_id)
        else:
            album = load_root_album(context)
        stats = synchronizer.synchronize(album, options)
    except GalleryError as e:
        logger.error(f"Synchronization failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Synchronization failed: {e}")
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if not args.quiet:
        print()
        print(f"Albums added: {stats.albums_created}")
        print(f"Files added: {stats.files_created}")
        print(f"Files updated: {stats.files_updated}")
        print(f"Skipped: {stats.files_skipped}")
        print(f"Deleted: {stats.files_deleted + stats.albums_deleted}")
        print(f"Errors: {stats.errors}")
        print(f"Time: {stats.elapsed_seconds:.1f}s")
        print(f"Rate: {stats.rate_per_minute:.1f}/min")
        if stats.terminated:
            print("Stopped before completion")

    return 0 if stats.errors == 0 and not stats.terminated else 1


def cmd_thumbnail(args: argparse.Namespace) -> int:
    """Execute thumbnail command: resize one file, falling back to ImageMagick."""
    logger = setup_logging(args.verbose)

    source = os.path.abspath(args.source)
    if not os.path.isfile(source):
        logger.error(f"Source not found: {args.source}")
        return 1

    try:
        if args.config:
            settings = GallerySettings.from_dict(
                dict(read_ini_section(args.config, 'gallery'), media_object_path=os.path.dirname(source)))
        else:
            settings = GallerySettings(media_object_path=os.path.dirname(source))
    except BusinessError as e:
        logger.error(str(e))
        return 1

    max_length = args.max_length or settings.max_thumbnail_length
    quality = args.quality if args.quality is not None else settings.thumbnail_image_jpeg_quality

    try:
        width, height, size_kb = resize_file(source, args.dest, max_length, args.enlarge, quality)
    except UnsupportedImageTypeError as e:
        logger.info(f"{e}; trying ImageMagick")
        temp_path = new_temp_jpeg_path()
        try:
            if not ExternalTools(settings, logger=logger).generate_raster_thumbnail(source, temp_path):
                logger.error(f"Cannot create a thumbnail of {args.source}")
                return 1
            width, height, size_kb = resize_file(temp_path, args.dest, max_length, args.enlarge, quality)
        except UnsupportedImageTypeError as e:
            logger.error(str(e))
            return 1
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

    logger.info(f"Created {args.dest} ({width}x{height}, {size_kb} KB)")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='galleryforge',
        description='Media gallery synchronization and thumbnail generation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Typical workflow:
  1. Create tables:  galleryforge init-db --config gallery.ini
  2. Synchronize:    galleryforge sync --config gallery.ini
  3. One-off resize: galleryforge thumbnail photo.jpg thumb.jpg --max-length 200

The configuration file holds a [database] section (host, port, user, password,
database) and a [gallery] section (media_object_path and any other setting).
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Init-db command
    init_parser = subparsers.add_parser('init-db', help='Create the database tables')
    init_parser.add_argument('-c', '--config', required=True, help='Configuration file')
    init_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    # Sync command
    sync_parser = subparsers.add_parser('sync', help='Synchronize the gallery with its media directory')
    sync_parser.add_argument('-c', '--config', required=True, help='Configuration file')
    sync_parser.add_argument('-g', '--gallery-id', type=int, default=1, help='Gallery to synchronize (default: 1)')
    sync_parser.add_argument('-a', '--album-id', type=int, help='Album to synchronize (default: root album)')
    sync_parser.add_argument('--recursive', action=argparse.BooleanOptionalAction, default=True,
                             help='Also synchronize child directories (default: yes)')
    sync_parser.add_argument('--overwrite-thumbnails', action='store_true', help='Recreate every thumbnail')
    sync_parser.add_argument('--overwrite-optimized', action='store_true', help='Recreate every optimized image')
    sync_parser.add_argument('--regenerate-metadata', action='store_true', help='Re-extract all metadata')
    sync_parser.add_argument('-u', '--user', default=SYSTEM_USER_NAME,
                             help=f'User recorded in the audit fields (default: {SYSTEM_USER_NAME})')
    sync_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')
    sync_parser.add_argument('--show-files', action='store_true',
                             help='Print each file as synchronized with result')
    sync_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    # Thumbnail command
    thumb_parser = subparsers.add_parser('thumbnail', help='Resize one image into a JPEG thumbnail')
    thumb_parser.add_argument('source', help='Image to resize')
    thumb_parser.add_argument('dest', help='JPEG file to write')
    thumb_parser.add_argument('-s', '--max-length', type=int, help='Longest edge in pixels (default: 115)')
    thumb_parser.add_argument('-q', '--quality', type=int, help='JPEG quality (default: 70)')
    thumb_parser.add_argument('--enlarge', action='store_true', help='Enlarge images smaller than the maximum')
    thumb_parser.add_argument('-c', '--config', help='Configuration file with ImageMagick settings')
    thumb_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == 'init-db':
        return cmd_init_db(parsed_args)
    elif parsed_args.command == 'sync':
        return cmd_sync(parsed_args)
    elif parsed_args.command == 'thumbnail':
        return cmd_thumbnail(parsed_args)

    return 1


if __name__ == '__main__':
    sys.exit(main())
