"""
Main entry point for running the package as a module.

Usage:
    python -m galleryforge init-db --config gallery.ini
    python -m galleryforge sync --config gallery.ini
    python -m galleryforge thumbnail photo.jpg thumb.jpg
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
