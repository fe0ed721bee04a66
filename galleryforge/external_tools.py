"""
ExternalTools - ImageMagick and FFmpeg invocations.

Both tools are run through ``sh`` with a timeout. A missing executable, a
non-zero exit or a timeout is never raised to the caller: the raster
conversion reports success purely by the existence of the destination file,
and the video tool returns whatever text it printed before failing.
"""

import logging
import os
from typing import List, Optional

import sh

from .gallery_settings import GallerySettings


class ExternalTools:
    """
    Runs the external raster-conversion and video tools for one gallery.
    """

    def __init__(
        self,
        settings: GallerySettings,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize external tool runner.

        Args:
            settings: Gallery settings providing tool paths and the timeout
            logger: Optional logger instance
        """
        self.settings = settings
        self.timeout = settings.external_tool_timeout_seconds
        self.logger = logger or logging.getLogger(__name__)

    def _command(self, path: str) -> Optional[sh.Command]:
        try:
            return sh.Command(path)
        except sh.CommandNotFound:
            self.logger.warning(f"External tool not found: {path}")
            return None

    def _run(self, path: str, args: List[str]) -> str:
        """Run a tool and return its combined stderr/stdout text."""
        command = self._command(path)
        if command is None:
            return ""

        try:
            result = command(*args, _timeout=self.timeout, _return_cmd=True)
            return self._decode(result.stderr) + self._decode(result.stdout)
        except sh.TimeoutException:
            self.logger.warning(f"{path} timed out after {self.timeout}s: {' '.join(args)}")
            return ""
        except sh.ErrorReturnCode as e:
            self.logger.info(f"{path} exited with code {e.exit_code}")
            return self._decode(e.stderr) + self._decode(e.stdout)

    @staticmethod
    def _decode(data) -> str:
        if not data:
            return ""
        if isinstance(data, bytes):
            return data.decode('utf-8', errors='replace')
        return str(data)

    def generate_raster_thumbnail(self, source_path: str, dest_path: str) -> bool:
        """
        Convert the first page/frame of source_path into a JPEG at dest_path.

        Args:
            source_path: File ImageMagick should read (PDF, PSD, EPS, TIFF, ...)
            dest_path: JPEG file to create

        Returns:
            True if dest_path exists afterwards
        """
        if os.path.exists(dest_path):
            os.remove(dest_path)

        args = [f"{source_path}[0]", '-background', 'white', '-flatten', dest_path]
        self._run(self.settings.image_magick_path, args)

        if os.path.exists(dest_path):
            return True

        self.logger.info(f"ImageMagick produced no output for {source_path}")
        return False

    def generate_video_thumbnail(
        self,
        source_path: str,
        dest_path: str,
        position_seconds: int
    ) -> str:
        """
        Capture one video frame at position_seconds into dest_path.

        Returns:
            Text printed by FFmpeg, which includes the stream description
        """
        args = ['-ss', str(position_seconds), '-i', source_path, '-an', '-vframes', '1', '-y', dest_path]
        return self._run(self.settings.ffmpeg_path, args)

    def probe(self, source_path: str) -> str:
        """
        Return FFmpeg's description of a media file.

        FFmpeg exits with an error when given no output file, but the stream
        description is still printed; that text is what callers parse.
        """
        return self._run(self.settings.ffmpeg_path, ['-hide_banner', '-i', source_path])
