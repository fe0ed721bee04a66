"""
GalleryContext - Collaborators shared by every object of one gallery.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .error_log import ErrorLog
from .external_tools import ExternalTools
from .gallery_settings import GallerySettings
from .metadata_extractor import MetadataExtractor


@dataclass
class GalleryContext:
    """
    Settings and collaborators for one gallery.

    An album holds the context and every object below it reaches it through
    its parent, so a media object never looks up global state.

    Attributes:
        settings: Read-only gallery settings
        data_provider: Backing store; None keeps objects in memory only
        error_log: Receives non-fatal errors
        external_tools: ImageMagick and FFmpeg runner
        metadata_extractor: Reads metadata from media files
        logger: Logger used by the pipeline components
    """
    settings: GallerySettings
    data_provider: Optional[object] = None
    error_log: Optional[ErrorLog] = None
    external_tools: Optional[ExternalTools] = None
    metadata_extractor: Optional[MetadataExtractor] = None
    logger: Optional[logging.Logger] = None

    def __post_init__(self):
        if self.logger is None:
            self.logger = logging.getLogger('galleryforge')
        if self.error_log is None:
            self.error_log = ErrorLog(self.data_provider, logger=self.logger)
        if self.external_tools is None:
            self.external_tools = ExternalTools(self.settings, logger=self.logger)
        if self.metadata_extractor is None:
            self.metadata_extractor = MetadataExtractor(
                probe=self.external_tools.probe,
                error_log=self.error_log,
                gallery_id=self.settings.gallery_id,
                logger=self.logger,
            )

    @property
    def gallery_id(self) -> int:
        return self.settings.gallery_id

    def record_error(self, exc: BaseException) -> None:
        self.error_log.record(exc, self.gallery_id)
