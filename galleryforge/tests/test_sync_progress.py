"""Tests for SyncProgress class."""

from unittest.mock import MagicMock

from galleryforge.sync_progress import SyncProgress
from galleryforge.sync_stats import SyncStats


class TestSyncProgress:
    """Tests for SyncProgress class."""

    def test_init_defaults(self, logger):
        """Test default initialization."""
        progress = SyncProgress(logger=logger)

        assert progress.show_files is False
        assert progress.log_interval == 100

    def test_file_output_show_files(self, logger, capsys):
        """Test per-file output when show_files is set."""
        progress = SyncProgress(show_files=True, logger=logger)

        progress.on_file_synchronized('/media/a.jpg', 'added')
        progress.on_file_skipped('/media/.hidden.jpg', 'hidden')
        progress.on_file_error('/media/b.jpg', 'test error')
        progress.on_album('/media/trips', 'created')

        out = capsys.readouterr().out
        assert '[OK] /media/a.jpg -> added' in out
        assert '[SKIP] /media/.hidden.jpg -> hidden' in out
        assert '[ERROR] /media/b.jpg -> test error' in out
        assert '[ALBUM] /media/trips -> created' in out

    def test_quiet_without_show_files(self, logger, capsys):
        """Test nothing is printed by default."""
        progress = SyncProgress(logger=logger)

        progress.on_file_synchronized('/media/a.jpg', 'added')

        assert capsys.readouterr().out == ''

    def test_logs_every_interval(self):
        """Test a summary is logged once per interval."""
        logger = MagicMock()
        progress = SyncProgress(log_interval=10, logger=logger)
        stats = SyncStats(total_files=30, files_created=9)

        progress.on_progress_update(stats)
        assert not logger.info.called

        stats.files_created = 10
        progress.on_progress_update(stats)
        assert logger.info.call_count == 1
        assert 'Progress: 10/30 files' in logger.info.call_args[0][0]

    def test_callable_interface(self, logger):
        """Test using progress as callback."""
        progress = SyncProgress(logger=logger)
        stats = SyncStats(total_files=100, files_created=100)

        progress(stats)

        assert progress.last_logged == 100
