"""Tests for ErrorLog class."""

from unittest.mock import MagicMock

from galleryforge.error_log import AppError, ErrorLog


class TestErrorLog:
    """Tests for ErrorLog class."""

    def test_record(self, logger):
        """Test an exception is turned into an AppError."""
        error_log = ErrorLog(logger=logger)

        app_error = error_log.record(ValueError("bad value"), gallery_id=3)

        assert app_error.gallery_id == 3
        assert app_error.exception_type == "ValueError"
        assert app_error.message == "bad value"
        assert error_log.errors == [app_error]

    def test_stack_trace_captured(self, logger):
        """Test the traceback of a raised exception is kept."""
        error_log = ErrorLog(logger=logger)
        try:
            raise OSError("disk full")
        except OSError as e:
            app_error = error_log.record(e)

        assert "disk full" in app_error.stack_trace

    def test_persisted(self, logger):
        """Test errors are forwarded to the backing store."""
        provider = MagicMock()
        provider.app_error_save.return_value = 12
        error_log = ErrorLog(provider, logger=logger)

        app_error = error_log.record(RuntimeError("boom"))

        provider.app_error_save.assert_called_once_with(app_error)
        assert app_error.id == 12

    def test_persist_failure_not_raised(self, logger):
        """Test a failing backing store does not raise."""
        provider = MagicMock()
        provider.app_error_save.side_effect = Exception("database down")
        error_log = ErrorLog(provider, logger=logger)

        app_error = error_log.record(RuntimeError("boom"))

        assert app_error.id is None
        assert len(error_log.errors) == 1

    def test_max_errors(self, logger):
        """Test only the most recent errors are kept in memory."""
        error_log = ErrorLog(max_errors=2, logger=logger)

        for i in range(3):
            error_log.record(ValueError(str(i)))

        assert [e.message for e in error_log.errors] == ["1", "2"]

    def test_clear(self, logger):
        """Test clearing the in-memory errors."""
        error_log = ErrorLog(logger=logger)
        error_log.record(ValueError("x"))

        error_log.clear()

        assert error_log.errors == []

    def test_app_error_round_trip(self):
        """Test AppError dictionaries restore the same error."""
        app_error = AppError(gallery_id=1, exception_type="ValueError", message="m")

        assert AppError.from_dict(app_error.to_dict()) == app_error
