"""Tests for ExternalTools class."""

import dataclasses
import pytest
import sh
from unittest.mock import MagicMock

from galleryforge.external_tools import ExternalTools


class TestExternalTools:
    """Tests for ExternalTools class."""

    @pytest.fixture
    def tools(self, settings, logger):
        """Create the tool runner."""
        return ExternalTools(settings, logger=logger)

    @pytest.fixture
    def mock_command(self, mocker, tools):
        """Replace the resolved executable with a mock tool."""
        command = MagicMock()
        command.return_value = MagicMock(stderr=b"Duration: 00:00:05.00, bitrate: 320 kb/s", stdout=b"")
        mocker.patch.object(tools, '_command', return_value=command)
        return command

    def test_timeout_from_settings(self, tools, settings):
        """Test the timeout comes from the settings."""
        assert tools.timeout == settings.external_tool_timeout_seconds

    def test_probe_returns_output(self, tools, mock_command):
        """Test the FFmpeg description is returned."""
        output = tools.probe('/media/clip.mp4')

        assert 'Duration' in output
        args, kwargs = mock_command.call_args
        assert args == ('-hide_banner', '-i', '/media/clip.mp4')
        assert kwargs['_timeout'] == tools.timeout
        assert kwargs['_return_cmd'] is True

    def test_error_exit_returns_output(self, tools, mock_command):
        """Test output printed before a failing exit is still returned."""
        mock_command.side_effect = sh.ErrorReturnCode_1("ffmpeg", b"", b"Duration: 00:00:01.00")

        output = tools.probe('/media/clip.mp4')

        assert 'Duration' in output

    def test_missing_tool(self, settings, logger):
        """Test a missing executable yields empty output."""
        settings = dataclasses.replace(settings, ffmpeg_path='galleryforge-missing-ffmpeg')
        tools = ExternalTools(settings, logger=logger)

        assert tools.probe('/media/clip.mp4') == ""

    def test_video_thumbnail_arguments(self, tools, mock_command):
        """Test the frame capture arguments."""
        tools.generate_video_thumbnail('/media/clip.mp4', '/tmp/frame.jpg', 3)

        args, _ = mock_command.call_args
        assert args == ('-ss', '3', '-i', '/media/clip.mp4', '-an', '-vframes', '1', '-y', '/tmp/frame.jpg')

    def test_raster_thumbnail_success(self, tools, mock_command, tmp_path):
        """Test success is reported by the existence of the output file."""
        dest = tmp_path / "out.jpg"

        def convert(*args, **kwargs):
            dest.write_bytes(b"jpeg")
            return MagicMock(stdout=b"", stderr=b"")

        mock_command.side_effect = convert

        assert tools.generate_raster_thumbnail('/media/scan.pdf', str(dest)) is True

    def test_raster_thumbnail_no_output(self, tools, mock_command, tmp_path):
        """Test a run that writes nothing reports failure."""
        assert tools.generate_raster_thumbnail('/media/scan.pdf', str(tmp_path / "out.jpg")) is False

    def test_raster_thumbnail_removes_stale_output(self, tools, mock_command, tmp_path):
        """Test an existing destination is removed before converting."""
        dest = tmp_path / "out.jpg"
        dest.write_bytes(b"old")

        assert tools.generate_raster_thumbnail('/media/scan.pdf', str(dest)) is False
        assert not dest.exists()

    def test_raster_thumbnail_reads_first_page(self, tools, mock_command, tmp_path):
        """Test only the first page or frame is converted."""
        tools.generate_raster_thumbnail('/media/scan.pdf', str(tmp_path / "out.jpg"))

        args, _ = mock_command.call_args
        assert args[0] == '/media/scan.pdf[0]'
        assert '-flatten' in args
