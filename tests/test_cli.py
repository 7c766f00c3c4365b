"""Tests for the command line entry point."""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from sceneforge import cli
from sceneforge.engine import SegmentationResult
from sceneforge.errors import DetectionError
from sceneforge.models import ProbeResult, renumber


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["sceneforge", *argv])
    cli.main()


class TestSegmentCommand:
    @patch("sceneforge.cli.configure_logging")
    @patch("sceneforge.cli.process")
    def test_flags_build_manifest(self, mock_process, mock_logging, monkeypatch, capsys):
        mock_process.return_value = SegmentationResult(
            segments=renumber([(0, 30_000), (30_000, 30_000)]), cycles=1, merge_threshold=20_000
        )

        _run(
            monkeypatch, "--log-level", "DEBUG", "segment", "talk.mp4",
            "--pref-number", "2", "--stability-threshold", "20", "--format", "ffmetadata",
        )

        manifest = mock_process.call_args[0][0]
        assert manifest.input == Path("talk.mp4")
        assert manifest.output == Path("talk_segments.ffmetadata")
        assert manifest.output_format == "ffmetadata"
        assert manifest.segmenter.pref_number == 2
        assert manifest.segmenter.stability_threshold == 20
        mock_logging.assert_called_once_with("DEBUG")
        out = capsys.readouterr().out
        assert "2 segments after 1 cycle(s)" in out
        assert "segment-2" in out

    @patch("sceneforge.cli.configure_logging")
    @patch("sceneforge.cli.process")
    def test_manifest_with_override(self, mock_process, mock_logging, monkeypatch, sample_manifest_path):
        mock_process.return_value = SegmentationResult(segments=renumber([(0, 1_000)]), uniform=True)

        _run(monkeypatch, "segment", "--manifest", str(sample_manifest_path), "--max-cycles", "5")

        manifest = mock_process.call_args[0][0]
        assert manifest.segmenter.pref_number == 20
        assert manifest.segmenter.max_cycles == 5

    @patch("sceneforge.cli.configure_logging")
    @patch("sceneforge.cli.process", side_effect=DetectionError("ffmpeg exploded"))
    def test_segmenter_error_exits(self, mock_process, mock_logging, monkeypatch, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, "segment", "talk.mp4")
        assert excinfo.value.code == 1
        assert "ffmpeg exploded" in capsys.readouterr().err

    @patch("sceneforge.cli.configure_logging")
    def test_invalid_option_exits(self, mock_logging, monkeypatch, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, "segment", "talk.mp4", "--pref-number", "0")
        assert excinfo.value.code == 1
        assert "pref_number" in capsys.readouterr().err

    @patch("sceneforge.cli.configure_logging")
    def test_requires_input(self, mock_logging, monkeypatch):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, "segment")
        assert excinfo.value.code == 1

    @patch("sceneforge.cli.configure_logging")
    @patch("sceneforge.cli.process")
    def test_properties_file_then_flags(self, mock_process, mock_logging, monkeypatch, tmp_path):
        mock_process.return_value = SegmentationResult(segments=renumber([(0, 1_000)]), uniform=True)
        props = tmp_path / "segmenter.properties"
        props.write_text("prefNumber=12\nmaxCycles=4\nstabilitythreshold=none\n")

        _run(
            monkeypatch, "segment", "talk.mp4",
            "--properties", str(props), "--max-cycles", "2",
        )

        config = mock_process.call_args[0][0].segmenter
        assert config.pref_number == 12
        assert config.max_cycles == 2
        assert config.stability_threshold == 60

    @patch("sceneforge.cli.configure_logging")
    def test_missing_properties_file_exits(self, mock_logging, monkeypatch, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, "segment", "talk.mp4", "--properties", str(tmp_path / "nope"))
        assert excinfo.value.code == 1
        assert "Error:" in capsys.readouterr().err

    @patch("sceneforge.cli.configure_logging")
    def test_manifest_with_wrong_type_exits(self, mock_logging, monkeypatch, tmp_path, capsys):
        manifest = tmp_path / "m.json"
        manifest.write_text('{"input": "a.mp4", "segmenter": {"pref_number": "30"}}')
        with pytest.raises(SystemExit) as excinfo:
            _run(monkeypatch, "segment", "--manifest", str(manifest))
        assert excinfo.value.code == 1
        assert "pref_number must be an integer" in capsys.readouterr().err

    @patch("sceneforge.cli.configure_logging")
    @patch("sceneforge.cli.process")
    def test_summary_shows_video_metadata(self, mock_process, mock_logging, monkeypatch, capsys):
        mock_process.return_value = SegmentationResult(
            segments=renumber([(0, 60_000)]),
            uniform=True,
            probe=ProbeResult(
                duration=60.0, width=1280, height=720, fps=25.0,
                codec_video="h264", has_audio=True,
            ),
        )

        _run(monkeypatch, "segment", "talk.mp4")

        out = capsys.readouterr().out
        assert "Video: 1280x720 h264 @ 25.00 fps, with audio" in out
        assert "segments are uniform" in out
