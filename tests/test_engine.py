"""Tests for the engine module."""

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sceneforge.engine import SegmentationResult, process, segment
from sceneforge.errors import DetectionError, InvalidInputError, SegmenterInternalError
from sceneforge.manifest import Manifest, SegmenterConfig
from sceneforge.models import ProbeResult, Track


def _make_probe(duration: float = 600.0) -> ProbeResult:
    return ProbeResult(
        duration=duration,
        width=320,
        height=240,
        fps=10.0,
        codec_video="h264",
    )


FLASHES = [55_000, 5_000] * 10  # ten 55 s shots, each followed by a 5 s flash
CONFIG = SegmenterConfig(stability_threshold=30, pref_number=10)


class TestSegmentationResult:
    def test_defaults(self):
        r = SegmentationResult()
        assert r.segments == []
        assert r.cycles == 0
        assert r.best_step is None
        assert r.uniform is False
        assert r.probe is None


class TestSegmentValidation:
    def test_not_a_video(self, scripted_detector):
        detector = scripted_detector([])
        track = Track(path=Path("a.m4a"), duration=60_000, has_video=False)
        with pytest.raises(InvalidInputError, match="not a video track"):
            segment(track, CONFIG, detector)
        assert detector.calls == []

    @pytest.mark.parametrize("duration", [None, 0])
    def test_no_duration(self, scripted_detector, duration):
        detector = scripted_detector([])
        track = Track(path=Path("a.mp4"), duration=duration)
        with pytest.raises(InvalidInputError, match="does not have a duration"):
            segment(track, CONFIG, detector)
        assert detector.calls == []


class TestSegment:
    def test_optimized_segmentation(self, scripted_detector, shot_cuts, assert_partition):
        detector = scripted_detector(shot_cuts(FLASHES))
        track = Track(path=Path("talk.mp4"), duration=600_000)

        result = segment(track, CONFIG, detector)

        assert result.uniform is False
        assert result.cycles == 1
        assert result.merge_threshold == 30_000
        assert len(result.segments) == 10
        assert result.duration == 600_000
        assert_partition(result.segments, 600_000)
        # the flashes are split between neighbouring shots
        assert result.segments[0].end == 57_500

    def test_falls_back_to_uniform(self, scripted_detector, assert_partition):
        detector = scripted_detector([])
        track = Track(path=Path("static.mp4"), duration=1_800_000)

        result = segment(track, SegmenterConfig(), detector)

        assert result.uniform is True
        assert result.cycles == 3
        assert len(result.segments) == 30
        assert {s.duration for s in result.segments} == {60_000}
        assert_partition(result.segments, 1_800_000)

    def test_too_many_segments_falls_back(self, scripted_detector, shot_cuts):
        # 200 shots of 9 s survive every merge threshold the 5 s scan tries
        detector = scripted_detector(shot_cuts([9_000] * 200))
        config = SegmenterConfig(stability_threshold=5, pref_number=30, max_cycles=1)
        track = Track(path=Path("busy.mp4"), duration=1_800_000)

        result = segment(track, config, detector)

        assert result.best_step.segment_num == 200
        assert result.uniform is True
        assert len(result.segments) == 30

    def test_detection_failure_is_fatal_without_usable_cycle(self, failing_detector):
        track = Track(path=Path("broken.mp4"), duration=600_000)
        with pytest.raises(DetectionError):
            segment(track, CONFIG, failing_detector)

    def test_unexpected_error_wrapped(self):
        detector = MagicMock()
        detector.detect.side_effect = KeyError("boom")
        track = Track(path=Path("x.mp4"), duration=600_000)
        with pytest.raises(SegmenterInternalError, match="Error segmenting") as excinfo:
            segment(track, CONFIG, detector)
        assert isinstance(excinfo.value.__cause__, KeyError)


class TestProcess:
    @patch("sceneforge.engine.ffutil.probe")
    def test_writes_json(self, mock_probe, tmp_path, scripted_detector, shot_cuts):
        mock_probe.return_value = _make_probe(600.0)
        output = tmp_path / "segments.json"
        manifest = Manifest(input=Path("talk.mp4"), output=output, segmenter=CONFIG)
        stages = []

        result = process(
            manifest,
            on_progress=lambda stage, frac: stages.append((stage, frac)),
            detector=scripted_detector(shot_cuts(FLASHES)),
        )

        assert len(result.segments) == 10
        assert result.probe is mock_probe.return_value
        data = json.loads(output.read_text())
        assert data["duration"] == 600_000
        assert data["segments"][0] == {
            "id": "segment-1", "index": 1, "start": 0, "duration": 57_500,
        }
        assert stages[0] == ("Probing video metadata", 0.0)
        assert stages[-1] == ("Done", 1.0)

    @patch("sceneforge.engine.ffutil.probe")
    def test_without_output(self, mock_probe, tmp_path, scripted_detector):
        mock_probe.return_value = _make_probe(60.0)
        manifest = Manifest(input=Path("clip.mp4"), segmenter=CONFIG)
        result = process(manifest, detector=scripted_detector([]))
        assert result.segments[-1].end == 60_000
        assert list(tmp_path.iterdir()) == []

    @patch("sceneforge.engine.ffutil.check_ffmpeg")
    @patch("sceneforge.engine.ffutil.probe")
    @patch("sceneforge.analyzers.scenes.ffutil.detect_scenes", return_value=[])
    def test_default_detector_uses_configured_binary(self, mock_detect, mock_probe, mock_check):
        mock_probe.return_value = _make_probe(60.0)
        config = SegmenterConfig(max_cycles=1, ffmpeg_binary="/opt/ffmpeg")
        process(Manifest(input=Path("clip.mp4"), segmenter=config))
        mock_check.assert_called_once_with("/opt/ffmpeg")
        assert mock_detect.call_args.kwargs["binary"] == "/opt/ffmpeg"
