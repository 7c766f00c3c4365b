"""Orchestrator — segments a video track and hands the result to export."""

import logging
from dataclasses import dataclass, field
from typing import Callable

from sceneforge import export, ffutil
from sceneforge.analyzers.scenes import FFmpegSceneDetector, SceneDetector
from sceneforge.errors import InvalidInputError, SegmenterError, SegmenterInternalError
from sceneforge.manifest import Manifest, SegmenterConfig
from sceneforge.models import ProbeResult, Segment, Track
from sceneforge.optimize import OptimizationStep, ThresholdSearch, optimize_stability
from sceneforge.uniform import is_reasonable, uniform_segmentation

logger = logging.getLogger(__name__)


@dataclass
class SegmentationResult:
    segments: list[Segment] = field(default_factory=list)
    duration: int = 0
    cycles: int = 0
    best_step: OptimizationStep | None = None
    merge_threshold: int = 0
    uniform: bool = False
    probe: ProbeResult | None = None


def _validate(track: Track) -> int:
    if not track.has_video:
        logger.warning("Element %s is not a video track", track.path)
        raise InvalidInputError(f"{track.path} is not a video track")
    if track.duration is None or track.duration <= 0:
        raise InvalidInputError(f"Track {track.path} does not have a duration")
    return track.duration


def _run(track: Track, config: SegmenterConfig, detector: SceneDetector) -> SegmentationResult:
    duration = _validate(track)
    logger.info("Track %s loaded, duration is %d s", track.path, duration // 1000)
    logger.debug(
        "changesThreshold: %s, stabilityThreshold: %s",
        config.changes_threshold, config.stability_threshold,
    )
    logger.debug("prefNumber: %s, maxCycles: %s", config.pref_number, config.max_cycles)

    search = ThresholdSearch(track.path, duration, config, detector).run()
    merge_threshold, segments = optimize_stability(search.best, duration, config)

    logger.debug("result segments:")
    for seg in segments:
        logger.debug("s:%d, d:%d, %s", seg.start, seg.duration, seg.identifier)

    logger.info(
        "Optimized segmentation yields (after %d iteration%s) %d segments",
        search.cycles, "" if search.cycles == 1 else "s", len(segments),
    )

    uniform = not is_reasonable(len(segments), config.pref_number)
    if uniform:
        segments = uniform_segmentation(duration, config.pref_number)
        logger.info(
            "Since no reasonable segmentation could be found, a uniform segmentation was created"
        )

    return SegmentationResult(
        segments=segments,
        duration=duration,
        cycles=search.cycles,
        best_step=search.best,
        merge_threshold=merge_threshold,
        uniform=uniform,
    )


def segment(
    track: Track,
    config: SegmenterConfig | None = None,
    detector: SceneDetector | None = None,
) -> SegmentationResult:
    """Partition ``track`` into content segments.

    Raises InvalidInputError, DetectionError or SegmenterInternalError.
    """
    config = config or SegmenterConfig()
    detector = detector or FFmpegSceneDetector(config.ffmpeg_binary)
    try:
        return _run(track, config, detector)
    except SegmenterError:
        raise
    except Exception as e:
        logger.warning("Error segmenting %s", track.path, exc_info=True)
        raise SegmenterInternalError(f"Error segmenting {track.path}: {e}") from e


def process(
    manifest: Manifest,
    on_progress: Callable[[str, float], None] | None = None,
    detector: SceneDetector | None = None,
) -> SegmentationResult:
    """Probe the manifest's input, segment it and write the output file.

    Args:
        manifest: Validated segmentation manifest.
        on_progress: Optional callback(stage_name, fraction_complete).
        detector: Scene detector override; defaults to ffmpeg.
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    config = manifest.segmenter
    if detector is None:
        ffutil.check_ffmpeg(config.ffmpeg_binary)

    _progress("Probing video metadata", 0.0)
    probe_result = ffutil.probe(manifest.input)
    track = Track(path=manifest.input, duration=probe_result.duration_ms)
    _progress("Probing video metadata", 0.05)

    _progress("Detecting scenes", 0.1)
    result = segment(track, config, detector)
    result.probe = probe_result

    if manifest.output is not None:
        _progress("Writing segments", 0.9)
        export.write_segments(result.segments, track, manifest.output, manifest.output_format)

    _progress("Done", 1.0)
    return result
