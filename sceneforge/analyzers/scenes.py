"""Scene-change analyzer: detector backends and raw segment construction."""

from pathlib import Path
from typing import Iterable, Protocol

from sceneforge import ffutil
from sceneforge.models import Segment, renumber


class SceneDetector(Protocol):
    """Anything that reports cut timestamps (ms, ascending) for a media file."""

    def detect(self, media_path: Path, sensitivity: float) -> Iterable[int]:
        ...


class FFmpegSceneDetector:
    """Scene detection through ffmpeg's ``select=gt(scene,...)`` filter."""

    def __init__(self, binary: str = "ffmpeg"):
        self.binary = binary

    def detect(self, media_path: Path, sensitivity: float) -> list[int]:
        return ffutil.detect_scenes(media_path, sensitivity, binary=self.binary)


def build_raw_segments(
    cuts: Iterable[int],
    duration: int,
    min_length: int,
) -> list[Segment]:
    """Turn detector cut points into a gap-free partition of the track.

    A cut only becomes a boundary when the segment it closes is longer than
    ``min_length``; rejected cuts are absorbed into the growing segment. The
    last segment always runs to ``duration``. No cuts means one segment
    covering the whole track.
    """
    spans: list[tuple[int, int]] = []
    start = 0
    for cut in cuts:
        if cut - start > min_length and cut < duration:
            spans.append((start, cut - start))
            start = cut

    spans.append((start, duration - start))
    return renumber(spans)
