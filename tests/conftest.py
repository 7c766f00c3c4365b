"""Shared test fixtures."""

from pathlib import Path
from typing import Callable

import pytest

from sceneforge.errors import DetectionError
from sceneforge.models import Segment

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class ScriptedDetector:
    """Scene detector returning canned cut lists, one per call.

    A response that is an exception instance is raised instead. The last
    response repeats once the script runs out.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[tuple[Path, float]] = []

    def detect(self, media_path: Path, sensitivity: float) -> list[int]:
        self.calls.append((media_path, sensitivity))
        idx = min(len(self.calls), len(self.responses)) - 1
        response = self.responses[idx]
        if isinstance(response, Exception):
            raise response
        return list(response)

    @property
    def sensitivities(self) -> list[float]:
        return [s for _, s in self.calls]


def cuts_from_lengths(lengths: list[int]) -> list[int]:
    """Cut points for consecutive shots of the given lengths (ms)."""
    cuts = []
    position = 0
    for length in lengths[:-1]:
        position += length
        cuts.append(position)
    return cuts


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def scripted_detector() -> Callable[..., ScriptedDetector]:
    return ScriptedDetector


@pytest.fixture
def failing_detector() -> ScriptedDetector:
    return ScriptedDetector(DetectionError("ffmpeg exploded"))


@pytest.fixture
def shot_cuts() -> Callable[[list[int]], list[int]]:
    return cuts_from_lengths


@pytest.fixture
def assert_partition() -> Callable[[list[Segment], int], None]:
    def check(segments: list[Segment], duration: int) -> None:
        assert segments, "segmentation must not be empty"
        assert segments[0].start == 0
        assert segments[-1].end == duration
        for i, seg in enumerate(segments, 1):
            assert seg.index == i
            assert seg.duration >= 0
        for prev, cur in zip(segments, segments[1:]):
            assert prev.end == cur.start
    return check
