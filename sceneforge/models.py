"""Shared data types used across SceneForge.

All timestamps and durations are integer milliseconds unless a name says
otherwise.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Segment:
    """A numbered slice of the track timeline."""

    index: int
    start: int
    duration: int

    @property
    def end(self) -> int:
        return self.start + self.duration

    @property
    def identifier(self) -> str:
        return f"segment-{self.index}"


@dataclass(frozen=True)
class Track:
    """A video track to segment."""

    path: Path
    duration: int | None
    has_video: bool = True


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int
    height: int
    fps: float
    codec_video: str
    has_audio: bool = False

    @property
    def duration_ms(self) -> int:
        return int(self.duration * 1000)


def renumber(spans: list[tuple[int, int]]) -> list[Segment]:
    """Build densely indexed segments from ``(start, duration)`` pairs."""
    return [
        Segment(index=i, start=start, duration=duration)
        for i, (start, duration) in enumerate(spans, 1)
    ]
