"""Uniform segmentation used when scene-based optimization gives up."""

from sceneforge.models import Segment, renumber


def uniform_segmentation(duration: int, count: int) -> list[Segment]:
    """Split ``duration`` into ``count`` equal segments.

    The last segment absorbs the remainder of the integer division so the
    segments always end exactly at ``duration``.
    """
    if count < 1:
        raise ValueError(f"segment count must be positive, got {count}")

    length = duration // count
    spans = [(i * length, length) for i in range(count - 1)]
    last_start = (count - 1) * length
    spans.append((last_start, duration - last_start))
    return renumber(spans)


def is_reasonable(segment_count: int, target: int) -> bool:
    """Whether an optimized segment count is close enough to keep."""
    return target // 10 < segment_count <= target * 5
