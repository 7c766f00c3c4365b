"""Stability filter: merge or split segments shorter than a minimum duration."""

from dataclasses import dataclass
from typing import Iterable

from sceneforge.models import Segment, renumber


@dataclass(frozen=True)
class Idle:
    """No short run is pending."""


@dataclass(frozen=True)
class Accumulating:
    """A run of short segments started at ``pending_start``."""

    pending_start: int


MergeState = Idle | Accumulating

IDLE = Idle()


def _close_run(out: list[list[int]], pending_start: int, current: Segment, threshold: int) -> None:
    """Resolve a pending short run when a long segment follows it."""
    run_length = current.start - pending_start

    if run_length >= threshold:
        out.append([pending_start, current.start])
        out.append([current.start, current.end])
    elif not out:
        # Run sits at the very beginning: fold it into the long segment.
        out.append([0, current.end])
    else:
        split = (pending_start + current.start) // 2
        out[-1][1] = split
        out.append([split, current.end])


def merge_segments(
    segments: Iterable[Segment],
    duration: int,
    merge_threshold: int,
) -> list[Segment]:
    """Return a new segmentation in which short segments are merged away.

    Consecutive segments no longer than ``merge_threshold`` are collected into
    a run. When a longer segment follows, the run is emitted on its own if it
    reaches the threshold, otherwise it is split at its midpoint between the
    neighbouring segments. A run left open at the end of the track is emitted
    or folded into the last segment the same way. The input is not modified.
    """
    out: list[list[int]] = []
    state: MergeState = IDLE

    for seg in segments:
        if seg.duration <= merge_threshold:
            if isinstance(state, Idle):
                state = Accumulating(seg.start)
            continue

        if isinstance(state, Accumulating):
            _close_run(out, state.pending_start, seg, merge_threshold)
            state = IDLE
        else:
            out.append([seg.start, seg.end])

    if isinstance(state, Accumulating) and out:
        if duration - state.pending_start >= merge_threshold:
            out.append([state.pending_start, duration])
        else:
            out[-1][1] = duration

    if not out:
        out.append([0, duration])

    return renumber([(start, end - start) for start, end in out])
