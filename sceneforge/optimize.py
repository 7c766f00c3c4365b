"""Adaptive search for a segmentation close to the preferred segment count.

The scene detector is re-run with a tuned sensitivity (``changes_threshold``)
until the number of segments is within ``max_error`` of the target or the
cycle budget is spent. The best candidate is then refined by scanning the
stability threshold used for merging short segments.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sceneforge.analyzers.scenes import SceneDetector, build_raw_segments
from sceneforge.errors import DetectionError
from sceneforge.manifest import SegmenterConfig
from sceneforge.merge import merge_segments
from sceneforge.models import Segment

logger = logging.getLogger(__name__)

# Raw segment counts above this on the first cycle jump straight to a coarse
# sensitivity instead of doubling.
FLOOD_SEGMENT_COUNT = 2000
FLOOD_SENSITIVITY = 0.2

STABILITY_STEP = 1000


def calculate_error(segment_num: int, target_num: int) -> float:
    """Signed relative deviation; positive means too many segments."""
    return (segment_num - target_num) / target_num


def calculate_error_abs(segment_num: int, target_num: int) -> float:
    return abs(calculate_error(segment_num, target_num))


@dataclass(eq=False)
class OptimizationStep:
    """One evaluated candidate segmentation.

    ``segments`` are the raw detector segments the candidate was built from;
    ``segment_num`` is the count the candidate would produce (after merging,
    for filtered candidates).
    """

    stability_threshold: int
    changes_threshold: float
    segment_num: int
    target_num: int
    segments: list[Segment] = field(default_factory=list, repr=False)
    error: float = field(init=False)
    error_abs: float = field(init=False)

    def __post_init__(self) -> None:
        self._recalc()

    def _recalc(self) -> None:
        self.error = calculate_error(self.segment_num, self.target_num)
        self.error_abs = abs(self.error)

    def set_segment_num_and_recalc_errors(self, segment_num: int) -> None:
        self.segment_num = segment_num
        self._recalc()

    @property
    def ranking_key(self) -> tuple[int, float]:
        # Non-negative errors first (ascending), then negatives (ascending), so
        # the negative error closest to zero sorts last.
        if self.error >= 0:
            return (0, self.error)
        return (1, self.error)

    def __lt__(self, other: "OptimizationStep") -> bool:
        """Order steps the way add_to_optimized_list ranks the history."""
        return self.ranking_key < other.ranking_key


def add_to_optimized_list(history: list[OptimizationStep], item: OptimizationStep) -> None:
    """Insert ``item`` keeping the smallest non-negative error first and the
    negative error closest to zero last.

    Non-negative errors form an ascending prefix; negative errors form an
    ascending suffix.
    """
    if item.error >= 0:
        i = 0
        while i < len(history) and history[i].error >= 0:
            if item.error <= history[i].error:
                history.insert(i, item)
                return
            i += 1
        history.insert(i, item)
    else:
        i = len(history) - 1
        while i >= 0 and history[i].error < 0:
            if item.error >= history[i].error:
                history.insert(i + 1, item)
                return
            i -= 1
        history.insert(i + 1, item)


@dataclass
class SearchResult:
    best: OptimizationStep
    cycles: int
    history: list[OptimizationStep]


class ThresholdSearch:
    """Tune the detector sensitivity towards ``config.pref_number`` segments."""

    def __init__(
        self,
        media_path: Path,
        duration: int,
        config: SegmenterConfig,
        detector: SceneDetector,
    ):
        self.media_path = media_path
        self.duration = duration
        self.config = config
        self.detector = detector

        self.sensitivity = config.changes_threshold
        self.history: list[OptimizationStep] = []
        self.unused: list[OptimizationStep] = []
        self.cycles = 0
        self.failures = 0
        self.last_failure: DetectionError | None = None

    @property
    def stability_ms(self) -> int:
        return self.config.stability_threshold * 1000

    @property
    def max_plausible_segments(self) -> float:
        return (self.duration / 1000) / (self.config.stability_threshold / 2)

    def _detect(self) -> list[int]:
        try:
            return list(self.detector.detect(self.media_path, self.sensitivity))
        except DetectionError as e:
            self.failures += 1
            self.last_failure = e
            logger.error("Error executing scene detection: %s", e)
            return []

    def _evaluate(self) -> tuple[OptimizationStep, OptimizationStep]:
        """Run one detection pass and score raw and filtered candidates."""
        cfg = self.config
        raw = build_raw_segments(
            self._detect(), self.duration, cfg.prefilter_threshold * 1000
        )
        logger.info("Segmentation of %s yields %d segments", self.media_path, len(raw))

        step = OptimizationStep(
            self.stability_ms, self.sensitivity, len(raw), cfg.pref_number, raw
        )
        filtered = OptimizationStep(
            self.stability_ms, self.sensitivity, 0, cfg.pref_number, raw
        )
        merged = merge_segments(raw, self.duration, self.stability_ms)
        filtered.set_segment_num_and_recalc_errors(len(merged))
        logger.info("Segmentation yields %d segments after filtering", len(merged))
        return step, filtered

    def _prefers_unfiltered(self, step: OptimizationStep, filtered: OptimizationStep) -> bool:
        if step.error_abs <= filtered.error_abs:
            return True
        return (
            filtered.segment_num < self.config.pref_number
            and step.segment_num > self.max_plausible_segments
            and not filtered.error_abs <= self.config.max_error
        )

    def _pick_best(self) -> OptimizationStep:
        first, last = self.history[0], self.history[-1]
        if first.error_abs <= last.error_abs and first.error >= 0:
            best = first
        else:
            best = last

        for candidate in self.unused:
            if candidate.error_abs < best.error_abs:
                # Takes the first unused candidate, not necessarily this one.
                best = self.unused[0]
        return best

    def _next_sensitivity(self, chosen: OptimizationStep, step: OptimizationStep) -> float:
        first, last = self.history[0], self.history[-1]
        sensitivity = self.sensitivity

        if len(self.history) == 1 or first.error < 0 or last.error > 0:
            if chosen.error >= 0:
                if chosen.error <= 1:
                    sensitivity += sensitivity * chosen.error
                elif self.cycles <= 1 and step.segment_num > FLOOD_SEGMENT_COUNT:
                    sensitivity = FLOOD_SENSITIVITY
                else:
                    sensitivity *= 2
            else:
                sensitivity /= 2
            logger.debug("onesided optimization yields new changes threshold = %s", sensitivity)
        else:
            # Assume the segment count is linear in sensitivity between the
            # two closest candidates, then pull halfway towards the midpoint.
            target = self.config.pref_number
            x = (first.segment_num - target) / (first.segment_num - last.segment_num)
            new_x = (x + 0.5) * 0.5
            sensitivity = (
                first.changes_threshold * (1 - new_x) + last.changes_threshold * new_x
            )
            logger.debug("doublesided optimization yields new changes threshold = %s", sensitivity)
        return sensitivity

    def run(self) -> SearchResult:
        cfg = self.config
        while True:
            step, filtered = self._evaluate()

            if self._prefers_unfiltered(step, filtered):
                chosen = step
                self.unused.append(filtered)
            else:
                chosen = filtered
            add_to_optimized_list(self.history, chosen)

            self.cycles += 1
            logger.debug("errorAbs = %s, error = %s", step.error_abs, step.error)
            logger.debug("changes threshold = %s", self.sensitivity)
            logger.debug("cycle count = %d", self.cycles)

            if self.cycles >= cfg.max_cycles or chosen.error_abs <= cfg.max_error:
                break
            self.sensitivity = self._next_sensitivity(chosen, step)

        if self.last_failure is not None and self.failures == self.cycles:
            raise self.last_failure
        return SearchResult(best=self._pick_best(), cycles=self.cycles, history=self.history)


def optimize_stability(
    best: OptimizationStep,
    duration: int,
    config: SegmenterConfig,
) -> tuple[int, list[Segment]]:
    """Scan merge thresholds from the stability threshold up to 1.5x of it.

    Returns the winning threshold (ms) and the segmentation it produces. The
    scan is skipped when ``best`` has too few segments or is already within
    ``max_error``.
    """
    low = config.stability_threshold * 1000
    high = low + low // 2
    if best.error <= config.max_error:
        high = low

    best_threshold = low
    smallest_error = float("inf")
    for threshold in range(low, high + 1, STABILITY_STEP):
        merged = merge_segments(best.segments, duration, threshold)
        error = calculate_error_abs(len(merged), config.pref_number)
        logger.debug("merge threshold %d ms yields %d segments", threshold, len(merged))
        if error < smallest_error:
            smallest_error = error
            best_threshold = threshold

    return best_threshold, merge_segments(best.segments, duration, best_threshold)
