"""Result Screen Change Detection.

Steps through a recording one frame at a time and stops as soon as the
content of any configured region differs from what it showed when seeking
started. This is how the pipeline jumps from one result screen to the next.

The difference metric is the mean absolute grayscale difference, with
gray = (R + G + B) / 3:

    diff(R1, R2) = (1 / |pixels|) * sum(|gray(p1) - gray(p2)|)

Typical usage example:

    detector = ChangeDetector(diff_threshold=20.0)
    result = await detector.seek(source, regions, quad, step_seconds=1 / 60)
    if result.outcome is DetectionState.CHANGE_FOUND:
        ...
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import ConfigurationError
from ..models import PerspectiveQuad, Rect, SelectionRegion
from ..utils.rectifier import GeometricRectifier

logger = logging.getLogger(__name__)


class DetectionState(str, Enum):
    IDLE = "idle"
    SEEKING = "seeking"
    CHANGE_FOUND = "changeFound"
    EXHAUSTED_SOURCE = "exhaustedSource"
    CANCELLED = "cancelled"


class CancellationToken:
    """Cooperative stop flag, polled by the detector between steps."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class DetectionResult:
    """Outcome of one seek run.

    Attributes:
        outcome: CHANGE_FOUND, EXHAUSTED_SOURCE or CANCELLED.
        steps: Number of frame steps advanced.
        region_label: Region whose diff first exceeded the threshold.
        diff: That region's diff value.
    """
    outcome: DetectionState
    steps: int
    region_label: Optional[str] = None
    diff: float = 0.0


def grayscale(pixels: np.ndarray) -> np.ndarray:
    """Channel mean (R + G + B) / 3 as float64."""
    pixels = np.asarray(pixels, dtype=np.float64)
    if pixels.ndim == 2:
        return pixels
    return pixels[..., :3].mean(axis=2)


def region_diff(reference: np.ndarray, current: np.ndarray) -> float:
    """
    Mean absolute grayscale difference between two equally sized regions.

    Raises:
        ValueError: If the regions have different shapes or are empty
    """
    if reference.shape != current.shape:
        raise ValueError(f"Region shapes differ: {reference.shape} vs {current.shape}")
    if reference.size == 0:
        raise ValueError("Cannot diff an empty region")
    return float(np.abs(grayscale(reference) - grayscale(current)).mean())


class ChangeDetector:
    """Frame-difference driven auto seek.

    Every configured region is compared against its own reference; a change
    in any one of them ends the seek.

    Attributes:
        diff_threshold: Diff value a region must exceed to count as changed.
        state: Current state (IDLE until the first seek).
    """

    def __init__(self, diff_threshold: float = 20.0, rectifier: Optional[GeometricRectifier] = None):
        self.diff_threshold = diff_threshold
        self.rectifier = rectifier or GeometricRectifier()
        self.state = DetectionState.IDLE

    def _rectified(self, source, quad: PerspectiveQuad) -> np.ndarray:
        return self.rectifier.rectify(source.current_frame(), quad)

    def reference_rects(self, regions: Sequence[SelectionRegion],
                        frame: np.ndarray) -> List[Tuple[str, Rect]]:
        """
        Rectangles usable for diffing on this frame.

        Out-of-bounds rectangles are logged and skipped.

        Raises:
            ConfigurationError: If no region fits inside the frame
        """
        height, width = frame.shape[:2]
        rects = []
        for region in regions:
            for part, rect in region.parts():
                if rect.fits_within(width, height):
                    rects.append((f"{region.label}/{part.value}", rect))
                else:
                    logger.warning(
                        f"Region {region.label} ({part.value}) {rect} is outside the "
                        f"{width}x{height} frame, not used for change detection"
                    )
        if not rects:
            raise ConfigurationError("No region inside the frame to detect changes with")
        return rects

    def first_change(self, references: Dict[str, np.ndarray], rects: List[Tuple[str, Rect]],
                     frame: np.ndarray) -> Optional[Tuple[str, float]]:
        """Return (region key, diff) of the first region above threshold, else None."""
        for key, rect in rects:
            diff = region_diff(references[key], rect.crop(frame))
            logger.debug(f"  [{key}] diff={diff:.3f}")
            if diff > self.diff_threshold:
                return key, diff
        return None

    async def seek(self,
                   source,
                   regions: Sequence[SelectionRegion],
                   quad: PerspectiveQuad,
                   step_seconds: float,
                   cancel_token: Optional[CancellationToken] = None) -> DetectionResult:
        """
        Advance the source one step at a time until a region changes.

        The reference content of every region is taken from the rectified
        frame shown when this method is called. The cancellation token is
        checked before every step; a step that has started always completes.

        Args:
            source: Frame source (seek_by / current_frame / at_end)
            regions: Regions to watch
            quad: Perspective quad applied before diffing
            step_seconds: Seek step, normally 1 / frame rate
            cancel_token: Optional cooperative stop flag

        Returns:
            DetectionResult with the terminal outcome

        Raises:
            ConfigurationError: If no region can be used on this frame
        """
        frame = self._rectified(source, quad)
        rects = self.reference_rects(regions, frame)
        references = {key: rect.crop(frame).copy() for key, rect in rects}

        self.state = DetectionState.SEEKING
        steps = 0

        while True:
            if cancel_token is not None and cancel_token.cancelled:
                self.state = DetectionState.CANCELLED
                logger.info(f"Seeking cancelled after {steps} steps")
                return DetectionResult(self.state, steps)

            if source.at_end():
                self.state = DetectionState.EXHAUSTED_SOURCE
                logger.info(f"Source exhausted after {steps} steps")
                return DetectionResult(self.state, steps)

            await source.seek_by(step_seconds)
            if source.at_end():
                continue
            steps += 1

            change = self.first_change(references, rects, self._rectified(source, quad))
            if change is not None:
                key, diff = change
                self.state = DetectionState.CHANGE_FOUND
                logger.info(f"Change found in {key} after {steps} steps (diff={diff:.2f})")
                return DetectionResult(self.state, steps, region_label=key, diff=diff)

    async def settle(self, source, step_seconds: float, steps: int,
                     cancel_token: Optional[CancellationToken] = None) -> int:
        """
        Advance a further number of steps to let a screen transition finish.

        Returns:
            Number of steps actually taken
        """
        taken = 0
        for _ in range(max(0, steps)):
            if source.at_end() or (cancel_token is not None and cancel_token.cancelled):
                break
            await source.seek_by(step_seconds)
            taken += 1
        return taken
