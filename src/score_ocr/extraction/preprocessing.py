"""
Region preprocessing for OCR.

Turns a rectified frame plus a region description into binarized
candidate bitmaps. Each region part can be rendered several times with
jittered thresholds; the recognized texts are later reduced by vote.
"""

import logging
from typing import List, Optional, Tuple

import cv2
import numpy as np

from ..models import (
    CandidateImage,
    CategoricalRegion,
    Part,
    Polarity,
    Rect,
    SelectionRegion,
)

logger = logging.getLogger(__name__)


class RegionPreprocessor:
    """Crop, upscale and binarize scoreboard regions.

    Attributes:
        variant_count: Number of threshold variants rendered per part (K).
        variant_step: Threshold offset between neighbouring variants (s).
    """

    def __init__(self, variant_count: int = 1, variant_step: int = 0):
        self.variant_count = max(1, variant_count)
        self.variant_step = variant_step

    def variant_thresholds(self, threshold: int) -> List[int]:
        """
        Thresholds for all variants, centred on the configured threshold.

        threshold + (i - K // 2) * s for i in [0, K), clamped to [0, 255].
        """
        half = self.variant_count // 2
        return [
            int(np.clip(threshold + (i - half) * self.variant_step, 0, 255))
            for i in range(self.variant_count)
        ]

    @staticmethod
    def scaled_size(rect: Rect, region: SelectionRegion) -> Tuple[int, int]:
        return int(round(rect.width * region.scale_x)), int(round(rect.height * region.scale_y))

    @staticmethod
    def binarize(image: np.ndarray, threshold: int, polarity: Polarity) -> np.ndarray:
        """
        Fixed threshold on the channel mean (R + G + B) / 3.

        Pixels whose mean is above threshold become 255 (0 if inverted).
        """
        if image.ndim == 3:
            gray = image[..., :3].astype(np.float32).mean(axis=2)
        else:
            gray = image.astype(np.float32)
        mode = cv2.THRESH_BINARY_INV if polarity is Polarity.INVERTED else cv2.THRESH_BINARY
        _, binary = cv2.threshold(gray, threshold, 255, mode)
        return binary.astype(np.uint8)

    @staticmethod
    def hue_mask(image: np.ndarray, hue_min: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Mask pixels whose hue is at least ``hue_min`` (OpenCV 0-179 hue scale).

        Returns:
            (hsv image with unmasked pixels zeroed, binary mask)
        """
        hsv = cv2.cvtColor(image, cv2.COLOR_RGB2HSV)
        mask = cv2.inRange(hsv, np.array([hue_min, 0, 0]), np.array([255, 255, 255]))
        masked = cv2.bitwise_and(hsv, hsv, mask=mask)
        return masked, mask

    @staticmethod
    def mask_bounding_box(mask: np.ndarray) -> Optional[Rect]:
        """Union of the bounding boxes of all connected foreground regions."""
        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            return None

        boxes = [cv2.boundingRect(c) for c in contours]
        x1 = min(x for x, _, _, _ in boxes)
        y1 = min(y for _, y, _, _ in boxes)
        x2 = max(x + w for x, _, w, _ in boxes)
        y2 = max(y + h for _, y, _, h in boxes)
        return Rect(x1, y1, x2 - x1, y2 - y1)

    def process(self,
                frame: np.ndarray,
                region: SelectionRegion,
                rect: Rect,
                part: Part = Part.INTEGER,
                threshold: Optional[int] = None,
                variant_index: int = 0) -> Optional[CandidateImage]:
        """
        Render one candidate for one part of a region.

        Args:
            frame: Rectified frame (H, W, 3) RGB
            region: Region description
            rect: The region's primary or decimal rectangle
            part: Which part ``rect`` is
            threshold: Threshold override (variants); defaults to region.threshold
            variant_index: Index recorded on the candidate

        Returns:
            CandidateImage, or None if the rect is outside the frame, the
            scaled size is not positive, or a categorical mask is empty
        """
        height, width = frame.shape[:2]
        if not rect.fits_within(width, height):
            logger.debug(f"[{region.label}] {rect} outside {width}x{height} frame, skipped")
            return None

        scaled_w, scaled_h = self.scaled_size(rect, region)
        if scaled_w <= 0 or scaled_h <= 0:
            logger.debug(f"[{region.label}] scaled size {scaled_w}x{scaled_h} is empty, skipped")
            return None

        roi = rect.crop(frame)
        resized = cv2.resize(roi, (scaled_w, scaled_h), interpolation=cv2.INTER_LANCZOS4)
        threshold = region.threshold if threshold is None else threshold

        if isinstance(region, CategoricalRegion):
            masked, mask = self.hue_mask(resized, threshold)
            box = self.mask_bounding_box(mask)
            if box is None:
                return None
            return CandidateImage(region, part, variant_index, box.crop(masked), mask=box.crop(mask))

        binary = self.binarize(resized, threshold, region.polarity)
        return CandidateImage(region, part, variant_index, binary)

    def candidates(self, frame: np.ndarray, region: SelectionRegion) -> List[CandidateImage]:
        """
        All candidates for a region: every part times every threshold variant.

        Categorical regions are rendered once, with their own threshold.
        """
        results = []
        for part, rect in region.parts():
            if isinstance(region, CategoricalRegion):
                thresholds = [region.threshold]
            else:
                thresholds = self.variant_thresholds(region.threshold)

            for index, threshold in enumerate(thresholds):
                candidate = self.process(frame, region, rect, part, threshold, index)
                if candidate is not None:
                    results.append(candidate)
        return results
