"""
Perspective rectification of captured frames.

Maps the screen quadrilateral found in a raw frame (recorded at an angle)
to a canonical frontal rectangle so that region coordinates stay valid.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from ..models import PerspectiveQuad

logger = logging.getLogger(__name__)


class GeometricRectifier:
    """Rectify frames through a PerspectiveQuad. Stateless."""

    @staticmethod
    def target_size(quad: PerspectiveQuad) -> Tuple[float, float]:
        """
        Size of the rectified rectangle for a quad.

        Width is the longer of the top and bottom edges, height the longer
        of the left and right edges.

        Returns:
            (width, height) as floats (not yet rounded)
        """
        tl, tr, br, bl = (np.asarray(p, dtype=np.float64) for p in quad.points)
        width = max(np.linalg.norm(br - bl), np.linalg.norm(tr - tl))
        height = max(np.linalg.norm(tr - br), np.linalg.norm(tl - bl))
        return float(width), float(height)

    @staticmethod
    def quad_area(quad: PerspectiveQuad) -> float:
        """Shoelace area of the quad (absolute value)."""
        pts = np.asarray(quad.points, dtype=np.float64)
        x, y = pts[:, 0], pts[:, 1]
        return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)

    def transform_matrix(self, quad: PerspectiveQuad) -> Optional[np.ndarray]:
        """Projective transform quad -> [0,0]x[width,height], or None if degenerate."""
        if quad.is_empty or self.quad_area(quad) <= 0.0:
            return None

        width, height = self.target_size(quad)
        if int(round(width)) <= 0 or int(round(height)) <= 0:
            return None

        src = np.asarray(quad.points, dtype=np.float32)
        dst = np.array([[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float32)
        try:
            return cv2.getPerspectiveTransform(src, dst)
        except cv2.error as e:
            logger.warning(f"Perspective transform failed: {e}")
            return None

    def rectify(self, frame: np.ndarray, quad: PerspectiveQuad) -> np.ndarray:
        """
        Rectify a raw frame.

        Args:
            frame: Raw frame (H, W, C) RGB
            quad: Screen corners in (tl, tr, br, bl) order; empty for passthrough

        Returns:
            Rectified frame. The raw frame is returned unchanged for an empty
            or degenerate quad.
        """
        if quad.is_empty:
            return frame

        matrix = self.transform_matrix(quad)
        if matrix is None:
            logger.warning(f"Degenerate perspective quad {quad.points}, using raw frame")
            return frame

        width, height = self.target_size(quad)
        return cv2.warpPerspective(
            frame, matrix, (int(round(width)), int(round(height))),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=0,
        )
