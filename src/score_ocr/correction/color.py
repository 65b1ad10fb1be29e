"""
Hue classification for fields conveyed by screen color (e.g. difficulty).

Every foreground pixel votes for the palette category with the nearest
hue (circular distance on OpenCV's 0-180 hue scale); the category with the
most votes wins.
"""

from collections import OrderedDict
from typing import Dict, Mapping, Optional

import numpy as np

from ..models import NOT_AVAILABLE

HUE_RANGE = 180

# category -> target hue
DIFFICULTY_HUES: Mapping[str, int] = OrderedDict([
    ('B', 60),    # BEGINNER, green
    ('N', 102),   # NORMAL, blue
    ('H', 25),    # HYPER, yellow
    ('A', 0),     # ANOTHER, red
    ('L', 150),   # LEGGENDARIA, purple
])

# category -> value stored in OutputRecord.difficulty
DIFFICULTY_VALUES: Mapping[str, int] = {'B': 0, 'N': 1, 'H': 2, 'A': 3, 'L': 4}

PLAY_STYLES: Mapping[str, int] = {'SP': 0, 'DP': 1}


def hue_distance(h1, h2):
    """Circular hue distance min(|h1 - h2|, 180 - |h1 - h2|). Works on arrays."""
    d = np.abs(np.asarray(h1, dtype=np.int32) - np.asarray(h2, dtype=np.int32)) % HUE_RANGE
    return np.minimum(d, HUE_RANGE - d)


class HueClassifier:
    """Nearest-hue majority vote over a fixed palette.

    Attributes:
        palette: Ordered mapping of category to target hue. Ties (both in
            pixel distance and in vote count) go to the earlier category.
    """

    def __init__(self, palette: Optional[Mapping[str, int]] = None):
        self.palette = OrderedDict(palette if palette is not None else DIFFICULTY_HUES)
        self._categories = list(self.palette.keys())
        self._hues = np.array(list(self.palette.values()), dtype=np.int32)

    def votes(self, hues: np.ndarray) -> Dict[str, int]:
        """Vote count per category for a flat array of hues."""
        hues = np.asarray(hues, dtype=np.int32).ravel()
        if hues.size == 0:
            return {category: 0 for category in self._categories}

        distances = hue_distance(hues[:, None], self._hues[None, :])
        # argmin returns the first minimum, i.e. the earlier palette entry on ties
        nearest = np.argmin(distances, axis=1)
        counts = np.bincount(nearest, minlength=len(self._categories))
        return {category: int(counts[i]) for i, category in enumerate(self._categories)}

    def classify(self, hsv: np.ndarray, mask: Optional[np.ndarray] = None) -> str:
        """
        Classify a hue-masked crop.

        Args:
            hsv: HSV image (H, W, 3) on the OpenCV hue scale
            mask: Foreground mask; non-zero pixels vote. All pixels vote if None.

        Returns:
            The winning category, or NOT_AVAILABLE if there is no foreground
        """
        hue = hsv[..., 0] if hsv.ndim == 3 else hsv
        hues = hue[mask > 0] if mask is not None else hue.ravel()
        if hues.size == 0:
            return NOT_AVAILABLE

        votes = self.votes(hues)
        return max(self._categories, key=lambda c: (votes[c], -self._categories.index(c)))
