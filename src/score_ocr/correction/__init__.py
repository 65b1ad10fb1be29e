"""
Correction Module

- Numeric repair and validation of percentage fields
- Catalog ranking of title/artist readings by edit distance
- Hue classification of color-coded fields
"""

from .catalog import load_catalog, parse_catalog, rank_catalog, resolve_title
from .color import HueClassifier
from .engine import CorrectionEngine
from .numeric import correct_numeric, validate_percentage

__all__ = [
    'CorrectionEngine',
    'correct_numeric',
    'validate_percentage',
    'load_catalog',
    'parse_catalog',
    'rank_catalog',
    'resolve_title',
    'HueClassifier',
]
