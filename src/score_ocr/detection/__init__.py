"""
Result Screen Detection Module

Frame-difference auto seek from one result screen to the next.
"""

from .change_detector import (
    CancellationToken,
    ChangeDetector,
    DetectionResult,
    DetectionState,
    region_diff,
)

__all__ = [
    'ChangeDetector',
    'DetectionResult',
    'DetectionState',
    'CancellationToken',
    'region_diff',
]
