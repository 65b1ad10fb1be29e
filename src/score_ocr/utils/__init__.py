"""
Utility Modules

- Perspective rectification of captured frames
- Seekable video frame source
"""

from .frame_source import VideoFrameSource, load_image
from .rectifier import GeometricRectifier

__all__ = [
    'GeometricRectifier',
    'VideoFrameSource',
    'load_image',
]
