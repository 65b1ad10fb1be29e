"""
Frame Source
Seekable access to the frames of a recorded play session.
"""

import asyncio
import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class VideoFrameSource:
    """Seekable video reader for the change detector.

    Implements the frame source contract used by the pipeline:
    ``await seek_by(seconds)``, ``current_frame()`` and ``at_end()``.
    Frames are returned in RGB order.
    """

    def __init__(self, video_path: str):
        """
        Open a video file.

        Args:
            video_path: Path to video file

        Raises:
            ValueError: If the video cannot be opened
        """
        self.video_path = video_path

        # Use ffmpeg backend explicitly
        self.video = cv2.VideoCapture(video_path, cv2.CAP_FFMPEG)

        if not self.video.isOpened():
            raise ValueError(f"Could not open video: {video_path}")

        self.fps = self.video.get(cv2.CAP_PROP_FPS)
        self.frame_count = int(self.video.get(cv2.CAP_PROP_FRAME_COUNT))
        self.duration = self.frame_count / self.fps if self.fps > 0 else 0
        self.width = int(self.video.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.video.get(cv2.CAP_PROP_FRAME_HEIGHT))

        self._frame: Optional[np.ndarray] = None
        self._frame_index = -1
        self._ended = False
        self._read_next()

    def get_info(self) -> dict:
        """Get video information"""
        return {
            'path': self.video_path,
            'fps': self.fps,
            'frame_count': self.frame_count,
            'duration_seconds': self.duration,
            'width': self.width,
            'height': self.height,
            'duration_formatted': self._format_time(self.duration),
        }

    def _format_time(self, seconds: float) -> str:
        """Format seconds as HH:MM:SS"""
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"

    @property
    def position(self) -> float:
        """Timestamp of the current frame in seconds."""
        if self.fps <= 0 or self._frame_index < 0:
            return 0.0
        return self._frame_index / self.fps

    def _read_next(self) -> None:
        success, frame = self.video.read()
        if not success:
            self._ended = True
            return
        self._frame_index += 1
        self._frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def _seek_to_frame(self, frame_index: int) -> None:
        frame_index = max(0, frame_index)
        if self.frame_count and frame_index >= self.frame_count:
            self._ended = True
            return
        self.video.set(cv2.CAP_PROP_POS_FRAMES, frame_index)
        self._frame_index = frame_index - 1
        self._ended = False
        self._read_next()

    def _step(self, seconds: float) -> None:
        frames = int(round(seconds * self.fps)) if self.fps > 0 else 0
        if frames == 1:
            # Sequential decode is much cheaper than a random seek
            self._read_next()
        elif frames != 0:
            self._seek_to_frame(self._frame_index + frames)

    async def seek_by(self, seconds: float) -> None:
        """
        Move the playback position and wait until the new frame is decoded.

        Args:
            seconds: Offset from the current position (negative to go back)
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._step, seconds)

    def current_frame(self) -> np.ndarray:
        """Current decoded frame (H, W, 3) RGB."""
        if self._frame is None:
            raise ValueError(f"No frame decoded from {self.video_path}")
        return self._frame

    def at_end(self) -> bool:
        return self._ended

    def close(self):
        """Release video resources"""
        if self.video is not None:
            self.video.release()
            self.video = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def load_image(image_path: str) -> np.ndarray:
    """
    Load a still frame as RGB.

    Raises:
        ValueError: If the image cannot be loaded
    """
    image = cv2.imread(image_path)
    if image is None:
        raise ValueError(f"Could not load image: {image_path}")
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
