"""
Pytest configuration and shared fixtures.

This module provides fixtures used across multiple test files.
"""

import json
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
import pytest
from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.score_ocr.extraction.engines import RecognitionEngine  # noqa: E402
from src.score_ocr.models import (  # noqa: E402
    CategoricalRegion,
    MasterCatalogEntry,
    Rect,
    SelectionRegion,
    TextRegion,
)
from src.score_ocr.settings import DetectionSettings, Settings  # noqa: E402

# RGB color whose OpenCV hue is 102 (NORMAL difficulty blue)
NORMAL_BLUE = (0, 153, 255)


class FakeFrameSource:
    """In-memory frame source over a list of frames.

    Every ``seek_by`` advances by round(seconds * fps) frames (at least one).
    ``screens`` optionally tags each frame with the screen it shows.
    """

    def __init__(self, frames: Sequence[np.ndarray], fps: float = 60.0,
                 screens: Optional[Sequence[int]] = None):
        self.frames = list(frames)
        self.fps = fps
        self.screens = list(screens) if screens is not None else list(range(len(self.frames)))
        self.index = 0
        self.seek_calls = 0

    async def seek_by(self, seconds: float) -> None:
        self.seek_calls += 1
        self.index += max(1, int(round(seconds * self.fps)))

    def current_frame(self) -> np.ndarray:
        return self.frames[min(self.index, len(self.frames) - 1)]

    def at_end(self) -> bool:
        return self.index >= len(self.frames)

    @property
    def screen(self) -> int:
        return self.screens[min(self.index, len(self.screens) - 1)]

    def get_info(self) -> dict:
        height, width = self.frames[0].shape[:2]
        return {
            'fps': self.fps,
            'frame_count': len(self.frames),
            'width': width,
            'height': height,
            'duration_formatted': "00:00:00",
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass


class FakeEngine(RecognitionEngine):
    """Recognition engine answering from a callable; records every call."""

    name = "fake"

    def __init__(self, language: str, respond: Callable[[np.ndarray, str], str], fail: bool = False):
        self.language = language
        self.respond = respond
        self.fail = fail
        self.calls: List[tuple] = []
        self.terminated = False
        self._lock = threading.Lock()

    def recognize(self, image, language, mode=7):
        with self._lock:
            self.calls.append((image.shape, language, mode))
        if self.fail:
            raise RuntimeError("engine rejected job")
        return self.respond(image, language)

    def terminate(self):
        self.terminated = True


class FakeEngineFactory:
    """Engine factory that keeps every engine it created."""

    def __init__(self, respond: Optional[Callable[[np.ndarray, str], str]] = None, fail: bool = False):
        self.respond = respond or (lambda image, language: "")
        self.fail = fail
        self.engines: List[FakeEngine] = []

    def __call__(self, language: str) -> FakeEngine:
        engine = FakeEngine(language, self.respond, self.fail)
        self.engines.append(engine)
        return engine


def scaled_shape(region: SelectionRegion, rect: Optional[Rect] = None):
    rect = rect or region.rect
    return int(round(rect.height * region.scale_y)), int(round(rect.width * region.scale_x))


def shape_responder(regions: Sequence[SelectionRegion],
                    texts: Callable[[], Dict[str, Any]]) -> Callable[[np.ndarray, str], str]:
    """
    Answer recognition calls by looking the candidate's shape up in the region list.

    ``texts()`` returns label -> text, or label -> {language: text} for
    bilingual regions. It is called on every job so that the answer can
    depend on external state (e.g. the screen a fake source is showing).
    """
    labels = {}
    for region in regions:
        for _, rect in region.parts():
            labels[scaled_shape(region, rect)] = region.label

    def respond(image: np.ndarray, language: str) -> str:
        label = labels.get(image.shape[:2])
        value = texts().get(label, "")
        if isinstance(value, dict):
            return value.get(language, "")
        return value

    return respond


@pytest.fixture
def project_root_path() -> Path:
    """Return the project root directory path."""
    return Path(__file__).parent.parent


@pytest.fixture
def temp_output_dir(tmp_path) -> Path:
    """Return a temporary output directory for tests."""
    output_dir = tmp_path / "test_output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


@pytest.fixture
def sample_frame() -> np.ndarray:
    """Create a sample 1920x1080 video frame (numpy array) for testing."""
    frame = np.zeros((1080, 1920, 3), dtype=np.uint8)

    frame[0:360, 0:640] = [255, 0, 0]  # Red region
    frame[360:720, 640:1280] = [0, 255, 0]  # Green region
    frame[720:1080, 1280:1920] = [0, 0, 255]  # Blue region

    return frame


@pytest.fixture
def sample_pil_image(sample_frame) -> Image.Image:
    return Image.fromarray(sample_frame)


@pytest.fixture
def fake_source():
    """FakeFrameSource class: ``fake_source(frames, screens=...)``."""
    return FakeFrameSource


@pytest.fixture
def fake_engines():
    """FakeEngineFactory class: ``fake_engines(respond=..., fail=...)``."""
    return FakeEngineFactory


@pytest.fixture
def responder():
    """``responder(regions, texts)`` answering recognition jobs by candidate shape."""
    return shape_responder


@pytest.fixture
def small_regions() -> tuple:
    """Regions laid out on a 200x100 frame; every region has a distinct size."""
    return (
        TextRegion('TITLE', Rect(0, 0, 100, 20), scale_x=1.0, scale_y=1.0,
                   field='title', bilingual=True),
        TextRegion('NOTES', Rect(0, 30, 40, 10), scale_x=1.0, scale_y=1.0, field='notes'),
        TextRegion('CHORD', Rect(50, 30, 41, 10), scale_x=1.0, scale_y=1.0, field='chord'),
        TextRegion('PEAK', Rect(100, 30, 42, 10), scale_x=1.0, scale_y=1.0, field='peak'),
        TextRegion('CHARGE', Rect(0, 50, 43, 10), scale_x=1.0, scale_y=1.0, field='charge'),
        TextRegion('SOF-LAN', Rect(50, 50, 44, 10), scale_x=1.0, scale_y=1.0, field='soflan'),
        TextRegion('SCRATCH', Rect(100, 50, 45, 10), scale_x=1.0, scale_y=1.0, field='scratch'),
        CategoricalRegion('DIFFICULTY', Rect(150, 80, 40, 15), threshold=90,
                          scale_x=1.0, scale_y=1.0, field='difficulty'),
    )


@pytest.fixture
def small_settings(small_regions) -> Settings:
    return Settings(detection=DetectionSettings(diff_threshold=20.0), selections=small_regions)


@pytest.fixture
def make_screen() -> Callable[[int], np.ndarray]:
    """Build a 200x100 result screen: flat gray background and a blue difficulty patch."""
    def _make(gray: int) -> np.ndarray:
        frame = np.full((100, 200, 3), gray, dtype=np.uint8)
        frame[80:95, 150:190] = NORMAL_BLUE
        return frame
    return _make


@pytest.fixture
def sample_catalog() -> tuple:
    return (
        MasterCatalogEntry(id=1, title="ABC", artist="X"),
        MasterCatalogEntry(id=2, title="Sakura", artist="Y"),
        MasterCatalogEntry(id=3, title="ABD", artist="Z"),
    )


@pytest.fixture
def sample_catalog_data() -> Dict[str, Any]:
    return {
        "data": {
            "music": [
                {"id": 1, "title": "ABC", "artist": "X"},
                {"id": 2, "title": "Sakura", "artist": "Y"},
                {"id": 3, "title": "ABD", "artist": "Z"},
            ]
        }
    }


@pytest.fixture
def sample_catalog_json(tmp_path, sample_catalog_data) -> Path:
    json_path = tmp_path / "catalog.json"
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(sample_catalog_data, f, indent=2)
    return json_path


@pytest.fixture
def sample_settings_data() -> Dict[str, Any]:
    return {
        "perspectivePoints": [],
        "detectionSettings": {"diffThreshold": 15, "skipFramesAfterChange": 2},
        "selections": [
            {"label": "NOTES", "x": 669, "y": 592, "width": 107, "height": 22,
             "threshold": 150, "scaleX": 3, "scaleY": 3, "negative": True,
             "kind": "text", "field": "notes"},
            {"label": "TITLE", "x": 496, "y": 654, "width": 656, "height": 45,
             "threshold": 150, "scaleX": 1, "scaleY": 1, "negative": True,
             "kind": "text", "field": "title", "bilingual": True},
            {"label": "CHORD", "x": 962, "y": 583, "width": 60, "height": 19,
             "kind": "splitNumeric", "field": "chord",
             "decimal": {"x": 1025, "y": 583, "width": 38, "height": 19}},
            {"label": "DIFFICULTY", "x": 100, "y": 100, "width": 50, "height": 20,
             "threshold": 90, "kind": "categorical", "field": "difficulty"},
        ],
    }


@pytest.fixture
def sample_settings_json(tmp_path, sample_settings_data) -> Path:
    json_path = tmp_path / "settings.json"
    with open(json_path, 'w', encoding='utf-8') as f:
        json.dump(sample_settings_data, f, indent=2)
    return json_path


# Markers for conditional test skipping
def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "unit: fast tests without external services"
    )
    config.addinivalue_line(
        "markers", "integration: end-to-end pipeline tests"
    )
    config.addinivalue_line(
        "markers", "requires_tesseract: mark test as requiring the tesseract binary"
    )
    config.addinivalue_line(
        "markers", "requires_video_file: mark test as requiring video files"
    )
