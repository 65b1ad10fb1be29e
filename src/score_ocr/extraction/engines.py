"""
Recognition engine wrappers.

Two engines are supported:
1. Tesseract (pytesseract) - default, lightweight, good on binarized crops
2. PaddleOCR - higher accuracy on stylized fonts, heavier install

Engines are created per OCR session through a factory keyed by language
('latin' or 'cjk') and must be released with ``terminate()``.
"""

import logging
from typing import Callable, Dict, Optional

import cv2
import numpy as np
import pytesseract
from PIL import Image

from ..errors import ConfigurationError
from ..models import CJK, LATIN

logger = logging.getLogger(__name__)

# Tesseract page segmentation mode: treat the image as a single text line
SINGLE_LINE_MODE = 7


class RecognitionEngine:
    """Base class for OCR engines.

    ``recognize`` may be called from several worker threads at once.
    """

    name = "base"

    def recognize(self, image: np.ndarray, language: str, mode: int = SINGLE_LINE_MODE) -> str:
        raise NotImplementedError

    def terminate(self) -> None:
        """Release engine resources. Safe to call more than once."""


class TesseractEngine(RecognitionEngine):
    """Tesseract OCR through pytesseract."""

    name = "tesseract"

    LANGUAGES = {
        LATIN: 'eng',
        CJK: 'jpn',
    }

    def __init__(self, tesseract_cmd: Optional[str] = None):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self._terminated = False

    def recognize(self, image: np.ndarray, language: str, mode: int = SINGLE_LINE_MODE) -> str:
        if self._terminated:
            raise RuntimeError("Tesseract engine already terminated")
        lang = self.LANGUAGES.get(language, language)
        return pytesseract.image_to_string(Image.fromarray(image), lang=lang, config=f'--psm {mode}')

    def terminate(self) -> None:
        self._terminated = True


class PaddleOCREngine(RecognitionEngine):
    """PaddleOCR engine for one language.

    The model is loaded on construction and dropped on terminate().
    """

    name = "paddleocr"

    LANGUAGES = {
        LATIN: 'en',
        CJK: 'japan',
    }

    def __init__(self, language: str = LATIN, use_gpu: bool = False):
        try:
            from paddleocr import PaddleOCR
        except ImportError as e:
            raise ConfigurationError(
                "PaddleOCR not installed. Install with: pip install paddlepaddle paddleocr"
            ) from e

        lang = self.LANGUAGES.get(language, language)
        logger.info(f"Initializing PaddleOCR (lang={lang})...")
        self.ocr = PaddleOCR(
            lang=lang,
            use_gpu=use_gpu,
            use_angle_cls=False,
            show_log=False,
        )

    def recognize(self, image: np.ndarray, language: str, mode: int = SINGLE_LINE_MODE) -> str:
        if self.ocr is None:
            raise RuntimeError("PaddleOCR engine already terminated")

        # PaddleOCR expects a 3-channel image
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

        result = self.ocr.ocr(image, cls=False)
        if not result or not result[0]:
            return ""

        # line format: [[[x1,y1], [x2,y2], [x3,y3], [x4,y4]], (text, confidence)]
        return " ".join(line[1][0] for line in result[0] if line)

    def terminate(self) -> None:
        self.ocr = None


EngineFactory = Callable[[str], RecognitionEngine]


def create_engine_factory(engine: str = "tesseract",
                          tesseract_cmd: Optional[str] = None,
                          use_gpu: bool = False) -> EngineFactory:
    """
    Factory producing a fresh engine for a language.

    Args:
        engine: 'tesseract' or 'paddleocr'
        tesseract_cmd: Optional tesseract binary path
        use_gpu: Enable GPU for PaddleOCR

    Raises:
        ConfigurationError: If the engine name is unknown
    """
    factories: Dict[str, EngineFactory] = {
        'tesseract': lambda language: TesseractEngine(tesseract_cmd=tesseract_cmd),
        'paddleocr': lambda language: PaddleOCREngine(language=language, use_gpu=use_gpu),
    }
    if engine not in factories:
        raise ConfigurationError(f"Unknown OCR engine: {engine}")
    return factories[engine]
