"""
Region Extraction Module

Turns a rectified frame into one text reading per region:
1. RegionPreprocessor - crop, upscale, binarize (threshold variants)
2. OCRSession - concurrent recognition with Tesseract or PaddleOCR
3. ResultAggregator - majority vote over the variants
"""

from .aggregator import ResultAggregator, majority_vote
from .engines import (
    PaddleOCREngine,
    RecognitionEngine,
    TesseractEngine,
    create_engine_factory,
)
from .ocr_session import OCRSession
from .preprocessing import RegionPreprocessor

__all__ = [
    'RegionPreprocessor',
    'RecognitionEngine',
    'TesseractEngine',
    'PaddleOCREngine',
    'create_engine_factory',
    'OCRSession',
    'ResultAggregator',
    'majority_vote',
]
