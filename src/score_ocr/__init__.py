"""Result Screen Score Extraction.

Reads rhythm-game result screens out of recorded play sessions: finds each
new result screen by frame differencing, reads the scoreboard regions with
OCR and turns them into validated, deduplicated score records.

Modules:
    detection: Auto seek to the next result screen
    extraction: Region preprocessing, recognition engines, OCR sessions, voting
    correction: Numeric repair, catalog matching, hue classification
    output: Committed record store and JSON/CSV export
    utils: Perspective rectification and video frame access

Example:
    >>> import asyncio
    >>> from src.score_ocr import ScoreExtractionPipeline, SessionState
    >>> from src.score_ocr.config import get_runtime_config
    >>> from src.score_ocr.settings import load_settings
    >>> from src.score_ocr.correction import load_catalog
    >>> from src.score_ocr.utils import VideoFrameSource
    >>>
    >>> pipeline = ScoreExtractionPipeline.from_config(get_runtime_config())
    >>> state = SessionState(settings=load_settings("settings.json"),
    ...                      catalog=load_catalog("catalog.json"),
    ...                      play_style="SP")
    >>> with VideoFrameSource("session.mp4") as source:
    ...     summary = asyncio.run(pipeline.run(source, state))
    >>> state.store.save("output/scores.json")
"""

from .pipeline import ExtractionSummary, ScoreExtractionPipeline, SessionState

__version__ = "1.0.0"
__all__ = [
    'ScoreExtractionPipeline',
    'SessionState',
    'ExtractionSummary',
    'detection',
    'extraction',
    'correction',
    'output',
    'utils',
]
