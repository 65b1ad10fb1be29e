"""Score Extraction Pipeline.

Ties the stages together:

    ChangeDetector -> GeometricRectifier -> RegionPreprocessor -> OCRSession
        -> ResultAggregator -> CorrectionEngine -> (validation) -> OutputStore

All per-session mutable state (settings, catalog, output store, play
style, cancellation flag) lives in an explicit SessionState passed to
every call; the pipeline object itself only holds stage configuration.

Typical usage example:

    pipeline = ScoreExtractionPipeline.from_config(get_runtime_config())
    state = SessionState(settings=load_settings('settings.json'),
                         catalog=load_catalog('catalog.json'),
                         play_style='SP')
    with VideoFrameSource('session.mp4') as source:
        summary = asyncio.run(pipeline.run(source, state))
    state.store.save('scores.json')
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config import RuntimeConfig
from .correction.catalog import DEFAULT_SUGGESTION_LIMIT, resolve_title
from .correction.color import DIFFICULTY_VALUES, PLAY_STYLES, HueClassifier
from .correction.engine import CorrectionEngine
from .correction.numeric import validate_percentage
from .detection.change_detector import (
    CancellationToken,
    ChangeDetector,
    DetectionResult,
    DetectionState,
)
from .errors import ConfigurationError, DuplicateKeyError, RecognitionFailure, ValidationError
from .extraction.aggregator import ResultAggregator
from .extraction.engines import EngineFactory, create_engine_factory
from .extraction.ocr_session import OCRSession
from .extraction.preprocessing import RegionPreprocessor
from .models import (
    NOT_AVAILABLE,
    NUMERIC_FIELDS,
    CandidateImage,
    FrameReading,
    MasterCatalogEntry,
    OutputRecord,
)
from .output.store import OutputStore
from .settings import Settings
from .utils.rectifier import GeometricRectifier

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    """Mutable state of one extraction session, owned by the caller.

    Attributes:
        settings: Perspective quad, detection settings and regions.
        catalog: Music catalog used for title correction.
        store: Committed records.
        play_style: 'SP' or 'DP', chosen by the user.
        difficulty: Optional manual difficulty category ('B', 'N', 'H', 'A', 'L');
            overrides the color classification.
        cancel_token: Cooperative stop flag for seeking.
        frame_rate: Frames per second used for the seek step.
    """
    settings: Settings
    catalog: Tuple[MasterCatalogEntry, ...] = ()
    store: OutputStore = field(default_factory=OutputStore)
    play_style: Optional[str] = None
    difficulty: Optional[str] = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)
    frame_rate: float = 60.0

    @property
    def step_seconds(self) -> float:
        return 1.0 / self.frame_rate


@dataclass
class ExtractionSummary:
    """Counters for one ``run``."""
    screens: int = 0
    committed: int = 0
    rejected: int = 0
    duplicates: int = 0
    failed: int = 0
    outcome: Optional[DetectionState] = None
    errors: List[str] = field(default_factory=list)


class ScoreExtractionPipeline:
    """Detection-and-extraction pipeline for result screens."""

    def __init__(self,
                 engine_factory: EngineFactory,
                 variant_count: int = 1,
                 variant_step: int = 0,
                 max_workers: int = 4,
                 suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT,
                 classifiers: Optional[Dict[str, HueClassifier]] = None):
        self.engine_factory = engine_factory
        self.max_workers = max_workers
        self.suggestion_limit = suggestion_limit
        self.classifiers = classifiers or {'difficulty': HueClassifier()}
        self.rectifier = GeometricRectifier()
        self.preprocessor = RegionPreprocessor(variant_count=variant_count, variant_step=variant_step)
        self.aggregator = ResultAggregator()

    @classmethod
    def from_config(cls, config: RuntimeConfig, use_gpu: bool = False) -> 'ScoreExtractionPipeline':
        return cls(
            engine_factory=create_engine_factory(config.engine, config.tesseract_cmd, use_gpu),
            variant_count=config.variant_count,
            variant_step=config.variant_step,
            max_workers=config.max_workers,
            suggestion_limit=config.suggestion_limit,
        )

    # =========================================================================
    # Detection
    # =========================================================================

    async def find_next_change(self, source, state: SessionState) -> DetectionResult:
        """
        Seek forward to the next screen change, then let the transition settle.

        Raises:
            ConfigurationError: If no region can be used for detection
        """
        detection = state.settings.detection
        detector = ChangeDetector(diff_threshold=detection.diff_threshold, rectifier=self.rectifier)
        result = await detector.seek(
            source,
            state.settings.selections,
            state.settings.perspective,
            state.step_seconds,
            state.cancel_token,
        )
        if result.outcome is DetectionState.CHANGE_FOUND and detection.skip_frames_after_change > 0:
            await detector.settle(source, state.step_seconds,
                                  detection.skip_frames_after_change, state.cancel_token)
        return result

    def rectify(self, frame: np.ndarray, state: SessionState) -> np.ndarray:
        return self.rectifier.rectify(frame, state.settings.perspective)

    def capture(self, source, state: SessionState) -> np.ndarray:
        """Rectified copy of the source's current frame."""
        return self.rectify(source.current_frame(), state).copy()

    # =========================================================================
    # Extraction
    # =========================================================================

    def candidates(self, frame: np.ndarray, state: SessionState) -> List[CandidateImage]:
        candidates = []
        for region in state.settings.selections:
            region_candidates = self.preprocessor.candidates(frame, region)
            if not region_candidates:
                logger.warning(f"[{region.label}] produced no candidate image")
            candidates.extend(region_candidates)
        return candidates

    async def read_frame(self, frame: np.ndarray, state: SessionState) -> FrameReading:
        """
        Read every region of a rectified frame.

        A failed OCR session does not raise: every OCR'd region reads as the
        Error value and ``FrameReading.failed`` is set.

        Args:
            frame: Rectified frame (H, W, 3) RGB
            state: Session state

        Returns:
            FrameReading with raw readings, corrected numbers, catalog
            suggestions and color categories
        """
        regions = state.settings.selections
        candidates = self.candidates(frame, state)
        session = OCRSession(self.engine_factory, max_workers=self.max_workers)
        correction = CorrectionEngine(state.catalog, self.classifiers, self.suggestion_limit)

        try:
            results = await session.recognize(candidates)
        except (RecognitionFailure, ConfigurationError) as e:
            logger.warning(f"OCR session failed: {e}")
            reading = correction.correct(regions, self.aggregator.failed(regions, str(e)), candidates)
            reading.failed = True
            return reading

        readings = self.aggregator.readings(regions, results)
        return correction.correct(regions, readings, candidates)

    # =========================================================================
    # Validation and commit
    # =========================================================================

    def build_record(self, reading: FrameReading, state: SessionState,
                     manual_title: Optional[str] = None) -> OutputRecord:
        """
        Validate a frame reading and turn it into an OutputRecord.

        Args:
            reading: Result of ``read_frame``
            state: Session state (catalog, play style, difficulty override)
            manual_title: Title typed by the user; takes precedence over OCR

        Raises:
            ValidationError: With one message per invalid field
        """
        errors: Dict[str, str] = {}
        values = {}

        entry = resolve_title(state.catalog, reading.suggestions, manual_title)
        if entry is None:
            errors['title'] = "No title selected"

        category = state.difficulty or reading.categories.get('difficulty')
        if category in (None, NOT_AVAILABLE) or category not in DIFFICULTY_VALUES:
            errors['difficulty'] = "No difficulty selected"

        if state.play_style not in PLAY_STYLES:
            errors['playStyle'] = "No play style selected"

        for name in NUMERIC_FIELDS:
            text = reading.numeric.get(name)
            if text is None:
                errors[name] = "Not read"
                continue
            try:
                values[name] = validate_percentage(text, name)
            except ValidationError as e:
                errors.update(e.field_errors)

        if errors:
            raise ValidationError(errors)

        return OutputRecord(
            music_id=entry.id,
            difficulty=DIFFICULTY_VALUES[category],
            play_style=PLAY_STYLES[state.play_style],
            **values,
        )

    def commit(self, record: OutputRecord, state: SessionState) -> None:
        """
        Raises:
            DuplicateKeyError: If the record's key is already stored
        """
        state.store.commit(record)

    async def process_current(self, source, state: SessionState, summary: ExtractionSummary) -> None:
        """Read, validate and commit the source's current frame, updating summary counters."""
        summary.screens += 1
        reading = await self.read_frame(self.capture(source, state), state)
        if reading.failed:
            summary.failed += 1
            return

        try:
            record = self.build_record(reading, state)
        except ValidationError as e:
            summary.rejected += 1
            summary.errors.append(str(e))
            logger.warning(f"Screen {summary.screens} rejected: {e}")
            return

        try:
            self.commit(record, state)
            summary.committed += 1
        except DuplicateKeyError as e:
            summary.duplicates += 1
            logger.warning(f"Screen {summary.screens} skipped: {e}")

    async def run(self, source, state: SessionState, include_current: bool = False) -> ExtractionSummary:
        """
        Extract every result screen of a recording.

        Seeks to each screen change, reads and validates the screen and
        commits it. Validation errors and duplicates are counted and logged;
        the run ends when the source is exhausted or cancelled.

        Args:
            source: Frame source
            state: Session state; records go to ``state.store``
            include_current: Also process the frame shown before the first seek

        Returns:
            ExtractionSummary
        """
        summary = ExtractionSummary()
        logger.info(f"Starting extraction with {len(state.settings.selections)} regions")

        if include_current:
            await self.process_current(source, state, summary)

        while True:
            try:
                detection = await self.find_next_change(source, state)
            except ConfigurationError as e:
                logger.error(f"Cannot detect changes: {e}")
                summary.errors.append(str(e))
                break

            if detection.outcome is not DetectionState.CHANGE_FOUND:
                summary.outcome = detection.outcome
                break

            await self.process_current(source, state, summary)

        logger.info(
            f"Extraction finished ({summary.outcome.value if summary.outcome else 'error'}): "
            f"{summary.screens} screens, {summary.committed} committed, "
            f"{summary.rejected} rejected, {summary.duplicates} duplicates, {summary.failed} failed"
        )
        return summary
