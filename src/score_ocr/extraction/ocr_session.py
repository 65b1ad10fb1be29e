"""
OCR session: concurrent recognition of one frame's candidates.

A session acquires one engine per required language, submits every
candidate to every engine its region needs, waits for the whole batch and
then releases the engines. The batch either succeeds as a whole or fails
as a whole with RecognitionFailure.
"""

import asyncio
import logging
import re
import unicodedata
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Sequence, Tuple

from ..errors import ConfigurationError, RecognitionFailure
from ..models import (
    CJK,
    LATIN,
    CandidateImage,
    CategoricalRegion,
    RecognitionResult,
    SelectionRegion,
    TextRegion,
)
from .engines import SINGLE_LINE_MODE, EngineFactory, RecognitionEngine

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r'(\S)(\s+)(?=(\S))')


def languages_for(region: SelectionRegion) -> List[str]:
    """Recognition languages a region is routed to. Categorical regions are never OCR'd."""
    if isinstance(region, CategoricalRegion):
        return []
    if isinstance(region, TextRegion) and region.bilingual:
        return [LATIN, CJK]
    return [LATIN]


def is_full_width(char: str) -> bool:
    return unicodedata.east_asian_width(char) in ('F', 'W')


def collapse_full_width_spaces(text: str) -> str:
    """Remove whitespace that an engine inserted between two full-width characters."""
    def _replace(match: re.Match) -> str:
        before, spaces, after = match.group(1), match.group(2), match.group(3)
        if is_full_width(before) and is_full_width(after):
            return before
        return before + spaces

    return _WHITESPACE_RUN.sub(_replace, text)


def normalize_text(text: str, region: SelectionRegion) -> str:
    text = (text or "").strip()
    if isinstance(region, TextRegion) and region.bilingual:
        text = collapse_full_width_spaces(text)
    return text


class OCRSession:
    """One batch of recognition jobs.

    Attributes:
        engine_factory: Creates an engine for a language.
        max_workers: Number of jobs running at the same time.
        mode: Page segmentation mode passed to the engines.
    """

    def __init__(self, engine_factory: EngineFactory, max_workers: int = 4,
                 mode: int = SINGLE_LINE_MODE):
        self.engine_factory = engine_factory
        self.max_workers = max_workers
        self.mode = mode

    async def recognize(self, candidates: Sequence[CandidateImage]) -> List[RecognitionResult]:
        """
        Recognize every candidate with every engine its region requires.

        Args:
            candidates: Preprocessed candidates of one frame

        Returns:
            One RecognitionResult per (candidate, language), text normalized

        Raises:
            RecognitionFailure: If any job (or engine start-up) failed
            ConfigurationError: If an engine is not available
        """
        jobs: List[Tuple[CandidateImage, str]] = [
            (candidate, language)
            for candidate in candidates
            for language in languages_for(candidate.region)
        ]
        if not jobs:
            return []

        engines: Dict[str, RecognitionEngine] = {}
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        cancelled = False
        try:
            for _, language in jobs:
                if language not in engines:
                    engines[language] = self.engine_factory(language)

            loop = asyncio.get_running_loop()
            futures = [
                loop.run_in_executor(
                    executor, engines[language].recognize, candidate.image, language, self.mode
                )
                for candidate, language in jobs
            ]
            logger.debug(f"Submitted {len(futures)} recognition jobs")
            outputs = await asyncio.gather(*futures, return_exceptions=True)
        except asyncio.CancelledError:
            cancelled = True
            raise
        except ConfigurationError:
            raise
        except Exception as e:
            raise RecognitionFailure(f"Could not start recognition engines: {e}", cause=e) from e
        finally:
            # Running jobs are abandoned on cancellation, queued ones dropped
            executor.shutdown(wait=not cancelled, cancel_futures=cancelled)
            for engine in engines.values():
                engine.terminate()

        failures = [output for output in outputs if isinstance(output, BaseException)]
        if failures:
            logger.warning(f"{len(failures)}/{len(outputs)} recognition jobs failed: {failures[0]}")
            raise RecognitionFailure(f"Recognition job failed: {failures[0]}", cause=failures[0])

        return [
            RecognitionResult(
                region_label=candidate.region.label,
                part=candidate.part,
                language=language,
                variant_index=candidate.variant_index,
                text=normalize_text(text, candidate.region),
            )
            for (candidate, language), text in zip(jobs, outputs)
        ]
