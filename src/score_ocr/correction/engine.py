"""
Correction engine: routes each region reading to its correction path.

- numeric fields -> digit remap and decimal repair
- title / artist -> catalog ranking by edit distance
- categorical regions -> hue classification
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..models import (
    NOT_AVAILABLE,
    NUMERIC_FIELDS,
    BilingualText,
    CandidateImage,
    CategoricalRegion,
    FrameReading,
    MasterCatalogEntry,
    PlainText,
    Reading,
    SelectionRegion,
)
from .catalog import DEFAULT_SUGGESTION_LIMIT, rank_catalog
from .color import HueClassifier
from .numeric import correct_numeric

logger = logging.getLogger(__name__)


def reading_texts(reading: Optional[Reading]) -> List[str]:
    """Texts usable for catalog matching (none for errors)."""
    if isinstance(reading, BilingualText):
        return reading.candidates()
    if isinstance(reading, PlainText):
        return [reading.text]
    return []


class CorrectionEngine:
    """Normalize OCR readings and rank catalog matches."""

    def __init__(self,
                 catalog: Sequence[MasterCatalogEntry] = (),
                 classifiers: Optional[Dict[str, HueClassifier]] = None,
                 suggestion_limit: int = DEFAULT_SUGGESTION_LIMIT):
        self.catalog = tuple(catalog)
        self.classifiers = classifiers or {}
        self.suggestion_limit = suggestion_limit

    def classifier_for(self, region: SelectionRegion) -> HueClassifier:
        if region.field not in self.classifiers:
            self.classifiers[region.field] = HueClassifier()
        return self.classifiers[region.field]

    def classify(self, region: CategoricalRegion, candidates: Sequence[CandidateImage]) -> str:
        for candidate in candidates:
            if candidate.region is region or candidate.region.label == region.label:
                return self.classifier_for(region).classify(candidate.image, candidate.mask)
        return NOT_AVAILABLE

    def correct(self,
                regions: Sequence[SelectionRegion],
                readings: Dict[str, Reading],
                candidates: Sequence[CandidateImage] = ()) -> FrameReading:
        """
        Apply every correction path to one frame's readings.

        Args:
            regions: Configured regions
            readings: Reduced OCR reading per region label
            candidates: Preprocessed candidates (categorical regions are classified from these)

        Returns:
            FrameReading with numeric strings, suggestions and categories filled in
        """
        result = FrameReading(readings=dict(readings))
        title_texts: List[str] = []
        artist_texts: List[str] = []

        for region in regions:
            if isinstance(region, CategoricalRegion):
                result.categories[region.field] = self.classify(region, candidates)
                continue

            reading = readings.get(region.label)
            if region.field in NUMERIC_FIELDS and isinstance(reading, PlainText):
                result.numeric[region.field] = correct_numeric(reading.text)
            elif region.field == 'title':
                title_texts.extend(reading_texts(reading))
            elif region.field == 'artist':
                artist_texts.extend(reading_texts(reading))

        if self.catalog and any(t.strip() for t in title_texts + artist_texts):
            result.suggestions = rank_catalog(
                self.catalog, title_texts, artist_texts, limit=self.suggestion_limit
            )
            best = result.selected
            logger.debug(f"Best catalog match: {best.title} (distance {best.distance})")

        return result
