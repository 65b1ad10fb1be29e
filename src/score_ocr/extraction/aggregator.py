"""
Majority vote over threshold variants.

Each region part is recognized once per threshold variant (and per
language for bilingual regions). The aggregator reduces every
(region, part, language) group to its most frequent text.
"""

from collections import Counter, defaultdict
from typing import Dict, List, Sequence, Tuple

from ..models import (
    CJK,
    LATIN,
    BilingualText,
    ErrorReading,
    Part,
    PlainText,
    Reading,
    RecognitionResult,
    SelectionRegion,
    SplitNumericRegion,
    TextRegion,
)

GroupKey = Tuple[str, Part, str]


def majority_vote(texts: Sequence[str]) -> str:
    """
    Most frequent string; ties go to the string seen first.

    Returns:
        The winning text, or "" for an empty input
    """
    if not texts:
        return ""
    # Counter keeps insertion order and most_common() is stable for equal counts
    return Counter(texts).most_common(1)[0][0]


class ResultAggregator:
    """Reduce raw recognition results to one reading per region."""

    def group(self, results: Sequence[RecognitionResult]) -> Dict[GroupKey, List[str]]:
        groups: Dict[GroupKey, List[str]] = defaultdict(list)
        for result in results:
            groups[(result.region_label, result.part, result.language)].append(result.text)
        return groups

    def reduce(self, results: Sequence[RecognitionResult]) -> Dict[GroupKey, str]:
        """Majority vote per (region, part, language)."""
        return {key: majority_vote(texts) for key, texts in self.group(results).items()}

    def readings(self,
                 regions: Sequence[SelectionRegion],
                 results: Sequence[RecognitionResult]) -> Dict[str, Reading]:
        """
        One reading per OCR'd region.

        Bilingual regions keep their latin and CJK texts apart. Split numeric
        regions are joined as 'integer.decimal'. Regions without any result
        read as empty text.
        """
        reduced = self.reduce(results)
        readings: Dict[str, Reading] = {}

        for region in regions:
            def text(part: Part, language: str = LATIN) -> str:
                return reduced.get((region.label, part, language), "")

            if isinstance(region, TextRegion) and region.bilingual:
                readings[region.label] = BilingualText(eng=text(Part.INTEGER), jpn=text(Part.INTEGER, CJK))
            elif isinstance(region, SplitNumericRegion):
                readings[region.label] = PlainText(f"{text(Part.INTEGER)}.{text(Part.DECIMAL)}")
            elif isinstance(region, TextRegion):
                readings[region.label] = PlainText(text(Part.INTEGER))

        return readings

    @staticmethod
    def failed(regions: Sequence[SelectionRegion], message: str) -> Dict[str, Reading]:
        """Uniform error reading for every OCR'd region of a failed session."""
        return {
            region.label: ErrorReading(message)
            for region in regions
            if isinstance(region, (TextRegion, SplitNumericRegion))
        }
