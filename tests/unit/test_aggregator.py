"""
Unit tests for ResultAggregator.

Tests majority voting over threshold variants.
"""

import pytest

from src.score_ocr.extraction.aggregator import ResultAggregator, majority_vote
from src.score_ocr.models import (
    CJK,
    LATIN,
    BilingualText,
    CategoricalRegion,
    ErrorReading,
    Part,
    PlainText,
    RecognitionResult,
    Rect,
    SplitNumericRegion,
    TextRegion,
)

TITLE = TextRegion('TITLE', Rect(0, 0, 100, 20), field='title', bilingual=True)
NOTES = TextRegion('NOTES', Rect(0, 30, 40, 10), field='notes')
CHORD = SplitNumericRegion('CHORD', Rect(0, 50, 30, 10), field='chord', decimal_rect=Rect(40, 50, 20, 10))
DIFFICULTY = CategoricalRegion('DIFFICULTY', Rect(0, 70, 40, 10), field='difficulty')


def result(label, text, variant=0, part=Part.INTEGER, language=LATIN):
    return RecognitionResult(label, part, language, variant, text)


@pytest.mark.unit
class TestMajorityVote:
    """Test suite for majority_vote."""

    def test_most_frequent(self):
        assert majority_vote(["98.50", "96.50", "98.50"]) == "98.50"

    def test_tie_first_seen_wins(self):
        assert majority_vote(["96.50", "98.50"]) == "96.50"
        assert majority_vote(["b", "a", "a", "b"]) == "b"

    def test_empty(self):
        assert majority_vote([]) == ""


@pytest.mark.unit
class TestResultAggregator:
    """Test suite for ResultAggregator.readings."""

    def test_readings_per_region_kind(self):
        results = [
            result('NOTES', "l00.00", 0), result('NOTES', "100.00", 1), result('NOTES', "100.00", 2),
            result('TITLE', "ABC", 0), result('TITLE', "エービーシー", 0, language=CJK),
            result('CHORD', "98", 0), result('CHORD', "50", 0, part=Part.DECIMAL),
        ]

        readings = ResultAggregator().readings((TITLE, NOTES, CHORD, DIFFICULTY), results)

        assert readings['NOTES'] == PlainText("100.00")
        assert readings['TITLE'] == BilingualText(eng="ABC", jpn="エービーシー")
        assert readings['CHORD'] == PlainText("98.50")
        assert 'DIFFICULTY' not in readings

    def test_region_without_results_reads_empty(self):
        readings = ResultAggregator().readings((NOTES,), [])

        assert readings['NOTES'] == PlainText("")

    def test_languages_voted_separately(self):
        results = [
            result('TITLE', "ABC", 0), result('TITLE', "ABC", 1),
            result('TITLE', "桜", 0, language=CJK), result('TITLE', "桜", 1, language=CJK),
            result('TITLE', "ABC", 2, language=CJK),
        ]

        reduced = ResultAggregator().reduce(results)

        assert reduced[('TITLE', Part.INTEGER, LATIN)] == "ABC"
        assert reduced[('TITLE', Part.INTEGER, CJK)] == "桜"

    def test_failed_session_reads_error(self):
        readings = ResultAggregator.failed((TITLE, NOTES, CHORD, DIFFICULTY), "engine rejected job")

        assert set(readings) == {'TITLE', 'NOTES', 'CHORD'}
        assert all(isinstance(r, ErrorReading) for r in readings.values())
        assert readings['NOTES'].text == "Error"
