"""
Unit tests for catalog loading and ranking.

Tests edit-distance ranking of OCR titles against the music catalog.
"""

import json

import pytest

from src.score_ocr.correction.catalog import (
    load_catalog,
    parse_catalog,
    rank_catalog,
    resolve_title,
)
from src.score_ocr.errors import ConfigurationError
from src.score_ocr.models import MasterCatalogEntry


@pytest.mark.unit
class TestRankCatalog:
    """Test suite for rank_catalog."""

    def test_exact_title_ranks_first(self):
        catalog = [MasterCatalogEntry(id=1, title="ABC", artist="X")]

        suggestions = rank_catalog(catalog, ["ABC"])

        assert suggestions[0].catalog_id == 1
        assert suggestions[0].title_distance == 0

    def test_ranked_by_distance(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["Sakuro"])

        assert [s.catalog_id for s in suggestions][0] == 2
        assert suggestions[0].distance == 1

    def test_equal_distance_keeps_catalog_order(self, sample_catalog):
        """'ABX' is one edit from both 'ABC' and 'ABD'."""
        suggestions = rank_catalog(sample_catalog, ["ABX"])

        assert [s.catalog_id for s in suggestions[:2]] == [1, 3]

    def test_best_language_reading_counts(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["xxxxxx", "Sakura"])

        assert suggestions[0].catalog_id == 2
        assert suggestions[0].title_distance == 0

    def test_title_and_artist_summed(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["ABC"], ["Z"])

        by_id = {s.catalog_id: s for s in suggestions}
        assert by_id[1].distance == 0 + 1
        assert by_id[3].distance == 1 + 0

    def test_unavailable_reading_contributes_zero(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["ABC"], ["", "  "])

        assert all(s.artist_distance == 0 for s in suggestions)
        assert suggestions[0].catalog_id == 1

    def test_limit(self, sample_catalog):
        assert len(rank_catalog(sample_catalog, ["ABC"], limit=2)) == 2


@pytest.mark.unit
class TestResolveTitle:
    """Test suite for resolve_title."""

    def test_best_suggestion(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["Sakura"])

        assert resolve_title(sample_catalog, suggestions).id == 2

    def test_manual_title_wins(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["Sakura"])

        assert resolve_title(sample_catalog, suggestions, manual_title="ABD").id == 3

    def test_unknown_manual_title(self, sample_catalog):
        suggestions = rank_catalog(sample_catalog, ["Sakura"])

        assert resolve_title(sample_catalog, suggestions, manual_title="abd") is None

    def test_no_suggestions(self, sample_catalog):
        assert resolve_title(sample_catalog, []) is None


@pytest.mark.unit
class TestLoadCatalog:
    """Test suite for catalog loading."""

    def test_load(self, sample_catalog_json, sample_catalog):
        assert load_catalog(str(sample_catalog_json)) == sample_catalog

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_catalog(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding='utf-8')

        with pytest.raises(ConfigurationError):
            load_catalog(str(path))

    @pytest.mark.parametrize("document", [
        [],
        {"data": {}},
        {"data": {"music": {"id": 1}}},
        {"data": {"music": [{"title": "no id"}]}},
        {"data": {"music": [{"id": "x", "title": "bad id"}]}},
    ])
    def test_malformed_document(self, document):
        with pytest.raises(ConfigurationError):
            parse_catalog(document)

    def test_missing_artist_is_empty(self):
        entries = parse_catalog(json.loads('{"data": {"music": [{"id": 7, "title": "T"}]}}'))

        assert entries == (MasterCatalogEntry(id=7, title="T", artist=""),)
