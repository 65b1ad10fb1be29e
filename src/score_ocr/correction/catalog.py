"""
Fuzzy title/artist correction against the music catalog.

OCR readings of the title (and artist) are compared against every catalog
entry with the Levenshtein edit distance. Entries are ranked by the sum of
the best title distance and the best artist distance over all language
readings. A reading that is not available contributes 0 to the sum.
"""

import json
import logging
from typing import Any, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from ..errors import ConfigurationError
from ..models import CorrectionSuggestion, MasterCatalogEntry

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTION_LIMIT = 20


def parse_catalog(data: Any) -> Tuple[MasterCatalogEntry, ...]:
    """
    Parse a catalog document: {"data": {"music": [{id, title, artist}, ...]}}.

    Raises:
        ConfigurationError: If the document does not have that shape
    """
    try:
        music = data['data']['music']
    except (KeyError, TypeError) as e:
        raise ConfigurationError("Catalog must look like {\"data\": {\"music\": [...]}}") from e
    if not isinstance(music, list):
        raise ConfigurationError("Catalog 'music' must be a list")

    entries = []
    for item in music:
        try:
            entries.append(MasterCatalogEntry(
                id=int(item['id']),
                title=str(item['title']),
                artist=str(item.get('artist', '')),
            ))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Malformed catalog entry {item!r}: {e}") from e
    return tuple(entries)


def load_catalog(catalog_file: str) -> Tuple[MasterCatalogEntry, ...]:
    """
    Load the music catalog from a JSON file.

    Raises:
        ConfigurationError: If the file is missing, not JSON or malformed
    """
    try:
        with open(catalog_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read catalog {catalog_file}: {e}") from e

    entries = parse_catalog(data)
    logger.info(f"Loaded {len(entries)} catalog entries from {catalog_file}")
    return entries


def _available(readings: Optional[Sequence[str]]) -> List[str]:
    return [r for r in (readings or []) if r and r.strip()]


def best_distance(readings: Sequence[str], target: str) -> int:
    """Smallest edit distance from any reading to target; 0 if no reading is available."""
    if not readings:
        return 0
    return min(Levenshtein.distance(reading, target) for reading in readings)


def rank_catalog(catalog: Sequence[MasterCatalogEntry],
                 title_readings: Optional[Sequence[str]] = None,
                 artist_readings: Optional[Sequence[str]] = None,
                 limit: int = DEFAULT_SUGGESTION_LIMIT) -> List[CorrectionSuggestion]:
    """
    Rank catalog entries by edit distance to the OCR readings.

    Args:
        catalog: Catalog entries
        title_readings: Title text per language (missing/empty entries ignored)
        artist_readings: Artist text per language
        limit: Number of suggestions kept

    Returns:
        Suggestions sorted by total distance; equal distances keep catalog order
    """
    titles = _available(title_readings)
    artists = _available(artist_readings)

    suggestions = []
    for entry in catalog:
        title_distance = best_distance(titles, entry.title)
        artist_distance = best_distance(artists, entry.artist)
        suggestions.append(CorrectionSuggestion(
            catalog_id=entry.id,
            title=entry.title,
            artist=entry.artist,
            distance=title_distance + artist_distance,
            title_distance=title_distance,
            artist_distance=artist_distance,
        ))

    suggestions.sort(key=lambda s: s.distance)
    return suggestions[:limit]


def find_manual_entry(catalog: Sequence[MasterCatalogEntry], query: str) -> Optional[MasterCatalogEntry]:
    """Catalog entry whose title equals the manually entered text verbatim."""
    for entry in catalog:
        if entry.title == query:
            return entry
    return None


def resolve_title(catalog: Sequence[MasterCatalogEntry],
                  suggestions: Sequence[CorrectionSuggestion],
                  manual_title: Optional[str] = None) -> Optional[MasterCatalogEntry]:
    """
    Pick the working title: a manual entry wins over the best suggestion.

    Returns:
        The selected catalog entry, or None if nothing matches
    """
    if manual_title:
        entry = find_manual_entry(catalog, manual_title)
        if entry is None:
            logger.warning(f"Manual title '{manual_title}' is not in the catalog")
        return entry

    if not suggestions:
        return None
    best = suggestions[0]
    return MasterCatalogEntry(id=best.catalog_id, title=best.title, artist=best.artist)
