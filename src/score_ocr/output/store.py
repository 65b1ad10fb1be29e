"""
Output store: committed records of one session.

Records are unique on (musicId, difficulty) and kept sorted by musicId.
The store is append-only.
"""

import json
import logging
from pathlib import Path
from typing import List, Tuple

import pandas as pd

from ..errors import DuplicateKeyError
from ..models import OutputRecord

logger = logging.getLogger(__name__)

OUTPUT_COLUMNS = [
    'musicId', 'difficulty', 'playStyle',
    'notes', 'chord', 'peak', 'charge', 'scratch', 'soflan',
]


class OutputStore:
    """Ordered, deduplicated collection of OutputRecord."""

    def __init__(self):
        self._records: List[OutputRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: Tuple[int, int]) -> bool:
        return any(record.key == key for record in self._records)

    def commit(self, record: OutputRecord) -> None:
        """
        Insert a record.

        Raises:
            DuplicateKeyError: If a record with the same (musicId, difficulty)
                exists; the store is left unchanged
        """
        if record.key in self:
            raise DuplicateKeyError(record.key)

        self._records.append(record)
        self._records.sort(key=lambda r: r.music_id)
        logger.info(f"Committed musicId={record.music_id} difficulty={record.difficulty} ({len(self)} records)")

    def records(self) -> Tuple[OutputRecord, ...]:
        """Snapshot of the records in musicId order."""
        return tuple(self._records)

    def to_document(self) -> dict:
        return {'data': [record.to_dict() for record in self._records]}

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([record.to_dict() for record in self._records], columns=OUTPUT_COLUMNS)

    def save(self, output_file: str) -> None:
        """
        Write the records to disk.

        ``.csv`` files get one row per record; anything else gets the JSON
        document {"data": [...]}.
        """
        path = Path(output_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix.lower() == '.csv':
            self.to_dataframe().to_csv(path, index=False, float_format='%.2f')
        else:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(self.to_document(), f, indent=2, ensure_ascii=False)

        logger.info(f"Saved {len(self)} records to {output_file}")
