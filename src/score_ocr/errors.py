"""
Error taxonomy for the score extraction pipeline.

Every failure in the pipeline degrades to one of these reportable,
retryable conditions; none of them is fatal to a session.
"""

from typing import Dict, Optional, Tuple


class ScoreOCRError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ScoreOCRError):
    """Out-of-bounds region or malformed settings/catalog document."""


class RecognitionFailure(ScoreOCRError):
    """A recognition engine rejected a job; the whole OCR session failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ValidationError(ScoreOCRError):
    """One or more fields failed validation and the record cannot be committed.

    Attributes:
        field_errors: Mapping of field name to a human readable message.
    """

    def __init__(self, field_errors: Dict[str, str]):
        self.field_errors = dict(field_errors)
        details = "; ".join(f"{name}: {msg}" for name, msg in self.field_errors.items())
        super().__init__(f"Validation failed ({details})")


class DuplicateKeyError(ScoreOCRError):
    """A record with the same (musicId, difficulty) is already committed."""

    def __init__(self, key: Tuple[int, int]):
        self.key = key
        super().__init__(
            f"Record for musicId={key[0]} difficulty={key[1]} already exists"
        )
