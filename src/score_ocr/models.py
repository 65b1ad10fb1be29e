"""
Data classes shared by every stage of the score extraction pipeline.

Configuration values (PerspectiveQuad, SelectionRegion) are immutable and
read-only for the pipeline. Frame-level values (CandidateImage,
RecognitionResult, readings) live for one detection-to-commit cycle.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Union

import numpy as np

from .errors import ConfigurationError


Point = Tuple[float, float]

# Recognition languages understood by the engines
LATIN = "latin"
CJK = "cjk"

# Terminal value reported for every region when an OCR session fails
ERROR_TEXT = "Error"

# Categorical field could not be classified (no foreground pixels)
NOT_AVAILABLE = "N/A"

NUMERIC_FIELDS = ("notes", "chord", "peak", "charge", "scratch", "soflan")


class Polarity(str, Enum):
    NORMAL = "normal"
    INVERTED = "inverted"


class RegionKind(str, Enum):
    TEXT = "text"
    SPLIT_NUMERIC = "splitNumeric"
    CATEGORICAL = "categorical"


class Part(str, Enum):
    INTEGER = "integer"
    DECIMAL = "decimal"


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class PerspectiveQuad:
    """Four corners (tl, tr, br, bl) of the screen inside the raw frame.

    An empty quad means the raw frame is used as-is.
    """
    points: Tuple[Point, ...] = ()

    def __post_init__(self):
        if len(self.points) not in (0, 4):
            raise ConfigurationError(
                f"Perspective quad needs 0 or 4 points, got {len(self.points)}"
            )

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in rectified-frame pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    def fits_within(self, frame_width: int, frame_height: int) -> bool:
        return (
            self.x >= 0 and self.y >= 0
            and self.width > 0 and self.height > 0
            and self.x + self.width <= frame_width
            and self.y + self.height <= frame_height
        )

    def crop(self, frame: np.ndarray) -> np.ndarray:
        return frame[self.y:self.y + self.height, self.x:self.x + self.width]


@dataclass(frozen=True)
class SelectionRegion:
    """A labeled screen region associated with one scoreboard field.

    Use one of the concrete subclasses; ``kind`` tells them apart.

    Attributes:
        label: Display label (e.g. 'NOTES').
        rect: Primary rectangle (the integer part for split numeric regions).
        threshold: Binarization threshold, or hue lower bound for categorical regions.
        scale_x: Horizontal resize factor applied before thresholding.
        scale_y: Vertical resize factor applied before thresholding.
        polarity: NORMAL keeps bright pixels white, INVERTED flips them.
        field: OutputRecord field this region feeds ('title', 'notes', ...).
    """
    kind: ClassVar[RegionKind]

    label: str
    rect: Rect
    threshold: int = 150
    scale_x: float = 3.0
    scale_y: float = 3.0
    polarity: Polarity = Polarity.INVERTED
    field: str = ""

    def __post_init__(self):
        if not 0 <= self.threshold <= 255:
            raise ConfigurationError(f"{self.label}: threshold {self.threshold} outside [0, 255]")
        if self.scale_x <= 0 or self.scale_y <= 0:
            raise ConfigurationError(f"{self.label}: scale factors must be positive")

    def parts(self) -> List[Tuple[Part, Rect]]:
        """Rectangles to read, tagged with the part they produce."""
        return [(Part.INTEGER, self.rect)]


@dataclass(frozen=True)
class TextRegion(SelectionRegion):
    """Free text or a whole numeric value read by OCR.

    ``bilingual`` regions (title/artist) are read by the latin and the CJK
    engine and both readings are kept.
    """
    kind: ClassVar[RegionKind] = RegionKind.TEXT

    bilingual: bool = False


@dataclass(frozen=True)
class SplitNumericRegion(SelectionRegion):
    """Numeric value whose integer and decimal parts are drawn separately."""
    kind: ClassVar[RegionKind] = RegionKind.SPLIT_NUMERIC

    decimal_rect: Optional[Rect] = None

    def __post_init__(self):
        super().__post_init__()
        if self.decimal_rect is None:
            raise ConfigurationError(f"{self.label}: split numeric region needs a decimal rect")

    def parts(self) -> List[Tuple[Part, Rect]]:
        return [(Part.INTEGER, self.rect), (Part.DECIMAL, self.decimal_rect)]


@dataclass(frozen=True)
class CategoricalRegion(SelectionRegion):
    """Field whose value is conveyed by color and classified by hue."""
    kind: ClassVar[RegionKind] = RegionKind.CATEGORICAL


# =============================================================================
# Per-frame values
# =============================================================================

@dataclass
class CandidateImage:
    """One preprocessed bitmap ready for recognition (or hue voting)."""
    region: SelectionRegion
    part: Part
    variant_index: int
    image: np.ndarray
    mask: Optional[np.ndarray] = None


@dataclass(frozen=True)
class RecognitionResult:
    """Raw text recognized for one candidate by one engine."""
    region_label: str
    part: Part
    language: str
    variant_index: int
    text: str


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class BilingualText:
    eng: str
    jpn: str

    def candidates(self) -> List[str]:
        return [self.eng, self.jpn]


@dataclass(frozen=True)
class ErrorReading:
    message: str = ""

    @property
    def text(self) -> str:
        return ERROR_TEXT


Reading = Union[PlainText, BilingualText, ErrorReading]


# =============================================================================
# Catalog and output
# =============================================================================

@dataclass(frozen=True)
class MasterCatalogEntry:
    id: int
    title: str
    artist: str


@dataclass(frozen=True)
class CorrectionSuggestion:
    catalog_id: int
    title: str
    artist: str
    distance: int
    title_distance: int
    artist_distance: int


@dataclass(frozen=True)
class OutputRecord:
    """One committed result screen. Numeric fields are percentages with two decimals."""
    music_id: int
    difficulty: int
    play_style: int
    notes: Decimal
    chord: Decimal
    peak: Decimal
    charge: Decimal
    scratch: Decimal
    soflan: Decimal

    @property
    def key(self) -> Tuple[int, int]:
        return (self.music_id, self.difficulty)

    def to_dict(self) -> Dict[str, Union[int, float]]:
        """
        Serialize with the camelCase field names of the output document.

        Percentages become JSON numbers, so trailing zeros are not kept
        (Decimal("98.50") is written as 98.5). CSV export formats them with
        two decimals.
        """
        return {
            "musicId": self.music_id,
            "difficulty": self.difficulty,
            "playStyle": self.play_style,
            "notes": float(self.notes),
            "chord": float(self.chord),
            "peak": float(self.peak),
            "charge": float(self.charge),
            "scratch": float(self.scratch),
            "soflan": float(self.soflan),
        }


@dataclass
class FrameReading:
    """Everything read from one captured frame, before validation.

    Attributes:
        readings: Reduced OCR reading per region label.
        numeric: Corrected numeric strings per output field.
        suggestions: Ranked catalog matches for the title.
        categories: Classified category per categorical field.
        failed: True when the OCR session failed for this frame.
    """
    readings: Dict[str, Reading] = field(default_factory=dict)
    numeric: Dict[str, str] = field(default_factory=dict)
    suggestions: List[CorrectionSuggestion] = field(default_factory=list)
    categories: Dict[str, str] = field(default_factory=dict)
    failed: bool = False

    @property
    def selected(self) -> Optional[CorrectionSuggestion]:
        return self.suggestions[0] if self.suggestions else None
