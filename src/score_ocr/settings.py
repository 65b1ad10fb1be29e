"""
Settings document import/export.

The settings JSON holds everything the pipeline needs to know about the
screen layout:

    {
        "perspectivePoints": [[x, y], [x, y], [x, y], [x, y]],
        "detectionSettings": {"diffThreshold": 20, "skipFramesAfterChange": 0},
        "selections": [
            {"label": "NOTES", "x": 669, "y": 592, "width": 107, "height": 22,
             "threshold": 150, "scaleX": 3, "scaleY": 3, "negative": true,
             "kind": "text", "field": "notes"},
            ...
        ]
    }
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .errors import ConfigurationError
from .models import (
    CategoricalRegion,
    PerspectiveQuad,
    Polarity,
    Rect,
    RegionKind,
    SelectionRegion,
    SplitNumericRegion,
    TextRegion,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionSettings:
    diff_threshold: float = 20.0
    skip_frames_after_change: int = 0


@dataclass(frozen=True)
class Settings:
    perspective: PerspectiveQuad = field(default_factory=PerspectiveQuad)
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    selections: Tuple[SelectionRegion, ...] = ()


# Result screen layout of a 1920x1080 recording
DEFAULT_SELECTIONS: Tuple[SelectionRegion, ...] = (
    TextRegion('TITLE', Rect(496, 654, 656, 45), scale_x=1.0, scale_y=1.0,
               field='title', bilingual=True),
    TextRegion('NOTES', Rect(669, 592, 107, 22), field='notes'),
    TextRegion('CHORD', Rect(962, 583, 101, 19), field='chord'),
    TextRegion('PEAK', Rect(1248, 570, 88, 20), field='peak'),
    TextRegion('CHARGE', Rect(670, 613, 107, 23), field='charge'),
    TextRegion('SOF-LAN', Rect(961, 602, 101, 23), field='soflan'),
    TextRegion('SCRATCH', Rect(1248, 591, 91, 21), field='scratch'),
)


def default_settings() -> Settings:
    return Settings(selections=DEFAULT_SELECTIONS)


def _field_from_label(label: str) -> str:
    return label.lower().replace('-', '').replace(' ', '_')


def _rect_from_dict(data: Dict[str, Any]) -> Rect:
    return Rect(
        x=int(round(float(data['x']))),
        y=int(round(float(data['y']))),
        width=int(round(float(data['width']))),
        height=int(round(float(data['height']))),
    )


def region_from_dict(data: Dict[str, Any]) -> SelectionRegion:
    """
    Parse one selection entry.

    Raises:
        ConfigurationError: If the entry is missing keys or has invalid values
    """
    try:
        label = str(data['label'])
        kind = RegionKind(data.get('kind', RegionKind.TEXT.value))
        common = dict(
            label=label,
            rect=_rect_from_dict(data),
            threshold=int(data.get('threshold', 150)),
            scale_x=float(data.get('scaleX', 3.0)),
            scale_y=float(data.get('scaleY', 3.0)),
            polarity=Polarity.INVERTED if data.get('negative', True) else Polarity.NORMAL,
            field=str(data.get('field') or _field_from_label(label)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed selection {data!r}: {e}") from e

    if kind is RegionKind.SPLIT_NUMERIC:
        decimal = data.get('decimal')
        if not isinstance(decimal, dict):
            raise ConfigurationError(f"{label}: split numeric selection needs a 'decimal' rect")
        try:
            decimal_rect = _rect_from_dict(decimal)
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"{label}: malformed decimal rect: {e}") from e
        return SplitNumericRegion(decimal_rect=decimal_rect, **common)
    if kind is RegionKind.CATEGORICAL:
        return CategoricalRegion(**common)
    return TextRegion(bilingual=bool(data.get('bilingual', False)), **common)


def region_to_dict(region: SelectionRegion) -> Dict[str, Any]:
    data = {
        'label': region.label,
        'x': region.rect.x,
        'y': region.rect.y,
        'width': region.rect.width,
        'height': region.rect.height,
        'threshold': region.threshold,
        'scaleX': region.scale_x,
        'scaleY': region.scale_y,
        'negative': region.polarity is Polarity.INVERTED,
        'kind': region.kind.value,
        'field': region.field,
    }
    if isinstance(region, TextRegion):
        data['bilingual'] = region.bilingual
    if isinstance(region, SplitNumericRegion):
        r = region.decimal_rect
        data['decimal'] = {'x': r.x, 'y': r.y, 'width': r.width, 'height': r.height}
    return data


def settings_from_dict(data: Any) -> Settings:
    """
    Build Settings from a parsed settings document.

    Invalid selections are logged and skipped. A document that is not an
    object, or a perspective quad with a point count other than 0 or 4,
    is rejected.

    Raises:
        ConfigurationError: If the document itself is malformed
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Settings document must be a JSON object")

    try:
        points = tuple(
            (float(p[0]), float(p[1])) if isinstance(p, (list, tuple)) else (float(p['x']), float(p['y']))
            for p in data.get('perspectivePoints') or []
        )
    except (KeyError, TypeError, ValueError, IndexError) as e:
        raise ConfigurationError(f"Malformed perspectivePoints: {e}") from e
    perspective = PerspectiveQuad(points)

    detection_data = data.get('detectionSettings') or {}
    try:
        detection = DetectionSettings(
            diff_threshold=float(detection_data.get('diffThreshold', 20.0)),
            skip_frames_after_change=int(detection_data.get('skipFramesAfterChange', 0)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed detectionSettings: {e}") from e

    selections: List[SelectionRegion] = []
    for entry in data.get('selections') or []:
        try:
            selections.append(region_from_dict(entry))
        except ConfigurationError as e:
            logger.warning(f"Skipping selection: {e}")

    return Settings(perspective=perspective, detection=detection, selections=tuple(selections))


def settings_to_dict(settings: Settings) -> Dict[str, Any]:
    return {
        'perspectivePoints': [[x, y] for x, y in settings.perspective.points],
        'detectionSettings': {
            'diffThreshold': settings.detection.diff_threshold,
            'skipFramesAfterChange': settings.detection.skip_frames_after_change,
        },
        'selections': [region_to_dict(r) for r in settings.selections],
    }


def load_settings(settings_file: str) -> Settings:
    """
    Load settings from a JSON file.

    Raises:
        ConfigurationError: If the file is missing or not valid JSON
    """
    try:
        with open(settings_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read settings {settings_file}: {e}") from e
    return settings_from_dict(data)


def save_settings(settings: Settings, settings_file: str) -> None:
    path = Path(settings_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(settings_to_dict(settings), f, indent=2, ensure_ascii=False)
