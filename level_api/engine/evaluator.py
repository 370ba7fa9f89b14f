"""Pure classification of a water level against the thresholds.

Evaluation order (strict):
1. level >= danger_level  -> DANGER
2. level >= warning_level -> WARNING
3. otherwise              -> NONE

Danger is checked first even when the thresholds are inverted
(danger_level < warning_level). Settings invariants are enforced where
settings are written, not here.
"""

from __future__ import annotations

import math
from typing import Any

from ..domain.errors import InvalidReading
from ..domain.models import Classification, ThresholdSettings


def _as_number(value: Any, field: str) -> float:
    # bool is an int subclass; a JSON `true` is not a measurement.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidReading(f"{field} must be a number, got {type(value).__name__}")
    number = float(value)
    if not math.isfinite(number):
        raise InvalidReading(f"{field} must be finite, got {value}")
    return number


def validate_level(level: Any) -> float:
    """Validates a directly supplied level: finite and non-negative."""
    if level is None:
        raise InvalidReading("level is required")
    number = _as_number(level, "level")
    if number < 0:
        raise InvalidReading(f"level must be non-negative, got {number}")
    return number


def distance_to_level(distance: Any, thresholds: ThresholdSettings) -> float:
    """Converts a raw sensor distance into a level.

    The sensor is mounted at the top of the tank, so
    level = max_level - distance, clamped to [0, max_level].
    """
    if distance is None:
        raise InvalidReading("distance is required")
    number = _as_number(distance, "distance")
    level = thresholds.max_level - number
    return min(max(level, 0.0), thresholds.max_level)


def classify(level: float, thresholds: ThresholdSettings) -> Classification:
    if level >= thresholds.danger_level:
        return Classification.DANGER
    if level >= thresholds.warning_level:
        return Classification.WARNING
    return Classification.NONE
