"""Tagged union for the two reading shapes a source can deliver."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from ..domain.errors import ValidationError

DEFAULT_UNIT = "cm"


@dataclass(frozen=True)
class LevelInput:
    """A level measured directly by the source."""

    level: Any
    unit: str = DEFAULT_UNIT


@dataclass(frozen=True)
class DistanceInput:
    """Raw ultrasonic distance from the top of the tank (ESP32 style)."""

    distance: Any


RawReading = Union[LevelInput, DistanceInput]


def parse_raw_reading(payload: Mapping[str, Any]) -> RawReading:
    """Builds the matching variant from a `{level, unit}` or `{distance}` payload."""
    if not isinstance(payload, Mapping):
        raise ValidationError("reading payload must be an object")

    has_level = "level" in payload
    has_distance = "distance" in payload

    if has_level and has_distance:
        raise ValidationError("payload must carry either level or distance, not both")
    if has_distance:
        return DistanceInput(distance=payload["distance"])
    if has_level:
        unit = payload.get("unit") or DEFAULT_UNIT
        if not isinstance(unit, str):
            raise ValidationError("unit must be a string")
        return LevelInput(level=payload["level"], unit=unit)

    raise ValidationError("valid water level or distance measurement is required")
