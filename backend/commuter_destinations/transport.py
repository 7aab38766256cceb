from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Literal

RangePolicy = Literal["by_mode", "fixed"]

SHORT_TRANSIT_RANGE = 32.0
LONG_TRANSIT_RANGE = 64.0
LEGACY_FIXED_TRANSIT_RANGE = LONG_TRANSIT_RANGE


class TransportMode(str, Enum):
    NONE = "none"
    BUS = "bus"
    TROLLEYBUS = "trolleybus"
    TRAM = "tram"
    METRO = "metro"
    TRAIN = "train"
    MONORAIL = "monorail"
    CABLE_CAR = "cable_car"
    SHIP = "ship"
    FERRY = "ferry"
    BLIMP = "blimp"
    HELICOPTER = "helicopter"
    PLANE = "plane"


# Boarding radius used when loading passengers, per vehicle type.
TRANSIT_RANGE_BY_MODE: MappingProxyType[TransportMode, float] = MappingProxyType(
    {
        TransportMode.BUS: SHORT_TRANSIT_RANGE,
        TransportMode.CABLE_CAR: SHORT_TRANSIT_RANGE,
        TransportMode.TROLLEYBUS: LONG_TRANSIT_RANGE,
        TransportMode.TRAM: LONG_TRANSIT_RANGE,
        TransportMode.METRO: LONG_TRANSIT_RANGE,
        TransportMode.TRAIN: LONG_TRANSIT_RANGE,
        TransportMode.MONORAIL: LONG_TRANSIT_RANGE,
        TransportMode.SHIP: LONG_TRANSIT_RANGE,
        TransportMode.FERRY: LONG_TRANSIT_RANGE,
        TransportMode.BLIMP: LONG_TRANSIT_RANGE,
        TransportMode.HELICOPTER: LONG_TRANSIT_RANGE,
        TransportMode.PLANE: LONG_TRANSIT_RANGE,
    }
)


def parse_transport_mode(value: object) -> TransportMode:
    if isinstance(value, TransportMode):
        return value
    key = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return TransportMode(key)
    except ValueError:
        return TransportMode.NONE


def resolve_transit_range(mode: TransportMode, *, policy: RangePolicy = "by_mode") -> float:
    """Transit range for a stop served by ``mode``.

    ``fixed`` keeps the legacy behaviour of treating every stop as long-range.
    Modes without an entry fall back to the long range.
    """
    if policy == "fixed":
        return LEGACY_FIXED_TRANSIT_RANGE
    return TRANSIT_RANGE_BY_MODE.get(mode, LONG_TRANSIT_RANGE)
