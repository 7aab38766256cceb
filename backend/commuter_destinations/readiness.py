from __future__ import annotations

from collections.abc import Callable
from types import MappingProxyType

from .citizens import CitizenInstance
from .geometry import Vector3
from .transport import TransportMode

DEFAULT_ARRIVAL_TOLERANCE = 2.0

ReadinessFn = Callable[[CitizenInstance, Vector3, Vector3, float], bool]


def boards_toward_next_stop(
    citizen: CitizenInstance,
    stop_position: Vector3,
    next_stop_position: Vector3,
    tolerance: float,
) -> bool:
    """True when the citizen's path leaves this stop along the line toward the next stop.

    The waypoint the citizen waits at must sit on this stop and the waypoint after it
    on the next stop; a citizen heading the other way round the line stays put.
    """
    if len(citizen.path) < 2:
        return False
    tolerance_sq = tolerance * tolerance
    if citizen.path[0].sqr_distance(stop_position) >= tolerance_sq:
        return False
    return citizen.path[1].sqr_distance(next_stop_position) < tolerance_sq


def never_ready(
    citizen: CitizenInstance,
    stop_position: Vector3,
    next_stop_position: Vector3,
    tolerance: float,
) -> bool:
    _ = (citizen, stop_position, next_stop_position, tolerance)
    return False


READINESS_BY_MODE: MappingProxyType[TransportMode, ReadinessFn] = MappingProxyType(
    {
        TransportMode.NONE: never_ready,
        TransportMode.BUS: boards_toward_next_stop,
        TransportMode.TROLLEYBUS: boards_toward_next_stop,
        TransportMode.TRAM: boards_toward_next_stop,
        TransportMode.METRO: boards_toward_next_stop,
        TransportMode.TRAIN: boards_toward_next_stop,
        TransportMode.MONORAIL: boards_toward_next_stop,
        TransportMode.CABLE_CAR: boards_toward_next_stop,
        TransportMode.SHIP: boards_toward_next_stop,
        TransportMode.FERRY: boards_toward_next_stop,
        TransportMode.BLIMP: boards_toward_next_stop,
        TransportMode.HELICOPTER: boards_toward_next_stop,
        TransportMode.PLANE: boards_toward_next_stop,
    }
)


def transport_arrive_at_source(
    citizen: CitizenInstance,
    stop_position: Vector3,
    next_stop_position: Vector3,
    *,
    tolerance: float = DEFAULT_ARRIVAL_TOLERANCE,
) -> bool:
    policy = READINESS_BY_MODE.get(citizen.info.transport_mode, never_ready)
    return policy(citizen, stop_position, next_stop_position, tolerance)
