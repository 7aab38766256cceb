from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag

from .geometry import Vector3
from .transport import TransportMode


class CitizenFlags(IntFlag):
    NONE = 0
    CREATED = 1 << 0
    UNDERGROUND = 1 << 1
    WAITING_PATH = 1 << 2
    WAITING_TRANSPORT = 1 << 3
    ENTERING_VEHICLE = 1 << 4
    BOREDOM = 1 << 5
    TARGET_IS_NODE = 1 << 6


@dataclass(frozen=True)
class CitizenInfo:
    """Type metadata shared by citizens of the same kind."""

    name: str
    transport_mode: TransportMode = TransportMode.NONE


@dataclass(frozen=True)
class CitizenInstance:
    instance_id: int
    position: Vector3
    flags: CitizenFlags
    info: CitizenInfo
    target_building: int = 0
    # Remaining path waypoints; index 0 is where the citizen currently waits.
    path: tuple[Vector3, ...] = ()
    next_grid_instance: int = 0

    @property
    def is_waiting_for_transport(self) -> bool:
        return bool(self.flags & CitizenFlags.WAITING_TRANSPORT)
