from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Protocol

import numpy as np

from .citizens import CitizenFlags, CitizenInfo, CitizenInstance
from .geometry import GRID_MAX_INDEX, GRID_SIZE, Vector3, cell_index, grid_coordinate
from .readiness import DEFAULT_ARRIVAL_TOLERANCE
from .transport import TransportMode

# Instance ids are 16-bit in the host; id 0 is the null link.
MAX_CITIZEN_INSTANCES = 65_536


class WorldStateAccessor(Protocol):
    """Read-only view of the simulation that graph construction runs against."""

    @property
    def arrival_tolerance(self) -> float: ...

    def get_stop_position(self, stop_id: int) -> Vector3 | None: ...

    def get_stop_transport_mode(self, stop_id: int) -> TransportMode: ...

    def get_next_stop_id(self, stop_id: int) -> int: ...

    def is_entity_in_range_of_stop(self, citizen_id: int, stop_id: int, transit_range: float) -> bool: ...

    def get_destination_stop_id(self, origin_stop_id: int, citizen: CitizenInstance) -> int: ...

    def get_target_building_id(self, citizen: CitizenInstance) -> int: ...

    def get_cell_head(self, index: int) -> int: ...

    def get_next_in_cell(self, citizen_id: int) -> int: ...

    def get_citizen(self, citizen_id: int) -> CitizenInstance | None: ...


@dataclass(frozen=True)
class TransitStop:
    stop_id: int
    position: Vector3
    transport_mode: TransportMode = TransportMode.NONE
    line_id: int = 0


@dataclass(frozen=True)
class TransitLine:
    line_id: int
    transport_mode: TransportMode
    stop_ids: tuple[int, ...]


def _next_stop_index(lines: Iterable[TransitLine]) -> dict[int, int]:
    out: dict[int, int] = {}
    for line in lines:
        count = len(line.stop_ids)
        if count < 2:
            continue
        for idx, stop_id in enumerate(line.stop_ids):
            out[stop_id] = line.stop_ids[(idx + 1) % count]
    return out


class WorldSnapshot:
    """Arena-backed world state.

    ``grid`` holds only the head instance id of every cell; the link to the next
    citizen in the same cell lives on the citizen itself (``next_grid_instance``).
    """

    def __init__(
        self,
        *,
        stops: dict[int, TransitStop],
        lines: dict[int, TransitLine],
        citizens: Sequence[CitizenInstance | None],
        grid: np.ndarray,
        arrival_tolerance: float = DEFAULT_ARRIVAL_TOLERANCE,
        source: str = "memory",
    ) -> None:
        if grid.shape != (GRID_SIZE * GRID_SIZE,):
            raise ValueError(f"grid must hold {GRID_SIZE * GRID_SIZE} cells, got shape {grid.shape}")
        self._stops = dict(stops)
        self._lines = dict(lines)
        self._citizens = tuple(citizens)
        self._grid = grid
        if not arrival_tolerance > 0.0:
            raise ValueError(f"arrival_tolerance must be positive, got {arrival_tolerance}")
        self._arrival_tolerance = float(arrival_tolerance)
        self._next_stop = _next_stop_index(self._lines.values())
        self.source = source

    @property
    def arrival_tolerance(self) -> float:
        return self._arrival_tolerance

    @property
    def stop_count(self) -> int:
        return len(self._stops)

    @property
    def line_count(self) -> int:
        return len(self._lines)

    @property
    def citizen_count(self) -> int:
        return sum(1 for citizen in self._citizens if citizen is not None)

    def stop_ids(self) -> tuple[int, ...]:
        return tuple(sorted(self._stops))

    def get_stop_position(self, stop_id: int) -> Vector3 | None:
        stop = self._stops.get(int(stop_id))
        return stop.position if stop is not None else None

    def get_stop_transport_mode(self, stop_id: int) -> TransportMode:
        stop = self._stops.get(int(stop_id))
        return stop.transport_mode if stop is not None else TransportMode.NONE

    def get_next_stop_id(self, stop_id: int) -> int:
        return self._next_stop.get(int(stop_id), 0)

    def get_citizen(self, citizen_id: int) -> CitizenInstance | None:
        idx = int(citizen_id)
        if idx <= 0 or idx >= len(self._citizens):
            return None
        return self._citizens[idx]

    def is_entity_in_range_of_stop(self, citizen_id: int, stop_id: int, transit_range: float) -> bool:
        citizen = self.get_citizen(citizen_id)
        stop_position = self.get_stop_position(stop_id)
        if citizen is None or stop_position is None:
            return False
        return citizen.position.sqr_distance(stop_position) < (transit_range * transit_range)

    def get_destination_stop_id(self, origin_stop_id: int, citizen: CitizenInstance) -> int:
        """Last stop along the line that the citizen's path rides through before alighting."""
        tolerance_sq = self._arrival_tolerance * self._arrival_tolerance
        destination = 0
        stop_id = self.get_next_stop_id(origin_stop_id)
        for waypoint in citizen.path[1:]:
            if stop_id == 0 or stop_id == origin_stop_id:
                break
            position = self.get_stop_position(stop_id)
            if position is None or waypoint.sqr_distance(position) >= tolerance_sq:
                break
            destination = stop_id
            stop_id = self.get_next_stop_id(stop_id)
        return destination

    def get_target_building_id(self, citizen: CitizenInstance) -> int:
        return int(citizen.target_building)

    def get_cell_head(self, index: int) -> int:
        return int(self._grid[index])

    def get_next_in_cell(self, citizen_id: int) -> int:
        citizen = self.get_citizen(citizen_id)
        return int(citizen.next_grid_instance) if citizen is not None else 0


def citizen_cell_index(position: Vector3) -> int:
    x = min(max(grid_coordinate(position.x), 0), GRID_MAX_INDEX)
    z = min(max(grid_coordinate(position.z), 0), GRID_MAX_INDEX)
    return cell_index(x, z)


class WorldSnapshotBuilder:
    """Assembles a :class:`WorldSnapshot` the way the host grid is populated.

    Citizens are pushed onto the head of their cell, so a cell's chain lists the
    most recently added citizen first.
    """

    def __init__(self, *, arrival_tolerance: float = DEFAULT_ARRIVAL_TOLERANCE, source: str = "memory") -> None:
        self._arrival_tolerance = arrival_tolerance
        self._source = source
        self._stops: dict[int, TransitStop] = {}
        self._lines: dict[int, TransitLine] = {}
        self._citizens: list[CitizenInstance | None] = [None]
        self._grid = np.zeros(GRID_SIZE * GRID_SIZE, dtype=np.uint32)

    def add_stop(
        self,
        stop_id: int,
        position: Vector3,
        *,
        transport_mode: TransportMode = TransportMode.NONE,
    ) -> WorldSnapshotBuilder:
        if stop_id <= 0:
            raise ValueError("stop ids start at 1")
        self._stops[stop_id] = TransitStop(stop_id=stop_id, position=position, transport_mode=transport_mode)
        return self

    def add_line(
        self,
        line_id: int,
        transport_mode: TransportMode,
        stops: Sequence[tuple[int, Vector3]],
    ) -> WorldSnapshotBuilder:
        for stop_id, position in stops:
            if stop_id <= 0:
                raise ValueError("stop ids start at 1")
            self._stops[stop_id] = TransitStop(
                stop_id=stop_id,
                position=position,
                transport_mode=transport_mode,
                line_id=line_id,
            )
        self._lines[line_id] = TransitLine(
            line_id=line_id,
            transport_mode=transport_mode,
            stop_ids=tuple(stop_id for stop_id, _ in stops),
        )
        return self

    def add_citizen(
        self,
        position: Vector3,
        *,
        info: CitizenInfo,
        flags: CitizenFlags = CitizenFlags.CREATED,
        target_building: int = 0,
        path: Sequence[Vector3] = (),
    ) -> int:
        instance_id = len(self._citizens)
        if instance_id >= MAX_CITIZEN_INSTANCES:
            raise ValueError("citizen arena is full")
        index = citizen_cell_index(position)
        self._citizens.append(
            CitizenInstance(
                instance_id=instance_id,
                position=position,
                flags=flags,
                info=info,
                target_building=target_building,
                path=tuple(path),
                next_grid_instance=int(self._grid[index]),
            )
        )
        self._grid[index] = instance_id
        return instance_id

    def relink(self, citizen_id: int, next_grid_instance: int) -> WorldSnapshotBuilder:
        citizen = self._citizens[citizen_id]
        if citizen is None:
            raise ValueError(f"unknown citizen {citizen_id}")
        self._citizens[citizen_id] = replace(citizen, next_grid_instance=next_grid_instance)
        return self

    def build(self) -> WorldSnapshot:
        return WorldSnapshot(
            stops=self._stops,
            lines=self._lines,
            citizens=self._citizens,
            grid=self._grid.copy(),
            arrival_tolerance=self._arrival_tolerance,
            source=self._source,
        )
