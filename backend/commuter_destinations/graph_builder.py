from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass

from .citizens import CitizenInstance
from .destination_graph import DestinationGraph, DestinationGraphStop
from .geometry import GridBounds, Vector3, cell_index, grid_bounds_for_range
from .logging_utils import log_event
from .metrics_store import record_graph_build
from .readiness import transport_arrive_at_source
from .settings import settings
from .transport import RangePolicy, TransportMode, resolve_transit_range
from .world import WorldStateAccessor
from .world_errors import InvalidStopError


@dataclass
class GraphBuildStats:
    origin_stop_id: int
    transport_mode: str
    transit_range: float
    bounds: dict[str, int]
    cells_scanned: int = 0
    citizens_visited: int = 0
    citizens_qualifying: int = 0
    citizens_unresolved: int = 0
    corrupt_chains: int = 0
    destination_count: int = 0
    duration_ms: float = 0.0


@dataclass(frozen=True)
class _ScanContext:
    stop_id: int
    transit_range: float
    stop_position: Vector3
    next_stop_position: Vector3 | None


class GraphBuilder:
    """Builds the destination graph for the citizens waiting at one stop.

    The scan only reads from ``world``; no state is kept between calls, so a
    failed call can simply be retried on the next refresh.
    """

    def __init__(
        self,
        world: WorldStateAccessor,
        *,
        range_policy: RangePolicy | None = None,
        max_chain_length: int | None = None,
        arrival_tolerance: float | None = None,
    ) -> None:
        self._world = world
        self._range_policy: RangePolicy = range_policy or settings.transit_range_policy  # type: ignore[assignment]
        if max_chain_length is None:
            max_chain_length = settings.max_cell_chain_length
        if max_chain_length < 1:
            raise ValueError(f"max_chain_length must be at least 1, got {max_chain_length}")
        # Readiness and destination resolution must agree on what "at a stop" means.
        if arrival_tolerance is None:
            arrival_tolerance = world.arrival_tolerance
        if not arrival_tolerance > 0.0:
            raise ValueError(f"arrival_tolerance must be positive, got {arrival_tolerance}")
        self._max_chain_length = int(max_chain_length)
        self._arrival_tolerance = float(arrival_tolerance)

    def generate_graph(self, stop_id: int) -> DestinationGraph:
        graph, _stats = self.generate_graph_with_stats(stop_id)
        return graph

    def generate_graph_with_stats(self, stop_id: int) -> tuple[DestinationGraph, GraphBuildStats]:
        started = time.perf_counter()
        mode = self._world.get_stop_transport_mode(stop_id)
        transit_range = resolve_transit_range(mode, policy=self._range_policy)

        stop_position = self._world.get_stop_position(stop_id)
        if stop_position is None:
            raise InvalidStopError(stop_id)

        ctx = _ScanContext(
            stop_id=stop_id,
            transit_range=transit_range,
            stop_position=stop_position,
            next_stop_position=self._next_stop_position(stop_id),
        )
        bounds = grid_bounds_for_range(stop_position, transit_range)
        stats = GraphBuildStats(
            origin_stop_id=int(stop_id),
            transport_mode=mode.value if isinstance(mode, TransportMode) else str(mode),
            transit_range=transit_range,
            bounds=asdict(bounds),
        )

        # Keyed by destination stop so every stop appears once.
        stops: dict[int, DestinationGraphStop] = {}
        self._scan(ctx, bounds, stops, stats)

        graph = DestinationGraph(stops.values())
        stats.destination_count = len(graph)
        stats.duration_ms = round((time.perf_counter() - started) * 1000.0, 3)
        record_graph_build(stats.origin_stop_id, duration_ms=stats.duration_ms, qualifying=stats.citizens_qualifying)
        log_event("graph_built", **asdict(stats))
        return graph, stats

    def _next_stop_position(self, stop_id: int) -> Vector3 | None:
        next_stop_id = self._world.get_next_stop_id(stop_id)
        if not next_stop_id:
            return None
        return self._world.get_stop_position(next_stop_id)

    def _scan(
        self,
        ctx: _ScanContext,
        bounds: GridBounds,
        stops: dict[int, DestinationGraphStop],
        stats: GraphBuildStats,
    ) -> None:
        world = self._world
        for z, x in bounds.cells():
            stats.cells_scanned += 1
            citizen_id = world.get_cell_head(cell_index(x, z))
            steps = 0
            while citizen_id != 0:
                # Read the link first: predicate evaluation may reassign it in the host.
                next_citizen_id = world.get_next_in_cell(citizen_id)
                stats.citizens_visited += 1

                citizen = self._citizen_at_stop(ctx, citizen_id)
                if citizen is not None:
                    self._add_journey(ctx, citizen, stops, stats)

                citizen_id = next_citizen_id
                steps += 1
                if steps >= self._max_chain_length and citizen_id != 0:
                    stats.corrupt_chains += 1
                    log_event(
                        "invalid_cell_chain",
                        level=logging.WARNING,
                        origin_stop_id=ctx.stop_id,
                        cell_x=x,
                        cell_z=z,
                        max_chain_length=self._max_chain_length,
                    )
                    break

    def _citizen_at_stop(self, ctx: _ScanContext, citizen_id: int) -> CitizenInstance | None:
        world = self._world
        # Cheapest reject first.
        if not world.is_entity_in_range_of_stop(citizen_id, ctx.stop_id, ctx.transit_range):
            return None
        citizen = world.get_citizen(citizen_id)
        if citizen is None or not citizen.is_waiting_for_transport:
            return None
        if ctx.next_stop_position is None:
            return None
        if not transport_arrive_at_source(
            citizen,
            ctx.stop_position,
            ctx.next_stop_position,
            tolerance=self._arrival_tolerance,
        ):
            return None
        return citizen

    def _add_journey(
        self,
        ctx: _ScanContext,
        citizen: CitizenInstance,
        stops: dict[int, DestinationGraphStop],
        stats: GraphBuildStats,
    ) -> None:
        destination_stop_id = self._world.get_destination_stop_id(ctx.stop_id, citizen)
        building_id = self._world.get_target_building_id(citizen)
        if not destination_stop_id or not building_id:
            stats.citizens_unresolved += 1
            return
        stop = stops.get(destination_stop_id)
        if stop is None:
            stop = DestinationGraphStop(destination_stop_id)
            stops[destination_stop_id] = stop
        stop.add_journey(building_id)
        stats.citizens_qualifying += 1


def generate_graph(world: WorldStateAccessor, stop_id: int) -> DestinationGraph:
    return GraphBuilder(world).generate_graph(stop_id)
