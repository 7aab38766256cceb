from __future__ import annotations

import pytest

from commuter_destinations.citizens import CitizenFlags, CitizenInfo
from commuter_destinations.geometry import Vector3
from commuter_destinations.graph_builder import GraphBuilder, generate_graph
from commuter_destinations.transport import TransportMode
from commuter_destinations.world import WorldSnapshot, WorldSnapshotBuilder
from commuter_destinations.world_errors import InvalidStopError

S = Vector3(0.0, 0.0, 0.0)
D1 = Vector3(400.0, 0.0, 0.0)
D2 = Vector3(800.0, 0.0, 0.0)

TRAVELLER = CitizenInfo(name="resident", transport_mode=TransportMode.TRAIN)
WAITING = CitizenFlags.CREATED | CitizenFlags.WAITING_TRANSPORT

TO_D1 = (S, D1)
TO_D2 = (S, D1, D2)
WRONG_WAY = (S, D2)


def _train_line() -> WorldSnapshotBuilder:
    builder = WorldSnapshotBuilder()
    builder.add_line(1, TransportMode.TRAIN, [(1, S), (2, D1), (3, D2)])
    return builder


def _add_waiting(
    builder: WorldSnapshotBuilder,
    position: Vector3,
    *,
    building: int,
    path: tuple[Vector3, ...],
    flags: CitizenFlags = WAITING,
) -> int:
    return builder.add_citizen(position, info=TRAVELLER, flags=flags, target_building=building, path=path)


def _scenario_world() -> WorldSnapshot:
    builder = _train_line()
    _add_waiting(builder, Vector3(10.0, 0.0, 5.0), building=101, path=TO_D1)
    _add_waiting(builder, Vector3(-20.0, 0.0, 3.0), building=101, path=TO_D1)
    _add_waiting(builder, Vector3(30.0, 0.0, -10.0), building=202, path=TO_D2)
    # Waiting in range, but its path leaves the other way round the line.
    _add_waiting(builder, Vector3(5.0, 0.0, 5.0), building=303, path=WRONG_WAY)
    return builder.build()


def test_scenario_aggregates_by_destination_and_building() -> None:
    graph = GraphBuilder(_scenario_world()).generate_graph(1)

    assert graph.counts() == {2: {101: 2}, 3: {202: 1}}
    assert len(graph) == 2
    assert graph.total_journeys == 3
    assert graph.get(303) is None


def test_no_citizens_in_range_returns_empty_graph() -> None:
    builder = _train_line()
    _add_waiting(builder, Vector3(600.0, 0.0, 0.0), building=101, path=TO_D1)
    graph = GraphBuilder(builder.build()).generate_graph(1)

    assert len(graph) == 0
    assert graph.counts() == {}
    assert graph.total_journeys == 0


def test_waiting_citizen_that_is_not_ready_is_excluded() -> None:
    builder = _train_line()
    _add_waiting(builder, Vector3(1.0, 0.0, 1.0), building=101, path=WRONG_WAY)
    _add_waiting(builder, Vector3(2.0, 0.0, 1.0), building=102, path=())
    graph = GraphBuilder(builder.build()).generate_graph(1)

    assert graph.counts() == {}


def test_ready_citizen_without_waiting_flag_is_excluded() -> None:
    builder = _train_line()
    _add_waiting(builder, Vector3(1.0, 0.0, 1.0), building=101, path=TO_D1, flags=CitizenFlags.CREATED)
    graph = GraphBuilder(builder.build()).generate_graph(1)

    assert graph.counts() == {}


def test_citizen_without_transport_mode_is_never_ready() -> None:
    builder = _train_line()
    builder.add_citizen(
        Vector3(1.0, 0.0, 1.0),
        info=CitizenInfo(name="pet"),
        flags=WAITING,
        target_building=101,
        path=TO_D1,
    )
    graph = GraphBuilder(builder.build()).generate_graph(1)

    assert graph.counts() == {}


def test_unknown_stop_raises_invalid_stop_error() -> None:
    with pytest.raises(InvalidStopError) as exc_info:
        GraphBuilder(_scenario_world()).generate_graph(999)

    assert exc_info.value.reason_code == "stop_unresolved"
    assert exc_info.value.stop_id == 999


def test_generate_graph_is_idempotent_over_unchanged_world() -> None:
    world = _scenario_world()
    builder = GraphBuilder(world)

    first = builder.generate_graph(1)
    second = builder.generate_graph(1)
    assert first.counts() == second.counts()
    assert generate_graph(world, 1).counts() == first.counts()


def test_every_qualifying_citizen_counted_exactly_once() -> None:
    builder = _train_line()
    expected: dict[int, int] = {2: 0, 3: 0}
    for idx in range(12):
        angle_offset = float(idx * 3)
        path = TO_D1 if idx % 3 else TO_D2
        _add_waiting(builder, Vector3(angle_offset - 15.0, 0.0, 20.0 - angle_offset), building=500 + (idx % 4), path=path)
        expected[2 if idx % 3 else 3] += 1

    graph, stats = GraphBuilder(builder.build()).generate_graph_with_stats(1)

    assert stats.citizens_qualifying == 12
    for stop in graph:
        assert stop.journeys
        assert stop.total_journeys == expected[stop.stop_id]
    assert graph.total_journeys == 12


def test_bounding_box_edge_is_decided_by_proximity() -> None:
    builder = _train_line()
    inside = _add_waiting(builder, Vector3(63.9, 0.0, 0.0), building=1, path=TO_D1)
    _add_waiting(builder, Vector3(64.0, 0.0, 0.0), building=2, path=TO_D1)
    _add_waiting(builder, Vector3(60.0, 0.0, 60.0), building=3, path=TO_D1)
    graph, stats = GraphBuilder(builder.build()).generate_graph_with_stats(1)

    assert inside > 0
    assert stats.bounds == {"min_x": 1072, "max_x": 1088, "min_z": 1072, "max_z": 1088}
    assert stats.citizens_visited == 3
    assert graph.counts() == {2: {1: 1}}


@pytest.mark.parametrize(
    ("stop_x", "citizen_x", "expected_bounds_x"),
    [
        (-8630.0, -8639.0, (0, 9)),
        (8630.0, 8639.0, (2150, 2159)),
    ],
)
def test_grid_edges_are_clamped_without_skipping_cells(
    stop_x: float,
    citizen_x: float,
    expected_bounds_x: tuple[int, int],
) -> None:
    edge_stop = Vector3(stop_x, 0.0, 0.0)
    next_stop = Vector3(0.0, 0.0, 0.0)
    builder = WorldSnapshotBuilder()
    builder.add_line(7, TransportMode.TRAIN, [(10, edge_stop), (11, next_stop)])
    builder.add_citizen(
        Vector3(citizen_x, 0.0, 0.0),
        info=TRAVELLER,
        flags=WAITING,
        target_building=42,
        path=(edge_stop, next_stop),
    )
    graph, stats = GraphBuilder(builder.build()).generate_graph_with_stats(10)

    assert (stats.bounds["min_x"], stats.bounds["max_x"]) == expected_bounds_x
    assert graph.counts() == {11: {42: 1}}


def test_range_depends_on_stop_transport_mode() -> None:
    stop = Vector3(0.0, 0.0, 0.0)
    next_stop = Vector3(300.0, 0.0, 0.0)
    bus_rider = CitizenInfo(name="resident", transport_mode=TransportMode.BUS)
    builder = WorldSnapshotBuilder()
    builder.add_line(3, TransportMode.BUS, [(20, stop), (21, next_stop)])
    builder.add_citizen(Vector3(40.0, 0.0, 0.0), info=bus_rider, flags=WAITING, target_building=9, path=(stop, next_stop))
    world = builder.build()

    by_mode, by_mode_stats = GraphBuilder(world, range_policy="by_mode").generate_graph_with_stats(20)
    fixed, fixed_stats = GraphBuilder(world, range_policy="fixed").generate_graph_with_stats(20)

    assert by_mode_stats.transit_range == 32.0
    assert fixed_stats.transit_range == 64.0
    assert by_mode.counts() == {}
    assert fixed.counts() == {21: {9: 1}}


def test_stop_without_next_stop_fails_closed() -> None:
    builder = WorldSnapshotBuilder()
    builder.add_stop(5, S, transport_mode=TransportMode.TRAIN)
    _add_waiting(builder, Vector3(1.0, 0.0, 0.0), building=1, path=TO_D1)
    graph, stats = GraphBuilder(builder.build()).generate_graph_with_stats(5)

    assert graph.counts() == {}
    assert stats.citizens_visited == 1


def test_citizen_without_target_building_is_skipped() -> None:
    builder = _train_line()
    _add_waiting(builder, Vector3(1.0, 0.0, 0.0), building=0, path=TO_D1)
    _add_waiting(builder, Vector3(2.0, 0.0, 0.0), building=7, path=TO_D1)
    graph, stats = GraphBuilder(builder.build()).generate_graph_with_stats(1)

    assert graph.counts() == {2: {7: 1}}
    assert stats.citizens_unresolved == 1


def test_corrupt_cell_chain_is_abandoned() -> None:
    builder = _train_line()
    first = builder.add_citizen(Vector3(1.0, 0.0, 1.0), info=TRAVELLER)
    second = builder.add_citizen(Vector3(2.0, 0.0, 2.0), info=TRAVELLER)
    builder.relink(first, second)
    graph, stats = GraphBuilder(builder.build(), max_chain_length=8).generate_graph_with_stats(1)

    assert graph.counts() == {}
    assert stats.corrupt_chains == 1
    assert stats.citizens_visited == 8


class _RelinkingWorld:
    """Drops a citizen's cell link once it has been range-checked, like the host may."""

    def __init__(self, world: WorldSnapshot) -> None:
        self._world = world
        self.calls: list[tuple[str, int]] = []
        self.checked: set[int] = set()

    def __getattr__(self, name: str):
        return getattr(self._world, name)

    def get_next_in_cell(self, citizen_id: int) -> int:
        self.calls.append(("next", citizen_id))
        if citizen_id in self.checked:
            return 0
        return self._world.get_next_in_cell(citizen_id)

    def is_entity_in_range_of_stop(self, citizen_id: int, stop_id: int, transit_range: float) -> bool:
        self.calls.append(("range", citizen_id))
        self.checked.add(citizen_id)
        return self._world.is_entity_in_range_of_stop(citizen_id, stop_id, transit_range)


def test_next_link_is_read_before_predicates() -> None:
    builder = _train_line()
    ids = [
        _add_waiting(builder, Vector3(1.0, 0.0, 1.0), building=100 + idx, path=TO_D1)
        for idx in range(3)
    ]
    world = _RelinkingWorld(builder.build())
    graph = GraphBuilder(world).generate_graph(1)  # type: ignore[arg-type]

    assert graph.counts() == {2: {100: 1, 101: 1, 102: 1}}
    for citizen_id in ids:
        assert world.calls.index(("next", citizen_id)) < world.calls.index(("range", citizen_id))


def test_explicit_tolerance_overrides_world_tolerance() -> None:
    builder = _train_line()
    _add_waiting(builder, Vector3(3.0, 0.0, 0.0), building=5, path=(Vector3(3.0, 0.0, 0.0), D1))
    world = builder.build()

    assert world.arrival_tolerance == 2.0
    assert GraphBuilder(world).generate_graph(1).counts() == {}
    assert GraphBuilder(world, arrival_tolerance=5.0).generate_graph(1).counts() == {2: {5: 1}}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_chain_length": 0},
        {"max_chain_length": -3},
        {"arrival_tolerance": 0.0},
        {"arrival_tolerance": -1.0},
    ],
)
def test_non_positive_limits_are_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        GraphBuilder(_scenario_world(), **kwargs)
