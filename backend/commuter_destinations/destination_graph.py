from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

from .models import DestinationGraphResponse, DestinationStopPayload, JourneyPayload


class DestinationGraphStop:
    """Journey counts per target building for one destination stop."""

    __slots__ = ("stop_id", "_journeys")

    def __init__(self, stop_id: int) -> None:
        self.stop_id = int(stop_id)
        self._journeys: dict[int, int] = {}

    def add_journey(self, building_id: int) -> None:
        key = int(building_id)
        self._journeys[key] = self._journeys.get(key, 0) + 1

    @property
    def journeys(self) -> Mapping[int, int]:
        return MappingProxyType(self._journeys)

    @property
    def total_journeys(self) -> int:
        return sum(self._journeys.values())

    def __repr__(self) -> str:
        return f"DestinationGraphStop(stop_id={self.stop_id}, journeys={self._journeys!r})"


class DestinationGraph:
    """Immutable result of one graph build.

    Stops keep the order in which they were first discovered; callers should not
    rely on it.
    """

    __slots__ = ("_stops", "_by_id")

    def __init__(self, stops: Iterable[DestinationGraphStop] = ()) -> None:
        self._stops = tuple(stops)
        self._by_id = {stop.stop_id: stop for stop in self._stops}

    @property
    def stops(self) -> tuple[DestinationGraphStop, ...]:
        return self._stops

    def __iter__(self) -> Iterator[DestinationGraphStop]:
        return iter(self._stops)

    def __len__(self) -> int:
        return len(self._stops)

    def get(self, stop_id: int) -> DestinationGraphStop | None:
        return self._by_id.get(int(stop_id))

    @property
    def total_journeys(self) -> int:
        return sum(stop.total_journeys for stop in self._stops)

    def counts(self) -> dict[int, dict[int, int]]:
        return {stop.stop_id: dict(stop.journeys) for stop in self._stops}

    def to_payload(self, *, origin_stop_id: int, transit_range: float) -> DestinationGraphResponse:
        stops = [
            DestinationStopPayload(
                stop_id=stop.stop_id,
                total_journeys=stop.total_journeys,
                journeys=[
                    JourneyPayload(building_id=building_id, count=count)
                    for building_id, count in sorted(stop.journeys.items())
                ],
            )
            for stop in self._stops
        ]
        return DestinationGraphResponse(
            origin_stop_id=int(origin_stop_id),
            transit_range=float(transit_range),
            total_journeys=self.total_journeys,
            stops=stops,
        )
