from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .graph_builder import GraphBuilder
from .logging_utils import log_event
from .metrics_store import metrics_snapshot, record_request
from .models import DestinationGraphResponse, WorldStatusResponse
from .settings import settings
from .world import WorldSnapshot
from .world_errors import InvalidStopError, WorldSnapshotError
from .world_loader import load_world_snapshot


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.world = None
    snapshot_path = settings.world_snapshot_path.strip()
    if snapshot_path:
        try:
            app.state.world = load_world_snapshot(Path(snapshot_path))
        except WorldSnapshotError as e:
            log_event(
                "world_snapshot_failed",
                level=logging.ERROR,
                reason_code=e.reason_code,
                error_message=e.message,
                details=e.details,
            )
    yield
    app.state.world = None


app = FastAPI(title="Commuter Destination Graph", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def world_state(request: Request) -> WorldSnapshot:
    world: WorldSnapshot | None = getattr(request.app.state, "world", None)  # type: ignore[attr-defined]
    if world is None:
        raise HTTPException(status_code=503, detail="world snapshot not loaded")
    return world


WorldDep = Annotated[WorldSnapshot, Depends(world_state)]


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/world/status", response_model=WorldStatusResponse)
async def world_status(request: Request) -> WorldStatusResponse:
    world: WorldSnapshot | None = getattr(request.app.state, "world", None)  # type: ignore[attr-defined]
    if world is None:
        return WorldStatusResponse(loaded=False, transit_range_policy=settings.transit_range_policy)
    return WorldStatusResponse(
        loaded=True,
        source=world.source,
        stop_count=world.stop_count,
        line_count=world.line_count,
        citizen_count=world.citizen_count,
        transit_range_policy=settings.transit_range_policy,
    )


@app.get("/stops/{stop_id}/destinations", response_model=DestinationGraphResponse)
def stop_destinations(stop_id: int, world: WorldDep) -> DestinationGraphResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()
    builder = GraphBuilder(world)

    try:
        graph, stats = builder.generate_graph_with_stats(stop_id)
    except InvalidStopError as e:
        record_request("stop_destinations", duration_ms=(time.perf_counter() - t0) * 1000, error=True)
        raise HTTPException(status_code=404, detail=str(e)) from e

    duration_ms = round((time.perf_counter() - t0) * 1000, 2)
    record_request("stop_destinations", duration_ms=duration_ms)
    log_event(
        "stop_destinations_request",
        request_id=request_id,
        origin_stop_id=stop_id,
        destination_count=len(graph),
        total_journeys=graph.total_journeys,
        duration_ms=duration_ms,
    )
    return graph.to_payload(origin_stop_id=stop_id, transit_range=stats.transit_range)


@app.get("/metrics")
async def metrics() -> dict[str, object]:
    return metrics_snapshot()
