from __future__ import annotations

import json
import time
from pathlib import Path

from pydantic import ValidationError

from .citizens import CitizenFlags, CitizenInfo
from .geometry import Vector3
from .logging_utils import log_event
from .models import PositionModel, WorldSnapshotFile
from .settings import settings
from .world import WorldSnapshot, WorldSnapshotBuilder
from .world_errors import WorldSnapshotError


def _vector(position: PositionModel) -> Vector3:
    return Vector3(float(position.x), float(position.y), float(position.z))


def _parse_flags(names: list[str], *, citizen_index: int) -> CitizenFlags:
    flags = CitizenFlags.NONE
    for raw in names:
        key = str(raw or "").strip().upper()
        try:
            flags |= CitizenFlags[key]
        except KeyError as e:
            raise WorldSnapshotError(
                reason_code="world_snapshot_invalid",
                message=f"unknown citizen flag '{raw}'",
                details={"citizen_index": citizen_index, "flag": str(raw)},
            ) from e
    return flags


def build_world_snapshot(payload: WorldSnapshotFile, *, source: str = "memory") -> WorldSnapshot:
    tolerance = payload.arrival_tolerance if payload.arrival_tolerance is not None else settings.arrival_tolerance
    builder = WorldSnapshotBuilder(arrival_tolerance=tolerance, source=source)
    for stop in payload.stops:
        builder.add_stop(stop.stop_id, _vector(stop.position), transport_mode=stop.transport_mode)
    for line in payload.lines:
        builder.add_line(
            line.line_id,
            line.transport_mode,
            [(stop.stop_id, _vector(stop.position)) for stop in line.stops],
        )
    infos: dict[tuple[str, str], CitizenInfo] = {}
    for idx, citizen in enumerate(payload.citizens):
        info_key = (citizen.info.name, citizen.info.transport_mode.value)
        info = infos.get(info_key)
        if info is None:
            info = CitizenInfo(name=citizen.info.name, transport_mode=citizen.info.transport_mode)
            infos[info_key] = info
        flags = _parse_flags(citizen.flags, citizen_index=idx)
        try:
            builder.add_citizen(
                _vector(citizen.position),
                info=info,
                flags=flags,
                target_building=citizen.target_building,
                path=[_vector(p) for p in citizen.path],
            )
        except ValueError as e:
            raise WorldSnapshotError(
                reason_code="world_snapshot_invalid",
                message=str(e),
                details={"citizen_index": idx},
            ) from e
    return builder.build()


def load_world_snapshot(path: Path) -> WorldSnapshot:
    started = time.perf_counter()
    if not path.exists():
        raise WorldSnapshotError(
            reason_code="world_snapshot_missing",
            message=f"world snapshot not found: {path}",
            details={"path": str(path)},
        )
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        payload = WorldSnapshotFile.model_validate(raw)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise WorldSnapshotError(
            reason_code="world_snapshot_invalid",
            message=f"world snapshot could not be parsed: {path}",
            details={"path": str(path), "error": str(e)},
        ) from e

    world = build_world_snapshot(payload, source=str(path))
    log_event(
        "world_snapshot_loaded",
        path=str(path),
        version=payload.version,
        stop_count=world.stop_count,
        line_count=world.line_count,
        citizen_count=world.citizen_count,
        duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
    )
    return world
