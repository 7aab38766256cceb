from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .transport import TransportMode, parse_transport_mode


class PositionModel(BaseModel):
    x: float
    y: float = 0.0
    z: float

    @field_validator("x", "y", "z")
    @classmethod
    def finite(cls, v: float) -> float:
        if v != v or v in (float("inf"), float("-inf")):
            raise ValueError("coordinate must be finite")
        return v


class _ModeField(BaseModel):
    transport_mode: TransportMode = TransportMode.NONE

    @field_validator("transport_mode", mode="before")
    @classmethod
    def accept_mode_aliases(cls, value: object) -> TransportMode:
        return parse_transport_mode(value)


class SnapshotStop(_ModeField):
    stop_id: int = Field(..., ge=1)
    position: PositionModel


class SnapshotLineStop(BaseModel):
    stop_id: int = Field(..., ge=1)
    position: PositionModel


class SnapshotLine(_ModeField):
    line_id: int = Field(..., ge=1)
    stops: list[SnapshotLineStop] = Field(default_factory=list)


class SnapshotCitizenInfo(_ModeField):
    name: str = "resident"


class SnapshotCitizen(BaseModel):
    position: PositionModel
    info: SnapshotCitizenInfo = Field(default_factory=SnapshotCitizenInfo)
    flags: list[str] = Field(default_factory=lambda: ["created"])
    target_building: int = Field(default=0, ge=0)
    path: list[PositionModel] = Field(default_factory=list)


class WorldSnapshotFile(BaseModel):
    version: str = "unknown"
    arrival_tolerance: float | None = Field(default=None, gt=0.0)
    stops: list[SnapshotStop] = Field(default_factory=list)
    lines: list[SnapshotLine] = Field(default_factory=list)
    citizens: list[SnapshotCitizen] = Field(default_factory=list)


class JourneyPayload(BaseModel):
    building_id: int
    count: int = Field(..., ge=1)


class DestinationStopPayload(BaseModel):
    stop_id: int
    total_journeys: int = Field(..., ge=1)
    journeys: list[JourneyPayload]


class DestinationGraphResponse(BaseModel):
    origin_stop_id: int
    transit_range: float
    total_journeys: int = Field(..., ge=0)
    stops: list[DestinationStopPayload]


class WorldStatusResponse(BaseModel):
    loaded: bool
    source: str | None = None
    stop_count: int = 0
    line_count: int = 0
    citizen_count: int = 0
    transit_range_policy: str
