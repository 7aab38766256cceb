from __future__ import annotations

from commuter_destinations.world_errors import (
    FROZEN_REASON_CODES,
    InvalidStopError,
    WorldSnapshotError,
    WorldStateError,
    normalize_reason_code,
)


def test_invalid_stop_error_carries_stop_id() -> None:
    err = InvalidStopError(12, details={"source": "pytest"})
    assert isinstance(err, WorldStateError)
    assert isinstance(err, ValueError)
    assert err.reason_code == "stop_unresolved"
    assert err.stop_id == 12
    assert str(err) == "stop 12 does not resolve to a position"
    assert err.details == {"stop_id": 12, "source": "pytest"}


def test_world_snapshot_error_string_and_details() -> None:
    err = WorldSnapshotError(
        reason_code="world_snapshot_missing",
        message="world snapshot not found",
        details={"path": "out/world.json"},
    )
    assert str(err) == "world snapshot not found"
    assert err.details is not None
    assert err.details["path"].endswith("world.json")


def test_reason_code_normalization() -> None:
    assert "stop_unresolved" in FROZEN_REASON_CODES
    assert "world_snapshot_invalid" in FROZEN_REASON_CODES
    assert normalize_reason_code("stop_unresolved") == "stop_unresolved"
    assert normalize_reason_code(" world_not_loaded ") == "world_not_loaded"
    assert normalize_reason_code("unknown_reason") == "world_state_unavailable"
    assert normalize_reason_code("", default="world_snapshot_missing") == "world_snapshot_missing"
