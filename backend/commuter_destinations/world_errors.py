from __future__ import annotations

from dataclasses import dataclass
from typing import Any

FROZEN_REASON_CODES: frozenset[str] = frozenset(
    {
        "stop_unresolved",
        "world_not_loaded",
        "world_snapshot_missing",
        "world_snapshot_invalid",
        "world_state_unavailable",
    }
)


@dataclass
class WorldStateError(ValueError):
    reason_code: str
    message: str
    details: dict[str, Any] | None = None

    def __str__(self) -> str:
        return self.message


class InvalidStopError(WorldStateError):
    """Raised when a stop id does not resolve to a stop position."""

    def __init__(self, stop_id: int, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            reason_code="stop_unresolved",
            message=f"stop {stop_id} does not resolve to a position",
            details={"stop_id": int(stop_id), **(details or {})},
        )
        self.stop_id = int(stop_id)


class WorldSnapshotError(WorldStateError):
    pass


def normalize_reason_code(reason_code: str, *, default: str = "world_state_unavailable") -> str:
    code = str(reason_code or "").strip()
    if code in FROZEN_REASON_CODES:
        return code
    return default
