from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from threading import Lock


@dataclass
class EndpointStats:
    request_count: int = 0
    error_count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0


@dataclass
class StopBuildStats:
    build_count: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    last_qualifying: int = 0


class MetricsStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._created_at = datetime.now(UTC).isoformat()
        self._endpoints: dict[str, EndpointStats] = {}
        self._builds: dict[int, StopBuildStats] = {}

    def record(self, endpoint: str, *, duration_ms: float, error: bool = False) -> None:
        name = endpoint.strip() or "unknown"
        d_ms = max(float(duration_ms), 0.0)

        with self._lock:
            stats = self._endpoints.setdefault(name, EndpointStats())
            stats.request_count += 1
            if error:
                stats.error_count += 1
            stats.total_duration_ms += d_ms
            if d_ms > stats.max_duration_ms:
                stats.max_duration_ms = d_ms

    def record_build(self, origin_stop_id: int, *, duration_ms: float, qualifying: int) -> None:
        d_ms = max(float(duration_ms), 0.0)
        with self._lock:
            stats = self._builds.setdefault(int(origin_stop_id), StopBuildStats())
            stats.build_count += 1
            stats.total_duration_ms += d_ms
            stats.max_duration_ms = max(stats.max_duration_ms, d_ms)
            stats.last_qualifying = max(0, int(qualifying))

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            endpoints: dict[str, dict[str, float | int]] = {}
            total_requests = 0
            total_errors = 0

            for name in sorted(self._endpoints):
                stats = self._endpoints[name]
                total_requests += stats.request_count
                total_errors += stats.error_count
                avg_duration_ms = (
                    stats.total_duration_ms / stats.request_count if stats.request_count else 0.0
                )
                endpoints[name] = {
                    "request_count": stats.request_count,
                    "error_count": stats.error_count,
                    "total_duration_ms": round(stats.total_duration_ms, 3),
                    "avg_duration_ms": round(avg_duration_ms, 3),
                    "max_duration_ms": round(stats.max_duration_ms, 3),
                }

            builds: dict[str, dict[str, float | int]] = {}
            total_builds = 0
            for stop_id in sorted(self._builds):
                build = self._builds[stop_id]
                total_builds += build.build_count
                builds[str(stop_id)] = {
                    "build_count": build.build_count,
                    "avg_duration_ms": round(build.total_duration_ms / build.build_count, 3)
                    if build.build_count
                    else 0.0,
                    "max_duration_ms": round(build.max_duration_ms, 3),
                    "last_qualifying": build.last_qualifying,
                }

            return {
                "created_at": self._created_at,
                "total_requests": total_requests,
                "total_errors": total_errors,
                "endpoint_count": len(endpoints),
                "endpoints": endpoints,
                "total_graph_builds": total_builds,
                "graph_builds": builds,
            }

    def reset(self) -> None:
        with self._lock:
            self._created_at = datetime.now(UTC).isoformat()
            self._endpoints.clear()
            self._builds.clear()


METRICS = MetricsStore()


def record_request(endpoint: str, *, duration_ms: float, error: bool = False) -> None:
    METRICS.record(endpoint, duration_ms=duration_ms, error=error)


def record_graph_build(origin_stop_id: int, *, duration_ms: float, qualifying: int) -> None:
    METRICS.record_build(origin_stop_id, duration_ms=duration_ms, qualifying=qualifying)


def metrics_snapshot() -> dict[str, object]:
    return METRICS.snapshot()


def reset_metrics() -> None:
    METRICS.reset()
