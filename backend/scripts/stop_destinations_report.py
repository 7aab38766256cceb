from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from commuter_destinations.graph_builder import GraphBuilder
from commuter_destinations.settings import settings
from commuter_destinations.world_errors import WorldStateError
from commuter_destinations.world_loader import load_world_snapshot


def run_report(args: argparse.Namespace) -> dict[str, Any]:
    snapshot_path = Path(args.snapshot).resolve()
    world = load_world_snapshot(snapshot_path)
    builder = GraphBuilder(world, range_policy=args.range_policy)

    stop_ids = list(args.stop) if args.stop else list(world.stop_ids())
    graphs: list[dict[str, Any]] = []
    for stop_id in stop_ids:
        graph, stats = builder.generate_graph_with_stats(int(stop_id))
        payload = graph.to_payload(origin_stop_id=int(stop_id), transit_range=stats.transit_range)
        graphs.append(
            {
                **payload.model_dump(),
                "cells_scanned": stats.cells_scanned,
                "citizens_visited": stats.citizens_visited,
            }
        )

    report = {
        "snapshot": str(snapshot_path),
        "range_policy": args.range_policy,
        "stop_count": len(graphs),
        "graphs": graphs,
    }
    if args.output:
        output_path = Path(args.output).resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        report["output"] = str(output_path)
    return report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print the destination graph of one or more stops.")
    parser.add_argument("--snapshot", required=True, help="World snapshot JSON file.")
    parser.add_argument("--stop", type=int, action="append", default=None, help="Origin stop id (repeatable).")
    parser.add_argument("--range-policy", choices=("by_mode", "fixed"), default=settings.transit_range_policy)
    parser.add_argument("--output", default=None)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    try:
        payload = run_report(args)
    except WorldStateError as e:
        print(json.dumps({"reason_code": e.reason_code, "message": e.message, "details": e.details}), file=sys.stderr)
        return 2
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
