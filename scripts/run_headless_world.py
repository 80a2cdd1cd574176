#!/usr/bin/env python3
"""Run the starter world headlessly and report tick latency and agent outcomes."""

from __future__ import annotations

import argparse
import json
import logging
import math
import statistics
import sys
import time
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def percentile(values: list[float], q: float) -> float:
    if not values:
        return 0.0
    points = sorted(values)
    if len(points) == 1:
        return points[0]
    pos = max(0.0, min(1.0, q)) * (len(points) - 1)
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return points[low]
    frac = pos - low
    return points[low] * (1.0 - frac) + points[high] * frac


def summarize_latencies(values: list[float]) -> dict[str, Any]:
    if not values:
        return {"count": 0, "mean_ms": 0.0, "p50_ms": 0.0, "p95_ms": 0.0, "max_ms": 0.0}
    return {
        "count": len(values),
        "mean_ms": round(statistics.fmean(values), 3),
        "p50_ms": round(percentile(values, 0.5), 3),
        "p95_ms": round(percentile(values, 0.95), 3),
        "max_ms": round(max(values), 3),
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the starter world without the API")
    parser.add_argument("--seconds", type=float, default=60.0, help="Simulated seconds to run")
    parser.add_argument("--dt", type=float, default=0.1, help="Tick length in seconds")
    parser.add_argument("--seed", type=int, default=7, help="World RNG seed")
    parser.add_argument(
        "--no-planner",
        action="store_true",
        help="Run without a planner so every agent uses the fallback policy",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Sleep between ticks so planner calls can resolve in wall-clock time",
    )
    parser.add_argument("--output", default="", help="Optional JSON output path")
    parser.add_argument("--verbose", action="store_true", help="Keep agent/world logs enabled")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    from packages.wildgrove_core.llm.planner import PlannerClient
    from packages.wildgrove_core.sim.config import load_agent_config
    from packages.wildgrove_core.sim.starter import build_starter_world

    planner = None if args.no_planner else PlannerClient()
    world = build_starter_world(planner=planner, config=load_agent_config(), seed=args.seed)

    tick_latencies: list[float] = []
    steps = max(1, int(round(args.seconds / args.dt)))
    try:
        for _ in range(steps):
            started = time.perf_counter()
            world.tick(args.dt)
            tick_latencies.append((time.perf_counter() - started) * 1000.0)
            if args.realtime:
                time.sleep(args.dt)
    finally:
        world.close()
        if planner is not None:
            planner.close()

    kinds: dict[str, int] = {}
    for entry in world.journal.entries:
        kinds[entry.kind] = kinds.get(entry.kind, 0) + 1

    report = {
        "seconds": args.seconds,
        "dt": args.dt,
        "ticks": world.ticks,
        "clock_ms": world.clock_ms,
        "tick_latency": summarize_latencies(tick_latencies),
        "event_kinds": kinds,
        "agents": [agent.as_dict() for agent in world.agents.values()],
        "planner": planner.status() if planner is not None else None,
    }
    text = json.dumps(report, indent=2)
    if args.output:
        out_path = Path(args.output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        print(f"Wrote {out_path}")
    else:
        print(text)


if __name__ == "__main__":
    main()
