#!/usr/bin/env python3
"""Replay recorded Signal K deltas through the position filter.

Reads one delta per line (JSON), filters ``navigation.position`` updates
and prints one line per decision followed by the final counters.  Useful
for tuning ``maxSpeedKnots`` and the exclusion zones against a recorded
track without a live server.

Usage
-----
    python scripts/replay_deltas.py track.jsonl
    python scripts/replay_deltas.py --max-speed 40 --target n2k.177 track.jsonl
    python scripts/replay_deltas.py --options plugin-config.json track.jsonl
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from gpsfilter import FilterConfig, GpsFilterConfigError, PositionFilter  # noqa: E402
from gpsfilter.ingestion.delta import extract_position_updates  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Replay recorded Signal K deltas through the GPS speed filter.",
    )
    parser.add_argument("deltas", type=Path, help="JSON-lines file with one Signal K delta per line.")
    parser.add_argument(
        "--options",
        type=Path,
        default=None,
        help="JSON file with plugin-style options (targetSource, maxSpeedKnots, ...).",
    )
    parser.add_argument("--target", action="append", default=None, help="Source id to filter (repeatable).")
    parser.add_argument("--max-speed", type=float, default=None, help="Maximum speed in knots.")
    parser.add_argument("--timeout", type=float, default=None, help="Timeout override in seconds.")
    parser.add_argument("--history", type=int, default=None, help="History size (2-100).")
    parser.add_argument("--no-zones", action="store_true", help="Disable the invalid coordinate filter.")
    parser.add_argument("--verbose", action="store_true", help="Log every decision at DEBUG.")
    parser.add_argument("--rejected-only", action="store_true", help="Only print rejected positions.")
    return parser.parse_args()


def _build_options(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    if args.options is not None:
        loaded = json.loads(args.options.read_text(encoding="utf-8"))
        if not isinstance(loaded, dict):
            raise SystemExit(f"{args.options} must contain a JSON object")
        options.update(loaded)
    if args.target:
        options["targetSource"] = args.target[0] if len(args.target) == 1 else args.target
    if args.max_speed is not None:
        options["maxSpeedKnots"] = args.max_speed
    if args.timeout is not None:
        options["timeoutSeconds"] = args.timeout
    if args.history is not None:
        options["historySize"] = args.history
    if args.no_zones:
        options["enableInvalidCoordinateFilter"] = False
    if args.verbose:
        options["enableLogging"] = True
    return options


def _format_speed(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f}kn"


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = FilterConfig.from_options(_build_options(args))
    except GpsFilterConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    engine = PositionFilter(config)
    line_no = 0
    with args.deltas.open(encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                delta = json.loads(line)
            except json.JSONDecodeError:
                print(f"{line_no:>6}  skipped: not JSON", file=sys.stderr)
                continue
            if not isinstance(delta, dict):
                continue
            for update in extract_position_updates(delta):
                coordinates = update.coordinates
                decision = engine.submit(
                    update.source_id,
                    coordinates["latitude"],
                    coordinates["longitude"],
                    update.timestamp,
                )
                if decision is None or (args.rejected_only and decision.accepted):
                    continue
                verdict = "ALLOW" if decision.accepted else "DROP "
                print(
                    f"{line_no:>6}  {verdict}  {update.source_id or '-':<20} "
                    f"{coordinates['latitude']!s:>12} {coordinates['longitude']!s:>13}  "
                    f"{decision.reason.value:<22} {_format_speed(decision.computed_speed_knots)}"
                )

    stats = engine.stats
    print(
        f"\nlines={line_no} received={stats.received_count} allowed={stats.allowed_count} "
        f"dropped={stats.dropped_count} malformed={stats.malformed_count} history={len(engine.history)}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
