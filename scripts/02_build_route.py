#!/usr/bin/env python3
"""
Build the timed route table from an enriched world-cities CSV.

North Pole -> every city, east to west by rounded timezone -> North Pole.
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_builder import (  # noqa: E402
    DEFAULT_MISSION_START,
    ONE_HOUR_MS,
    build_route,
    group_by_rounded_offset,
    load_cities,
    offset_label,
)
from route_csv import write_stops  # noqa: E402


def parse_mission_start(raw: str) -> datetime:
    value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def build(input_path: Path, output_path: Path, mission_start: datetime, include_state: bool) -> None:
    cities = load_cities(input_path)
    print(f"Total cities: {len(cities)}")
    route = build_route(cities, mission_start)

    groups = group_by_rounded_offset(cities)
    offsets = list(groups.keys())
    print(f"Found {len(offsets)} timezone groups ({offset_label(offsets[0])} to {offset_label(offsets[-1])})")
    for offset in offsets:
        count = len(groups[offset]) + (offset == offsets[0]) + (offset == offsets[-1])
        print(f"  {offset_label(offset)}: {count} stops ({ONE_HOUR_MS / count / 1000:.2f}s each)")

    write_stops(output_path, route, include_state=include_state)

    print(f"Total stops: {len(route)}")
    print(f"  First stop: {route[0].city} at {route[0].utc_time} UTC")
    print(f"  Last stop: {route[-1].city} at {route[-1].utc_time} UTC")
    print(f"  Output: {output_path}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate the timed route CSV")
    parser.add_argument("--input", default="public/worldcities-enriched.csv", help="Enriched cities CSV")
    parser.add_argument("--output", default="public/2025_santa_tracker.csv", help="Route CSV output")
    parser.add_argument(
        "--mission-start",
        default=DEFAULT_MISSION_START.isoformat(),
        help="Mission start instant (ISO 8601, UTC if no offset)",
    )
    parser.add_argument("--no-state", action="store_true", help="Omit the state_province column")
    args = parser.parse_args()

    build(Path(args.input), Path(args.output), parse_mission_start(args.mission_start), not args.no_state)


if __name__ == "__main__":
    main()
