#!/usr/bin/env python3
"""
Print the flight window (first/last UTC stop time) of a route CSV as JSON.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from flight_queries import FlightLog  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Report the flight window of a route CSV")
    parser.add_argument("file", help="Route CSV")
    parser.add_argument("--output", help="Also write the JSON to this path")
    parser.add_argument("--stats", action="store_true", help="Include distance and speed totals")
    args = parser.parse_args()

    log = FlightLog.load(Path(args.file))
    payload = log.flight_window()
    if args.stats:
        payload["statistics"] = log.statistics(log.stops).to_dict()

    text = json.dumps(payload, indent=2)
    print(text)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text + "\n", encoding="utf-8")


if __name__ == "__main__":
    main()
