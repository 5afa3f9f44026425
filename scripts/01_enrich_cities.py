#!/usr/bin/env python3
"""
Fill the utc_offset column of a world-cities CSV from each row's IANA zone.

The offset is taken at local midnight on the mission date (Dec 25), so any
daylight-saving rule in effect on that day is applied.
"""

from __future__ import annotations

import argparse
import csv
import sys
from datetime import datetime
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_patchers import enrich_utc_offsets  # noqa: E402


def enrich_cities(input_path: Path, output_path: Path, year: int) -> None:
    with input_path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        fieldnames = list(reader.fieldnames or [])
        rows = list(reader)

    if "timezone" not in fieldnames:
        raise ValueError(f"{input_path} has no 'timezone' column")
    if "utc_offset" not in fieldnames:
        fieldnames.append("utc_offset")

    print(f"Processing {len(rows)} cities...")
    enriched, fallbacks = enrich_utc_offsets(rows, datetime(year, 12, 25))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames, lineterminator="\n")
        writer.writeheader()
        writer.writerows(enriched)

    print("Done")
    print(f"  Output: {output_path}")
    print(f"  Cities processed: {len(enriched)}")
    print(f"  Fallback to UTC: {fallbacks}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Add Dec 25 UTC offsets to a world-cities CSV")
    parser.add_argument("--input", default="public/worldcities.csv", help="Cities CSV with a timezone column")
    parser.add_argument("--output", default="public/worldcities-enriched.csv", help="Enriched CSV output")
    parser.add_argument("--year", type=int, default=2025, help="Mission year")
    args = parser.parse_args()

    enrich_cities(Path(args.input), Path(args.output), args.year)


if __name__ == "__main__":
    main()
