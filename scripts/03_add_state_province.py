#!/usr/bin/env python3
"""
Add a state_province column to a published route CSV.

Only United States and Canada stops are filled, from the admin_name column
of the world-cities dataset.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_patchers import add_state_province, build_state_lookup  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Insert state_province after country in route CSVs")
    parser.add_argument("--world-cities", default="public/worldcities.csv", help="World cities CSV with admin_name")
    parser.add_argument("files", nargs="+", help="Route CSV files to patch")
    args = parser.parse_args()

    print("Loading world cities data...")
    lookup = build_state_lookup(Path(args.world_cities))
    print(f"Loaded {len(lookup)} US/Canada city entries")

    for name in args.files:
        path = Path(name)
        print(f"\nProcessing {path}...")
        stats = add_state_province(path, lookup)
        for country, count in stats.matched.items():
            print(f"  {country}: {count} matched, {stats.unmatched.get(country, 0)} unmatched")
        print(f"  Other countries: {stats.other_countries}")
        if stats.unmatched_samples:
            print("  Sample unmatched:")
            for sample in stats.unmatched_samples[:10]:
                print(f"    {sample}")

    print("\nDone")


if __name__ == "__main__":
    main()
