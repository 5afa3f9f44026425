#!/usr/bin/env python3
"""
Shift every utc_time/local_time in route CSVs by a number of days.

Not idempotent: each run applies the shift again.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_patchers import shift_dates  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Shift route timestamps by whole days")
    parser.add_argument("--days", type=int, required=True, help="Days to add (negative to go back)")
    parser.add_argument("files", nargs="+", help="Route CSV files to patch")
    args = parser.parse_args()

    for name in args.files:
        path = Path(name)
        count = shift_dates(path, args.days)
        print(f"{path.name}: shifted {count} stops by {args.days} day(s)")


if __name__ == "__main__":
    main()
