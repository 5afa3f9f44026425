#!/usr/bin/env python3
"""
Blank the weather columns of route CSVs so live weather can fill them.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_patchers import strip_weather  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Clear weather columns in route CSVs")
    parser.add_argument("files", nargs="+", help="Route CSV files to patch")
    args = parser.parse_args()

    for name in args.files:
        path = Path(name)
        count = strip_weather(path)
        print(f"{path.name}: cleared weather for {count} stops")


if __name__ == "__main__":
    main()
