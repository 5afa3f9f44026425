#!/usr/bin/env python3
"""
Literal date-prefix replacement over route CSV text.

Example:
    python scripts/05_replace_dates.py --map 2025-12-24=2025-12-06 --map 2025-12-25=2025-12-07 public/test.csv
"""

from __future__ import annotations

import argparse
import sys
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_patchers import replace_date_literals  # noqa: E402


def parse_mapping(pairs: List[str]) -> Dict[str, str]:
    mapping: Dict[str, str] = OrderedDict()
    for pair in pairs:
        old, sep, new = pair.partition("=")
        if not sep or not old:
            raise argparse.ArgumentTypeError(f"Expected OLD=NEW, got {pair!r}")
        mapping[old] = new
    return mapping


def main() -> None:
    parser = argparse.ArgumentParser(description="Replace date literals in route CSVs")
    parser.add_argument("--map", dest="pairs", action="append", required=True, help="OLD=NEW (repeatable, applied in order)")
    parser.add_argument("files", nargs="+", help="Route CSV files to patch")
    args = parser.parse_args()

    try:
        mapping = parse_mapping(args.pairs)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    for name in args.files:
        path = Path(name)
        counts = replace_date_literals(path, mapping)
        print(f"{path.name}:")
        for old, count in counts.items():
            print(f"  {old} -> {mapping[old]}: {count} replacement(s)")


if __name__ == "__main__":
    main()
