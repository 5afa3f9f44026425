#!/usr/bin/env python3
"""
Copy utc_time/local_time from a reference route CSV into another, by stop number.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_patchers import copy_times  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Fix route timestamps from a reference file")
    parser.add_argument("--reference", required=True, help="Route CSV with correct times")
    parser.add_argument("target", help="Route CSV to fix")
    args = parser.parse_args()

    fixed, not_found = copy_times(Path(args.target), Path(args.reference))
    print(f"Fixed {fixed} rows")
    print(f"Not found in reference: {not_found}")


if __name__ == "__main__":
    main()
