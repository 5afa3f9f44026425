#!/usr/bin/env python3
"""
Fetch current weather for every stop of a route CSV and write it back.

Uses OPEN_METEO_API_KEY when set (customer endpoint, larger batches).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from route_csv import read_stops  # noqa: E402
from route_patchers import WeatherUpdate, apply_weather_updates  # noqa: E402
from weather_client import OpenMeteoClient, WeatherLocation  # noqa: E402


def backfill(path: Path, limit: int = 0, client: Optional[OpenMeteoClient] = None) -> int:
    stops = read_stops(path)
    if limit:
        stops = stops[:limit]
    print(f"Fetching weather for {len(stops)} stops in {path.name}...")

    client = client or OpenMeteoClient()
    locations = [WeatherLocation(lat=stop.lat, lng=stop.lng, index=stop.stop_number) for stop in stops]
    readings = client.fetch_current(locations)
    print(f"  Received {len(readings)} readings")

    updates = [WeatherUpdate(stop_number=number, reading=reading) for number, reading in readings.items()]
    updated = apply_weather_updates(path, updates)
    print(f"  Updated {updated} rows")
    return updated


def main() -> None:
    parser = argparse.ArgumentParser(description="Backfill weather columns from Open-Meteo")
    parser.add_argument("file", help="Route CSV to patch")
    parser.add_argument("--limit", type=int, default=0, help="Only the first N stops (0 = all)")
    args = parser.parse_args()

    backfill(Path(args.file), limit=args.limit)


if __name__ == "__main__":
    main()
