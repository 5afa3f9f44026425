#!/usr/bin/env python3
"""
In-place patchers for published route CSV files.

Every patcher follows the same shape: load the file as a raw ``RouteTable``,
overwrite a few fields, write the whole file back with the header unchanged.
Untouched fields keep their original text, quotes included.

``shift_dates`` is not idempotent: running it twice with the same delta
shifts the route by twice the delta.
"""

from __future__ import annotations

import csv
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from contracts.route_stops import STATE_PROVINCE_COUNTRIES, WeatherReading
from route_csv import WEATHER_COLUMNS, RouteFileError, RouteTable, quote, split_csv_line, unquote
from shared_utils import TIMESTAMP_FORMAT, format_number

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
TIME_COLUMNS = ("utc_time", "local_time")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


# ---------------------------------------------------------------------------
# Date patchers
# ---------------------------------------------------------------------------

def shift_timestamp(raw: str, days: int) -> str:
    """Shift one raw timestamp field, keeping its quotes if it had any."""
    value = unquote(raw)
    if not value:
        return raw
    shifted = (datetime.strptime(value, TIMESTAMP_FORMAT) + timedelta(days=days)).strftime(TIMESTAMP_FORMAT)
    return quote(shifted) if raw.strip().startswith('"') else shifted


def shift_dates(path: Path, days: int) -> int:
    """Move every ``utc_time``/``local_time`` by ``days``; returns rows touched."""
    table = RouteTable.load(path)
    for row in table.rows:
        for column in TIME_COLUMNS:
            idx = table.column(column)
            if idx < len(row):
                row[idx] = shift_timestamp(row[idx], days)
    table.save(path)
    logger.info("Shifted dates by %d day(s) for %d stops in %s", days, len(table.rows), Path(path).name)
    return len(table.rows)


def replace_date_literals(path: Path, mapping: Mapping[str, str]) -> Dict[str, int]:
    """Literal substring replacement over the whole file.

    Replacements run in mapping order, so a later pattern can match text an
    earlier one produced. Returns the number of replacements per pattern.
    """
    path = Path(path)
    if not path.exists():
        raise RouteFileError(f"Route file not found: {path}")
    content = path.read_text(encoding="utf-8")
    counts: Dict[str, int] = {}
    for old, new in mapping.items():
        if not old:
            raise ValueError("Date literal to replace must not be empty")
        counts[old] = content.count(old)
        content = content.replace(old, new)
    path.write_text(content, encoding="utf-8")
    return counts


def copy_times(target: Path, reference: Path) -> Tuple[int, int]:
    """Copy utc/local times from ``reference`` into ``target`` by stop number.

    Returns ``(fixed, not_found)``.
    """
    ref_table = RouteTable.load(reference)
    times: Dict[int, Tuple[str, str]] = {}
    for row in ref_table.rows:
        stop_number = ref_table.stop_number(row)
        if stop_number is None:
            continue
        times[stop_number] = (ref_table.get(row, "utc_time"), ref_table.get(row, "local_time"))

    table = RouteTable.load(target)
    fixed = 0
    not_found = 0
    for row in table.rows:
        stop_number = table.stop_number(row)
        match = times.get(stop_number) if stop_number is not None else None
        if match is None:
            not_found += 1
            continue
        table.set(row, "utc_time", match[0])
        table.set(row, "local_time", match[1])
        fixed += 1
    table.save(target)
    return fixed, not_found


# ---------------------------------------------------------------------------
# Weather patchers
# ---------------------------------------------------------------------------

@dataclass
class WeatherUpdate:
    stop_number: int
    reading: WeatherReading

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "WeatherUpdate":
        if not isinstance(data, Mapping):
            raise ValueError("Weather update must be an object")
        raw_number = data.get("stop_number")
        if isinstance(raw_number, bool) or not isinstance(raw_number, (int, float, str)):
            raise ValueError("Weather update requires a numeric stop_number")
        try:
            stop_number = int(raw_number)
        except (ValueError, OverflowError):
            raise ValueError(f"Invalid stop_number: {raw_number!r}") from None
        return cls(stop_number=stop_number, reading=WeatherReading.from_dict(dict(data)))


def render_weather_fields(reading: WeatherReading) -> List[str]:
    condition = " ".join(reading.weather_condition.split())
    return [
        format_number(reading.temperature_c),
        quote(condition) if condition else "",
        format_number(reading.wind_speed_mps),
        format_number(reading.wind_direction_deg),
        format_number(reading.wind_gust_mps),
    ]


def apply_weather_updates(path: Path, updates: Iterable[WeatherUpdate]) -> int:
    """Write the five weather columns for matching stops; returns rows updated."""
    by_stop = {update.stop_number: update.reading for update in updates}
    table = RouteTable.load(path)
    updated = 0
    for row in table.rows:
        stop_number = table.stop_number(row)
        reading = by_stop.get(stop_number) if stop_number is not None else None
        if reading is None:
            continue
        for column, raw in zip(WEATHER_COLUMNS, render_weather_fields(reading)):
            table.set(row, column, raw)
        updated += 1
    table.save(path)
    logger.info("Weather updated for %d stops in %s", updated, Path(path).name)
    return updated


def strip_weather(path: Path) -> int:
    """Blank the weather columns, leaving them ready for live fetching."""
    table = RouteTable.load(path)
    for row in table.rows:
        for column in WEATHER_COLUMNS:
            table.set(row, column, "")
    table.save(path)
    return len(table.rows)


# ---------------------------------------------------------------------------
# State/province column
# ---------------------------------------------------------------------------

@dataclass
class StateProvinceStats:
    matched: Dict[str, int] = field(default_factory=dict)
    unmatched: Dict[str, int] = field(default_factory=dict)
    other_countries: int = 0
    unmatched_samples: List[str] = field(default_factory=list)


def build_state_lookup(world_cities: Path) -> Dict[str, List[Tuple[float, float, str]]]:
    """Index US/Canada cities as ``"city|country" -> [(lat, lng, admin_name)]``."""
    lookup: Dict[str, List[Tuple[float, float, str]]] = {}
    with Path(world_cities).open("r", encoding="utf-8", newline="") as handle:
        for row in csv.DictReader(handle):
            country = (row.get("country") or "").strip()
            if country not in STATE_PROVINCE_COUNTRIES:
                continue
            try:
                lat = float(row.get("lat") or 0)
                lng = float(row.get("lng") or 0)
            except ValueError:
                lat, lng = 0.0, 0.0
            key = f"{(row.get('city') or '').strip().lower()}|{country}"
            lookup.setdefault(key, []).append((lat, lng, (row.get("admin_name") or "").strip()))
    return lookup


def _closest_admin(candidates: Sequence[Tuple[float, float, str]], lat: float, lng: float) -> str:
    return min(candidates, key=lambda c: haversine_km(lat, lng, c[0], c[1]))[2]


def add_state_province(path: Path, lookup: Mapping[str, Sequence[Tuple[float, float, str]]]) -> StateProvinceStats:
    """Insert a ``state_province`` column after ``country``.

    Only United States and Canada rows are filled. With several same-name
    candidates the one nearest to the stop's coordinates wins.
    """
    table = RouteTable.load(path)
    if table.has_column("state_province"):
        raise RouteFileError(f"{Path(path).name} already has a state_province column")

    country_idx = table.column("country")
    stats = StateProvinceStats()
    new_rows: List[List[str]] = []
    for row in table.rows:
        city = table.get(row, "city")
        country = table.get(row, "country")
        state = ""
        if country in STATE_PROVINCE_COUNTRIES:
            candidates = lookup.get(f"{city.lower()}|{country}")
            if candidates:
                try:
                    lat = float(table.get(row, "lat"))
                    lng = float(table.get(row, "lng"))
                except ValueError:
                    lat, lng = 0.0, 0.0
                state = _closest_admin(candidates, lat, lng)
                stats.matched[country] = stats.matched.get(country, 0) + 1
            else:
                stats.unmatched[country] = stats.unmatched.get(country, 0) + 1
                if len(stats.unmatched_samples) < 30:
                    stats.unmatched_samples.append(f"{country}: {city}")
        else:
            stats.other_countries += 1

        fields = list(row)
        fields[1:country_idx + 1] = [quote(unquote(value)) if unquote(value) else "" for value in fields[1:country_idx + 1]]
        fields.insert(country_idx + 1, quote(state) if state else "")
        new_rows.append(fields)

    header = split_csv_line(table.header_line)
    header.insert(country_idx + 1, "state_province")
    RouteTable(",".join(header), new_rows).save(path)
    return stats


# ---------------------------------------------------------------------------
# Offset enrichment
# ---------------------------------------------------------------------------

def utc_offset_hours(zone_name: str, reference: datetime) -> float:
    """UTC offset in hours of ``zone_name`` at local wall time ``reference``."""
    if not zone_name:
        raise ValueError("empty timezone")
    zone = ZoneInfo(zone_name)
    offset = reference.replace(tzinfo=zone).utcoffset()
    return offset.total_seconds() / 3600 if offset is not None else 0.0


def enrich_utc_offsets(rows: Iterable[Dict[str, str]], reference: datetime) -> Tuple[List[Dict[str, str]], int]:
    """Fill ``utc_offset`` from each row's ``timezone`` at ``reference``.

    Unknown or empty zones fall back to ``UTC`` with offset 0. Returns the
    enriched rows and the number of fallbacks.
    """
    enriched: List[Dict[str, str]] = []
    fallbacks = 0
    for row in rows:
        item = dict(row)
        zone_name = (item.get("timezone") or "").strip()
        try:
            offset = utc_offset_hours(zone_name, reference)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            fallbacks += 1
            zone_name, offset = "UTC", 0.0
        item["timezone"] = zone_name
        item["utc_offset"] = format_number(offset)
        enriched.append(item)
    return enriched, fallbacks
