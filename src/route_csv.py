#!/usr/bin/env python3
"""
Route CSV format.

Two views of the same file:

- ``RouteTable`` keeps every field as raw text (quotes included) so patchers
  can overwrite a few columns and write the file back without touching the
  rest of the line.
- ``read_stops`` / ``write_stops`` map rows to typed ``Stop`` records.

Column positions are resolved from the header, so files with or without the
optional ``state_province`` column are both accepted.
"""

from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from contracts.route_stops import Stop, WeatherReading
from shared_utils import format_number, parse_optional_float, parse_optional_int

logger = logging.getLogger(__name__)

ROUTE_COLUMNS = [
    "stop_number",
    "city",
    "country",
    "state_province",
    "lat",
    "lng",
    "timezone",
    "utc_offset",
    "utc_offset_rounded",
    "utc_time",
    "local_time",
    "population",
    "temperature_c",
    "weather_condition",
    "wind_speed_mps",
    "wind_direction_deg",
    "wind_gust_mps",
]

WEATHER_COLUMNS = ROUTE_COLUMNS[-5:]

REQUIRED_COLUMNS = [
    "stop_number",
    "city",
    "country",
    "lat",
    "lng",
    "timezone",
    "utc_offset",
    "utc_offset_rounded",
    "utc_time",
    "local_time",
]


class RouteFileError(ValueError):
    """A route file is missing, empty or lacks a required column."""


def split_csv_line(line: str) -> List[str]:
    """Split one CSV line on commas outside double quotes.

    Fields keep their quote characters so they can be re-joined verbatim.
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    for char in line:
        if char == '"':
            in_quotes = not in_quotes
            current.append(char)
        elif char == "," and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    fields.append("".join(current))
    return fields


def unquote(raw: str) -> str:
    value = raw.strip()
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1].replace('""', '"')
    return value


def quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


class RouteTable:
    """Raw, line-oriented view of a route CSV file."""

    def __init__(self, header_line: str, rows: List[List[str]]):
        self.header_line = header_line
        self.header = [unquote(name) for name in split_csv_line(header_line)]
        self.rows = rows

    @classmethod
    def parse(cls, text: str) -> "RouteTable":
        lines = text.replace("\r\n", "\n").split("\n")
        if not lines or not lines[0].strip():
            raise RouteFileError("Route file has no header line")
        rows = [split_csv_line(line.strip()) for line in lines[1:] if line.strip()]
        return cls(lines[0].rstrip("\r"), rows)

    @classmethod
    def load(cls, path: Path) -> "RouteTable":
        path = Path(path)
        if not path.exists():
            raise RouteFileError(f"Route file not found: {path}")
        return cls.parse(path.read_text(encoding="utf-8"))

    def render(self) -> str:
        lines = [self.header_line] + [",".join(row) for row in self.rows]
        return "\n".join(lines) + "\n"

    def save(self, path: Path) -> None:
        Path(path).write_text(self.render(), encoding="utf-8")

    def has_column(self, name: str) -> bool:
        return name in self.header

    def column(self, name: str) -> int:
        try:
            return self.header.index(name)
        except ValueError:
            raise RouteFileError(f"Route file has no '{name}' column") from None

    def get(self, row: List[str], name: str) -> str:
        idx = self.column(name)
        return unquote(row[idx]) if idx < len(row) else ""

    def set(self, row: List[str], name: str, raw: str) -> None:
        """Overwrite one field with already-rendered text."""
        idx = self.column(name)
        if idx >= len(row):
            row.extend([""] * (idx + 1 - len(row)))
        row[idx] = raw

    def stop_number(self, row: List[str]) -> Optional[int]:
        try:
            return int(self.get(row, "stop_number"))
        except ValueError:
            return None


# ---------------------------------------------------------------------------
# Typed read/write
# ---------------------------------------------------------------------------

def stop_to_row(stop: Stop, columns: List[str]) -> List[str]:
    values: Dict[str, str] = {
        "stop_number": str(stop.stop_number),
        "city": stop.city,
        "country": stop.country,
        "state_province": stop.state_province,
        "lat": format_number(stop.lat),
        "lng": format_number(stop.lng),
        "timezone": stop.timezone,
        "utc_offset": format_number(stop.utc_offset),
        "utc_offset_rounded": str(stop.utc_offset_rounded),
        "utc_time": stop.utc_time,
        "local_time": stop.local_time,
        "population": str(stop.population),
        "temperature_c": format_number(stop.weather.temperature_c),
        "weather_condition": stop.weather.weather_condition,
        "wind_speed_mps": format_number(stop.weather.wind_speed_mps),
        "wind_direction_deg": format_number(stop.weather.wind_direction_deg),
        "wind_gust_mps": format_number(stop.weather.wind_gust_mps),
    }
    return [values[column] for column in columns]


def row_to_stop(row: Dict[str, str]) -> Stop:
    weather = WeatherReading(
        temperature_c=parse_optional_float(row.get("temperature_c", "")),
        weather_condition=(row.get("weather_condition") or "").strip(),
        wind_speed_mps=parse_optional_float(row.get("wind_speed_mps", "")),
        wind_direction_deg=parse_optional_float(row.get("wind_direction_deg", "")),
        wind_gust_mps=parse_optional_float(row.get("wind_gust_mps", "")),
    )
    return Stop(
        stop_number=int(row["stop_number"]),
        city=row.get("city") or "Unknown",
        country=row.get("country") or "Unknown",
        state_province=(row.get("state_province") or "").strip(),
        lat=float(row["lat"]),
        lng=float(row["lng"]),
        timezone=row.get("timezone") or "",
        utc_offset=float(row.get("utc_offset") or 0),
        utc_offset_rounded=parse_optional_int(row.get("utc_offset_rounded", "")) or 0,
        utc_time=row.get("utc_time") or "",
        local_time=row.get("local_time") or "",
        population=parse_optional_int(row.get("population", "")) or 0,
        weather=weather,
    )


def parse_stops(text: str) -> List[Stop]:
    reader = csv.DictReader(io.StringIO(text))
    fieldnames = reader.fieldnames or []
    missing = [column for column in REQUIRED_COLUMNS if column not in fieldnames]
    if missing:
        raise RouteFileError(f"Route file is missing columns: {missing}")

    stops: List[Stop] = []
    skipped = 0
    for row in reader:
        try:
            stops.append(row_to_stop(row))
        except (KeyError, TypeError, ValueError):
            skipped += 1
    if skipped:
        logger.warning("Skipped %d malformed route rows", skipped)
    return stops


def read_stops(path: Path) -> List[Stop]:
    path = Path(path)
    if not path.exists():
        raise RouteFileError(f"Route file not found: {path}")
    return parse_stops(path.read_text(encoding="utf-8"))


def render_stops(stops: Iterable[Stop], include_state: bool = True) -> str:
    columns = ROUTE_COLUMNS if include_state else [c for c in ROUTE_COLUMNS if c != "state_province"]
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(columns)
    for stop in stops:
        writer.writerow(stop_to_row(stop, columns))
    return buffer.getvalue()


def write_stops(path: Path, stops: Iterable[Stop], include_state: bool = True) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_stops(stops, include_state=include_state), encoding="utf-8")
