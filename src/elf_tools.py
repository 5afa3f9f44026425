#!/usr/bin/env python3
"""
Function-style flight record tools for the Poppa Elf chat agent.

Every tool returns a JSON-serializable dict. Lookups that find nothing, and
arguments the model got wrong, come back as an ``error`` entry rather than an
exception so the model can recover within the same conversation.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional

from contracts.route_stops import Stop
from flight_queries import KM_TO_MILES, REGION_BOUNDS, FlightLog, resolve_region
from geocoding_client import GeocodingError, PhotonGeocoder

logger = logging.getLogger(__name__)

MAX_LISTED_STOPS = 5

ZONE_ABBREVIATIONS: Dict[str, float] = {
    "UTC": 0, "GMT": 0, "Z": 0,
    "HST": -10, "AKST": -9, "AKDT": -8,
    "PST": -8, "PDT": -7, "MST": -7, "MDT": -6,
    "CST": -6, "CDT": -5, "EST": -5, "EDT": -4,
    "AST": -4, "NST": -3.5,
    "WET": 0, "BST": 1, "CET": 1, "CEST": 2, "EET": 2, "MSK": 3,
    "IST": 5.5, "SGT": 8, "HKT": 8, "JST": 9, "KST": 9,
    "AEST": 10, "AEDT": 11, "NZST": 12, "NZDT": 13,
}

# Place and zone names people use instead of an abbreviation.
ZONE_ALIASES = (
    ("california", "PST"),
    ("pacific", "PST"),
    ("new york", "EST"),
    ("eastern", "EST"),
    ("chicago", "CST"),
    ("central", "CST"),
    ("denver", "MST"),
    ("mountain", "MST"),
)

_CLOCK_RE = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap])?\.?\s*m?\.?$")
_OFFSET_RE = re.compile(r"^(?:utc|gmt)\s*([+-])\s*(\d{1,2})(?::?(\d{2}))?$")


def parse_clock_hour(text: str) -> Optional[int]:
    """Hour of day (0-23) from ``10pm``, ``10:30 PM``, ``22:00``, ``noon`` or ``midnight``."""
    value = " ".join((text or "").strip().lower().split())
    if value == "noon":
        return 12
    if value == "midnight":
        return 0
    match = _CLOCK_RE.match(value)
    if not match:
        return None
    hour = int(match.group(1))
    minutes = int(match.group(2) or 0)
    meridiem = match.group(3)
    if minutes > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem == "p" else 0)
    elif hour > 23:
        return None
    return hour


def parse_zone_offset(text: str) -> Optional[float]:
    """UTC offset in hours for an abbreviation, ``UTC-5`` style offset or alias. Blank means UTC."""
    value = " ".join((text or "").strip().lower().split())
    if not value:
        return 0.0
    for alias, abbreviation in ZONE_ALIASES:
        if alias in value:
            return float(ZONE_ABBREVIATIONS[abbreviation])
    if value.upper() in ZONE_ABBREVIATIONS:
        return float(ZONE_ABBREVIATIONS[value.upper()])
    match = _OFFSET_RE.match(value)
    if not match:
        return None
    hours = int(match.group(2)) + int(match.group(3) or 0) / 60
    if hours > 14:
        return None
    return -hours if match.group(1) == "-" else hours


def local_hour_to_utc(hour: int, offset: float) -> int:
    return math.floor(hour - offset) % 24


def stop_summary(stop: Stop) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "stop_number": stop.stop_number,
        "location": stop.location_label,
        "local_time": stop.local_time,
        "timezone": stop.timezone,
        "utc_time": stop.utc_time,
    }
    if stop.weather.temperature_c is not None:
        summary["temperature_c"] = stop.weather.temperature_c
    if stop.weather.weather_condition:
        summary["weather_condition"] = stop.weather.weather_condition
    return summary


def _listing(stops: List[Stop]) -> Dict[str, Any]:
    return {
        "count": len(stops),
        "stops": [stop_summary(stop) for stop in stops[:MAX_LISTED_STOPS]],
        "truncated": len(stops) > MAX_LISTED_STOPS,
    }


TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": "get_stop_by_number",
            "description": "Details of one stop on Santa's flight by its stop number.",
            "parameters": {
                "type": "object",
                "properties": {
                    "stop_number": {"type": "integer", "description": "Stop number, starting at 1."},
                },
                "required": ["stop_number"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_stops_by_location",
            "description": (
                "Stops matching a city, country or state/province name exactly (case-insensitive). "
                "Use for questions like 'Did Santa visit Paris?'."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "city": {"type": "string"},
                    "country": {"type": "string"},
                    "state_province": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "search_stops_by_region",
            "description": (
                "Stops inside a broad region such as 'west coast', 'New England', 'Europe' or 'Japan'."
            ),
            "parameters": {
                "type": "object",
                "properties": {"region": {"type": "string"}},
                "required": ["region"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_stops_by_time",
            "description": (
                "Where Santa was at a clock time in a given timezone, e.g. '10pm' in 'EST' or "
                "'California'. The time is converted to UTC and matched by UTC hour. "
                "An empty timezone means UTC."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "time": {"type": "string", "description": "e.g. '10pm', '10:00 PM', '22:00'."},
                    "timezone": {"type": "string", "description": "e.g. 'EST', 'UTC-5', 'California', or ''."},
                },
                "required": ["time", "timezone"],
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "calculate_statistics",
            "description": (
                "Total stops, distance and average speed for the whole flight, or for stops "
                "filtered by city, country or state/province."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "city": {"type": "string"},
                    "country": {"type": "string"},
                    "state_province": {"type": "string"},
                },
                "additionalProperties": False,
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "find_nearest_stop",
            "description": (
                "Nearest stop to any place name, including landmarks that are not stops. Tries an "
                "exact city match, then a country match, then geocodes the name."
            ),
            "parameters": {
                "type": "object",
                "properties": {"location_name": {"type": "string"}},
                "required": ["location_name"],
                "additionalProperties": False,
            },
        },
    },
]


class PoppaElfTools:
    """Flight record lookups the chat model can call by name."""

    def __init__(self, log: FlightLog, geocoder: Optional[PhotonGeocoder] = None):
        self.log = log
        self._geocoder = geocoder

    @property
    def geocoder(self) -> PhotonGeocoder:
        if self._geocoder is None:
            self._geocoder = PhotonGeocoder()
        return self._geocoder

    def get_stop_by_number(self, stop_number: int) -> Dict[str, Any]:
        stop = self.log.get_stop(int(stop_number))
        if stop is None:
            return {"error": f"Stop number {stop_number} was not found in the flight records."}
        return {"stop": stop.to_dict(), "location": stop.location_label}

    def search_stops_by_location(
        self, city: str = "", country: str = "", state_province: str = ""
    ) -> Dict[str, Any]:
        city, country, state_province = city or "", country or "", state_province or ""
        if not (city.strip() or country.strip() or state_province.strip()):
            return {"error": "Provide a city, country or state_province to search for."}
        return _listing(self.log.search(city, country, state_province))

    def search_stops_by_region(self, region: str) -> Dict[str, Any]:
        resolved = resolve_region(region or "")
        if resolved is None:
            return {
                "error": f"Region {region!r} is not recognized.",
                "available_regions": sorted(REGION_BOUNDS),
            }
        name, bounds = resolved
        stops = self.log.search_region(bounds)
        payload = _listing(stops)
        payload["region"] = name
        payload["countries"] = sorted({stop.country for stop in stops})
        return payload

    def get_stops_by_time(self, time: str, timezone: str = "") -> Dict[str, Any]:
        hour = parse_clock_hour(time)
        if hour is None:
            return {"error": f"Could not understand the time {time!r}. Try '10pm' or '22:00'."}
        offset = parse_zone_offset(timezone)
        if offset is None:
            return {"error": f"Could not understand the timezone {timezone!r}. Try 'EST', 'UTC-5' or 'California'."}

        utc_hour = local_hour_to_utc(hour, offset)
        stops = self.log.stops_at_utc_hour(utc_hour)

        groups: Dict[str, List[Stop]] = {}
        for stop in stops:
            key = f"{stop.state_province}, {stop.country}" if stop.state_province else stop.country
            groups.setdefault(key, []).append(stop)
        locations = [
            {
                "location": key,
                "local_time": members[0].local_time[11:16],
                "stops": len(members),
                "sample_city": members[0].city,
            }
            for key, members in sorted(groups.items(), key=lambda item: -len(item[1]))
        ]
        return {
            "query_time": time,
            "query_timezone": (timezone or "").strip().upper() or "UTC",
            "utc_hour": utc_hour,
            "count": len(stops),
            "locations": locations,
        }

    def calculate_statistics(
        self, city: str = "", country: str = "", state_province: str = ""
    ) -> Dict[str, Any]:
        city, country, state_province = city or "", country or "", state_province or ""
        filtered = bool(city.strip() or country.strip() or state_province.strip())
        stops = self.log.search(city, country, state_province) if filtered else self.log.stops
        if not stops:
            return {"error": "No stops match those filters in the flight records."}
        payload = FlightLog.statistics(stops).to_dict()
        payload["filters"] = {"city": city, "country": country, "state_province": state_province}
        return payload

    def find_nearest_stop(self, location_name: str) -> Dict[str, Any]:
        name = (location_name or "").strip()
        if not name:
            return {"error": "Provide a location name to search for."}

        by_city = self.log.search(city=name)
        if by_city:
            payload = _listing(by_city)
            payload["match"] = "city"
            return payload
        by_country = self.log.search(country=name)
        if by_country:
            payload = _listing(by_country)
            payload["match"] = "country"
            return payload

        try:
            places = self.geocoder.geocode(name)
        except GeocodingError as exc:
            logger.warning("Geocoding %r failed: %s", name, exc)
            return {"error": f"Could not look up {name!r} right now."}
        if not places:
            return {"error": f"No place matching {name!r} was found."}

        place = places[0]
        nearest = self.log.nearest_stop(place.lat, place.lng)
        if nearest is None:
            return {"error": "No flight data available."}
        stop, distance_km = nearest
        return {
            "match": "nearest",
            "place": {"name": place.name, "lat": place.lat, "lng": place.lng},
            "candidates": len(places),
            "distance_km": round(distance_km, 2),
            "distance_miles": round(distance_km * KM_TO_MILES, 2),
            "stop": stop_summary(stop),
        }

    def handlers(self) -> Dict[str, Callable[..., Dict[str, Any]]]:
        return {
            "get_stop_by_number": self.get_stop_by_number,
            "search_stops_by_location": self.search_stops_by_location,
            "search_stops_by_region": self.search_stops_by_region,
            "get_stops_by_time": self.get_stops_by_time,
            "calculate_statistics": self.calculate_statistics,
            "find_nearest_stop": self.find_nearest_stop,
        }

    def call(self, name: str, arguments: str) -> Dict[str, Any]:
        """Run a tool call by name with its JSON-encoded arguments."""
        handler = self.handlers().get(name)
        if handler is None:
            return {"error": f"Unknown tool {name!r}"}
        try:
            kwargs = json.loads(arguments or "{}")
        except ValueError:
            return {"error": "Tool arguments must be a JSON object"}
        if not isinstance(kwargs, dict):
            return {"error": "Tool arguments must be a JSON object"}
        try:
            result = handler(**kwargs)
        except (TypeError, ValueError) as exc:
            return {"error": f"Bad arguments for {name}: {exc}"}
        logger.info("Tool %s called with %s", name, sorted(kwargs))
        return result
