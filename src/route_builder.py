#!/usr/bin/env python3
"""
Route builder: turns a list of world cities into a timed, ordered route.

Cities are grouped by rounded UTC offset and visited east to west, one hour
per group. Inside a group the route snakes: north to south on even groups,
south to north on odd groups. A sentinel stop (the North Pole) opens the
first group and closes the last one.
"""

from __future__ import annotations

import csv
import logging
from collections import OrderedDict
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from contracts.route_stops import STATE_PROVINCE_COUNTRIES, City, Stop
from shared_utils import as_utc, format_timestamp

logger = logging.getLogger(__name__)

ONE_HOUR_MS = 60 * 60 * 1000

# Midnight Dec 25 in UTC+14.
DEFAULT_MISSION_START = datetime(2025, 12, 24, 10, 0, 0, tzinfo=timezone.utc)

NORTH_POLE = City(
    name="North Pole",
    country="Arctic",
    lat=90.0,
    lng=0.0,
    timezone="UTC",
    utc_offset=0.0,
    population=0,
)


class EmptyRouteError(ValueError):
    """The route builder was given no cities to visit."""


class RouteInputError(ValueError):
    """A city record cannot be placed on the route."""


def rounded_offset(offset: float) -> int:
    """Truncate a fractional UTC offset toward zero (5.5 -> 5, -3.75 -> -3)."""
    return int(offset)


def offset_label(offset: int) -> str:
    return f"UTC{'+' if offset >= 0 else ''}{offset}"


def group_by_rounded_offset(cities: Sequence[City]) -> "OrderedDict[int, List[City]]":
    """Partition cities by rounded offset, east to west (+14 first)."""
    groups: Dict[int, List[City]] = {}
    for city in cities:
        groups.setdefault(rounded_offset(city.utc_offset), []).append(city)
    return OrderedDict((offset, groups[offset]) for offset in sorted(groups, reverse=True))


def snake_order(members: List[City], group_index: int) -> List[City]:
    ordered = sorted(members, key=lambda c: c.lat, reverse=True)
    if group_index % 2 == 1:
        ordered.reverse()
    return ordered


def _zone_for(city: City) -> tzinfo:
    try:
        if not city.timezone:
            raise ValueError("empty timezone")
        return ZoneInfo(city.timezone)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise RouteInputError(f"Unknown timezone '{city.timezone}' for {city.name}, {city.country}") from None


def build_route(
    cities: Sequence[City],
    mission_start: datetime = DEFAULT_MISSION_START,
    origin: City = NORTH_POLE,
) -> List[Stop]:
    """Build the full stop sequence.

    Raises ``EmptyRouteError`` when ``cities`` is empty and
    ``RouteInputError`` when a city's timezone is unknown.
    """
    if not cities:
        raise EmptyRouteError("Cannot build a route from an empty city list")

    groups = group_by_rounded_offset(cities)
    offsets = list(groups.keys())
    first_offset, last_offset = offsets[0], offsets[-1]
    logger.info(
        "Building route for %d cities in %d timezone groups (%s to %s)",
        len(cities),
        len(offsets),
        offset_label(first_offset),
        offset_label(last_offset),
    )

    route: List[Stop] = []
    cursor = as_utc(mission_start)

    for group_index, offset in enumerate(offsets):
        members: List[Optional[City]] = list(snake_order(groups[offset], group_index))
        # None marks the sentinel slots.
        if offset == first_offset:
            members.insert(0, None)
        if offset == last_offset:
            members.append(None)

        ms_per_stop = ONE_HOUR_MS / len(members)
        for member_index, city in enumerate(members):
            utc_time = cursor + timedelta(milliseconds=member_index * ms_per_stop)
            if city is None:
                route.append(_sentinel_stop(origin, offset, utc_time, len(route) + 1))
            else:
                route.append(_city_stop(city, offset, utc_time, len(route) + 1))

        cursor = cursor + timedelta(hours=1)

    logger.info("Route built: %d stops from %s to %s UTC", len(route), route[0].utc_time, route[-1].utc_time)
    return route


def _city_stop(city: City, offset: int, utc_time: datetime, stop_number: int) -> Stop:
    local_time = utc_time.astimezone(_zone_for(city))
    return Stop(
        stop_number=stop_number,
        city=city.name,
        country=city.country,
        state_province=city.state_province,
        lat=city.lat,
        lng=city.lng,
        timezone=city.timezone,
        utc_offset=offset,
        utc_offset_rounded=offset,
        utc_time=format_timestamp(utc_time),
        local_time=format_timestamp(local_time),
        population=city.population,
    )


def _sentinel_stop(origin: City, offset: int, utc_time: datetime, stop_number: int) -> Stop:
    # No real zone at the pole; shift by the group's whole-hour offset.
    local_time = utc_time.astimezone(timezone(timedelta(hours=offset)))
    return Stop(
        stop_number=stop_number,
        city=origin.name,
        country=origin.country,
        state_province=origin.state_province,
        lat=origin.lat,
        lng=origin.lng,
        timezone=offset_label(offset),
        utc_offset=offset,
        utc_offset_rounded=offset,
        utc_time=format_timestamp(utc_time),
        local_time=format_timestamp(local_time),
        population=origin.population,
    )


def load_cities(path: Path) -> List[City]:
    """Read an enriched world-cities CSV into ``City`` records.

    Expects ``city``, ``country``, ``lat``, ``lng``, ``timezone`` and
    ``utc_offset`` columns; ``population`` and ``admin_name`` are optional.
    """
    path = Path(path)
    cities: List[City] = []
    with path.open("r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        missing = [c for c in ("city", "country", "lat", "lng", "timezone", "utc_offset") if c not in (reader.fieldnames or [])]
        if missing:
            raise RouteInputError(f"{path.name} is missing columns: {missing}")
        for line_no, row in enumerate(reader, start=2):
            try:
                cities.append(
                    City(
                        name=row["city"].strip(),
                        country=row["country"].strip(),
                        lat=float(row["lat"]),
                        lng=float(row["lng"]),
                        timezone=row["timezone"].strip(),
                        utc_offset=float(row["utc_offset"]),
                        population=int(float(row.get("population") or 0)),
                        state_province=_state_province(row),
                    )
                )
            except ValueError as exc:
                raise RouteInputError(f"{path.name}:{line_no}: {exc}") from exc
    return cities


def _state_province(row: Dict[str, str]) -> str:
    if (row.get("country") or "").strip() not in STATE_PROVINCE_COUNTRIES:
        return ""
    return (row.get("admin_name") or "").strip()
