#!/usr/bin/env python3
"""
Read-side queries over a published route table.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from contracts.route_stops import Stop
from route_builder import EmptyRouteError
from route_csv import read_stops
from route_patchers import haversine_km
from shared_utils import epoch_millis, parse_timestamp

KM_TO_MILES = 0.621371


@dataclass(frozen=True)
class RegionBounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng


# Rough lat/lng boxes for the regions people ask about by name.
REGION_BOUNDS: Dict[str, RegionBounds] = {
    "west coast": RegionBounds(32.5, 49.0, -125.0, -114.0),
    "east coast": RegionBounds(25.0, 47.5, -82.0, -66.9),
    "midwest": RegionBounds(36.0, 49.5, -104.1, -80.5),
    "pacific northwest": RegionBounds(42.0, 49.0, -125.0, -116.5),
    "new england": RegionBounds(40.9, 47.5, -73.8, -66.9),
    "southwest": RegionBounds(31.3, 37.0, -120.0, -103.0),
    "south": RegionBounds(24.5, 36.6, -106.7, -75.4),
    "hawaii": RegionBounds(18.5, 22.5, -160.5, -154.5),
    "alaska": RegionBounds(51.0, 71.5, -180.0, -129.9),
    "united states": RegionBounds(24.5, 49.5, -125.0, -66.9),
    "canada": RegionBounds(41.7, 83.2, -141.0, -52.6),
    "mexico": RegionBounds(14.5, 32.7, -118.4, -86.7),
    "caribbean": RegionBounds(10.0, 27.0, -85.0, -59.4),
    "north america": RegionBounds(7.0, 84.0, -168.0, -52.0),
    "central america": RegionBounds(7.0, 18.5, -92.3, -77.1),
    "south america": RegionBounds(-56.0, 13.0, -82.0, -34.0),
    "europe": RegionBounds(35.0, 71.5, -25.0, 45.0),
    "scandinavia": RegionBounds(54.5, 71.5, 4.0, 31.6),
    "british isles": RegionBounds(49.8, 61.0, -10.7, 1.8),
    "africa": RegionBounds(-35.0, 37.6, -18.0, 52.0),
    "middle east": RegionBounds(12.0, 42.0, 26.0, 63.0),
    "asia": RegionBounds(-11.0, 77.0, 26.0, 180.0),
    "southeast asia": RegionBounds(-11.0, 28.5, 92.0, 141.0),
    "japan": RegionBounds(24.0, 45.6, 122.9, 146.0),
    "australia": RegionBounds(-44.0, -10.0, 112.0, 154.0),
    "new zealand": RegionBounds(-47.5, -34.0, 166.0, 179.0),
    "oceania": RegionBounds(-50.0, 0.0, 110.0, 180.0),
}


def resolve_region(name: str) -> Optional[Tuple[str, RegionBounds]]:
    """Exact region name first, then the longest name either side contains."""
    key = " ".join(name.strip().lower().split())
    if not key:
        return None
    if key in REGION_BOUNDS:
        return key, REGION_BOUNDS[key]
    partial = [candidate for candidate in REGION_BOUNDS if candidate in key or key in candidate]
    if not partial:
        return None
    best = max(partial, key=len)
    return best, REGION_BOUNDS[best]


def _instant_ms(stop: Stop) -> Optional[int]:
    try:
        return epoch_millis(parse_timestamp(stop.utc_time))
    except ValueError:
        return None


@dataclass
class FlightStatistics:
    total_stops: int
    total_distance_km: Optional[float]
    average_speed_kmh: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_stops": self.total_stops,
            "total_distance_km": self.total_distance_km,
            "total_distance_miles": (
                self.total_distance_km * KM_TO_MILES if self.total_distance_km is not None else None
            ),
            "average_speed_kmh": self.average_speed_kmh,
            "average_speed_mph": (
                self.average_speed_kmh * KM_TO_MILES if self.average_speed_kmh is not None else None
            ),
        }


class FlightLog:
    def __init__(self, stops: List[Stop]):
        self.stops = stops
        self._by_number = {stop.stop_number: stop for stop in stops}

    @classmethod
    def load(cls, path: Path) -> "FlightLog":
        return cls(read_stops(path))

    def get_stop(self, stop_number: int) -> Optional[Stop]:
        return self._by_number.get(stop_number)

    def search(
        self,
        city: Optional[str] = None,
        country: Optional[str] = None,
        state_province: Optional[str] = None,
    ) -> List[Stop]:
        """Case-insensitive exact match on any combination of the filters."""
        city_l = (city or "").strip().lower()
        country_l = (country or "").strip().lower()
        state_l = (state_province or "").strip().lower()

        matches: List[Stop] = []
        for stop in self.stops:
            if city_l and stop.city.lower() != city_l:
                continue
            if country_l and stop.country.lower() != country_l:
                continue
            if state_l and stop.state_province.lower() != state_l:
                continue
            matches.append(stop)
        return matches

    def stops_at_utc_hour(self, hour: int) -> List[Stop]:
        if not 0 <= hour <= 23:
            raise ValueError("hour must be between 0 and 23")
        matches = []
        for stop in self.stops:
            instant = _instant_ms(stop)
            if instant is not None and (instant // 3_600_000) % 24 == hour:
                matches.append(stop)
        return matches

    def search_region(self, bounds: RegionBounds) -> List[Stop]:
        return [stop for stop in self.stops if bounds.contains(stop.lat, stop.lng)]

    def nearest_stop(self, lat: float, lng: float) -> Optional[Tuple[Stop, float]]:
        """Closest stop to a point and its great-circle distance in km."""
        best: Optional[Tuple[Stop, float]] = None
        for stop in self.stops:
            distance = haversine_km(lat, lng, stop.lat, stop.lng)
            if best is None or distance < best[1]:
                best = (stop, distance)
        return best

    @staticmethod
    def statistics(stops: List[Stop]) -> FlightStatistics:
        if len(stops) < 2:
            return FlightStatistics(total_stops=len(stops), total_distance_km=None, average_speed_kmh=None)

        distance_km = 0.0
        elapsed_ms = 0
        for current, following in zip(stops, stops[1:]):
            distance_km += haversine_km(current.lat, current.lng, following.lat, following.lng)
            start, end = _instant_ms(current), _instant_ms(following)
            # Legs touching a stop without a usable time add distance only.
            if start is not None and end is not None and end > start:
                elapsed_ms += end - start

        hours = elapsed_ms / 3_600_000
        speed = distance_km / hours if hours > 0 else None
        return FlightStatistics(total_stops=len(stops), total_distance_km=distance_km, average_speed_kmh=speed)

    def flight_window(self) -> Dict[str, Any]:
        """First and last UTC stop times, as text and epoch millis."""
        if not self.stops:
            raise EmptyRouteError("Route table has no stops")
        first = self.stops[0].utc_time
        last = self.stops[-1].utc_time
        start = parse_timestamp(first)
        end = parse_timestamp(last)
        return {
            "stops": len(self.stops),
            "start": first,
            "end": last,
            "start_ms": epoch_millis(start),
            "end_ms": epoch_millis(end),
            "start_iso": start.isoformat().replace("+00:00", "Z"),
            "end_iso": end.isoformat().replace("+00:00", "Z"),
        }
