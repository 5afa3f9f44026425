#!/usr/bin/env python3
"""
Contracts for route tables: source cities, timed stops and weather readings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Countries whose stops carry a state/province label.
STATE_PROVINCE_COUNTRIES = ("United States", "Canada")


@dataclass(frozen=True)
class City:
    name: str
    country: str
    lat: float
    lng: float
    timezone: str
    utc_offset: float
    population: int = 0
    state_province: str = ""


@dataclass
class WeatherReading:
    temperature_c: Optional[float] = None
    weather_condition: str = ""
    wind_speed_mps: Optional[float] = None
    wind_direction_deg: Optional[float] = None
    wind_gust_mps: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WeatherReading":
        """Build a reading from request or CSV values; bad values raise ``ValueError``."""

        def _num(key: str) -> Optional[float]:
            value = data.get(key)
            if value is None or value == "":
                return None
            if isinstance(value, bool):
                raise ValueError(f"{key} must be a number")
            try:
                return float(value)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be a number") from None

        condition = data.get("weather_condition")
        if condition is None:
            condition = ""
        if not isinstance(condition, str):
            raise ValueError("weather_condition must be a string")
        # Each route row is one physical line.
        if any(char in condition for char in "\r\n"):
            raise ValueError("weather_condition must not contain line breaks")

        return cls(
            temperature_c=_num("temperature_c"),
            weather_condition=condition.strip(),
            wind_speed_mps=_num("wind_speed_mps"),
            wind_direction_deg=_num("wind_direction_deg"),
            wind_gust_mps=_num("wind_gust_mps"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature_c": self.temperature_c,
            "weather_condition": self.weather_condition,
            "wind_speed_mps": self.wind_speed_mps,
            "wind_direction_deg": self.wind_direction_deg,
            "wind_gust_mps": self.wind_gust_mps,
        }

    def is_empty(self) -> bool:
        return (
            self.temperature_c is None
            and not self.weather_condition
            and self.wind_speed_mps is None
            and self.wind_direction_deg is None
            and self.wind_gust_mps is None
        )


@dataclass
class Stop:
    """One row of a route table.

    ``utc_time`` and ``local_time`` hold the serialized ``YYYY-MM-DD HH:MM:SS``
    form so a stop read back from CSV compares equal to the one written.
    """

    stop_number: int
    city: str
    country: str
    lat: float
    lng: float
    timezone: str
    utc_offset: float
    utc_offset_rounded: int
    utc_time: str
    local_time: str
    population: int = 0
    state_province: str = ""
    weather: WeatherReading = field(default_factory=WeatherReading)

    @property
    def location_label(self) -> str:
        if self.state_province:
            return f"{self.city}, {self.state_province}, {self.country}"
        return f"{self.city}, {self.country}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "stop_number": self.stop_number,
            "city": self.city,
            "country": self.country,
            "state_province": self.state_province or None,
            "lat": self.lat,
            "lng": self.lng,
            "timezone": self.timezone,
            "utc_offset": self.utc_offset,
            "utc_offset_rounded": self.utc_offset_rounded,
            "utc_time": self.utc_time,
            "local_time": self.local_time,
            "population": self.population,
        }
        payload.update(self.weather.to_dict())
        return payload
