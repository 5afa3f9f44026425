#!/usr/bin/env python3
"""
Open-Meteo client for current conditions at route stops.

The API key (paid tier) stays server-side; without it the free endpoint is
used with smaller batches. Wind speeds arrive in km/h and are stored in m/s.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from contracts.route_stops import WeatherReading
from shared_utils import env_int

logger = logging.getLogger(__name__)

FREE_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
CUSTOMER_FORECAST_URL = "https://customer-api.open-meteo.com/v1/forecast"

CURRENT_FIELDS = "temperature_2m,weather_code,wind_speed_10m,wind_direction_10m,wind_gusts_10m"

# WMO weather interpretation codes (https://open-meteo.com/en/docs)
WEATHER_CODES: Dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Foggy",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


class WeatherProviderError(RuntimeError):
    """Open-Meteo returned an error status or could not be reached."""


@dataclass
class WeatherLocation:
    lat: float
    lng: float
    index: int

    @classmethod
    def from_dict(cls, data: Any) -> "WeatherLocation":
        if not isinstance(data, dict):
            raise ValueError("Location must be an object")
        try:
            return cls(lat=float(data["lat"]), lng=float(data["lng"]), index=int(data["index"]))
        except (KeyError, TypeError, ValueError, OverflowError):
            raise ValueError("Location requires numeric lat, lng and index") from None


def weather_code_to_condition(code: Optional[int]) -> str:
    if code is None:
        return ""
    return WEATHER_CODES.get(int(code), "Unknown")


def kmh_to_mps(kmh: float) -> float:
    return kmh / 3.6


def reading_from_current(current: Dict[str, Any]) -> WeatherReading:
    gusts = current.get("wind_gusts_10m")
    speed = current.get("wind_speed_10m")
    temperature = current.get("temperature_2m")
    return WeatherReading(
        temperature_c=round(float(temperature), 1) if temperature is not None else None,
        weather_condition=weather_code_to_condition(current.get("weather_code")),
        wind_speed_mps=round(kmh_to_mps(float(speed)), 2) if speed is not None else None,
        wind_direction_deg=current.get("wind_direction_10m"),
        wind_gust_mps=round(kmh_to_mps(float(gusts)), 2) if gusts is not None else None,
    )


class OpenMeteoClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        batch_size: Optional[int] = None,
        timeout_seconds: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = (api_key if api_key is not None else os.getenv("OPEN_METEO_API_KEY", "")).strip()
        self.base_url = CUSTOMER_FORECAST_URL if self.api_key else FREE_FORECAST_URL
        default_batch = 50 if self.api_key else 10
        self.batch_size = max(1, batch_size or env_int("OPEN_METEO_BATCH_SIZE", default_batch))
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _params(self, batch: Sequence[WeatherLocation]) -> Dict[str, str]:
        params = {
            "latitude": ",".join(f"{loc.lat:.4f}" for loc in batch),
            "longitude": ",".join(f"{loc.lng:.4f}" for loc in batch),
            "current": CURRENT_FIELDS,
            "wind_speed_unit": "kmh",
        }
        if self.api_key:
            params["apikey"] = self.api_key
        return params

    def fetch_current(self, locations: Sequence[WeatherLocation]) -> Dict[int, WeatherReading]:
        """Current conditions keyed by each location's ``index``.

        Any failed batch aborts the whole call with ``WeatherProviderError``.
        """
        results: Dict[int, WeatherReading] = {}
        if not locations:
            return results

        logger.info(
            "Fetching weather for %d locations (batch=%d, has_key=%s)",
            len(locations),
            self.batch_size,
            bool(self.api_key),
        )
        for start in range(0, len(locations), self.batch_size):
            batch = list(locations[start:start + self.batch_size])
            payloads = self._fetch_batch(batch)
            for loc, payload in zip(batch, payloads):
                current = payload.get("current") if isinstance(payload, dict) else None
                if current:
                    results[loc.index] = reading_from_current(current)

        logger.info("Weather fetched for %d/%d locations", len(results), len(locations))
        return results

    def _fetch_batch(self, batch: List[WeatherLocation]) -> List[Dict[str, Any]]:
        try:
            response = self.session.get(self.base_url, params=self._params(batch), timeout=self.timeout_seconds)
        except requests.exceptions.RequestException as exc:
            raise WeatherProviderError(f"Open-Meteo request failed: {exc.__class__.__name__}") from exc

        if not response.ok:
            raise WeatherProviderError(f"Open-Meteo returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise WeatherProviderError("Open-Meteo returned invalid JSON") from exc
        return data if isinstance(data, list) else [data]
