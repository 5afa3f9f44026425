#!/usr/bin/env python3
"""
Photon geocoder for place names that are not route stops.

Photon (komoot) is open and needs no API key. Results come back as GeoJSON
features with ``[lon, lat]`` coordinates, most relevant first.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

PHOTON_URL = "https://photon.komoot.io/api/"


class GeocodingError(RuntimeError):
    """Photon returned an error status or could not be reached."""


@dataclass
class Place:
    name: str
    lat: float
    lng: float
    kind: str = "unknown"


def place_from_feature(feature: Dict[str, Any], fallback_name: str) -> Optional[Place]:
    """Convert one GeoJSON feature; features without usable coordinates yield ``None``."""
    if not isinstance(feature, dict):
        return None
    geometry = feature.get("geometry") or {}
    properties = feature.get("properties") or {}
    coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not isinstance(coordinates, list) or len(coordinates) < 2:
        return None
    try:
        lng, lat = float(coordinates[0]), float(coordinates[1])
    except (TypeError, ValueError):
        return None
    if not isinstance(properties, dict):
        properties = {}
    return Place(
        name=str(properties.get("name") or fallback_name),
        lat=lat,
        lng=lng,
        kind=str(properties.get("type") or "unknown"),
    )


class PhotonGeocoder:
    def __init__(
        self,
        base_url: Optional[str] = None,
        limit: int = 10,
        timeout_seconds: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or os.getenv("PHOTON_URL", "") or PHOTON_URL).strip()
        self.limit = max(1, limit)
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def geocode(self, query: str) -> List[Place]:
        """Candidate places for ``query``, best match first."""
        query = query.strip()
        if not query:
            return []

        try:
            response = self.session.get(
                self.base_url,
                params={"q": query, "limit": str(self.limit)},
                headers={"Accept": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as exc:
            raise GeocodingError(f"Photon request failed: {exc.__class__.__name__}") from exc

        if not response.ok:
            raise GeocodingError(f"Photon returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GeocodingError("Photon returned invalid JSON") from exc

        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list):
            return []
        places = [place for place in (place_from_feature(f, query) for f in features) if place is not None]
        logger.info("Geocoded %r to %d candidates", query, len(places))
        return places
