"""
Location text -> coordinates.

The service only depends on the `Geocoder` protocol; `CityTableGeocoder`
is the built-in implementation backed by a fixed table of US cities.
"""

from typing import Protocol

from pydantic import BaseModel

from voluntapp.observability import get_logger

log = get_logger(__name__)


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class Geocoder(Protocol):
    def geocode(self, location_text: str) -> Coordinates | None: ...


_CITIES: dict[str, tuple[float, float]] = {
    "san francisco, ca": (37.7749, -122.4194),
    "new york, ny": (40.7128, -74.0060),
    "los angeles, ca": (34.0522, -118.2437),
    "chicago, il": (41.8781, -87.6298),
    "houston, tx": (29.7604, -95.3698),
    "austin, tx": (30.2672, -97.7431),
    "seattle, wa": (47.6062, -122.3321),
    "boston, ma": (42.3601, -71.0589),
    "denver, co": (39.7392, -104.9903),
    "portland, or": (45.5152, -122.6784),
}


class CityTableGeocoder:
    def __init__(self, table: dict[str, tuple[float, float]] | None = None) -> None:
        self._table: dict[str, tuple[float, float]] = {}
        for key, coords in (table or _CITIES).items():
            self._table[key] = coords
            # "san francisco, ca" is also reachable as "san francisco"
            city = key.split(",", 1)[0].strip()
            self._table.setdefault(city, coords)

    def geocode(self, location_text: str) -> Coordinates | None:
        coords = self._table.get(location_text.strip().lower())
        if coords is None:
            return None
        return Coordinates(latitude=coords[0], longitude=coords[1])


def geocode_or_none(geocoder: Geocoder, location_text: str | None) -> Coordinates | None:
    """
    Geocoding is a soft dependency: failures leave coordinates unset
    instead of aborting the caller's write.
    """
    if not location_text or not location_text.strip():
        return None
    try:
        return geocoder.geocode(location_text)
    except Exception:
        log.warning("geocode_failed", location=location_text, exc_info=True)
        return None
