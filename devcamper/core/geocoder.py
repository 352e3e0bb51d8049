"""Address lookup against a MapQuest-compatible geocoding endpoint."""

import logging
from dataclasses import dataclass

import requests
from fastapi import Request

from devcamper.core.config import Settings

logger = logging.getLogger(__name__)


class GeocodingError(Exception):
    pass


class LocationNotFoundError(GeocodingError):
    pass


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float
    formatted_address: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""
    country: str = ""


def _format_address(location: dict) -> str:
    parts = [
        location.get("street"),
        location.get("adminArea5"),
        " ".join(part for part in (location.get("adminArea3"), location.get("postalCode")) if part),
        location.get("adminArea1"),
    ]
    return ", ".join(part for part in parts if part)


class Geocoder:
    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.provider_url = settings.geocoder_provider_url
        self.api_key = settings.geocoder_api_key
        self.timeout = settings.geocoder_timeout_seconds
        self.session = session or requests.Session()

    def geocode(self, address: str) -> GeoLocation:
        try:
            resp = self.session.get(
                self.provider_url,
                params={"key": self.api_key, "location": address, "maxResults": 1},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            body = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Geocoding request for %r failed: %s", address, exc)
            raise GeocodingError("Geocoding service unavailable") from exc

        results = body.get("results") or []
        locations = results[0].get("locations") if results else None
        if not locations:
            raise LocationNotFoundError(f"No location found for {address}")

        location = locations[0]
        lat_lng = location.get("latLng") or location.get("displayLatLng") or {}
        if "lat" not in lat_lng or "lng" not in lat_lng:
            raise LocationNotFoundError(f"No coordinates found for {address}")

        return GeoLocation(
            latitude=float(lat_lng["lat"]),
            longitude=float(lat_lng["lng"]),
            formatted_address=_format_address(location),
            street=location.get("street", ""),
            city=location.get("adminArea5", ""),
            state=location.get("adminArea3", ""),
            zipcode=location.get("postalCode", ""),
            country=location.get("adminArea1", ""),
        )


def get_geocoder(request: Request) -> Geocoder:
    return request.app.state.geocoder
