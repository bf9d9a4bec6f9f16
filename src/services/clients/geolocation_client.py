"""Requester location providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx
from pydantic import ValidationError

from src.config import settings
from src.errors import UpstreamUnavailableError
from src.models.search import UserLocation
from src.services.search.geo import haversine_km

logger = logging.getLogger(__name__)


def coerce_location(payload: Any) -> UserLocation | None:
    """Read coordinates from the shapes returned by profile and IP lookups."""

    if not isinstance(payload, dict):
        return None
    if isinstance(payload.get("location"), dict):
        payload = payload["location"]

    coordinates = payload.get("coordinates")
    if isinstance(coordinates, list) and len(coordinates) >= 2:
        lat, lng = coordinates[1], coordinates[0]
    else:
        lat = payload.get("lat", payload.get("latitude"))
        lng = payload.get("lng", payload.get("longitude"))
    if lat is None or lng is None:
        return None
    try:
        return UserLocation(lat=lat, lng=lng)
    except ValidationError:
        logger.debug("Ignoring out-of-range coordinates: %s, %s", lat, lng)
        return None


def calculate_distance_between(origin: UserLocation, target: UserLocation) -> float:
    """Distance in kilometres between two requester-style locations."""

    return haversine_km((origin.lat, origin.lng), (target.lat, target.lng))


class LocationProvider(ABC):
    """Abstract source of requester coordinates."""

    @abstractmethod
    async def get_user_coordinates(self, user_id: str | None = None) -> UserLocation | None:
        """Return coordinates for the requester or None when unknown."""

    async def aclose(self) -> None:
        """Release any connections held by the provider."""


class _HttpLocationProvider(LocationProvider):
    def __init__(
        self,
        *,
        url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("Location provider URL is required")
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _fetch(self, url: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"Location lookup failed: {exc}") from exc
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


class ProfileLocationProvider(_HttpLocationProvider):
    """Coordinates stored on the requester's marketplace profile."""

    async def get_user_coordinates(self, user_id: str | None = None) -> UserLocation | None:
        if not user_id:
            return None
        payload = await self._fetch(
            f"{self._url.rstrip('/')}/profile/location",
            params={"userId": user_id},
        )
        return coerce_location(payload)


class IpGeolocationProvider(_HttpLocationProvider):
    """Approximate device location derived from the caller's IP address."""

    async def get_user_coordinates(self, user_id: str | None = None) -> UserLocation | None:
        return coerce_location(await self._fetch(self._url))


def create_profile_provider() -> LocationProvider | None:
    if not settings.PROFILE_API_URL:
        return None
    return ProfileLocationProvider(
        url=settings.PROFILE_API_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def create_device_provider() -> LocationProvider | None:
    if not settings.IP_GEOLOCATION_URL:
        return None
    return IpGeolocationProvider(
        url=settings.IP_GEOLOCATION_URL,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
