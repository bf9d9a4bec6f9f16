"""Requester location resolution with a fallback chain."""

from __future__ import annotations

import asyncio
import logging

from src.config import settings
from src.errors import SearchCancelledError
from src.models.search import LocationSource, SearchQuery, UserLocation
from src.services.clients.geolocation_client import LocationProvider
from src.services.search.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def default_location() -> UserLocation:
    return UserLocation(lat=settings.DEFAULT_LATITUDE, lng=settings.DEFAULT_LONGITUDE)


class LocationResolver:
    """Request coordinates, then profile, then device lookup, then a default.

    Every lookup is bounded by ``timeout`` seconds and any failure falls
    through to the next source, so resolution never fails a search.
    """

    def __init__(
        self,
        *,
        profile: LocationProvider | None = None,
        device: LocationProvider | None = None,
        timeout: float | None = None,
        fallback: UserLocation | None = None,
    ) -> None:
        self._profile = profile
        self._device = device
        self._timeout = timeout if timeout is not None else settings.GEOLOCATION_TIMEOUT_SECONDS
        self._fallback = fallback or default_location()

    async def resolve(
        self,
        query: SearchQuery,
        token: CancellationToken | None = None,
    ) -> tuple[UserLocation, LocationSource]:
        token = token or CancellationToken()
        if query.user_location is not None:
            return query.user_location, "request"

        if self._profile is not None and query.user_id:
            location = await self._lookup(self._profile, query.user_id, token, "profile")
            if location is not None:
                return location, "profile"

        if self._device is not None:
            location = await self._lookup(self._device, query.user_id, token, "device")
            if location is not None:
                return location, "device"

        logger.info("Using default search location")
        return self._fallback, "default"

    async def aclose(self) -> None:
        for provider in (self._profile, self._device):
            if provider is not None:
                await provider.aclose()

    async def _lookup(
        self,
        provider: LocationProvider,
        user_id: str | None,
        token: CancellationToken,
        source: str,
    ) -> UserLocation | None:
        try:
            return await token.run(
                asyncio.wait_for(provider.get_user_coordinates(user_id), self._timeout)
            )
        except SearchCancelledError:
            raise
        except asyncio.TimeoutError:
            logger.warning("%s location lookup timed out after %.1fs", source, self._timeout)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("%s location lookup failed: %s", source, exc)
        return None
