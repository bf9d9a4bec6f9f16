"""Great-circle distance helpers used for proximity ranking."""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0

# (max distance in km, bonus) ordered from nearest band outwards
PROXIMITY_BANDS: tuple[tuple[float, float], ...] = (
    (5.0, 200.0),
    (10.0, 150.0),
    (25.0, 100.0),
    (50.0, 50.0),
)


def haversine_km(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Distance in kilometres between two (lat, lng) points."""

    lat1, lng1 = origin
    lat2, lng2 = target
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def proximity_bonus(distance_km: float | None) -> float:
    if distance_km is None:
        return 0.0
    for limit, bonus in PROXIMITY_BANDS:
        if distance_km <= limit:
            return bonus
    return 0.0


def format_distance(distance_km: float | None) -> str:
    if distance_km is None:
        return "Distance unknown"
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m away"
    return f"{distance_km:.1f}km away"
