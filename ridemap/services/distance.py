# ridemap/services/distance.py

import math

from ridemap.core.config import Settings
from ridemap.models.geo import GeoPoint, MapRegion

EARTH_RADIUS_KM = 6371.0

# Bounding region framing rider + destination
REGION_PADDING = 1.8
REGION_MIN_DELTA = 0.015


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """
    Great-circle distance between two points (Haversine), in kilometres.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def eta_minutes(distance_km: float, avg_speed_kmh: float = 30.0) -> int:
    """
    Travel time estimate at a constant average speed, never below one minute.
    """
    if avg_speed_kmh <= 0:
        raise ValueError("Average speed must be positive.")
    # halves round up
    return max(1, math.floor(distance_km / avg_speed_kmh * 60 + 0.5))


def planar_bearing_rad(a: GeoPoint, b: GeoPoint) -> float:
    """
    Bearing in degree space, measured from the latitude axis towards longitude.

    (cos(bearing), sin(bearing)) is the unit step in (lat, lon).
    """
    return math.atan2(b.longitude - a.longitude, b.latitude - a.latitude)


def in_region(point: GeoPoint, settings: Settings) -> bool:
    """
    True when the point lies inside the configured service region.
    """
    lat, lon = point.latitude, point.longitude
    if math.isnan(lat) or math.isnan(lon):
        return False
    return (
        settings.REGION_MIN_LAT <= lat <= settings.REGION_MAX_LAT
        and settings.REGION_MIN_LON <= lon <= settings.REGION_MAX_LON
    )


def bounding_region(
    a: GeoPoint,
    b: GeoPoint,
    padding: float = REGION_PADDING,
    min_delta: float = REGION_MIN_DELTA,
) -> MapRegion:
    """
    Region centred on the midpoint of a and b, padded, with a floor on each span
    so that short hops do not over-zoom.
    """
    min_lat, max_lat = sorted((a.latitude, b.latitude))
    min_lon, max_lon = sorted((a.longitude, b.longitude))

    return MapRegion(
        center=GeoPoint(
            latitude=(min_lat + max_lat) / 2.0,
            longitude=(min_lon + max_lon) / 2.0,
        ),
        latitude_delta=max((max_lat - min_lat) * padding, min_delta),
        longitude_delta=max((max_lon - min_lon) * padding, min_delta),
    )
