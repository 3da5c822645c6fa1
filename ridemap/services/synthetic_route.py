# ridemap/services/synthetic_route.py
"""
Procedural road-like polyline used when no real route can be obtained.

The path follows the straight line from origin to destination, bent by:
- a sine S-curve perpendicular to the bearing,
- a larger "turn" every k-th waypoint (k depends on terrain),
- a slow latitude wave on inland routes,
and is densified between waypoints with smoothstep easing plus a tiny
along-track wobble.

Turn jitter draws from an injectable random.Random; pass a seeded instance
for reproducible output.
"""

import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from ridemap.core.logger import logger
from ridemap.models.geo import GeoPoint
from ridemap.services.distance import planar_bearing_rad

WAYPOINTS_PER_DEGREE = 200
MIN_WAYPOINTS = 5
POINTS_PER_SEGMENT = 25
ELEVATION_AMPLITUDE = 0.0005
MICRO_AMPLITUDE = 0.00005

# Greater Tunis
URBAN_BOX = (36.7, 36.9, 10.1, 10.3)


class TerrainProfile(str, Enum):
    URBAN = "urban"
    COASTAL = "coastal"
    INLAND = "inland"


@dataclass(frozen=True)
class TerrainParams:
    curve_factor: float
    turn_frequency: int
    turn_intensity: float


TERRAIN_PARAMS = {
    # frequent small turns, grid-like streets
    TerrainProfile.URBAN: TerrainParams(0.0008, 3, 0.0005),
    # moderate curves following the coastline
    TerrainProfile.COASTAL: TerrainParams(0.0015, 4, 0.001),
    # larger curves, less frequent turns
    TerrainProfile.INLAND: TerrainParams(0.002, 5, 0.001),
}


def _is_urban(p: GeoPoint) -> bool:
    lat_min, lat_max, lon_min, lon_max = URBAN_BOX
    return lat_min < p.latitude < lat_max and lon_min < p.longitude < lon_max


def _is_coastal(p: GeoPoint) -> bool:
    return p.latitude > 35.0 and p.longitude > 10.0


def classify_terrain(origin: GeoPoint, destination: GeoPoint) -> TerrainProfile:
    if _is_urban(origin) or _is_urban(destination):
        return TerrainProfile.URBAN
    if _is_coastal(origin) or _is_coastal(destination):
        return TerrainProfile.COASTAL
    return TerrainProfile.INLAND


def waypoint_count(origin: GeoPoint, destination: GeoPoint) -> int:
    d = math.hypot(
        destination.latitude - origin.latitude,
        destination.longitude - origin.longitude,
    )
    return max(MIN_WAYPOINTS, math.floor(d * WAYPOINTS_PER_DEGREE))


def generate_waypoints(
    origin: GeoPoint,
    destination: GeoPoint,
    rng: Optional[random.Random] = None,
) -> List[Tuple[float, float]]:
    """
    Perturbed waypoints as (lat, lon) tuples. First and last are the exact
    endpoints.
    """
    rng = rng or random.Random()
    profile = classify_terrain(origin, destination)
    params = TERRAIN_PARAMS[profile]
    bearing = planar_bearing_rad(origin, destination)
    perpendicular = bearing + math.pi / 2
    n = waypoint_count(origin, destination)

    d_lat = destination.latitude - origin.latitude
    d_lon = destination.longitude - origin.longitude

    waypoints: List[Tuple[float, float]] = []
    for i in range(n + 1):
        ratio = i / n
        lat = origin.latitude + d_lat * ratio
        lon = origin.longitude + d_lon * ratio

        if 0 < i < n:
            curve_offset = math.sin(ratio * math.pi * 2) * params.curve_factor
            lat += math.cos(perpendicular) * curve_offset
            lon += math.sin(perpendicular) * curve_offset

            if i % params.turn_frequency == 0:
                turn_offset = (
                    math.sin(ratio * math.pi * (params.turn_frequency * 2))
                    * params.turn_intensity
                )
                turn_bearing = bearing + (rng.random() - 0.5) * math.pi / 2
                lat += math.cos(turn_bearing) * turn_offset
                lon += math.sin(turn_bearing) * turn_offset

            if profile == TerrainProfile.INLAND:
                lat += math.sin(ratio * math.pi * 3) * ELEVATION_AMPLITUDE

        waypoints.append((lat, lon))

    return waypoints


def generate_synthetic_route(
    origin: GeoPoint,
    destination: GeoPoint,
    rng: Optional[random.Random] = None,
) -> List[GeoPoint]:
    """
    Build a plausible road-like polyline from origin to destination.

    Point count is waypoint_count() * POINTS_PER_SEGMENT + 1, so it grows with
    the distance between the endpoints.
    """
    waypoints = generate_waypoints(origin, destination, rng=rng)
    bearing = planar_bearing_rad(origin, destination)
    cos_b, sin_b = math.cos(bearing), math.sin(bearing)

    points: List[GeoPoint] = []
    for i in range(len(waypoints) - 1):
        start_lat, start_lon = waypoints[i]
        end_lat, end_lon = waypoints[i + 1]

        # Segment joins are shared; emit each waypoint once
        first_j = 0 if i == 0 else 1
        for j in range(first_j, POINTS_PER_SEGMENT + 1):
            t = j / POINTS_PER_SEGMENT
            eased = t * t * (3.0 - 2.0 * t)

            lat = start_lat + (end_lat - start_lat) * eased
            lon = start_lon + (end_lon - start_lon) * eased

            if 0 < j < POINTS_PER_SEGMENT:
                micro = math.sin(t * math.pi) * MICRO_AMPLITUDE
                lat += micro * cos_b
                lon += micro * sin_b

            points.append(GeoPoint(latitude=_clamp(lat, 90.0), longitude=_clamp(lon, 180.0)))

    logger.info(
        f"Generated synthetic route ({classify_terrain(origin, destination).value}) "
        f"with {len(points)} points"
    )
    return points


def _clamp(value: float, bound: float) -> float:
    return max(-bound, min(bound, value))
