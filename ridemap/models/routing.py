# ridemap/models/routing.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from ridemap.models.geo import GeoPoint, MapRegion


class RouteMethod(str, Enum):
    """
    How the current route polyline was obtained.
    """
    STANDARD = "standard"
    LARGE_RADIUS = "large-radius"
    POST_NEGOTIATED = "post-negotiated"
    FALLBACK_SYNTHETIC = "fallback-synthetic"
    NONE = "none"


class RouteErrorCode(str, Enum):
    OUT_OF_REGION = "OutOfRegion"
    SNAP_FAILED = "SnapFailed"
    ALL_STRATEGIES_FAILED = "AllStrategiesFailed"


class RouteError(BaseModel):
    code: RouteErrorCode
    message: str


class RouteStep(BaseModel):
    """
    One turn-by-turn instruction, anchored on the polyline point where it starts.
    """
    index: int
    instruction: str
    distance_m: float
    duration_s: float
    road_type: Optional[int] = None
    road_name: str = "Unnamed road"
    anchor: GeoPoint


class RoutePath(BaseModel):
    """
    A drawable route. Always present: failures degrade to a synthetic
    polyline tagged FALLBACK_SYNTHETIC with an error annotation.
    """
    points: List[GeoPoint]
    method: RouteMethod
    steps: List[RouteStep] = []
    error: Optional[RouteError] = None
    distance_km: float = 0.0
    eta_minutes: int = 1

    @property
    def is_approximate(self) -> bool:
        return self.method == RouteMethod.FALLBACK_SYNTHETIC


class SnappedPoint(BaseModel):
    point: GeoPoint
    snapped: bool
    snap_distance: Optional[float] = None


class SnapResult(BaseModel):
    """
    Output of the road snapper. `points` always mirrors the input order/length.
    """
    success: bool
    points: List[SnappedPoint]
    all_snapped: bool


class RouteRequest(BaseModel):
    """
    Request body for the /route endpoint.
    """
    origin: GeoPoint
    destination: GeoPoint


class RouteResponse(BaseModel):
    """
    Response for the /route endpoint: the resolved path plus the map region
    framing both endpoints.
    """
    route: RoutePath
    region: MapRegion
