# ridemap/models/geo.py

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """
    WGS84 latitude/longitude pair.

    Providers speak [lon, lat]; use as_lonlat() / from_lonlat() at the wire.
    """
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    def as_lonlat(self) -> List[float]:
        return [self.longitude, self.latitude]

    @classmethod
    def from_lonlat(cls, pair: Sequence[float]) -> "GeoPoint":
        return cls(latitude=float(pair[1]), longitude=float(pair[0]))


class SignalQuality(str, Enum):
    NOMINAL = "nominal"
    DEGRADED = "degraded"
    POOR = "poor"
    UNKNOWN = "unknown"


class PositionFix(BaseModel):
    """
    One device position reading. Immutable; replaced by the next fix.
    """
    model_config = ConfigDict(frozen=True)

    point: GeoPoint
    accuracy_m: Optional[float] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MapRegion(BaseModel):
    """
    Visible map area: center plus span in degrees on each axis.
    """
    model_config = ConfigDict(frozen=True)

    center: GeoPoint
    latitude_delta: float = Field(gt=0.0)
    longitude_delta: float = Field(gt=0.0)

    def scaled(self, factor: float) -> "MapRegion":
        return MapRegion(
            center=self.center,
            latitude_delta=self.latitude_delta * factor,
            longitude_delta=self.longitude_delta * factor,
        )
