# ridemap/models/geocoding.py

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ridemap.models.geo import GeoPoint


class PlaceResult(BaseModel):
    """
    One geocoding hit. distance_km is None when no reference point was given.
    """
    place_id: str
    display_name: str
    point: GeoPoint
    type: Optional[str] = None
    address: Dict[str, Any] = {}
    distance_km: Optional[float] = None


class GeocodeResponse(BaseModel):
    query: str
    results: List[PlaceResult]
