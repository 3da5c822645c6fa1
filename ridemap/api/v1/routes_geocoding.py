# ridemap/api/v1/routes_geocoding.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ridemap.api.v1.dependencies import get_geocoding_client
from ridemap.core.errors import GeocodingError
from ridemap.models.geo import GeoPoint
from ridemap.models.geocoding import GeocodeResponse
from ridemap.services.geocoding import GeocodingClient

router = APIRouter(
    prefix="/geocode",
    tags=["geocoding"],
)


@router.get("/", response_model=GeocodeResponse, summary="Search for a destination")
async def search_places(
    q: str = Query(..., description="Free-text place query"),
    lat: Optional[float] = Query(None, ge=-90.0, le=90.0),
    lon: Optional[float] = Query(None, ge=-180.0, le=180.0),
    client: GeocodingClient = Depends(get_geocoding_client),
) -> GeocodeResponse:
    near = GeoPoint(latitude=lat, longitude=lon) if lat is not None and lon is not None else None
    try:
        results = await client.search(q, near=near)
    except GeocodingError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return GeocodeResponse(query=q, results=results)
