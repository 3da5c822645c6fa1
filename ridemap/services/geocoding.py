# ridemap/services/geocoding.py

from typing import List, Optional

import httpx

from ridemap.core.errors import GeocodingError
from ridemap.core.logger import logger
from ridemap.models.geo import GeoPoint
from ridemap.models.geocoding import PlaceResult
from ridemap.services.distance import distance_km
from ridemap.services.session import SessionContext

MIN_QUERY_LENGTH = 3
RESULT_LIMIT = 10
# Half-width of the proximity viewbox (~50 km)
VIEWBOX_DELTA = 0.5


class GeocodingClient:
    """
    Destination search against a Nominatim-compatible endpoint, biased to and
    sorted by proximity to the rider when a reference point is known.
    """

    def __init__(self, context: SessionContext) -> None:
        self.context = context

    async def search(self, query: str, near: Optional[GeoPoint] = None) -> List[PlaceResult]:
        query = query.strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        params = {
            "format": "json",
            "q": query,
            "limit": RESULT_LIMIT,
            "addressdetails": 1,
            "extratags": 1,
        }
        if near is not None:
            lat, lon = near.latitude, near.longitude
            params["viewbox"] = (
                f"{lon - VIEWBOX_DELTA},{lat + VIEWBOX_DELTA},"
                f"{lon + VIEWBOX_DELTA},{lat - VIEWBOX_DELTA}"
            )
            params["bounded"] = 1

        try:
            response = await self.context.http_client().get(
                f"{self.context.settings.NOMINATIM_URL}/search",
                params=params,
                headers={
                    "Accept-Language": "en",
                    "User-Agent": self.context.settings.USER_AGENT,
                },
                timeout=self.context.settings.API_TIMEOUT_S,
            )
            response.raise_for_status()
            items = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(f"Geocoding error for {query!r}: {exc!r}")
            raise GeocodingError("Unable to search for locations. Please try again.") from exc

        results: List[PlaceResult] = []
        for item in items if isinstance(items, list) else []:
            try:
                point = GeoPoint(latitude=float(item["lat"]), longitude=float(item["lon"]))
            except (KeyError, TypeError, ValueError):
                continue
            results.append(
                PlaceResult(
                    place_id=str(item.get("place_id", "")),
                    display_name=item.get("display_name", ""),
                    point=point,
                    type=item.get("type"),
                    address=item.get("address") or {},
                    distance_km=distance_km(near, point) if near is not None else None,
                )
            )

        if near is not None:
            results.sort(key=lambda r: r.distance_km)

        logger.info(f"Geocoding {query!r}: {len(results)} results")
        return results
