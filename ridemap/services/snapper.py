# ridemap/services/snapper.py

import time
from typing import Any, List, Sequence

import httpx

from ridemap.core.logger import logger
from ridemap.models.geo import GeoPoint
from ridemap.models.routing import SnappedPoint, SnapResult
from ridemap.services.session import SessionContext


class CoordinateSnapper:
    """
    Pulls raw coordinates onto the nearest routable road via the provider's
    snap endpoint. Never raises: any failure yields success=False with every
    input point passed through unsnapped.
    """

    def __init__(self, context: SessionContext) -> None:
        self.context = context

    @property
    def url(self) -> str:
        s = self.context.settings
        return f"{s.ORS_BASE_URL}/v2/snap/{s.ORS_PROFILE}/json"

    async def snap(self, points: Sequence[GeoPoint], radius_m: int | None = None) -> SnapResult:
        if radius_m is None:
            radius_m = self.context.settings.SNAP_RADIUS_M

        body = {
            "locations": [p.as_lonlat() for p in points],
            "radius": radius_m,
            "id": f"snap_{int(time.time() * 1000)}",
        }

        try:
            response = await self.context.http_client().post(
                self.url,
                json=body,
                headers=self.context.provider_headers(json_body=True),
                timeout=self.context.settings.SNAP_TIMEOUT_S,
            )
        except httpx.HTTPError as exc:
            logger.warning(f"Snapping request failed: {exc!r}")
            return self._unsnapped(points)

        if not response.is_success:
            logger.warning(f"Snapping API error: {response.status_code} {response.text[:200]}")
            return self._unsnapped(points)

        try:
            locations = response.json().get("locations")
        except (ValueError, AttributeError):
            logger.warning("Snapping API returned a malformed body.")
            return self._unsnapped(points)

        if not isinstance(locations, list):
            logger.warning("Snapping API response has no 'locations' list.")
            return self._unsnapped(points)

        snapped = [
            self._parse_location(locations[i] if i < len(locations) else None, p)
            for i, p in enumerate(points)
        ]
        all_snapped = all(sp.snapped for sp in snapped)

        logger.info(
            f"Snapped {sum(sp.snapped for sp in snapped)}/{len(snapped)} coordinates "
            f"(radius={radius_m} m)"
        )
        return SnapResult(success=True, points=snapped, all_snapped=all_snapped)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse_location(item: Any, original: GeoPoint) -> SnappedPoint:
        """
        One entry of the provider's `locations` array; null/unparseable entries
        fall back to the original coordinate.
        """
        if isinstance(item, dict) and item.get("location"):
            try:
                return SnappedPoint(
                    point=GeoPoint.from_lonlat(item["location"]),
                    snapped=True,
                    snap_distance=item.get("snapped_distance"),
                )
            except (ValueError, TypeError, IndexError):
                pass
        return SnappedPoint(point=original, snapped=False, snap_distance=None)

    @staticmethod
    def _unsnapped(points: Sequence[GeoPoint]) -> SnapResult:
        passthrough: List[SnappedPoint] = [
            SnappedPoint(point=p, snapped=False, snap_distance=None) for p in points
        ]
        return SnapResult(success=False, points=passthrough, all_snapped=False)
