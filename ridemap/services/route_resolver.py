# ridemap/services/route_resolver.py

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ridemap.core.logger import logger
from ridemap.models.geo import GeoPoint
from ridemap.models.routing import (
    RouteError,
    RouteErrorCode,
    RouteMethod,
    RoutePath,
    RouteStep,
)
from ridemap.services.distance import distance_km, eta_minutes, in_region
from ridemap.services.session import SessionContext
from ridemap.services.snapper import CoordinateSnapper
from ridemap.services.synthetic_route import generate_synthetic_route

SyntheticGenerator = Callable[[GeoPoint, GeoPoint], List[GeoPoint]]


class StrategyFailed(Exception):
    """One routing strategy produced no usable route."""


@dataclass(frozen=True)
class RouteStrategy:
    """
    One request shape tried against the directions endpoint.
    """
    method: RouteMethod
    http_method: str = "GET"
    wide_radius: bool = False

    def build_request(
        self,
        context: SessionContext,
        start: GeoPoint,
        end: GeoPoint,
    ) -> Tuple[str, Dict[str, Any]]:
        s = context.settings
        base = f"{s.ORS_BASE_URL}/v2/directions/{s.ORS_PROFILE}"
        radius = s.ROUTE_SEARCH_RADIUS_M

        if self.http_method == "POST":
            body: Dict[str, Any] = {
                "coordinates": [start.as_lonlat(), end.as_lonlat()],
                "instructions": True,
                "geometry": True,
            }
            if self.wide_radius:
                body["radiuses"] = [radius, radius]
            return f"{base}/geojson", {
                "json": body,
                "headers": context.provider_headers(json_body=True),
            }

        params: Dict[str, Any] = {
            "start": f"{start.longitude},{start.latitude}",
            "end": f"{end.longitude},{end.latitude}",
            "instructions": "true",
            "geometry": "true",
        }
        if self.wide_radius:
            params["radiuses"] = f"{radius},{radius}"
        if s.ORS_API_KEY:
            params["api_key"] = s.ORS_API_KEY
        return base, {"params": params, "headers": context.provider_headers()}


DEFAULT_STRATEGIES: Tuple[RouteStrategy, ...] = (
    RouteStrategy(RouteMethod.STANDARD),
    RouteStrategy(RouteMethod.LARGE_RADIUS, wide_radius=True),
    RouteStrategy(RouteMethod.POST_NEGOTIATED, http_method="POST", wide_radius=True),
)


class ResolveStage(str, Enum):
    VALIDATE = "validate"
    SNAP = "snap"
    NEGOTIATE = "negotiate"
    FALLBACK = "fallback"
    DONE = "done"


@dataclass
class _Pipeline:
    """
    Working state of one resolve() call. Discarded when the call returns.
    """
    origin: GeoPoint
    destination: GeoPoint
    route_start: GeoPoint
    route_end: GeoPoint
    stage: ResolveStage = ResolveStage.VALIDATE
    error: Optional[RouteError] = None
    result: Optional[RoutePath] = None
    attempts: List[str] = field(default_factory=list)


class RouteResolver:
    """
    Turns (origin, destination) into a drawable RoutePath:

    VALIDATE -> SNAP -> NEGOTIATE -> DONE
                  \\___________________> FALLBACK -> DONE

    - VALIDATE: both endpoints must be inside the service region.
    - SNAP: best effort; snapped coordinates only used when all points snapped.
    - NEGOTIATE: strategies tried in order, one at a time, each with its own
      timeout. First well-formed response with a feature wins.
    - FALLBACK: synthetic polyline from the original coordinates.

    resolve() never raises on provider failures.
    """

    def __init__(
        self,
        context: SessionContext,
        snapper: CoordinateSnapper | None = None,
        strategies: Sequence[RouteStrategy] | None = None,
        synthetic_generator: SyntheticGenerator = generate_synthetic_route,
    ) -> None:
        self.context = context
        self.snapper = snapper or CoordinateSnapper(context)
        self.strategies = tuple(strategies or DEFAULT_STRATEGIES)
        self.synthetic_generator = synthetic_generator

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def resolve(self, origin: GeoPoint, destination: GeoPoint) -> RoutePath:
        t0 = perf_counter()
        logger.info(
            f"Resolving route ({origin.latitude:.6f}, {origin.longitude:.6f}) -> "
            f"({destination.latitude:.6f}, {destination.longitude:.6f})"
        )

        pipeline = _Pipeline(
            origin=origin,
            destination=destination,
            route_start=origin,
            route_end=destination,
        )
        handlers = {
            ResolveStage.VALIDATE: self._validate,
            ResolveStage.SNAP: self._snap,
            ResolveStage.NEGOTIATE: self._negotiate,
            ResolveStage.FALLBACK: self._fallback,
        }
        while pipeline.stage is not ResolveStage.DONE:
            pipeline.stage = await handlers[pipeline.stage](pipeline)

        result = pipeline.result
        if result is None:
            raise RuntimeError(f"Route pipeline finished without a result: {pipeline.attempts}")
        logger.info(
            f"Route resolved via {result.method.value} "
            f"({len(result.points)} points, {len(result.steps)} steps) "
            f"in {(perf_counter() - t0) * 1000.0:.2f} ms"
        )
        return result

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    async def _validate(self, p: _Pipeline) -> ResolveStage:
        s = self.context.settings
        if in_region(p.origin, s) and in_region(p.destination, s):
            return ResolveStage.SNAP

        logger.error("Route endpoints are outside the service region.")
        p.error = RouteError(
            code=RouteErrorCode.OUT_OF_REGION,
            message="Invalid coordinates for the service region",
        )
        return ResolveStage.FALLBACK

    async def _snap(self, p: _Pipeline) -> ResolveStage:
        result = await self.snapper.snap([p.origin, p.destination])
        if result.success and result.all_snapped:
            p.route_start = result.points[0].point
            p.route_end = result.points[1].point
            logger.info("Using snapped coordinates for routing.")
        else:
            logger.warning(
                f"{RouteErrorCode.SNAP_FAILED.value}: routing with original coordinates."
            )
        return ResolveStage.NEGOTIATE

    async def _negotiate(self, p: _Pipeline) -> ResolveStage:
        for strategy in self.strategies:
            p.attempts.append(strategy.method.value)
            logger.info(f"Trying routing strategy: {strategy.method.value}")
            try:
                data = await self._request(strategy, p.route_start, p.route_end)
                points, steps, provider_distance_m = self._parse_route(data)
            except StrategyFailed as exc:
                logger.warning(f"Strategy {strategy.method.value} failed: {exc}")
                continue

            km = (
                provider_distance_m / 1000.0
                if provider_distance_m is not None
                else distance_km(p.origin, p.destination)
            )
            p.result = RoutePath(
                points=points,
                method=strategy.method,
                steps=steps,
                distance_km=km,
                eta_minutes=eta_minutes(km, self.context.settings.AVERAGE_SPEED_KMH),
            )
            return ResolveStage.DONE

        logger.error(f"All routing strategies failed: {', '.join(p.attempts)}")
        p.error = RouteError(
            code=RouteErrorCode.ALL_STRATEGIES_FAILED,
            message="All routing strategies failed",
        )
        return ResolveStage.FALLBACK

    async def _fallback(self, p: _Pipeline) -> ResolveStage:
        points = self.synthetic_generator(p.origin, p.destination)
        km = distance_km(p.origin, p.destination)
        p.result = RoutePath(
            points=points,
            method=RouteMethod.FALLBACK_SYNTHETIC,
            steps=[],
            error=p.error,
            distance_km=km,
            eta_minutes=eta_minutes(km, self.context.settings.AVERAGE_SPEED_KMH),
        )
        return ResolveStage.DONE

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def _request(self, strategy: RouteStrategy, start: GeoPoint, end: GeoPoint) -> Any:
        url, kwargs = strategy.build_request(self.context, start, end)
        timeout_s = self.context.settings.ROUTE_STRATEGY_TIMEOUT_S
        try:
            response = await asyncio.wait_for(
                self.context.http_client().request(
                    strategy.http_method, url, timeout=timeout_s, **kwargs
                ),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            raise StrategyFailed(f"timed out after {timeout_s:.0f} s") from None
        except httpx.HTTPError as exc:
            raise StrategyFailed(f"transport error: {exc!r}") from exc

        logger.info(f"Strategy {strategy.method.value} response status: {response.status_code}")
        if not response.is_success:
            raise StrategyFailed(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            return response.json()
        except ValueError as exc:
            raise StrategyFailed("response body is not JSON") from exc

    @staticmethod
    def _parse_route(data: Any) -> Tuple[List[GeoPoint], List[RouteStep], Optional[float]]:
        """
        Parse a directions feature collection.

        Geometry comes from features[0].geometry.coordinates ([lon, lat] pairs).
        Steps come from features[0].properties.segments[*].steps; missing step
        data just means no directions.
        """
        try:
            features = data["features"]
            feature = features[0]
            raw_coords = feature["geometry"]["coordinates"]
            points = [GeoPoint.from_lonlat(c) for c in raw_coords]
            properties = feature.get("properties") or {}
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise StrategyFailed("malformed or empty feature collection") from exc
        if not points:
            raise StrategyFailed("route geometry is empty")
        if not isinstance(properties, dict):
            properties = {}

        steps: List[RouteStep] = []
        for segment in properties.get("segments") or []:
            if not isinstance(segment, dict):
                continue
            for raw in segment.get("steps") or []:
                if not isinstance(raw, dict):
                    continue
                try:
                    step = RouteResolver._parse_step(len(steps), raw, points)
                except (TypeError, ValueError, IndexError) as exc:
                    logger.warning(f"Skipping malformed step: {exc!r}")
                    continue
                if step is not None:
                    steps.append(step)

        summary = properties.get("summary")
        distance_m = summary.get("distance") if isinstance(summary, dict) else None
        if not isinstance(distance_m, (int, float)):
            distance_m = None
        return points, steps, distance_m

    @staticmethod
    def _parse_step(index: int, raw: Dict[str, Any], points: List[GeoPoint]) -> Optional[RouteStep]:
        way_points = raw.get("way_points") or [0]
        anchor_index = way_points[0]
        if not isinstance(anchor_index, int) or not 0 <= anchor_index < len(points):
            logger.warning(f"Skipping step {index}: way point {anchor_index!r} out of range")
            return None

        return RouteStep(
            index=index,
            instruction=raw.get("instruction", ""),
            distance_m=float(raw.get("distance", 0.0)),
            duration_s=float(raw.get("duration", 0.0)),
            road_type=raw.get("type"),
            road_name=raw.get("name") or "Unnamed road",
            anchor=points[anchor_index],
        )
