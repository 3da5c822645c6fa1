# ridemap/services/map_view.py

import asyncio
import contextlib
from enum import Enum
from typing import Optional, Tuple

from ridemap.core.errors import LocationError, NotReady
from ridemap.core.logger import logger
from ridemap.models.events import (
    ChannelStatusChanged,
    DriversUpdated,
    LocationFailed,
    MapEvent,
    PositionUpdated,
    RideAccepted,
    RideDeclined,
    RouteResolved,
)
from ridemap.models.geo import GeoPoint, MapRegion, PositionFix
from ridemap.models.realtime import ChannelState, DriverMarker
from ridemap.models.routing import RouteMethod, RoutePath
from ridemap.services.distance import bounding_region, distance_km
from ridemap.services.geolocation import GeolocationTracker
from ridemap.services.realtime_channel import RealtimeChannel
from ridemap.services.route_resolver import RouteResolver
from ridemap.services.session import SessionContext

# Tunis city centre
DEFAULT_REGION = MapRegion(
    center=GeoPoint(latitude=36.8065, longitude=10.1815),
    latitude_delta=0.0922,
    longitude_delta=0.0421,
)
RIDER_DELTA = 0.005


class RoutingStatus(str, Enum):
    LOADING = "loading"
    ERROR = "error"
    APPROXIMATE = "approximate"
    OPTIMIZED = "optimized"
    NONE = "none"


class MapViewController:
    """
    Owns what the map shows: region, route snapshot, driver markers and
    ride/channel indicators.

    All async sources (tracker, realtime channel, route tasks) push typed
    events onto `events`; run() applies them one at a time in arrival order.
    Every event replaces state, so there is no ordering dependency between
    sources.

    Route resolutions carry a generation number; a newer request cancels the
    older task and any late result with an old generation is dropped.
    """

    def __init__(
        self,
        context: SessionContext,
        resolver: RouteResolver,
        events: "asyncio.Queue[MapEvent] | None" = None,
        tracker: Optional[GeolocationTracker] = None,
        channel: Optional[RealtimeChannel] = None,
    ) -> None:
        self.context = context
        self.resolver = resolver
        self.events: "asyncio.Queue[MapEvent]" = events if events is not None else asyncio.Queue()
        self.tracker = tracker
        self.channel = channel

        self.region: MapRegion = DEFAULT_REGION
        self.fix: Optional[PositionFix] = None
        self.destination: Optional[GeoPoint] = None
        self.route: Optional[RoutePath] = None
        self.route_loading = False
        self.route_generation = 0
        self.drivers: Tuple[DriverMarker, ...] = ()
        self.accepted_driver: Optional[str] = None
        self.declined_driver: Optional[str] = None
        self.channel_state = ChannelState.DISCONNECTED
        self.connectivity_lost = False
        self.location_error: Optional[str] = None

        self._route_task: Optional[asyncio.Task] = None
        self._route_origin: Optional[GeoPoint] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def open(self) -> None:
        """
        Connect the realtime channel and start location tracking. Location
        failures are kept in `location_error` until retried.
        """
        if self.channel is not None:
            await self.channel.connect()
        await self.retry_location()

    async def retry_location(self) -> None:
        if self.tracker is None:
            return
        try:
            await self.tracker.start()
            self.location_error = None
        except LocationError as exc:
            logger.error(f"Location unavailable: {exc}")
            self.location_error = str(exc)

    async def refresh_location(self) -> None:
        if self.tracker is None:
            return
        try:
            await self.tracker.refresh()
        except LocationError as exc:
            logger.error(f"Failed to refresh location: {exc}")
            self.location_error = str(exc)

    async def close(self) -> None:
        self._cancel_route_task()
        if self.tracker is not None:
            await self.tracker.stop()
        if self.channel is not None:
            await self.channel.close()

    async def run(self) -> None:
        """Apply events until cancelled."""
        while True:
            event = await self.events.get()
            self.handle(event)

    async def process_pending(self) -> int:
        """Apply every queued event without waiting; returns how many."""
        count = 0
        while not self.events.empty():
            self.handle(self.events.get_nowait())
            count += 1
        return count

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def handle(self, event: MapEvent) -> None:
        if isinstance(event, PositionUpdated):
            self._on_fix(event.fix)
        elif isinstance(event, RouteResolved):
            self._on_route(event)
        elif isinstance(event, DriversUpdated):
            self.drivers = event.drivers
        elif isinstance(event, RideAccepted):
            self.accepted_driver = event.driver_id
            self.declined_driver = None
        elif isinstance(event, RideDeclined):
            self.declined_driver = event.driver_id
        elif isinstance(event, ChannelStatusChanged):
            self.channel_state = event.state
            self.connectivity_lost = event.connectivity_lost
        elif isinstance(event, LocationFailed):
            self.location_error = event.message
        else:
            logger.warning(f"Unhandled map event: {event!r}")

    def _on_fix(self, fix: PositionFix) -> None:
        self.fix = fix
        self.location_error = None

        if self.destination is None:
            self.region = MapRegion(
                center=fix.point,
                latitude_delta=RIDER_DELTA,
                longitude_delta=RIDER_DELTA,
            )
            return

        self.region = bounding_region(fix.point, self.destination)
        if self._route_origin is None or self._moved_materially(fix.point):
            self._schedule_route(fix.point, self.destination)

    def _on_route(self, event: RouteResolved) -> None:
        if event.generation != self.route_generation:
            logger.info(
                f"Dropping stale route (generation {event.generation}, "
                f"current {self.route_generation})"
            )
            return
        self.route = event.path
        self.route_loading = False

    # ------------------------------------------------------------------ #
    # User actions
    # ------------------------------------------------------------------ #

    def select_destination(self, destination: GeoPoint) -> None:
        self.destination = destination
        self._route_origin = None
        if self.fix is None:
            logger.info("Destination selected before first fix; routing deferred.")
            return
        self.region = bounding_region(self.fix.point, destination)
        self._schedule_route(self.fix.point, destination)

    def clear_destination(self) -> None:
        self.destination = None
        self._cancel_route_task()
        self.route_generation += 1
        self.route = None
        self.route_loading = False
        self._route_origin = None
        if self.fix is not None:
            self.region = MapRegion(
                center=self.fix.point,
                latitude_delta=RIDER_DELTA,
                longitude_delta=RIDER_DELTA,
            )

    def zoom_in(self) -> None:
        self.region = self.region.scaled(0.5)

    def zoom_out(self) -> None:
        self.region = self.region.scaled(2.0)

    async def request_ride(self, driver_id: str) -> None:
        if self.channel is None:
            raise NotReady("No realtime channel")
        pickup = self.fix.point if self.fix is not None else None
        await self.channel.request_ride(driver_id, pickup, self.destination)

    # ------------------------------------------------------------------ #
    # Display state
    # ------------------------------------------------------------------ #

    @property
    def routing_status(self) -> RoutingStatus:
        if self.route_loading:
            return RoutingStatus.LOADING
        if self.route is None or self.route.method == RouteMethod.NONE:
            return RoutingStatus.NONE
        if self.route.error is not None:
            return RoutingStatus.ERROR
        if self.route.method == RouteMethod.FALLBACK_SYNTHETIC:
            return RoutingStatus.APPROXIMATE
        return RoutingStatus.OPTIMIZED

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _moved_materially(self, point: GeoPoint) -> bool:
        moved_m = distance_km(self._route_origin, point) * 1000.0
        return moved_m >= self.context.settings.ROUTE_REFRESH_DISTANCE_M

    def _schedule_route(self, origin: GeoPoint, destination: GeoPoint) -> None:
        self._cancel_route_task()
        self.route_generation += 1
        self.route_loading = True
        self._route_origin = origin
        self._route_task = asyncio.create_task(
            self._resolve_route(self.route_generation, origin, destination)
        )

    async def _resolve_route(self, generation: int, origin: GeoPoint, destination: GeoPoint) -> None:
        path = await self.resolver.resolve(origin, destination)
        self.events.put_nowait(RouteResolved(generation=generation, path=path))

    def _cancel_route_task(self) -> None:
        if self._route_task is not None and not self._route_task.done():
            self._route_task.cancel()
        self._route_task = None

    async def wait_for_route(self) -> None:
        """Wait for the in-flight resolution, if any, to post its result."""
        if self._route_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._route_task
