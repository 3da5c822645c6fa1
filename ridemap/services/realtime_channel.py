# ridemap/services/realtime_channel.py

import asyncio
import contextlib
import time
from typing import Any, Optional, Tuple

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError, SocketIOError

from ridemap.core.errors import ChannelDisconnected, NotReady, RideStateError
from ridemap.core.logger import logger
from ridemap.models.events import (
    ChannelStatusChanged,
    DriversUpdated,
    MapEvent,
    RideAccepted,
    RideDeclined,
)
from ridemap.models.geo import GeoPoint, PositionFix
from ridemap.models.realtime import ChannelState, DriverMarker
from ridemap.services.ride_session import RideSession
from ridemap.services.session import SessionContext

# Wire event names
REGISTER_PASSENGER = "register-passenger"
PASSENGER_LOCATION_UPDATE = "passenger-location-update"
REQUEST_RIDE = "request-ride"
NEARBY_DRIVERS = "nearby-drivers"
RIDE_REQUEST_ACCEPTED = "ride-request-accepted"
RIDE_REQUEST_DECLINED = "ride-request-declined"


def _driver_id(raw: Any) -> Optional[str]:
    if raw is None or isinstance(raw, (dict, list, bool)):
        return None
    driver_id = str(raw).strip()
    return driver_id or None


class RealtimeChannel:
    """
    The single connection to the matching server.

    disconnected -> connecting -> connected -> reconnecting -> connected
                                                            \\-> disconnected

    Reconnection is bounded (SOCKET_RECONNECT_ATTEMPTS, fixed delay). Nothing
    is queued while disconnected. Inbound events replace state and are
    forwarded onto the map event queue.
    """

    def __init__(
        self,
        context: SessionContext,
        events: "asyncio.Queue[MapEvent] | None" = None,
        sio: Optional[socketio.AsyncClient] = None,
    ) -> None:
        self.context = context
        self.events = events
        self.sio = sio or socketio.AsyncClient(reconnection=False)
        self.state = ChannelState.DISCONNECTED
        self.connectivity_lost = False
        self.ride = RideSession()
        self.drivers: Tuple[DriverMarker, ...] = ()
        self._closing = False
        self._reconnect_task: Optional[asyncio.Task] = None

        self.sio.on("connect", self._on_connect)
        self.sio.on("disconnect", self._on_disconnect)
        self.sio.on("connect_error", self._on_connect_error)
        self.sio.on(NEARBY_DRIVERS, self._on_nearby_drivers)
        self.sio.on(RIDE_REQUEST_ACCEPTED, self._on_ride_accepted)
        self.sio.on(RIDE_REQUEST_DECLINED, self._on_ride_declined)

    @property
    def connected(self) -> bool:
        return self.state == ChannelState.CONNECTED

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self) -> None:
        """
        First connection attempt. On failure the bounded reconnect loop runs
        in the background.
        """
        self._closing = False
        self._set_state(ChannelState.CONNECTING)
        if not await self._try_connect():
            self._start_reconnect()

    async def close(self) -> None:
        self._closing = True
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reconnect_task
            self._reconnect_task = None
        if self.sio.connected:
            await self.sio.disconnect()
        self._set_state(ChannelState.DISCONNECTED)

    async def _try_connect(self) -> bool:
        s = self.context.settings
        try:
            await self.sio.connect(
                s.SOCKET_SERVER_URL,
                wait_timeout=s.SOCKET_CONNECT_TIMEOUT_S,
            )
        except SocketConnectionError as exc:
            logger.warning(f"Socket connection error: {exc}")
            return False
        return True

    def _start_reconnect(self) -> None:
        if self._closing:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        s = self.context.settings
        for attempt in range(1, s.SOCKET_RECONNECT_ATTEMPTS + 1):
            self._set_state(ChannelState.RECONNECTING)
            await asyncio.sleep(s.SOCKET_RECONNECT_DELAY_S)
            logger.info(f"Reconnect attempt {attempt}/{s.SOCKET_RECONNECT_ATTEMPTS}")
            if await self._try_connect():
                return

        logger.error("Reconnection attempts exhausted; matching server unreachable.")
        self.connectivity_lost = True
        self._set_state(ChannelState.DISCONNECTED)

    # ------------------------------------------------------------------ #
    # Outbound
    # ------------------------------------------------------------------ #

    async def publish_position(self, fix: PositionFix) -> None:
        """
        Fire-and-forget position broadcast. Never raises.
        """
        passenger_id = self.context.passenger_id
        if not self.connected or not passenger_id:
            return
        payload = {
            "passengerId": passenger_id,
            "lat": fix.point.latitude,
            "lng": fix.point.longitude,
            "accuracy": fix.accuracy_m,
            "timestamp": int(time.time() * 1000),
        }
        try:
            await self.sio.emit(PASSENGER_LOCATION_UPDATE, payload)
        except SocketIOError as exc:
            logger.warning(f"Position publish failed: {exc!r}")

    async def request_ride(
        self,
        driver_id: str,
        pickup: Optional[GeoPoint],
        destination: Optional[GeoPoint],
    ) -> None:
        """
        Ask a driver for a ride. Raises NotReady, before touching the socket,
        unless connected with a passenger, a pickup point and a destination.
        """
        passenger_id = self.context.passenger_id
        if not self.connected:
            raise NotReady("Not connected to the matching server")
        if not passenger_id:
            raise NotReady("No signed-in passenger")
        if pickup is None or destination is None:
            raise NotReady("Pickup location and destination are required")
        if not driver_id:
            raise NotReady("No driver selected")

        previous = self.ride.state
        self.ride.request(driver_id)
        payload = {
            "passengerId": passenger_id,
            "driverId": driver_id,
            "pickupLocation": pickup.model_dump(),
            "destination": destination.model_dump(),
        }
        try:
            await self.sio.emit(REQUEST_RIDE, payload)
        except SocketIOError as exc:
            self.ride.restore(previous)
            raise ChannelDisconnected(f"Ride request not sent: {exc}") from exc
        logger.info(f"Ride requested from driver {driver_id}")

    # ------------------------------------------------------------------ #
    # Inbound handlers
    # ------------------------------------------------------------------ #

    async def _on_connect(self) -> None:
        logger.info("Socket connected")
        self.connectivity_lost = False
        self._set_state(ChannelState.CONNECTED)
        passenger_id = self.context.passenger_id
        if passenger_id:
            await self.sio.emit(REGISTER_PASSENGER, passenger_id)

    async def _on_disconnect(self, *args: Any) -> None:
        logger.info("Socket disconnected")
        if self._closing:
            self._set_state(ChannelState.DISCONNECTED)
            return
        self._set_state(ChannelState.RECONNECTING)
        self._start_reconnect()

    async def _on_connect_error(self, data: Any = None) -> None:
        logger.warning(f"Socket connection error: {data}")

    async def _on_nearby_drivers(self, drivers: Any) -> None:
        markers = []
        for raw in drivers or []:
            try:
                markers.append(
                    DriverMarker(
                        driver_id=str(raw["id"]),
                        point=GeoPoint(latitude=raw["lat"], longitude=raw["lng"]),
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Ignoring malformed driver entry: {raw!r}")
        self.drivers = tuple(markers)
        self._push(DriversUpdated(drivers=self.drivers))

    async def _on_ride_accepted(self, ride: Any) -> None:
        driver_id = _driver_id(ride.get("driverId") if isinstance(ride, dict) else ride)
        if driver_id is None:
            logger.warning(f"Ignoring ride acceptance without a driver id: {ride!r}")
            return
        try:
            self.ride.accept(driver_id)
        except RideStateError as exc:
            logger.warning(f"Ignoring ride acceptance from {driver_id}: {exc}")
            return
        logger.info(f"Driver {driver_id} accepted the ride")
        self._push(RideAccepted(driver_id=driver_id))

    async def _on_ride_declined(self, payload: Any) -> None:
        driver_id = _driver_id(payload.get("driverId") if isinstance(payload, dict) else payload)
        if driver_id is None:
            logger.warning(f"Ignoring ride decline without a driver id: {payload!r}")
            return
        try:
            self.ride.decline(driver_id)
        except RideStateError as exc:
            logger.warning(f"Ignoring ride decline from {driver_id}: {exc}")
            return
        logger.info(f"Driver {driver_id} declined the ride")
        self._push(RideDeclined(driver_id=driver_id))

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _set_state(self, state: ChannelState) -> None:
        if state == self.state:
            return
        logger.info(f"Realtime channel: {self.state.value} -> {state.value}")
        self.state = state
        self._push(
            ChannelStatusChanged(state=state, connectivity_lost=self.connectivity_lost)
        )

    def _push(self, event: MapEvent) -> None:
        if self.events is not None:
            self.events.put_nowait(event)
