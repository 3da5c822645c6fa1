# ridemap/models/events.py
#
# Typed messages pushed by the async sources (tracker, realtime channel,
# route tasks) onto the map controller's single inbound queue.

from typing import Tuple, Union

from pydantic import BaseModel, ConfigDict

from ridemap.models.geo import PositionFix
from ridemap.models.realtime import ChannelState, DriverMarker
from ridemap.models.routing import RoutePath


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class PositionUpdated(_Event):
    fix: PositionFix


class LocationFailed(_Event):
    message: str


class DriversUpdated(_Event):
    drivers: Tuple[DriverMarker, ...]


class RideAccepted(_Event):
    driver_id: str


class RideDeclined(_Event):
    driver_id: str


class ChannelStatusChanged(_Event):
    state: ChannelState
    connectivity_lost: bool = False


class RouteResolved(_Event):
    generation: int
    path: RoutePath


MapEvent = Union[
    PositionUpdated,
    LocationFailed,
    DriversUpdated,
    RideAccepted,
    RideDeclined,
    ChannelStatusChanged,
    RouteResolved,
]
