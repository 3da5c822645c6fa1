# ridemap/models/realtime.py

from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ridemap.models.geo import GeoPoint


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class DriverMarker(BaseModel):
    model_config = ConfigDict(frozen=True)

    driver_id: str
    point: GeoPoint
    last_update: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PassengerProfile(BaseModel):
    """
    Passenger returned by the sign-in endpoint. Unknown fields are kept.
    """
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    name: str = ""
    username: str = ""
    phone: Optional[str] = None
    agency: Optional[str] = None


# Ride session states. Each carries exactly the data valid in that state.

class IdleRide(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["idle"] = "idle"


class RequestedRide(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["requested"] = "requested"
    driver_id: str = Field(min_length=1)


class AcceptedRide(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["accepted"] = "accepted"
    driver_id: str = Field(min_length=1)


class DeclinedRide(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["declined"] = "declined"
    driver_id: str = Field(min_length=1)


RideState = Union[IdleRide, RequestedRide, AcceptedRide, DeclinedRide]
