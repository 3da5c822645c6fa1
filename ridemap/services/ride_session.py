# ridemap/services/ride_session.py

from ridemap.core.errors import RideStateError
from ridemap.core.logger import logger
from ridemap.models.realtime import (
    AcceptedRide,
    DeclinedRide,
    IdleRide,
    RequestedRide,
    RideState,
)


class RideSession:
    """
    Rider-side projection of the ride lifecycle.

    idle/declined --request--> requested --accept--> accepted
                                         --decline--> declined

    A declined ride may be re-requested with another driver. An accept that
    arrives after a decline still wins and clears the declined state.
    """

    def __init__(self) -> None:
        self.state: RideState = IdleRide()

    def request(self, driver_id: str) -> RideState:
        if not isinstance(self.state, (IdleRide, DeclinedRide)):
            raise RideStateError(f"Cannot request a ride while {self.state.state}")
        return self._move(RequestedRide(driver_id=driver_id))

    def accept(self, driver_id: str) -> RideState:
        if not isinstance(self.state, (RequestedRide, DeclinedRide)):
            raise RideStateError(f"Cannot accept a ride while {self.state.state}")
        return self._move(AcceptedRide(driver_id=driver_id))

    def decline(self, driver_id: str) -> RideState:
        if not isinstance(self.state, RequestedRide):
            raise RideStateError(f"Cannot decline a ride while {self.state.state}")
        return self._move(DeclinedRide(driver_id=driver_id))

    def restore(self, state: RideState) -> None:
        """Roll back to a previous state, e.g. when a send failed."""
        self.state = state

    def reset(self) -> RideState:
        return self._move(IdleRide())

    def _move(self, new_state: RideState) -> RideState:
        logger.info(f"Ride session: {self.state.state} -> {new_state.state}")
        self.state = new_state
        return new_state
