# ridemap/core/errors.py
"""
Error taxonomy for the rider core.

Location errors are blocking and must be retried explicitly by the user.
Routing failures are never raised; they travel as a RouteError annotation on
the returned RoutePath (see ridemap.models.routing).
"""


class RidemapError(Exception):
    """Base class for all rider core errors."""


# ---------------------------------------------------------------------- #
# Location
# ---------------------------------------------------------------------- #

class LocationError(RidemapError):
    """Location could not be acquired."""


class ServicesDisabled(LocationError):
    def __init__(self) -> None:
        super().__init__(
            "Location services are disabled. Please enable them in your device settings."
        )


class PermissionDenied(LocationError):
    def __init__(self) -> None:
        super().__init__("Permission to access location was denied")


class AcquisitionTimeout(LocationError):
    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"No location fix within {timeout_s:.0f} s")


# ---------------------------------------------------------------------- #
# Realtime channel
# ---------------------------------------------------------------------- #

class ChannelError(RidemapError):
    """Realtime channel failure."""


class ChannelDisconnected(ChannelError):
    pass


class NotReady(ChannelError):
    """A send was attempted while disconnected or without required data."""


class RideStateError(RidemapError):
    """Illegal ride session transition."""


# ---------------------------------------------------------------------- #
# Boundary clients
# ---------------------------------------------------------------------- #

class GeocodingError(RidemapError):
    pass


class AuthError(RidemapError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
