# ridemap/core/config.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Rider client settings loaded from environment variables (.env file).

    Provider credentials are only ever read from here; there is no built-in key.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Ridemap Rider Core"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Routing / snapping provider (OpenRouteService-compatible)
    ORS_BASE_URL: str = "https://api.openrouteservice.org"
    ORS_PROFILE: str = "driving-car"
    ORS_API_KEY: Optional[str] = None

    # Geocoding provider (Nominatim-compatible)
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org"

    # Passenger backend and matching server
    API_URL: str = "http://localhost:5000"
    SOCKET_SERVER_URL: str = "http://localhost:5000"

    USER_AGENT: str = "RidemapRider/0.1"

    # Service region (Tunisia plus a buffer)
    REGION_MIN_LAT: float = 30.0
    REGION_MAX_LAT: float = 38.0
    REGION_MIN_LON: float = 7.0
    REGION_MAX_LON: float = 12.0

    # Timeouts, seconds
    SNAP_TIMEOUT_S: float = 10.0
    ROUTE_STRATEGY_TIMEOUT_S: float = 15.0
    LOCATION_TIMEOUT_S: float = 30.0
    SOCKET_CONNECT_TIMEOUT_S: float = 10.0
    API_TIMEOUT_S: float = 10.0
    HEALTH_TIMEOUT_S: float = 5.0

    SNAP_RADIUS_M: int = 1000
    ROUTE_SEARCH_RADIUS_M: int = 5000

    # Location tracking thresholds
    TRACKING_DISTANCE_M: float = 5.0
    TRACKING_INTERVAL_S: float = 5.0
    LOCATION_MAX_AGE_S: float = 5.0

    # A fix this far from the route origin triggers a new route
    ROUTE_REFRESH_DISTANCE_M: float = 50.0

    SOCKET_RECONNECT_ATTEMPTS: int = 5
    SOCKET_RECONNECT_DELAY_S: float = 1.0

    AVERAGE_SPEED_KMH: float = 30.0


settings = Settings()
