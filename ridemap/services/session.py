# ridemap/services/session.py

from typing import Optional

import httpx

from ridemap.core.config import Settings, settings as default_settings
from ridemap.core.logger import logger
from ridemap.models.realtime import PassengerProfile


class SessionContext:
    """
    Per-session dependencies, built once and handed to every service:
    - settings (provider URLs, credentials, thresholds)
    - the signed-in passenger, if any
    - one shared httpx.AsyncClient for all provider calls
    """

    def __init__(
        self,
        settings: Settings | None = None,
        passenger: Optional[PassengerProfile] = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.passenger = passenger
        self._http = http
        self._owns_http = http is None

    @property
    def passenger_id(self) -> Optional[str]:
        return self.passenger.id if self.passenger else None

    def http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                headers={"User-Agent": self.settings.USER_AGENT},
            )
            logger.info("SessionContext created shared HTTP client.")
        return self._http

    def provider_headers(self, json_body: bool = False) -> dict:
        """
        Headers for routing/snapping provider requests. The Authorization
        header is only sent when a key is configured.
        """
        headers = {
            "Accept": "application/json, application/geo+json",
            "User-Agent": self.settings.USER_AGENT,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        if self.settings.ORS_API_KEY:
            headers["Authorization"] = self.settings.ORS_API_KEY
        return headers

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None
