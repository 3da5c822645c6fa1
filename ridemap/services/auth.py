# ridemap/services/auth.py

import httpx
from pydantic import ValidationError

from ridemap.core.errors import AuthError
from ridemap.core.logger import logger
from ridemap.models.realtime import PassengerProfile
from ridemap.services.session import SessionContext


class AuthClient:
    """
    Passenger backend: sign-in and reachability check.
    """

    def __init__(self, context: SessionContext) -> None:
        self.context = context

    async def sign_in(self, username: str, password: str) -> PassengerProfile:
        """
        Sign in and attach the passenger to the session context.
        """
        if not username or not password:
            raise AuthError("Please enter both username and password")

        url = f"{self.context.settings.API_URL}/api/passengers/signin"
        logger.info(f"Attempting to sign in at: {url}")
        try:
            response = await self.context.http_client().post(
                url,
                json={"username": username, "password": password},
                timeout=self.context.settings.API_TIMEOUT_S,
            )
        except httpx.HTTPError as exc:
            logger.error(f"Sign-in transport error: {exc!r}")
            raise AuthError(
                f"Cannot connect to server at {self.context.settings.API_URL}"
            ) from exc

        if not response.is_success:
            message = "Sign in failed"
            try:
                message = response.json().get("message") or message
            except (ValueError, AttributeError):
                pass
            logger.warning(f"Sign-in rejected: {response.status_code}")
            raise AuthError(message, status_code=response.status_code)

        try:
            passenger = PassengerProfile.model_validate(response.json()["passenger"])
        except (ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.error("Invalid sign-in response format")
            raise AuthError("Invalid response from server") from exc

        self.context.passenger = passenger
        logger.info(f"Signed in passenger {passenger.id}")
        return passenger

    async def check_connection(self) -> bool:
        try:
            response = await self.context.http_client().get(
                f"{self.context.settings.API_URL}/health",
                timeout=self.context.settings.HEALTH_TIMEOUT_S,
            )
        except httpx.HTTPError as exc:
            logger.warning(f"Connection test failed: {exc!r}")
            return False
        return response.is_success
