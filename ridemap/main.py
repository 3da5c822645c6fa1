# ridemap/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ridemap.api.v1 import routes_geocoding, routes_health, routes_routing
from ridemap.core.config import settings
from ridemap.core.logger import logger
from ridemap.core.logging_config import setup_logging
from ridemap.services.session import SessionContext


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.session = SessionContext(settings)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} starting ({settings.ENVIRONMENT})")
    if not settings.ORS_API_KEY:
        logger.warning("ORS_API_KEY is not set; routing provider requests carry no key.")
    yield
    await app.state.session.aclose()


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Rider route acquisition: snapping, strategy negotiation, synthetic fallback.",
        lifespan=lifespan,
    )

    # Routers
    app.include_router(routes_health.router, prefix="", tags=["health"])
    app.include_router(routes_routing.router, prefix="", tags=["routing"])
    app.include_router(routes_geocoding.router, prefix="", tags=["geocoding"])

    return app


app = create_app()
