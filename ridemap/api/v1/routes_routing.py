# ridemap/api/v1/routes_routing.py
from fastapi import APIRouter, Depends

from ridemap.api.v1.dependencies import get_route_resolver
from ridemap.models.routing import RouteRequest, RouteResponse
from ridemap.services.distance import bounding_region
from ridemap.services.route_resolver import RouteResolver

router = APIRouter(
    prefix="/route",
    tags=["routing"],
)


@router.post(
    "/",
    response_model=RouteResponse,
    summary="Resolve a drawable route between origin and destination",
)
async def compute_route(
    request: RouteRequest,
    resolver: RouteResolver = Depends(get_route_resolver),
) -> RouteResponse:
    """
    Snap, negotiate routing strategies in order, and fall back to a synthetic
    path when none succeeds. Always answers with a polyline; provider failures
    show up as `route.method == "fallback-synthetic"` plus `route.error`.
    """
    route = await resolver.resolve(request.origin, request.destination)
    return RouteResponse(
        route=route,
        region=bounding_region(request.origin, request.destination),
    )
