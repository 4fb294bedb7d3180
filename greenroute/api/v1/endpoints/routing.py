from fastapi import APIRouter, Depends

from greenroute.dependencies import get_routing_scorer
from greenroute.schemas import RoutingRequest, RoutingResult
from greenroute.services.routing import RoutingScorer

router = APIRouter(prefix="/route")


@router.post(
    "/green",
    response_model=RoutingResult,
    summary="Pick the greenest region",
    description=(
        "Scores candidate regions on carbon intensity, latency and cost. When every "
        "candidate exceeds max_intensity_ceiling the lowest-intensity one is returned "
        "with score 0 and each alternative carries the violation reason."
    ),
)
async def route_green(
    body: RoutingRequest,
    scorer: RoutingScorer = Depends(get_routing_scorer),
) -> RoutingResult:
    return await scorer.route_green(body)
