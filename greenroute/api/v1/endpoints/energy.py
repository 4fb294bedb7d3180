from fastapi import APIRouter, Depends

from greenroute.dependencies import get_energy_estimator
from greenroute.schemas import EnergyRequest, EnergyResponse
from greenroute.services.energy import EnergyEstimator

router = APIRouter(prefix="/energy")


@router.post(
    "/equation",
    response_model=EnergyResponse,
    summary="Estimate workload energy and emissions per region",
)
async def energy_equation(
    body: EnergyRequest,
    estimator: EnergyEstimator = Depends(get_energy_estimator),
) -> EnergyResponse:
    return await estimator.calculate(body)
