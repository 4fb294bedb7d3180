"""Workload energy and emissions estimate across candidate regions."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from greenroute.exceptions import InvalidInputError
from greenroute.schemas import (
    EnergyRequest,
    EnergyResponse,
    RegionEstimate,
    RegionRecommendation,
    WorkloadType,
)

logger = logging.getLogger(__name__)

# kWh per 1,000 requests, by workload type and model size category
ENERGY_PER_1K_REQUESTS: dict[WorkloadType, dict[str, float]] = {
    WorkloadType.inference: {"small": 0.05, "medium": 0.15, "large": 0.40, "xlarge": 1.20},
    WorkloadType.training: {"small": 5.0, "medium": 25.0, "large": 100.0, "xlarge": 500.0},
    WorkloadType.batch: {"small": 0.03, "medium": 0.10, "large": 0.30, "xlarge": 0.80},
}

# Substrings of a model name that imply a size category, checked in order
_SIZE_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("small", ("8b", "7b")),
    ("large", ("70b", "65b")),
    ("xlarge", ("175b", "mixtral")),
)


def model_size_category(model_size: str | None) -> str:
    """Map a free-form model name ("llama-3-8b", "xlarge") to a size category."""
    if not model_size:
        return "medium"
    lower = model_size.lower().strip()
    if lower in ("small", "medium", "large", "xlarge"):
        return lower
    for category, hints in _SIZE_HINTS:
        if any(hint in lower for hint in hints):
            return category
    return "medium"


def estimate_energy_kwh(
    request_volume: float, workload_type: WorkloadType, model_size: str | None = None
) -> float:
    per_1k = ENERGY_PER_1K_REQUESTS[workload_type][model_size_category(model_size)]
    return request_volume / 1000 * per_1k


class EnergyEstimator:
    def __init__(self, resolve_intensity: Callable[[str], Awaitable[float]]) -> None:
        self._resolve_intensity = resolve_intensity

    async def calculate(self, request: EnergyRequest) -> EnergyResponse:
        regions = list(dict.fromkeys(request.region_targets))
        if not regions:
            raise InvalidInputError("region_targets must contain at least one region")

        energy_kwh = estimate_energy_kwh(
            request.request_volume, request.workload_type, request.model_size
        )
        intensities = await asyncio.gather(*(self._resolve_intensity(r) for r in regions))

        estimates = [
            RegionEstimate(
                region=region,
                intensity=intensity,
                estimated_co2_g=energy_kwh * intensity,
                estimated_energy_kwh=energy_kwh,
            )
            for region, intensity in zip(regions, intensities)
        ]

        peak = max(e.intensity for e in estimates)
        scored = sorted(
            ((e, 1 - e.intensity / peak if peak > 0 else 0.0) for e in estimates),
            key=lambda pair: pair[1],
            reverse=True,
        )
        recommendation = [
            RegionRecommendation(**estimate.model_dump(), rank=rank, score=score)
            for rank, (estimate, score) in enumerate(scored, start=1)
        ]

        total = recommendation[0].estimated_co2_g
        within_budget = total <= request.carbon_budget if request.carbon_budget else True
        logger.info(
            "Energy estimate: %.3f kWh, best region %s at %.1f gCO2 (within budget: %s)",
            energy_kwh,
            recommendation[0].region,
            total,
            within_budget,
        )
        return EnergyResponse(
            routing_recommendation=recommendation,
            region_estimates=estimates,
            total_estimated_co2_g=total,
            within_budget=within_budget,
        )
