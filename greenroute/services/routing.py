"""Green routing: rank candidate regions by weighted carbon, latency and cost scores."""

import asyncio
import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from greenroute.config import settings
from greenroute.exceptions import InvalidInputError
from greenroute.models.carbon_intensity import IntensitySource
from greenroute.schemas import RoutingAlternative, RoutingRequest, RoutingResult, RoutingWeights

logger = logging.getLogger(__name__)

_MAX_ALTERNATIVES = 2


@dataclass
class ScoredRegion:
    region: str
    intensity: float
    latency: float
    carbon_score: float = 0.0
    latency_score: float = 0.0
    cost_score: float = 0.0
    score: float = 0.0


def normalize_weights(weights: RoutingWeights) -> tuple[float, float, float]:
    """Scale (carbon, latency, cost) so they sum to 1."""
    total = weights.carbon + weights.latency + weights.cost
    if total <= 0:
        raise InvalidInputError("at least one routing weight must be greater than zero")
    return weights.carbon / total, weights.latency / total, weights.cost / total


def _inverse_share(value: float, peak: float) -> float:
    # All-zero column: nobody is better than anybody else
    if peak <= 0:
        return 0.0
    return 1.0 - value / peak


def score_regions(
    regions: list[ScoredRegion], weights: tuple[float, float, float]
) -> list[ScoredRegion]:
    """Score *regions* in place against the maxima of this set and return them best first.

    Cost is modelled as proportional to carbon, so cost_score mirrors carbon_score.
    Equal scores keep their input order.
    """
    w_carbon, w_latency, w_cost = weights
    peak_intensity = max(r.intensity for r in regions)
    peak_latency = max(r.latency for r in regions)

    for r in regions:
        r.carbon_score = _inverse_share(r.intensity, peak_intensity)
        r.latency_score = _inverse_share(r.latency, peak_latency)
        r.cost_score = r.carbon_score
        composite = (
            w_carbon * r.carbon_score
            + w_latency * r.latency_score
            + w_cost * r.cost_score
        )
        r.score = min(1.0, max(0.0, composite))

    return sorted(regions, key=lambda r: r.score, reverse=True)


class RoutingScorer:
    def __init__(
        self,
        provider,
        cache,
        store=None,
        *,
        default_intensity: float | None = None,
        default_latency_ms: float | None = None,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._store = store
        self.default_intensity = (
            default_intensity
            if default_intensity is not None
            else settings.default_intensity_g_per_kwh
        )
        self.default_latency_ms = (
            default_latency_ms
            if default_latency_ms is not None
            else settings.default_latency_ms
        )

    async def resolve_intensity(self, region: str) -> float:
        """Cached intensity, else a fresh provider reading, else the configured default."""
        cached = await self._cache.get_intensity(region)
        if cached is not None:
            return cached

        reading = await self._provider.current(region)
        if reading is None:
            logger.warning(
                "No intensity for %s, using default %.0f gCO2/kWh", region, self.default_intensity
            )
            return self.default_intensity

        await self._cache.set_intensity(region, reading.intensity)
        if self._store is not None and self._provider.configured:
            await self._capture_sample(region, reading)
        return reading.intensity

    async def _capture_sample(self, region, reading) -> None:
        try:
            await self._store.upsert(
                region, reading.timestamp, reading.intensity, IntensitySource.PROVIDER
            )
        except SQLAlchemyError as exc:
            logger.warning("Could not record routing sample for %s: %s", region, exc)

    async def route_green(self, request: RoutingRequest) -> RoutingResult:
        regions = list(dict.fromkeys(request.candidate_regions))
        if not regions:
            raise InvalidInputError("candidate_regions must contain at least one region")
        weights = normalize_weights(request.weights)

        intensities = await asyncio.gather(*(self.resolve_intensity(r) for r in regions))
        candidates = [
            ScoredRegion(
                region=region,
                intensity=intensity,
                latency=request.latency_by_region.get(region, self.default_latency_ms),
            )
            for region, intensity in zip(regions, intensities)
        ]

        ceiling = request.max_intensity_ceiling
        eligible = [c for c in candidates if ceiling is None or c.intensity <= ceiling]
        if not eligible:
            return self._ceiling_fallback(candidates, ceiling)

        ranked = score_regions(eligible, weights)
        best = ranked[0]
        logger.info(
            "Routed to %s (%.0f gCO2/kWh, score %.3f) from %d candidates",
            best.region,
            best.intensity,
            best.score,
            len(candidates),
        )
        return RoutingResult(
            selected_region=best.region,
            intensity=best.intensity,
            estimated_latency=best.latency,
            score=best.score,
            alternatives=[
                RoutingAlternative(region=r.region, intensity=r.intensity, score=r.score)
                for r in ranked[1 : 1 + _MAX_ALTERNATIVES]
            ],
        )

    def _ceiling_fallback(self, candidates: list[ScoredRegion], ceiling: float) -> RoutingResult:
        """Every candidate is above the ceiling: pick the cleanest anyway, with zero score."""
        by_intensity = sorted(candidates, key=lambda r: r.intensity)
        best = by_intensity[0]
        reason = f"Exceeds carbon ceiling ({ceiling:g} gCO2/kWh)"
        logger.warning(
            "All %d candidates exceed ceiling %g, falling back to %s (%.0f gCO2/kWh)",
            len(candidates),
            ceiling,
            best.region,
            best.intensity,
        )
        return RoutingResult(
            selected_region=best.region,
            intensity=best.intensity,
            estimated_latency=best.latency,
            score=0.0,
            alternatives=[
                RoutingAlternative(region=r.region, intensity=r.intensity, score=0.0, reason=reason)
                for r in by_intensity[1 : 1 + _MAX_ALTERNATIVES]
            ],
        )
