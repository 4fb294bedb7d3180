"""Pydantic models exchanged between the services and the HTTP layer.

Intensities are gCO2-eq/kWh throughout; timestamps are timezone-aware UTC.
"""

import enum
from datetime import datetime

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    model_validator,
)

from greenroute.models.carbon_intensity import IntensitySource
from greenroute.models.refresh import RefreshStatus


class Trend(str, enum.Enum):
    INCREASING = "INCREASING"
    DECREASING = "DECREASING"
    STABLE = "STABLE"


# ── Samples & provider readings ────────────────────────────────────────────────

class CarbonSample(BaseModel):
    region: str
    timestamp: datetime
    intensity: float = Field(..., ge=0)
    source: IntensitySource = IntensitySource.PROVIDER


class IntensityReading(BaseModel):
    """A single point returned by the intensity provider."""

    region: str
    intensity: float = Field(..., ge=0)
    timestamp: datetime


class SampleIngest(BaseModel):
    """Inbound sample; accepts the field spellings used by older clients."""

    region: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("region", "zone", "regionCode")
    )
    timestamp: datetime = Field(
        ..., validation_alias=AliasChoices("timestamp", "datetime", "ts")
    )
    intensity: float = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices(
            "intensity", "carbonIntensity", "carbon_intensity", "gco2_per_kwh"
        ),
    )
    source: IntensitySource = IntensitySource.DERIVED


# ── Forecasting ────────────────────────────────────────────────────────────────

class CarbonForecast(BaseModel):
    region: str
    forecast_time: datetime
    predicted_intensity: float
    confidence: float = Field(..., ge=0, le=1)
    trend: Trend


class OptimalWindow(BaseModel):
    start_time: datetime
    end_time: datetime
    avg_intensity: float
    # Negative when running immediately is already the best option
    savings_percent: float


# ── Routing ────────────────────────────────────────────────────────────────────

class RoutingWeights(BaseModel):
    carbon: float = Field(0.5, ge=0, le=1)
    latency: float = Field(0.2, ge=0, le=1)
    cost: float = Field(0.3, ge=0, le=1)


_FLAT_WEIGHT_KEYS = {"carbonWeight": "carbon", "latencyWeight": "latency", "costWeight": "cost"}


class RoutingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Emptiness is checked by the scorer so that it fails as InvalidInputError
    candidate_regions: list[str] = Field(
        ..., validation_alias=AliasChoices("candidate_regions", "preferredRegions")
    )
    max_intensity_ceiling: float | None = Field(
        None,
        gt=0,
        validation_alias=AliasChoices("max_intensity_ceiling", "maxCarbonGPerKwh"),
    )
    latency_by_region: dict[str, NonNegativeFloat] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("latency_by_region", "latencyMsByRegion"),
    )
    weights: RoutingWeights = Field(default_factory=RoutingWeights)

    @model_validator(mode="before")
    @classmethod
    def fold_flat_weights(cls, data):
        """Accept carbonWeight / latencyWeight / costWeight next to the nested weights object."""
        if not isinstance(data, dict):
            return data
        flat = {
            name: data[key]
            for key, name in _FLAT_WEIGHT_KEYS.items()
            if data.get(key) is not None
        }
        if not flat:
            return data
        nested = data.get("weights") or {}
        if isinstance(nested, RoutingWeights):
            nested = nested.model_dump()
        return {**data, "weights": {**nested, **flat}}


class RoutingAlternative(BaseModel):
    region: str
    intensity: float
    score: float
    reason: str | None = None


class RoutingResult(BaseModel):
    selected_region: str
    intensity: float
    estimated_latency: float | None = None
    score: float = Field(..., ge=0, le=1)
    alternatives: list[RoutingAlternative] = Field(default_factory=list)


# ── Refresh bookkeeping ────────────────────────────────────────────────────────

class RefreshRun(BaseModel):
    region: str
    records_ingested: int = Field(0, ge=0)
    forecasts_generated: int = Field(0, ge=0)
    status: RefreshStatus
    message: str | None = None


class RefreshState(BaseModel):
    """Aggregate snapshot written after every refresh cycle."""

    timestamp: datetime
    total_regions: int
    total_records: int
    total_forecasts: int
    status: RefreshStatus
    message: str | None = None


class RefreshSummary(BaseModel):
    run_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_records: int = 0
    total_forecasts: int = 0
    last_run_at: datetime | None = None
    last_status: RefreshStatus | None = None
    last_message: str | None = None


# ── Energy equation ────────────────────────────────────────────────────────────

class WorkloadType(str, enum.Enum):
    inference = "inference"
    training = "training"
    batch = "batch"


class HardwareMix(BaseModel):
    cpu: float = Field(..., ge=0, le=1)
    gpu: float = Field(..., ge=0, le=1)
    tpu: float = Field(..., ge=0, le=1)


class DeadlineWindow(BaseModel):
    start: datetime
    end: datetime


class EnergyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    request_volume: float = Field(
        ..., gt=0, validation_alias=AliasChoices("request_volume", "requestVolume")
    )
    workload_type: WorkloadType = Field(
        ..., validation_alias=AliasChoices("workload_type", "workloadType")
    )
    model_size: str | None = Field(
        None, validation_alias=AliasChoices("model_size", "modelSize")
    )
    region_targets: list[str] = Field(
        ..., validation_alias=AliasChoices("region_targets", "regionTargets")
    )
    carbon_budget: float | None = Field(
        None, gt=0, validation_alias=AliasChoices("carbon_budget", "carbonBudget")
    )
    deadline_window: DeadlineWindow | None = Field(
        None, validation_alias=AliasChoices("deadline_window", "deadlineWindow")
    )
    hardware_mix: HardwareMix | None = Field(
        None, validation_alias=AliasChoices("hardware_mix", "hardwareMix")
    )


class RegionEstimate(BaseModel):
    region: str
    intensity: float
    estimated_co2_g: float
    estimated_energy_kwh: float


class RegionRecommendation(RegionEstimate):
    rank: int
    score: float


class EnergyResponse(BaseModel):
    routing_recommendation: list[RegionRecommendation]
    region_estimates: list[RegionEstimate]
    total_estimated_co2_g: float
    within_budget: bool
