"""Electricity Maps carbon-intensity client.

Built once from settings and shared by reference. Without an API key the
client degrades instead of failing: ``current`` answers with the configured
default intensity, ``history`` and ``native_forecast`` return no points.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from greenroute.config import Settings, settings
from greenroute.schemas import IntensityReading

logger = logging.getLogger(__name__)

_LATEST_PATH = "/v3/carbon-intensity/latest"
_HISTORY_PATH = "/v3/carbon-intensity/history"
_FORECAST_PATH = "/v3/carbon-intensity/forecast"


class ElectricityMapsClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        default_intensity: float,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.default_intensity = default_intensity
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "ElectricityMapsClient":
        return cls(
            base_url=cfg.electricity_maps_base_url,
            api_key=cfg.electricity_maps_api_key,
            default_intensity=cfg.default_intensity_g_per_kwh,
            timeout=cfg.electricity_maps_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    # ── Internal helpers ───────────────────────────────────────────────────────

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"auth-token": self.api_key or ""},
            transport=self._transport,
        ) as client:
            resp = await client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()

    @staticmethod
    def _parse_points(items: list[dict[str, Any]], region: str) -> list[IntensityReading]:
        """Convert provider rows to readings, dropping rows without a value."""
        points = []
        for item in items:
            value = item.get("carbonIntensity")
            stamp = item.get("datetime")
            if value is None or stamp is None:
                continue
            points.append(
                IntensityReading(
                    region=item.get("zone") or region,
                    intensity=value,
                    timestamp=stamp,
                )
            )
        return points

    # ── Public API ─────────────────────────────────────────────────────────────

    async def current(self, region: str) -> IntensityReading | None:
        """Latest intensity for *region*, or None when the provider call fails."""
        if not self.configured:
            logger.warning(
                "No Electricity Maps API key, using default %.0f gCO2/kWh for %s",
                self.default_intensity,
                region,
            )
            return IntensityReading(
                region=region,
                intensity=self.default_intensity,
                timestamp=datetime.now(timezone.utc),
            )

        try:
            payload = await self._get(_LATEST_PATH, {"zone": region})
        except httpx.HTTPError as exc:
            logger.warning("Current intensity fetch failed for %s: %s", region, exc)
            return None
        # ValueError covers undecodable JSON here and ValidationError below
        except ValueError as exc:
            logger.warning("Unreadable current intensity for %s: %s", region, exc)
            return None

        if not isinstance(payload, dict):
            logger.warning("Unexpected current intensity payload for %s: %r", region, payload)
            return None
        try:
            points = self._parse_points([payload], region)
        except ValueError as exc:
            logger.warning("Invalid current intensity for %s: %s", region, exc)
            return None
        return points[0] if points else None

    async def history(
        self, region: str, start: datetime, end: datetime
    ) -> list[IntensityReading]:
        """Hourly history for *region* between *start* and *end*.

        HTTP failures propagate so the refresh cycle can record them per region.
        """
        if not self.configured:
            return []

        payload = await self._get(
            _HISTORY_PATH,
            {"zone": region, "start": start.isoformat(), "end": end.isoformat()},
        )
        return self._parse_points(payload.get("history", []), region)

    async def native_forecast(self, region: str) -> list[IntensityReading]:
        """Provider's own forecast; empty when unconfigured or unreachable."""
        if not self.configured:
            return []

        try:
            payload = await self._get(_FORECAST_PATH, {"zone": region})
        except httpx.HTTPError as exc:
            logger.warning("Native forecast fetch failed for %s: %s", region, exc)
            return []

        return self._parse_points(payload.get("forecast", []), region)


# Module-level singleton used throughout the application
intensity_provider = ElectricityMapsClient.from_settings()
