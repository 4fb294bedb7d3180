"""Carbon-intensity forecasting and execution-window search.

Predictions are a recency-weighted average of historical samples taken at a
similar hour of day and day of week. With less than a day's worth of history
the provider's own forecast is passed through at reduced confidence.
"""

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view
from sqlalchemy.exc import SQLAlchemyError

from greenroute.config import settings
from greenroute.exceptions import InvalidInputError
from greenroute.schemas import CarbonForecast, CarbonSample, OptimalWindow, Trend

logger = logging.getLogger(__name__)

_CONFIDENCE_FLOOR = 0.5
_CONFIDENCE_CEILING = 0.95
_TREND_BAND = 0.05
_TREND_SAMPLES = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def weekday_sunday_first(ts: datetime) -> int:
    """Day of week with Sunday = 0 through Saturday = 6."""
    return ts.isoweekday() % 7


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


# ── Model pieces ───────────────────────────────────────────────────────────────

def weighted_prediction(values: np.ndarray) -> float:
    """Recency-weighted mean: the k-th most recent value (0-based) weighs 1/(k+1)."""
    weights = 1.0 / np.arange(1, len(values) + 1)
    return round_half_up(float(np.average(values, weights=weights)))


def forecast_confidence(values: np.ndarray, predicted: float) -> float:
    """1 − σ/predicted clamped to [0.5, 0.95].

    σ is the population deviation around *predicted*, not around the sample
    mean, so noisy grids score low even when the prediction sits on the mean.
    """
    spread = float(np.sqrt(np.mean((values - predicted) ** 2)))
    if predicted == 0:
        raw = 1.0 if spread == 0 else -math.inf
    else:
        raw = 1.0 - spread / predicted
    return float(np.clip(raw, _CONFIDENCE_FLOOR, _CONFIDENCE_CEILING))


def detect_trend(values: np.ndarray) -> Trend:
    """Compare the newest three values with the oldest three (newest-first input)."""
    recent = float(values[:_TREND_SAMPLES].mean())
    older = float(values[-_TREND_SAMPLES:].mean())
    if recent > older * (1 + _TREND_BAND):
        return Trend.INCREASING
    if recent < older * (1 - _TREND_BAND):
        return Trend.DECREASING
    return Trend.STABLE


def _history_frame(samples: list[CarbonSample]) -> pd.DataFrame:
    df = pd.DataFrame(
        {
            "ts": pd.to_datetime([s.timestamp for s in samples], utc=True),
            "intensity": [float(s.intensity) for s in samples],
        }
    )
    df = df.sort_values("ts", ascending=False, kind="stable").reset_index(drop=True)
    df["hour"] = df["ts"].dt.hour
    # pandas counts Monday = 0; shift so Sunday = 0 like weekday_sunday_first
    df["weekday"] = (df["ts"].dt.dayofweek + 1) % 7
    return df


# ── Engine ─────────────────────────────────────────────────────────────────────

class ForecastEngine:
    def __init__(
        self,
        store,
        provider,
        *,
        lookback_days: int | None = None,
        min_history: int | None = None,
        native_confidence: float | None = None,
        model_version: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._provider = provider
        self.lookback_days = lookback_days or settings.forecast_lookback_days
        self.min_history = min_history or settings.forecast_min_history
        self.native_confidence = (
            native_confidence
            if native_confidence is not None
            else settings.native_forecast_confidence
        )
        self.model_version = model_version or settings.forecast_model_version
        self.clock = clock

    async def forecast(self, region: str, hours_ahead: int) -> list[CarbonForecast]:
        """Hourly predictions for the next *hours_ahead* hours.

        Offsets with no comparable history are skipped, so the result may be
        shorter than *hours_ahead* and may contain gaps. An empty list means
        "no data", not failure.
        """
        if hours_ahead < 1:
            raise InvalidInputError(f"hours_ahead must be a positive integer, got {hours_ahead}")

        now = self.clock()
        samples = await self._store.query(region, now - timedelta(days=self.lookback_days))

        if len(samples) < self.min_history:
            logger.info(
                "Only %d samples for %s (need %d), using provider forecast",
                len(samples),
                region,
                self.min_history,
            )
            return await self._native_forecast(region, hours_ahead, now)

        history = _history_frame(samples)
        forecasts: list[CarbonForecast] = []
        features: list[dict] = []

        for h in range(1, hours_ahead + 1):
            target = now + timedelta(hours=h)
            hour = target.hour
            weekday = weekday_sunday_first(target)

            # Plain distance: Saturday and Sunday are not treated as neighbours
            similar = ((history["hour"] - hour).abs() <= 1) & (
                (history["weekday"] - weekday).abs() <= 1
            )
            matches = history.loc[similar, "intensity"].to_numpy(dtype=float)
            if matches.size == 0:
                continue

            predicted = weighted_prediction(matches)
            forecasts.append(
                CarbonForecast(
                    region=region,
                    forecast_time=target,
                    predicted_intensity=predicted,
                    confidence=forecast_confidence(matches, predicted),
                    trend=detect_trend(matches),
                )
            )
            features.append(
                {"hour": hour, "dayOfWeek": weekday, "historicalCount": int(matches.size)}
            )

        try:
            await self._store.record_forecasts(forecasts, self.model_version, features)
        except SQLAlchemyError as exc:
            logger.warning("Could not record forecasts for %s: %s", region, exc)
        logger.debug(
            "Forecast for %s: %d/%d offsets from %d samples",
            region,
            len(forecasts),
            hours_ahead,
            len(samples),
        )
        return forecasts

    async def _native_forecast(
        self, region: str, hours_ahead: int, now: datetime
    ) -> list[CarbonForecast]:
        points = await self._provider.native_forecast(region)
        upcoming = [p for p in points if p.timestamp > now][:hours_ahead]
        return [
            CarbonForecast(
                region=p.region,
                forecast_time=p.timestamp,
                predicted_intensity=p.intensity,
                confidence=self.native_confidence,
                trend=Trend.STABLE,
            )
            for p in upcoming
        ]


# ── Window search ──────────────────────────────────────────────────────────────

def best_window(values: np.ndarray, size: int) -> tuple[int, float]:
    """Start index and mean of the lowest-mean run of *size* consecutive values.

    Ties go to the earliest start. A series shorter than *size* is treated as
    a single window covering everything available.
    """
    if len(values) < size:
        return 0, float(values.mean())
    means = sliding_window_view(values, size).mean(axis=1)
    start = int(np.argmin(means))
    return start, float(means[start])


class WindowOptimizer:
    def __init__(
        self,
        engine: ForecastEngine,
        default_intensity: float | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._engine = engine
        self.default_intensity = (
            default_intensity
            if default_intensity is not None
            else settings.default_intensity_g_per_kwh
        )
        self.clock = clock or engine.clock

    async def find_optimal_window(
        self, region: str, duration_hours: int, look_ahead_hours: int
    ) -> OptimalWindow:
        """Lowest-intensity window of *duration_hours* within the forecast horizon."""
        if duration_hours < 1:
            raise InvalidInputError(f"duration_hours must be positive, got {duration_hours}")
        if look_ahead_hours < 1:
            raise InvalidInputError(f"look_ahead_hours must be positive, got {look_ahead_hours}")

        forecasts = await self._engine.forecast(region, look_ahead_hours)
        if not forecasts:
            now = self.clock()
            logger.info("No forecast data for %s, returning immediate window", region)
            return OptimalWindow(
                start_time=now,
                end_time=now + timedelta(hours=duration_hours),
                avg_intensity=self.default_intensity,
                savings_percent=0.0,
            )

        # Windows run over the points as returned; gaps are not interpolated
        values = np.array([f.predicted_intensity for f in forecasts], dtype=float)
        start, best_avg = best_window(values, duration_hours)
        immediate_avg = float(values[:duration_hours].mean())
        savings = 0.0 if immediate_avg == 0 else (immediate_avg - best_avg) / immediate_avg * 100

        start_time = forecasts[start].forecast_time
        return OptimalWindow(
            start_time=start_time,
            end_time=start_time + timedelta(hours=duration_hours),
            avg_intensity=best_avg,
            savings_percent=savings,
        )
