"""Tests for the lowest-carbon execution window search."""

from datetime import timedelta

import numpy as np
import pytest

from fakes import FIXED_NOW
from greenroute.exceptions import InvalidInputError
from greenroute.schemas import CarbonForecast, Trend
from greenroute.services.forecasting import WindowOptimizer, best_window


class StubEngine:
    """Returns a fixed hourly series starting one hour after FIXED_NOW."""

    def __init__(self, values: list[float]) -> None:
        self.values = values
        self.clock = lambda: FIXED_NOW
        self.calls: list[tuple[str, int]] = []

    async def forecast(self, region, hours_ahead):
        self.calls.append((region, hours_ahead))
        return [
            CarbonForecast(
                region=region,
                forecast_time=FIXED_NOW + timedelta(hours=i + 1),
                predicted_intensity=v,
                confidence=0.8,
                trend=Trend.STABLE,
            )
            for i, v in enumerate(self.values[:hours_ahead])
        ]


# ── best_window ────────────────────────────────────────────────────────────────

def test_best_window_finds_lowest_mean():
    start, avg = best_window(np.array([100.0, 80.0, 60.0, 90.0, 70.0]), 2)
    assert start == 1
    assert avg == pytest.approx(70.0)


def test_best_window_prefers_earliest_on_tie():
    start, _ = best_window(np.array([50.0, 50.0, 90.0, 50.0, 50.0]), 2)
    assert start == 0


def test_best_window_short_series_is_single_window():
    start, avg = best_window(np.array([100.0, 50.0]), 4)
    assert (start, avg) == (0, 75.0)


# ── WindowOptimizer ────────────────────────────────────────────────────────────

class TestWindowOptimizer:
    async def test_window_and_savings(self):
        engine = StubEngine([100, 80, 60, 90, 70])
        window = await WindowOptimizer(engine).find_optimal_window("DE", 2, 5)

        assert engine.calls == [("DE", 5)]
        assert window.start_time == FIXED_NOW + timedelta(hours=2)
        assert window.end_time == window.start_time + timedelta(hours=2)
        assert window.avg_intensity == pytest.approx(70.0)
        # immediate window averages 90
        assert window.savings_percent == pytest.approx(22.222, rel=1e-3)

    async def test_running_now_is_best(self):
        window = await WindowOptimizer(StubEngine([50, 60, 90, 95])).find_optimal_window(
            "FR", 2, 4
        )
        assert window.start_time == FIXED_NOW + timedelta(hours=1)
        assert window.savings_percent == 0.0

    async def test_zero_intensity_has_zero_savings(self):
        window = await WindowOptimizer(StubEngine([0, 0, 0])).find_optimal_window("NO", 1, 3)
        assert window.avg_intensity == 0.0
        assert window.savings_percent == 0.0

    async def test_no_forecast_returns_immediate_default_window(self):
        optimizer = WindowOptimizer(StubEngine([]), default_intensity=400.0)
        window = await optimizer.find_optimal_window("GB", 3, 24)

        assert window.start_time == FIXED_NOW
        assert window.end_time == FIXED_NOW + timedelta(hours=3)
        assert window.avg_intensity == 400.0
        assert window.savings_percent == 0.0

    async def test_series_shorter_than_duration(self):
        window = await WindowOptimizer(StubEngine([100, 50])).find_optimal_window("SE", 4, 2)
        assert window.start_time == FIXED_NOW + timedelta(hours=1)
        assert window.end_time == FIXED_NOW + timedelta(hours=5)
        assert window.avg_intensity == 75.0
        assert window.savings_percent == 0.0

    @pytest.mark.parametrize("duration,look_ahead", [(0, 24), (4, 0), (-1, -1)])
    async def test_rejects_non_positive_arguments(self, duration, look_ahead):
        with pytest.raises(InvalidInputError):
            await WindowOptimizer(StubEngine([100])).find_optimal_window(
                "DE", duration, look_ahead
            )
