"""Tests for CarbonSampleStore batching against a recording session factory."""

from datetime import timedelta

import pytest

from fakes import FIXED_NOW
from greenroute.models.carbon_intensity import IntensitySource
from greenroute.schemas import CarbonSample
from greenroute.services import sample_store
from greenroute.services.sample_store import CarbonSampleStore


class RecordingSession:
    def __init__(self, log: list) -> None:
        self.log = log

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, statement):
        self.log.append(("execute", statement))

    async def commit(self):
        self.log.append(("commit", None))


@pytest.fixture
def session_log() -> list:
    return []


@pytest.fixture
def recorded_rows(monkeypatch) -> list[list[dict]]:
    """Row batches handed to the upsert builder, in call order."""
    batches: list[list[dict]] = []
    build = sample_store.build_sample_upsert

    def _recording_build(rows):
        batches.append(list(rows))
        return build(rows)

    monkeypatch.setattr(sample_store, "build_sample_upsert", _recording_build)
    return batches


@pytest.fixture
def real_store(session_log) -> CarbonSampleStore:
    return CarbonSampleStore(lambda: RecordingSession(session_log))


def _sample(value: float, hours_ago: int = 0, source=IntensitySource.PROVIDER) -> CarbonSample:
    return CarbonSample(
        region="DE",
        timestamp=FIXED_NOW - timedelta(hours=hours_ago),
        intensity=value,
        source=source,
    )


class TestUpsertMany:
    async def test_duplicate_keys_collapse_to_last_value(
        self, real_store, recorded_rows, session_log
    ):
        written = await real_store.upsert_many(
            [_sample(300), _sample(120, hours_ago=1), _sample(310, source=IntensitySource.DERIVED)]
        )

        assert written == 2
        assert len(recorded_rows) == 1
        rows = {(r["region"], r["timestamp"]): r for r in recorded_rows[0]}
        assert len(rows) == 2
        assert rows[("DE", FIXED_NOW)]["carbon_intensity"] == 310
        assert rows[("DE", FIXED_NOW)]["source"] == IntensitySource.DERIVED
        assert [kind for kind, _ in session_log] == ["execute", "commit"]

    async def test_large_batches_are_chunked(self, real_store, recorded_rows, session_log):
        written = await real_store.upsert_many([_sample(100, hours_ago=h) for h in range(1200)])

        assert written == 1200
        assert [len(batch) for batch in recorded_rows] == [500, 500, 200]
        assert [kind for kind, _ in session_log] == ["execute"] * 3 + ["commit"]

    async def test_empty_input_opens_no_session(self, real_store, recorded_rows, session_log):
        assert await real_store.upsert_many([]) == 0
        assert recorded_rows == []
        assert session_log == []

    async def test_single_upsert_goes_through_batch_path(self, real_store, recorded_rows):
        await real_store.upsert("DE", FIXED_NOW, 250.0)
        assert recorded_rows == [
            [
                {
                    "region": "DE",
                    "timestamp": FIXED_NOW,
                    "carbon_intensity": 250.0,
                    "source": IntensitySource.PROVIDER,
                }
            ]
        ]
