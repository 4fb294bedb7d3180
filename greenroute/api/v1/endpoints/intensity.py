import logging

from fastapi import APIRouter, Depends, status

from greenroute.dependencies import get_sample_store
from greenroute.schemas import CarbonSample, SampleIngest
from greenroute.services.sample_store import CarbonSampleStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/intensity")


@router.post(
    "/samples",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest carbon-intensity samples",
    description=(
        "Upserts samples keyed by (region, timestamp). Re-sending a timestamp "
        "overwrites its intensity. Accepts region/zone, timestamp/datetime and "
        "intensity/carbonIntensity spellings."
    ),
)
async def ingest_samples(
    body: list[SampleIngest],
    store: CarbonSampleStore = Depends(get_sample_store),
):
    samples = [CarbonSample(**item.model_dump()) for item in body]
    written = await store.upsert_many(samples)
    logger.info("Ingested %d samples (%d distinct keys)", len(samples), written)
    return {"received": len(samples), "written": written}
