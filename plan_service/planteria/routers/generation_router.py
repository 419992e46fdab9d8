"""Background generation worker status."""
from fastapi import APIRouter

from planteria.schemas.generation import GenerationStatusResponse
from planteria.services.generation_worker import get_generation_status

router = APIRouter(prefix="/api/generation", tags=["generation"])


@router.get("/status", response_model=GenerationStatusResponse)
async def get_worker_status() -> GenerationStatusResponse:
    """Worker state: enabled, running, queue size, processed/failed counters, dead letters."""
    return GenerationStatusResponse(**get_generation_status())
