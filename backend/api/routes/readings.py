"""API routes for live anemometer readings."""
from fastapi import APIRouter, Depends

from backend.schemas.reading import ReadingRequest, ReadingResponse
from backend.services.rose_service import RoseService
from backend.api.dependencies import get_rose_service

router = APIRouter(prefix="/readings", tags=["readings"])


@router.post("", response_model=ReadingResponse)
async def post_reading(
    reading: ReadingRequest,
    rose_service: RoseService = Depends(get_rose_service),
) -> ReadingResponse:
    """
    Record an anemometer reading.

    The reading is appended to the history log and inserted into the live
    rose. Duplicates, and readings arriving while a preload is running, are
    not inserted into the rose.
    """
    return rose_service.record_reading(reading.dir, reading.speed, reading.when)
