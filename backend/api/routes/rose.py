"""API routes for the live wind rose."""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from backend.schemas.rose import PointerResponse, PreloadResponse, RoseSnapshotResponse
from backend.services.rose_service import RoseService
from backend.api.dependencies import get_rose_service
from windrose.exceptions import HistoryFormatError, PreloadInProgressError

router = APIRouter(prefix="/rose", tags=["rose"])


@router.get("", response_model=RoseSnapshotResponse)
async def get_rose(
    rose_service: RoseService = Depends(get_rose_service),
) -> RoseSnapshotResponse:
    """
    Get the live rose.

    Returns bucket counts, arc frequencies, the frequency scale and the
    derived wedge, scale ring and key geometry.
    """
    return rose_service.get_snapshot()


@router.get("/pointer", response_model=PointerResponse)
async def get_pointer(
    rose_service: RoseService = Depends(get_rose_service),
) -> PointerResponse:
    """Get the smoothly interpolated wind pointer for the lagged current time."""
    result = rose_service.get_pointer()
    if result is None:
        raise HTTPException(status_code=404, detail="Not enough readings for the pointer")
    return result


@router.post("/preload", response_model=PreloadResponse, status_code=202)
async def post_preload(
    payload: Dict[str, Any] = Body(...),
    rose_service: RoseService = Depends(get_rose_service),
) -> PreloadResponse:
    """
    Load a bulk history payload (simple or delta format) into the rose.

    The payload is validated immediately and applied in the background.
    """
    try:
        rose_service.start_preload(payload)
    except HistoryFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PreloadInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"status": "preloading"}
