"""API routes for the history request protocol."""
from fastapi import APIRouter, Depends, HTTPException

from backend.schemas.history import HistoryRequestSchema
from backend.services.rose_service import RoseService
from backend.api.dependencies import get_rose_service
from windrose.exceptions import HistoryFormatError

router = APIRouter(prefix="/history", tags=["history"])


@router.post("")
async def post_history_request(
    request: HistoryRequestSchema,
    rose_service: RoseService = Depends(get_rose_service),
) -> dict:
    """
    Get the recorded reading history.

    Returns the compact delta format when numarcs and bands are given and
    the simple format otherwise. id and nonce are echoed back.
    """
    try:
        result = rose_service.get_history(request.model_dump(exclude_none=True))
    except HistoryFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="History is not being recorded")
    return result
