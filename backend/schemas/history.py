"""Pydantic schemas for the history request protocol."""
from pydantic import BaseModel, Field
from typing import Any, List, Optional


class HistoryRequestSchema(BaseModel):
    """Request for the reading history.

    Supplying numarcs and bands selects the compact delta format.
    """

    when: Optional[float] = Field(default=None, description="Only readings newer than this (ms)")
    numarcs: Optional[int] = Field(default=None, gt=0)
    bands: Optional[List[float]] = None
    id: Optional[Any] = None
    nonce: Optional[Any] = None
    format: Optional[str] = None
