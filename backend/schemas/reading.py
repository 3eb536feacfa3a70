"""Pydantic schemas for anemometer readings."""
from pydantic import BaseModel, Field
from typing import Optional


class ReadingRequest(BaseModel):
    """An anemometer reading as published by the transport."""

    dir: float = Field(description="Direction in degrees")
    speed: float = Field(ge=0, description="Speed in rose units")
    when: Optional[float] = Field(
        default=None, description="Timestamp in ms (or s if below 1e12); now if omitted"
    )


class ReadingResponse(BaseModel):
    """Result of recording a reading."""

    recorded: bool
    inserted: bool
