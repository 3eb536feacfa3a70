"""Pydantic schemas for wind rose data."""
from pydantic import BaseModel
from typing import List, Optional


class ScaleSchema(BaseModel):
    """Frequency scale of the rose."""

    freqsteps: int
    max_freq: float
    min_freq: float
    min_arc_start: int
    min_arc_end: int
    scale: float


class WedgeSchema(BaseModel):
    """One stacked band wedge."""

    arc: int
    band: int
    count: int
    inner_radius: float
    outer_radius: float
    start_angle: float
    end_angle: float
    color: Optional[str] = None


class ScaleRingSchema(BaseModel):
    """One frequency guide circle."""

    radius: float
    label: str
    label_x: float
    label_y: float


class KeyEntrySchema(BaseModel):
    """One speed band entry of the key."""

    band: int
    label: str
    color: Optional[str] = None
    visible: bool


class RoseSnapshotResponse(BaseModel):
    """Response schema for the live rose state."""

    id: str
    total: int
    numarcs: int
    arc_width: float
    bands: List[float]
    counts: List[List[int]]  # [arc][band]
    calm_count: int
    arc_frequencies: List[float]
    scale: Optional[ScaleSchema] = None
    wedges: List[WedgeSchema]
    calm_radius: int
    scale_rings: List[ScaleRingSchema]
    key: List[KeyEntrySchema]
    preloading: bool


class PointerResponse(BaseModel):
    """Response schema for the interpolated pointer."""

    x: float
    y: float
    speed: float
    fill: Optional[str] = None
    band: int
    offset_x: float
    offset_y: float
    label: str


class PreloadResponse(BaseModel):
    """Response schema for an accepted preload."""

    status: str
