"""Drawable geometry derived from wind rose bucket counts."""
import math
from typing import List, Optional

import numpy as np

from windrose.models.rose import KeyEntry, ScaleRing, ScaleState, Wedge
from windrose.services.bucket_model import BandPalette


def build_wedges(
    counts: np.ndarray,
    total: int,
    scale: float,
    arc_width: float,
    palette: Optional[BandPalette] = None,
) -> List[Wedge]:
    """
    Build stacked band wedges for every arc.

    Within an arc, each non-empty band is drawn as an annular sector whose
    inner radius is the cumulative frequency of the bands below it. Every
    radius depends on every other bucket of the same arc, so the full set is
    rebuilt on each call.

    Args:
        counts: Bucket counts, shape (numarcs, num_bands)
        total: Total number of readings in the window (including calm)
        scale: Radius units per unit of frequency
        arc_width: Arc width in degrees
        palette: Band colors, if known

    Returns:
        Wedges ordered by arc, then band
    """
    if total == 0:
        return []

    freqs = counts / total
    outer = np.cumsum(freqs, axis=1) * scale
    inner = outer - freqs * scale

    wedges = []
    for arc, band in np.argwhere(counts > 0).tolist():
        wedges.append(Wedge(
            arc=arc,
            band=band,
            count=int(counts[arc, band]),
            inner_radius=float(inner[arc, band]),
            outer_radius=float(outer[arc, band]),
            start_angle=(arc - 0.5) * arc_width,
            end_angle=(arc + 0.5) * arc_width,
            color=palette.color(band) if palette else None,
        ))
    return wedges


def calm_radius(calm_count: int, total: int, scale: float) -> int:
    """Radius of the central calm circle (0 when there are no calm readings)."""
    if total == 0 or calm_count == 0:
        return 0
    return round(calm_count / total * scale)


def build_scale_rings(
    scale_state: ScaleState,
    radius: float,
    freq_step: float,
    arc_width: float,
) -> List[ScaleRing]:
    """
    Build the frequency guide circles.

    Labels are placed along the middle of the least-populated run of arcs so
    they overlap the wedges as little as possible.
    """
    steps = scale_state.freqsteps
    mid_arc = (scale_state.min_arc_start + scale_state.min_arc_end) / 2
    angle = math.radians(mid_arc * arc_width)

    rings = []
    for i in range(1, steps + 1):
        r = round(radius * i / steps)
        rings.append(ScaleRing(
            radius=r,
            label=f"{round(freq_step * i)}%",
            label_x=round(math.sin(angle) * r),
            label_y=round(-math.cos(angle) * r),
        ))
    return rings


def build_key(
    palette: BandPalette,
    units: str,
    minbands: int,
    max_band_seen: int = -1,
) -> List[KeyEntry]:
    """
    Build key entries for all bands.

    The first minbands entries are always visible; the rest appear once a
    reading in that band (or a higher one) has been seen.
    """
    return [
        KeyEntry(
            band=band,
            label=palette.label(band, units),
            color=palette.color(band),
            visible=band < minbands or band <= max_band_seen,
        )
        for band in range(len(palette.bands))
    ]
