"""Classification of wind readings into arc/band buckets."""
import math
from bisect import bisect_right
from typing import Mapping, Optional, Sequence, Tuple

from attrs import define

from windrose.config import (
    CALM_KEY,
    DEFAULT_MAX_SPEED_COLOR,
    MAX_SPEED,
    MAX_SPEED_KEY,
)

# Bucket index for zero-speed readings, independent of direction
CALM_BUCKET = -1


@define(frozen=True)
class ArcGeometry:
    """Division of the circle into equal arcs."""

    numarcs: int
    arc_width: float

    @classmethod
    def from_requested(cls, arc_degrees: float) -> "ArcGeometry":
        """
        Build the geometry for a requested arc size.

        The requested size is a lower bound: the number of arcs is rounded
        up so that the actual arc width divides 360 evenly.
        """
        if not arc_degrees > 0:
            raise ValueError(f"Arc size must be positive, got {arc_degrees}")
        numarcs = math.ceil(360 / arc_degrees)
        return cls(numarcs=numarcs, arc_width=360 / numarcs)

    def center(self, arc: int) -> float:
        """Direction in degrees at the center of an arc."""
        return arc * self.arc_width


def normalize_direction(direction: float, speed: float) -> float:
    """Normalize a direction to [0, 360); calm readings always point to 0."""
    if speed <= 0:
        return 0.0
    direction = direction % 360
    # Tiny negative inputs can round up to exactly 360
    return 0.0 if direction >= 360 else direction


def arc_for(direction: float, numarcs: int, arc_width: Optional[float] = None) -> int:
    """
    Get the arc index for a direction.

    Arc i is centered on i * arc_width, so a direction exactly between two
    arcs rounds to the higher index and 360 wraps back to arc 0.
    """
    width = arc_width or 360 / numarcs
    return math.floor((direction % 360) / width + 0.5) % numarcs


def band_for(speed: float, bands: Sequence[float]) -> int:
    """
    Get the band index for a non-zero speed.

    Bands are right-open: a speed equal to a boundary belongs to the band
    above it. Speeds beyond the last boundary stay in the top band.
    """
    if not bands:
        raise ValueError("No speed bands configured")
    return min(bisect_right(bands, speed), len(bands) - 1)


def bucket_index(arc: int, band: int, numarcs: int) -> int:
    """Combine arc and band into a single bucket index."""
    return band * numarcs + arc


def split_bucket(bucket: int, numarcs: int) -> Tuple[int, int]:
    """Split a non-calm bucket index into (arc, band)."""
    band, arc = divmod(bucket, numarcs)
    return arc, band


def classify(
    direction: float,
    speed: float,
    bands: Sequence[float],
    numarcs: int,
    arc_width: Optional[float] = None,
) -> int:
    """
    Classify a reading into a bucket.

    Args:
        direction: Direction in degrees (any range, wrapped to [0, 360))
        speed: Speed in rose units
        bands: Increasing band upper boundaries, ending with the top sentinel
        numarcs: Number of arcs
        arc_width: Arc width in degrees (defaults to 360 / numarcs)

    Returns:
        CALM_BUCKET for zero speed, otherwise band * numarcs + arc
    """
    if speed <= 0:
        return CALM_BUCKET
    arc = arc_for(direction, numarcs, arc_width)
    return bucket_index(arc, band_for(speed, bands), numarcs)


def polar_to_xy(direction: float, speed: float) -> Tuple[float, float]:
    """Convert direction/speed to (x, y) with north up and y pointing down."""
    rad = math.radians(direction)
    return math.sin(rad) * speed, -math.cos(rad) * speed


def xy_to_polar(x: float, y: float) -> Tuple[float, float]:
    """Convert an (x, y) vector back to (direction, speed)."""
    speed = math.hypot(x, y)
    if speed == 0:
        return 0.0, 0.0
    direction = math.degrees(math.atan2(x, -y))
    return (direction + 360) % 360, speed


@define(frozen=True)
class BandPalette:
    """Speed band boundaries and their colors, discovered from a style lookup."""

    bands: Tuple[int, ...]
    colors: Tuple[Optional[str], ...]
    calm_color: Optional[str] = None

    @classmethod
    def from_style(cls, style: Mapping[str, str]) -> "BandPalette":
        """
        Discover band boundaries by probing "speed1" .. "speed199".

        Every key with a non-empty value becomes a boundary; the open-ended
        top band is always appended. Its color defaults to red when the
        style does not set "speedmax".
        """
        bands = []
        colors = []
        for speed in range(1, MAX_SPEED):
            value = _style_value(style, f"speed{speed}")
            if value:
                bands.append(speed)
                colors.append(value)
        bands.append(MAX_SPEED)
        colors.append(_style_value(style, MAX_SPEED_KEY) or DEFAULT_MAX_SPEED_COLOR)
        return cls(
            bands=tuple(bands),
            colors=tuple(colors),
            calm_color=_style_value(style, CALM_KEY),
        )

    @property
    def has_sentinel(self) -> bool:
        """Whether the last band is the open-ended top band."""
        return bool(self.bands) and self.bands[-1] == MAX_SPEED

    @property
    def top_speed(self) -> float:
        """Highest real boundary, or the sentinel when there is none."""
        if self.has_sentinel and len(self.bands) > 1:
            return self.bands[-2]
        return self.bands[-1]

    def band_range(self, band: int) -> Tuple[float, float]:
        """Get the (low, high) speed interval of a band."""
        low = 0 if band == 0 else self.bands[band - 1]
        return low, self.bands[band]

    def midpoint(self, band: int) -> float:
        """Representative speed of a band."""
        low, high = self.band_range(band)
        return (low + high) / 2

    def color(self, band: int) -> Optional[str]:
        """Color of a band."""
        return self.colors[band]

    def label(self, band: int, units: str) -> str:
        """Key label for a band, e.g. "5-10m/s" or "> 20m/s"."""
        low, high = self.band_range(band)
        if high == MAX_SPEED:
            return f"> {low}{units}"
        return f"{low}-{high}{units}"


def _style_value(style: Mapping[str, str], key: str) -> Optional[str]:
    """Look up a style value, treating empty strings as unset."""
    value = style.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None
