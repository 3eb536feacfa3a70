"""Options for a single wind rose instance."""
import math
from typing import Optional

from attrs import define, field
from attrs.validators import ge, gt

from windrose.config import (
    DEFAULT_ARC_DEGREES,
    DEFAULT_FREQ_MAX,
    DEFAULT_FREQ_MIN,
    DEFAULT_FREQ_STEP,
    DEFAULT_LAG_MS,
    DEFAULT_MIN_BANDS,
    DEFAULT_RADIUS,
    DEFAULT_UNITS,
)


@define
class RoseOptions:
    """Tunable behavior of a wind rose.

    Attributes:
        id: Identifier used in log messages
        arc: Requested arc size in degrees; the actual size divides 360 evenly
        lag: Delay in ms between a reading and the pointer reaching it
        units: Speed units shown in the key and pointer label
        radius: Radius of the drawn rose
        max_data_count: Maximum readings kept in the window (0 = unbounded)
        max_data_age: Maximum reading age in ms (0 = unbounded)
        freq_step: Gap between scale rings in percent
        freq_min: Lower clamp for the scale's maximum frequency (fraction)
        freq_max: Upper clamp for the scale's maximum frequency (fraction)
        minbands: Minimum number of key entries shown
    """

    id: Optional[str] = None
    arc: float = field(default=DEFAULT_ARC_DEGREES, validator=gt(0))
    lag: float = field(default=DEFAULT_LAG_MS, validator=ge(0))
    units: str = DEFAULT_UNITS
    radius: float = field(default=DEFAULT_RADIUS, validator=gt(0))
    max_data_count: int = field(default=0, validator=ge(0))
    max_data_age: float = field(default=0, validator=ge(0))
    freq_step: float = field(default=DEFAULT_FREQ_STEP, validator=gt(0))
    freq_min: float = field(default=DEFAULT_FREQ_MIN, validator=ge(0))
    freq_max: float = field(default=DEFAULT_FREQ_MAX, validator=ge(0))
    minbands: int = field(default=DEFAULT_MIN_BANDS, validator=ge(1))

    @property
    def numarcs(self) -> int:
        """Number of arcs the circle is divided into."""
        return math.ceil(360 / self.arc)

    @property
    def arc_width(self) -> float:
        """Actual arc width in degrees."""
        return 360 / self.numarcs
