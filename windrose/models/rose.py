"""Value objects describing the derived state of a wind rose."""
from typing import Optional

from attrs import asdict, define


@define(frozen=True)
class ScaleState:
    """Frequency scale derived from the current bucket counts."""

    freqsteps: int  # number of scale rings
    max_freq: float  # highest arc (or calm) frequency before clamping
    min_freq: float
    # First and last arc of the run of least-frequent arcs, used to place labels
    min_arc_start: int
    min_arc_end: int
    scale: float  # radius units per unit of frequency

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return asdict(self)


@define(frozen=True)
class Wedge:
    """Annular sector for one (arc, band) bucket.

    Angles are in degrees clockwise from north; radii are already scaled.
    """

    arc: int
    band: int
    count: int
    inner_radius: float
    outer_radius: float
    start_angle: float
    end_angle: float
    color: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return asdict(self)


@define(frozen=True)
class ScaleRing:
    """One frequency guide circle with its label position."""

    radius: float
    label: str
    label_x: float
    label_y: float

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return asdict(self)


@define(frozen=True)
class KeyEntry:
    """One speed band entry in the rose key."""

    band: int
    label: str
    color: Optional[str]
    visible: bool

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return asdict(self)


@define(frozen=True)
class PointerState:
    """Interpolated pointer position for one animation frame."""

    x: float  # wind vector, speed units
    y: float
    speed: float
    fill: Optional[str]
    band: int
    offset_x: float  # wind vector scaled to the rose radius
    offset_y: float
    label: str

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return asdict(self)
