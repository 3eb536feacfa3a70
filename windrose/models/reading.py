"""Reading model for anemometer samples."""
import math
from typing import Any, Mapping, Optional

from attrs import define


@define(frozen=True)
class Reading:
    """A single anemometer reading.

    Direction is in degrees [0, 360), speed in the rose units and ``when`` in
    milliseconds since the epoch. ``bucket`` is the bucket index the reading
    was counted in, or None for readings that have not been classified.
    """

    direction: float
    speed: float
    when: int
    bucket: Optional[int] = None

    @property
    def x(self) -> float:
        """East component of the wind vector."""
        return math.sin(math.radians(self.direction)) * self.speed

    @property
    def y(self) -> float:
        """South component of the wind vector (screen coordinates, y down)."""
        return -math.cos(math.radians(self.direction)) * self.speed

    def same_sample(self, other: "Reading") -> bool:
        """Check if two readings carry identical timestamp, speed and direction."""
        return (
            self.when == other.when
            and self.speed == other.speed
            and self.direction == other.direction
        )

    def to_dict(self) -> dict:
        """Convert to the history file record layout."""
        return {"dir": self.direction, "speed": self.speed, "when": self.when}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Reading":
        """Create a Reading from a history file record.

        Raises:
            ValueError: if dir, speed or when is missing or not a number
        """
        values = []
        for key in ("dir", "speed", "when"):
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"History record field {key!r} is not a number: {value!r}")
            values.append(value)
        direction, speed, when = values
        return cls(direction=direction, speed=speed, when=int(when))
