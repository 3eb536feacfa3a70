"""Smoothly interpolated wind pointer driven by a lagged clock."""
import asyncio
import logging
import math
import re
import time
from collections import deque
from typing import Callable, Optional, Tuple

import numpy as np

from windrose.config import DEFAULT_FRAME_INTERVAL
from windrose.models.rose import PointerState
from windrose.services.aggregator import WindRose
from windrose.services.bucket_model import BandPalette

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class PointerResampler:
    """
    Resamples the rose's reading queue into a continuously moving pointer.

    The pointer runs ``lag`` ms behind real time so that there are always
    real samples on both sides of the interpolation point. Between samples
    the wind vector follows a Catmull-Rom spline through the latest sample at
    or before the lagged time and the three samples after it.
    """

    def __init__(
        self,
        rose: WindRose,
        lag: Optional[float] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the resampler.

        Args:
            rose: Rose whose readings drive the pointer
            lag: Delay in ms (defaults to the rose's lag option)
            clock: Returns the current time in ms
        """
        self.rose = rose
        self.lag = rose.options.lag if lag is None else lag
        self._clock = clock or (lambda: time.time() * 1000)

    def sample(self, now: Optional[float] = None) -> Optional[PointerState]:
        """
        Compute the pointer for a moment in time.

        Args:
            now: Real time in ms (defaults to the clock)

        Returns:
            Pointer state, or None if fewer than two samples bracket the
            lagged time or the rose has no bands yet
        """
        palette = self.rose.palette
        if palette is None:
            return None
        lagged = (self._clock() if now is None else now) - self.lag
        oldest = self.rose.oldest_when
        if oldest is None or oldest > lagged:
            return None

        # The three samples following p0, newest first
        following = deque(maxlen=3)
        for reading in self.rose.iter_newest():
            if following and reading.when <= lagged:
                p0 = reading
                break
            following.append(reading)
        else:
            return None

        p1, *rest = reversed(following)
        p2 = rest[0] if rest else p1
        p3 = rest[1] if len(rest) > 1 else p2

        if p1.when == p0.when:
            t = 1.0
        else:
            t = min(max((lagged - p0.when) / (p1.when - p0.when), 0.0), 1.0)
        x = catmull_rom(p0.x, p1.x, p2.x, p3.x, t)
        y = catmull_rom(p0.y, p1.y, p2.y, p3.y, t)
        speed = math.hypot(x, y)

        band, fill = pointer_fill(speed, palette)
        scale = self.rose.options.radius / palette.top_speed
        return PointerState(
            x=x,
            y=y,
            speed=speed,
            fill=fill,
            band=band,
            offset_x=round(x * scale),
            offset_y=round(y * scale),
            label=f"{speed:.1f}{self.rose.options.units}",
        )


def catmull_rom(p0: float, p1: float, p2: float, p3: float, t: float) -> float:
    """Catmull-Rom spline segment from p1 (t=0) to p2 (t=1)."""
    return 0.5 * (
        2 * p1
        + (-p0 + p2) * t
        + (2 * p0 - 5 * p1 + 4 * p2 - p3) * t * t
        + (-p0 + 3 * p1 - 3 * p2 + p3) * t * t * t
    )


def pointer_fill(speed: float, palette: BandPalette) -> Tuple[int, Optional[str]]:
    """
    Pick the pointer color for a speed.

    Below the first boundary the first band color is used and above the
    last real boundary the top band color. In between, the colors of the two
    bracketing boundaries are blended by the position within the interval.

    Returns:
        (band, color)
    """
    bands = palette.bands
    top = len(bands) - 1
    if speed <= bands[0]:
        return 0, palette.color(0)
    if palette.has_sentinel and top > 0 and speed >= bands[top - 1]:
        return top, palette.color(top)

    for band in range(1, len(bands)):
        if bands[band] >= speed:
            low, high = bands[band - 1], bands[band]
            fraction = (speed - low) / (high - low)
            return band, blend_colors(palette.color(band - 1), palette.color(band), fraction)
    return top, palette.color(top)


def blend_colors(c0: Optional[str], c1: Optional[str], fraction: float) -> Optional[str]:
    """
    Mix two colors, ``fraction`` of the way from c0 to c1.

    Hex colors are mixed numerically; anything else becomes a CSS
    color-mix() expression.
    """
    if c0 is None or c1 is None:
        return c1 or c0
    rgb0 = _parse_hex(c0)
    rgb1 = _parse_hex(c1)
    if rgb0 is not None and rgb1 is not None:
        mixed = np.rint(rgb0 * (1 - fraction) + rgb1 * fraction).astype(int)
        return "#{:02x}{:02x}{:02x}".format(*mixed)
    return f"color-mix(in srgb, {c0}, {c1} {round(fraction * 100)}%)"


def _parse_hex(color: str) -> Optional[np.ndarray]:
    """Parse "#rgb" or "#rrggbb" into an RGB array."""
    match = _HEX_COLOR.match(color.strip())
    if not match:
        return None
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(d * 2 for d in digits)
    return np.array([int(digits[i:i + 2], 16) for i in (0, 2, 4)], dtype=float)


class PointerAnimator:
    """
    Runs the resampler once per display frame until stopped.

    Errors in a frame are logged and the next frame runs as usual.
    """

    def __init__(
        self,
        resampler: PointerResampler,
        on_frame: Callable[[PointerState], None],
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
    ):
        self.resampler = resampler
        self.on_frame = on_frame
        self.frame_interval = frame_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        """Whether the frame loop is active."""
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the frame loop on the running event loop."""
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        """Cancel the frame loop."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def step(self, now: Optional[float] = None) -> Optional[PointerState]:
        """Render one frame; never raises."""
        try:
            state = self.resampler.sample(now)
            if state is not None:
                self.on_frame(state)
            return state
        except Exception:
            logger.exception("Wind rose %r: pointer frame failed", self.resampler.rose.name)
            return None

    async def _run(self) -> None:
        while True:
            self.step()
            await asyncio.sleep(self.frame_interval)
