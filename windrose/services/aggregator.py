"""Windowed wind rose aggregation of live anemometer readings."""
import asyncio
import logging
import math
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from windrose.config import PRELOAD_BATCH_SIZE, SECONDS_THRESHOLD
from windrose.exceptions import (
    BandsNotResolvedError,
    PreloadInProgressError,
    RoseConsistencyError,
)
from windrose.models.options import RoseOptions
from windrose.models.reading import Reading
from windrose.models.rose import KeyEntry, ScaleRing, ScaleState, Wedge
from windrose.services import geometry
from windrose.services.bucket_model import (
    CALM_BUCKET,
    ArcGeometry,
    BandPalette,
    classify,
    normalize_direction,
    split_bucket,
)
from windrose.services.history_codec import band_histogram, decode_payload

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    """Current wall clock time in ms since the epoch."""
    return int(time.time() * 1000)


class WindRose:
    """
    Histogram of recent wind readings bucketed by direction arc and speed band.

    Readings are kept in a time-ordered queue bounded by count and/or age.
    Each queued reading remembers the bucket it was counted in, so eviction
    only has to pop the oldest reading and decrement its bucket. The bucket
    counts live in a (numarcs, num_bands) numpy array plus a scalar count for
    calm readings.
    """

    def __init__(
        self,
        options: Optional[RoseOptions] = None,
        style: Optional[Mapping[str, str]] = None,
        clock: Optional[Callable[[], float]] = None,
        on_update: Optional[Callable[["WindRose"], None]] = None,
        on_scale_change: Optional[Callable[[ScaleState], None]] = None,
    ):
        """
        Initialize an empty rose.

        Args:
            options: Rose options (defaults apply when omitted)
            style: Key/value lookup providing the speed band thresholds and
                colors; may be attached later with set_style
            clock: Returns the current time in ms, used for age eviction
            on_update: Called after every accepted reading (once per batch
                while preloading)
            on_scale_change: Called when the number of scale rings changes
        """
        self.options = options or RoseOptions()
        self.geometry = ArcGeometry.from_requested(self.options.arc)
        self.name = self.options.id or f"wind-rose-{id(self):x}"
        self.on_update = on_update
        self.on_scale_change = on_scale_change

        self._style = style
        self._clock = clock or _now_ms
        self._palette: Optional[BandPalette] = None
        self._counts = np.zeros((self.geometry.numarcs, 0), dtype=np.int64)
        self._calm_count = 0
        self._queue: Deque[Reading] = deque()
        self._scale: Optional[ScaleState] = None
        self._max_band_seen = -1
        self._preloading = False

        self._load_bands()

    # =========================================================================
    # Band discovery
    # =========================================================================

    def set_style(self, style: Mapping[str, str]) -> None:
        """Attach a style lookup; bands are only discovered once."""
        self._style = style
        self._load_bands()

    def _load_bands(self) -> None:
        """Discover band boundaries from the style lookup if not done yet."""
        if self._palette is not None or self._style is None:
            return
        self._palette = BandPalette.from_style(self._style)
        self._counts = np.zeros(
            (self.geometry.numarcs, len(self._palette.bands)), dtype=np.int64
        )
        logger.debug("Wind rose %r: bands=%s", self.name, list(self._palette.bands))

    # =========================================================================
    # Ingestion
    # =========================================================================

    def insert(self, direction: float, speed: float, when: Optional[float] = None) -> bool:
        """
        Add an anemometer reading.

        Args:
            direction: Direction in degrees
            speed: Speed in rose units
            when: Timestamp in ms, or in seconds if below 1e12; now if omitted

        Returns:
            True if the reading was added, False if it was a duplicate or was
            dropped because a preload is in progress
        """
        if self._preloading:
            logger.debug("Wind rose %r: preloading, dropped reading", self.name)
            return False
        if not when:
            when = self._clock()
        elif when < SECONDS_THRESHOLD:
            when *= 1000
        self._load_bands()
        return self._insert(direction, speed, when)

    def _insert(self, direction: float, speed: float, when: float, notify: bool = True) -> bool:
        """Insert, evict and rescale; the caller handles preload exclusion."""
        speed = max(0, speed)
        direction = normalize_direction(direction, speed)
        if speed > 0 and self._palette is None:
            raise BandsNotResolvedError(
                f"Wind rose {self.name!r} has no speed bands; attach a style first"
            )

        bucket = classify(
            direction, speed, self.bands, self.geometry.numarcs, self.geometry.arc_width
        )
        reading = Reading(direction=direction, speed=speed, when=when, bucket=bucket)
        if not self._enqueue(reading):
            return False

        self._count(bucket, 1)
        if bucket != CALM_BUCKET:
            _, band = split_bucket(bucket, self.geometry.numarcs)
            self._max_band_seen = max(self._max_band_seen, band)
        self._evict()
        self._refresh_scale()

        if notify and self.on_update:
            self.on_update(self)
        return True

    def _enqueue(self, reading: Reading) -> bool:
        """
        Insert a reading keeping the queue ordered by time.

        Scans backward from the tail only while the predecessor is not
        strictly older, so the cost depends on how out of order the stream
        is rather than on the queue size.
        """
        queue = self._queue
        if not queue or queue[-1].when < reading.when:
            queue.append(reading)
            return True

        for i in range(len(queue) - 1, -1, -1):
            if queue[i].same_sample(reading):
                return False
            if i == 0 or queue[i - 1].when < reading.when:
                queue.insert(i, reading)
                return True
        return False

    def _count(self, bucket: int, delta: int) -> None:
        """Adjust the count of a bucket."""
        if bucket == CALM_BUCKET:
            self._calm_count += delta
        else:
            arc, band = split_bucket(bucket, self.geometry.numarcs)
            self._counts[arc, band] += delta

    def _evict(self) -> None:
        """Drop the oldest readings while the count or age cap is exceeded."""
        max_count = self.options.max_data_count
        max_age = self.options.max_data_age
        now = self._clock()
        queue = self._queue
        while queue and (
            (max_count and len(queue) > max_count)
            or (max_age and now - queue[0].when > max_age)
        ):
            expired = queue.popleft()
            self._count(expired.bucket, -1)

    # =========================================================================
    # Frequency scale
    # =========================================================================

    def _refresh_scale(self) -> None:
        """
        Recompute arc frequencies and the radial scale.

        The scale listener only fires when the number of scale rings changes,
        not on every reading.

        Raises:
            RoseConsistencyError: if the counts no longer match the queue
        """
        total = len(self._queue)
        if total == 0:
            self._scale = None
            return

        freqs = self.arc_counts / total
        max_freq = max(self._calm_count / total, float(freqs.max()))
        counted = int(self._counts.sum()) + self._calm_count
        if max_freq > 1 or counted != total:
            self._log_grid(total)
            raise RoseConsistencyError(
                f"Wind rose {self.name!r}: max frequency {max_freq}, "
                f"{counted} readings counted for {total} queued"
            )

        min_freq = float(freqs.min())
        min_start = int(np.argmin(freqs))
        min_end = min_start
        while min_end + 1 < len(freqs) and freqs[min_end + 1] == min_freq:
            min_end += 1

        opts = self.options
        clamped = max(min(max_freq, opts.freq_max), opts.freq_min)
        freqsteps = max(1, math.ceil(clamped / (opts.freq_step / 100)))
        scale = opts.radius / (freqsteps * opts.freq_step / 100)

        previous = self._scale
        self._scale = ScaleState(
            freqsteps=freqsteps,
            max_freq=max_freq,
            min_freq=min_freq,
            min_arc_start=min_start,
            min_arc_end=min_end,
            scale=scale,
        )
        if (previous is None or previous.freqsteps != freqsteps) and self.on_scale_change:
            self.on_scale_change(self._scale)

    def _log_grid(self, total: int) -> None:
        """Dump the bucket grid before failing on an inconsistency."""
        logger.error("Wind rose %r: calm=%d/%d", self.name, self._calm_count, total)
        for arc, row in enumerate(self._counts):
            logger.error("Wind rose %r: arc[%d]=%s", self.name, arc, row.tolist())

    # =========================================================================
    # Bulk loading
    # =========================================================================

    def preload(
        self,
        payload: Mapping[str, Any],
        batch_size: int = PRELOAD_BATCH_SIZE,
    ) -> "asyncio.Task[int]":
        """
        Load a bulk history payload without blocking the event loop.

        The payload is validated and decoded immediately, so malformed input
        raises before anything is applied. The decoded readings are then
        applied in batches by a task that yields to the event loop between
        batches. Live inserts are dropped until the task finishes.

        Must be called from a running event loop.

        Returns:
            Task resolving to the number of readings added

        Raises:
            HistoryFormatError: if the payload is malformed
            PreloadInProgressError: if another preload is still running
        """
        if self._preloading:
            raise PreloadInProgressError(f"Wind rose {self.name!r} is already preloading")
        self._load_bands()
        if self._palette is None:
            raise BandsNotResolvedError(
                f"Wind rose {self.name!r} has no speed bands; attach a style first"
            )

        readings = decode_payload(
            payload, self.geometry.numarcs, self.bands, self.geometry.arc_width
        )
        loop = asyncio.get_running_loop()
        self._preloading = True
        return loop.create_task(
            self._apply_preload(readings, payload.get("format"), batch_size)
        )

    async def load(self, payload: Mapping[str, Any]) -> int:
        """Preload a payload and wait for it to be fully applied."""
        return await self.preload(payload)

    async def _apply_preload(self, readings: List[Reading], fmt: str, batch_size: int) -> int:
        """Apply decoded readings in batches, yielding between them."""
        added = 0
        try:
            for offset in range(0, len(readings), batch_size):
                await asyncio.sleep(0)
                for reading in readings[offset:offset + batch_size]:
                    if self._insert(reading.direction, reading.speed, reading.when, notify=False):
                        added += 1
                if self.on_update:
                    self.on_update(self)
        finally:
            self._preloading = False

        if readings:
            logger.info(
                "Wind rose %r: preloaded %d %r records from %s to %s: speed histogram=%s",
                self.name,
                added,
                fmt,
                _iso(readings[0].when),
                _iso(readings[-1].when),
                band_histogram(readings, self.bands),
            )
        return added

    # =========================================================================
    # State access
    # =========================================================================

    @property
    def preloading(self) -> bool:
        """Whether a bulk preload is in progress."""
        return self._preloading

    @property
    def palette(self) -> Optional[BandPalette]:
        """Discovered band palette, or None before discovery."""
        return self._palette

    @property
    def bands(self) -> Tuple[int, ...]:
        """Band upper boundaries; empty before discovery."""
        return self._palette.bands if self._palette else ()

    @property
    def readings(self) -> Tuple[Reading, ...]:
        """Snapshot of the window, oldest first."""
        return tuple(self._queue)

    @property
    def oldest_when(self) -> Optional[float]:
        """Timestamp of the oldest reading in the window."""
        return self._queue[0].when if self._queue else None

    def iter_newest(self) -> Iterator[Reading]:
        """Iterate the window newest first without copying it."""
        return reversed(self._queue)

    @property
    def total(self) -> int:
        """Number of readings in the window."""
        return len(self._queue)

    @property
    def counts(self) -> np.ndarray:
        """Copy of the bucket counts, shape (numarcs, num_bands)."""
        return self._counts.copy()

    @property
    def calm_count(self) -> int:
        """Number of calm readings in the window."""
        return self._calm_count

    @property
    def arc_counts(self) -> np.ndarray:
        """Readings per arc, all bands combined."""
        return self._counts.sum(axis=1)

    @property
    def arc_frequencies(self) -> np.ndarray:
        """Fraction of the window in each arc."""
        total = len(self._queue)
        if total == 0:
            return np.zeros(self.geometry.numarcs)
        return self.arc_counts / total

    @property
    def scale(self) -> Optional[ScaleState]:
        """Current frequency scale, or None while the window is empty."""
        return self._scale

    # =========================================================================
    # Geometry
    # =========================================================================

    def wedges(self) -> List[Wedge]:
        """Stacked band wedges for the current window."""
        if self._scale is None:
            return []
        return geometry.build_wedges(
            self._counts,
            len(self._queue),
            self._scale.scale,
            self.geometry.arc_width,
            self._palette,
        )

    def calm_radius(self) -> int:
        """Radius of the calm circle."""
        if self._scale is None:
            return 0
        return geometry.calm_radius(self._calm_count, len(self._queue), self._scale.scale)

    def scale_rings(self) -> List[ScaleRing]:
        """Frequency guide circles for the current scale."""
        if self._scale is None:
            return []
        return geometry.build_scale_rings(
            self._scale, self.options.radius, self.options.freq_step, self.geometry.arc_width
        )

    def key(self) -> List[KeyEntry]:
        """Key entries for all speed bands."""
        if self._palette is None:
            return []
        return geometry.build_key(
            self._palette, self.options.units, self.options.minbands, self._max_band_seen
        )

    def snapshot(self) -> dict:
        """Summarize the rose as a serializable dictionary."""
        return {
            "id": self.name,
            "total": self.total,
            "numarcs": self.geometry.numarcs,
            "arc_width": self.geometry.arc_width,
            "bands": list(self.bands),
            "counts": self._counts.tolist(),
            "calm_count": self._calm_count,
            "arc_frequencies": self.arc_frequencies.tolist(),
            "scale": self._scale.to_dict() if self._scale else None,
            "wedges": [w.to_dict() for w in self.wedges()],
            "calm_radius": self.calm_radius(),
            "scale_rings": [r.to_dict() for r in self.scale_rings()],
            "key": [k.to_dict() for k in self.key()],
            "preloading": self._preloading,
        }


def _iso(when: float) -> str:
    """Format a ms timestamp as ISO 8601 UTC."""
    return datetime.fromtimestamp(when / 1000, tz=timezone.utc).isoformat()
