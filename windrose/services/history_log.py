"""Bounded log of raw anemometer readings with file persistence."""
import logging
import time
from collections import deque
from pathlib import Path
from typing import Any, Callable, Deque, Mapping, Optional, Tuple, Union

from windrose.config import DEFAULT_HISTORY_SIZE, HISTORY_SAVE_INTERVAL_MS, HISTORY_STEP_MS
from windrose.models.reading import Reading
from windrose.services.history_codec import HistoryRequest, build_history_response
from windrose.utils.file_utils import iter_json_lines, save_json_lines

logger = logging.getLogger(__name__)


class HistoryLog:
    """
    Raw reading history held by the producing side.

    The history file holds one JSON object per line:
    {"dir": <degrees>, "speed": <units>, "when": <ms>}.
    Lines that cannot be parsed are skipped on load.

    The log is disabled (nothing is recorded and history requests are
    answered with None) when history_size is 0 and no file is given.
    """

    def __init__(
        self,
        history_file: Optional[Path] = None,
        history_size: int = 0,
        save_interval_ms: float = HISTORY_SAVE_INTERVAL_MS,
        step: int = HISTORY_STEP_MS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the log.

        Args:
            history_file: JSON-lines file to load from and save to
            history_size: Maximum number of readings kept (defaults to
                86400 when a file is given)
            save_interval_ms: Minimum time between automatic saves
            step: Nominal ms between readings for the delta format
            clock: Returns the current time in ms
        """
        self.history_file = Path(history_file) if history_file else None
        if self.history_file and not history_size:
            history_size = DEFAULT_HISTORY_SIZE
        self.history_size = history_size
        self.save_interval_ms = save_interval_ms
        self.step = step
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._readings: Deque[Reading] = deque(maxlen=history_size or None)
        self._last_save = self._clock()

    @property
    def enabled(self) -> bool:
        """Whether readings are being recorded."""
        return self.history_size > 0

    @property
    def readings(self) -> Tuple[Reading, ...]:
        """Recorded readings, oldest first."""
        return tuple(self._readings)

    def __len__(self) -> int:
        return len(self._readings)

    def load(self) -> int:
        """
        Load readings from the history file, if it exists.

        Returns:
            Number of readings loaded
        """
        if self.history_file is None or not self.history_file.exists():
            return 0

        loaded = []
        skipped = 0
        for _, record in iter_json_lines(self.history_file):
            if not isinstance(record, Mapping):
                skipped += 1
                continue
            try:
                loaded.append(Reading.from_dict(record))
            except ValueError:
                skipped += 1

        loaded.sort(key=lambda r: r.when)
        self._readings.clear()
        self._readings.extend(loaded)

        if skipped:
            logger.debug("Skipped %d malformed lines in %s", skipped, self.history_file)
        logger.info("Loaded %d items from history file %s", len(self._readings), self.history_file)
        return len(self._readings)

    def save(self) -> int:
        """
        Write all readings to the history file.

        Returns:
            Number of readings written
        """
        if self.history_file is None:
            return 0
        count = save_json_lines((r.to_dict() for r in self._readings), self.history_file)
        self._last_save = self._clock()
        logger.info("Saved %d items to history file %s", count, self.history_file)
        return count

    def append(
        self,
        direction: float,
        speed: float,
        when: Optional[float] = None,
    ) -> Optional[Reading]:
        """
        Record a reading, dropping the oldest one beyond history_size.

        The history file is saved when save_interval_ms has passed since the
        last save; a failed periodic save is logged and retried next time.

        Returns:
            The recorded reading, or None if the log is disabled
        """
        if not self.enabled:
            return None
        now = self._clock()
        reading = Reading(direction=direction, speed=speed, when=now if when is None else when)
        self._readings.append(reading)

        if self.history_file and now - self._last_save > self.save_interval_ms:
            try:
                self.save()
            except OSError as e:
                logger.warning("Could not save history file %s: %s", self.history_file, e)
        return reading

    def publish_history(
        self,
        request: Union[HistoryRequest, Mapping[str, Any]],
    ) -> Optional[dict]:
        """
        Answer a history request.

        Returns:
            Delta payload if the request carries numarcs and bands, simple
            payload otherwise, or None if the log is disabled

        Raises:
            HistoryFormatError: if the request is malformed
        """
        if not self.enabled:
            return None
        if not isinstance(request, HistoryRequest):
            request = HistoryRequest.from_dict(request)
        return build_history_response(self._readings, request, step=self.step)
