"""Service for the live wind rose and its reading history."""
import asyncio
import logging
from typing import Any, Dict, Optional

from windrose.config import SECONDS_THRESHOLD
from windrose.services.aggregator import WindRose
from windrose.services.history_codec import HistoryRequest
from windrose.services.history_log import HistoryLog
from windrose.services.resampler import PointerResampler

logger = logging.getLogger(__name__)


class RoseService:
    """Ties the reading history log to the live rose."""

    def __init__(
        self,
        rose: WindRose = None,
        history_log: HistoryLog = None,
    ):
        """Initialize service with a rose and a history log."""
        # An empty log is falsy (it has a length), so test for None explicitly
        self.rose = rose if rose is not None else WindRose()
        self.history_log = history_log if history_log is not None else HistoryLog()
        self.resampler = PointerResampler(self.rose)
        self.preload_error: Optional[BaseException] = None
        self._preload_task: Optional[asyncio.Task] = None

    def record_reading(
        self,
        direction: float,
        speed: float,
        when: Optional[float] = None,
    ) -> Dict[str, bool]:
        """
        Record a reading in the history log and the live rose.

        Returns:
            Dict with "recorded" (history log) and "inserted" (rose) flags
        """
        if when and when < SECONDS_THRESHOLD:
            when *= 1000
        recorded = self.history_log.append(direction, speed, when)
        inserted = self.rose.insert(direction, speed, when)
        return {"recorded": recorded is not None, "inserted": inserted}

    def get_history(self, request: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Answer a history request from the log."""
        return self.history_log.publish_history(HistoryRequest.from_dict(request))

    def get_snapshot(self) -> Dict[str, Any]:
        """Get the current rose state."""
        return self.rose.snapshot()

    def get_pointer(self, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """Get the interpolated pointer, if enough readings are available."""
        state = self.resampler.sample(now)
        return state.to_dict() if state else None

    def start_preload(self, payload: Dict[str, Any]) -> asyncio.Task:
        """
        Start loading a history payload into the rose.

        A failure while the payload is applied is logged and kept in
        preload_error.

        Raises:
            HistoryFormatError: if the payload is malformed
            PreloadInProgressError: if a preload is already running
        """
        task = self.rose.preload(payload)
        self.preload_error = None
        task.add_done_callback(self._preload_done)
        self._preload_task = task
        return task

    def _preload_done(self, task: asyncio.Task) -> None:
        """Record the outcome of a finished preload task."""
        if task.cancelled():
            logger.warning("Wind rose %r: preload cancelled", self.rose.name)
            return
        error = task.exception()
        if error is not None:
            self.preload_error = error
            logger.error("Wind rose %r: preload failed", self.rose.name, exc_info=error)

    def preload_from_log(self) -> Optional[asyncio.Task]:
        """Start loading the rose from its own history log using the delta format."""
        request = HistoryRequest(
            numarcs=self.rose.geometry.numarcs,
            bands=list(self.rose.bands),
        )
        payload = self.history_log.publish_history(request)
        if not payload or not payload["records"]:
            return None
        return self.start_preload(payload)
