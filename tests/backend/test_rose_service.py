"""Tests for the rose service."""
import asyncio
import logging

from backend.services.rose_service import RoseService
from windrose.exceptions import RoseConsistencyError
from windrose.models.reading import Reading
from windrose.services.aggregator import WindRose
from windrose.services.history_codec import encode_delta
from windrose.services.history_log import HistoryLog

STYLE = {"speed5": "#0000ff", "speed10": "#00ff00", "speedmax": "#ff0000"}
BANDS = [5, 10, 200]
T0 = 1_700_000_000_000


def delta_payload(count):
    source = [Reading(direction=i * 20, speed=3, when=T0 + i * 1000) for i in range(count)]
    return encode_delta(source, 18, BANDS)


class TestRoseService:
    """Tests for RoseService."""

    def test_keeps_empty_history_log(self):
        """An empty log passed in is used, not replaced by a default."""
        log = HistoryLog(history_size=10)
        rose = WindRose(style=STYLE)
        service = RoseService(rose=rose, history_log=log)
        assert service.history_log is log
        assert service.rose is rose

        assert service.record_reading(10, 3, T0) == {"recorded": True, "inserted": True}
        assert len(log) == 1

    def test_defaults(self):
        """Without arguments the service gets a disabled log and a bare rose."""
        service = RoseService()
        assert not service.history_log.enabled
        assert service.rose.bands == ()

    def test_preload_from_log(self):
        """The rose is backfilled from the service's own log."""
        service = RoseService(rose=WindRose(style=STYLE), history_log=HistoryLog(history_size=10))
        for i in range(4):
            service.history_log.append(i * 20, 3, T0 + i * 1000)
        service.history_log.append(0, 3, T0 + 9000)

        async def run():
            await service.preload_from_log()

        asyncio.run(run())
        assert [r.when for r in service.rose.readings] == [
            T0, T0 + 1000, T0 + 2000, T0 + 3000, T0 + 9000
        ]
        assert service.preload_error is None

    def test_preload_from_empty_log(self):
        """Nothing is started when the log holds no readings."""
        service = RoseService(rose=WindRose(style=STYLE), history_log=HistoryLog(history_size=10))
        assert service.preload_from_log() is None

    def test_failed_preload_is_reported(self, caplog):
        """An error while applying a preload is logged and kept."""
        rose = WindRose(style=STYLE)
        rose._counts[0, 0] += 1
        service = RoseService(rose=rose, history_log=HistoryLog(history_size=10))

        async def run():
            task = service.start_preload(delta_payload(3))
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        with caplog.at_level(logging.ERROR):
            asyncio.run(run())
        assert isinstance(service.preload_error, RoseConsistencyError)
        assert not rose.preloading
        assert "preload failed" in caplog.text

    def test_new_preload_clears_error(self):
        """A successful preload resets the previous failure."""
        rose = WindRose(style=STYLE)
        service = RoseService(rose=rose, history_log=HistoryLog(history_size=10))
        service.preload_error = RoseConsistencyError("earlier failure")

        async def run():
            await service.start_preload(delta_payload(3))

        asyncio.run(run())
        assert service.preload_error is None
        assert rose.total == 3
