"""FastAPI dependencies for dependency injection."""
from functools import lru_cache

from backend.config import settings
from backend.services.rose_service import RoseService
from windrose.services.aggregator import WindRose
from windrose.services.history_log import HistoryLog


@lru_cache()
def get_history_log() -> HistoryLog:
    """Get cached history log instance."""
    return HistoryLog(
        history_file=settings.history_file,
        history_size=settings.history_size,
        step=settings.history_step,
    )


@lru_cache()
def get_wind_rose() -> WindRose:
    """Get cached live rose instance."""
    return WindRose(settings.rose_options(), style=settings.band_style)


@lru_cache()
def get_rose_service() -> RoseService:
    """Get cached rose service instance."""
    return RoseService(
        rose=get_wind_rose(),
        history_log=get_history_log(),
    )
