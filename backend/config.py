"""Backend configuration."""
from pathlib import Path
from typing import Dict, Optional

from pydantic_settings import BaseSettings

from windrose.config import (
    DEFAULT_ARC_DEGREES,
    DEFAULT_FREQ_MAX,
    DEFAULT_FREQ_MIN,
    DEFAULT_FREQ_STEP,
    DEFAULT_HISTORY_SIZE,
    DEFAULT_LAG_MS,
    DEFAULT_MIN_BANDS,
    DEFAULT_RADIUS,
    DEFAULT_UNITS,
    HISTORY_STEP_MS,
)
from windrose.models.options import RoseOptions


class Settings(BaseSettings):
    """Application settings."""

    # Data paths
    project_root: Path = Path(__file__).parent.parent
    data_dir: Path = project_root / "data"
    history_file: Optional[Path] = data_dir / "history.jsonl"

    # History log
    history_size: int = DEFAULT_HISTORY_SIZE
    history_step: int = HISTORY_STEP_MS
    preload_on_startup: bool = True

    # API settings
    api_title: str = "Wind Rose API"
    api_version: str = "1.0.0"
    cors_origins: list = ["http://localhost:5173", "http://localhost:3000"]

    # Live rose
    rose_id: str = "live"
    arc: float = DEFAULT_ARC_DEGREES
    lag: float = DEFAULT_LAG_MS
    units: str = DEFAULT_UNITS
    radius: float = DEFAULT_RADIUS
    max_data_count: int = 0
    max_data_age: float = 24 * 60 * 60 * 1000  # ms
    freq_step: float = DEFAULT_FREQ_STEP
    freq_min: float = DEFAULT_FREQ_MIN
    freq_max: float = DEFAULT_FREQ_MAX
    minbands: int = DEFAULT_MIN_BANDS

    # Speed band thresholds and colors ("speed<N>" keys, "speedmax", "speed0")
    band_style: Dict[str, str] = {
        "speed0": "#d9d9d9",
        "speed2": "#9ecae1",
        "speed4": "#4292c6",
        "speed6": "#41ab5d",
        "speed8": "#fec44f",
        "speed11": "#fe9929",
        "speed14": "#ec7014",
        "speed17": "#cb181d",
        "speedmax": "#67000d",
    }

    class Config:
        env_prefix = "WINDROSE_"

    def rose_options(self) -> RoseOptions:
        """Build options for the live rose."""
        return RoseOptions(
            id=self.rose_id,
            arc=self.arc,
            lag=self.lag,
            units=self.units,
            radius=self.radius,
            max_data_count=self.max_data_count,
            max_data_age=self.max_data_age,
            freq_step=self.freq_step,
            freq_min=self.freq_min,
            freq_max=self.freq_max,
            minbands=self.minbands,
        )


settings = Settings()
