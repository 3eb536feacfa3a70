"""Tests for the pointer resampler."""
import asyncio
import logging

import pytest

from windrose.models.options import RoseOptions
from windrose.services.aggregator import WindRose
from windrose.services.bucket_model import BandPalette
from windrose.services.resampler import (
    PointerAnimator,
    PointerResampler,
    blend_colors,
    catmull_rom,
    pointer_fill,
)

STYLE = {"speed5": "#0000ff", "speed10": "#00ff00", "speedmax": "#ff0000"}
T0 = 1_700_000_000_000


@pytest.fixture
def rose():
    """Rose with four readings one second apart."""
    rose = WindRose(RoseOptions(radius=100), style=STYLE)
    rose.insert(0, 2, T0)
    rose.insert(90, 4, T0 + 1000)
    rose.insert(180, 6, T0 + 2000)
    rose.insert(270, 8, T0 + 3000)
    return rose


class TestCatmullRom:
    """Tests for the spline segment."""

    def test_endpoints(self):
        """The segment runs from the second to the third control point."""
        assert catmull_rom(0, 1, 2, 3, 0) == 1
        assert catmull_rom(0, 1, 2, 3, 1) == 2

    def test_constant(self):
        """Equal control points give a constant curve."""
        for t in (0, 0.25, 0.5, 0.9):
            assert catmull_rom(3, 3, 3, 3, t) == pytest.approx(3)

    def test_linear(self):
        """Evenly spaced control points give linear motion."""
        assert catmull_rom(0, 1, 2, 3, 0.5) == pytest.approx(1.5)


class TestPointerResampler:
    """Tests for PointerResampler.sample."""

    def test_no_bands(self):
        """A rose without bands produces no pointer."""
        rose = WindRose()
        rose.insert(0, 0, T0)
        assert PointerResampler(rose, lag=0).sample(T0 + 5000) is None

    def test_single_reading(self):
        """One reading is not enough to interpolate."""
        rose = WindRose(style=STYLE)
        rose.insert(0, 3, T0)
        assert PointerResampler(rose, lag=0).sample(T0 + 5000) is None

    def test_before_oldest(self, rose):
        """Nothing is shown before the window starts."""
        assert PointerResampler(rose, lag=0).sample(T0 - 1) is None

    def test_at_sample_time(self, rose):
        """At a sample's time the pointer sits on the following sample."""
        state = PointerResampler(rose, lag=0).sample(T0)
        assert state.x == pytest.approx(4)
        assert state.y == pytest.approx(0, abs=1e-9)
        assert state.speed == pytest.approx(4)
        assert state.band == 0
        assert state.fill == "#0000ff"

    def test_lag_is_applied(self, rose):
        """The pointer runs lag ms behind the clock."""
        resampler = PointerResampler(rose, clock=lambda: T0 + 4000)
        assert resampler.lag == 4000
        state = resampler.sample()
        assert state.speed == pytest.approx(4)

    def test_clamps_at_queue_end(self, rose):
        """Past the newest reading the pointer rests on it."""
        state = PointerResampler(rose, lag=0).sample(T0 + 60_000)
        assert state.x == pytest.approx(-8)
        assert state.y == pytest.approx(0, abs=1e-9)
        assert state.label == "8.0m/s"
        assert state.offset_x == -80

    def test_blended_fill(self, rose):
        """Speeds inside a band blend the bracketing boundary colors."""
        state = PointerResampler(rose, lag=0).sample(T0 + 2000)
        assert state.band == 1
        assert state.fill == "#009966"

    def test_steady_wind(self):
        """A constant wind gives a constant pointer between samples."""
        rose = WindRose(style=STYLE)
        for i in range(5):
            rose.insert(45, 6, T0 + i * 1000)
        resampler = PointerResampler(rose, lag=0)
        for offset in (0, 250, 500, 1750):
            assert resampler.sample(T0 + offset).speed == pytest.approx(6)


class TestPointerFill:
    """Tests for pointer colors."""

    palette = BandPalette.from_style(STYLE)

    def test_below_first_boundary(self):
        """Slow winds use the first band color."""
        assert pointer_fill(1, self.palette) == (0, "#0000ff")

    def test_above_last_real_boundary(self):
        """Fast winds use the top band color."""
        assert pointer_fill(40, self.palette) == (2, "#ff0000")

    def test_blend_endpoints(self):
        """At a boundary the blend equals that boundary's color."""
        assert pointer_fill(5, self.palette) == (0, "#0000ff")
        assert pointer_fill(9.999, self.palette)[1] == "#00ff00"


class TestBlendColors:
    """Tests for color mixing."""

    def test_hex(self):
        """Hex colors are mixed per channel."""
        assert blend_colors("#000000", "#ffffff", 0.5) == "#808080"
        assert blend_colors("#000", "#fff", 1) == "#ffffff"

    def test_named(self):
        """Other colors become a CSS color-mix expression."""
        assert blend_colors("red", "blue", 0.25) == "color-mix(in srgb, red, blue 25%)"

    def test_missing(self):
        """A missing color falls back to the other one."""
        assert blend_colors(None, "#fff", 0.5) == "#fff"
        assert blend_colors("#fff", None, 0.5) == "#fff"


class TestPointerAnimator:
    """Tests for the frame loop."""

    def test_step_calls_on_frame(self, rose):
        """Each step renders one frame."""
        frames = []
        animator = PointerAnimator(PointerResampler(rose, lag=0), frames.append)
        state = animator.step(T0)
        assert frames == [state]

    def test_step_without_pointer(self, rose):
        """No frame is rendered when the pointer cannot be computed."""
        frames = []
        animator = PointerAnimator(PointerResampler(rose, lag=0), frames.append)
        assert animator.step(T0 - 1) is None
        assert frames == []

    def test_step_logs_errors(self, rose, caplog):
        """A failing frame is logged and does not raise."""

        def fail(state):
            raise RuntimeError("render failed")

        animator = PointerAnimator(PointerResampler(rose, lag=0), fail)
        with caplog.at_level(logging.ERROR):
            assert animator.step(T0) is None
        assert "pointer frame failed" in caplog.text

    def test_run_loop(self, rose):
        """The loop keeps rendering frames until stopped."""
        frames = []

        async def run():
            resampler = PointerResampler(rose, lag=0, clock=lambda: T0 + 500)
            animator = PointerAnimator(resampler, frames.append, frame_interval=0.001)
            animator.start()
            assert animator.running
            await asyncio.sleep(0.05)
            animator.stop()
            assert not animator.running

        asyncio.run(run())
        assert len(frames) >= 2
