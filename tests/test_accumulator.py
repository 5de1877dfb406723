"""Tests for the thread-safe accumulator and the visualization feed."""

from __future__ import annotations

import logging
import threading

import pytest

from occlusion_engine.classifier import Contribution, OcclusionPath
from occlusion_engine.geometry import Point3
from occlusion_engine.precision import NumericKernel
from simulation.accumulator import (
    Accumulator,
    SampleFeed,
    VisualizationSample,
    channel_shade,
)
from simulation.grid import GridCell


def _cell(kernel: NumericKernel, i: int) -> GridCell:
    return GridCell(index=(i, 0, 0), centroid=Point3.of(kernel, i, 0, 0))


def _whole(body) -> Contribution:
    return Contribution(trail=(OcclusionPath.FULLY_INSIDE_HORIZON,), mass=body.mass, centroid=body.center)


def _hidden() -> Contribution:
    return Contribution(trail=(OcclusionPath.FULLY_BELOW_PLANE,), mass=None, centroid=None)


# ===========================================================================
# Colour Encoding
# ===========================================================================


class TestChannelShade:
    """Per-body colour relative to the Newtonian pull."""

    def test_hidden_body_is_neutral(self, kernel: NumericKernel) -> None:
        assert channel_shade(None, kernel.one) == 0.5

    def test_equal_to_newton_is_neutral(self, kernel: NumericKernel) -> None:
        assert channel_shade(kernel.one, kernel.one) == pytest.approx(0.5)

    def test_stronger_pull_darkens(self, kernel: NumericKernel) -> None:
        assert channel_shade(kernel.two, kernel.one) == pytest.approx(0.25)

    def test_weaker_pull_brightens(self, kernel: NumericKernel) -> None:
        assert channel_shade(kernel.one, kernel.two) == pytest.approx(0.75)


# ===========================================================================
# Accumulation
# ===========================================================================


class TestAccumulator:
    """Sums, counters and samples."""

    def test_full_mass_matches_newton_direction(self, kernel: NumericKernel, registry) -> None:
        acc = Accumulator(registry, steps_on_edge=4)
        cell = _cell(kernel, 0)
        acc.cell_taken()
        acc.record_cell(cell, [_whole(b) for b in registry.bodies])

        report = acc.final_report()
        assert report.cells_taken == 1
        assert report.cells_done == 1
        # a cell at the object centre with nothing hidden feels Newton exactly
        assert kernel.equal_to_digits(report.aggregate_mean.x, report.newton.aggregate.x, 40)
        assert report.aggregate_mean.y == 0

    def test_hidden_body_adds_nothing(self, kernel: NumericKernel, registry) -> None:
        acc = Accumulator(registry, steps_on_edge=4)
        acc.cell_taken()
        scale = acc.contribute(_cell(kernel, 1), 0, _hidden())
        assert scale is None
        assert acc.final_report().per_body_mean[0] == Point3.origin(kernel)

    def test_skip_cell_counts_done_only(self, kernel: NumericKernel, registry) -> None:
        acc = Accumulator(registry, steps_on_edge=4)
        for _ in range(5):
            acc.skip_cell()
        report = acc.final_report()
        assert report.cells_done == 5
        assert report.cells_taken == 0
        assert report.aggregate_mean is None

    def test_sample_emitted_once_all_bodies_reported(self, kernel: NumericKernel, registry) -> None:
        feed = SampleFeed()
        acc = Accumulator(registry, steps_on_edge=4, sink=feed)
        cell = GridCell(index=(-4, 1, 3), centroid=Point3.origin(kernel))

        acc.contribute(cell, 0, _whole(registry.bodies[0]))
        acc.contribute(cell, 1, _hidden())
        assert feed.empty()
        assert acc.pending_cells == 1

        acc.contribute(cell, 2, _whole(registry.bodies[2]))
        samples = feed.drain()
        assert len(samples) == 1
        s: VisualizationSample = samples[0]
        assert (s.x, s.y, s.z) == (0, 5, 7)
        assert s.a == pytest.approx(1.0 / 8.0)
        assert s.g == 0.5
        assert s.paths == ("0", "2", "0")
        assert acc.pending_cells == 0

    def test_trail_tags_all_counted(self, kernel: NumericKernel, registry) -> None:
        acc = Accumulator(registry, steps_on_edge=4)
        body = registry.bodies[0]
        trail = (
            OcclusionPath.INCL_HALF_LENS,
            OcclusionPath.ALSO_HALF_CAP,
            OcclusionPath.CAP_AND_LENS,
        )
        acc.contribute(
            _cell(kernel, 2), 0, Contribution(trail=trail, mass=body.mass, centroid=body.center)
        )
        report = acc.final_report()
        assert report.path_counts[OcclusionPath.INCL_HALF_LENS] == 1
        assert report.path_counts[OcclusionPath.ALSO_HALF_CAP] == 1
        assert report.terminal_counts[OcclusionPath.CAP_AND_LENS] == 1
        assert report.terminal_counts[OcclusionPath.INCL_HALF_LENS] == 0

    def test_concurrent_record_cell(self, kernel: NumericKernel, registry) -> None:
        """Many threads recording distinct cells lose no update."""
        feed = SampleFeed()
        acc = Accumulator(registry, steps_on_edge=20, sink=feed, progress_interval=10**9)
        bodies = registry.bodies
        num_threads, per_thread = 8, 25

        def worker(offset: int) -> None:
            for j in range(per_thread):
                cell = GridCell(index=(offset, j, 0), centroid=Point3.origin(kernel))
                acc.cell_taken()
                acc.record_cell(cell, [_whole(b) for b in bodies])

        threads = [threading.Thread(target=worker, args=(t,)) for t in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        n = num_threads * per_thread
        report = acc.final_report()
        assert report.cells_taken == n
        assert report.cells_done == n
        assert report.path_counts[OcclusionPath.FULLY_INSIDE_HORIZON] == n * len(bodies)
        assert report.terminal_total == n * len(bodies)
        assert len(feed.drain()) == n
        assert kernel.equal_to_digits(report.aggregate_mean.x, report.newton.aggregate.x, 40)

    def test_progress_lines(self, kernel: NumericKernel, registry, caplog) -> None:
        caplog.set_level(logging.INFO, logger="simulation.accumulator")
        acc = Accumulator(registry, steps_on_edge=4, progress_interval=2, report_interval=4)
        for i in range(4):
            acc.cell_taken()
            acc.record_cell(_cell(kernel, i), [_whole(b) for b in registry.bodies])

        text = caplog.text
        assert "Completed 2 with 2 taken" in text
        assert "Completed 4 with 4 taken" in text
        assert "Overall grav impact" in text

    def test_log_report_tallies_paths(self, kernel: NumericKernel, registry, caplog) -> None:
        caplog.set_level(logging.INFO, logger="simulation.accumulator")
        acc = Accumulator(registry, steps_on_edge=4)
        acc.cell_taken()
        acc.record_cell(_cell(kernel, 0), [_whole(b) for b in registry.bodies])
        acc.log_report()
        assert "Fully Inside Horizon (inc):    3" in caplog.text
        assert "Terminal paths: 3 over 1 cells x 3 bodies" in caplog.text
