"""Accumulator — thread-safe gravity sums, path tallies and progress reports.

Worker threads hand each finished cell to :meth:`Accumulator.record_cell`,
which takes the accumulator lock once and folds in every body's
contribution. Cells outside the object are counted by
:meth:`Accumulator.skip_cell`.

Once every body of a cell has reported, one :class:`VisualizationSample`
is pushed to the injected sink. The colour channel of body ``i``
(0 → red, 1 → green, 2 → blue) starts at 0.5 and moves towards 0 when the
cell's pull exceeds the Newtonian pull on the object centre, towards 1
when it falls short.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence

from occlusion_engine.bodies import BodyRegistry, NewtonBaseline
from occlusion_engine.classifier import Contribution, OcclusionPath, TERMINAL_PATHS
from occlusion_engine.geometry import DirectedVector, Point3
from occlusion_engine.precision import Real
from simulation.grid import GridCell

logger = logging.getLogger(__name__)

_COLOUR_CHANNELS = 3


# ---------------------------------------------------------------------------
# Visualization feed
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VisualizationSample:
    """One simulated cell, ready for display.

    Attributes
    ----------
    x, y, z : int
        Lattice index shifted to start at 0.
    r, g, b : float
        Colour channels in [0, 1], one per body.
    a : float
        Alpha, ``1 / (2 * steps_on_edge)``.
    paths : tuple[str, ...]
        Comma-joined path trail per body.
    """

    x: int
    y: int
    z: int
    r: float
    g: float
    b: float
    a: float
    paths: tuple[str, ...]


class SampleSink(Protocol):
    """Anything that accepts visualization samples."""

    def push(self, sample: VisualizationSample) -> None:
        ...


class NullSink:
    """Discards every sample."""

    def push(self, sample: VisualizationSample) -> None:
        return None


class SampleFeed:
    """Unbounded multi-producer queue of samples with a draining consumer."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[VisualizationSample] = queue.SimpleQueue()

    def push(self, sample: VisualizationSample) -> None:
        self._queue.put(sample)

    def drain(self) -> list[VisualizationSample]:
        """Remove and return everything queued so far."""
        samples: list[VisualizationSample] = []
        while True:
            try:
                samples.append(self._queue.get_nowait())
            except queue.Empty:
                return samples

    def empty(self) -> bool:
        return self._queue.empty()


def channel_shade(scale: Real | None, newton_scale: Real) -> float:
    """Colour channel value for one body's pull on one cell."""
    shade = 0.5
    if scale is None:
        return shade
    if scale > newton_scale:
        shade -= 0.5 - float(newton_scale / scale) / 2.0
    else:
        shade += 0.5 - float(scale / newton_scale) / 2.0
    return shade


# ---------------------------------------------------------------------------
# Final report
# ---------------------------------------------------------------------------


@dataclass
class SimulationReport:
    """Results of a full grid scan.

    Attributes
    ----------
    body_names : tuple[str, ...]
    cells_total : int
        Candidate cells, ``(2 n)³``.
    cells_done : int
        Cells completed or skipped.
    cells_taken : int
        Cells inside the object.
    aggregate_mean : Point3 or None
        Summed acceleration divided by ``cells_taken`` [km/s²].
    per_body_mean : tuple[Point3, ...]
    newton : NewtonBaseline
    path_counts : tuple[int, ...]
        Tally of every trail entry, one slot per :class:`OcclusionPath`.
    terminal_counts : tuple[int, ...]
        Tally of terminal paths only.
    metadata : dict
    """

    body_names: tuple[str, ...]
    cells_total: int
    cells_done: int
    cells_taken: int
    aggregate_mean: Point3 | None
    per_body_mean: tuple[Point3, ...]
    newton: NewtonBaseline
    path_counts: tuple[int, ...]
    terminal_counts: tuple[int, ...]
    metadata: dict = field(default_factory=dict)

    @property
    def terminal_total(self) -> int:
        return sum(self.terminal_counts)


# ---------------------------------------------------------------------------
# Accumulator
# ---------------------------------------------------------------------------


class Accumulator:
    """Shared state of one grid scan.

    Parameters
    ----------
    registry : BodyRegistry
        Bodies, constants and arithmetic context.
    steps_on_edge : int
        Grid half-width, for sample indices and alpha.
    sink : SampleSink, optional
        Receives one sample per completed cell.
    progress_interval : int
        Completed cells between progress lines.
    report_interval : int
        Completed cells between running-mean lines.
    """

    def __init__(
        self,
        registry: BodyRegistry,
        steps_on_edge: int,
        sink: SampleSink | None = None,
        progress_interval: int = 100,
        report_interval: int = 500,
    ) -> None:
        self.registry = registry
        self.kernel = registry.kernel
        self.steps_on_edge = steps_on_edge
        self.cells_total = (2 * steps_on_edge) ** 3
        self.sink = sink if sink is not None else NullSink()
        self.progress_interval = progress_interval
        self.report_interval = report_interval
        self.newton = registry.newton_baseline()

        self._lock = threading.RLock()
        self._num_bodies = len(registry.bodies)
        self._aggregate = Point3.origin(self.kernel)
        self._per_body = [Point3.origin(self.kernel) for _ in registry.bodies]
        self._path_counts = [0] * len(OcclusionPath)
        self._terminal_counts = [0] * len(OcclusionPath)
        self._pending: dict[tuple[int, int, int], list] = {}
        self.cells_done = 0
        self.cells_taken = 0
        self._started = time.perf_counter()

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def cell_taken(self) -> None:
        """A cell inside the object has started processing."""
        with self._lock:
            self.cells_taken += 1

    def skip_cell(self) -> None:
        """A cell outside the object is done without simulation."""
        with self._lock:
            self.cells_done += 1
            self._maybe_report_progress()

    # ------------------------------------------------------------------
    # Contributions
    # ------------------------------------------------------------------

    def contribute(self, cell: GridCell, body_index: int, contribution: Contribution) -> Real | None:
        """Fold one body's visible mass for ``cell`` into the sums.

        Returns
        -------
        Real or None
            Magnitude of the resulting pull, None for a hidden body.
        """
        k = self.kernel
        with self._lock:
            scale = None
            if contribution.mass is not None:
                line = DirectedVector.between(cell.centroid, contribution.centroid, k)
                scale = k.div(
                    self.registry.gravitational_constant * contribution.mass,
                    line.magnitude * line.magnitude,
                )
                pull = line.unit.scaled(scale)
                self._aggregate = self._aggregate.offset(pull)
                self._per_body[body_index] = self._per_body[body_index].offset(pull)

            for tag in contribution.trail:
                self._path_counts[tag] += 1
            self._terminal_counts[contribution.path] += 1

            slots = self._pending.setdefault(cell.index, [None] * self._num_bodies)
            slots[body_index] = (scale, contribution.trail_text())
            if all(slot is not None for slot in slots):
                del self._pending[cell.index]
                self.sink.push(self._sample(cell, slots))
            return scale

    def record_cell(self, cell: GridCell, contributions: Sequence[Contribution]) -> None:
        """Fold a whole cell in one critical section and mark it done."""
        with self._lock:
            for body_index, contribution in enumerate(contributions):
                self.contribute(cell, body_index, contribution)
            self.cells_done += 1
            self._maybe_report_progress()

    def _sample(self, cell: GridCell, slots: list) -> VisualizationSample:
        n = self.steps_on_edge
        shades = [0.5] * _COLOUR_CHANNELS
        for i, (scale, _) in enumerate(slots[:_COLOUR_CHANNELS]):
            shades[i] = channel_shade(scale, self.newton.per_body_scale[i])
        ix, iy, iz = cell.index
        return VisualizationSample(
            x=ix + n,
            y=iy + n,
            z=iz + n,
            r=shades[0],
            g=shades[1],
            b=shades[2],
            a=1.0 / (2 * n),
            paths=tuple(text for _, text in slots),
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def _mean(self, total: Point3) -> Point3 | None:
        if self.cells_taken == 0:
            return None
        return total.scaled(self.kernel.div(self.kernel.one, self.kernel.real(self.cells_taken)))

    def _maybe_report_progress(self) -> None:
        done = self.cells_done
        if done % self.progress_interval != 0:
            return
        percent = 100.0 * done / self.cells_total if self.cells_total else 100.0
        logger.info(
            "Completed %d with %d taken, or %6.2f%% complete. %d threads on the job.",
            done,
            self.cells_taken,
            percent,
            threading.active_count(),
        )
        if done % self.report_interval == 0 and self.cells_taken > 0:
            logger.info("Overall grav impact: %s", self.format_point(self._mean(self._aggregate)))

    def format_point(self, p: Point3 | None, digits: int = 28) -> str:
        if p is None:
            return "<undefined>"
        k = self.kernel
        return f"<{k.format(p.x, digits)}, {k.format(p.y, digits)}, {k.format(p.z, digits)}>"

    @property
    def pending_cells(self) -> int:
        with self._lock:
            return len(self._pending)

    def final_report(self) -> SimulationReport:
        """Snapshot the sums as means over the simulated cells."""
        with self._lock:
            return SimulationReport(
                body_names=self.registry.names,
                cells_total=self.cells_total,
                cells_done=self.cells_done,
                cells_taken=self.cells_taken,
                aggregate_mean=self._mean(self._aggregate),
                per_body_mean=tuple(
                    self._mean(total) or Point3.origin(self.kernel) for total in self._per_body
                ),
                newton=self.newton,
                path_counts=tuple(self._path_counts),
                terminal_counts=tuple(self._terminal_counts),
                metadata={"elapsed_s": time.perf_counter() - self._started},
            )

    def log_report(self, report: SimulationReport | None = None) -> SimulationReport:
        """Log the final means next to the Newtonian baseline, then the path tally."""
        report = report or self.final_report()
        logger.info("=" * 60)
        logger.info("  FINAL GRAVITATIONAL IMPACT (mean over %d cells)", report.cells_taken)
        logger.info("=" * 60)
        logger.info("Overall grav impact:")
        logger.info("  Occluded: %s", self.format_point(report.aggregate_mean))
        logger.info("  Newton:   %s", self.format_point(report.newton.aggregate))
        for i, name in enumerate(report.body_names):
            logger.info("%s grav impact:", name)
            logger.info("  Occluded: %s", self.format_point(report.per_body_mean[i]))
            logger.info("  Newton:   %s", self.format_point(report.newton.per_body[i]))

        logger.info("Paths:")
        row: list[str] = []
        for path in OcclusionPath:
            row.append("%40s:%5d" % (path.label, report.path_counts[path]))
            if len(row) == 4:
                logger.info(" ".join(row))
                row = []
        if row:
            logger.info(" ".join(row))
        terminal = sum(report.terminal_counts[p] for p in TERMINAL_PATHS)
        logger.info(
            "Terminal paths: %d over %d cells x %d bodies",
            terminal, report.cells_taken, len(report.body_names),
        )
        logger.info("=" * 60)
        return report
