"""Simulation Runner — parallel grid scan of the rotating object.

Orchestrates the full pipeline:
1. Build the arithmetic kernel, body registry and grid
2. Enqueue one task per cell inside the object; count the rest as skipped
3. Each task: acceleration → horizon → classify every body → record the cell
4. Drain the worker pool and produce the final report

Notes
-----
The centripetal acceleration of a cell at distance ρ from the z axis is:

    |a| = ρ · 4π² f²

where f is the rotation rate in revolutions per second. Its horizon is:

    H = c² / |a|

so the tightest horizon belongs to the equator, ρ = R.

The scan thread is the only producer; all tasks are submitted before it
waits. A task that raises is fatal: the first exception is re-raised once
the pool has drained.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait

from occlusion_engine.bodies import BodyRegistry, build_registry
from occlusion_engine.classifier import Contribution, classify
from occlusion_engine.constants import SimulationConfig
from occlusion_engine.precision import NumericKernel
from simulation.accumulator import Accumulator, SampleSink, SimulationReport
from simulation.grid import GridCell, GridSpec, cell_frame

logger = logging.getLogger(__name__)


class SimulationRunner:
    """Grid-scan driver owning the worker pool and the accumulator.

    Parameters
    ----------
    config : SimulationConfig
        Full run configuration loaded from YAML.
    kernel : NumericKernel, optional
        Arithmetic context; built from ``config.numeric`` if omitted.
    sink : SampleSink, optional
        Receives one visualization sample per simulated cell.
    workers : int, optional
        Pool size override.
    poll_interval_s : float
        Bounded wait used while draining the pool.
    """

    def __init__(
        self,
        config: SimulationConfig,
        kernel: NumericKernel | None = None,
        sink: SampleSink | None = None,
        workers: int | None = None,
        poll_interval_s: float = 1.0,
    ) -> None:
        self._config = config
        self.kernel = kernel or NumericKernel(config.numeric.precision_digits)
        self.registry: BodyRegistry = build_registry(config, self.kernel)
        self.grid = GridSpec.build(
            self.kernel,
            self.registry.rotating_object.center,
            self.registry.rotating_object.radius,
            config.sphere.resolution,
        )
        self.workers = workers if workers is not None else config.runtime.resolved_workers
        self.poll_interval_s = poll_interval_s
        self.sink = sink
        self.accumulator = self._new_accumulator()

        logger.info(
            "SimulationRunner initialized: %d digits, %d workers, %d steps per edge",
            self.kernel.digits, self.workers, self.grid.steps_on_edge,
        )

    def _new_accumulator(self) -> Accumulator:
        return Accumulator(
            self.registry,
            self.grid.steps_on_edge,
            sink=self.sink,
            progress_interval=self._config.runtime.progress_interval,
            report_interval=self._config.runtime.report_interval,
        )

    # ------------------------------------------------------------------
    # Per-cell task
    # ------------------------------------------------------------------

    def process_cell(self, cell: GridCell) -> list[Contribution]:
        """Classify every body for ``cell`` and record the result."""
        self.accumulator.cell_taken()
        frame = cell_frame(self.kernel, self.registry, cell)
        contributions = [
            classify(self.kernel, frame.plane, frame.horizon, body)
            for body in self.registry.bodies
        ]
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "cell %s |a|=%s H=%s paths %s",
                cell.index,
                self.kernel.format(frame.magnitude, 12),
                self.kernel.format(frame.horizon, 12),
                "; ".join(
                    f"{body.name}={c.trail_text()}"
                    for body, c in zip(self.registry.bodies, contributions)
                ),
            )
        self.accumulator.record_cell(cell, contributions)
        return contributions

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def log_setup(self) -> None:
        """Log object and body placement plus the tightest horizon."""
        k = self.kernel
        logger.info("Placement:")
        self.registry.log_positions()
        tightest = self.registry.tightest_horizon()
        if tightest is None:
            logger.info("Object does not rotate; no horizon forms.")
        else:
            logger.info("Tightest Rindler horizon will be at %s km from object", k.format(tightest, 20))
        logger.info(
            "Prepping simulation, using reference object with %d steps per edge, "
            "resulting in %d cells to compute across %d bodies.",
            self.grid.steps_on_edge,
            self.grid.total_cells,
            len(self.registry.bodies),
        )

    def run(self) -> SimulationReport:
        """Execute the full grid scan.

        Returns
        -------
        SimulationReport
            Mean accelerations, Newtonian baseline and path tallies.

        Raises
        ------
        Exception
            The first exception raised by any cell task.
        """
        self.accumulator = self._new_accumulator()
        self.log_setup()

        wall_start = time.perf_counter()
        executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="occlusion-cell"
        )
        futures: list[Future] = []
        try:
            for cell in self.grid.cells(self.kernel):
                if self.grid.is_inside(cell):
                    futures.append(executor.submit(self.process_cell, cell))
                else:
                    self.accumulator.skip_cell()
        finally:
            executor.shutdown(wait=False)

        logger.info("All %d cell tasks submitted; waiting for workers.", len(futures))
        self._await(futures)

        for future in futures:
            error = future.exception()
            if error is not None:
                logger.error("Cell task failed: %s", error)
                raise error

        report = self.accumulator.final_report()
        wall_elapsed = time.perf_counter() - wall_start
        report.metadata["wall_time_s"] = wall_elapsed
        report.metadata["workers"] = self.workers
        report.metadata["precision_digits"] = self.kernel.digits

        logger.info(
            "Simulation complete: %.1f seconds wall time (%d cells simulated)",
            wall_elapsed,
            report.cells_taken,
        )
        return report

    def _await(self, futures: list[Future]) -> None:
        """Block until every future is done, in bounded waits."""
        pending = set(futures)
        while pending:
            _, pending = wait(pending, timeout=self.poll_interval_s)
            if pending:
                logger.debug("Still waiting on %d cell tasks", len(pending))
