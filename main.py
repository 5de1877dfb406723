"""HorizonOcclusion — CLI entry point.

Estimates the gravitational pull of Earth, the Moon and the Sun on a
rapidly rotating test sphere when mass behind each cell's Rindler horizon
is hidden.

Usage
-----
    python main.py
    python main.py --config config/default_config.yaml --precision 256
    python main.py --workers 8 --no-visualize --log-level DEBUG
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import Callable

_DEBUG_LOGGERS = ("occlusion_engine", "simulation", "visualization")


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging."""
    fmt = "%(name)s [%(levelname)s] %(message)s"
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=fmt,
        stream=sys.stdout,
    )
    for handler in logging.getLogger().handlers:
        handler.setLevel(numeric_level)


def setup_debug_log(path: str | Path) -> Callable[[], None]:
    """Attach a DEBUG file sink to the engine loggers.

    The console keeps its own level; only the file sees DEBUG records.

    Returns
    -------
    Callable[[], None]
        Detaches and closes the sink and restores the previous logger levels.
    """
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(threadName)s %(name)s [%(levelname)s] %(message)s")
    )
    previous: dict[str, int] = {}
    for name in _DEBUG_LOGGERS:
        lg = logging.getLogger(name)
        previous[name] = lg.level
        lg.setLevel(logging.DEBUG)
        lg.addHandler(handler)

    def teardown() -> None:
        for name, level in previous.items():
            lg = logging.getLogger(name)
            lg.removeHandler(handler)
            lg.setLevel(level)
        handler.close()

    return teardown


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        prog="horizon-occlusion",
        description=(
            "HorizonOcclusion — Rindler horizon mass occlusion "
            "for a rotating sphere"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python main.py\n"
            "  python main.py --precision 256 --workers 4\n"
            "  python main.py --config runs/fast.yaml --no-visualize\n"
        ),
    )
    parser.add_argument(
        "--config",
        type=str,
        default="config/default_config.yaml",
        help="Path to run config YAML (default: config/default_config.yaml)",
    )
    parser.add_argument(
        "--precision",
        type=int,
        default=None,
        help="Override working precision in decimal digits (default: from config)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Override worker pool size (default: from config, or 2 x CPUs)",
    )
    parser.add_argument(
        "--no-visualize",
        action="store_true",
        default=False,
        help="Skip rendering of the per-cell projection image",
    )
    parser.add_argument(
        "--no-write-back",
        action="store_true",
        default=False,
        help="Do not write the effective configuration back to --config",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main simulation entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger = logging.getLogger("horizon_occlusion")
    logger.info("=" * 60)
    logger.info("  HorizonOcclusion — Rotating Sphere Occlusion Run")
    logger.info("=" * 60)

    from occlusion_engine.constants import (
        config_to_dict,
        load_config,
        log_assumptions,
        log_platform_info,
        save_config,
    )
    from simulation.accumulator import SampleFeed
    from simulation.runner import SimulationRunner
    from visualization.plotter import render_feed

    # Load configuration
    config_path = Path(args.config)
    logger.info("Loading config: %s", config_path)
    config = load_config(config_path, write_back=False)

    if args.precision is not None:
        config = dataclasses.replace(
            config, numeric=dataclasses.replace(config.numeric, precision_digits=args.precision)
        )
    if args.workers is not None:
        config = dataclasses.replace(
            config, runtime=dataclasses.replace(config.runtime, workers=args.workers)
        )
    if not args.no_write_back:
        save_config(config_to_dict(config), config_path)

    log_platform_info()
    log_assumptions(config)

    teardown_debug = None
    if config.debug.enabled:
        logger.info("Debug log: %s", config.debug.file)
        teardown_debug = setup_debug_log(config.debug.file)

    visualize = config.visualization.enabled and not args.no_visualize
    feed = SampleFeed() if visualize else None

    # Build runner and scan
    runner = SimulationRunner(config=config, sink=feed)
    try:
        report = runner.run()
        runner.accumulator.log_report(report)
    finally:
        if teardown_debug is not None:
            teardown_debug()

    saved = None
    if feed is not None:
        saved = render_feed(
            feed,
            runner.grid.steps_on_edge,
            config.visualization.output,
            dot_size=config.visualization.dot_size,
            border=config.visualization.border,
            body_names=report.body_names,
        )

    # Summary
    logger.info("=" * 60)
    logger.info("  SIMULATION COMPLETE")
    logger.info("=" * 60)
    logger.info("  Cells: %d simulated of %d", report.cells_taken, report.cells_total)
    logger.info("  Wall time: %.1f s", report.metadata.get("wall_time_s", 0))
    if saved is not None:
        logger.info("  Output: %s", saved)
    logger.info("=" * 60)

    return 0


if __name__ == "__main__":
    sys.exit(main())
