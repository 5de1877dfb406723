"""Visualization module for the per-cell diagnostic feed.

Renders the samples pushed by the accumulator off-screen with matplotlib:
- x-y, x-z and y-z projections of the cell lattice, alpha-composited
- an x-y layer mosaic, one opaque tile per z layer

Each cell's colour encodes how its pull from Earth (red), the Moon (green)
and the Sun (blue) compares with the Newtonian pull on the object centre:
0.5 is unchanged or hidden, darker is stronger, brighter is weaker.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Iterable, Sequence

import matplotlib

matplotlib.use("Agg")  # Non-interactive backend for headless rendering

import matplotlib.pyplot as plt
import numpy as np

from simulation.accumulator import SampleFeed, VisualizationSample

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Layout Configuration
# ---------------------------------------------------------------------------

_BACKGROUND = "#1a1a2e"
_BACKGROUND_RGB = (26 / 255.0, 26 / 255.0, 46 / 255.0)
_DPI = 150

_PROJECTIONS = (
    ("x", "y", "z"),
    ("x", "z", "y"),
    ("y", "z", "x"),
)


# ---------------------------------------------------------------------------
# Image assembly
# ---------------------------------------------------------------------------


def _blank(size: int, dot_size: int = 1) -> np.ndarray:
    image = np.empty((size * dot_size, size * dot_size, 3), dtype=np.float64)
    image[:, :] = _BACKGROUND_RGB
    return image


def project_samples(
    samples: Sequence[VisualizationSample],
    steps_on_edge: int,
    horizontal: str = "x",
    vertical: str = "y",
    depth: str = "z",
) -> np.ndarray:
    """Alpha-composite samples along ``depth`` onto a 2-D image.

    Parameters
    ----------
    samples : sequence of VisualizationSample
        Cells to draw.
    steps_on_edge : int
        Grid half-width; the image is ``2n x 2n`` pixels.
    horizontal, vertical, depth : str
        Axis names ('x', 'y', 'z').

    Returns
    -------
    np.ndarray
        RGB image. Shape: (2n, 2n, 3), row 0 at the top.
    """
    size = 2 * steps_on_edge
    image = _blank(size)
    for s in sorted(samples, key=lambda s: getattr(s, depth)):
        row = size - 1 - getattr(s, vertical)
        col = getattr(s, horizontal)
        colour = np.array((s.r, s.g, s.b), dtype=np.float64)
        image[row, col] = image[row, col] * (1.0 - s.a) + colour * s.a
    return np.clip(image, 0.0, 1.0)


def layer_mosaic(
    samples: Sequence[VisualizationSample],
    steps_on_edge: int,
    dot_size: int = 5,
    border: int = 30,
) -> np.ndarray:
    """Tile every z layer's x-y slice into one image.

    Parameters
    ----------
    samples : sequence of VisualizationSample
        Cells to draw.
    steps_on_edge : int
        Grid half-width.
    dot_size : int
        Pixels per cell edge.
    border : int
        Pixels between tiles and around the mosaic.

    Returns
    -------
    np.ndarray
        RGB image.
    """
    size = 2 * steps_on_edge
    columns = max(1, math.ceil(math.sqrt(size)))
    rows = math.ceil(size / columns)
    tile = size * dot_size
    height = rows * tile + (rows + 1) * border
    width = columns * tile + (columns + 1) * border

    image = np.empty((height, width, 3), dtype=np.float64)
    image[:, :] = _BACKGROUND_RGB
    for s in samples:
        tile_row, tile_col = divmod(s.z, columns)
        top = border + tile_row * (tile + border) + (size - 1 - s.y) * dot_size
        left = border + tile_col * (tile + border) + s.x * dot_size
        image[top:top + dot_size, left:left + dot_size] = (s.r, s.g, s.b)
    return image


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def plot_projections(
    samples: Sequence[VisualizationSample],
    steps_on_edge: int,
    output_path: Path | str | None = None,
    dot_size: int = 5,
    border: int = 30,
    title: str = "Occluded Gravity per Cell",
    dpi: int = _DPI,
) -> plt.Figure:
    """Plot the three projections and the layer mosaic in one figure.

    Parameters
    ----------
    samples : sequence of VisualizationSample
        Cells to draw.
    steps_on_edge : int
        Grid half-width.
    output_path : Path or str, optional
        If provided, save figure to this path.
    dot_size, border : int
        Mosaic cell size and spacing in pixels.
    title : str
        Figure title.
    dpi : int
        Figure resolution.

    Returns
    -------
    matplotlib.figure.Figure
        The generated figure.
    """
    fig, axes = plt.subplots(1, 4, figsize=(20, 5.5), facecolor=_BACKGROUND)

    for ax, (h, v, d) in zip(axes[:3], _PROJECTIONS):
        ax.set_facecolor(_BACKGROUND)
        ax.imshow(
            project_samples(samples, steps_on_edge, h, v, d),
            interpolation="nearest",
            extent=(0, 2 * steps_on_edge, 0, 2 * steps_on_edge),
        )
        ax.set_xlabel(f"{h} index", color="white")
        ax.set_ylabel(f"{v} index", color="white")
        ax.set_title(f"{h}-{v} (through {d})", color="white")
        ax.tick_params(colors="white")
        for spine in ax.spines.values():
            spine.set_edgecolor("#444")

    mosaic_ax = axes[3]
    mosaic_ax.imshow(
        layer_mosaic(samples, steps_on_edge, dot_size, border), interpolation="nearest"
    )
    mosaic_ax.set_title("x-y layers by z", color="white")
    mosaic_ax.axis("off")

    fig.suptitle(title, fontsize=14, fontweight="bold", color="white")
    fig.tight_layout()

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=dpi, facecolor=fig.get_facecolor())
        logger.info("Projection plot saved: %s", output_path)

    plt.close(fig)
    return fig


def render_feed(
    feed: SampleFeed,
    steps_on_edge: int,
    output_path: Path | str,
    dot_size: int = 5,
    border: int = 30,
    body_names: Sequence[str] = (),
    dpi: int = _DPI,
) -> Path | None:
    """Drain ``feed`` and render everything it held.

    The most frequent path trails per body are logged first.

    Returns
    -------
    Path or None
        The saved image, or None when the feed was empty.
    """
    samples = feed.drain()
    if not samples:
        logger.warning("Visualization feed is empty; nothing to render.")
        return None

    logger.info("Rendering %d cell samples", len(samples))
    for i, name in enumerate(body_names):
        trails = sorted(path_summary(samples, i).items(), key=lambda kv: -kv[1])
        logger.info("  %-5s trails: %s", name, ", ".join(f"[{t}] x{n}" for t, n in trails[:4]))

    output_path = Path(output_path)
    plot_projections(
        samples,
        steps_on_edge,
        output_path=output_path,
        dot_size=dot_size,
        border=border,
        dpi=dpi,
    )
    return output_path


def path_summary(samples: Iterable[VisualizationSample], body_index: int) -> dict[str, int]:
    """Count trail strings for one body across ``samples``."""
    counts: dict[str, int] = {}
    for s in samples:
        counts[s.paths[body_index]] = counts.get(s.paths[body_index], 0) + 1
    return counts
