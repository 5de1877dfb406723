"""Grid scan — lattice of volume cells over the rotating object.

The object's bounding cube is cut into ``(2 n)³`` cubic cells of edge
``s = R / divisor`` with ``n = floor(R / s)``. A cell with lattice index
``(i, j, k)`` in ``[-n, n)³`` has its centroid at ``((i+½)s, (j+½)s,
(k+½)s)``. Only cells whose centroid lies in the closed ball of radius R
are simulated; the rest are counted and skipped.

Each simulated cell feels a centripetal acceleration toward the z axis:

    a = ρ · 4π² f²    along (−x, −y, 0) / ρ

with ρ the distance to the axis and f the rotation rate in rev/s. Its
horizon sits at ``c² / |a|``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from occlusion_engine.bodies import BodyRegistry
from occlusion_engine.geometry import DirectedVector, OcclusionPlane, Point3
from occlusion_engine.precision import NumericKernel, Real


@dataclass(frozen=True)
class GridCell:
    """One candidate volume cell.

    Attributes
    ----------
    index : tuple[int, int, int]
        Lattice index, each in ``[-steps_on_edge, steps_on_edge)``.
    centroid : Point3
        Cell centre [km].
    """

    index: tuple[int, int, int]
    centroid: Point3


@dataclass(frozen=True)
class GridSpec:
    """Discretisation of the rotating object.

    Attributes
    ----------
    resolution : Real
        Cell edge length [km].
    steps_on_edge : int
        Cells from the centre to the edge along one axis.
    radius_sq : Real
        Squared object radius, for the inside test.
    """

    resolution: Real
    steps_on_edge: int
    radius_sq: Real
    center: Point3

    @property
    def total_cells(self) -> int:
        return (2 * self.steps_on_edge) ** 3

    @classmethod
    def build(cls, kernel: NumericKernel, center: Point3, radius: Real, divisor: int) -> "GridSpec":
        resolution = kernel.div(radius, kernel.real(divisor))
        ratio = kernel.div(radius, resolution)
        # binary rounding can land R / (R / n) a hair below n
        nearest = kernel.ctx.nint(ratio)
        if kernel.equal_to_digits(ratio, nearest, kernel.half_precision):
            steps = int(nearest)
        else:
            steps = int(kernel.ctx.floor(ratio))
        return cls(
            resolution=resolution,
            steps_on_edge=steps,
            radius_sq=radius * radius,
            center=center,
        )

    def cells(self, kernel: NumericKernel) -> Iterator[GridCell]:
        """Yield every candidate cell in x-major, then y, then z order."""
        n = self.steps_on_edge
        half = kernel.real("0.5")
        offsets = {i: (kernel.real(i) + half) * self.resolution for i in range(-n, n)}
        for ix in range(-n, n):
            for iy in range(-n, n):
                for iz in range(-n, n):
                    centroid = self.center.offset(Point3(offsets[ix], offsets[iy], offsets[iz]))
                    yield GridCell(index=(ix, iy, iz), centroid=centroid)

    def is_inside(self, cell: GridCell) -> bool:
        return cell.centroid.is_inside_sphere(self.center, self.radius_sq)

    def count_inside(self, kernel: NumericKernel) -> int:
        return sum(1 for cell in self.cells(kernel) if self.is_inside(cell))


@dataclass(frozen=True)
class CellFrame:
    """Per-cell kinematics: acceleration, its plane and the horizon."""

    cell: GridCell
    acceleration: DirectedVector
    magnitude: Real
    horizon: Real
    plane: OcclusionPlane


def cell_acceleration(
    kernel: NumericKernel, registry: BodyRegistry, centroid: Point3
) -> tuple[DirectedVector, Real]:
    """Centripetal acceleration of a point of the rotating object.

    Returns
    -------
    direction : DirectedVector
        Vector from the point to the axis; zero unit vector on the axis.
    magnitude : Real
        |a| [km/s²].
    """
    rel = centroid.minus(registry.rotating_object.center)
    toward_axis = DirectedVector.pointing(
        centroid, Point3(-rel.x, -rel.y, kernel.zero), kernel
    )
    return toward_axis, toward_axis.magnitude * registry.rotating_object.rotation_factor


def horizon_fallback(registry: BodyRegistry) -> Real:
    """Finite horizon beyond every body's outer edge, for |a| = 0."""
    far = max(
        body.center.distance_sq(registry.rotating_object.center) for body in registry.bodies
    )
    kernel = registry.kernel
    largest_radius = max(body.radius for body in registry.bodies)
    return kernel.two * (kernel.sqrt(far) + largest_radius) + kernel.two * registry.rotating_object.radius


def horizon_distance(registry: BodyRegistry, magnitude: Real) -> Real:
    """``c² / |a|``, or :func:`horizon_fallback` when |a| is exactly zero."""
    if magnitude == 0:
        return horizon_fallback(registry)
    return registry.kernel.div(registry.light_speed_sq, magnitude)


def cell_frame(kernel: NumericKernel, registry: BodyRegistry, cell: GridCell) -> CellFrame:
    """Everything the classifier needs about one cell."""
    acceleration, magnitude = cell_acceleration(kernel, registry, cell.centroid)
    return CellFrame(
        cell=cell,
        acceleration=acceleration,
        magnitude=magnitude,
        horizon=horizon_distance(registry, magnitude),
        plane=OcclusionPlane(acceleration.unit, cell.centroid, kernel),
    )

