"""Geometric primitives — points, directed vectors and the occlusion plane.

All coordinates are kernel reals (see :mod:`occlusion_engine.precision`);
units are kilometres throughout.

Design Notes
------------
- ``Point3`` is immutable and carries no kernel reference. Plain operators
  on its components already run at the kernel precision.
- ``DirectedVector`` holds a unit vector that is exactly ``(0, 0, 0)`` when
  the magnitude is exactly zero, and of unit length otherwise. Callers
  never divide by a zero magnitude.
- ``OcclusionPlane`` is the plane through a cell centroid whose normal is
  the cell's acceleration unit vector. The acceleration side is "above".
"""

from __future__ import annotations

from dataclasses import dataclass

from occlusion_engine.precision import NumericKernel, Real


@dataclass(frozen=True)
class Point3:
    """A point (or free vector) in 3-D space [km]."""

    x: Real
    y: Real
    z: Real

    @classmethod
    def origin(cls, kernel: NumericKernel) -> "Point3":
        return cls(kernel.zero, kernel.zero, kernel.zero)

    @classmethod
    def of(cls, kernel: NumericKernel, x, y, z) -> "Point3":
        """Build a point from anything :meth:`NumericKernel.real` accepts."""
        return cls(kernel.real(x), kernel.real(y), kernel.real(z))

    def offset(self, other: "Point3") -> "Point3":
        """Component-wise sum."""
        return Point3(self.x + other.x, self.y + other.y, self.z + other.z)

    def minus(self, other: "Point3") -> "Point3":
        """Component-wise difference ``self - other``."""
        return Point3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scaled(self, factor: Real) -> "Point3":
        return Point3(self.x * factor, self.y * factor, self.z * factor)

    def dot(self, other: "Point3") -> Real:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def norm_sq(self) -> Real:
        return self.dot(self)

    def distance_sq(self, other: "Point3") -> Real:
        return self.minus(other).norm_sq()

    def is_zero(self) -> bool:
        return self.x == 0 and self.y == 0 and self.z == 0

    def is_inside_sphere(self, center: "Point3", radius_sq: Real) -> bool:
        """True when this point lies in the closed ball (boundary included)."""
        return self.distance_sq(center) <= radius_sq

    def is_equal(self, other: "Point3", digits: int, kernel: NumericKernel) -> bool:
        """True when every component agrees to at least ``digits`` digits."""
        return (
            kernel.equal_to_digits(self.x, other.x, digits)
            and kernel.equal_to_digits(self.y, other.y, digits)
            and kernel.equal_to_digits(self.z, other.z, digits)
        )


@dataclass(frozen=True)
class DirectedVector:
    """A vector anchored at ``origin`` with cached magnitude and unit vector.

    Attributes
    ----------
    origin : Point3
        Tail of the vector.
    direction : Point3
        Head minus tail.
    magnitude : Real
        Euclidean length, >= 0.
    unit : Point3
        ``direction / magnitude``, or the zero vector when the magnitude is
        exactly zero.
    """

    origin: Point3
    direction: Point3
    magnitude: Real
    unit: Point3

    @classmethod
    def between(cls, p1: Point3, p2: Point3, kernel: NumericKernel) -> "DirectedVector":
        """Vector from ``p1`` to ``p2``."""
        return cls.pointing(p1, p2.minus(p1), kernel)

    @classmethod
    def pointing(
        cls, origin: Point3, direction: Point3, kernel: NumericKernel
    ) -> "DirectedVector":
        """Vector anchored at ``origin`` along an explicit ``direction``."""
        if direction.is_zero():
            return cls(
                origin=origin, direction=direction, magnitude=kernel.zero, unit=Point3.origin(kernel)
            )
        magnitude = kernel.sqrt(direction.norm_sq())
        unit = direction.scaled(kernel.div(kernel.one, magnitude))
        return cls(origin=origin, direction=direction, magnitude=magnitude, unit=unit)


class OcclusionPlane:
    """Plane ``A x + B y + C z + D = 0`` through a cell centroid.

    Parameters
    ----------
    normal : Point3
        Acceleration unit vector of the cell; ``(A, B, C)``.
    point : Point3
        Cell centroid the plane passes through.
    kernel : NumericKernel
        Arithmetic context.
    """

    def __init__(self, normal: Point3, point: Point3, kernel: NumericKernel) -> None:
        self.normal = normal
        self.point = point
        self.kernel = kernel
        self.offset = -normal.dot(point)
        self.norm_sq = normal.norm_sq()
        self.norm = kernel.sqrt(self.norm_sq)

    @property
    def is_degenerate(self) -> bool:
        """A zero normal (cell on the rotation axis) defines no plane."""
        return self.norm == 0

    def numerator(self, p: Point3) -> Real:
        return self.normal.dot(p) + self.offset

    def signed_distance(self, p: Point3) -> Real:
        """Signed distance of ``p``; positive on the acceleration side."""
        return self.kernel.div(self.numerator(p), self.norm)

    def foot(self, p: Point3) -> Point3:
        """Perpendicular projection of ``p`` onto the plane."""
        shift = self.kernel.div(self.numerator(p), self.norm_sq)
        return p.minus(self.normal.scaled(shift))
