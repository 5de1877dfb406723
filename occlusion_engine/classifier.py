"""Occlusion classifier — visible mass of one body as seen from one cell.

Given a cell centroid, its acceleration unit vector and its horizon
distance ``H = c² / |a|``, decide how much of a spherical body still pulls
on the cell and where that visible mass is centred.

The plane through the centroid with the acceleration vector as normal
splits space. The acceleration side ("above") is never hidden. Behind the
plane, matter farther than ``H`` from the cell is hidden.

Decision tree
-------------
::

    H >= outer edge                          -> 0  whole body
    body fully above plane                   -> 1  whole body
    H <= inner edge (body beyond horizon)
        fully below plane                    -> 2  nothing
        plane bisects body                   -> 3  upper hemisphere
        centre above plane                   -> 4  major cap above
        centre below plane                   -> 5  minor cap above
    horizon cuts the body
        fully below plane                    -> 6  lens
        plane cuts body
            lens-equivalent sphere vs plane  -> 7..11
            body cap above plane             -> 12..14
            combine                          -> 15 (cap only) / 16 (cap + lens)

Notes
-----
Tangency and bisection are decided by digit agreement at half the working
precision, never by exact equality. The lens is cut by the plane through a
sphere of equal volume at the lens centre, an approximation kept exactly
as stated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from occlusion_engine.bodies import Body
from occlusion_engine.geometry import DirectedVector, OcclusionPlane, Point3
from occlusion_engine.precision import NumericKernel, Real
from occlusion_engine.solids import (
    MassPoint,
    bisected_sphere,
    combine_masses,
    sphere_sphere_lens,
    spherical_cap,
)

logger = logging.getLogger(__name__)


class OcclusionPath(IntEnum):
    """The 17 diagnostic buckets of the decision tree."""

    FULLY_INSIDE_HORIZON = 0
    FULLY_ABOVE_PLANE = 1
    FULLY_BELOW_PLANE = 2
    HALF_ABOVE_PLANE = 3
    MOSTLY_ABOVE_PLANE = 4
    MOSTLY_BELOW_PLANE = 5
    LENS_INTERSECT_HORIZON = 6
    EXCL_LENS_ABOVE_PLANE = 7
    INCL_LENS_BELOW_PLANE = 8
    INCL_HALF_LENS = 9
    INCL_MINORITY_LENS = 10
    INCL_MAJORITY_LENS = 11
    ALSO_HALF_CAP = 12
    ALSO_MAJORITY_CAP = 13
    ALSO_MINORITY_CAP = 14
    ONLY_CAP = 15
    CAP_AND_LENS = 16

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PATHS


_LABELS = {
    OcclusionPath.FULLY_INSIDE_HORIZON: "Fully Inside Horizon (inc)",
    OcclusionPath.FULLY_ABOVE_PLANE: "Fully Above Accel Plane (inc)",
    OcclusionPath.FULLY_BELOW_PLANE: "Fully Below Accel Plane (exc)",
    OcclusionPath.HALF_ABOVE_PLANE: "Half Above Accel Plane (bth)",
    OcclusionPath.MOSTLY_ABOVE_PLANE: "Mostly Above Accel Plane (bth)",
    OcclusionPath.MOSTLY_BELOW_PLANE: "Mostly Below Accel Plane (bth)",
    OcclusionPath.LENS_INTERSECT_HORIZON: "Lens Intersect Horizon (bth)",
    OcclusionPath.EXCL_LENS_ABOVE_PLANE: "Excl Lens above Accel Plane (exc)",
    OcclusionPath.INCL_LENS_BELOW_PLANE: "Incl Lens below Accel Plane (inc)",
    OcclusionPath.INCL_HALF_LENS: "Incl Half Lens (inc)",
    OcclusionPath.INCL_MINORITY_LENS: "Incl Minority Lens below Accel (bth)",
    OcclusionPath.INCL_MAJORITY_LENS: "Incl Majority Lens below Accel (bth)",
    OcclusionPath.ALSO_HALF_CAP: "Also Half Cap (bth)",
    OcclusionPath.ALSO_MAJORITY_CAP: "Also Majority Cap (bth)",
    OcclusionPath.ALSO_MINORITY_CAP: "Also Minority Cap (bth)",
    OcclusionPath.ONLY_CAP: "Only Cap (inc)",
    OcclusionPath.CAP_AND_LENS: "Cap and Lens (inc)",
}

TERMINAL_PATHS = frozenset({
    OcclusionPath.FULLY_INSIDE_HORIZON,
    OcclusionPath.FULLY_ABOVE_PLANE,
    OcclusionPath.FULLY_BELOW_PLANE,
    OcclusionPath.HALF_ABOVE_PLANE,
    OcclusionPath.MOSTLY_ABOVE_PLANE,
    OcclusionPath.MOSTLY_BELOW_PLANE,
    OcclusionPath.LENS_INTERSECT_HORIZON,
    OcclusionPath.ONLY_CAP,
    OcclusionPath.CAP_AND_LENS,
})


@dataclass(frozen=True)
class Contribution:
    """Outcome of classifying one body for one cell.

    Attributes
    ----------
    trail : tuple[OcclusionPath, ...]
        Every bucket visited, in order; the last one is terminal.
    mass : Real or None
        Visible mass [kg]; None when the body is fully hidden.
    centroid : Point3 or None
        Centre of the visible mass; None when ``mass`` is None.
    """

    trail: tuple[OcclusionPath, ...]
    mass: Real | None
    centroid: Point3 | None

    @property
    def path(self) -> OcclusionPath:
        return self.trail[-1]

    @property
    def excluded(self) -> bool:
        return self.mass is None

    def trail_text(self) -> str:
        return ",".join(str(int(p)) for p in self.trail)


def _whole(path: OcclusionPath, body: Body) -> Contribution:
    return Contribution(trail=(path,), mass=body.mass, centroid=body.center)


def _result(trail: tuple[OcclusionPath, ...], part: MassPoint | None) -> Contribution:
    if part is None:
        return Contribution(trail=trail, mass=None, centroid=None)
    return Contribution(trail=trail, mass=part.mass, centroid=part.centroid)


# ---------------------------------------------------------------------------
# Plane cuts
# ---------------------------------------------------------------------------


def _cap_above_plane(
    kernel: NumericKernel,
    normal: Point3,
    center: Point3,
    radius: Real,
    density: Real,
    mass: Real,
    distance: Real,
    to_center: DirectedVector,
    aligned: bool,
    tags: tuple[OcclusionPath, OcclusionPath, OcclusionPath],
) -> tuple[OcclusionPath, MassPoint]:
    """Part of a sphere on the acceleration side of a plane that cuts it.

    ``tags`` names the (bisected, centre-above, centre-below) outcomes.
    """
    half = kernel.half_precision
    section_radius = kernel.sqrt(radius * radius - distance * distance)
    if kernel.equal_digits(section_radius, radius) > half:
        return tags[0], bisected_sphere(kernel, center, radius, mass, normal)

    if aligned:
        height = to_center.magnitude + radius
        return tags[1], spherical_cap(kernel, center, radius, density, height, to_center.unit)

    height = radius - to_center.magnitude
    return tags[2], spherical_cap(
        kernel, center, radius, density, height, to_center.unit.scaled(-kernel.one)
    )


def _lens_below_plane(
    kernel: NumericKernel,
    plane: OcclusionPlane,
    lens_center: Point3,
    lens_radius: Real,
    lens_mass: Real,
    density: Real,
) -> tuple[OcclusionPath, MassPoint | None]:
    """Part of the lens-equivalent sphere behind the plane."""
    half = kernel.half_precision
    normal = plane.normal
    d_eq = plane.signed_distance(lens_center)
    abs_d_eq = kernel.fabs(d_eq)
    to_lens = DirectedVector.between(plane.foot(lens_center), lens_center, kernel)
    aligned = normal.is_equal(to_lens.unit, half, kernel)

    if lens_radius <= abs_d_eq:
        if aligned:
            return OcclusionPath.EXCL_LENS_ABOVE_PLANE, None
        return OcclusionPath.INCL_LENS_BELOW_PLANE, MassPoint(lens_mass, lens_center)

    section_radius = kernel.sqrt(lens_radius * lens_radius - d_eq * d_eq)
    if kernel.equal_digits(section_radius, lens_radius) > half:
        return OcclusionPath.INCL_HALF_LENS, bisected_sphere(
            kernel, lens_center, lens_radius, lens_mass, normal.scaled(-kernel.one)
        )

    if kernel.equal_digits(abs_d_eq, to_lens.magnitude) < half:
        logger.warning(
            "Lens plane distance %s disagrees with foot-to-centre length %s",
            kernel.format(abs_d_eq),
            kernel.format(to_lens.magnitude),
        )

    if to_lens.unit.is_equal(normal, half, kernel):
        height = lens_radius - abs_d_eq
        return OcclusionPath.INCL_MINORITY_LENS, spherical_cap(
            kernel, lens_center, lens_radius, density, height, to_lens.unit.scaled(-kernel.one)
        )

    height = lens_radius + abs_d_eq
    return OcclusionPath.INCL_MAJORITY_LENS, spherical_cap(
        kernel, lens_center, lens_radius, density, height, to_lens.unit
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def classify(
    kernel: NumericKernel,
    plane: OcclusionPlane,
    horizon: Real,
    body: Body,
) -> Contribution:
    """Classify ``body`` against the cell described by ``plane``.

    Parameters
    ----------
    kernel : NumericKernel
        Arithmetic context.
    plane : OcclusionPlane
        Plane through the cell centroid, normal = acceleration unit vector.
    horizon : Real
        Horizon distance of the cell [km].
    body : Body
        Attracting body.

    Returns
    -------
    Contribution
        Visible mass, its centroid and the trail of decision buckets.
    """
    half = kernel.half_precision
    centroid = plane.point
    normal = plane.normal

    # Zero acceleration: no plane, nothing is hidden.
    if plane.is_degenerate:
        return _whole(OcclusionPath.FULLY_INSIDE_HORIZON, body)

    observer = DirectedVector.between(centroid, body.center, kernel)
    inner_edge = observer.magnitude - body.radius
    outer_edge = observer.magnitude + body.radius

    if horizon >= outer_edge:
        return _whole(OcclusionPath.FULLY_INSIDE_HORIZON, body)

    distance = plane.signed_distance(body.center)
    abs_distance = kernel.fabs(distance)
    to_body = DirectedVector.between(plane.foot(body.center), body.center, kernel)
    aligned = normal.is_equal(to_body.unit, half, kernel)
    clear_of_plane = body.radius <= abs_distance

    if clear_of_plane and aligned:
        return _whole(OcclusionPath.FULLY_ABOVE_PLANE, body)

    if horizon <= inner_edge:
        if clear_of_plane:
            return _result((OcclusionPath.FULLY_BELOW_PLANE,), None)
        tag, part = _cap_above_plane(
            kernel, normal, body.center, body.radius, body.density, body.mass,
            distance, to_body, aligned,
            (
                OcclusionPath.HALF_ABOVE_PLANE,
                OcclusionPath.MOSTLY_ABOVE_PLANE,
                OcclusionPath.MOSTLY_BELOW_PLANE,
            ),
        )
        return _result((tag,), part)

    lens = sphere_sphere_lens(kernel, observer, horizon, body.radius, body.density)

    if clear_of_plane:
        return _result(
            (OcclusionPath.LENS_INTERSECT_HORIZON,), MassPoint(lens.mass, lens.center)
        )

    lens_tag, lens_part = _lens_below_plane(
        kernel, plane, lens.center, lens.equivalent_radius, lens.mass, body.density
    )
    cap_tag, cap_part = _cap_above_plane(
        kernel, normal, body.center, body.radius, body.density, body.mass,
        distance, to_body, aligned,
        (
            OcclusionPath.ALSO_HALF_CAP,
            OcclusionPath.ALSO_MAJORITY_CAP,
            OcclusionPath.ALSO_MINORITY_CAP,
        ),
    )

    if lens_part is None:
        return _result((lens_tag, cap_tag, OcclusionPath.ONLY_CAP), cap_part)
    return _result(
        (lens_tag, cap_tag, OcclusionPath.CAP_AND_LENS),
        combine_masses(kernel, cap_part, lens_part),
    )
