"""Solid geometry — spherical caps, sphere–sphere lenses and mass merging.

Pure functions over kernel reals. Each returns a :class:`MassPoint`, the
mass of a solid fragment and the position of its centroid.

References
----------
- Weisstein, E. W. "Spherical Cap." MathWorld.
  V = (π h² / 3)(3R − h); centroid at z̄ = 3(2R − h)² / (4(3R − h))
  from the sphere centre, measured towards the cap.
- Weisstein, E. W. "Sphere-Sphere Intersection." MathWorld.
  V = π (R + r − d)² (d² + 2dr − 3r² + 2dR + 6rR − 3R²) / (12 d)
"""

from __future__ import annotations

from dataclasses import dataclass

from occlusion_engine.geometry import DirectedVector, Point3
from occlusion_engine.precision import NumericKernel, Real


@dataclass(frozen=True)
class MassPoint:
    """A fragment of mass [kg] concentrated at ``centroid``."""

    mass: Real
    centroid: Point3


@dataclass(frozen=True)
class Lens:
    """Intersection of a body sphere with a horizon sphere.

    Attributes
    ----------
    volume : Real
        Lens volume [km³].
    mass : Real
        ``volume * density`` [kg].
    equivalent_radius : Real
        Radius of the sphere with the same volume [km].
    center : Point3
        Point the lens (and its equivalent sphere) is centred on.
    """

    volume: Real
    mass: Real
    equivalent_radius: Real
    center: Point3


def sphere_volume(kernel: NumericKernel, radius: Real) -> Real:
    """(4/3) π r³."""
    return kernel.four_thirds * kernel.pi * kernel.power(radius, 3)


def cap_volume(kernel: NumericKernel, radius: Real, height: Real) -> Real:
    """Volume of a cap of height ``height`` cut from a sphere of ``radius``."""
    return (
        kernel.pi * height * height / kernel.three
    ) * (kernel.three * radius - height)


def cap_centroid_offset(kernel: NumericKernel, radius: Real, height: Real) -> Real:
    """Distance from the sphere centre to the cap centroid."""
    return kernel.div(
        kernel.three * kernel.power(kernel.two * radius - height, 2),
        kernel.four * (kernel.three * radius - height),
    )


def spherical_cap(
    kernel: NumericKernel,
    center: Point3,
    radius: Real,
    density: Real,
    height: Real,
    toward: Point3,
) -> MassPoint:
    """Mass and centroid of a spherical cap.

    Parameters
    ----------
    kernel : NumericKernel
        Arithmetic context.
    center : Point3
        Sphere centre.
    radius : Real
        Sphere radius.
    density : Real
        Uniform density [kg/km³].
    height : Real
        Cap height, in (0, 2R).
    toward : Point3
        Unit vector from the sphere centre towards the cap centroid.

    Returns
    -------
    MassPoint
        Cap mass and centroid.
    """
    mass = cap_volume(kernel, radius, height) * density
    z_bar = cap_centroid_offset(kernel, radius, height)
    return MassPoint(mass=mass, centroid=center.offset(toward.scaled(z_bar)))


def bisected_sphere(
    kernel: NumericKernel,
    center: Point3,
    radius: Real,
    mass: Real,
    toward: Point3,
) -> MassPoint:
    """Half of a sphere cut through its centre.

    The hemisphere centroid sits (3/8) R from the centre along ``toward``.
    """
    return MassPoint(
        mass=kernel.div(mass, kernel.two),
        centroid=center.offset(toward.scaled(kernel.three_eighths * radius)),
    )


def sphere_sphere_lens(
    kernel: NumericKernel,
    observer: DirectedVector,
    horizon: Real,
    radius: Real,
    density: Real,
) -> Lens:
    """Lens cut from a body by the horizon sphere around an observer.

    Parameters
    ----------
    kernel : NumericKernel
        Arithmetic context.
    observer : DirectedVector
        Vector from the cell centroid (horizon centre) to the body centre.
    horizon : Real
        Horizon sphere radius.
    radius : Real
        Body radius.
    density : Real
        Body density.

    Returns
    -------
    Lens
        Volume, mass, equivalent radius and centre of the lens.
    """
    distance = observer.magnitude
    small = radius if horizon > radius else horizon
    big = horizon if horizon > radius else radius
    distance_sq = distance * distance
    small_sq = small * small
    big_sq = big * big

    volume = kernel.div(
        kernel.pi
        * kernel.power(big + small - distance, 2)
        * (
            distance_sq
            + kernel.two * distance * small
            - kernel.three * small_sq
            + kernel.two * distance * big
            + kernel.six * small * big
            - kernel.three * big_sq
        ),
        kernel.twelve * distance,
    )
    equivalent_radius = kernel.root(
        kernel.div(kernel.three * volume, kernel.four * kernel.pi), 3
    )
    center_offset = kernel.div(
        distance_sq - small_sq + big_sq, kernel.two * distance
    )
    center = observer.origin.offset(observer.unit.scaled(center_offset))

    return Lens(
        volume=volume,
        mass=volume * density,
        equivalent_radius=equivalent_radius,
        center=center,
    )


def combine_masses(kernel: NumericKernel, first: MassPoint, second: MassPoint) -> MassPoint:
    """Merge two fragments into one at their mass-weighted centroid."""
    total = first.mass + second.mass
    weighted = first.centroid.scaled(first.mass).offset(second.centroid.scaled(second.mass))
    return MassPoint(mass=total, centroid=weighted.scaled(kernel.div(kernel.one, total)))
