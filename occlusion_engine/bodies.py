"""Body registry — the rotating object, the attracting bodies and Newton's baseline.

Frame
-----
The rotating object sits at the origin and spins about the z axis. The
solar-system orbital plane is x-y. Earth touches the object on +x; the
Moon and the Sun are placed from Earth's centre at a linearly
interpolated orbital distance, along a direction given by each orbit's
``rotation_deg`` (0 keeps all four centres co-linear on +x).

Notes
-----
Body order is fixed (Earth, Moon, Sun) and doubles as the colour channel
index of the diagnostic feed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from occlusion_engine.constants import BodyConfig, OrbitConfig, SimulationConfig
from occlusion_engine.geometry import DirectedVector, Point3
from occlusion_engine.precision import NumericKernel, Real
from occlusion_engine.solids import sphere_volume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Body:
    """A uniform-density spherical attractor.

    Attributes
    ----------
    name : str
    center : Point3
        Centre position [km].
    radius : Real
        Mean radius [km].
    density : Real
        Density [kg/km³].
    mass : Real
        (4/3) π r³ ρ [kg].
    """

    name: str
    center: Point3
    radius: Real
    density: Real
    mass: Real

    @classmethod
    def build(
        cls, kernel: NumericKernel, name: str, center: Point3, radius: Real, density: Real
    ) -> "Body":
        mass = sphere_volume(kernel, radius) * density
        return cls(name=name, center=center, radius=radius, density=density, mass=mass)


@dataclass(frozen=True)
class RotatingObject:
    """The spinning test sphere.

    Attributes
    ----------
    center : Point3
    radius : Real
        [km]
    rotation_rate : Real
        Revolutions per second.
    rotation_factor : Real
        4 π² rate², so that |a| = ρ · rotation_factor for axis distance ρ.
    """

    center: Point3
    radius: Real
    rotation_rate: Real
    rotation_factor: Real

    @classmethod
    def build(
        cls, kernel: NumericKernel, center: Point3, radius: Real, rpm: Real
    ) -> "RotatingObject":
        rate = kernel.div(rpm, kernel.real(60))
        factor = kernel.four * kernel.pi_sq * rate * rate
        return cls(center=center, radius=radius, rotation_rate=rate, rotation_factor=factor)


@dataclass(frozen=True)
class NewtonBaseline:
    """Plain Newtonian pull of each body on the object centre.

    Attributes
    ----------
    per_body : tuple[Point3, ...]
        Acceleration vector from each body [km/s²].
    per_body_scale : tuple[Real, ...]
        Magnitude of each body's pull.
    aggregate : Point3
        Vector sum.
    aggregate_scale : Real
        Magnitude of the vector sum.
    """

    per_body: tuple[Point3, ...]
    per_body_scale: tuple[Real, ...]
    aggregate: Point3
    aggregate_scale: Real


@dataclass(frozen=True)
class BodyRegistry:
    """Everything positional the engine needs for one run."""

    kernel: NumericKernel
    rotating_object: RotatingObject
    bodies: tuple[Body, ...]
    gravitational_constant: Real
    light_speed: Real

    @property
    def light_speed_sq(self) -> Real:
        return self.light_speed * self.light_speed

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(b.name for b in self.bodies)

    def tightest_horizon(self) -> Real | None:
        """Horizon distance at the object's equator, the largest |a|.

        Returns None for a non-rotating object.
        """
        peak = self.rotating_object.radius * self.rotating_object.rotation_factor
        if peak == 0:
            return None
        return self.kernel.div(self.light_speed_sq, peak)

    def newton_baseline(self) -> NewtonBaseline:
        """Newtonian acceleration on the object centre from every body."""
        k = self.kernel
        per_body = []
        scales = []
        total = Point3.origin(k)
        for body in self.bodies:
            line = DirectedVector.between(self.rotating_object.center, body.center, k)
            a = k.div(self.gravitational_constant * body.mass, line.magnitude * line.magnitude)
            contribution = line.unit.scaled(a)
            per_body.append(contribution)
            scales.append(a)
            total = total.offset(contribution)
        return NewtonBaseline(
            per_body=tuple(per_body),
            per_body_scale=tuple(scales),
            aggregate=total,
            aggregate_scale=k.sqrt(total.norm_sq()),
        )

    def log_positions(self) -> None:
        k = self.kernel
        logger.info("  Object at (%s, %s, %s)", *(k.format(v) for v in _coords(self.rotating_object.center)))
        for body in self.bodies:
            logger.info(
                "  %-5s at (%s, %s, %s), r=%s km, m=%s kg",
                body.name,
                *(k.format(v) for v in _coords(body.center)),
                k.format(body.radius, 8),
                k.format(body.mass, 8),
            )


def _coords(p: Point3) -> tuple[Real, Real, Real]:
    return p.x, p.y, p.z


def _orbital_offset(kernel: NumericKernel, orbit: OrbitConfig) -> Point3:
    """Vector from the orbit's primary to the placed body."""
    near = kernel.real(orbit.near_km)
    far = kernel.real(orbit.far_km)
    distance = near + (far - near) * kernel.real(orbit.position)
    if kernel.real(orbit.rotation_deg) == 0:
        return Point3(distance, kernel.zero, kernel.zero)
    return Point3(
        distance * kernel.cos_deg(orbit.rotation_deg),
        distance * kernel.sin_deg(orbit.rotation_deg),
        kernel.zero,
    )


def _body(kernel: NumericKernel, cfg: BodyConfig, center: Point3) -> Body:
    return Body.build(
        kernel,
        cfg.name,
        center,
        kernel.real(cfg.mean_radius_km),
        kernel.real(cfg.density_kg_km3),
    )


def build_registry(config: SimulationConfig, kernel: NumericKernel) -> BodyRegistry:
    """Place the object and the bodies described by ``config``.

    Parameters
    ----------
    config : SimulationConfig
        Loaded run configuration.
    kernel : NumericKernel
        Arithmetic context all positions are expressed in.

    Returns
    -------
    BodyRegistry
        Object plus Earth, Moon and Sun, in that order.
    """
    object_center = Point3.origin(kernel)
    object_radius = kernel.real(config.sphere.radius_km)
    rotating = RotatingObject.build(
        kernel, object_center, object_radius, kernel.real(config.sphere.rpm)
    )

    earth_radius = kernel.real(config.earth.mean_radius_km)
    earth_center = object_center.offset(
        Point3(earth_radius + object_radius, kernel.zero, kernel.zero)
    )
    moon_center = earth_center.offset(_orbital_offset(kernel, config.moon_orbit))
    sun_center = earth_center.offset(_orbital_offset(kernel, config.earth_orbit))

    bodies = (
        _body(kernel, config.earth, earth_center),
        _body(kernel, config.moon, moon_center),
        _body(kernel, config.sun, sun_center),
    )
    return BodyRegistry(
        kernel=kernel,
        rotating_object=rotating,
        bodies=bodies,
        gravitational_constant=kernel.real(config.constants.gravitational_constant),
        light_speed=kernel.real(config.constants.light_speed_km_s),
    )
