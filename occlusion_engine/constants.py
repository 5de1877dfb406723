"""Configuration — typed run parameters, YAML loader and reproducibility logs.

Every physical quantity is read from the YAML configuration. Each key has a
built-in default; a value that cannot be parsed falls back to its default
with a warning, and the effective configuration is written back to the
file so the next run starts from a clean, complete document.

Real-valued parameters are kept as decimal strings and only become
multiprecision reals inside the engine, so ``6.67430e-20`` is never routed
through a binary double.

Units
-----
Distances in km, densities in kg/km³, G in km³·kg⁻¹·s⁻², c in km/s.

References
----------
- CODATA 2018 for G and c
- NASA Planetary Fact Sheets for mean radii, densities and orbital extremes
"""

from __future__ import annotations

import copy
import logging
import os
import platform
import sys
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable

import mpmath
import numpy as np
import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/default_config.yaml")

# ---------------------------------------------------------------------------
# Built-in defaults
# ---------------------------------------------------------------------------

DEFAULTS: dict[str, dict[str, Any]] = {
    "numeric": {
        "precision_digits": 1024,
    },
    "sphere": {
        "radius_km": "0.0002",
        "rpm": "3589000",
        "resolution": 2,
    },
    "constants": {
        "light_speed_km_s": "299792.458",
        "gravitational_constant": "6.67430e-20",
    },
    "earth": {
        "mean_radius_km": "6371",
        "density_kg_km3": "5514000000000",
        "position": "1",
        "rotation_deg": "0",
        "perihelion_km": "147090000",
        "aphelion_km": "152100000",
    },
    "moon": {
        "mean_radius_km": "1737.4",
        "density_kg_km3": "3344000000000",
        "position": "1",
        "rotation_deg": "0",
        "perigee_km": "363300",
        "apogee_km": "405500",
    },
    "sun": {
        "mean_radius_km": "695700",
        "density_kg_km3": "1408000000000",
    },
    "visualization": {
        "enabled": True,
        "dot_size": 5,
        "border": 30,
        "output": "output/occlusion_projections.png",
    },
    "debug": {
        "enabled": False,
        "file": "debug.log",
    },
    "runtime": {
        "workers": None,
        "progress_interval": 100,
        "report_interval": 500,
    },
}


# ---------------------------------------------------------------------------
# Configuration Data Classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumericConfig:
    """Arithmetic settings.

    Attributes
    ----------
    precision_digits : int
        Working precision in significant decimal digits.
    """

    precision_digits: int


@dataclass(frozen=True)
class SphereConfig:
    """The rotating test object.

    Attributes
    ----------
    radius_km : str
        Object radius [km].
    rpm : str
        Rotation rate [revolutions per minute].
    resolution : int
        Grid subdivisions per radius.
    """

    radius_km: str
    rpm: str
    resolution: int


@dataclass(frozen=True)
class PhysicalConstants:
    """Fundamental constants (CODATA 2018).

    Attributes
    ----------
    light_speed_km_s : str
        Speed of light [km/s].
    gravitational_constant : str
        Newtonian G [km³/kg/s²].
    """

    light_speed_km_s: str
    gravitational_constant: str


@dataclass(frozen=True)
class BodyConfig:
    """A massive spherical body."""

    name: str
    mean_radius_km: str
    density_kg_km3: str


@dataclass(frozen=True)
class OrbitConfig:
    """Placement of a body along a linear near/far orbital range.

    Attributes
    ----------
    position : str
        0 at the near extreme (perigee / perihelion), 1 at the far one.
    rotation_deg : str
        Angle of the placement direction in the x-y orbital plane.
    near_km : str
        Closest approach [km].
    far_km : str
        Farthest distance [km].
    """

    position: str
    rotation_deg: str
    near_km: str
    far_km: str


@dataclass(frozen=True)
class VisualizationConfig:
    """Off-screen rendering of the per-cell diagnostic feed."""

    enabled: bool
    dot_size: int
    border: int
    output: str


@dataclass(frozen=True)
class DebugConfig:
    """Extended diagnostic log sink."""

    enabled: bool
    file: str


@dataclass(frozen=True)
class RuntimeConfig:
    """Worker pool and progress reporting.

    Attributes
    ----------
    workers : int or None
        Pool size; ``None`` selects ``max(2, 2 * cpu_count)``.
    progress_interval : int
        Completed cells between progress lines.
    report_interval : int
        Completed cells between running-mean lines.
    """

    workers: int | None
    progress_interval: int
    report_interval: int

    @property
    def resolved_workers(self) -> int:
        if self.workers is not None:
            return self.workers
        return max(2, 2 * (os.cpu_count() or 1))


@dataclass(frozen=True)
class Assumption:
    """A documented model assumption."""

    parameter: str
    value: str
    source: str


@dataclass
class SimulationConfig:
    """Top-level configuration loaded from YAML.

    Attributes
    ----------
    numeric : NumericConfig
    sphere : SphereConfig
    constants : PhysicalConstants
    earth, moon, sun : BodyConfig
    earth_orbit : OrbitConfig
        Sun placement relative to Earth.
    moon_orbit : OrbitConfig
        Moon placement relative to Earth.
    visualization : VisualizationConfig
    debug : DebugConfig
    runtime : RuntimeConfig
    source_path : Path or None
        File the configuration was read from.
    assumptions : list[Assumption]
        Registry of documented model assumptions.
    """

    numeric: NumericConfig
    sphere: SphereConfig
    constants: PhysicalConstants
    earth: BodyConfig
    moon: BodyConfig
    sun: BodyConfig
    earth_orbit: OrbitConfig
    moon_orbit: OrbitConfig
    visualization: VisualizationConfig
    debug: DebugConfig
    runtime: RuntimeConfig
    source_path: Path | None = None
    assumptions: list[Assumption] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Value parsers (raise ValueError / TypeError on bad input)
# ---------------------------------------------------------------------------


def _parse_real(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        raise TypeError(f"not a real number: {value!r}")
    text = repr(value) if isinstance(value, float) else str(value).strip()
    try:
        parsed = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"not a real number: {value!r}") from exc
    if not parsed.is_finite():
        raise ValueError(f"not a finite real number: {value!r}")
    return text


def _parse_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError(f"not an integer: {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"not an integer: {value!r}")
        return int(value)
    return int(str(value).strip())


def _parse_optional_int(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and value.strip().lower() in ("", "auto", "none")):
        return None
    return _parse_int(value)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "on", "1"):
        return True
    if text in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        raise TypeError(f"not a string: {value!r}")
    return str(value)


_PARSERS: dict[str, dict[str, Callable[[Any], Any]]] = {
    "numeric": {"precision_digits": _parse_int},
    "sphere": {"radius_km": _parse_real, "rpm": _parse_real, "resolution": _parse_int},
    "constants": {"light_speed_km_s": _parse_real, "gravitational_constant": _parse_real},
    "earth": {
        "mean_radius_km": _parse_real,
        "density_kg_km3": _parse_real,
        "position": _parse_real,
        "rotation_deg": _parse_real,
        "perihelion_km": _parse_real,
        "aphelion_km": _parse_real,
    },
    "moon": {
        "mean_radius_km": _parse_real,
        "density_kg_km3": _parse_real,
        "position": _parse_real,
        "rotation_deg": _parse_real,
        "perigee_km": _parse_real,
        "apogee_km": _parse_real,
    },
    "sun": {"mean_radius_km": _parse_real, "density_kg_km3": _parse_real},
    "visualization": {
        "enabled": _parse_bool,
        "dot_size": _parse_int,
        "border": _parse_int,
        "output": _parse_str,
    },
    "debug": {"enabled": _parse_bool, "file": _parse_str},
    "runtime": {
        "workers": _parse_optional_int,
        "progress_interval": _parse_int,
        "report_interval": _parse_int,
    },
}


def _resolve(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Merge ``raw`` over the defaults, substituting unparseable values."""
    effective = copy.deepcopy(DEFAULTS)
    for section, parsers in _PARSERS.items():
        given = raw.get(section)
        if given is None:
            continue
        if not isinstance(given, dict):
            logger.warning("Config section '%s' is not a mapping; using defaults.", section)
            continue
        for key, parse in parsers.items():
            if key not in given:
                continue
            try:
                effective[section][key] = parse(given[key])
            except (TypeError, ValueError) as exc:
                logger.warning(
                    "Config %s.%s=%r unusable (%s); falling back to default %r",
                    section, key, given[key], exc, DEFAULTS[section][key],
                )
    return effective


# ---------------------------------------------------------------------------
# Configuration Loader
# ---------------------------------------------------------------------------


def load_config(
    config_path: str | Path = DEFAULT_CONFIG_PATH,
    write_back: bool = True,
) -> SimulationConfig:
    """Load, complete and validate a run configuration.

    Parameters
    ----------
    config_path : str or Path
        Path to the YAML configuration file. A missing file yields the
        built-in defaults.
    write_back : bool
        If True, write the effective configuration back to ``config_path``.

    Returns
    -------
    SimulationConfig
        Fully populated, typed configuration object.

    Raises
    ------
    ValueError
        If a resolved value is physically invalid.
    """
    config_path = Path(config_path)
    raw: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if isinstance(loaded, dict):
            raw = loaded
        elif loaded is not None:
            logger.warning("Config %s is not a mapping; using defaults.", config_path)
        logger.info("Loading configuration from: %s", config_path)
    else:
        logger.warning("Configuration file not found: %s; using defaults.", config_path)

    effective = _resolve(raw)
    config = _build_config(effective, config_path)
    _validate_config(config)

    if write_back:
        save_config(effective, config_path)

    logger.info(
        "Configuration loaded. %d assumptions registered.", len(config.assumptions)
    )
    return config


def save_config(effective: dict[str, dict[str, Any]], config_path: str | Path) -> None:
    """Write the effective configuration to ``config_path`` as YAML."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(effective, f, sort_keys=False, default_flow_style=False)
    logger.debug("Effective configuration written to %s", config_path)


def config_to_dict(config: SimulationConfig) -> dict[str, dict[str, Any]]:
    """Inverse of :func:`_build_config`, for write-back after CLI overrides."""
    return {
        "numeric": {"precision_digits": config.numeric.precision_digits},
        "sphere": {
            "radius_km": config.sphere.radius_km,
            "rpm": config.sphere.rpm,
            "resolution": config.sphere.resolution,
        },
        "constants": {
            "light_speed_km_s": config.constants.light_speed_km_s,
            "gravitational_constant": config.constants.gravitational_constant,
        },
        "earth": {
            "mean_radius_km": config.earth.mean_radius_km,
            "density_kg_km3": config.earth.density_kg_km3,
            "position": config.earth_orbit.position,
            "rotation_deg": config.earth_orbit.rotation_deg,
            "perihelion_km": config.earth_orbit.near_km,
            "aphelion_km": config.earth_orbit.far_km,
        },
        "moon": {
            "mean_radius_km": config.moon.mean_radius_km,
            "density_kg_km3": config.moon.density_kg_km3,
            "position": config.moon_orbit.position,
            "rotation_deg": config.moon_orbit.rotation_deg,
            "perigee_km": config.moon_orbit.near_km,
            "apogee_km": config.moon_orbit.far_km,
        },
        "sun": {
            "mean_radius_km": config.sun.mean_radius_km,
            "density_kg_km3": config.sun.density_kg_km3,
        },
        "visualization": {
            "enabled": config.visualization.enabled,
            "dot_size": config.visualization.dot_size,
            "border": config.visualization.border,
            "output": config.visualization.output,
        },
        "debug": {"enabled": config.debug.enabled, "file": config.debug.file},
        "runtime": {
            "workers": config.runtime.workers,
            "progress_interval": config.runtime.progress_interval,
            "report_interval": config.runtime.report_interval,
        },
    }


def _build_config(eff: dict[str, dict[str, Any]], source: Path | None) -> SimulationConfig:
    earth = eff["earth"]
    moon = eff["moon"]
    sun = eff["sun"]
    config = SimulationConfig(
        numeric=NumericConfig(precision_digits=eff["numeric"]["precision_digits"]),
        sphere=SphereConfig(**eff["sphere"]),
        constants=PhysicalConstants(**eff["constants"]),
        earth=BodyConfig("Earth", earth["mean_radius_km"], earth["density_kg_km3"]),
        moon=BodyConfig("Moon", moon["mean_radius_km"], moon["density_kg_km3"]),
        sun=BodyConfig("Sun", sun["mean_radius_km"], sun["density_kg_km3"]),
        earth_orbit=OrbitConfig(
            position=earth["position"],
            rotation_deg=earth["rotation_deg"],
            near_km=earth["perihelion_km"],
            far_km=earth["aphelion_km"],
        ),
        moon_orbit=OrbitConfig(
            position=moon["position"],
            rotation_deg=moon["rotation_deg"],
            near_km=moon["perigee_km"],
            far_km=moon["apogee_km"],
        ),
        visualization=VisualizationConfig(**eff["visualization"]),
        debug=DebugConfig(**eff["debug"]),
        runtime=RuntimeConfig(**eff["runtime"]),
        source_path=source,
    )
    config.assumptions = _build_assumptions_registry(config)
    return config


def _build_assumptions_registry(config: SimulationConfig) -> list[Assumption]:
    """Build the documented assumptions registry."""
    return [
        Assumption("Rindler horizon", "c² / |a|", "McCulloch quantised inertia"),
        Assumption("Horizon shape", "sharp half-space behind the plane", "Simplification"),
        Assumption("Lens cut", "equal-volume sphere at lens centre", "Approximation"),
        Assumption("Rotation axis", "z through object centre", "Simplification"),
        Assumption("Body density", "uniform", "Simplification"),
        Assumption("G", config.constants.gravitational_constant + " km³/kg/s²", "CODATA 2018"),
        Assumption("c", config.constants.light_speed_km_s + " km/s", "CODATA 2018"),
        Assumption("Earth radius", config.earth.mean_radius_km + " km", "NASA fact sheet"),
        Assumption("Moon radius", config.moon.mean_radius_km + " km", "NASA fact sheet"),
        Assumption("Sun radius", config.sun.mean_radius_km + " km", "NASA fact sheet"),
        Assumption("Relativistic correction", "Excluded", "Out of scope"),
    ]


def _validate_config(config: SimulationConfig) -> None:
    """Validate physical constraints on configuration values.

    Raises
    ------
    ValueError
        If any value is physically invalid.
    """
    def positive(name: str, text: str) -> None:
        if Decimal(text) <= 0:
            raise ValueError(f"{name} must be positive, got {text}")

    if config.numeric.precision_digits < 16:
        raise ValueError(
            f"Precision must be at least 16 digits, got {config.numeric.precision_digits}"
        )
    positive("Sphere radius", config.sphere.radius_km)
    if Decimal(config.sphere.rpm) < 0:
        raise ValueError(f"Rotation rate cannot be negative, got {config.sphere.rpm}")
    if config.sphere.resolution < 1:
        raise ValueError(f"Resolution divisor must be >= 1, got {config.sphere.resolution}")
    positive("Speed of light", config.constants.light_speed_km_s)
    positive("Gravitational constant", config.constants.gravitational_constant)
    for body in (config.earth, config.moon, config.sun):
        positive(f"{body.name} radius", body.mean_radius_km)
        positive(f"{body.name} density", body.density_kg_km3)
    for name, orbit in (("Earth", config.earth_orbit), ("Moon", config.moon_orbit)):
        if not (0 <= Decimal(orbit.position) <= 1):
            raise ValueError(f"{name} orbital position must be in [0, 1], got {orbit.position}")
        positive(f"{name} near distance", orbit.near_km)
        if Decimal(orbit.far_km) < Decimal(orbit.near_km):
            raise ValueError(f"{name} far distance must not be below near distance.")
    if config.visualization.dot_size < 1:
        raise ValueError("Visualization dot size must be >= 1.")
    if config.visualization.border < 0:
        raise ValueError("Visualization border cannot be negative.")
    if config.runtime.workers is not None and config.runtime.workers < 1:
        raise ValueError("Worker count must be >= 1.")
    if config.runtime.progress_interval < 1 or config.runtime.report_interval < 1:
        raise ValueError("Progress intervals must be >= 1.")

    logger.debug("Configuration validation passed.")


def log_assumptions(config: SimulationConfig) -> None:
    """Log all documented model assumptions."""
    logger.info("=" * 70)
    logger.info("MODEL ASSUMPTIONS REGISTRY")
    logger.info("=" * 70)
    for i, a in enumerate(config.assumptions, 1):
        logger.info(
            "  [%02d] %-24s = %-36s | Source: %s",
            i,
            a.parameter,
            a.value,
            a.source,
        )
    logger.info("=" * 70)


def log_platform_info() -> None:
    """Log platform and library version information for reproducibility."""
    logger.info("=" * 70)
    logger.info("PLATFORM INFORMATION (for reproducibility)")
    logger.info("=" * 70)
    logger.info("  Python:    %s", sys.version)
    logger.info("  Platform:  %s", platform.platform())
    logger.info("  Processor: %s", platform.processor())
    logger.info("  CPUs:      %s", os.cpu_count())
    logger.info("  mpmath:    %s (backend %s)", mpmath.__version__, mpmath.libmp.BACKEND)
    logger.info("  NumPy:     %s", np.__version__)
    logger.info("=" * 70)
