"""Tests for the occlusion classifier.

All cases put the cell at the origin with its acceleration along +x, so
the plane is x = 0 and "above" means x > 0. Bodies have radius 1 and
density 1 unless noted; a horizon of 10 sits well inside bodies placed
100 away and cuts bodies placed about 10 away.
"""

from __future__ import annotations

import pytest

from occlusion_engine.bodies import Body
from occlusion_engine.classifier import (
    TERMINAL_PATHS,
    Contribution,
    OcclusionPath,
    classify,
)
from occlusion_engine.geometry import OcclusionPlane, Point3
from occlusion_engine.precision import NumericKernel
from occlusion_engine.solids import cap_volume

P = OcclusionPath


def _p(kernel: NumericKernel, x, y, z) -> Point3:
    return Point3.of(kernel, x, y, z)


def _body(kernel: NumericKernel, x, y, z, radius=1, density=1) -> Body:
    return Body.build(kernel, "Probe", _p(kernel, x, y, z), kernel.real(radius), kernel.real(density))


def _plane(kernel: NumericKernel) -> OcclusionPlane:
    return OcclusionPlane(_p(kernel, 1, 0, 0), Point3.origin(kernel), kernel)


def _classify(kernel: NumericKernel, body: Body, horizon) -> Contribution:
    return classify(kernel, _plane(kernel), kernel.real(horizon), body)


# ===========================================================================
# Whole-body and beyond-horizon branches
# ===========================================================================


class TestSimpleBranches:
    """Paths 0 through 5."""

    def test_inside_horizon_keeps_everything(self, kernel: NumericKernel) -> None:
        body = _body(kernel, -100, 0, 0)
        result = _classify(kernel, body, 101)
        assert result.trail == (P.FULLY_INSIDE_HORIZON,)
        assert result.mass == body.mass
        assert result.centroid == body.center

    def test_fully_above_plane(self, kernel: NumericKernel) -> None:
        body = _body(kernel, 100, 0, 0)
        result = _classify(kernel, body, 10)
        assert result.path == P.FULLY_ABOVE_PLANE
        assert result.mass == body.mass

    def test_fully_below_plane_is_hidden(self, kernel: NumericKernel) -> None:
        result = _classify(kernel, _body(kernel, -100, 0, 0), 10)
        assert result.path == P.FULLY_BELOW_PLANE
        assert result.excluded
        assert result.centroid is None

    def test_bisection_keeps_upper_hemisphere(self, kernel: NumericKernel) -> None:
        """Plane through the body centre: M/2 at (3/8) R along +x."""
        body = _body(kernel, 0, 100, 0, radius=8)
        result = _classify(kernel, body, 10)
        assert result.path == P.HALF_ABOVE_PLANE
        assert kernel.equal_to_digits(result.mass, body.mass / 2, 45)
        assert result.centroid == _p(kernel, 3, 100, 0)

    def test_major_and_minor_caps(self, kernel: NumericKernel) -> None:
        above = _classify(kernel, _body(kernel, "0.5", 100, 0), 10)
        below = _classify(kernel, _body(kernel, "-0.5", 100, 0), 10)

        assert above.path == P.MOSTLY_ABOVE_PLANE
        assert below.path == P.MOSTLY_BELOW_PLANE
        assert kernel.equal_to_digits(
            above.mass, cap_volume(kernel, kernel.one, kernel.real("1.5")), 45
        )
        assert kernel.equal_to_digits(
            below.mass, cap_volume(kernel, kernel.one, kernel.real("0.5")), 45
        )
        # the visible centroid of either body lies above the plane
        assert above.centroid.x > 0
        assert below.centroid.x > 0

    def test_caps_of_mirrored_bodies_fill_one_sphere(self, kernel: NumericKernel) -> None:
        body = _body(kernel, "0.3", 100, 0)
        above = _classify(kernel, body, 10)
        below = _classify(kernel, _body(kernel, "-0.3", 100, 0), 10)
        assert kernel.equal_to_digits(above.mass + below.mass, body.mass, 45)


# ===========================================================================
# Horizon cuts the body
# ===========================================================================


class TestPartialHorizon:
    """Paths 6 through 16."""

    def test_lens_behind_plane(self, kernel: NumericKernel) -> None:
        result = _classify(kernel, _body(kernel, -10, 0, 0), 10)
        assert result.trail == (P.LENS_INTERSECT_HORIZON,)
        assert kernel.equal_to_digits(
            result.mass, kernel.real(77) * kernel.pi / kernel.real(120), 45
        )
        assert kernel.equal_to_digits(result.centroid.x, kernel.real("-9.95"), 45)

    @pytest.mark.parametrize(
        "x, expected",
        [
            ("0.9", (P.EXCL_LENS_ABOVE_PLANE, P.ALSO_MAJORITY_CAP, P.ONLY_CAP)),
            ("-0.9", (P.INCL_LENS_BELOW_PLANE, P.ALSO_MINORITY_CAP, P.CAP_AND_LENS)),
            ("0", (P.INCL_HALF_LENS, P.ALSO_HALF_CAP, P.CAP_AND_LENS)),
            ("0.5", (P.INCL_MINORITY_LENS, P.ALSO_MAJORITY_CAP, P.CAP_AND_LENS)),
            ("-0.5", (P.INCL_MAJORITY_LENS, P.ALSO_MINORITY_CAP, P.CAP_AND_LENS)),
        ],
    )
    def test_cap_and_lens_trails(self, kernel: NumericKernel, x: str, expected) -> None:
        """Body ~10 away along z, straddling both the plane and the horizon."""
        body = _body(kernel, x, 0, 10)
        result = _classify(kernel, body, 10)
        assert result.trail == expected, f"x={x}: got {result.trail_text()}"
        assert 0 < result.mass < body.mass

    def test_only_cap_mass_is_the_cap(self, kernel: NumericKernel) -> None:
        result = _classify(kernel, _body(kernel, "0.9", 0, 10), 10)
        assert kernel.equal_to_digits(
            result.mass, cap_volume(kernel, kernel.one, kernel.real("1.9")), 45
        )

    def test_half_lens_and_half_cap(self, kernel: NumericKernel) -> None:
        """Plane through both centres: half the body plus half the lens."""
        body = _body(kernel, 0, 0, 10)
        result = _classify(kernel, body, 10)
        assert result.mass > body.mass / 2
        assert result.centroid.y == 0


# ===========================================================================
# Invariants
# ===========================================================================


class TestInvariants:
    """Purity, terminal paths, degenerate input and monotonicity."""

    def test_classification_is_idempotent(self, kernel: NumericKernel) -> None:
        body = _body(kernel, "-0.5", 0, 10)
        assert _classify(kernel, body, 10) == _classify(kernel, body, 10)

    def test_trail_ends_in_terminal_path(self, kernel: NumericKernel) -> None:
        for x in ("-100", "100", "0.2", "-0.2"):
            for horizon in (5, 10, 200):
                result = _classify(kernel, _body(kernel, x, 0, 10), horizon)
                assert result.path in TERMINAL_PATHS
                assert all(p not in TERMINAL_PATHS for p in result.trail[:-1])

    def test_zero_acceleration_includes_everything(self, kernel: NumericKernel) -> None:
        plane = OcclusionPlane(Point3.origin(kernel), _p(kernel, 0, 0, 1), kernel)
        body = _body(kernel, -100, 0, 0)
        result = classify(kernel, plane, kernel.one, body)
        assert result.path == P.FULLY_INSIDE_HORIZON
        assert result.mass == body.mass

    def test_visible_mass_shrinks_with_horizon(self, kernel: NumericKernel) -> None:
        """A body straight behind the plane fades 0 → 6 → 2 as H shrinks."""
        body = _body(kernel, -10, 0, 0)
        horizons = ["12", "10.5", "10", "9.5", "9.01", "9", "5"]
        results = [_classify(kernel, body, h) for h in horizons]
        masses = [r.mass if r.mass is not None else kernel.zero for r in results]

        assert results[0].path == P.FULLY_INSIDE_HORIZON
        assert all(r.path == P.LENS_INTERSECT_HORIZON for r in results[1:5])
        assert all(r.path == P.FULLY_BELOW_PLANE for r in results[5:])
        for heavier, lighter in zip(masses, masses[1:]):
            assert heavier >= lighter
        assert masses[1] < body.mass

    def test_labels_are_distinct(self) -> None:
        labels = [p.label for p in OcclusionPath]
        assert len(OcclusionPath) == 17
        assert len(set(labels)) == 17

    def test_terminal_flags(self) -> None:
        assert P.ONLY_CAP.is_terminal
        assert P.LENS_INTERSECT_HORIZON.is_terminal
        assert not P.ALSO_HALF_CAP.is_terminal
        assert not P.EXCL_LENS_ABOVE_PLANE.is_terminal
