"""Tests for the fixed-precision numeric kernel."""

from __future__ import annotations

import math

import pytest

from occlusion_engine.precision import NumericKernel


# ===========================================================================
# Construction & Constants
# ===========================================================================


class TestKernelSetup:
    """Precision and constants."""

    def test_half_precision(self, kernel: NumericKernel) -> None:
        assert kernel.digits == 50
        assert kernel.half_precision == 25

    def test_rejects_tiny_precision(self) -> None:
        with pytest.raises(ValueError):
            NumericKernel(2)

    def test_pi_matches_working_precision(self, kernel: NumericKernel) -> None:
        """π must agree with a known 50-digit expansion."""
        reference = kernel.real("3.1415926535897932384626433832795028841971693993751")
        assert kernel.equal_to_digits(kernel.pi, reference, 48)

    def test_decimal_strings_avoid_binary_noise(self, kernel: NumericKernel) -> None:
        """A float config value enters as its decimal, not its double."""
        from_float = kernel.real(6.6743e-20)
        from_text = kernel.real("6.67430e-20")
        assert from_float == from_text

    def test_kernels_do_not_share_precision(self) -> None:
        low = NumericKernel(20)
        high = NumericKernel(80)
        third_low = low.div(low.one, low.three)
        third_high = high.div(high.one, high.three)
        assert high.equal_digits(third_high, high.real(third_low)) < 25


# ===========================================================================
# Arithmetic
# ===========================================================================


class TestArithmetic:
    """Roots, powers, division."""

    def test_basic_operations(self, kernel: NumericKernel) -> None:
        a, b = kernel.real("2.5"), kernel.real("0.5")
        assert kernel.add(a, b) == 3
        assert kernel.sub(a, b) == 2
        assert kernel.mul(a, b) == kernel.real("1.25")
        assert kernel.div(a, b) == 5
        assert kernel.negate(a) == kernel.real("-2.5")
        assert kernel.fabs(kernel.negate(a)) == a

    def test_division_by_zero_raises(self, kernel: NumericKernel) -> None:
        with pytest.raises(ZeroDivisionError):
            kernel.div(kernel.one, kernel.zero)

    def test_sqrt_and_root(self, kernel: NumericKernel) -> None:
        assert kernel.sqrt(kernel.real(16)) == 4
        assert kernel.equal_to_digits(kernel.root(kernel.real(27), 3), kernel.three, 45)

    def test_sqrt_of_negative_is_fault(self, kernel: NumericKernel) -> None:
        with pytest.raises(ValueError):
            kernel.sqrt(kernel.real(-1))

    def test_power(self, kernel: NumericKernel) -> None:
        assert kernel.power(kernel.two, 10) == 1024
        assert kernel.power(kernel.real("1.5"), 0) == 1

    def test_compare(self, kernel: NumericKernel) -> None:
        assert kernel.compare(kernel.one, kernel.two) == -1
        assert kernel.compare(kernel.two, kernel.one) == 1
        assert kernel.compare(kernel.two, kernel.real("2.0")) == 0

    def test_three_eighths(self, kernel: NumericKernel) -> None:
        assert kernel.three_eighths == kernel.real("0.375")


# ===========================================================================
# Digit Agreement
# ===========================================================================


class TestEqualDigits:
    """Leading-digit agreement used for tangency and alignment tests."""

    def test_identical_values_agree_everywhere(self, kernel: NumericKernel) -> None:
        x = kernel.real("123.456")
        assert kernel.equal_digits(x, x) == math.inf
        assert kernel.equal_digits(kernel.zero, kernel.zero) == math.inf

    def test_close_values(self, kernel: NumericKernel) -> None:
        """1 vs 1.001 share three leading digits."""
        assert kernel.equal_digits(kernel.one, kernel.real("1.001")) == 3

    def test_far_values(self, kernel: NumericKernel) -> None:
        assert kernel.equal_digits(kernel.one, kernel.two) == 0

    def test_opposite_signs_and_zero(self, kernel: NumericKernel) -> None:
        assert kernel.equal_digits(kernel.one, -kernel.one) == 0
        assert kernel.equal_digits(kernel.zero, kernel.real("1e-40")) == 0

    def test_threshold(self, kernel: NumericKernel) -> None:
        a = kernel.real("2")
        b = a + kernel.real("1e-30")
        assert kernel.equal_to_digits(a, b, kernel.half_precision)
        assert not kernel.equal_to_digits(a, b, 40)
