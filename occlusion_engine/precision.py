"""Numeric kernel — fixed-precision real arithmetic for the occlusion engine.

Every quantity in the engine (coordinates, radii, densities, masses,
accelerations) is an ``mpmath`` multiprecision float bound to one private
``MPContext``. The context precision is set once at construction and never
mutated afterwards, so worker threads can share a kernel freely.

Notes
-----
``mpf`` values remember the context that created them, so ordinary Python
operators (``+ - * /``) on them already run at the kernel's precision. The
kernel adds the operations that need the context explicitly (roots,
comparisons to N digits, constants) and the zero-divisor check.

Digit agreement
---------------
``equal_digits(a, b)`` counts the leading significant decimal digits two
values share, measured on the relative difference::

    digits = floor(-log10(|a - b| / max(|a|, |b|)))

Identical values agree in infinitely many digits. Values of opposite sign,
or a zero against a non-zero, agree in none.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Union

import mpmath

logger = logging.getLogger(__name__)

DEFAULT_PRECISION_DIGITS = 1024

Real = Any  # mpmath mpf bound to a NumericKernel context
Number = Union[int, float, str, Any]

_LOG10_2 = math.log10(2.0)


class NumericKernel:
    """Arbitrary-precision arithmetic at a fixed number of decimal digits.

    Parameters
    ----------
    digits : int
        Working precision in significant decimal digits.
    """

    def __init__(self, digits: int = DEFAULT_PRECISION_DIGITS) -> None:
        if digits < 4:
            raise ValueError(f"Working precision must be at least 4 digits, got {digits}")

        self.digits = int(digits)
        self.ctx = mpmath.MPContext()
        self.ctx.dps = self.digits

        self.zero = self.ctx.mpf(0)
        self.one = self.ctx.mpf(1)
        self.two = self.ctx.mpf(2)
        self.three = self.ctx.mpf(3)
        self.four = self.ctx.mpf(4)
        self.six = self.ctx.mpf(6)
        self.twelve = self.ctx.mpf(12)
        self.three_eighths = self.three / self.ctx.mpf(8)
        self.four_thirds = self.four / self.three
        self.pi = +self.ctx.pi
        self.pi_sq = self.pi * self.pi

        logger.debug(
            "NumericKernel ready: %d digits (%d bits)", self.digits, self.ctx.prec
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @property
    def half_precision(self) -> int:
        """Digit threshold used for tangency, bisection and alignment tests."""
        return self.digits // 2

    def real(self, value: Number) -> Real:
        """Convert ``value`` to a kernel real.

        Floats are routed through their shortest decimal repr so that a
        configured ``6.6743e-20`` enters as that decimal, not its binary
        neighbour.
        """
        if isinstance(value, float):
            value = repr(value)
        elif isinstance(value, str):
            value = value.strip()
        return self.ctx.mpf(value)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def add(self, a: Real, b: Real) -> Real:
        return a + b

    def sub(self, a: Real, b: Real) -> Real:
        return a - b

    def mul(self, a: Real, b: Real) -> Real:
        return a * b

    def div(self, a: Real, b: Real) -> Real:
        """Divide ``a`` by ``b``.

        Raises
        ------
        ZeroDivisionError
            If ``b`` is exactly zero.
        """
        if b == 0:
            raise ZeroDivisionError("division by an exactly zero real")
        return a / b

    def negate(self, a: Real) -> Real:
        return -a

    def sqrt(self, a: Real) -> Real:
        """Square root; a negative argument is an arithmetic fault."""
        if a < 0:
            raise ValueError(f"square root of negative real {self.format(a, 12)}")
        return self.ctx.sqrt(a)

    def root(self, a: Real, n: int) -> Real:
        """Real ``n``-th root of a non-negative value."""
        if a < 0:
            raise ValueError(f"root of negative real {self.format(a, 12)}")
        return self.ctx.root(a, n)

    def power(self, a: Real, n: int) -> Real:
        """Integer power by repeated multiplication."""
        result = self.one
        for _ in range(n):
            result = result * a
        return result

    def fabs(self, a: Real) -> Real:
        return self.ctx.fabs(a)

    def cos_deg(self, degrees: Number) -> Real:
        return self.ctx.cos(self.real(degrees) * self.pi / self.ctx.mpf(180))

    def sin_deg(self, degrees: Number) -> Real:
        return self.ctx.sin(self.real(degrees) * self.pi / self.ctx.mpf(180))

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    @staticmethod
    def compare(a: Real, b: Real) -> int:
        """Three-way comparison returning -1, 0 or 1."""
        if a < b:
            return -1
        if a > b:
            return 1
        return 0

    def equal_digits(self, a: Real, b: Real) -> float:
        """Number of leading significant decimal digits shared by ``a`` and ``b``.

        Returns
        -------
        float
            ``math.inf`` when the values are identical, otherwise a
            non-negative integral count.
        """
        if a == b:
            return math.inf
        if a == 0 or b == 0:
            return 0
        if (a < 0) != (b < 0):
            return 0

        scale = max(self.ctx.fabs(a), self.ctx.fabs(b))
        relative = self.ctx.fabs(a - b) / scale
        mantissa, exponent = self.ctx.frexp(relative)
        log_rel = math.log10(float(mantissa)) + exponent * _LOG10_2
        return max(0, math.floor(-log_rel))

    def equal_to_digits(self, a: Real, b: Real, n: int) -> bool:
        """True when ``a`` and ``b`` agree in at least ``n`` digits."""
        return self.equal_digits(a, b) >= n

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def format(self, a: Real, digits: int = 20) -> str:
        """Render ``a`` with ``digits`` significant digits for logging."""
        return self.ctx.nstr(a, digits)
