#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Minkowski bound and certified volume comparison.

  minkowski_bound(covolume, n) = covolume * 2^n

Every volume in this package has the shape c * pi^k with c rational, so it is
carried exactly as a PiMonomial and only turned into a float at the boundary.
Comparing c * pi^k against a rational bound uses rational enclosures of pi
computed with integer arithmetic (Machin's formula), refined until the sign
is certain. For k != 0 and c != 0 equality with a rational is impossible
(pi is transcendental), so refinement always terminates in practice.
"""

from __future__ import annotations

import logging
import math
import sys
from dataclasses import dataclass
from fractions import Fraction
from functools import lru_cache
from typing import Callable, Tuple, Union

from mixed_space import BoundValue, InternalInvariantViolation, InvalidDomain, as_exact

_logger = logging.getLogger(__name__)

# Enclosure precision schedule (bits). The first step already beats float64 by
# a wide margin; the cap only guards against adversarial Fraction inputs.
PI_BITS_INITIAL = 64
PI_BITS_MAX = 1 << 14

_LOG_FLOAT_MAX = math.log(sys.float_info.max)
_LOG_PI = math.log(math.pi)
_LOG_2 = math.log(2.0)

# Step limit for least_admissible_float; estimates land within a few ulps.
ADMISSIBLE_STEPS_MAX = 64


# =============================================================================
# 1) Rational enclosures of pi
# =============================================================================


def _arctan_inv_fixed(x: int, one: int) -> Tuple[int, int]:
    """
    atan(1/x) * one, truncated; returns (value, error_bound_in_units).

    floor(floor(a/b)/c) == floor(a/(bc)) for positive integers, so every term is
    a single exact floor: each term is off by < 1 unit, and the series tail is
    < 1 unit once the terms reach zero.
    """
    x2 = x * x
    term = one // x
    total = term
    k = 0
    sign = -1
    while term:
        term //= x2
        k += 1
        total += sign * (term // (2 * k + 1))
        sign = -sign
    return total, k + 2


@lru_cache(maxsize=32)
def pi_enclosure(bits: int) -> Tuple[Fraction, Fraction]:
    """(lo, hi) with lo < pi < hi and hi - lo on the order of 2^-bits."""
    if bits <= 0:
        raise InvalidDomain(f"bits must be positive, got {bits}")
    one = 1 << (bits + 8)
    a5, e5 = _arctan_inv_fixed(5, one)
    a239, e239 = _arctan_inv_fixed(239, one)
    approx = 16 * a5 - 4 * a239
    err = 16 * e5 + 4 * e239
    return Fraction(approx - err, one), Fraction(approx + err, one)


# =============================================================================
# 2) Exact volumes: c * pi^k
# =============================================================================


@dataclass(frozen=True)
class PiMonomial:
    """coefficient * pi^pi_power with a non-negative rational coefficient."""

    coefficient: Fraction
    pi_power: int = 0

    def __post_init__(self):
        c = as_exact(self.coefficient)
        if c < 0:
            raise InvalidDomain(f"volume coefficient must be non-negative, got {c}")
        object.__setattr__(self, "coefficient", c)
        object.__setattr__(self, "pi_power", int(self.pi_power))

    @property
    def is_zero(self) -> bool:
        return self.coefficient == 0

    def __mul__(self, other: Union["PiMonomial", BoundValue]) -> "PiMonomial":
        if isinstance(other, PiMonomial):
            return PiMonomial(self.coefficient * other.coefficient, self.pi_power + other.pi_power)
        return PiMonomial(self.coefficient * as_exact(other), self.pi_power)

    __rmul__ = __mul__

    def __truediv__(self, other: Union["PiMonomial", BoundValue]) -> "PiMonomial":
        if isinstance(other, PiMonomial):
            if other.is_zero:
                raise InvalidDomain("division by a zero volume")
            return PiMonomial(self.coefficient / other.coefficient, self.pi_power - other.pi_power)
        d = as_exact(other)
        if d == 0:
            raise InvalidDomain("division by zero")
        return PiMonomial(self.coefficient / d, self.pi_power)

    def enclosure(self, bits: int) -> Tuple[Fraction, Fraction]:
        """Rational (lo, hi) around the exact value."""
        if self.is_zero or self.pi_power == 0:
            return self.coefficient, self.coefficient
        lo, hi = pi_enclosure(bits)
        k = self.pi_power
        if k > 0:
            return self.coefficient * lo ** k, self.coefficient * hi ** k
        return self.coefficient / hi ** (-k), self.coefficient / lo ** (-k)

    def compare(self, value: BoundValue) -> int:
        """Sign of (self - value): -1, 0 or 1, certified."""
        v = as_exact(value)
        if self.is_zero or self.pi_power == 0:
            diff = self.coefficient - v
            return (diff > 0) - (diff < 0)
        if v <= 0:
            return 1
        bits = PI_BITS_INITIAL
        while bits <= PI_BITS_MAX:
            lo, hi = self.enclosure(bits)
            if lo > v:
                return 1
            if hi < v:
                return -1
            bits *= 2
        raise InvalidDomain(
            f"cannot separate {self!r} from {v} with {PI_BITS_MAX}-bit pi enclosures"
        )

    def log(self) -> float:
        """Natural log of the value; valid far outside float64 range."""
        if self.is_zero:
            raise InvalidDomain("log of a zero volume")
        log_v = math.log(self.coefficient.numerator) - math.log(self.coefficient.denominator)
        return log_v + self.pi_power * _LOG_PI

    def to_float(self) -> float:
        """
        Nearest float64, split as mantissa * 2^exponent so that neither the
        coefficient nor pi^k has to fit in a float on its own.
        """
        if self.is_zero:
            return 0.0
        if self.log() >= _LOG_FLOAT_MAX:
            _logger.warning("volume %r overflows float64; reporting inf", self)
            return math.inf
        c = self.coefficient
        exp_c = c.numerator.bit_length() - c.denominator.bit_length()
        mant_c = float(c / Fraction(2) ** exp_c)  # in (1/2, 2)
        log_p = self.pi_power * _LOG_PI
        exp_p = int(math.floor(log_p / _LOG_2))
        mant_p = math.exp(log_p - exp_p * _LOG_2)  # in [1, 2)
        try:
            out = math.ldexp(mant_c * mant_p, exp_c + exp_p)
        except OverflowError:
            _logger.warning("volume %r overflows float64; reporting inf", self)
            return math.inf
        if out == 0.0:
            _logger.warning("volume %r underflows float64; reporting 0.0", self)
        return out

    def __float__(self) -> float:
        return self.to_float()

    def __repr__(self) -> str:
        if self.pi_power == 0:
            return f"PiMonomial({self.coefficient})"
        return f"PiMonomial({self.coefficient} * pi^{self.pi_power})"


# =============================================================================
# 3) Minkowski bound
# =============================================================================


def check_covolume(covolume: object) -> BoundValue:
    if isinstance(covolume, bool):
        raise InvalidDomain(f"covolume must be a real number, got {covolume!r}")
    if not isinstance(covolume, (int, float, Fraction)):
        try:
            covolume = float(covolume)  # numpy scalars
        except (TypeError, ValueError) as ex:
            raise InvalidDomain(f"covolume must be a real number, got {covolume!r}") from ex
    if isinstance(covolume, float) and not math.isfinite(covolume):
        raise InvalidDomain(f"covolume must be finite, got {covolume!r}")
    if covolume <= 0:
        raise InvalidDomain(f"covolume must be positive, got {covolume!r}")
    return covolume


def minkowski_bound(covolume: BoundValue, n: int) -> BoundValue:
    """
    covolume * 2^n: the volume a symmetric convex body must exceed to be
    guaranteed a nonzero lattice point. Exact when covolume is int / Fraction.
    """
    covolume = check_covolume(covolume)
    if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
        raise InvalidDomain(f"dimension must be a positive int, got {n!r}")
    if isinstance(covolume, float):
        try:
            return math.ldexp(covolume, n)
        except OverflowError as ex:
            raise InvalidDomain(
                f"covolume {covolume!r} * 2^{n} overflows float64; pass an exact covolume"
            ) from ex
    return Fraction(covolume) * (1 << n)


def volume_exceeds(volume: PiMonomial, bound: BoundValue, *, strict: bool = True) -> bool:
    """
    volume > bound (strict) or volume >= bound (compact bodies).

    The comparison is exact for the given inputs; floats are read as the
    dyadic rationals they are.
    """
    sign = volume.compare(bound)
    if strict:
        return sign > 0
    return sign >= 0


def least_admissible_float(
    estimate: float, admissible: Callable[[float], bool], *, what: str
) -> float:
    """
    Least positive float x with admissible(x), starting from a float estimate.

    admissible must be monotone (false below a threshold, true above it).
    Steps up until admissible, or down while the next lower float still is.
    """
    x = float(estimate)
    if not (math.isfinite(x) and x > 0.0):
        raise InvalidDomain(f"{what}: estimate must be positive and finite, got {estimate!r}")
    if admissible(x):
        for _ in range(ADMISSIBLE_STEPS_MAX):
            lower = math.nextafter(x, 0.0)
            if lower <= 0.0 or not admissible(lower):
                return x
            x = lower
    else:
        for _ in range(ADMISSIBLE_STEPS_MAX):
            x = math.nextafter(x, math.inf)
            if admissible(x):
                return x
    raise InternalInvariantViolation(
        f"{what}: estimate {estimate!r} is more than {ADMISSIBLE_STEPS_MAX} ulps off the threshold"
    )
