#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Convex bodies in the mixed space and their volumes.

Three families, each symmetric under x -> -x and convex:

  ConvexBodyLT(f)          { x : |x_w| < f(w) for every place w }
  ConvexBodyLTPrime(f, w0) as LT, but at the complex place w0:
                           |Re x_w0| < 1 and |Im x_w0| < f(w0)^2
  ConvexBodySum(B)         { x : sum_w mult(w) * |x_w| <= B }

Volumes (Lebesgue measure on R^r1 x C^r2 = R^n):

  vol LT(f)       = 2^r1 * pi^r2       * prod_w f(w)^mult(w)
  vol LT'(f, w0)  = 2^(r1+2) * pi^(r2-1) * prod_w f(w)^mult(w)
  vol Sum(B)      = 2^r1 * (pi/2)^r2 * B^n / n!      (B > 0; 0 otherwise)

LT factors as intervals of length 2 f(w) and disks of area pi f(w)^2; LT'
swaps the disk at w0 for a 2 x 2 f(w0)^2 rectangle (ratio 4/pi). For Sum,
the gauge g(x) = sum mult(w) |x_w| is positively homogeneous, so
vol{g <= B} = B^n / n! * int exp(-g); that integral splits per place into
int_R exp(-|t|) = 2 and int_C exp(-2|z|) = 2 pi * Gamma(2) / 4 = pi / 2.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction
from numbers import Real
from typing import Sequence, Tuple, Union

from minkowski_bound import PiMonomial, least_admissible_float, minkowski_bound, volume_exceeds
from mixed_space import (
    BoundValue,
    InvalidDomain,
    MixedPoint,
    Place,
    PlaceBoundVector,
    Signature,
    as_exact,
)

PointLike = Union[MixedPoint, Sequence[float]]


def _as_point(signature: Signature, x: PointLike) -> MixedPoint:
    if isinstance(x, MixedPoint):
        if len(x.real) != signature.r1 or len(x.complex) != signature.r2:
            raise InvalidDomain(
                f"point of shape ({len(x.real)}, {len(x.complex)}) "
                f"outside mixed space ({signature.r1}, {signature.r2})"
            )
        return x
    return MixedPoint.from_real_vector(signature, list(x))


def _bound_product(f: PlaceBoundVector) -> Fraction:
    out = Fraction(1)
    for w, v in f.items():
        out *= as_exact(v) ** w.mult
    return out


# =============================================================================
# 1) Volume constants
# =============================================================================


def convex_body_lt_factor(signature: Signature) -> PiMonomial:
    """C_LT = 2^r1 * pi^r2."""
    return PiMonomial(Fraction(2) ** signature.r1, signature.r2)


def convex_body_lt_prime_factor(signature: Signature) -> PiMonomial:
    """C_LT' = 2^(r1+2) * pi^(r2-1); only defined when there is a complex place."""
    if signature.r2 < 1:
        raise InvalidDomain("ConvexBodyLTPrime needs at least one complex place")
    return PiMonomial(Fraction(2) ** (signature.r1 + 2), signature.r2 - 1)


def convex_body_sum_factor(signature: Signature) -> PiMonomial:
    """C_sum = 2^r1 * (pi/2)^r2 / n!."""
    coeff = Fraction(2) ** signature.r1 / Fraction(2) ** signature.r2
    return PiMonomial(coeff / math.factorial(signature.degree), signature.r2)


# =============================================================================
# 2) Region descriptors (membership, bounding box, volume)
# =============================================================================


@dataclass(frozen=True)
class ConvexBodyLT:
    bounds: PlaceBoundVector

    strict = True

    @property
    def signature(self) -> Signature:
        return self.bounds.signature

    def contains(self, x: PointLike) -> bool:
        p = _as_point(self.signature, x)
        return all(p.norm_at_place(w) < fw for w, fw in self.bounds.items())

    def bounding_box(self) -> Tuple[float, ...]:
        box = [float(v) for v in self.bounds.real]
        for v in self.bounds.complex:
            box.extend((float(v), float(v)))
        return tuple(box)

    def exact_volume(self) -> PiMonomial:
        return convex_body_lt_factor(self.signature) * _bound_product(self.bounds)


@dataclass(frozen=True)
class ConvexBodyLTPrime:
    bounds: PlaceBoundVector
    w0: Place

    strict = True

    def __post_init__(self):
        self.signature.check_place(self.w0)
        if not self.w0.is_complex:
            raise InvalidDomain(f"ConvexBodyLTPrime needs a complex place, got {self.w0!r}")

    @property
    def signature(self) -> Signature:
        return self.bounds.signature

    def contains(self, x: PointLike) -> bool:
        p = _as_point(self.signature, x)
        for w, fw in self.bounds.items():
            if w == self.w0:
                z = p.complex[w.index]
                if not (abs(z.real) < 1 and abs(z.imag) < as_exact(fw) ** 2):
                    return False
            elif not p.norm_at_place(w) < fw:
                return False
        return True

    def bounding_box(self) -> Tuple[float, ...]:
        box = [float(v) for v in self.bounds.real]
        for i, v in enumerate(self.bounds.complex):
            if i == self.w0.index:
                box.extend((1.0, float(as_exact(v) ** 2)))
            else:
                box.extend((float(v), float(v)))
        return tuple(box)

    def exact_volume(self) -> PiMonomial:
        return convex_body_lt_prime_factor(self.signature) * _bound_product(self.bounds)


@dataclass(frozen=True)
class ConvexBodySum:
    signature: Signature
    radius: BoundValue

    strict = False

    def __post_init__(self):
        r = self.radius
        if isinstance(r, bool) or not isinstance(r, Real):
            raise InvalidDomain(f"radius must be a real number, got {r!r}")
        if not isinstance(r, (int, Fraction)):
            r = float(r)
            if not math.isfinite(r):
                raise InvalidDomain(f"radius must be finite, got {self.radius!r}")
            object.__setattr__(self, "radius", r)

    def gauge(self, x: PointLike) -> float:
        """sum_w mult(w) * |x_w|."""
        p = _as_point(self.signature, x)
        return math.fsum(w.mult * p.norm_at_place(w) for w in self.signature.places())

    def contains(self, x: PointLike) -> bool:
        return self.gauge(x) <= self.radius

    def bounding_box(self) -> Tuple[float, ...]:
        b = max(float(self.radius), 0.0)
        return (b,) * self.signature.r1 + (b / 2.0,) * (2 * self.signature.r2)

    def exact_volume(self) -> PiMonomial:
        if self.radius <= 0:
            return PiMonomial(Fraction(0), self.signature.r2)
        return convex_body_sum_factor(self.signature) * as_exact(self.radius) ** self.signature.degree


Region = Union[ConvexBodyLT, ConvexBodyLTPrime, ConvexBodySum]


# =============================================================================
# 3) Module-level entry points
# =============================================================================


def _check_region(signature: Signature, region: Region) -> Region:
    if not isinstance(region, (ConvexBodyLT, ConvexBodyLTPrime, ConvexBodySum)):
        raise InvalidDomain(f"unknown region descriptor {region!r}")
    if region.signature != signature:
        raise InvalidDomain(
            f"region lives over {region.signature}, not over {signature}"
        )
    return region


def exact_volume(signature: Signature, region: Region) -> PiMonomial:
    return _check_region(signature, region).exact_volume()


def volume(signature: Signature, region: Region) -> float:
    """Lebesgue volume as a float; use exact_volume() for threshold decisions."""
    return exact_volume(signature, region).to_float()


def member_of(x: PointLike, region: Region) -> bool:
    return region.contains(x)


def bounding_box(region: Region) -> Tuple[float, ...]:
    return region.bounding_box()


# =============================================================================
# 4) Sum body against the Minkowski bound
# =============================================================================


def sum_body_radius(covolume: BoundValue, signature: Signature) -> float:
    """
    Least float B with vol(Sum(B)) >= covolume * 2^n, so that the compact
    Sum body is guaranteed a nonzero lattice point.

    The estimate exp((log bound - log C_sum) / n) is taken in log space, since
    bound / C_sum alone leaves float range long before B does (n! grows).
    """
    n = signature.degree
    bound = minkowski_bound(covolume, n)
    ratio = PiMonomial(as_exact(bound)) / convex_body_sum_factor(signature)
    estimate = math.exp(ratio.log() / n)
    return least_admissible_float(
        estimate,
        lambda b: volume_exceeds(ConvexBodySum(signature, b).exact_volume(), bound, strict=False),
        what=f"Sum radius for covolume {covolume}",
    )


def minkowski_norm_bound(covolume: BoundValue, signature: Signature) -> PiMonomial:
    """
    covolume * 2^n * n! / (n^n * 2^r1 * (pi/2)^r2).

    Any x with sum mult(w)|x_w| <= B has prod |x_w|^mult(w) <= (B/n)^n
    (AM-GM), and the least admissible B satisfies C_sum * B^n = 2^n * covolume.
    """
    n = signature.degree
    bound = minkowski_bound(covolume, n)
    return PiMonomial(as_exact(bound)) / convex_body_sum_factor(signature) / (n ** n)
