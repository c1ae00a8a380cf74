#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Mixed space of a number field: R^r1 x C^r2.

Data model shared by the volume engine and the lattice search:

  Signature        (r1, r2), degree n = r1 + 2*r2
  Place            Real(i) / Complex(i), mult = 1 / 2
  MixedPoint       r1 reals + r2 complex numbers
  PlaceBoundVector one non-negative finite bound per place

Real-vector layout used by every lattice routine:

  [x_0, ..., x_{r1-1}, Re z_0, Im z_0, ..., Re z_{r2-1}, Im z_{r2-1}]

Red-lines:
  - Invalid input is a hard failure (no clamping, no silent repair).
  - Exact bound types (int / Fraction) are never coerced to float here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from numbers import Real
from typing import Iterator, Mapping, Sequence, Tuple, Union

import numpy as np


# =============================================================================
# 0) Strict exception system
# =============================================================================


class MinkowskiError(Exception):
    """Root error: every failure in this layer is raised, never swallowed."""


class InvalidDomain(MinkowskiError, ValueError):
    """Negative, non-finite or zero input where the formula has no meaning."""


class PreconditionViolated(MinkowskiError):
    """Region volume does not exceed the Minkowski bound; search was not attempted."""


class SearchBudgetExceeded(MinkowskiError):
    """Enumeration hit the configured node budget before finding a point."""


class LatticePointNotFound(MinkowskiError):
    """Unguaranteed search exhausted its space: the region holds no nonzero lattice point."""


class InternalInvariantViolation(MinkowskiError, AssertionError):
    """Guaranteed search exhausted its space. Indicates a bug, not an outcome."""


# =============================================================================
# 0.5) Strict constants: derived from IEEE-754 / problem scale, no magic numbers
# =============================================================================


class StrictConstants:
    """
    Every tolerance used by the search is derived here.

    MACHINE_EPS_F64 comes from numpy's finfo (2^-52), not from a guess.
    """

    MACHINE_EPS_F64: float = float(np.finfo(np.float64).eps)

    # Lenstra-Lenstra-Lovasz 1982: delta in (1/4, 1), canonical 3/4
    LLL_DELTA_DEFAULT: float = 0.75
    LLL_DELTA_MIN: float = 0.25
    LLL_DELTA_MAX: float = 1.0

    @classmethod
    def derive_tolerance(cls, problem_scale: float, dimension: int) -> float:
        """
        tol = eps * sqrt(dimension) * problem_scale

        Standard forward error bound for an inner product of length `dimension`.
        """
        if problem_scale <= 0:
            raise ValueError(f"problem_scale must be positive, got {problem_scale}")
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        return cls.MACHINE_EPS_F64 * math.sqrt(float(dimension)) * problem_scale


BoundValue = Union[int, Fraction, float]


def as_bound(name: str, value: object) -> BoundValue:
    """Validate a non-negative finite bound, keeping int / Fraction exact."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidDomain(f"{name} must be a real number, got {value!r}")
    if isinstance(value, (int, Fraction)):
        if value < 0:
            raise InvalidDomain(f"{name} must be non-negative, got {value}")
        return value
    v = float(value)
    if not math.isfinite(v):
        raise InvalidDomain(f"{name} must be finite, got {value!r}")
    if v < 0.0:
        raise InvalidDomain(f"{name} must be non-negative, got {value!r}")
    return v


def as_exact(value: BoundValue) -> Fraction:
    """Exact rational image of a validated bound (floats are dyadic rationals)."""
    if isinstance(value, Fraction):
        return value
    if isinstance(value, int):
        return Fraction(value)
    return Fraction(float(value))


# =============================================================================
# 1) Signature and places
# =============================================================================


class PlaceKind(Enum):
    REAL = "real"
    COMPLEX = "complex"


@dataclass(frozen=True)
class Place:
    """Infinite place: Real(index) or Complex(index)."""

    kind: PlaceKind
    index: int

    def __post_init__(self):
        if not isinstance(self.index, int) or self.index < 0:
            raise InvalidDomain(f"place index must be a non-negative int, got {self.index!r}")

    @classmethod
    def real(cls, index: int) -> "Place":
        return cls(PlaceKind.REAL, index)

    @classmethod
    def complex(cls, index: int) -> "Place":
        return cls(PlaceKind.COMPLEX, index)

    @property
    def is_real(self) -> bool:
        return self.kind is PlaceKind.REAL

    @property
    def is_complex(self) -> bool:
        return self.kind is PlaceKind.COMPLEX

    @property
    def mult(self) -> int:
        """Local degree: 1 at a real place, 2 at a complex place."""
        return 1 if self.kind is PlaceKind.REAL else 2

    def __repr__(self) -> str:
        tag = "Real" if self.is_real else "Complex"
        return f"{tag}({self.index})"


@dataclass(frozen=True)
class Signature:
    """(r1, r2): number of real and complex places."""

    r1: int
    r2: int

    def __post_init__(self):
        for name, v in (("r1", self.r1), ("r2", self.r2)):
            if isinstance(v, bool) or not isinstance(v, int) or v < 0:
                raise InvalidDomain(f"{name} must be a non-negative int, got {v!r}")
        if self.r1 + self.r2 == 0:
            raise InvalidDomain("signature must have at least one place")

    @property
    def degree(self) -> int:
        return self.r1 + 2 * self.r2

    @property
    def place_count(self) -> int:
        return self.r1 + self.r2

    def places(self) -> Iterator[Place]:
        for i in range(self.r1):
            yield Place.real(i)
        for i in range(self.r2):
            yield Place.complex(i)

    def has_place(self, w: Place) -> bool:
        limit = self.r1 if w.is_real else self.r2
        return 0 <= w.index < limit

    def check_place(self, w: Place) -> Place:
        if not isinstance(w, Place) or not self.has_place(w):
            raise InvalidDomain(f"{w!r} is not a place of signature ({self.r1}, {self.r2})")
        return w

    def coordinate_slice(self, w: Place) -> slice:
        """Positions of the place's coordinates in the flattened real vector."""
        self.check_place(w)
        if w.is_real:
            return slice(w.index, w.index + 1)
        start = self.r1 + 2 * w.index
        return slice(start, start + 2)


# =============================================================================
# 2) Mixed-space points
# =============================================================================


@dataclass(frozen=True)
class MixedPoint:
    """A point of R^r1 x C^r2."""

    real: Tuple[float, ...]
    complex: Tuple[complex, ...]

    @property
    def signature(self) -> Signature:
        return Signature(len(self.real), len(self.complex))

    @classmethod
    def from_real_vector(cls, signature: Signature, vec: Sequence[float]) -> "MixedPoint":
        if len(vec) != signature.degree:
            raise InvalidDomain(
                f"vector length {len(vec)} does not match degree {signature.degree}"
            )
        reals = tuple(float(v) for v in vec[: signature.r1])
        cplx = tuple(
            complex(float(vec[signature.r1 + 2 * k]), float(vec[signature.r1 + 2 * k + 1]))
            for k in range(signature.r2)
        )
        return cls(reals, cplx)

    def to_real_vector(self) -> Tuple[float, ...]:
        out = [float(v) for v in self.real]
        for z in self.complex:
            out.append(float(z.real))
            out.append(float(z.imag))
        return tuple(out)

    def _check_same_shape(self, other: "MixedPoint") -> None:
        if len(self.real) != len(other.real) or len(self.complex) != len(other.complex):
            raise InvalidDomain("mixed points of different signatures")

    def __neg__(self) -> "MixedPoint":
        return MixedPoint(tuple(-v for v in self.real), tuple(-z for z in self.complex))

    def __add__(self, other: "MixedPoint") -> "MixedPoint":
        self._check_same_shape(other)
        return MixedPoint(
            tuple(a + b for a, b in zip(self.real, other.real)),
            tuple(a + b for a, b in zip(self.complex, other.complex)),
        )

    def scale(self, t: float) -> "MixedPoint":
        return MixedPoint(tuple(t * v for v in self.real), tuple(t * z for z in self.complex))

    def is_zero(self) -> bool:
        return all(v == 0 for v in self.real) and all(z == 0 for z in self.complex)

    def norm_at_place(self, w: Place) -> float:
        """|x_w|: absolute value at a real place, complex modulus at a complex place."""
        if w.is_real:
            return abs(self.real[w.index])
        return abs(self.complex[w.index])


def norm_at_place(w: Place, x: MixedPoint) -> float:
    return x.norm_at_place(w)


# =============================================================================
# 3) Place bound vectors
# =============================================================================


@dataclass(frozen=True)
class PlaceBoundVector:
    """
    f: Place -> non-negative finite bound, one entry per place of `signature`.

    Stored as two tuples (real places, complex places); exact entries stay exact.
    """

    signature: Signature
    real: Tuple[BoundValue, ...]
    complex: Tuple[BoundValue, ...]

    def __post_init__(self):
        if len(self.real) != self.signature.r1 or len(self.complex) != self.signature.r2:
            raise InvalidDomain(
                f"bound vector shape ({len(self.real)}, {len(self.complex)}) "
                f"does not match signature ({self.signature.r1}, {self.signature.r2})"
            )
        object.__setattr__(
            self, "real", tuple(as_bound(f"f(Real({i}))", v) for i, v in enumerate(self.real))
        )
        object.__setattr__(
            self,
            "complex",
            tuple(as_bound(f"f(Complex({i}))", v) for i, v in enumerate(self.complex)),
        )

    @classmethod
    def constant(cls, signature: Signature, value: BoundValue) -> "PlaceBoundVector":
        return cls(signature, (value,) * signature.r1, (value,) * signature.r2)

    @classmethod
    def from_mapping(
        cls, signature: Signature, mapping: Mapping[Place, BoundValue]
    ) -> "PlaceBoundVector":
        missing = [w for w in signature.places() if w not in mapping]
        if missing:
            raise InvalidDomain(f"no bound given for places {missing}")
        for w in mapping:
            signature.check_place(w)
        return cls(
            signature,
            tuple(mapping[Place.real(i)] for i in range(signature.r1)),
            tuple(mapping[Place.complex(i)] for i in range(signature.r2)),
        )

    def __getitem__(self, w: Place) -> BoundValue:
        self.signature.check_place(w)
        return self.real[w.index] if w.is_real else self.complex[w.index]

    def items(self) -> Iterator[Tuple[Place, BoundValue]]:
        for w in self.signature.places():
            yield w, self[w]

    def replace(self, w: Place, value: BoundValue) -> "PlaceBoundVector":
        self.signature.check_place(w)
        real = list(self.real)
        cplx = list(self.complex)
        if w.is_real:
            real[w.index] = value
        else:
            cplx[w.index] = value
        return PlaceBoundVector(self.signature, tuple(real), tuple(cplx))

    def dominated_by(self, other: "PlaceBoundVector") -> bool:
        """Pointwise f <= g."""
        if other.signature != self.signature:
            raise InvalidDomain("bound vectors over different signatures")
        return all(self[w] <= other[w] for w in self.signature.places())
