#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Witness extraction: turn a lattice point found by the search into a field element.

The number field, its ideals and the embedding are external; this layer only
needs the NumberFieldLattice protocol below. Each adapter builds a convex
body, lets lattice_search find a nonzero point of the ideal lattice in it,
lifts the point back through the embedding and reports the bounds the
element is certified to satisfy.

ExplicitLattice is a concrete backend for orders given by an explicit basis
of their image in mixed space; elements are integer coordinate tuples.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np

from bound_adjustment import adjust_bound
from convex_bodies import (
    ConvexBodyLT,
    ConvexBodyLTPrime,
    ConvexBodySum,
    Region,
    convex_body_lt_factor,
    convex_body_lt_prime_factor,
    minkowski_norm_bound,
    sum_body_radius,
)
from lattice_search import (
    LatticePointWitness,
    MatrixLike,
    SearchConfig,
    as_basis_matrix,
    lattice_covolume,
    search_region,
)
from minkowski_bound import PiMonomial, least_admissible_float, minkowski_bound, volume_exceeds
from mixed_space import (
    BoundValue,
    InvalidDomain,
    MixedPoint,
    Place,
    PlaceBoundVector,
    Signature,
    StrictConstants,
    as_exact,
)

_logger = logging.getLogger(__name__)


# =============================================================================
# 1) External protocol (implemented by the field / ideal layer)
# =============================================================================


class NumberFieldLattice(Protocol):
    def signature(self) -> Signature:
        """(r1, r2) of the field."""

    def degree(self) -> int:
        """n = r1 + 2 r2."""

    def ideal_lattice_basis(self, ideal: Any) -> MatrixLike:
        """Rows: images of an integral basis of `ideal` in mixed-space coordinates."""

    def lattice_covolume(self, ideal: Any) -> BoundValue:
        """Covolume of the ideal lattice (positive, finite)."""

    def embed(self, element: Any) -> MixedPoint:
        """Image of a field element in mixed space."""

    def lift_lattice_point(self, point: MixedPoint, ideal: Any) -> Any:
        """Field element whose embedding is `point`; only valid on lattice points of `ideal`."""


@dataclass(frozen=True)
class FieldWitness:
    """
    Nonzero ideal element certified by a convex body search.

    place_norms: |a|_w at every place
    norm:        prod_w |a|_w^mult(w) (absolute norm read off the embedding)
    """

    element: Any
    point: MixedPoint
    region: Region
    place_norms: Mapping[Place, float]
    norm: float
    search: LatticePointWitness
    certificate: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "place_norms", MappingProxyType(dict(self.place_norms)))
        object.__setattr__(self, "certificate", MappingProxyType(dict(self.certificate)))


def element_norm(point: MixedPoint) -> float:
    """prod_w |x_w|^mult(w)."""
    out = 1.0
    for w in point.signature.places():
        out *= point.norm_at_place(w) ** w.mult
    return out


def _search_and_lift(
    field_: NumberFieldLattice,
    ideal: Any,
    region: Region,
    config: Optional[SearchConfig],
    extra: Optional[Mapping[str, Any]] = None,
) -> FieldWitness:
    sig = field_.signature()
    if field_.degree() != sig.degree:
        raise InvalidDomain(f"field degree {field_.degree()} != r1 + 2 r2 = {sig.degree}")
    if region.signature != sig:
        raise InvalidDomain(f"region over {region.signature}, field has signature {sig}")

    basis = field_.ideal_lattice_basis(ideal)
    covolume = field_.lattice_covolume(ideal)
    found = search_region(basis, region, covolume=covolume, config=config)

    point = MixedPoint.from_real_vector(sig, found.point)
    element = field_.lift_lattice_point(point, ideal)
    norms = {w: point.norm_at_place(w) for w in sig.places()}
    _logger.debug("lifted lattice point %s to element %r", found.point, element)
    return FieldWitness(
        element=element,
        point=point,
        region=region,
        place_norms=norms,
        norm=element_norm(point),
        search=found,
        certificate={
            "covolume": covolume,
            "minkowski_bound": minkowski_bound(covolume, sig.degree),
            "region_volume": region.exact_volume(),
            **(extra or {}),
        },
    )


# =============================================================================
# 2) Adapters
# =============================================================================


def exists_ne_zero_mem_ideal_lt(
    field_: NumberFieldLattice,
    ideal: Any,
    f: PlaceBoundVector,
    *,
    config: Optional[SearchConfig] = None,
) -> FieldWitness:
    """Nonzero a in `ideal` with |a|_w < f(w) at every place."""
    return _search_and_lift(field_, ideal, ConvexBodyLT(f), config)


def exists_ne_zero_mem_ideal_lt_prime(
    field_: NumberFieldLattice,
    ideal: Any,
    f: PlaceBoundVector,
    w0: Place,
    *,
    config: Optional[SearchConfig] = None,
) -> FieldWitness:
    """
    Nonzero a in `ideal` with |a|_w < f(w) for w != w0 and, at the complex
    place w0, |Re a| < 1 and |Im a| < f(w0)^2.
    """
    return _search_and_lift(field_, ideal, ConvexBodyLTPrime(f, w0), config)


def exists_ne_zero_mem_ideal_of_norm_le(
    field_: NumberFieldLattice,
    ideal: Any,
    radius: BoundValue,
    *,
    config: Optional[SearchConfig] = None,
) -> FieldWitness:
    """
    Nonzero a in `ideal` with sum_w mult(w)|a|_w <= B, hence |N(a)| <= (B/n)^n.

    Requires vol(Sum(B)) >= 2^n * covolume (compact body, non-strict).
    """
    return _norm_le(field_, ideal, radius, config, {})


def _norm_le(
    field_: NumberFieldLattice,
    ideal: Any,
    radius: BoundValue,
    config: Optional[SearchConfig],
    extra: Mapping[str, Any],
) -> FieldWitness:
    sig = field_.signature()
    region = ConvexBodySum(sig, radius)
    n = sig.degree
    norm_bound = PiMonomial((max(as_exact(region.radius), Fraction(0)) / n) ** n).to_float()
    return _search_and_lift(field_, ideal, region, config, {"norm_bound": norm_bound, **extra})


def exists_ne_zero_mem_ideal_of_minkowski_norm(
    field_: NumberFieldLattice,
    ideal: Any,
    *,
    config: Optional[SearchConfig] = None,
) -> FieldWitness:
    """
    Nonzero a in `ideal` with
      |N(a)| <= covolume * 2^n * n! / (n^n * 2^r1 * (pi/2)^r2)
    using the least admissible Sum body.
    """
    sig = field_.signature()
    covolume = field_.lattice_covolume(ideal)
    radius = sum_body_radius(covolume, sig)
    extra = {"minkowski_norm_bound": minkowski_norm_bound(covolume, sig)}
    return _norm_le(field_, ideal, radius, config, extra)


# -------- primitive elements --------


def _primitive_region(sig: Signature, w0: Place, bound: BoundValue) -> Region:
    f = PlaceBoundVector.constant(sig, 1).replace(w0, bound)
    if w0.is_real:
        return ConvexBodyLT(f)
    return ConvexBodyLTPrime(f, w0)


def primitive_element_bound(field_: NumberFieldLattice, w0: Place) -> BoundValue:
    """
    Least float B with C * B^mult(w0) > 2^n * covol(O_K), C = C_LT at a real
    w0 and C_LT' at a complex w0.
    """
    sig = field_.signature()
    sig.check_place(w0)
    covolume = field_.lattice_covolume(None)
    bound = minkowski_bound(covolume, sig.degree)
    factor = convex_body_lt_factor(sig) if w0.is_real else convex_body_lt_prime_factor(sig)
    target = (PiMonomial(as_exact(bound)) / factor).to_float()

    ones = PlaceBoundVector.constant(sig, 1)
    estimate = float(adjust_bound(ones, w0, target)[w0])
    return least_admissible_float(
        estimate,
        lambda b: volume_exceeds(_primitive_region(sig, w0, b).exact_volume(), bound, strict=True),
        what=f"primitive element bound at {w0!r}",
    )


def exists_primitive_element_lt(
    field_: NumberFieldLattice,
    w0: Place,
    bound: BoundValue,
    *,
    config: Optional[SearchConfig] = None,
) -> FieldWitness:
    """
    Nonzero integer a with |a|_w < 1 at every w != w0 and |a|_w0 < B (real w0),
    or |Re a| < 1, |Im a| < B^2 at a complex w0.

    Such an a differs from all its conjugates, so it generates the field.
    The integer ring is the lattice of the unit ideal (ideal=None).
    """
    sig = field_.signature()
    sig.check_place(w0)
    region = _primitive_region(sig, w0, bound)
    return _search_and_lift(field_, None, region, config, {"primitive_at": w0})


# =============================================================================
# 3) Concrete backend: explicit integral basis
# =============================================================================


class ExplicitLattice:
    """
    Order given by the mixed-space images of an integral basis (rows).

    Elements are integer coordinate tuples over that basis. An ideal is None
    (the whole order) or an integer matrix H whose rows are the coordinates of
    an ideal basis, so the ideal lattice has basis H @ basis and covolume
    |det H| * covol.
    """

    def __init__(
        self,
        signature: Signature,
        basis: MatrixLike,
        *,
        covolume: Optional[BoundValue] = None,
    ):
        self._signature = signature
        self._basis = as_basis_matrix(basis)
        if self._basis.shape[0] != signature.degree:
            raise InvalidDomain(
                f"basis dimension {self._basis.shape[0]} != degree {signature.degree}"
            )
        self._covolume = covolume if covolume is not None else lattice_covolume(self._basis)
        self._inverse = np.linalg.inv(self._basis)

    def signature(self) -> Signature:
        return self._signature

    def degree(self) -> int:
        return self._signature.degree

    def _ideal_matrix(self, ideal: Any) -> np.ndarray:
        if ideal is None:
            return np.eye(self.degree(), dtype=np.int64)
        raw = np.asarray(ideal)
        if raw.dtype.kind in "iu":
            h = raw.astype(np.int64)
        elif raw.dtype.kind == "f":
            if not np.all(np.isfinite(raw)) or np.any(raw != np.rint(raw)):
                raise InvalidDomain("ideal matrix must have integer entries")
            h = raw.astype(np.int64)
        else:
            raise InvalidDomain(f"ideal matrix must be numeric, got dtype {raw.dtype}")
        n = self.degree()
        if h.shape != (n, n):
            raise InvalidDomain(f"ideal matrix must be {n}x{n}, got shape {h.shape}")
        if round(abs(np.linalg.det(h.astype(np.float64)))) == 0:
            raise InvalidDomain("ideal matrix is singular")
        return h

    def ideal_lattice_basis(self, ideal: Any) -> np.ndarray:
        return self._ideal_matrix(ideal).astype(np.float64) @ self._basis

    def lattice_covolume(self, ideal: Any) -> BoundValue:
        index = int(round(abs(np.linalg.det(self._ideal_matrix(ideal).astype(np.float64)))))
        if isinstance(self._covolume, (int, Fraction)):
            return self._covolume * index
        return float(self._covolume) * index

    def embed(self, element: Sequence[int]) -> MixedPoint:
        coords = np.asarray(element, dtype=np.float64)
        return MixedPoint.from_real_vector(self._signature, (coords @ self._basis).tolist())

    def lift_lattice_point(self, point: MixedPoint, ideal: Any) -> Tuple[int, ...]:
        vec = np.asarray(point.to_real_vector(), dtype=np.float64)
        approx = vec @ self._inverse
        coords = np.rint(approx)
        scale = max(1.0, float(np.max(np.abs(approx))))
        tol = max(
            StrictConstants.derive_tolerance(scale, self.degree()) * float(np.linalg.cond(self._basis)),
            math.sqrt(StrictConstants.MACHINE_EPS_F64),
        )
        if np.max(np.abs(approx - coords)) > tol:
            raise InvalidDomain(f"{point} is not a point of the lattice")
        element = tuple(int(c) for c in coords)
        if ideal is not None:
            h = self._ideal_matrix(ideal).astype(np.float64)
            inner = np.asarray(element, dtype=np.float64) @ np.linalg.inv(h)
            if np.max(np.abs(inner - np.rint(inner))) > math.sqrt(StrictConstants.MACHINE_EPS_F64):
                raise InvalidDomain(f"{element} does not lie in the ideal")
        return element
