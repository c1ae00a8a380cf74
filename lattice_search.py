#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Constructive Minkowski: find a nonzero lattice point inside a symmetric convex body.

Minkowski's theorem is existential (pigeonhole over a fundamental domain).
Here it is made constructive by branch-and-bound over integer coefficients:

  1) scale coordinate j by 1/h_j, so the bounding box becomes [-1, 1]^n,
     which sits inside the ball of radius sqrt(n)
  2) LLL-reduce the scaled basis (delta explicit, canonical 3/4)
  3) Schnorr-Euchner enumeration of every coefficient vector whose scaled
     image has norm^2 <= n, pruned level by level on the projected
     Gram-Schmidt norm, leading nonzero coefficient kept positive (x ~ -x)
  4) each nonzero leaf is mapped back, checked against the box, then against
     the membership predicate for x and -x

The enumeration is exhaustive over the box, so when the volume precondition
holds it cannot fail; if it does, that is an invariant violation, not an
outcome. Runtime depends on how tight the box is, which is why each region
family derives its box analytically.

Red-lines:
  - Precondition is checked before any enumeration.
  - No silent fallback: budget exhaustion and empty searches raise.
"""

from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from convex_bodies import Region
from minkowski_bound import PiMonomial, check_covolume, minkowski_bound, volume_exceeds
from mixed_space import (
    BoundValue,
    InternalInvariantViolation,
    InvalidDomain,
    LatticePointNotFound,
    PreconditionViolated,
    SearchBudgetExceeded,
    StrictConstants,
    as_bound,
    as_exact,
)

_logger = logging.getLogger(__name__)

Membership = Callable[[Tuple[float, ...]], bool]
MatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


# =============================================================================
# 0) Configuration (strict env parsing: invalid values are deployment errors)
# =============================================================================


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return None
    try:
        return int(str(raw).strip(), 10)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer (base-10), got {raw!r}") from e


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return None
    try:
        return float(str(raw).strip())
    except ValueError as e:
        raise ValueError(f"{name} must be a float, got {raw!r}") from e


def _env_bool(name: str) -> Optional[bool]:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return None
    val = str(raw).strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean flag, got {raw!r}")


@dataclass
class SearchConfig:
    """
    max_nodes:    enumeration budget (None = unbounded)
    lll_delta:    LLL parameter in (1/4, 1)
    reduce_basis: LLL-reduce the scaled basis before enumerating
    """

    max_nodes: Optional[int] = None
    lll_delta: float = StrictConstants.LLL_DELTA_DEFAULT
    reduce_basis: bool = True

    def __post_init__(self):
        if self.max_nodes is not None and (isinstance(self.max_nodes, bool) or int(self.max_nodes) <= 0):
            raise ValueError(f"max_nodes must be a positive int or None, got {self.max_nodes!r}")
        if not (StrictConstants.LLL_DELTA_MIN < float(self.lll_delta) < StrictConstants.LLL_DELTA_MAX):
            raise ValueError(
                f"lll_delta must be in ({StrictConstants.LLL_DELTA_MIN}, "
                f"{StrictConstants.LLL_DELTA_MAX}), got {self.lll_delta}"
            )

    @classmethod
    def from_env(cls) -> "SearchConfig":
        """MINKOWSKI_SEARCH_MAX_NODES / MINKOWSKI_LLL_DELTA / MINKOWSKI_REDUCE_BASIS."""
        cfg: Dict[str, Any] = {}
        max_nodes = _env_int("MINKOWSKI_SEARCH_MAX_NODES")
        if max_nodes is not None:
            cfg["max_nodes"] = max_nodes
        delta = _env_float("MINKOWSKI_LLL_DELTA")
        if delta is not None:
            cfg["lll_delta"] = delta
        reduce_basis = _env_bool("MINKOWSKI_REDUCE_BASIS")
        if reduce_basis is not None:
            cfg["reduce_basis"] = reduce_basis
        return cls(**cfg)


@dataclass(frozen=True)
class LatticePointWitness:
    """A nonzero lattice point found inside the region."""

    point: Tuple[float, ...]
    coefficients: Tuple[int, ...]
    nodes_visited: int
    elapsed_ms: float
    diagnostics: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# 1) Lattice backend: Gram-Schmidt + LLL with unimodular transform
# =============================================================================


class LatticeBackend:
    """
    Row-basis lattice routines over float64.

    lll_reduce also returns the unimodular transform U (reduced = U @ basis),
    so enumerated coefficients map back to the caller's basis exactly.

    LLL: Lenstra-Lenstra-Lovasz 1982. Enumeration: Schnorr-Euchner 1994.
    """

    def __init__(self):
        self._stats = {
            "lll_swaps": 0,
            "enum_nodes": 0,
        }

    @property
    def stats(self) -> Dict[str, int]:
        return dict(self._stats)

    @staticmethod
    def _dot(a: Sequence[float], b: Sequence[float]) -> float:
        return math.fsum(x * y for x, y in zip(a, b))

    def gram_schmidt(self, basis: List[List[float]]) -> Tuple[List[List[float]], List[float]]:
        """
        Gram-Schmidt on row basis. Returns (mu, B):
          mu[i][j] = <b_i, b*_j> / <b*_j, b*_j>
          B[i]     = ||b*_i||^2
        """
        if not basis:
            raise InvalidDomain("empty basis")
        m = len(basis[0])
        if m == 0 or any(len(row) != m for row in basis):
            raise InvalidDomain("basis rows have inconsistent or zero width")

        n = len(basis)
        mu: List[List[float]] = [[0.0] * n for _ in range(n)]
        b_star: List[List[float]] = [[0.0] * m for _ in range(n)]
        B: List[float] = [0.0] * n

        for i in range(n):
            b_star[i] = [float(x) for x in basis[i]]
            for j in range(i):
                mu[i][j] = self._dot(basis[i], b_star[j]) / B[j]
                for k in range(m):
                    b_star[i][k] -= mu[i][j] * b_star[j][k]
            B[i] = self._dot(b_star[i], b_star[i])
            if not math.isfinite(B[i]) or B[i] <= 0.0:
                raise InvalidDomain(
                    f"Gram-Schmidt produced ||b*_{i}||^2 = {B[i]} (dependent basis or overflow)"
                )
        return mu, B

    def lll_reduce(
        self, matrix: List[List[float]], *, delta: float = StrictConstants.LLL_DELTA_DEFAULT
    ) -> Tuple[List[List[float]], List[List[int]]]:
        """LLL reduction (row basis). Returns (reduced_basis, U)."""
        if not (StrictConstants.LLL_DELTA_MIN < float(delta) < StrictConstants.LLL_DELTA_MAX):
            raise ValueError(f"LLL delta must satisfy 1/4 < delta < 1, got {delta}")

        basis = [list(map(float, row)) for row in matrix]
        n = len(basis)
        if n == 0:
            raise InvalidDomain("empty matrix")
        width = len(basis[0])
        U = [[int(i == j) for j in range(n)] for i in range(n)]

        mu, B = self.gram_schmidt(basis)
        k = 1
        while k < n:
            # size reduction
            for j in range(k - 1, -1, -1):
                if abs(mu[k][j]) > 0.5:
                    q = int(round(mu[k][j]))
                    if q != 0:
                        for idx in range(width):
                            basis[k][idx] -= q * basis[j][idx]
                        for idx in range(n):
                            U[k][idx] -= q * U[j][idx]
                        mu, B = self.gram_schmidt(basis)

            # Lovasz condition
            if B[k] >= (delta - mu[k][k - 1] ** 2) * B[k - 1]:
                k += 1
            else:
                basis[k], basis[k - 1] = basis[k - 1], basis[k]
                U[k], U[k - 1] = U[k - 1], U[k]
                self._stats["lll_swaps"] += 1
                mu, B = self.gram_schmidt(basis)
                k = max(k - 1, 1)

        return basis, U

    # -------- bounded enumeration --------

    @staticmethod
    def _zigzag(center: float, lo: int, hi: int) -> Iterator[int]:
        """Integers of [lo, hi] in order of increasing distance from center."""
        k0 = min(max(int(round(center)), lo), hi)
        yield k0
        up, down = k0 + 1, k0 - 1
        while up <= hi or down >= lo:
            if up <= hi and (down < lo or abs(up - center) <= abs(down - center)):
                yield up
                up += 1
            else:
                yield down
                down -= 1

    def enumerate_ball(
        self,
        basis: List[List[float]],
        radius_sq: float,
        *,
        node_budget: Optional[int] = None,
    ) -> Iterator[Tuple[List[int], int]]:
        """
        Yield (coefficients, nodes_visited) for every nonzero integer vector x,
        up to sign, with ||sum x_i b_i||^2 <= radius_sq.

        Raises SearchBudgetExceeded once node_budget nodes have been expanded.
        """
        mu, B = self.gram_schmidt(basis)
        n = len(basis)
        x = [0] * n
        partial = [0.0] * (n + 1)  # partial[i] = sum_{j>=i} (x_j - c_j)^2 B_j
        visited = 0

        def level(i: int, top_zero: bool) -> Iterator[Tuple[List[int], int]]:
            nonlocal visited
            if node_budget is not None and visited >= node_budget:
                self._stats["enum_nodes"] += visited
                raise SearchBudgetExceeded(
                    f"enumeration budget of {node_budget} nodes exhausted"
                )
            visited += 1

            c_i = 0.0
            for j in range(i + 1, n):
                c_i -= float(x[j]) * mu[j][i]
            slack = radius_sq - partial[i + 1]
            if slack < 0.0:
                return
            r = math.sqrt(slack / B[i])
            lo = int(math.ceil(c_i - r))
            hi = int(math.floor(c_i + r))
            if top_zero:
                # all higher coefficients are zero, so c_i == 0: keep x_i >= 0
                lo = max(lo, 0)
            if lo > hi:
                return

            for k in self._zigzag(c_i, lo, hi):
                diff = float(k) - c_i
                new_partial = partial[i + 1] + diff * diff * B[i]
                if new_partial > radius_sq:
                    continue
                x[i] = k
                partial[i] = new_partial
                if i == 0:
                    if any(x):
                        yield list(x), visited
                else:
                    yield from level(i - 1, top_zero and k == 0)
            x[i] = 0

        yield from level(n - 1, True)
        self._stats["enum_nodes"] += visited


# =============================================================================
# 2) Input validation
# =============================================================================


def as_basis_matrix(basis: MatrixLike) -> np.ndarray:
    """Square, finite, full-rank float64 row basis."""
    arr = np.asarray(basis, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[0] != arr.shape[1] or arr.shape[0] == 0:
        raise InvalidDomain(f"lattice basis must be a non-empty square matrix, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidDomain("lattice basis has non-finite entries")
    sign, _ = np.linalg.slogdet(arr)
    if sign == 0:
        raise InvalidDomain("lattice basis is singular (not full rank)")
    return arr


def lattice_covolume(basis: MatrixLike) -> float:
    """|det(basis)|: volume of a fundamental parallelepiped."""
    return float(abs(np.linalg.det(as_basis_matrix(basis))))


def _as_box(bounding_box: Sequence[float], n: int) -> np.ndarray:
    if len(bounding_box) != n:
        raise InvalidDomain(f"bounding box has {len(bounding_box)} entries, expected {n}")
    box = np.array([float(as_bound(f"h[{j}]", h)) for j, h in enumerate(bounding_box)], dtype=np.float64)
    if np.any(box == 0.0):
        raise InvalidDomain("bounding box is degenerate (zero half-width): region has volume zero")
    return box


def check_precondition(
    region_volume: Union[PiMonomial, BoundValue],
    covolume: BoundValue,
    n: int,
    *,
    strict: bool = True,
) -> BoundValue:
    """Raise PreconditionViolated unless volume > (or >=) covolume * 2^n; return the bound."""
    if isinstance(region_volume, PiMonomial):
        vol = region_volume
    else:
        vol = PiMonomial(as_exact(as_bound("region_volume", region_volume)))
    bound = minkowski_bound(covolume, n)
    if not volume_exceeds(vol, bound, strict=strict):
        op = ">" if strict else ">="
        raise PreconditionViolated(
            f"region volume {vol.to_float():.6g} does not satisfy volume {op} "
            f"Minkowski bound {float(bound):.6g}"
        )
    return bound


# =============================================================================
# 3) Search
# =============================================================================


def find_nonzero_lattice_point(
    basis: MatrixLike,
    membership: Membership,
    bounding_box: Sequence[float],
    *,
    region_volume: Optional[Union[PiMonomial, BoundValue]] = None,
    covolume: Optional[BoundValue] = None,
    strict: bool = True,
    config: Optional[SearchConfig] = None,
) -> LatticePointWitness:
    """
    Nonzero lattice point p (rows of `basis` generate the lattice) with
    membership(p) true and p inside the box prod [-h_j, h_j].

    With region_volume given, the Minkowski precondition is enforced first
    (strict: volume > 2^n covol; strict=False: volume >= 2^n covol, for
    compact bodies) and exhaustion is an InternalInvariantViolation.
    Without it, exhaustion raises LatticePointNotFound.
    """
    t0 = time.perf_counter()
    cfg = config if config is not None else SearchConfig()
    mat = as_basis_matrix(basis)
    n = mat.shape[0]

    guaranteed = region_volume is not None
    if guaranteed:
        covol = check_covolume(covolume) if covolume is not None else lattice_covolume(mat)
        bound = check_precondition(region_volume, covol, n, strict=strict)
        _logger.debug("precondition holds: volume vs bound %s (strict=%s)", float(bound), strict)

    box = _as_box(bounding_box, n)
    scaled = mat / box[np.newaxis, :]

    backend = LatticeBackend()
    rows = scaled.tolist()
    if cfg.reduce_basis:
        reduced, U = backend.lll_reduce(rows, delta=cfg.lll_delta)
    else:
        reduced, U = rows, [[int(i == j) for j in range(n)] for i in range(n)]
    transform = np.array(U, dtype=object)

    max_row_sq = max(backend._dot(r, r) for r in reduced)
    radius_sq = float(n) + StrictConstants.derive_tolerance(float(n) * max(1.0, max_row_sq), n)
    box_tol = box * (1.0 + StrictConstants.derive_tolerance(1.0, n))
    _logger.debug("searching n=%d box=%s radius^2=%.17g", n, box.tolist(), radius_sq)

    visited = 0
    candidates = 0
    for coeffs, visited in backend.enumerate_ball(reduced, radius_sq, node_budget=cfg.max_nodes):
        original = [int(v) for v in np.dot(np.array(coeffs, dtype=object), transform)]
        point = np.dot(np.array(original, dtype=np.float64), mat)
        if np.any(np.abs(point) > box_tol):
            continue
        candidates += 1
        for sign in (1, -1):
            p = tuple(float(v) for v in sign * point)
            if membership(p):
                elapsed_ms = (time.perf_counter() - t0) * 1000.0
                _logger.info(
                    "nonzero lattice point found: nodes=%d candidates=%d elapsed_ms=%.3f",
                    visited, candidates, elapsed_ms,
                )
                return LatticePointWitness(
                    point=p,
                    coefficients=tuple(sign * c for c in original),
                    nodes_visited=visited,
                    elapsed_ms=elapsed_ms,
                    diagnostics={
                        "dimension": n,
                        "candidates_tested": candidates,
                        "lll_swaps": backend.stats["lll_swaps"],
                        "guaranteed": guaranteed,
                    },
                )

    if guaranteed:
        raise InternalInvariantViolation(
            f"exhausted the box after {backend.stats['enum_nodes']} nodes despite the "
            f"Minkowski precondition; bounding box or volume formula is wrong"
        )
    raise LatticePointNotFound(
        f"no nonzero lattice point in the region ({backend.stats['enum_nodes']} nodes)"
    )


def search_region(
    basis: MatrixLike,
    region: Region,
    *,
    covolume: Optional[BoundValue] = None,
    config: Optional[SearchConfig] = None,
) -> LatticePointWitness:
    """find_nonzero_lattice_point for one of the three convex body families."""
    mat = as_basis_matrix(basis)
    if mat.shape[0] != region.signature.degree:
        raise InvalidDomain(
            f"lattice dimension {mat.shape[0]} does not match field degree {region.signature.degree}"
        )
    return find_nonzero_lattice_point(
        mat,
        region.contains,
        region.bounding_box(),
        region_volume=region.exact_volume(),
        covolume=covolume,
        strict=region.strict,
        config=config,
    )
