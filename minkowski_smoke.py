#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Smoke / acceptance run for the convex body volume engine and the Minkowski search.

Cases:
  1) Z^2 in signature (2, 0), covolume 1, f = 1.5 at both places:
     vol LT(f) = 9 > 4 = Minkowski bound, so a nonzero point lies in (-1.5, 1.5)^2
  2) Z[sqrt 2]: element of norm <= Minkowski norm bound, primitive element at Real(0)
  3) Z[i]: primitive element at Complex(0) through the LT' body

Every case raises on failure; the exit code is nonzero if any case fails.
"""

from __future__ import annotations

import argparse
import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from convex_bodies import ConvexBodyLT, volume
from lattice_search import SearchConfig, search_region
from minkowski_bound import minkowski_bound
from mixed_space import MinkowskiError, Place, PlaceBoundVector, Signature
from witness_extraction import (
    ExplicitLattice,
    exists_ne_zero_mem_ideal_of_minkowski_norm,
    exists_primitive_element_lt,
    primitive_element_bound,
)

_logger = logging.getLogger("minkowski_smoke")

SQRT2 = math.sqrt(2.0)


def _configure_smoke_logging(level: int) -> None:
    """Only inject a default handler when the host application has none."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="[%(levelname)s] %(name)s: %(message)s",
        )
    root.setLevel(level)


def case_square_lattice(config: SearchConfig) -> Dict[str, object]:
    sig = Signature(2, 0)
    region = ConvexBodyLT(PlaceBoundVector.constant(sig, 1.5))
    vol = volume(sig, region)
    bound = minkowski_bound(1, sig.degree)
    _logger.info("[Z^2] vol=%s bound=%s", vol, bound)
    found = search_region([[1.0, 0.0], [0.0, 1.0]], region, covolume=1, config=config)
    if not region.contains(found.point) or not any(found.point):
        raise MinkowskiError(f"[Z^2] invalid witness {found.point}")
    return {"point": found.point, "nodes": found.nodes_visited}


def case_real_quadratic(config: SearchConfig) -> Dict[str, object]:
    # rows: embeddings of 1 and sqrt 2 under (sqrt2 -> +sqrt2, sqrt2 -> -sqrt2)
    order = ExplicitLattice(Signature(2, 0), [[1.0, 1.0], [SQRT2, -SQRT2]])
    small = exists_ne_zero_mem_ideal_of_minkowski_norm(order, None, config=config)
    norm_bound = small.certificate["minkowski_norm_bound"].to_float()
    _logger.info("[Z[sqrt2]] element=%s |N|=%.6g <= %.6g", small.element, small.norm, norm_bound)
    if small.norm > norm_bound:
        raise MinkowskiError("[Z[sqrt2]] norm exceeds the Minkowski norm bound")

    w0 = Place.real(0)
    b = primitive_element_bound(order, w0)
    prim = exists_primitive_element_lt(order, w0, b * 1.01, config=config)
    _logger.info("[Z[sqrt2]] primitive element=%s at B=%.6g", prim.element, b)
    return {"small": small.element, "primitive": prim.element}


def case_gaussian(config: SearchConfig) -> Dict[str, object]:
    order = ExplicitLattice(Signature(0, 1), [[1.0, 0.0], [0.0, 1.0]], covolume=1)
    w0 = Place.complex(0)
    b = primitive_element_bound(order, w0)
    prim = exists_primitive_element_lt(order, w0, b * 1.01, config=config)
    z = prim.point.complex[0]
    _logger.info("[Z[i]] primitive element=%s embedding=%s", prim.element, z)
    if z.imag == 0:
        raise MinkowskiError("[Z[i]] LT' witness is real")
    return {"primitive": prim.element}


CASES: List[Tuple[str, Callable[[SearchConfig], Dict[str, object]]]] = [
    ("square_lattice", case_square_lattice),
    ("real_quadratic", case_real_quadratic),
    ("gaussian", case_gaussian),
]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Minkowski convex body smoke run (deterministic)")
    parser.add_argument("--max-nodes", type=int, help="enumeration budget (default: env or unbounded)")
    parser.add_argument("--quiet", action="store_true", help="only log warnings")
    args = parser.parse_args(argv)

    _configure_smoke_logging(logging.WARNING if args.quiet else logging.INFO)
    try:
        config = SearchConfig.from_env()
        if args.max_nodes is not None:
            config = SearchConfig(
                max_nodes=args.max_nodes,
                lll_delta=config.lll_delta,
                reduce_basis=config.reduce_basis,
            )
    except ValueError as ex:
        print(f"[FATAL] {ex}")
        return 1

    failures = 0
    for name, case in CASES:
        try:
            result = case(config)
        except MinkowskiError as ex:
            failures += 1
            print(f"[RESULT] case={name} success=0 error={ex}")
            continue
        print(f"[RESULT] case={name} success=1 {result}")
    return 0 if failures == 0 else 2


if __name__ == "__main__":
    raise SystemExit(main())
