#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Solve for one place bound so the weighted product hits a target.

  adjust_bound(f, w1, T):  g(w) = f(w) for w != w1, and
                           g(w1) = (T / prod_{w != w1} f(w)^mult(w)) ^ (1 / mult(w1))

so that prod_w g(w)^mult(w) = T.

Numeric policy:
  - exact inputs (int / Fraction) give an exact result whenever the root is
    rational (always for a real w1; for a complex w1 when T / rest is a square)
  - otherwise float64, first directly, then in log space when the direct
    quotient overflows or underflows
  - a result that is still not representable raises InvalidDomain; it is
    never clamped
"""

from __future__ import annotations

import logging
import math
import sys
from fractions import Fraction
from typing import Optional

from mixed_space import (
    BoundValue,
    InvalidDomain,
    Place,
    PlaceBoundVector,
    as_bound,
)

_logger = logging.getLogger(__name__)

_LOG_FLOAT_MAX = math.log(sys.float_info.max)
_LOG_FLOAT_MIN = math.log(sys.float_info.min)


class BoundDivisionByZero(InvalidDomain, ZeroDivisionError):
    """A fixed bound is zero, so no value at w1 can reach the target."""


def _is_exact(v: object) -> bool:
    return isinstance(v, (int, Fraction)) and not isinstance(v, bool)


def bound_product(f: PlaceBoundVector, *, exclude: Optional[Place] = None) -> BoundValue:
    """prod_w f(w)^mult(w), skipping `exclude`; exact when every factor is exact."""
    factors = [(w, v) for w, v in f.items() if w != exclude]
    if all(_is_exact(v) for _, v in factors):
        out = Fraction(1)
        for w, v in factors:
            out *= Fraction(v) ** w.mult
        return out
    if any(v == 0 for _, v in factors):
        return 0.0
    log_p = math.fsum(w.mult * math.log(float(v)) for w, v in factors)
    if log_p >= _LOG_FLOAT_MAX:
        raise InvalidDomain(f"bound product overflows float64 (log = {log_p:.6g})")
    return math.exp(log_p)


def _exact_sqrt(q: Fraction) -> Optional[Fraction]:
    num, den = q.numerator, q.denominator
    rn, rd = math.isqrt(num), math.isqrt(den)
    if rn * rn == num and rd * rd == den:
        return Fraction(rn, rd)
    return None


def _solve_float(target: float, f: PlaceBoundVector, w1: Place) -> float:
    others = [(w, float(v)) for w, v in f.items() if w != w1]
    if target == 0.0:
        return 0.0

    rest = 1.0
    for w, v in others:
        rest *= v if w.mult == 1 else v * v
    if math.isfinite(rest) and rest > 0.0:
        q = target / rest
        if math.isfinite(q) and q > 0.0:
            return q if w1.mult == 1 else math.sqrt(q)

    # direct quotient left float range: redo it in log space
    log_g = (math.log(target) - math.fsum(w.mult * math.log(v) for w, v in others)) / w1.mult
    _logger.debug("adjust_bound at %r solved in log space: log g = %.17g", w1, log_g)
    if log_g >= _LOG_FLOAT_MAX:
        raise InvalidDomain(
            f"adjusted bound at {w1!r} overflows float64: exponent 1/{w1.mult}, log g = {log_g:.6g}"
        )
    if log_g < _LOG_FLOAT_MIN:
        raise InvalidDomain(
            f"adjusted bound at {w1!r} underflows float64: exponent 1/{w1.mult}, log g = {log_g:.6g}"
        )
    return math.exp(log_g)


def adjust_bound(f: PlaceBoundVector, w1: Place, target: BoundValue) -> PlaceBoundVector:
    """
    Bound vector g equal to f away from w1 with prod_w g(w)^mult(w) == target.

    Raises BoundDivisionByZero if a fixed bound is zero, InvalidDomain if the
    target is negative / non-finite or the result is not representable.
    """
    f.signature.check_place(w1)
    target = as_bound("target", target)

    zeros = [w for w, v in f.items() if w != w1 and v == 0]
    if zeros:
        raise BoundDivisionByZero(f"fixed bounds at {zeros} are zero; cannot solve for {w1!r}")

    g_w1: BoundValue
    fixed = [v for w, v in f.items() if w != w1]
    if _is_exact(target) and all(_is_exact(v) for v in fixed):
        q = Fraction(target) / Fraction(bound_product(f, exclude=w1))
        root = q if w1.mult == 1 else _exact_sqrt(q)
        if root is not None:
            g_w1 = root
        else:
            g_w1 = _solve_float(float(target), f, w1)
    else:
        g_w1 = _solve_float(float(target), f, w1)

    return f.replace(w1, g_w1)
