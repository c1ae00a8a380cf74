import math

import numpy as np
import pytest

from convex_bodies import ConvexBodyLTPrime
from lattice_search import SearchConfig
from minkowski_bound import PiMonomial
from mixed_space import (
    InvalidDomain,
    MixedPoint,
    Place,
    PlaceBoundVector,
    PreconditionViolated,
    Signature,
)
from witness_extraction import (
    ExplicitLattice,
    element_norm,
    exists_ne_zero_mem_ideal_lt,
    exists_ne_zero_mem_ideal_lt_prime,
    exists_ne_zero_mem_ideal_of_minkowski_norm,
    exists_ne_zero_mem_ideal_of_norm_le,
    exists_primitive_element_lt,
    primitive_element_bound,
)

SQRT2 = math.sqrt(2.0)


@pytest.fixture
def real_quadratic() -> ExplicitLattice:
    """Z[sqrt 2]: rows are the embeddings of 1 and sqrt 2."""
    return ExplicitLattice(Signature(2, 0), [[1.0, 1.0], [SQRT2, -SQRT2]])


@pytest.fixture
def gaussian() -> ExplicitLattice:
    return ExplicitLattice(Signature(0, 1), [[1.0, 0.0], [0.0, 1.0]], covolume=1)


def test_element_norm() -> None:
    assert element_norm(MixedPoint((2.0,), (complex(0.0, 3.0),))) == pytest.approx(18.0)


def test_explicit_lattice_embed_and_lift(real_quadratic) -> None:
    p = real_quadratic.embed((1, 1))
    assert p.real == pytest.approx((1.0 + SQRT2, 1.0 - SQRT2))
    assert real_quadratic.lift_lattice_point(p, None) == (1, 1)
    assert real_quadratic.lattice_covolume(None) == pytest.approx(2.0 * SQRT2)


def test_explicit_lattice_lift_rejects_non_lattice_point(real_quadratic) -> None:
    with pytest.raises(InvalidDomain):
        real_quadratic.lift_lattice_point(MixedPoint((0.5, 0.5), ()), None)


def test_explicit_lattice_lift_checks_ideal_membership() -> None:
    order = ExplicitLattice(Signature(2, 0), [[1.0, 0.0], [0.0, 1.0]], covolume=1)
    ideal = [[2, 0], [0, 2]]
    assert order.lattice_covolume(ideal) == 4
    with pytest.raises(InvalidDomain):
        order.lift_lattice_point(MixedPoint((1.0, 0.0), ()), ideal)
    assert order.lift_lattice_point(MixedPoint((2.0, -4.0), ()), ideal) == (2, -4)


def test_explicit_lattice_rejects_bad_shapes() -> None:
    with pytest.raises(InvalidDomain):
        ExplicitLattice(Signature(1, 1), [[1.0, 0.0], [0.0, 1.0]])
    order = ExplicitLattice(Signature(2, 0), [[1.0, 0.0], [0.0, 1.0]])
    with pytest.raises(InvalidDomain):
        order.ideal_lattice_basis([[1, 0, 0]])
    with pytest.raises(InvalidDomain):
        order.ideal_lattice_basis([[1, 2], [2, 4]])


def test_element_with_norm_below_minkowski_bound(real_quadratic) -> None:
    w = exists_ne_zero_mem_ideal_of_minkowski_norm(real_quadratic, None)
    bound = w.certificate["minkowski_norm_bound"]
    assert isinstance(bound, PiMonomial)
    assert bound.to_float() == pytest.approx(SQRT2)
    assert w.norm <= bound.to_float()
    assert w.norm == pytest.approx(1.0)
    assert abs(w.element[0]) == 1 and w.element[1] == 0
    assert w.norm <= w.certificate["norm_bound"] * (1 + 1e-12)


def test_norm_le_below_admissible_radius_fails(real_quadratic) -> None:
    # 2 B^2 = 4 < 8 sqrt 2
    with pytest.raises(PreconditionViolated):
        exists_ne_zero_mem_ideal_of_norm_le(real_quadratic, None, 1.0)


def test_lt_in_an_ideal(real_quadratic) -> None:
    ideal = [[2, 0], [0, 2]]
    f = PlaceBoundVector.constant(Signature(2, 0), 3.5)
    w = exists_ne_zero_mem_ideal_lt(real_quadratic, ideal, f)
    assert any(w.element)
    assert all(c % 2 == 0 for c in w.element)
    assert all(v < 3.5 for v in w.place_norms.values())
    assert w.certificate["covolume"] == pytest.approx(8.0 * SQRT2)


def test_lt_prime_witness_over_mixed_signature() -> None:
    sig = Signature(1, 1)
    order = ExplicitLattice(sig, np.eye(3), covolume=1)
    f = PlaceBoundVector(sig, (1.2,), (1.1,))
    w = exists_ne_zero_mem_ideal_lt_prime(order, None, f, Place.complex(0))
    assert isinstance(w.region, ConvexBodyLTPrime)
    assert w.region.contains(w.point)
    assert any(w.element)
    assert order.embed(w.element).to_real_vector() == pytest.approx(w.point.to_real_vector())


def test_primitive_element_real_place(real_quadratic) -> None:
    w0 = Place.real(0)
    b = primitive_element_bound(real_quadratic, w0)
    assert b == pytest.approx(2.0 * SQRT2)
    w = exists_primitive_element_lt(real_quadratic, w0, b * 1.01)
    assert w.element in ((1, 1), (-1, -1))
    assert w.place_norms[Place.real(1)] < 1.0
    assert w.certificate["primitive_at"] == w0


def test_primitive_element_complex_place(gaussian) -> None:
    w0 = Place.complex(0)
    b = primitive_element_bound(gaussian, w0)
    assert b == pytest.approx(1.0)
    assert b > 1.0
    w = exists_primitive_element_lt(gaussian, w0, b * 1.01)
    assert w.element in ((0, 1), (0, -1))
    assert w.point.complex[0].imag != 0


def test_primitive_element_at_threshold_fails(gaussian) -> None:
    with pytest.raises(PreconditionViolated):
        exists_primitive_element_lt(gaussian, Place.complex(0), 1.0)


def test_search_config_is_forwarded(real_quadratic) -> None:
    w = exists_primitive_element_lt(
        real_quadratic, Place.real(0), 3.0, config=SearchConfig(reduce_basis=False)
    )
    assert w.search.nodes_visited >= 1


def test_region_signature_must_match_field(gaussian) -> None:
    with pytest.raises(InvalidDomain):
        exists_ne_zero_mem_ideal_lt(
            gaussian, None, PlaceBoundVector.constant(Signature(2, 0), 2.0)
        )


@pytest.mark.parametrize("w0", [Place.real(0), Place.real(1)])
def test_primitive_element_bound_is_least_float(real_quadratic, w0) -> None:
    b = primitive_element_bound(real_quadratic, w0)
    exists_primitive_element_lt(real_quadratic, w0, b)
    with pytest.raises(PreconditionViolated):
        exists_primitive_element_lt(real_quadratic, w0, math.nextafter(b, 0.0))


def test_primitive_element_bound_complex_is_next_float(gaussian) -> None:
    assert primitive_element_bound(gaussian, Place.complex(0)) == math.nextafter(1.0, 2.0)


def test_ideal_matrix_must_be_integral(gaussian) -> None:
    with pytest.raises(InvalidDomain):
        gaussian.ideal_lattice_basis([[1.5, 0.0], [0.0, 2.0]])
    with pytest.raises(InvalidDomain):
        gaussian.lattice_covolume([[float("nan"), 0.0], [0.0, 1.0]])
    with pytest.raises(InvalidDomain):
        gaussian.ideal_lattice_basis([["1", "0"], ["0", "1"]])
    assert gaussian.lattice_covolume([[2.0, 0.0], [0.0, 2.0]]) == 4
    assert gaussian.lattice_covolume(np.array([[2, 0], [0, 2]], dtype=np.int32)) == 4


def test_witness_maps_are_read_only(gaussian) -> None:
    w = exists_ne_zero_mem_ideal_of_minkowski_norm(gaussian, None)
    with pytest.raises(TypeError):
        w.certificate["norm_bound"] = 0.0
    with pytest.raises(TypeError):
        w.place_norms[Place.complex(0)] = 0.0
    assert {"norm_bound", "minkowski_norm_bound", "covolume"} <= set(w.certificate)


def test_norm_le_and_minkowski_norm_certificates_differ(real_quadratic) -> None:
    sig = real_quadratic.signature()
    radius = 3.0
    plain = exists_ne_zero_mem_ideal_of_norm_le(real_quadratic, None, radius)
    assert "minkowski_norm_bound" not in plain.certificate
    assert plain.certificate["norm_bound"] == pytest.approx((radius / sig.degree) ** sig.degree)
