import random

import numpy as np
import pytest

from convex_bodies import ConvexBodyLT, ConvexBodyLTPrime, ConvexBodySum
from lattice_search import (
    LatticeBackend,
    SearchConfig,
    find_nonzero_lattice_point,
    lattice_covolume,
    search_region,
)
from mixed_space import (
    InternalInvariantViolation,
    InvalidDomain,
    LatticePointNotFound,
    Place,
    PlaceBoundVector,
    PreconditionViolated,
    SearchBudgetExceeded,
    Signature,
)

IDENTITY_2 = [[1.0, 0.0], [0.0, 1.0]]


@pytest.fixture
def square_region() -> ConvexBodyLT:
    return ConvexBodyLT(PlaceBoundVector.constant(Signature(2, 0), 1.5))


@pytest.fixture
def no_enumeration(monkeypatch):
    def _boom(*args, **kwargs):
        raise AssertionError("enumeration must not start")

    monkeypatch.setattr(LatticeBackend, "enumerate_ball", _boom)


def _assert_lattice_point(found, basis) -> None:
    recon = np.dot(np.array(found.coefficients, dtype=np.float64), np.asarray(basis, dtype=np.float64))
    assert np.allclose(recon, found.point)
    assert any(found.coefficients)


# -------- end to end --------


def test_square_lattice_point_in_square(square_region) -> None:
    found = search_region(IDENTITY_2, square_region, covolume=1)
    assert square_region.contains(found.point)
    assert any(found.point)
    _assert_lattice_point(found, IDENTITY_2)
    assert found.diagnostics["guaranteed"] is True
    assert found.nodes_visited >= 1


def test_skewed_basis_of_the_same_lattice(square_region) -> None:
    basis = [[1.0, 0.0], [1000.0, 1.0]]
    found = search_region(basis, square_region)
    assert square_region.contains(found.point)
    _assert_lattice_point(found, basis)


def test_without_lll_reduction(square_region) -> None:
    basis = [[1.0, 0.0], [7.0, 1.0]]
    found = search_region(basis, square_region, config=SearchConfig(reduce_basis=False))
    assert square_region.contains(found.point)
    _assert_lattice_point(found, basis)


def test_lt_prime_over_a_complex_place() -> None:
    sig = Signature(1, 1)
    region = ConvexBodyLTPrime(PlaceBoundVector(sig, (1.2,), (1.1,)), Place.complex(0))
    basis = np.eye(3).tolist()
    found = search_region(basis, region, covolume=1)
    assert region.contains(found.point)
    _assert_lattice_point(found, basis)


@pytest.mark.parametrize("seed", range(6))
def test_random_integer_bases(seed) -> None:
    rng = random.Random(seed)
    while True:
        basis = [[rng.randint(-5, 5) for _ in range(3)] for _ in range(3)]
        det = int(round(np.linalg.det(np.array(basis, dtype=np.float64))))
        if det != 0:
            break
    sig = Signature(3, 0)
    f = (abs(det) ** (1.0 / 3.0)) * 1.05
    region = ConvexBodyLT(PlaceBoundVector.constant(sig, f))
    found = search_region(basis, region, covolume=abs(det))
    assert region.contains(found.point)
    _assert_lattice_point(found, basis)


def test_compact_body_at_equality() -> None:
    # vol Sum(1) in R is 2 == 2^1 * covol(Z): allowed for the closed body
    region = ConvexBodySum(Signature(1, 0), 1)
    found = search_region([[1.0]], region, covolume=1)
    assert abs(found.point[0]) == 1.0


# -------- precondition / failure modes --------


def test_precondition_checked_before_enumeration(no_enumeration) -> None:
    # vol LT(1) in R is 2, not > 2
    region = ConvexBodyLT(PlaceBoundVector.constant(Signature(1, 0), 1))
    with pytest.raises(PreconditionViolated):
        search_region([[1.0]], region, covolume=1)


def test_zero_bound_region_fails_precondition(no_enumeration) -> None:
    sig = Signature(2, 0)
    region = ConvexBodyLT(PlaceBoundVector(sig, (0.0, 5.0), ()))
    with pytest.raises(PreconditionViolated):
        search_region(IDENTITY_2, region)


def test_budget_exhaustion(square_region) -> None:
    with pytest.raises(SearchBudgetExceeded):
        search_region(IDENTITY_2, square_region, config=SearchConfig(max_nodes=1))


def test_unguaranteed_search_reports_not_found() -> None:
    with pytest.raises(LatticePointNotFound):
        find_nonzero_lattice_point(IDENTITY_2, lambda p: False, [1.5, 1.5])


def test_empty_region_reports_not_found() -> None:
    region = ConvexBodyLT(PlaceBoundVector.constant(Signature(2, 0), 0.5))
    with pytest.raises(LatticePointNotFound):
        find_nonzero_lattice_point(IDENTITY_2, region.contains, region.bounding_box())


def test_guaranteed_search_exhaustion_is_an_invariant_violation() -> None:
    with pytest.raises(InternalInvariantViolation):
        find_nonzero_lattice_point(
            IDENTITY_2, lambda p: False, [1.5, 1.5], region_volume=100, covolume=1
        )


def test_singular_basis() -> None:
    with pytest.raises(InvalidDomain):
        find_nonzero_lattice_point([[1.0, 2.0], [2.0, 4.0]], lambda p: True, [1.0, 1.0])


def test_non_square_basis() -> None:
    with pytest.raises(InvalidDomain):
        lattice_covolume([[1.0, 2.0, 3.0], [0.0, 1.0, 0.0]])


def test_degenerate_box() -> None:
    with pytest.raises(InvalidDomain):
        find_nonzero_lattice_point(IDENTITY_2, lambda p: True, [1.0, 0.0])


def test_dimension_mismatch(square_region) -> None:
    with pytest.raises(InvalidDomain):
        search_region([[1.0]], square_region)


# -------- configuration --------


@pytest.mark.parametrize(
    "kwargs",
    [{"max_nodes": 0}, {"max_nodes": -3}, {"lll_delta": 1.0}, {"lll_delta": 0.25}],
)
def test_config_validation(kwargs) -> None:
    with pytest.raises(ValueError):
        SearchConfig(**kwargs)


def test_config_from_env(monkeypatch) -> None:
    monkeypatch.setenv("MINKOWSKI_SEARCH_MAX_NODES", "500")
    monkeypatch.setenv("MINKOWSKI_LLL_DELTA", "0.99")
    monkeypatch.setenv("MINKOWSKI_REDUCE_BASIS", "no")
    cfg = SearchConfig.from_env()
    assert cfg.max_nodes == 500
    assert cfg.lll_delta == pytest.approx(0.99)
    assert cfg.reduce_basis is False


def test_config_from_empty_env(monkeypatch) -> None:
    for name in ("MINKOWSKI_SEARCH_MAX_NODES", "MINKOWSKI_LLL_DELTA", "MINKOWSKI_REDUCE_BASIS"):
        monkeypatch.delenv(name, raising=False)
    assert SearchConfig.from_env() == SearchConfig()


@pytest.mark.parametrize(
    "name,value",
    [
        ("MINKOWSKI_SEARCH_MAX_NODES", "many"),
        ("MINKOWSKI_LLL_DELTA", "x"),
        ("MINKOWSKI_REDUCE_BASIS", "maybe"),
    ],
)
def test_config_from_env_rejects_garbage(monkeypatch, name, value) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        SearchConfig.from_env()


# -------- backend --------


def test_lll_transform_is_unimodular() -> None:
    basis = [[1.0, 1.0, 1.0], [-1.0, 0.0, 2.0], [3.0, 5.0, 6.0]]
    backend = LatticeBackend()
    reduced, U = backend.lll_reduce(basis, delta=0.75)
    assert np.allclose(np.array(U, dtype=np.float64) @ np.array(basis), np.array(reduced))
    assert abs(round(np.linalg.det(np.array(U, dtype=np.float64)))) == 1

    mu, B = backend.gram_schmidt(reduced)
    for k in range(1, 3):
        assert B[k] >= (0.75 - mu[k][k - 1] ** 2) * B[k - 1] - 1e-9
        for j in range(k):
            assert abs(mu[k][j]) <= 0.5 + 1e-9


def test_enumeration_lists_points_up_to_sign() -> None:
    backend = LatticeBackend()
    found = sorted(tuple(c) for c, _ in backend.enumerate_ball(IDENTITY_2, 1.0))
    assert found == [(0, 1), (1, 0)]
    assert backend.stats["enum_nodes"] > 0


def test_enumeration_covers_ball_of_radius_two() -> None:
    backend = LatticeBackend()
    found = {tuple(c) for c, _ in backend.enumerate_ball(IDENTITY_2, 2.0)}
    assert found == {(1, 0), (0, 1), (1, 1), (-1, 1)}


def test_zigzag_order() -> None:
    assert list(LatticeBackend._zigzag(0.3, -2, 2)) == [0, 1, -1, 2, -2]
    assert list(LatticeBackend._zigzag(5.0, 0, 2)) == [2, 1, 0]


def test_gram_schmidt_rejects_dependent_rows() -> None:
    with pytest.raises(InvalidDomain):
        LatticeBackend().gram_schmidt([[1.0, 1.0], [2.0, 2.0]])