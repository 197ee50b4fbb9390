# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the density matrix truncation bond update.

This module verifies that ``svd_bond``
- writes two-site tensors back exactly when no truncation is needed,
- preserves the trace and the reduced density matrices of the windows around the bond,
- keeps single-site expectation values along a full sweep with truncation,
- degrades gracefully when the maximum bond dimension cannot hold the preserved subspaces,
- enforces the orthogonality frontier and validates its input.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING

import numpy as np
import pytest

from mqt.dmt.core.data_structures.density_matrix import DensityMatrix, OrthogonalityFrontier
from mqt.dmt.core.data_structures.networks import MPO
from mqt.dmt.core.data_structures.simulation_parameters import Direction, TruncationParams
from mqt.dmt.core.libraries.gate_library import X, Z
from mqt.dmt.core.methods.dmt import CanonicalFormError, svd_bond
from mqt.dmt.core.methods.evolution import merge_bond, sweep
from mqt.dmt.core.methods.observables import expectation_value, reduced_density_matrix

if TYPE_CHECKING:
    from numpy.typing import NDArray


def crandn(
    size: int | tuple[int, ...], *args: int, seed: np.random.Generator | int | None = None
) -> NDArray[np.complex128]:
    """Draw random samples from the standard complex normal distribution.

    Args:
        size (int |Tuple[int,...]): The size/shape of the output array.
        *args (int): Additional dimensions for the output array.
        seed (Generator | int): The seed for the random number generator.

    Returns:
        NDArray[np.complex128]: The array of random complex numbers.
    """
    if isinstance(size, int) and len(args) > 0:
        size = (size, *list(args))
    elif isinstance(size, int):
        size = (size,)
    rng = np.random.default_rng(seed)
    # 1 / sqrt(2) is a normalization factor
    return np.asarray((rng.standard_normal(size) + 1j * rng.standard_normal(size)) / np.sqrt(2), dtype=np.complex128)


def random_density_matrix(length: int, bond_dim: int, seed: int = 0, pres_range: int = 1) -> DensityMatrix:
    """Random operator chain with trivial boundary links."""
    dims = [1] + [bond_dim] * (length - 1) + [1]
    tensors = [crandn(2, 2, dims[i], dims[i + 1], seed=seed + i) for i in range(length)]
    return DensityMatrix(MPO(tensors), pres_range)


def truncate_center(dm: DensityMatrix, params: TruncationParams) -> None:
    """Updates bond 1 of a chain, coming from the left."""
    dm.frontier = OrthogonalityFrontier(0, dm.length)
    svd_bond(dm, 1, merge_bond(dm, 1), Direction.FROM_LEFT, params)


def test_exact_without_truncation() -> None:
    """Without truncation the chain is unchanged and the center moves to the right."""
    dm = random_density_matrix(4, 3)
    dense = dm.to_matrix()
    spectrum = svd_bond(dm, 0, merge_bond(dm, 0), Direction.FROM_LEFT)
    np.testing.assert_allclose(dm.to_matrix(), dense, atol=1e-10)
    assert dm.frontier == OrthogonalityFrontier(0, 4)
    assert spectrum.dim == dm.bond_dimensions()[0]

    left = dm.flat_tensor(0).reshape(-1, dm.bond_dimensions()[0])
    np.testing.assert_allclose(left.conj().T @ left, np.eye(left.shape[1]), atol=1e-12)


def test_preserves_window_reduced_density_matrix() -> None:
    """Truncation keeps the trace and the reduced density matrix of the preserved windows."""
    dm = random_density_matrix(4, 16, seed=3)
    rdm = reduced_density_matrix(dm, 1, 2)
    trace = dm.trace()
    dense = dm.to_matrix()

    truncate_center(dm, TruncationParams(max_bond_dim=10))

    assert dm.bond_dimensions()[1] <= 10
    assert not np.allclose(dm.to_matrix(), dense)
    assert np.isclose(dm.trace(), trace)
    np.testing.assert_allclose(reduced_density_matrix(dm, 1, 2), rdm, rtol=1e-8, atol=1e-8 * np.abs(rdm).max())


def test_vector_and_operator_mode_agree() -> None:
    """The bond update does not depend on the mode of the chain or the layout of the two-site tensor."""
    dm = random_density_matrix(4, 16, seed=5)
    vec_dm = copy.deepcopy(dm)
    vec_dm.vectorize()
    params = TruncationParams(max_bond_dim=10)

    dm.frontier = OrthogonalityFrontier(0, dm.length)
    shape = merge_bond(dm, 1).shape
    operator_form = merge_bond(dm, 1).reshape(2, 2, 2, 2, shape[2], shape[3])
    svd_bond(dm, 1, operator_form, Direction.FROM_LEFT, params)
    truncate_center(vec_dm, params)

    assert vec_dm.vectorized
    np.testing.assert_allclose(vec_dm.to_matrix(), dm.to_matrix(), atol=1e-8 * np.abs(dm.to_matrix()).max())


def test_density_matrix_decomposition_path() -> None:
    """A large cutoff routes the residual block through the density-matrix decomposition."""
    dm = random_density_matrix(4, 16, seed=7)
    rdm = reduced_density_matrix(dm, 1, 2)
    params = TruncationParams(cutoff=1e-10, max_bond_dim=10)
    assert not params.accurate

    truncate_center(dm, params)

    assert dm.bond_dimensions()[1] <= 10
    np.testing.assert_allclose(reduced_density_matrix(dm, 1, 2), rdm, rtol=1e-8, atol=1e-8 * np.abs(rdm).max())


def test_capacity_exhausted(caplog: pytest.LogCaptureFixture) -> None:
    """If the preserved subspaces fill the maximum bond dimension, the residual block is dropped."""
    dm = random_density_matrix(4, 16, seed=9)
    rdm = reduced_density_matrix(dm, 1, 2)

    with caplog.at_level(logging.WARNING, logger="mqt.dmt.core.methods.dmt"):
        truncate_center(dm, TruncationParams(max_bond_dim=8))

    assert "MaxDim <= preservation range" in caplog.text
    assert dm.bond_dimensions()[1] <= 8
    np.testing.assert_allclose(reduced_density_matrix(dm, 1, 2), rdm, rtol=1e-8, atol=1e-8 * np.abs(rdm).max())


def test_window_larger_than_bond() -> None:
    """If the preserved subspaces do not fit into the bond, the bare SVD result is kept."""
    dm = random_density_matrix(4, 16, seed=11, pres_range=2)
    dense = dm.to_matrix()

    truncate_center(dm, TruncationParams(max_bond_dim=4))

    np.testing.assert_allclose(dm.to_matrix(), dense, atol=1e-8 * np.abs(dense).max())


def test_sweep_preserves_local_observables() -> None:
    """A full sweep with truncation keeps the trace and all single-site expectation values."""
    dm = random_density_matrix(5, 16, seed=13)
    trace = dm.trace()
    expected = [(expectation_value(dm, X(), i), expectation_value(dm, Z(), i)) for i in range(5)]

    spectra = sweep(dm, [None] * 4, Direction.FROM_LEFT, TruncationParams(max_bond_dim=9))

    assert len(spectra) == 4
    assert dm.max_bond_dim() <= 9
    assert dm.frontier == OrthogonalityFrontier(3, 5)
    assert np.isclose(dm.trace(), trace)
    for i, (x_val, z_val) in enumerate(expected):
        assert np.isclose(expectation_value(dm, X(), i), x_val)
        assert np.isclose(expectation_value(dm, Z(), i), z_val)


def test_frontier_after_sweeps() -> None:
    """Sweeping right moves the left limit to the last bond, sweeping back restores it."""
    dm = random_density_matrix(4, 2)
    sweep(dm, [None] * 3, Direction.FROM_LEFT)
    assert dm.frontier.left_lim == dm.length - 2
    assert dm.frontier.right_lim == dm.length
    sweep(dm, [None] * 3, Direction.FROM_RIGHT)
    assert dm.frontier == OrthogonalityFrontier(-1, 1)


def test_preserves_window_sweeping_right() -> None:
    """Truncating from the right keeps the trace and the window reduced density matrix."""
    dm = random_density_matrix(5, 16, seed=15)
    rdm = reduced_density_matrix(dm, 1, 2)
    trace = dm.trace()
    dm.frontier = OrthogonalityFrontier(-1, 3)

    svd_bond(dm, 1, merge_bond(dm, 1), Direction.FROM_RIGHT, TruncationParams(max_bond_dim=10))

    assert dm.bond_dimensions()[1] <= 10
    assert dm.frontier == OrthogonalityFrontier(-1, 2)
    assert np.isclose(dm.trace(), trace)
    np.testing.assert_allclose(reduced_density_matrix(dm, 1, 2), rdm, rtol=1e-8, atol=1e-8 * np.abs(rdm).max())


def test_preserves_two_site_windows() -> None:
    """With a preservation range of two, the four sites around the bond keep their reduced density matrix."""
    dm = random_density_matrix(6, 40, seed=17, pres_range=2)
    rdm = reduced_density_matrix(dm, 1, 4)
    trace = dm.trace()
    dm.frontier = OrthogonalityFrontier(1, dm.length)

    svd_bond(dm, 2, merge_bond(dm, 2), Direction.FROM_LEFT, TruncationParams(max_bond_dim=34))

    assert dm.bond_dimensions()[2] <= 34
    assert np.isclose(dm.trace(), trace)
    np.testing.assert_allclose(reduced_density_matrix(dm, 1, 4), rdm, rtol=1e-8, atol=1e-8 * np.abs(rdm).max())


@pytest.mark.parametrize("direction", [Direction.FROM_LEFT, Direction.FROM_RIGHT])
def test_normalize_center(direction: Direction) -> None:
    """After a truncating update the new orthogonality center has unit norm."""
    dm = random_density_matrix(4, 16, seed=2)
    dm.frontier = OrthogonalityFrontier(0, 3)
    svd_bond(dm, 1, merge_bond(dm, 1), direction, TruncationParams(max_bond_dim=10, normalize=True))
    center = 2 if direction == Direction.FROM_LEFT else 1
    assert np.isclose(np.linalg.norm(dm.flat_tensor(center)), 1.0)


def test_normalize_skipped_without_truncation() -> None:
    """If the bare SVD result is kept, the chain is not rescaled."""
    dm = random_density_matrix(3, 2, seed=2)
    dense = dm.to_matrix()
    svd_bond(dm, 0, merge_bond(dm, 0), Direction.FROM_LEFT, TruncationParams(normalize=True))
    np.testing.assert_allclose(dm.to_matrix(), dense, atol=1e-10 * np.abs(dense).max())


def test_frontier_violation() -> None:
    """Bond updates far from the orthogonality center are rejected."""
    dm = random_density_matrix(4, 2)
    with pytest.raises(CanonicalFormError, match="left_lim"):
        svd_bond(dm, 1, merge_bond(dm, 1), Direction.FROM_LEFT)
    with pytest.raises(CanonicalFormError, match="right_lim"):
        svd_bond(dm, 0, merge_bond(dm, 0), Direction.FROM_RIGHT)
    assert issubclass(CanonicalFormError, ValueError)


def test_invalid_input() -> None:
    """Invalid preservation ranges, bonds and tensors are rejected."""
    dm = random_density_matrix(3, 2)
    theta = merge_bond(dm, 0)
    with pytest.raises(ValueError, match="does not exist"):
        svd_bond(dm, 2, theta, Direction.FROM_LEFT)
    with pytest.raises(ValueError, match="does not fit"):
        svd_bond(dm, 0, theta[:2], Direction.FROM_LEFT)
    dm.pres_range = 0
    with pytest.raises(ValueError, match="Preservation range"):
        svd_bond(dm, 0, theta, Direction.FROM_LEFT)
