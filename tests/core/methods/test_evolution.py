# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the sweep driver.

This module checks the merging of bonds, the application of bond gates and that a pair of
sweeps with half time step gates reproduces the symmetric Trotter step of dense evolution.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest
from scipy.linalg import expm

from mqt.dmt.core.data_structures.density_matrix import DensityMatrix
from mqt.dmt.core.data_structures.networks import MPO, MPS
from mqt.dmt.core.data_structures.simulation_parameters import Direction, TruncationParams
from mqt.dmt.core.libraries.gate_library import X, Z
from mqt.dmt.core.methods.evolution import apply_bond_gate, evolve_step, merge_bond, sweep
from mqt.dmt.core.methods.gates import BondGate

if TYPE_CHECKING:
    from numpy.typing import NDArray


def ising_bond(g: float = 0.5) -> NDArray[np.complex128]:
    """Two-site Ising generator with a transverse field on the left site."""
    x, z = X().matrix, Z().matrix
    return np.kron(z, z) + g * np.kron(x, np.eye(2))


def embed(op: NDArray[np.complex128], bond: int, length: int) -> NDArray[np.complex128]:
    """Dense two-site operator on ``bond`` and ``bond + 1`` of a qubit chain."""
    return np.kron(np.kron(np.eye(2**bond), op), np.eye(2 ** (length - bond - 2)))


def test_merge_bond() -> None:
    """The merged tensor contracts the shared link."""
    dm = DensityMatrix.from_pure_state(MPS(3, state="random"))
    theta = merge_bond(dm, 1)
    left, right = dm.flat_tensor(1), dm.flat_tensor(2)
    assert theta.shape == (4, 4, left.shape[1], right.shape[2])
    np.testing.assert_allclose(theta, np.einsum("alb,cbr->aclr", left, right))


def test_apply_identity_gate() -> None:
    """The identity gate leaves the two-site tensor unchanged."""
    dm = DensityMatrix.from_pure_state(MPS(2, state="x+"))
    theta = merge_bond(dm, 0)
    gate = BondGate([0, 1], np.eye(16, dtype=np.complex128).reshape(4, 4, 4, 4))
    np.testing.assert_allclose(apply_bond_gate(gate, theta), theta)


@pytest.mark.parametrize("vectorize", [False, True])
def test_evolve_step_matches_dense(*, vectorize: bool) -> None:
    """Two sweeps of half step gates form the symmetric Trotter step U01(dt/2) U12(dt) U01(dt/2)."""
    length, dt = 3, 0.2
    psi = MPS(length, state="x+")
    dm = DensityMatrix.from_pure_state(psi)
    if vectorize:
        dm.vectorize()
    h = ising_bond()
    gates = [dm.calc_gate(h, dt, bond) for bond in range(length - 1)]

    half = expm(-1j * dt / 2 * embed(h, 0, length))
    full = expm(-1j * dt * embed(h, 1, length))
    step = half @ full @ half
    rho = np.outer(psi.to_vec(), psi.to_vec().conj())

    for _ in range(3):
        spectra = evolve_step(dm, gates, TruncationParams())
        rho = step @ rho @ step.conj().T
        assert len(spectra) == 2 * (length - 1)

    np.testing.assert_allclose(dm.to_matrix(), rho, atol=1e-10)
    assert np.isclose(dm.trace(), 1.0)


def test_sweep_requires_one_gate_per_bond() -> None:
    """The number of gates must match the number of bonds."""
    dm = DensityMatrix.from_pure_state(MPS(3))
    with pytest.raises(AssertionError, match="One gate per bond"):
        sweep(dm, [None], Direction.FROM_LEFT)


def test_sweep_passes_effective_operator() -> None:
    """With noise, every truncating bond update asks the effective operator for its perturbation."""
    rng = np.random.default_rng(3)
    dims = [1, 16, 16, 16, 1]
    dm = DensityMatrix(MPO([rng.standard_normal((2, 2, dims[i], dims[i + 1])) for i in range(4)]))
    calls: list[tuple[tuple[int, ...], Direction]] = []

    def effective_operator(matrix: NDArray[np.complex128], direction: Direction) -> NDArray[np.complex128]:
        calls.append((matrix.shape, direction))
        return matrix

    sweep(dm, [None] * 3, Direction.FROM_LEFT, TruncationParams(max_bond_dim=10, noise=1e-6), effective_operator)

    assert calls
    assert all(direction == Direction.FROM_LEFT for _, direction in calls)
    assert dm.max_bond_dim() <= 10
