# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Sweeps of bond gates over a density matrix chain.

This module implements the time-evolving block decimation style driver of density matrix truncation.
Each bond update merges two neighbouring sites, applies the bond gate and writes the result back with
``svd_bond``. A sweep from left to right followed by a sweep from right to left, both with half time
step gates, forms one symmetric (second-order) Trotter step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import opt_einsum as oe

from ..data_structures.simulation_parameters import Direction
from .dmt import svd_bond

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    import numpy as np
    from numpy.typing import NDArray

    from ..data_structures.density_matrix import DensityMatrix
    from ..data_structures.simulation_parameters import TruncationParams
    from .decompositions import Spectrum
    from .gates import BondGate


def merge_bond(dm: DensityMatrix, bond: int) -> NDArray[np.complex128]:
    """Contracts the sites ``bond`` and ``bond + 1`` into one tensor.

    Args:
        dm: The density matrix.
        bond: Left site.

    Returns:
        NDArray[np.complex128]: Two-site tensor (p_b, p_b+1, chi_l, chi_r).
    """
    return oe.contract("alb,cbr->aclr", dm.flat_tensor(bond), dm.flat_tensor(bond + 1))


def apply_bond_gate(gate: BondGate, theta: NDArray[np.complex128]) -> NDArray[np.complex128]:
    """Applies a bond gate to a two-site tensor.

    Args:
        gate: Gate with legs (p_b, p_b+1, p_b, p_b+1).
        theta: Two-site tensor (p_b, p_b+1, chi_l, chi_r).

    Returns:
        NDArray[np.complex128]: The updated two-site tensor.
    """
    return oe.contract("ijkl,klmn->ijmn", gate.tensor, theta)


def sweep(
    dm: DensityMatrix,
    gates: Sequence[BondGate | None],
    direction: Direction,
    params: TruncationParams | None = None,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None = None,
) -> list[Spectrum]:
    """Applies one gate per bond, sweeping in the given direction.

    Args:
        dm: The density matrix, updated in place.
        gates: ``gates[b]`` acts on bond b; None leaves the bond untouched but still truncates it.
        direction: Sweep direction.
        params: Truncation parameters.
        effective_operator: Context of the density-matrix decomposition, passed to every bond update.

    Returns:
        list[Spectrum]: Spectrum of every bond update, in the order of the sweep.
    """
    assert len(gates) == dm.length - 1, "One gate per bond is required."
    bonds = range(dm.length - 1) if direction == Direction.FROM_LEFT else reversed(range(dm.length - 1))
    spectra = []
    for bond in bonds:
        theta = merge_bond(dm, bond)
        gate = gates[bond]
        if gate is not None:
            theta = apply_bond_gate(gate, theta)
        spectra.append(svd_bond(dm, bond, theta, direction, params, effective_operator))
    return spectra


def evolve_step(
    dm: DensityMatrix,
    gates: Sequence[BondGate | None],
    params: TruncationParams | None = None,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None = None,
) -> list[Spectrum]:
    """One second-order Trotter step from half time step gates.

    Args:
        dm: The density matrix, updated in place.
        gates: Half time step gate of every bond.
        params: Truncation parameters.
        effective_operator: Context of the density-matrix decomposition.

    Returns:
        list[Spectrum]: Spectra of both sweeps.
    """
    spectra = sweep(dm, gates, Direction.FROM_LEFT, params, effective_operator)
    spectra.extend(sweep(dm, gates, Direction.FROM_RIGHT, params, effective_operator))
    return spectra
