# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Observables of a density matrix chain.

All expectation values are normalized by the trace of the density matrix, so chains that lost their
normalization during a truncation still yield physical expectation values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from ..data_structures.density_matrix import DensityMatrix
    from ..data_structures.networks import MPO
    from ..libraries.gate_library import BaseGate


def expectation_value(dm: DensityMatrix, op: BaseGate | str | NDArray[np.complex128], site: int) -> np.complex128:
    """Expectation value tr(op rho) / tr(rho) of a single-site operator.

    Args:
        dm: The density matrix.
        op: The operator, its GateLibrary name or its matrix.
        site: Site the operator acts on.

    Returns:
        np.complex128: The expectation value.
    """
    local = oe.contract("p,pab->ab", dm.site_op(op, site), dm.flat_tensor(site))
    value = dm.trace_left_of(site) @ local @ dm.trace_right_of(site)
    return np.complex128(value / dm.trace())


def expectation_value_mpo(dm: DensityMatrix, mpo: MPO, *, convert_basis: bool = True) -> np.complex128:
    """Expectation value of an operator chain.

    Args:
        dm: The density matrix.
        mpo: The operator.
        convert_basis: Whether ``mpo`` holds operators (True) or trace vectors (False).

    Returns:
        np.complex128: tr(O rho) / tr(rho).
    """
    return np.complex128(dm.trace_mpo(mpo, convert_basis=convert_basis) / dm.trace())


def two_point_correlator(
    dm: DensityMatrix,
    op_i: BaseGate | str | NDArray[np.complex128],
    site_i: int,
    op_j: BaseGate | str | NDArray[np.complex128],
    site_j: int,
) -> np.complex128:
    """Correlator <op_i op_j> of two operators on different sites.

    Args:
        dm: The density matrix.
        op_i: First operator.
        site_i: Site of the first operator.
        op_j: Second operator.
        site_j: Site of the second operator.

    Returns:
        np.complex128: The normalized correlator.

    Raises:
        ValueError: If both sites coincide.
    """
    if site_i == site_j:
        msg = "Two-point correlator must be on different sites."
        raise ValueError(msg)
    if site_i > site_j:
        op_i, site_i, op_j, site_j = op_j, site_j, op_i, site_i

    left = dm.trace_left_of(site_i) @ oe.contract("p,pab->ab", dm.site_op(op_i, site_i), dm.flat_tensor(site_i))
    for site in range(site_i + 1, site_j):
        left = left @ dm.trace_of(site)
    right = oe.contract("p,pab->ab", dm.site_op(op_j, site_j), dm.flat_tensor(site_j)) @ dm.trace_right_of(site_j)
    return np.complex128((left @ right) / dm.trace())


def reduced_density_matrix(dm: DensityMatrix, start: int, end: int) -> NDArray[np.complex128]:
    """Reduced density matrix of the sites start..end (inclusive).

    All other sites are traced out; the result is not normalized.

    Args:
        dm: The density matrix.
        start: First site.
        end: Last site.

    Returns:
        NDArray[np.complex128]: Dense matrix on the window, with ``start`` the most significant site.
    """
    tensors = dm.operator_tensors()
    mat = oe.contract("a,stab->stb", dm.trace_left_of(start), tensors[start])
    for tensor in tensors[start + 1 : end + 1]:
        mat = oe.contract("rcb,uvbd->rucvd", mat, tensor)
        mat = np.reshape(mat, (mat.shape[0] * mat.shape[1], mat.shape[2] * mat.shape[3], mat.shape[4]))
    return oe.contract("stb,b->st", mat, dm.trace_right_of(end))


def second_renyi_entropy_half_system(dm: DensityMatrix) -> float:
    """Second Rényi entropy of the right half of the chain.

    Returns:
        float: |log tr(rho_half rho_half^dagger)| with rho_half normalized by the trace.
    """
    rdm = reduced_density_matrix(dm, dm.length // 2, dm.length - 1) / dm.trace()
    purity = np.sum(np.abs(rdm) ** 2)
    return float(abs(np.log(purity)))
