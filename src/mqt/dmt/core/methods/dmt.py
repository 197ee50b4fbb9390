# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Density Matrix Truncation (DMT).

This module implements the bond update of a density matrix chain. A two-site tensor is split by an
SVD, and the resulting bond matrix is rotated into a basis in which the first rows and columns carry
every expectation value supported on the sites within ``pres_range`` of the bond. Only the remaining
block is truncated, after the connected (trace-carrying) rank-one component has been split off. The
reduced density matrices of both preservation windows as well as the trace therefore survive the
truncation exactly.

If the bond is too small to contain the preserved subspaces, the plain SVD result is written back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

from ..data_structures.simulation_parameters import MIN_CUT, MIN_NORM, Direction, TruncationParams
from .combiners import combiner, reduce_dim_top
from .decompositions import complete_qr, density_matrix_decomposition, truncated_svd

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    from ..data_structures.density_matrix import DensityMatrix
    from .decompositions import Spectrum

logger = logging.getLogger(__name__)


class CanonicalFormError(ValueError):
    """Raised when a bond update is requested outside the orthogonality frontier."""


def check_frontier(dm: DensityMatrix, bond: int, direction: Direction) -> None:
    """Checks that a bond update in the given direction is admissible.

    Args:
        dm: The density matrix.
        bond: Bond between ``bond`` and ``bond + 1``.
        direction: Sweep direction.

    Raises:
        CanonicalFormError: If the orthogonality center is not adjacent to the bond.
    """
    if direction == Direction.FROM_LEFT and bond - 1 > dm.frontier.left_lim:
        msg = f"svd_bond: b-1 > left_lim (bond {bond}, left_lim {dm.frontier.left_lim})"
        raise CanonicalFormError(msg)
    if direction == Direction.FROM_RIGHT and bond + 2 < dm.frontier.right_lim:
        msg = f"svd_bond: b+2 < right_lim (bond {bond}, right_lim {dm.frontier.right_lim})"
        raise CanonicalFormError(msg)


def vector_form(dm: DensityMatrix, bond: int, two_site_tensor: NDArray[np.complex128]) -> NDArray[np.complex128]:
    """Brings a two-site tensor into the layout (p_b, p_b+1, chi_l, chi_r).

    Args:
        dm: The density matrix.
        bond: Left site of the pair.
        two_site_tensor: Either (p_b, p_b+1, chi_l, chi_r) or
            (sigma_b, sigma'_b, sigma_b+1, sigma'_b+1, chi_l, chi_r).

    Returns:
        NDArray[np.complex128]: The vector-layout two-site tensor.

    Raises:
        ValueError: If the tensor does not fit the bond.
    """
    p_left, p_right = dm.vec_dim(bond), dm.vec_dim(bond + 1)
    if two_site_tensor.ndim == 6:
        shape = two_site_tensor.shape
        two_site_tensor = np.reshape(two_site_tensor, (shape[0] * shape[1], shape[2] * shape[3], shape[4], shape[5]))
    if two_site_tensor.ndim != 4 or two_site_tensor.shape[:2] != (p_left, p_right):
        msg = f"Two-site tensor of shape {two_site_tensor.shape} does not fit bond {bond}."
        raise ValueError(msg)
    return two_site_tensor


def left_basis(dm: DensityMatrix, start: int, tensors: list[NDArray[np.complex128]]) -> NDArray[np.complex128]:
    """Left window of the chain contracted with the traced-out sites before it.

    Args:
        dm: The density matrix, providing the sites left of ``start``.
        start: First site of the window.
        tensors: Vector-layout tensors of the window, in site order.

    Returns:
        NDArray[np.complex128]: Matrix (prod p_i, chi) from the window's physical legs to its right link.
    """
    basis = dm.trace_left_of(start)[np.newaxis, :]
    for tensor in tensors:
        basis = oe.contract("xa,pab->xpb", basis, tensor)
        comb, _ = combiner(*basis.shape[:2])
        basis = comb.combine(basis, (0, 1))
    return basis


def right_basis(dm: DensityMatrix, end: int, tensors: list[NDArray[np.complex128]]) -> NDArray[np.complex128]:
    """Right window of the chain contracted with the traced-out sites after it.

    Args:
        dm: The density matrix, providing the sites right of ``end``.
        end: Last site of the window.
        tensors: Vector-layout tensors of the window, in site order.

    Returns:
        NDArray[np.complex128]: Matrix (prod p_i, chi) from the window's physical legs to its left link.
    """
    basis = dm.trace_right_of(end)[:, np.newaxis]
    for tensor in reversed(tensors):
        basis = oe.contract("pab,bx->apx", tensor, basis)
        comb, _ = combiner(*basis.shape[1:])
        basis = comb.combine(basis, (1, 2))
    return basis.T


def preserved_basis(basis: NDArray[np.complex128], identity: NDArray[np.complex128]) -> NDArray[np.complex128]:
    """Unitary on the bond whose leading columns span the preserved operators.

    The first column is the image of the identity on the window, the first ``len(identity)`` columns
    span the images of all window operators.

    Args:
        basis: Window basis (sdim, chi) from ``left_basis`` or ``right_basis``.
        identity: Trace vector of the identity on the window.

    Returns:
        NDArray[np.complex128]: Unitary (chi, chi).
    """
    q_id, _ = complete_qr(identity[:, np.newaxis])
    q_basis, _ = complete_qr(basis.T @ np.conj(q_id))
    return q_basis


def truncate_block(
    block: NDArray[np.complex128],
    direction: Direction,
    max_bond_dim: int,
    params: TruncationParams,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None,
) -> tuple[NDArray[np.complex128], Spectrum]:
    """Low-rank approximation of the non-preserved block of the rotated bond matrix.

    Args:
        block: The block to be truncated.
        direction: Sweep direction.
        max_bond_dim: Rank available for the block.
        params: Truncation parameters.
        effective_operator: Context of the density-matrix decomposition.

    Returns:
        tuple: The approximated block and the spectrum of the factorization.
    """
    if params.accurate:
        u_mat, s_vec, v_mat, spectrum = truncated_svd(
            block, params.cutoff, max_bond_dim, respect_degenerate=params.respect_degenerate
        )
        return (u_mat * s_vec) @ v_mat, spectrum
    w_mat, v_mat, spectrum = density_matrix_decomposition(
        block,
        direction,
        params.cutoff,
        max_bond_dim,
        noise=params.noise,
        respect_degenerate=params.respect_degenerate,
        effective_operator=effective_operator,
    )
    return w_mat @ v_mat, spectrum


def factorize(
    matrix: NDArray[np.complex128],
    direction: Direction,
    params: TruncationParams,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None,
) -> tuple[NDArray[np.complex128], NDArray[np.complex128], Spectrum]:
    """Final split of the bond matrix; the weight goes to the site the sweep moves to.

    Args:
        matrix: The bond matrix.
        direction: Sweep direction.
        params: Truncation parameters; ``pres_cutoff`` and ``max_bond_dim`` apply.
        effective_operator: Context of the density-matrix decomposition.

    Returns:
        tuple: Left factor, right factor and the spectrum.
    """
    if params.pres_accurate:
        u_mat, s_vec, v_mat, spectrum = truncated_svd(
            matrix, params.pres_cutoff, params.max_bond_dim, respect_degenerate=params.respect_degenerate
        )
        if direction == Direction.FROM_LEFT:
            return u_mat, s_vec[:, np.newaxis] * v_mat, spectrum
        return u_mat * s_vec, v_mat, spectrum
    return density_matrix_decomposition(
        matrix,
        direction,
        params.pres_cutoff,
        params.max_bond_dim,
        noise=params.noise,
        respect_degenerate=params.respect_degenerate,
        effective_operator=effective_operator,
    )


def svd_bond(
    dm: DensityMatrix,
    bond: int,
    two_site_tensor: NDArray[np.complex128],
    direction: Direction,
    params: TruncationParams | None = None,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None = None,
) -> Spectrum:
    """Writes a two-site tensor into the chain, truncating the bond while preserving local observables.

    Steps:
        1. Split the two-site tensor by an SVD; the singular values form the bond matrix D.
        2. Build the window bases of sites ``bond - pres_range + 1 .. bond`` and
           ``bond + 1 .. bond + pres_range``, tracing out everything outside the windows.
        3. Rotate D into the preserved bases, split off the connected component and truncate the
           block that no window operator can see.
        4. Rotate back, re-factorize and move the orthogonality center in the sweep direction.

    Args:
        dm: The density matrix; sites ``bond`` and ``bond + 1`` are replaced.
        bond: Index of the left site of the bond.
        two_site_tensor: The merged tensor of both sites, in vector or operator layout.
        direction: Sweep direction; the orthogonality center ends on ``bond + 1`` from the left and
            on ``bond`` from the right.
        params: Truncation parameters; defaults are used if None.
        effective_operator: Context of the density-matrix decomposition used for its noise term.

    Returns:
        Spectrum: Spectrum of the last factorization.

    Raises:
        ValueError: If ``pres_range`` is smaller than one, the bond does not exist or the tensor does not fit.
        CanonicalFormError: If the bond lies outside the orthogonality frontier.
    """
    if params is None:
        params = TruncationParams()
    length = dm.length
    pres_range = dm.pres_range
    if pres_range < 1:
        msg = "Preservation range must be at least 1."
        raise ValueError(msg)
    if not 0 <= bond < length - 1:
        msg = f"Bond {bond} does not exist in a chain of length {length}."
        raise ValueError(msg)
    check_frontier(dm, bond, direction)

    theta = vector_form(dm, bond, two_site_tensor)
    p_left, p_right, chi_left, chi_right = theta.shape
    matrix = np.reshape(np.transpose(theta, (0, 2, 1, 3)), (p_left * chi_left, p_right * chi_right))
    u_mat, s_vec, v_mat, spectrum = truncated_svd(matrix, MIN_CUT, None, respect_degenerate=False)
    dim = len(s_vec)
    left = np.reshape(u_mat, (p_left, chi_left, dim))
    right = np.transpose(np.reshape(v_mat, (dim, p_right, chi_right)), (1, 0, 2))
    bond_matrix = np.diag(s_vec).astype(np.complex128)

    pres_left = max(0, bond - pres_range + 1)
    pres_right = min(length - 1, bond + pres_range)
    basis_left = left_basis(dm, pres_left, [dm.flat_tensor(i) for i in range(pres_left, bond)] + [left])
    basis_right = right_basis(dm, pres_right, [right] + [dm.flat_tensor(i) for i in range(bond + 2, pres_right + 1)])
    sdim_left = basis_left.shape[0]
    sdim_right = basis_right.shape[0]

    logger.debug(
        "svd_bond: bond %d, %s, chi %d, preserved dimensions (%d, %d)",
        bond,
        direction.value,
        dim,
        sdim_left,
        sdim_right,
    )

    if sdim_left < dim and sdim_right < dim:
        q_left = preserved_basis(basis_left, dm.identity_window(pres_left, bond))
        q_right = preserved_basis(basis_right, dm.identity_window(bond + 1, pres_right))
        rotated = q_left.T @ bond_matrix @ q_right

        connected = np.zeros_like(rotated)
        if abs(rotated[0, 0]) > MIN_NORM:
            connected = np.outer(rotated[:, 0], rotated[0, :]) / rotated[0, 0]
        rotated -= connected

        rest_left, _ = reduce_dim_top(dim, sdim_left)
        rest_right, _ = reduce_dim_top(dim, sdim_right)
        residual = (slice(dim - rest_left, dim), slice(dim - rest_right, dim))
        sub_max_dim = params.max_bond_dim - sdim_left - sdim_right
        if sub_max_dim <= 0:
            logger.warning("MaxDim <= preservation range in DMT (bond %d).", bond)
            rotated[residual] = 0.0
        else:
            block, _ = truncate_block(rotated[residual], direction, sub_max_dim, params, effective_operator)
            rotated[residual] = block
        rotated += connected

        bond_matrix = np.conj(q_left) @ rotated @ q_right.conj().T
        left_factor, right_factor, spectrum = factorize(bond_matrix, direction, params, effective_operator)
        left = oe.contract("pak,kj->paj", left, left_factor)
        right = oe.contract("jk,pkb->pjb", right_factor, right)
        if params.normalize:
            center = right if direction == Direction.FROM_LEFT else left
            norm = np.linalg.norm(center)
            if norm > MIN_NORM:
                center /= norm
    elif direction == Direction.FROM_LEFT:
        right = oe.contract("jk,pkb->pjb", bond_matrix, right)
    else:
        left = oe.contract("pak,kj->paj", left, bond_matrix)

    dm.set_flat_tensor(bond, left)
    dm.set_flat_tensor(bond + 1, right)

    if direction == Direction.FROM_LEFT:
        dm.frontier.left_lim = bond
        dm.frontier.right_lim = max(dm.frontier.right_lim, bond + 2)
    else:
        dm.frontier.right_lim = bond + 1
        dm.frontier.left_lim = min(dm.frontier.left_lim, bond - 1)

    return spectrum
