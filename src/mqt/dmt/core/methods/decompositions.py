# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tensor Network Decompositions.

This module implements the QR and truncated factorizations used throughout the DMT engine:
right moving QR decompositions of chain tensors, a complete QR that spans the full row space,
an accurate truncated SVD and a density-matrix based truncated decomposition. Both truncated
factorizations share one truncation rule (relative cutoff, hard maximum dimension and
protection of degenerate multiplets) and report their discarded weight in a Spectrum.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ..data_structures.simulation_parameters import Direction

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

# Relative gap below which two neighbouring weights are treated as degenerate
DEGENERACY_TOLERANCE = 1e-3


class Spectrum:
    """Result of a truncated factorization.

    Attributes:
        eigenvalues: The kept weights (squared singular values or density-matrix eigenvalues).
        truncation_error: Discarded weight relative to the total weight.
    """

    def __init__(self, eigenvalues: NDArray[np.float64] | None = None, truncation_error: float = 0.0) -> None:
        """Initializes a Spectrum.

        Args:
            eigenvalues: The kept weights.
            truncation_error: Relative discarded weight.
        """
        self.eigenvalues = np.zeros(0) if eigenvalues is None else np.asarray(eigenvalues, dtype=np.float64)
        self.truncation_error = truncation_error

    @property
    def dim(self) -> int:
        """Number of kept states."""
        return len(self.eigenvalues)

    def __repr__(self) -> str:
        """String representation."""
        return f"Spectrum(dim={self.dim}, truncation_error={self.truncation_error:.3e})"


def right_qr(mps_tensor: NDArray[np.complex128]) -> tuple[NDArray[np.complex128], NDArray[np.complex128]]:
    """Right QR.

    Performs the QR decomposition of an MPS tensor moving to the right.

    Args:
        mps_tensor: The tensor to be decomposed.

    Returns:
        q_tensor: The Q tensor with the left virtual leg and the physical
            leg (phys,left,new).
        r_mat: The R matrix with the right virtual leg (new,right).
    """
    old_shape = mps_tensor.shape
    qr_shape = (old_shape[0] * old_shape[1], old_shape[2])
    mps_tensor = mps_tensor.reshape(qr_shape)
    q_mat, r_mat = np.linalg.qr(mps_tensor)
    new_shape = (old_shape[0], old_shape[1], -1)
    q_tensor = q_mat.reshape(new_shape)
    return q_tensor, r_mat


def complete_qr(matrix: NDArray[np.complex128]) -> tuple[NDArray[np.complex128], NDArray[np.complex128]]:
    """Complete QR.

    QR decomposition whose Q spans the full row space of ``matrix``, not only the range of its columns.
    The first ``matrix.shape[1]`` columns of Q span the column space of ``matrix`` (in column order),
    the remaining columns complete it to a unitary.

    Args:
        matrix: Matrix of shape (m, n).

    Returns:
        q_mat: Unitary of shape (m, m).
        r_mat: Upper triangular matrix of shape (m, n).
    """
    return np.linalg.qr(matrix, mode="complete")


def truncation_rank(
    weights: NDArray[np.float64],
    cutoff: float,
    max_bond_dim: int | None,
    *,
    respect_degenerate: bool = True,
    min_bond_dim: int = 1,
) -> tuple[int, float]:
    """Number of states kept by a truncation.

    Weights are expected in descending order. States are dropped from the tail as long as the
    accumulated discarded weight stays below ``cutoff`` times the total weight, and in any case until at
    most ``max_bond_dim`` remain. With ``respect_degenerate`` the cut is moved up so that it never
    separates two (nearly) equal weights.

    Args:
        weights: Descending, non-negative weights.
        cutoff: Relative truncation error threshold.
        max_bond_dim: Hard upper bound on the kept dimension.
        respect_degenerate: Do not split degenerate multiplets.
        min_bond_dim: Lower bound on the kept dimension.

    Returns:
        tuple[int, float]: Kept dimension and relative discarded weight.
    """
    weights = np.clip(np.asarray(weights, dtype=np.float64), 0.0, None)
    total = float(np.sum(weights))
    n = len(weights)
    if n == 0:
        return 0, 0.0
    if total == 0.0:
        return min(max(min_bond_dim, 1), n), 0.0

    discarded = 0.0
    if max_bond_dim is not None:
        while n > max(max_bond_dim, 1):
            discarded += weights[n - 1]
            n -= 1
    while n > min_bond_dim and discarded + weights[n - 1] <= cutoff * total:
        discarded += weights[n - 1]
        n -= 1

    if respect_degenerate and n < len(weights):
        while n > min_bond_dim and weights[n - 1] > 0.0:
            if (weights[n - 1] - weights[n]) / weights[n - 1] >= DEGENERACY_TOLERANCE:
                break
            discarded += weights[n - 1]
            n -= 1

    return n, discarded / total


def truncated_svd(
    matrix: NDArray[np.complex128],
    cutoff: float,
    max_bond_dim: int | None,
    *,
    respect_degenerate: bool = True,
) -> tuple[NDArray[np.complex128], NDArray[np.float64], NDArray[np.complex128], Spectrum]:
    """Accurate truncated SVD of a matrix.

    Args:
        matrix: Matrix of shape (m, n).
        cutoff: Relative truncation error threshold on the squared singular values.
        max_bond_dim: Maximum number of singular values kept.
        respect_degenerate: Do not split degenerate singular values.

    Returns:
        u_mat: Left isometry of shape (m, k).
        s_vec: Kept singular values.
        v_mat: Right isometry of shape (k, n).
        spectrum: Kept weights and relative truncation error.
    """
    u_mat, s_vec, v_mat = np.linalg.svd(matrix, full_matrices=False)
    weights = s_vec**2
    keep, error = truncation_rank(weights, cutoff, max_bond_dim, respect_degenerate=respect_degenerate)
    return u_mat[:, :keep], s_vec[:keep], v_mat[:keep, :], Spectrum(weights[:keep], error)


def density_matrix_decomposition(
    matrix: NDArray[np.complex128],
    direction: Direction,
    cutoff: float,
    max_bond_dim: int | None,
    *,
    noise: float = 0.0,
    respect_degenerate: bool = True,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None = None,
) -> tuple[NDArray[np.complex128], NDArray[np.complex128], Spectrum]:
    """Truncated decomposition via the reduced density matrix.

    Sweeping from the left, the reduced density matrix ``M M^dagger`` is diagonalized and its dominant
    eigenvectors form the left isometry W; the right factor V = W^dagger M carries the weight. Sweeping
    from the right the roles are mirrored. If ``noise`` is positive and an effective operator is given,
    the perturbation ``noise * X X^dagger`` with ``X = effective_operator(M, direction)`` is added to the
    density matrix before it is diagonalized.

    Args:
        matrix: Matrix M of shape (m, n).
        direction: Sweep direction; decides which factor is the isometry.
        cutoff: Relative truncation error threshold on the eigenvalues.
        max_bond_dim: Maximum number of kept eigenvectors.
        noise: Strength of the perturbation added to the density matrix.
        respect_degenerate: Do not split degenerate eigenvalues.
        effective_operator: Caller supplied context producing the perturbation.

    Returns:
        w_mat: Left factor of shape (m, k).
        v_mat: Right factor of shape (k, n).
        spectrum: Kept eigenvalues and relative truncation error.
    """
    if direction == Direction.FROM_LEFT:
        rho = matrix @ matrix.conj().T
    else:
        rho = matrix.conj().T @ matrix

    if noise > 0.0 and effective_operator is not None:
        perturbation = effective_operator(matrix, direction)
        if direction == Direction.FROM_LEFT:
            delta = perturbation @ perturbation.conj().T
        else:
            delta = perturbation.conj().T @ perturbation
        norm = np.linalg.norm(delta)
        if norm > 0.0:
            rho = rho + noise * np.trace(rho).real * delta / norm

    eigenvalues, eigenvectors = np.linalg.eigh(0.5 * (rho + rho.conj().T))
    order = np.argsort(eigenvalues)[::-1]
    eigenvalues = np.clip(eigenvalues[order], 0.0, None)
    eigenvectors = eigenvectors[:, order]
    keep, error = truncation_rank(eigenvalues, cutoff, max_bond_dim, respect_degenerate=respect_degenerate)
    eigenvectors = eigenvectors[:, :keep]

    if direction == Direction.FROM_LEFT:
        w_mat = eigenvectors
        v_mat = eigenvectors.conj().T @ matrix
    else:
        v_mat = eigenvectors.conj().T
        w_mat = matrix @ eigenvectors
    return w_mat, v_mat, Spectrum(eigenvalues[:keep], error)
