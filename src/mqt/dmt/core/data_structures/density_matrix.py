# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Density matrices as matrix product operators.

This module implements the DensityMatrix class, the chain on which density matrix truncation (DMT) acts.
Every site carries one row and one column physical leg (operator mode) or a single merged leg of dimension
d^2 (vector mode). The class keeps track of the orthogonality frontier left behind by bond updates and
provides the partial traces and operator pairings the truncation engine and the observables need.

Pairing an operator O with a site is the bilinear contraction of the flattened physical leg with the
trace vector O^T.reshape(-1), so that the identity's trace vector integrates the site out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

from ..libraries.gate_library import BaseGate, GateLibrary
from ..methods.combiners import Combiner
from ..methods.dmt import CanonicalFormError, svd_bond
from ..methods.gates import GateType, calc_gate
from ..methods.projector import projector
from .networks import MPO
from .simulation_parameters import Direction

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    from ..methods.decompositions import Spectrum
    from ..methods.gates import BondGate
    from .networks import MPS
    from .simulation_parameters import TruncationParams

__all__ = ["CanonicalFormError", "DensityMatrix", "Direction", "OrthogonalityFrontier"]


class OrthogonalityFrontier:
    """Boundaries of the canonical region of a chain.

    Sites up to ``left_lim`` are left-orthogonal and sites from ``right_lim`` on are right-orthogonal.
    A fresh chain has ``left_lim = -1`` and ``right_lim = length``.

    Attributes:
        left_lim: Last left-orthogonal site.
        right_lim: First right-orthogonal site.
    """

    def __init__(self, left_lim: int, right_lim: int) -> None:
        """Initializes the frontier."""
        self.left_lim = left_lim
        self.right_lim = right_lim

    def __eq__(self, other: object) -> bool:
        """Equal if both limits coincide."""
        if not isinstance(other, OrthogonalityFrontier):
            return NotImplemented
        return (self.left_lim, self.right_lim) == (other.left_lim, other.right_lim)

    def __hash__(self) -> int:
        """Hash of both limits."""
        return hash((self.left_lim, self.right_lim))

    def __repr__(self) -> str:
        """String representation."""
        return f"OrthogonalityFrontier(left_lim={self.left_lim}, right_lim={self.right_lim})"


class DensityMatrix:
    """Density matrix of a chain in matrix product operator form.

    The operator-mode index order is (sigma, sigma', chi_l-1, chi_l), the vector-mode order is
    (sigma * sigma', chi_l-1, chi_l) with sigma the most significant part of the merged leg.

    Attributes:
        length: Number of sites.
        tensors: Site tensors in the current layout.
        physical_dimensions: Local Hilbert space dimension d of every site.
        frontier: Orthogonality frontier left by the last bond updates.
    """

    def __init__(self, rho: MPO, pres_range: int = 1) -> None:
        """Wraps an operator chain as density matrix.

        Args:
            rho: The density matrix in MPO form. The tensors are copied.
            pres_range: Number of sites on each side of a truncated bond whose joint reduced
                density matrix is preserved exactly.
        """
        rho.check_if_valid_mpo()
        self.tensors: list[NDArray[np.complex128]] = [np.array(t, dtype=np.complex128) for t in rho.tensors]
        self.length = len(self.tensors)
        self.physical_dimensions = [tensor.shape[0] for tensor in self.tensors]
        for tensor in self.tensors:
            assert tensor.shape[0] == tensor.shape[1], "Density matrix sites must be square."
        self.frontier = OrthogonalityFrontier(-1, self.length)
        self._pres_range = pres_range
        self._vectorized = False

    @classmethod
    def from_pure_state(cls, psi: MPS, pres_range: int = 1) -> DensityMatrix:
        """Density matrix |psi><psi| of a pure state.

        Args:
            psi: The pure state.
            pres_range: Preservation range of the truncation.

        Returns:
            DensityMatrix: The projector onto psi.
        """
        return cls(projector(psi), pres_range)

    @property
    def pres_range(self) -> int:
        """Preservation range; validated when a bond update runs."""
        return self._pres_range

    @pres_range.setter
    def pres_range(self, value: int) -> None:
        self._pres_range = value

    @property
    def vectorized(self) -> bool:
        """Whether the physical legs of every site are merged."""
        return self._vectorized

    def vec_combiner(self, site: int) -> Combiner:
        """Combiner merging the row and column leg of a site."""
        d = self.physical_dimensions[site]
        return Combiner((d, d))

    def vec_dim(self, site: int) -> int:
        """Dimension d^2 of the merged physical leg of a site."""
        return self.physical_dimensions[site] ** 2

    def vectorize(self) -> tuple[list[Combiner], list[int]]:
        """Merges the physical legs of every site.

        Returns:
            tuple[list[Combiner], list[int]]: The combiner of every site and the merged dimensions.

        Raises:
            ValueError: If the chain is already vectorized.
        """
        if self._vectorized:
            msg = "DensityMatrix is already vectorized."
            raise ValueError(msg)
        combiners = [self.vec_combiner(i) for i in range(self.length)]
        self.tensors = [comb.combine(tensor, (0, 1)) for comb, tensor in zip(combiners, self.tensors)]
        self._vectorized = True
        return combiners, [comb.new_dim for comb in combiners]

    def unvectorize(self) -> None:
        """Splits the merged physical leg of every site into row and column leg.

        Raises:
            ValueError: If the chain is not vectorized.
        """
        if not self._vectorized:
            msg = "DensityMatrix is not vectorized."
            raise ValueError(msg)
        self.tensors = [self.vec_combiner(i).split(tensor, 0) for i, tensor in enumerate(self.tensors)]
        self._vectorized = False

    def rho(self, site: int) -> NDArray[np.complex128]:
        """Site tensor in the current layout."""
        return self.tensors[site]

    def flat_tensor(self, site: int) -> NDArray[np.complex128]:
        """Site tensor with merged physical leg (p, chi_l-1, chi_l), regardless of the layout.

        Args:
            site: Site index.

        Returns:
            NDArray[np.complex128]: The vector-layout site tensor.
        """
        if self._vectorized:
            return self.tensors[site]
        return self.vec_combiner(site).combine(self.tensors[site], (0, 1))

    def set_flat_tensor(self, site: int, tensor: NDArray[np.complex128]) -> None:
        """Stores a vector-layout site tensor in the current layout of the chain."""
        assert tensor.shape[0] == self.vec_dim(site), "Physical dimension does not match the site."
        if self._vectorized:
            self.tensors[site] = tensor
        else:
            self.tensors[site] = self.vec_combiner(site).split(tensor, 0)

    def identity_vector(self, site: int) -> NDArray[np.complex128]:
        """Trace vector of the identity on a site."""
        return np.eye(self.physical_dimensions[site], dtype=np.complex128).reshape(-1)

    def identity_window(self, start: int, end: int) -> NDArray[np.complex128]:
        """Trace vector of the identity on the sites start..end (inclusive).

        The first site is the most significant part of the returned vector.

        Args:
            start: First site of the window.
            end: Last site of the window.

        Returns:
            NDArray[np.complex128]: Vector of dimension prod(d_i^2).
        """
        vec = np.ones(1, dtype=np.complex128)
        for site in range(start, end + 1):
            vec = np.kron(vec, self.identity_vector(site))
        return vec

    def site_op(self, op: BaseGate | str | NDArray[np.complex128], site: int) -> NDArray[np.complex128]:
        """Trace vector of an operator on a site.

        Args:
            op: The operator, its name in the GateLibrary or its matrix.
            site: Site index.

        Returns:
            NDArray[np.complex128]: The vector w with w . vec(rho) = tr(op rho).

        Raises:
            ValueError: If the name is unknown or the operator does not fit the site.
        """
        if isinstance(op, str):
            if not hasattr(GateLibrary, op):
                msg = f"Operator {op} not found in GateLibrary."
                raise ValueError(msg)
            op = getattr(GateLibrary, op)()
        mat = op.matrix if isinstance(op, BaseGate) else np.asarray(op, dtype=np.complex128)
        d = self.physical_dimensions[site]
        if mat.shape != (d, d):
            msg = f"Operator of shape {mat.shape} does not act on a site of dimension {d}."
            raise ValueError(msg)
        return np.asarray(mat.T, dtype=np.complex128).reshape(-1)

    def trace_of(self, site: int) -> NDArray[np.complex128]:
        """Transfer matrix (chi_l-1, chi_l) of a site with its physical legs traced out."""
        return oe.contract("p,pab->ab", self.identity_vector(site), self.flat_tensor(site))

    def trace_left_of(self, site: int) -> NDArray[np.complex128]:
        """Row vector of all sites left of ``site`` traced out, living on the left link of ``site``."""
        env = np.ones(1, dtype=np.complex128)
        for i in range(site):
            env = env @ self.trace_of(i)
        return env

    def trace_right_of(self, site: int) -> NDArray[np.complex128]:
        """Column vector of all sites right of ``site`` traced out, living on the right link of ``site``."""
        env = np.ones(1, dtype=np.complex128)
        for i in reversed(range(site + 1, self.length)):
            env = self.trace_of(i) @ env
        return env

    def trace(self) -> np.complex128:
        """Trace of the density matrix."""
        env = self.trace_left_of(self.length - 1) @ self.trace_of(self.length - 1)
        return np.complex128(env[0])

    def trace_mpo(self, mpo: MPO, *, convert_basis: bool = True) -> np.complex128:
        """Trace tr(O rho) of the product with an operator chain.

        Args:
            mpo: The operator O with one tensor per site.
            convert_basis: If True, the tensors of ``mpo`` are operators (sigma, sigma', left, right)
                and are converted to trace vectors. If False, they already hold trace vectors in
                their first two legs, i.e. (sigma', sigma, left, right).

        Returns:
            np.complex128: The trace.
        """
        assert mpo.length == self.length, "Operator and density matrix differ in length."
        env = np.ones((1, 1), dtype=np.complex128)
        for site, tensor in enumerate(mpo.tensors):
            if convert_basis:
                tensor = np.transpose(tensor, (1, 0, 2, 3))
            pairing = self.vec_combiner(site).combine(tensor, (0, 1))
            env = oe.contract("ab,pac,pbd->cd", env, self.flat_tensor(site), pairing)
        return np.complex128(env[0, 0])

    def operator_tensors(self) -> list[NDArray[np.complex128]]:
        """Site tensors in operator layout (sigma, sigma', chi_l-1, chi_l)."""
        if self._vectorized:
            return [self.vec_combiner(i).split(tensor, 0) for i, tensor in enumerate(self.tensors)]
        return list(self.tensors)

    def to_mpo(self) -> MPO:
        """Copy of the chain as operator MPO."""
        return MPO([tensor.copy() for tensor in self.operator_tensors()])

    def to_matrix(self) -> NDArray[np.complex128]:
        """Dense density matrix; only feasible for small chains."""
        return self.to_mpo().to_matrix()

    def bond_dimensions(self) -> list[int]:
        """Dimensions of the links between neighbouring sites."""
        return [tensor.shape[-1] for tensor in self.tensors[:-1]]

    def max_bond_dim(self) -> int:
        """Largest link dimension of the chain."""
        return max(self.bond_dimensions(), default=1)

    def svd_bond(
        self,
        bond: int,
        two_site_tensor: NDArray[np.complex128],
        direction: Direction,
        params: TruncationParams | None = None,
        effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None = None,
    ) -> Spectrum:
        """Writes a two-site tensor back into the chain with density matrix truncation.

        See ``mqt.dmt.core.methods.dmt.svd_bond``.
        """
        return svd_bond(self, bond, two_site_tensor, direction, params, effective_operator)

    def calc_gate(
        self, generator: NDArray[np.complex128] | BaseGate, dt: float, left_site: int, gate_type: GateType = GateType.REAL
    ) -> BondGate:
        """Bond gate of a two-site generator acting on ``left_site`` and ``left_site + 1``.

        See ``mqt.dmt.core.methods.gates.calc_gate``.
        """
        return calc_gate(self, generator, dt, left_site, gate_type)
