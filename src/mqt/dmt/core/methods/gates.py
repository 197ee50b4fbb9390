# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Bond gates acting on density matrices.

A two-site generator h (typically a bond term of a Hamiltonian) is turned into a gate acting on the
vectorized density matrix of two neighbouring sites. With row-major vectorization,
vec(A rho B) = (A kron B^T) vec(rho), where the Kronecker product is taken site by site so that the
ket and bra index of every site stay next to each other. The gate propagates by half a time step, so a
left-to-right sweep followed by a right-to-left sweep amounts to one full second-order step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe
from scipy.linalg import expm

from ..data_structures.simulation_parameters import GateType
from ..libraries.gate_library import BaseGate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from ..data_structures.density_matrix import DensityMatrix

__all__ = ["BondGate", "GateType", "calc_gate", "kron", "taylor_exponential"]


def kron(
    a: NDArray[np.complex128], b: NDArray[np.complex128], sites: Sequence[int] | None = None
) -> NDArray[np.complex128]:
    """Site-wise Kronecker product of two n-site operators.

    Both operators are tensors with legs (d_1, ..., d_n, d_1, ..., d_n), output legs first. For every
    site in ``sites`` the output legs of ``a`` and ``b`` are merged into one leg of dimension d_k^2 (the
    leg of ``a`` being the most significant), and so are the input legs. Sites not listed keep the legs
    of ``a`` and ``b`` side by side.

    Args:
        a: First operator.
        b: Second operator, with the same leg dimensions as ``a``.
        sites: Sites whose legs are merged; all sites by default.

    Returns:
        NDArray[np.complex128]: Output legs of all sites followed by their input legs.
    """
    assert a.shape == b.shape, "Both operators must act on the same sites."
    n = a.ndim // 2
    dims = a.shape[:n]
    paired = set(range(n)) if sites is None else set(sites)

    out_labels = [label for k in range(n) for label in (k, 2 * n + k)]
    in_labels = [label for k in range(n) for label in (n + k, 3 * n + k)]
    product = oe.contract(
        a,
        list(range(2 * n)),
        b,
        list(range(2 * n, 4 * n)),
        out_labels + in_labels,
    )

    shape = []
    for k in range(n):
        shape.extend([dims[k] ** 2] if k in paired else [dims[k], dims[k]])
    return np.reshape(product, shape + shape)


def taylor_exponential(
    generator: NDArray[np.complex128], unit: NDArray[np.complex128], order: int = 100
) -> NDArray[np.complex128]:
    """Matrix exponential by a truncated Taylor series in Horner form.

    exp(x) = 1 + x (1 + x/2 (1 + x/3 (...)))

    Args:
        generator: The exponent x as a square matrix.
        unit: The identity matching ``generator``.
        order: Number of Taylor terms.

    Returns:
        NDArray[np.complex128]: Approximation of exp(x).
    """
    term = generator.copy()
    gate = unit
    for k in range(order, 0, -1):
        term = term / k
        gate = unit + term
        term = gate @ generator
    return gate


class BondGate:
    """Gate acting on the vectorized density matrix of two neighbouring sites.

    Attributes:
        sites: The two sites the gate acts on.
        tensor: Gate tensor with legs (p_b, p_b+1, p_b, p_b+1), output legs first.
    """

    def __init__(self, sites: Sequence[int], tensor: NDArray[np.complex128]) -> None:
        """Initializes a BondGate.

        Args:
            sites: Left and right site.
            tensor: The gate tensor.
        """
        assert tensor.ndim == 4, "A bond gate has four legs."
        assert tensor.shape[:2] == tensor.shape[2:], "Input and output legs must match."
        self.sites = list(sites)
        self.tensor = tensor

    @property
    def matrix(self) -> NDArray[np.complex128]:
        """The gate as matrix on the merged two-site space."""
        dim = self.tensor.shape[0] * self.tensor.shape[1]
        return np.reshape(self.tensor, (dim, dim))

    def dag(self) -> BondGate:
        """Conjugate transpose of the gate."""
        return BondGate(self.sites, np.conj(np.transpose(self.tensor, (2, 3, 0, 1))))


def calc_gate(
    dm: DensityMatrix,
    generator: NDArray[np.complex128] | BaseGate,
    dt: float,
    left_site: int,
    gate_type: GateType = GateType.REAL,
) -> BondGate:
    """Half time step bond gate of a two-site generator.

    In operator mode the gate is assembled from the exact two-site propagators,
    rho -> U(dt/2) rho U(dt/2)^dagger. In vector mode the commutator superoperator
    h kron 1 - 1 kron h^T is exponentiated with a Taylor series. Imaginary time replaces the
    commutator by the anticommutator, rho -> exp(-dt h / 2) rho exp(-dt h / 2).

    Args:
        dm: The density matrix; defines the local dimensions and the mode.
        generator: Two-site operator h on ``left_site`` and ``left_site + 1``.
        dt: Time step.
        left_site: Left site of the bond.
        gate_type: Real or imaginary time evolution.

    Returns:
        BondGate: The gate in vector layout.

    Raises:
        ValueError: If the bond does not exist or the generator does not fit it.
    """
    if not 0 <= left_site < dm.length - 1:
        msg = f"Bond {left_site} does not exist in a chain of length {dm.length}."
        raise ValueError(msg)
    h = generator.matrix if isinstance(generator, BaseGate) else np.asarray(generator, dtype=np.complex128)
    d_left = dm.physical_dimensions[left_site]
    d_right = dm.physical_dimensions[left_site + 1]
    dim = d_left * d_right
    if h.shape != (dim, dim):
        msg = f"Generator of shape {h.shape} does not act on sites of dimension {d_left} and {d_right}."
        raise ValueError(msg)
    shape = (d_left, d_right, d_left, d_right)
    identity = np.eye(dim, dtype=np.complex128).reshape(shape)

    if dm.vectorized:
        if gate_type == GateType.REAL:
            superop = -1j * dt / 2 * (kron(h.reshape(shape), identity) - kron(identity, h.T.reshape(shape)))
        else:
            superop = -dt / 2 * (kron(h.reshape(shape), identity) + kron(identity, h.T.reshape(shape)))
        p_dim = d_left**2 * d_right**2
        unit = np.eye(p_dim, dtype=np.complex128)
        matrix = taylor_exponential(superop.reshape(p_dim, p_dim), unit)
        tensor = matrix.reshape(superop.shape)
    else:
        if gate_type == GateType.REAL:
            forward = expm(-1j * dt / 2 * h)
            backward = expm(1j * dt / 2 * h)
        else:
            forward = expm(-dt / 2 * h)
            backward = forward
        tensor = kron(forward.reshape(shape), backward.T.reshape(shape))

    return BondGate([left_site, left_site + 1], tensor)
