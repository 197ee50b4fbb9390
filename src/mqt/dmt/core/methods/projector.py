# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Projector onto a pure state.

Builds the density matrix |psi><psi| of a matrix product state as an MPO. Every site of the
projector is the outer product of the ket tensor with the conjugated bra tensor; the ket and bra
links are merged into one link per bond, so bond dimensions are squared.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

from ..data_structures.networks import MPO
from .combiners import combiner

if TYPE_CHECKING:
    from ..data_structures.networks import MPS


def projector(psi: MPS) -> MPO:
    """Projector |psi><psi| as MPO.

    Args:
        psi: The pure state; it is not normalized.

    Returns:
        MPO: Operator chain with site tensors (sigma, sigma', chi_l-1^2, chi_l^2).
    """
    tensors = []
    for tensor in psi.tensors:
        outer = oe.contract("sab,tcd->stacbd", tensor, np.conj(tensor))
        left, _ = combiner(*outer.shape[2:4])
        outer = left.combine(outer, (2, 3))
        right, _ = combiner(*outer.shape[3:5])
        tensors.append(right.combine(outer, (3, 4)))
    return MPO(tensors)
