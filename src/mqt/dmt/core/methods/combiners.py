# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Index combiners.

A combiner merges a group of tensor legs into a single leg and splits it back again. It is used to
vectorize the two physical legs of a density-matrix site, to merge the ket and bra links when a
projector is built from a pure state, and to flatten the physical legs of a preservation window
inside the bond truncation engine.

Combining is row-major: the first merged leg is the most significant one, so splitting a combined
leg is the same as a plain index un-flattening.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray


class Combiner:
    """Reversible merge of a group of legs into one.

    The combiner pairs a transform tensor of shape ``(*dims, new_dim)`` with the dimension of the
    resulting leg. Contracting the merged legs with ``tensor`` is equivalent to ``combine``, and
    ``split`` undoes it.

    Attributes:
        dims: Dimensions of the legs that are merged, in merge order.
        new_dim: Dimension of the combined leg.
    """

    def __init__(self, dims: Sequence[int]) -> None:
        """Initializes a combiner for legs of the given dimensions.

        Args:
            dims: Dimensions of the legs to merge.

        Raises:
            ValueError: If no dimensions are given.
        """
        if len(dims) == 0:
            msg = "A combiner needs at least one leg."
            raise ValueError(msg)
        self.dims = tuple(int(d) for d in dims)
        self.new_dim = int(np.prod(self.dims))

    def __eq__(self, other: object) -> bool:
        """Two combiners are equal if they merge legs of the same dimensions."""
        if not isinstance(other, Combiner):
            return NotImplemented
        return self.dims == other.dims

    def __hash__(self) -> int:
        """Hash of the merged dimensions."""
        return hash(self.dims)

    def __repr__(self) -> str:
        """String representation."""
        return f"Combiner(dims={self.dims})"

    @property
    def tensor(self) -> NDArray[np.complex128]:
        """The explicit transform tensor with legs ``(*dims, new_dim)``."""
        return np.eye(self.new_dim, dtype=np.complex128).reshape((*self.dims, self.new_dim))

    def combine(self, tensor: NDArray[np.complex128], axes: Sequence[int]) -> NDArray[np.complex128]:
        """Merges the given legs of ``tensor`` into one.

        The combined leg takes the position of the first merged leg; the order of the
        remaining legs is preserved.

        Args:
            tensor: The tensor whose legs are merged.
            axes: The legs to merge, in merge order.

        Returns:
            NDArray[np.complex128]: The tensor with one combined leg.
        """
        axes = [a % tensor.ndim for a in axes]
        assert tuple(tensor.shape[a] for a in axes) == self.dims, "Leg dimensions do not match the combiner."
        rest = [a for a in range(tensor.ndim) if a not in axes]
        position = sum(1 for a in rest if a < axes[0])
        moved = np.transpose(tensor, [*axes, *rest])
        merged = np.reshape(moved, (self.new_dim, *moved.shape[len(axes) :]))
        return np.moveaxis(merged, 0, position)

    def split(self, tensor: NDArray[np.complex128], axis: int) -> NDArray[np.complex128]:
        """Splits a combined leg back into the original legs.

        Args:
            tensor: The tensor carrying the combined leg.
            axis: Position of the combined leg.

        Returns:
            NDArray[np.complex128]: The tensor with the original legs at the position of ``axis``.
        """
        axis %= tensor.ndim
        assert tensor.shape[axis] == self.new_dim, "Leg dimension does not match the combiner."
        shape = (*tensor.shape[:axis], *self.dims, *tensor.shape[axis + 1 :])
        return np.reshape(tensor, shape)

def combiner(*dims: int) -> tuple[Combiner, int]:
    """Builds a combiner and returns it together with the dimension of the new leg.

    Args:
        *dims: Dimensions of the legs to merge.

    Returns:
        tuple[Combiner, int]: The combiner and the combined dimension.
    """
    comb = Combiner(dims)
    return comb, comb.new_dim


def reduce_dim_top(dim: int, reduce_dim: int, blocks: Sequence[int] | None = None) -> tuple[int, list[int]]:
    """Removes the leading ``reduce_dim`` states of an index.

    With block structure, the leading blocks are consumed first and only the largest trailing
    part of every partially consumed block is kept, so the result lists the sizes of the
    remaining contiguous trailing blocks.

    Args:
        dim: Dimension of the index.
        reduce_dim: Number of leading states to remove.
        blocks: Optional block sizes of the index; must sum to ``dim``.

    Returns:
        tuple[int, list[int]]: Remaining dimension and the remaining block sizes.

    Raises:
        ValueError: If ``reduce_dim`` exceeds ``dim`` or the blocks do not match ``dim``.
    """
    if reduce_dim > dim:
        msg = "reduce_dim_top: Cannot reduce index size below zero"
        raise ValueError(msg)
    if blocks is None:
        return dim - reduce_dim, [dim - reduce_dim]
    if sum(blocks) != dim:
        msg = f"Block sizes {list(blocks)} do not add up to the index dimension {dim}."
        raise ValueError(msg)

    remaining = reduce_dim
    kept = []
    for size in blocks:
        d = size - remaining
        if d > 0:
            kept.append(d)
            remaining = 0
        else:
            remaining -= size
    return dim - reduce_dim, kept
