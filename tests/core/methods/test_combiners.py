# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for index combiners and the index reduction rule."""

from __future__ import annotations

import numpy as np
import pytest

from mqt.dmt.core.methods.combiners import Combiner, combiner, reduce_dim_top


def test_combine_split_roundtrip() -> None:
    """Splitting a combined leg restores the tensor."""
    rng = np.random.default_rng(0)
    tensor = rng.standard_normal((2, 3, 4, 5))
    comb = Combiner((3, 4))
    combined = comb.combine(tensor, (1, 2))
    assert combined.shape == (2, 12, 5)
    np.testing.assert_array_equal(comb.split(combined, 1), tensor)


def test_combine_is_row_major() -> None:
    """The first merged leg is the most significant one."""
    tensor = np.arange(2 * 3 * 4).reshape(2, 3, 4)
    comb = Combiner((2, 3))
    np.testing.assert_array_equal(comb.combine(tensor, (0, 1)), tensor.reshape(6, 4))


def test_combine_leg_order() -> None:
    """Legs are merged in the given order, at the position of the first merged leg."""
    rng = np.random.default_rng(1)
    tensor = rng.standard_normal((2, 3, 4))
    comb = Combiner((4, 2))
    combined = comb.combine(tensor, (2, 0))
    assert combined.shape == (3, 8)
    np.testing.assert_array_equal(combined, tensor.transpose(1, 2, 0).reshape(3, 8))


def test_transform_tensor_matches_combine() -> None:
    """Contracting the transform tensor is the same as reshaping."""
    rng = np.random.default_rng(2)
    tensor = rng.standard_normal((2, 3, 4)) + 1j * rng.standard_normal((2, 3, 4))
    comb, new_dim = combiner(2, 3)
    assert new_dim == 6
    assert comb.tensor.shape == (2, 3, 6)
    contracted = np.tensordot(tensor, comb.tensor, axes=([0, 1], [0, 1]))
    np.testing.assert_allclose(contracted, np.moveaxis(comb.combine(tensor, (0, 1)), 0, -1))


def test_combiner_value_semantics() -> None:
    """Combiners are compared by the dimensions they merge."""
    comb, new_dim = combiner(2, 2)
    assert new_dim == 4
    assert comb == Combiner((2, 2))
    assert comb != Combiner((2, 3))
    assert hash(comb) == hash(Combiner([2, 2]))
    assert repr(comb) == "Combiner(dims=(2, 2))"


def test_combiner_without_legs() -> None:
    """A combiner needs at least one leg."""
    with pytest.raises(ValueError, match="at least one leg"):
        Combiner(())


def test_reduce_dim_top() -> None:
    """Removing leading states of an index without block structure."""
    assert reduce_dim_top(5, 2) == (3, [3])
    assert reduce_dim_top(4, 4) == (0, [0])


def test_reduce_dim_top_blocks() -> None:
    """Leading blocks are consumed first."""
    assert reduce_dim_top(5, 3, [2, 3]) == (2, [2])
    assert reduce_dim_top(6, 1, [2, 3, 1]) == (5, [1, 3, 1])
    assert reduce_dim_top(6, 5, [2, 3, 1]) == (1, [1])


def test_reduce_dim_top_below_zero() -> None:
    """Reducing by more than the dimension fails."""
    with pytest.raises(ValueError, match="Cannot reduce index size below zero"):
        reduce_dim_top(3, 4)


def test_reduce_dim_top_block_mismatch() -> None:
    """Blocks must add up to the dimension."""
    with pytest.raises(ValueError, match="do not add up"):
        reduce_dim_top(5, 1, [2, 2])
