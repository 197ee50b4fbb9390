# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Library of on-site operators.

This module defines the operator table used to build observables and bond generators for
density-matrix simulations. Each operator is implemented as a class derived from BaseGate and
includes its matrix representation and the number of sites it acts on. Two-site products
(XX, YY, ZZ) are provided so that nearest-neighbour generators can be assembled directly.
The GateLibrary class aggregates all these classes for lookup by name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class BaseGate:
    """Base class representing a local operator.

    Attributes:
        name: The name of the operator.
        matrix: The matrix representation of the operator.
        interaction: The number of sites the operator acts on.
        tensor: The tensor representation with one output and one input leg per site.
        sites: The sites the operator acts on.

    Methods:
        set_sites(*sites: int) -> None:
            Sets the sites on which the operator acts.
    """

    name = "custom"
    matrix: NDArray[np.complex128]
    interaction: int
    tensor: NDArray[np.complex128]
    sites: list[int]

    def __init__(self, mat: NDArray[np.complex128], physical_dimension: int | None = None) -> None:
        """Initializes a BaseGate instance with the given matrix.

        Args:
            mat: The matrix representation of the operator.
            physical_dimension: Local dimension of every site. Defaults to the matrix size,
                i.e. a single-site operator.

        Raises:
            ValueError: If the matrix is not square.
            ValueError: If the matrix size is not a power of the physical dimension.
        """
        if mat.shape[0] != mat.shape[1]:
            msg = "Matrix must be square"
            raise ValueError(msg)

        if physical_dimension is None:
            physical_dimension = mat.shape[0]
        interaction = int(round(np.log(mat.shape[0]) / np.log(physical_dimension))) if mat.shape[0] > 1 else 1
        if physical_dimension**interaction != mat.shape[0]:
            msg = f"Matrix size {mat.shape[0]} is not a power of the physical dimension {physical_dimension}"
            raise ValueError(msg)

        self.matrix = np.asarray(mat, dtype=np.complex128)
        self.physical_dimension = physical_dimension
        self.interaction = interaction
        shape = (physical_dimension,) * (2 * interaction)
        self.tensor = np.reshape(self.matrix, shape)

    def set_sites(self, *sites: int | list[int]) -> None:
        """Sets the sites for the operator.

        Args:
            *sites: Variable-length argument list specifying site indices.

        Raises:
            ValueError: If the number of sites does not match the interaction level of the operator.
        """
        sites_list = []
        for s in sites:
            if isinstance(s, int):
                sites_list.append(s)
            else:
                sites_list.extend(s)

        if len(sites_list) != self.interaction:
            msg = f"Number of sites {len(sites_list)} must be equal to the interaction level {self.interaction}"
            raise ValueError(msg)

        self.sites = sites_list

    def __add__(self, other: BaseGate) -> BaseGate:
        """Adds two operators together.

        Args:
            other: The operator to be added.

        Raises:
            ValueError: If the operators have different interaction levels.

        Returns:
            BaseGate: A new operator representing the sum.
        """
        if self.interaction != other.interaction:
            msg = "Cannot add gates with different interaction"
            raise ValueError(msg)
        return BaseGate(self.matrix + other.matrix, self.physical_dimension)

    def __sub__(self, other: BaseGate) -> BaseGate:
        """Subtracts one operator from another.

        Args:
            other: The operator to be subtracted.

        Raises:
            ValueError: If the operators have different interaction levels.

        Returns:
            BaseGate: A new operator representing the difference.
        """
        if self.interaction != other.interaction:
            msg = "Cannot subtract gates with different interaction"
            raise ValueError(msg)
        return BaseGate(self.matrix - other.matrix, self.physical_dimension)

    def __mul__(self, other: BaseGate | complex) -> BaseGate:
        """Multiplies two operators or scales an operator by a scalar.

        Args:
            other: The operator or scalar to multiply.

        Raises:
            ValueError: If the operators have different interaction levels.

        Returns:
            BaseGate: The product or the scaled operator.
        """
        if isinstance(other, BaseGate):
            if self.interaction != other.interaction:
                msg = "Cannot multiply gates with different interaction"
                raise ValueError(msg)
            return BaseGate(self.matrix @ other.matrix, self.physical_dimension)

        return BaseGate(self.matrix * other, self.physical_dimension)

    def __rmul__(self, other: BaseGate | complex) -> BaseGate:
        """Right multiplication with a scalar or operator.

        Returns:
            BaseGate: A new BaseGate representing the product.
        """
        return self.__mul__(other)

    def dag(self) -> BaseGate:
        """Returns the conjugate transpose (dagger) of the operator.

        Returns:
            BaseGate: The conjugate transpose.
        """
        return BaseGate(np.conj(self.matrix).T, self.physical_dimension)

    def trans(self) -> BaseGate:
        """Returns the transpose of the operator.

        Returns:
            BaseGate: The transpose.
        """
        return BaseGate(self.matrix.T, self.physical_dimension)


class X(BaseGate):
    """Class representing the Pauli-X operator."""

    name = "x"

    def __init__(self) -> None:
        """Initializes the Pauli-X operator."""
        mat = np.array([[0, 1], [1, 0]])
        super().__init__(mat)


class Y(BaseGate):
    """Class representing the Pauli-Y operator."""

    name = "y"

    def __init__(self) -> None:
        """Initializes the Pauli-Y operator."""
        mat = np.array([[0, -1j], [1j, 0]])
        super().__init__(mat)


class Z(BaseGate):
    """Class representing the Pauli-Z operator."""

    name = "z"

    def __init__(self) -> None:
        """Initializes the Pauli-Z operator."""
        mat = np.array([[1, 0], [0, -1]])
        super().__init__(mat)


class Id(BaseGate):
    """Class representing the identity operator.

    The identity is the operator traced against when a site is integrated out of a density matrix.
    """

    name = "id"

    def __init__(self, d: int = 2) -> None:
        """Initializes the identity operator.

        Args:
            d: Physical dimension.
        """
        mat = np.eye(d)
        super().__init__(mat, d)


class Destroy(BaseGate):
    """Class representing the annihilation operator."""

    name = "destroy"

    def __init__(self, d: int = 2) -> None:
        """Initializes the Destroy operator.

        Args:
            d: Physical dimension.
        """
        mat = np.diag(np.sqrt(np.arange(1, d)), k=1)
        super().__init__(mat, d)


class Create(BaseGate):
    """Class representing the creation operator."""

    name = "create"

    def __init__(self, d: int = 2) -> None:
        """Initializes the Create operator.

        Args:
            d: Physical dimension.
        """
        mat = np.diag(np.sqrt(np.arange(1, d)), k=-1)
        super().__init__(mat, d)


class Number(BaseGate):
    """Class representing the occupation number operator."""

    name = "number"

    def __init__(self, d: int = 2) -> None:
        """Initializes the number operator.

        Args:
            d: Physical dimension.
        """
        mat = np.diag(np.arange(d))
        super().__init__(mat, d)


class P0(BaseGate):
    """Class representing the projector onto |0⟩⟨0|."""

    name = "p0"

    def __init__(self) -> None:
        """Initializes the |0⟩⟨0| projector."""
        mat = np.array([[1, 0], [0, 0]], dtype=complex)
        super().__init__(mat)


class P1(BaseGate):
    """Class representing the projector onto |1⟩⟨1|."""

    name = "p1"

    def __init__(self) -> None:
        """Initializes the |1⟩⟨1| projector."""
        mat = np.array([[0, 0], [0, 1]], dtype=complex)
        super().__init__(mat)


class XX(BaseGate):
    """Class representing an XX operation. Used for two-site generators and correlators.

    Attributes:
        name: The name of the operator ("xx").
        matrix: The 4x4 matrix representation.
        interaction: The interaction level (2).
        tensor: The tensor representation reshaped to (2, 2, 2, 2).
    """

    name = "xx"

    def __init__(self) -> None:
        """Initializes the XX operator."""
        x = X().matrix
        mat = np.kron(x, x)
        super().__init__(mat, 2)


class YY(BaseGate):
    """Class representing a YY operation. Used for two-site generators and correlators."""

    name = "yy"

    def __init__(self) -> None:
        """Initializes the YY operator."""
        y = Y().matrix
        mat = np.kron(y, y)
        super().__init__(mat, 2)


class ZZ(BaseGate):
    """Class representing a ZZ operation. Used for two-site generators and correlators."""

    name = "zz"

    def __init__(self) -> None:
        """Initializes the ZZ operator."""
        z = Z().matrix
        mat = np.kron(z, z)
        super().__init__(mat, 2)


class GateLibrary:
    """A collection of operator classes, looked up by name.

    Attributes:
        x: Class for the X operator.
        y: Class for the Y operator.
        z: Class for the Z operator.
        id: Class for the identity.
        destroy: Class for the annihilation operator.
        create: Class for the creation operator.
        number: Class for the number operator.
        p0: Class for the |0⟩⟨0| projector.
        p1: Class for the |1⟩⟨1| projector.
        xx: Class for the XX product.
        yy: Class for the YY product.
        zz: Class for the ZZ product.
    """

    x = X
    y = Y
    z = Z
    id = Id
    destroy = Destroy
    create = Create
    number = Number
    p0 = P0
    p1 = P1
    xx = XX
    yy = YY
    zz = ZZ
