# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tensor Network Data Structures.

This module implements the Matrix Product State (MPS) and Matrix Product Operator (MPO) classes.
MPS objects describe the pure states from which density matrices are seeded, MPO objects hold
density matrices (one row and one column leg per site) as well as operators that are traced against
them. Both classes provide normalization, validity checks and conversion to dense arrays for small systems.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

from ..methods.decompositions import right_qr

if TYPE_CHECKING:
    from numpy.typing import NDArray


class MPS:
    """Matrix Product State (MPS) class for representing pure quantum states.

    The index order is (sigma, chi_l-1, chi_l).

    Attributes:
    length (int): The number of sites in the MPS.
    tensors (list[NDArray[np.complex128]]): List of rank-3 tensors representing the MPS.
    physical_dimensions (list[int]): List of physical dimensions for each site.
    flipped (bool): Indicates if the network has been flipped.
    """

    def __init__(
        self,
        length: int,
        tensors: list[NDArray[np.complex128]] | None = None,
        physical_dimensions: list[int] | int | None = None,
        state: str = "zeros",
        basis_string: str | None = None,
    ) -> None:
        """Initializes a Matrix Product State (MPS).

        Args:
            length: Number of sites in the MPS.
            tensors: Predefined tensors representing the MPS. Must match `length` if provided.
                If None, tensors are initialized according to `state`.
            physical_dimensions: Physical dimension for each site. Defaults to qubit systems (dimension 2) if None.
            state: Initial product state. Valid options include:
                - "zeros": Initializes all sites to |0⟩.
                - "ones": Initializes all sites to |1⟩.
                - "x+": Initializes each site to (|0⟩ + |1⟩)/√2.
                - "x-": Initializes each site to (|0⟩ - |1⟩)/√2.
                - "y+": Initializes each site to (|0⟩ + i|1⟩)/√2.
                - "y-": Initializes each site to (|0⟩ - i|1⟩)/√2.
                - "Neel": Alternating pattern |0101...⟩.
                - "wall": Domain wall at the center |000111⟩.
                - "random": Initializes each site in a random real superposition.
                - "basis": Initializes a computational basis state given by `basis_string`.
                Default is "zeros".
            basis_string: String such as "0101" used for the "basis" state.

        Raises:
            ValueError: If the provided `state` parameter does not match any valid initialization string.
        """
        self.flipped = False
        self.length = length
        if physical_dimensions is None:
            self.physical_dimensions = [2] * length
        elif isinstance(physical_dimensions, int):
            self.physical_dimensions = [physical_dimensions] * length
        else:
            self.physical_dimensions = list(physical_dimensions)
        assert len(self.physical_dimensions) == length

        if tensors is not None:
            assert len(tensors) == length
            self.tensors = list(tensors)
            self.physical_dimensions = [tensor.shape[0] for tensor in self.tensors]
            return

        self.tensors = []
        if state == "basis":
            assert basis_string is not None, "basis_string must be provided for 'basis' state initialization."
            self.init_mps_from_basis(basis_string, self.physical_dimensions)
            return

        rng = np.random.default_rng()
        for i, d in enumerate(self.physical_dimensions):
            vector = np.zeros(d, dtype=complex)
            if state == "zeros":
                vector[0] = 1
            elif state == "ones":
                vector[1] = 1
            elif state == "x+":
                vector[0] = 1 / np.sqrt(2)
                vector[1] = 1 / np.sqrt(2)
            elif state == "x-":
                vector[0] = 1 / np.sqrt(2)
                vector[1] = -1 / np.sqrt(2)
            elif state == "y+":
                vector[0] = 1 / np.sqrt(2)
                vector[1] = 1j / np.sqrt(2)
            elif state == "y-":
                vector[0] = 1 / np.sqrt(2)
                vector[1] = -1j / np.sqrt(2)
            elif state == "Neel":
                if i % 2:
                    vector[0] = 1
                else:
                    vector[1] = 1
            elif state == "wall":
                if i < length // 2:
                    vector[0] = 1
                else:
                    vector[1] = 1
            elif state == "random":
                vector[:] = rng.random(d)
                vector /= np.linalg.norm(vector)
            else:
                msg = "Invalid state string"
                raise ValueError(msg)

            self.tensors.append(np.reshape(vector, (d, 1, 1)))

    def init_mps_from_basis(self, basis_string: str, physical_dimensions: list[int]) -> None:
        """Initialize the MPS tensors of a product state from a basis string.

        Args:
            basis_string: A string like "0101" indicating the computational basis state.
            physical_dimensions: The physical dimension of each site.
        """
        assert len(basis_string) == len(physical_dimensions)
        for site, char in enumerate(basis_string):
            idx = int(char)
            tensor = np.zeros((physical_dimensions[site], 1, 1), dtype=complex)
            tensor[idx, 0, 0] = 1.0
            self.tensors.append(tensor)

    def get_max_bond(self) -> int:
        """Maximum bond dimension of the network.

        Returns:
            int: The largest virtual dimension found among all tensors.
        """
        return max(max(tensor.shape[1], tensor.shape[2]) for tensor in self.tensors)

    def flip_network(self) -> None:
        """Flip MPS.

        Flips the bond dimensions in the network so that we can do operations
        from right to left rather than coding it twice.
        """
        new_tensors = [np.transpose(tensor, (0, 2, 1)) for tensor in self.tensors]
        new_tensors.reverse()
        self.tensors = new_tensors
        self.flipped = not self.flipped

    def shift_orthogonality_center_right(self, current_orthogonality_center: int) -> None:
        """Shifts orthogonality center right.

        Performs a QR decomposition of the current center and absorbs R into the next site.

        Args:
            current_orthogonality_center (int): current center
        """
        tensor = self.tensors[current_orthogonality_center]
        site_tensor, bond_tensor = right_qr(tensor)
        self.tensors[current_orthogonality_center] = site_tensor

        # If normalizing, we just throw away the R
        if current_orthogonality_center + 1 < self.length:
            self.tensors[current_orthogonality_center + 1] = oe.contract(
                "ij, ajc->aic", bond_tensor, self.tensors[current_orthogonality_center + 1]
            )

    def set_canonical_form(self, orthogonality_center: int) -> None:
        """Sets canonical form of MPS.

        Left and right normalizes an MPS around a selected site.

        Args:
            orthogonality_center (int): site of matrix MPS around which we normalize
        """

        def sweep_decomposition(orthogonality_center: int) -> None:
            for site in range(orthogonality_center):
                self.shift_orthogonality_center_right(site)

        sweep_decomposition(orthogonality_center)
        self.flip_network()
        flipped_orthogonality_center = self.length - 1 - orthogonality_center
        sweep_decomposition(flipped_orthogonality_center)
        self.flip_network()

    def normalize(self, form: str = "B") -> None:
        """Normalize MPS.

        Brings the network into left ("A") or right ("B") canonical form with unit norm.

        Args:
            form (str): The form to normalize the network to. Default is "B".
        """
        if form == "B":
            self.flip_network()

        self.set_canonical_form(orthogonality_center=self.length - 1)
        self.shift_orthogonality_center_right(self.length - 1)

        if form == "B":
            self.flip_network()

    def scalar_product(self, other: MPS) -> np.complex128:
        """Scalar product <self|other>.

        Args:
            other: The ket state.

        Returns:
            np.complex128: The overlap.
        """
        env = np.ones((1, 1), dtype=np.complex128)
        for bra, ket in zip(self.tensors, other.tensors):
            env = oe.contract("ab,sac,sbd->cd", env, np.conj(bra), ket)
        return np.complex128(env[0, 0])

    def norm(self) -> np.float64:
        """Norm of the state.

        Returns:
            np.float64: sqrt(<psi|psi>).
        """
        return np.float64(np.sqrt(np.abs(self.scalar_product(self))))

    def check_if_valid_mps(self) -> None:
        """MPS validity check.

        Check if the current tensor network is a valid Matrix Product State (MPS).
        Verifies that the right bond of every tensor matches the left bond of its neighbour.
        """
        right_bond = self.tensors[0].shape[2]
        for tensor in self.tensors[1::]:
            assert tensor.shape[1] == right_bond
            right_bond = tensor.shape[2]

    def to_vec(self) -> NDArray[np.complex128]:
        r"""Converts the MPS to a full state vector representation.

        Returns:
            A one-dimensional NumPy array of length \(\prod_{\ell=1}^L d_\ell\) representing the state vector.
        """
        vec = self.tensors[0]
        for tensor in self.tensors[1:]:
            vec = oe.contract("abc,dce->adbe", vec, tensor)
            vec = np.reshape(vec, (vec.shape[0] * vec.shape[1], vec.shape[2], vec.shape[3]))
        return np.reshape(vec, -1)


class MPO:
    """Class representing a Matrix Product Operator (MPO).

    The index order is (sigma, sigma', chi_l-1, chi_l), where sigma is the row (output) and
    sigma' the column (input) index of the local operator.

    Attributes:
    length (int): The number of sites.
    tensors (list[NDArray[np.complex128]]): List of rank-4 tensors.
    physical_dimension (int): Physical dimension of the first site.
    """

    def __init__(self, tensors: list[NDArray[np.complex128]] | None = None) -> None:
        """Initializes an MPO.

        Args:
            tensors: Tensors in (sigma, sigma', left, right) order. If None, the MPO is empty and
                one of the init methods has to be called.
        """
        self.tensors: list[NDArray[np.complex128]] = []
        self.length = 0
        self.physical_dimension = 0
        if tensors is not None:
            self.init_custom(tensors, transpose=False)

    def init_identity(self, length: int, physical_dimension: int = 2) -> None:
        """Initialize identity MPO.

        Initializes the network with identity matrices.

        Args:
            length (int): The number of sites.
            physical_dimension (int, optional): The physical dimension of the identity matrices. Default is 2.
        """
        mat = np.eye(physical_dimension, dtype=np.complex128)
        mat = np.expand_dims(mat, (2, 3))
        self.length = length
        self.physical_dimension = physical_dimension
        self.tensors = [mat.copy() for _ in range(length)]

    def init_product(self, operators: list[NDArray[np.complex128]]) -> None:
        """Product operator MPO.

        Initializes a bond dimension one MPO O_1 ⊗ O_2 ⊗ ... from one local matrix per site.

        Args:
            operators: Local operators, one per site.
        """
        self.tensors = [np.expand_dims(np.asarray(op, dtype=np.complex128), (2, 3)) for op in operators]
        self.length = len(self.tensors)
        self.physical_dimension = self.tensors[0].shape[0]

    def init_custom(self, tensors: list[NDArray[np.complex128]], *, transpose: bool = True) -> None:
        """Custom MPO from tensors.

        Initialize the custom MPO (Matrix Product Operator) with the given tensors.

        Args:
            tensors: A list of tensors to initialize the MPO.
            transpose: If True, the tensors are given as (left, right, sigma, sigma') and are
                transposed to (sigma, sigma', left, right). Default is True.
        """
        self.tensors = list(tensors)
        if transpose:
            for i, tensor in enumerate(self.tensors):
                # left, right, sigma, sigma'
                self.tensors[i] = np.transpose(tensor, (2, 3, 0, 1))
        assert self.check_if_valid_mpo(), "MPO initialized wrong"
        self.length = len(self.tensors)
        self.physical_dimension = self.tensors[0].shape[0]

    def to_matrix(self) -> NDArray[np.complex128]:
        """MPO to matrix conversion.

        Contracts all tensors into one dense matrix. The first site is the most significant one
        of both the row and the column index.

        Returns:
            The resulting matrix after tensor contractions and reshaping.
        """
        mat = self.tensors[0]
        for tensor in self.tensors[1:]:
            mat = oe.contract("abcd, efdg->aebfcg", mat, tensor)
            mat = np.reshape(
                mat, (mat.shape[0] * mat.shape[1], mat.shape[2] * mat.shape[3], mat.shape[4], mat.shape[5])
            )

        # Final left and right bonds should be 1
        return np.squeeze(mat, axis=(2, 3))

    def check_if_valid_mpo(self) -> bool:
        """MPO validity check.

        Verifies that the right bond dimension of each tensor matches the left bond dimension of the next one.

        Returns:
            bool: True if the tensor network is a valid MPO, False otherwise.
        """
        right_bond = self.tensors[0].shape[3]
        for tensor in self.tensors[1::]:
            assert tensor.shape[2] == right_bond
            right_bond = tensor.shape[3]
        return True

    def bond_dimensions(self) -> list[int]:
        """Dimensions of the internal links.

        Returns:
            list[int]: The dimension of the link between site i and i + 1, for every i.
        """
        return [tensor.shape[3] for tensor in self.tensors[:-1]]
