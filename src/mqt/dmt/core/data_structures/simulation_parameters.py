# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Simulation Parameters for density matrix truncation.

This module provides classes for representing observables and simulation parameters
for DMT simulations. It defines the truncation settings handed to every bond update
(TruncationParams), the Observable class for measurement, and the DMTSimParams class for
configuring a time evolution. It also defines the sweep direction and the time type
(real or imaginary) shared by the truncation engine and the gate builder.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from ..libraries.gate_library import BaseGate, GateLibrary

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from .density_matrix import DensityMatrix

# Smallest relative truncation error that is ever requested
MIN_CUT = 1e-15
# Default hard cap on bond dimensions
MAX_DIM = 5000
# Norms below this value are not divided by
MIN_NORM = 1e-16


class Direction(Enum):
    """Enumerates the sweep directions of a bond update."""

    FROM_LEFT = "from_left"
    FROM_RIGHT = "from_right"


class GateType(Enum):
    """Enumerates real- and imaginary-time evolution."""

    REAL = "real"
    IMAG = "imag"


class TruncationParams:
    """Truncation parameters of a single bond update.

    Attributes:
    -----------
    cutoff :
        Relative truncation error allowed on the residual block.
    pres_cutoff :
        Relative truncation error of the final re-factorization, which must not discard preserved weight.
    max_bond_dim :
        Hard cap on the bond dimension.
    noise :
        Strength of the perturbation used by the density-matrix decomposition.
    use_svd :
        Force the accurate SVD path.
    respect_degenerate :
        Do not split degenerate singular values across the truncation boundary.
    normalize :
        Renormalize the new orthogonality center to unit norm after a truncating update.
    """

    def __init__(
        self,
        cutoff: float = MIN_CUT,
        pres_cutoff: float = 1e-15,
        max_bond_dim: int = MAX_DIM,
        noise: float = 0.0,
        *,
        use_svd: bool = False,
        respect_degenerate: bool = True,
        normalize: bool = False,
    ) -> None:
        """Truncation parameter initialization.

        Parameters
        ----------
        cutoff :
            Relative truncation error on the residual block, by default MIN_CUT.
        pres_cutoff :
            Relative truncation error of the final re-factorization, by default 1e-15.
        max_bond_dim :
            Maximum bond dimension, by default MAX_DIM.
        noise :
            Noise term of the density-matrix decomposition, by default 0. A positive value selects the
            density-matrix decomposition; the perturbation itself needs the effective operator passed to
            ``svd_bond``.
        use_svd :
            If True, always use the accurate SVD.
        respect_degenerate :
            If True, degenerate multiplets are kept or dropped together.
        normalize :
            If True, the new orthogonality center is normalized after a truncating update.
        """
        assert cutoff >= 0.0, "Cutoff must be non-negative."
        assert pres_cutoff >= 0.0, "PresCutoff must be non-negative."
        assert max_bond_dim >= 1, "MaxDim must be at least 1."
        self.cutoff = cutoff
        self.pres_cutoff = pres_cutoff
        self.max_bond_dim = max_bond_dim
        self.noise = noise
        self.use_svd = use_svd
        self.respect_degenerate = respect_degenerate
        self.normalize = normalize

    @property
    def accurate(self) -> bool:
        """Whether the residual block is factorized by the accurate SVD."""
        return self.use_svd or (self.noise == 0 and self.cutoff < 1e-12)

    @property
    def pres_accurate(self) -> bool:
        """Whether the final re-factorization uses the accurate SVD."""
        return self.use_svd or (self.noise == 0 and self.pres_cutoff < 1e-12)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"TruncationParams(cutoff={self.cutoff}, pres_cutoff={self.pres_cutoff}, "
            f"max_bond_dim={self.max_bond_dim}, noise={self.noise})"
        )


class Observable:
    """Observable class.

    A class to represent a single-site observable of a density-matrix simulation.

    Attributes:
    ----------
    gate : BaseGate
        The operator that is measured.
    sites : int
        The site on which the observable is measured.
    results : NDArray[np.complex128] | None
        The measured expectation values, one per sampled time.
    times : NDArray[np.float64] | float | None
        The times at which results were sampled.
    """

    def __init__(self, gate: BaseGate | str, sites: int) -> None:
        """Initializes an Observable instance.

        Parameters
        ----------
        gate :
            The operator, or the name of an operator in the GateLibrary.
        sites :
            The site index on which this observable is measured.

        Raises:
        ------
        ValueError
            If the provided name is not a valid attribute of the GateLibrary.
        """
        if isinstance(gate, str):
            if not hasattr(GateLibrary, gate):
                msg = f"Observable {gate} not found in GateLibrary."
                raise ValueError(msg)
            gate = getattr(GateLibrary, gate)()
        self.gate = copy.deepcopy(gate)
        self.sites = sites
        self.gate.set_sites(self.sites)
        self.results: NDArray[np.complex128] | None = None
        self.times: NDArray[np.float64] | float | None = None

    def initialize(self, sim_params: DMTSimParams) -> None:
        """Observable initialization before simulation.

        Allocates the result array for the sampled times of the simulation.

        Args:
            sim_params: The simulation parameters.
        """
        if sim_params.sample_timesteps:
            self.results = np.empty(len(sim_params.times), dtype=np.complex128)
            self.times = sim_params.times
        else:
            self.results = np.empty(1, dtype=np.complex128)
            self.times = sim_params.elapsed_time


class DMTSimParams:
    """DMT Simulation Parameters.

    A class to represent the parameters of a density-matrix time evolution.

    Attributes:
    -----------
    observables :
        A list of observables to be tracked during the simulation.
    sorted_observables :
        The observables sorted by site.
    elapsed_time :
        The total time for the simulation.
    dt :
        The time step for the simulation (default is 0.1).
    times :
        An array of time points from 0 to T with step dt.
    pres_range :
        Number of sites on each side of a truncated bond whose marginals are preserved.
    max_bond_dim, cutoff, pres_cutoff, noise :
        Truncation settings of every bond update.
    vectorize :
        If True, the chain is evolved in superoperator (vectorized) form.
    gate_type :
        Real- or imaginary-time evolution.
    sample_timesteps :
        A flag to indicate whether to sample at every time step (default is True).
    normalize :
        Renormalize the orthogonality center after every bond update.
    show_progress :
        Display a progress bar.
    """

    output_state: DensityMatrix | None = None

    def __init__(
        self,
        observables: list[Observable],
        elapsed_time: float,
        dt: float = 0.1,
        pres_range: int = 1,
        max_bond_dim: int = MAX_DIM,
        cutoff: float = MIN_CUT,
        pres_cutoff: float = 1e-15,
        noise: float = 0.0,
        *,
        vectorize: bool = False,
        gate_type: GateType = GateType.REAL,
        sample_timesteps: bool = True,
        normalize: bool = False,
        show_progress: bool = False,
    ) -> None:
        """DMT simulation parameters initialization.

        Parameters
        ----------
        observables :
            List of observables to measure during the simulation.
        elapsed_time :
            Total simulation time.
        dt :
            Time step interval, by default 0.1.
        pres_range :
            Preservation range of the truncation, by default 1.
        max_bond_dim :
            Maximum bond dimension allowed, by default MAX_DIM.
        cutoff :
            Relative truncation error on the residual block, by default MIN_CUT.
        pres_cutoff :
            Relative truncation error of the final re-factorization, by default 1e-15.
        noise :
            Noise term of the density-matrix decomposition, by default 0. A positive value selects the
            density-matrix decomposition; the perturbation itself needs the effective operator passed to
            ``simulator.run``.
        vectorize :
            If True, the evolution runs on the vectorized chain with superoperator gates.
        gate_type :
            Real- or imaginary-time evolution, by default real.
        sample_timesteps :
            Flag indicating whether to sample at intermediate time steps, by default True.
        normalize :
            If True, the orthogonality center is renormalized after each bond update.
        show_progress :
            If True, a tqdm progress bar is shown.
        """
        self.observables = observables
        self.sorted_observables = sorted(observables, key=lambda obs: obs.sites)
        self.elapsed_time = elapsed_time
        self.dt = dt
        self.times = np.arange(0, elapsed_time + dt / 2, dt)
        self.pres_range = pres_range
        self.max_bond_dim = max_bond_dim
        self.cutoff = cutoff
        self.pres_cutoff = pres_cutoff
        self.noise = noise
        self.vectorize = vectorize
        self.gate_type = gate_type
        self.sample_timesteps = sample_timesteps
        self.normalize = normalize
        self.show_progress = show_progress

    def truncation_params(self) -> TruncationParams:
        """Truncation parameters of a single bond update.

        Returns:
            TruncationParams: The truncation settings of this simulation.
        """
        return TruncationParams(
            cutoff=self.cutoff,
            pres_cutoff=self.pres_cutoff,
            max_bond_dim=self.max_bond_dim,
            noise=self.noise,
            normalize=self.normalize,
        )
