# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""High-level simulator module for density matrix truncation.

This module implements the time evolution routine of a density matrix chain under a nearest-neighbour
generator. The initial state is either a pure state (MPS), whose projector is used as density matrix,
or a DensityMatrix. Every time step is one symmetric Trotter step of half time step bond gates,
truncated bond by bond with DMT. Observables are sampled after every step (or only at the end) and
stored in the Observable objects of the simulation parameters; progress is reported via tqdm.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING

import numpy as np
from tqdm import tqdm

from .core.data_structures.density_matrix import DensityMatrix
from .core.data_structures.networks import MPS
from .core.libraries.gate_library import BaseGate
from .core.methods.evolution import evolve_step
from .core.methods.observables import expectation_value

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from numpy.typing import NDArray

    from .core.data_structures.simulation_parameters import Direction, DMTSimParams
    from .core.methods.gates import BondGate

__all__ = ["run"]

logger = logging.getLogger(__name__)


def _measure(dm: DensityMatrix, sim_params: DMTSimParams, index: int) -> None:
    """Stores the expectation value of every observable at the given result index."""
    for observable in sim_params.sorted_observables:
        assert observable.results is not None, "Results should have been initialized"
        observable.results[index] = expectation_value(dm, observable.gate, observable.sites)


def _bond_gates(
    dm: DensityMatrix,
    bond_generators: NDArray[np.complex128] | BaseGate | Sequence[NDArray[np.complex128] | BaseGate],
    sim_params: DMTSimParams,
) -> list[BondGate]:
    """Half time step gates of every bond.

    Args:
        dm: The density matrix in its final mode (operator or vector).
        bond_generators: One generator per bond, or a single generator used on every bond.
        sim_params: Simulation parameters.

    Returns:
        list[BondGate]: The gate of every bond.

    Raises:
        ValueError: If the number of generators does not match the number of bonds.
    """
    if isinstance(bond_generators, (BaseGate, np.ndarray)):
        bond_generators = [bond_generators] * (dm.length - 1)
    if len(bond_generators) != dm.length - 1:
        msg = f"Expected {dm.length - 1} bond generators, got {len(bond_generators)}."
        raise ValueError(msg)
    return [
        dm.calc_gate(generator, sim_params.dt, bond, sim_params.gate_type)
        for bond, generator in enumerate(bond_generators)
    ]


def run(
    initial_state: MPS | DensityMatrix,
    bond_generators: NDArray[np.complex128] | BaseGate | Sequence[NDArray[np.complex128] | BaseGate],
    sim_params: DMTSimParams,
    effective_operator: Callable[[NDArray[np.complex128], Direction], NDArray[np.complex128]] | None = None,
) -> DensityMatrix:
    """Time evolution of a density matrix with density matrix truncation.

    Args:
        initial_state: Pure state or density matrix at time zero; it is not modified.
        bond_generators: Two-site generator of every bond, or one generator for all bonds.
        sim_params: Simulation parameters; the observables are filled with the results.
        effective_operator: Context of the density-matrix decomposition. With a positive
            ``sim_params.noise`` it supplies the perturbation added to each truncated bond.

    Returns:
        DensityMatrix: The final density matrix in operator mode. It is also stored as
        ``sim_params.output_state``.
    """
    if isinstance(initial_state, MPS):
        dm = DensityMatrix.from_pure_state(initial_state, sim_params.pres_range)
    else:
        dm = copy.deepcopy(initial_state)
        dm.pres_range = sim_params.pres_range
        if dm.vectorized:
            dm.unvectorize()
    if sim_params.vectorize:
        dm.vectorize()

    gates = _bond_gates(dm, bond_generators, sim_params)
    params = sim_params.truncation_params()
    logger.info(
        "Running DMT on %d sites for %d steps (pres_range=%d, %r)",
        dm.length,
        len(sim_params.times) - 1,
        dm.pres_range,
        params,
    )

    for observable in sim_params.sorted_observables:
        observable.initialize(sim_params)
    if sim_params.sample_timesteps:
        _measure(dm, sim_params, 0)

    for step in tqdm(
        range(1, len(sim_params.times)), desc="Running DMT", ncols=80, disable=not sim_params.show_progress
    ):
        spectra = evolve_step(dm, gates, params, effective_operator)
        logger.debug(
            "t=%.4f: max bond dimension %d, max truncation error %.3e",
            sim_params.times[step],
            dm.max_bond_dim(),
            max(spectrum.truncation_error for spectrum in spectra),
        )
        if sim_params.sample_timesteps:
            _measure(dm, sim_params, step)

    if not sim_params.sample_timesteps:
        _measure(dm, sim_params, 0)

    if dm.vectorized:
        dm.unvectorize()
    sim_params.output_state = dm
    return dm
