# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""MQT DMT init file.

Density Matrix Truncation (DMT) for matrix product density operators. The package compresses
the bond dimension of a density matrix stored as an MPO while preserving local expectation values
in a window around every truncated bond, and provides the gate construction and sweep driver
needed to time-evolve mixed states with it.
"""

from __future__ import annotations

from ._version import version as __version__
from ._version import version_tuple as version_info

__all__ = ["__version__", "version_info"]
