# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License


"""Numerical methods acting on density-matrix chains (truncation, gates, observables, sweeps)."""
