# Copyright 2021 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
This `__init__.py` file makes the `jax_smoke.base` directory a Python package.

Importing the modules here allows `from jax_smoke.base import grids` and
similar statements.
"""

# --- Data Structures and Utilities ---

# `Grid`, `Field` and `FluidState`, plus the initial obstacle-stamped state.
import jax_smoke.base.grids

# Array shifts and flattening.
import jax_smoke.base.array_utils

# Divergence of the staggered velocity field.
import jax_smoke.base.finite_differences

# Bilinear point sampling and staggered averages.
import jax_smoke.base.interpolation


# --- Solver Stages ---

# Gravity on the vertical velocity.
import jax_smoke.base.forcings

# Obstacle-aware SOR pressure projection.
import jax_smoke.base.pressure

# Border extrapolation and damping.
import jax_smoke.base.boundaries

# Semi-Lagrangian transport of velocity and dye.
import jax_smoke.base.advection

# The ordered tick and the step function factory.
import jax_smoke.base.time_stepping
