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
Discrete divergence of the staggered velocity field.

On the MAC grid the velocity components sit on cell faces, so the net outflow
of cell `(i, j)` is a forward difference of each component along its own axis:

    div[i, j] = u[i+1, j] - u[i, j] + v[i, j+1] - v[i, j]

This is the same quantity the pressure projector drives towards zero. It is
left unscaled by `1/h`, matching the projector's local equation.
"""

import jax
import jax.numpy as jnp
from jax_smoke.base import array_utils
from jax_smoke.base import grids

Array = grids.Array
FluidState = grids.FluidState


def divergence(u: Array, v: Array) -> jax.Array:
  """
  Net outflow of every cell, located at the cell center.

  Entries on the last row and column wrap around and carry no meaning; use
  `interior_divergence` to read only the cells the projector works on.
  """
  return (array_utils.shift(u, +1, axis=0) - u
          + array_utils.shift(v, +1, axis=1) - v)


def interior_divergence(state: FluidState) -> jax.Array:
  """
  Divergence of every open interior cell, zero everywhere else.

  Solid cells and the border ring are excluded because the projector never
  corrects them.
  """
  mask = grids.interior_mask(state.grid) & (state.s != 0)
  return jnp.where(mask, divergence(state.u, state.v), 0.0)


def total_abs_divergence(state: FluidState) -> jax.Array:
  """Sum of `|div|` over the open interior cells."""
  return jnp.sum(jnp.abs(interior_divergence(state)))
